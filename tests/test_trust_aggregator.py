# tests/test_trust_aggregator.py

"""Tests for weighted aggregation into a TrustReport."""

import random
import unittest

from src.analysis.check_scorer import CheckScorer
from src.analysis.trust_aggregator import (
    ANALYSIS_FAILED,
    TrustAggregator,
    verdict_for,
)
from src.models.evidence import Coverage, EvidenceBundle, PriceMention
from src.models.product import Product
from src.models.trust_report import (
    CHECK_LAYOUT,
    CHECK_NAMES,
    BrandStatus,
    CheckResult,
    DescriptionQuality,
    ImageAuthenticity,
    SellerStatus,
)


def _check(name: str, status: object, sub_score: float) -> CheckResult:
    return CheckResult(
        name=name,
        sub_score=sub_score,
        status=status,  # type: ignore[arg-type]
        findings=f"{name} findings.",
        citations=[f"snippet #1 ({name}.in)"],
        is_consistent=True if name == "description" else None,
    )


def _good_checks() -> dict[str, CheckResult]:
    return {
        "description": _check("description", DescriptionQuality.GOOD, 1.0),
        "image": _check("image", ImageAuthenticity.AUTHENTIC, 1.0),
        "seller": _check("seller", SellerStatus.REPUTABLE, 1.0),
        "brand": _check("brand", BrandStatus.PRESENT, 1.0),
    }


def _low_price_check() -> CheckResult:
    bundle = EvidenceBundle(
        prices=[
            PriceMention(12000.0, 12000.0, "INR", "snippet #1 (amazon.in)"),
            PriceMention(15000.0, 15000.0, "INR", "snippet #2 (flipkart.com)"),
        ],
        price_coverage=Coverage.AVAILABLE,
    )
    product = Product(
        name="XPhone 12", description="d", category="Electronics",
        price=8500.0,
    )
    return CheckScorer.check_price(product, bundle)


class TestComputeScore(unittest.TestCase):
    """Tests for TrustAggregator.compute_score."""

    def setUp(self) -> None:
        self.aggregator = TrustAggregator()

    def _uniform(self, sub_score: float) -> dict[str, CheckResult]:
        return {
            name: _check(name, CHECK_LAYOUT[name][2]("Unknown"), sub_score)
            for name in CHECK_NAMES
        }

    def test_extremes(self) -> None:
        """All ones score 100; all zeros score 0."""
        self.assertEqual(self.aggregator.compute_score(self._uniform(1.0)), 100)
        self.assertEqual(self.aggregator.compute_score(self._uniform(0.0)), 0)
        self.assertEqual(self.aggregator.compute_score(self._uniform(0.5)), 50)

    def test_bounds_for_random_sub_scores(self) -> None:
        """Any sub-scores produce an integer in [0, 100]."""
        rng = random.Random(7)
        for _ in range(500):
            checks = self._uniform(0.0)
            for check in checks.values():
                check.sub_score = rng.uniform(-0.5, 1.5)
            score = self.aggregator.compute_score(checks)
            self.assertIsInstance(score, int)
            self.assertGreaterEqual(score, 0)
            self.assertLessEqual(score, 100)

    def test_weights(self) -> None:
        """Each check contributes its weight points."""
        checks = self._uniform(0.0)
        checks["image"].sub_score = 1.0
        self.assertEqual(self.aggregator.compute_score(checks), 30)
        checks["image"].sub_score = 0.0
        checks["brand"].sub_score = 0.3
        self.assertEqual(self.aggregator.compute_score(checks), 6)


class TestAggregate(unittest.TestCase):
    """Tests for TrustAggregator.aggregate."""

    def setUp(self) -> None:
        self.aggregator = TrustAggregator()

    def test_low_price_single_major_flag(self) -> None:
        """A ₹8,500 listing yields one major, evidence-cited price flag."""
        checks = _good_checks()
        checks["price"] = _low_price_check()
        report = self.aggregator.aggregate("p1", "XPhone 12", checks)

        self.assertEqual(report.trust_score, 75)
        self.assertEqual(len(report.major_flags), 1)
        flag = report.major_flags[0]
        self.assertEqual(flag.check, "price")
        self.assertIn("snippet #1 (amazon.in)", flag.message)
        self.assertIn("snippet #2 (flipkart.com)", flag.message)
        self.assertTrue(report.summary.startswith("High trust (75/100): Price"))
        self.assertFalse(report.summary.startswith("Tentative"))

    def test_all_unknown_is_tentative_fifty(self) -> None:
        """No evidence at all scores 50 and the summary is tentative."""
        report = self.aggregator.aggregate("p1", "XPhone 12", {})
        self.assertEqual(report.trust_score, 50)
        self.assertTrue(
            report.summary.startswith("Tentative: Moderate trust (50/100)")
        )
        self.assertEqual(report.major_flags, [])
        self.assertEqual(set(report.verification), set(CHECK_NAMES))

    def test_missing_check_is_filled_and_logged(self) -> None:
        """A check that did not run is reported as Unknown."""
        checks = _good_checks()
        with self.assertLogs("trustmart.aggregator", level="WARNING") as logs:
            report = self.aggregator.aggregate("p1", "XPhone 12", checks)
        self.assertIn("price", logs.output[0])
        price = report.verification["price"]
        self.assertEqual(price.status.value, "Unknown")
        self.assertEqual(price.sub_score, 0.5)
        self.assertEqual(report.trust_score, 88)

    def test_flag_order_majors_then_minors(self) -> None:
        """Major flags precede minor ones."""
        checks = _good_checks()
        checks["price"] = _low_price_check()
        checks["seller"] = _check("seller", SellerStatus.GENERIC, 0.5)
        checks["brand"] = _check("brand", BrandStatus.UNVERIFIED, 0.3)
        report = self.aggregator.aggregate("p1", "XPhone 12", checks)
        self.assertEqual(
            [(f.severity, f.check) for f in report.red_flags],
            [("major", "price"), ("major", "brand"), ("minor", "seller")],
        )

    def test_notes_carried(self) -> None:
        """Collector notes land in the report."""
        report = self.aggregator.aggregate(
            "p1", "XPhone 12", _good_checks(), notes=["quota note"],
        )
        self.assertEqual(report.notes, ["quota note"])


class TestDegradedReport(unittest.TestCase):
    """Tests for the report returned when analysis fails."""

    def test_shape(self) -> None:
        """Score zero, an error, and every check marked failed."""
        report = TrustAggregator.degraded_report("p1", "XPhone 12", "boom")
        self.assertEqual(report.trust_score, 0)
        self.assertEqual(report.error, "boom")
        self.assertEqual(report.summary, "Analysis failed: boom")
        self.assertEqual(
            [f.message for f in report.red_flags],
            ["An error occurred during analysis."],
        )
        for name in CHECK_NAMES:
            check = report.verification[name]
            self.assertEqual(check.findings, ANALYSIS_FAILED)
            self.assertEqual(check.sub_score, 0.0)
            self.assertEqual(check.status.value, "Unknown")
        self.assertEqual(report.to_dict()["error"], "boom")


class TestVerdict(unittest.TestCase):
    """Tests for verdict_for thresholds."""

    def test_thresholds(self) -> None:
        """High from 75, Moderate from 45, Low below."""
        self.assertEqual(verdict_for(75), "High")
        self.assertEqual(verdict_for(74), "Moderate")
        self.assertEqual(verdict_for(45), "Moderate")
        self.assertEqual(verdict_for(44), "Low")


if __name__ == "__main__":
    unittest.main()
