# src/analysis/trust_aggregator.py

"""Weighted aggregation of check results into a TrustReport."""

import logging

from src.config.settings import Settings
from src.models.trust_report import (
    CHECK_LAYOUT,
    CHECK_NAMES,
    BrandStatus,
    CheckResult,
    DescriptionQuality,
    ImageAuthenticity,
    PriceStatus,
    RedFlag,
    SellerStatus,
    TrustReport,
)

logger = logging.getLogger("trustmart.aggregator")

# (check, statuses) pairs that raise a flag, in report order
_MAJOR_RULES: list[tuple[str, frozenset]] = [
    ("price", frozenset({PriceStatus.TOO_LOW, PriceStatus.TOO_HIGH})),
    ("brand", frozenset({BrandStatus.MISSING, BrandStatus.UNVERIFIED})),
    ("image", frozenset({ImageAuthenticity.SUSPICIOUS})),
    ("seller", frozenset({SellerStatus.SUSPICIOUS})),
]
_MINOR_RULES: list[tuple[str, frozenset]] = [
    ("price", frozenset({PriceStatus.SLIGHTLY_OFF})),
    ("image", frozenset({ImageAuthenticity.STOCK_PHOTO})),
    ("description", frozenset({DescriptionQuality.AVERAGE})),
    ("seller", frozenset({SellerStatus.GENERIC, SellerStatus.UNKNOWN})),
]

ANALYSIS_FAILED = "Analysis failed."


def _unknown_check(name: str, findings: str) -> CheckResult:
    _, _, enum_cls = CHECK_LAYOUT[name]
    return CheckResult(
        name=name,
        sub_score=0.5,
        status=enum_cls("Unknown"),
        findings=findings,
        insufficient_data=True,
        is_consistent=True if name == "description" else None,
        headline=f"{name.capitalize()} check not run",
    )


def verdict_for(score: int) -> str:
    if score >= 75:
        return "High"
    if score >= 45:
        return "Moderate"
    return "Low"


class TrustAggregator:
    """Combine the five checks into a score, red flags and a summary."""

    def __init__(self, settings: type[Settings] = Settings) -> None:
        self.settings = settings

    def compute_score(self, checks: dict[str, CheckResult]) -> int:
        """Weighted sum of sub-scores as an integer in [0, 100].

        Weights are integer points summing to 100, so the sum is exact
        before rounding half up.
        """
        total = 0.0
        for name, points in self.settings.CHECK_WEIGHT_POINTS.items():
            sub = min(1.0, max(0.0, checks[name].sub_score))
            total += points * sub
        score = int(total + 0.5)
        return max(0, min(100, score))

    @staticmethod
    def _flag(severity: str, check: CheckResult) -> RedFlag:
        headline = check.headline or check.findings.rstrip(".")
        cites = ", ".join(check.citations) or "no evidence"
        return RedFlag(
            severity=severity,
            message=f"{headline} ({cites})",
            check=check.name,
            citations=list(check.citations),
        )

    def derive_red_flags(
        self, checks: dict[str, CheckResult],
    ) -> list[RedFlag]:
        """Majors first, then minors; at most one flag per rule."""
        flags: list[RedFlag] = []
        for severity, rules in (("major", _MAJOR_RULES), ("minor", _MINOR_RULES)):
            for name, statuses in rules:
                check = checks[name]
                if check.status in statuses:
                    flags.append(self._flag(severity, check))
        return flags

    def is_tentative(self, checks: dict[str, CheckResult]) -> bool:
        unknown = sum(1 for c in checks.values() if c.insufficient_data)
        return unknown >= self.settings.TENTATIVE_UNKNOWN_THRESHOLD

    def build_summary(
        self,
        score: int,
        flags: list[RedFlag],
        tentative: bool,
    ) -> str:
        majors = [f.message for f in flags if f.severity == "major"]
        drivers = "; ".join(majors) if majors else "no major red flags"
        summary = f"{verdict_for(score)} trust ({score}/100): {drivers}."
        if tentative:
            summary = f"Tentative: {summary}"
        return summary

    def aggregate(
        self,
        subject_id: str,
        subject_name: str,
        checks: dict[str, CheckResult],
        notes: list[str] | None = None,
    ) -> TrustReport:
        """Build the full report; a missing check is filled in as Unknown."""
        complete: dict[str, CheckResult] = {}
        for name in CHECK_NAMES:
            if name in checks:
                complete[name] = checks[name]
            else:
                logger.warning(
                    "Check '%s' missing for %s; reporting Unknown",
                    name, subject_id,
                )
                complete[name] = _unknown_check(name, "Check not run.")

        score = self.compute_score(complete)
        flags = self.derive_red_flags(complete)
        tentative = self.is_tentative(complete)
        report = TrustReport(
            subject_id=subject_id,
            subject_name=subject_name,
            trust_score=score,
            summary=self.build_summary(score, flags, tentative),
            red_flags=flags,
            verification=complete,
            notes=list(notes or []),
        )
        logger.info(
            "Trust report for %s: %d/100, %d major, %d minor%s",
            subject_id, score,
            len(report.major_flags), len(report.minor_flags),
            " (tentative)" if tentative else "",
        )
        return report

    @staticmethod
    def degraded_report(
        subject_id: str,
        subject_name: str,
        error: str,
        notes: list[str] | None = None,
    ) -> TrustReport:
        """Report returned when analysis itself failed."""
        checks = {
            name: _unknown_check(name, ANALYSIS_FAILED)
            for name in CHECK_NAMES
        }
        for check in checks.values():
            check.sub_score = 0.0
            check.headline = "Analysis failed"
        return TrustReport(
            subject_id=subject_id,
            subject_name=subject_name,
            trust_score=0,
            summary=f"Analysis failed: {error}",
            red_flags=[
                RedFlag(
                    severity="major",
                    message="An error occurred during analysis.",
                    check="analysis",
                )
            ],
            verification=checks,
            notes=list(notes or []),
            error=error,
        )
