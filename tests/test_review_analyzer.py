# tests/test_review_analyzer.py

"""Tests for fake-review detection."""

import threading
import unittest

from src.analysis.review_analyzer import ReviewAnalyzer
from src.config.settings import Settings
from src.errors import MalformedResponseError, TransientServiceError
from src.models.review import Review

_HYPE = "BEST PRODUCT EVER!!! MUST BUY!!!"
_HONEST = (
    "The battery lasts about two days and the camera is decent in "
    "daylight, though low light photos are noisy."
)


class _FastSettings(Settings):
    INFERENCE_TIMEOUT = 0.05


class _StubClient:
    """Inference client returning a canned reply or raising."""

    def __init__(
        self,
        reply: str = "",
        error: Exception | None = None,
        gate: threading.Event | None = None,
    ) -> None:
        self.reply = reply
        self.error = error
        self.gate = gate
        self.prompts: list[str] = []

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.gate is not None:
            self.gate.wait(2.0)
        if self.error is not None:
            raise self.error
        return self.reply


class TestHeuristic(unittest.TestCase):
    """Tests for marker detection and the heuristic verdict."""

    def setUp(self) -> None:
        self.analyzer = ReviewAnalyzer()

    def test_marketing_hype_is_fake(self) -> None:
        """Marketing phrases, shouting and exclamations add up to fake."""
        result = self.analyzer.heuristic("r1", _HYPE, rating=5)
        self.assertTrue(result.is_fake)
        self.assertEqual(result.confidence, 60)
        self.assertTrue(
            any("marketing language" in r for r in result.reasons)
        )
        self.assertIn("Excessive exclamation marks", result.reasons)
        self.assertIn("Mostly upper-case text", result.reasons)

    def test_specific_review_is_genuine(self) -> None:
        """Specific, balanced text has no markers."""
        result = self.analyzer.heuristic("r1", _HONEST, rating=4)
        self.assertFalse(result.is_fake)
        self.assertEqual(result.confidence, 100)
        self.assertEqual(
            result.reasons, ["No suspicious language patterns detected"]
        )

    def test_rating_mismatch_marker(self) -> None:
        """Negative words under a five-star rating are a marker."""
        markers = dict(
            ReviewAnalyzer.detect_markers(
                "Terrible, broke after a week, waste of money", 5,
            )
        )
        self.assertIn("mismatch", markers)
        self.assertIn("5-star", markers["mismatch"])

    def test_short_generic_text(self) -> None:
        """Very short text is generic."""
        markers = dict(ReviewAnalyzer.detect_markers("Nice", None))
        self.assertIn("generic", markers)


class TestParseReply(unittest.TestCase):
    """Tests for ReviewAnalyzer.parse_reply."""

    def test_code_fenced_reply(self) -> None:
        """JSON inside a code fence is parsed."""
        parsed = ReviewAnalyzer.parse_reply(
            '```json\n{"isFake": true, "confidence": 82, '
            '"reasons": ["Generic praise"]}\n```'
        )
        self.assertEqual(
            parsed,
            {"isFake": True, "confidence": 82, "reasons": ["Generic praise"]},
        )

    def test_probability_confidence(self) -> None:
        """A 0-1 probability becomes a percentage."""
        parsed = ReviewAnalyzer.parse_reply(
            '{"isFake": "false", "confidence": 0.35, "reasons": "ok"}'
        )
        self.assertFalse(parsed["isFake"])
        self.assertEqual(parsed["confidence"], 35)
        self.assertEqual(parsed["reasons"], ["ok"])

    def test_confidence_clamped(self) -> None:
        """Out-of-range confidence is clamped."""
        parsed = ReviewAnalyzer.parse_reply('{"isFake": 1, "confidence": 140}')
        self.assertEqual(parsed["confidence"], 100)
        self.assertEqual(parsed["reasons"], [])

    def test_missing_object_raises(self) -> None:
        """A reply without JSON is malformed."""
        with self.assertRaises(MalformedResponseError):
            ReviewAnalyzer.parse_reply("I think it is fake.")

    def test_missing_verdict_raises(self) -> None:
        """A JSON object without isFake is malformed."""
        with self.assertRaises(MalformedResponseError):
            ReviewAnalyzer.parse_reply('{"confidence": 50}')


class TestAnalyze(unittest.IsolatedAsyncioTestCase):
    """Tests for the async analyze entry point."""

    async def test_without_client_uses_heuristic(self) -> None:
        """No inference client means the heuristic verdict."""
        result = await ReviewAnalyzer().analyze("r1", _HYPE, "Electronics", 5)
        self.assertTrue(result.is_fake)
        self.assertIsNone(result.error)

    async def test_empty_text_fails(self) -> None:
        """Blank text resolves to an explicit failure."""
        result = await ReviewAnalyzer().analyze("r1", "   ")
        self.assertEqual(result.error, "Review text is empty")
        self.assertEqual(result.reasons, ["Analysis failed"])
        self.assertEqual(result.confidence, 0)
        self.assertFalse(result.is_fake)

    async def test_model_verdict_merges_markers(self) -> None:
        """The model's verdict is used and marker reasons appended."""
        client = _StubClient(
            reply='Sure!\n```json\n{"isFake": true, "confidence": 91, '
                  '"reasons": ["Reads like an advert"]}\n```'
        )
        result = await ReviewAnalyzer(client).analyze(
            "r1", _HYPE, "Electronics", 5,
        )
        self.assertTrue(result.is_fake)
        self.assertEqual(result.confidence, 91)
        self.assertEqual(result.reasons[0], "Reads like an advert")
        self.assertIn("Excessive exclamation marks", result.reasons)
        self.assertEqual(result.trust_score, 9)
        self.assertIn("Product category: Electronics", client.prompts[0])
        self.assertIn("Rating: 5", client.prompts[0])

    async def test_client_error_fails_softly(self) -> None:
        """Inference errors become an Analysis failed verdict."""
        client = _StubClient(error=TransientServiceError("gemini", "503"))
        result = await ReviewAnalyzer(client).analyze("r1", _HONEST)
        self.assertEqual(result.error, "gemini: 503")
        self.assertEqual(result.reasons, ["Analysis failed"])

    async def test_malformed_reply_fails_softly(self) -> None:
        """Unparseable replies become an Analysis failed verdict."""
        client = _StubClient(reply="no json at all")
        result = await ReviewAnalyzer(client).analyze("r1", _HONEST)
        self.assertIn("no JSON object", result.error or "")

    async def test_timeout(self) -> None:
        """A slow model resolves to a timeout failure."""
        gate = threading.Event()
        client = _StubClient(reply='{"isFake": false}', gate=gate)
        try:
            result = await ReviewAnalyzer(client, _FastSettings).analyze(
                "r1", _HONEST,
            )
        finally:
            gate.set()
        self.assertEqual(result.error, "Inference timed out")

    async def test_analyze_review_uses_review_fields(self) -> None:
        """Review id, comment and rating feed the analysis."""
        review = Review(
            product_id="p1", user_id="u1", rating=5, comment=_HYPE, id="r9",
        )
        result = await ReviewAnalyzer().analyze_review(review, "Electronics")
        self.assertEqual(result.subject_id, "r9")
        self.assertTrue(result.is_fake)


if __name__ == "__main__":
    unittest.main()
