# src/analysis/review_analyzer.py

"""Fake-review detection.

Linguistic markers are scored deterministically. When an inference
client is injected, the model's verdict is used and the markers are
merged into its reasons. Inference failures never propagate: they
resolve to an explicit "Analysis failed" verdict.
"""

import asyncio
import logging
import re
from typing import Any, Protocol

from src.analysis.json_extract import extract_first_json_object
from src.config.settings import Settings
from src.errors import MalformedResponseError
from src.models.review import Review
from src.models.trust_report import ReviewAnalysis

logger = logging.getLogger("trustmart.reviews")


class InferenceClient(Protocol):
    def generate(self, prompt: str) -> str: ...


_MARKETING_PHRASES: tuple[str, ...] = (
    "best product ever",
    "must buy",
    "highly recommend",
    "highly recommended",
    "100% recommended",
    "life changing",
    "game changer",
    "five stars",
    "5 stars",
    "buy it now",
    "don't think twice",
    "dont think twice",
    "value for money",
    "worth every penny",
    "amazing product",
    "awesome product",
    "superb quality",
    "exceeded my expectations",
)

_POSITIVE_WORDS: frozenset[str] = frozenset({
    "great", "excellent", "amazing", "awesome", "love", "perfect",
    "best", "fantastic", "superb", "wonderful", "good",
})
_NEGATIVE_WORDS: frozenset[str] = frozenset({
    "bad", "terrible", "awful", "worst", "broke", "broken", "poor",
    "waste", "useless", "defective", "horrible", "fake", "refund",
})

_SPEC_TOKEN_RE = re.compile(
    r"\d+(?:\.\d+)?\s?(?:gb|tb|mah|mp|hz|inch|w|mm|kg|ghz)\b",
    re.IGNORECASE,
)

# Suspicion points per marker; a verdict is "fake" at 50 or more
_POINTS: dict[str, int] = {
    "marketing": 30,
    "exclamation": 15,
    "caps": 15,
    "specificity": 20,
    "mismatch": 35,
    "generic": 20,
}

PROMPT_TEMPLATE = """\
Analyze the following product review and determine if it appears to be \
genuine or potentially fake.
Consider:
- Language patterns
- Specificity of product details
- Unnatural/marketing language
- Comparison with typical review patterns
- Overly perfect grammar and punctuation

Review: "{text}"

Context:
- Product category: {category}
- Rating: {rating}
- Automatically detected markers: {markers}

Respond with one JSON object only:
{{"isFake": boolean, "confidence": number (0-100), "reasons": string[]}}
"""


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1", "fake")
    return bool(value)


def _to_confidence(value: Any) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if 0 < number <= 1 and not float(number).is_integer():
        number *= 100  # a 0-1 probability
    return max(0, min(100, int(round(number))))


def _to_reasons(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    return []


class ReviewAnalyzer:
    """Classify review text as fake or genuine with a confidence."""

    def __init__(
        self,
        inference_client: InferenceClient | None = None,
        settings: type[Settings] = Settings,
    ) -> None:
        self.inference_client = inference_client
        self.settings = settings

    # ── Heuristics ───────────────────────────────────────

    @staticmethod
    def detect_markers(text: str, rating: int | None) -> list[tuple[str, str]]:
        """Return (marker, reason) pairs found in *text*."""
        found: list[tuple[str, str]] = []
        lowered = text.lower()
        words = re.findall(r"[a-z']+", lowered)

        phrases = [p for p in _MARKETING_PHRASES if p in lowered]
        if phrases:
            found.append((
                "marketing",
                "Unnatural marketing language: "
                + ", ".join(f"'{p}'" for p in phrases[:3]),
            ))
        if text.count("!") >= 3:
            found.append(("exclamation", "Excessive exclamation marks"))
        letters = [c for c in text if c.isalpha()]
        upper = sum(1 for c in letters if c.isupper())
        if len(letters) >= 12 and upper / len(letters) > 0.5:
            found.append(("caps", "Mostly upper-case text"))
        if len(_SPEC_TOKEN_RE.findall(text)) >= 3 and len(words) < 40:
            found.append((
                "specificity",
                "Implausibly dense specification details for a short review",
            ))
        if rating is not None:
            pos = sum(1 for w in words if w in _POSITIVE_WORDS)
            neg = sum(1 for w in words if w in _NEGATIVE_WORDS)
            if rating >= 4 and neg > pos:
                found.append((
                    "mismatch",
                    f"Negative wording does not match the {rating}-star rating",
                ))
            elif rating <= 2 and pos > neg:
                found.append((
                    "mismatch",
                    f"Positive wording does not match the {rating}-star rating",
                ))
        if len(words) <= 3:
            found.append(("generic", "Generic, very short text"))
        return found

    def heuristic(
        self,
        subject_id: str,
        text: str,
        rating: int | None = None,
    ) -> ReviewAnalysis:
        """Deterministic verdict from linguistic markers alone."""
        markers = self.detect_markers(text, rating)
        points = min(100, sum(_POINTS[name] for name, _ in markers))
        is_fake = points >= 50
        confidence = points if is_fake else 100 - points
        reasons = [reason for _, reason in markers] or [
            "No suspicious language patterns detected"
        ]
        return ReviewAnalysis(
            subject_id=subject_id,
            is_fake=is_fake,
            confidence=confidence,
            reasons=reasons,
        )

    # ── Inference ────────────────────────────────────────

    def build_prompt(
        self,
        text: str,
        category: str,
        rating: int | None,
        markers: list[tuple[str, str]],
    ) -> str:
        return PROMPT_TEMPLATE.format(
            text=text.replace('"', "'"),
            category=category or "Not specified",
            rating=rating if rating is not None else "Not provided",
            markers="; ".join(r for _, r in markers) or "none",
        )

    @staticmethod
    def parse_reply(reply: str) -> dict[str, Any]:
        """Normalise the first JSON object of a model reply."""
        data = extract_first_json_object(reply)
        if data is None:
            raise MalformedResponseError(
                "inference", "no JSON object in reply"
            )
        if "isFake" not in data and "is_fake" not in data:
            raise MalformedResponseError(
                "inference", "reply is missing 'isFake'"
            )
        return {
            "isFake": _to_bool(data.get("isFake", data.get("is_fake"))),
            "confidence": _to_confidence(data.get("confidence")),
            "reasons": _to_reasons(data.get("reasons")),
        }

    @staticmethod
    def failed(subject_id: str, error: str) -> ReviewAnalysis:
        return ReviewAnalysis(
            subject_id=subject_id,
            is_fake=False,
            confidence=0,
            reasons=["Analysis failed"],
            explanation="Could not analyze this review due to an error.",
            error=error,
        )

    async def analyze(
        self,
        subject_id: str,
        text: str,
        category: str = "",
        rating: int | None = None,
    ) -> ReviewAnalysis:
        """Analyse one review text; never raises for inference failures."""
        if not text or not text.strip():
            return self.failed(subject_id, "Review text is empty")

        baseline = self.heuristic(subject_id, text, rating)
        if self.inference_client is None:
            logger.debug(
                "No inference client; heuristic verdict for %s", subject_id,
            )
            return baseline

        markers = self.detect_markers(text, rating)
        prompt = self.build_prompt(text, category, rating, markers)
        try:
            reply = await asyncio.wait_for(
                asyncio.to_thread(self.inference_client.generate, prompt),
                timeout=self.settings.INFERENCE_TIMEOUT,
            )
            parsed = self.parse_reply(reply)
        except asyncio.TimeoutError:
            logger.warning(
                "Review analysis timed out for %s", subject_id,
            )
            return self.failed(subject_id, "Inference timed out")
        except Exception as exc:
            logger.warning(
                "Review analysis failed for %s: %s", subject_id, exc,
                exc_info=True,
            )
            return self.failed(subject_id, str(exc))

        reasons = list(parsed["reasons"])
        for _, reason in markers:
            if reason not in reasons:
                reasons.append(reason)
        analysis = ReviewAnalysis(
            subject_id=subject_id,
            is_fake=parsed["isFake"],
            confidence=parsed["confidence"],
            reasons=reasons or baseline.reasons,
        )
        logger.info(
            "Review %s: %s (%d%%)",
            subject_id,
            "fake" if analysis.is_fake else "genuine",
            analysis.confidence,
        )
        return analysis

    async def analyze_review(
        self, review: Review, category: str = "",
    ) -> ReviewAnalysis:
        return await self.analyze(
            review.id, review.comment, category, review.rating,
        )
