# src/models/trust_report.py

"""Trust report data model: per-check results, red flags, and verdicts."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class DescriptionQuality(str, Enum):
    GOOD = "Good"
    AVERAGE = "Average"
    POOR = "Poor"
    UNKNOWN = "Unknown"


class PriceStatus(str, Enum):
    REASONABLE = "Reasonable"
    SLIGHTLY_OFF = "Slightly Off"
    TOO_LOW = "Too Low"
    TOO_HIGH = "Too High"
    UNKNOWN = "Unknown"


class ImageAuthenticity(str, Enum):
    AUTHENTIC = "Authentic"
    STOCK_PHOTO = "Stock Photo"
    SUSPICIOUS = "Suspicious"
    NO_IMAGES = "No Images"
    UNKNOWN = "Unknown"


class SellerStatus(str, Enum):
    REPUTABLE = "Reputable"
    GENERIC = "Generic"
    SUSPICIOUS = "Suspicious"
    UNKNOWN = "Unknown"


class BrandStatus(str, Enum):
    PRESENT = "Present"
    UNVERIFIED = "Unverified"
    MISSING = "Missing"
    UNKNOWN = "Unknown"


# Check name -> (report key, label field, label enum)
CHECK_LAYOUT: dict[str, tuple[str, str, type[Enum]]] = {
    "description": ("descriptionCheck", "quality", DescriptionQuality),
    "price": ("priceCheck", "status", PriceStatus),
    "image": ("imageCheck", "authenticity", ImageAuthenticity),
    "seller": ("sellerCheck", "status", SellerStatus),
    "brand": ("brandCheck", "status", BrandStatus),
}

CHECK_NAMES: tuple[str, ...] = tuple(CHECK_LAYOUT)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class CheckResult:
    """Outcome of one authenticity check."""

    name: str
    sub_score: float
    status: Enum
    findings: str
    citations: list[str] = field(
        default_factory=lambda: list[str]()
    )
    insufficient_data: bool = False
    is_consistent: bool | None = None
    headline: str = ""  # one-line fact reused by red flags

    def to_dict(self) -> dict[str, object]:
        _, label_field, _ = CHECK_LAYOUT[self.name]
        data: dict[str, object] = {}
        if self.name == "description":
            data["isConsistent"] = bool(self.is_consistent)
        data[label_field] = self.status.value
        data["subScore"] = self.sub_score
        data["findings"] = self.findings
        data["citations"] = list(self.citations)
        return data


@dataclass
class RedFlag:
    """A short, evidence-cited authenticity concern."""

    severity: str  # "major" or "minor"
    message: str
    check: str
    citations: list[str] = field(
        default_factory=lambda: list[str]()
    )

    def __str__(self) -> str:
        return self.message


@dataclass
class TrustReport:
    """Explainable trust assessment of a single product."""

    subject_id: str
    subject_name: str
    trust_score: int
    summary: str
    red_flags: list[RedFlag] = field(
        default_factory=lambda: list[RedFlag]()
    )
    verification: dict[str, CheckResult] = field(
        default_factory=lambda: dict[str, CheckResult]()
    )
    notes: list[str] = field(
        default_factory=lambda: list[str]()
    )
    analyzed_at: str = field(default_factory=_utc_now)
    error: str | None = None

    @property
    def major_flags(self) -> list[RedFlag]:
        return [f for f in self.red_flags if f.severity == "major"]

    @property
    def minor_flags(self) -> list[RedFlag]:
        return [f for f in self.red_flags if f.severity == "minor"]

    def to_dict(self) -> dict[str, object]:
        """Serialise to the report JSON shape."""
        data: dict[str, object] = {
            "subjectId": self.subject_id,
            "productName": self.subject_name,
            "trustScore": self.trust_score,
            "summary": self.summary,
            "redFlags": [f.message for f in self.red_flags],
            "verification": {
                CHECK_LAYOUT[name][0]: self.verification[name].to_dict()
                for name in CHECK_NAMES
                if name in self.verification
            },
            "notes": list(self.notes),
            "analyzedAt": self.analyzed_at,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class ReviewAnalysis:
    """Fake-review verdict for a single review text."""

    subject_id: str
    is_fake: bool
    confidence: int
    reasons: list[str] = field(
        default_factory=lambda: list[str]()
    )
    explanation: str = ""
    analyzed_at: str = field(default_factory=_utc_now)
    error: str | None = None

    @property
    def trust_score(self) -> int:
        """Trust implied by the verdict: high confidence in fakery means low trust."""
        if self.is_fake:
            return max(0, min(100, 100 - self.confidence))
        return max(0, min(100, self.confidence))

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "subjectId": self.subject_id,
            "isFake": self.is_fake,
            "confidence": self.confidence,
            "reasons": list(self.reasons),
            "analyzedAt": self.analyzed_at,
        }
        if self.explanation:
            data["explanation"] = self.explanation
        if self.error is not None:
            data["error"] = self.error
        return data
