# src/models/evidence.py

"""Raw provider results and the structured evidence extracted from them."""

from dataclasses import dataclass, field
from enum import Enum


# ── Raw provider output ──────────────────────────────────


@dataclass
class SearchHit:
    """One organic web-search result."""

    title: str
    snippet: str
    link: str


@dataclass
class ImageMatch:
    """One page on which a reverse-image search found the image."""

    title: str
    link: str
    domain: str
    snippet: str = ""


@dataclass
class ReverseImageResult:
    """Reverse-image search findings for a single image URL."""

    image_url: str
    matches: list[ImageMatch] = field(
        default_factory=lambda: list[ImageMatch]()
    )
    inline_image_count: int = 0
    knowledge_graph_title: str = ""
    search_page_url: str = ""

    def matches_by_domain(self) -> dict[str, list[ImageMatch]]:
        """Group matches by domain, preserving first-seen order."""
        grouped: dict[str, list[ImageMatch]] = {}
        for match in self.matches:
            grouped.setdefault(match.domain, []).append(match)
        return grouped


@dataclass
class RetrievalFailure:
    """A single query or image lookup that produced no evidence."""

    target: str
    kind: str  # "quota", "timeout", "malformed", "error"
    message: str


@dataclass
class RawEvidence:
    """Everything the evidence collector obtained for one product."""

    capability_available: bool = True
    search_hits: dict[str, list[SearchHit]] = field(
        default_factory=lambda: dict[str, list[SearchHit]]()
    )
    search_failures: list[RetrievalFailure] = field(
        default_factory=lambda: list[RetrievalFailure]()
    )
    image_results: dict[str, ReverseImageResult] = field(
        default_factory=lambda: dict[str, ReverseImageResult]()
    )
    image_failures: list[RetrievalFailure] = field(
        default_factory=lambda: list[RetrievalFailure]()
    )
    notes: list[str] = field(
        default_factory=lambda: list[str]()
    )

    @property
    def search_available(self) -> bool:
        """True when at least one web-search query returned a result set."""
        return self.capability_available and bool(self.search_hits)


# ── Extracted evidence ───────────────────────────────────


class Coverage(str, Enum):
    """How much evidence a category ended up with."""

    AVAILABLE = "available"
    INSUFFICIENT_DATA = "insufficient data"
    NOT_SPECIFIED = "not specified"
    UNAVAILABLE = "retrieval unavailable"


class MentionContext(str, Enum):
    """Classification of the text surrounding a brand or seller mention."""

    AUTHORITATIVE = "authoritative"
    AMBIGUOUS = "ambiguous"
    NEGATIVE = "negative"


class ImageDomainClass(str, Enum):
    """Classification of a domain an image was found on."""

    REPUTABLE = "reputable"
    SUSPICIOUS = "suspicious"
    GENERIC_STOCK = "genericStock"


@dataclass
class Snippet:
    """Cleaned text of one web hit, addressable by its source id."""

    source_id: str
    domain: str
    text: str
    link: str


@dataclass
class PriceMention:
    """A currency-tagged price found in a snippet."""

    amount: float  # in the local currency
    original_amount: float
    currency: str
    source_id: str
    approximate: bool = False


@dataclass
class BrandMention:
    """The declared brand, found in a snippet."""

    context: str
    source_id: str
    classification: MentionContext

    @property
    def is_authoritative(self) -> bool:
        return self.classification is MentionContext.AUTHORITATIVE


@dataclass
class SellerMention:
    """The declared seller, found in a snippet."""

    context: str
    source_id: str
    sentiment: MentionContext


@dataclass
class ImageOccurrence:
    """One domain a product image recurs on."""

    domain: str
    source_id: str
    classification: ImageDomainClass
    product_name_match: bool
    title: str = ""
    image_url: str = ""


@dataclass
class EvidenceBundle:
    """Structured facts extracted from raw search results."""

    snippets: list[Snippet] = field(
        default_factory=lambda: list[Snippet]()
    )
    search_coverage: Coverage = Coverage.UNAVAILABLE
    prices: list[PriceMention] = field(
        default_factory=lambda: list[PriceMention]()
    )
    price_coverage: Coverage = Coverage.UNAVAILABLE
    brand_mentions: list[BrandMention] = field(
        default_factory=lambda: list[BrandMention]()
    )
    brand_coverage: Coverage = Coverage.UNAVAILABLE
    seller_mentions: list[SellerMention] = field(
        default_factory=lambda: list[SellerMention]()
    )
    seller_coverage: Coverage = Coverage.UNAVAILABLE
    image_occurrences: list[ImageOccurrence] = field(
        default_factory=lambda: list[ImageOccurrence]()
    )
    image_coverage: Coverage = Coverage.UNAVAILABLE
    notes: list[str] = field(
        default_factory=lambda: list[str]()
    )

    @classmethod
    def unavailable(cls, notes: list[str] | None = None) -> "EvidenceBundle":
        """Bundle for when no search capability could be reached at all."""
        return cls(notes=list(notes or []))
