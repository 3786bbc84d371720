# src/analysis/evidence_extractor.py

"""Turn raw search-provider responses into an EvidenceBundle.

The extractor knows nothing about scoring weights. It only records what
the evidence says, where it says it (a source id per fact), and whether
a category had enough evidence to say anything at all.
"""

import logging
import re
import warnings

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning

from src.config.settings import Settings
from src.filters.hit_deduplicator import SearchHitDeduplicator
from src.models.evidence import (
    BrandMention,
    Coverage,
    EvidenceBundle,
    ImageDomainClass,
    ImageOccurrence,
    ImageMatch,
    MentionContext,
    PriceMention,
    RawEvidence,
    SellerMention,
    SearchHit,
    Snippet,
)
from src.models.product import Product
from src.providers.serpapi_provider import domain_of

logger = logging.getLogger("trustmart.extractor")

_AMOUNT = r"\d{1,3}(?:,\d{2,3})+(?:\.\d+)?|\d+(?:\.\d+)?"

_CURRENCY_FIRST_RE = re.compile(
    r"(?<![A-Za-z])(?P<cur>₹|Rs\.?|INR|US\$|\$|USD|€|EUR|£|GBP)"
    rf"\s?(?P<amt>{_AMOUNT})",
    re.IGNORECASE,
)
_AMOUNT_FIRST_RE = re.compile(
    rf"(?P<amt>{_AMOUNT})\s?(?P<cur>INR|USD|EUR|GBP|rupees)\b",
    re.IGNORECASE,
)

_CURRENCY_CODES: dict[str, str] = {
    "₹": "INR",
    "rs": "INR",
    "rs.": "INR",
    "inr": "INR",
    "rupees": "INR",
    "$": "USD",
    "us$": "USD",
    "usd": "USD",
    "€": "EUR",
    "eur": "EUR",
    "£": "GBP",
    "gbp": "GBP",
}

_NEGATIVE_MARKERS: tuple[str, ...] = (
    "scam",
    "fraud",
    "fake",
    "counterfeit",
    "unauthorized",
    "unauthorised",
    "unverified",
    "not authorized",
    "complaint",
    "cheated",
    "duplicate product",
    "replica",
)

_AUTHORITATIVE_MARKERS: tuple[str, ...] = (
    "official",
    "authorized dealer",
    "authorised dealer",
    "authorized reseller",
    "authorised reseller",
    "authorized seller",
    "authorised seller",
    "authorized retailer",
    "verified seller",
    "brand store",
    "trusted seller",
    "top rated seller",
)

_TRANSACTIONAL_MARKERS: tuple[str, ...] = (
    "buy",
    "price",
    "add to cart",
    "shop",
    "order",
    "in stock",
    "offer",
    "deal",
    "₹",
    "rs.",
    "$",
)

_STOPWORDS: frozenset[str] = frozenset({
    "the", "and", "for", "with", "of", "in", "a", "an", "to", "by",
    "new", "original", "genuine",
})

_CONTEXT_WINDOW = 80


def clean_text(raw: str) -> str:
    """Strip markup (SerpAPI highlights, entities) and collapse whitespace."""
    if not raw:
        return ""
    if "<" not in raw and "&" not in raw:
        return " ".join(raw.split())
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", MarkupResemblesLocatorWarning)
        text = BeautifulSoup(raw, "lxml").get_text(" ", strip=True)
    return " ".join(text.split())


def _slug(value: str) -> str:
    return re.sub(r"[^a-z0-9]", "", value.lower())


def name_tokens(name: str) -> list[str]:
    """Significant lower-cased tokens of a product name."""
    tokens = re.findall(r"[a-z0-9]+", name.lower())
    return [t for t in tokens if len(t) >= 2 and t not in _STOPWORDS]


def name_matches(text: str, name: str, threshold: float = 0.6) -> bool:
    """True if *text* mentions enough of the product name's tokens."""
    tokens = name_tokens(name)
    if not tokens:
        return False
    haystack = set(re.findall(r"[a-z0-9]+", text.lower()))
    hits = sum(1 for t in tokens if t in haystack)
    needed = len(tokens) if len(tokens) <= 2 else threshold * len(tokens)
    return hits >= needed


def _domain_in(domain: str, allowed: list[str]) -> bool:
    return any(domain == d or domain.endswith("." + d) for d in allowed)


def _windows(text: str, needle: str) -> list[str]:
    """Context windows around every whole-word occurrence of *needle*."""
    pattern = re.compile(
        rf"(?<![A-Za-z0-9]){re.escape(needle)}(?![A-Za-z0-9])",
        re.IGNORECASE,
    )
    out: list[str] = []
    for m in pattern.finditer(text):
        start = max(0, m.start() - _CONTEXT_WINDOW)
        end = min(len(text), m.end() + _CONTEXT_WINDOW)
        out.append(text[start:end].strip())
    return out


class EvidenceExtractor:
    """Extract prices, brand/seller mentions and image-domain facts."""

    def __init__(self, settings: type[Settings] = Settings) -> None:
        self.settings = settings

    # ── Snippets ─────────────────────────────────────────

    def build_snippets(self, raw: RawEvidence) -> list[Snippet]:
        """Flatten all query results into numbered, de-duplicated snippets."""
        all_hits: list[SearchHit] = [
            hit for hits in raw.search_hits.values() for hit in hits
        ]
        unique, _removed = SearchHitDeduplicator.deduplicate(all_hits)
        snippets: list[Snippet] = []
        for n, hit in enumerate(unique, 1):
            domain = domain_of(hit.link) or "unknown source"
            title = clean_text(hit.title)
            body = clean_text(hit.snippet)
            text = f"{title} — {body}" if title and body else title or body
            snippets.append(
                Snippet(
                    source_id=f"snippet #{n} ({domain})",
                    domain=domain,
                    text=text,
                    link=hit.link,
                )
            )
        return snippets

    # ── Prices ───────────────────────────────────────────

    def _convert(self, amount: float, currency: str) -> tuple[float, bool]:
        """Convert to the local currency; unknown rates are approximated."""
        rate = self.settings.EXCHANGE_RATES.get(currency)
        if rate is not None:
            return amount * rate, False
        fallback = self.settings.EXCHANGE_RATES[
            self.settings.APPROXIMATE_RATE_CURRENCY
        ]
        return amount * fallback, True

    def extract_prices(self, snippets: list[Snippet]) -> list[PriceMention]:
        """Find every currency-tagged amount in the snippets."""
        mentions: list[PriceMention] = []
        for snip in snippets:
            spans: list[tuple[int, int]] = []
            found: list[tuple[str, str]] = []
            for m in _CURRENCY_FIRST_RE.finditer(snip.text):
                spans.append(m.span())
                found.append((m.group("cur"), m.group("amt")))
            for m in _AMOUNT_FIRST_RE.finditer(snip.text):
                start, end = m.span()
                if any(s < end and start < e for s, e in spans):
                    continue
                found.append((m.group("cur"), m.group("amt")))

            for cur_token, amt_token in found:
                currency = _CURRENCY_CODES.get(cur_token.lower())
                if currency is None:
                    continue
                try:
                    original = float(amt_token.replace(",", ""))
                except ValueError:
                    continue
                if original <= 0:
                    continue
                amount, approximate = self._convert(original, currency)
                mentions.append(
                    PriceMention(
                        amount=round(amount, 2),
                        original_amount=original,
                        currency=currency,
                        source_id=snip.source_id,
                        approximate=approximate,
                    )
                )
        return mentions

    # ── Brand / seller mentions ──────────────────────────

    @staticmethod
    def _classify_context(
        windows: list[str],
        domain: str,
        owner_slug: str,
        extra_authoritative: tuple[str, ...] = (),
    ) -> MentionContext:
        joined = " ".join(windows).lower()
        if any(marker in joined for marker in _NEGATIVE_MARKERS):
            return MentionContext.NEGATIVE
        if any(
            marker in joined
            for marker in _AUTHORITATIVE_MARKERS + extra_authoritative
        ):
            return MentionContext.AUTHORITATIVE
        if len(owner_slug) >= 3 and owner_slug in _slug(domain):
            return MentionContext.AUTHORITATIVE
        return MentionContext.AMBIGUOUS

    def extract_brand_mentions(
        self,
        brand: str,
        snippets: list[Snippet],
        raw: RawEvidence,
    ) -> list[BrandMention]:
        brand_slug = _slug(brand)
        india_marker = (f"{brand.lower()} india",)
        mentions: list[BrandMention] = []
        for snip in snippets:
            windows = _windows(snip.text, brand)
            if not windows:
                continue
            mentions.append(
                BrandMention(
                    context=windows[0],
                    source_id=snip.source_id,
                    classification=self._classify_context(
                        windows, snip.domain, brand_slug, india_marker
                    ),
                )
            )
        # Knowledge-graph hints from reverse-image results
        for i, image_url in enumerate(raw.image_results, 1):
            kg_title = raw.image_results[image_url].knowledge_graph_title
            if kg_title and _windows(kg_title, brand):
                mentions.append(
                    BrandMention(
                        context=kg_title,
                        source_id=f"image #{i} knowledge graph",
                        classification=MentionContext.AUTHORITATIVE,
                    )
                )
        return mentions

    def extract_seller_mentions(
        self,
        seller: str,
        snippets: list[Snippet],
    ) -> list[SellerMention]:
        seller_slug = _slug(seller)
        mentions: list[SellerMention] = []
        for snip in snippets:
            windows = _windows(snip.text, seller)
            if not windows:
                continue
            mentions.append(
                SellerMention(
                    context=windows[0],
                    source_id=snip.source_id,
                    sentiment=self._classify_context(
                        windows, snip.domain, seller_slug
                    ),
                )
            )
        return mentions

    # ── Images ───────────────────────────────────────────

    def classify_domain(
        self,
        domain: str,
        matches: list[ImageMatch],
        brand: str,
    ) -> ImageDomainClass:
        """Classify one domain an image was found on."""
        brand_slug = _slug(brand)
        page_text = " ".join(
            f"{m.title} {m.snippet}" for m in matches
        ).lower()
        transactional = any(t in page_text for t in _TRANSACTIONAL_MARKERS)

        if len(brand_slug) >= 3 and brand_slug in _slug(domain):
            if transactional:
                return ImageDomainClass.REPUTABLE
            return ImageDomainClass.GENERIC_STOCK
        if _domain_in(domain, self.settings.STOCK_PHOTO_DOMAINS):
            return ImageDomainClass.GENERIC_STOCK
        reputable = [
            self.settings.MARKETPLACE_DOMAIN,
            *self.settings.REPUTABLE_DOMAINS,
        ]
        if _domain_in(domain, reputable):
            return ImageDomainClass.REPUTABLE
        return ImageDomainClass.SUSPICIOUS

    def extract_image_occurrences(
        self,
        product: Product,
        raw: RawEvidence,
    ) -> list[ImageOccurrence]:
        occurrences: list[ImageOccurrence] = []
        for i, image in enumerate(product.images, 1):
            result = raw.image_results.get(image.url)
            if result is None:
                continue
            positions = {id(m): j for j, m in enumerate(result.matches, 1)}
            for domain, matches in result.matches_by_domain().items():
                first = matches[0]
                context = " ".join(
                    clean_text(f"{m.title} {m.snippet}") for m in matches
                )
                occurrences.append(
                    ImageOccurrence(
                        domain=domain,
                        source_id=(
                            f"image #{i} match #{positions[id(first)]} "
                            f"({domain})"
                        ),
                        classification=self.classify_domain(
                            domain, matches, product.brand
                        ),
                        product_name_match=name_matches(
                            context, product.name
                        ),
                        title=clean_text(first.title),
                        image_url=image.url,
                    )
                )
        return occurrences

    # ── Entry point ──────────────────────────────────────

    def extract(
        self,
        product: Product,
        raw: RawEvidence,
    ) -> EvidenceBundle:
        """Build the EvidenceBundle for *product* from *raw* results."""
        bundle = EvidenceBundle(notes=list(raw.notes))
        if not raw.capability_available:
            logger.info(
                "Search capability unavailable; evidence for '%s' "
                "marked insufficient",
                product.name,
            )

        search_ok = raw.search_available
        bundle.snippets = self.build_snippets(raw) if search_ok else []
        if not search_ok:
            bundle.search_coverage = Coverage.UNAVAILABLE
        elif bundle.snippets:
            bundle.search_coverage = Coverage.AVAILABLE
        else:
            bundle.search_coverage = Coverage.INSUFFICIENT_DATA

        # Prices
        bundle.prices = self.extract_prices(bundle.snippets)
        if bundle.prices:
            bundle.price_coverage = Coverage.AVAILABLE
        elif search_ok:
            bundle.price_coverage = Coverage.INSUFFICIENT_DATA
        else:
            bundle.price_coverage = Coverage.UNAVAILABLE

        # Brand
        if not product.brand.strip():
            bundle.brand_coverage = Coverage.NOT_SPECIFIED
        else:
            bundle.brand_mentions = self.extract_brand_mentions(
                product.brand.strip(), bundle.snippets, raw
            )
            if bundle.brand_mentions:
                bundle.brand_coverage = Coverage.AVAILABLE
            elif search_ok:
                bundle.brand_coverage = Coverage.INSUFFICIENT_DATA
            else:
                bundle.brand_coverage = Coverage.UNAVAILABLE

        # Seller
        if not product.seller.strip():
            bundle.seller_coverage = Coverage.NOT_SPECIFIED
        else:
            bundle.seller_mentions = self.extract_seller_mentions(
                product.seller.strip(), bundle.snippets
            )
            if bundle.seller_mentions:
                bundle.seller_coverage = Coverage.AVAILABLE
            elif search_ok:
                bundle.seller_coverage = Coverage.INSUFFICIENT_DATA
            else:
                bundle.seller_coverage = Coverage.UNAVAILABLE

        # Images
        if not product.images:
            bundle.image_coverage = Coverage.NOT_SPECIFIED
        elif not raw.capability_available or not raw.image_results:
            bundle.image_coverage = Coverage.UNAVAILABLE
        else:
            bundle.image_occurrences = self.extract_image_occurrences(
                product, raw
            )
            bundle.image_coverage = (
                Coverage.AVAILABLE
                if bundle.image_occurrences
                else Coverage.INSUFFICIENT_DATA
            )

        logger.debug(
            "Extracted for '%s': %d snippets, %d prices, %d brand, "
            "%d seller, %d image occurrences",
            product.name,
            len(bundle.snippets),
            len(bundle.prices),
            len(bundle.brand_mentions),
            len(bundle.seller_mentions),
            len(bundle.image_occurrences),
        )
        return bundle
