# src/analysis/check_scorer.py

"""The five authenticity checks.

Each check is a pure function of the product's declared fields and one
slice of the EvidenceBundle, returning a CheckResult with a sub-score in
[0, 1], a status label from a closed enumeration, and findings that cite
the evidence that drove the score.
"""

import re
from dataclasses import dataclass

from src.analysis.evidence_extractor import name_matches
from src.config.settings import Settings
from src.models.evidence import (
    Coverage,
    EvidenceBundle,
    ImageDomainClass,
    MentionContext,
    PriceMention,
)
from src.models.product import Product
from src.models.trust_report import (
    BrandStatus,
    CheckResult,
    DescriptionQuality,
    ImageAuthenticity,
    PriceStatus,
    SellerStatus,
)

_SPEC_RE = re.compile(
    r"(?P<value>\d+(?:\.\d+)?)\s?"
    r"(?P<unit>tb|gb|mb|mah|mp|inch(?:es)?|in\b|\"|hz|w\b|mm|kg|g\b)"
    r"(?:\s+(?P<qualifier>[a-z]+))?",
    re.IGNORECASE,
)

_UNIT_ALIASES: dict[str, str] = {
    "inches": "inch",
    "in": "inch",
    '"': "inch",
}

NO_EVIDENCE = "No evidence found in provided search results."


@dataclass(frozen=True)
class SpecClaim:
    """A numeric specification such as ``16GB RAM``."""

    value: float
    unit: str
    qualifier: str
    text: str


def extract_spec_claims(text: str) -> list[SpecClaim]:
    """Find ``<number><unit> [qualifier]`` tokens in free text."""
    claims: list[SpecClaim] = []
    seen: set[tuple[float, str, str]] = set()
    for m in _SPEC_RE.finditer(text or ""):
        unit = m.group("unit").lower()
        unit = _UNIT_ALIASES.get(unit, unit)
        qualifier = (m.group("qualifier") or "").lower()
        key = (float(m.group("value")), unit, qualifier)
        if key in seen:
            continue
        seen.add(key)
        claims.append(
            SpecClaim(
                value=key[0],
                unit=unit,
                qualifier=qualifier,
                text=m.group(0).strip(),
            )
        )
    return claims


def format_inr(amount: float) -> str:
    """Render an amount in the local currency, e.g. ``₹12,000``."""
    if abs(amount - round(amount)) < 0.005:
        return f"₹{amount:,.0f}"
    return f"₹{amount:,.2f}"


def _cite(source_ids: list[str]) -> str:
    return ", ".join(source_ids) if source_ids else "no evidence"


def _unique(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


def quality_for(sub_score: float) -> DescriptionQuality:
    """Map a description sub-score to its quality label."""
    if sub_score > 0.8:
        return DescriptionQuality.GOOD
    if sub_score >= 0.4:
        return DescriptionQuality.AVERAGE
    return DescriptionQuality.POOR


def _mentions_brand(text: str, brand: str) -> bool:
    return bool(
        re.search(
            rf"(?<![A-Za-z0-9]){re.escape(brand)}(?![A-Za-z0-9])",
            text,
            re.IGNORECASE,
        )
    )


class CheckScorer:
    """Deterministic scoring functions, one per check."""

    # ── Description ──────────────────────────────────────

    @staticmethod
    def check_description(
        product: Product, bundle: EvidenceBundle,
    ) -> CheckResult:
        if bundle.search_coverage is not Coverage.AVAILABLE:
            return CheckResult(
                name="description",
                sub_score=0.5,
                status=DescriptionQuality.UNKNOWN,
                findings=(
                    "No web evidence was available to corroborate the "
                    f"description ({bundle.search_coverage.value})."
                ),
                insufficient_data=True,
                is_consistent=True,
                headline="Description could not be corroborated",
            )

        snippets = bundle.snippets
        claims = extract_spec_claims(product.description)
        snippet_claims: dict[str, list[SpecClaim]] = {
            s.source_id: extract_spec_claims(s.text) for s in snippets
        }
        domains = {s.source_id: s.domain for s in snippets}

        contradictions: list[str] = []
        contradiction_cites: list[str] = []
        corroborating: list[str] = []
        uncorroborated: list[str] = []
        for claim in claims:
            supporting = [
                sid for sid, found in snippet_claims.items()
                if any(
                    c.unit == claim.unit and c.value == claim.value
                    for c in found
                )
            ]
            if supporting:
                corroborating.extend(supporting)
                continue
            uncorroborated.append(claim.text)
            if not claim.qualifier:
                continue
            conflicting = [
                (sid, c) for sid, found in snippet_claims.items()
                for c in found
                if c.unit == claim.unit
                and c.qualifier == claim.qualifier
                and c.value != claim.value
            ]
            conflict_domains = {domains[sid] for sid, _ in conflicting}
            if len(conflict_domains) >= 2:
                others = ", ".join(
                    _unique([c.text for _, c in conflicting])
                )
                sids = _unique([sid for sid, _ in conflicting])
                contradictions.append(
                    f"Description: '{claim.text}' vs {others} in "
                    f"{_cite(sids)}"
                )
                contradiction_cites.extend(sids)

        brand = product.brand.strip()
        brand_mismatch = ""
        brand_cites: list[str] = []
        if brand:
            in_description = _mentions_brand(product.description, brand)
            authoritative = [
                m.source_id for m in bundle.brand_mentions
                if m.is_authoritative
            ]
            if in_description and not bundle.brand_mentions:
                brand_mismatch = (
                    f"Description names '{brand}' but no evidence "
                    "mentions the brand"
                )
            elif authoritative and not in_description:
                brand_mismatch = (
                    f"Evidence ties the product to '{brand}' but the "
                    "description never names the brand"
                )
                brand_cites = authoritative

        name_sources = [
            s.source_id for s in snippets
            if name_matches(s.text, product.name)
        ]

        if contradictions or brand_mismatch:
            parts = contradictions + ([brand_mismatch] if brand_mismatch else [])
            cites = _unique(contradiction_cites + brand_cites)
            return CheckResult(
                name="description",
                sub_score=0.0,
                status=quality_for(0.0),
                findings="; ".join(parts) + ".",
                citations=cites,
                is_consistent=False,
                headline=parts[0],
            )

        if claims:
            support = _unique(corroborating)
            fully_supported = not uncorroborated
        else:
            support = name_sources
            fully_supported = True
        support_domains = {domains[sid] for sid in support}

        if fully_supported and len(support_domains) >= 2:
            sub_score = 1.0
            findings = (
                "Description aligns with "
                f"{len(support_domains)} independent sources: "
                f"{_cite(support)}."
            )
            headline = "Description corroborated by multiple sources"
        else:
            sub_score = 0.5
            pieces: list[str] = []
            if support:
                pieces.append(f"partially corroborated by {_cite(support)}")
            else:
                pieces.append(NO_EVIDENCE.rstrip(".").lower())
            if uncorroborated:
                pieces.append(
                    "uncorroborated claims: " + ", ".join(uncorroborated)
                )
            findings = "Description " + "; ".join(pieces) + "."
            headline = "Description only partially corroborated"

        return CheckResult(
            name="description",
            sub_score=sub_score,
            status=quality_for(sub_score),
            findings=findings,
            citations=support,
            is_consistent=True,
            headline=headline,
        )

    # ── Price ────────────────────────────────────────────

    @staticmethod
    def _describe_prices(prices: list[PriceMention]) -> str:
        parts: list[str] = []
        for p in prices:
            if p.currency == Settings.LOCAL_CURRENCY:
                parts.append(f"{format_inr(p.amount)} ({p.source_id})")
            else:
                note = "approx. " if p.approximate else ""
                parts.append(
                    f"{format_inr(p.amount)} ({p.source_id}, {note}"
                    f"converted from {p.currency} {p.original_amount:,.2f})"
                )
        return "; ".join(parts)

    @staticmethod
    def check_price(
        product: Product,
        bundle: EvidenceBundle,
        settings: type[Settings] = Settings,
    ) -> CheckResult:
        if not bundle.prices:
            reason = (
                "insufficient price data"
                if bundle.price_coverage is Coverage.INSUFFICIENT_DATA
                else "web search unavailable"
            )
            return CheckResult(
                name="price",
                sub_score=0.5,
                status=PriceStatus.UNKNOWN,
                findings=(
                    f"No price mentions extracted ({reason}); "
                    f"product price {format_inr(product.price)} "
                    "not compared."
                ),
                insufficient_data=True,
                headline="Market price unknown",
            )

        amounts = [p.amount for p in bundle.prices]
        lo_obs, hi_obs = min(amounts), max(amounts)
        band_lo = lo_obs * settings.PRICE_TOLERANCE_LOW
        band_hi = hi_obs * settings.PRICE_TOLERANCE_HIGH
        price = product.price
        cites = _unique([p.source_id for p in bundle.prices])
        observed = f"{format_inr(lo_obs)}–{format_inr(hi_obs)}"
        band = f"{format_inr(band_lo)}–{format_inr(band_hi)}"

        if band_lo <= price <= band_hi:
            status = PriceStatus.REASONABLE
            sub_score = 1.0
            verdict = "within tolerance"
        else:
            below = price < band_lo
            edge = band_lo if below else band_hi
            distance = abs(edge - price) / edge if edge else 1.0
            direction = "below" if below else "above"
            verdict = f"{distance * 100:.1f}% {direction} tolerance band"
            if distance <= settings.PRICE_SLIGHTLY_OFF_MARGIN:
                status = PriceStatus.SLIGHTLY_OFF
                sub_score = 0.5
            else:
                status = PriceStatus.TOO_LOW if below else PriceStatus.TOO_HIGH
                sub_score = 0.0

        findings = (
            f"Extracted {observed} from {CheckScorer._describe_prices(bundle.prices)}; "
            f"tolerance range {band}; product price {format_inr(price)} "
            f"→ {verdict} → {status.value}."
        )
        headline = (
            f"Price {format_inr(price)} is {verdict} {band} "
            f"(observed {observed})"
            if status is not PriceStatus.REASONABLE
            else f"Price {format_inr(price)} within observed range {observed}"
        )
        return CheckResult(
            name="price",
            sub_score=sub_score,
            status=status,
            findings=findings,
            citations=cites,
            headline=headline,
        )

    # ── Image ────────────────────────────────────────────

    @staticmethod
    def check_image(
        product: Product, bundle: EvidenceBundle,
    ) -> CheckResult:
        occurrences = bundle.image_occurrences
        if not occurrences:
            if bundle.image_coverage is Coverage.NOT_SPECIFIED:
                findings = "Product has no images to verify."
            elif bundle.image_coverage is Coverage.INSUFFICIENT_DATA:
                findings = "Reverse image search found no pages using the images."
            else:
                findings = "No Images Data: reverse image search unavailable."
            return CheckResult(
                name="image",
                sub_score=0.5,
                status=ImageAuthenticity.NO_IMAGES,
                findings=findings,
                insufficient_data=True,
                headline="No image evidence",
            )

        def describe(items: list) -> str:
            return "; ".join(
                f"{o.domain} {'matching' if o.product_name_match else 'unrelated'}"
                f" listing '{o.title[:60]}' ({o.source_id})"
                for o in items
            )

        reputable = [
            o for o in occurrences
            if o.classification is ImageDomainClass.REPUTABLE
            and o.product_name_match
        ]
        suspicious = [
            o for o in occurrences
            if o.classification is ImageDomainClass.SUSPICIOUS
            and not o.product_name_match
        ]
        generic = [
            o for o in occurrences
            if o.classification is ImageDomainClass.GENERIC_STOCK
        ]

        if len(suspicious) * 2 > len(occurrences):
            return CheckResult(
                name="image",
                sub_score=0.0,
                status=ImageAuthenticity.SUSPICIOUS,
                findings=(
                    f"Image appears mainly on unrelated sites: "
                    f"{describe(suspicious)} → Suspicious."
                ),
                citations=[o.source_id for o in suspicious],
                headline=(
                    "Image reused on unrelated sites "
                    + ", ".join(_unique([o.domain for o in suspicious]))
                ),
            )
        if len({o.domain for o in reputable}) >= 2:
            return CheckResult(
                name="image",
                sub_score=1.0,
                status=ImageAuthenticity.AUTHENTIC,
                findings=(
                    f"Image found on reputable listings: "
                    f"{describe(reputable)} → Authentic."
                ),
                citations=[o.source_id for o in reputable],
                headline="Image matches reputable listings",
            )
        if generic and len(generic) == len(occurrences):
            return CheckResult(
                name="image",
                sub_score=0.7,
                status=ImageAuthenticity.STOCK_PHOTO,
                findings=(
                    f"Only generic stock/manufacturer images found: "
                    f"{describe(generic)} → Stock Photo."
                ),
                citations=[o.source_id for o in generic],
                headline="Only generic stock images found",
            )
        return CheckResult(
            name="image",
            sub_score=0.5,
            status=ImageAuthenticity.NO_IMAGES,
            findings=(
                f"Image evidence insufficient to decide: "
                f"{describe(occurrences)}."
            ),
            citations=[o.source_id for o in occurrences],
            insufficient_data=True,
            headline="Image evidence inconclusive",
        )

    # ── Seller ───────────────────────────────────────────

    @staticmethod
    def check_seller(
        product: Product, bundle: EvidenceBundle,
    ) -> CheckResult:
        seller = product.seller.strip()
        if bundle.seller_coverage is Coverage.NOT_SPECIFIED or not seller:
            return CheckResult(
                name="seller",
                sub_score=0.5,
                status=SellerStatus.UNKNOWN,
                findings="Seller not specified.",
                insufficient_data=True,
                headline="Seller not specified",
            )
        if bundle.seller_coverage is Coverage.UNAVAILABLE:
            return CheckResult(
                name="seller",
                sub_score=0.5,
                status=SellerStatus.UNKNOWN,
                findings=(
                    f"Seller '{seller}' could not be checked: "
                    "web search unavailable."
                ),
                insufficient_data=True,
                headline=f"Seller '{seller}' could not be checked",
            )

        negative = [
            m for m in bundle.seller_mentions
            if m.sentiment is MentionContext.NEGATIVE
        ]
        positive = [
            m for m in bundle.seller_mentions
            if m.sentiment is MentionContext.AUTHORITATIVE
        ]
        if negative:
            cites = [m.source_id for m in negative]
            return CheckResult(
                name="seller",
                sub_score=0.0,
                status=SellerStatus.SUSPICIOUS,
                findings=(
                    f"{seller} flagged in "
                    + "; ".join(
                        f"{m.source_id}: “{m.context}”" for m in negative
                    )
                    + "."
                ),
                citations=cites,
                headline=f"Seller '{seller}' linked to negative reports",
            )
        if positive:
            cites = [m.source_id for m in positive]
            return CheckResult(
                name="seller",
                sub_score=1.0,
                status=SellerStatus.REPUTABLE,
                findings=(
                    f"{seller} described as authorised/verified in "
                    + "; ".join(
                        f"{m.source_id}: “{m.context}”" for m in positive
                    )
                    + "."
                ),
                citations=cites,
                headline=f"Seller '{seller}' is an authorised seller",
            )
        cites = [m.source_id for m in bundle.seller_mentions]
        findings = (
            f"{seller} mentioned without reputation context in {_cite(cites)}."
            if cites
            else f"{seller}: {NO_EVIDENCE}"
        )
        return CheckResult(
            name="seller",
            sub_score=0.5,
            status=SellerStatus.GENERIC,
            findings=findings,
            citations=cites,
            headline=f"Seller '{seller}' has no established reputation",
        )

    # ── Brand ────────────────────────────────────────────

    @staticmethod
    def check_brand(
        product: Product, bundle: EvidenceBundle,
    ) -> CheckResult:
        brand = product.brand.strip()
        if bundle.brand_coverage is Coverage.NOT_SPECIFIED or not brand:
            findings = (
                "Brand not specified."
                if bundle.search_coverage is Coverage.AVAILABLE
                else "Brand not specified; search unavailable."
            )
            return CheckResult(
                name="brand",
                sub_score=0.0,
                status=BrandStatus.MISSING,
                findings=findings,
                headline="Brand not specified",
            )
        if bundle.brand_coverage is Coverage.UNAVAILABLE:
            return CheckResult(
                name="brand",
                sub_score=0.5,
                status=BrandStatus.UNKNOWN,
                findings=(
                    f"Brand '{brand}' could not be checked: "
                    "web search unavailable."
                ),
                insufficient_data=True,
                headline=f"Brand '{brand}' could not be checked",
            )

        authoritative = [
            m for m in bundle.brand_mentions if m.is_authoritative
        ]
        if authoritative:
            return CheckResult(
                name="brand",
                sub_score=1.0,
                status=BrandStatus.PRESENT,
                findings=(
                    f"{brand} appears in authoritative context: "
                    + "; ".join(
                        f"{m.source_id}: “{m.context}”"
                        for m in authoritative
                    )
                    + "."
                ),
                citations=[m.source_id for m in authoritative],
                headline=f"Brand '{brand}' corroborated",
            )
        cites = [m.source_id for m in bundle.brand_mentions]
        findings = (
            f"{brand} mentioned only in non-authoritative context "
            f"({_cite(cites)})."
            if cites
            else f"{brand} specified but no mention in any snippet."
        )
        return CheckResult(
            name="brand",
            sub_score=0.3,
            status=BrandStatus.UNVERIFIED,
            findings=findings,
            citations=cites,
            headline=f"Brand '{brand}' not corroborated by any authoritative source",
        )

    # ── All checks ───────────────────────────────────────

    @staticmethod
    def score_all(
        product: Product,
        bundle: EvidenceBundle,
        settings: type[Settings] = Settings,
    ) -> dict[str, CheckResult]:
        """Run every check, keyed by check name in report order."""
        return {
            "description": CheckScorer.check_description(product, bundle),
            "price": CheckScorer.check_price(product, bundle, settings),
            "image": CheckScorer.check_image(product, bundle),
            "seller": CheckScorer.check_seller(product, bundle),
            "brand": CheckScorer.check_brand(product, bundle),
        }
