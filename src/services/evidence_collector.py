# src/services/evidence_collector.py

"""Concurrent evidence retrieval for one product."""

import asyncio
import logging
from typing import Any, Callable, Protocol
from urllib.parse import quote

from src.config.settings import Settings
from src.errors import ExternalServiceError, QuotaExceededError
from src.filters.query_builder import QueryBuilder
from src.models.evidence import (
    RawEvidence,
    RetrievalFailure,
    ReverseImageResult,
    SearchHit,
)
from src.models.product import Product
from src.storage.evidence_cache import EvidenceCache

logger = logging.getLogger("trustmart.collector")

MANUAL_CHECK_URL = "https://images.google.com/searchbyimage?image_url="
SEARCH_QUOTA_NOTE = (
    "Web search quota exceeded; price, brand and seller evidence "
    "is incomplete."
)


class SearchProvider(Protocol):
    def web_search(self, query: str) -> list[SearchHit]: ...

    def reverse_image_search(self, image_url: str) -> ReverseImageResult: ...


def manual_check_note(image_url: str, quota: bool) -> str:
    """Guidance text for an image whose reverse search failed."""
    prefix = (
        "Reverse image search quota exceeded."
        if quota
        else "Reverse image search failed."
    )
    return f"{prefix} Check manually: {MANUAL_CHECK_URL}{quote(image_url, safe='')}"


def _failure_kind(exc: BaseException) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return "timeout"
    if isinstance(exc, ExternalServiceError):
        if exc.kind == "quota":
            return "quota"
        if exc.kind == "malformed":
            return "malformed"
    return "error"


class EvidenceCollector:
    """Fan out web searches and reverse-image lookups concurrently.

    Every lookup is bounded by ``EVIDENCE_TIMEOUT``. A failed or timed
    out lookup is recorded as a RetrievalFailure and only that item's
    evidence is lost.
    """

    def __init__(
        self,
        search_provider: SearchProvider | None = None,
        cache: EvidenceCache | None = None,
        settings: type[Settings] = Settings,
    ) -> None:
        self.search_provider = search_provider
        self.cache = cache if cache is not None else EvidenceCache()
        self.settings = settings

    # ── Private helpers ──────────────────────────────────

    async def _lookup(
        self,
        kind: str,
        target: str,
        call: Callable[[str], Any],
    ) -> Any:
        cached = self.cache.get(kind, target)
        if cached is not None:
            return cached
        result = await asyncio.wait_for(
            asyncio.to_thread(call, target),
            timeout=self.settings.EVIDENCE_TIMEOUT,
        )
        self.cache.store(kind, target, result)
        return result

    # ── Entry point ──────────────────────────────────────

    async def collect(self, product: Product) -> RawEvidence:
        """Gather raw web and image evidence for *product*."""
        provider = self.search_provider
        if provider is None:
            logger.info(
                "No search provider configured; evidence for '%s' "
                "is unavailable",
                product.name,
            )
            return RawEvidence(
                capability_available=False,
                notes=[
                    "Web and image search are not configured; "
                    "all checks lack external evidence."
                ],
            )

        queries = QueryBuilder.build_queries(product)
        image_urls = list(dict.fromkeys(img.url for img in product.images))

        tasks = [
            self._lookup("search", q, provider.web_search) for q in queries
        ] + [
            self._lookup("image", url, provider.reverse_image_search)
            for url in image_urls
        ]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        raw = RawEvidence()
        search_outcomes = outcomes[: len(queries)]
        image_outcomes = outcomes[len(queries):]

        search_quota = False
        for query, outcome in zip(queries, search_outcomes):
            if isinstance(outcome, BaseException):
                kind = _failure_kind(outcome)
                search_quota = search_quota or kind == "quota"
                raw.search_failures.append(
                    RetrievalFailure(
                        target=query,
                        kind=kind,
                        message=str(outcome) or kind,
                    )
                )
                logger.warning(
                    "Web search failed (%s) for '%s': %s",
                    kind, query, outcome,
                    exc_info=kind == "error",
                )
            else:
                raw.search_hits[query] = list(outcome)

        for url, outcome in zip(image_urls, image_outcomes):
            if isinstance(outcome, BaseException):
                kind = _failure_kind(outcome)
                raw.image_failures.append(
                    RetrievalFailure(
                        target=url,
                        kind=kind,
                        message=str(outcome) or kind,
                    )
                )
                raw.notes.append(
                    manual_check_note(
                        url, isinstance(outcome, QuotaExceededError)
                    )
                )
                logger.warning(
                    "Reverse image search failed (%s) for %s: %s",
                    kind, url, outcome,
                    exc_info=kind == "error",
                )
            else:
                raw.image_results[url] = outcome

        if search_quota:
            raw.notes.insert(0, SEARCH_QUOTA_NOTE)

        logger.info(
            "Evidence for '%s': %d/%d queries, %d/%d images",
            product.name,
            len(raw.search_hits), len(queries),
            len(raw.image_results), len(image_urls),
        )
        return raw
