# src/filters/hit_deduplicator.py

"""Web-hit deduplication across the queries of one evidence run."""

import logging
import re
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from src.models.evidence import SearchHit

logger = logging.getLogger("trustmart.filters")

# Tracking params that vary per session and do not identify a page
_TRACKING_PARAMS: frozenset[str] = frozenset({
    "ref", "ref_", "dib", "dib_tag", "qid", "sr", "spc",
    "sp_csd", "xpid", "psc", "keywords", "srsltid",
    "utm_source", "utm_medium", "utm_campaign", "utm_term",
    "utm_content", "gclid", "fbclid", "pid", "lid", "marketplace",
})


def normalize_link(raw_url: str) -> str:
    """Strip tracking params, fragments and trailing slashes from a link."""
    if not raw_url:
        return ""
    parsed = urlparse(raw_url.strip())
    path = re.sub(r"/ref=[^/]*", "", parsed.path).rstrip("/")
    params = parse_qs(parsed.query, keep_blank_values=True)
    cleaned = {
        k: v for k, v in params.items()
        if k.lower() not in _TRACKING_PARAMS
    }
    new_query = urlencode(sorted(cleaned.items()), doseq=True)
    host = (parsed.netloc or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return urlunparse((
        parsed.scheme.lower(),
        host,
        path,
        parsed.params,
        new_query,
        "",  # drop fragment
    ))


class SearchHitDeduplicator:
    """Drop hits that several queries returned for the same page."""

    @staticmethod
    def deduplicate(
        hits: list[SearchHit],
    ) -> tuple[list[SearchHit], int]:
        """Keep the first hit per normalised link.

        Hits without a link are kept only when their title and snippet
        are not already present. Returns the kept hits and the number
        of removed duplicates.
        """
        seen_links: set[str] = set()
        seen_text: set[tuple[str, str]] = set()
        kept: list[SearchHit] = []
        removed = 0

        for hit in hits:
            key = normalize_link(hit.link)
            text_key = (hit.title.strip().lower(), hit.snippet.strip().lower())
            if key:
                if key in seen_links:
                    removed += 1
                    continue
                seen_links.add(key)
            elif text_key in seen_text:
                removed += 1
                continue
            seen_text.add(text_key)
            kept.append(hit)

        if removed:
            logger.info(
                "Deduplication removed %d repeated web hits", removed,
            )
        return kept, removed
