# src/providers/serpapi_provider.py

"""Web-search and reverse-image-search capability backed by SerpAPI."""

from typing import Any
from urllib.parse import urlparse

from src.models.evidence import ImageMatch, ReverseImageResult, SearchHit
from src.providers.base_provider import BaseProvider


def domain_of(link: str) -> str:
    """Return the lower-cased host of *link* without a leading ``www.``."""
    host = (urlparse(link).hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


class SerpApiProvider(BaseProvider):
    """SerpAPI client for Google web search and Google reverse image search.

    Methods are blocking; the evidence collector runs them in worker
    threads and bounds each call with its own timeout.
    """

    def __init__(self, api_key: str | None = None) -> None:
        super().__init__("serpapi")
        self.api_key = (
            api_key if api_key is not None else self.settings.SERPAPI_KEY
        )

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _params(self, **extra: Any) -> dict[str, Any]:
        return {"api_key": self.api_key, **extra}

    @staticmethod
    def _parse_hit(raw: dict[str, Any]) -> SearchHit:
        return SearchHit(
            title=str(raw.get("title") or ""),
            snippet=str(raw.get("snippet") or ""),
            link=str(raw.get("link") or ""),
        )

    def web_search(self, query: str) -> list[SearchHit]:
        """Return the organic results for *query*, in rank order."""
        data = self._fetch_json(
            self.settings.SERPAPI_ENDPOINT,
            self._params(
                engine="google",
                q=query,
                num=self.settings.SEARCH_RESULTS_PER_QUERY,
            ),
        )
        organic: list[dict[str, Any]] = [
            r for r in data.get("organic_results") or []
            if isinstance(r, dict)
        ]
        hits = [self._parse_hit(r) for r in organic]
        self.logger.info(
            "[serpapi] %d web results for '%s'", len(hits), query,
        )
        return hits

    def reverse_image_search(self, image_url: str) -> ReverseImageResult:
        """Return the pages a product image was found on."""
        data = self._fetch_json(
            self.settings.SERPAPI_ENDPOINT,
            self._params(
                engine="google_reverse_image",
                image_url=image_url,
                no_cache="true",
            ),
        )
        matches: list[ImageMatch] = []
        for raw in data.get("image_results") or []:
            if not isinstance(raw, dict):
                continue
            link = str(raw.get("link") or "")
            if not link:
                continue
            matches.append(
                ImageMatch(
                    title=str(raw.get("title") or ""),
                    link=link,
                    domain=domain_of(link),
                    snippet=str(raw.get("snippet") or ""),
                )
            )
            if len(matches) >= self.settings.MAX_IMAGE_MATCHES:
                break

        knowledge_graph = data.get("knowledge_graph")
        kg_title = (
            str(knowledge_graph.get("title") or "")
            if isinstance(knowledge_graph, dict)
            else ""
        )
        metadata = data.get("search_metadata")
        page_url = str(
            data.get("google_reverse_image_url")
            or (
                metadata.get("google_reverse_image_url")
                if isinstance(metadata, dict)
                else ""
            )
            or ""
        )
        result = ReverseImageResult(
            image_url=image_url,
            matches=matches,
            inline_image_count=len(data.get("inline_images") or []),
            knowledge_graph_title=kg_title,
            search_page_url=page_url,
        )
        self.logger.info(
            "[serpapi] %d image matches across %d domains for %s",
            len(matches),
            len(result.matches_by_domain()),
            image_url,
        )
        return result

    def account(self) -> dict[str, Any]:
        """Fetch account/quota information (used by the health probe)."""
        return self._fetch_json(
            self.settings.SERPAPI_ACCOUNT_ENDPOINT, self._params(),
        )
