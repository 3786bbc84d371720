# src/services/health_checker.py

"""Connectivity health checks for the store and external capabilities."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from src.providers.gemini_client import GeminiClient
from src.providers.serpapi_provider import SerpApiProvider
from src.storage.marketplace_db import MarketplaceDB

logger = logging.getLogger("trustmart.health")

_SLOW_MS = 5000


@dataclass
class HealthResult:
    """Result of a single component health check."""

    source_id: str
    status: str  # "ok", "slow", "down", "missing"
    latency_ms: float
    message: str


def _timed(source_id: str, probe: Callable[[], Any]) -> HealthResult:
    start = time.monotonic()
    try:
        detail = probe()
    except Exception as exc:
        elapsed_ms = (time.monotonic() - start) * 1000
        return HealthResult(
            source_id=source_id,
            status="down",
            latency_ms=elapsed_ms,
            message=str(exc)[:80],
        )
    elapsed_ms = (time.monotonic() - start) * 1000
    if elapsed_ms > _SLOW_MS:
        return HealthResult(source_id, "slow", elapsed_ms, "High latency")
    return HealthResult(source_id, "ok", elapsed_ms, str(detail or ""))


def probe_store(db: MarketplaceDB) -> HealthResult:
    def run() -> str:
        if not db.ping():
            raise RuntimeError("store did not answer")
        return str(db.path)

    return _timed("store", run)


def probe_search(provider: SerpApiProvider | None) -> HealthResult:
    if provider is None or not provider.is_configured():
        return HealthResult(
            "serpapi", "missing", 0.0, "SERPAPI_KEY not set",
        )

    def run() -> str:
        account = provider.account()
        left = account.get("total_searches_left")
        return f"{left} searches left" if left is not None else ""

    return _timed("serpapi", run)


def probe_inference(client: GeminiClient | None) -> HealthResult:
    if client is None or not client.is_configured():
        return HealthResult(
            "gemini", "missing", 0.0, "GEMINI_API_KEY not set",
        )
    return HealthResult("gemini", "ok", 0.0, f"model {client.model}")


class HealthChecker:
    """Runs concurrent health probes against every component."""

    def __init__(
        self,
        db: MarketplaceDB,
        search_provider: SerpApiProvider | None = None,
        inference_client: GeminiClient | None = None,
    ) -> None:
        self.db = db
        self.search_provider = search_provider
        self.inference_client = inference_client

    async def check_all(self) -> list[HealthResult]:
        """Probe every component concurrently."""
        results: list[HealthResult] = list(
            await asyncio.gather(
                asyncio.to_thread(probe_store, self.db),
                asyncio.to_thread(probe_search, self.search_provider),
                asyncio.to_thread(probe_inference, self.inference_client),
            )
        )
        for r in results:
            logger.info(
                "Health check %s: %s (%.0fms) %s",
                r.source_id,
                r.status,
                r.latency_ms,
                r.message,
            )
        return results
