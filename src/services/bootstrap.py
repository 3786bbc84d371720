# src/services/bootstrap.py

"""Construct the service graph once per process."""

import logging
from dataclasses import dataclass
from pathlib import Path

from src.analysis.review_analyzer import ReviewAnalyzer
from src.config.settings import Settings
from src.providers.gemini_client import GeminiClient
from src.providers.serpapi_provider import SerpApiProvider
from src.services.evidence_collector import EvidenceCollector
from src.services.health_checker import HealthChecker
from src.services.marketplace_service import MarketplaceService
from src.services.moderation import ModerationStateMachine
from src.services.rating_ledger import RatingLedger
from src.services.trust_service import TrustService
from src.storage.evidence_cache import EvidenceCache
from src.storage.marketplace_db import MarketplaceDB
from src.storage.report_archive import ReportArchive

logger = logging.getLogger("trustmart.bootstrap")


@dataclass
class Services:
    """Everything a surface (CLI or TUI) needs."""

    db: MarketplaceDB
    service: MarketplaceService
    archive: ReportArchive
    health: HealthChecker

    def close(self) -> None:
        self.db.close()


def build_services(
    db_path: Path | None = None,
    reports_dir: Path | None = None,
    search_provider: SerpApiProvider | None = None,
    inference_client: GeminiClient | None = None,
) -> Services:
    """Wire settings, providers, store, ledger, moderation and services.

    Providers are only created when their API keys are configured;
    without them, analysis runs on degraded evidence and heuristics.
    """
    if search_provider is None and Settings.SERPAPI_KEY:
        search_provider = SerpApiProvider()
    if inference_client is None and Settings.GEMINI_API_KEY:
        inference_client = GeminiClient()
    logger.info(
        "Building services (search=%s, inference=%s)",
        "on" if search_provider else "off",
        "on" if inference_client else "off",
    )

    db = MarketplaceDB(db_path)
    ledger = RatingLedger(db)
    moderation = ModerationStateMachine(db, ledger)
    trust = TrustService(
        collector=EvidenceCollector(search_provider, EvidenceCache()),
        review_analyzer=ReviewAnalyzer(inference_client),
    )
    return Services(
        db=db,
        service=MarketplaceService(db, ledger, moderation, trust),
        archive=ReportArchive(reports_dir),
        health=HealthChecker(db, search_provider, inference_client),
    )
