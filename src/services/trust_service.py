# src/services/trust_service.py

"""Product and review trust analysis pipelines."""

import logging

from src.analysis.check_scorer import CheckScorer
from src.analysis.evidence_extractor import EvidenceExtractor
from src.analysis.review_analyzer import ReviewAnalyzer
from src.analysis.trust_aggregator import TrustAggregator
from src.config.settings import Settings
from src.models.evidence import RawEvidence
from src.models.product import Product
from src.models.review import Review
from src.models.trust_report import ReviewAnalysis, TrustReport
from src.services.evidence_collector import EvidenceCollector

logger = logging.getLogger("trustmart.trust")


class TrustService:
    """Collect evidence, extract facts, score, aggregate.

    Scoring never raises to the caller: retrieval problems degrade the
    evidence, anything else degrades the report.
    """

    def __init__(
        self,
        collector: EvidenceCollector,
        review_analyzer: ReviewAnalyzer,
        extractor: EvidenceExtractor | None = None,
        aggregator: TrustAggregator | None = None,
        settings: type[Settings] = Settings,
    ) -> None:
        self.collector = collector
        self.review_analyzer = review_analyzer
        self.extractor = extractor or EvidenceExtractor(settings)
        self.aggregator = aggregator or TrustAggregator(settings)
        self.settings = settings

    def score_evidence(
        self, product: Product, raw: RawEvidence,
    ) -> TrustReport:
        """Deterministic part of the pipeline: extract, score, aggregate."""
        bundle = self.extractor.extract(product, raw)
        checks = CheckScorer.score_all(product, bundle, self.settings)
        return self.aggregator.aggregate(
            product.id, product.name, checks, notes=bundle.notes,
        )

    async def analyze_product(self, product: Product) -> TrustReport:
        raw: RawEvidence | None = None
        try:
            raw = await self.collector.collect(product)
            return self.score_evidence(product, raw)
        except Exception as exc:
            logger.error(
                "Trust analysis failed for product %s: %s",
                product.id, exc, exc_info=True,
            )
            return TrustAggregator.degraded_report(
                product.id,
                product.name,
                str(exc) or type(exc).__name__,
                notes=raw.notes if raw is not None else None,
            )

    async def analyze_review(
        self, review: Review, category: str = "",
    ) -> ReviewAnalysis:
        return await self.review_analyzer.analyze_review(review, category)

    def screen_review(self, review: Review) -> ReviewAnalysis:
        """Linguistic verdict without inference, used at submission time."""
        return self.review_analyzer.heuristic(
            review.id, review.comment, review.rating,
        )
