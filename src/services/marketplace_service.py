# src/services/marketplace_service.py

"""Boundary service: every operation returns an ApiResponse envelope.

Typed errors become failure envelopes with their status code.
ConsistencyError is logged at ERROR and surfaced with its details;
scoring failures never reach this layer as errors.
"""

import logging
from typing import Any, Callable

from src.config.settings import Settings
from src.errors import ConflictError, ConsistencyError, TrustMartError
from src.filters.entity_validator import EntityValidator
from src.models.api_response import ApiResponse
from src.models.product import Product
from src.models.review import Review
from src.services.moderation import ModerationStateMachine
from src.services.rating_ledger import RatingLedger
from src.services.trust_service import TrustService
from src.storage.marketplace_db import MarketplaceDB

logger = logging.getLogger("trustmart.service")

FlagPredicate = Callable[[Product | Review], bool]


def default_flag_predicate(entity: Product | Review) -> bool:
    """Flag entities whose persisted trust score is low."""
    return entity.trust_score < Settings.FLAG_TRUST_THRESHOLD


class MarketplaceService:
    """Products, reviews, moderation and analysis behind one surface."""

    def __init__(
        self,
        db: MarketplaceDB,
        ledger: RatingLedger,
        moderation: ModerationStateMachine,
        trust: TrustService,
        flag_predicate: FlagPredicate = default_flag_predicate,
    ) -> None:
        self.db = db
        self.ledger = ledger
        self.moderation = moderation
        self.trust = trust
        self.flag_predicate = flag_predicate

    # ── Private helpers ──────────────────────────────────

    @staticmethod
    def _fail(action: str, exc: Exception) -> ApiResponse:
        if isinstance(exc, ConsistencyError):
            logger.error(
                "Consistency failure while trying to %s: %s "
                "(completed=%s, rolled_back=%s)",
                action, exc.message, exc.completed_steps, exc.rolled_back,
            )
            return ApiResponse.failure(exc.status_code, exc.message)
        if isinstance(exc, TrustMartError):
            logger.info("Could not %s: %s", action, exc.message)
            return ApiResponse.failure(exc.status_code, exc.message)
        logger.error(
            "Unexpected error while trying to %s", action, exc_info=exc,
        )
        return ApiResponse.failure(
            500, f"Something went wrong while trying to {action}!"
        )

    def _apply_flag_predicate(self, entity: Product | Review) -> bool:
        """Flag *entity* when the predicate says so; returns the flag."""
        if entity.is_flagged or not self.flag_predicate(entity):
            return entity.is_flagged
        if isinstance(entity, Product):
            self.db.update_product(entity.id, is_flagged=True)
        else:
            self.db.update_review(entity.id, is_flagged=True)
        entity.is_flagged = True
        logger.info(
            "Flagged %s %s (trust score %d)",
            type(entity).__name__.lower(), entity.id, entity.trust_score,
        )
        return True

    # ── Products ─────────────────────────────────────────

    def create_product(self, data: dict[str, Any]) -> ApiResponse:
        try:
            product = EntityValidator.product_from_dict(data)
            self.db.insert_product(product)
        except Exception as exc:
            return self._fail("create the product", exc)
        return ApiResponse.success(
            "Product created successfully",
            {"product": product.to_dict()},
            status_code=201,
        )

    def import_catalog(self, rows: list[Any]) -> ApiResponse:
        try:
            products, dropped = EntityValidator.validate_catalog(rows)
            with self.db.transaction():
                for product in products:
                    self.db.insert_product(product)
        except Exception as exc:
            return self._fail("import the catalog", exc)
        return ApiResponse.success(
            f"Imported {len(products)} products",
            {
                "imported": len(products),
                "dropped": dropped,
                "ids": [p.id for p in products],
            },
            status_code=201,
        )

    def list_products(self) -> ApiResponse:
        try:
            products = self.db.find_products()
        except Exception as exc:
            return self._fail("fetch products", exc)
        return ApiResponse.success(
            "Products fetched successfully",
            {"products": [p.to_dict() for p in products]},
        )

    def list_products_by_category(self, category: str) -> ApiResponse:
        try:
            products = self.db.find_products(category=category)
        except Exception as exc:
            return self._fail("fetch products by category", exc)
        return ApiResponse.success(
            f"Products in '{category}' fetched successfully",
            {"products": [p.to_dict() for p in products]},
        )

    def get_product(self, product_id: str) -> ApiResponse:
        try:
            product = self.db.require_product(product_id)
        except Exception as exc:
            return self._fail("fetch the product", exc)
        return ApiResponse.success(
            "Product fetched successfully", {"product": product.to_dict()},
        )

    # ── Reviews ──────────────────────────────────────────

    def submit_review(
        self,
        product_id: str,
        user_id: str,
        rating: Any,
        comment: Any,
    ) -> ApiResponse:
        """Add one review; a second review by the same user is a conflict."""
        try:
            review = EntityValidator.build_review(
                product_id, user_id, rating, comment,
            )
            self.db.require_product(review.product_id)
            review.trust_score = self.trust.screen_review(review).trust_score
            with self.ledger.lock_for(review.product_id):
                with self.db.transaction():
                    if self.db.find_reviews(
                        product_id=review.product_id,
                        user_id=review.user_id,
                    ):
                        raise ConflictError(
                            "You have already reviewed this product"
                        )
                    self.db.insert_review(review)
                    aggregate = self.ledger.add_review(
                        review.product_id, review,
                    )
            self._apply_flag_predicate(review)
        except Exception as exc:
            return self._fail("add the review", exc)
        return ApiResponse.success(
            "Review added successfully",
            {
                "review": review.to_dict(),
                "ratings": {
                    "average": round(aggregate.average, 4),
                    "count": aggregate.count,
                },
            },
            status_code=201,
        )

    def list_reviews(self, product_id: str) -> ApiResponse:
        try:
            self.db.require_product(product_id)
            reviews = self.db.find_reviews(product_id=product_id)
        except Exception as exc:
            return self._fail("fetch reviews", exc)
        return ApiResponse.success(
            "Reviews fetched successfully",
            {"reviews": [r.to_dict() for r in reviews]},
        )

    # ── Moderation ───────────────────────────────────────

    def dashboard(self) -> ApiResponse:
        try:
            products = self.moderation.flagged_products()
            reviews = self.moderation.flagged_reviews()
        except Exception as exc:
            return self._fail("load the moderator dashboard", exc)
        return ApiResponse.success(
            "Flagged items fetched successfully",
            {
                "products": [p.to_dict() for p in products],
                "reviews": [r.to_dict() for r in reviews],
            },
        )

    def approve(self, kind: str, entity_id: str) -> ApiResponse:
        try:
            outcome = self.moderation.approve(kind, entity_id)
        except Exception as exc:
            return self._fail(f"approve the {kind}", exc)
        message = (
            f"{outcome.kind.capitalize()} approved"
            if outcome.changed
            else f"{outcome.kind.capitalize()} was already approved"
        )
        return ApiResponse.success(message, outcome.to_dict())

    def approve_product(self, product_id: str) -> ApiResponse:
        return self.approve("product", product_id)

    def approve_review(self, review_id: str) -> ApiResponse:
        return self.approve("review", review_id)

    def dismiss(self, kind: str, entity_id: str) -> ApiResponse:
        try:
            outcome = self.moderation.dismiss(kind, entity_id)
        except Exception as exc:
            return self._fail(f"dismiss the {kind}", exc)
        message = f"{outcome.kind.capitalize()} dismissed and deleted"
        if outcome.orphaned_product_id:
            message += " (owning product not found)"
        return ApiResponse.success(message, outcome.to_dict())

    def dismiss_product(self, product_id: str) -> ApiResponse:
        return self.dismiss("product", product_id)

    def dismiss_review(self, review_id: str) -> ApiResponse:
        return self.dismiss("review", review_id)

    def clear_flag(self, kind: str, entity_id: str) -> ApiResponse:
        try:
            outcome = self.moderation.clear_flag(kind, entity_id)
        except Exception as exc:
            return self._fail(f"clear the {kind} flag", exc)
        message = (
            "Flag cleared" if outcome.changed else "Entity was not flagged"
        )
        return ApiResponse.success(message, outcome.to_dict())

    # ── Analysis ─────────────────────────────────────────

    async def analyze_product(
        self, product_id: str, save_score: bool = False,
    ) -> ApiResponse:
        try:
            product = self.db.require_product(product_id)
        except Exception as exc:
            return self._fail("analyze the product", exc)

        report = await self.trust.analyze_product(product)
        payload: dict[str, Any] = {"report": report.to_dict()}
        if save_score and report.error is None:
            try:
                self.db.update_product(
                    product_id, trust_score=report.trust_score,
                )
                product.trust_score = report.trust_score
                payload["flagged"] = self._apply_flag_predicate(product)
            except Exception as exc:
                return self._fail("save the product trust score", exc)
        message = (
            "Product analysis failed; report is degraded"
            if report.error
            else "Product analyzed successfully"
        )
        return ApiResponse.success(message, payload)

    async def analyze_review(
        self, review_id: str, save_score: bool = False,
    ) -> ApiResponse:
        try:
            review = self.db.require_review(review_id)
            product = self.db.get_product(review.product_id)
        except Exception as exc:
            return self._fail("analyze the review", exc)

        category = product.category if product else ""
        analysis = await self.trust.analyze_review(review, category)
        payload: dict[str, Any] = {
            "analysis": analysis.to_dict(),
            "trustScore": analysis.trust_score,
        }
        if save_score and analysis.error is None:
            try:
                self.db.update_review(
                    review_id, trust_score=analysis.trust_score,
                )
                review.trust_score = analysis.trust_score
                payload["flagged"] = self._apply_flag_predicate(review)
            except Exception as exc:
                return self._fail("save the review trust score", exc)
        message = (
            "Review analysis failed"
            if analysis.error
            else "Review analyzed successfully"
        )
        return ApiResponse.success(message, payload)
