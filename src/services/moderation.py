# src/services/moderation.py

"""Moderator workflow: approve, dismiss, and clear flags.

Per entity the lifecycle is ``flagged -> approved | dismissed``.
Approval leaves ``is_flagged`` untouched; clearing the flag is the
separate ``clear_flag`` action. Dismissal deletes the entity and
applies the cascade to ratings, review lists and owned reviews.
"""

import logging
from dataclasses import dataclass, field

from src.errors import ConsistencyError, NotFoundError, ValidationError
from src.models.product import Product
from src.models.review import Review
from src.services.rating_ledger import RatingLedger
from src.storage.marketplace_db import MarketplaceDB

logger = logging.getLogger("trustmart.moderation")

ENTITY_KINDS: tuple[str, ...] = ("product", "review")


@dataclass
class ModerationOutcome:
    """Result of one moderation transition."""

    kind: str
    entity_id: str
    action: str  # "approved", "dismissed", "flag_cleared"
    changed: bool = True
    reviews_removed: int = 0
    orphaned_product_id: str | None = None
    warnings: list[str] = field(
        default_factory=lambda: list[str]()
    )

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "kind": self.kind,
            "id": self.entity_id,
            "action": self.action,
            "changed": self.changed,
        }
        if self.action == "dismissed" and self.kind == "product":
            data["reviewsRemoved"] = self.reviews_removed
        if self.orphaned_product_id is not None:
            data["orphanedProductId"] = self.orphaned_product_id
        if self.warnings:
            data["warnings"] = list(self.warnings)
        return data


def check_kind(kind: str) -> str:
    normalised = (kind or "").strip().lower()
    if normalised not in ENTITY_KINDS:
        raise ValidationError(
            f"Unknown entity kind '{kind}' (expected product or review)"
        )
    return normalised


class ModerationStateMachine:
    """Apply moderator decisions to products and reviews."""

    def __init__(self, db: MarketplaceDB, ledger: RatingLedger) -> None:
        self.db = db
        self.ledger = ledger

    # ── Dashboard ────────────────────────────────────────

    def flagged_products(self) -> list[Product]:
        return self.db.find_products(is_flagged=True)

    def flagged_reviews(self) -> list[Review]:
        return self.db.find_reviews(is_flagged=True)

    # ── Approve ──────────────────────────────────────────

    def approve_product(self, product_id: str) -> ModerationOutcome:
        product = self.db.require_product(product_id)
        if product.approved_by_moderator:
            return ModerationOutcome(
                "product", product_id, "approved", changed=False,
            )
        self.db.update_product(product_id, approved_by_moderator=True)
        logger.info("Approved product %s", product_id)
        return ModerationOutcome("product", product_id, "approved")

    def approve_review(self, review_id: str) -> ModerationOutcome:
        review = self.db.require_review(review_id)
        if review.approved_by_moderator:
            return ModerationOutcome(
                "review", review_id, "approved", changed=False,
            )
        self.db.update_review(review_id, approved_by_moderator=True)
        logger.info("Approved review %s", review_id)
        return ModerationOutcome("review", review_id, "approved")

    def approve(self, kind: str, entity_id: str) -> ModerationOutcome:
        if check_kind(kind) == "product":
            return self.approve_product(entity_id)
        return self.approve_review(entity_id)

    # ── Clear flag ───────────────────────────────────────

    def clear_flag(self, kind: str, entity_id: str) -> ModerationOutcome:
        """Explicitly unflag an entity; idempotent."""
        kind = check_kind(kind)
        if kind == "product":
            entity: Product | Review = self.db.require_product(entity_id)
        else:
            entity = self.db.require_review(entity_id)
        if not entity.is_flagged:
            return ModerationOutcome(
                kind, entity_id, "flag_cleared", changed=False,
            )
        if kind == "product":
            self.db.update_product(entity_id, is_flagged=False)
        else:
            self.db.update_review(entity_id, is_flagged=False)
        logger.info("Cleared flag on %s %s", kind, entity_id)
        return ModerationOutcome(kind, entity_id, "flag_cleared")

    # ── Dismiss ──────────────────────────────────────────

    def dismiss_review(self, review_id: str) -> ModerationOutcome:
        """Delete a review and update its product's aggregate.

        A missing owning product does not stop the deletion; it is
        reported on the outcome as an orphaned reference.
        """
        review = self.db.require_review(review_id)
        product_id = review.product_id
        outcome = ModerationOutcome("review", review_id, "dismissed")

        with self.ledger.lock_for(product_id):
            with self.db.transaction():
                # A concurrent dismissal may have won since the read above
                if not self.db.delete_review(review_id):
                    raise NotFoundError("review", review_id)
                if self.db.get_product(product_id) is None:
                    outcome.orphaned_product_id = product_id
                    outcome.warnings.append(
                        f"Owning product {product_id} not found; "
                        "review deleted without rating update"
                    )
                else:
                    self.ledger.remove_review(
                        product_id, review_id, review.rating,
                    )

        if outcome.orphaned_product_id:
            logger.warning(
                "Dismissed review %s whose product %s does not exist",
                review_id, product_id,
            )
        else:
            logger.info(
                "Dismissed review %s of product %s", review_id, product_id,
            )
        return outcome

    def dismiss_product(self, product_id: str) -> ModerationOutcome:
        """Delete a product and every review it owns in one transaction.

        Raises ConsistencyError if the cascade fails part-way; the error
        lists the steps that had completed and whether they were
        rolled back.
        """
        self.db.require_product(product_id)
        owned_before = len(self.db.find_reviews(product_id=product_id))
        completed: list[str] = []

        try:
            with self.ledger.lock_for(product_id):
                with self.db.transaction():
                    removed = self.db.delete_reviews_for_product(product_id)
                    completed.append(f"deleted {removed} reviews")
                    if not self.db.delete_product(product_id):
                        raise NotFoundError("product", product_id)
                    completed.append("deleted product")
        except Exception as exc:
            remaining = len(self.db.find_reviews(product_id=product_id))
            rolled_back = (
                remaining == owned_before
                and self.db.get_product(product_id) is not None
            )
            message = (
                f"Dismissing product {product_id} failed after "
                f"{', '.join(completed) or 'no steps'}: {exc}; "
                + (
                    "changes were rolled back"
                    if rolled_back
                    else f"{remaining} of {owned_before} reviews remain"
                )
            )
            logger.error("%s", message, exc_info=True)
            raise ConsistencyError(
                message, completed_steps=completed, rolled_back=rolled_back,
            ) from exc

        logger.info(
            "Dismissed product %s and %d reviews", product_id, removed,
        )
        return ModerationOutcome(
            "product", product_id, "dismissed", reviews_removed=removed,
        )

    def dismiss(self, kind: str, entity_id: str) -> ModerationOutcome:
        if check_kind(kind) == "product":
            return self.dismiss_product(entity_id)
        return self.dismiss_review(entity_id)
