# src/services/rating_ledger.py

"""Rating aggregate maintenance under review add/remove events."""

import logging
import threading

from src.config.settings import Settings
from src.errors import ConsistencyError, ValidationError
from src.models.product import RatingAggregate
from src.models.review import Review
from src.storage.marketplace_db import MarketplaceDB

logger = logging.getLogger("trustmart.ledger")


def _check_rating(rating: int) -> None:
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationError("Rating must be an integer")
    if not Settings.MIN_RATING <= rating <= Settings.MAX_RATING:
        raise ValidationError(
            f"Rating must be between {Settings.MIN_RATING} "
            f"and {Settings.MAX_RATING}"
        )


def apply_add(aggregate: RatingAggregate, rating: int) -> RatingAggregate:
    """Aggregate after one more review with *rating*."""
    _check_rating(rating)
    count = aggregate.count + 1
    average = (aggregate.average * aggregate.count + rating) / count
    return RatingAggregate(average=average, count=count)


def apply_remove(aggregate: RatingAggregate, rating: int) -> RatingAggregate:
    """Aggregate after removing one review with *rating*.

    The average resets to the neutral default once no reviews remain.
    """
    _check_rating(rating)
    if aggregate.count <= 0:
        raise ConsistencyError(
            "Cannot remove a rating from an empty aggregate",
            completed_steps=[],
        )
    count = aggregate.count - 1
    if count == 0:
        return RatingAggregate(
            average=Settings.NEUTRAL_RATING_AVERAGE, count=0,
        )
    average = (aggregate.average * aggregate.count - rating) / count
    average = min(
        float(Settings.MAX_RATING),
        max(float(Settings.MIN_RATING), average),
    )
    return RatingAggregate(average=average, count=count)


def aggregate_of(ratings: list[int]) -> RatingAggregate:
    """Aggregate derived directly from a set of retained ratings."""
    if not ratings:
        return RatingAggregate(
            average=Settings.NEUTRAL_RATING_AVERAGE, count=0,
        )
    return RatingAggregate(
        average=sum(ratings) / len(ratings), count=len(ratings),
    )


class RatingLedger:
    """Keep each product's {average, count} consistent with its reviews.

    Read-modify-write of one product's aggregate is serialised by a
    per-product lock and committed in one store transaction together
    with the review-list change.
    """

    def __init__(self, db: MarketplaceDB) -> None:
        self.db = db
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def lock_for(self, product_id: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(product_id)
            if lock is None:
                lock = self._locks[product_id] = threading.RLock()
            return lock

    def add_review(self, product_id: str, review: Review) -> RatingAggregate:
        """Count *review* in the product aggregate and review list."""
        with self.lock_for(product_id):
            with self.db.transaction():
                product = self.db.require_product(product_id)
                updated = apply_add(product.ratings, review.rating)
                self.db.set_rating_aggregate(product_id, updated)
                self.db.add_review_ref(product_id, review.id)
        logger.info(
            "Product %s rating %.3f over %d after adding %d",
            product_id, updated.average, updated.count, review.rating,
        )
        return updated

    def remove_review(
        self, product_id: str, review_id: str, rating: int,
    ) -> RatingAggregate:
        """Remove one review's rating and its reference together."""
        with self.lock_for(product_id):
            with self.db.transaction():
                product = self.db.require_product(product_id)
                updated = apply_remove(product.ratings, rating)
                self.db.set_rating_aggregate(product_id, updated)
                self.db.remove_review_ref(product_id, review_id)
        logger.info(
            "Product %s rating %.3f over %d after removing %d",
            product_id, updated.average, updated.count, rating,
        )
        return updated

    def recompute(self, product_id: str) -> RatingAggregate:
        """Re-derive the aggregate and review list from stored reviews."""
        with self.lock_for(product_id):
            with self.db.transaction():
                self.db.require_product(product_id)
                reviews = self.db.find_reviews(product_id=product_id)
                fresh = aggregate_of([r.rating for r in reviews])
                self.db.set_rating_aggregate(product_id, fresh)
                retained = {r.id for r in reviews}
                for ref in self.db.list_review_refs(product_id):
                    if ref not in retained:
                        self.db.remove_review_ref(product_id, ref)
                for review in reviews:
                    self.db.add_review_ref(product_id, review.id)
        logger.info(
            "Recomputed product %s: %.3f over %d",
            product_id, fresh.average, fresh.count,
        )
        return fresh
