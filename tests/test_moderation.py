# tests/test_moderation.py

"""Tests for the moderator approve / dismiss / clear-flag workflow."""

import shutil
import sqlite3
import tempfile
import threading
import unittest
from pathlib import Path
from unittest.mock import patch

from src.errors import ConsistencyError, NotFoundError, ValidationError
from src.models.product import Product, RatingAggregate
from src.models.review import Review
from src.services.moderation import ModerationOutcome, ModerationStateMachine
from src.services.rating_ledger import RatingLedger
from src.storage.marketplace_db import MarketplaceDB


class TestModeration(unittest.TestCase):
    """Tests for ModerationStateMachine."""

    def setUp(self) -> None:
        self.tmp_dir = tempfile.mkdtemp()
        self.db = MarketplaceDB(db_path=Path(self.tmp_dir) / "test.db")
        self.ledger = RatingLedger(self.db)
        self.moderation = ModerationStateMachine(self.db, self.ledger)

    def tearDown(self) -> None:
        self.db.close()
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def _product(self, name: str = "XPhone 12", flagged: bool = False) -> Product:
        product = self.db.insert_product(
            Product(
                name=name, description="d", category="Electronics",
                price=13000.0, is_flagged=flagged,
            )
        )
        return product

    def _review(self, product_id: str, user_id: str, rating: int) -> Review:
        review = self.db.insert_review(
            Review(
                product_id=product_id, user_id=user_id,
                rating=rating, comment="ok",
            )
        )
        self.ledger.add_review(product_id, review)
        return review

    # ── Approve / clear flag ─────────────────────────────

    def test_approve_keeps_flag_and_is_idempotent(self) -> None:
        """Approval records the decision without unflagging."""
        p = self._product(flagged=True)
        first = self.moderation.approve("product", p.id)
        self.assertTrue(first.changed)
        stored = self.db.require_product(p.id)
        self.assertTrue(stored.approved_by_moderator)
        self.assertTrue(stored.is_flagged)

        again = self.moderation.approve("Product", p.id)
        self.assertFalse(again.changed)
        self.assertEqual(again.action, "approved")

    def test_approve_review(self) -> None:
        """Reviews are approved the same way."""
        p = self._product()
        r = self._review(p.id, "u1", 5)
        self.db.update_review(r.id, is_flagged=True)
        self.moderation.approve("review", r.id)
        stored = self.db.require_review(r.id)
        self.assertTrue(stored.approved_by_moderator)
        self.assertTrue(stored.is_flagged)

    def test_clear_flag(self) -> None:
        """Clearing a flag is explicit and idempotent."""
        p = self._product(flagged=True)
        self.assertTrue(self.moderation.clear_flag("product", p.id).changed)
        self.assertFalse(self.db.require_product(p.id).is_flagged)
        self.assertFalse(self.moderation.clear_flag("product", p.id).changed)

    def test_dashboard_lists_flagged_only(self) -> None:
        """Only flagged entities appear on the dashboard."""
        flagged = self._product("A", flagged=True)
        self._product("B")
        self.assertEqual(
            [p.id for p in self.moderation.flagged_products()], [flagged.id]
        )
        self.assertEqual(self.moderation.flagged_reviews(), [])

    def test_unknown_kind_and_id(self) -> None:
        """Bad kinds are validation errors; bad ids are not found."""
        with self.assertRaises(ValidationError):
            self.moderation.approve("seller", "x")
        with self.assertRaises(NotFoundError):
            self.moderation.approve("product", "missing")
        with self.assertRaises(NotFoundError):
            self.moderation.dismiss("review", "missing")

    # ── Dismiss review ───────────────────────────────────

    def test_dismiss_review_updates_product(self) -> None:
        """Dismissing a review removes its rating and reference."""
        p = self._product()
        four = self._review(p.id, "u1", 4)
        two = self._review(p.id, "u2", 2)

        outcome = self.moderation.dismiss("review", four.id)
        self.assertEqual(outcome.action, "dismissed")
        self.assertIsNone(outcome.orphaned_product_id)
        self.assertIsNone(self.db.get_review(four.id))
        stored = self.db.require_product(p.id)
        self.assertEqual(stored.ratings, RatingAggregate(2.0, 1))
        self.assertEqual(stored.review_ids, [two.id])

    def test_dismiss_orphaned_review(self) -> None:
        """A review whose product is gone is still deleted, with a warning."""
        orphan = self.db.insert_review(
            Review(product_id="ghost", user_id="u1", rating=3, comment="ok")
        )
        with self.assertLogs("trustmart.moderation", level="WARNING"):
            outcome = self.moderation.dismiss_review(orphan.id)
        self.assertEqual(outcome.orphaned_product_id, "ghost")
        self.assertEqual(len(outcome.warnings), 1)
        self.assertIsNone(self.db.get_review(orphan.id))
        self.assertEqual(outcome.to_dict()["orphanedProductId"], "ghost")

    def test_concurrent_dismiss_of_same_review(self) -> None:
        """Two moderators dismissing one review subtract its rating once."""
        p = self._product()
        for user, rating in (("u1", 4), ("u2", 2), ("u3", 3)):
            self._review(p.id, user, rating)
        five = self._review(p.id, "u4", 5)

        barrier = threading.Barrier(2, timeout=5)
        original = self.db.require_review

        def _read_then_wait(review_id: str) -> Review:
            review = original(review_id)
            barrier.wait()
            return review

        results: list[str] = []

        def _dismiss() -> None:
            try:
                self.moderation.dismiss_review(five.id)
                results.append("dismissed")
            except NotFoundError:
                results.append("not found")

        with patch.object(self.db, "require_review", side_effect=_read_then_wait):
            threads = [threading.Thread(target=_dismiss) for _ in range(2)]
            for t in threads:
                t.start()
            for t in threads:
                t.join(timeout=10)

        self.assertEqual(sorted(results), ["dismissed", "not found"])
        stored = self.db.require_product(p.id)
        self.assertEqual(stored.ratings, RatingAggregate(3.0, 3))
        self.assertNotIn(five.id, stored.review_ids)
        retained = [r.rating for r in self.db.find_reviews(product_id=p.id)]
        self.assertEqual(sorted(retained), [2, 3, 4])

    # ── Dismiss product ──────────────────────────────────

    def test_dismiss_product_cascades(self) -> None:
        """The product and all its reviews go; others are untouched."""
        p = self._product("A")
        other = self._product("B")
        for user, rating in (("u1", 5), ("u2", 1), ("u3", 3)):
            self._review(p.id, user, rating)
        survivor = self._review(other.id, "u1", 4)

        outcome = self.moderation.dismiss("product", p.id)
        self.assertEqual(outcome.reviews_removed, 3)
        self.assertIsNone(self.db.get_product(p.id))
        self.assertEqual(self.db.find_reviews(product_id=p.id), [])
        self.assertIsNotNone(self.db.get_review(survivor.id))
        self.assertEqual(
            self.db.require_product(other.id).ratings, RatingAggregate(4.0, 1)
        )
        self.assertEqual(outcome.to_dict()["reviewsRemoved"], 3)

    def test_dismiss_product_failure_rolls_back(self) -> None:
        """A failure mid-cascade raises ConsistencyError and undoes it."""
        p = self._product()
        self._review(p.id, "u1", 5)
        self._review(p.id, "u2", 4)

        with patch.object(
            self.db, "delete_product",
            side_effect=sqlite3.OperationalError("disk I/O error"),
        ):
            with self.assertLogs("trustmart.moderation", level="ERROR"):
                with self.assertRaises(ConsistencyError) as ctx:
                    self.moderation.dismiss_product(p.id)

        err = ctx.exception
        self.assertEqual(err.completed_steps, ["deleted 2 reviews"])
        self.assertTrue(err.rolled_back)
        self.assertEqual(err.status_code, 500)
        self.assertIn("rolled back", err.message)
        self.assertEqual(len(self.db.find_reviews(product_id=p.id)), 2)
        self.assertIsNotNone(self.db.get_product(p.id))


class TestModerationOutcome(unittest.TestCase):
    """Tests for ModerationOutcome.to_dict."""

    def test_minimal_shape(self) -> None:
        """Optional keys appear only when meaningful."""
        data = ModerationOutcome("review", "r1", "approved").to_dict()
        self.assertEqual(
            data,
            {"kind": "review", "id": "r1", "action": "approved", "changed": True},
        )


if __name__ == "__main__":
    unittest.main()
