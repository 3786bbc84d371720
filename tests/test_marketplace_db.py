# tests/test_marketplace_db.py

"""Tests for the SQLite entity store."""

import shutil
import tempfile
import unittest
from pathlib import Path

from src.errors import ConflictError, NotFoundError, ValidationError
from src.models.product import Product, ProductImage, RatingAggregate
from src.models.review import Review
from src.storage.marketplace_db import MarketplaceDB, new_id


def _product(name: str = "XPhone 12", category: str = "Electronics") -> Product:
    return Product(
        name=name,
        description="A capable phone",
        category=category,
        price=13000.0,
        brand="Xenon",
        images=[
            ProductImage(url="https://cdn.x/1.jpg", alt="front"),
            ProductImage(url="https://cdn.x/2.jpg"),
        ],
    )


def _review(product_id: str, user_id: str, rating: int = 4) -> Review:
    return Review(
        product_id=product_id, user_id=user_id, rating=rating, comment="ok",
    )


class TestMarketplaceDB(unittest.TestCase):
    """Tests for the MarketplaceDB class."""

    def setUp(self) -> None:
        """Create a fresh temp DB for each test."""
        self.tmp_dir = tempfile.mkdtemp()
        self.db = MarketplaceDB(db_path=Path(self.tmp_dir) / "test.db")

    def tearDown(self) -> None:
        """Close the database and remove the temp dir."""
        self.db.close()
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    # ── Products ─────────────────────────────────────────

    def test_insert_and_get_product(self) -> None:
        """A product round-trips with its images and defaults."""
        inserted = self.db.insert_product(_product())
        self.assertTrue(inserted.id)
        self.assertTrue(inserted.created_at)

        loaded = self.db.get_product(inserted.id)
        assert loaded is not None
        self.assertEqual(loaded.name, "XPhone 12")
        self.assertEqual(
            [(i.url, i.alt) for i in loaded.images],
            [("https://cdn.x/1.jpg", "front"), ("https://cdn.x/2.jpg", "")],
        )
        self.assertEqual(loaded.ratings, RatingAggregate(5.0, 0))
        self.assertEqual(loaded.trust_score, 100)
        self.assertFalse(loaded.is_flagged)

    def test_require_product_missing(self) -> None:
        """Unknown ids raise NotFoundError."""
        self.assertIsNone(self.db.get_product("nope"))
        with self.assertRaises(NotFoundError) as ctx:
            self.db.require_product("nope")
        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(ctx.exception.message, "Product not found: nope")

    def test_find_products_filters(self) -> None:
        """Category matching ignores case; flags filter exactly."""
        a = self.db.insert_product(_product("A", "Electronics"))
        b = self.db.insert_product(_product("B", "Books"))
        self.db.update_product(b.id, is_flagged=True)

        self.assertEqual(
            [p.name for p in self.db.find_products(category="electronics")],
            ["A"],
        )
        self.assertEqual(
            [p.id for p in self.db.find_products(is_flagged=True)], [b.id]
        )
        self.assertEqual(len(self.db.find_products()), 2)
        self.assertEqual(
            self.db.find_products(category="Books", is_flagged=False), []
        )
        self.assertEqual(a.category, "Electronics")

    def test_partial_update(self) -> None:
        """Only the given fields change."""
        p = self.db.insert_product(_product())
        self.db.update_product(p.id, trust_score=35, approved_by_moderator=True)
        loaded = self.db.require_product(p.id)
        self.assertEqual(loaded.trust_score, 35)
        self.assertTrue(loaded.approved_by_moderator)
        self.assertEqual(loaded.name, "XPhone 12")

    def test_update_rejects_unknown_fields(self) -> None:
        """Non-updatable fields raise ValueError."""
        p = self.db.insert_product(_product())
        with self.assertRaises(ValueError):
            self.db.update_product(p.id, rating_count=3)

    def test_update_missing_product(self) -> None:
        """Updating an unknown id raises NotFoundError."""
        with self.assertRaises(NotFoundError):
            self.db.update_product("nope", trust_score=1)

    def test_delete_product_cascades_refs(self) -> None:
        """Deleting a product removes its images and review list."""
        p = self.db.insert_product(_product())
        self.db.add_review_ref(p.id, "r1")
        self.assertTrue(self.db.delete_product(p.id))
        self.assertIsNone(self.db.get_product(p.id))
        self.assertEqual(self.db.list_review_refs(p.id), [])
        self.assertFalse(self.db.delete_product(p.id))

    # ── Reviews ──────────────────────────────────────────

    def test_duplicate_review_conflicts(self) -> None:
        """A second review by the same user is a conflict."""
        p = self.db.insert_product(_product())
        first = self.db.insert_review(_review(p.id, "u1", 4))
        with self.assertRaises(ConflictError) as ctx:
            self.db.insert_review(_review(p.id, "u1", 1))
        self.assertEqual(ctx.exception.status_code, 409)
        self.assertEqual(self.db.require_review(first.id).rating, 4)
        self.assertEqual(len(self.db.find_reviews(product_id=p.id)), 1)

    def test_invalid_rating_rejected_by_store(self) -> None:
        """The store refuses ratings outside 1-5."""
        p = self.db.insert_product(_product())
        with self.assertRaises(ValidationError):
            self.db.insert_review(_review(p.id, "u1", 9))

    def test_find_reviews_filters(self) -> None:
        """Reviews filter by product, user and flag."""
        p1 = self.db.insert_product(_product("A"))
        p2 = self.db.insert_product(_product("B"))
        r1 = self.db.insert_review(_review(p1.id, "u1"))
        self.db.insert_review(_review(p1.id, "u2"))
        self.db.insert_review(_review(p2.id, "u1"))
        self.db.update_review(r1.id, is_flagged=True)

        self.assertEqual(len(self.db.find_reviews(product_id=p1.id)), 2)
        self.assertEqual(len(self.db.find_reviews(user_id="u1")), 2)
        self.assertEqual(
            [r.id for r in self.db.find_reviews(is_flagged=True)], [r1.id]
        )
        self.assertEqual(
            len(self.db.find_reviews(product_id=p2.id, user_id="u2")), 0
        )

    def test_delete_reviews_for_product(self) -> None:
        """Owned reviews and the review list are removed together."""
        p = self.db.insert_product(_product())
        for user in ("u1", "u2", "u3"):
            r = self.db.insert_review(_review(p.id, user))
            self.db.add_review_ref(p.id, r.id)
        self.assertEqual(self.db.delete_reviews_for_product(p.id), 3)
        self.assertEqual(self.db.find_reviews(product_id=p.id), [])
        self.assertEqual(self.db.list_review_refs(p.id), [])

    # ── Review references ────────────────────────────────

    def test_review_refs_keep_order_and_ignore_duplicates(self) -> None:
        """References keep insertion order without duplicates."""
        p = self.db.insert_product(_product())
        for rid in ("r1", "r2", "r1", "r3"):
            self.db.add_review_ref(p.id, rid)
        self.assertEqual(self.db.list_review_refs(p.id), ["r1", "r2", "r3"])
        self.assertTrue(self.db.remove_review_ref(p.id, "r2"))
        self.assertFalse(self.db.remove_review_ref(p.id, "r2"))
        self.assertEqual(self.db.require_product(p.id).review_ids, ["r1", "r3"])

    # ── Transactions ─────────────────────────────────────

    def test_transaction_rolls_back(self) -> None:
        """An exception inside a transaction undoes every step."""
        p = _product()
        with self.assertRaises(RuntimeError):
            with self.db.transaction():
                self.db.insert_product(p)
                self.db.set_rating_aggregate(p.id, RatingAggregate(3.0, 1))
                raise RuntimeError("boom")
        self.assertIsNone(self.db.get_product(p.id))

    def test_nested_transaction_commits_with_outer(self) -> None:
        """Inner scopes join the outer transaction."""
        with self.db.transaction():
            p = self.db.insert_product(_product())
            with self.db.transaction():
                self.db.update_product(p.id, trust_score=10)
        self.assertEqual(self.db.require_product(p.id).trust_score, 10)

    def test_ping_and_ids(self) -> None:
        """The store answers pings and ids are unique."""
        self.assertTrue(self.db.ping())
        self.assertNotEqual(new_id(), new_id())
        self.assertEqual(self.db.path.name, "test.db")


if __name__ == "__main__":
    unittest.main()
