# src/storage/marketplace_db.py

"""SQLite-backed entity store for products and reviews."""

import logging
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from src.config.settings import Settings
from src.errors import ConflictError, NotFoundError, ValidationError
from src.models.product import Product, ProductImage, RatingAggregate
from src.models.review import Review

logger = logging.getLogger("trustmart.store")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS products (
    id                    TEXT    PRIMARY KEY,
    name                  TEXT    NOT NULL,
    description           TEXT    NOT NULL,
    category              TEXT    NOT NULL,
    price                 REAL    NOT NULL CHECK (price >= 0),
    brand                 TEXT    NOT NULL DEFAULT '',
    seller                TEXT    NOT NULL DEFAULT '',
    rating_average        REAL    NOT NULL DEFAULT 5.0,
    rating_count          INTEGER NOT NULL DEFAULT 0
                          CHECK (rating_count >= 0),
    trust_score           INTEGER NOT NULL DEFAULT 100,
    is_flagged            INTEGER NOT NULL DEFAULT 0,
    approved_by_moderator INTEGER NOT NULL DEFAULT 0,
    created_at            TEXT    NOT NULL,
    updated_at            TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS product_images (
    product_id TEXT    NOT NULL
               REFERENCES products(id) ON DELETE CASCADE,
    position   INTEGER NOT NULL,
    url        TEXT    NOT NULL,
    alt        TEXT    NOT NULL DEFAULT '',
    PRIMARY KEY (product_id, position)
);

CREATE TABLE IF NOT EXISTS product_review_refs (
    product_id TEXT    NOT NULL
               REFERENCES products(id) ON DELETE CASCADE,
    position   INTEGER NOT NULL,
    review_id  TEXT    NOT NULL,
    PRIMARY KEY (product_id, review_id)
);

CREATE TABLE IF NOT EXISTS reviews (
    id                    TEXT    PRIMARY KEY,
    product_id            TEXT    NOT NULL,
    user_id               TEXT    NOT NULL,
    rating                INTEGER NOT NULL
                          CHECK (rating BETWEEN 1 AND 5),
    comment               TEXT    NOT NULL,
    trust_score           INTEGER NOT NULL DEFAULT 100,
    is_flagged            INTEGER NOT NULL DEFAULT 0,
    approved_by_moderator INTEGER NOT NULL DEFAULT 0,
    created_at            TEXT    NOT NULL,
    updated_at            TEXT    NOT NULL,
    UNIQUE (product_id, user_id)
);

CREATE INDEX IF NOT EXISTS idx_products_category
    ON products(category);
CREATE INDEX IF NOT EXISTS idx_reviews_product
    ON reviews(product_id);
"""

# Partially updatable columns (field name -> column name)
_PRODUCT_FIELDS: dict[str, str] = {
    "name": "name",
    "description": "description",
    "category": "category",
    "price": "price",
    "brand": "brand",
    "seller": "seller",
    "trust_score": "trust_score",
    "is_flagged": "is_flagged",
    "approved_by_moderator": "approved_by_moderator",
}
_REVIEW_FIELDS: dict[str, str] = {
    "rating": "rating",
    "comment": "comment",
    "trust_score": "trust_score",
    "is_flagged": "is_flagged",
    "approved_by_moderator": "approved_by_moderator",
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return uuid.uuid4().hex


class MarketplaceDB:
    """Entity store with CRUD-by-identity, filtered finds and
    partial-field updates.

    A single connection is shared between threads and serialised by a
    re-entrant lock; ``transaction()`` holds that lock for its whole
    scope so multi-step changes commit or roll back together.
    """

    def __init__(
        self, db_path: Path | None = None,
    ) -> None:
        path = db_path or Settings.DB_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        self._path = path
        self._lock = threading.RLock()
        self._depth = 0
        self._conn = sqlite3.connect(
            str(path),
            check_same_thread=False,
            isolation_level=None,  # explicit BEGIN/COMMIT
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.executescript(_SCHEMA)
        logger.debug("MarketplaceDB opened at %s", path)

    @property
    def path(self) -> Path:
        return self._path

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()

    # ── Transactions ─────────────────────────────────────

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Scoped transaction; nested scopes join the outer one."""
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield self._conn
                finally:
                    self._depth -= 1
                return

            self._conn.execute("BEGIN IMMEDIATE")
            self._depth = 1
            try:
                yield self._conn
            except BaseException:
                self._depth = 0
                self._conn.execute("ROLLBACK")
                logger.debug("Transaction rolled back")
                raise
            self._depth = 0
            self._conn.execute("COMMIT")

    def ping(self) -> bool:
        """Cheap liveness probe used by the health checker."""
        with self._lock:
            row = self._conn.execute("SELECT 1").fetchone()
        return row is not None and row[0] == 1

    # ── Row mapping ──────────────────────────────────────

    def _images_for(self, product_id: str) -> list[ProductImage]:
        rows = self._conn.execute(
            "SELECT url, alt FROM product_images "
            "WHERE product_id = ? ORDER BY position",
            (product_id,),
        ).fetchall()
        return [ProductImage(url=r["url"], alt=r["alt"]) for r in rows]

    def _product_from_row(self, row: sqlite3.Row) -> Product:
        return Product(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            category=row["category"],
            price=row["price"],
            brand=row["brand"],
            seller=row["seller"],
            images=self._images_for(row["id"]),
            ratings=RatingAggregate(
                average=row["rating_average"],
                count=row["rating_count"],
            ),
            review_ids=self.list_review_refs(row["id"]),
            trust_score=row["trust_score"],
            is_flagged=bool(row["is_flagged"]),
            approved_by_moderator=bool(row["approved_by_moderator"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _review_from_row(row: sqlite3.Row) -> Review:
        return Review(
            id=row["id"],
            product_id=row["product_id"],
            user_id=row["user_id"],
            rating=row["rating"],
            comment=row["comment"],
            trust_score=row["trust_score"],
            is_flagged=bool(row["is_flagged"]),
            approved_by_moderator=bool(row["approved_by_moderator"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    # ── Products ─────────────────────────────────────────

    def insert_product(self, product: Product) -> Product:
        """Persist a new product; assigns id and timestamps."""
        product.id = product.id or new_id()
        product.created_at = product.updated_at = _now()
        with self.transaction() as conn:
            conn.execute(
                "INSERT INTO products (id, name, description, category, "
                "price, brand, seller, rating_average, rating_count, "
                "trust_score, is_flagged, approved_by_moderator, "
                "created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    product.id, product.name, product.description,
                    product.category, product.price, product.brand,
                    product.seller, product.ratings.average,
                    product.ratings.count, product.trust_score,
                    int(product.is_flagged),
                    int(product.approved_by_moderator),
                    product.created_at, product.updated_at,
                ),
            )
            conn.executemany(
                "INSERT INTO product_images (product_id, position, url, alt) "
                "VALUES (?, ?, ?, ?)",
                [
                    (product.id, pos, img.url, img.alt)
                    for pos, img in enumerate(product.images)
                ],
            )
        logger.info("Inserted product %s (%s)", product.id, product.name)
        return product

    def get_product(self, product_id: str) -> Product | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM products WHERE id = ?", (product_id,),
            ).fetchone()
            return self._product_from_row(row) if row else None

    def require_product(self, product_id: str) -> Product:
        product = self.get_product(product_id)
        if product is None:
            raise NotFoundError("product", product_id)
        return product

    def find_products(
        self,
        category: str | None = None,
        is_flagged: bool | None = None,
    ) -> list[Product]:
        """Products matching every given filter, oldest first."""
        clauses: list[str] = []
        params: list[Any] = []
        if category is not None:
            clauses.append("category = ? COLLATE NOCASE")
            params.append(category)
        if is_flagged is not None:
            clauses.append("is_flagged = ?")
            params.append(int(is_flagged))
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._lock:
            rows = self._conn.execute(
                f"SELECT * FROM products{where} ORDER BY created_at, id",
                params,
            ).fetchall()
            return [self._product_from_row(r) for r in rows]

    def update_product(self, product_id: str, **fields: Any) -> None:
        """Update only the given fields of a product."""
        self._update("products", _PRODUCT_FIELDS, product_id, fields)

    def set_rating_aggregate(
        self, product_id: str, aggregate: RatingAggregate,
    ) -> None:
        with self.transaction() as conn:
            cur = conn.execute(
                "UPDATE products SET rating_average = ?, "
                "rating_count = ?, updated_at = ? WHERE id = ?",
                (aggregate.average, aggregate.count, _now(), product_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError("product", product_id)

    def delete_product(self, product_id: str) -> bool:
        """Delete a product with its images and review references."""
        with self.transaction() as conn:
            cur = conn.execute(
                "DELETE FROM products WHERE id = ?", (product_id,),
            )
        deleted = cur.rowcount > 0
        if deleted:
            logger.info("Deleted product %s", product_id)
        return deleted

    # ── Reviews ──────────────────────────────────────────

    def insert_review(self, review: Review) -> Review:
        """Persist a new review; one per (product, user)."""
        review.id = review.id or new_id()
        review.created_at = review.updated_at = _now()
        try:
            with self.transaction() as conn:
                conn.execute(
                    "INSERT INTO reviews (id, product_id, user_id, rating, "
                    "comment, trust_score, is_flagged, "
                    "approved_by_moderator, created_at, updated_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        review.id, review.product_id, review.user_id,
                        review.rating, review.comment, review.trust_score,
                        int(review.is_flagged),
                        int(review.approved_by_moderator),
                        review.created_at, review.updated_at,
                    ),
                )
        except sqlite3.IntegrityError as exc:
            if "UNIQUE" in str(exc):
                raise ConflictError(
                    "You have already reviewed this product"
                ) from exc
            raise ValidationError(f"Invalid review: {exc}") from exc
        logger.info(
            "Inserted review %s for product %s",
            review.id, review.product_id,
        )
        return review

    def get_review(self, review_id: str) -> Review | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM reviews WHERE id = ?", (review_id,),
            ).fetchone()
        return self._review_from_row(row) if row else None

    def require_review(self, review_id: str) -> Review:
        review = self.get_review(review_id)
        if review is None:
            raise NotFoundError("review", review_id)
        return review

    def find_reviews(
        self,
        product_id: str | None = None,
        user_id: str | None = None,
        is_flagged: bool | None = None,
    ) -> list[Review]:
        """Reviews matching every given filter, oldest first."""
        clauses: list[str] = []
        params: list[Any] = []
        if product_id is not None:
            clauses.append("product_id = ?")
            params.append(product_id)
        if user_id is not None:
            clauses.append("user_id = ?")
            params.append(user_id)
        if is_flagged is not None:
            clauses.append("is_flagged = ?")
            params.append(int(is_flagged))
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._lock:
            rows = self._conn.execute(
                f"SELECT * FROM reviews{where} ORDER BY created_at, id",
                params,
            ).fetchall()
        return [self._review_from_row(r) for r in rows]

    def update_review(self, review_id: str, **fields: Any) -> None:
        """Update only the given fields of a review."""
        self._update("reviews", _REVIEW_FIELDS, review_id, fields)

    def delete_review(self, review_id: str) -> bool:
        with self.transaction() as conn:
            cur = conn.execute(
                "DELETE FROM reviews WHERE id = ?", (review_id,),
            )
        return cur.rowcount > 0

    def delete_reviews_for_product(self, product_id: str) -> int:
        """Delete every review owned by a product; returns the count."""
        with self.transaction() as conn:
            cur = conn.execute(
                "DELETE FROM reviews WHERE product_id = ?", (product_id,),
            )
            conn.execute(
                "DELETE FROM product_review_refs WHERE product_id = ?",
                (product_id,),
            )
        return cur.rowcount

    # ── Review references ────────────────────────────────

    def add_review_ref(self, product_id: str, review_id: str) -> None:
        with self.transaction() as conn:
            row = conn.execute(
                "SELECT COALESCE(MAX(position), -1) + 1 "
                "FROM product_review_refs WHERE product_id = ?",
                (product_id,),
            ).fetchone()
            conn.execute(
                "INSERT OR IGNORE INTO product_review_refs "
                "(product_id, position, review_id) VALUES (?, ?, ?)",
                (product_id, row[0], review_id),
            )

    def remove_review_ref(self, product_id: str, review_id: str) -> bool:
        with self.transaction() as conn:
            cur = conn.execute(
                "DELETE FROM product_review_refs "
                "WHERE product_id = ? AND review_id = ?",
                (product_id, review_id),
            )
        return cur.rowcount > 0

    def list_review_refs(self, product_id: str) -> list[str]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT review_id FROM product_review_refs "
                "WHERE product_id = ? ORDER BY position",
                (product_id,),
            ).fetchall()
        return [r["review_id"] for r in rows]

    # ── Private helpers ──────────────────────────────────

    def _update(
        self,
        table: str,
        allowed: dict[str, str],
        entity_id: str,
        fields: dict[str, Any],
    ) -> None:
        unknown = set(fields) - set(allowed)
        if unknown:
            raise ValueError(
                f"Cannot update {sorted(unknown)} on {table}"
            )
        if not fields:
            return
        assignments = ", ".join(
            f"{allowed[name]} = ?" for name in fields
        )
        values = [
            int(v) if isinstance(v, bool) else v
            for v in fields.values()
        ]
        with self.transaction() as conn:
            cur = conn.execute(
                f"UPDATE {table} SET {assignments}, updated_at = ? "
                "WHERE id = ?",
                (*values, _now(), entity_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(table.rstrip("s"), entity_id)
