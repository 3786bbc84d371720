# src/filters/entity_validator.py

"""Validation of products and reviews before they reach the store."""

import logging
import math
from typing import Any

from src.config.settings import Settings
from src.errors import ValidationError
from src.models.product import Product, ProductImage
from src.models.review import Review

logger = logging.getLogger("trustmart.filters")


def _text(data: dict[str, Any], key: str) -> str:
    value = data.get(key, "")
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"'{key}' must be text")
    return value.strip()


class EntityValidator:
    """Reject malformed products and reviews with a ValidationError."""

    @staticmethod
    def validate_rating(rating: Any) -> int:
        """Return *rating* as an int, or raise if not in [1, 5]."""
        if isinstance(rating, bool):
            raise ValidationError("Rating must be an integer")
        if isinstance(rating, float) and rating.is_integer():
            rating = int(rating)
        if isinstance(rating, str) and rating.strip().isdigit():
            rating = int(rating.strip())
        if not isinstance(rating, int):
            raise ValidationError("Rating must be an integer")
        if not Settings.MIN_RATING <= rating <= Settings.MAX_RATING:
            raise ValidationError(
                f"Rating must be between {Settings.MIN_RATING} "
                f"and {Settings.MAX_RATING}"
            )
        return rating

    @staticmethod
    def validate_price(price: Any) -> float:
        if price is None or price == "":
            raise ValidationError("Price is required")
        if isinstance(price, bool):
            raise ValidationError("Price must be a number")
        try:
            value = float(price)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Price must be a number") from exc
        if math.isnan(value) or math.isinf(value) or value < 0:
            raise ValidationError("Price must be a non-negative number")
        return value

    @staticmethod
    def product_from_dict(data: dict[str, Any]) -> Product:
        """Validate raw catalog/API input and build a Product."""
        name = _text(data, "name")
        if not name:
            raise ValidationError("Product name is required")
        description = _text(data, "description")
        if not description:
            raise ValidationError("Product description is required")
        category = _text(data, "category")
        if not category:
            raise ValidationError("Product category is required")
        price = EntityValidator.validate_price(data.get("price"))

        images: list[ProductImage] = []
        for raw in data.get("images") or []:
            if isinstance(raw, str):
                url, alt = raw.strip(), ""
            elif isinstance(raw, dict):
                url = str(raw.get("url") or "").strip()
                alt = str(raw.get("alt") or "")
            else:
                raise ValidationError("Images must be URLs or {url, alt}")
            if not url:
                raise ValidationError("Image URL is required")
            images.append(ProductImage(url=url, alt=alt))

        return Product(
            name=name,
            description=description,
            category=category,
            price=price,
            brand=_text(data, "brand"),
            seller=_text(data, "seller"),
            images=images,
        )

    @staticmethod
    def build_review(
        product_id: str,
        user_id: str,
        rating: Any,
        comment: Any,
    ) -> Review:
        """Validate review input and build an unsaved Review."""
        if not product_id or not str(product_id).strip():
            raise ValidationError("Product id is required")
        if not user_id or not str(user_id).strip():
            raise ValidationError("User id is required")
        checked = EntityValidator.validate_rating(rating)
        if not isinstance(comment, str) or not comment.strip():
            raise ValidationError("Comment is required")
        return Review(
            product_id=str(product_id).strip(),
            user_id=str(user_id).strip(),
            rating=checked,
            comment=comment.strip(),
        )

    @staticmethod
    def validate_catalog(
        rows: list[Any],
    ) -> tuple[list[Product], int]:
        """Build products from catalog rows, dropping invalid ones.

        Returns the valid products and the count of dropped rows.
        """
        valid: list[Product] = []
        dropped = 0
        for index, row in enumerate(rows):
            if not isinstance(row, dict):
                logger.debug("Dropped catalog row %d: not an object", index)
                dropped += 1
                continue
            try:
                valid.append(EntityValidator.product_from_dict(row))
            except ValidationError as exc:
                logger.debug(
                    "Dropped catalog row %d (%s): %s",
                    index, row.get("name", "?"), exc.message,
                )
                dropped += 1

        if dropped:
            logger.info(
                "Validation dropped %d invalid catalog rows", dropped,
            )
        return valid, dropped
