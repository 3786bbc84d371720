# src/models/product.py

"""Product data model for marketplace listings."""

from dataclasses import dataclass, field


@dataclass
class ProductImage:
    """A listing image as declared by the seller."""

    url: str
    alt: str = ""


@dataclass
class RatingAggregate:
    """Running {average, count} summary of a product's retained reviews."""

    average: float = 5.0
    count: int = 0


@dataclass
class Product:
    """Represents a single marketplace listing."""

    name: str
    description: str
    category: str
    price: float
    brand: str = ""
    seller: str = ""
    images: list[ProductImage] = field(
        default_factory=lambda: list[ProductImage]()
    )
    ratings: RatingAggregate = field(default_factory=RatingAggregate)
    review_ids: list[str] = field(
        default_factory=lambda: list[str]()
    )
    trust_score: int = 100
    is_flagged: bool = False
    approved_by_moderator: bool = False
    id: str = ""
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict[str, object]:
        """Serialise to the camelCase shape used in API payloads."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "price": self.price,
            "brand": self.brand,
            "seller": self.seller,
            "images": [
                {"url": img.url, "alt": img.alt} for img in self.images
            ],
            "ratings": {
                "average": round(self.ratings.average, 4),
                "count": self.ratings.count,
            },
            "reviews": list(self.review_ids),
            "trustScore": self.trust_score,
            "isFlagged": self.is_flagged,
            "approvedByModerator": self.approved_by_moderator,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
