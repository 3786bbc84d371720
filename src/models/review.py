# src/models/review.py

"""Review data model."""

from dataclasses import dataclass


@dataclass
class Review:
    """A single user's review of a product (one per user and product)."""

    product_id: str
    user_id: str
    rating: int
    comment: str
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
            "product": self.product_id,
            "user": self.user_id,
            "rating": self.rating,
            "comment": self.comment,
            "trustScore": self.trust_score,
            "isFlagged": self.is_flagged,
            "approvedByModerator": self.approved_by_moderator,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
