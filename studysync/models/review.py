from pydantic import Field

from .base import BaseDocument


class Review(BaseDocument):
    user_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: str

    class Settings:
        name = "reviews"
        indexes = [
            "user_id",
            [("created_at", -1)],
        ]
