import logging
from typing import Any, Dict

from ..errors import ValidationError
from ..input_sanitizer import InputSanitizer
from ..models.review import Review
from ..models.user import User
from ..utils import batch_get, paginate_query

logger = logging.getLogger(__name__)


class ReviewService:
    @staticmethod
    async def create_review(rating: int, comment: str, current_user: User) -> Dict[str, Any]:
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError("Rating must be between 1 and 5")

        comment = InputSanitizer.sanitize_text(comment)
        if not comment:
            raise ValidationError("Comment is required")

        review = Review(user_id=str(current_user.id), rating=rating, comment=comment)
        await review.insert()
        logger.info(f"Review {review.id} submitted by {current_user.id}")

        return {
            "message": "Review submitted successfully",
            "review": {
                "id": str(review.id),
                "rating": review.rating,
                "comment": review.comment,
                "created_at": review.created_at,
            },
        }

    @staticmethod
    async def list_reviews(page: int = 1, limit: int = 20) -> Dict[str, Any]:
        """All reviews newest first, with the reviewer's name and email"""
        reviews, pagination = await paginate_query(
            Review, {}, [("created_at", -1)], page=page, limit=limit
        )
        users = await batch_get(User, list({r.user_id for r in reviews}))

        results = []
        for review in reviews:
            user = users.get(review.user_id)
            results.append(
                {
                    "id": str(review.id),
                    "rating": review.rating,
                    "comment": review.comment,
                    "created_at": review.created_at,
                    "user": {
                        "id": review.user_id,
                        "display_name": user.display_name if user else None,
                        "email": user.email if user else None,
                    },
                }
            )

        return {"reviews": results, "pagination": pagination}
