from typing import Dict, Any

from fastapi import APIRouter, Depends, Query, status

from ..dependencies import get_current_user, admin_required, ensure_db
from ..models.user import User
from ..services.review_service import ReviewService
from .schemas import ReviewCreateRequest

router = APIRouter(
    prefix="/api/reviews",
    tags=["Reviews"],
    dependencies=[Depends(ensure_db)],
)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=Dict[str, Any])
async def create_review(
    review_data: ReviewCreateRequest,
    current_user: User = Depends(get_current_user),
):
    return await ReviewService.create_review(
        review_data.rating, review_data.comment, current_user
    )


@router.get("", response_model=Dict[str, Any])
async def list_reviews(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(admin_required),
):
    """All reviews, newest first (Admin only)"""
    return await ReviewService.list_reviews(page, limit)
