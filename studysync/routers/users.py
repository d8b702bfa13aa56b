from typing import Dict, Any

from fastapi import APIRouter, Depends

from ..dependencies import get_current_user, ensure_db
from ..models.user import User
from ..services.user_service import UserService
from .schemas import ProfileUpdateRequest

router = APIRouter(
    prefix="/api/users",
    tags=["Users"],
    dependencies=[Depends(ensure_db)],
)


@router.get("/me", response_model=Dict[str, Any])
async def get_me(current_user: User = Depends(get_current_user)):
    """Get the signed-in user's profile"""
    return await UserService.get_profile(current_user)


@router.put("/me", response_model=Dict[str, Any])
async def update_me(
    updates: ProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
):
    return await UserService.update_profile(
        updates.model_dump(exclude_unset=True), current_user
    )
