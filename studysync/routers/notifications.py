from typing import Dict, Any

from fastapi import APIRouter, Depends

from ..dependencies import get_current_user, ensure_db
from ..models.user import User
from ..services.notification_service import NotificationService
from .schemas import NotificationSettingsUpdateRequest

router = APIRouter(
    prefix="/api/notifications",
    tags=["Notifications"],
    dependencies=[Depends(ensure_db)],
)


@router.get("/settings", response_model=Dict[str, Any])
async def get_notification_settings(current_user: User = Depends(get_current_user)):
    return await NotificationService.get_settings(current_user)


@router.put("/settings", response_model=Dict[str, Any])
async def update_notification_settings(
    updates: NotificationSettingsUpdateRequest,
    current_user: User = Depends(get_current_user),
):
    return await NotificationService.update_settings(
        updates.model_dump(exclude_unset=True), current_user
    )


@router.post("/test-email", response_model=Dict[str, Any])
async def send_test_email(current_user: User = Depends(get_current_user)):
    """Send a test email to the caller's address"""
    return await NotificationService.send_test_email(current_user)
