"""
Scheduled trigger for deadline reminders
"""

from typing import Dict, Any

from fastapi import APIRouter, Depends

from ..dependencies import verify_cron_secret, ensure_db
from ..services.reminder_service import ReminderService

router = APIRouter(
    prefix="/api/cron",
    tags=["Cron"],
    dependencies=[Depends(verify_cron_secret), Depends(ensure_db)],
)


@router.get("/reminders", response_model=Dict[str, Any])
async def run_reminders():
    """Send every due reminder once; safe to call repeatedly"""
    return await ReminderService.run_reminders()
