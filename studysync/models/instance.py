from typing import List, Optional, Dict, Any
from datetime import datetime

from pydantic import BaseModel, Field

from .base import BaseDocument, utc_now
from .enums import InstanceStatus
from .user import ReminderRule


class SentReminder(BaseModel):
    reminder_id: str
    sent_at: datetime = Field(default_factory=utc_now)


class StudyPlanInstance(BaseDocument):
    """A user's personal, time-boxed run of a study plan"""

    user_id: str
    study_plan_id: str

    # Frozen copy of the plan's resource list at creation time;
    # None only on documents written before snapshots existed
    snapshot_resource_ids: Optional[List[str]] = None

    start_date: datetime
    end_date: datetime  # Deadline
    status: InstanceStatus = InstanceStatus.ACTIVE
    progress: float = 0

    # Display hint only; the UserProgress ledger is authoritative
    completed_resources: List[str] = []

    resource_schedule: List[Dict[str, Any]] = []

    # Reminders
    reminder_time: str = "09:00"
    reminder_enabled: bool = True
    custom_reminders: List[ReminderRule] = []
    sent_reminders: List[SentReminder] = []

    notes: str = ""
    custom_title: str = ""

    class Settings:
        name = "instances"
        indexes = [
            "user_id",
            "study_plan_id",
            [("user_id", 1), ("study_plan_id", 1)],
            [("status", 1), ("end_date", 1)],
        ]

    @property
    def deadline(self) -> Optional[datetime]:
        return self.end_date
