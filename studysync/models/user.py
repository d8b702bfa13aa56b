from typing import List, Optional, Dict, Any
from datetime import datetime

import pymongo
from pydantic import BaseModel, Field

from .base import BaseDocument
from .enums import UserRole, ReminderUnit, ReminderFrequency


class ReminderRule(BaseModel):
    """Fire an email ``value`` ``unit`` before an instance deadline"""

    id: Optional[str] = None
    value: int = Field(..., gt=0)
    unit: ReminderUnit = ReminderUnit.DAYS

    @property
    def rule_id(self) -> str:
        return self.id or f"{self.value}-{self.unit.value}"


class NotificationSettings(BaseModel):
    email_reminders: bool = True
    reminder_time: str = "09:00"
    reminder_frequency: ReminderFrequency = ReminderFrequency.DAILY
    custom_days: List[int] = [1, 2, 3, 4, 5]  # 0 = Sunday
    deadline_warnings: bool = True
    weekly_digest: bool = True
    custom_reminders: List[ReminderRule] = []


class User(BaseDocument):
    uid: str  # Identity provider subject
    email: str  # Stored lowercased
    display_name: str = ""
    photo_url: str = ""
    role: UserRole = UserRole.USER

    # Profile fields
    bio: str = ""
    preferences: Dict[str, Any] = {}

    notification_settings: NotificationSettings = Field(
        default_factory=NotificationSettings
    )

    last_login: Optional[datetime] = None

    class Settings:
        name = "users"
        indexes = [
            pymongo.IndexModel([("uid", pymongo.ASCENDING)], unique=True),
            "email",
        ]

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
