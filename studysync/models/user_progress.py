from typing import Optional
from datetime import datetime

import pymongo
from pydantic import Field

from .base import BaseDocument, utc_now


class UserProgress(BaseDocument):
    """Global completion ledger, one row per (user, resource)

    ``instance_id`` records the instance the last toggle came from; it is
    not part of the uniqueness key.
    """

    user_id: str
    resource_id: str
    instance_id: Optional[str] = None

    completed: bool = False
    completed_at: Optional[datetime] = None

    progress: float = 0  # Partial progress percentage
    time_spent: int = 0  # Minutes
    notes: str = ""
    last_accessed_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "user_progress"
        indexes = [
            pymongo.IndexModel(
                [("user_id", pymongo.ASCENDING), ("resource_id", pymongo.ASCENDING)],
                unique=True,
            ),
            "resource_id",
        ]
