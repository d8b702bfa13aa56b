from typing import List, Optional
from datetime import datetime

from pydantic import BaseModel, Field

from .base import BaseDocument, utc_now
from .enums import ShareRole


class SharedWith(BaseModel):
    """One collaborator; ``user_id`` stays empty until the email registers"""

    email: str
    role: ShareRole = ShareRole.VIEWER
    user_id: Optional[str] = None
    shared_at: datetime = Field(default_factory=utc_now)


class StudyPlan(BaseDocument):
    title: str
    short_description: str
    full_description: str = ""
    course_code: str

    # Ordered resource references
    resource_ids: List[str] = []

    # Ownership and sharing
    created_by: str
    shared_with: List[SharedWith] = []
    is_public: bool = False

    # Advisory counters, updated with $inc
    instance_count: int = 0
    view_count: int = 0

    # Audit
    last_modified_by: Optional[str] = None
    last_modified_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "study_plans"
        indexes = [
            "created_by",
            "is_public",
            "course_code",
            "shared_with.user_id",
            "shared_with.email",
        ]

    def touch(self, user_id: str):
        """Record who last modified the plan"""
        self.last_modified_by = user_id
        self.last_modified_at = utc_now()
        self.update_timestamp()
