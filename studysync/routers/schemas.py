"""
Pydantic request schemas for the API routers
"""

from datetime import datetime
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field

from ..models.enums import ShareRole, InstanceStatus, ReminderUnit, ReminderFrequency


class ReminderRuleRequest(BaseModel):
    id: Optional[str] = None
    value: int = Field(..., gt=0)
    unit: ReminderUnit = ReminderUnit.DAYS


# Study Plans
class StudyPlanCreateRequest(BaseModel):
    title: str
    short_description: str
    course_code: str
    full_description: Optional[str] = ""
    is_public: bool = False

    class Config:
        json_schema_extra = {
            "example": {
                "title": "Linear Algebra Crash Course",
                "short_description": "Vectors to eigenvalues in three weeks",
                "course_code": "MATH-221",
                "is_public": True,
            }
        }


class StudyPlanUpdateRequest(BaseModel):
    title: Optional[str] = None
    short_description: Optional[str] = None
    full_description: Optional[str] = None
    course_code: Optional[str] = None
    is_public: Optional[bool] = None
    resource_ids: Optional[List[str]] = None


class ShareRequest(BaseModel):
    email: str
    role: ShareRole = ShareRole.VIEWER


# Resources
class ResourceCreateRequest(BaseModel):
    # Free-form so unsupported types surface as a 400 from the normalizer
    type: str
    url: str
    title: Optional[str] = None
    description: Optional[str] = None
    pages: Optional[int] = None
    mins_per_page: Optional[float] = None
    estimated_mins: Optional[float] = None
    study_plan_id: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "type": "pdf",
                "url": "https://example.com/notes.pdf",
                "title": "Lecture notes",
                "pages": 40,
                "study_plan_id": "665f1c2e9b1e8a3f4c2d1a00",
            }
        }


class ResourceUpdateRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


# Instances
class InstanceCreateRequest(BaseModel):
    study_plan_id: str
    start_date: datetime
    end_date: datetime
    reminder_time: Optional[str] = None
    reminder_enabled: bool = True
    resource_schedule: Optional[List[Dict[str, Any]]] = None
    custom_title: Optional[str] = None
    notes: Optional[str] = None
    custom_reminders: Optional[List[ReminderRuleRequest]] = None


class InstanceUpdateRequest(BaseModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: Optional[InstanceStatus] = None
    progress: Optional[float] = None
    completed_resources: Optional[List[str]] = None
    resource_schedule: Optional[List[Dict[str, Any]]] = None
    reminder_time: Optional[str] = None
    reminder_enabled: Optional[bool] = None
    custom_reminders: Optional[List[ReminderRuleRequest]] = None
    notes: Optional[str] = None
    custom_title: Optional[str] = None


# Progress
class ProgressToggleRequest(BaseModel):
    instance_id: str
    resource_id: str
    completed: Optional[bool] = None
    progress: Optional[float] = Field(None, ge=0, le=100)
    time_spent: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None


class BulkProgressRequest(BaseModel):
    resource_ids: List[str]
    completed: bool
    instance_id: Optional[str] = None


class ProgressResetRequest(BaseModel):
    resource_ids: Optional[List[str]] = None


# Notifications and profile
class NotificationSettingsUpdateRequest(BaseModel):
    email_reminders: Optional[bool] = None
    reminder_time: Optional[str] = None
    reminder_frequency: Optional[ReminderFrequency] = None
    custom_days: Optional[List[int]] = None
    deadline_warnings: Optional[bool] = None
    weekly_digest: Optional[bool] = None
    custom_reminders: Optional[List[ReminderRuleRequest]] = None


class ProfileUpdateRequest(BaseModel):
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    bio: Optional[str] = None
    preferences: Optional[Dict[str, Any]] = None


# Reviews
class ReviewCreateRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str
