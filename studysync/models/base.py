from datetime import datetime, timezone
from beanie import Document
from pydantic import Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BaseDocument(Document):
    """Base document class with common timestamp fields"""

    # Timestamps
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    class Settings:
        abstract = True  # Make this an abstract base class

    def update_timestamp(self):
        """Update the last modified timestamp"""
        self.updated_at = utc_now()
