from enum import Enum


class UserRole(str, Enum):
    """User roles"""

    USER = "user"
    ADMIN = "admin"


class ResourceType(str, Enum):
    """Learning resource types"""

    YOUTUBE_VIDEO = "youtube-video"
    YOUTUBE_PLAYLIST = "youtube-playlist"  # Input only, expanded into videos
    PDF = "pdf"
    ARTICLE = "article"
    GOOGLE_DRIVE = "google-drive"
    CUSTOM_LINK = "custom-link"


class ShareRole(str, Enum):
    """Collaborator roles on a study plan"""

    VIEWER = "viewer"
    EDITOR = "editor"


class InstanceStatus(str, Enum):
    """Lifecycle of a user's run of a study plan"""

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class ReminderUnit(str, Enum):
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"
    WEEKS = "weeks"


class ReminderFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    CUSTOM = "custom"
