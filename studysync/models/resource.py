from typing import Optional, Dict, Any

import pymongo

from .base import BaseDocument
from .enums import ResourceType


class Resource(BaseDocument):
    """A learning item shared by every plan that references its URL

    ``metadata`` carries the type-specific time estimate:
    youtube-video -> duration (minutes), video_id, thumbnail_url
    pdf -> pages, mins_per_page
    article / google-drive / custom-link -> estimated_mins
    """

    type: ResourceType
    title: str
    url: str
    description: str = ""
    metadata: Dict[str, Any] = {}

    added_by: Optional[str] = None  # User ID of whoever first referenced it

    class Settings:
        name = "resources"
        indexes = [
            pymongo.IndexModel([("url", pymongo.ASCENDING)], unique=True),
            "type",
        ]
