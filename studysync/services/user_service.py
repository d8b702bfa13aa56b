"""
Profile operations for the signed-in user
"""

from typing import Dict, Any

from ..errors import ValidationError
from ..input_sanitizer import InputSanitizer
from ..models.user import User
from .notification_service import serialize_settings

PROFILE_FIELDS = ("display_name", "photo_url", "bio", "preferences")


def serialize_user(user: User) -> Dict[str, Any]:
    return {
        "id": str(user.id),
        "uid": user.uid,
        "email": user.email,
        "display_name": user.display_name,
        "photo_url": user.photo_url,
        "role": user.role.value,
        "bio": user.bio,
        "preferences": user.preferences,
        "notification_settings": serialize_settings(user.notification_settings),
        "last_login": user.last_login,
        "created_at": user.created_at,
        "updated_at": user.updated_at,
    }


class UserService:
    """Service class for the user profile"""

    @staticmethod
    async def get_profile(current_user: User) -> Dict[str, Any]:
        return {"user": serialize_user(current_user)}

    @staticmethod
    async def update_profile(updates: Dict[str, Any], current_user: User) -> Dict[str, Any]:
        """
        Update allow-listed profile fields

        Args:
            updates: display_name, photo_url, bio, preferences
            current_user: The user being updated

        Returns:
            Dictionary with the updated profile
        """
        changes = {k: v for k, v in updates.items() if k in PROFILE_FIELDS and v is not None}
        if not changes:
            raise ValidationError("No valid fields to update")

        if "display_name" in changes:
            name = InputSanitizer.sanitize_text(changes["display_name"])
            if not name:
                raise ValidationError("Display name cannot be empty")
            current_user.display_name = name
        if "photo_url" in changes:
            current_user.photo_url = InputSanitizer.sanitize_url(changes["photo_url"])
        if "bio" in changes:
            current_user.bio = InputSanitizer.sanitize_text(changes["bio"])
        if "preferences" in changes:
            if not isinstance(changes["preferences"], dict):
                raise ValidationError("preferences must be an object")
            current_user.preferences = {**current_user.preferences, **changes["preferences"]}

        current_user.update_timestamp()
        await current_user.save()

        return {
            "message": "Profile updated successfully",
            "user": serialize_user(current_user),
        }
