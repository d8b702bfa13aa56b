import logging
from typing import Any, Dict

from pydantic import ValidationError as PydanticValidationError

from ..errors import ExternalFetchError, ValidationError
from ..models.user import NotificationSettings, User
from .email_service import EmailService

logger = logging.getLogger(__name__)

SETTINGS_FIELDS = (
    "email_reminders",
    "reminder_time",
    "reminder_frequency",
    "custom_days",
    "deadline_warnings",
    "weekly_digest",
    "custom_reminders",
)


def serialize_settings(settings: NotificationSettings) -> Dict[str, Any]:
    data = settings.model_dump(mode="json")
    data["custom_reminders"] = [
        {"id": r.rule_id, "value": r.value, "unit": r.unit.value}
        for r in settings.custom_reminders
    ]
    return data


class NotificationService:
    @staticmethod
    async def get_settings(current_user: User) -> Dict[str, Any]:
        return {"settings": serialize_settings(current_user.notification_settings)}

    @staticmethod
    async def update_settings(updates: Dict[str, Any], current_user: User) -> Dict[str, Any]:
        """Merge allow-listed fields into the user's notification settings"""
        changes = {k: v for k, v in updates.items() if k in SETTINGS_FIELDS and v is not None}
        if not changes:
            raise ValidationError("No valid fields to update")

        merged = current_user.notification_settings.model_dump()
        merged.update(changes)
        try:
            new_settings = NotificationSettings(**merged)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid notification settings: {e.errors()[0]['msg']}")

        if any(day < 0 or day > 6 for day in new_settings.custom_days):
            raise ValidationError("custom_days must be between 0 (Sunday) and 6")

        # Stored rules always carry an explicit id
        for rule in new_settings.custom_reminders:
            rule.id = rule.rule_id

        current_user.notification_settings = new_settings
        current_user.update_timestamp()
        await current_user.save()
        logger.info(f"Notification settings updated for {current_user.id}: {sorted(changes)}")

        return {
            "message": "Notification settings updated successfully",
            "settings": serialize_settings(new_settings),
        }

    @staticmethod
    async def send_test_email(current_user: User) -> Dict[str, Any]:
        if not current_user.email:
            raise ValidationError("No email address on file")

        sent = await EmailService.send_test_email(current_user.email)
        if not sent:
            raise ExternalFetchError("Failed to send test email")

        return {"message": f"Test email sent to {current_user.email}"}