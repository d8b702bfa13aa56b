"""
Collaborator management for study plans
"""

import logging
from typing import Any, Dict

from bson import ObjectId

from ..errors import NotFoundError, PermissionDeniedError, ValidationError
from ..input_sanitizer import InputSanitizer
from ..models.enums import ShareRole
from ..models.study_plan import SharedWith, StudyPlan
from ..models.user import User
from ..utils import get_or_404, is_object_id
from . import permissions
from .email_service import EmailService

logger = logging.getLogger(__name__)


def serialize_share(entry: SharedWith) -> Dict[str, Any]:
    return {
        "email": entry.email,
        "role": entry.role.value,
        "user_id": entry.user_id,
        "shared_at": entry.shared_at,
    }


class SharingService:
    """Service class for plan sharing operations"""

    @staticmethod
    async def share_plan(
        plan_id: str, email: str, role: ShareRole, current_user: User
    ) -> Dict[str, Any]:
        """
        Share a plan with an email address

        Args:
            plan_id: Study plan ID
            email: Invitee email, compared case-insensitively
            role: viewer or editor
            current_user: Creator or editor sharing the plan

        Returns:
            Dictionary with the new share entry
        """
        normalized = InputSanitizer.normalize_email(email)
        if not normalized:
            raise ValidationError("A valid email is required")

        plan = await get_or_404(StudyPlan, plan_id, "Study plan")

        if not permissions.can_edit(plan, current_user):
            raise PermissionDeniedError(
                "You do not have permission to share this study plan"
            )
        if not permissions.can_share(plan, current_user, role):
            raise PermissionDeniedError(
                "You cannot grant a role higher than your own"
            )

        creator = (
            await User.get(ObjectId(plan.created_by))
            if is_object_id(plan.created_by)
            else None
        )
        if creator and creator.email.lower() == normalized:
            raise ValidationError("Cannot share with the creator")

        if any(s.email.lower() == normalized for s in plan.shared_with):
            raise ValidationError("Study plan already shared with this user")

        target = await User.find_one({"email": normalized})
        if target and str(target.id) == plan.created_by:
            raise ValidationError("Cannot share with the creator")

        entry = SharedWith(
            email=normalized,
            role=role,
            user_id=str(target.id) if target else None,
        )
        # The email condition keeps concurrent shares from adding a second entry
        result = await StudyPlan.find_one(
            {"_id": plan.id, "shared_with.email": {"$ne": normalized}}
        ).update({"$push": {"shared_with": serialize_share(entry)}})
        if not result or result.modified_count == 0:
            raise ValidationError("Study plan already shared with this user")
        logger.info(f"Plan {plan_id} shared with {normalized} as {role.value}")

        # Invitation delivery never fails the share itself
        try:
            sent = await EmailService.send_share_invitation(
                normalized,
                current_user.display_name or current_user.email,
                plan.title,
                str(plan.id),
                role.value,
            )
            if not sent:
                logger.warning(f"Share invitation email to {normalized} was not sent")
        except Exception:
            logger.exception(f"Share invitation email to {normalized} failed")

        return {
            "message": "Study plan shared successfully",
            "share": serialize_share(entry),
        }

    @staticmethod
    async def remove_collaborator(plan_id: str, target: str, current_user: User) -> Dict[str, Any]:
        """Remove a share entry matched by user id or by email"""
        plan = await get_or_404(StudyPlan, plan_id, "Study plan")

        if not permissions.is_creator(plan, current_user) and permissions.find_share(
            plan, current_user
        ) is None:
            raise PermissionDeniedError(
                "You do not have permission to remove collaborators"
            )

        target_email = target.strip().lower()
        entry = next(
            (
                s
                for s in plan.shared_with
                if (is_object_id(target) and s.user_id == target)
                or s.email.lower() == target_email
            ),
            None,
        )
        if entry is None:
            raise NotFoundError("Shared access not found")

        if not permissions.can_remove_collaborator(plan, current_user, entry):
            raise PermissionDeniedError(
                "You do not have permission to remove this collaborator"
            )

        await StudyPlan.find_one({"_id": plan.id}).update(
            {"$pull": {"shared_with": {"email": entry.email}}}
        )
        logger.info(f"Removed {entry.email} from plan {plan_id}")

        return {"message": "Collaborator removed successfully"}

    @staticmethod
    async def claim_pending_shares(user: User) -> int:
        """Fill in ``user_id`` on share entries addressed to a new user's email"""
        if not user.email:
            return 0

        result = await StudyPlan.find(
            {"shared_with": {"$elemMatch": {"email": user.email, "user_id": None}}}
        ).update(
            {"$set": {"shared_with.$[entry].user_id": str(user.id)}},
            array_filters=[{"entry.email": user.email, "entry.user_id": None}],
        )

        claimed = result.modified_count if result else 0
        if claimed:
            logger.info(f"Claimed pending shares on {claimed} plan(s) for {user.email}")
        return claimed
