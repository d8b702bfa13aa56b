"""
Completion ledger operations.

``UserProgress`` holds one row per (user, resource) and is the only source
of truth for completion. The ``completed_resources`` array on an instance
is a display hint that is written only for the instance a toggle came
from; every read reconciles against the ledger instead of trusting it.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from pymongo.errors import DuplicateKeyError

from ..errors import NotFoundError, PermissionDeniedError, ValidationError
from ..input_sanitizer import InputSanitizer
from ..models.base import utc_now
from ..models.instance import StudyPlanInstance
from ..models.resource import Resource
from ..models.study_plan import StudyPlan
from ..models.user import User
from ..models.user_progress import UserProgress
from ..utils import get_or_404, is_object_id, to_object_id

logger = logging.getLogger(__name__)

PROGRESS_FIELDS = ("progress", "time_spent", "notes")


def serialize_progress(row: UserProgress) -> Dict[str, Any]:
    return {
        "id": str(row.id),
        "user_id": row.user_id,
        "resource_id": row.resource_id,
        "instance_id": row.instance_id,
        "completed": row.completed,
        "completed_at": row.completed_at,
        "progress": row.progress,
        "time_spent": row.time_spent,
        "notes": row.notes,
        "last_accessed_at": row.last_accessed_at,
        "created_at": row.created_at,
        "updated_at": row.updated_at,
    }


async def load_ledger(user_id: str, resource_ids: Iterable[str]) -> Dict[str, UserProgress]:
    """Ledger rows for a user over a resource set, keyed by resource id"""
    ids = list(dict.fromkeys(resource_ids))
    if not ids:
        return {}
    rows = await UserProgress.find(
        {"user_id": user_id, "resource_id": {"$in": ids}}
    ).to_list()
    return {row.resource_id: row for row in rows}


def completed_ids(ledger: Dict[str, UserProgress]) -> set:
    return {rid for rid, row in ledger.items() if row.completed}


async def instance_resource_ids(instance: StudyPlanInstance) -> List[str]:
    """The instance's frozen snapshot, or the live plan list for legacy instances"""
    if instance.snapshot_resource_ids is not None:
        return list(instance.snapshot_resource_ids)

    plan = (
        await StudyPlan.get(to_object_id(instance.study_plan_id))
        if is_object_id(instance.study_plan_id)
        else None
    )
    return list(plan.resource_ids) if plan else []


async def get_owned_instance(instance_id: str, current_user: User, action: str = "access") -> StudyPlanInstance:
    instance = await get_or_404(StudyPlanInstance, instance_id, "Instance")
    if instance.user_id != str(current_user.id):
        raise PermissionDeniedError(f"You do not have permission to {action} this instance")
    return instance


class ProgressService:
    """Service class for completion tracking"""

    @staticmethod
    def _apply(row: UserProgress, completed: Optional[bool], fields: Dict[str, Any], now) -> None:
        if completed is not None:
            if completed and not row.completed:
                row.completed_at = now
            elif not completed:
                row.completed_at = None
            row.completed = completed

        for field in PROGRESS_FIELDS:
            if fields.get(field) is not None:
                value = fields[field]
                if field == "notes":
                    value = InputSanitizer.sanitize_html(value)
                setattr(row, field, value)

        row.last_accessed_at = now
        row.update_timestamp()

    @staticmethod
    async def upsert(
        user_id: str,
        resource_id: str,
        completed: Optional[bool],
        instance_id: Optional[str] = None,
        fields: Optional[Dict[str, Any]] = None,
    ):
        """
        Create or update the ledger row for (user, resource)

        Returns:
            Tuple of (row, created)
        """
        fields = fields or {}
        now = utc_now()

        for _ in range(2):
            row = await UserProgress.find_one(
                {"user_id": user_id, "resource_id": resource_id}
            )
            if row is not None:
                ProgressService._apply(row, completed, fields, now)
                if instance_id:
                    row.instance_id = instance_id
                await row.save()
                return row, False

            row = UserProgress(user_id=user_id, resource_id=resource_id, instance_id=instance_id)
            ProgressService._apply(row, bool(completed), fields, now)
            try:
                await row.insert()
                return row, True
            except DuplicateKeyError:
                # Lost an insert race; update the winner's row instead
                logger.info(f"Progress row for {user_id}/{resource_id} created concurrently")

        raise DuplicateKeyError(f"Could not upsert progress for {resource_id}")

    @staticmethod
    async def _sync_hint(instance: StudyPlanInstance, resource_ids: List[str], completed: bool) -> None:
        """Mirror a toggle into the originating instance's display array only"""
        if not resource_ids:
            return
        if completed:
            update = {"$addToSet": {"completed_resources": {"$each": resource_ids}}}
        else:
            update = {"$pull": {"completed_resources": {"$in": resource_ids}}}
        update["$set"] = {"updated_at": utc_now()}
        await StudyPlanInstance.find_one({"_id": instance.id}).update(update)

    @staticmethod
    async def toggle(data: Dict[str, Any], current_user: User) -> Dict[str, Any]:
        """
        Record completion or partial progress for one resource

        Args:
            data: instance_id, resource_id, completed, progress, time_spent, notes
            current_user: Owner of the instance

        Returns:
            Dictionary with the ledger row and whether it was created
        """
        instance_id = data.get("instance_id")
        resource_id = data.get("resource_id")
        if not is_object_id(instance_id) or not is_object_id(resource_id):
            raise ValidationError("Invalid instanceId or resourceId")

        instance = await get_owned_instance(instance_id, current_user, "update progress for")

        if await Resource.get(to_object_id(resource_id)) is None:
            raise NotFoundError("Resource not found")

        completed = data.get("completed")
        row, created = await ProgressService.upsert(
            str(current_user.id), resource_id, completed, instance_id, data
        )

        if completed is not None:
            await ProgressService._sync_hint(instance, [resource_id], bool(completed))

        return {
            "message": "Progress created successfully" if created else "Progress updated successfully",
            "progress": serialize_progress(row),
            "created": created,
        }

    @staticmethod
    async def bulk_toggle(
        resource_ids: List[Any], completed: bool, current_user: User, instance_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Apply the same completion to many resources; failures are per item"""
        instance = None
        if instance_id is not None:
            if not is_object_id(instance_id):
                raise ValidationError("Invalid instanceId")
            instance = await get_owned_instance(instance_id, current_user, "update progress for")

        user_id = str(current_user.id)
        results = []
        succeeded = []

        for resource_id in resource_ids:
            if not is_object_id(resource_id):
                results.append(
                    {"resource_id": resource_id, "success": False, "error": "Invalid resource ID"}
                )
                continue
            try:
                await ProgressService.upsert(user_id, resource_id, completed, instance_id)
            except Exception as e:
                logger.exception(f"Bulk progress update failed for {resource_id}")
                results.append({"resource_id": resource_id, "success": False, "error": str(e)})
                continue

            succeeded.append(resource_id)
            results.append({"resource_id": resource_id, "success": True})

        if instance is not None:
            await ProgressService._sync_hint(instance, succeeded, completed)

        return {
            "message": "Bulk update completed",
            "results": results,
            "succeeded": len(succeeded),
            "failed": len(results) - len(succeeded),
        }

    @staticmethod
    async def check(resource_ids: List[str], current_user: User) -> Dict[str, Any]:
        """Completion status per requested resource id"""
        ledger = await load_ledger(str(current_user.id), resource_ids)
        return {
            rid: {
                "completed": bool(ledger.get(rid) and ledger[rid].completed),
                "completed_at": ledger[rid].completed_at if rid in ledger else None,
            }
            for rid in resource_ids
        }

    @staticmethod
    async def list_progress(
        current_user: User, instance_id: Optional[str] = None, resource_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Ledger rows for the user

        Filtering by instance returns the rows for the instance's resource
        set, wherever they were completed.
        """
        query: Dict[str, Any] = {"user_id": str(current_user.id)}

        if instance_id:
            instance = await get_owned_instance(instance_id, current_user)
            query["resource_id"] = {"$in": await instance_resource_ids(instance)}

        if resource_id:
            if not is_object_id(resource_id):
                raise ValidationError("Invalid resource ID")
            if "resource_id" in query and resource_id not in query["resource_id"]["$in"]:
                return {"progress": []}
            query["resource_id"] = resource_id

        rows = await UserProgress.find(query).to_list()
        return {"progress": [serialize_progress(r) for r in rows]}

    @staticmethod
    async def reset_progress(current_user: User, resource_ids: Optional[List[str]] = None) -> Dict[str, Any]:
        """Delete the user's ledger rows (all, or the given resources)"""
        user_id = str(current_user.id)
        query: Dict[str, Any] = {"user_id": user_id}
        hint_update: Dict[str, Any] = {"$set": {"completed_resources": []}}

        if resource_ids is not None:
            ids = [rid for rid in resource_ids if is_object_id(rid)]
            if not ids:
                raise ValidationError("No valid resource IDs provided")
            query["resource_id"] = {"$in": ids}
            hint_update = {"$pull": {"completed_resources": {"$in": ids}}}

        result = await UserProgress.find(query).delete()
        await StudyPlanInstance.find({"user_id": user_id}).update(hint_update)

        deleted = result.deleted_count if result is not None else 0
        logger.info(f"Reset {deleted} progress row(s) for user {user_id}")
        return {"message": "Progress reset successfully", "deleted": deleted}
