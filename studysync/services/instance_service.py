"""
Instance service: a user's time-boxed run of a study plan
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from ..errors import PermissionDeniedError, ValidationError
from ..input_sanitizer import InputSanitizer
from ..models.enums import InstanceStatus
from ..models.instance import StudyPlanInstance
from ..models.resource import Resource
from ..models.study_plan import StudyPlan
from ..models.user import ReminderRule, User
from ..utils import as_utc, batch_get, get_or_404, is_object_id, to_object_id
from . import permissions
from .progress import summarize
from .progress_service import (
    completed_ids,
    get_owned_instance,
    instance_resource_ids,
    load_ledger,
)
from .resource_service import serialize_resource

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "start_date",
    "end_date",
    "status",
    "progress",
    "completed_resources",
    "resource_schedule",
    "reminder_time",
    "reminder_enabled",
    "custom_reminders",
    "notes",
    "custom_title",
)


def parse_reminders(raw: Optional[List[Any]]) -> List[ReminderRule]:
    rules = []
    for item in raw or []:
        try:
            rules.append(item if isinstance(item, ReminderRule) else ReminderRule(**item))
        except (PydanticValidationError, TypeError):
            raise ValidationError("Invalid reminder rule")
    return rules


def merge_reminders(defaults: List[ReminderRule], overrides: List[ReminderRule]) -> List[ReminderRule]:
    """User defaults with instance rules replacing any rule of the same id"""
    merged = {rule.rule_id: rule for rule in defaults}
    for rule in overrides:
        merged[rule.rule_id] = rule
    return list(merged.values())


def to_storage(value: Any) -> Any:
    """Encode an updated field for a raw $set"""
    if isinstance(value, InstanceStatus):
        return value.value
    if isinstance(value, list):
        return [
            {"id": v.rule_id, "value": v.value, "unit": v.unit.value}
            if isinstance(v, ReminderRule)
            else v
            for v in value
        ]
    return value


def check_dates(start_date: datetime, end_date: datetime) -> None:
    if as_utc(start_date) >= as_utc(end_date):
        raise ValidationError("End date must be after start date")


def serialize_plan_summary(plan: Optional[StudyPlan]) -> Optional[Dict[str, Any]]:
    if plan is None:
        return None
    return {
        "id": str(plan.id),
        "title": plan.title,
        "short_description": plan.short_description,
        "course_code": plan.course_code,
    }


def serialize_instance(instance: StudyPlanInstance, **extra) -> Dict[str, Any]:
    data = {
        "id": str(instance.id),
        "user_id": instance.user_id,
        "study_plan_id": instance.study_plan_id,
        "snapshot_resource_ids": instance.snapshot_resource_ids,
        "start_date": instance.start_date,
        "end_date": instance.end_date,
        "status": instance.status.value,
        "progress": instance.progress,
        "resource_schedule": instance.resource_schedule,
        "reminder_time": instance.reminder_time,
        "reminder_enabled": instance.reminder_enabled,
        "custom_reminders": [
            {"id": r.rule_id, "value": r.value, "unit": r.unit.value}
            for r in instance.custom_reminders
        ],
        "sent_reminders": [
            {"reminder_id": s.reminder_id, "sent_at": s.sent_at}
            for s in instance.sent_reminders
        ],
        "notes": instance.notes,
        "custom_title": instance.custom_title,
        "created_at": instance.created_at,
        "updated_at": instance.updated_at,
    }
    data.update(extra)
    return data


class InstanceService:
    """Service class for study plan instances"""

    @staticmethod
    async def create_instance(data: Dict[str, Any], current_user: User) -> Dict[str, Any]:
        """
        Start a personal run of a plan

        The plan's current resource list is frozen into the instance, so
        later plan edits do not change what this run contains.

        Args:
            data: study_plan_id, start_date, end_date and optional reminder fields
            current_user: The instance owner

        Returns:
            Dictionary with the created instance
        """
        plan_id = data.get("study_plan_id")
        start_date = data.get("start_date")
        end_date = data.get("end_date")

        if not plan_id or start_date is None or end_date is None:
            raise ValidationError("Study plan, start date and end date are required")
        check_dates(start_date, end_date)

        plan = await get_or_404(StudyPlan, plan_id, "Study plan")
        if not permissions.can_view(plan, current_user):
            raise PermissionDeniedError("Access denied")

        reminders = merge_reminders(
            current_user.notification_settings.custom_reminders,
            parse_reminders(data.get("custom_reminders")),
        )

        instance = StudyPlanInstance(
            user_id=str(current_user.id),
            study_plan_id=str(plan.id),
            snapshot_resource_ids=list(plan.resource_ids),
            start_date=start_date,
            end_date=end_date,
            reminder_time=data.get("reminder_time") or "09:00",
            reminder_enabled=data.get("reminder_enabled", True),
            custom_reminders=reminders,
            resource_schedule=data.get("resource_schedule") or [],
            custom_title=InputSanitizer.sanitize_text(data.get("custom_title")),
            notes=InputSanitizer.sanitize_html(data.get("notes")),
        )
        await instance.insert()

        await StudyPlan.find_one({"_id": plan.id}).update({"$inc": {"instance_count": 1}})
        logger.info(f"Instance {instance.id} of plan {plan.id} created for {current_user.id}")

        return {
            "message": "Instance created successfully",
            "instance": serialize_instance(
                instance,
                study_plan=serialize_plan_summary(plan),
                completed_resources=0,
                completed_resource_ids=[],
            ),
        }

    @staticmethod
    async def list_instances(
        current_user: User, status: Optional[str] = None, study_plan_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """The user's instances, newest first, each with a progress summary"""
        user_id = str(current_user.id)
        query: Dict[str, Any] = {"user_id": user_id}
        if status:
            try:
                query["status"] = InstanceStatus(status).value
            except ValueError:
                raise ValidationError("Invalid status")
        if study_plan_id:
            query["study_plan_id"] = study_plan_id

        instances = await StudyPlanInstance.find(query).sort([("created_at", -1)]).to_list()

        plans = await batch_get(StudyPlan, list({i.study_plan_id for i in instances}))

        resource_sets = {}
        for instance in instances:
            ids = instance.snapshot_resource_ids
            if ids is None:
                plan = plans.get(instance.study_plan_id)
                ids = plan.resource_ids if plan else []
            resource_sets[instance.id] = list(ids)

        all_ids = {rid for ids in resource_sets.values() for rid in ids}
        resources = await batch_get(Resource, list(all_ids))
        done = completed_ids(await load_ledger(user_id, all_ids))

        results = []
        for instance in instances:
            present = [resources[rid] for rid in resource_sets[instance.id] if rid in resources]
            summary = summarize(present, done)
            results.append(
                serialize_instance(
                    instance,
                    study_plan=serialize_plan_summary(plans.get(instance.study_plan_id)),
                    completed_resource_ids=[str(r.id) for r in present if str(r.id) in done],
                    **summary.to_dict(),
                )
            )

        return {"instances": results}

    @staticmethod
    async def get_instance(instance_id: str, current_user: User) -> Dict[str, Any]:
        """Instance details with per-resource completion from the ledger"""
        instance = await get_owned_instance(instance_id, current_user)

        plan = (
            await StudyPlan.get(to_object_id(instance.study_plan_id))
            if is_object_id(instance.study_plan_id)
            else None
        )
        resource_ids = await instance_resource_ids(instance)
        found = await batch_get(Resource, resource_ids)
        resources = [found[rid] for rid in resource_ids if rid in found]

        ledger = await load_ledger(str(current_user.id), resource_ids)
        done = completed_ids(ledger)
        summary = summarize(resources, done)

        return serialize_instance(
            instance,
            study_plan=serialize_plan_summary(plan),
            resources=[
                serialize_resource(
                    r,
                    completed=str(r.id) in done,
                    completed_at=ledger[str(r.id)].completed_at
                    if str(r.id) in done
                    else None,
                )
                for r in resources
            ],
            completed_resource_ids=[str(r.id) for r in resources if str(r.id) in done],
            **summary.to_dict(),
        )

    @staticmethod
    async def update_instance(
        instance_id: str, updates: Dict[str, Any], current_user: User
    ) -> Dict[str, Any]:
        """Apply allow-listed changes; any other field is ignored"""
        instance = await get_owned_instance(instance_id, current_user, "update")

        changes = {}
        for field in UPDATABLE_FIELDS:
            if field not in updates or updates[field] is None:
                continue
            value = updates[field]

            if field == "status":
                try:
                    value = InstanceStatus(value)
                except ValueError:
                    raise ValidationError("Invalid status")
            elif field == "completed_resources":
                value = list(dict.fromkeys(v for v in value if is_object_id(v)))
            elif field == "custom_reminders":
                value = parse_reminders(value)
            elif field == "custom_title":
                value = InputSanitizer.sanitize_text(value)
            elif field == "notes":
                value = InputSanitizer.sanitize_html(value)

            setattr(instance, field, value)
            changes[field] = value

        if not changes:
            return {
                "message": "No changes to apply",
                "instance": serialize_instance(instance),
            }

        if "start_date" in changes or "end_date" in changes:
            check_dates(instance.start_date, instance.end_date)

        instance.update_timestamp()
        # $set only the edited fields so concurrent reminder and progress writes survive
        set_doc = {field: to_storage(value) for field, value in changes.items()}
        set_doc["updated_at"] = instance.updated_at
        await StudyPlanInstance.find_one({"_id": instance.id}).update({"$set": set_doc})

        return {
            "message": "Instance updated successfully",
            "instance": serialize_instance(instance),
        }

    @staticmethod
    async def delete_instance(instance_id: str, current_user: User) -> Dict[str, Any]:
        """Delete an instance; ledger rows are kept since completion is global"""
        instance = await get_owned_instance(instance_id, current_user, "delete")

        await instance.delete()
        if is_object_id(instance.study_plan_id):
            await StudyPlan.find_one({"_id": to_object_id(instance.study_plan_id)}).update(
                {"$inc": {"instance_count": -1}}
            )
        logger.info(f"Instance {instance_id} deleted by {current_user.id}")

        return {"message": "Instance deleted successfully"}
