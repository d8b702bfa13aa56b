"""
Study plan service for plan CRUD and listing
"""

import logging
import re
from typing import Any, Dict, List, Optional

from bson import ObjectId

from ..errors import AuthError, PermissionDeniedError, ValidationError
from ..input_sanitizer import InputSanitizer
from ..models.resource import Resource
from ..models.study_plan import StudyPlan
from ..models.user import User
from ..utils import batch_get, get_or_404, is_object_id, paginate_query
from . import permissions
from .progress import total_time
from .resource_service import serialize_resource
from .sharing_service import serialize_share

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "title",
    "short_description",
    "full_description",
    "course_code",
    "is_public",
    "resource_ids",
)

SORT_OPTIONS = {
    "newest": [("created_at", -1)],
    "popular": [("instance_count", -1), ("created_at", -1)],
}


def serialize_creator(user: Optional[User]) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    return {
        "id": str(user.id),
        "display_name": user.display_name,
        "email": user.email,
        "photo_url": user.photo_url,
    }


def serialize_plan(plan: StudyPlan, **extra) -> Dict[str, Any]:
    data = {
        "id": str(plan.id),
        "title": plan.title,
        "short_description": plan.short_description,
        "full_description": plan.full_description,
        "course_code": plan.course_code,
        "resource_ids": plan.resource_ids,
        "resource_count": len(plan.resource_ids),
        "created_by": plan.created_by,
        "shared_with": [serialize_share(s) for s in plan.shared_with],
        "is_public": plan.is_public,
        # Counters can drift below zero under concurrent deletes
        "instance_count": max(0, plan.instance_count),
        "view_count": max(0, plan.view_count),
        "last_modified_by": plan.last_modified_by,
        "last_modified_at": plan.last_modified_at,
        "created_at": plan.created_at,
        "updated_at": plan.updated_at,
    }
    data.update(extra)
    return data


class StudyPlanService:
    """Service class for study plan operations"""

    @staticmethod
    async def create_plan(plan_data: Dict[str, Any], current_user: User) -> Dict[str, Any]:
        """
        Create a new study plan owned by the current user

        Args:
            plan_data: title, short_description, course_code, full_description, is_public
            current_user: Plan creator

        Returns:
            Dictionary with the created plan
        """
        title = InputSanitizer.sanitize_text(plan_data.get("title"))
        short_description = InputSanitizer.sanitize_text(plan_data.get("short_description"))
        course_code = InputSanitizer.sanitize_text(plan_data.get("course_code"))

        if not title or not short_description or not course_code:
            raise ValidationError(
                "Title, short description, and course code are required"
            )

        user_id = str(current_user.id)
        plan = StudyPlan(
            title=title,
            short_description=short_description,
            full_description=InputSanitizer.sanitize_html(plan_data.get("full_description")),
            course_code=course_code,
            is_public=bool(plan_data.get("is_public", False)),
            created_by=user_id,
            last_modified_by=user_id,
        )
        await plan.insert()
        logger.info(f"Study plan {plan.id} created by {user_id}")

        return {
            "message": "Study plan created successfully",
            "study_plan": serialize_plan(plan, created_by=serialize_creator(current_user)),
        }

    @staticmethod
    async def list_plans(
        view: str = "public",
        search: Optional[str] = None,
        course_code: Optional[str] = None,
        sort: str = "newest",
        page: int = 1,
        limit: int = 9,
        current_user: Optional[User] = None,
    ) -> Dict[str, Any]:
        """
        List public plans, or the caller's own and shared plans

        Args:
            view: "public" or "my"
            search: Case-insensitive match on title and descriptions
            course_code: Case-insensitive course code match
            sort: newest, popular or shortest
            page: Page number
            limit: Items per page
            current_user: Required for view="my"

        Returns:
            Dictionary with plans and pagination info
        """
        if view == "my":
            if current_user is None:
                raise AuthError("Authentication required")
            clauses: List[Dict[str, Any]] = [{
                "$or": [
                    {"created_by": str(current_user.id)},
                    {"shared_with.user_id": str(current_user.id)},
                    {"shared_with.email": current_user.email.lower()},
                ]
            }]
        elif view == "public":
            clauses = [{"is_public": True}]
        else:
            raise ValidationError("view must be 'public' or 'my'")

        if search:
            pattern = re.escape(search)
            clauses.append({
                "$or": [
                    {"title": {"$regex": pattern, "$options": "i"}},
                    {"short_description": {"$regex": pattern, "$options": "i"}},
                    {"full_description": {"$regex": pattern, "$options": "i"}},
                ]
            })

        if course_code:
            clauses.append(
                {"course_code": {"$regex": re.escape(course_code), "$options": "i"}}
            )

        query_filters = clauses[0] if len(clauses) == 1 else {"$and": clauses}

        if sort == "shortest":
            # Resource count is not stored, so sort the matches in memory
            plans = await StudyPlan.find(query_filters).sort([("created_at", -1)]).to_list()
            plans.sort(key=lambda p: len(p.resource_ids))
            total = len(plans)
            start = (page - 1) * limit
            plans = plans[start:start + limit]
            total_pages = (total + limit - 1) // limit
            pagination = {
                "current_page": page,
                "total_pages": total_pages,
                "total": total,
                "limit": limit,
                "has_next_page": page < total_pages,
                "has_prev_page": page > 1,
            }
        else:
            plans, pagination = await paginate_query(
                StudyPlan,
                query_filters,
                SORT_OPTIONS.get(sort, SORT_OPTIONS["newest"]),
                page=page,
                limit=limit,
            )

        creators = await batch_get(User, list({p.created_by for p in plans}))
        resources = await batch_get(
            Resource, list({rid for p in plans for rid in p.resource_ids})
        )

        return {
            "plans": [
                serialize_plan(
                    plan,
                    created_by=serialize_creator(creators.get(plan.created_by)),
                    total_time=total_time(
                        resources[rid] for rid in plan.resource_ids if rid in resources
                    ),
                )
                for plan in plans
            ],
            "pagination": pagination,
        }

    @staticmethod
    async def get_plan(plan_id: str, current_user: Optional[User]) -> Dict[str, Any]:
        """Plan details with resources in plan order; counts a view on public plans"""
        plan = await get_or_404(StudyPlan, plan_id, "Study plan")

        if not permissions.can_view(plan, current_user):
            raise PermissionDeniedError("Access denied")

        if plan.is_public:
            await StudyPlan.find_one({"_id": plan.id}).update({"$inc": {"view_count": 1}})
            plan.view_count += 1

        creator = (
            await User.get(ObjectId(plan.created_by))
            if is_object_id(plan.created_by)
            else None
        )
        found = await batch_get(Resource, plan.resource_ids)
        resources = [found[rid] for rid in plan.resource_ids if rid in found]

        return serialize_plan(
            plan,
            created_by=serialize_creator(creator),
            resources=[serialize_resource(r) for r in resources],
            total_time=total_time(resources),
            can_edit=permissions.can_edit(plan, current_user),
            is_creator=permissions.is_creator(plan, current_user),
        )

    @staticmethod
    async def update_plan(
        plan_id: str, updates: Dict[str, Any], current_user: User
    ) -> Dict[str, Any]:
        """Edit a plan; existing instances keep their own resource snapshot"""
        plan = await get_or_404(StudyPlan, plan_id, "Study plan")

        if not permissions.can_edit(plan, current_user):
            raise PermissionDeniedError(
                "You do not have permission to edit this study plan"
            )

        changes = {}
        for field in UPDATABLE_FIELDS:
            value = updates.get(field)
            if value is None:
                continue

            if field in ("title", "short_description", "course_code"):
                value = InputSanitizer.sanitize_text(value)
                if not value:
                    raise ValidationError(f"{field} cannot be empty")
            elif field == "full_description":
                value = InputSanitizer.sanitize_html(value)
            elif field == "is_public":
                if not permissions.is_creator(plan, current_user):
                    raise PermissionDeniedError(
                        "Only the creator can change plan visibility"
                    )
                value = bool(value)
            elif field == "resource_ids":
                value = list(dict.fromkeys(v for v in value if is_object_id(v)))

            setattr(plan, field, value)
            changes[field] = str(value) if not isinstance(value, list) else "updated"

        if changes:
            plan.touch(str(current_user.id))
            # $set only the edited fields so concurrent counter $inc are kept
            set_doc = {field: getattr(plan, field) for field in changes}
            set_doc.update(
                last_modified_by=plan.last_modified_by,
                last_modified_at=plan.last_modified_at,
                updated_at=plan.updated_at,
            )
            await StudyPlan.find_one({"_id": plan.id}).update({"$set": set_doc})
            return {
                "message": "Study plan updated successfully",
                "study_plan": serialize_plan(plan),
                "changes": changes,
            }

        return {
            "message": "No changes to apply",
            "study_plan": serialize_plan(plan),
        }

    @staticmethod
    async def delete_plan(plan_id: str, current_user: User) -> Dict[str, Any]:
        """Delete a plan; only its creator may. Instances keep their snapshot."""
        plan = await get_or_404(StudyPlan, plan_id, "Study plan")

        if not permissions.is_creator(plan, current_user):
            raise PermissionDeniedError("Only the creator can delete this study plan")

        await plan.delete()
        logger.info(f"Study plan {plan_id} deleted by {current_user.id}")

        return {"message": "Study plan deleted successfully"}
