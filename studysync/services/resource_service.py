"""
Resource normalization and resource CRUD.

A resource is keyed by its URL and shared by every plan that references
it, so creating one is always "find by URL, else insert".
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pymongo.errors import BulkWriteError, DuplicateKeyError

from ..errors import NotFoundError, PermissionDeniedError, ValidationError
from ..input_sanitizer import InputSanitizer
from ..models.enums import ResourceType
from ..models.resource import Resource
from ..models.study_plan import StudyPlan
from ..models.user import User
from ..utils import batch_get, get_or_404
from . import permissions
from .progress import DEFAULT_MINS_PER_PAGE, resource_duration
from .youtube_service import (
    YouTubeService,
    canonical_video_url,
    extract_playlist_id,
    extract_video_id,
)

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("title", "description", "metadata")


@dataclass
class NormalizedResource:
    resource: Resource
    is_new: bool


def serialize_resource(resource: Resource, **extra) -> Dict[str, Any]:
    data = {
        "id": str(resource.id),
        "type": resource.type.value,
        "title": resource.title,
        "url": resource.url,
        "description": resource.description,
        "metadata": resource.metadata,
        "total_time": resource_duration(resource),
        "added_by": resource.added_by,
        "created_at": resource.created_at,
        "updated_at": resource.updated_at,
    }
    data.update(extra)
    return data


def _positive_number(value: Any, field: str, integer: bool = False):
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required")
    try:
        number = int(value) if integer else float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")
    if number <= 0:
        raise ValidationError(f"{field} must be greater than 0")
    if not integer and number.is_integer():
        number = int(number)
    return number


class ResourceService:
    """Service class for resource normalization and CRUD"""

    @staticmethod
    def parse_type(raw_type: Any) -> ResourceType:
        try:
            return ResourceType(raw_type)
        except ValueError:
            raise ValidationError(f"Unsupported resource type: {raw_type}")

    @staticmethod
    async def _insert_or_existing(resource: Resource) -> NormalizedResource:
        """Insert, falling back to the stored copy if another request won the race"""
        try:
            await resource.insert()
            return NormalizedResource(resource, True)
        except DuplicateKeyError:
            existing = await Resource.find_one({"url": resource.url})
            if existing is None:
                raise
            return NormalizedResource(existing, False)

    @staticmethod
    def build_metadata(rtype: ResourceType, data: Dict[str, Any]) -> Dict[str, Any]:
        """Validate the type-specific inputs of a non-YouTube resource"""
        title = InputSanitizer.sanitize_text(data.get("title"))
        url = data["url"]

        if rtype == ResourceType.PDF:
            if not title:
                raise ValidationError("Title is required for PDF resources")
            pages = _positive_number(data.get("pages"), "pages", integer=True)
            mins_per_page = data.get("mins_per_page")
            mins_per_page = (
                DEFAULT_MINS_PER_PAGE
                if mins_per_page is None
                else _positive_number(mins_per_page, "mins_per_page")
            )
            return {"title": title, "metadata": {"pages": pages, "mins_per_page": mins_per_page}}

        if rtype == ResourceType.ARTICLE:
            if not title:
                raise ValidationError("Title is required for article resources")
            estimated = _positive_number(data.get("estimated_mins"), "estimated_mins")
            return {"title": title, "metadata": {"estimated_mins": estimated}}

        # google-drive / custom-link
        metadata = {}
        if data.get("estimated_mins") is not None:
            metadata["estimated_mins"] = _positive_number(
                data["estimated_mins"], "estimated_mins"
            )
        return {"title": title or url, "metadata": metadata}

    @staticmethod
    async def _normalize_video(data: Dict[str, Any], user: Optional[User]) -> NormalizedResource:
        video_id = extract_video_id(data["url"])
        if not video_id:
            raise ValidationError("Invalid YouTube video URL")

        url = canonical_video_url(video_id)
        existing = await Resource.find_one({"url": {"$in": [url, data["url"]]}})
        if existing:
            return NormalizedResource(existing, False)

        meta = await YouTubeService.get_video_metadata(url)
        resource = Resource(
            type=ResourceType.YOUTUBE_VIDEO,
            title=InputSanitizer.sanitize_text(data.get("title")) or meta["title"],
            url=url,
            description=InputSanitizer.sanitize_html(data.get("description")),
            metadata={
                "duration": meta["duration"],
                "video_id": meta["video_id"],
                "thumbnail_url": meta["thumbnail_url"],
            },
            added_by=str(user.id) if user else None,
        )
        return await ResourceService._insert_or_existing(resource)

    @staticmethod
    async def _normalize_playlist(data: Dict[str, Any], user: Optional[User]) -> List[NormalizedResource]:
        if not extract_playlist_id(data["url"]):
            raise ValidationError("Invalid YouTube playlist URL")

        # Any fetch failure propagates before anything is written
        videos = await YouTubeService.get_playlist_videos(data["url"])

        ordered_urls: List[str] = []
        by_url: Dict[str, Dict[str, Any]] = {}
        for video in videos:
            if video["url"] not in by_url:
                ordered_urls.append(video["url"])
                by_url[video["url"]] = video

        existing = {
            r.url: r for r in await Resource.find({"url": {"$in": ordered_urls}}).to_list()
        }

        added_by = str(user.id) if user else None
        new_resources = [
            Resource(
                type=ResourceType.YOUTUBE_VIDEO,
                title=by_url[url]["title"],
                url=url,
                metadata={
                    "duration": by_url[url]["duration"],
                    "video_id": by_url[url]["video_id"],
                    "thumbnail_url": by_url[url]["thumbnail_url"],
                },
                added_by=added_by,
            )
            for url in ordered_urls
            if url not in existing
        ]

        created: Dict[str, Resource] = {}
        if new_resources:
            taken = set()
            try:
                await Resource.insert_many(new_resources, ordered=False)
            except BulkWriteError as e:
                # A concurrent import stored some of the same videos first
                errors = e.details.get("writeErrors", [])
                if any(err.get("code") != 11000 for err in errors):
                    raise
                taken = {new_resources[err["index"]].url for err in errors}

            # insert_many does not hand ids back to the models
            stored = await Resource.find(
                {"url": {"$in": [r.url for r in new_resources]}}
            ).to_list()
            for resource in stored:
                if resource.url in taken:
                    existing[resource.url] = resource
                else:
                    created[resource.url] = resource

        logger.info(
            f"Playlist import: {len(created)} new, {len(existing)} existing videos"
        )

        # Results follow playlist order regardless of which were new
        results = []
        for url in ordered_urls:
            if url in created:
                results.append(NormalizedResource(created[url], True))
            else:
                results.append(NormalizedResource(existing[url], False))
        return results

    @staticmethod
    async def normalize(data: Dict[str, Any], user: Optional[User] = None) -> List[NormalizedResource]:
        """
        Turn an external URL and type into canonical resource records

        Args:
            data: type, url and optional title/pages/mins_per_page/estimated_mins
            user: user adding the resource

        Returns:
            One entry per resource; playlists yield one entry per video
        """
        rtype = ResourceService.parse_type(data.get("type"))
        url = InputSanitizer.sanitize_url(data.get("url"))
        if not url:
            raise ValidationError("A valid http(s) URL is required")
        data = {**data, "url": url}

        if rtype == ResourceType.YOUTUBE_VIDEO:
            return [await ResourceService._normalize_video(data, user)]
        if rtype == ResourceType.YOUTUBE_PLAYLIST:
            return await ResourceService._normalize_playlist(data, user)

        built = ResourceService.build_metadata(rtype, data)

        existing = await Resource.find_one({"url": url})
        if existing:
            return [NormalizedResource(existing, False)]

        resource = Resource(
            type=rtype,
            title=built["title"],
            url=url,
            description=InputSanitizer.sanitize_html(data.get("description")),
            metadata=built["metadata"],
            added_by=str(user.id) if user else None,
        )
        return [await ResourceService._insert_or_existing(resource)]

    @staticmethod
    async def create_resources(
        data: Dict[str, Any], current_user: User, study_plan_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Normalize resources and optionally append them to a plan"""
        plan = None
        if study_plan_id:
            plan = await get_or_404(StudyPlan, study_plan_id, "Study plan")
            if not permissions.can_edit(plan, current_user):
                raise PermissionDeniedError(
                    "You do not have permission to add resources to this study plan"
                )

        results = await ResourceService.normalize(data, current_user)

        if plan is not None:
            await ResourceService.attach_to_plan(
                plan, [str(r.resource.id) for r in results], current_user
            )

        return {
            "message": "Resources processed successfully",
            "resources": [
                serialize_resource(r.resource, is_new=r.is_new) for r in results
            ],
            "created_count": sum(1 for r in results if r.is_new),
        }

    @staticmethod
    async def attach_to_plan(plan: StudyPlan, resource_ids: List[str], current_user: User) -> None:
        """Append resource ids to a plan, skipping ones it already lists"""
        plan.touch(str(current_user.id))
        await StudyPlan.find_one({"_id": plan.id}).update(
            {
                "$addToSet": {"resource_ids": {"$each": resource_ids}},
                "$set": {
                    "last_modified_by": plan.last_modified_by,
                    "last_modified_at": plan.last_modified_at,
                    "updated_at": plan.updated_at,
                },
            }
        )

    @staticmethod
    async def list_plan_resources(study_plan_id: str, current_user: Optional[User]) -> Dict[str, Any]:
        plan = await get_or_404(StudyPlan, study_plan_id, "Study plan")
        if not permissions.can_view(plan, current_user):
            raise PermissionDeniedError("Access denied")

        found = await batch_get(Resource, plan.resource_ids)
        return {
            "resources": [
                serialize_resource(found[rid]) for rid in plan.resource_ids if rid in found
            ]
        }

    @staticmethod
    async def _referencing_plans(resource: Resource) -> List[StudyPlan]:
        return await StudyPlan.find({"resource_ids": str(resource.id)}).to_list()

    @staticmethod
    async def get_resource(resource_id: str, current_user: Optional[User]) -> Dict[str, Any]:
        resource = await get_or_404(Resource, resource_id, "Resource")
        plans = await ResourceService._referencing_plans(resource)

        allowed = any(permissions.can_view(p, current_user) for p in plans) or (
            current_user is not None
            and (current_user.is_admin or resource.added_by == str(current_user.id))
        )
        if not allowed:
            raise PermissionDeniedError("Access denied")

        return serialize_resource(resource)

    @staticmethod
    async def update_resource(
        resource_id: str, updates: Dict[str, Any], current_user: User
    ) -> Dict[str, Any]:
        """Edit a shared resource; any editor of a referencing plan may do so"""
        resource = await get_or_404(Resource, resource_id, "Resource")
        plans = await ResourceService._referencing_plans(resource)

        allowed = any(permissions.can_edit(p, current_user) for p in plans) or (
            not plans and resource.added_by == str(current_user.id)
        ) or current_user.is_admin
        if not allowed:
            raise PermissionDeniedError("You do not have permission to edit this resource")

        changes = {}
        for field in UPDATABLE_FIELDS:
            value = updates.get(field)
            if value is None:
                continue
            if field == "title":
                value = InputSanitizer.sanitize_text(value)
                if not value:
                    raise ValidationError("Title cannot be empty")
            elif field == "description":
                value = InputSanitizer.sanitize_html(value)
            elif field == "metadata":
                value = {**resource.metadata, **value}
            setattr(resource, field, value)
            changes[field] = "updated"

        if changes:
            resource.update_timestamp()
            await resource.save()

        return {
            "message": "Resource updated successfully" if changes else "No changes to apply",
            "resource": serialize_resource(resource),
        }

    @staticmethod
    async def delete_resource(
        resource_id: str, current_user: User, study_plan_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Remove a resource from a plan, deleting the record once no plan uses it

        The plan creator detaches it from their plan. An admin without a
        plan id removes it everywhere.
        """
        resource = await get_or_404(Resource, resource_id, "Resource")
        rid = str(resource.id)

        if study_plan_id:
            plan = await get_or_404(StudyPlan, study_plan_id, "Study plan")
            if rid not in plan.resource_ids:
                raise NotFoundError("Resource is not part of this study plan")
            if not (permissions.is_creator(plan, current_user) or current_user.is_admin):
                raise PermissionDeniedError("Only the creator can delete resources")
            targets = [plan]
        elif current_user.is_admin:
            targets = await ResourceService._referencing_plans(resource)
        else:
            raise ValidationError("studyPlanId query parameter is required")

        for plan in targets:
            plan.touch(str(current_user.id))
            await StudyPlan.find_one({"_id": plan.id}).update(
                {
                    "$pull": {"resource_ids": rid},
                    "$set": {
                        "last_modified_by": plan.last_modified_by,
                        "last_modified_at": plan.last_modified_at,
                        "updated_at": plan.updated_at,
                    },
                }
            )

        still_used = await StudyPlan.find({"resource_ids": rid}).count()
        if still_used == 0:
            await resource.delete()
            logger.info(f"Deleted resource {rid}")
            return {"message": "Resource deleted successfully", "deleted": True}

        return {"message": "Resource removed from study plan", "deleted": False}

    @staticmethod
    async def bulk_get(ids: List[str]) -> List[Dict[str, Any]]:
        """Resources for the requested ids, in request order; unknown ids skipped"""
        found = await batch_get(Resource, ids)
        return [serialize_resource(found[rid]) for rid in ids if rid in found]
