"""
Resource endpoints
"""

import logging
from typing import Optional, Dict, Any

from fastapi import APIRouter, Depends, Query, status

from ..dependencies import get_current_user, get_current_user_optional, ensure_db
from ..errors import AppError, InternalError
from ..models.user import User
from ..services.resource_service import ResourceService
from ..utils import parse_csv_ids
from .schemas import ResourceCreateRequest, ResourceUpdateRequest

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/resources",
    tags=["Resources"],
    dependencies=[Depends(ensure_db)],
)


@router.get("", response_model=Dict[str, Any])
async def list_resources(
    study_plan_id: str = Query(..., alias="studyPlanId"),
    current_user: Optional[User] = Depends(get_current_user_optional),
):
    """Resources of a study plan, in plan order"""
    return await ResourceService.list_plan_resources(study_plan_id, current_user)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=Dict[str, Any])
async def create_resource(
    resource_data: ResourceCreateRequest,
    current_user: User = Depends(get_current_user),
):
    """
    Add a resource by URL and type

    Playlists expand into one video resource per entry. Existing
    resources with the same URL are reused.
    """
    data = resource_data.model_dump(exclude={"study_plan_id"})
    try:
        return await ResourceService.create_resources(
            data, current_user, resource_data.study_plan_id
        )
    except AppError:
        raise
    except Exception:
        logger.exception("Error creating resource")
        raise InternalError("Failed to create resource")


# Declared before /{resource_id} so "bulk" is not taken as an id
@router.get("/bulk", response_model=Dict[str, Any])
async def bulk_get_resources(ids: Optional[str] = Query(None)):
    resource_ids = parse_csv_ids(ids, "ids")
    return {"resources": await ResourceService.bulk_get(resource_ids)}


@router.get("/{resource_id}", response_model=Dict[str, Any])
async def get_resource(
    resource_id: str,
    current_user: Optional[User] = Depends(get_current_user_optional),
):
    return await ResourceService.get_resource(resource_id, current_user)


@router.put("/{resource_id}", response_model=Dict[str, Any])
async def update_resource(
    resource_id: str,
    updates: ResourceUpdateRequest,
    current_user: User = Depends(get_current_user),
):
    return await ResourceService.update_resource(
        resource_id, updates.model_dump(exclude_unset=True), current_user
    )


@router.delete("/{resource_id}", response_model=Dict[str, Any])
async def delete_resource(
    resource_id: str,
    study_plan_id: Optional[str] = Query(None, alias="studyPlanId"),
    current_user: User = Depends(get_current_user),
):
    """Remove a resource from a plan; the record goes once no plan uses it"""
    return await ResourceService.delete_resource(resource_id, current_user, study_plan_id)
