"""
Study plan instance endpoints
"""

from typing import Optional, Dict, Any

from fastapi import APIRouter, Depends, Query, status

from ..dependencies import get_current_user, ensure_db
from ..models.user import User
from ..services.instance_service import InstanceService
from .schemas import InstanceCreateRequest, InstanceUpdateRequest

router = APIRouter(
    prefix="/api/instances",
    tags=["Instances"],
    dependencies=[Depends(ensure_db)],
)


@router.get("", response_model=Dict[str, Any])
async def list_instances(
    status_filter: Optional[str] = Query(None, alias="status"),
    study_plan_id: Optional[str] = Query(None, alias="studyPlanId"),
    current_user: User = Depends(get_current_user),
):
    """The caller's instances with aggregated progress"""
    return await InstanceService.list_instances(current_user, status_filter, study_plan_id)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=Dict[str, Any])
async def create_instance(
    instance_data: InstanceCreateRequest,
    current_user: User = Depends(get_current_user),
):
    """Start a personal run of a study plan"""
    return await InstanceService.create_instance(
        instance_data.model_dump(exclude_unset=True), current_user
    )


@router.get("/{instance_id}", response_model=Dict[str, Any])
async def get_instance(
    instance_id: str,
    current_user: User = Depends(get_current_user),
):
    return await InstanceService.get_instance(instance_id, current_user)


@router.put("/{instance_id}", response_model=Dict[str, Any])
async def update_instance(
    instance_id: str,
    updates: InstanceUpdateRequest,
    current_user: User = Depends(get_current_user),
):
    return await InstanceService.update_instance(
        instance_id, updates.model_dump(exclude_unset=True), current_user
    )


@router.delete("/{instance_id}", response_model=Dict[str, Any])
async def delete_instance(
    instance_id: str,
    current_user: User = Depends(get_current_user),
):
    return await InstanceService.delete_instance(instance_id, current_user)
