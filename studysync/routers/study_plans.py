"""
Study plan endpoints: CRUD, listing and sharing
"""

import logging
from typing import Optional, Dict, Any

from fastapi import APIRouter, Depends, Query, status

from ..dependencies import get_current_user, get_current_user_optional, ensure_db
from ..errors import AppError, InternalError
from ..models.user import User
from ..services.sharing_service import SharingService
from ..services.study_plan_service import StudyPlanService
from .schemas import StudyPlanCreateRequest, StudyPlanUpdateRequest, ShareRequest

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/study-plans",
    tags=["Study Plans"],
    dependencies=[Depends(ensure_db)],
)


@router.get(
    "",
    response_model=Dict[str, Any],
    summary="List study plans",
    description="Public plans, or the caller's own and shared plans with view=my",
)
async def list_study_plans(
    view: str = Query("public", description="public or my"),
    search: Optional[str] = Query(None, description="Search title and descriptions"),
    course_code: Optional[str] = Query(None, alias="courseCode"),
    sort: str = Query("newest", description="newest, popular or shortest"),
    page: int = Query(1, ge=1),
    limit: int = Query(9, ge=1, le=100),
    current_user: Optional[User] = Depends(get_current_user_optional),
):
    return await StudyPlanService.list_plans(
        view=view,
        search=search,
        course_code=course_code,
        sort=sort,
        page=page,
        limit=limit,
        current_user=current_user,
    )


@router.post("", status_code=status.HTTP_201_CREATED, response_model=Dict[str, Any])
async def create_study_plan(
    plan_data: StudyPlanCreateRequest,
    current_user: User = Depends(get_current_user),
):
    """Create a new study plan"""
    try:
        return await StudyPlanService.create_plan(plan_data.model_dump(), current_user)
    except AppError:
        raise
    except Exception:
        logger.exception("Error creating study plan")
        raise InternalError("Failed to create study plan")


@router.get("/{plan_id}", response_model=Dict[str, Any])
async def get_study_plan(
    plan_id: str,
    current_user: Optional[User] = Depends(get_current_user_optional),
):
    """Get plan details with its resources in plan order"""
    return await StudyPlanService.get_plan(plan_id, current_user)


@router.put("/{plan_id}", response_model=Dict[str, Any])
async def update_study_plan(
    plan_id: str,
    updates: StudyPlanUpdateRequest,
    current_user: User = Depends(get_current_user),
):
    """Update a study plan (creator or editor)"""
    try:
        return await StudyPlanService.update_plan(
            plan_id, updates.model_dump(exclude_unset=True), current_user
        )
    except AppError:
        raise
    except Exception:
        logger.exception(f"Error updating study plan {plan_id}")
        raise InternalError("Failed to update study plan")


@router.delete("/{plan_id}", response_model=Dict[str, Any])
async def delete_study_plan(
    plan_id: str,
    current_user: User = Depends(get_current_user),
):
    """Delete a study plan (creator only)"""
    return await StudyPlanService.delete_plan(plan_id, current_user)


@router.post("/{plan_id}/share", response_model=Dict[str, Any])
async def share_study_plan(
    plan_id: str,
    share_data: ShareRequest,
    current_user: User = Depends(get_current_user),
):
    """Share a plan with an email address as viewer or editor"""
    return await SharingService.share_plan(
        plan_id, share_data.email, share_data.role, current_user
    )


@router.delete("/{plan_id}/share/{target}", response_model=Dict[str, Any])
async def remove_collaborator(
    plan_id: str,
    target: str,
    current_user: User = Depends(get_current_user),
):
    """Remove a collaborator by user ID or email"""
    return await SharingService.remove_collaborator(plan_id, target, current_user)
