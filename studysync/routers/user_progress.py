"""
Completion ledger endpoints
"""

from typing import Optional, Dict, Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder

from ..dependencies import get_current_user, ensure_db
from ..models.user import User
from ..services.progress_service import ProgressService
from ..utils import parse_csv_ids
from .schemas import ProgressToggleRequest, BulkProgressRequest, ProgressResetRequest

router = APIRouter(
    prefix="/api/user-progress",
    tags=["User Progress"],
    dependencies=[Depends(ensure_db)],
)


@router.get("", response_model=Dict[str, Any])
async def list_progress(
    instance_id: Optional[str] = Query(None, alias="instanceId"),
    resource_id: Optional[str] = Query(None, alias="resourceId"),
    current_user: User = Depends(get_current_user),
):
    return await ProgressService.list_progress(current_user, instance_id, resource_id)


@router.post("")
async def toggle_progress(
    progress_data: ProgressToggleRequest,
    current_user: User = Depends(get_current_user),
):
    """Mark a resource complete or incomplete, or record partial progress"""
    result = await ProgressService.toggle(progress_data.model_dump(), current_user)
    return JSONResponse(
        status_code=201 if result["created"] else 200,
        content=jsonable_encoder(result),
    )


@router.post("/bulk", response_model=Dict[str, Any])
async def bulk_toggle_progress(
    bulk_data: BulkProgressRequest,
    current_user: User = Depends(get_current_user),
):
    return await ProgressService.bulk_toggle(
        bulk_data.resource_ids,
        bulk_data.completed,
        current_user,
        bulk_data.instance_id,
    )


@router.get("/check", response_model=Dict[str, Any])
async def check_progress(
    resource_ids: Optional[str] = Query(None, alias="resourceIds"),
    current_user: User = Depends(get_current_user),
):
    """Completion status keyed by resource id"""
    ids = parse_csv_ids(resource_ids, "resourceIds")
    return await ProgressService.check(ids, current_user)


@router.delete("", response_model=Dict[str, Any])
async def reset_progress(
    reset_data: Optional[ProgressResetRequest] = None,
    current_user: User = Depends(get_current_user),
):
    """Delete the caller's progress, optionally only for some resources"""
    resource_ids = reset_data.resource_ids if reset_data else None
    return await ProgressService.reset_progress(current_user, resource_ids)
