"""Faculty assigned-classes cache: read with drift repair, explicit rebuild."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import faculty_and_above, hod_and_above
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.db.session import get_db

from app.api.v1.class_assignments import service
from app.api.v1.class_assignments.schemas import FacultyCacheResponse

router = APIRouter(prefix="/api/v1/faculty", tags=["faculty"])


@router.get("/{faculty_id}/assigned-classes", response_model=FacultyCacheResponse)
async def get_assigned_classes(
    faculty_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(faculty_and_above),
):
    try:
        return await service.get_assigned_classes(db, current_user, faculty_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.post("/{faculty_id}/assigned-classes/rebuild", response_model=FacultyCacheResponse)
async def rebuild_assigned_classes(
    faculty_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(hod_and_above),
):
    try:
        return await service.rebuild_assigned_classes(db, current_user, faculty_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
