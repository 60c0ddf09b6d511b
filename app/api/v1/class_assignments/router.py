"""Class advisor assignment API. One active advisor per class.
RBAC: ADMIN any department; HOD own department; FACULTY read-only (own assignments)."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import faculty_and_above, hod_and_above
from app.auth.schemas import CurrentUser
from app.core.class_key import ClassIdentity
from app.core.enums import Department
from app.core.exceptions import ServiceError
from app.db.session import get_db

from app.api.v1.attendance.router import class_identity_query

from . import service
from .schemas import AssignmentCreate, AssignmentResponse, AssignResult

router = APIRouter(prefix="/api/v1/class-assignments", tags=["class-assignments"])


@router.post("", response_model=AssignResult, status_code=status.HTTP_201_CREATED)
async def assign_advisor(
    payload: AssignmentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(hod_and_above),
):
    """Assign a class advisor. An existing advisor of the class is deactivated and reported."""
    try:
        return await service.assign_advisor(db, current_user, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get("/current", response_model=AssignmentResponse)
async def get_current_advisor(
    identity: ClassIdentity = Depends(class_identity_query),
    department: Optional[Department] = Query(None, description="Required for admins"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(faculty_and_above),
):
    try:
        return await service.get_current_advisor(db, current_user, identity, department)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get("/faculty/{faculty_id}", response_model=List[AssignmentResponse])
async def list_faculty_assignments(
    faculty_id: UUID,
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(faculty_and_above),
):
    try:
        return await service.list_faculty_assignments(db, current_user, faculty_id, include_inactive)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get("/{assignment_id}", response_model=AssignmentResponse)
async def get_assignment(
    assignment_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(faculty_and_above),
):
    try:
        return await service.get_assignment(db, current_user, assignment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.patch("/{assignment_id}/deactivate", response_model=AssignmentResponse)
async def deactivate_assignment(
    assignment_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(hod_and_above),
):
    try:
        return await service.deactivate_assignment(db, current_user, assignment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.delete("/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_assignment(
    assignment_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(hod_and_above),
):
    try:
        await service.remove_assignment(db, current_user, assignment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
