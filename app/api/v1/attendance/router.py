"""Attendance API router."""

import asyncio
import json
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user, get_stream_user
from app.auth.rbac import faculty_and_above, require_roles
from app.auth.schemas import CurrentUser
from app.core.class_key import ClassIdentity
from app.core.config import settings
from app.core.enums import Department, UserRole
from app.core.exceptions import ServiceError
from app.core.notifier import AttendanceNotifier, get_notifier
from app.db.session import get_db

from . import service
from .schemas import (
    AttendanceEditRequest,
    AttendanceEditResponse,
    AttendanceMarkRequest,
    AttendanceMarkResponse,
    AttendanceRecordResponse,
    HistoryResponse,
    ReasonSubmitRequest,
    RecordUpdateRequest,
    RosterResponse,
    StudentAttendanceSummary,
)

router = APIRouter(prefix="/api/v1/attendance", tags=["attendance"])


def class_identity_query(
    batch: str = Query(..., description="Batch, e.g. 2023-2027"),
    year: str = Query(..., description="Year of study, e.g. 2nd Year"),
    semester: str = Query(..., description="Semester, e.g. Sem 3"),
    section: str = Query(..., description="Section, e.g. A"),
) -> ClassIdentity:
    try:
        return ClassIdentity(batch=batch, year=year, semester=semester, section=section)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.errors(include_url=False, include_context=False),
        )


# ----- Mark / edit -----
@router.post("/mark", response_model=AttendanceMarkResponse, status_code=status.HTTP_201_CREATED)
async def mark_attendance(
    payload: AttendanceMarkRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(faculty_and_above),
    notifier: Optional[AttendanceNotifier] = Depends(get_notifier),
):
    """First mark of today's attendance. Only absentees are listed; the rest are Present."""
    try:
        return await service.mark_attendance(db, current_user, payload, notifier)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.put("/edit", response_model=AttendanceEditResponse)
async def edit_attendance(
    payload: AttendanceEditRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(faculty_and_above),
    notifier: Optional[AttendanceNotifier] = Depends(get_notifier),
):
    """Re-apply today's absentee list. Never creates records."""
    try:
        return await service.edit_attendance(db, current_user, payload, notifier)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


# ----- Class views -----
@router.get("/roster", response_model=RosterResponse)
async def get_roster(
    identity: ClassIdentity = Depends(class_identity_query),
    department: Optional[Department] = Query(None, description="Required for admins"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(faculty_and_above),
):
    try:
        return await service.get_class_roster(db, current_user, identity, department)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get("/history", response_model=HistoryResponse)
async def get_history(
    identity: ClassIdentity = Depends(class_identity_query),
    att_date: Optional[str] = Query(None, alias="date", description="Day to view; defaults to today"),
    department: Optional[Department] = Query(None, description="Required for admins"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(faculty_and_above),
):
    """Every roster member's status for a day; NotMarked where nothing was recorded."""
    try:
        return await service.get_class_history(db, current_user, identity, att_date, department)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


# ----- Records -----
@router.patch("/reason", response_model=AttendanceRecordResponse)
async def submit_reason(
    payload: ReasonSubmitRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_roles(UserRole.STUDENT)),
):
    try:
        return await service.submit_reason(db, current_user, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.put("/records/{record_id}", response_model=AttendanceRecordResponse)
async def update_record(
    record_id: UUID,
    payload: RecordUpdateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(faculty_and_above),
    notifier: Optional[AttendanceNotifier] = Depends(get_notifier),
):
    """Correct one record: status (OnDuty included), reason, action taken."""
    try:
        return await service.update_record(db, current_user, record_id, payload, notifier)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


@router.get("/students/{student_id}", response_model=StudentAttendanceSummary)
async def get_student_attendance(
    student_id: UUID,
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        return await service.get_student_attendance(db, current_user, student_id, start_date, end_date)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


# ----- Live updates -----
def _sse(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


@router.get("/stream")
async def stream_attendance(
    request: Request,
    current_user: CurrentUser = Depends(get_stream_user),
    notifier: Optional[AttendanceNotifier] = Depends(get_notifier),
):
    """Server-sent events of the student's own attendance changes."""
    if current_user.role != UserRole.STUDENT:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only students can subscribe")
    if notifier is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Notifications unavailable")

    subscription = notifier.subscribe(current_user.id)
    heartbeat = settings.notify_heartbeat_seconds

    async def event_stream():
        try:
            yield _sse("connected", {"student_id": str(current_user.id)})
            while not subscription.closed:
                if await request.is_disconnected():
                    break
                try:
                    event = await asyncio.wait_for(subscription.queue.get(), timeout=heartbeat)
                except asyncio.TimeoutError:
                    yield ": heartbeat\n\n"
                    continue
                yield _sse("attendance", event.payload())
        finally:
            notifier.unsubscribe(subscription)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
