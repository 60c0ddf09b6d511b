"""Attendance service: class scoping and authorization around the ledger engine."""

import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.schemas import CurrentUser
from app.core.class_key import ClassIdentity
from app.core.dates import ensure_today, normalize_day, utcnow
from app.core.enums import AttendanceStatus, UpdatedBy, UserRole
from app.core.exceptions import NotFound, PolicyViolation, ServiceError, Unauthorized
from app.core.models import AttendanceRecord, ClassAssignment, Student
from app.core.notifier import AttendanceEvent, AttendanceNotifier, notify_safely

from .ledger import UpsertMode, upsert_attendance
from .roster import require_roster, resolve_roster
from .schemas import (
    AttendanceEditRequest,
    AttendanceEditResponse,
    AttendanceMarkRequest,
    AttendanceMarkResponse,
    AttendanceRecordResponse,
    HistoryRecord,
    HistoryResponse,
    ReasonSubmitRequest,
    RecordUpdateRequest,
    RosterMember,
    RosterResponse,
    StudentAttendanceSummary,
)

logger = logging.getLogger(__name__)


# ----- Scope & permission helpers -----
def scope_department(current_user: CurrentUser, requested: Optional[str]) -> str:
    """Department the request acts on. Admins must name one; others act in their own."""
    requested_value = getattr(requested, "value", requested)
    if current_user.is_admin:
        if not requested_value:
            raise ServiceError("department is required", status.HTTP_400_BAD_REQUEST)
        return requested_value
    if not current_user.department:
        raise Unauthorized("Your account has no department")
    if requested_value and requested_value != current_user.department:
        raise Unauthorized("You can only access your department data")
    return current_user.department


async def is_active_advisor(db: AsyncSession, faculty_id: UUID, department: str, class_key: str) -> bool:
    """Checked against class assignments (the source of truth), never the faculty cache."""
    result = await db.execute(
        select(ClassAssignment.id).where(
            ClassAssignment.faculty_id == faculty_id,
            ClassAssignment.department == department,
            ClassAssignment.class_key == class_key,
            ClassAssignment.active.is_(True),
        ).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def ensure_can_manage_class(
    db: AsyncSession, current_user: CurrentUser, department: str, class_key: str
) -> None:
    if current_user.is_admin:
        return
    if current_user.department != department:
        raise Unauthorized("You can only manage classes in your own department")
    if current_user.role == UserRole.HOD:
        return
    if current_user.role == UserRole.FACULTY and await is_active_advisor(
        db, current_user.id, department, class_key
    ):
        return
    raise Unauthorized("You are not assigned as class advisor for this section")


def _updated_by(current_user: CurrentUser) -> UpdatedBy:
    if current_user.role == UserRole.ADMIN:
        return UpdatedBy.ADMIN
    if current_user.role == UserRole.STUDENT:
        return UpdatedBy.STUDENT
    return UpdatedBy.FACULTY


def _record_response(r: AttendanceRecord) -> AttendanceRecordResponse:
    return AttendanceRecordResponse(
        id=r.id,
        student_id=r.student_id,
        class_key=r.class_key,
        date=r.attendance_day,
        status=r.status,
        reason=r.reason,
        action_taken=r.action_taken,
        updated_by=r.updated_by,
        updated_at=r.updated_at,
    )


# ----- Mark / edit -----
async def mark_attendance(
    db: AsyncSession,
    current_user: CurrentUser,
    payload: AttendanceMarkRequest,
    notifier: Optional[AttendanceNotifier] = None,
    now: Optional[datetime] = None,
) -> AttendanceMarkResponse:
    """First mark of a class-day: one fresh record per roster member."""
    department = scope_department(current_user, payload.department)
    class_key = payload.class_key
    await ensure_can_manage_class(db, current_user, department, class_key)

    day = normalize_day(payload.date, now=now)
    ensure_today(day, now)
    roster = await require_roster(db, class_key, department)

    written = await upsert_attendance(
        db,
        roster,
        day,
        payload.absent_roll_numbers,
        faculty_id=current_user.id,
        updated_by=_updated_by(current_user),
        mode=UpsertMode.CREATE,
        now=now,
    )
    notify_safely(notifier, written.events)
    return AttendanceMarkResponse(
        class_key=class_key,
        date=day,
        total_students=written.roster_size,
        records_created=written.written,
        present_count=len(written.present),
        absent_count=len(written.absent),
        present_roll_numbers=written.present_roll_numbers,
        absent_roll_numbers=written.absent_roll_numbers,
    )


async def edit_attendance(
    db: AsyncSession,
    current_user: CurrentUser,
    payload: AttendanceEditRequest,
    notifier: Optional[AttendanceNotifier] = None,
    now: Optional[datetime] = None,
) -> AttendanceEditResponse:
    """Re-apply the absentee list to today's existing records (update only)."""
    department = scope_department(current_user, payload.department)
    class_key = payload.class_key
    await ensure_can_manage_class(db, current_user, department, class_key)

    day = normalize_day(payload.date, now=now)
    ensure_today(day, now)
    roster = await require_roster(db, class_key, department)

    written = await upsert_attendance(
        db,
        roster,
        day,
        payload.absent_roll_numbers,
        faculty_id=current_user.id,
        updated_by=_updated_by(current_user),
        mode=UpsertMode.EDIT,
        now=now,
    )
    notify_safely(notifier, written.events)
    return AttendanceEditResponse(
        class_key=class_key,
        date=day,
        total_students=written.roster_size,
        records_updated=written.written,
        not_marked=written.not_marked,
        present_count=len(written.present),
        absent_count=len(written.absent),
        absent_roll_numbers=written.absent_roll_numbers,
    )


# ----- Read side -----
async def get_class_roster(
    db: AsyncSession,
    current_user: CurrentUser,
    identity: ClassIdentity,
    department: Optional[str] = None,
) -> RosterResponse:
    scope = scope_department(current_user, department)
    await ensure_can_manage_class(db, current_user, scope, identity.class_key)
    roster = await resolve_roster(db, identity.class_key, scope)
    return RosterResponse(
        class_key=roster.class_key,
        department=scope,
        total_students=len(roster),
        students=[
            RosterMember(student_id=m.student_id, roll_number=m.roll_number, name=m.name)
            for m in roster.members
        ],
    )


async def get_class_history(
    db: AsyncSession,
    current_user: CurrentUser,
    identity: ClassIdentity,
    day_value: Optional[str],
    department: Optional[str] = None,
) -> HistoryResponse:
    """Status of every roster member on a day; NotMarked where no record exists."""
    scope = scope_department(current_user, department)
    class_key = identity.class_key
    await ensure_can_manage_class(db, current_user, scope, class_key)
    day = normalize_day(day_value)

    roster = await resolve_roster(db, class_key, scope)
    result = await db.execute(
        select(AttendanceRecord).where(
            AttendanceRecord.class_key == class_key,
            AttendanceRecord.department == scope,
            AttendanceRecord.attendance_day == day,
        )
    )
    by_student = {r.student_id: r for r in result.scalars().all()}

    records: List[HistoryRecord] = []
    counts = {s: 0 for s in AttendanceStatus}
    for member in roster.members:
        rec = by_student.get(member.student_id)
        status_value = AttendanceStatus(rec.status) if rec else AttendanceStatus.NOT_MARKED
        counts[status_value] += 1
        records.append(
            HistoryRecord(
                student_id=member.student_id,
                roll_number=member.roll_number,
                name=member.name,
                status=status_value,
                reason=rec.reason if rec else None,
                action_taken=rec.action_taken if rec else None,
            )
        )
    return HistoryResponse(
        class_key=class_key,
        date=day,
        marked=bool(by_student),
        present_count=counts[AttendanceStatus.PRESENT],
        absent_count=counts[AttendanceStatus.ABSENT],
        on_duty_count=counts[AttendanceStatus.ON_DUTY],
        not_marked_count=counts[AttendanceStatus.NOT_MARKED],
        records=records,
    )


async def get_student_attendance(
    db: AsyncSession,
    current_user: CurrentUser,
    student_id: UUID,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> StudentAttendanceSummary:
    """A student's records and overall percentage. Students may read only their own."""
    student = await db.get(Student, student_id)
    if not student:
        raise NotFound("Student not found")
    if current_user.role == UserRole.STUDENT:
        if current_user.id != student_id:
            raise Unauthorized("You can only view your own attendance")
    else:
        await ensure_can_manage_class(db, current_user, student.department, student.class_key)

    stmt = select(AttendanceRecord).where(AttendanceRecord.student_id == student_id)
    if start_date:
        stmt = stmt.where(AttendanceRecord.attendance_day >= normalize_day(start_date))
    if end_date:
        stmt = stmt.where(AttendanceRecord.attendance_day <= normalize_day(end_date))
    result = await db.execute(stmt.order_by(AttendanceRecord.attendance_day.desc()))
    rows = result.scalars().all()

    present = sum(1 for r in rows if r.status == AttendanceStatus.PRESENT.value)
    absent = sum(1 for r in rows if r.status == AttendanceStatus.ABSENT.value)
    on_duty = sum(1 for r in rows if r.status == AttendanceStatus.ON_DUTY.value)
    total = len(rows)
    # On-duty days count as attended.
    percentage = round((present + on_duty) * 100 / total) if total else 0
    return StudentAttendanceSummary(
        student_id=student.id,
        roll_number=student.roll_number,
        name=student.name,
        present_days=present,
        absent_days=absent,
        on_duty_days=on_duty,
        total_days=total,
        overall_percentage=percentage,
        records=[_record_response(r) for r in rows],
    )


# ----- Single-record changes -----
async def submit_reason(
    db: AsyncSession,
    current_user: CurrentUser,
    payload: ReasonSubmitRequest,
    now: Optional[datetime] = None,
) -> AttendanceRecordResponse:
    """Student explains one of their absences. Last writer wins over a faculty reason."""
    if current_user.role != UserRole.STUDENT:
        raise Unauthorized("Only students can submit absence reasons")
    student = await db.get(Student, current_user.id)
    if not student:
        raise NotFound("Student not found")
    day = normalize_day(payload.date, now=now)
    class_key = payload.class_key or student.class_key

    result = await db.execute(
        select(AttendanceRecord).where(
            AttendanceRecord.student_id == student.id,
            AttendanceRecord.class_key == class_key,
            AttendanceRecord.attendance_day == day,
        )
    )
    record = result.scalar_one_or_none()
    if not record:
        raise NotFound("Attendance record not found")
    if record.status != AttendanceStatus.ABSENT.value:
        raise PolicyViolation("reasonOnlyForAbsent", "Can only submit reasons for absent attendance")

    record.reason = payload.reason
    record.updated_by = UpdatedBy.STUDENT.value
    record.updated_at = now or utcnow()
    await db.commit()
    await db.refresh(record)
    logger.info("Student %s submitted a reason for %s", student.id, day)
    return _record_response(record)


async def update_record(
    db: AsyncSession,
    current_user: CurrentUser,
    record_id: UUID,
    payload: RecordUpdateRequest,
    notifier: Optional[AttendanceNotifier] = None,
    now: Optional[datetime] = None,
) -> AttendanceRecordResponse:
    """Faculty correction of one record: status (incl. OnDuty), reason, action taken."""
    record = await db.get(AttendanceRecord, record_id)
    if not record:
        raise NotFound("Attendance record not found")
    await ensure_can_manage_class(db, current_user, record.department, record.class_key)

    previous_status = record.status
    if payload.status is not None:
        record.status = payload.status.value
    if payload.reason is not None:
        record.reason = payload.reason.strip() or None
    if payload.action_taken is not None:
        record.action_taken = payload.action_taken.strip() or None
    if record.status != AttendanceStatus.ABSENT.value:
        record.reason = None
    record.faculty_id = current_user.id
    record.updated_by = _updated_by(current_user).value
    record.updated_at = now or utcnow()
    await db.commit()
    await db.refresh(record)

    if record.status != previous_status:
        notify_safely(
            notifier,
            [AttendanceEvent(record.student_id, record.attendance_day, record.status)],
        )
    return _record_response(record)
