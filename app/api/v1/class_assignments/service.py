"""Class advisor assignment service. At most one active advisor per class.

Assignment rows are the source of truth. A reassignment deactivates the current
row with a conditional update and inserts the new one in one transaction; the
partial unique index on active rows rejects a concurrent winner, and the loser
retries against the fresh state. The faculty cache is synced after commit.
"""

import logging
from datetime import datetime
from typing import Awaitable, List, Optional, Tuple
from uuid import UUID

from fastapi import status
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.schemas import CurrentUser
from app.core.class_key import ClassIdentity
from app.core.config import settings
from app.core.dates import utcnow
from app.core.enums import RecordStatus, UserRole
from app.core.exceptions import (
    AlreadyInactive,
    AssignmentConflict,
    NotFound,
    ServiceError,
    Unauthorized,
)
from app.core.models import ClassAssignment, Faculty

from app.api.v1.attendance.service import scope_department

from . import sync
from .schemas import (
    AssignmentCreate,
    AssignmentResponse,
    AssignResult,
    FacultyCacheEntry,
    FacultyCacheResponse,
    ReplacedAdvisor,
)

logger = logging.getLogger(__name__)


def _to_response(a: ClassAssignment) -> AssignmentResponse:
    return AssignmentResponse(
        id=a.id,
        faculty_id=a.faculty_id,
        department=a.department,
        batch=a.batch,
        year=a.level,
        semester=a.term,
        section=a.section,
        class_key=a.class_key,
        active=a.active,
        assigned_by=a.assigned_by,
        assigned_date=a.assigned_date,
        deactivated_by=a.deactivated_by,
        deactivated_date=a.deactivated_date,
        notes=a.notes,
    )


def _ensure_manages_department(current_user: CurrentUser, department: str) -> None:
    if current_user.is_admin:
        return
    if current_user.role != UserRole.HOD or current_user.department != department:
        raise Unauthorized("You can only manage advisors in your own department")


def _ensure_can_view_faculty(current_user: CurrentUser, faculty: Faculty) -> None:
    if current_user.is_admin:
        return
    if current_user.role == UserRole.HOD and current_user.department == faculty.department:
        return
    if current_user.role == UserRole.FACULTY and current_user.id == faculty.id:
        return
    raise Unauthorized("You can only view your own assignments")


async def get_active_assignment(
    db: AsyncSession, department: str, class_key: str
) -> Optional[ClassAssignment]:
    result = await db.execute(
        select(ClassAssignment).where(
            ClassAssignment.department == department,
            ClassAssignment.class_key == class_key,
            ClassAssignment.active.is_(True),
        )
    )
    return result.scalar_one_or_none()


async def _sync_after_commit(db: AsyncSession, action: str, step: Awaitable[None]) -> None:
    """Second step of every advisor write. A failure leaves drift for get_faculty_cache to repair."""
    try:
        await step
    except Exception:
        await db.rollback()
        logger.error("assigned_classes sync failed after %s; cache will be rebuilt on read", action, exc_info=True)


# ----- State transitions -----
async def _assign_with_retry(
    db: AsyncSession,
    department: str,
    payload: AssignmentCreate,
    actor_id: UUID,
    stamp: datetime,
) -> Tuple[ClassAssignment, Optional[ReplacedAdvisor]]:
    class_key = payload.class_key
    for attempt in range(1, settings.assign_max_retries + 1):
        current = await get_active_assignment(db, department, class_key)
        if current is not None and current.faculty_id == payload.faculty_id:
            # Already the advisor: a resubmitted assign changes nothing.
            return current, None

        replaced = None
        try:
            if current is not None:
                result = await db.execute(
                    update(ClassAssignment)
                    .where(ClassAssignment.id == current.id, ClassAssignment.active.is_(True))
                    .values(active=False, deactivated_by=actor_id, deactivated_date=stamp)
                )
                if result.rowcount != 1:
                    await db.rollback()
                    logger.warning(
                        "Advisor of %s/%s changed concurrently (attempt %d)", department, class_key, attempt
                    )
                    continue
                previous = await db.get(Faculty, current.faculty_id)
                replaced = ReplacedAdvisor(
                    assignment_id=current.id,
                    faculty_id=current.faculty_id,
                    name=previous.name if previous else None,
                )

            assignment = ClassAssignment(
                department=department,
                faculty_id=payload.faculty_id,
                batch=payload.batch,
                level=payload.year,
                term=payload.semester,
                section=payload.section.value,
                class_key=class_key,
                active=True,
                assigned_by=actor_id,
                assigned_date=stamp,
                notes=payload.notes,
            )
            db.add(assignment)
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.warning(
                "Concurrent advisor assignment for %s/%s (attempt %d)", department, class_key, attempt
            )
            continue
        except Exception:
            await db.rollback()
            raise
        return assignment, replaced

    raise AssignmentConflict(class_key)


async def assign_advisor(
    db: AsyncSession,
    current_user: CurrentUser,
    payload: AssignmentCreate,
    now: Optional[datetime] = None,
) -> AssignResult:
    """Make the faculty the class advisor, deactivating whoever held the class."""
    department = scope_department(current_user, payload.department)
    _ensure_manages_department(current_user, department)

    faculty = await db.get(Faculty, payload.faculty_id)
    if not faculty or faculty.status != RecordStatus.ACTIVE.value:
        raise NotFound("Faculty not found")
    if faculty.department != department:
        raise ServiceError("Faculty belongs to a different department", status.HTTP_400_BAD_REQUEST)
    faculty_name = faculty.name

    assignment, replaced = await _assign_with_retry(
        db, department, payload, current_user.id, now or utcnow()
    )
    response = _to_response(assignment)
    await _sync_after_commit(
        db,
        "assign",
        sync.apply_assign(db, assignment, replaced.faculty_id if replaced else None),
    )

    if replaced:
        message = f"{faculty_name} assigned to {payload.display}, replacing {replaced.name or replaced.faculty_id}"
    else:
        message = f"{faculty_name} assigned to {payload.display}"
    logger.info("Advisor of %s/%s is faculty %s", department, response.class_key, response.faculty_id)
    return AssignResult(assignment=response, replaced=replaced, message=message)


async def deactivate_assignment(
    db: AsyncSession,
    current_user: CurrentUser,
    assignment_id: UUID,
    now: Optional[datetime] = None,
) -> AssignmentResponse:
    assignment = await db.get(ClassAssignment, assignment_id)
    if not assignment:
        raise NotFound("Assignment not found")
    _ensure_manages_department(current_user, assignment.department)
    if not assignment.active:
        raise AlreadyInactive()

    result = await db.execute(
        update(ClassAssignment)
        .where(ClassAssignment.id == assignment_id, ClassAssignment.active.is_(True))
        .values(active=False, deactivated_by=current_user.id, deactivated_date=now or utcnow())
    )
    if result.rowcount != 1:
        await db.rollback()
        raise AlreadyInactive()
    await db.commit()
    await db.refresh(assignment)
    response = _to_response(assignment)

    await _sync_after_commit(
        db, "deactivate", sync.apply_removal(db, response.id, response.faculty_id)
    )
    logger.info("Deactivated advisor assignment %s (%s)", response.id, response.class_key)
    return response


async def remove_assignment(
    db: AsyncSession,
    current_user: CurrentUser,
    assignment_id: UUID,
) -> None:
    """Delete the assignment whatever its state; its cache entry goes with it."""
    assignment = await db.get(ClassAssignment, assignment_id)
    if not assignment:
        raise NotFound("Assignment not found")
    _ensure_manages_department(current_user, assignment.department)

    faculty_id = assignment.faculty_id
    await db.delete(assignment)
    await db.commit()

    await _sync_after_commit(db, "remove", sync.apply_removal(db, assignment_id, faculty_id))
    logger.info("Removed advisor assignment %s", assignment_id)


# ----- Lookups -----
async def get_current_advisor(
    db: AsyncSession,
    current_user: CurrentUser,
    identity: ClassIdentity,
    department: Optional[str] = None,
) -> AssignmentResponse:
    scope = scope_department(current_user, department)
    assignment = await get_active_assignment(db, scope, identity.class_key)
    if not assignment:
        raise NotFound("No active advisor for this class")
    return _to_response(assignment)


async def list_faculty_assignments(
    db: AsyncSession,
    current_user: CurrentUser,
    faculty_id: UUID,
    include_inactive: bool = False,
) -> List[AssignmentResponse]:
    faculty = await db.get(Faculty, faculty_id)
    if not faculty:
        raise NotFound("Faculty not found")
    _ensure_can_view_faculty(current_user, faculty)

    stmt = select(ClassAssignment).where(ClassAssignment.faculty_id == faculty_id)
    if not include_inactive:
        stmt = stmt.where(ClassAssignment.active.is_(True))
    result = await db.execute(stmt.order_by(ClassAssignment.assigned_date.desc()))
    return [_to_response(a) for a in result.scalars().all()]


async def get_assignment(
    db: AsyncSession, current_user: CurrentUser, assignment_id: UUID
) -> AssignmentResponse:
    assignment = await db.get(ClassAssignment, assignment_id)
    if not assignment:
        raise NotFound("Assignment not found")
    if current_user.role == UserRole.FACULTY:
        if assignment.faculty_id != current_user.id:
            raise Unauthorized("You can only view your own assignments")
    elif not current_user.is_admin and current_user.department != assignment.department:
        raise Unauthorized("You can only view assignments in your own department")
    return _to_response(assignment)


# ----- Faculty cache -----
async def get_assigned_classes(
    db: AsyncSession, current_user: CurrentUser, faculty_id: UUID
) -> FacultyCacheResponse:
    faculty = await db.get(Faculty, faculty_id)
    if not faculty:
        raise NotFound("Faculty not found")
    _ensure_can_view_faculty(current_user, faculty)
    entries, rebuilt = await sync.get_faculty_cache(db, faculty_id)
    return FacultyCacheResponse(
        faculty_id=faculty_id,
        assigned_classes=[FacultyCacheEntry(**e) for e in entries],
        rebuilt=rebuilt,
    )


async def rebuild_assigned_classes(
    db: AsyncSession, current_user: CurrentUser, faculty_id: UUID
) -> FacultyCacheResponse:
    faculty = await db.get(Faculty, faculty_id)
    if not faculty:
        raise NotFound("Faculty not found")
    _ensure_manages_department(current_user, faculty.department)
    entries = await sync.rebuild_faculty_cache(db, faculty_id)
    return FacultyCacheResponse(
        faculty_id=faculty_id,
        assigned_classes=[FacultyCacheEntry(**e) for e in entries],
        rebuilt=True,
    )
