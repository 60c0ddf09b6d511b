"""
Attendance upsert engine.

A mark or edit covers the whole roster of a class for one CanonicalDay. The
caller supplies only the absentees; every other roster member is Present.
Validation happens before any write, and all rows of one call are written in a
single transaction, so readers see either the full batch or nothing. Writes are
keyed by (student_id, class_key, attendance_day); re-running an edit converges
to the same rows, and a failed first mark leaves nothing behind to conflict
with its retry.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dates import utcnow
from app.core.enums import AttendanceStatus, UpdatedBy
from app.core.exceptions import AlreadyMarked, NothingToEdit, UnknownRollNumber
from app.core.models import AttendanceRecord, ClassAttendance
from app.core.notifier import AttendanceEvent

from .roster import Roster, StudentIdentity

logger = logging.getLogger(__name__)


class UpsertMode(str, Enum):
    CREATE = "create"
    EDIT = "edit"


@dataclass
class LedgerWrite:
    class_key: str
    day: date
    roster_size: int
    written: int
    not_marked: int
    present: List[StudentIdentity]
    absent: List[StudentIdentity]
    events: List[AttendanceEvent] = field(default_factory=list)

    @property
    def present_roll_numbers(self) -> List[str]:
        return [m.roll_number for m in self.present]

    @property
    def absent_roll_numbers(self) -> List[str]:
        return [m.roll_number for m in self.absent]


def partition_roster(
    roster: Roster, absent_roll_numbers: Sequence[str]
) -> Tuple[List[StudentIdentity], List[StudentIdentity]]:
    """Split the roster into (present, absent).

    Duplicate roll numbers are collapsed; the first unknown roll number rejects
    the whole batch.
    """
    by_roll = roster.by_roll
    absent_rolls = set()
    for raw in absent_roll_numbers:
        roll = str(raw).strip()
        if not roll:
            continue
        if roll not in by_roll:
            raise UnknownRollNumber(roll)
        absent_rolls.add(roll)
    present = [m for m in roster.members if m.roll_number not in absent_rolls]
    absent = [m for m in roster.members if m.roll_number in absent_rolls]
    return present, absent


async def count_day_records(db: AsyncSession, class_key: str, department: str, day: date) -> int:
    result = await db.execute(
        select(func.count(AttendanceRecord.id)).where(
            AttendanceRecord.class_key == class_key,
            AttendanceRecord.department == department,
            AttendanceRecord.attendance_day == day,
        )
    )
    return int(result.scalar_one())


def _class_day_query(class_key: str, department: str, day: date):
    return select(ClassAttendance).where(
        ClassAttendance.class_key == class_key,
        ClassAttendance.department == department,
        ClassAttendance.attendance_day == day,
    )


def _events(day: date, present, absent) -> List[AttendanceEvent]:
    events = [AttendanceEvent(m.student_id, day, AttendanceStatus.PRESENT.value) for m in present]
    events += [AttendanceEvent(m.student_id, day, AttendanceStatus.ABSENT.value) for m in absent]
    return events


async def upsert_attendance(
    db: AsyncSession,
    roster: Roster,
    day: date,
    absent_roll_numbers: Sequence[str],
    *,
    faculty_id: UUID,
    updated_by: UpdatedBy = UpdatedBy.FACULTY,
    mode: UpsertMode = UpsertMode.CREATE,
    now: Optional[datetime] = None,
) -> LedgerWrite:
    """Write the full roster's status for `day`. Caller has checked the roster is non-empty."""
    present, absent = partition_roster(roster, absent_roll_numbers)
    stamp = now or utcnow()
    if mode == UpsertMode.CREATE:
        return await _create(db, roster, day, present, absent, faculty_id, updated_by, stamp)
    return await _edit(db, roster, day, present, absent, faculty_id, updated_by, stamp)


async def _create(
    db: AsyncSession,
    roster: Roster,
    day: date,
    present: List[StudentIdentity],
    absent: List[StudentIdentity],
    faculty_id: UUID,
    updated_by: UpdatedBy,
    stamp: datetime,
) -> LedgerWrite:
    existing = await db.execute(_class_day_query(roster.class_key, roster.department, day))
    if existing.scalar_one_or_none() is not None:
        raise AlreadyMarked(roster.class_key, day)
    if await count_day_records(db, roster.class_key, roster.department, day) > 0:
        raise AlreadyMarked(roster.class_key, day)

    absent_ids = {m.student_id for m in absent}
    db.add(
        ClassAttendance(
            department=roster.department,
            class_key=roster.class_key,
            attendance_day=day,
            marked_by=faculty_id,
            absent_roll_numbers=[m.roll_number for m in absent],
            present_roll_numbers=[m.roll_number for m in present],
            created_at=stamp,
            updated_at=stamp,
        )
    )
    db.add_all(
        [
            AttendanceRecord(
                student_id=m.student_id,
                class_key=roster.class_key,
                department=roster.department,
                attendance_day=day,
                faculty_id=faculty_id,
                status=(AttendanceStatus.ABSENT if m.student_id in absent_ids else AttendanceStatus.PRESENT).value,
                reason=None,
                updated_by=updated_by.value,
                created_at=stamp,
                updated_at=stamp,
            )
            for m in roster.members
        ]
    )
    try:
        await db.commit()
    except IntegrityError:
        # A concurrent first mark committed between our check and our insert.
        await db.rollback()
        raise AlreadyMarked(roster.class_key, day)
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Marked %s on %s: %d present, %d absent",
        roster.class_key, day, len(present), len(absent),
    )
    return LedgerWrite(
        class_key=roster.class_key,
        day=day,
        roster_size=len(roster),
        written=len(roster),
        not_marked=0,
        present=present,
        absent=absent,
        events=_events(day, present, absent),
    )


async def _lock_class_day(
    db: AsyncSession, roster: Roster, day: date, faculty_id: UUID, stamp: datetime
) -> ClassAttendance:
    """Row lock on the class-day summary; edits of one class-day queue behind it.

    A day marked before summaries existed gets its summary row here.
    """
    stmt = _class_day_query(roster.class_key, roster.department, day).with_for_update()
    summary = (await db.execute(stmt)).scalar_one_or_none()
    if summary is not None:
        return summary

    summary = ClassAttendance(
        department=roster.department,
        class_key=roster.class_key,
        attendance_day=day,
        marked_by=faculty_id,
        created_at=stamp,
        updated_at=stamp,
    )
    db.add(summary)
    try:
        await db.flush()
    except IntegrityError:
        # Created by a concurrent edit; wait for its lock instead.
        await db.rollback()
        return (await db.execute(stmt)).scalar_one()
    return summary


async def _edit(
    db: AsyncSession,
    roster: Roster,
    day: date,
    present: List[StudentIdentity],
    absent: List[StudentIdentity],
    faculty_id: UUID,
    updated_by: UpdatedBy,
    stamp: datetime,
) -> LedgerWrite:
    member_ids = [m.student_id for m in roster.members]
    key = (
        AttendanceRecord.class_key == roster.class_key,
        AttendanceRecord.attendance_day == day,
    )
    try:
        summary = await _lock_class_day(db, roster, day, faculty_id, stamp)
        result = await db.execute(
            select(AttendanceRecord.student_id).where(*key, AttendanceRecord.student_id.in_(member_ids))
        )
        existing = set(result.scalars().all())
        if not existing:
            raise NothingToEdit(roster.class_key, day)

        present = [m for m in present if m.student_id in existing]
        absent = [m for m in absent if m.student_id in existing]
        is_absent = AttendanceRecord.student_id.in_([m.student_id for m in absent])
        # One statement for the whole roster, so record locks are taken in a single pass.
        res = await db.execute(
            update(AttendanceRecord)
            .where(*key, AttendanceRecord.student_id.in_(list(existing)))
            .values(
                status=case(
                    (is_absent, AttendanceStatus.ABSENT.value),
                    else_=AttendanceStatus.PRESENT.value,
                ),
                # A reason for an absence that no longer exists is stale.
                reason=case((is_absent, AttendanceRecord.reason), else_=None),
                faculty_id=faculty_id,
                updated_by=updated_by.value,
                updated_at=stamp,
            )
            .execution_options(synchronize_session=False)
        )
        written = res.rowcount

        summary.marked_by = faculty_id
        summary.absent_roll_numbers = [m.roll_number for m in absent]
        summary.present_roll_numbers = [m.roll_number for m in present]
        summary.updated_at = stamp
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    not_marked = len(roster) - len(existing)
    if not_marked:
        logger.warning(
            "Edit of %s on %s skipped %d roster members without a record",
            roster.class_key, day, not_marked,
        )
    logger.info("Edited %s on %s: %d records updated", roster.class_key, day, written)
    return LedgerWrite(
        class_key=roster.class_key,
        day=day,
        roster_size=len(roster),
        written=written,
        not_marked=not_marked,
        present=present,
        absent=absent,
        events=_events(day, present, absent),
    )
