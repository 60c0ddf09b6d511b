"""
Faculty assignment cache (Faculty.assigned_classes).

The cache mirrors the faculty's active ClassAssignment rows and is written only
here. Every write to ClassAssignment commits first; the cache is updated in a
second transaction. If that second step is lost, the cache is rebuilt from the
assignments the next time drift is detected on read (or on request).

JSON columns are not mutation-tracked: always assign a new list.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFound
from app.core.models import ClassAssignment, Faculty

logger = logging.getLogger(__name__)


def cache_entry(a: ClassAssignment) -> Dict[str, Any]:
    return {
        "assignment_id": str(a.id),
        "department": a.department,
        "batch": a.batch,
        "year": a.level,
        "semester": a.term,
        "section": a.section,
        "class_key": a.class_key,
        "assigned_by": str(a.assigned_by),
        "assigned_date": a.assigned_date.isoformat() if a.assigned_date else None,
        "notes": a.notes,
        "active": True,
    }


def build_cache_entries(assignments: Iterable[ClassAssignment]) -> List[Dict[str, Any]]:
    """Cache contents derived from a faculty's assignments; inactive ones are ignored."""
    return [cache_entry(a) for a in assignments if a.active]


def _signature(entries: Iterable[Dict[str, Any]]) -> Set[Tuple[str, str, str]]:
    return {
        (str(e.get("assignment_id")), str(e.get("department")), str(e.get("class_key")))
        for e in entries
    }


def detect_drift(cache: Optional[List[Dict[str, Any]]], active: Iterable[ClassAssignment]) -> bool:
    """True when the cache does not describe exactly the given active assignments."""
    cache = cache or []
    expected = _signature(build_cache_entries(active))
    actual = _signature(cache)
    return len(cache) != len(actual) or actual != expected


async def _active_assignments(db: AsyncSession, faculty_id: UUID) -> List[ClassAssignment]:
    result = await db.execute(
        select(ClassAssignment)
        .where(ClassAssignment.faculty_id == faculty_id, ClassAssignment.active.is_(True))
        .order_by(ClassAssignment.assigned_date)
    )
    return list(result.scalars().all())


async def _get_faculty(db: AsyncSession, faculty_id: UUID) -> Faculty:
    faculty = await db.get(Faculty, faculty_id, populate_existing=True)
    if not faculty:
        raise NotFound("Faculty not found")
    return faculty


async def rebuild_faculty_cache(db: AsyncSession, faculty_id: UUID) -> List[Dict[str, Any]]:
    """Overwrite the cache with the faculty's active assignments."""
    await _lock_faculty(db, faculty_id)
    faculty = await _get_faculty(db, faculty_id)
    entries = build_cache_entries(await _active_assignments(db, faculty_id))
    faculty.assigned_classes = entries
    await db.commit()
    logger.info("Rebuilt assigned_classes for faculty %s (%d entries)", faculty_id, len(entries))
    return entries


async def _lock_faculty(db: AsyncSession, *faculty_ids: UUID) -> None:
    """Take the write lock on the faculty rows before their caches are read.

    A no-op UPDATE locks the row on PostgreSQL and opens the write transaction
    on SQLite, where FOR UPDATE is not supported. Ids are locked in sorted order.
    """
    for faculty_id in sorted(set(faculty_ids), key=str):
        await db.execute(
            update(Faculty)
            .where(Faculty.id == faculty_id)
            .values(status=Faculty.status)
            .execution_options(synchronize_session=False)
        )


async def apply_assign(
    db: AsyncSession, assignment: ClassAssignment, replaced_faculty_id: Optional[UUID] = None
) -> None:
    """Replace any entry for the same class with the new assignment; drop it from the replaced advisor.

    An assignment that was replaced or removed before this runs is not added.
    """

    department, class_key = assignment.department, assignment.class_key

    def same_class(entry: Dict[str, Any]) -> bool:
        return entry.get("department") == department and entry.get("class_key") == class_key

    affected = [assignment.faculty_id]
    if replaced_faculty_id is not None and replaced_faculty_id != assignment.faculty_id:
        affected.append(replaced_faculty_id)
    await _lock_faculty(db, *affected)

    current = await db.get(ClassAssignment, assignment.id, populate_existing=True)
    faculty = await _get_faculty(db, assignment.faculty_id)
    entries = [e for e in (faculty.assigned_classes or []) if not same_class(e)]
    if current is not None and current.active:
        entries.append(cache_entry(current))
    else:
        logger.info("Assignment %s is no longer active; not cached", assignment.id)
    faculty.assigned_classes = entries

    if len(affected) > 1:
        previous = await db.get(Faculty, replaced_faculty_id, populate_existing=True)
        if previous is not None:
            previous.assigned_classes = [e for e in (previous.assigned_classes or []) if not same_class(e)]
    await db.commit()


async def apply_removal(db: AsyncSession, assignment_id: UUID, faculty_id: UUID) -> None:
    """Drop the entry of a deactivated or deleted assignment."""
    await _lock_faculty(db, faculty_id)
    faculty = await db.get(Faculty, faculty_id, populate_existing=True)
    if faculty is None:
        await db.rollback()
        return
    key = str(assignment_id)
    faculty.assigned_classes = [e for e in (faculty.assigned_classes or []) if e.get("assignment_id") != key]
    await db.commit()


async def get_faculty_cache(db: AsyncSession, faculty_id: UUID) -> Tuple[List[Dict[str, Any]], bool]:
    """Return (cache, rebuilt). A drifted cache is rebuilt before it is returned."""
    faculty = await _get_faculty(db, faculty_id)
    active = await _active_assignments(db, faculty_id)
    if not detect_drift(faculty.assigned_classes, active):
        return list(faculty.assigned_classes or []), False
    logger.warning("assigned_classes drift for faculty %s; rebuilding", faculty_id)
    return await rebuild_faculty_cache(db, faculty_id), True
