"""Roster resolution: the authoritative, department-scoped set of active students of a class."""

from dataclasses import dataclass
from typing import Dict, List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import RecordStatus
from app.core.exceptions import EmptyRoster
from app.core.models import Student


@dataclass(frozen=True)
class StudentIdentity:
    student_id: UUID
    roll_number: str
    name: str


@dataclass(frozen=True)
class Roster:
    class_key: str
    department: str
    members: List[StudentIdentity]

    def __len__(self) -> int:
        return len(self.members)

    @property
    def by_roll(self) -> Dict[str, StudentIdentity]:
        return {m.roll_number: m for m in self.members}


async def resolve_roster(db: AsyncSession, class_key: str, department: str) -> Roster:
    """Active students of `class_key` in `department`, ordered by roll number.
    An empty roster is returned as such; callers decide whether it is an error."""
    result = await db.execute(
        select(Student.id, Student.roll_number, Student.name)
        .where(
            Student.class_key == class_key,
            Student.department == department,
            Student.status == RecordStatus.ACTIVE.value,
        )
        .order_by(Student.roll_number)
    )
    members = [
        StudentIdentity(student_id=row.id, roll_number=row.roll_number, name=row.name)
        for row in result.all()
    ]
    return Roster(class_key=class_key, department=department, members=members)


async def require_roster(db: AsyncSession, class_key: str, department: str) -> Roster:
    roster = await resolve_roster(db, class_key, department)
    if not roster.members:
        raise EmptyRoster(class_key)
    return roster
