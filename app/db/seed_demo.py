"""
Seed script for a demo department: two faculty and a
2nd-year CSE section A roster. Safe to run repeatedly.

  python -m app.db.seed_demo
"""
import asyncio

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.class_key import ClassIdentity
from app.core.enums import RecordStatus
from app.core.models import Faculty, Student
from app.db.init_db import ensure_tables
from app.db.session import AsyncSessionLocal, engine

DEMO_DEPARTMENT = "CSE"
DEMO_CLASS = ClassIdentity(batch="2023-2027", year="2nd Year", semester="Sem 3", section="A")
DEMO_FACULTY = [
    ("Anita Rao", "anita.rao@example.edu"),
    ("Vikram Iyer", "vikram.iyer@example.edu"),
]
DEMO_STUDENTS = [
    ("23CS001", "Arjun K"),
    ("23CS002", "Bhavya S"),
    ("23CS003", "Charan M"),
    ("23CS004", "Divya R"),
    ("23CS005", "Esha P"),
]


async def seed_demo(db: AsyncSession) -> None:
    for name, email in DEMO_FACULTY:
        result = await db.execute(select(Faculty).where(Faculty.email == email))
        if result.scalar_one_or_none() is None:
            db.add(Faculty(name=name, email=email, department=DEMO_DEPARTMENT, assigned_classes=[]))
            print(f"Created faculty {name}.")

    class_key = DEMO_CLASS.class_key
    for roll, name in DEMO_STUDENTS:
        result = await db.execute(
            select(Student).where(
                Student.department == DEMO_DEPARTMENT,
                Student.class_key == class_key,
                Student.roll_number == roll,
            )
        )
        if result.scalar_one_or_none() is None:
            db.add(
                Student(
                    roll_number=roll,
                    name=name,
                    department=DEMO_DEPARTMENT,
                    batch=DEMO_CLASS.batch,
                    level=DEMO_CLASS.year,
                    term=DEMO_CLASS.semester,
                    section=DEMO_CLASS.section.value,
                    class_key=class_key,
                    status=RecordStatus.ACTIVE.value,
                )
            )
    await db.commit()
    print(f"Demo roster ready for {DEMO_DEPARTMENT} {class_key}.")


async def main() -> None:
    await ensure_tables(engine)
    async with AsyncSessionLocal() as db:
        try:
            await seed_demo(db)
        except Exception as e:
            await db.rollback()
            print("Error:", e)
            raise


if __name__ == "__main__":
    asyncio.run(main())
