"""
Create any missing tables for the attendance ledger and advisor assignments.

Run with DATABASE_URL set:
  python -m app.db.init_db
"""
import asyncio
from typing import List

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine

from app.db.session import Base, create_all, engine

REQUIRED_TABLES: List[str] = [
    "students",
    "faculty",
    "class_assignments",
    "class_attendance",
    "attendance_records",
]


async def missing_tables(db_engine: AsyncEngine) -> List[str]:
    async with db_engine.connect() as conn:
        existing = await conn.run_sync(lambda sync_conn: set(inspect(sync_conn).get_table_names()))
    return [name for name in REQUIRED_TABLES if name not in existing]


async def ensure_tables(db_engine: AsyncEngine) -> List[str]:
    """Create missing tables (and their indexes). Returns the tables that were created."""
    missing = await missing_tables(db_engine)
    if missing:
        await create_all(db_engine)
    return missing


async def main() -> None:
    missing = await ensure_tables(engine)
    if missing:
        print("Created missing tables: " + ", ".join(missing))
    else:
        print("All required tables already exist in the database.")
    print("Known tables: " + ", ".join(sorted(Base.metadata.tables)))


if __name__ == "__main__":
    asyncio.run(main())
