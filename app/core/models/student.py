"""Student enrolment: the source of class rosters. class_key is derived with make_class_key."""

import uuid

from sqlalchemy import Column, DateTime, Index, String, Uuid, UniqueConstraint

from app.core.dates import utcnow
from app.db.session import Base


class Student(Base):
    __tablename__ = "students"
    __table_args__ = (
        # Roll numbers identify a student within one department's class roster
        UniqueConstraint("department", "class_key", "roll_number", name="uq_student_class_roll"),
        Index("ix_students_roster", "department", "class_key", "status"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    roll_number = Column(String(50), nullable=False)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True, unique=True)
    department = Column(String(50), nullable=False)
    batch = Column(String(9), nullable=False)
    level = Column(String(20), nullable=False)  # "2nd Year"
    term = Column(String(10), nullable=False)  # "Sem 3"
    section = Column(String(2), nullable=False)
    class_key = Column(String(64), nullable=False)
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
