"""Attendance ledger. One row per (student, class_key, attendance_day) and one
ClassAttendance summary row per (department, class_key, attendance_day)."""

import uuid

from sqlalchemy import JSON, Column, Date, DateTime, ForeignKey, Index, String, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.dates import utcnow
from app.db.session import Base


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"
    __table_args__ = (
        UniqueConstraint("student_id", "class_key", "attendance_day", name="uq_attendance_student_class_day"),
        Index("ix_attendance_class_day", "class_key", "attendance_day"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    class_key = Column(String(64), nullable=False)
    department = Column(String(50), nullable=False)
    # CanonicalDay from app.core.dates.normalize_day; never a timestamp
    attendance_day = Column(Date, nullable=False)
    faculty_id = Column(Uuid(as_uuid=True), nullable=False)
    status = Column(String(20), nullable=False, default="Present")  # Present, Absent, OnDuty
    reason = Column(String(500), nullable=True)
    action_taken = Column(String(500), nullable=True)
    updated_by = Column(String(20), nullable=False, default="faculty")  # faculty, student, admin
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    student = relationship("Student", foreign_keys=[student_id])


class ClassAttendance(Base):
    """Class-day summary written in the same transaction as the first mark.
    Its unique constraint lets exactly one concurrent first-mark win."""

    __tablename__ = "class_attendance"
    __table_args__ = (
        UniqueConstraint("department", "class_key", "attendance_day", name="uq_class_attendance_day"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    department = Column(String(50), nullable=False)
    class_key = Column(String(64), nullable=False)
    attendance_day = Column(Date, nullable=False)
    marked_by = Column(Uuid(as_uuid=True), nullable=False)
    absent_roll_numbers = Column(JSON, nullable=False, default=list)
    present_roll_numbers = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
