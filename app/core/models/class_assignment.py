"""Advisor assignment: the faculty member acting as class advisor for one
(department, batch, year, semester, section). Source of truth for advisor state."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, Uuid, text
from sqlalchemy.orm import relationship

from app.core.dates import utcnow
from app.db.session import Base


class ClassAssignment(Base):
    __tablename__ = "class_assignments"
    __table_args__ = (
        # At most one active advisor per class; enforced by the store, not by the app
        Index(
            "uq_active_assignment_per_section",
            "department",
            "class_key",
            unique=True,
            postgresql_where=text("active"),
            sqlite_where=text("active = 1"),
        ),
        Index("ix_class_assignments_faculty_active", "faculty_id", "active"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    department = Column(String(50), nullable=False)
    faculty_id = Column(Uuid(as_uuid=True), ForeignKey("faculty.id", ondelete="CASCADE"), nullable=False)
    batch = Column(String(9), nullable=False)
    level = Column(String(20), nullable=False)
    term = Column(String(10), nullable=False)
    section = Column(String(2), nullable=False)
    class_key = Column(String(64), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    assigned_by = Column(Uuid(as_uuid=True), nullable=False)
    assigned_date = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    deactivated_by = Column(Uuid(as_uuid=True), nullable=True)
    deactivated_date = Column(DateTime(timezone=True), nullable=True)
    notes = Column(String(500), nullable=True)

    faculty = relationship("Faculty", foreign_keys=[faculty_id])
