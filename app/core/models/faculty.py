import uuid

from sqlalchemy import JSON, Column, DateTime, String, Uuid

from app.core.dates import utcnow
from app.db.session import Base


class Faculty(Base):
    """Faculty member. assigned_classes is a denormalized cache of the faculty's
    active advisor assignments; only app.api.v1.class_assignments.sync writes it."""

    __tablename__ = "faculty"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    position = Column(String(50), nullable=False, default="Assistant Professor")
    department = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False, default="active")
    # Example entry:
    # {"assignment_id": "...", "department": "CSE", "batch": "2023-2027", "year": "2nd Year",
    #  "semester": "Sem 3", "section": "A", "class_key": "2023-2027_2ndYear_Sem3_A",
    #  "assigned_by": "...", "assigned_date": "2026-10-18T04:30:00+00:00", "notes": null,
    #  "active": true}
    assigned_classes = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
