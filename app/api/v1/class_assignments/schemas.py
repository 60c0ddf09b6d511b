from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.class_key import ClassIdentity
from app.core.enums import Department


class AssignmentCreate(ClassIdentity):
    faculty_id: UUID = Field(..., description="Faculty member to make class advisor")
    department: Optional[Department] = Field(None, description="Required for admins")
    notes: Optional[str] = Field(None, max_length=500)


class AssignmentResponse(BaseModel):
    id: UUID
    faculty_id: UUID
    department: str
    batch: str
    year: str
    semester: str
    section: str
    class_key: str
    active: bool
    assigned_by: UUID
    assigned_date: datetime
    deactivated_by: Optional[UUID] = None
    deactivated_date: Optional[datetime] = None
    notes: Optional[str] = None


class ReplacedAdvisor(BaseModel):
    assignment_id: UUID
    faculty_id: UUID
    name: Optional[str] = None


class AssignResult(BaseModel):
    assignment: AssignmentResponse
    replaced: Optional[ReplacedAdvisor] = None
    message: str


class FacultyCacheEntry(BaseModel):
    assignment_id: UUID
    department: str
    batch: str
    year: str
    semester: str
    section: str
    class_key: str
    assigned_by: UUID
    assigned_date: Optional[datetime] = None
    notes: Optional[str] = None
    active: bool = True


class FacultyCacheResponse(BaseModel):
    faculty_id: UUID
    assigned_classes: List[FacultyCacheEntry]
    rebuilt: bool = Field(False, description="True when drift was found and the cache was rebuilt")
