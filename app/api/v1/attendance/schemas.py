from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.core.class_key import ClassIdentity
from app.core.enums import AttendanceStatus, Department


class ClassScopedRequest(ClassIdentity):
    """Class identity plus an optional department (admins must name one)."""

    department: Optional[Department] = None


class AttendanceMarkRequest(ClassScopedRequest):
    """First mark of a class-day. Everyone not listed as absent is Present."""

    date: Optional[str] = Field(None, description="Day to mark; defaults to today")
    absent_roll_numbers: List[str] = Field(default_factory=list)

    @field_validator("absent_roll_numbers", mode="before")
    @classmethod
    def _clean_rolls(cls, v):
        if v is None:
            return []
        return [str(r).strip() for r in v if str(r).strip()]


class AttendanceEditRequest(AttendanceMarkRequest):
    """Re-apply the day's absentee list to the existing records."""

    date: str = Field(..., description="Day to edit; must be today")


class AttendanceMarkResponse(BaseModel):
    class_key: str
    date: date
    total_students: int
    records_created: int
    present_count: int
    absent_count: int
    present_roll_numbers: List[str]
    absent_roll_numbers: List[str]


class AttendanceEditResponse(BaseModel):
    class_key: str
    date: date
    total_students: int
    records_updated: int
    not_marked: int
    present_count: int
    absent_count: int
    absent_roll_numbers: List[str]


class RosterMember(BaseModel):
    student_id: UUID
    roll_number: str
    name: str


class RosterResponse(BaseModel):
    class_key: str
    department: str
    total_students: int
    students: List[RosterMember]


class HistoryRecord(BaseModel):
    student_id: UUID
    roll_number: str
    name: str
    status: AttendanceStatus
    reason: Optional[str] = None
    action_taken: Optional[str] = None


class HistoryResponse(BaseModel):
    class_key: str
    date: date
    marked: bool
    present_count: int
    absent_count: int
    on_duty_count: int
    not_marked_count: int
    records: List[HistoryRecord]


class ReasonSubmitRequest(BaseModel):
    """Student explains an absence."""

    date: str
    reason: str = Field(..., min_length=1, max_length=500)
    class_key: Optional[str] = Field(None, description="Needed only if the student has records in several classes that day")

    @field_validator("reason")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Reason is required")
        return v


class RecordUpdateRequest(BaseModel):
    """Faculty correction of a single record."""

    status: Optional[AttendanceStatus] = None
    reason: Optional[str] = Field(None, max_length=500)
    action_taken: Optional[str] = Field(None, max_length=500)

    @field_validator("status")
    @classmethod
    def _not_marked_is_derived(cls, v):
        if v == AttendanceStatus.NOT_MARKED:
            raise ValueError("NotMarked cannot be stored")
        return v


class AttendanceRecordResponse(BaseModel):
    id: UUID
    student_id: UUID
    class_key: str
    date: date
    status: AttendanceStatus
    reason: Optional[str] = None
    action_taken: Optional[str] = None
    updated_by: str
    updated_at: datetime


class StudentAttendanceSummary(BaseModel):
    student_id: UUID
    roll_number: str
    name: str
    present_days: int
    absent_days: int
    on_duty_days: int
    total_days: int
    overall_percentage: int
    records: List[AttendanceRecordResponse]
