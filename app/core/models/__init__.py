from app.core.models.attendance_record import AttendanceRecord, ClassAttendance
from app.core.models.class_assignment import ClassAssignment
from app.core.models.faculty import Faculty
from app.core.models.student import Student

__all__ = [
    "AttendanceRecord",
    "ClassAssignment",
    "ClassAttendance",
    "Faculty",
    "Student",
]
