from enum import Enum


class AttendanceStatus(str, Enum):
    PRESENT = "Present"
    ABSENT = "Absent"
    ON_DUTY = "OnDuty"
    NOT_MARKED = "NotMarked"


class UpdatedBy(str, Enum):
    FACULTY = "faculty"
    STUDENT = "student"
    ADMIN = "admin"


class UserRole(str, Enum):
    ADMIN = "admin"
    HOD = "hod"
    FACULTY = "faculty"
    STUDENT = "student"


class Department(str, Enum):
    CSE = "CSE"
    IT = "IT"
    ECE = "ECE"
    EEE = "EEE"
    CIVIL = "Civil"
    MECHANICAL = "Mechanical"
    CSBS = "CSBS"
    AIDS = "AIDS"


class Section(str, Enum):
    A = "A"
    B = "B"
    C = "C"


class RecordStatus(str, Enum):
    """Lifecycle status of students and faculty."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
