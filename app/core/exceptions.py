from typing import Any, Dict, Optional

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    code = "ServiceError"

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.extra = extra or {}

    @property
    def detail(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.extra}


class InvalidDate(ServiceError):
    code = "InvalidDate"

    def __init__(self, value: Any) -> None:
        super().__init__(f"Invalid date: {value!r}", status.HTTP_400_BAD_REQUEST, {"value": str(value)})


class PolicyViolation(ServiceError):
    code = "PolicyViolation"

    def __init__(self, rule: str, message: str) -> None:
        super().__init__(message, status.HTTP_422_UNPROCESSABLE_ENTITY, {"rule": rule})
        self.rule = rule


class EmptyRoster(ServiceError):
    code = "EmptyRoster"

    def __init__(self, class_key: str) -> None:
        super().__init__(
            f"No active students found for class {class_key}",
            status.HTTP_404_NOT_FOUND,
            {"class_key": class_key},
        )


class UnknownRollNumber(ServiceError):
    code = "UnknownRollNumber"

    def __init__(self, roll_number: str) -> None:
        super().__init__(
            f"Invalid roll number: {roll_number}",
            status.HTTP_400_BAD_REQUEST,
            {"roll_number": roll_number},
        )
        self.roll_number = roll_number


class AlreadyMarked(ServiceError):
    code = "AlreadyMarked"

    def __init__(self, class_key: str, day: Any) -> None:
        super().__init__(
            "Attendance already marked. Use Edit Attendance.",
            status.HTTP_409_CONFLICT,
            {"class_key": class_key, "day": str(day)},
        )


class NothingToEdit(ServiceError):
    code = "NothingToEdit"

    def __init__(self, class_key: str, day: Any) -> None:
        super().__init__(
            "No attendance records found to update for the specified date",
            status.HTTP_404_NOT_FOUND,
            {"class_key": class_key, "day": str(day)},
        )


class AlreadyInactive(ServiceError):
    code = "AlreadyInactive"

    def __init__(self) -> None:
        super().__init__("Assignment is already inactive", status.HTTP_409_CONFLICT)


class Unauthorized(ServiceError):
    code = "Unauthorized"

    def __init__(self, message: str = "You are not authorized for this class") -> None:
        super().__init__(message, status.HTTP_403_FORBIDDEN)


class NotFound(ServiceError):
    code = "NotFound"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class AssignmentConflict(ServiceError):
    code = "AssignmentConflict"

    def __init__(self, class_key: str) -> None:
        super().__init__(
            "Another advisor assignment for this class was saved concurrently. Please retry.",
            status.HTTP_409_CONFLICT,
            {"class_key": class_key},
        )
