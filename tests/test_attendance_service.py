from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.attendance import service
from app.api.v1.attendance.schemas import (
    AttendanceMarkRequest,
    ReasonSubmitRequest,
    RecordUpdateRequest,
)
from app.core.enums import AttendanceStatus, UserRole
from app.core.exceptions import NotFound, PolicyViolation, ServiceError, Unauthorized
from app.core.models import AttendanceRecord, ClassAssignment
from app.core.notifier import AttendanceNotifier

from conftest import CLASS_FIELDS, CLASS_KEY, DEPARTMENT, NOW, TODAY, make_user

HOD = make_user(uuid4(), UserRole.HOD)


def mark_request(absent, **extra) -> AttendanceMarkRequest:
    return AttendanceMarkRequest(**CLASS_FIELDS, date=TODAY, absent_roll_numbers=absent, **extra)


async def make_advisor(db: AsyncSession, faculty_id) -> ClassAssignment:
    assignment = ClassAssignment(
        department=DEPARTMENT,
        faculty_id=faculty_id,
        batch=CLASS_FIELDS["batch"],
        level=CLASS_FIELDS["year"],
        term=CLASS_FIELDS["semester"],
        section=CLASS_FIELDS["section"],
        class_key=CLASS_KEY,
        active=True,
        assigned_by=HOD.id,
    )
    db.add(assignment)
    await db.commit()
    return assignment


# ----- Scope -----
def test_admin_must_name_a_department() -> None:
    admin = make_user(uuid4(), UserRole.ADMIN, department=None)
    with pytest.raises(ServiceError) as exc:
        service.scope_department(admin, None)
    assert exc.value.status_code == 400
    assert service.scope_department(admin, "IT") == "IT"


def test_hod_cannot_reach_another_department() -> None:
    with pytest.raises(Unauthorized):
        service.scope_department(HOD, "ECE")
    assert service.scope_department(HOD, None) == DEPARTMENT


async def test_faculty_without_assignment_cannot_mark(db_session: AsyncSession, students, faculty) -> None:
    actor = make_user(faculty[0].id, UserRole.FACULTY)
    with pytest.raises(Unauthorized):
        await service.mark_attendance(db_session, actor, mark_request([]), now=NOW)


async def test_active_advisor_can_mark(db_session: AsyncSession, students, faculty) -> None:
    await make_advisor(db_session, faculty[0].id)
    actor = make_user(faculty[0].id, UserRole.FACULTY)

    result = await service.mark_attendance(db_session, actor, mark_request(["23CS001"]), now=NOW)

    assert result.records_created == 5
    record = (await db_session.execute(select(AttendanceRecord).limit(1))).scalar_one()
    assert record.faculty_id == faculty[0].id
    assert record.updated_by == "faculty"


async def test_deactivated_advisor_loses_access(db_session: AsyncSession, students, faculty) -> None:
    assignment = await make_advisor(db_session, faculty[0].id)
    assignment.active = False
    await db_session.commit()
    actor = make_user(faculty[0].id, UserRole.FACULTY)
    with pytest.raises(Unauthorized):
        await service.mark_attendance(db_session, actor, mark_request([]), now=NOW)


async def test_admin_marks_as_admin(db_session: AsyncSession, students) -> None:
    admin = make_user(uuid4(), UserRole.ADMIN, department=None)
    await service.mark_attendance(db_session, admin, mark_request([], department="CSE"), now=NOW)
    record = (await db_session.execute(select(AttendanceRecord).limit(1))).scalar_one()
    assert record.updated_by == "admin"


# ----- Student reason -----
async def test_student_reason_only_for_absent_days(db_session: AsyncSession, students) -> None:
    await service.mark_attendance(db_session, HOD, mark_request(["23CS001"]), now=NOW)

    absent_student = make_user(students[0].id, UserRole.STUDENT)
    record = await service.submit_reason(
        db_session, absent_student, ReasonSubmitRequest(date=TODAY, reason="  Medical leave "), now=NOW
    )
    assert record.reason == "Medical leave"
    assert record.updated_by == "student"

    present_student = make_user(students[1].id, UserRole.STUDENT)
    with pytest.raises(PolicyViolation) as exc:
        await service.submit_reason(
            db_session, present_student, ReasonSubmitRequest(date=TODAY, reason="n/a"), now=NOW
        )
    assert exc.value.rule == "reasonOnlyForAbsent"


async def test_student_reason_needs_a_record(db_session: AsyncSession, students) -> None:
    learner = make_user(students[0].id, UserRole.STUDENT)
    with pytest.raises(NotFound):
        await service.submit_reason(db_session, learner, ReasonSubmitRequest(date=TODAY, reason="x"), now=NOW)


async def test_only_students_submit_reasons(db_session: AsyncSession, students) -> None:
    with pytest.raises(Unauthorized):
        await service.submit_reason(db_session, HOD, ReasonSubmitRequest(date=TODAY, reason="x"), now=NOW)


# ----- Record correction -----
async def test_on_duty_correction_clears_reason_and_notifies(db_session: AsyncSession, students) -> None:
    await service.mark_attendance(db_session, HOD, mark_request(["23CS001"]), now=NOW)
    learner = make_user(students[0].id, UserRole.STUDENT)
    submitted = await service.submit_reason(
        db_session, learner, ReasonSubmitRequest(date=TODAY, reason="Symposium"), now=NOW
    )

    notifier = AttendanceNotifier()
    sub = notifier.subscribe(students[0].id)
    updated = await service.update_record(
        db_session,
        HOD,
        submitted.id,
        RecordUpdateRequest(status=AttendanceStatus.ON_DUTY, action_taken="OD letter verified"),
        notifier=notifier,
        now=NOW,
    )

    assert updated.status == AttendanceStatus.ON_DUTY
    assert updated.reason is None
    assert updated.action_taken == "OD letter verified"
    assert sub.queue.get_nowait().status == "OnDuty"


async def test_correction_of_missing_record(db_session: AsyncSession) -> None:
    with pytest.raises(NotFound):
        await service.update_record(db_session, HOD, uuid4(), RecordUpdateRequest(action_taken="x"))


def test_not_marked_cannot_be_stored() -> None:
    with pytest.raises(ValueError):
        RecordUpdateRequest(status=AttendanceStatus.NOT_MARKED)


# ----- Student summary -----
async def test_student_summary_counts_on_duty_as_attended(db_session: AsyncSession, students) -> None:
    await service.mark_attendance(db_session, HOD, mark_request(["23CS001"]), now=NOW)
    learner = make_user(students[0].id, UserRole.STUDENT)

    summary = await service.get_student_attendance(db_session, learner, students[0].id)
    assert summary.absent_days == 1
    assert summary.total_days == 1
    assert summary.overall_percentage == 0

    record = summary.records[0]
    await service.update_record(
        db_session, HOD, record.id, RecordUpdateRequest(status=AttendanceStatus.ON_DUTY), now=NOW
    )
    summary = await service.get_student_attendance(db_session, learner, students[0].id)
    assert summary.on_duty_days == 1
    assert summary.overall_percentage == 100


async def test_students_cannot_read_each_other(db_session: AsyncSession, students) -> None:
    learner = make_user(students[0].id, UserRole.STUDENT)
    with pytest.raises(Unauthorized):
        await service.get_student_attendance(db_session, learner, students[1].id)


async def test_student_summary_date_range(db_session: AsyncSession, students) -> None:
    await service.mark_attendance(db_session, HOD, mark_request([]), now=NOW)
    summary = await service.get_student_attendance(
        db_session, HOD, students[2].id, start_date="2026-10-01", end_date="2026-10-17"
    )
    assert summary.total_days == 0
    assert summary.overall_percentage == 0
