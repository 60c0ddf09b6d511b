from uuid import UUID, uuid4

from httpx import AsyncClient

from app.core.dates import today
from app.core.enums import UserRole

from conftest import CLASS_FIELDS, CLASS_KEY, auth_headers

HOD_ID = uuid4()
HOD_HEADERS = auth_headers(HOD_ID, UserRole.HOD)


def body(**extra):
    return {**CLASS_FIELDS, **extra}


async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


async def test_requests_need_a_token(client: AsyncClient, students) -> None:
    response = await client.post("/api/v1/attendance/mark", json=body(absent_roll_numbers=[]))
    assert response.status_code == 401

    response = await client.post(
        "/api/v1/attendance/mark",
        json=body(absent_roll_numbers=[]),
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert response.status_code == 401


async def test_students_cannot_mark(client: AsyncClient, students) -> None:
    headers = auth_headers(students[0].id, UserRole.STUDENT)
    response = await client.post("/api/v1/attendance/mark", json=body(absent_roll_numbers=[]), headers=headers)
    assert response.status_code == 403


async def test_mark_edit_and_history(client: AsyncClient, students) -> None:
    response = await client.post(
        "/api/v1/attendance/mark",
        json=body(year="2", semester="3", absent_roll_numbers=["23CS002"]),
        headers=HOD_HEADERS,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["class_key"] == CLASS_KEY
    assert data["records_created"] == 5
    assert data["absent_roll_numbers"] == ["23CS002"]
    assert data["date"] == today().isoformat()

    again = await client.post("/api/v1/attendance/mark", json=body(absent_roll_numbers=[]), headers=HOD_HEADERS)
    assert again.status_code == 409
    assert again.json()["detail"]["code"] == "AlreadyMarked"
    assert again.json()["detail"]["message"] == "Attendance already marked. Use Edit Attendance."

    edit = await client.put(
        "/api/v1/attendance/edit",
        json=body(date=today().isoformat(), absent_roll_numbers=["23CS004"]),
        headers=HOD_HEADERS,
    )
    assert edit.status_code == 200
    assert edit.json()["records_updated"] == 5

    history = await client.get(
        "/api/v1/attendance/history",
        params={**CLASS_FIELDS, "date": today().isoformat()},
        headers=HOD_HEADERS,
    )
    assert history.status_code == 200
    records = {r["roll_number"]: r["status"] for r in history.json()["records"]}
    assert records["23CS002"] == "Present"
    assert records["23CS004"] == "Absent"


async def test_error_details_are_structured(client: AsyncClient, students) -> None:
    unknown = await client.post(
        "/api/v1/attendance/mark",
        json=body(absent_roll_numbers=["99XX001"]),
        headers=HOD_HEADERS,
    )
    assert unknown.status_code == 400
    assert unknown.json()["detail"]["code"] == "UnknownRollNumber"
    assert unknown.json()["detail"]["roll_number"] == "99XX001"

    bad_day = await client.put(
        "/api/v1/attendance/edit",
        json=body(date="18/10/2026", absent_roll_numbers=[]),
        headers=HOD_HEADERS,
    )
    assert bad_day.status_code == 400
    assert bad_day.json()["detail"]["code"] == "InvalidDate"

    past = await client.put(
        "/api/v1/attendance/edit",
        json=body(date="2020-01-01", absent_roll_numbers=[]),
        headers=HOD_HEADERS,
    )
    assert past.status_code == 422
    assert past.json()["detail"]["rule"] == "onlyTodayAllowed"

    nothing = await client.put(
        "/api/v1/attendance/edit",
        json=body(date=today().isoformat(), absent_roll_numbers=[]),
        headers=HOD_HEADERS,
    )
    assert nothing.status_code == 404
    assert nothing.json()["detail"]["code"] == "NothingToEdit"


async def test_invalid_class_identity(client: AsyncClient) -> None:
    response = await client.get(
        "/api/v1/attendance/roster",
        params={**CLASS_FIELDS, "batch": "2027-2023"},
        headers=HOD_HEADERS,
    )
    assert response.status_code == 422


async def test_roster(client: AsyncClient, students) -> None:
    response = await client.get("/api/v1/attendance/roster", params=CLASS_FIELDS, headers=HOD_HEADERS)
    assert response.status_code == 200
    data = response.json()
    assert data["total_students"] == 5
    assert [s["roll_number"] for s in data["students"]][:2] == ["23CS001", "23CS002"]


async def test_assigned_advisor_marks_with_own_token(client: AsyncClient, students, faculty) -> None:
    advisor_headers = auth_headers(faculty[0].id, UserRole.FACULTY)

    denied = await client.post("/api/v1/attendance/mark", json=body(absent_roll_numbers=[]), headers=advisor_headers)
    assert denied.status_code == 403

    assigned = await client.post(
        "/api/v1/class-assignments",
        json=body(faculty_id=str(faculty[0].id), notes="Semester start"),
        headers=HOD_HEADERS,
    )
    assert assigned.status_code == 201
    assignment_id = assigned.json()["assignment"]["id"]

    marked = await client.post("/api/v1/attendance/mark", json=body(absent_roll_numbers=[]), headers=advisor_headers)
    assert marked.status_code == 201

    cache = await client.get(f"/api/v1/faculty/{faculty[0].id}/assigned-classes", headers=advisor_headers)
    assert cache.status_code == 200
    assert [e["assignment_id"] for e in cache.json()["assigned_classes"]] == [assignment_id]
    assert cache.json()["assigned_classes"][0]["notes"] == "Semester start"

    current = await client.get("/api/v1/class-assignments/current", params=CLASS_FIELDS, headers=advisor_headers)
    assert current.status_code == 200
    assert current.json()["faculty_id"] == str(faculty[0].id)


async def test_advisor_lifecycle_over_http(client: AsyncClient, faculty) -> None:
    first = await client.post(
        "/api/v1/class-assignments", json=body(faculty_id=str(faculty[0].id)), headers=HOD_HEADERS
    )
    second = await client.post(
        "/api/v1/class-assignments", json=body(faculty_id=str(faculty[1].id)), headers=HOD_HEADERS
    )
    assert second.status_code == 201
    assert second.json()["replaced"]["faculty_id"] == str(faculty[0].id)

    first_id = first.json()["assignment"]["id"]
    second_id = second.json()["assignment"]["id"]

    again = await client.patch(f"/api/v1/class-assignments/{first_id}/deactivate", headers=HOD_HEADERS)
    assert again.status_code == 409
    assert again.json()["detail"]["code"] == "AlreadyInactive"

    deactivated = await client.patch(f"/api/v1/class-assignments/{second_id}/deactivate", headers=HOD_HEADERS)
    assert deactivated.status_code == 200
    assert deactivated.json()["active"] is False

    removed = await client.delete(f"/api/v1/class-assignments/{second_id}", headers=HOD_HEADERS)
    assert removed.status_code == 204
    missing = await client.get(f"/api/v1/class-assignments/{second_id}", headers=HOD_HEADERS)
    assert missing.status_code == 404

    rebuilt = await client.post(f"/api/v1/faculty/{faculty[1].id}/assigned-classes/rebuild", headers=HOD_HEADERS)
    assert rebuilt.status_code == 200
    assert rebuilt.json() == {"faculty_id": str(faculty[1].id), "assigned_classes": [], "rebuilt": True}


async def test_faculty_cannot_assign_over_http(client: AsyncClient, faculty) -> None:
    response = await client.post(
        "/api/v1/class-assignments",
        json=body(faculty_id=str(faculty[1].id)),
        headers=auth_headers(faculty[0].id, UserRole.FACULTY),
    )
    assert response.status_code == 403


async def test_student_reason_over_http(client: AsyncClient, students) -> None:
    await client.post("/api/v1/attendance/mark", json=body(absent_roll_numbers=["23CS003"]), headers=HOD_HEADERS)

    response = await client.patch(
        "/api/v1/attendance/reason",
        json={"date": today().isoformat(), "reason": "Family function"},
        headers=auth_headers(students[2].id, UserRole.STUDENT),
    )
    assert response.status_code == 200
    assert response.json()["reason"] == "Family function"
    UUID(response.json()["id"])

    summary = await client.get(
        f"/api/v1/attendance/students/{students[2].id}",
        headers=auth_headers(students[2].id, UserRole.STUDENT),
    )
    assert summary.status_code == 200
    assert summary.json()["absent_days"] == 1


async def test_stream_is_for_students_only(client: AsyncClient, faculty) -> None:
    token_header = auth_headers(faculty[0].id, UserRole.FACULTY)["Authorization"]
    token = token_header.split(" ", 1)[1]
    response = await client.get("/api/v1/attendance/stream", params={"token": token})
    assert response.status_code == 403

    response = await client.get("/api/v1/attendance/stream", params={"token": "garbage"})
    assert response.status_code == 401
