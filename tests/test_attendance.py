import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from attendease.core.models import Attendance, Timetable


async def _make_slot(db: AsyncSession, subject, teacher, class_or_batch: str = "3rd year - E1") -> Timetable:
    slot = Timetable(
        subject_id=subject.id,
        teacher_id=teacher.id,
        class_or_batch=class_or_batch,
        day_of_week=1,
        start_time="10:00",
        end_time="11:00",
        slot_type="theory",
    )
    db.add(slot)
    await db.commit()
    await db.refresh(slot)
    return slot


def _roster(date: str, slot, statuses) -> dict:
    return {
        "date": date,
        "timetableId": str(slot.id),
        "records": [{"studentId": str(s.id), "status": status} for s, status in statuses],
    }


@pytest.mark.asyncio
async def test_remark_replaces_roster(
    client: AsyncClient, db_session: AsyncSession, teacher, teacher_headers, make_user, dbms
) -> None:
    slot = await _make_slot(db_session, dbms, teacher)
    s1 = await make_user("student")
    s2 = await make_user("student")

    response = await client.post(
        "/api/teacher/attendance/mark",
        json=_roster("2024-09-02", slot, [(s1, "present"), (s2, "absent")]),
        headers=teacher_headers,
    )
    assert response.status_code == 200
    first = response.json()
    assert first["subjectName"] == "DBMS"
    assert first["teacherName"] == "Teacher A"
    assert first["classOrBatch"] == "3rd year - E1"

    response = await client.post(
        "/api/teacher/attendance/mark",
        json=_roster("2024-09-02", slot, [(s1, "present"), (s2, "present")]),
        headers=teacher_headers,
    )
    assert response.status_code == 200
    second = response.json()
    assert second["_id"] == first["_id"]
    assert {r["status"] for r in second["records"]} == {"present"}

    count = await db_session.scalar(select(func.count(Attendance.id)))
    assert count == 1


@pytest.mark.asyncio
async def test_snapshot_survives_subject_rename(
    client: AsyncClient, db_session: AsyncSession, admin_headers, teacher, teacher_headers, make_user, dbms
) -> None:
    slot = await _make_slot(db_session, dbms, teacher)
    s1 = await make_user("student")
    await client.post(
        "/api/teacher/attendance/mark",
        json=_roster("2024-09-02", slot, [(s1, "present")]),
        headers=teacher_headers,
    )

    await client.put(f"/api/admin/subjects/{dbms.id}", json={"name": "Renamed"}, headers=admin_headers)

    response = await client.get("/api/admin/attendance", headers=admin_headers)
    assert response.json()[0]["subjectName"] == "DBMS"


@pytest.mark.asyncio
async def test_mark_rejects_other_teachers_slot(
    client: AsyncClient, db_session: AsyncSession, teacher, make_user, headers_for, dbms
) -> None:
    slot = await _make_slot(db_session, dbms, teacher)
    other = await make_user("teacher")
    student = await make_user("student")

    response = await client.post(
        "/api/teacher/attendance/mark",
        json=_roster("2024-09-02", slot, [(student, "present")]),
        headers=headers_for(other),
    )
    assert response.status_code == 403
    assert response.json() == {"error": "You can only mark attendance for your own classes"}


@pytest.mark.asyncio
async def test_mark_unknown_slot(client: AsyncClient, teacher_headers, make_user) -> None:
    student = await make_user("student")
    payload = {
        "date": "2024-09-02",
        "timetableId": str(uuid.uuid4()),
        "records": [{"studentId": str(student.id), "status": "present"}],
    }
    response = await client.post("/api/teacher/attendance/mark", json=payload, headers=teacher_headers)
    assert response.status_code == 404
    assert response.json() == {"error": "Timetable not found"}


@pytest.mark.asyncio
async def test_mark_validation(
    client: AsyncClient, db_session: AsyncSession, teacher, teacher_headers, make_user, dbms
) -> None:
    slot = await _make_slot(db_session, dbms, teacher)
    student = await make_user("student")

    bad_status = _roster("2024-09-02", slot, [(student, "late")])
    response = await client.post("/api/teacher/attendance/mark", json=bad_status, headers=teacher_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Validation failed"

    bad_date = _roster("02/09/2024", slot, [(student, "present")])
    response = await client.post("/api/teacher/attendance/mark", json=bad_date, headers=teacher_headers)
    assert response.status_code == 400

    empty = {"date": "2024-09-02", "timetableId": str(slot.id), "records": []}
    response = await client.post("/api/teacher/attendance/mark", json=empty, headers=teacher_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_mark_requires_teacher_role(
    client: AsyncClient, db_session: AsyncSession, teacher, make_user, headers_for, dbms
) -> None:
    slot = await _make_slot(db_session, dbms, teacher)
    student = await make_user("student")
    response = await client.post(
        "/api/teacher/attendance/mark",
        json=_roster("2024-09-02", slot, [(student, "present")]),
        headers=headers_for(student),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_check_attendance(
    client: AsyncClient, db_session: AsyncSession, teacher, teacher_headers, make_user, headers_for, dbms
) -> None:
    slot = await _make_slot(db_session, dbms, teacher)
    student = await make_user("student")
    params = {"timetableId": str(slot.id), "date": "2024-09-02"}

    response = await client.get("/api/teacher/attendance/check", params=params, headers=teacher_headers)
    assert response.status_code == 200
    assert response.json() is None

    await client.post(
        "/api/teacher/attendance/mark",
        json=_roster("2024-09-02", slot, [(student, "absent")]),
        headers=teacher_headers,
    )
    response = await client.get("/api/teacher/attendance/check", params=params, headers=teacher_headers)
    assert response.json()["records"] == [{"studentId": str(student.id), "status": "absent"}]

    other = await make_user("teacher")
    response = await client.get("/api/teacher/attendance/check", params=params, headers=headers_for(other))
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid timetable"}


@pytest.mark.asyncio
async def test_student_sees_only_own_status(
    client: AsyncClient, db_session: AsyncSession, teacher, teacher_headers, make_user, headers_for, dbms
) -> None:
    slot = await _make_slot(db_session, dbms, teacher)
    s1 = await make_user("student")
    s2 = await make_user("student")
    outsider = await make_user("student", batch="2nd year", section="E1")

    await client.post(
        "/api/teacher/attendance/mark",
        json=_roster("2024-09-02", slot, [(s1, "present"), (s2, "absent")]),
        headers=teacher_headers,
    )
    await client.post(
        "/api/teacher/attendance/mark",
        json=_roster("2024-09-03", slot, [(s1, "absent"), (s2, "absent")]),
        headers=teacher_headers,
    )

    response = await client.get("/api/student/attendance", headers=headers_for(s1))
    assert response.status_code == 200
    items = response.json()
    assert [(i["date"], i["status"]) for i in items] == [("2024-09-03", "absent"), ("2024-09-02", "present")]
    assert items[0]["subject"]["code"] == "DBMS"
    assert "records" not in items[0]

    response = await client.get("/api/student/attendance/summary", headers=headers_for(s1))
    summary = response.json()
    assert summary["DBMS"]["present"] == 1
    assert summary["DBMS"]["total"] == 2

    response = await client.get("/api/student/attendance", headers=headers_for(outsider))
    assert response.json() == []
    response = await client.get("/api/student/attendance/summary", headers=headers_for(outsider))
    assert response.json() == {}


@pytest.mark.asyncio
async def test_teacher_reports(
    client: AsyncClient, db_session: AsyncSession, teacher, teacher_headers, make_user, headers_for, dbms
) -> None:
    slot = await _make_slot(db_session, dbms, teacher)
    student = await make_user("student")
    await client.post(
        "/api/teacher/attendance/mark",
        json=_roster("2024-09-02", slot, [(student, "present")]),
        headers=teacher_headers,
    )

    response = await client.get("/api/teacher/reports", headers=teacher_headers)
    assert len(response.json()) == 1
    response = await client.get("/api/teacher/reports", params={"subjectId": str(uuid.uuid4())}, headers=teacher_headers)
    assert response.json() == []

    other = await make_user("teacher")
    response = await client.get("/api/teacher/reports", headers=headers_for(other))
    assert response.json() == []


@pytest.mark.asyncio
async def test_admin_list_and_count(
    client: AsyncClient, db_session: AsyncSession, admin_headers, teacher, teacher_headers, make_user, dbms
) -> None:
    response = await client.get("/api/admin/attendance", headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == []
    response = await client.get("/api/admin/attendance/count", headers=admin_headers)
    assert response.json() == {"count": 0}

    slot = await _make_slot(db_session, dbms, teacher)
    student = await make_user("student")
    for day in ("2024-09-02", "2024-09-03"):
        await client.post(
            "/api/teacher/attendance/mark",
            json=_roster(day, slot, [(student, "present")]),
            headers=teacher_headers,
        )

    response = await client.get("/api/admin/attendance", headers=admin_headers)
    assert [a["date"] for a in response.json()] == ["2024-09-03", "2024-09-02"]

    response = await client.get("/api/admin/attendance", params={"date": "2024-09-02"}, headers=admin_headers)
    assert len(response.json()) == 1

    response = await client.get(
        "/api/admin/attendance/count",
        params={"classOrBatch": "3rd year - E1", "teacherId": str(teacher.id)},
        headers=admin_headers,
    )
    assert response.json() == {"count": 2}

    response = await client.get(
        "/api/admin/attendance/count", params={"classOrBatch": "2nd year - E1"}, headers=admin_headers
    )
    assert response.json() == {"count": 0}
