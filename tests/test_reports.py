import csv
import io
import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from attendease.api.reports.service import CSV_FIELDS, format_percentage, month_prefix
from attendease.core.models import Attendance, ClassSnapshot


async def _add_roster(db: AsyncSession, date: str, subject, teacher, statuses, class_or_batch="3rd year - E1"):
    doc = Attendance(
        date=date,
        timetable_id=uuid.uuid4(),
        snapshot=ClassSnapshot(
            subject_id=subject.id,
            subject_name=subject.name,
            subject_code=subject.code,
            teacher_id=teacher.id,
            teacher_name=teacher.name,
            class_or_batch=class_or_batch,
        ),
        records=[{"studentId": str(uuid.uuid4()), "status": s} for s in statuses],
    )
    db.add(doc)
    await db.commit()
    return doc


def test_format_percentage() -> None:
    assert format_percentage(0, 0) == "0.00"
    assert format_percentage(3, 4) == "75.00"
    assert format_percentage(1, 3) == "33.33"
    assert format_percentage(2, 3) == "66.67"


def test_month_prefix_is_zero_padded() -> None:
    assert month_prefix(9, 2024) == "2024-09-"


@pytest.mark.asyncio
async def test_monthly_report_with_no_data(client: AsyncClient, admin_headers) -> None:
    response = await client.get("/api/admin/reports/monthly", params={"month": 2, "year": 2024}, headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["totalClasses"] == 0
    assert data["totalRecords"] == 0
    assert data["attendancePercentage"] == "0.00"
    assert data["subjectBreakdown"] == []


@pytest.mark.asyncio
async def test_monthly_report_totals_and_breakdowns(
    client: AsyncClient, db_session: AsyncSession, admin_headers, teacher, dbms
) -> None:
    await _add_roster(db_session, "2024-09-02", dbms, teacher, ["present", "present", "absent"])
    await _add_roster(db_session, "2024-09-09", dbms, teacher, ["present"], class_or_batch="2nd year - E1")
    # Outside the month
    await _add_roster(db_session, "2024-10-01", dbms, teacher, ["absent", "absent"])

    response = await client.get("/api/admin/reports/monthly", params={"month": 9, "year": 2024}, headers=admin_headers)
    data = response.json()
    assert data["totalClasses"] == 2
    assert data["totalRecords"] == 4
    assert data["totalPresent"] == 3
    assert data["totalAbsent"] == 1
    assert data["attendancePercentage"] == "75.00"

    assert len(data["subjectBreakdown"]) == 1
    assert data["subjectBreakdown"][0]["subjectCode"] == "DBMS"
    assert data["teacherBreakdown"][0]["teacherName"] == "Teacher A"
    classes = {c["classOrBatch"]: c["attendancePercentage"] for c in data["classBreakdown"]}
    assert classes == {"3rd year - E1": "66.67", "2nd year - E1": "100.00"}

    response = await client.get(
        "/api/admin/reports/monthly",
        params={"month": 9, "year": 2024, "classOrBatch": "2nd year - E1"},
        headers=admin_headers,
    )
    data = response.json()
    assert data["totalRecords"] == 1
    assert data["classOrBatch"] == "2nd year - E1"


@pytest.mark.asyncio
async def test_monthly_report_rejects_bad_month(client: AsyncClient, admin_headers) -> None:
    response = await client.get("/api/admin/reports/monthly", params={"month": 13, "year": 2024}, headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_monthly_csv(client: AsyncClient, db_session: AsyncSession, admin_headers, teacher, dbms) -> None:
    await _add_roster(db_session, "2024-09-02", dbms, teacher, ["present", "absent"])

    response = await client.get(
        "/api/admin/reports/monthly/csv", params={"month": 9, "year": 2024}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attendance-2024-09.csv" in response.headers["content-disposition"]

    rows = list(csv.reader(io.StringIO(response.text)))
    assert rows[0] == CSV_FIELDS + ["timestamp"]
    assert len(rows) == 3
    assert rows[1][:5] == ["2024-09-02", "DBMS", "DBMS", "Teacher A", "3rd year - E1"]
    assert {rows[1][6], rows[2][6]} == {"present", "absent"}
    assert rows[1][7]


@pytest.mark.asyncio
async def test_teacher_csv_only_contains_own_rosters(
    client: AsyncClient, db_session: AsyncSession, teacher, teacher_headers, make_user, dbms
) -> None:
    other = await make_user("teacher")
    await _add_roster(db_session, "2024-09-02", dbms, teacher, ["present"])
    await _add_roster(db_session, "2024-09-03", dbms, other, ["absent"])

    response = await client.get("/api/teacher/reports/csv", headers=teacher_headers)
    assert response.status_code == 200
    rows = list(csv.reader(io.StringIO(response.text)))
    assert rows[0] == CSV_FIELDS
    assert len(rows) == 2
    assert rows[1][0] == "2024-09-02"


@pytest.mark.asyncio
async def test_teacher_csv_with_no_rosters_has_header_only(client: AsyncClient, teacher_headers) -> None:
    response = await client.get("/api/teacher/reports/csv", headers=teacher_headers)
    rows = list(csv.reader(io.StringIO(response.text)))
    assert rows == [CSV_FIELDS]
