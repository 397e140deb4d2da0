import io

import pytest
from httpx import AsyncClient
from openpyxl import Workbook, load_workbook
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from attendease.api.users.excel import TEMPLATE_HEADERS
from attendease.auth.models import User
from attendease.db.session import get_db
from attendease.main import app


@pytest.mark.asyncio
async def test_admin_creates_student_with_placement(client: AsyncClient, admin_headers) -> None:
    payload = {
        "name": "  Tanya Sinha ",
        "email": "tanya@example.com",
        "password": "student123",
        "role": "student",
        "enrollment": "00424402023",
        "batch": "3rd year",
        "section": "E1",
    }
    response = await client.post("/api/admin/users", json=payload, headers=admin_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["role"] == "student"
    assert data["name"] == "Tanya Sinha"
    assert data["classOrBatch"] == "3rd year - E1"
    assert data["enrollment"] == "00424402023"
    assert "password_hash" not in data and "passwordHash" not in data


@pytest.mark.asyncio
async def test_student_placement_falls_back_to_enrollment(client: AsyncClient, admin_headers) -> None:
    payload = {
        "name": "Legacy",
        "email": "legacy@example.com",
        "password": "student123",
        "role": "student",
        "enrollment": "2023-E2",
    }
    response = await client.post("/api/admin/users", json=payload, headers=admin_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["classOrBatch"] == "2023-E2"
    assert data["batch"] == "2023"
    assert data["section"] == "E2"


@pytest.mark.asyncio
async def test_student_requires_enrollment(client: AsyncClient, admin_headers) -> None:
    payload = {"name": "No Enr", "email": "noenr@example.com", "password": "student123", "role": "student"}
    response = await client.post("/api/admin/users", json=payload, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Enrollment number required for students"


@pytest.mark.asyncio
async def test_duplicate_keys_have_field_messages(client: AsyncClient, admin_headers, make_user) -> None:
    await make_user("student", email="first@example.com", enrollment="E-100")

    response = await client.post(
        "/api/admin/users",
        json={"name": "X", "email": "FIRST@example.com", "password": "secret123", "role": "teacher"},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Email already exists"}

    response = await client.post(
        "/api/admin/users",
        json={
            "name": "Y",
            "email": "second@example.com",
            "password": "secret123",
            "role": "student",
            "enrollment": "E-100",
        },
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Enrollment number already exists"}


@pytest.mark.asyncio
async def test_list_users_by_role(client: AsyncClient, admin_headers, make_user) -> None:
    await make_user("student")
    await make_user("student")
    await make_user("teacher")

    response = await client.get("/api/admin/users", params={"role": "student"}, headers=admin_headers)
    assert response.status_code == 200
    users = response.json()
    assert len(users) == 2
    assert {u["role"] for u in users} == {"student"}

    response = await client.get("/api/admin/users", headers=admin_headers)
    assert len(response.json()) == 4  # includes the admin


@pytest.mark.asyncio
async def test_update_and_delete_user(client: AsyncClient, admin_headers, make_user, db_session: AsyncSession) -> None:
    student = await make_user("student")

    response = await client.put(
        f"/api/admin/users/{student.id}",
        json={"name": "Renamed", "batch": "2nd year", "section": "E3"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Renamed"
    assert data["classOrBatch"] == "2nd year - E3"

    response = await client.delete(f"/api/admin/users/{student.id}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == {"ok": True}

    count = await db_session.scalar(select(func.count(User.id)).where(User.id == student.id))
    assert count == 0

    response = await client.delete(f"/api/admin/users/{student.id}", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_teacher_assignments(client: AsyncClient, admin_headers, teacher, dbms) -> None:
    body = {"year": "3rd year", "section": "E1", "subjectId": str(dbms.id), "role": "teaching"}
    response = await client.put(f"/api/admin/users/{teacher.id}/assign-section", json=body, headers=admin_headers)
    assert response.status_code == 200
    assignments = response.json()["teacherAssignments"]
    assert len(assignments) == 1
    assert assignments[0]["classOrBatch"] == "3rd year - E1"
    assert assignments[0]["subjectName"] == "DBMS"

    # Same (year, section, subject) twice is refused
    response = await client.put(f"/api/admin/users/{teacher.id}/assign-section", json=body, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Assignment already exists"

    second = {"year": "2nd year", "section": "E1", "subjectId": str(dbms.id), "role": "teaching"}
    await client.put(f"/api/admin/users/{teacher.id}/assign-section", json=second, headers=admin_headers)

    # Remove by index keeps the remaining order
    response = await client.delete(f"/api/admin/users/{teacher.id}/assignments/0", headers=admin_headers)
    assert response.status_code == 200
    remaining = response.json()["teacherAssignments"]
    assert [a["classOrBatch"] for a in remaining] == ["2nd year - E1"]

    response = await client.delete(f"/api/admin/users/{teacher.id}/assignments/5", headers=admin_headers)
    assert response.status_code == 404

    response = await client.request(
        "DELETE",
        f"/api/admin/users/{teacher.id}/assign-section",
        json={"year": "2nd year", "section": "E1", "subjectId": str(dbms.id)},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["teacherAssignments"] == []


@pytest.mark.asyncio
async def test_assign_section_rejects_students(client: AsyncClient, admin_headers, make_user, dbms) -> None:
    student = await make_user("student")
    body = {"year": "3rd year", "section": "E1", "subjectId": str(dbms.id), "role": "teaching"}
    response = await client.put(f"/api/admin/users/{student.id}/assign-section", json=body, headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_mentorship(client: AsyncClient, admin_headers, teacher) -> None:
    response = await client.put(
        f"/api/admin/users/{teacher.id}/assign-mentorship",
        json={"year": "2nd year", "section": "E1"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    mentorship = response.json()["mentorship"]
    assert mentorship["classOrBatch"] == "2nd year - E1"
    assert mentorship["description"] == "Academic guidance and career counseling"

    response = await client.delete(f"/api/admin/users/{teacher.id}/mentorship", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["mentorship"] is None


@pytest.mark.asyncio
async def test_profile(client: AsyncClient, make_user, headers_for) -> None:
    student = await make_user("student", enrollment="00124402023")
    response = await client.get("/api/common/profile", headers=headers_for(student))
    assert response.status_code == 200
    data = response.json()
    assert data["_id"] == str(student.id)
    assert data["enrollment"] == "00124402023"
    assert data["teacherAssignments"] == []
    assert data["mentorship"] is None


def _workbook_bytes(rows) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.append(list(TEMPLATE_HEADERS))
    for row in rows:
        ws.append(row)
    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()


@pytest.mark.asyncio
async def test_student_template_download(client: AsyncClient, admin_headers) -> None:
    response = await client.get("/api/admin/users/bulk-excel/template", headers=admin_headers)
    assert response.status_code == 200
    wb = load_workbook(io.BytesIO(response.content))
    header = [c.value for c in next(wb.active.iter_rows(max_row=1))]
    assert header == list(TEMPLATE_HEADERS)


@pytest.mark.asyncio
async def test_student_excel_import(client: AsyncClient, admin_headers, make_user) -> None:
    await make_user("student", email="taken@example.com")
    content = _workbook_bytes(
        [
            ["Mohammad Asad", "asad@example.com", 124402023, "3rd year", "E1", "student123", ""],
            ["Dup Email", "taken@example.com", "00999", "3rd year", "E1", "student123", ""],
            ["Bad Email", "not-an-email", "00998", "3rd year", "E1", "student123", ""],
        ]
    )
    response = await client.post(
        "/api/admin/users/bulk-excel",
        files={"file": ("students.xlsx", content, "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")},
        headers=admin_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["created"] == 1
    assert data["students"][0]["enrollment"] == "124402023"
    assert data["students"][0]["classOrBatch"] == "3rd year - E1"
    failed = {f["row"]: f["error"] for f in data["failed"]}
    assert failed[3] == "Email already exists"
    assert 4 in failed


@pytest.mark.asyncio
async def test_student_excel_import_rejects_non_xlsx(client: AsyncClient, admin_headers) -> None:
    response = await client.post(
        "/api/admin/users/bulk-excel",
        files={"file": ("students.csv", b"name,email", "text/csv")},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"] == "File must be an Excel file (.xlsx)"


@pytest.mark.asyncio
async def test_teacher_profile_lists_assignments(
    client: AsyncClient, admin_headers, teacher, teacher_headers, dbms
) -> None:
    body = {"year": "3rd year", "section": "E1", "subjectId": str(dbms.id), "role": "teaching"}
    await client.put(f"/api/admin/users/{teacher.id}/assign-section", json=body, headers=admin_headers)

    response = await client.get("/api/common/profile", headers=teacher_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["role"] == "teacher"
    assert [a["classOrBatch"] for a in data["teacherAssignments"]] == ["3rd year - E1"]


@pytest.mark.asyncio
async def test_assignment_endpoints_with_session_per_request(
    client: AsyncClient, engine, admin_headers, teacher, teacher_headers, dbms
) -> None:
    sessions = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    async def session_per_request():
        async with sessions() as session:
            yield session

    app.dependency_overrides[get_db] = session_per_request

    body = {"year": "3rd year", "section": "E1", "subjectId": str(dbms.id), "role": "teaching"}
    response = await client.put(f"/api/admin/users/{teacher.id}/assign-section", json=body, headers=admin_headers)
    assert response.status_code == 200
    assert len(response.json()["teacherAssignments"]) == 1

    response = await client.put(
        f"/api/admin/users/{teacher.id}/assign-mentorship",
        json={"year": "3rd year", "section": "E1"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["teacherAssignments"][0]["subjectName"] == "DBMS"

    response = await client.delete(f"/api/admin/users/{teacher.id}/assignments/0", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["teacherAssignments"] == []
    assert response.json()["mentorship"]["classOrBatch"] == "3rd year - E1"

    response = await client.delete(f"/api/admin/users/{teacher.id}/mentorship", headers=admin_headers)
    assert response.status_code == 200

    response = await client.get("/api/common/profile", headers=teacher_headers)
    assert response.status_code == 200
    assert response.json()["mentorship"] is None
