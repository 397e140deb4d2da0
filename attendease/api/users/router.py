from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from attendease.auth.dependencies import get_current_user
from attendease.auth.rbac import require_admin
from attendease.auth.schemas import CurrentUser
from attendease.core.enums import UserRole
from attendease.core.exceptions import ServiceError
from attendease.db.session import get_db

from . import excel, service
from .schemas import (
    AssignMentorshipRequest,
    AssignSectionRequest,
    ProfileResponse,
    RemoveSectionRequest,
    StudentBulkResponse,
    StudentBulkRowError,
    UserCreate,
    UserResponse,
    UserUpdate,
)

router = APIRouter(prefix="/api/admin/users", tags=["users"], dependencies=[Depends(require_admin)])
profile_router = APIRouter(prefix="/api/common", tags=["users"])


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_db),
):
    try:
        user = await service.create_user(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return service.to_user_response(user)


@router.get("", response_model=List[UserResponse])
async def list_users(
    role: Optional[UserRole] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    users = await service.list_users(db, role=role.value if role else None)
    return [service.to_user_response(u) for u in users]


@router.get("/bulk-excel/template")
async def download_student_template() -> Response:
    """Excel template for the student roster import."""
    return Response(
        content=excel.build_student_template(),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": "attachment; filename=student_upload_template.xlsx"},
    )


@router.post("/bulk-excel", response_model=StudentBulkResponse)
async def import_students_excel(
    file: UploadFile = File(..., description="Columns: name, email, enrollment, batch, section, password, phone"),
    db: AsyncSession = Depends(get_db),
):
    """
    Bulk create students from Excel. Valid rows are created; failed rows are
    returned with their row number and reason.
    """
    try:
        parsed = await excel.parse_students_excel(file)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not parsed:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Excel file has no data rows")
    created, failed = await service.import_students(db, parsed)
    return StudentBulkResponse(
        created=len(created),
        failed=[StudentBulkRowError(row=row, error=err) for row, err in failed],
        students=[service.to_user_response(u) for u in created],
    )


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: UUID,
    payload: UserUpdate,
    db: AsyncSession = Depends(get_db),
):
    try:
        user = await service.update_user(db, user_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return service.to_user_response(user)


@router.delete("/{user_id}")
async def delete_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    deleted = await service.delete_user(db, user_id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return {"ok": True}


# ----- Teacher assignments -----
@router.put("/{user_id}/assign-section", response_model=UserResponse)
async def assign_section(
    user_id: UUID,
    payload: AssignSectionRequest,
    db: AsyncSession = Depends(get_db),
):
    try:
        return service.to_user_response(await service.assign_section(db, user_id, payload))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{user_id}/assign-section", response_model=UserResponse)
async def remove_section(
    user_id: UUID,
    payload: RemoveSectionRequest,
    db: AsyncSession = Depends(get_db),
):
    try:
        return service.to_user_response(await service.remove_section(db, user_id, payload))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{user_id}/assignments/{assignment_index}", response_model=UserResponse)
async def remove_assignment(
    user_id: UUID,
    assignment_index: int,
    db: AsyncSession = Depends(get_db),
):
    try:
        return service.to_user_response(await service.remove_assignment_at(db, user_id, assignment_index))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/{user_id}/assign-mentorship", response_model=UserResponse)
async def assign_mentorship(
    user_id: UUID,
    payload: AssignMentorshipRequest,
    db: AsyncSession = Depends(get_db),
):
    try:
        return service.to_user_response(await service.assign_mentorship(db, user_id, payload))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{user_id}/mentorship", response_model=UserResponse)
async def remove_mentorship(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    try:
        return service.to_user_response(await service.remove_mentorship(db, user_id))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@profile_router.get("/profile", response_model=ProfileResponse)
async def get_profile(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    user = await service.get_user(db, current_user.id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return service.to_profile_response(user)
