from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from attendease.auth.rbac import require_admin, require_student, require_teacher
from attendease.auth.schemas import CurrentUser
from attendease.core.exceptions import ServiceError
from attendease.db.session import get_db

from .schemas import (
    AttendanceCountResponse,
    AttendanceMarkRequest,
    AttendanceResponse,
    StudentAttendanceItem,
    SubjectAttendanceSummary,
)
from . import service

admin_router = APIRouter(prefix="/api/admin/attendance", tags=["attendance"], dependencies=[Depends(require_admin)])
teacher_router = APIRouter(prefix="/api/teacher", tags=["attendance"])
student_router = APIRouter(prefix="/api/student/attendance", tags=["attendance"])


# ----- Teacher -----
@teacher_router.get("/attendance/check", response_model=Optional[AttendanceResponse])
async def check_attendance(
    timetableId: UUID = Query(...),
    date: str = Query(..., pattern=r"^\d{4}-\d{2}-\d{2}$"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_teacher),
):
    """Existing roster for the slot on that date, or null."""
    try:
        return await service.check_attendance(db, current_user, timetableId, date)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@teacher_router.post("/attendance/mark", response_model=AttendanceResponse)
async def mark_attendance(
    payload: AttendanceMarkRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_teacher),
):
    try:
        return await service.mark_attendance(db, current_user, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@teacher_router.get("/reports", response_model=List[AttendanceResponse])
async def teacher_reports(
    subjectId: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_teacher),
):
    return await service.list_for_teacher(db, current_user.id, subject_id=subjectId)


# ----- Student -----
@student_router.get("/summary", response_model=Dict[str, SubjectAttendanceSummary])
async def my_attendance_summary(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_student),
):
    return await service.summary_for_student(db, current_user)


@student_router.get("", response_model=List[StudentAttendanceItem])
async def my_attendance(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_student),
):
    return await service.list_for_student(db, current_user)


# ----- Admin -----
@admin_router.get("", response_model=List[AttendanceResponse])
async def list_attendance(
    date: Optional[str] = Query(None),
    classOrBatch: Optional[str] = Query(None),
    teacherId: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await service.list_all(db, date=date, class_or_batch=classOrBatch, teacher_id=teacherId)


@admin_router.get("/count", response_model=AttendanceCountResponse)
async def count_attendance(
    date: Optional[str] = Query(None),
    classOrBatch: Optional[str] = Query(None),
    teacherId: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    count = await service.count_all(db, date=date, class_or_batch=classOrBatch, teacher_id=teacherId)
    return AttendanceCountResponse(count=count)
