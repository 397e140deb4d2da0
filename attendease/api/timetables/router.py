from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from attendease.auth.rbac import require_admin, require_student, require_teacher
from attendease.auth.schemas import CurrentUser
from attendease.core.exceptions import SchedulingConflictError, ServiceError
from attendease.db.session import get_db

from .schemas import TimetableBulkResponse, TimetableSlotCreate, TimetableSlotResponse
from . import service

router = APIRouter(prefix="/api/admin/timetable", tags=["timetables"], dependencies=[Depends(require_admin)])
teacher_router = APIRouter(prefix="/api/teacher/timetable", tags=["timetables"])
student_router = APIRouter(prefix="/api/student/timetable", tags=["timetables"])


def _http_error(e: ServiceError) -> HTTPException:
    if isinstance(e, SchedulingConflictError):
        return HTTPException(status_code=e.status_code, detail=e.to_dict())
    return HTTPException(status_code=e.status_code, detail=e.message)


@router.post("", response_model=TimetableSlotResponse, status_code=status.HTTP_201_CREATED)
async def create_slot(
    payload: TimetableSlotCreate,
    db: AsyncSession = Depends(get_db),
):
    """Create a slot after the section and teacher overlap checks."""
    try:
        return await service.create_timetable_slot(db, payload)
    except ServiceError as e:
        raise _http_error(e)


@router.post("/bulk", response_model=TimetableBulkResponse, status_code=status.HTTP_201_CREATED)
async def create_slots_bulk(
    payload: List[TimetableSlotCreate],
    db: AsyncSession = Depends(get_db),
):
    try:
        return await service.create_timetable_slots_bulk(db, payload)
    except ServiceError as e:
        raise _http_error(e)


@router.get("", response_model=List[TimetableSlotResponse])
async def list_slots(
    classOrBatch: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await service.list_timetable_slots(db, class_or_batch=classOrBatch or None)


@router.delete("/{slot_id}")
async def delete_slot(
    slot_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    deleted = await service.delete_timetable_slot(db, slot_id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Timetable slot not found")
    return {"ok": True}


@teacher_router.get("", response_model=List[TimetableSlotResponse])
async def my_teaching_slots(
    day: Optional[int] = Query(None, ge=0, le=6),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_teacher),
):
    return await service.list_timetable_slots(db, teacher_id=current_user.id, day_of_week=day)


@student_router.get("", response_model=List[TimetableSlotResponse])
async def my_class_slots(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_student),
):
    if not current_user.class_or_batch:
        return []
    return await service.list_timetable_slots(db, class_or_batch=current_user.class_or_batch)
