from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from attendease.api.users import service as user_service
from attendease.auth.dependencies import get_current_user
from attendease.auth.models import User
from attendease.auth.rbac import require_admin
from attendease.db.session import get_db

from .resolver import load_teacher, parse_uuid, students_for_assignment, students_for_teacher
from .schemas import StudentListItem

router = APIRouter(prefix="/api/common", tags=["students"], dependencies=[Depends(get_current_user)])
admin_router = APIRouter(prefix="/api/admin", tags=["students"], dependencies=[Depends(require_admin)])


def _to_item(u: User) -> StudentListItem:
    sp = u.student_profile
    return StudentListItem(
        id=u.id,
        name=u.name,
        email=u.email,
        classOrBatch=sp.class_or_batch if sp else None,
        enrollment=sp.enrollment if sp else None,
        batch=sp.batch if sp else None,
        section=sp.section if sp else None,
    )


@router.get("/students", response_model=List[StudentListItem])
async def list_students(
    teacherId: Optional[str] = Query(None),
    subjectId: Optional[str] = Query(None),
    year: Optional[str] = Query(None),
    section: Optional[str] = Query(None),
    classOrBatch: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """
    Student directory. With teacherId the result is scoped to that teacher's
    assignments; otherwise classOrBatch, then year/section, filter the list.
    """
    if teacherId:
        teacher = await load_teacher(db, parse_uuid(teacherId))
        if teacher is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid teacher ID")
        if year and subjectId:
            students = await students_for_assignment(db, teacher, parse_uuid(subjectId), year)
        else:
            students = await students_for_teacher(db, teacher)
    elif classOrBatch:
        students = await user_service.list_students(db, class_or_batch=classOrBatch)
    elif year:
        students = await user_service.list_students(db, batch=year, section=section or None)
    else:
        students = await user_service.list_students(db)
    return [_to_item(u) for u in students]


@admin_router.get("/teacher-students", response_model=List[StudentListItem])
async def teacher_students(
    teacherId: str = Query(...),
    subjectId: str = Query(...),
    year: str = Query(...),
    db: AsyncSession = Depends(get_db),
):
    teacher = await load_teacher(db, parse_uuid(teacherId))
    if teacher is None:
        return []
    students = await students_for_assignment(db, teacher, parse_uuid(subjectId), year)
    return [_to_item(u) for u in students]
