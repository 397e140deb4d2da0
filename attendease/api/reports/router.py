from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from attendease.auth.rbac import require_admin, require_teacher
from attendease.auth.schemas import CurrentUser
from attendease.db.session import get_db

from .schemas import MonthlyReportResponse
from . import service

router = APIRouter(prefix="/api/admin/reports", tags=["reports"], dependencies=[Depends(require_admin)])
teacher_router = APIRouter(prefix="/api/teacher/reports", tags=["reports"])


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("/monthly", response_model=MonthlyReportResponse)
async def monthly_report(
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=1970, le=9999),
    classOrBatch: Optional[str] = Query(None),
    subjectId: Optional[UUID] = Query(None),
    teacherId: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await service.monthly_report(db, month, year, classOrBatch or None, subjectId, teacherId)


@router.get("/monthly/csv")
async def monthly_report_csv(
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=1970, le=9999),
    classOrBatch: Optional[str] = Query(None),
    subjectId: Optional[UUID] = Query(None),
    teacherId: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> Response:
    docs = await service.monthly_documents(db, month, year, classOrBatch or None, subjectId, teacherId)
    return _csv_response(
        service.attendance_csv(docs, with_timestamp=True),
        f"attendance-{year:04d}-{month:02d}.csv",
    )


@teacher_router.get("/csv")
async def teacher_report_csv(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_teacher),
) -> Response:
    docs = await service.teacher_documents(db, current_user.id)
    return _csv_response(service.attendance_csv(docs), "attendance.csv")
