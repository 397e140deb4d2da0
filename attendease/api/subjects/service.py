import logging
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from attendease.core.exceptions import ServiceError
from attendease.core.models import Subject

from .schemas import SubjectCreate, SubjectRef, SubjectResponse, SubjectUpdate

logger = logging.getLogger(__name__)

DUPLICATE_CODE_MESSAGE = "Subject code already exists"


def _to_response(s: Subject) -> SubjectResponse:
    return SubjectResponse(
        id=s.id,
        name=s.name,
        code=s.code,
        year=s.year or "",
        semester=s.semester or "",
        createdAt=s.created_at,
        updatedAt=s.updated_at,
    )


def to_ref(s: Optional[Subject]) -> Optional[SubjectRef]:
    if s is None:
        return None
    return SubjectRef(id=s.id, name=s.name, code=s.code)


async def _code_taken(db: AsyncSession, code: str, exclude_subject_id: Optional[UUID] = None) -> bool:
    stmt = select(Subject.id).where(Subject.code == code)
    if exclude_subject_id is not None:
        stmt = stmt.where(Subject.id != exclude_subject_id)
    result = await db.execute(stmt)
    return result.first() is not None


async def get_subject(db: AsyncSession, subject_id: UUID) -> Optional[Subject]:
    return await db.get(Subject, subject_id)


async def get_subjects_by_ids(db: AsyncSession, ids: Iterable[UUID]) -> Dict[UUID, Subject]:
    """Bulk lookup used to populate references; missing ids are simply absent."""
    ids = {i for i in ids if i is not None}
    if not ids:
        return {}
    result = await db.execute(select(Subject).where(Subject.id.in_(ids)))
    return {s.id: s for s in result.scalars().all()}


async def create_subject(db: AsyncSession, payload: SubjectCreate) -> SubjectResponse:
    code = payload.code.strip()
    if await _code_taken(db, code):
        raise ServiceError(DUPLICATE_CODE_MESSAGE, status.HTTP_400_BAD_REQUEST)
    try:
        obj = Subject(
            name=payload.name.strip(),
            code=code,
            year=(payload.year or "").strip(),
            semester=(payload.semester or "").strip(),
        )
        db.add(obj)
        await db.commit()
        await db.refresh(obj)
    except IntegrityError as e:
        await db.rollback()
        raise ServiceError(DUPLICATE_CODE_MESSAGE, status.HTTP_400_BAD_REQUEST) from e
    logger.info("Created subject %s (%s)", obj.code, obj.name)
    return _to_response(obj)


async def list_subjects(db: AsyncSession, year: Optional[str] = None) -> List[SubjectResponse]:
    stmt = select(Subject)
    if year:
        stmt = stmt.where(Subject.year == year)
    stmt = stmt.order_by(Subject.code)
    result = await db.execute(stmt)
    return [_to_response(s) for s in result.scalars().all()]


async def update_subject(db: AsyncSession, subject_id: UUID, payload: SubjectUpdate) -> Optional[SubjectResponse]:
    obj = await db.get(Subject, subject_id)
    if not obj:
        return None
    data = payload.model_dump(exclude_unset=True)
    if data.get("code") is not None:
        code = data["code"].strip()
        if await _code_taken(db, code, exclude_subject_id=subject_id):
            raise ServiceError(DUPLICATE_CODE_MESSAGE, status.HTTP_400_BAD_REQUEST)
        obj.code = code
    if data.get("name") is not None:
        obj.name = data["name"].strip()
    if data.get("year") is not None:
        obj.year = data["year"].strip()
    if data.get("semester") is not None:
        obj.semester = data["semester"].strip()
    try:
        await db.commit()
        await db.refresh(obj)
    except IntegrityError as e:
        await db.rollback()
        raise ServiceError(DUPLICATE_CODE_MESSAGE, status.HTTP_400_BAD_REQUEST) from e
    return _to_response(obj)


async def delete_subject(db: AsyncSession, subject_id: UUID) -> bool:
    """Hard delete. Timetable slots and assignments that reference it are left dangling."""
    obj = await db.get(Subject, subject_id)
    if not obj:
        return False
    await db.delete(obj)
    await db.commit()
    return True
