"""Timetable slots and scheduling-conflict detection.

Conflict checks and the insert are not atomic: two concurrent creates can both
pass the overlap check. Only an exact (class, day, start, end) duplicate is
caught by the unique constraint; partially overlapping slots can slip through
under that race.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from attendease.api.subjects import service as subject_service
from attendease.auth.models import User
from attendease.core.enums import UserRole
from attendease.core.exceptions import SchedulingConflictError, ServiceError
from attendease.core.models import Subject, Timetable

from .schemas import (
    BulkSlotError,
    TeacherRef,
    TimetableBulkResponse,
    TimetableSlotCreate,
    TimetableSlotResponse,
)

logger = logging.getLogger(__name__)


def overlaps(start_a: str, end_a: str, start_b: str, end_b: str) -> bool:
    """Half-open [start, end) overlap on zero-padded HH:MM strings; touching ends do not overlap."""
    return start_a < end_b and start_b < end_a


async def get_users_by_ids(db: AsyncSession, ids: Iterable[UUID]) -> Dict[UUID, User]:
    ids = {i for i in ids if i is not None}
    if not ids:
        return {}
    result = await db.execute(select(User).where(User.id.in_(ids)))
    return {u.id: u for u in result.scalars().all()}


def _teacher_ref(u: Optional[User]) -> Optional[TeacherRef]:
    if u is None:
        return None
    return TeacherRef(id=u.id, name=u.name, email=u.email)


def _to_response(t: Timetable, subjects: Dict[UUID, Subject], users: Dict[UUID, User]) -> TimetableSlotResponse:
    return TimetableSlotResponse(
        id=t.id,
        subjectId=subject_service.to_ref(subjects.get(t.subject_id)),
        teacherId=_teacher_ref(users.get(t.teacher_id)),
        classOrBatch=t.class_or_batch,
        dayOfWeek=t.day_of_week,
        startTime=t.start_time,
        endTime=t.end_time,
        slotType=t.slot_type,
        room=t.room,
        notes=t.notes,
        createdAt=t.created_at,
    )


async def to_responses(db: AsyncSession, slots: Sequence[Timetable]) -> List[TimetableSlotResponse]:
    """Populate subject and teacher references for a batch of slots."""
    subjects = await subject_service.get_subjects_by_ids(db, (t.subject_id for t in slots))
    users = await get_users_by_ids(db, (t.teacher_id for t in slots))
    return [_to_response(t, subjects, users) for t in slots]


async def get_slot(db: AsyncSession, slot_id: UUID) -> Optional[Timetable]:
    return await db.get(Timetable, slot_id)


# ----- Conflict checks -----
def _check_section_conflicts(
    payload: TimetableSlotCreate,
    existing: Sequence[Timetable],
    subjects: Dict[UUID, Subject],
    users: Dict[UUID, User],
) -> None:
    clashes = [
        t
        for t in existing
        if t.class_or_batch == payload.classOrBatch
        and t.day_of_week == payload.dayOfWeek
        and overlaps(payload.startTime, payload.endTime, t.start_time, t.end_time)
    ]
    if clashes:
        raise SchedulingConflictError(
            f"{payload.classOrBatch} already has a class between {payload.startTime} and {payload.endTime} on this day",
            [
                {
                    "subject": subjects[t.subject_id].name if t.subject_id in subjects else "Unknown subject",
                    "teacher": users[t.teacher_id].name if t.teacher_id in users else "Unknown teacher",
                    "startTime": t.start_time,
                    "endTime": t.end_time,
                }
                for t in clashes
            ],
        )


def _check_teacher_conflicts(
    payload: TimetableSlotCreate,
    existing: Sequence[Timetable],
    subjects: Dict[UUID, Subject],
) -> None:
    clashes = [
        t
        for t in existing
        if t.teacher_id == payload.teacherId
        and t.day_of_week == payload.dayOfWeek
        and overlaps(payload.startTime, payload.endTime, t.start_time, t.end_time)
    ]
    if clashes:
        raise SchedulingConflictError(
            f"Teacher is already scheduled between {payload.startTime} and {payload.endTime} on this day",
            [
                {
                    "subject": subjects[t.subject_id].name if t.subject_id in subjects else "Unknown subject",
                    "class": t.class_or_batch,
                    "startTime": t.start_time,
                    "endTime": t.end_time,
                }
                for t in clashes
            ],
        )


async def _existing_for_day(db: AsyncSession, payload: TimetableSlotCreate) -> List[Timetable]:
    """Stored slots on the candidate's day for its section or its teacher."""
    result = await db.execute(
        select(Timetable).where(
            Timetable.day_of_week == payload.dayOfWeek,
            (Timetable.class_or_batch == payload.classOrBatch) | (Timetable.teacher_id == payload.teacherId),
        )
    )
    return list(result.scalars().all())


async def check_conflicts(
    db: AsyncSession,
    payload: TimetableSlotCreate,
    pending: Sequence[Timetable] = (),
) -> None:
    """Section check first, then teacher check. `pending` holds unsaved slots from the same batch."""
    existing = await _existing_for_day(db, payload) + list(pending)
    if not existing:
        return
    subjects = await subject_service.get_subjects_by_ids(db, (t.subject_id for t in existing))
    users = await get_users_by_ids(db, (t.teacher_id for t in existing))
    try:
        _check_section_conflicts(payload, existing, subjects, users)
        _check_teacher_conflicts(payload, existing, subjects)
    except SchedulingConflictError as e:
        logger.warning("Scheduling conflict for %s day %s: %s", payload.classOrBatch, payload.dayOfWeek, e.details)
        raise


async def _validate(db: AsyncSession, payload: TimetableSlotCreate) -> None:
    if payload.endTime <= payload.startTime:
        raise ServiceError("endTime must be after startTime", status.HTTP_400_BAD_REQUEST)
    if not await db.get(Subject, payload.subjectId):
        raise ServiceError("Invalid subject", status.HTTP_400_BAD_REQUEST)
    teacher = await db.get(User, payload.teacherId)
    if not teacher or teacher.role != UserRole.TEACHER.value:
        raise ServiceError("Invalid teacher", status.HTTP_400_BAD_REQUEST)


def _new_slot(payload: TimetableSlotCreate) -> Timetable:
    return Timetable(
        subject_id=payload.subjectId,
        teacher_id=payload.teacherId,
        class_or_batch=payload.classOrBatch,
        day_of_week=payload.dayOfWeek,
        start_time=payload.startTime,
        end_time=payload.endTime,
        slot_type=payload.slotType.value,
        room=payload.room.strip() if payload.room else None,
        notes=payload.notes,
    )


def _duplicate_slot_error(payload: TimetableSlotCreate) -> SchedulingConflictError:
    return SchedulingConflictError(
        f"{payload.classOrBatch} already has a slot from {payload.startTime} to {payload.endTime} on this day",
        [],
    )


async def create_timetable_slot(db: AsyncSession, payload: TimetableSlotCreate) -> TimetableSlotResponse:
    await _validate(db, payload)
    await check_conflicts(db, payload)
    obj = _new_slot(payload)
    try:
        db.add(obj)
        await db.commit()
        await db.refresh(obj)
    except IntegrityError as e:
        await db.rollback()
        raise _duplicate_slot_error(payload) from e
    logger.info(
        "Created timetable slot %s %s day %s %s-%s",
        obj.id, obj.class_or_batch, obj.day_of_week, obj.start_time, obj.end_time,
    )
    return (await to_responses(db, [obj]))[0]


async def create_timetable_slots_bulk(
    db: AsyncSession, payloads: List[TimetableSlotCreate]
) -> TimetableBulkResponse:
    """
    Validate every slot against stored slots and earlier slots of the batch, then insert
    all of them in one transaction. If that insert fails, create them one by one and
    report which ones failed.
    """
    if not payloads:
        raise ServiceError("Invalid slots data", status.HTTP_400_BAD_REQUEST)

    pending: List[Timetable] = []
    for index, payload in enumerate(payloads):
        try:
            await _validate(db, payload)
            await check_conflicts(db, payload, pending)
        except SchedulingConflictError as e:
            e.details = f"Slot {index + 1}: {e.details}"
            raise
        except ServiceError as e:
            raise ServiceError(f"Slot {index + 1}: {e.message}", e.status_code) from e
        pending.append(_new_slot(payload))

    try:
        db.add_all(pending)
        await db.commit()
        for obj in pending:
            await db.refresh(obj)
    except IntegrityError:
        await db.rollback()
        logger.warning("Bulk timetable insert failed; falling back to sequential creates")
        return await _create_sequentially(db, payloads)

    return TimetableBulkResponse(
        requested=len(payloads),
        created=len(pending),
        slots=await to_responses(db, pending),
    )


async def _create_sequentially(db: AsyncSession, payloads: List[TimetableSlotCreate]) -> TimetableBulkResponse:
    created: List[TimetableSlotResponse] = []
    failed: List[Tuple[int, str]] = []
    for index, payload in enumerate(payloads):
        try:
            created.append(await create_timetable_slot(db, payload))
        except ServiceError as e:
            message = e.message
            if isinstance(e, SchedulingConflictError):
                message = f"{e.message}: {e.details}"
            failed.append((index, message))
    if failed:
        logger.warning("Bulk timetable fallback: %d of %d slots failed", len(failed), len(payloads))
    return TimetableBulkResponse(
        requested=len(payloads),
        created=len(created),
        failed=[BulkSlotError(index=i, error=msg) for i, msg in failed],
        slots=created,
    )


async def list_timetable_slots(
    db: AsyncSession,
    class_or_batch: Optional[str] = None,
    teacher_id: Optional[UUID] = None,
    day_of_week: Optional[int] = None,
) -> List[TimetableSlotResponse]:
    stmt = select(Timetable)
    if class_or_batch is not None:
        stmt = stmt.where(Timetable.class_or_batch == class_or_batch)
    if teacher_id is not None:
        stmt = stmt.where(Timetable.teacher_id == teacher_id)
    if day_of_week is not None:
        stmt = stmt.where(Timetable.day_of_week == day_of_week)
    stmt = stmt.order_by(Timetable.day_of_week, Timetable.start_time)
    result = await db.execute(stmt)
    return await to_responses(db, list(result.scalars().all()))


async def delete_timetable_slot(db: AsyncSession, slot_id: UUID) -> bool:
    """Attendance already recorded for the slot keeps its snapshot."""
    obj = await db.get(Timetable, slot_id)
    if not obj:
        return False
    await db.delete(obj)
    await db.commit()
    return True
