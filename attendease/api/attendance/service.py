import logging
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from attendease.auth.models import User
from attendease.auth.schemas import CurrentUser
from attendease.core.exceptions import ServiceError
from attendease.core.models import Attendance, ClassSnapshot, Subject, Timetable

from .schemas import (
    AttendanceMarkRequest,
    AttendanceRecordResponse,
    AttendanceResponse,
    StudentAttendanceItem,
    SubjectAttendanceSummary,
    SubjectSnapshotRef,
    TeacherSnapshotRef,
)

logger = logging.getLogger(__name__)


def to_response(a: Attendance) -> AttendanceResponse:
    return AttendanceResponse(
        id=a.id,
        date=a.date,
        timetableId=a.timetable_id,
        subjectId=a.subject_id,
        subjectName=a.subject_name,
        subjectCode=a.subject_code,
        teacherId=a.teacher_id,
        teacherName=a.teacher_name,
        classOrBatch=a.class_or_batch,
        records=[AttendanceRecordResponse(studentId=str(r["studentId"]), status=r["status"]) for r in a.records or []],
        createdAt=a.created_at,
        updatedAt=a.updated_at,
    )


async def _snapshot_from_slot(db: AsyncSession, slot: Timetable) -> ClassSnapshot:
    """Copy subject, teacher and class from the slot as they are right now."""
    subject = await db.get(Subject, slot.subject_id)
    teacher = await db.get(User, slot.teacher_id)
    return ClassSnapshot(
        subject_id=slot.subject_id,
        subject_name=subject.name if subject else None,
        subject_code=subject.code if subject else None,
        teacher_id=slot.teacher_id,
        teacher_name=teacher.name if teacher else None,
        class_or_batch=slot.class_or_batch,
    )


async def _find(db: AsyncSession, date: str, timetable_id: UUID) -> Optional[Attendance]:
    result = await db.execute(
        select(Attendance).where(
            Attendance.date == date,
            Attendance.timetable_id == timetable_id,
        )
    )
    return result.scalar_one_or_none()


async def _owned_slot(db: AsyncSession, current_user: CurrentUser, timetable_id: UUID) -> Timetable:
    slot = await db.get(Timetable, timetable_id)
    if not slot:
        raise ServiceError("Timetable not found", status.HTTP_404_NOT_FOUND)
    if slot.teacher_id != current_user.id:
        raise ServiceError("You can only mark attendance for your own classes", status.HTTP_403_FORBIDDEN)
    return slot


async def mark_attendance(
    db: AsyncSession,
    current_user: CurrentUser,
    payload: AttendanceMarkRequest,
) -> AttendanceResponse:
    """
    Store the roster for (date, slot). An existing roster for the same pair is
    replaced as a whole, and the class snapshot is refreshed from the slot.
    """
    slot = await _owned_slot(db, current_user, payload.timetableId)
    slot_id = slot.id
    snapshot = await _snapshot_from_slot(db, slot)
    records = [{"studentId": str(r.studentId), "status": r.status.value} for r in payload.records]

    doc = await _find(db, payload.date, slot_id)
    if doc is None:
        doc = Attendance(date=payload.date, timetable_id=slot_id, snapshot=snapshot, records=records)
        db.add(doc)
    else:
        doc.snapshot = snapshot
        doc.records = records
    try:
        await db.commit()
    except IntegrityError:
        # Another request inserted the same (date, slot) first; overwrite it instead
        await db.rollback()
        doc = await _find(db, payload.date, slot_id)
        if doc is None:
            raise ServiceError("Failed to save attendance", status.HTTP_500_INTERNAL_SERVER_ERROR)
        doc.snapshot = snapshot
        doc.records = records
        await db.commit()
    await db.refresh(doc)
    logger.info("Attendance marked for slot %s on %s: %d records", slot_id, payload.date, len(records))
    return to_response(doc)


async def check_attendance(
    db: AsyncSession,
    current_user: CurrentUser,
    timetable_id: UUID,
    date: str,
) -> Optional[AttendanceResponse]:
    slot = await db.get(Timetable, timetable_id)
    if not slot or slot.teacher_id != current_user.id:
        raise ServiceError("Invalid timetable", status.HTTP_400_BAD_REQUEST)
    doc = await _find(db, date, timetable_id)
    return to_response(doc) if doc else None


async def list_for_teacher(
    db: AsyncSession,
    teacher_id: UUID,
    subject_id: Optional[UUID] = None,
) -> List[AttendanceResponse]:
    """Rosters the teacher recorded, matched on the snapshot teacher."""
    stmt = select(Attendance).where(Attendance.teacher_id == teacher_id)
    if subject_id is not None:
        stmt = stmt.where(Attendance.subject_id == subject_id)
    stmt = stmt.order_by(Attendance.date.desc(), Attendance.created_at.desc())
    result = await db.execute(stmt)
    return [to_response(a) for a in result.scalars().all()]


def _admin_filters(stmt, date: Optional[str], class_or_batch: Optional[str], teacher_id: Optional[UUID]):
    if date:
        stmt = stmt.where(Attendance.date == date)
    if class_or_batch:
        stmt = stmt.where(Attendance.class_or_batch == class_or_batch)
    if teacher_id is not None:
        stmt = stmt.where(Attendance.teacher_id == teacher_id)
    return stmt


async def list_all(
    db: AsyncSession,
    date: Optional[str] = None,
    class_or_batch: Optional[str] = None,
    teacher_id: Optional[UUID] = None,
) -> List[AttendanceResponse]:
    stmt = _admin_filters(select(Attendance), date, class_or_batch, teacher_id)
    stmt = stmt.order_by(Attendance.date.desc(), Attendance.created_at.desc())
    result = await db.execute(stmt)
    return [to_response(a) for a in result.scalars().all()]


async def count_all(
    db: AsyncSession,
    date: Optional[str] = None,
    class_or_batch: Optional[str] = None,
    teacher_id: Optional[UUID] = None,
) -> int:
    stmt = _admin_filters(select(func.count(Attendance.id)), date, class_or_batch, teacher_id)
    result = await db.execute(stmt)
    return result.scalar_one()


async def _class_documents(db: AsyncSession, class_or_batch: Optional[str]) -> List[Attendance]:
    if not class_or_batch:
        return []
    result = await db.execute(
        select(Attendance)
        .where(Attendance.class_or_batch == class_or_batch)
        .order_by(Attendance.date.desc(), Attendance.created_at.desc())
    )
    return list(result.scalars().all())


def _own_status(a: Attendance, student_id: str) -> Optional[str]:
    for r in a.records or []:
        if str(r.get("studentId")) == student_id:
            return r.get("status")
    return None


async def list_for_student(db: AsyncSession, current_user: CurrentUser) -> List[StudentAttendanceItem]:
    """The student's own status per session, newest first. Other students' entries are never exposed."""
    me = str(current_user.id)
    items: List[StudentAttendanceItem] = []
    for a in await _class_documents(db, current_user.class_or_batch):
        own = _own_status(a, me)
        if own is None:
            continue
        items.append(
            StudentAttendanceItem(
                id=a.id,
                date=a.date,
                subject=SubjectSnapshotRef(id=a.subject_id, name=a.subject_name, code=a.subject_code),
                teacher=TeacherSnapshotRef(id=a.teacher_id, name=a.teacher_name),
                classOrBatch=a.class_or_batch,
                status=own,
            )
        )
    return items


async def summary_for_student(db: AsyncSession, current_user: CurrentUser) -> Dict[str, SubjectAttendanceSummary]:
    """Present/total per subject, keyed by subject name (falling back to code, then id)."""
    me = str(current_user.id)
    docs = await _class_documents(db, current_user.class_or_batch)
    summary: Dict[str, SubjectAttendanceSummary] = {}
    for a in docs:
        own = _own_status(a, me)
        if own is None:
            continue
        key = a.subject_name or a.subject_code or f"Subject {a.subject_id}"
        entry = summary.get(key)
        if entry is None:
            entry = SubjectAttendanceSummary(
                subjectId=a.subject_id,
                subjectName=a.subject_name,
                subjectCode=a.subject_code,
            )
            summary[key] = entry
        entry.total += 1
        if own == "present":
            entry.present += 1
    return summary
