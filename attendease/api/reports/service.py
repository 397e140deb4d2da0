"""Monthly attendance aggregation and CSV export."""

import csv
import io
from typing import Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from attendease.core.models import Attendance

from .schemas import AttendanceTotals, ClassBreakdown, MonthlyReportResponse, SubjectBreakdown, TeacherBreakdown

CSV_FIELDS = ["date", "subject", "code", "teacher", "class", "studentId", "status"]
MONTHLY_CSV_FIELDS = CSV_FIELDS + ["timestamp"]


def format_percentage(present: int, total: int) -> str:
    """present / total as a percentage with two decimals; "0.00" when there is nothing to count."""
    if total <= 0:
        return "0.00"
    return f"{present / total * 100:.2f}"


def month_prefix(month: int, year: int) -> str:
    return f"{year:04d}-{month:02d}-"


def _accumulate(totals: AttendanceTotals, a: Attendance) -> None:
    totals.totalClasses += 1
    for r in a.records or []:
        totals.totalRecords += 1
        if r.get("status") == "present":
            totals.totalPresent += 1
        else:
            totals.totalAbsent += 1


def _finish(totals: AttendanceTotals) -> None:
    totals.attendancePercentage = format_percentage(totals.totalPresent, totals.totalRecords)


async def monthly_documents(
    db: AsyncSession,
    month: int,
    year: int,
    class_or_batch: Optional[str] = None,
    subject_id: Optional[UUID] = None,
    teacher_id: Optional[UUID] = None,
) -> List[Attendance]:
    # Dates are stored as YYYY-MM-DD, so a month is a string prefix
    stmt = select(Attendance).where(Attendance.date.startswith(month_prefix(month, year)))
    if class_or_batch:
        stmt = stmt.where(Attendance.class_or_batch == class_or_batch)
    if subject_id is not None:
        stmt = stmt.where(Attendance.subject_id == subject_id)
    if teacher_id is not None:
        stmt = stmt.where(Attendance.teacher_id == teacher_id)
    stmt = stmt.order_by(Attendance.date, Attendance.created_at)
    result = await db.execute(stmt)
    return list(result.scalars().all())


def aggregate_monthly(
    docs: Sequence[Attendance],
    month: int,
    year: int,
    class_or_batch: Optional[str] = None,
    subject_id: Optional[UUID] = None,
    teacher_id: Optional[UUID] = None,
) -> MonthlyReportResponse:
    report = MonthlyReportResponse(
        month=month,
        year=year,
        classOrBatch=class_or_batch,
        subjectId=subject_id,
        teacherId=teacher_id,
    )
    by_subject: Dict[UUID, SubjectBreakdown] = {}
    by_teacher: Dict[UUID, TeacherBreakdown] = {}
    by_class: Dict[str, ClassBreakdown] = {}

    for a in docs:
        _accumulate(report, a)

        subject = by_subject.get(a.subject_id)
        if subject is None:
            subject = by_subject[a.subject_id] = SubjectBreakdown(
                subjectId=a.subject_id, subjectName=a.subject_name, subjectCode=a.subject_code
            )
        _accumulate(subject, a)

        teacher = by_teacher.get(a.teacher_id)
        if teacher is None:
            teacher = by_teacher[a.teacher_id] = TeacherBreakdown(teacherId=a.teacher_id, teacherName=a.teacher_name)
        _accumulate(teacher, a)

        klass = by_class.get(a.class_or_batch)
        if klass is None:
            klass = by_class[a.class_or_batch] = ClassBreakdown(classOrBatch=a.class_or_batch)
        _accumulate(klass, a)

    for totals in (report, *by_subject.values(), *by_teacher.values(), *by_class.values()):
        _finish(totals)
    report.subjectBreakdown = list(by_subject.values())
    report.teacherBreakdown = list(by_teacher.values())
    report.classBreakdown = list(by_class.values())
    return report


async def monthly_report(
    db: AsyncSession,
    month: int,
    year: int,
    class_or_batch: Optional[str] = None,
    subject_id: Optional[UUID] = None,
    teacher_id: Optional[UUID] = None,
) -> MonthlyReportResponse:
    docs = await monthly_documents(db, month, year, class_or_batch, subject_id, teacher_id)
    return aggregate_monthly(docs, month, year, class_or_batch, subject_id, teacher_id)


def _rows(docs: Iterable[Attendance], with_timestamp: bool) -> Iterable[List]:
    for a in docs:
        for r in a.records or []:
            row = [
                a.date,
                a.subject_name or "",
                a.subject_code or "",
                a.teacher_name or "",
                a.class_or_batch,
                r.get("studentId", ""),
                r.get("status", ""),
            ]
            if with_timestamp:
                row.append(a.updated_at.isoformat() if a.updated_at else "")
            yield row


def attendance_csv(docs: Iterable[Attendance], with_timestamp: bool = False) -> str:
    """One line per student entry of every roster."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(MONTHLY_CSV_FIELDS if with_timestamp else CSV_FIELDS)
    for row in _rows(docs, with_timestamp):
        writer.writerow(row)
    return output.getvalue()


async def teacher_documents(db: AsyncSession, teacher_id: UUID) -> List[Attendance]:
    result = await db.execute(
        select(Attendance)
        .where(Attendance.teacher_id == teacher_id)
        .order_by(Attendance.date, Attendance.created_at)
    )
    return list(result.scalars().all())
