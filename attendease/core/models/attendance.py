"""Attendance roll for one timetable slot on one date.

The subject/teacher/class columns are a point-in-time copy of the slot taken
when attendance is marked; they are never re-resolved from the slot later.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import JSON, Column, DateTime, String, UniqueConstraint, Uuid
from sqlalchemy.orm import composite

from attendease.db.session import Base, utcnow


@dataclass
class ClassSnapshot:
    subject_id: uuid.UUID
    subject_name: Optional[str]
    subject_code: Optional[str]
    teacher_id: uuid.UUID
    teacher_name: Optional[str]
    class_or_batch: str


class Attendance(Base):
    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("date", "timetable_id", name="uq_attendance_date_timetable"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    date = Column(String(10), nullable=False, index=True)  # YYYY-MM-DD
    timetable_id = Column(Uuid(as_uuid=True), nullable=False)

    subject_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    subject_name = Column(String(255), nullable=True)
    subject_code = Column(String(50), nullable=True)
    teacher_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    teacher_name = Column(String(255), nullable=True)
    class_or_batch = Column(String(120), nullable=False, index=True)

    # [{"studentId": "<uuid>", "status": "present" | "absent"}, ...]
    records = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    snapshot = composite(
        ClassSnapshot,
        subject_id,
        subject_name,
        subject_code,
        teacher_id,
        teacher_name,
        class_or_batch,
    )
