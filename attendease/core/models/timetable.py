"""Timetable slot: one recurring class period for a section on a weekday."""

import uuid

from sqlalchemy import Column, DateTime, Index, Integer, String, Text, UniqueConstraint, Uuid

from attendease.db.session import Base, utcnow


class Timetable(Base):
    __tablename__ = "timetables"
    __table_args__ = (
        # Exact duplicates only; overlaps are checked in the service layer
        UniqueConstraint(
            "class_or_batch", "day_of_week", "start_time", "end_time", name="uq_timetable_class_day_time"
        ),
        Index("ix_timetable_teacher_day", "teacher_id", "day_of_week", "start_time", "end_time"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Plain references: deleting a subject or teacher leaves the slot dangling
    subject_id = Column(Uuid(as_uuid=True), nullable=False)
    teacher_id = Column(Uuid(as_uuid=True), nullable=False)
    class_or_batch = Column(String(120), nullable=False)
    day_of_week = Column(Integer, nullable=False)  # 0..6
    # "HH:MM", zero-padded so string order equals time order
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    slot_type = Column(String(20), nullable=False, default="theory")
    room = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
