from datetime import date as date_type
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from attendease.core.enums import AttendanceStatus


def _parse_iso_date(v: str) -> str:
    """Require a real calendar date in YYYY-MM-DD form."""
    v = v.strip()
    try:
        parsed = date_type.fromisoformat(v)
    except ValueError:
        raise ValueError("date must be YYYY-MM-DD")
    if parsed.isoformat() != v:
        raise ValueError("date must be YYYY-MM-DD")
    return v


class AttendanceEntry(BaseModel):
    """One student's status for the slot."""

    studentId: UUID
    status: AttendanceStatus


class AttendanceMarkRequest(BaseModel):
    """Full roster for a slot on a date; replaces any roster already stored."""

    date: str
    timetableId: UUID
    records: List[AttendanceEntry] = Field(..., min_length=1)

    @field_validator("date")
    @classmethod
    def check_date(cls, v: str) -> str:
        return _parse_iso_date(v)


class AttendanceRecordResponse(BaseModel):
    studentId: str
    status: str


class AttendanceResponse(BaseModel):
    id: UUID = Field(..., alias="_id")
    date: str
    timetableId: UUID
    subjectId: UUID
    subjectName: Optional[str] = None
    subjectCode: Optional[str] = None
    teacherId: UUID
    teacherName: Optional[str] = None
    classOrBatch: str
    records: List[AttendanceRecordResponse] = Field(default_factory=list)
    createdAt: datetime
    updatedAt: datetime

    class Config:
        populate_by_name = True


class SubjectSnapshotRef(BaseModel):
    id: UUID = Field(..., alias="_id")
    name: Optional[str] = None
    code: Optional[str] = None

    class Config:
        populate_by_name = True


class TeacherSnapshotRef(BaseModel):
    id: UUID = Field(..., alias="_id")
    name: Optional[str] = None

    class Config:
        populate_by_name = True


class StudentAttendanceItem(BaseModel):
    """One class session as seen by a student: only the caller's own status."""

    id: UUID = Field(..., alias="_id")
    date: str
    subject: SubjectSnapshotRef
    teacher: TeacherSnapshotRef
    classOrBatch: str
    status: str

    class Config:
        populate_by_name = True


class SubjectAttendanceSummary(BaseModel):
    present: int = 0
    total: int = 0
    subjectId: UUID
    subjectName: Optional[str] = None
    subjectCode: Optional[str] = None


class AttendanceCountResponse(BaseModel):
    count: int
