from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class AttendanceTotals(BaseModel):
    totalClasses: int = 0
    totalRecords: int = 0
    totalPresent: int = 0
    totalAbsent: int = 0
    attendancePercentage: str = "0.00"


class SubjectBreakdown(AttendanceTotals):
    subjectId: UUID
    subjectName: Optional[str] = None
    subjectCode: Optional[str] = None


class TeacherBreakdown(AttendanceTotals):
    teacherId: UUID
    teacherName: Optional[str] = None


class ClassBreakdown(AttendanceTotals):
    classOrBatch: str


class MonthlyReportResponse(AttendanceTotals):
    month: int
    year: int
    classOrBatch: Optional[str] = None
    subjectId: Optional[UUID] = None
    teacherId: Optional[UUID] = None
    subjectBreakdown: List[SubjectBreakdown] = Field(default_factory=list)
    teacherBreakdown: List[TeacherBreakdown] = Field(default_factory=list)
    classBreakdown: List[ClassBreakdown] = Field(default_factory=list)
