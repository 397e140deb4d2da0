from datetime import datetime, time
from typing import List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from attendease.api.subjects.schemas import SubjectRef
from attendease.core.enums import SlotType


def _parse_time_24(v: Union[str, time]) -> str:
    """Normalize a 24-hour time (H:MM, HH:MM or HH:MM:SS) to zero-padded HH:MM."""
    if isinstance(v, time):
        return v.strftime("%H:%M")
    if isinstance(v, str):
        v = v.strip()
        try:
            if v.count(":") == 2:
                return datetime.strptime(v, "%H:%M:%S").strftime("%H:%M")
            return datetime.strptime(v, "%H:%M").strftime("%H:%M")
        except ValueError:
            pass
    raise ValueError("startTime/endTime must be 24-hour string (e.g. 09:00, 14:30)")


class TimetableSlotCreate(BaseModel):
    subjectId: UUID
    teacherId: UUID
    classOrBatch: str = Field(..., min_length=1, max_length=120)
    dayOfWeek: int = Field(..., ge=0, le=6, description="0=Sunday .. 6=Saturday")
    startTime: str = Field(..., description="24-hour format, e.g. 09:00")
    endTime: str = Field(..., description="24-hour format, e.g. 10:00")
    slotType: SlotType = SlotType.THEORY
    room: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None

    @field_validator("startTime", "endTime", mode="before")
    @classmethod
    def parse_time(cls, v: Union[str, time]) -> str:
        return _parse_time_24(v)

    @field_validator("classOrBatch")
    @classmethod
    def strip_class(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("classOrBatch must not be blank")
        return v


class TeacherRef(BaseModel):
    id: UUID = Field(..., alias="_id")
    name: str
    email: str

    class Config:
        populate_by_name = True


class TimetableSlotResponse(BaseModel):
    id: UUID = Field(..., alias="_id")
    # Populated references; null when the subject or teacher has been deleted
    subjectId: Optional[SubjectRef] = None
    teacherId: Optional[TeacherRef] = None
    classOrBatch: str
    dayOfWeek: int
    startTime: str
    endTime: str
    slotType: str
    room: Optional[str] = None
    notes: Optional[str] = None
    createdAt: datetime

    class Config:
        populate_by_name = True


class BulkSlotError(BaseModel):
    index: int
    error: str


class TimetableBulkResponse(BaseModel):
    requested: int
    created: int
    failed: List[BulkSlotError] = Field(default_factory=list)
    slots: List[TimetableSlotResponse] = Field(default_factory=list)
