from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class SubjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    code: str = Field(..., min_length=1, max_length=50)
    year: str = Field("", max_length=50)
    semester: str = Field("", max_length=50)


class SubjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    year: Optional[str] = Field(None, max_length=50)
    semester: Optional[str] = Field(None, max_length=50)


class SubjectResponse(BaseModel):
    id: UUID = Field(..., alias="_id")
    name: str
    code: str
    year: str = ""
    semester: str = ""
    createdAt: datetime
    updatedAt: datetime

    class Config:
        populate_by_name = True


class SubjectRef(BaseModel):
    """Populated subject reference embedded in timetable and attendance responses."""

    id: UUID = Field(..., alias="_id")
    name: str
    code: str

    class Config:
        populate_by_name = True
