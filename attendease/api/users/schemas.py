from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from attendease.core.enums import AssignmentRole, UserRole


class UserCreate(BaseModel):
    """Admin-created or self-registered user. Student fields and teacher fields are ignored for other roles."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)
    role: UserRole
    phone: Optional[str] = None
    # student
    enrollment: Optional[str] = None
    batch: Optional[str] = None
    section: Optional[str] = None
    # teacher
    sections: Optional[List[str]] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class RegisterRequest(UserCreate):
    role: Literal["student", "teacher"]


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6, max_length=72)
    phone: Optional[str] = None
    enrollment: Optional[str] = None
    batch: Optional[str] = None
    section: Optional[str] = None
    sections: Optional[List[str]] = None


class AssignSectionRequest(BaseModel):
    year: str = Field(..., min_length=1)
    section: str = Field(..., min_length=1)
    subjectId: UUID
    role: AssignmentRole


class RemoveSectionRequest(BaseModel):
    year: str = Field(..., min_length=1)
    section: str = Field(..., min_length=1)
    subjectId: UUID


class AssignMentorshipRequest(BaseModel):
    year: str = Field(..., min_length=1)
    section: str = Field(..., min_length=1)
    description: Optional[str] = None


class TeacherAssignmentResponse(BaseModel):
    year: str
    section: str
    subjectId: UUID
    subjectName: Optional[str] = None
    role: str
    classOrBatch: str


class MentorshipResponse(BaseModel):
    year: str
    section: str
    description: Optional[str] = None
    classOrBatch: str


class _UserResponseBase(BaseModel):
    id: UUID = Field(..., alias="_id")
    name: str
    email: str
    phone: Optional[str] = None
    createdAt: datetime

    class Config:
        populate_by_name = True


class AdminResponse(_UserResponseBase):
    role: Literal["admin"] = "admin"


class TeacherResponse(_UserResponseBase):
    role: Literal["teacher"] = "teacher"
    sections: List[str] = Field(default_factory=list)
    teacherAssignments: List[TeacherAssignmentResponse] = Field(default_factory=list)
    mentorship: Optional[MentorshipResponse] = None


class StudentResponse(_UserResponseBase):
    role: Literal["student"] = "student"
    enrollment: Optional[str] = None
    batch: Optional[str] = None
    section: Optional[str] = None
    classOrBatch: Optional[str] = None


UserResponse = Annotated[
    Union[AdminResponse, TeacherResponse, StudentResponse],
    Field(discriminator="role"),
]


class ProfileResponse(BaseModel):
    """Flat profile for the signed-in user; role-specific fields are empty for other roles."""

    id: UUID = Field(..., alias="_id")
    name: str
    email: str
    role: str
    phone: Optional[str] = None
    classOrBatch: Optional[str] = None
    enrollment: Optional[str] = None
    teacherAssignments: List[TeacherAssignmentResponse] = Field(default_factory=list)
    mentorship: Optional[MentorshipResponse] = None
    sections: List[str] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class StudentBulkRowError(BaseModel):
    row: int
    error: str


class StudentBulkResponse(BaseModel):
    created: int
    failed: List[StudentBulkRowError] = Field(default_factory=list)
    students: List[StudentResponse] = Field(default_factory=list)
