from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserInfo(BaseModel):
    id: UUID = Field(..., alias="_id")
    name: str
    email: str
    role: str
    classOrBatch: Optional[str] = None

    class Config:
        populate_by_name = True


class LoginResponse(BaseModel):
    token: str
    user: UserInfo


class MessageResponse(BaseModel):
    message: str


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class VerifyOtpRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=6, max_length=6)


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=6, max_length=6)
    newPassword: str = Field(..., min_length=6, max_length=72)


class CurrentUser(BaseModel):
    """Lightweight representation of the authenticated user for role checks."""

    id: UUID
    name: str
    email: str
    role: str
    class_or_batch: Optional[str] = None  # students only
