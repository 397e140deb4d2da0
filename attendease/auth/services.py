import logging
import smtplib
from typing import Optional

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from attendease.api.users import service as user_service
from attendease.api.users.schemas import RegisterRequest
from attendease.auth.mailer import send_otp_email
from attendease.auth.models import User
from attendease.auth.otp_store import OtpStore, new_entry
from attendease.auth.schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ResetPasswordRequest,
    UserInfo,
    VerifyOtpRequest,
)
from attendease.auth.security import create_access_token, generate_otp, verify_password
from attendease.core.config import settings
from attendease.core.exceptions import ServiceError

logger = logging.getLogger(__name__)

FORGOT_PASSWORD_MESSAGE = "If an account exists for this email, a reset code has been sent"


def _user_info(user: User) -> UserInfo:
    return UserInfo(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        classOrBatch=user.class_or_batch,
    )


async def login_user(db: AsyncSession, payload: LoginRequest) -> LoginResponse:
    # Email lookup is case-insensitive
    user_stmt = select(User).where(func.lower(User.email) == str(payload.email).strip().lower())
    user_result = await db.execute(user_stmt)
    user: Optional[User] = user_result.scalar_one_or_none()
    if not user:
        raise ServiceError("Invalid credentials", status.HTTP_400_BAD_REQUEST)
    if not verify_password(payload.password, user.password_hash):
        raise ServiceError("Invalid credentials", status.HTTP_400_BAD_REQUEST)

    token = create_access_token(subject={"id": str(user.id), "role": user.role})
    return LoginResponse(token=token, user=_user_info(user))


async def get_me(db: AsyncSession, user_id) -> UserInfo:
    user = await db.get(User, user_id)
    if not user:
        raise ServiceError("User not found", status.HTTP_404_NOT_FOUND)
    return _user_info(user)


async def register_user(db: AsyncSession, payload: RegisterRequest) -> MessageResponse:
    """Self-registration for students and teachers."""
    await user_service.create_user(db, payload)
    return MessageResponse(message="User registered successfully")


# ----- Password reset -----
async def request_password_reset(
    db: AsyncSession, store: OtpStore, payload: ForgotPasswordRequest
) -> MessageResponse:
    """Issue a fresh OTP. The response does not reveal whether the account exists."""
    email = str(payload.email).strip().lower()
    user = await user_service.get_user_by_email(db, email)
    if not user:
        logger.info("Password reset requested for unknown email %s", email)
        return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)

    otp = generate_otp()
    await store.set(email, new_entry(otp, settings.otp_expire_minutes))
    logger.info("Password reset OTP issued for %s", email)
    try:
        await send_otp_email(email, otp)
    except (smtplib.SMTPException, OSError) as e:
        await store.delete(email)
        logger.exception("Failed to send OTP email to %s", email)
        raise ServiceError("Failed to send reset code", status.HTTP_500_INTERNAL_SERVER_ERROR) from e
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


async def verify_otp(store: OtpStore, payload: VerifyOtpRequest) -> MessageResponse:
    email = str(payload.email).strip().lower()
    entry = await store.get(email)
    if entry is None:
        raise ServiceError("OTP not found or expired", status.HTTP_400_BAD_REQUEST)
    if entry.is_expired():
        await store.delete(email)
        raise ServiceError("OTP not found or expired", status.HTTP_400_BAD_REQUEST)

    if entry.otp != payload.otp:
        entry.attempts += 1
        if entry.attempts >= settings.otp_max_attempts:
            await store.delete(email)
            logger.warning("OTP for %s locked after %d failed attempts", email, entry.attempts)
            raise ServiceError(
                "Too many failed attempts. Please request a new OTP", status.HTTP_400_BAD_REQUEST
            )
        await store.set(email, entry)
        raise ServiceError("Invalid OTP", status.HTTP_400_BAD_REQUEST)

    entry.verified = True
    await store.set(email, entry)
    return MessageResponse(message="OTP verified successfully")


async def reset_password(db: AsyncSession, store: OtpStore, payload: ResetPasswordRequest) -> MessageResponse:
    email = str(payload.email).strip().lower()
    entry = await store.get(email)
    if entry is None or entry.is_expired():
        raise ServiceError("OTP not found or expired", status.HTTP_400_BAD_REQUEST)
    if not entry.verified:
        raise ServiceError("OTP not verified", status.HTTP_400_BAD_REQUEST)
    if entry.otp != payload.otp:
        raise ServiceError("Invalid OTP", status.HTTP_400_BAD_REQUEST)

    user = await user_service.get_user_by_email(db, email)
    if not user:
        await store.delete(email)
        raise ServiceError("User not found", status.HTTP_404_NOT_FOUND)

    await user_service.set_password(db, user, payload.newPassword)
    await store.delete(email)
    logger.info("Password reset for %s", email)
    return MessageResponse(message="Password reset successfully")
