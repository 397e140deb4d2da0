from fastapi import APIRouter, Depends, HTTPException
from fastapi import status as http_status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from attendease.api.users.schemas import RegisterRequest
from attendease.auth.dependencies import get_current_user
from attendease.auth.otp_store import OtpStore, get_otp_store
from attendease.auth.schemas import (
    CurrentUser,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ResetPasswordRequest,
    VerifyOtpRequest,
)
from attendease.auth.services import (
    ServiceError,
    get_me,
    login_user,
    register_user,
    request_password_reset,
    reset_password,
    verify_otp,
)
from attendease.db.session import get_db

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=http_status.HTTP_200_OK,
)
async def login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    try:
        return await login_user(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/login-oauth")
async def login_oauth(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
):
    try:
        payload = LoginRequest(
            email=form_data.username.strip(),
            password=form_data.password,
        )
    except ValidationError:
        raise HTTPException(status_code=http_status.HTTP_400_BAD_REQUEST, detail="Invalid credentials")
    try:
        result = await login_user(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {
        "access_token": result.token,
        "token_type": "bearer",
    }


@router.get("/me")
async def me(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        user = await get_me(db, current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"user": user.model_dump(by_alias=True, mode="json")}


@router.post(
    "/register",
    response_model=MessageResponse,
    status_code=http_status.HTTP_201_CREATED,
)
async def register(
    payload: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        return await register_user(db, payload)
    except ServiceError as e:
        if e.status_code == http_status.HTTP_500_INTERNAL_SERVER_ERROR:
            raise HTTPException(status_code=e.status_code, detail="Internal server error")
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    payload: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db),
    store: OtpStore = Depends(get_otp_store),
) -> MessageResponse:
    try:
        return await request_password_reset(db, store, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/verify-otp", response_model=MessageResponse)
async def verify(
    payload: VerifyOtpRequest,
    store: OtpStore = Depends(get_otp_store),
) -> MessageResponse:
    try:
        return await verify_otp(store, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/reset-password", response_model=MessageResponse)
async def reset(
    payload: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db),
    store: OtpStore = Depends(get_otp_store),
) -> MessageResponse:
    try:
        return await reset_password(db, store, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
