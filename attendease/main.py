import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from attendease.api.attendance.router import admin_router as admin_attendance_router
from attendease.api.attendance.router import student_router as student_attendance_router
from attendease.api.attendance.router import teacher_router as teacher_attendance_router
from attendease.api.auth.router import router as auth_router
from attendease.api.reports.router import router as reports_router
from attendease.api.reports.router import teacher_router as teacher_reports_router
from attendease.api.students.router import admin_router as teacher_students_router
from attendease.api.students.router import router as students_router
from attendease.api.subjects.router import router as subjects_router
from attendease.api.timetables.router import router as timetables_router
from attendease.api.timetables.router import student_router as student_timetable_router
from attendease.api.timetables.router import teacher_router as teacher_timetable_router
from attendease.api.users.router import profile_router
from attendease.api.users.router import router as users_router
from attendease.auth.otp_store import get_otp_store
from attendease.core.config import settings
from attendease.core.logging import configure_logging
from attendease.db.session import Base, engine

logger = logging.getLogger(__name__)


async def _sweep_otps_forever(interval_seconds: int) -> None:
    store = get_otp_store()
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await store.sweep()
        except Exception:
            logger.exception("OTP sweep failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    if settings.auto_create_tables:
        # Register every table on Base.metadata
        import attendease.auth.models  # noqa: F401
        import attendease.core.models  # noqa: F401

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    sweeper = asyncio.create_task(_sweep_otps_forever(settings.otp_sweep_interval_seconds))
    logger.info("AttendEase API started")
    try:
        yield
    finally:
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass
        await engine.dispose()


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Dict details (scheduling conflicts) already carry an "error" key
    content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Validation failed", "details": jsonable_encoder(exc.errors())},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


def create_app() -> FastAPI:
    app = FastAPI(title="AttendEase API", lifespan=lifespan)

    # CORS: allow the frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.get("/", include_in_schema=False)
    async def health():
        return {"ok": True}

    # Routers
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(profile_router)
    app.include_router(subjects_router)
    app.include_router(timetables_router)
    app.include_router(teacher_timetable_router)
    app.include_router(student_timetable_router)
    app.include_router(admin_attendance_router)
    app.include_router(teacher_attendance_router)
    app.include_router(student_attendance_router)
    app.include_router(reports_router)
    app.include_router(teacher_reports_router)
    app.include_router(students_router)
    app.include_router(teacher_students_router)

    return app


app = create_app()
