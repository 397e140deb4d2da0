import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")

from typing import AsyncGenerator, Awaitable, Callable, Dict  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from attendease.api.users import service as user_service  # noqa: E402
from attendease.api.users.schemas import UserCreate  # noqa: E402
from attendease.auth.models import User  # noqa: E402
from attendease.auth.otp_store import InMemoryOtpStore, get_otp_store  # noqa: E402
from attendease.auth.security import create_access_token  # noqa: E402
from attendease.core.models import Subject  # noqa: E402
from attendease.db.session import Base, get_db  # noqa: E402
from attendease.main import app  # noqa: E402


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture()
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """One in-memory SQLite database per test; StaticPool keeps it on a single connection."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for a test and override FastAPI dependency."""
    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.pop(get_db, None)


@pytest.fixture()
def otp_store() -> InMemoryOtpStore:
    store = InMemoryOtpStore()
    app.dependency_overrides[get_otp_store] = lambda: store
    yield store
    app.dependency_overrides.pop(get_otp_store, None)


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def make_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    """Create a user through the service layer. Password defaults to 'secret123'."""
    counter = {"n": 0}

    async def _make(role: str = "student", **overrides) -> User:
        counter["n"] += 1
        n = counter["n"]
        data = {
            "name": f"{role.title()} {n}",
            "email": f"{role}{n}@example.com",
            "password": "secret123",
            "role": role,
        }
        if role == "student":
            data.update(enrollment=f"ENR{n:04d}", batch="3rd year", section="E1")
        data.update(overrides)
        return await user_service.create_user(db_session, UserCreate(**data))

    return _make


@pytest.fixture()
def headers_for() -> Callable[[User], Dict[str, str]]:
    def _headers(user: User) -> Dict[str, str]:
        token = create_access_token(subject={"id": str(user.id), "role": user.role})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture()
async def admin(make_user) -> User:
    return await make_user("admin", name="Admin User", email="admin@example.com")


@pytest.fixture()
async def teacher(make_user) -> User:
    return await make_user("teacher", name="Teacher A", email="teacher@example.com")


@pytest.fixture()
def admin_headers(admin: User, headers_for) -> Dict[str, str]:
    return headers_for(admin)


@pytest.fixture()
def teacher_headers(teacher: User, headers_for) -> Dict[str, str]:
    return headers_for(teacher)


@pytest.fixture()
async def dbms(db_session: AsyncSession) -> Subject:
    subject = Subject(name="DBMS", code="DBMS", year="3rd year", semester="5th Semester")
    db_session.add(subject)
    await db_session.commit()
    await db_session.refresh(subject)
    return subject
