"""
Create all tables on the configured database.

  python -m attendease.db.init_db
"""
import asyncio

# Import all models so every table is registered on Base.metadata
from attendease.auth.models import StudentProfile, TeacherAssignment, TeacherProfile, User  # noqa: F401
from attendease.core.models import Attendance, Subject, Timetable  # noqa: F401
from attendease.db.session import Base, engine


async def main() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    print("Tables created:", ", ".join(sorted(Base.metadata.tables)))


if __name__ == "__main__":
    asyncio.run(main())
