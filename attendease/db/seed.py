"""
Seed script for a fresh installation. Safe to run repeatedly.

  python -m attendease.db.seed

Creates (when missing):
- the admin user from ADMIN_EMAIL / ADMIN_PASSWORD / ADMIN_NAME
- subject DBMS
- a sample teacher with teaching assignments and a mentorship
- the 3rd year E1 student roster
- one timetable slot for 3rd year E1
"""
import asyncio
from typing import List, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from attendease.api.users.service import class_or_batch_label
from attendease.auth.models import StudentProfile, TeacherAssignment, TeacherProfile, User
from attendease.auth.security import hash_password
from attendease.core.config import settings
from attendease.core.models import Subject, Timetable
from attendease.db.session import AsyncSessionLocal, Base, engine

TEACHER_EMAIL = "teacher@example.com"
TEACHER_PASSWORD = "teacher123"
STUDENT_PASSWORD = "student123"
ROSTER_YEAR = "3rd year"
ROSTER_SECTION = "E1"

# (enrollment, name)
ROSTER_3RD_YEAR_E1: List[Tuple[str, str]] = [
    ("00124402023", "Mohammad Asad"),
    ("00224402023", "Shiven Sharma"),
    ("00324402023", "SHIVAM VIJ"),
    ("00424402023", "TANYA SINHA"),
    ("00524402023", "Madhav Wadhwa"),
    ("00624402023", "POSHIKA PAL"),
    ("00724402023", "Ranveer Singh"),
    ("00824402023", "Devang bisht"),
    ("00924402023", "Vaibhav Kumar"),
    ("01024402023", "Kkavya Sahni"),
    ("01124402023", "DEEPALI JAIN"),
    ("01224402023", "HARSH MAGGO"),
    ("01324402023", "Vibhuti Panwar"),
    ("01424402023", "Aryan verma"),
    ("01524402023", "Jai Malik"),
    ("01624402023", "NIHARIKA SHARMA"),
    ("01724402023", "Siddharth Shrestha"),
    ("01824402023", "ARYAN THAKUR"),
    ("01924402023", "Aditya Kant Pathak"),
    ("02024402023", "Gursaibh Singh"),
    ("02124402023", "brahmjot singh"),
    ("02224402023", "HARSHITA SALUJA"),
    ("02324402023", "Sanskriti Singhal"),
    ("02424402023", "SANDEEP KUMAR"),
    ("02524402023", "Vishnu Narayan Khanna"),
    ("02624402023", "VAJIPAYAJULA ADITYA"),
    ("02724402023", "Akshita"),
    ("02824402023", "Mishti sehgal"),
    ("02924402023", "TWINKLE SHARMA"),
    ("03024402023", "DHRUV SHARMA"),
    ("03124402023", "Saif Siddiqui"),
    ("03224402023", "Aman kumar"),
    ("03324402023", "Muskan sharma"),
    ("03424402023", "Vansh Khatri"),
    ("03524402023", "Pansul Saxena"),
]


def _roster_email(name: str) -> str:
    return "".join(name.lower().split()) + "@example.com"


async def _user_by_email(db: AsyncSession, email: str):
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def seed_admin(db: AsyncSession) -> None:
    email = settings.admin_email.strip().lower()
    if await _user_by_email(db, email):
        print("Admin already exists:", email)
        return
    db.add(
        User(
            name=settings.admin_name,
            email=email,
            password_hash=hash_password(settings.admin_password),
            role="admin",
            phone="",
        )
    )
    await db.flush()
    print("Created admin:", email)


async def seed_subject(db: AsyncSession) -> Subject:
    result = await db.execute(select(Subject).where(Subject.code == "DBMS"))
    subject = result.scalar_one_or_none()
    if subject:
        print("Subject DBMS already exists.")
        return subject
    subject = Subject(name="Database Systems", code="DBMS", year=ROSTER_YEAR, semester="5th Semester")
    db.add(subject)
    await db.flush()
    print("Created subject DBMS.")
    return subject


async def seed_teacher(db: AsyncSession, subject: Subject) -> User:
    teacher = await _user_by_email(db, TEACHER_EMAIL)
    if teacher:
        print("Teacher already exists:", TEACHER_EMAIL)
        return teacher
    profile = TeacherProfile(
        sections=[],
        mentorship_year="2nd year",
        mentorship_section="E1",
        mentorship_description="Academic guidance and career counseling for 2nd year E1 students",
        mentorship_class_or_batch=class_or_batch_label("2nd year", "E1"),
    )
    for year in ("2nd year", ROSTER_YEAR):
        profile.assignments.append(
            TeacherAssignment(
                year=year,
                section="E1",
                subject_id=subject.id,
                subject_name=subject.name,
                role="teaching",
                class_or_batch=class_or_batch_label(year, "E1"),
            )
        )
    teacher = User(
        name="Teacher A",
        email=TEACHER_EMAIL,
        password_hash=hash_password(TEACHER_PASSWORD),
        role="teacher",
        phone="",
        teacher_profile=profile,
    )
    db.add(teacher)
    await db.flush()
    print("Created teacher:", TEACHER_EMAIL)
    return teacher


async def seed_roster(db: AsyncSession) -> None:
    class_or_batch = class_or_batch_label(ROSTER_YEAR, ROSTER_SECTION)
    password_hash = hash_password(STUDENT_PASSWORD)
    created = skipped = 0
    for enrollment, name in ROSTER_3RD_YEAR_E1:
        email = _roster_email(name)
        existing = await db.execute(
            select(User.id)
            .outerjoin(StudentProfile, StudentProfile.user_id == User.id)
            .where((User.email == email) | (StudentProfile.enrollment == enrollment))
        )
        if existing.first() is not None:
            skipped += 1
            continue
        db.add(
            User(
                name=name,
                email=email,
                password_hash=password_hash,
                role="student",
                phone="",
                student_profile=StudentProfile(
                    enrollment=enrollment,
                    batch=ROSTER_YEAR,
                    section=ROSTER_SECTION,
                    class_or_batch=class_or_batch,
                ),
            )
        )
        created += 1
    await db.flush()
    print(f"{class_or_batch} students: created {created}, skipped {skipped}")


async def seed_timetable(db: AsyncSession, subject: Subject, teacher: User) -> None:
    class_or_batch = class_or_batch_label(ROSTER_YEAR, ROSTER_SECTION)
    result = await db.execute(
        select(Timetable.id).where(
            Timetable.subject_id == subject.id,
            Timetable.class_or_batch == class_or_batch,
        )
    )
    if result.first() is not None:
        print("Sample timetable slot already exists.")
        return
    db.add(
        Timetable(
            subject_id=subject.id,
            teacher_id=teacher.id,
            class_or_batch=class_or_batch,
            day_of_week=1,
            start_time="10:00",
            end_time="11:00",
            slot_type="theory",
        )
    )
    await db.flush()
    print("Created sample timetable slot for", class_or_batch)


async def seed(db: AsyncSession) -> None:
    await seed_admin(db)
    subject = await seed_subject(db)
    teacher = await seed_teacher(db, subject)
    await seed_roster(db)
    await seed_timetable(db, subject, teacher)
    await db.commit()
    print("Seed done.")


async def main() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with AsyncSessionLocal() as db:
        try:
            await seed(db)
        except Exception as e:
            await db.rollback()
            print("Error:", e)
            raise
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
