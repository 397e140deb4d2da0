import logging
from typing import List, Optional, Tuple
from uuid import UUID

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from attendease.auth.models import StudentProfile, TeacherAssignment, TeacherProfile, User
from attendease.auth.security import hash_password
from attendease.core.enums import UserRole
from attendease.core.exceptions import ServiceError
from attendease.core.models import Subject

from .schemas import (
    AdminResponse,
    AssignMentorshipRequest,
    AssignSectionRequest,
    MentorshipResponse,
    ProfileResponse,
    RemoveSectionRequest,
    StudentResponse,
    TeacherAssignmentResponse,
    TeacherResponse,
    UserCreate,
    UserUpdate,
)

logger = logging.getLogger(__name__)

DEFAULT_MENTORSHIP_DESCRIPTION = "Academic guidance and career counseling"


def class_or_batch_label(year: str, section: str) -> str:
    return f"{year} - {section}"


def _placement_from_enrollment(enrollment: str) -> Tuple[str, str, str]:
    """Legacy placement when batch/section are not given: (batch, section, class_or_batch)."""
    parts = enrollment.split("-")
    batch = parts[0] or enrollment
    section = parts[1] if len(parts) > 1 and parts[1] else enrollment
    return batch, section, enrollment


def _assignment_to_response(a: TeacherAssignment) -> TeacherAssignmentResponse:
    return TeacherAssignmentResponse(
        year=a.year,
        section=a.section,
        subjectId=a.subject_id,
        subjectName=a.subject_name,
        role=a.role,
        classOrBatch=a.class_or_batch,
    )


def _mentorship_to_response(tp: Optional[TeacherProfile]) -> Optional[MentorshipResponse]:
    if tp is None or not tp.mentorship_class_or_batch:
        return None
    return MentorshipResponse(
        year=tp.mentorship_year,
        section=tp.mentorship_section,
        description=tp.mentorship_description,
        classOrBatch=tp.mentorship_class_or_batch,
    )


def to_user_response(user: User):
    """Map a row to the role-specific response variant."""
    common = dict(id=user.id, name=user.name, email=user.email, phone=user.phone, createdAt=user.created_at)
    if user.role == UserRole.STUDENT.value:
        sp = user.student_profile
        return StudentResponse(
            **common,
            enrollment=sp.enrollment if sp else None,
            batch=sp.batch if sp else None,
            section=sp.section if sp else None,
            classOrBatch=sp.class_or_batch if sp else None,
        )
    if user.role == UserRole.TEACHER.value:
        tp = user.teacher_profile
        return TeacherResponse(
            **common,
            sections=list(tp.sections or []) if tp else [],
            teacherAssignments=[_assignment_to_response(a) for a in tp.assignments] if tp else [],
            mentorship=_mentorship_to_response(tp),
        )
    return AdminResponse(**common)


def to_profile_response(user: User) -> ProfileResponse:
    sp = user.student_profile
    tp = user.teacher_profile
    return ProfileResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        phone=user.phone,
        classOrBatch=sp.class_or_batch if sp else None,
        enrollment=sp.enrollment if sp else None,
        teacherAssignments=[_assignment_to_response(a) for a in tp.assignments] if tp else [],
        mentorship=_mentorship_to_response(tp),
        sections=list(tp.sections or []) if tp else [],
    )


async def _email_taken(db: AsyncSession, email: str, exclude_user_id: Optional[UUID] = None) -> bool:
    stmt = select(User.id).where(func.lower(User.email) == email.lower())
    if exclude_user_id is not None:
        stmt = stmt.where(User.id != exclude_user_id)
    result = await db.execute(stmt)
    return result.first() is not None


async def _enrollment_taken(db: AsyncSession, enrollment: str, exclude_user_id: Optional[UUID] = None) -> bool:
    stmt = select(StudentProfile.id).where(StudentProfile.enrollment == enrollment)
    if exclude_user_id is not None:
        stmt = stmt.where(StudentProfile.user_id != exclude_user_id)
    result = await db.execute(stmt)
    return result.first() is not None


def _duplicate_key_message(e: IntegrityError) -> str:
    """Translate a unique-constraint violation into a field-specific message."""
    err_msg = (str(e.orig) if getattr(e, "orig", None) else str(e)).lower()
    if "enrollment" in err_msg:
        return "Enrollment number already exists"
    if "email" in err_msg:
        return "Email already exists"
    return "Duplicate entry found"


async def get_user(db: AsyncSession, user_id: UUID) -> Optional[User]:
    """Fetch a user with both profiles and the teacher's assignments loaded from the database."""
    result = await db.execute(
        select(User)
        .where(User.id == user_id)
        .options(
            selectinload(User.student_profile),
            selectinload(User.teacher_profile).selectinload(TeacherProfile.assignments),
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(func.lower(User.email) == email.strip().lower()))
    return result.scalar_one_or_none()


async def create_user(db: AsyncSession, payload: UserCreate) -> User:
    """Create a user of any role with its role-specific profile."""
    role = UserRole(payload.role)
    email = str(payload.email).strip().lower()
    enrollment = payload.enrollment.strip() if payload.enrollment and payload.enrollment.strip() else None

    if role == UserRole.STUDENT and not enrollment:
        raise ServiceError("Enrollment number required for students", status.HTTP_400_BAD_REQUEST)
    if await _email_taken(db, email):
        raise ServiceError("Email already exists", status.HTTP_400_BAD_REQUEST)
    if role == UserRole.STUDENT and await _enrollment_taken(db, enrollment):
        raise ServiceError("Enrollment number already exists", status.HTTP_400_BAD_REQUEST)

    user = User(
        name=payload.name.strip(),
        email=email,
        password_hash=hash_password(payload.password),
        role=role.value,
        phone=payload.phone.strip() if payload.phone else "",
    )
    if role == UserRole.STUDENT:
        batch = (payload.batch or "").strip()
        section = (payload.section or "").strip()
        if batch and section:
            class_or_batch = class_or_batch_label(batch, section)
        else:
            batch, section, class_or_batch = _placement_from_enrollment(enrollment)
        user.student_profile = StudentProfile(
            enrollment=enrollment,
            batch=batch,
            section=section,
            class_or_batch=class_or_batch,
        )
    elif role == UserRole.TEACHER:
        user.teacher_profile = TeacherProfile(sections=list(payload.sections or []))

    try:
        db.add(user)
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        logger.warning("User creation failed for %s: %s", email, e.orig if e.orig else e)
        raise ServiceError(_duplicate_key_message(e), status.HTTP_400_BAD_REQUEST) from e
    logger.info("Created %s user %s", role.value, email)
    return await get_user(db, user.id)


async def list_users(db: AsyncSession, role: Optional[str] = None) -> List[User]:
    stmt = select(User)
    if role:
        stmt = stmt.where(User.role == role)
    stmt = stmt.order_by(User.created_at, User.name)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_students(db: AsyncSession, **filters) -> List[User]:
    """Students filtered by exact matches on profile columns (class_or_batch, batch, section)."""
    stmt = select(User).join(StudentProfile, StudentProfile.user_id == User.id).where(User.role == UserRole.STUDENT.value)
    for column, value in filters.items():
        if value is None:
            continue
        col = getattr(StudentProfile, column)
        if isinstance(value, (list, tuple, set)):
            stmt = stmt.where(col.in_(list(value)))
        else:
            stmt = stmt.where(col == value)
    stmt = stmt.order_by(StudentProfile.enrollment, User.name)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def update_user(db: AsyncSession, user_id: UUID, payload: UserUpdate) -> Optional[User]:
    user = await db.get(User, user_id)
    if not user:
        return None

    if payload.email is not None:
        email = str(payload.email).strip().lower()
        if await _email_taken(db, email, exclude_user_id=user.id):
            raise ServiceError("Email already exists", status.HTTP_400_BAD_REQUEST)
        user.email = email
    if payload.name is not None:
        user.name = payload.name.strip()
    if payload.phone is not None:
        user.phone = payload.phone.strip()
    if payload.password:
        user.password_hash = hash_password(payload.password)

    if user.role == UserRole.STUDENT.value:
        sp = user.student_profile
        if sp is None:
            sp = StudentProfile()
            user.student_profile = sp
        if payload.enrollment is not None and payload.enrollment.strip():
            enrollment = payload.enrollment.strip()
            if await _enrollment_taken(db, enrollment, exclude_user_id=user.id):
                raise ServiceError("Enrollment number already exists", status.HTTP_400_BAD_REQUEST)
            sp.enrollment = enrollment
        if payload.batch and payload.section:
            sp.batch = payload.batch.strip()
            sp.section = payload.section.strip()
            sp.class_or_batch = class_or_batch_label(sp.batch, sp.section)
        elif payload.enrollment is not None and payload.enrollment.strip():
            sp.batch, sp.section, sp.class_or_batch = _placement_from_enrollment(sp.enrollment)
    elif user.role == UserRole.TEACHER.value:
        if payload.sections is not None:
            if user.teacher_profile is None:
                user.teacher_profile = TeacherProfile(sections=[])
            user.teacher_profile.sections = list(payload.sections)

    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ServiceError(_duplicate_key_message(e), status.HTTP_400_BAD_REQUEST) from e
    return await get_user(db, user_id)


async def delete_user(db: AsyncSession, user_id: UUID) -> bool:
    """Hard delete. Attendance rows referencing the user are left as they are."""
    user = await db.get(User, user_id)
    if not user:
        return False
    await db.delete(user)
    await db.commit()
    return True


async def set_password(db: AsyncSession, user: User, new_password: str) -> None:
    user.password_hash = hash_password(new_password)
    await db.commit()


# ----- Teacher assignments (admin only) -----
async def _get_teacher(db: AsyncSession, user_id: UUID, action: str) -> User:
    user = await get_user(db, user_id)
    if not user:
        raise ServiceError("User not found", status.HTTP_404_NOT_FOUND)
    if user.role != UserRole.TEACHER.value:
        raise ServiceError(f"Can only {action} teachers", status.HTTP_400_BAD_REQUEST)
    if user.teacher_profile is None:
        user.teacher_profile = TeacherProfile(sections=[])
    return user


async def assign_section(db: AsyncSession, user_id: UUID, payload: AssignSectionRequest) -> User:
    user = await _get_teacher(db, user_id, "assign sections to")
    subject = await db.get(Subject, payload.subjectId)
    if not subject:
        raise ServiceError("Subject not found", status.HTTP_404_NOT_FOUND)
    tp = user.teacher_profile
    for a in tp.assignments:
        if a.year == payload.year and a.section == payload.section and a.subject_id == payload.subjectId:
            raise ServiceError("Assignment already exists", status.HTTP_400_BAD_REQUEST)
    tp.assignments.append(
        TeacherAssignment(
            year=payload.year,
            section=payload.section,
            subject_id=payload.subjectId,
            subject_name=subject.name,
            role=payload.role.value,
            class_or_batch=class_or_batch_label(payload.year, payload.section),
        )
    )
    await db.commit()
    return await get_user(db, user_id)


async def remove_section(db: AsyncSession, user_id: UUID, payload: RemoveSectionRequest) -> User:
    user = await _get_teacher(db, user_id, "remove assignments from")
    tp = user.teacher_profile
    if not tp.assignments:
        raise ServiceError("No assignments found", status.HTTP_400_BAD_REQUEST)
    matching = [
        a
        for a in tp.assignments
        if a.year == payload.year and a.section == payload.section and a.subject_id == payload.subjectId
    ]
    for a in matching:
        tp.assignments.remove(a)
    await db.commit()
    return await get_user(db, user_id)


async def remove_assignment_at(db: AsyncSession, user_id: UUID, index: int) -> User:
    if index < 0:
        raise ServiceError("Invalid assignment index", status.HTTP_400_BAD_REQUEST)
    user = await _get_teacher(db, user_id, "remove assignments from")
    tp = user.teacher_profile
    if index >= len(tp.assignments):
        raise ServiceError("Assignment not found", status.HTTP_404_NOT_FOUND)
    tp.assignments.pop(index)
    await db.commit()
    return await get_user(db, user_id)


async def assign_mentorship(db: AsyncSession, user_id: UUID, payload: AssignMentorshipRequest) -> User:
    user = await _get_teacher(db, user_id, "assign mentorship to")
    tp = user.teacher_profile
    tp.mentorship_year = payload.year
    tp.mentorship_section = payload.section
    tp.mentorship_description = payload.description or DEFAULT_MENTORSHIP_DESCRIPTION
    tp.mentorship_class_or_batch = class_or_batch_label(payload.year, payload.section)
    await db.commit()
    return await get_user(db, user_id)


async def remove_mentorship(db: AsyncSession, user_id: UUID) -> User:
    user = await _get_teacher(db, user_id, "remove mentorship from")
    tp = user.teacher_profile
    tp.mentorship_year = None
    tp.mentorship_section = None
    tp.mentorship_description = None
    tp.mentorship_class_or_batch = None
    await db.commit()
    return await get_user(db, user_id)


async def import_students(
    db: AsyncSession,
    parsed: List[Tuple[int, object]],
) -> Tuple[List[User], List[Tuple[int, str]]]:
    """Create students row by row; a failing row does not stop the rest."""
    created: List[User] = []
    failed: List[Tuple[int, str]] = []
    for row_num, item in parsed:
        if isinstance(item, str):
            failed.append((row_num, item))
            continue
        try:
            created.append(await create_user(db, item))
        except ServiceError as e:
            failed.append((row_num, e.message))
    logger.info("Student import: %d created, %d failed", len(created), len(failed))
    return created, failed
