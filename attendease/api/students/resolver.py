"""
Resolve which students a teacher may see for a subject.

The teacher's own assignment decides the section: the assignment matching
(subject, year) is looked up and its recorded classOrBatch is used as an exact
filter. Year or section values supplied by the caller are never used to widen
or shift the result.
"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from attendease.api.users import service as user_service
from attendease.auth.models import TeacherAssignment, User
from attendease.core.enums import UserRole


def parse_uuid(value: Optional[str]) -> Optional[UUID]:
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


async def load_teacher(db: AsyncSession, teacher_id: Optional[UUID]) -> Optional[User]:
    """Return the user only when it exists and is a teacher."""
    if teacher_id is None:
        return None
    user = await user_service.get_user(db, teacher_id)
    if not user or user.role != UserRole.TEACHER.value:
        return None
    return user


def teacher_assignments(teacher: User) -> List[TeacherAssignment]:
    tp = teacher.teacher_profile
    return list(tp.assignments) if tp else []


def find_assignment(teacher: User, subject_id: Optional[UUID], year: str) -> Optional[TeacherAssignment]:
    """First assignment whose subject AND year both match."""
    if subject_id is None:
        return None
    for a in teacher_assignments(teacher):
        if a.subject_id == subject_id and a.year == year:
            return a
    return None


async def students_for_assignment(
    db: AsyncSession,
    teacher: User,
    subject_id: Optional[UUID],
    year: str,
) -> List[User]:
    """Students of the assignment's own class; empty when the teacher has no such assignment."""
    assignment = find_assignment(teacher, subject_id, year)
    if assignment is None:
        return []
    return await user_service.list_students(db, class_or_batch=assignment.class_or_batch)


async def students_for_teacher(db: AsyncSession, teacher: User) -> List[User]:
    """Students in any class the teacher is assigned to."""
    classes = sorted({a.class_or_batch for a in teacher_assignments(teacher)})
    if not classes:
        return []
    return await user_service.list_students(db, class_or_batch=classes)
