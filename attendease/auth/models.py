import uuid

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import relationship

from attendease.db.session import Base, utcnow


class User(Base):
    """Person with exactly one role: admin, teacher or student.

    Role-specific data lives in StudentProfile / TeacherProfile so that a row
    never carries fields belonging to another role.
    """

    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    # Stored lowercased; unique across all roles
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(Text, nullable=False)
    role = Column(String(20), nullable=False)  # admin | teacher | student
    phone = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    student_profile = relationship(
        "StudentProfile", back_populates="user", uselist=False, cascade="all, delete-orphan", lazy="selectin"
    )
    teacher_profile = relationship(
        "TeacherProfile", back_populates="user", uselist=False, cascade="all, delete-orphan", lazy="selectin"
    )

    @property
    def class_or_batch(self):
        if self.student_profile is not None:
            return self.student_profile.class_or_batch
        return None


class StudentProfile(Base):
    """Enrollment and class placement for student users."""

    __tablename__ = "student_profiles"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    # NULLs do not collide, so uniqueness only binds students that have one
    enrollment = Column(String(50), nullable=True, unique=True)
    batch = Column(String(50), nullable=True)  # e.g. "3rd year"
    section = Column(String(50), nullable=True)  # e.g. "E1"
    class_or_batch = Column(String(120), nullable=True, index=True)  # "{batch} - {section}"

    user = relationship("User", back_populates="student_profile")


class TeacherProfile(Base):
    """Sections, subject assignments and mentorship for teacher users."""

    __tablename__ = "teacher_profiles"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    sections = Column(JSON, nullable=False, default=list)

    # At most one mentorship; all four columns are null when unset
    mentorship_year = Column(String(50), nullable=True)
    mentorship_section = Column(String(50), nullable=True)
    mentorship_description = Column(Text, nullable=True)
    mentorship_class_or_batch = Column(String(120), nullable=True)

    user = relationship("User", back_populates="teacher_profile")
    assignments = relationship(
        "TeacherAssignment",
        back_populates="teacher_profile",
        order_by="TeacherAssignment.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class TeacherAssignment(Base):
    """One (year, section, subject) a teacher teaches or mentors. Ordered; removable by index."""

    __tablename__ = "teacher_assignments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    teacher_profile_id = Column(
        Uuid(as_uuid=True), ForeignKey("teacher_profiles.id", ondelete="CASCADE"), nullable=False
    )
    position = Column(Integer, nullable=False, default=0)
    year = Column(String(50), nullable=False)
    section = Column(String(50), nullable=False)
    # No FK: a deleted subject leaves the assignment dangling
    subject_id = Column(Uuid(as_uuid=True), nullable=False)
    subject_name = Column(String(255), nullable=True)  # snapshot at assignment time
    role = Column(String(20), nullable=False)  # teaching | mentorship
    class_or_batch = Column(String(120), nullable=False)

    teacher_profile = relationship("TeacherProfile", back_populates="assignments")
