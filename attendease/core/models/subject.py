"""Course units (e.g. DBMS). Code is globally unique."""

import uuid

from sqlalchemy import Column, DateTime, String, Uuid

from attendease.db.session import Base, utcnow


class Subject(Base):
    __tablename__ = "subjects"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    code = Column(String(50), nullable=False, unique=True, index=True)
    year = Column(String(50), nullable=False, default="")
    semester = Column(String(50), nullable=False, default="")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
