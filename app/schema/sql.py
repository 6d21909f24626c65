from __future__ import annotations

import datetime
import uuid
from enum import Enum
from typing import Any

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, func, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class Difficulty(str, Enum):
  BEGINNER = "beginner"
  INTERMEDIATE = "intermediate"
  ADVANCED = "advanced"


class Identity(Base):
  """Authenticated principal; profiles and progress hang off its id."""

  __tablename__ = "identities"

  id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
  firebase_uid: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
  email: Mapped[str] = mapped_column(String, nullable=False)
  raw_metadata: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Profile(Base):
  __tablename__ = "profiles"

  id: Mapped[uuid.UUID] = mapped_column(ForeignKey("identities.id", ondelete="CASCADE"), primary_key=True)
  email: Mapped[str] = mapped_column(String, nullable=False)
  full_name: Mapped[str] = mapped_column(String, nullable=False, default="", server_default="")
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Course(Base):
  __tablename__ = "courses"

  id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
  title: Mapped[str] = mapped_column(String, nullable=False)
  description: Mapped[str] = mapped_column(Text, nullable=False)
  thumbnail_url: Mapped[str] = mapped_column(String, nullable=False, default="", server_default="")
  category: Mapped[str] = mapped_column(String, nullable=False, default="General", server_default="General")
  # Free text; Difficulty lists the values clients know how to render.
  difficulty: Mapped[str] = mapped_column(String, nullable=False, default=Difficulty.BEGINNER.value, server_default=Difficulty.BEGINNER.value)
  duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Lesson(Base):
  __tablename__ = "lessons"

  id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
  course_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
  title: Mapped[str] = mapped_column(String, nullable=False)
  content: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")
  # Ordering is advisory; duplicates within a course are allowed.
  order_number: Mapped[int] = mapped_column(Integer, nullable=False)
  duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class ProgressRecord(Base):
  """One completion marker: lesson-scoped when lesson_id is set, course-scoped otherwise."""

  __tablename__ = "user_progress"
  __table_args__ = (
    Index("idx_user_progress_lookup", "user_id", "course_id", "lesson_id"),
    Index("uq_user_progress_lesson", "user_id", "course_id", "lesson_id", unique=True, postgresql_where=text("lesson_id IS NOT NULL")),
    Index("uq_user_progress_course", "user_id", "course_id", unique=True, postgresql_where=text("lesson_id IS NULL")),
  )

  id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
  user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("identities.id", ondelete="CASCADE"), nullable=False, index=True)
  course_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
  lesson_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("lessons.id", ondelete="CASCADE"), nullable=True, index=True)
  completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
  completed_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
