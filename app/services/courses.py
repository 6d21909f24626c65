"""Course and lesson read helpers implemented with SQLAlchemy ORM."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.schema.sql import Course, Lesson
from app.services.access_policy import Caller, EntityKind, Operation, enforce, enforce_each

logger = logging.getLogger(__name__)


class ResourceNotFoundError(LookupError):
  """Raised when a requested course or lesson does not exist."""

  def __init__(self, resource: str, resource_id: uuid.UUID) -> None:
    super().__init__(f"{resource} {resource_id} not found")
    self.resource = resource
    self.resource_id = resource_id


async def list_courses(session: AsyncSession, caller: Caller) -> list[Course]:
  """Return every course, newest first."""
  # Check the caller before touching the store so anonymous callers never hit the DB.
  enforce(EntityKind.COURSE, Operation.SELECT, caller)
  stmt = select(Course).order_by(Course.created_at.desc())
  result = await session.execute(stmt)
  return enforce_each(EntityKind.COURSE, Operation.SELECT, caller, list(result.scalars().all()))


async def get_course(session: AsyncSession, caller: Caller, course_id: uuid.UUID) -> Course:
  """Fetch one course or raise ResourceNotFoundError."""
  enforce(EntityKind.COURSE, Operation.SELECT, caller)
  result = await session.execute(select(Course).where(Course.id == course_id))
  course = result.scalar_one_or_none()
  if course is None:
    raise ResourceNotFoundError("Course", course_id)

  enforce(EntityKind.COURSE, Operation.SELECT, caller, course)
  return course


async def list_lessons(session: AsyncSession, caller: Caller, course_id: uuid.UUID) -> list[Lesson]:
  """Return lessons for a course ordered by position, oldest first on ties."""
  enforce(EntityKind.LESSON, Operation.SELECT, caller)
  stmt = select(Lesson).where(Lesson.course_id == course_id).order_by(Lesson.order_number.asc(), Lesson.created_at.asc())
  result = await session.execute(stmt)
  return enforce_each(EntityKind.LESSON, Operation.SELECT, caller, list(result.scalars().all()))


async def get_lesson(session: AsyncSession, caller: Caller, lesson_id: uuid.UUID) -> Lesson:
  """Fetch one lesson or raise ResourceNotFoundError."""
  enforce(EntityKind.LESSON, Operation.SELECT, caller)
  result = await session.execute(select(Lesson).where(Lesson.id == lesson_id))
  lesson = result.scalar_one_or_none()
  if lesson is None:
    raise ResourceNotFoundError("Lesson", lesson_id)

  enforce(EntityKind.LESSON, Operation.SELECT, caller, lesson)
  return lesson
