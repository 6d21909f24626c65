"""Progress tracking over the single `user_progress` relation.

How/Why:
  - A row with a lesson reference is a LessonCompletion; a row without one is a
    CourseCompletion. The variants are resolved here so callers never test `lesson_id`
    for None themselves.
  - Derived state (per-lesson flags, course flag, percentage) is a pure function of the
    fetched lessons and records and is recomputed from the store after every write.
  - Write failures against the store are logged and rolled back; the caller still gets
    the current truth with `applied=False`.
"""

from __future__ import annotations

import datetime
import logging
import uuid
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.schema.sql import Course, Lesson, ProgressRecord
from app.services.access_policy import Caller, EntityKind, Operation, enforce, enforce_each
from app.services.courses import get_course, get_lesson, list_lessons

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CourseCompletion:
  """The account marked the whole course complete."""

  record_id: uuid.UUID
  account_id: uuid.UUID
  course_id: uuid.UUID
  completed: bool
  completed_at: datetime.datetime | None


@dataclass(frozen=True)
class LessonCompletion:
  """The account completed one lesson of the course."""

  record_id: uuid.UUID
  account_id: uuid.UUID
  course_id: uuid.UUID
  lesson_id: uuid.UUID
  completed: bool
  completed_at: datetime.datetime | None


Completion = CourseCompletion | LessonCompletion


def as_completion(record: ProgressRecord) -> Completion:
  """Resolve a stored row into its tagged variant."""
  if record.lesson_id is None:
    return CourseCompletion(record_id=record.id, account_id=record.user_id, course_id=record.course_id, completed=bool(record.completed), completed_at=record.completed_at)

  return LessonCompletion(record_id=record.id, account_id=record.user_id, course_id=record.course_id, lesson_id=record.lesson_id, completed=bool(record.completed), completed_at=record.completed_at)


def completion_percentage(completed: int, total: int) -> int:
  """Return round(100 * completed / total) rounding halves up; 0 for an empty course."""
  if total <= 0:
    return 0
  # Integer arithmetic keeps x.5 cases exact (12.5 -> 13, not banker's 12).
  return (200 * completed + total) // (2 * total)


@dataclass(frozen=True)
class CourseProgress:
  lesson_count: int
  completed_lesson_ids: frozenset[uuid.UUID]
  course_completed: bool

  @property
  def completed_lesson_count(self) -> int:
    return len(self.completed_lesson_ids)

  @property
  def percentage(self) -> int:
    return completion_percentage(self.completed_lesson_count, self.lesson_count)

  def is_lesson_completed(self, lesson_id: uuid.UUID) -> bool:
    return lesson_id in self.completed_lesson_ids


def summarize_progress(lessons: Sequence[Lesson], records: Iterable[ProgressRecord]) -> CourseProgress:
  """Derive completion state for one course from its lessons and the caller's records."""
  completions = [as_completion(record) for record in records]
  done = {c.lesson_id for c in completions if isinstance(c, LessonCompletion) and c.completed}
  # Only count lessons that still belong to the course.
  completed_ids = frozenset(lesson.id for lesson in lessons if lesson.id in done)
  course_completed = any(isinstance(c, CourseCompletion) and c.completed for c in completions)
  return CourseProgress(lesson_count=len(lessons), completed_lesson_ids=completed_ids, course_completed=course_completed)


def _utcnow() -> datetime.datetime:
  return datetime.datetime.now(UTC)


def apply_lesson_toggle(record: ProgressRecord, now: datetime.datetime) -> ProgressRecord:
  """Flip a lesson record; completion time follows the new flag."""
  record.completed = not record.completed
  record.completed_at = now if record.completed else None
  record.updated_at = now
  return record


def apply_course_completion(record: ProgressRecord, now: datetime.datetime) -> ProgressRecord:
  """Mark a course record complete. Never un-marks."""
  record.completed = True
  record.completed_at = now
  record.updated_at = now
  return record


def new_progress_record(caller: Caller, *, course_id: uuid.UUID, lesson_id: uuid.UUID | None, now: datetime.datetime) -> ProgressRecord:
  """Build a completed record; there is no path that creates an incomplete one."""
  return ProgressRecord(id=uuid.uuid4(), user_id=caller.identity_id, course_id=course_id, lesson_id=lesson_id, completed=True, completed_at=now, created_at=now, updated_at=now)


async def list_progress_records(session: AsyncSession, caller: Caller, course_id: uuid.UUID) -> list[ProgressRecord]:
  """Return the caller's records for one course."""
  stmt = select(ProgressRecord).where(ProgressRecord.user_id == caller.identity_id, ProgressRecord.course_id == course_id).order_by(ProgressRecord.created_at.asc())
  result = await session.execute(stmt)
  return enforce_each(EntityKind.PROGRESS, Operation.SELECT, caller, list(result.scalars().all()))


async def _find_record(session: AsyncSession, caller: Caller, *, course_id: uuid.UUID, lesson_id: uuid.UUID | None) -> ProgressRecord | None:
  """Find the caller's record for a lesson, or the course record when lesson_id is None."""
  lesson_clause = ProgressRecord.lesson_id.is_(None) if lesson_id is None else ProgressRecord.lesson_id == lesson_id
  # Oldest first so rows written before the unique indexes existed resolve deterministically.
  stmt = select(ProgressRecord).where(ProgressRecord.user_id == caller.identity_id, ProgressRecord.course_id == course_id, lesson_clause).order_by(ProgressRecord.created_at.asc()).limit(1)
  result = await session.execute(stmt)
  record = result.scalars().first()
  if record is not None:
    enforce(EntityKind.PROGRESS, Operation.SELECT, caller, record)
  return record


async def _insert_record(session: AsyncSession, caller: Caller, record: ProgressRecord) -> ProgressRecord:
  """Insert a new record; a concurrent insert of the same tuple keeps the earlier row."""
  enforce(EntityKind.PROGRESS, Operation.INSERT, caller, record)
  course_id, lesson_id = record.course_id, record.lesson_id
  session.add(record)
  try:
    await session.commit()
  except IntegrityError:
    # The unique index fired: another request from this caller created the row first.
    await session.rollback()
    existing = await _find_record(session, caller, course_id=course_id, lesson_id=lesson_id)
    if existing is None:
      raise
    logger.info("Concurrent progress insert resolved user=%s course=%s lesson=%s", caller.identity_id, course_id, lesson_id)
    return existing

  return record


async def toggle_lesson_completion(session: AsyncSession, caller: Caller, lesson: Lesson, *, now: datetime.datetime | None = None) -> ProgressRecord:
  """Flip the caller's completion for one lesson, creating a completed record on first toggle."""
  now = now or _utcnow()
  existing = await _find_record(session, caller, course_id=lesson.course_id, lesson_id=lesson.id)
  if existing is None:
    return await _insert_record(session, caller, new_progress_record(caller, course_id=lesson.course_id, lesson_id=lesson.id, now=now))

  enforce(EntityKind.PROGRESS, Operation.UPDATE, caller, existing)
  apply_lesson_toggle(existing, now)
  await session.commit()
  return existing


async def mark_course_complete(session: AsyncSession, caller: Caller, course: Course, *, now: datetime.datetime | None = None) -> ProgressRecord:
  """Mark the course complete for the caller; idempotent."""
  now = now or _utcnow()
  existing = await _find_record(session, caller, course_id=course.id, lesson_id=None)
  if existing is None:
    return await _insert_record(session, caller, new_progress_record(caller, course_id=course.id, lesson_id=None, now=now))

  enforce(EntityKind.PROGRESS, Operation.UPDATE, caller, existing)
  apply_course_completion(existing, now)
  await session.commit()
  return existing


@dataclass(frozen=True)
class CourseDetail:
  course: Course
  lessons: list[Lesson]
  records: list[ProgressRecord]
  progress: CourseProgress
  applied: bool = True


async def load_course_detail(session: AsyncSession, caller: Caller, course_id: uuid.UUID, *, applied: bool = True) -> CourseDetail:
  """Fetch course, ordered lessons and the caller's records, then derive progress."""
  course = await get_course(session, caller, course_id)
  lessons = await list_lessons(session, caller, course_id)
  records = await list_progress_records(session, caller, course_id)
  return CourseDetail(course=course, lessons=lessons, records=records, progress=summarize_progress(lessons, records), applied=applied)


async def _apply_write(session: AsyncSession, action: str, write: Callable[[], Awaitable[ProgressRecord]]) -> bool:
  """Run one progress write; store failures are logged and rolled back, never raised."""
  try:
    await write()
  except SQLAlchemyError:
    logger.error("Progress write failed action=%s", action, exc_info=True)
    await session.rollback()
    return False
  return True


async def toggle_lesson(session: AsyncSession, caller: Caller, lesson_id: uuid.UUID) -> CourseDetail:
  """Toggle a lesson by id and return the re-fetched course detail."""
  lesson = await get_lesson(session, caller, lesson_id)
  # Read before the write; a rollback expires the instance.
  course_id = lesson.course_id
  applied = await _apply_write(session, "toggle_lesson", lambda: toggle_lesson_completion(session, caller, lesson))
  return await load_course_detail(session, caller, course_id, applied=applied)


async def complete_course(session: AsyncSession, caller: Caller, course_id: uuid.UUID) -> CourseDetail:
  """Mark a course complete by id and return the re-fetched course detail."""
  course = await get_course(session, caller, course_id)
  applied = await _apply_write(session, "complete_course", lambda: mark_course_complete(session, caller, course))
  return await load_course_detail(session, caller, course_id, applied=applied)
