"""Load the course catalog from a JSON file.

How/Why:
  - Courses and lessons are read-only through the API, so the catalog is managed here.
  - Seeding is idempotent: courses match on title, lessons on (course, title). Existing rows
    are updated in place so re-running the script never creates duplicates.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

# Ensure repo root is on sys.path so local imports work when invoked directly.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from app.core.database import get_session_factory  # noqa: E402
from app.schema.sql import Course, Difficulty, Lesson  # noqa: E402

logger = logging.getLogger("scripts.seed_catalog")

_DEFAULT_CATALOG = Path(__file__).resolve().parent / "catalog.sample.json"


class CatalogError(ValueError):
  """Raised when the catalog file does not describe valid courses."""


@dataclass(frozen=True)
class LessonSeed:
  title: str
  order_number: int
  content: str = ""
  duration_minutes: int = 0


@dataclass(frozen=True)
class CourseSeed:
  title: str
  description: str
  thumbnail_url: str = ""
  category: str = "General"
  difficulty: str = Difficulty.BEGINNER.value
  duration_minutes: int = 0
  lessons: tuple[LessonSeed, ...] = field(default_factory=tuple)


def _require_str(entry: dict[str, Any], key: str, where: str) -> str:
  value = entry.get(key)
  if not isinstance(value, str) or not value.strip():
    raise CatalogError(f"{where}: '{key}' must be a non-empty string.")
  return value.strip()


def _non_negative_int(entry: dict[str, Any], key: str, where: str, default: int = 0) -> int:
  value = entry.get(key, default)
  if isinstance(value, bool) or not isinstance(value, int) or value < 0:
    raise CatalogError(f"{where}: '{key}' must be a non-negative integer.")
  return value


def parse_catalog(data: Any) -> list[CourseSeed]:
  """Validate decoded catalog JSON into course seeds."""
  if not isinstance(data, dict) or not isinstance(data.get("courses"), list):
    raise CatalogError("Catalog must be an object with a 'courses' list.")

  seeds: list[CourseSeed] = []
  for index, entry in enumerate(data["courses"]):
    where = f"courses[{index}]"
    if not isinstance(entry, dict):
      raise CatalogError(f"{where}: expected an object.")

    difficulty = str(entry.get("difficulty", Difficulty.BEGINNER.value)).strip().lower()
    if difficulty not in {member.value for member in Difficulty}:
      # Stored as free text; unknown levels render as beginner.
      logger.warning("%s: unknown difficulty %r", where, difficulty)

    lessons: list[LessonSeed] = []
    for lesson_index, lesson in enumerate(entry.get("lessons") or []):
      lesson_where = f"{where}.lessons[{lesson_index}]"
      if not isinstance(lesson, dict):
        raise CatalogError(f"{lesson_where}: expected an object.")
      lessons.append(
        LessonSeed(
          title=_require_str(lesson, "title", lesson_where),
          order_number=_non_negative_int(lesson, "order_number", lesson_where, default=lesson_index + 1),
          content=str(lesson.get("content") or ""),
          duration_minutes=_non_negative_int(lesson, "duration_minutes", lesson_where),
        )
      )

    seeds.append(
      CourseSeed(
        title=_require_str(entry, "title", where),
        description=_require_str(entry, "description", where),
        thumbnail_url=str(entry.get("thumbnail_url") or ""),
        category=str(entry.get("category") or "General"),
        difficulty=difficulty,
        duration_minutes=_non_negative_int(entry, "duration_minutes", where),
        lessons=tuple(lessons),
      )
    )

  return seeds


def load_catalog(path: Path) -> list[CourseSeed]:
  with path.open("r", encoding="utf-8") as handle:
    return parse_catalog(json.load(handle))


async def _upsert_course(session: AsyncSession, seed: CourseSeed) -> tuple[Course, bool]:
  result = await session.execute(select(Course).where(Course.title == seed.title).order_by(Course.created_at.asc()).limit(1))
  course = result.scalars().first()
  created = course is None
  if course is None:
    course = Course(title=seed.title, description=seed.description)
    session.add(course)

  course.description = seed.description
  course.thumbnail_url = seed.thumbnail_url
  course.category = seed.category
  course.difficulty = seed.difficulty
  course.duration_minutes = seed.duration_minutes
  await session.flush()
  return course, created


async def _upsert_lesson(session: AsyncSession, course: Course, seed: LessonSeed) -> bool:
  result = await session.execute(select(Lesson).where(Lesson.course_id == course.id, Lesson.title == seed.title).limit(1))
  lesson = result.scalars().first()
  created = lesson is None
  if lesson is None:
    lesson = Lesson(course_id=course.id, title=seed.title, order_number=seed.order_number)
    session.add(lesson)

  lesson.order_number = seed.order_number
  lesson.content = seed.content
  lesson.duration_minutes = seed.duration_minutes
  return created


async def seed_catalog(seeds: list[CourseSeed]) -> None:
  """Write every course and lesson in one transaction."""
  session_factory = get_session_factory()
  async with session_factory() as session:
    try:
      for seed in seeds:
        course, course_created = await _upsert_course(session, seed)
        lessons_created = 0
        for lesson_seed in seed.lessons:
          lessons_created += int(await _upsert_lesson(session, course, lesson_seed))
        logger.info("Course %s %s; %d/%d lessons new", seed.title, "created" if course_created else "updated", lessons_created, len(seed.lessons))
      await session.commit()
    except Exception:
      await session.rollback()
      raise

  logger.info("Catalog seeded with %d courses.", len(seeds))


def main() -> None:
  """Seed the catalog from the command line."""
  parser = argparse.ArgumentParser(description="Load courses and lessons from a JSON catalog.")
  parser.add_argument("catalog", nargs="?", type=Path, default=_DEFAULT_CATALOG, help="Path to the catalog JSON file.")
  parser.add_argument("--dry-run", action="store_true", help="Validate the file without writing.")
  args = parser.parse_args()

  logging.basicConfig(level=logging.INFO)
  try:
    seeds = load_catalog(args.catalog)
  except (OSError, json.JSONDecodeError, CatalogError) as exc:
    logger.error("Could not load catalog %s: %s", args.catalog, exc)
    sys.exit(1)

  if args.dry_run:
    logger.info("Catalog %s is valid: %d courses.", args.catalog, len(seeds))
    return

  asyncio.run(seed_catalog(seeds))


if __name__ == "__main__":
  main()
