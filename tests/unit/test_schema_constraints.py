"""Unit tests for the foreign keys and partial unique indexes declared on the ORM tables."""

from __future__ import annotations

import pytest

from app.core.database import Base
from app.schema import sql  # noqa: F401


def _foreign_keys() -> dict[str, object]:
  keys = {}
  for table in Base.metadata.sorted_tables:
    for fk in table.foreign_keys:
      keys[f"{table.name}.{fk.parent.name}"] = fk
  return keys


def test_every_foreign_key_cascades_on_delete() -> None:
  keys = _foreign_keys()

  assert {name: fk.target_fullname for name, fk in keys.items()} == {
    "profiles.id": "identities.id",
    "lessons.course_id": "courses.id",
    "user_progress.user_id": "identities.id",
    "user_progress.course_id": "courses.id",
    "user_progress.lesson_id": "lessons.id",
  }
  assert {name: fk.ondelete for name, fk in keys.items()} == dict.fromkeys(keys, "CASCADE")


@pytest.mark.parametrize(
  ("index_name", "columns", "predicate"),
  [
    ("uq_user_progress_lesson", ["user_id", "course_id", "lesson_id"], "lesson_id IS NOT NULL"),
    ("uq_user_progress_course", ["user_id", "course_id"], "lesson_id IS NULL"),
  ],
)
def test_progress_uniqueness_is_partial_on_lesson_id(index_name: str, columns: list[str], predicate: str) -> None:
  table = Base.metadata.tables["user_progress"]
  index = next(index for index in table.indexes if index.name == index_name)

  assert index.unique is True
  assert [column.name for column in index.columns] == columns
  assert str(index.dialect_options["postgresql"]["where"]) == predicate
