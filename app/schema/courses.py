"""API payloads for the course catalog, progress and profile endpoints."""

from __future__ import annotations

import datetime
import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from app.schema.sql import Difficulty


def _to_camel(string: str) -> str:
  """Convert snake_case to camelCase so the API accepts frontend-style payloads."""
  parts = string.split("_")
  return parts[0] + "".join(part[:1].upper() + part[1:] for part in parts[1:])


class ApiModel(BaseModel):
  model_config = ConfigDict(populate_by_name=True, from_attributes=True, extra="ignore", alias_generator=_to_camel)


class CourseOut(ApiModel):
  id: uuid.UUID
  title: str
  description: str
  thumbnail_url: str
  category: str
  difficulty: str
  duration_minutes: int
  created_at: datetime.datetime | None = None
  updated_at: datetime.datetime | None = None

  @computed_field(alias="difficultyLevel")
  @property
  def difficulty_level(self) -> Difficulty:
    """Known difficulty for display; unknown free-text values fall back to beginner."""
    try:
      return Difficulty(self.difficulty.strip().lower())
    except ValueError:
      return Difficulty.BEGINNER


class LessonOut(ApiModel):
  id: uuid.UUID
  course_id: uuid.UUID
  title: str
  content: str
  order_number: int
  duration_minutes: int
  created_at: datetime.datetime | None = None


class ProgressRecordOut(ApiModel):
  id: uuid.UUID
  user_id: uuid.UUID
  course_id: uuid.UUID
  lesson_id: uuid.UUID | None = None
  completed: bool
  completed_at: datetime.datetime | None = None
  created_at: datetime.datetime | None = None
  updated_at: datetime.datetime | None = None


class LessonProgressOut(LessonOut):
  completed: bool = False


class CourseDetailResponse(ApiModel):
  course: CourseOut
  difficulty_level: Difficulty
  lessons: list[LessonProgressOut]
  lesson_count: int
  completed_lesson_count: int
  progress_percentage: int
  course_completed: bool
  applied: bool = Field(True, description="False when a requested progress change could not be stored")


class ProfileOut(ApiModel):
  id: uuid.UUID
  email: str
  full_name: str
  created_at: datetime.datetime | None = None
  updated_at: datetime.datetime | None = None


class ProfileUpdateRequest(ApiModel):
  full_name: str = Field(..., max_length=200)

  # Strip before the length check so padding never counts against the limit.
  @field_validator("full_name", mode="before")
  @classmethod
  def strip_name(cls, v: Any) -> Any:
    if isinstance(v, str):
      return v.strip()
    return v


class SignupRequest(ApiModel):
  id_token: str
  metadata: dict[str, Any] | None = Field(None, description="Optional signup metadata; `full_name` becomes the display name")


class LoginRequest(ApiModel):
  id_token: str
