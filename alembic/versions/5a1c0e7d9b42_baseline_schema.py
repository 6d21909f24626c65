"""baseline_schema

Revision ID: 5a1c0e7d9b42
Revises:
Create Date: 2026-10-17 09:12:04.118204

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5a1c0e7d9b42"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
  """Upgrade schema."""
  op.create_table(
    "identities",
    sa.Column("id", sa.Uuid(), nullable=False),
    sa.Column("firebase_uid", sa.String(), nullable=False),
    sa.Column("email", sa.String(), nullable=False),
    sa.Column("raw_metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_identities_firebase_uid"), "identities", ["firebase_uid"], unique=True)

  op.create_table(
    "profiles",
    sa.Column("id", sa.Uuid(), nullable=False),
    sa.Column("email", sa.String(), nullable=False),
    sa.Column("full_name", sa.String(), server_default="", nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.ForeignKeyConstraint(["id"], ["identities.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("id"),
  )

  op.create_table(
    "courses",
    sa.Column("id", sa.Uuid(), nullable=False),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("description", sa.Text(), nullable=False),
    sa.Column("thumbnail_url", sa.String(), server_default="", nullable=False),
    sa.Column("category", sa.String(), server_default="General", nullable=False),
    sa.Column("difficulty", sa.String(), server_default="beginner", nullable=False),
    sa.Column("duration_minutes", sa.Integer(), server_default="0", nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.PrimaryKeyConstraint("id"),
  )

  op.create_table(
    "lessons",
    sa.Column("id", sa.Uuid(), nullable=False),
    sa.Column("course_id", sa.Uuid(), nullable=False),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("content", sa.Text(), server_default="", nullable=False),
    sa.Column("order_number", sa.Integer(), nullable=False),
    sa.Column("duration_minutes", sa.Integer(), server_default="0", nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.ForeignKeyConstraint(["course_id"], ["courses.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_lessons_course_id"), "lessons", ["course_id"], unique=False)

  op.create_table(
    "user_progress",
    sa.Column("id", sa.Uuid(), nullable=False),
    sa.Column("user_id", sa.Uuid(), nullable=False),
    sa.Column("course_id", sa.Uuid(), nullable=False),
    sa.Column("lesson_id", sa.Uuid(), nullable=True),
    sa.Column("completed", sa.Boolean(), server_default=sa.text("false"), nullable=False),
    sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.ForeignKeyConstraint(["user_id"], ["identities.id"], ondelete="CASCADE"),
    sa.ForeignKeyConstraint(["course_id"], ["courses.id"], ondelete="CASCADE"),
    sa.ForeignKeyConstraint(["lesson_id"], ["lessons.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(op.f("ix_user_progress_user_id"), "user_progress", ["user_id"], unique=False)
  op.create_index(op.f("ix_user_progress_course_id"), "user_progress", ["course_id"], unique=False)
  op.create_index(op.f("ix_user_progress_lesson_id"), "user_progress", ["lesson_id"], unique=False)
  op.create_index("idx_user_progress_lookup", "user_progress", ["user_id", "course_id", "lesson_id"], unique=False)
  # At most one lesson marker per (user, course, lesson) and one course marker per (user, course).
  op.create_index("uq_user_progress_lesson", "user_progress", ["user_id", "course_id", "lesson_id"], unique=True, postgresql_where=sa.text("lesson_id IS NOT NULL"))
  op.create_index("uq_user_progress_course", "user_progress", ["user_id", "course_id"], unique=True, postgresql_where=sa.text("lesson_id IS NULL"))


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_index("uq_user_progress_course", table_name="user_progress", postgresql_where=sa.text("lesson_id IS NULL"))
  op.drop_index("uq_user_progress_lesson", table_name="user_progress", postgresql_where=sa.text("lesson_id IS NOT NULL"))
  op.drop_index("idx_user_progress_lookup", table_name="user_progress")
  op.drop_index(op.f("ix_user_progress_lesson_id"), table_name="user_progress")
  op.drop_index(op.f("ix_user_progress_course_id"), table_name="user_progress")
  op.drop_index(op.f("ix_user_progress_user_id"), table_name="user_progress")
  op.drop_table("user_progress")
  op.drop_index(op.f("ix_lessons_course_id"), table_name="lessons")
  op.drop_table("lessons")
  op.drop_table("courses")
  op.drop_table("profiles")
  op.drop_table("identities")
