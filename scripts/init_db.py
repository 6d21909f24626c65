"""Create the configured Postgres database when it does not exist yet.

Local and CI setups run this before `alembic upgrade head`. The database name is
validated before it reaches SQL because CREATE DATABASE cannot be parameterized.
"""

from __future__ import annotations

import asyncio
import logging
import re
import sys
from pathlib import Path

from sqlalchemy import text
from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import create_async_engine

# Ensure repo root is on sys.path so local imports work when invoked directly.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from app.core.database import database_url  # noqa: E402

logger = logging.getLogger("scripts.init_db")

_DB_NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]{0,62}$")


def validate_database_name(db_name: str) -> str:
  """Allow only plain identifiers so the name is safe inside a quoted identifier."""
  if not db_name:
    raise ValueError("Target database name is empty.")

  if not _DB_NAME_PATTERN.fullmatch(db_name):
    raise ValueError("Target database name must start with a letter and contain only letters, digits and underscores.")

  return db_name


async def create_database_if_not_exists() -> bool:
  """Return True when the database was created, False when it already existed."""
  url = make_url(database_url())
  target_db = validate_database_name(url.database or "")
  # CREATE DATABASE cannot run inside the target database or a transaction.
  admin_url = url.set(database="postgres")
  engine = create_async_engine(admin_url, isolation_level="AUTOCOMMIT")

  try:
    async with engine.connect() as conn:
      result = await conn.execute(text("SELECT 1 FROM pg_database WHERE datname = :name"), {"name": target_db})
      if result.scalar() == 1:
        logger.info("Database %s already exists.", target_db)
        return False

      await conn.execute(text(f'CREATE DATABASE "{target_db}"'))
      logger.info("Database %s created.", target_db)
      return True
  finally:
    await engine.dispose()


def main() -> None:
  logging.basicConfig(level=logging.INFO)
  try:
    asyncio.run(create_database_if_not_exists())
  except Exception:
    logger.error("Could not check or create the database.", exc_info=True)
    sys.exit(1)


if __name__ == "__main__":
  main()
