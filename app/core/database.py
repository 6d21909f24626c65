from __future__ import annotations

from collections.abc import AsyncGenerator

from app.config import get_database_settings
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
  pass


engine: AsyncEngine | None = None
SessionLocal: async_sessionmaker[AsyncSession] | None = None


def database_url() -> str:
  """Build the SQLAlchemy URL, forcing the asyncpg driver."""
  dsn = get_database_settings().pg_dsn
  for prefix in ("postgresql://", "postgres://"):
    if dsn.startswith(prefix):
      return dsn.replace(prefix, "postgresql+asyncpg://", 1)
  return dsn


def get_db_engine() -> AsyncEngine:
  global engine
  if engine is None:
    settings = get_database_settings()
    engine = create_async_engine(database_url(), echo=settings.debug, pool_pre_ping=True, connect_args={"timeout": settings.pg_connect_timeout})
  return engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
  global SessionLocal
  if SessionLocal is None:
    SessionLocal = async_sessionmaker(bind=get_db_engine(), expire_on_commit=False, class_=AsyncSession)
  return SessionLocal


async def get_db() -> AsyncGenerator[AsyncSession]:
  """Dependency to get a database session."""
  session_factory = get_session_factory()
  async with session_factory() as session:
    try:
      yield session
    finally:
      await session.close()
