import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI

from app.core.database import get_db_engine
from app.core.env_contract import EnvContractError, validate_runtime_env_or_raise
from app.core.firebase import initialize_firebase
from app.core.logging import initialize_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Validate configuration, set up logging and identity, and dispose the engine on shutdown."""
  from app.config import get_settings

  logger = logging.getLogger("app.core.lifespan")
  try:
    settings = get_settings()
    initialize_logging(settings)
    validate_runtime_env_or_raise(logger=logger, target="service")
  except EnvContractError:
    # Missing store location or identity project: refuse to start.
    logger.error("Environment contract failed; refusing to start the service.", exc_info=True)
    raise

  initialize_firebase()
  logger.info("Startup complete env=%s dsn=%s", settings.environment, _redact_dsn(settings.pg_dsn))

  try:
    yield
  finally:
    engine = get_db_engine()
    await engine.dispose()
    logger.info("Database engine disposed.")


def _redact_dsn(raw: str | None) -> str:
  """Redact credentials from a DSN while keeping host/db visible."""
  if not raw:
    return "<unset>"

  parsed = urlparse(raw)
  if not parsed.scheme:
    return "<invalid>"

  user = parsed.username or ""
  host = parsed.hostname or ""
  port = f":{parsed.port}" if parsed.port else ""
  netloc = f"{user}@{host}{port}" if user else f"{host}{port}"
  database = parsed.path.lstrip("/")
  path = f"/{database}" if database else ""
  return f"{parsed.scheme}://{netloc}{path}"
