"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from app.core.env_contract import EnvContractError, resolve_env_value
from app.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

_DEFAULT_ORIGINS = "http://localhost:5173,http://127.0.0.1:5173"


@dataclass(frozen=True)
class Settings:
  """Typed settings for the Courseline service."""

  environment: str
  allowed_origins: tuple[str, ...]
  debug: bool
  log_dir: str
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  log_http_bodies: bool
  log_http_body_bytes: int
  pg_dsn: str
  pg_connect_timeout: int
  firebase_project_id: str
  firebase_service_account_json_path: str | None


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity only."""

  debug: bool
  pg_dsn: str
  pg_connect_timeout: int


def _parse_origins(raw: str) -> tuple[str, ...]:
  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("COURSELINE_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("COURSELINE_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  return raw.strip().lower() in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


def _require(name: str) -> str:
  """Read a required setting; its absence is a startup-fatal configuration error."""
  value = resolve_env_value(name).strip()
  if value == "":
    raise EnvContractError(f"{name} must be set.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("COURSELINE_ENV", "development").lower()
  debug = _parse_bool(os.getenv("COURSELINE_DEBUG"))

  log_backup_count = int(os.getenv("COURSELINE_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("COURSELINE_LOG_BACKUP_COUNT must be zero or a positive integer.")

  return Settings(
    environment=environment,
    allowed_origins=_parse_origins(os.getenv("COURSELINE_ALLOWED_ORIGINS") or _DEFAULT_ORIGINS),
    debug=debug,
    log_dir=(os.getenv("COURSELINE_LOG_DIR") or "logs").strip(),
    log_max_bytes=_positive_int("COURSELINE_LOG_MAX_BYTES", "5242880"),
    log_backup_count=log_backup_count,
    # Opt-in logging of 4xx HTTPExceptions for diagnostics.
    log_http_4xx=_parse_bool(os.getenv("COURSELINE_LOG_HTTP_4XX")),
    log_http_bodies=_parse_bool(os.getenv("COURSELINE_LOG_HTTP_BODIES")),
    log_http_body_bytes=_positive_int("COURSELINE_LOG_HTTP_BODY_BYTES", "2048"),
    pg_dsn=_require("COURSELINE_PG_DSN"),
    pg_connect_timeout=_positive_int("COURSELINE_PG_CONNECT_TIMEOUT", "5"),
    firebase_project_id=_require("FIREBASE_PROJECT_ID"),
    firebase_service_account_json_path=_optional_str(os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON_PATH")),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration like Firebase."""
  # Migrations and scripts only need the DSN.
  return DatabaseSettings(debug=_parse_bool(os.getenv("COURSELINE_DEBUG")), pg_dsn=_require("COURSELINE_PG_DSN"), pg_connect_timeout=_positive_int("COURSELINE_PG_CONNECT_TIMEOUT", "5"))
