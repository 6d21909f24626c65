"""Runtime environment contract checks for service and migrator processes.

How/Why:
- The store location and the identity project are required; a process without them
  cannot serve a single request, so startup fails instead of degrading.
- Secret values are redacted from startup logs.
- One registry feeds both `get_settings()` and the lifespan validation log.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

EnvUseTarget = Literal["service", "migrator", "both"]
EnvValidator = Callable[[str, dict[str, str]], str | None]


@dataclass(frozen=True)
class EnvVarDefinition:
  """Describe how and where an environment variable must be validated."""

  name: str
  required: bool
  secret: bool
  used_by: EnvUseTarget
  validator: EnvValidator | None = None


class EnvContractError(RuntimeError):
  """Raised when required runtime environment keys are missing or invalid."""


def _validate_dsn(value: str, _: dict[str, str]) -> str | None:
  """Accept only PostgreSQL DSNs since the schema relies on partial indexes and JSONB."""
  if not value.strip().startswith(("postgresql://", "postgresql+asyncpg://", "postgres://")):
    return "must be a postgresql:// DSN."

  return None


def _validate_allowed_origins(value: str, _: dict[str, str]) -> str | None:
  """Reject wildcard CORS origins because the API allows credentials."""
  origins = [origin.strip() for origin in value.split(",") if origin.strip()]
  if not origins:
    return "must include at least one origin."

  if "*" in origins:
    return "must not include wildcard origins."

  return None


def _validate_environment_name(value: str, _: dict[str, str]) -> str | None:
  normalized = value.strip().lower()
  if normalized in {"dev", "development", "stage", "staging", "prod", "production", "test", "testing"}:
    return None

  return "must be one of: development, stage, production, test (or aliases)."


REQUIRED_ENV_REGISTRY: tuple[EnvVarDefinition, ...] = (
  EnvVarDefinition(name="COURSELINE_PG_DSN", required=True, secret=True, used_by="both", validator=_validate_dsn),
  EnvVarDefinition(name="FIREBASE_PROJECT_ID", required=True, secret=False, used_by="service"),
  EnvVarDefinition(name="COURSELINE_ENV", required=False, secret=False, used_by="service", validator=_validate_environment_name),
  EnvVarDefinition(name="COURSELINE_ALLOWED_ORIGINS", required=False, secret=False, used_by="service", validator=_validate_allowed_origins),
  EnvVarDefinition(name="FIREBASE_SERVICE_ACCOUNT_JSON_PATH", required=False, secret=False, used_by="service"),
)


def _iter_applicable_definitions(*, target: Literal["service", "migrator"]) -> tuple[EnvVarDefinition, ...]:
  """Filter registry entries so each process validates only relevant keys."""
  return tuple(definition for definition in REQUIRED_ENV_REGISTRY if definition.used_by in ("both", target))


def resolve_env_value(name: str) -> str:
  """Resolve a registry value, honoring the DATABASE_URL alias for the DSN."""
  raw = os.getenv(name)
  if raw is not None:
    return raw

  if name == "COURSELINE_PG_DSN":
    return os.getenv("DATABASE_URL", "")

  return ""


def list_required_env_names(*, target: Literal["service", "migrator"]) -> tuple[str, ...]:
  """Expose required key names for deploy automation and script guardrails."""
  return tuple(definition.name for definition in _iter_applicable_definitions(target=target) if definition.required)


def validate_env_values(*, target: Literal["service", "migrator"], env_map: dict[str, str]) -> list[str]:
  """Validate a provided env map against contract rules for a target process."""
  errors: list[str] = []
  for definition in _iter_applicable_definitions(target=target):
    value = env_map.get(definition.name, "")
    if definition.required and value.strip() == "":
      errors.append(f"{definition.name}: required variable is missing.")
      continue

    if definition.validator and value.strip() != "":
      validation_error = definition.validator(value, env_map)
      if validation_error:
        errors.append(f"{definition.name}: {validation_error}")

  return errors


def validate_runtime_env_or_raise(*, logger: logging.Logger, target: Literal["service", "migrator"]) -> None:
  """Validate and log runtime env values using the centralized contract."""
  applicable_definitions = _iter_applicable_definitions(target=target)
  resolved_values: dict[str, str] = {}
  for definition in applicable_definitions:
    value = resolve_env_value(definition.name)
    resolved_values[definition.name] = value
    if definition.secret:
      logger.info("ENV_CHECK key=%s value=<redacted>", definition.name)
    elif value == "":
      logger.info("ENV_CHECK key=%s value=<missing>", definition.name)
    else:
      logger.info("ENV_CHECK key=%s value=%s", definition.name, value)

  errors = validate_env_values(target=target, env_map=resolved_values)
  if not errors:
    logger.info("ENV_CHECK status=ok target=%s checked=%d", target, len(applicable_definitions))
    return

  message = "ENV_CHECK status=failed target={target} violations:\n- {errors}".format(target=target, errors="\n- ".join(errors))
  logger.error(message)
  raise EnvContractError(message)
