"""Database failure classification: transient (caller may try again later) vs permanent.

Nothing in the service retries automatically; the classification only decides the HTTP
status reported to the client and how loudly the failure is logged.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.exc import DBAPIError, DisconnectionError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

_TRANSIENT_SQLSTATES = {
  "40001": ("serialization_conflict", "Serialization failure - transaction conflict"),
  "40P01": ("deadlock", "Deadlock detected"),
  "57P01": ("admin_shutdown", "Server terminating connection"),
  "53300": ("too_many_connections", "Too many connections"),
}

_CONNECTIVITY_PATTERNS = ("connection", "timeout", "reset", "network", "broken pipe", "closed")


@dataclass(frozen=True)
class DBFailureClassification:
  """Classification result for a database failure."""

  retryable: bool
  reason: str
  sqlstate: str | None
  category: str


def _extract_sqlstate(exc: Exception) -> str | None:
  """Extract the Postgres SQLSTATE from a wrapped driver exception."""
  if isinstance(exc, DBAPIError) and exc.orig is not None:
    for attr in ("sqlstate", "pgcode"):
      value = getattr(exc.orig, attr, None)
      if value:
        return str(value)
  return None


def classify_db_failure(exc: Exception) -> DBFailureClassification:
  """
  Classify a database failure.

  Primary signal: Postgres SQLSTATE.
  Fallback: exception type and message patterns.

  Transient: serialization failures, deadlocks, server shutdown, connection exhaustion,
  pool timeouts and dropped connections. Everything else (integrity violations,
  schema errors, permission errors) is permanent.
  """
  sqlstate = _extract_sqlstate(exc)

  if sqlstate in _TRANSIENT_SQLSTATES:
    category, reason = _TRANSIENT_SQLSTATES[sqlstate]
    return DBFailureClassification(retryable=True, reason=reason, sqlstate=sqlstate, category=category)

  if sqlstate and sqlstate.startswith("23") or isinstance(exc, IntegrityError):
    return DBFailureClassification(retryable=False, reason="Integrity constraint violation", sqlstate=sqlstate, category="integrity_error")

  if sqlstate and sqlstate.startswith("42"):
    return DBFailureClassification(retryable=False, reason="Schema/SQL error", sqlstate=sqlstate, category="schema_error")

  if sqlstate and sqlstate.startswith("28"):
    return DBFailureClassification(retryable=False, reason="Authentication/permission error", sqlstate=sqlstate, category="permission_error")

  if isinstance(exc, DisconnectionError | PoolTimeoutError):
    return DBFailureClassification(retryable=True, reason="Connection pool unavailable", sqlstate=sqlstate, category="connectivity_error")

  if isinstance(exc, OperationalError | InterfaceError):
    error_msg = str(exc).lower()
    if any(pattern in error_msg for pattern in _CONNECTIVITY_PATTERNS):
      return DBFailureClassification(retryable=True, reason="Transient connection/network error", sqlstate=sqlstate, category="connectivity_error")
    return DBFailureClassification(retryable=False, reason="Operational error (unknown cause)", sqlstate=sqlstate, category="operational_error_unknown")

  return DBFailureClassification(retryable=False, reason=f"Unknown error type: {type(exc).__name__}", sqlstate=sqlstate, category="unknown_error")
