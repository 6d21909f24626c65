"""Row-level access policy evaluated before every entity operation.

How/Why:
  - Every service function that reads or writes an entity row calls `enforce` with the
    entity kind, the operation, the caller and the target row, so the rules live in one
    table instead of being repeated at each call site.
  - Absence of a permissive rule denies the operation.
  - Profile provisioning does not go through this module; it is a privileged step owned by
    `app.services.provisioning`.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class EntityKind(str, Enum):
  PROFILE = "profile"
  COURSE = "course"
  LESSON = "lesson"
  PROGRESS = "progress"


class Operation(str, Enum):
  SELECT = "select"
  INSERT = "insert"
  UPDATE = "update"
  DELETE = "delete"


@dataclass(frozen=True)
class Caller:
  """The authenticated principal issuing a request."""

  identity_id: uuid.UUID | None

  @property
  def is_authenticated(self) -> bool:
    return self.identity_id is not None

  @classmethod
  def anonymous(cls) -> Caller:
    return cls(identity_id=None)


@dataclass(frozen=True)
class PolicyDecision:
  allowed: bool
  reason: str


class AccessDeniedError(Exception):
  """Raised when no permissive policy matches an entity operation."""

  def __init__(self, kind: EntityKind, operation: Operation, reason: str) -> None:
    super().__init__(f"{operation.value} on {kind.value} denied: {reason}")
    self.kind = kind
    self.operation = operation
    self.reason = reason


PolicyRule = Callable[[Caller, Any], bool]


def _any_authenticated(caller: Caller, _row: Any) -> bool:
  return caller.is_authenticated


def _owns_profile(caller: Caller, row: Any) -> bool:
  return row is not None and row.id == caller.identity_id


def _owns_progress(caller: Caller, row: Any) -> bool:
  return row is not None and row.user_id == caller.identity_id


# (kind, operation) -> rule. Pairs missing from this table have no permissive policy.
POLICIES: dict[tuple[EntityKind, Operation], PolicyRule] = {
  (EntityKind.PROFILE, Operation.SELECT): _owns_profile,
  (EntityKind.PROFILE, Operation.INSERT): _owns_profile,
  (EntityKind.PROFILE, Operation.UPDATE): _owns_profile,
  (EntityKind.COURSE, Operation.SELECT): _any_authenticated,
  (EntityKind.LESSON, Operation.SELECT): _any_authenticated,
  (EntityKind.PROGRESS, Operation.SELECT): _owns_progress,
  (EntityKind.PROGRESS, Operation.INSERT): _owns_progress,
  (EntityKind.PROGRESS, Operation.UPDATE): _owns_progress,
}


def authorize(kind: EntityKind, operation: Operation, caller: Caller, row: Any = None) -> PolicyDecision:
  """Evaluate the policy table for one operation on one row."""
  if not caller.is_authenticated:
    return PolicyDecision(allowed=False, reason="unauthenticated")

  rule = POLICIES.get((kind, operation))
  if rule is None:
    return PolicyDecision(allowed=False, reason="no permissive policy")

  if not rule(caller, row):
    return PolicyDecision(allowed=False, reason="row not owned by caller")

  return PolicyDecision(allowed=True, reason="policy matched")


def enforce(kind: EntityKind, operation: Operation, caller: Caller, row: Any = None) -> None:
  """Raise AccessDeniedError unless the policy allows the operation."""
  decision = authorize(kind, operation, caller, row)
  if decision.allowed:
    return

  logger.warning("Access denied kind=%s operation=%s caller=%s reason=%s", kind.value, operation.value, caller.identity_id, decision.reason)
  raise AccessDeniedError(kind, operation, decision.reason)


def enforce_each(kind: EntityKind, operation: Operation, caller: Caller, rows: list[Any]) -> list[Any]:
  """Check every row of a result set and return it unchanged when all pass."""
  for row in rows:
    enforce(kind, operation, caller, row)
  return rows
