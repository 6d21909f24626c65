"""Unit tests for the row-level access policy table."""

from __future__ import annotations

import uuid
from types import SimpleNamespace

import pytest

from app.services.access_policy import POLICIES, AccessDeniedError, Caller, EntityKind, Operation, authorize, enforce, enforce_each


def test_anonymous_caller_is_denied_everything() -> None:
  anonymous = Caller.anonymous()
  for kind, operation in POLICIES:
    decision = authorize(kind, operation, anonymous, SimpleNamespace(id=None, user_id=None))
    assert decision.allowed is False
    assert decision.reason == "unauthenticated"


def test_catalog_is_readable_by_any_authenticated_caller() -> None:
  caller = Caller(identity_id=uuid.uuid4())
  assert authorize(EntityKind.COURSE, Operation.SELECT, caller).allowed
  assert authorize(EntityKind.LESSON, Operation.SELECT, caller, SimpleNamespace(id=uuid.uuid4())).allowed


@pytest.mark.parametrize("kind", [EntityKind.COURSE, EntityKind.LESSON])
@pytest.mark.parametrize("operation", [Operation.INSERT, Operation.UPDATE, Operation.DELETE])
def test_catalog_writes_have_no_permissive_policy(kind: EntityKind, operation: Operation) -> None:
  decision = authorize(kind, operation, Caller(identity_id=uuid.uuid4()))
  assert decision.allowed is False
  assert decision.reason == "no permissive policy"


def test_profile_access_requires_ownership() -> None:
  owner_id = uuid.uuid4()
  caller = Caller(identity_id=owner_id)
  own_profile = SimpleNamespace(id=owner_id)
  other_profile = SimpleNamespace(id=uuid.uuid4())

  for operation in (Operation.SELECT, Operation.INSERT, Operation.UPDATE):
    assert authorize(EntityKind.PROFILE, operation, caller, own_profile).allowed
    assert authorize(EntityKind.PROFILE, operation, caller, other_profile).reason == "row not owned by caller"

  assert authorize(EntityKind.PROFILE, Operation.DELETE, caller, own_profile).allowed is False


def test_progress_access_requires_ownership_and_forbids_delete() -> None:
  owner_id = uuid.uuid4()
  caller = Caller(identity_id=owner_id)
  own_record = SimpleNamespace(user_id=owner_id)
  foreign_record = SimpleNamespace(user_id=uuid.uuid4())

  for operation in (Operation.SELECT, Operation.INSERT, Operation.UPDATE):
    assert authorize(EntityKind.PROGRESS, operation, caller, own_record).allowed
    assert not authorize(EntityKind.PROGRESS, operation, caller, foreign_record).allowed

  assert authorize(EntityKind.PROGRESS, Operation.DELETE, caller, own_record).reason == "no permissive policy"


def test_enforce_raises_with_kind_and_operation() -> None:
  caller = Caller(identity_id=uuid.uuid4())
  with pytest.raises(AccessDeniedError) as excinfo:
    enforce(EntityKind.PROGRESS, Operation.UPDATE, caller, SimpleNamespace(user_id=uuid.uuid4()))

  assert excinfo.value.kind is EntityKind.PROGRESS
  assert excinfo.value.operation is Operation.UPDATE
  assert excinfo.value.reason == "row not owned by caller"


def test_enforce_each_rejects_result_set_with_foreign_row() -> None:
  owner_id = uuid.uuid4()
  caller = Caller(identity_id=owner_id)
  rows = [SimpleNamespace(user_id=owner_id), SimpleNamespace(user_id=uuid.uuid4())]

  assert enforce_each(EntityKind.PROGRESS, Operation.SELECT, caller, rows[:1]) == rows[:1]
  with pytest.raises(AccessDeniedError):
    enforce_each(EntityKind.PROGRESS, Operation.SELECT, caller, rows)
