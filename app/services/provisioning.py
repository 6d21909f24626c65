"""Identity registration and the post-registration profile bootstrap.

How/Why:
  - Registering an identity publishes an `IdentityCreated` event to the handlers in
    `IDENTITY_CREATED_HANDLERS`, inside the same transaction as the identity insert.
  - Handlers run as a privileged step: a brand-new account cannot satisfy "caller owns the
    row" while it is still being created, so they write without consulting the access policy.
  - A failing handler rolls back the identity, so registration either yields an identity with
    its profile or nothing at all.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.schema.sql import Identity, Profile

logger = logging.getLogger(__name__)


class IdentityAlreadyRegisteredError(Exception):
  """Raised when a Firebase uid already has an identity row."""


@dataclass(frozen=True)
class IdentityCreated:
  identity_id: uuid.UUID
  email: str
  metadata: dict[str, Any] = field(default_factory=dict)


IdentityCreatedHandler = Callable[[AsyncSession, IdentityCreated], Awaitable[None]]


def display_name_from_metadata(metadata: dict[str, Any] | None) -> str:
  """Return the signup `full_name` metadata verbatim, or an empty string when absent."""
  if not metadata:
    return ""
  value = metadata.get("full_name")
  if not isinstance(value, str):
    return ""
  return value


async def provision_profile(session: AsyncSession, event: IdentityCreated) -> None:
  """Create exactly one profile for a newly created identity."""
  profile = Profile(id=event.identity_id, email=event.email, full_name=display_name_from_metadata(event.metadata))
  session.add(profile)
  # Flush so constraint violations surface before the identity commits.
  await session.flush()
  logger.info("Profile provisioned for identity=%s", event.identity_id)


IDENTITY_CREATED_HANDLERS: list[IdentityCreatedHandler] = [provision_profile]


async def get_identity_by_firebase_uid(session: AsyncSession, firebase_uid: str) -> Identity | None:
  """Fetch an identity by Firebase uid to support auth and session validation."""
  result = await session.execute(select(Identity).where(Identity.firebase_uid == firebase_uid))
  return result.scalar_one_or_none()


async def register_identity(session: AsyncSession, *, firebase_uid: str, email: str, metadata: dict[str, Any] | None) -> Identity:
  """Insert a new identity and run every IdentityCreated handler in one transaction."""
  existing = await get_identity_by_firebase_uid(session, firebase_uid)
  if existing is not None:
    raise IdentityAlreadyRegisteredError(firebase_uid)

  identity = Identity(id=uuid.uuid4(), firebase_uid=firebase_uid, email=email, raw_metadata=metadata)
  session.add(identity)
  event = IdentityCreated(identity_id=identity.id, email=email, metadata=dict(metadata or {}))
  try:
    await session.flush()
    for handler in IDENTITY_CREATED_HANDLERS:
      await handler(session, event)
    await session.commit()
  except IntegrityError as exc:
    await session.rollback()
    # A concurrent signup for the same uid won the unique index.
    if await get_identity_by_firebase_uid(session, firebase_uid) is not None:
      logger.warning("Concurrent signup lost the race firebase_uid=%s", firebase_uid)
      raise IdentityAlreadyRegisteredError(firebase_uid) from exc
    logger.error("Identity registration rolled back firebase_uid=%s", firebase_uid, exc_info=True)
    raise
  except Exception:
    logger.error("Identity registration rolled back firebase_uid=%s", firebase_uid, exc_info=True)
    await session.rollback()
    raise

  await session.refresh(identity)
  logger.info("Identity registered id=%s", identity.id)
  return identity
