"""Account profile reads and owner updates."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.schema.sql import Profile
from app.services.access_policy import Caller, EntityKind, Operation, enforce

logger = logging.getLogger(__name__)


async def get_own_profile(session: AsyncSession, caller: Caller) -> Profile | None:
  """Fetch the caller's profile; None when provisioning never ran for this identity."""
  result = await session.execute(select(Profile).where(Profile.id == caller.identity_id))
  profile = result.scalar_one_or_none()
  if profile is not None:
    enforce(EntityKind.PROFILE, Operation.SELECT, caller, profile)
  return profile


async def update_profile_name(session: AsyncSession, caller: Caller, profile: Profile, *, full_name: str) -> Profile:
  """Update the display name on a profile owned by the caller."""
  enforce(EntityKind.PROFILE, Operation.UPDATE, caller, profile)
  # Skip writes when nothing changes.
  if profile.full_name == full_name:
    return profile

  profile.full_name = full_name
  session.add(profile)
  await session.commit()
  await session.refresh(profile)
  logger.info("Profile updated id=%s", profile.id)
  return profile
