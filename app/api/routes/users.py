from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import get_current_caller
from app.schema.courses import ProfileOut, ProfileUpdateRequest
from app.services.access_policy import Caller
from app.services.profiles import get_own_profile, update_profile_name

router = APIRouter()


@router.get("/me", response_model=ProfileOut)
async def get_my_profile(caller: Caller = Depends(get_current_caller), db: AsyncSession = Depends(get_db)) -> ProfileOut:  # noqa: B008
  """
  Get the current account's profile.
  """
  profile = await get_own_profile(db, caller)
  if profile is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")

  return ProfileOut.model_validate(profile)


@router.patch("/me", response_model=ProfileOut)
async def update_my_profile(request: ProfileUpdateRequest, caller: Caller = Depends(get_current_caller), db: AsyncSession = Depends(get_db)) -> ProfileOut:  # noqa: B008
  """
  Update the current account's display name.
  """
  profile = await get_own_profile(db, caller)
  if profile is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")

  updated = await update_profile_name(db, caller, profile, full_name=request.full_name)
  return ProfileOut.model_validate(updated)
