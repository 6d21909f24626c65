import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import decode_token_or_401
from app.schema.courses import LoginRequest, ProfileOut, SignupRequest
from app.services.access_policy import Caller
from app.services.profiles import get_own_profile
from app.services.provisioning import IdentityAlreadyRegisteredError, get_identity_by_firebase_uid, register_identity

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/signup")
async def signup(request: SignupRequest, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:  # noqa: B008
  """
  Register the identity behind a verified token and provision its profile.
  """
  logger.info("Signup request received")
  decoded_token = await decode_token_or_401(request.id_token)
  firebase_uid = decoded_token["uid"]
  token_email = decoded_token.get("email")
  if not token_email:
    logger.error("Signup failed: token missing email uid=%s", firebase_uid)
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Token missing email")

  try:
    identity = await register_identity(db, firebase_uid=firebase_uid, email=str(token_email), metadata=request.metadata)
  except IdentityAlreadyRegisteredError as e:
    logger.warning("Signup failed: identity already registered uid=%s", firebase_uid)
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Identity already registered") from e
  except Exception as e:
    # Registration is all-or-nothing; the identity insert was rolled back.
    logger.error("Signup failed: provisioning error uid=%s: %s", firebase_uid, e, exc_info=True)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to register identity") from e

  profile = await get_own_profile(db, Caller(identity_id=identity.id))
  logger.info("Signup successful identity=%s", identity.id)
  return {"status": "success", "profile": ProfileOut.model_validate(profile).model_dump(by_alias=True, mode="json") if profile else None}


@router.post("/login")
async def login(request: LoginRequest, db: AsyncSession = Depends(get_db)) -> dict[str, Any]:  # noqa: B008
  """
  Report whether the identity behind a verified token has signed up.
  """
  decoded_token = await decode_token_or_401(request.id_token)
  identity = await get_identity_by_firebase_uid(db, decoded_token["uid"])
  if identity is None:
    logger.info("Login checked: identity not registered uid=%s", decoded_token["uid"])
    return {"exists": False, "profile": None}

  profile = await get_own_profile(db, Caller(identity_id=identity.id))
  return {"exists": True, "profile": ProfileOut.model_validate(profile).model_dump(by_alias=True, mode="json") if profile else None}
