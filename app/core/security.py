from __future__ import annotations

from typing import Annotated, Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from app.core.database import get_db
from app.core.firebase import verify_id_token
from app.schema.sql import Identity
from app.services.access_policy import Caller
from app.services.provisioning import get_identity_by_firebase_uid

security_scheme = HTTPBearer()


async def decode_token_or_401(id_token: str) -> dict[str, Any]:
  """Verify a Firebase ID token off the event loop and return its claims."""
  decoded_claims = await run_in_threadpool(verify_id_token, id_token)
  if not decoded_claims:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication credentials", headers={"WWW-Authenticate": "Bearer"})

  if not decoded_claims.get("uid"):
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token claims")

  return decoded_claims


async def get_current_identity(token: Annotated[HTTPAuthorizationCredentials, Depends(security_scheme)], db: AsyncSession = Depends(get_db)) -> Identity:  # noqa: B008
  """Verify the bearer token and resolve the registered identity behind it."""
  decoded_claims = await decode_token_or_401(token.credentials)
  identity = await get_identity_by_firebase_uid(db, decoded_claims["uid"])
  if identity is None:
    # Identities must sign up before they can call protected routes.
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Identity not registered")

  return identity


async def get_current_caller(identity: Identity = Depends(get_current_identity)) -> Caller:  # noqa: B008
  """Return the caller handed to the access policy for every entity operation."""
  return Caller(identity_id=identity.id)
