import uuid
from unittest.mock import MagicMock, patch

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import IntegrityError

from app.schema.sql import Identity, Profile


@pytest.fixture
def mock_verify_id_token():
  with patch("app.core.security.verify_id_token") as mock_verify:
    yield mock_verify


def _result(value) -> MagicMock:
  result = MagicMock()
  result.scalar_one_or_none.return_value = value
  return result


@pytest.mark.anyio
async def test_signup_provisions_profile_from_metadata(async_client: AsyncClient, db_session, mock_verify_id_token):
  mock_verify_id_token.return_value = {"uid": "signup_user_123", "email": "signup@example.com"}
  added: list[object] = []
  db_session.add.side_effect = added.append
  lookups = iter([lambda: None, lambda: next(row for row in added if isinstance(row, Profile))])
  db_session.execute.side_effect = lambda *args, **kwargs: _result(next(lookups)())

  response = await async_client.post("/api/auth/signup", json={"idToken": "valid_token", "metadata": {"full_name": "Signup User"}})

  assert response.status_code == 200
  body = response.json()
  assert body["status"] == "success"
  assert body["profile"]["email"] == "signup@example.com"
  assert body["profile"]["fullName"] == "Signup User"
  identity = next(row for row in added if isinstance(row, Identity))
  assert body["profile"]["id"] == str(identity.id)
  assert identity.raw_metadata == {"full_name": "Signup User"}
  db_session.commit.assert_awaited_once()


@pytest.mark.anyio
async def test_signup_without_metadata_gets_empty_display_name(async_client: AsyncClient, db_session, mock_verify_id_token):
  mock_verify_id_token.return_value = {"uid": "plain_user", "email": "plain@example.com"}
  added: list[object] = []
  db_session.add.side_effect = added.append
  lookups = iter([lambda: None, lambda: next(row for row in added if isinstance(row, Profile))])
  db_session.execute.side_effect = lambda *args, **kwargs: _result(next(lookups)())

  response = await async_client.post("/api/auth/signup", json={"idToken": "valid_token"})

  assert response.status_code == 200
  assert response.json()["profile"]["fullName"] == ""


@pytest.mark.anyio
async def test_signup_twice_conflicts(async_client: AsyncClient, db_session, mock_verify_id_token):
  mock_verify_id_token.return_value = {"uid": "dup_user", "email": "dup@example.com"}
  db_session.execute.return_value = _result(Identity(id=uuid.uuid4(), firebase_uid="dup_user", email="dup@example.com"))

  response = await async_client.post("/api/auth/signup", json={"idToken": "valid_token"})

  assert response.status_code == 409
  assert response.json()["detail"] == "Identity already registered"
  db_session.add.assert_not_called()


@pytest.mark.anyio
async def test_signup_rolls_back_when_provisioning_fails(async_client: AsyncClient, db_session, mock_verify_id_token):
  mock_verify_id_token.return_value = {"uid": "broken_user", "email": "broken@example.com"}
  db_session.execute.return_value = _result(None)
  db_session.flush.side_effect = [None, RuntimeError("profiles table missing")]

  response = await async_client.post("/api/auth/signup", json={"idToken": "valid_token"})

  assert response.status_code == 500
  assert response.json()["detail"] == "Internal Server Error"
  db_session.rollback.assert_awaited_once()
  db_session.commit.assert_not_awaited()


@pytest.mark.anyio
async def test_signup_requires_email_claim(async_client: AsyncClient, mock_verify_id_token):
  mock_verify_id_token.return_value = {"uid": "no_email"}

  response = await async_client.post("/api/auth/signup", json={"idToken": "valid_token"})

  assert response.status_code == 400
  assert response.json()["detail"] == "Token missing email"


@pytest.mark.anyio
async def test_signup_rejects_invalid_token(async_client: AsyncClient, mock_verify_id_token):
  mock_verify_id_token.return_value = None

  response = await async_client.post("/api/auth/signup", json={"idToken": "bad_token"})

  assert response.status_code == 401
  assert response.headers["www-authenticate"] == "Bearer"


@pytest.mark.anyio
async def test_login_user_not_found(async_client: AsyncClient, mock_verify_id_token):
  mock_verify_id_token.return_value = {"uid": "new_user_123", "email": "new@example.com"}

  response = await async_client.post("/api/auth/login", json={"idToken": "valid_token"})

  assert response.status_code == 200
  assert response.json() == {"exists": False, "profile": None}


@pytest.mark.anyio
async def test_login_returns_profile(async_client: AsyncClient, db_session, mock_verify_id_token):
  identity = Identity(id=uuid.uuid4(), firebase_uid="known", email="known@example.com")
  profile = Profile(id=identity.id, email="known@example.com", full_name="Known")
  mock_verify_id_token.return_value = {"uid": "known", "email": "known@example.com"}
  db_session.execute.side_effect = [_result(identity), _result(profile)]

  response = await async_client.post("/api/auth/login", json={"idToken": "valid_token"})

  assert response.status_code == 200
  assert response.json()["exists"] is True
  assert response.json()["profile"]["fullName"] == "Known"


@pytest.mark.anyio
async def test_protected_route_requires_registered_identity(async_client: AsyncClient, mock_verify_id_token):
  mock_verify_id_token.return_value = {"uid": "stranger", "email": "s@example.com"}

  response = await async_client.get("/v1/courses", headers={"Authorization": "Bearer valid_token"})

  assert response.status_code == 401
  assert response.json()["detail"] == "Identity not registered"


@pytest.mark.anyio
async def test_protected_route_requires_bearer_token(async_client: AsyncClient):
  response = await async_client.get("/v1/courses")

  assert response.status_code in (401, 403)


@pytest.mark.anyio
async def test_concurrent_signup_loser_gets_conflict(async_client: AsyncClient, db_session, mock_verify_id_token):
  mock_verify_id_token.return_value = {"uid": "racing_user", "email": "race@example.com"}
  winner = Identity(id=uuid.uuid4(), firebase_uid="racing_user", email="race@example.com")
  db_session.execute.side_effect = [_result(None), _result(winner)]
  db_session.commit.side_effect = IntegrityError("INSERT INTO identities", {}, Exception("duplicate key value violates unique constraint ix_identities_firebase_uid"))

  response = await async_client.post("/api/auth/signup", json={"idToken": "valid_token"})

  assert response.status_code == 409
  assert response.json()["detail"] == "Identity already registered"
