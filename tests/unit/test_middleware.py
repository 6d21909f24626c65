"""Unit tests for request logging redaction and response headers."""

from __future__ import annotations

import json

import pytest
from httpx import AsyncClient

from app.core.middleware import _build_request_url, _format_body_for_log, _redact_sensitive_keys


def test_redacts_tokens_and_personal_fields_recursively() -> None:
  payload = {"idToken": "eyJhbGciOi", "metadata": {"full_name": "Ada", "plan": "free"}, "items": [{"authorization": "Bearer x"}]}

  redacted = _redact_sensitive_keys(payload)

  assert redacted == {"idToken": "***", "metadata": {"full_name": "***", "plan": "free"}, "items": [{"authorization": "***"}]}


def test_format_body_for_log_handles_non_json_and_truncation() -> None:
  assert _format_body_for_log(b"", "application/json", 100) == "<empty>"
  assert _format_body_for_log(b"abc", "text/plain", 100) == "<non-json body 3 bytes>"
  assert _format_body_for_log(b'{"fullName": "' + b"x" * 50 + b'"}', "application/json", 10).endswith("...(truncated)")
  assert json.loads(_format_body_for_log(b'{"fullName": "Ada"}', "application/json", 100)) == {"fullName": "***"}


def test_build_request_url_keeps_query_string() -> None:
  assert _build_request_url({"path": "/v1/courses", "query_string": b"page=2"}) == "/v1/courses?page=2"
  assert _build_request_url({"path": "/health", "query_string": b""}) == "/health"


@pytest.mark.anyio
async def test_responses_carry_request_id_and_security_headers(async_client: AsyncClient) -> None:
  response = await async_client.get("/health")

  assert response.status_code == 200
  assert response.json()["status"] == "ok"
  assert response.headers["x-request-id"]
  assert response.headers["x-content-type-options"] == "nosniff"
  assert "x-powered-by" not in response.headers
