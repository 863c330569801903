"""Shared helpers for integration tests."""

from __future__ import annotations

from larder.config import get_settings


def auth_headers(user_id: int | None = None) -> dict[str, str]:
    headers: dict[str, str] = {}
    token = get_settings().api_token
    if token:
        headers["Authorization"] = f"Bearer {token}"
    if user_id is not None:
        headers[get_settings().user_header] = str(user_id)
    return headers
