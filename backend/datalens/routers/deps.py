from __future__ import annotations

from typing import Iterator

from fastapi import Request
from sqlalchemy.orm import Session

from datalens.config import Settings
from datalens.core.registry import ConnectorRegistry
from datalens.errors import AuthenticationRequired


def get_db(request: Request) -> Iterator[Session]:
    # One session per request, always closed.
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_registry(request: Request) -> ConnectorRegistry:
    return request.app.state.registry


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def optional_user(request: Request) -> str | None:
    """Caller id forwarded by the identity provider, or None for anonymous requests."""
    header = request.app.state.settings.user_id_header
    value = (request.headers.get(header) or "").strip()
    return value or None


def require_user(request: Request) -> str:
    user_id = optional_user(request)
    if user_id is None:
        raise AuthenticationRequired()
    return user_id
