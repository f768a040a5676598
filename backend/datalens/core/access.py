"""
Dashboard access policy.

Reads: the owner, or anyone when the dashboard is public.
Writes (update, delete, any widget mutation): the owner only.
Callers resolve the dashboard first so a missing one is a 404 before any
identity question comes up; a missing identity on a non-public read is 401.
"""
from __future__ import annotations

from datalens.errors import AuthenticationRequired, OwnershipViolation
from datalens.schemas import Dashboard


def can_read(dashboard: Dashboard, user_id: str | None) -> bool:
    return dashboard.is_public or (user_id is not None and dashboard.user_id == user_id)


def ensure_can_read(dashboard: Dashboard, user_id: str | None) -> None:
    if can_read(dashboard, user_id):
        return
    if user_id is None:
        raise AuthenticationRequired()
    raise OwnershipViolation()


def ensure_owner(dashboard: Dashboard, user_id: str | None) -> None:
    if user_id is None:
        raise AuthenticationRequired()
    if dashboard.user_id != user_id:
        raise OwnershipViolation()
