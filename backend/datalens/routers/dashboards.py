from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from datalens.config import Settings
from datalens.core import access, dashboards as store
from datalens.core.registry import ConnectorRegistry
from datalens.core.rendering import load_dashboard
from datalens.errors import NotFound, ValidationError
from datalens.routers.deps import get_db, get_registry, get_settings, optional_user, require_user
from datalens.schemas import (
    Dashboard,
    DashboardCreate,
    DashboardRender,
    DashboardUpdate,
    IdResponse,
    SuccessResponse,
)

router = APIRouter(prefix="/api/v1/dashboards", tags=["dashboards"])


def _get_or_404(db: Session, dashboard_id: str) -> Dashboard:
    dashboard = store.get_dashboard_by_id(db, dashboard_id)
    if dashboard is None:
        raise NotFound("Dashboard not found", {"dashboard_id": dashboard_id})
    return dashboard


@router.get("", response_model=list[Dashboard], response_model_by_alias=True)
def list_dashboards(user_id: str = Depends(require_user), db: Session = Depends(get_db)):
    return store.get_dashboards_by_user(db, user_id)


# Declared before "/{dashboard_id}" so "public" is not taken for an id.
@router.get("/public", response_model=list[Dashboard], response_model_by_alias=True)
def list_public_dashboards(limit: int = Query(50, ge=1, le=200), db: Session = Depends(get_db)):
    return store.get_public_dashboards(db, limit)


@router.post("", response_model=IdResponse)
def create_dashboard(body: DashboardCreate, user_id: str = Depends(require_user), db: Session = Depends(get_db)):
    dashboard_id = store.create_dashboard(db, user_id, body.title, body.description)
    return IdResponse(id=dashboard_id)


@router.get("/{dashboard_id}", response_model=Dashboard, response_model_by_alias=True)
def get_dashboard(dashboard_id: str, user_id: str | None = Depends(optional_user), db: Session = Depends(get_db)):
    dashboard = _get_or_404(db, dashboard_id)
    access.ensure_can_read(dashboard, user_id)
    return dashboard


@router.get("/{dashboard_id}/render", response_model=DashboardRender, response_model_by_alias=True)
async def render_dashboard(
    dashboard_id: str,
    user_id: str | None = Depends(optional_user),
    db: Session = Depends(get_db),
    registry: ConnectorRegistry = Depends(get_registry),
    settings: Settings = Depends(get_settings),
):
    dashboard = _get_or_404(db, dashboard_id)
    access.ensure_can_read(dashboard, user_id)
    return await load_dashboard(registry, dashboard, timeout=settings.widget_timeout_seconds)


@router.put("/{dashboard_id}", response_model=SuccessResponse)
def update_dashboard(
    dashboard_id: str,
    body: DashboardUpdate,
    user_id: str = Depends(require_user),
    db: Session = Depends(get_db),
):
    dashboard = _get_or_404(db, dashboard_id)
    access.ensure_owner(dashboard, user_id)

    if body.widgets is not None:
        # Bulk replace: widgets and layout travel together.
        if body.layout is None:
            raise ValidationError("Bulk widget save requires both widgets and layout")
        store.update_dashboard_widgets(db, dashboard_id, body.widgets, body.layout)
        # Metadata sent alongside the widgets is applied after the replace.
        meta = body.model_fields_set & {"title", "description", "is_public"}
        if meta:
            store.update_dashboard(db, dashboard_id, DashboardUpdate(**{k: getattr(body, k) for k in meta}))
        return SuccessResponse()

    store.update_dashboard(db, dashboard_id, body)
    return SuccessResponse()


@router.delete("/{dashboard_id}", response_model=SuccessResponse)
def delete_dashboard(dashboard_id: str, user_id: str = Depends(require_user), db: Session = Depends(get_db)):
    dashboard = _get_or_404(db, dashboard_id)
    access.ensure_owner(dashboard, user_id)
    store.delete_dashboard(db, dashboard_id)
    return SuccessResponse()
