from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from datalens.core import access, dashboards as store
from datalens.errors import NotFound
from datalens.routers.deps import get_db, require_user
from datalens.schemas import Dashboard, IdResponse, SuccessResponse, WidgetCreate, WidgetUpdate

router = APIRouter(prefix="/api/v1/widgets", tags=["widgets"])


def _owning_dashboard(db: Session, widget_id: str) -> Dashboard:
    # Widgets carry no owner of their own; ownership is always checked through the dashboard.
    dashboard = store.find_widget_dashboard(db, widget_id)
    if dashboard is None:
        raise NotFound("Widget not found", {"widget_id": widget_id})
    return dashboard


@router.post("", response_model=IdResponse)
def create_widget(body: WidgetCreate, user_id: str = Depends(require_user), db: Session = Depends(get_db)):
    dashboard = store.get_dashboard_by_id(db, body.dashboard_id)
    if dashboard is None:
        raise NotFound("Dashboard not found", {"dashboard_id": body.dashboard_id})
    access.ensure_owner(dashboard, user_id)
    widget_id = store.create_widget(db, dashboard.id, body.widget)
    return IdResponse(id=widget_id)


@router.put("/{widget_id}", response_model=SuccessResponse)
def update_widget(widget_id: str, body: WidgetUpdate, user_id: str = Depends(require_user), db: Session = Depends(get_db)):
    access.ensure_owner(_owning_dashboard(db, widget_id), user_id)
    store.update_widget(db, widget_id, body.widget)
    return SuccessResponse()


@router.delete("/{widget_id}", response_model=SuccessResponse)
def delete_widget(widget_id: str, user_id: str = Depends(require_user), db: Session = Depends(get_db)):
    access.ensure_owner(_owning_dashboard(db, widget_id), user_id)
    store.delete_widget(db, widget_id)
    return SuccessResponse()
