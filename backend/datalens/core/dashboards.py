"""
Persistence contract for dashboards and widgets.

Every function takes the caller's SQLAlchemy Session (one per request) and
returns typed schemas, never ORM rows, so untyped JSON blobs do not leak out
of this module. Ownership is NOT checked here; the API layer does that
through core.access before calling any mutation.

Layout rules applied on every save:
- one layout entry per widget, matched by `i`;
- entries for unknown widgets are pruned, duplicates keep the first;
- widgets without an entry get a default slot at the bottom of the grid.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable

from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from datalens import models, schemas
from datalens.errors import NotFound, ValidationError

log = logging.getLogger("core.dashboards")

DEFAULT_WIDGET_W = 6
DEFAULT_WIDGET_H = 8
DEFAULT_MIN_W = 3
DEFAULT_MIN_H = 4


# --------- Row <-> schema conversion ---------

def _widget_to_schema(row: models.Widget) -> schemas.WidgetConfig | None:
    try:
        return schemas.WidgetConfig.model_validate({
            "id": row.id,
            "type": row.type,
            "title": row.title,
            "dataSource": row.data_source,
            "dataSourceConfig": row.params_json or {},
            "chartConfig": row.chart_config_json or {},
        })
    except SchemaValidationError as e:
        log.warning("skipping widget %s with invalid stored config: %s", row.id, e)
        return None


def _layout_to_schema(raw: object) -> list[schemas.WidgetLayout]:
    entries = []
    for item in raw if isinstance(raw, list) else []:
        try:
            entries.append(schemas.WidgetLayout.model_validate(item))
        except SchemaValidationError as e:
            log.warning("skipping invalid stored layout entry %r: %s", item, e)
    return entries


def _aware(moment: datetime) -> datetime:
    # SQLite hands back naive timestamps; everything stored is UTC.
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def to_schema(row: models.Dashboard) -> schemas.Dashboard:
    widgets = [w for w in (_widget_to_schema(r) for r in row.widgets) if w is not None]
    return schemas.Dashboard(
        id=row.id,
        user_id=row.user_id,
        name=row.title,
        description=row.description,
        is_public=bool(row.is_public),
        widgets=widgets,
        layout=_layout_to_schema(row.layout_json),
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _widget_row(dashboard_id: str, position: int, widget: schemas.WidgetConfig) -> models.Widget:
    return models.Widget(
        id=widget.id,
        dashboard_id=dashboard_id,
        position=position,
        type=widget.type,
        title=widget.title,
        data_source=widget.data_source,
        params_json=widget.data_source_config.model_dump(by_alias=True, exclude_none=True),
        chart_config_json=widget.chart_config.model_dump(by_alias=True, exclude_none=True),
    )


def _dump_layout(layout: Iterable[schemas.WidgetLayout]) -> list[dict]:
    return [entry.model_dump(by_alias=True, exclude_none=True) for entry in layout]


def normalize_layout(layout: Iterable[schemas.WidgetLayout], widget_ids: list[str]) -> list[schemas.WidgetLayout]:
    """Return exactly one layout entry per widget id, in widget order."""
    by_id: dict[str, schemas.WidgetLayout] = {}
    pruned = 0
    for entry in layout:
        if entry.i not in widget_ids or entry.i in by_id:
            pruned += 1
            continue
        by_id[entry.i] = entry
    if pruned:
        log.debug("pruned %d orphaned or duplicate layout entries", pruned)

    bottom = max((e.y + e.h for e in by_id.values()), default=0)
    result = []
    for widget_id in widget_ids:
        entry = by_id.get(widget_id)
        if entry is None:
            entry = schemas.WidgetLayout(
                i=widget_id,
                x=0,
                y=bottom,
                w=DEFAULT_WIDGET_W,
                h=DEFAULT_WIDGET_H,
                min_w=DEFAULT_MIN_W,
                min_h=DEFAULT_MIN_H,
            )
            bottom += DEFAULT_WIDGET_H
        result.append(entry)
    return result


def _load(db: Session, dashboard_id: str, *, for_update: bool = False) -> models.Dashboard:
    stmt = (
        select(models.Dashboard)
        .where(models.Dashboard.id == dashboard_id)
        .options(selectinload(models.Dashboard.widgets))
    )
    if for_update:
        stmt = stmt.with_for_update()
    row = db.execute(stmt).scalar_one_or_none()
    if row is None:
        raise NotFound("Dashboard not found", {"dashboard_id": dashboard_id})
    return row


def _touch(row: models.Dashboard) -> None:
    row.updated_at = models.now_utc()


# --------- Dashboards ---------

def create_dashboard(db: Session, owner_id: str, title: str, description: str | None = None) -> str:
    row = models.Dashboard(user_id=owner_id, title=title, description=description or None, layout_json=[])
    db.add(row)
    db.commit()
    log.info("created dashboard %s for user %s", row.id, owner_id)
    return row.id


def get_dashboards_by_user(db: Session, owner_id: str) -> list[schemas.Dashboard]:
    stmt = (
        select(models.Dashboard)
        .where(models.Dashboard.user_id == owner_id)
        .options(selectinload(models.Dashboard.widgets))
        .order_by(models.Dashboard.updated_at.desc())
    )
    return [to_schema(row) for row in db.execute(stmt).scalars()]


def get_public_dashboards(db: Session, limit: int = 50) -> list[schemas.Dashboard]:
    stmt = (
        select(models.Dashboard)
        .where(models.Dashboard.is_public.is_(True))
        .options(selectinload(models.Dashboard.widgets))
        .order_by(models.Dashboard.updated_at.desc())
        .limit(limit)
    )
    return [to_schema(row) for row in db.execute(stmt).scalars()]


def get_dashboard_by_id(db: Session, dashboard_id: str) -> schemas.Dashboard | None:
    try:
        return to_schema(_load(db, dashboard_id))
    except NotFound:
        return None


def update_dashboard(db: Session, dashboard_id: str, fields: schemas.DashboardUpdate) -> None:
    """Partial update: only fields present in the request change. Always bumps updated_at."""
    row = _load(db, dashboard_id)
    supplied = fields.model_fields_set
    if "title" in supplied and fields.title is not None:
        row.title = fields.title
    if "description" in supplied:
        row.description = fields.description or None
    if "is_public" in supplied and fields.is_public is not None:
        row.is_public = fields.is_public
    if "layout" in supplied and fields.layout is not None:
        widget_ids = [w.id for w in row.widgets]
        row.layout_json = _dump_layout(normalize_layout(fields.layout, widget_ids))
    _touch(row)
    db.commit()


def update_dashboard_widgets(
    db: Session,
    dashboard_id: str,
    widgets: list[schemas.WidgetConfig],
    layout: list[schemas.WidgetLayout],
) -> None:
    """
    Atomic bulk replace.
    Deletes every widget of the dashboard, inserts the supplied set with
    its client ids and order, replaces the layout and bumps updated_at, all
    in one transaction. On any failure the transaction is rolled back and the
    previous widget set stays in place.
    """
    widget_ids = [w.id for w in widgets]
    if len(set(widget_ids)) != len(widget_ids):
        raise ValidationError("Widget ids must be unique within a dashboard")

    try:
        # Lock the dashboard row so concurrent bulk saves serialize.
        row = _load(db, dashboard_id, for_update=True)
        taken = db.execute(
            select(models.Widget.id)
            .where(models.Widget.id.in_(widget_ids))
            .where(models.Widget.dashboard_id != dashboard_id)
        ).scalars().all() if widget_ids else []
        if taken:
            raise ValidationError("Widget ids already belong to another dashboard", {"widget_ids": list(taken)})
        row.widgets.clear()
        db.flush()
        for position, widget in enumerate(widgets):
            row.widgets.append(_widget_row(row.id, position, widget))
        row.layout_json = _dump_layout(normalize_layout(layout, widget_ids))
        _touch(row)
        db.flush()
        db.commit()
    except IntegrityError as e:
        db.rollback()
        log.warning("bulk widget replace on %s rolled back: %s", dashboard_id, e.orig)
        raise ValidationError("Widget set violates a storage constraint", {"dashboard_id": dashboard_id}) from e
    except Exception:
        db.rollback()
        raise
    log.info("replaced widgets of dashboard %s (%d widgets)", dashboard_id, len(widgets))


def delete_dashboard(db: Session, dashboard_id: str) -> None:
    row = _load(db, dashboard_id)
    db.delete(row)
    db.commit()
    log.info("deleted dashboard %s", dashboard_id)


# --------- Widgets ---------

def _load_widget(db: Session, widget_id: str) -> models.Widget:
    row = db.get(models.Widget, widget_id)
    if row is None:
        raise NotFound("Widget not found", {"widget_id": widget_id})
    return row


def find_widget_dashboard(db: Session, widget_id: str) -> schemas.Dashboard | None:
    """The dashboard owning a widget, for ownership checks."""
    row = db.get(models.Widget, widget_id)
    if row is None:
        return None
    return get_dashboard_by_id(db, row.dashboard_id)


def create_widget(db: Session, dashboard_id: str, widget: schemas.WidgetConfig) -> str:
    row = _load(db, dashboard_id)
    if db.get(models.Widget, widget.id) is not None:
        raise ValidationError("A widget with this id already exists", {"widget_id": widget.id})
    position = max((w.position for w in row.widgets), default=-1) + 1
    row.widgets.append(_widget_row(row.id, position, widget))
    widget_ids = [w.id for w in row.widgets]
    row.layout_json = _dump_layout(normalize_layout(_layout_to_schema(row.layout_json), widget_ids))
    _touch(row)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ValidationError("Widget violates a storage constraint", {"widget_id": widget.id}) from e
    log.info("created widget %s on dashboard %s", widget.id, dashboard_id)
    return widget.id


def update_widget(db: Session, widget_id: str, patch: schemas.WidgetPatch) -> None:
    row = _load_widget(db, widget_id)
    supplied = patch.model_fields_set
    if "type" in supplied and patch.type is not None:
        row.type = patch.type
    if "title" in supplied and patch.title is not None:
        row.title = patch.title
    if "data_source" in supplied and patch.data_source is not None:
        row.data_source = patch.data_source
    if "data_source_config" in supplied and patch.data_source_config is not None:
        row.params_json = patch.data_source_config.model_dump(by_alias=True, exclude_none=True)
    if "chart_config" in supplied and patch.chart_config is not None:
        row.chart_config_json = patch.chart_config.model_dump(by_alias=True, exclude_none=True)
    _touch(row.dashboard)
    db.commit()


def delete_widget(db: Session, widget_id: str) -> None:
    row = _load_widget(db, widget_id)
    dashboard = row.dashboard
    dashboard.widgets.remove(row)
    remaining = [w.id for w in dashboard.widgets]
    dashboard.layout_json = _dump_layout(normalize_layout(_layout_to_schema(dashboard.layout_json), remaining))
    _touch(dashboard)
    db.commit()
    log.info("deleted widget %s from dashboard %s", widget_id, dashboard.id)
