from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from datalens.core.registry import ConnectorRegistry
from datalens.routers.deps import get_db, get_registry

router = APIRouter(prefix="/api/v1", tags=["health"])
log = logging.getLogger("routers.health")


@router.get("/health")
def health(db: Session = Depends(get_db), registry: ConnectorRegistry = Depends(get_registry)):
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        log.warning("health check could not reach the database: %s", e)
        database = "unavailable"
    return {
        "status": "ok" if database == "ok" else "degraded",
        "database": database,
        "connectors": registry.ids(),
    }
