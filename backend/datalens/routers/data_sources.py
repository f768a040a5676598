from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from datalens.core.registry import ConnectorRegistry
from datalens.errors import UnknownConnectorError, ValidationError
from datalens.routers.deps import get_registry
from datalens.schemas import DataSet, DataSource, DataSourceIndicator
from datalens.services.base import DataConnector

router = APIRouter(prefix="/api/v1/data-sources", tags=["data-sources"])

# Query names older clients use for the indicator id, per provider vocabulary.
INDICATOR_ALIASES = ("indicator", "function", "series", "coin")


def _connector(registry: ConnectorRegistry, provider: str) -> DataConnector:
    connector = registry.get_connector(provider)
    if connector is None:
        raise UnknownConnectorError(provider)
    return connector


@router.get("", response_model=list[DataSource])
def list_data_sources(registry: ConnectorRegistry = Depends(get_registry)):
    return [c.describe() for c in registry.get_all_connectors()]


@router.get("/{provider}/indicators", response_model=list[DataSourceIndicator])
def list_indicators(provider: str, registry: ConnectorRegistry = Depends(get_registry)):
    return _connector(registry, provider).get_indicators()


@router.get("/{provider}", response_model=DataSet)
async def fetch_data_source(provider: str, request: Request, registry: ConnectorRegistry = Depends(get_registry)):
    """
    Fetch a normalized DataSet.
    Every query parameter except the indicator id is passed through to the connector.
    """
    connector = _connector(registry, provider)
    params = dict(request.query_params)
    indicator = None
    for name in INDICATOR_ALIASES:
        value = params.pop(name, None)
        if indicator is None and value:
            indicator = value.strip()
    if not indicator:
        raise ValidationError("Missing required parameter: indicator", {"connector": provider})
    return await connector.fetch_data(indicator, params)
