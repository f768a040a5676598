"""
Connector Registry.

Built once at startup and handed to whatever resolves widgets (the FastAPI
app keeps it on app.state). Lookups by id never raise, so callers can tell
"Unknown data source" apart from a failed fetch.
"""
from __future__ import annotations

import logging
from typing import Iterable

import httpx

from datalens.config import Settings
from datalens.errors import DuplicateConnectorError
from datalens.services.alphavantage_adapter import AlphaVantageAdapter
from datalens.services.base import DataConnector
from datalens.services.coingecko_adapter import CoinGeckoAdapter
from datalens.services.fred_adapter import FREDAdapter
from datalens.services.noaa_adapter import NOAAAdapter
from datalens.services.undata_adapter import UNDataAdapter
from datalens.services.worldbank_adapter import WorldBankAdapter

log = logging.getLogger("core.registry")


class ConnectorRegistry:
    def __init__(self, connectors: Iterable[DataConnector] = ()):
        # dicts keep insertion order, which is the listing order for the UI.
        self._connectors: dict[str, DataConnector] = {}
        for connector in connectors:
            self.register(connector)

    def register(self, connector: DataConnector) -> None:
        if connector.id in self._connectors:
            raise DuplicateConnectorError(
                f"Connector id '{connector.id}' is registered twice",
                {"connector": connector.id},
            )
        self._connectors[connector.id] = connector

    def get_connector(self, connector_id: str) -> DataConnector | None:
        return self._connectors.get(connector_id)

    def get_all_connectors(self) -> list[DataConnector]:
        return list(self._connectors.values())

    def ids(self) -> list[str]:
        return list(self._connectors)

    def __contains__(self, connector_id: object) -> bool:
        return connector_id in self._connectors

    def __len__(self) -> int:
        return len(self._connectors)


def build_registry(settings: Settings, client: httpx.AsyncClient | None = None) -> ConnectorRegistry:
    """Construct the standard connector set from settings."""
    timeout = settings.http_timeout_seconds
    registry = ConnectorRegistry([
        WorldBankAdapter(client=client, timeout=timeout),
        FREDAdapter(api_key=settings.fred_api_key, client=client, timeout=timeout),
        CoinGeckoAdapter(client=client, timeout=timeout),
        AlphaVantageAdapter(api_key=settings.alpha_vantage_api_key, client=client, timeout=timeout),
        NOAAAdapter(user_agent=settings.noaa_user_agent, client=client, timeout=timeout),
        UNDataAdapter(max_pages=settings.undata_max_pages, client=client, timeout=timeout),
    ])
    log.info("Registered %d connectors: %s", len(registry), ", ".join(registry.ids()))
    if not settings.fred_api_key:
        log.warning("FRED_API_KEY not set, FRED connector will serve synthetic data")
    return registry
