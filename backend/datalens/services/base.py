"""
Data Connector contract.

Every external data provider is wrapped by one DataConnector subclass.
The rest of the app only ever sees this interface:
- static identity (id, name, category, description),
- get_indicators(): the connector's catalog, pure and deterministic,
- fetch_data(): the only I/O, returning a normalized DataSet.

Subclasses own their transform logic; the HTTP plumbing, error translation
and catalog lookups live here.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Mapping

import httpx

from datalens.errors import ConnectorFetchError, UnknownIndicatorError
from datalens.schemas import DataSet, DataSource, DataSourceIndicator

log = logging.getLogger("services.base")


class DataConnector(ABC):
    id: str
    name: str
    category: str
    description: str
    # Value written to DataSet.metadata.source.
    source_name: str

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = 15.0):
        # A shared client is injected by the app (and by tests, with a MockTransport).
        # Without one, each request opens a short-lived client.
        self.client = client
        self.timeout = timeout
        self.log = logging.getLogger(f"services.{self.id}")

    @abstractmethod
    def get_indicators(self) -> list[DataSourceIndicator]:
        ...

    @abstractmethod
    async def fetch_data(self, indicator_id: str, params: Mapping[str, str]) -> DataSet:
        ...

    def get_indicator(self, indicator_id: str) -> DataSourceIndicator:
        for indicator in self.get_indicators():
            if indicator.id == indicator_id:
                return indicator
        raise UnknownIndicatorError(self.id, indicator_id)

    def resolve_params(self, indicator: DataSourceIndicator, params: Mapping[str, Any]) -> dict[str, str]:
        """Indicator defaults overlaid with the caller's non-empty params."""
        merged = dict(indicator.default_params or {})
        for key, value in params.items():
            if value is None or str(value).strip() == "":
                continue
            merged[key] = str(value).strip()
        return merged

    def describe(self) -> DataSource:
        return DataSource(
            id=self.id,
            name=self.name,
            description=self.description,
            category=self.category,
            indicators=self.get_indicators(),
        )

    def log_degraded(self, indicator_id: str, reason: str) -> None:
        self.log.warning("%s/%s degraded to synthetic data: %s", self.id, indicator_id, reason)

    async def _get_json(
        self,
        url: str,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """
        GET a JSON document.
        Transport errors, timeouts, non-2xx statuses and non-JSON bodies all become ConnectorFetchError.
        No retries: callers decide whether to degrade or surface the error.
        """
        try:
            if self.client is not None:
                response = await self.client.get(url, params=params, headers=headers, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, params=params, headers=headers)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise ConnectorFetchError(
                self.id, f"API error: {status} {e.response.reason_phrase}", upstream_status=status
            ) from e
        except httpx.HTTPError as e:
            raise ConnectorFetchError(self.id, f"Request to {self.name} failed: {e.__class__.__name__}") from e
        except ValueError as e:
            raise ConnectorFetchError(self.id, f"{self.name} returned a response that is not valid JSON") from e
