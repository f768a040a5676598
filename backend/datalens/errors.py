"""
Exception hierarchy for DataLens.

Every error the service raises on purpose derives from DataLensError and
carries the HTTP status it maps to at the API boundary. Connector failures
have their own branch so the rendering frame can turn them into inline
widget errors without catching unrelated bugs.
"""
from __future__ import annotations

from typing import Any


class DataLensError(Exception):
    """Base class. `details` holds extra context for logs and error bodies."""

    status_code: int = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ValidationError(DataLensError):
    """Missing or invalid request fields."""
    status_code = 400


class AuthenticationRequired(DataLensError):
    """No authenticated identity was forwarded with the request."""
    status_code = 401

    def __init__(self, message: str = "Unauthorized", details: dict[str, Any] | None = None):
        super().__init__(message, details)


class OwnershipViolation(DataLensError):
    """Authenticated, but the caller does not own the dashboard."""
    status_code = 403

    def __init__(self, message: str = "Forbidden", details: dict[str, Any] | None = None):
        super().__init__(message, details)


class NotFound(DataLensError):
    status_code = 404


class UnknownConnectorError(NotFound):
    def __init__(self, connector_id: str):
        super().__init__(f"Unknown data source: {connector_id}", {"connector": connector_id})
        self.connector_id = connector_id


class DuplicateConnectorError(DataLensError):
    """Two connectors registered under the same id. Raised at startup."""


# --------- Connector errors ---------

class ConnectorError(DataLensError):
    """Base for everything a connector raises from fetch_data."""


class UnknownIndicatorError(ConnectorError):
    status_code = 400

    def __init__(self, connector_id: str, indicator_id: str):
        super().__init__(
            f"Unknown indicator: {indicator_id}",
            {"connector": connector_id, "indicator": indicator_id},
        )
        self.connector_id = connector_id
        self.indicator_id = indicator_id


class MissingParameterError(ConnectorError):
    status_code = 400

    def __init__(self, connector_id: str, *names: str):
        super().__init__(
            f"Missing required parameter(s): {', '.join(names)}",
            {"connector": connector_id},
        )
        self.connector_id = connector_id
        self.names = names


class InvalidParameterError(ConnectorError):
    status_code = 400

    def __init__(self, connector_id: str, name: str, value: Any, expected: str):
        super().__init__(
            f"Invalid value for parameter '{name}': expected {expected}",
            {"connector": connector_id, "value": value},
        )
        self.connector_id = connector_id
        self.name = name


class ConnectorFetchError(ConnectorError):
    """The upstream call failed, returned a non-success status, or could not be parsed."""
    status_code = 500

    def __init__(self, connector_id: str, message: str, upstream_status: int | None = None):
        details: dict[str, Any] = {"connector": connector_id}
        if upstream_status is not None:
            details["upstream_status"] = upstream_status
        super().__init__(message, details)
        self.connector_id = connector_id
        self.upstream_status = upstream_status


UpstreamProviderError = ConnectorFetchError


class ChartDataError(DataLensError):
    """
    A renderer refused a DataSet (e.g. malformed OHLCV bars).
    Only reported inline in a widget frame, so it keeps the default status.
    """
