"""
Pydantic schemas for the DataLens API.

Two families live here:
- the canonical time-series shapes every connector produces (DataPoint,
  OHLCVDataPoint, DataSet) and the connector catalog (DataSourceIndicator);
- the dashboard/widget configuration that is persisted and exchanged with
  the UI, plus the request/response bodies of the HTTP API.

All of them serialize with camelCase aliases ("dataSource", "isPublic", ...)
and accept either the alias or the field name on input.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, FiniteFloat, field_validator
from pydantic.alias_generators import to_camel

ChartType = Literal["line", "bar", "area", "scatter", "pie", "stat", "candlestick"]

COLOR_THEMES: dict[str, dict[str, Any]] = {
    "teal": {"primary": "#00D4AA", "secondary": "#00B894", "gradient": ["#00D4AA", "#00B894", "#00A383"]},
    "amber": {"primary": "#F5A623", "secondary": "#E6951A", "gradient": ["#F5A623", "#E6951A", "#D4840F"]},
    "purple": {"primary": "#A855F7", "secondary": "#9333EA", "gradient": ["#A855F7", "#9333EA", "#7C3AED"]},
    "rose": {"primary": "#F43F5E", "secondary": "#E11D48", "gradient": ["#F43F5E", "#E11D48", "#BE123C"]},
    "cyan": {"primary": "#06B6D4", "secondary": "#0891B2", "gradient": ["#06B6D4", "#0891B2", "#0E7490"]},
}
DEFAULT_COLOR_THEME = "teal"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --------- Canonical time series ---------

class DataPoint(CamelModel):
    # Years arrive as ints, dates as ISO strings.
    x: int | float | str | datetime
    y: FiniteFloat
    label: str | None = None


class OHLCVDataPoint(CamelModel):
    """One price bar. Use is_consistent() before drawing it."""
    date: str
    open: FiniteFloat
    high: FiniteFloat
    low: FiniteFloat
    close: FiniteFloat
    volume: FiniteFloat = 0.0

    def is_consistent(self) -> bool:
        return (
            self.high >= max(self.open, self.close)
            and self.low <= min(self.open, self.close)
            and self.volume >= 0
        )


class DataSetMetadata(CamelModel):
    unit: str | None = None
    source: str | None = None
    last_updated: datetime | None = None
    is_ohlcv: bool = Field(False, alias="isOHLCV")
    # True when a fallback policy replaced the provider response with synthetic data.
    degraded: bool = False


class DataSet(CamelModel):
    """
    Canonical output of Connector.fetch_data.
    Transient: built fresh per fetch and never persisted.
    """
    id: str
    name: str
    data: list[DataPoint]
    ohlcv_data: list[OHLCVDataPoint] | None = None
    metadata: DataSetMetadata = Field(default_factory=DataSetMetadata)


class DataSourceIndicator(CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    unit: str | None = None
    default_params: dict[str, str] | None = None


class DataSource(CamelModel):
    id: str
    name: str
    description: str
    category: str
    indicators: list[DataSourceIndicator]


# --------- Widgets and dashboards ---------

class DataSourceConfig(CamelModel):
    """
    Provider query parameters for a widget.
    Provider-specific keys (lat, lng, interval, timePeriod, location, ...) are kept as extras.
    """
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    indicator: str
    country: str | None = None
    symbol: str | None = None
    days: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    frequency: str | None = None

    def to_params(self) -> dict[str, str]:
        """Flatten into the string mapping connectors take, keyed by the wire names."""
        raw = self.model_dump(by_alias=True, exclude_none=True)
        return {key: str(value) for key, value in raw.items() if value != ""}


class ChartConfig(CamelModel):
    color_theme: str = DEFAULT_COLOR_THEME
    show_grid: bool | None = None
    show_legend: bool | None = None
    line_smooth: bool | None = None
    fill_area: bool | None = None

    @field_validator("color_theme")
    @classmethod
    def _known_theme(cls, value: str) -> str:
        if value not in COLOR_THEMES:
            raise ValueError(f"unknown color theme '{value}', expected one of {sorted(COLOR_THEMES)}")
        return value


def _valid_uuid(value: str) -> str:
    # Kept exactly as sent: layout entries refer to widgets by this string.
    uuid.UUID(str(value))
    return value


class WidgetConfig(CamelModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: ChartType
    title: str = Field(..., min_length=1, max_length=200)
    data_source: str
    data_source_config: DataSourceConfig
    chart_config: ChartConfig = Field(default_factory=ChartConfig)

    @field_validator("id")
    @classmethod
    def _uuid_id(cls, value: str) -> str:
        # Widget ids are generated client-side before the first save; they must still be UUIDs.
        return _valid_uuid(value)


class WidgetPatch(CamelModel):
    """Partial widget used by single-widget updates. Only supplied fields change."""
    type: ChartType | None = None
    title: str | None = Field(None, min_length=1, max_length=200)
    data_source: str | None = None
    data_source_config: DataSourceConfig | None = None
    chart_config: ChartConfig | None = None


class WidgetLayout(CamelModel):
    i: str
    x: int = Field(0, ge=0)
    y: int = Field(0, ge=0)
    w: int = Field(6, ge=1)
    h: int = Field(8, ge=1)
    min_w: int | None = Field(None, ge=1)
    min_h: int | None = Field(None, ge=1)


class Dashboard(CamelModel):
    id: str
    user_id: str
    name: str
    description: str | None = None
    is_public: bool = False
    widgets: list[WidgetConfig] = Field(default_factory=list)
    layout: list[WidgetLayout] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


# --------- Request / response bodies ---------

class DashboardCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None


class DashboardUpdate(CamelModel):
    """
    PUT /dashboards/{id} body.
    Sending both `widgets` and `layout` triggers the atomic bulk replace;
    otherwise only the supplied metadata fields change.
    """
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = None
    is_public: bool | None = None
    layout: list[WidgetLayout] | None = None
    widgets: list[WidgetConfig] | None = None


class WidgetCreate(CamelModel):
    dashboard_id: str
    widget: WidgetConfig


class WidgetUpdate(CamelModel):
    widget: WidgetPatch


class IdResponse(CamelModel):
    id: str
    success: bool = True


class SuccessResponse(CamelModel):
    success: bool = True


class WidgetFrame(CamelModel):
    """Result of rendering one widget: a chart payload or an inline error."""
    widget_id: str
    title: str
    type: ChartType
    status: Literal["ready", "error"]
    chart: dict[str, Any] | None = None
    error: str | None = None


class DashboardRender(CamelModel):
    dashboard_id: str
    name: str
    widgets: list[WidgetFrame]
