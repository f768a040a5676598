"""
Chart payload builders.

Each renderer turns a DataSet plus the widget's ChartConfig into a plain
dict the UI hands to its charting library. No drawing happens here; the
payload carries the points, the presentation flags and the theme colors.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Callable

from datalens.errors import ChartDataError
from datalens.schemas import COLOR_THEMES, ChartConfig, DataPoint, DataSet

PIE_SLICES = 10
# Extra slice colors after the theme's own.
PIE_ACCENTS = ["#A855F7", "#F43F5E", "#06B6D4", "#F5A623"]
CANDLE_UP = "#10B981"
CANDLE_DOWN = "#EF4444"


def _x(value: Any) -> Any:
    return value.isoformat() if isinstance(value, datetime) else value


def _point(p: DataPoint) -> dict:
    out = {"x": _x(p.x), "y": p.y}
    if p.label:
        out["label"] = p.label
    return out


def _base(chart_type: str, ds: DataSet, cfg: ChartConfig) -> dict:
    theme = COLOR_THEMES[cfg.color_theme]
    return {
        "type": chart_type,
        "datasetId": ds.id,
        "name": ds.name,
        "unit": ds.metadata.unit,
        "source": ds.metadata.source,
        "degraded": ds.metadata.degraded,
        "colors": {"primary": theme["primary"], "secondary": theme["secondary"], "gradient": list(theme["gradient"])},
    }


def _options(cfg: ChartConfig, **defaults: bool) -> dict:
    # Unset flags fall back to the per-chart defaults.
    opts = {}
    for key, default in defaults.items():
        value = getattr(cfg, key)
        opts[key] = default if value is None else value
    return opts


def render_series(chart_type: str, ds: DataSet, cfg: ChartConfig) -> dict:
    """line, area, bar, scatter: one series over the DataSet points."""
    payload = _base(chart_type, ds, cfg)
    payload["series"] = [{"name": ds.name, "points": [_point(p) for p in ds.data]}]
    if chart_type == "line":
        payload["options"] = _options(cfg, show_grid=True, show_legend=False, line_smooth=True, fill_area=False)
    elif chart_type == "area":
        payload["options"] = _options(cfg, show_grid=True, show_legend=False, line_smooth=True, fill_area=True)
    else:
        payload["options"] = _options(cfg, show_grid=True, show_legend=False)
    return payload


def render_pie(ds: DataSet, cfg: ChartConfig) -> dict:
    payload = _base("pie", ds, cfg)
    theme = COLOR_THEMES[cfg.color_theme]
    palette = [theme["primary"], theme["secondary"], *theme["gradient"], *PIE_ACCENTS]
    tail = ds.data[-PIE_SLICES:]
    payload["slices"] = [
        {"name": str(_x(p.x)), "value": p.y, "color": palette[idx % len(palette)]}
        for idx, p in enumerate(tail)
    ]
    payload["options"] = _options(cfg, show_legend=True)
    return payload


def compute_stats(points: list[DataPoint]) -> dict[str, float]:
    if not points:
        return {"current": 0.0, "previous": 0.0, "change": 0.0, "changePercent": 0.0, "min": 0.0, "max": 0.0, "avg": 0.0}
    values = [p.y for p in points]
    current = values[-1]
    previous = values[-2] if len(values) > 1 else current
    change = current - previous
    return {
        "current": current,
        "previous": previous,
        "change": change,
        "changePercent": (change / previous) * 100 if previous != 0 else 0.0,
        "min": min(values),
        "max": max(values),
        "avg": sum(values) / len(values),
    }


def render_stat(ds: DataSet, cfg: ChartConfig) -> dict:
    payload = _base("stat", ds, cfg)
    payload["stats"] = compute_stats(ds.data)
    return payload


def render_candlestick(ds: DataSet, cfg: ChartConfig) -> dict:
    bars = ds.ohlcv_data
    if not bars:
        raise ChartDataError("Candlestick charts need OHLCV data", {"dataset": ds.id})
    bad = [b.date for b in bars if not b.is_consistent()]
    if bad:
        raise ChartDataError("Malformed OHLCV bars", {"dataset": ds.id, "dates": bad[:5]})

    payload = _base("candlestick", ds, cfg)
    payload["candles"] = [
        {
            "date": b.date,
            "open": b.open,
            "high": b.high,
            "low": b.low,
            "close": b.close,
            "volume": b.volume,
            "color": CANDLE_UP if b.close >= b.open else CANDLE_DOWN,
        }
        for b in bars
    ]
    payload["options"] = _options(cfg, show_grid=True, show_legend=False)
    return payload


RENDERERS: dict[str, Callable[[DataSet, ChartConfig], dict]] = {
    "line": lambda ds, cfg: render_series("line", ds, cfg),
    "area": lambda ds, cfg: render_series("area", ds, cfg),
    "bar": lambda ds, cfg: render_series("bar", ds, cfg),
    "scatter": lambda ds, cfg: render_series("scatter", ds, cfg),
    "pie": render_pie,
    "stat": render_stat,
    "candlestick": render_candlestick,
}


def render_chart(chart_type: str, ds: DataSet, cfg: ChartConfig | None = None) -> dict:
    renderer = RENDERERS.get(chart_type)
    if renderer is None:
        raise ChartDataError(f"Unsupported chart type: {chart_type}")
    return renderer(ds, cfg or ChartConfig())
