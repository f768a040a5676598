"""
Normalization Pipeline.

Every connector reduces its provider payload to a list of RawObservation
and hands it to build_dataset(). That single path guarantees the DataSet
invariants no matter which provider the data came from:
- y is a finite float (sentinels, nulls and unparsable values are dropped),
- data (and ohlcv_data) are sorted chronologically,
- the DataSet id is a deterministic composite of connector, indicator and key params.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Iterable

from datalens.schemas import DataPoint, DataSet, DataSetMetadata, DataSourceIndicator, OHLCVDataPoint

log = logging.getLogger("core.normalize")

# Literal placeholders providers use for "no observation" (FRED uses ".").
MISSING_SENTINELS = frozenset({"", ".", "-", "n/a", "na", "nan", "null", "none"})


@dataclass(frozen=True)
class RawObservation:
    """
    One provider observation before coercion.
    `value` is whatever the provider sent (string, number, None, sentinel).
    """
    x: Any
    value: Any
    label: str | None = None


def to_finite_float(value: Any) -> float | None:
    """Coerce a provider value to float; None for missing, sentinel or non-finite values."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.lower() in MISSING_SENTINELS:
            return None
        value = stripped.replace(",", "")
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def chronological_key(x: Any) -> tuple[int, float, str]:
    """
    Sort key for DataPoint.x.
    Numbers (years) sort numerically, date-like strings by instant, anything else lexically after them.
    """
    if isinstance(x, (int, float)) and not isinstance(x, bool):
        return (0, float(x), "")
    if isinstance(x, datetime):
        moment = x if x.tzinfo else x.replace(tzinfo=timezone.utc)
        return (1, moment.timestamp(), "")
    if isinstance(x, date):
        return (1, datetime(x.year, x.month, x.day, tzinfo=timezone.utc).timestamp(), "")
    text = str(x).strip()
    try:
        moment = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return (2, 0.0, text)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (1, moment.timestamp(), "")


def normalize_observations(observations: Iterable[RawObservation]) -> list[DataPoint]:
    """Coerce, filter and sort raw observations into DataPoints."""
    points: list[DataPoint] = []
    dropped = 0
    for obs in observations:
        y = to_finite_float(obs.value)
        if y is None or obs.x is None:
            dropped += 1
            continue
        points.append(DataPoint(x=obs.x, y=y, label=obs.label))
    if dropped:
        log.debug("dropped %d observations without a numeric value", dropped)
    points.sort(key=lambda p: chronological_key(p.x))
    return points


def ohlcv_bar(date_label: str, open_: Any, high: Any, low: Any, close: Any, volume: Any) -> OHLCVDataPoint | None:
    """
    Build one OHLCV bar from provider values.
    Returns None when a price is missing or the bar violates high/low bounds; bars are never repaired.
    """
    prices = [to_finite_float(v) for v in (open_, high, low, close)]
    if any(p is None for p in prices):
        return None
    vol = to_finite_float(volume)
    bar = OHLCVDataPoint(
        date=str(date_label),
        open=prices[0],
        high=prices[1],
        low=prices[2],
        close=prices[3],
        volume=vol if vol is not None else 0.0,
    )
    if not bar.is_consistent():
        log.warning("dropping inconsistent OHLCV bar %s (o=%s h=%s l=%s c=%s)", date_label, *prices)
        return None
    return bar


def sort_bars(bars: Iterable[OHLCVDataPoint]) -> list[OHLCVDataPoint]:
    return sorted(bars, key=lambda b: chronological_key(b.date))


def dataset_id(connector_id: str, indicator_id: str, *key_params: Any) -> str:
    parts = [connector_id, indicator_id]
    parts.extend(str(p) for p in key_params if p is not None and str(p) != "")
    return "-".join(parts)


def build_dataset(
    connector_id: str,
    source: str,
    indicator: DataSourceIndicator,
    data: list[DataPoint],
    *,
    key_params: Iterable[Any] = (),
    name: str | None = None,
    unit: str | None = None,
    ohlcv: list[OHLCVDataPoint] | None = None,
    degraded: bool = False,
) -> DataSet:
    """Assemble the final DataSet. `data` and `ohlcv` are re-sorted here so no connector can skip it."""
    return DataSet(
        id=dataset_id(connector_id, indicator.id, *key_params),
        name=name or indicator.name,
        data=sorted(data, key=lambda p: chronological_key(p.x)),
        ohlcv_data=sort_bars(ohlcv) if ohlcv is not None else None,
        metadata=DataSetMetadata(
            unit=unit or indicator.unit,
            source=source,
            last_updated=datetime.now(timezone.utc),
            is_ohlcv=ohlcv is not None,
            degraded=degraded,
        ),
    )
