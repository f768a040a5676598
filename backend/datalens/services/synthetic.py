"""
Synthetic provider payloads for degraded mode.

When a connector's fallback policy kicks in (demo key, rate limit, missing
credentials) it asks this module for a payload shaped exactly like the
provider's real response and runs it through its normal transform. The
values are a seeded random walk: the same indicator and symbol always give
the same series, dates are strictly increasing, and OHLCV bars respect
high >= max(open, close) and low <= min(open, close).
"""
from __future__ import annotations

import random
from datetime import date, datetime, timedelta, timezone
from typing import Any

FRED_BASE_VALUES = {
    "GDP": 21000.0,
    "UNRATE": 5.0,
    "CPIAUCSL": 250.0,
    "FEDFUNDS": 2.5,
    "T10Y2Y": 0.5,
    "DEXUSEU": 0.85,
    "SP500": 4000.0,
    "M2SL": 20000.0,
}

COIN_BASE_PRICES = {
    "bitcoin": 45000.0,
    "ethereum": 3000.0,
    "solana": 100.0,
    "cardano": 0.5,
    "polkadot": 7.0,
    "chainlink": 15.0,
}

DAY_MS = 24 * 60 * 60 * 1000


def _rng(*parts: Any) -> random.Random:
    return random.Random(":".join(str(p) for p in parts))


def interval_minutes(interval: str) -> int:
    digits = "".join(ch for ch in interval if ch.isdigit())
    return int(digits) if digits else 5


def alphavantage_payload(
    function: str,
    symbol: str,
    interval: str = "5min",
    *,
    now: datetime | None = None,
    points: int = 100,
) -> dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    rng = _rng("alphavantage", function, symbol, interval)
    today = now.strftime("%Y-%m-%d")

    if function in ("TIME_SERIES_DAILY", "TIME_SERIES_INTRADAY"):
        intraday = function == "TIME_SERIES_INTRADAY"
        step = interval_minutes(interval)
        drift = 2.0 if intraday else 5.0
        spread = 1.0 if intraday else 2.0
        base = 150.0
        series: dict[str, dict[str, str]] = {}
        for i in range(points, -1, -1):
            if intraday:
                stamp = (now - timedelta(minutes=i * step)).strftime("%Y-%m-%d %H:%M:%S")
            else:
                stamp = (now - timedelta(days=i)).strftime("%Y-%m-%d")
            base = max(100.0, base + (rng.random() - 0.48) * drift)
            open_ = base + (rng.random() - 0.5) * spread
            close = base
            high = max(open_, close) + rng.random() * spread
            low = min(open_, close) - rng.random() * spread
            volume = int((100_000 if intraday else 1_000_000) + rng.random() * (500_000 if intraday else 5_000_000))
            series[stamp] = {
                "1. open": f"{open_:.4f}",
                "2. high": f"{high:.4f}",
                "3. low": f"{low:.4f}",
                "4. close": f"{close:.4f}",
                "5. volume": str(volume),
            }
        if intraday:
            return {
                "Meta Data": {
                    "1. Information": f"Intraday ({interval}) open, high, low, close prices and volume",
                    "2. Symbol": symbol,
                    "3. Last Refreshed": now.strftime("%Y-%m-%d %H:%M:%S"),
                    "4. Interval": interval,
                },
                f"Time Series ({interval})": series,
            }
        return {
            "Meta Data": {
                "1. Information": "Daily Prices (open, high, low, close) and Volumes",
                "2. Symbol": symbol,
                "3. Last Refreshed": today,
            },
            "Time Series (Daily)": series,
        }

    technical: dict[str, dict[str, str]] = {}
    if function == "RSI":
        value = 50.0
        for i in range(points, -1, -1):
            value = max(0.0, min(100.0, value + (rng.random() - 0.5) * 10))
            technical[(now - timedelta(days=i)).strftime("%Y-%m-%d")] = {"RSI": f"{value:.4f}"}
    elif function == "MACD":
        macd = signal = 0.0
        for i in range(points, -1, -1):
            macd += (rng.random() - 0.5) * 2
            signal += (rng.random() - 0.5) * 1.5
            technical[(now - timedelta(days=i)).strftime("%Y-%m-%d")] = {
                "MACD": f"{macd:.4f}",
                "MACD_Signal": f"{signal:.4f}",
                "MACD_Hist": f"{macd - signal:.4f}",
            }
    else:
        value = 150.0
        for i in range(points, -1, -1):
            value += (rng.random() - 0.48) * 3
            technical[(now - timedelta(days=i)).strftime("%Y-%m-%d")] = {function: f"{value:.4f}"}

    return {
        "Meta Data": {"1: Symbol": symbol, "2: Indicator": function, "3: Last Refreshed": today},
        f"Technical Analysis: {function}": technical,
    }


def coingecko_payload(coin: str, days: int, *, now: datetime | None = None) -> dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    rng = _rng("coingecko", coin, days)
    base_price = COIN_BASE_PRICES.get(coin, 100.0)
    price = base_price
    now_ms = int(now.timestamp() * 1000)
    prices, market_caps, total_volumes = [], [], []
    for i in range(days, -1, -1):
        ts = now_ms - i * DAY_MS
        price = max(base_price * 0.1, price + (rng.random() - 0.48) * base_price * 0.05)
        prices.append([ts, price])
        market_caps.append([ts, price * 19_000_000])
        total_volumes.append([ts, price * 1_000_000])
    return {"prices": prices, "market_caps": market_caps, "total_volumes": total_volumes}


def _add_month(d: date) -> date:
    return date(d.year + (d.month // 12), d.month % 12 + 1, 1)


def fred_payload(series_id: str, start: date, end: date) -> dict[str, Any]:
    """Monthly observations dated on the first of each month within [start, end]."""
    rng = _rng("fred", series_id, start.isoformat())
    base_value = FRED_BASE_VALUES.get(series_id, 100.0)
    value = base_value
    observations = []
    current = start if start.day == 1 else _add_month(start)
    while current <= end:
        value = max(base_value * 0.5, value + (rng.random() - 0.48) * base_value * 0.02)
        observations.append({
            "realtime_start": end.isoformat(),
            "realtime_end": end.isoformat(),
            "date": current.isoformat(),
            "value": f"{value:.2f}",
        })
        current = _add_month(current)
    return {
        "series_id": series_id,
        "observation_start": start.isoformat(),
        "observation_end": end.isoformat(),
        "count": len(observations),
        "observations": observations,
    }
