"""
Alpha Vantage connector (stock prices and technical indicators).

Price series (daily / intraday) produce OHLCV bars plus close-price line
points derived from the same payload. Technical indicators (RSI, SMA, EMA,
MACD) come precomputed from the provider; we only reshape its
"Technical Analysis: <FN>" block.

Fallback policy: the free/demo key is heavily rate limited, so any failure
(error message, rate-limit note, HTTP or transport error, missing series
block) is replaced with synthetic data marked degraded.
"""
from __future__ import annotations

from typing import Any, Mapping

import httpx

from datalens.core.normalize import RawObservation, build_dataset, normalize_observations, ohlcv_bar
from datalens.errors import ConnectorFetchError
from datalens.schemas import DataPoint, DataSet, DataSourceIndicator
from datalens.services import synthetic
from datalens.services.base import DataConnector

PRICE_FUNCTIONS = ("TIME_SERIES_DAILY", "TIME_SERIES_INTRADAY")
PERIOD_FUNCTIONS = ("RSI", "SMA", "EMA")

INDICATORS = (
    DataSourceIndicator(
        id="TIME_SERIES_DAILY",
        name="Daily Stock Prices",
        description="Daily OHLCV stock price data",
        unit="USD",
        default_params={"symbol": "IBM"},
    ),
    DataSourceIndicator(
        id="TIME_SERIES_INTRADAY",
        name="Intraday Stock Prices",
        description="Intraday OHLCV stock price data",
        unit="USD",
        default_params={"symbol": "IBM", "interval": "5min"},
    ),
    DataSourceIndicator(
        id="RSI",
        name="Relative Strength Index (RSI)",
        description="Technical momentum indicator",
        unit="Index",
        default_params={"symbol": "IBM", "interval": "daily", "timePeriod": "14"},
    ),
    DataSourceIndicator(
        id="MACD",
        name="MACD",
        description="Moving Average Convergence Divergence",
        unit="Index",
        default_params={
            "symbol": "IBM",
            "interval": "daily",
            "fastPeriod": "12",
            "slowPeriod": "26",
            "signalPeriod": "9",
        },
    ),
    DataSourceIndicator(
        id="SMA",
        name="Simple Moving Average (SMA)",
        description="Simple moving average technical indicator",
        unit="USD",
        default_params={"symbol": "IBM", "interval": "daily", "timePeriod": "20"},
    ),
    DataSourceIndicator(
        id="EMA",
        name="Exponential Moving Average (EMA)",
        description="Exponential moving average technical indicator",
        unit="USD",
        default_params={"symbol": "IBM", "interval": "daily", "timePeriod": "20"},
    ),
)


class AlphaVantageAdapter(DataConnector):
    id = "alphavantage"
    name = "Alpha Vantage"
    category = "financial"
    description = "Stock prices and technical indicators from Alpha Vantage"
    source_name = "Alpha Vantage"

    BASE_URL = "https://www.alphavantage.co/query"

    def __init__(self, api_key: str = "demo", client: httpx.AsyncClient | None = None, timeout: float = 15.0):
        super().__init__(client, timeout)
        self.api_key = api_key or "demo"

    def get_indicators(self) -> list[DataSourceIndicator]:
        return list(INDICATORS)

    def build_query(self, function: str, symbol: str, interval: str, params: Mapping[str, str]) -> dict[str, str]:
        query = {"function": function, "symbol": symbol, "apikey": self.api_key}
        if function == "TIME_SERIES_INTRADAY":
            query["interval"] = interval
        elif function in PERIOD_FUNCTIONS:
            query.update({
                "interval": interval,
                "time_period": params.get("timePeriod", "14"),
                "series_type": "close",
            })
        elif function == "MACD":
            query.update({
                "interval": interval,
                "fastperiod": params.get("fastPeriod", "12"),
                "slowperiod": params.get("slowPeriod", "26"),
                "signalperiod": params.get("signalPeriod", "9"),
                "series_type": "close",
            })
        return query

    def key_params(self, function: str, symbol: str, interval: str, params: Mapping[str, str]) -> tuple[str, ...]:
        """Query values that change the returned series, in a stable order for the DataSet id."""
        if function == "TIME_SERIES_DAILY":
            return (symbol,)
        query = self.build_query(function, symbol, interval, params)
        periods = tuple(query[k] for k in ("time_period", "fastperiod", "slowperiod", "signalperiod") if k in query)
        return (symbol, interval) + periods

    async def fetch_data(self, indicator_id: str, params: Mapping[str, str]) -> DataSet:
        indicator = self.get_indicator(indicator_id)
        p = self.resolve_params(indicator, params)
        symbol = p.get("symbol", "IBM").upper()
        interval = p.get("interval") or ("5min" if indicator_id == "TIME_SERIES_INTRADAY" else "daily")

        reason: str | None = None
        payload: Any = None
        try:
            payload = await self._get_json(self.BASE_URL, params=self.build_query(indicator_id, symbol, interval, p))
        except ConnectorFetchError as e:
            reason = str(e)
        else:
            reason = self._unusable_reason(payload, indicator_id)

        if reason is not None:
            self.log_degraded(indicator_id, reason)
            payload = synthetic.alphavantage_payload(indicator_id, symbol, interval)

        return self.transform(
            payload, indicator, symbol, self.key_params(indicator_id, symbol, interval, p), degraded=reason is not None
        )

    def _unusable_reason(self, payload: Any, indicator_id: str) -> str | None:
        if not isinstance(payload, dict):
            return "unexpected response shape"
        if "Error Message" in payload:
            return str(payload["Error Message"])
        # Rate limiting and demo-key restrictions arrive as 200 responses with a note.
        if "Note" in payload or "Information" in payload:
            return str(payload.get("Note") or payload.get("Information"))
        if _series_block(payload, indicator_id) is None:
            return "response has no time series block"
        return None

    def transform(
        self,
        payload: dict[str, Any],
        indicator: DataSourceIndicator,
        symbol: str,
        key_params: tuple[str, ...],
        *,
        degraded: bool = False,
    ) -> DataSet:
        block = _series_block(payload, indicator.id) or {}

        if indicator.id in PRICE_FUNCTIONS:
            bars = []
            for stamp, values in block.items():
                if not isinstance(values, dict):
                    continue
                bar = ohlcv_bar(
                    stamp,
                    values.get("1. open"),
                    values.get("2. high"),
                    values.get("3. low"),
                    values.get("4. close"),
                    values.get("5. volume"),
                )
                if bar is not None:
                    bars.append(bar)
            # Line/bar/area charts get the close price of every bar.
            points = [
                DataPoint(
                    x=b.date,
                    y=b.close,
                    label=f"O: {b.open} H: {b.high} L: {b.low} V: {b.volume:g}",
                )
                for b in bars
            ]
            return build_dataset(
                self.id,
                self.source_name,
                indicator,
                points,
                key_params=key_params,
                name=f"{indicator.name} - {symbol}",
                ohlcv=bars,
                degraded=degraded,
            )

        observations = []
        for stamp, values in block.items():
            if not isinstance(values, dict) or not values:
                continue
            # The block is keyed by the function name; MACD adds signal and histogram columns.
            value_key = indicator.id if indicator.id in values else next(iter(values))
            label = None
            if indicator.id == "MACD":
                label = f"Signal: {values.get('MACD_Signal')} Hist: {values.get('MACD_Hist')}"
            observations.append(RawObservation(x=stamp, value=values.get(value_key), label=label))

        return build_dataset(
            self.id,
            self.source_name,
            indicator,
            normalize_observations(observations),
            key_params=key_params,
            name=f"{indicator.name} - {symbol}",
            degraded=degraded,
        )


def _series_block(payload: dict[str, Any], indicator_id: str) -> dict[str, Any] | None:
    if indicator_id in PRICE_FUNCTIONS:
        prefix = "Time Series"
    else:
        prefix = "Technical Analysis"
    for key, value in payload.items():
        if key.startswith(prefix) and isinstance(value, dict):
            return value
    return None
