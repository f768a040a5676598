"""
FRED connector (US Federal Reserve Economic Data).

Observations are requested for a [startDate, endDate] window. FRED marks
missing observations with the literal "." which the normalizer drops.

Fallback policy: FRED requires an API key. Without one the connector serves
synthetic monthly observations (degraded). With a key, upstream failures
are surfaced as ConnectorFetchError.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Mapping

import httpx

from datalens.core.normalize import RawObservation, build_dataset, normalize_observations
from datalens.errors import ConnectorFetchError, InvalidParameterError
from datalens.schemas import DataSet, DataSourceIndicator
from datalens.services import synthetic
from datalens.services.base import DataConnector

INDICATORS = (
    DataSourceIndicator(id="GDP", name="Gross Domestic Product", description="US GDP in billions of dollars", unit="Billions USD"),
    DataSourceIndicator(id="UNRATE", name="Unemployment Rate", description="US civilian unemployment rate", unit="%"),
    DataSourceIndicator(id="CPIAUCSL", name="Consumer Price Index", description="All Urban Consumers CPI", unit="Index"),
    DataSourceIndicator(id="FEDFUNDS", name="Federal Funds Rate", description="Effective federal funds rate", unit="%"),
    DataSourceIndicator(id="T10Y2Y", name="10Y-2Y Treasury Spread", description="10-Year minus 2-Year Treasury spread", unit="%"),
    DataSourceIndicator(id="DEXUSEU", name="USD/EUR Exchange Rate", description="US Dollars to Euro spot exchange rate", unit="USD/EUR"),
    DataSourceIndicator(id="SP500", name="S&P 500", description="S&P 500 index", unit="Index"),
    DataSourceIndicator(id="M2SL", name="M2 Money Supply", description="M2 money stock in billions", unit="Billions USD"),
)

DEFAULT_START = "2015-01-01"
FREQUENCIES = {"d", "w", "bw", "m", "q", "sa", "a"}


class FREDAdapter(DataConnector):
    id = "fred"
    name = "FRED Economic Data"
    category = "economic"
    description = "US Federal Reserve Economic Data"
    source_name = "FRED"

    BASE_URL = "https://api.stlouisfed.org/fred/series/observations"

    def __init__(self, api_key: str | None = None, client: httpx.AsyncClient | None = None, timeout: float = 15.0):
        super().__init__(client, timeout)
        self.api_key = api_key

    def get_indicators(self) -> list[DataSourceIndicator]:
        return list(INDICATORS)

    def _parse_date(self, name: str, value: str) -> date:
        try:
            return date.fromisoformat(value)
        except ValueError:
            raise InvalidParameterError(self.id, name, value, "a YYYY-MM-DD date") from None

    async def fetch_data(self, indicator_id: str, params: Mapping[str, str]) -> DataSet:
        indicator = self.get_indicator(indicator_id)
        p = self.resolve_params(indicator, params)
        start = self._parse_date("startDate", p.get("startDate", DEFAULT_START))
        end = self._parse_date("endDate", p.get("endDate") or datetime.now(timezone.utc).date().isoformat())
        frequency = p.get("frequency", "").lower() or None
        if frequency is not None and frequency not in FREQUENCIES:
            raise InvalidParameterError(self.id, "frequency", frequency, f"one of {sorted(FREQUENCIES)}")

        if not self.api_key:
            self.log_degraded(indicator_id, "FRED_API_KEY is not configured")
            payload = synthetic.fred_payload(indicator_id, start, end)
            return self.transform(payload, indicator, start, end, frequency, degraded=True)

        query = {
            "series_id": indicator_id,
            "api_key": self.api_key,
            "file_type": "json",
            "observation_start": start.isoformat(),
            "observation_end": end.isoformat(),
        }
        if frequency:
            query["frequency"] = frequency
        payload = await self._get_json(self.BASE_URL, params=query)
        return self.transform(payload, indicator, start, end, frequency)

    def transform(
        self,
        payload: Any,
        indicator: DataSourceIndicator,
        start: date,
        end: date,
        frequency: str | None = None,
        *,
        degraded: bool = False,
    ) -> DataSet:
        if isinstance(payload, dict) and "error_message" in payload:
            raise ConnectorFetchError(self.id, str(payload["error_message"]))
        observations = payload.get("observations") if isinstance(payload, dict) else None
        if not isinstance(observations, list):
            raise ConnectorFetchError(self.id, "FRED response has no observations")

        raw = [
            RawObservation(x=item.get("date"), value=item.get("value"))
            for item in observations
            if isinstance(item, dict)
        ]
        return build_dataset(
            self.id,
            self.source_name,
            indicator,
            normalize_observations(raw),
            key_params=(start.isoformat(), end.isoformat(), frequency),
            degraded=degraded,
        )
