"""
World Bank connector (cross-country economic and demographic statistics).

The API answers with a two-element array `[paging metadata, observations]`.
Only the second element matters; the first may be missing or malformed.
Errors come back as `[{"message": [...]}]` with a 200 status.

No fallback policy: failures are surfaced as ConnectorFetchError.
"""
from __future__ import annotations

from typing import Any, Mapping

from datalens.core.normalize import RawObservation, build_dataset, normalize_observations
from datalens.errors import ConnectorFetchError
from datalens.schemas import DataSet, DataSourceIndicator
from datalens.services.base import DataConnector

INDICATORS = (
    DataSourceIndicator(id="NY.GDP.MKTP.CD", name="GDP (Current US$)", description="Gross Domestic Product in current US dollars", unit="USD"),
    DataSourceIndicator(id="NY.GDP.MKTP.KD.ZG", name="GDP Growth (Annual %)", description="Annual GDP growth rate", unit="%"),
    DataSourceIndicator(id="SP.POP.TOTL", name="Total Population", description="Total population count", unit="people"),
    DataSourceIndicator(id="SP.POP.GROW", name="Population Growth (Annual %)", description="Annual population growth rate", unit="%"),
    DataSourceIndicator(id="FP.CPI.TOTL.ZG", name="Inflation (Annual %)", description="Consumer price index inflation", unit="%"),
    DataSourceIndicator(id="SL.UEM.TOTL.ZS", name="Unemployment Rate", description="Total unemployment as percentage of labor force", unit="%"),
    DataSourceIndicator(
        id="SE.XPD.TOTL.GD.ZS",
        name="Government Expenditure on Education (% of GDP)",
        description="Government spending on education as percentage of GDP",
        unit="%",
    ),
    DataSourceIndicator(
        id="SH.XPD.CHEX.GD.ZS",
        name="Current Health Expenditure (% of GDP)",
        description="Health expenditure as percentage of GDP",
        unit="%",
    ),
)


class WorldBankAdapter(DataConnector):
    id = "worldbank"
    name = "World Bank"
    category = "demographic"
    description = "Global economic and demographic data from the World Bank"
    source_name = "World Bank"

    BASE_URL = "https://api.worldbank.org/v2"

    def get_indicators(self) -> list[DataSourceIndicator]:
        return list(INDICATORS)

    async def fetch_data(self, indicator_id: str, params: Mapping[str, str]) -> DataSet:
        indicator = self.get_indicator(indicator_id)
        p = self.resolve_params(indicator, params)
        country = p.get("country", "US")
        start = p.get("startDate", "2015")
        end = p.get("endDate", "2024")

        url = f"{self.BASE_URL}/country/{country}/indicator/{indicator_id}"
        payload = await self._get_json(url, params={"date": f"{start}:{end}", "format": "json", "per_page": "500"})
        return self.transform(payload, indicator, country, start, end)

    def _observations(self, payload: Any) -> list[Any]:
        if isinstance(payload, dict) and "message" in payload:
            raise ConnectorFetchError(self.id, _error_text(payload["message"]))
        if not isinstance(payload, list):
            raise ConnectorFetchError(self.id, "World Bank response is not an array")
        if len(payload) < 2:
            if payload and isinstance(payload[0], dict) and "message" in payload[0]:
                raise ConnectorFetchError(self.id, _error_text(payload[0]["message"]))
            return []
        rows = payload[1]
        # A query with no data comes back as [metadata, null].
        if rows is None:
            return []
        if not isinstance(rows, list):
            raise ConnectorFetchError(self.id, "World Bank observations are not an array")
        return rows

    def transform(self, payload: Any, indicator: DataSourceIndicator, country: str, start: str = "", end: str = "") -> DataSet:
        raw = []
        for item in self._observations(payload):
            if not isinstance(item, dict):
                continue
            try:
                year = int(str(item.get("date")))
            except ValueError:
                continue
            country_info = item.get("country")
            label = country_info.get("value", "") if isinstance(country_info, dict) else ""
            raw.append(RawObservation(x=year, value=item.get("value"), label=label or None))

        return build_dataset(
            self.id,
            self.source_name,
            indicator,
            normalize_observations(raw),
            key_params=(country, start, end),
        )


def _error_text(message: Any) -> str:
    if isinstance(message, list) and message and isinstance(message[0], dict):
        first = message[0]
        return f"World Bank API error: {first.get('key', '')} {first.get('value', '')}".strip()
    return f"World Bank API error: {message}"
