"""
UN Data Portal connector (population and social statistics).

Results are paginated: each page carries a `nextPage` URL. Pages are
fetched strictly one after another and accumulated before normalizing.
The loop stops when the cursor runs out, when the provider hands back a
cursor we already visited, or after `max_pages` pages.

No fallback policy: failures are surfaced as ConnectorFetchError.
"""
from __future__ import annotations

from typing import Any, Mapping

import httpx

from datalens.core.normalize import RawObservation, build_dataset, normalize_observations
from datalens.errors import ConnectorFetchError
from datalens.schemas import DataSet, DataSourceIndicator
from datalens.services.base import DataConnector

INDICATORS = (
    DataSourceIndicator(
        id="life_expectancy",
        name="Life Expectancy at Birth",
        description="Average number of years a newborn is expected to live",
        unit="years",
    ),
    DataSourceIndicator(
        id="literacy_rate",
        name="Literacy Rate",
        description="Percentage of population aged 15+ who can read and write",
        unit="%",
    ),
    DataSourceIndicator(
        id="fertility_rate",
        name="Total Fertility Rate",
        description="Average number of children born to a woman during her reproductive years",
        unit="children per woman",
    ),
)

# Catalog id -> UN Data Portal indicator code.
INDICATOR_CODES = {
    "life_expectancy": "47",
    "literacy_rate": "72",
    "fertility_rate": "68",
}

WORLD_LOCATION = "900"


class UNDataAdapter(DataConnector):
    id = "undata"
    name = "UN Data Portal"
    category = "demographic"
    description = "Demographic and social statistics from the United Nations"
    source_name = "UN Data Portal"

    BASE_URL = "https://population.un.org/dataportalapi/api/v1"

    def __init__(self, max_pages: int = 50, client: httpx.AsyncClient | None = None, timeout: float = 15.0):
        super().__init__(client, timeout)
        self.max_pages = max(1, max_pages)

    def get_indicators(self) -> list[DataSourceIndicator]:
        return list(INDICATORS)

    async def fetch_data(self, indicator_id: str, params: Mapping[str, str]) -> DataSet:
        indicator = self.get_indicator(indicator_id)
        p = self.resolve_params(indicator, params)
        location = p.get("location", WORLD_LOCATION)
        start = p.get("startYear", "1950")
        end = p.get("endYear", "2024")

        first_page = f"{self.BASE_URL}/data/indicators/{INDICATOR_CODES[indicator_id]}/locations/{location}/start/{start}/end/{end}"
        rows = await self._fetch_all_pages(first_page)
        return self.transform(rows, indicator, location, start, end)

    async def _fetch_all_pages(self, url: str) -> list[Any]:
        rows: list[Any] = []
        visited: set[str] = set()
        next_url: str | None = url
        while next_url:
            if next_url in visited:
                self.log.warning("UN Data Portal returned an already visited page cursor, stopping: %s", next_url)
                break
            if len(visited) >= self.max_pages:
                self.log.warning("UN Data Portal pagination stopped after %d pages", self.max_pages)
                break
            visited.add(next_url)

            page = await self._get_json(next_url)
            if not isinstance(page, dict):
                raise ConnectorFetchError(self.id, "UN Data Portal page is not an object")
            data = page.get("data")
            if isinstance(data, list):
                rows.extend(data)
            next_url = page.get("nextPage") or None
        return rows

    def transform(self, rows: list[Any], indicator: DataSourceIndicator, location: str, start: str = "", end: str = "") -> DataSet:
        raw = []
        for item in rows:
            if not isinstance(item, dict):
                continue
            time_label = item.get("timeLabel")
            try:
                x: Any = int(str(time_label))
            except ValueError:
                x = time_label
            raw.append(RawObservation(x=x, value=item.get("value"), label=item.get("locationName") or location))

        return build_dataset(
            self.id,
            self.source_name,
            indicator,
            normalize_observations(raw),
            key_params=(location, start, end),
        )
