"""
NOAA / National Weather Service connector (point forecasts).

Two sequential requests:
1. /points/{lat},{lng} resolves the coordinates to a forecast grid URL,
2. that URL returns the forecast periods.

`lat` and `lng` are required; a missing one fails before any network call.
No fallback policy: failures are surfaced as ConnectorFetchError.
"""
from __future__ import annotations

from typing import Any, Mapping

import httpx

from datalens.core.normalize import RawObservation, build_dataset, normalize_observations, to_finite_float
from datalens.errors import ConnectorFetchError, InvalidParameterError, MissingParameterError
from datalens.schemas import DataSet, DataSourceIndicator
from datalens.services.base import DataConnector

INDICATORS = (
    DataSourceIndicator(
        id="temperature",
        name="Temperature Forecast",
        description="Temperature forecast in Fahrenheit",
        unit="°F",
    ),
    DataSourceIndicator(
        id="precipitation",
        name="Precipitation Chance",
        description="Probability of precipitation",
        unit="%",
    ),
)


def _coordinate(value: float) -> str:
    # weather.gov accepts at most four decimal places.
    return format(round(value, 4), "f").rstrip("0").rstrip(".")


class NOAAAdapter(DataConnector):
    id = "noaa"
    name = "NOAA Weather"
    category = "weather"
    description = "Weather forecasts and conditions from the National Weather Service"
    source_name = "NOAA National Weather Service"

    BASE_URL = "https://api.weather.gov"

    def __init__(
        self,
        user_agent: str = "(datalens.app, contact@datalens.app)",
        client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
    ):
        super().__init__(client, timeout)
        self.user_agent = user_agent

    def get_indicators(self) -> list[DataSourceIndicator]:
        return list(INDICATORS)

    async def fetch_data(self, indicator_id: str, params: Mapping[str, str]) -> DataSet:
        indicator = self.get_indicator(indicator_id)
        p = self.resolve_params(indicator, params)

        missing = [name for name in ("lat", "lng") if not p.get(name)]
        if missing:
            raise MissingParameterError(self.id, *missing)
        lat = to_finite_float(p["lat"])
        lng = to_finite_float(p["lng"])
        if lat is None or not -90 <= lat <= 90:
            raise InvalidParameterError(self.id, "lat", p["lat"], "a latitude between -90 and 90")
        if lng is None or not -180 <= lng <= 180:
            raise InvalidParameterError(self.id, "lng", p["lng"], "a longitude between -180 and 180")
        location = f"{_coordinate(lat)},{_coordinate(lng)}"

        headers = {"User-Agent": self.user_agent, "Accept": "application/geo+json"}

        # Step 1: resolve the grid point.
        points = await self._get_json(f"{self.BASE_URL}/points/{location}", headers=headers)
        properties = points.get("properties") if isinstance(points, dict) else None
        forecast_url = properties.get("forecast") if isinstance(properties, dict) else None
        if not forecast_url:
            raise ConnectorFetchError(self.id, "No forecast URL found for the given coordinates")

        # Step 2: fetch the forecast for that grid.
        forecast = await self._get_json(forecast_url, headers=headers)
        return self.transform(forecast, indicator, location)

    def transform(self, payload: Any, indicator: DataSourceIndicator, location: str) -> DataSet:
        properties = payload.get("properties") if isinstance(payload, dict) else None
        periods = properties.get("periods") if isinstance(properties, dict) else None
        if not isinstance(periods, list):
            raise ConnectorFetchError(self.id, "Forecast response has no periods")

        raw = []
        unit = None
        for period in periods:
            if not isinstance(period, dict):
                continue
            if indicator.id == "temperature":
                value = period.get("temperature")
                if period.get("temperatureUnit") and unit is None:
                    unit = f"°{period['temperatureUnit']}"
            else:
                pop = period.get("probabilityOfPrecipitation")
                value = pop.get("value") if isinstance(pop, dict) else None
                # NWS sends null instead of 0 when no precipitation is expected.
                if value is None:
                    value = 0
            raw.append(RawObservation(x=period.get("startTime"), value=value, label=period.get("name")))

        return build_dataset(
            self.id,
            self.source_name,
            indicator,
            normalize_observations(raw),
            key_params=(location,),
            unit=unit,
        )
