"""
CoinGecko connector (cryptocurrency prices in USD).

The market_chart endpoint returns `prices` as [ms timestamp, price] pairs.
We key each point by its UTC calendar day; when the provider returns
several samples for one day (short windows are hourly) the last one wins.

Fallback policy: the public API rate limits aggressively, so HTTP 429 and
transport failures degrade to synthetic prices. Any other non-success
status is surfaced as ConnectorFetchError.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from datalens.core.normalize import RawObservation, build_dataset, normalize_observations, to_finite_float
from datalens.errors import ConnectorFetchError, InvalidParameterError
from datalens.schemas import DataSet, DataSourceIndicator
from datalens.services import synthetic
from datalens.services.base import DataConnector

INDICATORS = (
    DataSourceIndicator(id="bitcoin", name="Bitcoin (BTC)", description="Bitcoin price in USD", unit="USD"),
    DataSourceIndicator(id="ethereum", name="Ethereum (ETH)", description="Ethereum price in USD", unit="USD"),
    DataSourceIndicator(id="solana", name="Solana (SOL)", description="Solana price in USD", unit="USD"),
    DataSourceIndicator(id="cardano", name="Cardano (ADA)", description="Cardano price in USD", unit="USD"),
    DataSourceIndicator(id="polkadot", name="Polkadot (DOT)", description="Polkadot price in USD", unit="USD"),
    DataSourceIndicator(id="chainlink", name="Chainlink (LINK)", description="Chainlink price in USD", unit="USD"),
)

DEFAULT_DAYS = "365"
# Ten years; "max" asks CoinGecko for the full history instead.
MAX_DAYS = 3650


class CoinGeckoAdapter(DataConnector):
    id = "coingecko"
    name = "CoinGecko"
    category = "crypto"
    description = "Cryptocurrency prices and market data"
    source_name = "CoinGecko"

    BASE_URL = "https://api.coingecko.com/api/v3"

    def get_indicators(self) -> list[DataSourceIndicator]:
        return list(INDICATORS)

    async def fetch_data(self, indicator_id: str, params: Mapping[str, str]) -> DataSet:
        indicator = self.get_indicator(indicator_id)
        p = self.resolve_params(indicator, params)
        days = p.get("days", DEFAULT_DAYS).lower()
        if days != "max" and (not days.isdigit() or not 1 <= int(days) <= MAX_DAYS):
            raise InvalidParameterError(self.id, "days", days, f"'max' or a whole number of days between 1 and {MAX_DAYS}")

        url = f"{self.BASE_URL}/coins/{indicator_id}/market_chart"
        degraded = False
        try:
            payload = await self._get_json(url, params={"vs_currency": "usd", "days": days})
        except ConnectorFetchError as e:
            if e.upstream_status not in (None, 429):
                raise
            self.log_degraded(indicator_id, str(e))
            window = MAX_DAYS if days == "max" else int(days)
            payload = synthetic.coingecko_payload(indicator_id, window)
            degraded = True

        return self.transform(payload, indicator, days, degraded=degraded)

    def transform(self, payload: Any, indicator: DataSourceIndicator, days: str, *, degraded: bool = False) -> DataSet:
        prices = payload.get("prices") if isinstance(payload, dict) else None
        if not isinstance(prices, list):
            raise ConnectorFetchError(self.id, "CoinGecko response has no price history")

        by_day: dict[str, Any] = {}
        samples = []
        for pair in prices:
            if not isinstance(pair, (list, tuple)) or len(pair) < 2:
                continue
            ts = to_finite_float(pair[0])
            if ts is None:
                continue
            samples.append((ts, pair[1]))
        for ts, price in sorted(samples, key=lambda s: s[0]):
            day = datetime.fromtimestamp(ts / 1000, tz=timezone.utc).date().isoformat()
            by_day[day] = price

        observations = [RawObservation(x=day, value=price) for day, price in by_day.items()]
        return build_dataset(
            self.id,
            self.source_name,
            indicator,
            normalize_observations(observations),
            key_params=(days,),
            unit="USD",
            degraded=degraded,
        )
