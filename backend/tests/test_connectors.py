import httpx
import pytest

from datalens.errors import (
    ConnectorFetchError,
    InvalidParameterError,
    MissingParameterError,
    UnknownIndicatorError,
)
from datalens.services.alphavantage_adapter import AlphaVantageAdapter
from datalens.services.coingecko_adapter import MAX_DAYS, CoinGeckoAdapter
from datalens.services.fred_adapter import FREDAdapter
from datalens.services.noaa_adapter import NOAAAdapter
from datalens.services.undata_adapter import UNDataAdapter
from datalens.services.worldbank_adapter import WorldBankAdapter

from fakes import (
    ALPHAVANTAGE_HOST,
    COINGECKO_HOST,
    FRED_HOST,
    NOAA_HOST,
    UNDATA_HOST,
    WORLDBANK_HOST,
    raises,
    status,
)


# --------- Alpha Vantage ---------

@pytest.mark.asyncio
async def test_alphavantage_daily_builds_sorted_ohlcv_and_close_points(providers, http_client):
    adapter = AlphaVantageAdapter(client=http_client)

    ds = await adapter.fetch_data("TIME_SERIES_DAILY", {"symbol": "ibm"})

    assert ds.id == "alphavantage-TIME_SERIES_DAILY-IBM"
    assert ds.name == "Daily Stock Prices - IBM"
    # The 2024-01-04 bar has high < open and is dropped, not repaired.
    assert [b.date for b in ds.ohlcv_data] == ["2024-01-02", "2024-01-03"]
    assert [p.x for p in ds.data] == ["2024-01-02", "2024-01-03"]
    assert [p.y for p in ds.data] == [101.0, 102.0]
    assert ds.data[0].label.startswith("O: 100.0 H: 102.0 L: 99.0")
    assert ds.metadata.is_ohlcv is True
    assert ds.metadata.degraded is False

    sent = providers.requests_to(ALPHAVANTAGE_HOST)[0]
    assert sent.url.params["symbol"] == "IBM"
    assert sent.url.params["apikey"] == "demo"


@pytest.mark.asyncio
async def test_alphavantage_intraday_uses_interval_in_id(http_client):
    adapter = AlphaVantageAdapter(client=http_client)

    ds = await adapter.fetch_data("TIME_SERIES_INTRADAY", {"symbol": "MSFT", "interval": "5min"})

    assert ds.id == "alphavantage-TIME_SERIES_INTRADAY-MSFT-5min"
    assert [p.x for p in ds.data] == ["2024-01-02 10:00:00", "2024-01-02 10:05:00"]


@pytest.mark.asyncio
async def test_alphavantage_technical_indicator_drops_unparsable_values(providers, http_client):
    adapter = AlphaVantageAdapter(client=http_client)

    ds = await adapter.fetch_data("RSI", {"symbol": "IBM", "timePeriod": "10"})

    assert [p.y for p in ds.data] == [50.0, 55.0]
    assert ds.ohlcv_data is None
    sent = providers.requests_to(ALPHAVANTAGE_HOST)[0]
    assert sent.url.params["time_period"] == "10"
    assert ds.id == "alphavantage-RSI-IBM-daily-10"
    assert sent.url.params["series_type"] == "close"


@pytest.mark.asyncio
async def test_alphavantage_macd_labels_carry_signal_and_histogram(http_client):
    adapter = AlphaVantageAdapter(client=http_client)

    ds = await adapter.fetch_data("MACD", {})

    assert [p.y for p in ds.data] == [1.1, 1.5]
    assert ds.data[-1].label == "Signal: 1.2000 Hist: 0.3000"
    assert ds.id == "alphavantage-MACD-IBM-daily-12-26-9"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "handler",
    [
        status(200, {"Note": "Thank you for using Alpha Vantage! Our standard API call frequency is 5 calls per minute."}),
        status(200, {"Information": "The demo API key is for demo purposes only."}),
        status(200, {"Error Message": "Invalid API call."}),
        status(200, {"Meta Data": {}}),
        status(500),
        raises(httpx.ConnectTimeout("timed out")),
    ],
)
async def test_alphavantage_degrades_to_synthetic_on_any_failure(providers, http_client, handler, caplog):
    providers.override(ALPHAVANTAGE_HOST, handler)
    adapter = AlphaVantageAdapter(client=http_client)

    ds = await adapter.fetch_data("TIME_SERIES_DAILY", {"symbol": "AAPL"})

    assert ds.metadata.degraded is True
    assert ds.data
    assert all(b.is_consistent() for b in ds.ohlcv_data)
    xs = [p.x for p in ds.data]
    assert xs == sorted(xs)
    assert "degraded to synthetic data" in caplog.text


@pytest.mark.asyncio
async def test_alphavantage_synthetic_data_is_deterministic(providers, http_client):
    providers.override(ALPHAVANTAGE_HOST, status(500))
    adapter = AlphaVantageAdapter(client=http_client)

    first = await adapter.fetch_data("SMA", {"symbol": "IBM"})
    second = await adapter.fetch_data("SMA", {"symbol": "IBM"})

    assert [p.y for p in first.data] == [p.y for p in second.data]


# --------- CoinGecko ---------

@pytest.mark.asyncio
async def test_coingecko_keys_points_by_day_last_sample_wins(providers, http_client):
    adapter = CoinGeckoAdapter(client=http_client)

    ds = await adapter.fetch_data("bitcoin", {"days": "30"})

    assert ds.id == "coingecko-bitcoin-30"
    assert [(p.x, p.y) for p in ds.data] == [("2024-01-01", 42500.0), ("2024-01-02", 44000.0)]
    assert ds.metadata.unit == "USD"
    sent = providers.requests_to(COINGECKO_HOST)[0]
    assert sent.url.path == "/api/v3/coins/bitcoin/market_chart"
    assert sent.url.params["vs_currency"] == "usd"


@pytest.mark.asyncio
async def test_coingecko_defaults_to_a_year(providers, http_client):
    adapter = CoinGeckoAdapter(client=http_client)

    ds = await adapter.fetch_data("ethereum", {})

    assert ds.id == "coingecko-ethereum-365"
    assert providers.requests_to(COINGECKO_HOST)[0].url.params["days"] == "365"


@pytest.mark.asyncio
async def test_coingecko_rate_limit_degrades(providers, http_client):
    providers.override(COINGECKO_HOST, status(429))
    adapter = CoinGeckoAdapter(client=http_client)

    ds = await adapter.fetch_data("solana", {"days": "7"})

    assert ds.metadata.degraded is True
    assert len(ds.data) == 8


@pytest.mark.asyncio
async def test_coingecko_other_errors_are_surfaced(providers, http_client):
    providers.override(COINGECKO_HOST, status(404, {"error": "coin not found"}))
    adapter = CoinGeckoAdapter(client=http_client)

    with pytest.raises(ConnectorFetchError) as excinfo:
        await adapter.fetch_data("bitcoin", {})

    assert excinfo.value.upstream_status == 404
    assert "404" in excinfo.value.message


@pytest.mark.asyncio
async def test_coingecko_rejects_bad_days_without_calling_out(providers, http_client):
    adapter = CoinGeckoAdapter(client=http_client)

    with pytest.raises(InvalidParameterError):
        await adapter.fetch_data("bitcoin", {"days": "-3"})

    assert providers.requests == []


@pytest.mark.asyncio
async def test_coingecko_rejects_windows_past_the_cap(providers, http_client):
    adapter = CoinGeckoAdapter(client=http_client)

    with pytest.raises(InvalidParameterError):
        await adapter.fetch_data("bitcoin", {"days": "999999999"})
    with pytest.raises(InvalidParameterError):
        await adapter.fetch_data("bitcoin", {"days": str(MAX_DAYS + 1)})

    assert providers.requests == []


@pytest.mark.asyncio
async def test_coingecko_max_history_degrades_to_capped_window(providers, http_client):
    providers.override(COINGECKO_HOST, status(429))
    adapter = CoinGeckoAdapter(client=http_client)

    ds = await adapter.fetch_data("bitcoin", {"days": "max"})

    assert ds.metadata.degraded is True
    assert len(ds.data) == MAX_DAYS + 1
    assert ds.id == "coingecko-bitcoin-max"
    assert providers.requests_to(COINGECKO_HOST)[0].url.params["days"] == "max"


# --------- FRED ---------

@pytest.mark.asyncio
async def test_fred_with_key_drops_dot_sentinels_and_sorts(providers, http_client):
    adapter = FREDAdapter(api_key="secret", client=http_client)

    ds = await adapter.fetch_data("UNRATE", {"startDate": "2020-01-01", "endDate": "2020-03-31"})

    assert [(p.x, p.y) for p in ds.data] == [("2020-01-01", 3.6), ("2020-03-01", 4.4)]
    assert ds.id == "fred-UNRATE-2020-01-01-2020-03-31"
    assert ds.metadata.degraded is False
    params = providers.requests_to(FRED_HOST)[0].url.params
    assert params["series_id"] == "UNRATE"
    assert params["api_key"] == "secret"
    assert params["observation_start"] == "2020-01-01"


@pytest.mark.asyncio
async def test_fred_without_key_serves_synthetic_monthly_data(providers, http_client):
    adapter = FREDAdapter(api_key=None, client=http_client)

    ds = await adapter.fetch_data("GDP", {"startDate": "2020-01-15", "endDate": "2020-06-30"})

    assert ds.metadata.degraded is True
    assert [p.x for p in ds.data] == ["2020-02-01", "2020-03-01", "2020-04-01", "2020-05-01", "2020-06-01"]
    assert providers.requests_to(FRED_HOST) == []


@pytest.mark.asyncio
async def test_fred_with_key_surfaces_upstream_errors(providers, http_client):
    providers.override(FRED_HOST, status(400, {"error_message": "Bad Request. The series does not exist."}))
    adapter = FREDAdapter(api_key="secret", client=http_client)

    with pytest.raises(ConnectorFetchError):
        await adapter.fetch_data("GDP", {})


@pytest.mark.asyncio
@pytest.mark.parametrize("params", [{"startDate": "yesterday"}, {"frequency": "hourly"}])
async def test_fred_validates_params(http_client, params):
    adapter = FREDAdapter(api_key="secret", client=http_client)

    with pytest.raises(InvalidParameterError):
        await adapter.fetch_data("GDP", params)


# --------- World Bank ---------

@pytest.mark.asyncio
async def test_worldbank_reads_second_element_and_sorts_years(providers, http_client):
    adapter = WorldBankAdapter(client=http_client)

    ds = await adapter.fetch_data("NY.GDP.MKTP.CD", {"country": "US"})

    assert ds.id == "worldbank-NY.GDP.MKTP.CD-US-2015-2024"
    assert [p.x for p in ds.data] == [2020, 2022]
    assert ds.data[0].label == "United States"
    params = providers.requests_to(WORLDBANK_HOST)[0].url.params
    assert params["date"] == "2015:2024"
    assert params["format"] == "json"


@pytest.mark.asyncio
async def test_worldbank_date_window_is_part_of_the_id(providers, http_client):
    adapter = WorldBankAdapter(client=http_client)

    recent = await adapter.fetch_data("NY.GDP.MKTP.CD", {"country": "US", "startDate": "2020", "endDate": "2022"})
    older = await adapter.fetch_data("NY.GDP.MKTP.CD", {"country": "US", "startDate": "1990", "endDate": "2000"})

    assert recent.id == "worldbank-NY.GDP.MKTP.CD-US-2020-2022"
    assert older.id != recent.id


@pytest.mark.asyncio
async def test_fred_frequency_is_part_of_the_id(providers, http_client):
    adapter = FREDAdapter(api_key="secret", client=http_client)
    window = {"startDate": "2020-01-01", "endDate": "2020-03-31"}

    monthly = await adapter.fetch_data("UNRATE", window)
    quarterly = await adapter.fetch_data("UNRATE", {**window, "frequency": "Q"})

    assert monthly.id == "fred-UNRATE-2020-01-01-2020-03-31"
    assert quarterly.id == "fred-UNRATE-2020-01-01-2020-03-31-q"
    assert providers.requests_to(FRED_HOST)[1].url.params["frequency"] == "q"


@pytest.mark.asyncio
async def test_undata_year_window_is_part_of_the_id(providers, http_client):
    adapter = UNDataAdapter(client=http_client)

    ds = await adapter.fetch_data("life_expectancy", {"startYear": "2000", "endYear": "2010"})

    assert ds.id == "undata-life_expectancy-900-2000-2010"


@pytest.mark.asyncio
async def test_worldbank_ignores_malformed_metadata(providers, http_client):
    rows = [{"date": "2019", "value": 3.5, "country": {"value": "Kenya"}}]
    providers.override(WORLDBANK_HOST, status(200, ["not metadata", rows]))
    adapter = WorldBankAdapter(client=http_client)

    ds = await adapter.fetch_data("SP.POP.GROW", {"country": "KE"})

    assert [(p.x, p.y) for p in ds.data] == [(2019, 3.5)]


@pytest.mark.asyncio
async def test_worldbank_empty_result_is_an_empty_dataset(providers, http_client):
    providers.override(WORLDBANK_HOST, status(200, [{"page": 0, "total": 0}, None]))
    adapter = WorldBankAdapter(client=http_client)

    ds = await adapter.fetch_data("SP.POP.TOTL", {})

    assert ds.data == []


@pytest.mark.asyncio
async def test_worldbank_error_message_raises(providers, http_client):
    body = [{"message": [{"id": "120", "key": "Invalid value", "value": "The provided parameter value is not valid"}]}]
    providers.override(WORLDBANK_HOST, status(200, body))
    adapter = WorldBankAdapter(client=http_client)

    with pytest.raises(ConnectorFetchError, match="Invalid value"):
        await adapter.fetch_data("SP.POP.TOTL", {"country": "XX"})


# --------- NOAA ---------

@pytest.mark.asyncio
async def test_noaa_resolves_grid_then_fetches_forecast(providers, http_client):
    adapter = NOAAAdapter(user_agent="(tests, tests@example.com)", client=http_client)

    ds = await adapter.fetch_data("temperature", {"lat": "38.88940", "lng": "-77.0352"})

    sent = providers.requests_to(NOAA_HOST)
    assert [r.url.path for r in sent] == ["/points/38.8894,-77.0352", "/gridpoints/LWX/97,71/forecast"]
    assert sent[0].headers["User-Agent"] == "(tests, tests@example.com)"
    assert [(p.label, p.y) for p in ds.data] == [("This Afternoon", 41.0), ("Tonight", 30.0)]
    assert ds.metadata.unit == "°F"
    assert ds.id == "noaa-temperature-38.8894,-77.0352"


@pytest.mark.asyncio
async def test_noaa_null_precipitation_reads_as_zero(http_client):
    adapter = NOAAAdapter(client=http_client)

    ds = await adapter.fetch_data("precipitation", {"lat": "38.8894", "lng": "-77.0352"})

    assert [p.y for p in ds.data] == [20.0, 0.0]
    assert ds.metadata.unit == "%"


@pytest.mark.asyncio
async def test_noaa_missing_coordinates_fail_before_network(providers, http_client):
    adapter = NOAAAdapter(client=http_client)

    with pytest.raises(MissingParameterError) as excinfo:
        await adapter.fetch_data("temperature", {"lat": "38.9"})

    assert excinfo.value.names == ("lng",)
    assert providers.requests == []


@pytest.mark.asyncio
async def test_noaa_out_of_range_latitude(providers, http_client):
    adapter = NOAAAdapter(client=http_client)

    with pytest.raises(InvalidParameterError):
        await adapter.fetch_data("temperature", {"lat": "123", "lng": "0"})
    assert providers.requests == []


@pytest.mark.asyncio
async def test_noaa_points_without_forecast_url(providers, http_client):
    providers.override(NOAA_HOST, status(200, {"properties": {}}))
    adapter = NOAAAdapter(client=http_client)

    with pytest.raises(ConnectorFetchError, match="No forecast URL"):
        await adapter.fetch_data("temperature", {"lat": "1", "lng": "1"})


# --------- UN Data ---------

@pytest.mark.asyncio
async def test_undata_follows_next_page_cursor(providers, http_client):
    adapter = UNDataAdapter(client=http_client)

    ds = await adapter.fetch_data("life_expectancy", {})

    assert len(providers.requests_to(UNDATA_HOST)) == 2
    assert [p.x for p in ds.data] == [1950, 1951, 1952]
    assert ds.data[0].label == "World"
    assert ds.id == "undata-life_expectancy-900-1950-2024"
    first = providers.requests_to(UNDATA_HOST)[0]
    assert first.url.path == "/dataportalapi/api/v1/data/indicators/47/locations/900/start/1950/end/2024"


@pytest.mark.asyncio
async def test_undata_stops_on_repeated_cursor(providers, http_client, caplog):
    def loop_forever(request):
        return httpx.Response(200, json={
            "data": [{"timeLabel": "2000", "value": 66.5, "locationName": "World"}],
            "nextPage": str(request.url),
        })

    providers.override(UNDATA_HOST, loop_forever)
    adapter = UNDataAdapter(client=http_client)

    ds = await adapter.fetch_data("life_expectancy", {})

    assert len(providers.requests_to(UNDATA_HOST)) == 1
    assert len(ds.data) == 1
    assert "already visited" in caplog.text


@pytest.mark.asyncio
async def test_undata_respects_page_cap(providers, http_client):
    def endless(request):
        page = int(request.url.params.get("pageNumber", "1"))
        return httpx.Response(200, json={
            "data": [{"timeLabel": str(1950 + page), "value": 50.0}],
            "nextPage": str(request.url.copy_set_param("pageNumber", str(page + 1))),
        })

    providers.override(UNDATA_HOST, endless)
    adapter = UNDataAdapter(max_pages=3, client=http_client)

    ds = await adapter.fetch_data("fertility_rate", {"location": "404"})

    assert len(providers.requests_to(UNDATA_HOST)) == 3
    assert ds.data[0].label == "404"


# --------- Shared ---------

@pytest.mark.asyncio
async def test_unknown_indicator_is_rejected(http_client):
    adapter = WorldBankAdapter(client=http_client)

    with pytest.raises(UnknownIndicatorError, match="Unknown indicator: NOPE"):
        await adapter.fetch_data("NOPE", {})


@pytest.mark.asyncio
async def test_transport_errors_become_connector_errors(providers, http_client):
    providers.override(WORLDBANK_HOST, raises(httpx.ConnectError("connection refused")))
    adapter = WorldBankAdapter(client=http_client)

    with pytest.raises(ConnectorFetchError, match="ConnectError"):
        await adapter.fetch_data("SP.POP.TOTL", {})


@pytest.mark.asyncio
async def test_non_json_body_becomes_connector_error(providers, http_client):
    providers.override(WORLDBANK_HOST, lambda request: httpx.Response(200, text="<html>maintenance</html>"))
    adapter = WorldBankAdapter(client=http_client)

    with pytest.raises(ConnectorFetchError, match="not valid JSON"):
        await adapter.fetch_data("SP.POP.TOTL", {})
