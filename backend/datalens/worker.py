"""
One-shot connector probe.

Fetches every indicator of every registered connector concurrently and logs
which ones are healthy, degraded to synthetic data, or failing. Exits non-zero
when any indicator fails outright.
"""
import asyncio
import logging
import sys
from dataclasses import dataclass

import httpx

from datalens.config import settings
from datalens.core.registry import ConnectorRegistry, build_registry
from datalens.errors import DataLensError
from datalens.log import setup_logging

log = logging.getLogger("worker")

# Indicators that cannot run on defaults alone (NOAA needs a location).
PROBE_PARAMS: dict[str, dict[str, str]] = {
    "noaa": {"lat": "38.8894", "lng": "-77.0352"},
}


@dataclass
class ProbeResult:
    connector: str
    indicator: str
    ok: bool
    points: int = 0
    degraded: bool = False
    error: str | None = None


async def _probe_one(connector, indicator_id: str, params: dict[str, str], timeout: float) -> ProbeResult:
    try:
        ds = await asyncio.wait_for(connector.fetch_data(indicator_id, params), timeout=timeout)
    except asyncio.TimeoutError:
        return ProbeResult(connector.id, indicator_id, ok=False, error="timed out")
    except DataLensError as e:
        return ProbeResult(connector.id, indicator_id, ok=False, error=str(e))
    return ProbeResult(connector.id, indicator_id, ok=True, points=len(ds.data), degraded=ds.metadata.degraded)


async def probe_connectors(
    registry: ConnectorRegistry,
    extra_params: dict[str, dict[str, str]] | None = None,
    timeout: float = 30.0,
) -> list[ProbeResult]:
    extra_params = PROBE_PARAMS if extra_params is None else extra_params
    jobs = [
        _probe_one(connector, indicator.id, extra_params.get(connector.id, {}), timeout)
        for connector in registry.get_all_connectors()
        for indicator in connector.get_indicators()
    ]
    return list(await asyncio.gather(*jobs))


def report(results: list[ProbeResult]) -> int:
    failures = 0
    for r in results:
        if not r.ok:
            failures += 1
            log.error("%s/%s FAILED: %s", r.connector, r.indicator, r.error)
        elif r.degraded:
            log.warning("%s/%s degraded (synthetic, %d points)", r.connector, r.indicator, r.points)
        else:
            log.info("%s/%s ok (%d points)", r.connector, r.indicator, r.points)
    log.info("Probe complete: %d indicators, %d failing.", len(results), failures)
    return failures


async def main() -> int:
    setup_logging(settings.log_level)
    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
        registry = build_registry(settings, client)
        results = await probe_connectors(registry, timeout=settings.widget_timeout_seconds)
    return 1 if report(results) else 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
