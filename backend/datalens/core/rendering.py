"""
Widget Rendering Frame.

Resolves a widget's connector, fetches its DataSet and builds the chart
payload. Every failure is caught here and turned into an inline error
frame, so one broken widget never takes down its dashboard.
"""
from __future__ import annotations

import asyncio
import logging

from datalens.core.charts import render_chart
from datalens.core.registry import ConnectorRegistry
from datalens.errors import DataLensError
from datalens.schemas import Dashboard, DashboardRender, WidgetConfig, WidgetFrame

log = logging.getLogger("core.rendering")


def _error_frame(widget: WidgetConfig, message: str) -> WidgetFrame:
    return WidgetFrame(widget_id=widget.id, title=widget.title, type=widget.type, status="error", error=message)


async def load_widget(registry: ConnectorRegistry, widget: WidgetConfig, timeout: float | None = None) -> WidgetFrame:
    connector = registry.get_connector(widget.data_source)
    if connector is None:
        return _error_frame(widget, f"Unknown data source: {widget.data_source}")

    params = widget.data_source_config.to_params()
    indicator = params.pop("indicator")
    try:
        ds = await asyncio.wait_for(connector.fetch_data(indicator, params), timeout=timeout)
        chart = render_chart(widget.type, ds, widget.chart_config)
    except asyncio.TimeoutError:
        log.warning("widget %s timed out after %ss (%s/%s)", widget.id, timeout, widget.data_source, indicator)
        return _error_frame(widget, f"Timed out loading {connector.name} data")
    except DataLensError as e:
        log.warning("widget %s failed: %s", widget.id, e)
        return _error_frame(widget, e.message)
    except Exception:
        log.exception("widget %s crashed while rendering", widget.id)
        return _error_frame(widget, "Failed to load widget data")

    return WidgetFrame(widget_id=widget.id, title=widget.title, type=widget.type, status="ready", chart=chart)


async def load_dashboard(registry: ConnectorRegistry, dashboard: Dashboard, timeout: float | None = None) -> DashboardRender:
    # Now, we fetch every widget concurrently; load_widget never raises, so gather cannot short-circuit.
    frames = await asyncio.gather(*(load_widget(registry, w, timeout) for w in dashboard.widgets))
    return DashboardRender(dashboard_id=dashboard.id, name=dashboard.name, widgets=list(frames))
