import uuid

from fakes import FRED_HOST, NOAA_HOST, as_user

ALICE = as_user("alice")
BOB = as_user("bob")


def widget_payload(title="GDP", **overrides) -> dict:
    data = {
        "id": str(uuid.uuid4()),
        "type": "line",
        "title": title,
        "dataSource": "worldbank",
        "dataSourceConfig": {"indicator": "NY.GDP.MKTP.CD", "country": "US"},
        "chartConfig": {"colorTheme": "teal"},
    }
    data.update(overrides)
    return data


def create_dashboard(client, headers=ALICE, title="Macro") -> str:
    res = client.post("/api/v1/dashboards", json={"title": title}, headers=headers)
    assert res.status_code == 200
    return res.json()["id"]


# --------- Health and data sources ---------

def test_health(client):
    res = client.get("/api/v1/health")

    assert res.status_code == 200
    assert res.json()["status"] == "ok"
    assert res.json()["connectors"] == ["worldbank", "fred", "coingecko", "alphavantage", "noaa", "undata"]


def test_list_data_sources(client):
    res = client.get("/api/v1/data-sources")

    assert res.status_code == 200
    sources = {s["id"]: s for s in res.json()}
    assert sources["noaa"]["category"] == "weather"
    assert {i["id"] for i in sources["undata"]["indicators"]} == {"life_expectancy", "literacy_rate", "fertility_rate"}


def test_list_indicators_of_unknown_provider(client):
    res = client.get("/api/v1/data-sources/bloomberg/indicators")

    assert res.status_code == 404
    assert res.json() == {"error": "Unknown data source: bloomberg"}


def test_fetch_worldbank_dataset(client):
    res = client.get("/api/v1/data-sources/worldbank", params={"indicator": "SP.POP.TOTL", "country": "US"})

    assert res.status_code == 200
    body = res.json()
    assert body["id"] == "worldbank-SP.POP.TOTL-US-2015-2024"
    assert [p["x"] for p in body["data"]] == [2020, 2022]
    assert body["metadata"]["source"] == "World Bank"


def test_fred_without_key_is_degraded_not_an_error(client, providers):
    res = client.get("/api/v1/data-sources/fred", params={"series": "UNRATE", "startDate": "2020-01-01", "endDate": "2020-12-31"})

    assert res.status_code == 200
    body = res.json()
    assert body["metadata"]["degraded"] is True
    assert len(body["data"]) == 12
    assert providers.requests_to(FRED_HOST) == []


def test_fetch_accepts_provider_specific_indicator_names(client):
    res = client.get("/api/v1/data-sources/coingecko", params={"coin": "bitcoin", "days": "30"})

    assert res.status_code == 200
    assert res.json()["id"] == "coingecko-bitcoin-30"


def test_alphavantage_dataset_carries_ohlcv(client):
    res = client.get("/api/v1/data-sources/alphavantage", params={"function": "TIME_SERIES_DAILY", "symbol": "IBM"})

    body = res.json()
    assert body["metadata"]["isOHLCV"] is True
    assert [b["date"] for b in body["ohlcvData"]] == ["2024-01-02", "2024-01-03"]


def test_fetch_requires_an_indicator(client):
    res = client.get("/api/v1/data-sources/worldbank", params={"country": "US"})

    assert res.status_code == 400
    assert "indicator" in res.json()["error"]


def test_fetch_unknown_indicator(client):
    res = client.get("/api/v1/data-sources/worldbank", params={"indicator": "NOPE"})

    assert res.status_code == 400
    assert res.json() == {"error": "Unknown indicator: NOPE"}


def test_noaa_missing_coordinates_is_a_bad_request(client, providers):
    res = client.get("/api/v1/data-sources/noaa", params={"indicator": "temperature"})

    assert res.status_code == 400
    assert providers.requests_to(NOAA_HOST) == []


def test_upstream_failure_without_fallback_is_500(client, providers):
    from fakes import WORLDBANK_HOST, status

    providers.override(WORLDBANK_HOST, status(503))
    res = client.get("/api/v1/data-sources/worldbank", params={"indicator": "SP.POP.TOTL"})

    assert res.status_code == 500
    assert "503" in res.json()["error"]


# --------- Dashboards ---------

def test_dashboard_endpoints_require_identity(client):
    assert client.get("/api/v1/dashboards").status_code == 401
    res = client.post("/api/v1/dashboards", json={"title": "x"})
    assert res.status_code == 401
    assert res.json() == {"error": "Unauthorized"}


def test_create_then_list(client):
    dashboard_id = create_dashboard(client, title="Macro")
    create_dashboard(client, headers=BOB, title="Bob's")

    res = client.get("/api/v1/dashboards", headers=ALICE)

    assert res.status_code == 200
    assert [d["id"] for d in res.json()] == [dashboard_id]
    assert res.json()[0]["userId"] == "alice"
    assert res.json()[0]["isPublic"] is False


def test_create_requires_title(client):
    res = client.post("/api/v1/dashboards", json={"description": "no title"}, headers=ALICE)

    assert res.status_code == 400
    assert "error" in res.json()


def test_private_dashboard_access_rules(client):
    dashboard_id = create_dashboard(client)

    assert client.get(f"/api/v1/dashboards/{dashboard_id}", headers=ALICE).status_code == 200
    assert client.get(f"/api/v1/dashboards/{dashboard_id}", headers=BOB).status_code == 403
    assert client.get(f"/api/v1/dashboards/{dashboard_id}").status_code == 401
    missing = client.get(f"/api/v1/dashboards/{uuid.uuid4()}", headers=ALICE)
    assert missing.status_code == 404
    assert missing.json() == {"error": "Dashboard not found"}


def test_public_dashboard_is_readable_but_not_writable(client):
    dashboard_id = create_dashboard(client)
    res = client.put(f"/api/v1/dashboards/{dashboard_id}", json={"isPublic": True}, headers=ALICE)
    assert res.json() == {"success": True}

    assert client.get(f"/api/v1/dashboards/{dashboard_id}", headers=BOB).status_code == 200
    assert client.get(f"/api/v1/dashboards/{dashboard_id}").status_code == 200
    assert client.put(f"/api/v1/dashboards/{dashboard_id}", json={"title": "mine now"}, headers=BOB).status_code == 403
    assert client.delete(f"/api/v1/dashboards/{dashboard_id}", headers=BOB).status_code == 403

    public = client.get("/api/v1/dashboards/public").json()
    assert [d["id"] for d in public] == [dashboard_id]


def test_bulk_save_persists_widgets_and_normalized_layout(client):
    dashboard_id = create_dashboard(client)
    w1 = widget_payload("GDP")
    w2 = widget_payload("BTC", type="area", dataSource="coingecko", dataSourceConfig={"indicator": "bitcoin", "days": 30})
    layout = [
        {"i": w1["id"], "x": 0, "y": 0, "w": 12, "h": 6},
        {"i": str(uuid.uuid4()), "x": 0, "y": 30, "w": 4, "h": 4},
    ]

    res = client.put(f"/api/v1/dashboards/{dashboard_id}", json={"widgets": [w1, w2], "layout": layout}, headers=ALICE)
    assert res.status_code == 200

    body = client.get(f"/api/v1/dashboards/{dashboard_id}", headers=ALICE).json()
    assert [w["id"] for w in body["widgets"]] == [w1["id"], w2["id"]]
    assert body["widgets"][1]["dataSourceConfig"]["days"] == "30"
    assert [e["i"] for e in body["layout"]] == [w1["id"], w2["id"]]
    placed = body["layout"][1]
    assert (placed["x"], placed["y"], placed["w"], placed["h"], placed["minW"], placed["minH"]) == (0, 6, 6, 8, 3, 4)


def test_econ_overview_round_trip(client):
    dashboard_id = create_dashboard(client, title="Econ Overview")
    empty = client.get(f"/api/v1/dashboards/{dashboard_id}", headers=ALICE).json()
    assert (empty["name"], empty["widgets"], empty["layout"]) == ("Econ Overview", [], [])

    widget = widget_payload("Unemployment", dataSource="fred", dataSourceConfig={"indicator": "UNRATE"})
    layout = [{"i": widget["id"], "x": 0, "y": 0, "w": 6, "h": 8}]
    client.put(f"/api/v1/dashboards/{dashboard_id}", json={"widgets": [widget], "layout": layout}, headers=ALICE)

    body = client.get(f"/api/v1/dashboards/{dashboard_id}", headers=ALICE).json()
    assert [w["id"] for w in body["widgets"]] == [widget["id"]]
    assert [e["i"] for e in body["layout"]] == [widget["id"]]

    frame = client.get(f"/api/v1/dashboards/{dashboard_id}/render", headers=ALICE).json()["widgets"][0]
    assert frame["status"] == "ready"
    assert frame["chart"]["source"] == "FRED"
    assert frame["chart"]["degraded"] is True


def test_bulk_save_needs_layout(client):
    dashboard_id = create_dashboard(client)

    res = client.put(f"/api/v1/dashboards/{dashboard_id}", json={"widgets": [widget_payload()]}, headers=ALICE)

    assert res.status_code == 400


def test_bulk_save_rejects_invalid_widgets(client):
    dashboard_id = create_dashboard(client)
    bad = widget_payload(type="hologram")

    res = client.put(f"/api/v1/dashboards/{dashboard_id}", json={"widgets": [bad], "layout": []}, headers=ALICE)

    assert res.status_code == 400
    body = client.get(f"/api/v1/dashboards/{dashboard_id}", headers=ALICE).json()
    assert body["widgets"] == []


def test_bulk_save_by_other_user_is_forbidden(client):
    dashboard_id = create_dashboard(client)

    res = client.put(
        f"/api/v1/dashboards/{dashboard_id}",
        json={"widgets": [widget_payload()], "layout": []},
        headers=BOB,
    )

    assert res.status_code == 403


def test_delete_dashboard(client):
    dashboard_id = create_dashboard(client)

    assert client.delete(f"/api/v1/dashboards/{dashboard_id}", headers=ALICE).json() == {"success": True}
    assert client.get(f"/api/v1/dashboards/{dashboard_id}", headers=ALICE).status_code == 404


# --------- Widgets ---------

def test_widget_crud_through_owning_dashboard(client):
    dashboard_id = create_dashboard(client)
    widget = widget_payload()

    res = client.post("/api/v1/widgets", json={"dashboardId": dashboard_id, "widget": widget}, headers=ALICE)
    assert res.json() == {"id": widget["id"], "success": True}

    res = client.put(f"/api/v1/widgets/{widget['id']}", json={"widget": {"title": "Renamed"}}, headers=ALICE)
    assert res.status_code == 200
    body = client.get(f"/api/v1/dashboards/{dashboard_id}", headers=ALICE).json()
    assert body["widgets"][0]["title"] == "Renamed"
    assert len(body["layout"]) == 1

    assert client.delete(f"/api/v1/widgets/{widget['id']}", headers=ALICE).status_code == 200
    body = client.get(f"/api/v1/dashboards/{dashboard_id}", headers=ALICE).json()
    assert body["widgets"] == []
    assert body["layout"] == []


def test_widget_create_generates_id_when_missing(client):
    dashboard_id = create_dashboard(client)
    widget = widget_payload()
    del widget["id"]

    res = client.post("/api/v1/widgets", json={"dashboardId": dashboard_id, "widget": widget}, headers=ALICE)

    assert res.status_code == 200
    assert uuid.UUID(res.json()["id"])


def test_widget_mutations_by_non_owner_are_forbidden(client):
    dashboard_id = create_dashboard(client)
    widget = widget_payload()
    client.post("/api/v1/widgets", json={"dashboardId": dashboard_id, "widget": widget}, headers=ALICE)

    assert client.post("/api/v1/widgets", json={"dashboardId": dashboard_id, "widget": widget_payload()}, headers=BOB).status_code == 403
    assert client.put(f"/api/v1/widgets/{widget['id']}", json={"widget": {"title": "x"}}, headers=BOB).status_code == 403
    assert client.delete(f"/api/v1/widgets/{widget['id']}", headers=BOB).status_code == 403
    assert client.delete(f"/api/v1/widgets/{widget['id']}").status_code == 401
    assert client.delete(f"/api/v1/widgets/{uuid.uuid4()}", headers=ALICE).status_code == 404


# --------- Rendering ---------

def test_render_dashboard_isolates_failing_widgets(client):
    dashboard_id = create_dashboard(client)
    good = widget_payload("GDP")
    needs_location = widget_payload("Weather", dataSource="noaa", dataSourceConfig={"indicator": "temperature"})
    unknown = widget_payload("Mystery", dataSource="bloomberg")
    client.put(
        f"/api/v1/dashboards/{dashboard_id}",
        json={"widgets": [good, needs_location, unknown], "layout": []},
        headers=ALICE,
    )

    res = client.get(f"/api/v1/dashboards/{dashboard_id}/render", headers=ALICE)

    assert res.status_code == 200
    frames = res.json()["widgets"]
    assert [f["status"] for f in frames] == ["ready", "error", "error"]
    assert frames[0]["chart"]["type"] == "line"
    assert "lat" in frames[1]["error"]
    assert frames[2]["error"] == "Unknown data source: bloomberg"


def test_render_private_dashboard_requires_owner(client):
    dashboard_id = create_dashboard(client)

    assert client.get(f"/api/v1/dashboards/{dashboard_id}/render", headers=BOB).status_code == 403
