import pytest
from fastapi.testclient import TestClient

import api.main
from dashcore.filters import normalize_settings


ROWS = [
    {"order_date": "2024-02-10", "status": "OPEN"},
    {"order_date": "2024-02-12", "status": "open "},
    {"order_date": "2024-02-15", "status": "CLOSED"},
    {"order_date": "2024-01-20", "status": "OPEN"},
]
RANGE = {"from": "2024-02-01", "to": "2024-02-29"}
OPEN_TILE = {"key": "open_orders", "matchKey": "status", "filter": {"column": "status", "equals": "OPEN"}}


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(api.main, "settings", normalize_settings({"data_dir": str(tmp_path)}))
    return TestClient(api.main.app)


def test_meta_operators(client):
    body = client.get("/meta/operators").json()
    assert body["operators"][:3] == ["isNull", "isNotNull", "equals"]
    assert body["groups"] == ["and", "or"]


def test_tiles(client):
    res = client.post("/tiles", json={"tiles": [OPEN_TILE], "records": ROWS, "range": RANGE})
    assert res.status_code == 200
    body = res.json()
    assert body["windows"] == {"current": 3, "previous": 1, "all": 4}
    [tile] = body["tiles"]
    assert (tile["value"], tile["previous"], tile["trend"], tile["direction"]) == (2, 1, "100.0%", "up")
    assert tile["clickFilter"] == {"column": "status", "contains": "open_orders"}


def test_tiles_simple(client):
    res = client.post("/tiles/simple", json={"tiles": [OPEN_TILE], "records": ROWS, "range": RANGE})
    [tile] = res.json()["tiles"]
    assert tile["clickFilter"] == {"type": "status", "value": "open_orders"}


def test_tiles_from_source_file(client, tmp_path):
    (tmp_path / "orders.csv").write_text(
        "order_date,status\n2024-02-10,OPEN\n2024-02-12,open \n2024-01-20,OPEN\n"
    )
    res = client.post("/tiles", json={"tiles": [OPEN_TILE], "source": "orders.csv", "range": RANGE})
    [tile] = res.json()["tiles"]
    assert (tile["value"], tile["previous"]) == (2, 1)
    assert client.get("/meta/sources").json() == {"sources": ["orders.csv"]}


def test_missing_source_is_rejected(client):
    res = client.post("/tiles", json={"tiles": [OPEN_TILE], "source": "nope.csv"})
    assert res.status_code == 400
    assert res.json()["type"] == "FileNotFoundError"


def test_bad_filter_is_rejected(client):
    res = client.post("/records/filter", json={"records": ROWS, "filters": [{"and": "not-a-list"}]})
    assert res.status_code == 400
    assert res.json()["type"] == "FilterError"


def test_records_filter_drill_down(client):
    res = client.post(
        "/records/filter",
        json={"records": ROWS, "clickFilter": {"column": "status", "contains": "open"}, "range": RANGE},
    )
    body = res.json()
    assert body["total"] == 2
    assert [r["order_date"] for r in body["records"]] == ["2024-02-10", "2024-02-12"]

    res = client.post(
        "/records/filter",
        json={"records": ROWS, "clickFilter": {"column": "status", "contains": "open"}, "useRange": False, "limit": 1},
    )
    body = res.json()
    assert body["total"] == 3
    assert len(body["records"]) == 1


def test_dashboard_and_debug(client):
    payload = {
        "records": ROWS,
        "range": RANGE,
        "config": {"tiles": [OPEN_TILE]},
        "metrics": {"tiles": [{"key": "status", "subtitle": "Open vs prior period"}]},
    }
    body = client.post("/dashboard", json=payload).json()
    assert body["tiles"][0]["subtitle"] == "Open vs prior period"
    assert body["summary"] == [] and body["trends"] == []

    debug = client.post("/debug", json=payload).json()
    assert debug["row_counts"]["current"] == 3
    assert debug["tile_counts"] == {"tiles": 1, "summary": 0, "trends": 0}
