"""
Integration tests for the control API.
"""
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from downgrade.negotiate.toggles import ToggleStore
from downgrade.server.api import create_app


@pytest.fixture
def store(tmp_path):
    return ToggleStore(path=tmp_path / "toggles.json")


@pytest.fixture
def client(store):
    return TestClient(create_app(store))


class TestTransportsRouter:
    """Reading and flipping toggles over HTTP."""

    def test_read_defaults(self, client):
        resp = client.get("/transports")

        assert resp.status_code == 200
        data = resp.json()
        assert data["toggles"] == {
            "WebSockets: Text": False,
            "WebSockets: Binary": False,
            "ServerSentEvents: Text": True,
            "LongPolling: Text": True,
            "LongPolling: Binary": True,
        }
        assert data["preview"] == [
            {"transport": "ServerSentEvents", "transferFormats": ["Text"]},
            {"transport": "LongPolling", "transferFormats": ["Text", "Binary"]},
        ]

    def test_partial_update(self, client, store):
        resp = client.put("/transports", json={"toggles": {"WebSockets: Text": True, "LongPolling: Binary": False}})

        assert resp.status_code == 200
        assert resp.json()["preview"] == [
            {"transport": "WebSockets", "transferFormats": ["Text"]},
            {"transport": "ServerSentEvents", "transferFormats": ["Text"]},
            {"transport": "LongPolling", "transferFormats": ["Text"]},
        ]
        assert store.snapshot().ws_text is True
        assert store.snapshot().lp_binary is False

    def test_unknown_toggle_is_rejected(self, client, store):
        resp = client.put("/transports", json={"toggles": {"WebTransport: Text": True}})

        assert resp.status_code == 400
        assert resp.json()["code"] == "TOGGLE_001"
        assert store.as_dict()["WebSockets: Text"] is False

    def test_all_off_previews_nothing(self, client):
        off = {name: False for name in client.get("/transports").json()["toggles"]}

        resp = client.put("/transports", json={"toggles": off})

        assert resp.json()["preview"] == []

    def test_reset(self, client, store):
        store.set("ServerSentEvents: Text", False)

        resp = client.post("/transports/reset")

        assert resp.status_code == 200
        assert resp.json()["toggles"]["ServerSentEvents: Text"] is True

    def test_update_is_persisted(self, client, tmp_path):
        client.put("/transports", json={"toggles": {"WebSockets: Binary": True}})

        reloaded = ToggleStore(path=tmp_path / "toggles.json")

        assert reloaded.snapshot().ws_binary is True


class TestStatus:
    """Proxy status reporting."""

    def test_status_without_proxy(self, client):
        resp = client.get("/status")

        assert resp.json() == {"status": "ok", "proxy": {"running": False, "host": None, "port": None}}

    def test_status_with_proxy(self, store):
        interceptor = Mock(running=True, host="127.0.0.1", port=8080)
        client = TestClient(create_app(store, interceptor))

        resp = client.get("/status")

        assert resp.json()["proxy"] == {"running": True, "host": "127.0.0.1", "port": 8080}
