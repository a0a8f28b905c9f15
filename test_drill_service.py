#!/usr/bin/env python3
"""
Drill Service + API Test Suite
DrillService on a simulated clock, and the Flask routes via test_client()

Usage: pytest test_drill_service.py -v
"""

import threading
import time

import pytest

import services.drill_service as drill_service_module
from services.drill_service import DrillService
from zone_trainer.zt_audio import AudioManager
from zone_trainer.zt_registry import Registry
from zone_trainer.zt_timers import ManualTimerHost
from zone_trainer_web import create_app


@pytest.fixture
def host():
    return ManualTimerHost()


@pytest.fixture
def service(host):
    return DrillService(host, registry=Registry(audio=AudioManager(enabled=False)))


@pytest.fixture
def client(service, monkeypatch):
    monkeypatch.setattr(drill_service_module, "drill_service", service)
    app = create_app()
    app.config["TESTING"] = True
    return app.test_client()


# ==================== SERVICE ====================

def test_configure_and_start_practice(service, host):
    result = service.configure({
        "zones_enabled": [1, 3],
        "settings": {"pause_time_ms": 500},
        "practice_sequence": {"mode": "sequential"},
    })
    assert result["success"] is True
    assert result["config"]["settings"]["pause_time_ms"] == 500
    assert result["config"]["settings"]["shots_per_rally"] == 15
    assert result["config"]["zones"]["3"] is True
    assert result["config"]["zones"]["2"] is False

    started = service.start_session("practice")
    assert started["success"] is True
    assert started["status"]["state"] == "practice_running"
    assert started["status"]["display"]["active_zones"] == [1]

    host.advance(500)
    assert service.get_session_status()["display"]["active_zones"] == [3]


def test_configure_rejects_bad_values(service):
    assert service.configure({"settings": {"pause_time_ms": 0}})["success"] is False
    assert service.configure({"settings": {"speed": 3}})["success"] is False
    assert service.configure({"court_layout": "triples"})["success"] is False
    assert service.configure({"zones_enabled": {"x": True}})["success"] is False
    assert service.configure({"zones_enabled": [0, 13]})["success"] is False
    assert service.configure({"practice_sequence": {"mode": "custom", "custom_order": [9]}})["success"] is False


@pytest.mark.parametrize("zones_enabled", [
    {"3": "false"},
    {"3": 0},
    {"3": None},
    {"13": True},
    "1,2,3",
])
def test_configure_rejects_non_boolean_zone_flags(service, zones_enabled):
    """
    What: zones_enabled values that are not real booleans (form-style strings, ints)
    Expected: Rejected, zone state unchanged
    """
    result = service.configure({"zones_enabled": zones_enabled})
    assert result["success"] is False
    assert service.get_session_status()["config"]["zones"]["3"] is True


def test_configure_zone_flags_apply_on_top_of_current(service):
    service.configure({"zones_enabled": {"3": False}})
    result = service.configure({"zones_enabled": {"5": False}})
    assert result["success"] is True
    assert result["config"]["zones"]["3"] is False
    assert result["config"]["zones"]["5"] is False
    assert result["config"]["zones"]["1"] is True


@pytest.mark.parametrize("payload", [
    {"practice_sequence": "custom"},
    {"rally_sequence": ["custom"]},
    {"settings": ["x"]},
    {"settings": "fast"},
    {"practice_sequence": {"mode": "custom", "custom_order": "3,1"}},
    {"rally_sequence": {"mode": "custom", "custom_text": [3, 1]}},
    {"practice_sequence": {"mode": {"x": 1}}},
])
def test_configure_rejects_malformed_payload_shapes(service, payload):
    result = service.configure(payload)
    assert result["success"] is False
    assert result["error"]


def test_configure_custom_text_is_filtered(service):
    result = service.configure({"rally_sequence": {"mode": "custom", "custom_text": "3, 1, 9, x"}})
    assert result["success"] is True
    assert result["config"]["rally_sequence"] == {"mode": "custom", "custom_order": [3, 1]}


def test_configure_while_running_is_conflict(service):
    service.start_session("practice")
    result = service.configure({"settings": {"pause_time_ms": 100}})
    assert result["success"] is False
    assert result["already_running"] is True


def test_start_twice_is_refused(service):
    assert service.start_session("rally")["success"] is True
    second = service.start_session("practice")
    assert second["success"] is False
    assert second["already_running"] is True
    assert service.get_session_status()["state"] == "rally_running"


def test_start_with_no_zones_reports_alert(service):
    service.configure({"zones_enabled": []})
    result = service.start_session("practice")
    assert result["success"] is False
    assert result["error"] == "Please enable at least one zone!"
    assert result["status"]["last_end_reason"] == "empty_zone_set"
    assert result["status"]["display"]["alert"] == "Please enable at least one zone!"


def test_stop_returns_last_stats(service, host):
    service.configure({"settings": {"shots_per_rally": 3, "rally_speed_ms": 100, "rally_pause_sec": 1}})
    service.start_session("rally")
    host.advance(300)
    result = service.stop_session()
    assert result == {"success": True, "stopped": True, "last_stats": {"rally_count": 1, "shot_count": 3}}

    status = service.get_session_status()
    assert status["active"] is False
    assert status["stats"] == {"rally_count": 0, "shot_count": 0}
    assert service.stop_session()["stopped"] is False


def test_toggle_zone_idle_and_running(service):
    result = service.toggle_zone(2)
    assert result == {"success": True, "zone": 2, "enabled": False}

    service.start_session("practice")
    refused = service.toggle_zone(2)
    assert refused["success"] is False
    assert refused["already_running"] is True
    assert service.toggle_zone(42)["success"] is False


def test_toggle_volume(service):
    assert service.toggle_volume() == {"success": True, "volume": False}
    assert service.get_session_status()["display"]["muted"] is True
    assert service.toggle_volume() == {"success": True, "volume": True}


def test_select_layout_and_mode(service):
    service.start_session("practice")
    assert service.select_layout("doubles") == {"success": True, "court_layout": "doubles"}
    assert service.get_session_status()["active"] is False
    assert service.get_session_status()["config"]["zones"]["12"] is True
    assert service.select_mode("rally") == {"success": True, "mode": "rally"}
    assert service.select_mode("nope")["success"] is False


# ==================== API ====================

def test_api_status(client):
    resp = client.get("/api/drill/status?logs=5")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["state"] == "idle"
    assert data["config"]["court_layout"] == "singles"
    assert isinstance(data["logs"], list)


def test_api_start_stop_flow(client, host):
    resp = client.post("/api/drill/start", json={"mode": "rally"})
    assert resp.status_code == 200
    assert resp.get_json()["status"]["state"] == "rally_running"

    assert client.post("/api/drill/start", json={"mode": "rally"}).status_code == 409

    host.advance(1200)
    stats = client.get("/api/drill/status").get_json()["stats"]
    assert stats["shot_count"] == 3

    resp = client.post("/api/drill/stop")
    assert resp.status_code == 200
    assert resp.get_json()["last_stats"]["shot_count"] == 3


def test_api_configure_validation(client):
    assert client.post("/api/drill/configure", data="nope", content_type="text/plain").status_code == 400
    assert client.post("/api/drill/configure", json=[1, 2]).status_code == 400
    assert client.post("/api/drill/configure", json={"settings": {"rally_pause_sec": -1}}).status_code == 400

    resp = client.post("/api/drill/configure", json={"court_layout": "doubles", "zones_enabled": {"7": False}})
    assert resp.status_code == 200
    assert resp.get_json()["config"]["zones"]["7"] is False


def test_api_configure_while_running_conflict(client):
    client.post("/api/drill/start", json={"mode": "practice"})
    resp = client.post("/api/drill/configure", json={"settings": {"pause_time_ms": 800}})
    assert resp.status_code == 409


def test_api_mode_layout_zone_volume(client):
    assert client.post("/api/drill/mode", json={}).status_code == 400
    assert client.post("/api/drill/mode", json={"mode": "rally"}).get_json()["mode"] == "rally"
    assert client.post("/api/drill/layout", json={}).status_code == 400
    assert client.post("/api/drill/layout", json={"court_layout": "moon"}).status_code == 400
    assert client.post("/api/drill/layout", json={"court_layout": "doubles"}).status_code == 200

    resp = client.post("/api/drill/zones/4/toggle")
    assert resp.status_code == 200
    assert resp.get_json()["enabled"] is False

    resp = client.post("/api/drill/volume/toggle")
    assert resp.status_code == 200
    assert resp.get_json()["volume"] is False


def test_health(client):
    data = client.get("/health").get_json()
    assert data["status"] == "healthy"
    assert data["session_state"] == "idle"
    assert data["service"] == "zone-trainer"


@pytest.mark.parametrize("payload", [
    {"practice_sequence": "custom"},
    {"settings": ["x"]},
    {"zones_enabled": {"3": "false"}},
    {"rally_sequence": {"custom_order": 5}},
])
def test_api_configure_malformed_payload_is_bad_request(client, payload):
    resp = client.post("/api/drill/configure", json=payload)
    assert resp.status_code == 400
    assert resp.get_json()["success"] is False


def test_api_status_bad_logs_param(client):
    assert client.get("/api/drill/status?logs=abc").status_code == 400
    assert client.get("/api/drill/status?logs=0").get_json()["logs"] == []


def test_api_non_object_bodies(client):
    assert client.post("/api/drill/mode", json="mode").status_code == 400
    assert client.post("/api/drill/layout", json=["court_layout"]).status_code == 400
    assert client.post("/api/drill/start", json=[1]).status_code == 200


def test_api_unexpected_error_is_logged_as_500(client, service, monkeypatch, caplog):
    def broken(zone):
        raise RuntimeError("registry offline")

    monkeypatch.setattr(service, "toggle_zone", broken)
    resp = client.post("/api/drill/zones/2/toggle")
    assert resp.status_code == 500
    assert resp.get_json()["error"] == "registry offline"
    assert "Error toggling zone 2" in caplog.text


# ==================== SINGLETON ====================

def test_get_drill_service_builds_one_instance_under_concurrency(monkeypatch):
    """
    What: Several threads ask for the service at the same moment
    Expected: All of them get the same instance (one timer host, one session)
    """

    class SlowRegistry(Registry):
        def __init__(self, *args, **kwargs):
            time.sleep(0.05)
            super().__init__(*args, **kwargs)

    monkeypatch.setattr(drill_service_module, "drill_service", None)
    monkeypatch.setattr(drill_service_module, "Registry", SlowRegistry)

    barrier = threading.Barrier(8)
    results = []

    def worker():
        barrier.wait()
        results.append(drill_service_module.get_drill_service())

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(5.0)

    try:
        assert len(results) == 8
        assert len({id(s) for s in results}) == 1
    finally:
        results[0].shutdown()
