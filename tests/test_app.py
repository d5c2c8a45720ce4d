import pytest

pytest.importorskip("httpx")

from fastapi.testclient import TestClient

from headless_wifi import APP_VERSION, create_app
from headless_wifi.radio import ConnectionStatus, ScanResult


@pytest.fixture
def client(engine, radio) -> TestClient:
    app = create_app(engine=engine)
    with TestClient(app) as test_client:
        test_client.radio = radio
        yield test_client


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert "timestamp" in payload
    assert payload["uptime"] >= 0
    assert payload["version"] == APP_VERSION


def test_status_endpoint(client: TestClient) -> None:
    client.radio.status = ConnectionStatus(
        connected=True, ssid="Home", quality_percent=64, signal_level=-58
    )

    response = client.get("/api/wifi/status")

    assert response.status_code == 200
    assert response.json() == {
        "connected": True,
        "ssid": "Home",
        "quality_percent": 64,
        "signal_level": -58,
    }


def test_scan_endpoint(client: TestClient) -> None:
    client.radio.results = [ScanResult("Home", 35, 70, -66, True)]

    response = client.get("/api/wifi/scan")

    assert response.status_code == 200
    (network,) = response.json()["networks"]
    assert network["ssid"] == "Home"
    assert network["quality_percent"] == 50
    assert network["encrypted"] is True


def test_save_network_applies_and_hides_password(client: TestClient) -> None:
    response = client.post(
        "/api/wifi/networks", json={"ssid": "Home", "password": "12345678"}
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["apply"]["outcome"] == "applied"
    assert payload["networks"][0]["security"] == "WPA2"
    assert "12345678" not in response.text

    listing = client.get("/api/wifi/networks").json()
    assert [network["ssid"] for network in listing["networks"]] == ["Home"]
    assert listing["load_state"] == "loaded"


def test_save_network_without_password_is_open(client: TestClient) -> None:
    response = client.post("/api/wifi/networks", json={"ssid": "Cafe"})

    assert response.status_code == 200
    assert response.json()["networks"][0]["security"] == "OPEN"


def test_save_network_rejects_short_password(client: TestClient) -> None:
    response = client.post("/api/wifi/networks", json={"ssid": "Home", "password": "short"})

    assert response.status_code == 400
    assert "Password" in response.json()["detail"]


def test_save_network_reports_partial_failure(client: TestClient) -> None:
    client.radio.reload_error = "wpa_cli failed"

    response = client.post(
        "/api/wifi/networks", json={"ssid": "Home", "password": "12345678"}
    )

    assert response.status_code == 202
    payload = response.json()
    assert payload["success"] is False
    assert payload["apply"] == {
        "outcome": "partial_failure",
        "step": "reload",
        "error": "wpa_cli failed",
    }

    client.radio.reload_error = None
    retry = client.post("/api/wifi/reload")
    assert retry.status_code == 200
    assert retry.json()["outcome"] == "applied"


def test_forget_network_endpoint(client: TestClient) -> None:
    client.post("/api/wifi/networks", json={"ssid": "Home", "password": "12345678"})

    response = client.delete("/api/wifi/networks/Home")

    assert response.status_code == 200
    assert response.json()["networks"] == []
    assert client.delete("/api/wifi/networks/Home").status_code == 404


def test_auto_switch_endpoint(client: TestClient) -> None:
    client.post("/api/wifi/networks", json={"ssid": "Home", "password": "12345678"})
    client.radio.results = [ScanResult("Home", 40, 100)]

    response = client.post("/api/wifi/auto-switch")

    assert response.status_code == 200
    payload = response.json()
    assert payload["decision"]["reason"] == "switching"
    assert payload["decision"]["target"]["ssid"] == "Home"
    assert payload["apply"]["outcome"] == "applied"


def test_event_log_endpoint_newest_first(client: TestClient) -> None:
    client.post("/api/wifi/networks", json={"ssid": "Home", "password": "12345678"})

    response = client.get("/api/logs", params={"limit": 10})

    assert response.status_code == 200
    operations = [entry["operation"] for entry in response.json()["entries"]]
    assert operations == ["config_applied", "network_saved"]
