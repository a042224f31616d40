import json

import pytest
from fastapi.testclient import TestClient
from test_appstate import cookie_jar

from alphabot.api.app import create_app
from alphabot.api.routers import appstate_router, bots_router


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "config" / "config.main.json"


@pytest.fixture
def client(settings, config_path):
    return TestClient(create_app(settings, config_path=config_path))


def test_root_and_health(client):
    assert client.get("/").json()["service"] == "alphabot-dashboard"
    assert client.get("/api/health").json()["status"] == "healthy"
    assert client.get("/ping").text == "pong"


# ============================================
# Appstate
# ============================================


def test_status_without_appstate(client):
    assert client.get("/api/status").json() == {
        "exists": False,
        "valid": False,
        "user_id": None,
        "errors": [],
    }
    assert client.get("/api/appstate/download").status_code == 404


def test_upload_appstate(client, settings):
    response = client.post("/api/appstate", json={"appstate": cookie_jar()})

    assert response.status_code == 200
    assert response.json() == {"user_id": "100012345", "cookies": 10, "bot_pid": None}
    assert settings.appstate_file.is_file()

    status = client.get("/api/status").json()
    assert status["exists"] and status["valid"]

    info = client.get("/api/appstate").json()
    assert info["count"] == 10
    assert info["last_modified"] is not None

    download = client.get("/api/appstate/download")
    assert download.status_code == 200
    assert json.loads(download.content)[0]["key"] == "c_user"


def test_upload_appstate_as_text(client):
    response = client.post("/api/appstate", json={"appstate": json.dumps(cookie_jar())})

    assert response.status_code == 200


def test_upload_bad_json_text(client):
    response = client.post("/api/appstate", json={"appstate": "[{"})

    assert response.status_code == 400
    assert response.json()["detail"].startswith("Invalid JSON")


def test_upload_incomplete_appstate(client, settings):
    response = client.post("/api/appstate", json={"appstate": cookie_jar()[:3]})

    assert response.status_code == 400
    assert response.json()["detail"]["errors"] == [
        "AppState appears incomplete (too few cookies)"
    ]
    assert not settings.appstate_file.exists()


def test_upload_numeric_cookie_timestamps(client):
    cookies = cookie_jar()
    cookies[0]["creation"] = 1700000000

    response = client.post("/api/appstate", json={"appstate": cookies})

    assert response.status_code == 200


def test_upload_malformed_cookie_field(client, settings):
    cookies = cookie_jar()
    cookies[0]["hostOnly"] = "sometimes"

    response = client.post("/api/appstate", json={"appstate": cookies})

    assert response.status_code == 400
    assert response.json()["detail"]["errors"][0].startswith("hostOnly")
    assert not settings.appstate_file.exists()


def test_upload_cookie_header(client):
    header = "; ".join(f"{c['key']}={c['value']}" for c in cookie_jar())

    response = client.post("/api/appstate/cookies", json={"cookies": header})

    assert response.status_code == 200
    assert response.json()["user_id"] == "100012345"


def test_upload_and_launch(client, monkeypatch):
    launched = []

    async def fake_launch(settings):
        launched.append(settings)
        return 4321

    monkeypatch.setattr(appstate_router, "launch_bot", fake_launch)

    response = client.post("/api/appstate", json={"appstate": cookie_jar(), "launch": True})

    assert response.json()["bot_pid"] == 4321
    assert len(launched) == 1


# ============================================
# Admins and config
# ============================================


def test_admin_list_lifecycle(client, config_path):
    assert client.get("/api/admins").json() == {"admins": []}

    assert client.post("/api/admins", json={"id": 123}).status_code == 201
    assert client.post("/api/admins", json={"id": "123"}).status_code == 400
    assert client.post("/api/admins", json={"id": "abc"}).status_code == 422
    assert client.get("/api/admins").json() == {"admins": ["123"]}
    assert json.loads(config_path.read_text())["ADMINS"] == ["123"]

    assert client.delete("/api/admins/123").json() == {"admins": []}
    assert client.delete("/api/admins/123").status_code == 404


def test_unreadable_config_is_a_server_error(client, config_path):
    config_path.parent.mkdir(parents=True)
    config_path.write_text("[1, 2]")

    assert client.get("/api/admins").status_code == 500


def test_config_roundtrip(client):
    assert client.get("/api/config").status_code == 404

    config = {"PREFIX": "!", "ADMINS": ["1"], "LANGUAGE": "vi_VN", "CUSTOM": {"a": 1}}
    response = client.put("/api/config", json={"config": config})

    assert response.status_code == 200
    assert client.get("/api/config").json() == {"config": config}


def test_invalid_config_is_rejected(client, config_path):
    response = client.put("/api/config", json={"config": {"DATABASE": "SQLITE"}})

    assert response.status_code == 422
    assert response.json()["detail"]["errors"][0].startswith("database")
    assert not config_path.exists()


# ============================================
# Bot status
# ============================================


def test_bot_status_when_online(client, monkeypatch):
    async def fake_health(bot_url):
        return bots_router.BotStatusResponse(online=True, bot_id="999", commands=9)

    monkeypatch.setattr(bots_router, "check_bot_health", fake_health)

    data = client.get("/api/bot/status").json()

    assert data["online"] is True
    assert data["bot_id"] == "999"
    assert data["pid"] is None


@pytest.mark.asyncio
async def test_check_bot_health_offline():
    status = await bots_router.check_bot_health("http://127.0.0.1:9")

    assert status.online is False
