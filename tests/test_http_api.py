import asyncio
import base64

import pytest

from core.capture_controller import CaptureController
from core.capture_state import CaptureState
from conftest import FRAME

PROTECTED = ["/", "/index.html", "/script.js", "/config", "/current-image"]


@pytest.mark.parametrize("path", PROTECTED)
def test_missing_credentials_challenged(client, path):
    resp = client.get(path)
    assert resp.status_code == 401
    assert resp.headers["www-authenticate"] == 'Basic realm="CCTV NOC Snapshot"'
    assert resp.json()["detail"] == "Authentication required"


@pytest.mark.parametrize("path", PROTECTED)
def test_wrong_password_challenged(client, path):
    resp = client.get(path, auth=("admin", "nope"))
    assert resp.status_code == 401
    assert "www-authenticate" in resp.headers


def test_wrong_username_challenged(client):
    assert client.get("/config", auth=("root", "s3cret")).status_code == 401


def test_malformed_header_challenged(client):
    resp = client.get("/config", headers={"Authorization": "Basic !!!not-base64"})
    assert resp.status_code == 401
    assert resp.headers["www-authenticate"].startswith("Basic realm=")


def test_password_with_colon(settings, app, client):
    settings.auth_password = "pa:ss"
    token = base64.b64encode(b"admin:pa:ss").decode()
    resp = client.get("/config", headers={"Authorization": f"Basic {token}"})
    assert resp.status_code == 200


def test_config_reports_interval(client, auth):
    resp = client.get("/config", auth=auth)
    assert resp.status_code == 200
    assert resp.json() == {"captureIntervalMs": 3_600_000}


def test_image_missing_returns_404(client, auth):
    resp = client.get("/current-image", auth=auth)
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Image not available"


def test_image_served_without_caching(settings, client, auth):
    settings.image_path.write_bytes(FRAME)
    resp = client.get("/current-image?t=123", auth=auth)
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/jpeg"
    assert resp.headers["cache-control"] == "no-cache, no-store, must-revalidate"
    assert resp.content == FRAME


def test_viewer_assets(client, auth):
    index = client.get("/", auth=auth)
    assert index.status_code == 200
    assert "viewer" in index.text

    assert client.get("/index.html", auth=auth).status_code == 200
    script = client.get("/script.js", auth=auth)
    assert script.status_code == 200
    assert "console.log" in script.text


def test_unknown_asset_404(client, auth):
    assert client.get("/nope.css", auth=auth).status_code == 404


def test_path_traversal_rejected(settings, client, auth):
    (settings.static_dir.parent / "secret.txt").write_text("hidden")
    resp = client.get("/..%2Fsecret.txt", auth=auth)
    assert resp.status_code == 404


def test_auth_disabled_serves_everything(settings, client):
    settings.auth_enabled = False
    settings.image_path.write_bytes(FRAME)
    assert client.get("/config").status_code == 200
    assert client.get("/current-image").content == FRAME
    assert client.get("/").status_code == 200


def test_health_is_unauthenticated(client):
    live = client.get("/health/live")
    assert live.status_code == 200
    assert live.json()["ok"] is True
    # lifespan not started: scheduler missing
    assert client.get("/health/ready").status_code == 503


def test_capture_status_requires_running_controller(client, auth):
    assert client.get("/capture/status").status_code == 401
    assert client.get("/capture/status", auth=auth).status_code == 503


def test_capture_status_payload(settings, app, client, auth):
    app.state.controller = CaptureController(settings)
    data = client.get("/capture/status", auth=auth).json()
    assert data["state"] == "idle"
    assert data["imageAvailable"] is False
    assert data["lastAttempt"] is None
    assert data["probe"] is None


def test_unreachable_source_keeps_image_missing(settings, client, auth, make_runner, sleep_recorder):
    settings.max_retries = 1
    ctl = CaptureController(settings, runner=make_runner("timeout", "fail"), sleep=sleep_recorder)

    assert asyncio.run(ctl.run_session()) is CaptureState.GIVE_UP
    resp = client.get("/current-image", auth=auth)
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Image not available"


def test_give_up_after_success_serves_previous_frame(
    settings, client, auth, make_runner, sleep_recorder
):
    runner = make_runner(("ok", b"good-frame"), "fail", "timeout", "spawn")
    ctl = CaptureController(settings, runner=runner, sleep=sleep_recorder)

    assert asyncio.run(ctl.run_session()) is CaptureState.SUCCESS
    first = client.get("/current-image", auth=auth)
    assert first.status_code == 200
    assert first.content == b"good-frame"

    assert asyncio.run(ctl.run_session()) is CaptureState.GIVE_UP
    second = client.get("/current-image", auth=auth)
    assert second.status_code == 200
    assert second.content == first.content
