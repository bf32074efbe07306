import os

from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient
import pytest

from secwatch.config import Settings
from secwatch.server import create_app

ORIGIN = "http://localhost:3000"


@pytest.fixture
def client(tmp_path):
    config = Settings(watch_dir=tmp_path, cors_origins=(ORIGIN,))
    with TestClient(create_app(config, watch=False)) as test_client:
        yield test_client


def _fix_message(path, original, replacement, alert_id="alert-1"):
    return {
        "event": "fix-apply",
        "data": {
            "alertId": alert_id,
            "filePath": str(path),
            "originalContent": original,
            "replacementContent": replacement,
        },
    }


def test_healthz_needs_no_origin(client, tmp_path):
    response = client.get("/healthz")

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["watchDir"] == str(tmp_path.resolve())
    assert body["connectedClients"] == 0
    assert len(body["rules"]) == 11


def test_rules_requires_allowed_origin(client):
    assert client.get("/rules").status_code == 403
    assert client.get("/rules", headers={"Origin": "http://evil.example"}).status_code == 403

    response = client.get("/rules", headers={"Origin": ORIGIN})
    assert response.status_code == 200
    rules = response.json()
    assert rules[0] == {
        "id": "password-detection",
        "name": "Hardcoded Password Detection",
        "severity": "critical",
        "description": "Detects potential hardcoded passwords in source code",
    }


def test_fix_validate(client, tmp_path):
    target = tmp_path / "app.js"
    target.write_text("scanned")
    body = {"filePath": str(target), "originalContent": "scanned", "replacementContent": "fixed"}

    ok = client.post("/fix/validate", json=body, headers={"Origin": ORIGIN})
    stale = client.post("/fix/validate", json={**body, "originalContent": "other"}, headers={"Origin": ORIGIN})

    assert ok.json()["valid"] is True
    assert stale.json()["valid"] is False
    assert stale.json()["code"] == "stale"
    assert target.read_text() == "scanned"


def test_websocket_greets_with_watch_dir(client, tmp_path):
    with client.websocket_connect("/ws", headers={"origin": ORIGIN}) as ws:
        message = ws.receive_json()

    assert message == {"event": "connection-established", "data": {"watchDir": str(tmp_path.resolve())}}


def test_websocket_rejects_unknown_origin(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws", headers={"origin": "http://evil.example"}) as ws:
            ws.receive_json()


def test_fix_apply_success_reaches_every_client(client, tmp_path):
    target = tmp_path / "app.js"
    target.write_text("old")

    with client.websocket_connect("/ws", headers={"origin": ORIGIN}) as requester:
        with client.websocket_connect("/ws", headers={"origin": ORIGIN}) as observer:
            requester.receive_json()
            observer.receive_json()

            requester.send_json(_fix_message(target, "old", "new"))
            mine = requester.receive_json()
            theirs = observer.receive_json()

    assert mine == theirs
    assert mine["event"] == "fix-complete"
    assert mine["data"]["success"] is True
    assert mine["data"]["alertId"] == "alert-1"
    assert target.read_text() == "new"


def test_fix_apply_stale_goes_to_requester(client, tmp_path):
    target = tmp_path / "app.js"
    target.write_text("edited")

    with client.websocket_connect("/ws", headers={"origin": ORIGIN}) as ws:
        ws.receive_json()
        ws.send_json(_fix_message(target, "old", "new"))
        message = ws.receive_json()

    assert message["event"] == "fix-error"
    assert message["data"]["code"] == "stale"
    assert target.read_text() == "edited"


def test_malformed_messages_get_validation_errors(client, tmp_path):
    target = tmp_path / "app.js"
    target.write_text("old")

    with client.websocket_connect("/ws", headers={"origin": ORIGIN}) as ws:
        ws.receive_json()

        ws.send_text("not json")
        bad_json = ws.receive_json()

        ws.send_json({"event": "fix-apply", "data": {"filePath": 123}})
        bad_types = ws.receive_json()

        # Unknown events are ignored; the next reply belongs to the fix below.
        ws.send_json({"event": "ping", "data": {}})
        ws.send_json(_fix_message(target, "old", "new", alert_id="after-ping"))
        after = ws.receive_json()

    assert bad_json["event"] == "fix-error"
    assert bad_json["data"]["code"] == "validation"
    assert bad_json["data"]["filePath"] == "unknown"
    assert bad_types["event"] == "fix-error"
    assert bad_types["data"]["code"] == "validation"
    assert after["event"] == "fix-complete"
    assert after["data"]["alertId"] == "after-ping"


def test_unresolvable_fix_paths_get_a_reply(client, tmp_path):
    loop_a = tmp_path / "a.js"
    loop_b = tmp_path / "b.js"
    os.symlink(loop_b, loop_a)
    os.symlink(loop_a, loop_b)

    with client.websocket_connect("/ws", headers={"origin": ORIGIN}) as ws:
        ws.receive_json()
        ws.send_json(_fix_message("~nosuchuser_zz/app.js", "x", "y"))
        home = ws.receive_json()
        ws.send_json(_fix_message(loop_a, "x", "y"))
        looped = ws.receive_json()

    validate = client.post(
        "/fix/validate",
        json={"filePath": str(loop_a), "originalContent": "x", "replacementContent": "y"},
        headers={"Origin": ORIGIN},
    )

    assert home["event"] == "fix-error"
    assert home["data"]["code"] == "io"
    assert looped["event"] == "fix-error"
    assert looped["data"]["code"] in ("validation", "io")
    assert validate.status_code == 200
    assert validate.json()["valid"] is False


def test_binary_frames_get_a_validation_error(client, tmp_path):
    target = tmp_path / "app.js"
    target.write_text("old")

    with client.websocket_connect("/ws", headers={"origin": ORIGIN}) as ws:
        ws.receive_json()
        ws.send_bytes(b"\x00\x01")
        binary = ws.receive_json()
        ws.send_json(_fix_message(target, "old", "new"))
        after = ws.receive_json()

    assert binary["event"] == "fix-error"
    assert binary["data"]["code"] == "validation"
    assert after["event"] == "fix-complete"
