"""Tests for the Flask application factory and Slack endpoints."""

import json
from pathlib import Path
import sys
import time
from urllib.parse import urlencode

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:  # pragma: no cover
    sys.path.insert(0, str(ROOT))

import app as app_module  # noqa: E402
from slack_approval_flow import security  # noqa: E402
from slack_approval_flow.background import run_inline  # noqa: E402
from slack_approval_flow.config import AppSettings  # noqa: E402

SECRET = "secret"


class DummySlack:
    def __init__(self):
        self.calls = []

    def list_users(self):
        self.calls.append(("list_users", {}))
        return []

    def open_modal(self, **kwargs):
        self.calls.append(("open_modal", kwargs))

    def get_user_display_name(self, user_id):
        self.calls.append(("get_user_display_name", {"user_id": user_id}))
        return "Ada"

    def post_message(self, **kwargs):
        self.calls.append(("post_message", kwargs))

    def update_message(self, **kwargs):
        self.calls.append(("update_message", kwargs))

    def named(self, operation):
        return [kwargs for name, kwargs in self.calls if name == operation]


def _settings(secret=SECRET):
    return AppSettings.model_validate({"SLACK_BOT_TOKEN": "xoxb-test", "SLACK_SIGNING_SECRET": secret})


@pytest.fixture
def slack():
    return DummySlack()


@pytest.fixture
def client(slack):
    flask_app = app_module.create_app(_settings(), slack_client=slack, launcher=run_inline)
    return flask_app.test_client()


def _signed_post(client, path, fields, *, secret=SECRET, timestamp=None, tamper=False):
    body = urlencode(fields).encode("utf-8")
    timestamp = str(int(time.time())) if timestamp is None else timestamp
    signature = security.compute_signature(secret, timestamp, body)
    if tamper:
        body = body.replace(b"U1", b"U9")
    return client.post(
        path,
        data=body,
        content_type="application/x-www-form-urlencoded",
        headers={
            "X-Slack-Signature": signature,
            "X-Slack-Request-Timestamp": timestamp,
        },
    )


def test_command_acknowledges_and_opens_modal(client, slack):
    response = _signed_post(
        client,
        "/slack/commands",
        {"command": "/approval-test", "trigger_id": "T1", "user_id": "U1"},
    )

    assert response.status_code == 200
    assert response.data == b""
    [call] = slack.named("open_modal")
    assert call["trigger_id"] == "T1"


def test_unknown_command_gets_neutral_reply(client, slack):
    response = _signed_post(client, "/slack/commands", {"command": "/other", "trigger_id": "T1"})

    assert response.status_code == 200
    assert response.get_json()["text"] == "Unknown command"
    assert slack.calls == []


def test_invalid_json_payload_returns_bad_request(client, slack):
    response = _signed_post(client, "/slack/interactions", {"payload": "{not valid json"})

    assert response.status_code == 400
    assert response.get_json() == {"error": "invalid_payload"}
    assert slack.calls == []


def test_reject_click_notifies_requester(client, slack):
    payload = {
        "type": "block_actions",
        "user": {"id": "U2"},
        "channel": {"id": "D42"},
        "message": {"ts": "1700000000.000100"},
        "actions": [
            {
                "action_id": "reject_button",
                "value": '{"requesterId":"U1","approvalText":"buy a laptop"}',
            }
        ],
    }

    response = _signed_post(client, "/slack/interactions", {"payload": json.dumps(payload)})

    assert response.status_code == 200
    assert response.data == b""
    [notification] = slack.named("post_message")
    assert notification["channel"] == "U1"
    assert "rejected" in notification["text"]
    assert "buy a laptop" in json.dumps(notification["blocks"])


def test_view_submission_posts_request(client, slack):
    payload = {
        "type": "view_submission",
        "user": {"id": "U1"},
        "view": {
            "state": {
                "values": {
                    "approver_select_block": {"approver_select": {"selected_user": "U2"}},
                    "approval_text_block": {"approval_text": {"value": "new monitor"}},
                }
            }
        },
    }

    response = _signed_post(client, "/slack/interactions", {"payload": json.dumps(payload)})

    assert response.status_code == 200
    assert [call["channel"] for call in slack.named("post_message")] == ["U2", "U1"]


def test_invalid_signature_returns_unauthorised(client, slack):
    response = _signed_post(
        client,
        "/slack/commands",
        {"command": "/approval-test", "trigger_id": "T1", "user_id": "U1"},
        tamper=True,
    )

    assert response.status_code == 401
    assert response.get_json()["error"] == "invalid_signature"
    assert slack.calls == []


def test_stale_timestamp_rejected(client, slack):
    response = _signed_post(
        client,
        "/slack/interactions",
        {"payload": json.dumps({"type": "shortcut"})},
        timestamp=str(int(time.time()) - 3600),
    )

    assert response.status_code == 401
    assert response.get_json()["error"] == "stale_timestamp"


def test_missing_headers_rejected(client, slack):
    response = client.post("/slack/commands", data={"command": "/approval-test", "trigger_id": "T1"})

    assert response.status_code == 401
    assert response.get_json()["error"] == "missing_header"
    assert slack.calls == []


def test_unsigned_requests_pass_when_secret_missing(slack):
    flask_app = app_module.create_app(_settings(secret=""), slack_client=slack, launcher=run_inline)

    response = flask_app.test_client().post(
        "/slack/commands", data={"command": "/approval-test", "trigger_id": "T2"}
    )

    assert response.status_code == 200
    assert slack.named("open_modal")[0]["trigger_id"] == "T2"


def test_missing_secret_logs_startup_warning(slack):
    from structlog.testing import capture_logs

    with capture_logs() as logs:
        app_module.create_app(_settings(secret=""), slack_client=slack, launcher=run_inline)

    assert any(entry["event"] == "signature_verification_disabled" for entry in logs)


def test_handler_failure_keeps_acknowledgement(slack):
    def broken_open_modal(**kwargs):
        raise RuntimeError("network exploded")

    slack.open_modal = broken_open_modal
    flask_app = app_module.create_app(_settings(), slack_client=slack, launcher=run_inline)

    response = _signed_post(
        flask_app.test_client(),
        "/slack/commands",
        {"command": "/approval-test", "trigger_id": "T1"},
    )

    assert response.status_code == 200
    assert response.data == b""


def test_health_endpoint_returns_ok(client):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.get_json()
    assert data["ok"] is True
    assert data["config"] == "valid"
    assert data["signature_verification"] is True
    assert "version" in data


def test_unknown_route_is_not_turned_into_server_error(client):
    assert client.get("/nope").status_code == 404
