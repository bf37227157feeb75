"""Smoke tests for the environment-driven application factory."""

from importlib import reload
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:  # pragma: no cover - import-time guard
    sys.path.insert(0, str(ROOT))

import app as app_module  # noqa: E402  (import after path adjustment)
from slack_approval_flow import config  # noqa: E402


def test_create_app_reads_environment(monkeypatch):
    monkeypatch.setenv("SLACK_BOT_TOKEN", "test-token")
    monkeypatch.setenv("SLACK_SIGNING_SECRET", "test-secret")
    monkeypatch.setenv("SLACK_COMMAND_NAME", "/approve-me")
    config.get_settings.cache_clear()
    reload(app_module)

    flask_app = app_module.create_app()

    with flask_app.test_client() as client:
        response = client.get("/health")
        assert response.status_code == 200
        data = response.get_json()
        assert data["ok"] is True
        assert data["signature_verification"] is True

        unsigned = client.post("/slack/commands", data={"command": "/approve-me", "trigger_id": "T1"})
        assert unsigned.status_code == 401

    config.get_settings.cache_clear()


def test_version_file_is_reported(monkeypatch):
    monkeypatch.delenv("SLACK_SIGNING_SECRET", raising=False)
    config.get_settings.cache_clear()

    flask_app = app_module.create_app()

    assert flask_app.config["APP_VERSION"] == (ROOT / "VERSION").read_text(encoding="utf-8").strip()
    config.get_settings.cache_clear()
