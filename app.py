"""Application entry point for the Slack Approval Flow bot."""

from __future__ import annotations

from pathlib import Path
from uuid import uuid4

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

import structlog

from slack_approval_flow.approvals import ApprovalWorkflow
from slack_approval_flow.background import TaskLauncher, run_async
from slack_approval_flow.config import AppSettings, get_settings
from slack_approval_flow.dispatcher import Acknowledgement, InteractionDispatcher
from slack_approval_flow.errors import SlackRequestError
from slack_approval_flow.logging_config import configure_logging
from slack_approval_flow.security import verify_slack_request
from slack_approval_flow.slack_client import SlackClient

_LOGGING_CONFIGURED = False


def _load_version() -> str:
    version_file = Path(__file__).resolve().parent / "VERSION"
    if version_file.exists():
        return version_file.read_text(encoding="utf-8").strip()
    return "unknown"


def _warn_on_degraded_settings(settings: AppSettings) -> None:
    log = structlog.get_logger()
    if not settings.bot_token:
        log.warning(
            "bot_token_missing",
            detail="SLACK_BOT_TOKEN not set. The bot will not be able to communicate with Slack.",
        )
    if not settings.verification_enabled:
        log.warning(
            "signature_verification_disabled",
            detail="SLACK_SIGNING_SECRET not set. Every inbound request will be accepted unverified.",
        )


def _register_error_handlers(flask_app: Flask) -> None:
    """Register JSON error handlers for Slack request failures and crashes."""

    @flask_app.errorhandler(SlackRequestError)
    def handle_slack_request_error(error: SlackRequestError):  # type: ignore[override]
        response = jsonify(error.body())
        response.status_code = error.status_code
        return response

    @flask_app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):  # type: ignore[override]
        if isinstance(error, HTTPException):
            return error
        trace_id = str(uuid4())
        flask_app.logger.exception(
            "Unhandled application error", extra={"trace_id": trace_id}, exc_info=error
        )
        response = jsonify({"error": "internal_server_error", "trace_id": trace_id})
        response.status_code = 500
        return response


def _reject_unverified(settings: AppSettings):
    """Return a 401 response when the current request is not signed by Slack."""

    verification = verify_slack_request(
        request.headers,
        request.get_data(cache=True),
        settings.signing_secret,
    )
    if verification.allowed:
        return None
    response = jsonify({"error": verification.reason})
    response.status_code = 401
    return response


def _acknowledge(ack: Acknowledgement):
    if ack.body is None:
        return "", ack.status_code
    return jsonify(ack.body), ack.status_code


def create_app(
    settings: AppSettings | None = None,
    *,
    slack_client: SlackClient | None = None,
    launcher: TaskLauncher | None = None,
) -> Flask:
    """Create and configure the Flask application."""

    global _LOGGING_CONFIGURED
    if settings is None:
        settings = get_settings()
    if not _LOGGING_CONFIGURED:
        configure_logging(settings.log_level)
        _LOGGING_CONFIGURED = True

    _warn_on_degraded_settings(settings)

    slack_client = slack_client or SlackClient(token=settings.bot_token)
    dispatcher = InteractionDispatcher(
        ApprovalWorkflow(slack_client),
        command_name=settings.command_name,
        launcher=launcher or run_async,
    )

    flask_app = Flask(__name__)
    flask_app.config["APP_VERSION"] = _load_version()
    flask_app.logger.setLevel(settings.log_level)
    _register_error_handlers(flask_app)

    @flask_app.route("/slack/commands", methods=["POST"])
    def slack_commands():
        rejection = _reject_unverified(settings)
        if rejection is not None:
            return rejection
        return _acknowledge(dispatcher.dispatch_command(request.form))

    @flask_app.route("/slack/interactions", methods=["POST"])
    def slack_interactions():
        rejection = _reject_unverified(settings)
        if rejection is not None:
            return rejection
        return _acknowledge(dispatcher.dispatch_interaction(request.form))

    @flask_app.route("/health", methods=["GET"])
    def health():
        return jsonify(
            {
                "ok": True,
                "version": flask_app.config.get("APP_VERSION", "unknown"),
                "config": "valid",
                "signature_verification": settings.verification_enabled,
            }
        )

    structlog.get_logger().info("app_created", command=settings.command_name)
    return flask_app


if __name__ == "__main__":  # pragma: no cover - manual execution helper
    application_settings = get_settings()
    application = create_app(application_settings)
    application.run(host="0.0.0.0", port=application_settings.port)
