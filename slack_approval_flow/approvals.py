"""Handlers that carry an approval request from modal to decision."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Callable, Dict, Mapping
from uuid import uuid4

import structlog
from pydantic import BaseModel, ValidationError
from slack_sdk.errors import SlackApiError

from .blocks import (
    APPROVAL_TEXT_ACTION_ID,
    APPROVAL_TEXT_BLOCK_ID,
    APPROVER_SELECT_ACTION_ID,
    APPROVER_SELECT_BLOCK_ID,
    build_approval_modal,
    build_approval_request_message,
    build_decision_update_message,
    build_notification_message,
    build_requester_confirmation_message,
)
from .dispatcher import ButtonAction, SlashCommand
from .errors import MalformedPayloadError
from .slack_client import SlackClient, slack_error_code


class _ControlState(BaseModel):
    value: str | None = None
    selected_user: str | None = None


class _ViewState(BaseModel):
    values: Dict[str, Dict[str, _ControlState]]


@dataclass(frozen=True)
class ApprovalSubmission:
    requester_id: str
    approver_id: str
    approval_text: str


def parse_submission(payload: Mapping[str, Any]) -> ApprovalSubmission:
    """Extract requester, approver and request text from a modal submission."""

    user = payload.get("user") or {}
    requester_id = user.get("id") if isinstance(user, dict) else None
    if not requester_id:
        raise MalformedPayloadError("Submission has no acting user.")

    view = payload.get("view") or {}
    try:
        state = _ViewState.model_validate((view.get("state") or {}) if isinstance(view, dict) else {})
    except ValidationError as exc:
        raise MalformedPayloadError("Invalid submission state.") from exc

    approver = state.values.get(APPROVER_SELECT_BLOCK_ID, {}).get(APPROVER_SELECT_ACTION_ID)
    approver_id = approver.selected_user if approver is not None else None
    if not approver_id:
        raise MalformedPayloadError(f"{APPROVER_SELECT_BLOCK_ID}: An approver is required.")

    text_state = state.values.get(APPROVAL_TEXT_BLOCK_ID, {}).get(APPROVAL_TEXT_ACTION_ID)
    approval_text = (text_state.value or "").strip() if text_state else ""
    if not approval_text:
        raise MalformedPayloadError(f"{APPROVAL_TEXT_BLOCK_ID}: Describe what needs approval.")

    return ApprovalSubmission(
        requester_id=requester_id,
        approver_id=approver_id,
        approval_text=approval_text,
    )


class ApprovalWorkflow:
    """Production handler set for the approval flow.

    Each Slack call that fails is logged as ``slack_call_failed`` and stops
    the handler at that step; nothing is retried.
    """

    def __init__(
        self,
        slack_client: SlackClient,
        *,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._slack = slack_client
        self._clock = clock or (lambda: datetime.now(UTC))
        self._id_factory = id_factory or (lambda: str(uuid4()))

    def _call(self, operation: str, func: Callable[..., Any], /, **kwargs: Any) -> Any:
        log = structlog.get_logger()
        try:
            return func(**kwargs)
        except SlackApiError as exc:
            response = getattr(exc, "response", None)
            log.error(
                "slack_call_failed",
                operation=operation,
                error=slack_error_code(exc),
                status_code=getattr(response, "status_code", None),
            )
            raise

    def on_command(self, command: SlashCommand) -> None:
        log = structlog.get_logger().bind(user_id=command.user_id)
        users = self._slack.list_users()
        view = build_approval_modal()
        try:
            self._call("views_open", self._slack.open_modal, trigger_id=command.trigger_id, view=view)
        except SlackApiError:
            return
        log.info("approval_modal_opened", user_count=len(users))

    def on_view_submission(self, payload: Dict[str, Any]) -> None:
        log = structlog.get_logger()
        try:
            submission = parse_submission(payload)
        except MalformedPayloadError as exc:
            log.warning("approval_submission_invalid", reason=str(exc))
            return

        request_id = self._id_factory()
        log = log.bind(
            request_id=request_id,
            requester_id=submission.requester_id,
            approver_id=submission.approver_id,
        )

        try:
            requester_name = self._call(
                "users_info", self._slack.get_user_display_name, user_id=submission.requester_id
            )
        except SlackApiError:
            requester_name = submission.requester_id

        request_message = build_approval_request_message(
            requester_id=submission.requester_id,
            requester_name=requester_name,
            approval_text=submission.approval_text,
            request_id=request_id,
        )
        confirmation = build_requester_confirmation_message(
            approver_id=submission.approver_id,
            approval_text=submission.approval_text,
        )
        try:
            self._call(
                "chat_postMessage",
                self._slack.post_message,
                channel=submission.approver_id,
                text=request_message["text"],
                blocks=request_message["blocks"],
            )
            self._call(
                "chat_postMessage",
                self._slack.post_message,
                channel=submission.requester_id,
                text=confirmation["text"],
                blocks=confirmation["blocks"],
            )
        except SlackApiError:
            return
        log.info("approval_request_sent")

    def on_button_action(self, action: ButtonAction) -> None:
        log = structlog.get_logger().bind(
            request_id=action.value.request_id,
            requester_id=action.requester_id,
            approver_id=action.user_id,
            approved=action.is_approved,
        )
        try:
            if action.channel_id and action.message_ts:
                update = build_decision_update_message(
                    requester_id=action.requester_id,
                    approval_text=action.approval_text,
                    is_approved=action.is_approved,
                    decided_at=self._clock(),
                )
                self._call(
                    "chat_update",
                    self._slack.update_message,
                    channel=action.channel_id,
                    ts=action.message_ts,
                    text=update["text"],
                    blocks=update["blocks"],
                )
            else:
                log.warning("approval_message_reference_missing")

            notification = build_notification_message(
                approver_id=action.user_id or "unknown",
                approval_text=action.approval_text,
                is_approved=action.is_approved,
            )
            self._call(
                "chat_postMessage",
                self._slack.post_message,
                channel=action.requester_id,
                text=notification["text"],
                blocks=notification["blocks"],
            )
        except SlackApiError:
            return
        log.info("approval_decision_recorded")

    def on_unhandled(self, payload: Dict[str, Any]) -> None:
        structlog.get_logger().info("interaction_unhandled", interaction_type=payload.get("type"))
