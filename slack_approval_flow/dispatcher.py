"""Routing of slash commands and interaction payloads to approval handlers.

Slack expects an answer within three seconds, so every dispatch decides its
acknowledgement first and hands the actual work to a launcher. Whatever the
handler does afterwards (including failing) cannot change the response.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Protocol
from uuid import uuid4

import structlog
from structlog.contextvars import bind_contextvars, unbind_contextvars

from .actions import ActionValue, parse_action_value
from .background import TaskLauncher, run_async
from .blocks import APPROVE_ACTION_ID, REJECT_ACTION_ID
from .errors import MalformedPayloadError, UnknownCommandError, UnrecognizedActionError

RECOGNIZED_ACTION_IDS = frozenset({APPROVE_ACTION_ID, REJECT_ACTION_ID})


@dataclass(frozen=True)
class Acknowledgement:
    """Response handed back to Slack before any handler runs."""

    status_code: int = 200
    body: Dict[str, Any] | None = None


@dataclass(frozen=True)
class SlashCommand:
    command: str
    trigger_id: str
    user_id: str | None = None


@dataclass(frozen=True)
class ButtonAction:
    """A click on the Approve or Reject button of an approval request."""

    action_id: str
    is_approved: bool
    value: ActionValue
    user_id: str | None
    channel_id: str | None
    message_ts: str | None
    payload: Dict[str, Any] = field(repr=False, default_factory=dict)

    @property
    def approval_text(self) -> str:
        return self.value.approval_text

    @property
    def requester_id(self) -> str:
        return self.value.requester_id


class InteractionHandlers(Protocol):
    def on_command(self, command: SlashCommand) -> None: ...

    def on_view_submission(self, payload: Dict[str, Any]) -> None: ...

    def on_button_action(self, action: ButtonAction) -> None: ...

    def on_unhandled(self, payload: Dict[str, Any]) -> None: ...


def parse_interaction_payload(form: Mapping[str, Any]) -> Dict[str, Any]:
    """Decode the JSON document Slack embeds in the ``payload`` form field."""

    raw = form.get("payload")
    if not isinstance(raw, str) or not raw:
        raise MalformedPayloadError("Interaction payload is missing.")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise MalformedPayloadError("Interaction payload is not valid JSON.") from exc
    if not isinstance(payload, dict):
        raise MalformedPayloadError("Interaction payload must be a JSON object.")
    return payload


def _nested_id(payload: Mapping[str, Any], key: str) -> str | None:
    section = payload.get(key)
    if isinstance(section, dict):
        value = section.get("id")
        return value if isinstance(value, str) else None
    return None


def _message_ts(payload: Mapping[str, Any]) -> str | None:
    message = payload.get("message")
    if isinstance(message, dict) and isinstance(message.get("ts"), str):
        return message["ts"]
    container = payload.get("container")
    if isinstance(container, dict) and isinstance(container.get("message_ts"), str):
        return container["message_ts"]
    return None


def parse_button_action(payload: Dict[str, Any]) -> ButtonAction:
    """Build a :class:`ButtonAction` from the first action of *payload*.

    Only ``actions[0]`` is considered; Slack sends one action per click for
    the buttons this app renders.
    """

    actions = payload.get("actions")
    if not isinstance(actions, list) or not actions or not isinstance(actions[0], dict):
        raise UnrecognizedActionError("Block actions payload carries no actions.")

    action = actions[0]
    action_id = action.get("action_id")
    if action_id not in RECOGNIZED_ACTION_IDS:
        raise UnrecognizedActionError(f"Unrecognized action id {action_id!r}.")

    return ButtonAction(
        action_id=action_id,
        is_approved=action_id == APPROVE_ACTION_ID,
        value=parse_action_value(action.get("value")),
        user_id=_nested_id(payload, "user"),
        channel_id=_nested_id(payload, "channel"),
        message_ts=_message_ts(payload),
        payload=payload,
    )


class InteractionDispatcher:
    """Acknowledge Slack requests and launch exactly one handler per request."""

    def __init__(
        self,
        handlers: InteractionHandlers,
        *,
        command_name: str,
        launcher: TaskLauncher = run_async,
    ) -> None:
        self._handlers = handlers
        self._command_name = command_name
        self._launcher = launcher

    def _launch(self, handler, argument, *, trace_id: str) -> None:
        structlog.get_logger().info(
            "handler_dispatched", handler=getattr(handler, "__name__", repr(handler))
        )
        self._launcher(handler, argument, trace_id=trace_id)

    def dispatch_command(self, form: Mapping[str, Any]) -> Acknowledgement:
        """Acknowledge a slash command and launch the command handler."""

        trace_id = str(uuid4())
        bind_contextvars(trace_id=trace_id)
        log = structlog.get_logger()
        try:
            name = (form.get("command") or "").strip()
            log.info("slash_command_received", command=name, user_id=form.get("user_id"))

            if name != self._command_name:
                log.info("slash_command_unknown", command=name)
                raise UnknownCommandError(f"Unknown command {name!r}.")

            trigger_id = (form.get("trigger_id") or "").strip()
            if not trigger_id:
                raise MalformedPayloadError("Slash command is missing trigger_id.")

            command = SlashCommand(
                command=name,
                trigger_id=trigger_id,
                user_id=form.get("user_id") or None,
            )
            ack = Acknowledgement()
            log.info("interaction_acknowledged", kind="command")
            self._launch(self._handlers.on_command, command, trace_id=trace_id)
            return ack
        finally:
            unbind_contextvars("trace_id")

    def dispatch_interaction(self, form: Mapping[str, Any]) -> Acknowledgement:
        """Acknowledge an interaction payload and route it by ``type``."""

        trace_id = str(uuid4())
        bind_contextvars(trace_id=trace_id)
        log = structlog.get_logger()
        try:
            log.info("interaction_received")
            try:
                payload = parse_interaction_payload(form)
            except MalformedPayloadError:
                log.warning("interaction_payload_invalid")
                raise

            interaction_type = payload.get("type")
            log = log.bind(interaction_type=interaction_type, user_id=_nested_id(payload, "user"))
            log.info("interaction_classified")

            ack = Acknowledgement()
            log.info("interaction_acknowledged", kind=interaction_type)

            if interaction_type == "view_submission":
                self._launch(self._handlers.on_view_submission, payload, trace_id=trace_id)
            elif interaction_type == "block_actions":
                try:
                    action = parse_button_action(payload)
                except UnrecognizedActionError as exc:
                    log.info("block_action_ignored", reason=str(exc))
                except MalformedPayloadError:
                    log.warning("action_value_invalid")
                else:
                    self._launch(self._handlers.on_button_action, action, trace_id=trace_id)
            else:
                self._handlers.on_unhandled(payload)
            return ack
        finally:
            unbind_contextvars("trace_id")
