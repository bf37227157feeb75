"""Block Kit builders for the approval modal and approval messages."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List

from .actions import build_action_value

APPROVER_SELECT_BLOCK_ID = "approver_select_block"
APPROVAL_TEXT_BLOCK_ID = "approval_text_block"

APPROVER_SELECT_ACTION_ID = "approver_select"
APPROVAL_TEXT_ACTION_ID = "approval_text"
APPROVE_ACTION_ID = "approve_button"
REJECT_ACTION_ID = "reject_button"


def _plain(text: str, *, emoji: bool | None = None) -> Dict[str, Any]:
    element: Dict[str, Any] = {"type": "plain_text", "text": text}
    if emoji is not None:
        element["emoji"] = emoji
    return element


def _section(text: str) -> Dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def _header(text: str) -> Dict[str, Any]:
    return {"type": "header", "text": _plain(text, emoji=True)}


def _quote(label: str, text: str) -> str:
    return f">*{label}:*\n>{text}"


def _decision_word(is_approved: bool) -> str:
    return "approved" if is_approved else "rejected"


def _approver_element() -> Dict[str, Any]:
    # Slack's own user picker covers the whole workspace without a directory lookup.
    return {
        "type": "users_select",
        "action_id": APPROVER_SELECT_ACTION_ID,
        "placeholder": _plain("Select an approver"),
    }


def build_approval_modal() -> Dict[str, Any]:
    """Build the "Request Approval" modal."""

    return {
        "type": "modal",
        "title": _plain("Request Approval"),
        "submit": _plain("Submit"),
        "close": _plain("Cancel"),
        "blocks": [
            _section("Select a user to request approval from:"),
            {
                "type": "input",
                "block_id": APPROVER_SELECT_BLOCK_ID,
                "label": _plain("Approver"),
                "element": _approver_element(),
            },
            {
                "type": "input",
                "block_id": APPROVAL_TEXT_BLOCK_ID,
                "label": _plain("What do you need approval for?"),
                "element": {
                    "type": "plain_text_input",
                    "action_id": APPROVAL_TEXT_ACTION_ID,
                    "multiline": True,
                    "placeholder": _plain("Provide details about your request..."),
                },
            },
        ],
    }


def build_approval_request_message(
    *,
    requester_id: str,
    requester_name: str,
    approval_text: str,
    request_id: str,
) -> Dict[str, Any]:
    """Message sent to the approver, carrying the Approve/Reject buttons."""

    value = build_action_value(
        request_id=request_id,
        requester_id=requester_id,
        approval_text=approval_text,
    )
    blocks: List[Dict[str, Any]] = [
        _header("Approval Request"),
        _section(f"*<@{requester_id}>* has requested your approval:"),
        _section(f">{approval_text}"),
        {
            "type": "actions",
            "elements": [
                {
                    "type": "button",
                    "text": _plain("Approve", emoji=True),
                    "style": "primary",
                    "action_id": APPROVE_ACTION_ID,
                    "value": value,
                },
                {
                    "type": "button",
                    "text": _plain("Reject", emoji=True),
                    "style": "danger",
                    "action_id": REJECT_ACTION_ID,
                    "value": value,
                },
            ],
        },
    ]
    return {"text": f"{requester_name} has requested your approval", "blocks": blocks}


def build_requester_confirmation_message(*, approver_id: str, approval_text: str) -> Dict[str, Any]:
    """Message telling the requester where their request went."""

    return {
        "text": f"Your approval request has been sent to <@{approver_id}>",
        "blocks": [
            _section(
                f"Your approval request has been sent to <@{approver_id}>. "
                "You'll be notified when they respond."
            ),
            _section(_quote("Your request", approval_text)),
        ],
    }


def build_decision_update_message(
    *,
    requester_id: str,
    approval_text: str,
    is_approved: bool,
    decided_at: datetime,
) -> Dict[str, Any]:
    """Replacement for the approver's message once a button was clicked."""

    word = _decision_word(is_approved)
    badge = ":white_check_mark: Approved" if is_approved else ":x: Rejected"
    stamp = decided_at.strftime("%Y-%m-%d %H:%M:%S %Z").strip()
    return {
        "text": f"You have {word} the request",
        "blocks": [
            _header(f"Request {word.capitalize()}"),
            _section(f"You have *{word}* the request from <@{requester_id}>."),
            _section(_quote("Original request", approval_text)),
            {"type": "context", "elements": [{"type": "mrkdwn", "text": f"{badge} on {stamp}"}]},
        ],
    }


def build_notification_message(*, approver_id: str, approval_text: str, is_approved: bool) -> Dict[str, Any]:
    """Message telling the requester how the approver decided."""

    word = _decision_word(is_approved)
    return {
        "text": f"Your request has been {word} by <@{approver_id}>",
        "blocks": [
            _header(f"Request {word.capitalize()}"),
            _section(f"Your approval request has been *{word}* by <@{approver_id}>."),
            _section(_quote("Original request", approval_text)),
        ],
    }
