"""Thin wrapper utilities around the Slack WebClient."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Sequence

import structlog
from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError

USERS_PAGE_SIZE = 200


def slack_error_code(exc: SlackApiError) -> str:
    """Return the Slack ``error`` field of a failed call, or the message."""

    response = getattr(exc, "response", None)
    if response is None:
        return str(exc)
    return response.get("error") or str(exc)


class SlackClient:
    """Encapsulate the Slack Web API calls the approval flow relies on."""

    def __init__(self, *, token: str | None = None, client: WebClient | None = None) -> None:
        if client is None and token is None:
            raise ValueError("Either an instantiated client or a bot token must be provided.")

        self._client = client or WebClient(token=token)

    @property
    def client(self) -> WebClient:
        """Expose the underlying WebClient for advanced use cases."""

        return self._client

    def open_modal(self, *, trigger_id: str, view: Mapping[str, Any]) -> Mapping[str, Any]:
        return self._client.views_open(trigger_id=trigger_id, view=dict(view))

    def post_message(
        self,
        *,
        channel: str,
        text: str,
        blocks: Sequence[Mapping[str, Any]],
    ) -> Mapping[str, Any]:
        """Post a message with Block Kit content to a channel or user."""

        return self._client.chat_postMessage(channel=channel, text=text, blocks=list(blocks))

    def update_message(
        self,
        *,
        channel: str,
        ts: str,
        text: str,
        blocks: Sequence[Mapping[str, Any]],
    ) -> Mapping[str, Any]:
        """Update an existing Slack message."""

        return self._client.chat_update(channel=channel, ts=ts, text=text, blocks=list(blocks))

    def list_users(self, *, page_size: int = USERS_PAGE_SIZE) -> List[Dict[str, Any]]:
        """Return active human members of the workspace.

        Follows ``response_metadata.next_cursor`` until every page is read.
        Bots, Slackbot and deactivated accounts are skipped. A failed lookup is
        logged and yields an empty list so callers can fall back gracefully.
        """

        members: List[Dict[str, Any]] = []
        cursor: str | None = None
        while True:
            kwargs: Dict[str, Any] = {"limit": page_size}
            if cursor:
                kwargs["cursor"] = cursor
            try:
                response = self._client.users_list(**kwargs)
            except SlackApiError as exc:
                structlog.get_logger().warning(
                    "slack_call_failed", operation="users_list", error=slack_error_code(exc)
                )
                return []

            members.extend(response.get("members") or [])
            cursor = (response.get("response_metadata") or {}).get("next_cursor")
            if not cursor:
                break

        return [
            member
            for member in members
            if not member.get("is_bot") and member.get("name") != "slackbot" and not member.get("deleted")
        ]

    def get_user_display_name(self, user_id: str) -> str:
        """Return the user's real name, falling back to their handle."""

        response = self._client.users_info(user=user_id)
        user = response.get("user") or {}
        return user.get("real_name") or user.get("name") or user_id
