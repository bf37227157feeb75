"""Parsing of the values carried by the Approve/Reject buttons."""

from __future__ import annotations

import json

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import MalformedPayloadError


class ActionValue(BaseModel):
    """Context embedded in an approval button and echoed back by Slack."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    request_id: str | None = Field(None, alias="requestId")
    requester_id: str = Field(..., alias="requesterId")
    approval_text: str = Field(..., alias="approvalText")

    @field_validator("requester_id", "approval_text")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


def build_action_value(*, request_id: str | None, requester_id: str, approval_text: str) -> str:
    """Serialise button context in the shape :func:`parse_action_value` expects."""

    value = ActionValue(request_id=request_id, requester_id=requester_id, approval_text=approval_text)
    return json.dumps(value.model_dump(by_alias=True), separators=(",", ":"))


def parse_action_value(raw_value: str | None) -> ActionValue:
    """Parse an untrusted button value into an :class:`ActionValue`."""

    if not isinstance(raw_value, str) or not raw_value:
        raise MalformedPayloadError("Action value is missing.")

    try:
        return ActionValue.model_validate_json(raw_value, strict=True)
    except ValidationError as exc:
        raise MalformedPayloadError("Invalid action value.") from exc
