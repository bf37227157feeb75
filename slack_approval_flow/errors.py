"""Error types raised while verifying and routing inbound Slack requests."""

from __future__ import annotations

from typing import Any, Dict


class SlackRequestError(Exception):
    """Base class for failures that map onto an HTTP response."""

    code = "bad_request"
    status_code = 400

    def body(self) -> Dict[str, Any]:
        return {"error": self.code}


class SignatureVerificationError(SlackRequestError):
    """The request could not be proven to come from Slack."""

    code = "verification_error"
    status_code = 401


class MissingHeaderError(SignatureVerificationError):
    code = "missing_header"


class StaleTimestampError(SignatureVerificationError):
    code = "stale_timestamp"


class InvalidSignatureError(SignatureVerificationError):
    code = "invalid_signature"


class VerificationError(SignatureVerificationError):
    code = "verification_error"


class MalformedPayloadError(SlackRequestError, ValueError):
    """The request body or an embedded value could not be parsed."""

    code = "invalid_payload"
    status_code = 400


class UnknownCommandError(SlackRequestError):
    """A slash command other than the registered one reached the app."""

    code = "unknown_command"
    status_code = 200

    def body(self) -> Dict[str, Any]:
        # Slack shows this text to the user, so keep it neutral.
        return {"response_type": "ephemeral", "text": "Unknown command"}


class UnrecognizedActionError(SlackRequestError):
    """A block action carried an action id this app does not handle."""

    code = "unrecognized_action"
    status_code = 200
