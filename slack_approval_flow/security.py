"""Utilities for validating Slack request signatures."""

from __future__ import annotations

import hmac
import time
from dataclasses import dataclass
from hashlib import sha256
from typing import Mapping

import structlog

from .errors import (
    InvalidSignatureError,
    MissingHeaderError,
    SignatureVerificationError,
    StaleTimestampError,
    VerificationError,
)

SLACK_SIGNATURE_HEADER = "x-slack-signature"
SLACK_TIMESTAMP_HEADER = "x-slack-request-timestamp"
VERSION = "v0"
TIMESTAMP_TOLERANCE_SECONDS = 60 * 5


@dataclass(frozen=True)
class Verification:
    """Outcome of a signature check: allowed, or rejected with a reason code."""

    allowed: bool
    reason: str | None = None

    @classmethod
    def allow(cls) -> "Verification":
        return cls(allowed=True)

    @classmethod
    def reject(cls, error: SignatureVerificationError) -> "Verification":
        return cls(allowed=False, reason=error.code)


def compute_signature(signing_secret: str, timestamp: str, raw_body: bytes) -> str:
    """Return Slack-compatible signature for the provided raw request body."""

    basestring = f"{VERSION}:{timestamp}:".encode("utf-8") + raw_body
    digest = hmac.new(signing_secret.encode("utf-8"), basestring, sha256).hexdigest()
    return f"{VERSION}={digest}"


def _header(headers: Mapping[str, str], name: str) -> str:
    for key, value in headers.items():
        if key.lower() == name:
            return (value or "").strip()
    return ""


def check_slack_request(
    headers: Mapping[str, str],
    raw_body: bytes,
    signing_secret: str,
    current_time: float | None = None,
) -> None:
    """Raise a :class:`SignatureVerificationError` unless the request is authentic."""

    if not signing_secret:
        return

    signature = _header(headers, SLACK_SIGNATURE_HEADER)
    timestamp = _header(headers, SLACK_TIMESTAMP_HEADER)
    if not signature or not timestamp:
        raise MissingHeaderError("Slack signature headers are missing.")

    try:
        request_ts = int(timestamp)
    except ValueError as exc:
        raise VerificationError("Slack timestamp is not an integer.") from exc

    now = time.time() if current_time is None else current_time
    if abs(now - request_ts) > TIMESTAMP_TOLERANCE_SECONDS:
        raise StaleTimestampError("Slack request timestamp is outside the replay window.")

    try:
        expected = compute_signature(signing_secret, timestamp, raw_body)
        matches = hmac.compare_digest(expected, signature)
    except (TypeError, ValueError) as exc:
        raise VerificationError("Slack signature could not be compared.") from exc

    if not matches:
        raise InvalidSignatureError("Slack signature does not match.")


def verify_slack_request(
    headers: Mapping[str, str],
    raw_body: bytes,
    signing_secret: str,
    current_time: float | None = None,
) -> Verification:
    """Validate Slack signature and timestamp to guard against replay attacks.

    An empty *signing_secret* allows every request; callers are expected to
    warn about that mode at startup.
    """

    try:
        check_slack_request(headers, raw_body, signing_secret, current_time)
    except SignatureVerificationError as exc:
        structlog.get_logger().warning("request_rejected", reason=exc.code)
        return Verification.reject(exc)
    except Exception:
        structlog.get_logger().exception("request_verification_crashed")
        return Verification.reject(VerificationError())
    structlog.get_logger().debug("request_verified", enforced=bool(signing_secret))
    return Verification.allow()
