"""Slack Approval Flow package initialisation."""

from .approvals import ApprovalWorkflow  # noqa: F401
from .background import run_async, run_inline  # noqa: F401
from .config import AppSettings, get_settings  # noqa: F401
from .dispatcher import Acknowledgement, ButtonAction, InteractionDispatcher, SlashCommand  # noqa: F401
from .logging_config import configure_logging  # noqa: F401
from .security import Verification, verify_slack_request  # noqa: F401
from .slack_client import SlackClient  # noqa: F401

__all__ = [
    "AppSettings",
    "get_settings",
    "run_async",
    "run_inline",
    "configure_logging",
    "ApprovalWorkflow",
    "Acknowledgement",
    "ButtonAction",
    "InteractionDispatcher",
    "SlashCommand",
    "Verification",
    "verify_slack_request",
    "SlackClient",
]
