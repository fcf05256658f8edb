"""Command engines: scan pipeline, single-email actions, reports."""

from email_assistant.engine.actions import ActionOutcome, ActionRunner
from email_assistant.engine.reports import DigestResult, build_digest, needs_reply
from email_assistant.engine.scan import ScanEngine, ScanItem, ScanResult
from email_assistant.engine.state import AssistantState

__all__ = [
    "ActionOutcome",
    "ActionRunner",
    "AssistantState",
    "DigestResult",
    "ScanEngine",
    "ScanItem",
    "ScanResult",
    "build_digest",
    "needs_reply",
]
