"""Email classification: prompt, model call, JSON parsing, rule overlay."""

from email_assistant.classifier.classifier import (
    Classification,
    EmailClassifier,
    extract_json,
    parse_classification,
)
from email_assistant.classifier.rules import Rule, apply_rules, load_rules

__all__ = [
    "Classification",
    "EmailClassifier",
    "Rule",
    "apply_rules",
    "extract_json",
    "load_rules",
    "parse_classification",
]
