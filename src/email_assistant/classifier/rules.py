"""User-authored rules that override the model's archive/delete verdict.

Rule files live in <state_dir>/rules/ as JSON or YAML, each holding
{"rules": [...]}. Files are loaded in name order and rules are applied in
load order, so a later rule can override an earlier one.

Matching is a case-insensitive substring test on one field (to, from,
subject). No regex is used.

Example rule:
    {"name": "Delete shop mail",
     "condition": {"field": "to", "contains": "shop.example.com", "and": "archive"},
     "action": "delete"}

Usage:
    rules = load_rules(config.rules_dir)
    matched = apply_rules(email, classification, rules)
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from email_assistant.core.errors import ConfigLoadError
from email_assistant.core.logging import get_logger

if TYPE_CHECKING:
    from email_assistant.classifier.classifier import Classification
    from email_assistant.providers.base import Email

logger = get_logger(__name__)

RULE_FILE_SUFFIXES = (".json", ".yaml", ".yml")


class RuleCondition(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    field: str
    contains: str
    # "archive" / "delete": only match when the classification already says so
    and_: str | None = Field(default=None, alias="and")


class Rule(BaseModel):
    name: str
    description: str = ""
    condition: RuleCondition
    action: str


class RuleFile(BaseModel):
    rules: list[Rule] = Field(default_factory=list)


def load_rules(rules_dir: str | Path) -> list[Rule]:
    """Load every rule file in rules_dir, sorted by file name.

    Raises:
        ConfigLoadError: If a rule file cannot be read or is invalid
    """
    rules_dir = Path(rules_dir)
    if not rules_dir.is_dir():
        return []

    rules: list[Rule] = []
    for path in sorted(p for p in rules_dir.iterdir() if p.suffix in RULE_FILE_SUFFIXES):
        try:
            text = path.read_text(encoding="utf-8")
            data = json.loads(text) if path.suffix == ".json" else yaml.safe_load(text)
            rule_file = RuleFile.model_validate(data or {})
        except ValidationError as e:
            raise ConfigLoadError(
                f"Invalid rule file {path}: {e.error_count()} validation error(s)"
            ) from e
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigLoadError(f"Invalid rule file {path}: {e}") from e
        rules.extend(rule_file.rules)

    logger.debug("rules_loaded", count=len(rules), directory=str(rules_dir))
    return rules


def matches_condition(email: Email, classification: Classification, condition: RuleCondition) -> bool:
    field_values = {"to": email.to, "from": email.sender, "subject": email.subject}
    value = field_values.get(condition.field)
    if value is None or condition.contains.lower() not in value.lower():
        return False

    if condition.and_ == "archive":
        return classification.archive
    if condition.and_ == "delete":
        return classification.delete
    return True


def apply_rules(email: Email, classification: Classification, rules: list[Rule]) -> list[str]:
    """Apply matching rules to `classification` in place.

    Returns:
        Names of the rules that matched
    """
    matched = []
    for rule in rules:
        if not matches_condition(email, classification, rule.condition):
            continue
        if rule.action == "delete":
            classification.delete = True
            classification.archive = False
        elif rule.action == "archive":
            classification.archive = True
        else:
            logger.debug("rule_action_unknown", rule=rule.name, action=rule.action)
            continue
        matched.append(rule.name)

    if matched:
        logger.debug("rules_applied", email_id=email.id, rules=matched)
    return matched
