"""Tests for the user rule overlay."""

import json
from pathlib import Path

import pytest
from fakes import make_email

from email_assistant.classifier.classifier import Classification
from email_assistant.classifier.rules import Rule, apply_rules, load_rules
from email_assistant.core.errors import ConfigLoadError


def rule(name: str, field: str, contains: str, action: str, and_: str | None = None) -> Rule:
    condition = {"field": field, "contains": contains}
    if and_:
        condition["and"] = and_
    return Rule.model_validate({"name": name, "condition": condition, "action": action})


class TestApplyRules:
    """Tests for apply_rules()."""

    def test_delete_clears_archive(self) -> None:
        """Test that a delete rule forces delete and clears archive."""
        email = make_email("m1", to="orders@Shop.Example.com")
        classification = Classification(archive=True)

        matched = apply_rules(
            email, classification, [rule("shop", "to", "shop.example.com", "delete")]
        )

        assert matched == ["shop"]
        assert classification.delete is True
        assert classification.archive is False

    def test_archive_rule_matches_subject(self) -> None:
        """Test a case-insensitive subject match."""
        email = make_email("m1", subject="Your WEEKLY Digest")
        classification = Classification()

        apply_rules(email, classification, [rule("digest", "subject", "weekly digest", "archive")])

        assert classification.archive is True

    def test_gated_rule_requires_classifier_verdict(self) -> None:
        """Test that an "and" gate only matches when the verdict agrees."""
        email = make_email("m1", sender="promo@store.com")
        gated = [rule("promo", "from", "store.com", "delete", and_="archive")]

        not_archived = Classification(archive=False)
        assert apply_rules(email, not_archived, gated) == []
        assert not_archived.delete is False

        archived = Classification(archive=True)
        assert apply_rules(email, archived, gated) == ["promo"]
        assert archived.delete is True

    def test_later_rules_override(self) -> None:
        """Test that rules apply in order and later ones win."""
        email = make_email("m1", sender="news@list.org")
        classification = Classification()

        apply_rules(
            email,
            classification,
            [
                rule("drop", "from", "list.org", "delete"),
                rule("keep", "from", "news@", "archive"),
            ],
        )

        assert classification.delete is True
        assert classification.archive is True

    def test_unknown_field_never_matches(self) -> None:
        """Test that an unsupported field is ignored."""
        classification = Classification()
        assert apply_rules(make_email("m1"), classification, [rule("x", "body", "", "delete")]) == []
        assert classification.delete is False


class TestLoadRules:
    """Tests for load_rules()."""

    def test_missing_directory(self, tmp_path: Path) -> None:
        """Test that no rules directory means no rules."""
        assert load_rules(tmp_path / "rules") == []

    def test_loads_json_and_yaml_in_name_order(self, tmp_path: Path) -> None:
        """Test that files load sorted by name across formats."""
        (tmp_path / "b.yaml").write_text(
            "rules:\n"
            "  - name: second\n"
            "    condition: {field: from, contains: x}\n"
            "    action: archive\n"
        )
        (tmp_path / "a.json").write_text(
            json.dumps(
                {
                    "rules": [
                        {
                            "name": "first",
                            "condition": {"field": "to", "contains": "y", "and": "delete"},
                            "action": "delete",
                        }
                    ]
                }
            )
        )
        (tmp_path / "notes.txt").write_text("ignored")

        rules = load_rules(tmp_path)

        assert [r.name for r in rules] == ["first", "second"]
        assert rules[0].condition.and_ == "delete"

    def test_invalid_rule_file(self, tmp_path: Path) -> None:
        """Test that a rule without a condition is a load error."""
        (tmp_path / "bad.json").write_text(json.dumps({"rules": [{"name": "x", "action": "delete"}]}))
        with pytest.raises(ConfigLoadError, match="bad.json"):
            load_rules(tmp_path)

    def test_malformed_json(self, tmp_path: Path) -> None:
        """Test that broken JSON is a load error."""
        (tmp_path / "broken.json").write_text("{not json")
        with pytest.raises(ConfigLoadError):
            load_rules(tmp_path)
