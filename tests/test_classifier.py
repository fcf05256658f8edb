"""Tests for the email classifier and response parsing."""

import json

import pytest
from fakes import StubGenerator, make_email

from email_assistant.classifier.classifier import (
    Classification,
    EmailClassifier,
    clean_labels,
    extract_json,
    parse_classification,
)
from email_assistant.classifier.prompts import build_classification_prompt
from email_assistant.config_schema import AppConfig
from email_assistant.core.errors import ClassificationError, GenerationTimeoutError
from email_assistant.generation.base import PURPOSE_CLASSIFICATION
from email_assistant.learning.profile import Profile

VALID_RESPONSE = json.dumps(
    {
        "is_spam": False,
        "theme": ["finance"],
        "action": ["Important"],
        "archive": False,
        "delete": False,
        "confidence": 0.92,
    }
)


class TestExtractJson:
    """Tests for extract_json()."""

    def test_leading_object_is_brace_matched(self) -> None:
        """Test that trailing text after the object is dropped."""
        assert extract_json('{"a": {"b": 1}} trailing {x}') == '{"a": {"b": 1}}'

    def test_fenced_json(self) -> None:
        """Test a ```json fenced response."""
        text = 'Result:\n```json\n{"is_spam": true}\n```'
        assert extract_json(text) == '{"is_spam": true}'

    def test_embedded_object(self) -> None:
        """Test first-brace to last-brace fallback."""
        assert extract_json('Sure: {"theme": ["Work"]} hope that helps') == '{"theme": ["Work"]}'

    def test_no_object(self) -> None:
        """Test that text without braces raises ValueError."""
        with pytest.raises(ValueError):
            extract_json("I cannot classify this")


class TestParseClassification:
    """Tests for parse_classification()."""

    def test_normalises_labels(self) -> None:
        """Test capitalisation and removal of the classified marker."""
        classification = parse_classification(
            '{"theme": ["finance", " ", "classified"], "action": "needs-Reply", "confidence": 3}'
        )
        assert classification.theme == ["Finance"]
        assert classification.action == ["Needs-Reply"]
        assert classification.confidence == 1.0

    def test_non_object_rejected(self) -> None:
        """Test that a JSON array is not a classification."""
        with pytest.raises(ValueError):
            parse_classification("[1, 2]")

    def test_invalid_field_type(self) -> None:
        """Test that a wrongly typed field is a ValueError."""
        with pytest.raises(ValueError):
            parse_classification('{"is_spam": "perhaps"}')

    def test_clean_labels_custom_marker(self) -> None:
        """Test that a configured marker is dropped case-insensitively."""
        assert clean_labels(["Done", "work"], classified_label="done") == ["Work"]

    def test_labels_theme_then_action(self) -> None:
        """Test the combined label list."""
        assert Classification(theme=["A"], action=["B"]).labels() == ["A", "B"]


class TestEmailClassifier:
    """Tests for EmailClassifier.classify()."""

    @pytest.fixture
    def config(self) -> AppConfig:
        return AppConfig()

    async def test_classify(self, config: AppConfig) -> None:
        """Test a successful classification call."""
        generator = StubGenerator([VALID_RESPONSE])
        classifier = EmailClassifier(generator, Profile(), config)

        classification = await classifier.classify(make_email("m1", subject="Invoice #42"))

        assert classification.theme == ["Finance"]
        assert classification.action == ["Important"]
        call = generator.calls[0]
        assert call["purpose"] == PURPOSE_CLASSIFICATION
        assert call["timeout"] == config.generation.classify_timeout_seconds
        assert "Subject: Invoice #42" in call["prompt"]
        assert "# Email Classification Profile" in call["prompt"]

    async def test_retries_unparseable_response(self, config: AppConfig) -> None:
        """Test that one bad response is retried."""
        generator = StubGenerator(["no json here", VALID_RESPONSE])
        classifier = EmailClassifier(generator, Profile(), config)

        classification = await classifier.classify(make_email("m1"))

        assert len(generator.calls) == 2
        assert classification.confidence == 0.92

    async def test_gives_up_after_attempts(self, config: AppConfig) -> None:
        """Test that repeated bad responses raise ClassificationError."""
        generator = StubGenerator(["nope", "still nope"])
        classifier = EmailClassifier(generator, Profile(), config)

        with pytest.raises(ClassificationError) as exc_info:
            await classifier.classify(make_email("m1"))

        assert exc_info.value.email_id == "m1"
        assert len(generator.calls) == 2

    async def test_generation_failure_not_retried(self, config: AppConfig) -> None:
        """Test that a timeout fails immediately."""
        generator = StubGenerator([GenerationTimeoutError("slow", purpose=PURPOSE_CLASSIFICATION)])
        classifier = EmailClassifier(generator, Profile(), config)

        with pytest.raises(ClassificationError):
            await classifier.classify(make_email("m1"))

        assert len(generator.calls) == 1


class TestClassificationPrompt:
    """Tests for build_classification_prompt()."""

    def test_body_is_truncated(self) -> None:
        """Test that only the preview of the body is sent."""
        email = make_email("m1", body="x" * 50 + "TAIL")
        prompt = build_classification_prompt("# profile", email, body_preview_chars=50)
        assert "x" * 50 in prompt
        assert "TAIL" not in prompt
