"""Email classifier: profile + email in, Classification out.

Error handling strategy:
- Generation failures (timeout, non-zero exit, API error): not retried here;
  surfaced as ClassificationError
- Unparseable or invalid JSON: retried up to MAX_CLASSIFICATION_ATTEMPTS
- After the last attempt: ClassificationError, the scan counts the email
  as failed and moves on

Usage:
    from email_assistant.classifier.classifier import EmailClassifier

    classifier = EmailClassifier(generator, profile, config)
    classification = await classifier.classify(email)
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from email_assistant.classifier.prompts import build_classification_prompt
from email_assistant.core.errors import ClassificationError, GenerationError
from email_assistant.core.logging import get_logger
from email_assistant.generation.base import PURPOSE_CLASSIFICATION
from email_assistant.providers.base import DEFAULT_CLASSIFIED_LABEL

if TYPE_CHECKING:
    from email_assistant.config_schema import AppConfig
    from email_assistant.generation.base import TextGenerator
    from email_assistant.learning.profile import Profile
    from email_assistant.providers.base import Email

logger = get_logger(__name__)

# Max attempts when the response cannot be parsed
MAX_CLASSIFICATION_ATTEMPTS = 2


class Classification(BaseModel):
    """Model verdict for one email."""

    is_spam: bool = False
    theme: list[str] = Field(default_factory=list)
    action: list[str] = Field(default_factory=list)
    archive: bool = False
    delete: bool = False
    confidence: float = 0.0

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, v: float) -> float:
        return min(max(v, 0.0), 1.0)

    @field_validator("theme", "action", mode="before")
    @classmethod
    def coerce_label_list(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v

    def labels(self) -> list[str]:
        return [*self.theme, *self.action]


def capitalize_first(label: str) -> str:
    return label[:1].upper() + label[1:]


def clean_labels(labels: list[str], classified_label: str = DEFAULT_CLASSIFIED_LABEL) -> list[str]:
    """Drop blanks and the classified marker; capitalise the first letter."""
    marker = classified_label.casefold()
    cleaned = []
    for label in labels:
        label = label.strip()
        if not label or label.casefold() == marker:
            continue
        cleaned.append(capitalize_first(label))
    return cleaned


def extract_json(text: str) -> str:
    """Find the JSON object in a model response.

    Tried in order: a response that starts with `{` (brace-matched), a
    fenced ```json block, then first `{` to last `}`.

    Raises:
        ValueError: If no JSON object can be found
    """
    text = text.strip()

    if text.startswith("{"):
        depth = 0
        for i, char in enumerate(text):
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[: i + 1]

    start = text.find("```json")
    if start != -1:
        content_start = start + len("```json")
        end = text.find("```", content_start)
        if end != -1:
            return text[content_start:end].strip()

    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        return text[start : end + 1]

    raise ValueError(f"No JSON object in response: {text[:200]}")


def parse_classification(
    text: str,
    classified_label: str = DEFAULT_CLASSIFIED_LABEL,
) -> Classification:
    """Parse and normalise a classification response.

    Raises:
        ValueError: If the response holds no valid classification
    """
    data = json.loads(extract_json(text))
    if not isinstance(data, dict):
        raise ValueError("Classification response is not a JSON object")
    try:
        classification = Classification.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid classification: {e.error_count()} field error(s)") from e

    classification.theme = clean_labels(classification.theme, classified_label)
    classification.action = clean_labels(classification.action, classified_label)
    return classification


class EmailClassifier:
    """Classifies emails against the current profile.

    Attributes:
        generator: Text generator used for the classification call
        profile: Profile whose text is embedded in every prompt
    """

    def __init__(self, generator: TextGenerator, profile: Profile, config: AppConfig):
        self.generator = generator
        self.profile = profile
        self.body_preview_chars = config.scan.body_preview_chars
        self.classified_label = config.scan.classified_label
        self.timeout = config.generation.classify_timeout_seconds

    async def classify(self, email: Email) -> Classification:
        """Classify one email.

        Raises:
            ClassificationError: If no valid classification could be obtained
        """
        prompt = build_classification_prompt(
            self.profile.content, email, body_preview_chars=self.body_preview_chars
        )

        last_error: str | None = None
        for attempt in range(1, MAX_CLASSIFICATION_ATTEMPTS + 1):
            try:
                response = await self.generator.generate(
                    prompt, purpose=PURPOSE_CLASSIFICATION, timeout=self.timeout
                )
            except GenerationError as e:
                raise ClassificationError(
                    f"Classification failed for email {email.id}: {e}", email_id=email.id
                ) from e

            try:
                classification = parse_classification(response, self.classified_label)
            except ValueError as e:
                last_error = str(e)
                logger.warning(
                    "classification_invalid_response",
                    email_id=email.id,
                    attempt=attempt,
                    error=last_error,
                )
                continue

            logger.debug(
                "email_classified",
                email_id=email.id,
                is_spam=classification.is_spam,
                theme=classification.theme,
                action=classification.action,
                confidence=classification.confidence,
            )
            return classification

        raise ClassificationError(
            f"Classification failed for email {email.id} after "
            f"{MAX_CLASSIFICATION_ATTEMPTS} attempts. Last error: {last_error}",
            email_id=email.id,
        )
