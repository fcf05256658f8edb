"""Prompt templates for profile rewrites.

Both prompts hand the model the full current profile and ask for either the
complete updated profile or the NO_UPDATE_NEEDED sentinel.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from email_assistant.learning.detector import Correction
    from email_assistant.learning.predictions import Prediction
    from email_assistant.providers.base import Email

NO_UPDATE_SENTINEL = "NO_UPDATE_NEEDED"

PROFILE_UPDATE_TEMPLATE = """The user corrected these email classifications. Update the profile rules to prevent these mistakes.

Corrections:
{corrections}

Current profile:
{profile}

Output the COMPLETE updated profile.md with new rules/patterns added.
If no meaningful patterns can be extracted, respond with just: NO_UPDATE_NEEDED"""

ACTION_LEARNING_TEMPLATE = """The user took an action on an email. Update the classification profile to learn from this.

Action: {action}
{prediction}

Email:
From: {sender}
Subject: {subject}
Body preview: {body_preview}

Current profile:
{profile}

If this action reveals a new pattern that should be added to the profile, output the COMPLETE updated profile.md.
If no update is needed (the profile already covers this case), respond with just: NO_UPDATE_NEEDED"""


def format_labels(labels: list[str]) -> str:
    """Render a label list as a bracketed, quoted list: ["Work", "Urgent"]."""
    return json.dumps(list(labels), ensure_ascii=False)


def format_correction(correction: Correction) -> str:
    return (
        f"- From: {correction.sender}\n"
        f"  Subject: {correction.subject}\n"
        f"  Predicted: {format_labels(correction.predicted_labels)}\n"
        f"  Actual: {format_labels(correction.actual_labels)}"
    )


def build_profile_update_prompt(corrections: list[Correction], profile_text: str) -> str:
    return PROFILE_UPDATE_TEMPLATE.format(
        corrections="\n\n".join(format_correction(c) for c in corrections),
        profile=profile_text,
    )


def build_action_prompt(
    action: str,
    email: Email,
    prediction: Prediction | None,
    profile_text: str,
    body_preview_chars: int = 500,
) -> str:
    if prediction is not None:
        prediction_line = (
            f"Previous prediction: is_spam={str(prediction.is_spam).lower()}, "
            f"labels={format_labels(prediction.all_labels())}"
        )
    else:
        prediction_line = "No previous prediction"

    return ACTION_LEARNING_TEMPLATE.format(
        action=action,
        prediction=prediction_line,
        sender=email.sender,
        subject=email.subject,
        body_preview=email.body[:body_preview_chars],
        profile=profile_text,
    )
