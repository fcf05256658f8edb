"""Classification prompt.

The profile is embedded verbatim; the email is reduced to sender, subject
and a body preview. The model answers with a single JSON object.

Usage:
    from email_assistant.classifier.prompts import build_classification_prompt

    prompt = build_classification_prompt(profile.content, email, body_preview_chars=1000)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from email_assistant.providers.base import Email

# ---------------------------------------------------------------------------
# Label vocabulary
# ---------------------------------------------------------------------------

EXAMPLE_THEMES = (
    "Receipts",
    "Bills",
    "Finance",
    "Health",
    "Shopping",
    "Travel",
    "Work",
    "Personal",
    "Social",
    "Security",
    "Gaming",
    "Shipping",
    "Updates",
)

ACTION_GUIDE = """  - "Newsletters" - regular subscription content you signed up for
  - "Promotional" - ads, sales, marketing from companies (auto-archive)
  - "Needs-Reply" - expects a response from you (questions, requests, invitations). Archive unless reply needed today/tomorrow
  - "Important" - requires your attention today
  - "Urgent" - time-sensitive, needs immediate attention (security alerts are always Urgent)
  - "Awaiting-Reply" - you sent something and are waiting for response, no action needed now (auto-archive)
  - "FYI" - group thread/discussion, you're CC'd or just informed (auto-archive)
  - "Other" - doesn't fit other categories (auto-archive)"""

# ---------------------------------------------------------------------------
# Prompt template
# ---------------------------------------------------------------------------

CLASSIFICATION_TEMPLATE = """You are an email classifier. Analyze this email and assign appropriate labels.

<profile>
{profile}
</profile>

<email>
From: {sender}
Subject: {subject}
Body: {body}
</email>

Classify this email:
- is_spam: true ONLY if clearly malicious/scam/phishing, false for newsletters and promotions
- theme: 1-2 labels describing what email is about. Examples: {themes}
- action: 0+ labels for what to do. Options:
{actions}
- archive: true if email doesn't need to stay in inbox (Newsletters, Promotional, Awaiting-Reply, FYI, Other, Updates, Needs-Reply without urgency, Bills without Needs-Reply, receipts under $500). NEVER archive Security emails
- delete: true if email matches auto-delete rules in profile (check Auto-Delete Rules section)

Respond with JSON only:
{{"is_spam": false, "theme": ["Finance"], "action": ["Important"], "archive": false, "delete": false, "confidence": 0.8}}"""


def build_classification_prompt(
    profile_text: str,
    email: Email,
    body_preview_chars: int = 1000,
) -> str:
    return CLASSIFICATION_TEMPLATE.format(
        profile=profile_text,
        sender=email.sender,
        subject=email.subject,
        body=email.body[:body_preview_chars],
        themes=", ".join(f'"{t}"' for t in EXAMPLE_THEMES),
        actions=ACTION_GUIDE,
    )
