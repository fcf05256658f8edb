"""Pydantic configuration schema for the email assistant.

This module defines the configuration schema that mirrors config.yaml
structure. Every section has defaults, so an empty (or missing) config file
yields a working Gmail + Claude CLI setup.

Usage:
    from email_assistant.config_schema import AppConfig

    config = AppConfig(**yaml_data)
    print(config.state_path / "profile.md")
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

# Current schema version - increment when adding new required fields
CURRENT_SCHEMA_VERSION = 1

DEFAULT_STATE_DIR = "~/.config/email-assistant"


def _reject_traversal(v: str, what: str) -> str:
    if not v or not v.strip():
        raise ValueError(f"{what} cannot be empty")
    if ".." in Path(v).parts:
        raise ValueError(f"{what} cannot contain '..' (path traversal)")
    return v


class GmailConfig(BaseModel):
    """Gmail OAuth client configuration."""

    client_id: str | None = Field(default=None, description="Google OAuth client ID")
    client_secret: str | None = Field(default=None, description="Google OAuth client secret")
    token_path: str = Field(
        default="gmail_tokens.json",
        description="Token file, relative to state_dir unless absolute",
    )

    @field_validator("token_path")
    @classmethod
    def validate_token_path(cls, v: str) -> str:
        return _reject_traversal(v, "Token path")


class OutlookConfig(BaseModel):
    """Azure AD authentication configuration for the Outlook provider."""

    client_id: str | None = Field(default=None, description="Azure AD Application (client) ID")
    tenant_id: str = Field(
        default="common",
        description="Azure AD Directory (tenant) ID or 'common' for personal accounts",
    )
    scopes: list[str] = Field(
        default=["Mail.ReadWrite", "MailboxSettings.ReadWrite", "User.Read"],
        description="Microsoft Graph API permission scopes",
    )
    token_cache_path: str = Field(
        default="outlook_token_cache.json",
        description="MSAL token cache file, relative to state_dir unless absolute",
    )

    @field_validator("token_cache_path")
    @classmethod
    def validate_token_cache_path(cls, v: str) -> str:
        return _reject_traversal(v, "Token cache path")


class GenerationConfig(BaseModel):
    """External text-generation backend and per-call time budgets."""

    backend: Literal["claude_cli", "anthropic"] = Field(
        default="claude_cli",
        description="'claude_cli' runs the claude CLI; 'anthropic' calls the API",
    )
    cli_path: str = Field(default="claude", description="claude CLI executable")
    model: str = Field(default="haiku", description="Model alias passed to the claude CLI")
    anthropic_model: str = Field(
        default="claude-haiku-4-5-20251001",
        description="Model used by the anthropic backend",
    )
    max_tokens: int = Field(default=4096, ge=256, le=32000)
    classify_timeout_seconds: float = Field(default=60.0, gt=0, le=600)
    profile_update_timeout_seconds: float = Field(default=90.0, gt=0, le=600)
    action_learning_timeout_seconds: float = Field(default=60.0, gt=0, le=600)


class LearningConfig(BaseModel):
    """Correction learning configuration."""

    enabled: bool = Field(default=True, description="Learn from corrections during scan")
    batch_size: int = Field(
        default=25,
        ge=1,
        le=200,
        description="Max corrections per profile-rewrite call",
    )
    body_preview_chars: int = Field(
        default=500,
        ge=0,
        le=10000,
        description="Body preview length included in action-learning prompts",
    )


class ScanConfig(BaseModel):
    """Scan/classification configuration."""

    max_emails: int = Field(default=50, ge=1, le=500)
    folder: str = Field(default="INBOX", description="Folder/label to scan")
    classified_label: str = Field(
        default="Classified",
        description="Marker label applied to every classified email",
    )
    body_preview_chars: int = Field(default=1000, ge=100, le=10000)
    apply_actions: bool = Field(
        default=True,
        description="Apply spam/archive/delete/labels at the provider",
    )

    @field_validator("classified_label")
    @classmethod
    def validate_classified_label(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Classified label cannot be empty")
        return v.strip()


class AppConfig(BaseModel):
    """Root configuration schema for the email assistant."""

    schema_version: int = Field(
        default=CURRENT_SCHEMA_VERSION,
        ge=1,
        description="Config schema version for migration tracking",
    )
    provider: Literal["gmail", "outlook"] = Field(default="gmail")
    state_dir: str = Field(
        default=DEFAULT_STATE_DIR,
        description="Directory holding profile.md, the database and rules/",
    )

    gmail: GmailConfig = Field(default_factory=GmailConfig)
    outlook: OutlookConfig = Field(default_factory=OutlookConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    learning: LearningConfig = Field(default_factory=LearningConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)

    @property
    def state_path(self) -> Path:
        return Path(self.state_dir).expanduser()

    @property
    def profile_path(self) -> Path:
        return self.state_path / "profile.md"

    @property
    def database_path(self) -> Path:
        return self.state_path / "assistant.db"

    @property
    def rules_dir(self) -> Path:
        return self.state_path / "rules"

    def resolve_state_file(self, path: str) -> Path:
        """Resolve a configured file path against state_dir.

        Args:
            path: Absolute path, or path relative to state_dir

        Returns:
            Absolute path
        """
        p = Path(path).expanduser()
        return p if p.is_absolute() else self.state_path / p
