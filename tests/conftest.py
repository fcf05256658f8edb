"""Pytest fixtures and configuration for email assistant tests.

Config and state fixtures are rooted in a temporary directory; the
provider and generator fixtures are the in-memory doubles from fakes.py.
"""

from pathlib import Path

import pytest
from fakes import FakeProvider, StubGenerator

from email_assistant.config_schema import AppConfig
from email_assistant.db.store import DatabaseStore
from email_assistant.engine.state import AssistantState
from email_assistant.labels.registry import LabelRegistry
from email_assistant.learning.predictions import PredictionStore
from email_assistant.learning.profile import Profile


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    """Create a temporary state directory."""
    state = tmp_path / "state"
    state.mkdir()
    return state


@pytest.fixture
def sample_config_yaml(state_dir: Path) -> str:
    """Return a minimal valid config.yaml content."""
    return f"""
schema_version: 1
provider: gmail
state_dir: "{state_dir}"

generation:
  backend: claude_cli
  model: haiku

learning:
  enabled: true
  batch_size: 25

scan:
  max_emails: 20
  classified_label: Classified
"""


@pytest.fixture
def config_file(tmp_path: Path, sample_config_yaml: str) -> Path:
    """Create a temporary config file with valid content."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    config_path = config_dir / "config.yaml"
    config_path.write_text(sample_config_yaml)
    return config_path


@pytest.fixture
def sample_config(state_dir: Path) -> AppConfig:
    """Return an AppConfig whose state lives in the temporary directory."""
    return AppConfig(state_dir=str(state_dir))


@pytest.fixture
def provider() -> FakeProvider:
    """Return an empty in-memory provider."""
    return FakeProvider()


@pytest.fixture
def generator() -> StubGenerator:
    """Return a generator that always answers NO_UPDATE_NEEDED."""
    return StubGenerator()


@pytest.fixture
async def store(sample_config: AppConfig) -> DatabaseStore:
    """Create and initialize a DatabaseStore."""
    store = DatabaseStore(sample_config.database_path)
    await store.initialize()
    return store


@pytest.fixture
def state(sample_config: AppConfig, store: DatabaseStore) -> AssistantState:
    """Return fresh assistant state backed by the temporary database."""
    return AssistantState(
        profile=Profile(),
        predictions=PredictionStore(),
        registry=LabelRegistry(),
        store=store,
        profile_path=sample_config.profile_path,
    )
