"""Tests for single-email actions and the state container."""

import pytest
from fakes import FakeProvider, StubGenerator, make_email, make_prediction

from email_assistant.config_schema import AppConfig
from email_assistant.core.errors import GenerationTimeoutError, MessageNotFoundError
from email_assistant.db.store import DatabaseStore
from email_assistant.engine.actions import ActionRunner
from email_assistant.engine.state import AssistantState
from email_assistant.generation.base import PURPOSE_ACTION_LEARNING
from email_assistant.labels.registry import LabelEntry
from email_assistant.learning.detector import CorrectionDetector
from email_assistant.learning.profile import DEFAULT_PROFILE, Profile

REWRITE = "# Email Classification Profile\n\n## Spam Patterns\n- Prize notifications"


@pytest.fixture
def inbox() -> FakeProvider:
    return FakeProvider([make_email("m1", ["INBOX"], subject="You won a prize")])


class TestActionRunner:
    """Tests for ActionRunner."""

    async def test_spam_learns_and_saves_profile(
        self, inbox: FakeProvider, state: AssistantState, sample_config: AppConfig
    ) -> None:
        """Test that spam moves the email and persists the rewrite."""
        state.predictions.put(make_prediction("m1", theme=["Finance"]))
        generator = StubGenerator([f"```markdown\n{REWRITE}\n```"])
        runner = ActionRunner(inbox, generator, state, sample_config)

        outcome = await runner.spam("m1")

        assert inbox.calls == [("mark_spam", "m1")]
        assert outcome.profile_update == REWRITE
        assert outcome.email.is_spam
        assert state.profile.content == REWRITE
        assert sample_config.profile_path.read_text() == REWRITE
        assert generator.calls[0]["purpose"] == PURPOSE_ACTION_LEARNING
        assert "Action: spam" in generator.calls[0]["prompt"]

    async def test_no_update_leaves_profile_file_alone(
        self, inbox: FakeProvider, state: AssistantState, sample_config: AppConfig
    ) -> None:
        """Test that NO_UPDATE_NEEDED does not touch the profile."""
        runner = ActionRunner(inbox, StubGenerator(), state, sample_config)

        outcome = await runner.unspam("m1")

        assert outcome.profile_update is None
        assert state.profile.content == DEFAULT_PROFILE
        assert not sample_config.profile_path.exists()

    async def test_label_action_tag(
        self, inbox: FakeProvider, state: AssistantState, sample_config: AppConfig
    ) -> None:
        """Test that label actions are tagged label:<name>."""
        generator = StubGenerator()
        runner = ActionRunner(inbox, generator, state, sample_config)

        await runner.label("m1", "Receipts")

        assert inbox.calls == [("add_label", "m1", "Receipts")]
        assert "Action: label:Receipts" in generator.calls[0]["prompt"]

    async def test_timeout_fails_after_provider_action(
        self, inbox: FakeProvider, state: AssistantState, sample_config: AppConfig
    ) -> None:
        """Test that a learning timeout is raised after the move happened."""
        generator = StubGenerator(
            [GenerationTimeoutError("slow", purpose=PURPOSE_ACTION_LEARNING, timeout=60)]
        )
        runner = ActionRunner(inbox, generator, state, sample_config)

        with pytest.raises(GenerationTimeoutError):
            await runner.spam("m1")

        assert inbox.calls == [("mark_spam", "m1")]
        assert state.profile.content == DEFAULT_PROFILE

    async def test_archive_and_delete_do_not_learn(
        self, inbox: FakeProvider, state: AssistantState, sample_config: AppConfig
    ) -> None:
        """Test that archive and delete skip the generator."""
        generator = StubGenerator()
        runner = ActionRunner(inbox, generator, state, sample_config)

        await runner.archive("m1")
        await runner.delete("m1")

        assert inbox.calls == [("archive", "m1"), ("trash", "m1")]
        assert generator.calls == []

    async def test_unlabel_is_learned_on_next_pass(
        self, state: AssistantState, sample_config: AppConfig
    ) -> None:
        """Test that removing a predicted label shows up as a correction later."""
        provider = FakeProvider([make_email("m1", ["INBOX", "Finance", "Classified"])])
        state.predictions.put(make_prediction("m1", theme=["Finance"]))
        generator = StubGenerator()
        runner = ActionRunner(provider, generator, state, sample_config)

        outcome = await runner.unlabel("m1", "Finance")
        learning = await CorrectionDetector(provider, state.predictions).detect_corrections()

        assert provider.calls == [("remove_label", "m1", "Finance")]
        assert "Finance" not in outcome.email.labels
        assert generator.calls == []
        assert [c.removed_labels for c in learning.corrections] == [["Finance"]]

    async def test_unknown_email(
        self, inbox: FakeProvider, state: AssistantState, sample_config: AppConfig
    ) -> None:
        """Test that a missing email surfaces the not-found error."""
        runner = ActionRunner(inbox, StubGenerator(), state, sample_config)
        with pytest.raises(MessageNotFoundError):
            await runner.spam("nope")


class TestAssistantState:
    """Tests for loading and saving AssistantState."""

    async def test_load_fresh_state(self, sample_config: AppConfig) -> None:
        """Test that a new state dir yields default profile and empty stores."""
        state = await AssistantState.load(sample_config, DatabaseStore(sample_config.database_path))

        assert state.profile.content == DEFAULT_PROFILE
        assert len(state.predictions) == 0
        assert len(state.registry) == 0

    async def test_save_then_load(self, sample_config: AppConfig) -> None:
        """Test that saved state is what the next command loads."""
        store = DatabaseStore(sample_config.database_path)
        state = await AssistantState.load(sample_config, store)
        state.profile = Profile(REWRITE)
        state.predictions.put(make_prediction("m1", theme=["Work"]))
        state.registry.add(LabelEntry(name="Work", source="llm", email_count=1))

        await state.save()
        reloaded = await AssistantState.load(sample_config, DatabaseStore(sample_config.database_path))

        assert reloaded.profile.content == REWRITE
        assert [p.email_id for p in reloaded.predictions] == ["m1"]
        assert reloaded.registry.get("Work").email_count == 1
