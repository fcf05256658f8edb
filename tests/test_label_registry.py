"""Tests for the label registry and orphan cleanup."""

from fakes import FakeProvider, make_email

from email_assistant.labels.registry import LabelEntry, LabelRegistry
from email_assistant.learning.profile import Profile
from email_assistant.providers.base import Label

PROFILE = """# Email Classification Profile

## Label Rules

### Newsletters
- Substack

### Receipts
- Order confirmations

## Learned Corrections
"""


class TestLabelRegistry:
    """Tests for registry bookkeeping."""

    def test_record_counts_uses(self) -> None:
        """Test that repeated records increment the count."""
        registry = LabelRegistry()
        registry.record("Work")
        entry = registry.record("Work")
        assert entry.email_count == 2
        assert entry.source == "llm"

    def test_record_keeps_original_source(self) -> None:
        """Test that a provider label stays a provider label."""
        registry = LabelRegistry([LabelEntry(name="Work", source="provider")])
        assert registry.record("Work", source="llm").source == "provider"
        assert registry.llm_labels() == []

    def test_sync_provider_labels_skips_system_and_known(self) -> None:
        """Test that built-ins, the marker and known names are not added."""
        registry = LabelRegistry([LabelEntry(name="Receipts", source="llm")])
        added = registry.sync_provider_labels(
            [
                Label(id="INBOX", name="INBOX"),
                Label(id="Label_1", name="Classified"),
                Label(id="Label_2", name="Receipts"),
                Label(id="Label_3", name="Family"),
            ]
        )
        assert added == 1
        assert registry.get("Family") == LabelEntry(name="Family", source="provider")
        assert registry.get("Receipts").source == "llm"
        assert "INBOX" not in registry

    def test_add_does_not_overwrite(self) -> None:
        """Test that add() leaves existing entries alone."""
        registry = LabelRegistry([LabelEntry(name="Work", source="llm", email_count=4)])
        assert registry.add(LabelEntry(name="Work", source="provider")) is False
        assert registry.get("Work").email_count == 4


class TestLabelCleanup:
    """Tests for find_orphans() and cleanup()."""

    async def test_cleanup_removes_unused_llm_labels(self) -> None:
        """Test that only unused llm labels are dropped, with their rules."""
        provider = FakeProvider(
            [make_email("m1", ["INBOX", "Receipts"])],
            labels=["Newsletters", "Family"],
        )
        registry = LabelRegistry(
            [
                LabelEntry(name="Newsletters", source="llm", email_count=3),
                LabelEntry(name="Receipts", source="llm", email_count=1),
                LabelEntry(name="Family", source="provider"),
            ]
        )
        profile = Profile(PROFILE)

        removed = await registry.cleanup(provider, profile)

        assert removed == ["Newsletters"]
        assert "Newsletters" not in registry
        assert "Receipts" in registry
        assert "Family" in registry
        assert "### Newsletters" not in profile.content
        assert "### Receipts\n- Order confirmations" in profile.content

    async def test_label_missing_at_provider_is_orphan(self) -> None:
        """Test that a label the provider no longer knows is cleaned up."""
        provider = FakeProvider([make_email("m1", ["INBOX"])])
        registry = LabelRegistry([LabelEntry(name="Ghost", source="llm")])

        assert await registry.find_orphans(provider) == ["Ghost"]

    async def test_find_orphans_does_not_mutate(self) -> None:
        """Test that the dry-run listing leaves the registry intact."""
        provider = FakeProvider(labels=["Newsletters"])
        registry = LabelRegistry([LabelEntry(name="Newsletters", source="llm")])

        assert await registry.find_orphans(provider) == ["Newsletters"]
        assert "Newsletters" in registry
