"""Label registry and orphan-label cleanup."""

from email_assistant.labels.registry import LabelEntry, LabelRegistry, LabelSource

__all__ = ["LabelEntry", "LabelRegistry", "LabelSource"]
