"""Service layer helpers (settings persistence)."""

from .settings import FlowThresholdSettings, SecretVault, Settings, SettingsStore, redact_secret

__all__ = ["FlowThresholdSettings", "SecretVault", "Settings", "SettingsStore", "redact_secret"]
