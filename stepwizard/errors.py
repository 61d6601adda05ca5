"""Custom exception types for the wizard core."""

from __future__ import annotations


class WizardError(Exception):
    """Base exception for wizard related issues."""


class PersistenceError(WizardError):
    """Raised by storage adapters when reading or writing state fails."""

    def __init__(self, key: str, message: str | None = None) -> None:
        self.key = key
        super().__init__(message or f"Failed to access persisted wizard state at '{key}'")


class ConfigurationError(WizardError):
    """Raised when a wizard configuration payload cannot be parsed."""
