"""Explicit results for wizard transitions and intents."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from stepwizard.types import FieldErrors


class Outcome(StrEnum):
    """Why a transition or intent did (or did not) take effect."""

    ACCEPTED = "accepted"
    OUT_OF_RANGE = "out_of_range"
    AT_BOUNDARY = "at_boundary"
    DENIED = "denied"
    INVALID = "invalid"
    NOT_TERMINAL = "not_terminal"
    PENDING_CONFIRMATION = "pending_confirmation"
    FAILED = "failed"
    STALE = "stale"


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a transition plus the current index after it was applied."""

    outcome: Outcome
    index: int
    errors: FieldErrors = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.ACCEPTED

    def __bool__(self) -> bool:
        return self.ok


__all__ = ["Outcome", "TransitionResult"]
