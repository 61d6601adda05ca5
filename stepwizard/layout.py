"""Derived view state handed to the caller's render callback.

Nothing here renders anything: the presentation shell consumes these
structures and calls the bound intents back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

from stepwizard.outcomes import TransitionResult
from stepwizard.step_registry import StepDescriptor
from stepwizard.types import FieldErrors

Intent = Callable[[], Awaitable[TransitionResult] | TransitionResult]


class NavigationDirection(str, Enum):
    """Direction metadata for wizard navigation controls."""

    PREVIOUS = "previous"
    NEXT = "next"
    SKIP = "skip"
    SUBMIT = "submit"
    RESET = "reset"


@dataclass(frozen=True)
class NavigationButtonState:
    """Typed configuration for a single navigation control."""

    direction: NavigationDirection
    enabled: bool = True
    primary: bool = False
    on_click: Intent | None = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class StepIndicator:
    """Per-step flags for progress indicators."""

    index: int
    id: str
    title: str
    is_active: bool
    is_completed: bool
    is_visited: bool
    is_skipped: bool
    is_optional: bool
    is_disabled: bool
    has_errors: bool
    can_jump: bool


@dataclass(frozen=True)
class StepViewState:
    """Everything the render callback needs for the active step."""

    step: StepDescriptor
    index: int
    total_steps: int
    is_completed: bool
    is_visited: bool
    has_errors: bool
    errors: FieldErrors
    progress: int
    completion_progress: int
    is_first_step: bool
    is_last_step: bool
    is_validating: bool
    is_submitting: bool
    is_submitted: bool
    can_go_back: bool
    can_go_next: bool
    can_skip: bool
    can_reset: bool
    pending_reset_confirmation: str | None
    indicators: tuple[StepIndicator, ...]
    previous: NavigationButtonState
    next: NavigationButtonState
    skip: NavigationButtonState
    reset: NavigationButtonState
    on_jump: Callable[[int], Awaitable[TransitionResult]] | None = field(default=None, repr=False, compare=False)
    values: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def can_navigate(self) -> bool:
        return self.can_go_back or self.can_go_next


__all__ = [
    "Intent",
    "NavigationButtonState",
    "NavigationDirection",
    "StepIndicator",
    "StepViewState",
]
