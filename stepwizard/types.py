"""Shared type aliases for the stepwizard package."""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Awaitable, Callable, Mapping


FieldErrors = dict[str, str]
StepData = dict[str, Any]

# Callbacks may be plain callables or coroutine functions.
CustomValidator = Callable[[Mapping[str, Any], int], bool | Awaitable[bool]]
NavigationRule = Callable[[int, int], bool | None]
SubmitHandler = Callable[[StepData], Awaitable[None] | None]
FieldsForStep = Callable[[int], tuple[str, ...] | list[str]]


class StepDirection(StrEnum):
    """Direction reported with ``on_step_change``."""

    FORWARD = "forward"
    BACKWARD = "backward"


__all__ = [
    "CustomValidator",
    "FieldErrors",
    "FieldsForStep",
    "NavigationRule",
    "StepData",
    "StepDirection",
    "SubmitHandler",
]
