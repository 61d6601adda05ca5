"""Serialization of wizard progress and the save/load port used by the machine."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator

from stepwizard.state.storage import Storage

logger = logging.getLogger("stepwizard.persistence")


class PersistedState(BaseModel):
    """On-disk layout of a flow's progress.

    Field aliases match the serialized camelCase layout
    (``currentIndex``, ``completedSteps``, ``visitedSteps``,
    ``skippedSteps``, ``stepData``); ``stepData`` keys are stringified step
    indices.

    Fields are coerced one at a time: a missing or wrong-typed
    ``currentIndex`` becomes ``None``, a wrong-typed collection becomes
    empty, and non-integer indices or non-object ``stepData`` entries are
    dropped individually, so one bad field never discards the rest.
    """

    model_config = ConfigDict(populate_by_name=True)

    current_index: int | None = Field(default=None, alias="currentIndex")
    completed_steps: list[int] = Field(default_factory=list, alias="completedSteps")
    visited_steps: list[int] = Field(default_factory=list, alias="visitedSteps")
    skipped_steps: list[int] = Field(default_factory=list, alias="skippedSteps")
    step_data: dict[str, dict[str, Any]] = Field(default_factory=dict, alias="stepData")

    @field_validator("current_index", mode="before")
    @classmethod
    def _coerce_current_index(cls, value: Any) -> int | None:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if value is not None:
            logger.warning("Ignoring persisted currentIndex of type %s", type(value).__name__)
        return None

    @field_validator("completed_steps", "visited_steps", "skipped_steps", mode="before")
    @classmethod
    def _coerce_indexes(cls, value: Any, info: ValidationInfo) -> list[int]:
        if not isinstance(value, list):
            if value is not None:
                logger.warning("Ignoring persisted %s of type %s", info.field_name, type(value).__name__)
            return []
        return [item for item in value if isinstance(item, int) and not isinstance(item, bool)]

    @field_validator("step_data", mode="before")
    @classmethod
    def _coerce_step_data(cls, value: Any) -> dict[str, dict[str, Any]]:
        if not isinstance(value, dict):
            if value is not None:
                logger.warning("Ignoring persisted stepData of type %s", type(value).__name__)
            return {}
        kept: dict[str, dict[str, Any]] = {}
        for key, data in value.items():
            if isinstance(data, dict):
                kept[str(key)] = data
            else:
                logger.warning("Dropping persisted step data for %r of type %s", key, type(data).__name__)
        return kept

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


def parse_persisted_state(raw: str | bytes | None) -> PersistedState | None:
    """Return the state encoded in ``raw`` or ``None`` when it is unusable."""

    if raw is None:
        return None
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as error:
        logger.warning("Discarding persisted wizard state that is not valid JSON: %s", error)
        return None
    if not isinstance(payload, dict):
        logger.warning("Discarding persisted wizard state of type %s", type(payload).__name__)
        return None
    try:
        return PersistedState.model_validate(payload)
    except ValidationError as error:
        logger.warning("Discarding malformed persisted wizard state: %s", error)
        return None


class StatePersistence(Protocol):
    """Save/load port injected into :class:`~stepwizard.state.machine.StepStateMachine`."""

    def load(self) -> PersistedState | None:
        """Return previously saved state, or ``None``."""

    def save(self, state: PersistedState) -> None:
        """Persist ``state``; must not raise."""

    def clear(self) -> None:
        """Remove any saved state; must not raise."""


class StoragePersistence:
    """Persist wizard progress as JSON under ``key`` in a :class:`Storage`.

    Storage failures are logged and treated as "no persisted state"; nothing
    is ever raised to the caller.
    """

    def __init__(self, storage: Storage, key: str) -> None:
        self._storage = storage
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    def load(self) -> PersistedState | None:
        try:
            raw = self._storage.get(self._key)
        except Exception as error:
            logger.warning("Failed to read wizard state at '%s'", self._key, exc_info=error)
            return None
        return parse_persisted_state(raw)

    def save(self, state: PersistedState) -> None:
        try:
            payload = state.to_json()
        except Exception as error:
            logger.warning("Failed to serialize wizard state for '%s'", self._key, exc_info=error)
            return
        try:
            self._storage.set(self._key, payload)
        except Exception as error:
            logger.warning("Failed to write wizard state at '%s'", self._key, exc_info=error)

    def clear(self) -> None:
        try:
            self._storage.remove(self._key)
        except Exception as error:
            logger.warning("Failed to remove wizard state at '%s'", self._key, exc_info=error)


__all__ = [
    "PersistedState",
    "StatePersistence",
    "StoragePersistence",
    "parse_persisted_state",
]
