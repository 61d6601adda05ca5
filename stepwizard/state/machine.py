"""Step state machine tracking the active step and per-step progress."""

from __future__ import annotations

import copy
import logging
import math
from collections.abc import Mapping
from typing import Any

from stepwizard.outcomes import Outcome, TransitionResult
from stepwizard.state.persistence import PersistedState, StatePersistence
from stepwizard.types import StepData

logger = logging.getLogger(__name__)


def _round_percent(ratio: float) -> int:
    # Half-up, so 12.5 rounds to 13.
    return math.floor(ratio * 100 + 0.5)


class StepStateMachine:
    """Track the current step plus visited/completed/skipped flags.

    The three flag sets are fixed-size boolean arrays indexed by step
    position and are not mutually exclusive. ``current_index`` always stays
    within ``[0, total_steps - 1]``. Operations never raise; requests that
    cannot be applied return a :class:`TransitionResult` describing the
    rejection and leave the state untouched.

    When a ``persistence`` port is supplied, the state is loaded from it once
    during construction and saved after every mutation.
    """

    def __init__(
        self,
        total_steps: int,
        *,
        initial_step: int = 0,
        persistence: StatePersistence | None = None,
    ) -> None:
        if total_steps < 1:
            raise ValueError("total_steps must be at least 1")
        if not 0 <= initial_step < total_steps:
            raise ValueError(f"initial_step {initial_step} is outside [0, {total_steps - 1}]")
        self._total = total_steps
        self._initial_step = initial_step
        self._persistence = persistence
        self._current = initial_step
        self._visited = [False] * total_steps
        self._completed = [False] * total_steps
        self._skipped = [False] * total_steps
        self._step_data: dict[int, StepData] = {}
        self._visited[initial_step] = True
        self._restore()

    # -------- Persistence --------
    def _restore(self) -> None:
        if self._persistence is None:
            return
        try:
            saved = self._persistence.load()
        except Exception as error:
            logger.warning("Ignoring persisted wizard state after load failure", exc_info=error)
            return
        if saved is None:
            return
        self._apply_persisted(saved)

    def _apply_persisted(self, saved: PersistedState) -> None:
        in_range = range(self._total)
        current = self._initial_step
        if saved.current_index is not None and saved.current_index in in_range:
            current = saved.current_index
        visited = [False] * self._total
        completed = [False] * self._total
        skipped = [False] * self._total
        for flags, indexes in (
            (visited, saved.visited_steps),
            (completed, saved.completed_steps),
            (skipped, saved.skipped_steps),
        ):
            for index in indexes:
                if index in in_range:
                    flags[index] = True
        visited[current] = True
        step_data: dict[int, StepData] = {}
        for raw_key, data in saved.step_data.items():
            try:
                index = int(raw_key)
            except ValueError:
                logger.debug("Dropping step data with non-numeric key %r", raw_key)
                continue
            if index in in_range:
                step_data[index] = dict(data)
        self._current = current
        self._visited = visited
        self._completed = completed
        self._skipped = skipped
        self._step_data = step_data

    def to_persisted(self) -> PersistedState:
        """Return the full state in its serializable form."""

        return PersistedState(
            current_index=self._current,
            completed_steps=self._indexes(self._completed),
            visited_steps=self._indexes(self._visited),
            skipped_steps=self._indexes(self._skipped),
            step_data={str(index): copy.deepcopy(data) for index, data in sorted(self._step_data.items())},
        )

    def _commit(self) -> None:
        if self._persistence is None:
            return
        try:
            self._persistence.save(self.to_persisted())
        except Exception as error:
            logger.warning("Failed to persist wizard state", exc_info=error)

    # -------- Navigation --------
    def _in_range(self, index: int) -> bool:
        return 0 <= index < self._total

    def _accepted(self) -> TransitionResult:
        return TransitionResult(Outcome.ACCEPTED, self._current)

    def _rejected(self, outcome: Outcome) -> TransitionResult:
        return TransitionResult(outcome, self._current)

    def go_to_step(self, index: int) -> TransitionResult:
        if not self._in_range(index):
            return self._rejected(Outcome.OUT_OF_RANGE)
        self._current = index
        self._visited[index] = True
        self._commit()
        return self._accepted()

    def go_next(self) -> TransitionResult:
        if self._current >= self._total - 1:
            return self._rejected(Outcome.AT_BOUNDARY)
        return self.go_to_step(self._current + 1)

    def go_back(self) -> TransitionResult:
        if self._current <= 0:
            return self._rejected(Outcome.AT_BOUNDARY)
        self._current -= 1
        self._commit()
        return self._accepted()

    def skip_step(self, index: int) -> TransitionResult:
        """Flag ``index`` as skipped; advance when it is the current step."""

        if not self._in_range(index):
            return self._rejected(Outcome.OUT_OF_RANGE)
        self._skipped[index] = True
        if index == self._current and self._current < self._total - 1:
            self._current += 1
            self._visited[self._current] = True
        self._commit()
        return self._accepted()

    def mark_step_completed(self, index: int, data: Mapping[str, Any] | None = None) -> TransitionResult:
        if not self._in_range(index):
            return self._rejected(Outcome.OUT_OF_RANGE)
        self._completed[index] = True
        if data is not None:
            self._step_data[index] = copy.deepcopy(dict(data))
        self._commit()
        return self._accepted()

    def mark_step_incomplete(self, index: int) -> TransitionResult:
        if not self._in_range(index):
            return self._rejected(Outcome.OUT_OF_RANGE)
        self._completed[index] = False
        self._step_data.pop(index, None)
        self._commit()
        return self._accepted()

    def reset_form(self) -> TransitionResult:
        """Return to step 0 with every flag and snapshot cleared."""

        self._current = 0
        self._visited = [False] * self._total
        self._visited[0] = True
        self._completed = [False] * self._total
        self._skipped = [False] * self._total
        self._step_data = {}
        if self._persistence is not None:
            try:
                self._persistence.clear()
            except Exception as error:
                logger.warning("Failed to clear persisted wizard state", exc_info=error)
        return self._accepted()

    # -------- Queries --------
    @staticmethod
    def _indexes(flags: list[bool]) -> list[int]:
        return [index for index, flag in enumerate(flags) if flag]

    @property
    def total_steps(self) -> int:
        return self._total

    @property
    def current_index(self) -> int:
        return self._current

    @property
    def completed_steps(self) -> frozenset[int]:
        return frozenset(self._indexes(self._completed))

    @property
    def visited_steps(self) -> frozenset[int]:
        return frozenset(self._indexes(self._visited))

    @property
    def skipped_steps(self) -> frozenset[int]:
        return frozenset(self._indexes(self._skipped))

    @property
    def step_data(self) -> dict[int, StepData]:
        return copy.deepcopy(self._step_data)

    @property
    def completed_count(self) -> int:
        return sum(self._completed)

    def is_step_completed(self, index: int) -> bool:
        return self._in_range(index) and self._completed[index]

    def is_step_visited(self, index: int) -> bool:
        return self._in_range(index) and self._visited[index]

    def is_step_skipped(self, index: int) -> bool:
        return self._in_range(index) and self._skipped[index]

    def get_step_data(self, index: int) -> StepData | None:
        data = self._step_data.get(index)
        return copy.deepcopy(data) if data is not None else None

    @property
    def progress(self) -> int:
        """Position-based progress in percent."""

        return _round_percent(self._current / max(self._total - 1, 1))

    @property
    def completion_progress(self) -> int:
        """Share of completed steps in percent."""

        return _round_percent(self.completed_count / self._total)

    @property
    def is_first_step(self) -> bool:
        return self._current == 0

    @property
    def is_last_step(self) -> bool:
        return self._current == self._total - 1

    @property
    def remaining_steps(self) -> int:
        return self._total - self._current - 1


__all__ = ["StepStateMachine"]
