"""Per-flow session bundling the state machine with transient flags."""

from __future__ import annotations

from dataclasses import dataclass

from stepwizard.state.machine import StepStateMachine


@dataclass
class FlowSession:
    """The live state of one flow instance.

    ``generation`` increases on every reset. Async work captures it before
    suspending and compares afterwards via :meth:`is_current`, so a result
    that resolves after a reset cannot touch the new session.
    """

    machine: StepStateMachine
    is_validating: bool = False
    is_submitting: bool = False
    is_submitted: bool = False
    generation: int = 0

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    def restart(self) -> int:
        """Clear transient flags and start a new generation."""

        self.is_validating = False
        self.is_submitting = False
        self.is_submitted = False
        self.generation += 1
        return self.generation
