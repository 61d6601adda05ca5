"""Turn user intents into validated wizard transitions.

:class:`FormOrchestrator` composes the step registry, the state machine, the
navigation policy, and the validation gateway. Each intent returns a
:class:`~stepwizard.outcomes.TransitionResult`, so a denied or invalid
transition is reported explicitly instead of being inferred from unchanged
state.

Async intents (``next``, ``jump_to``, ``submit``, ``field_blurred``) capture
the session generation before suspending. When a reset happens while they
are awaiting validation or the submit handler, the late result is dropped
and the intent reports ``Outcome.STALE``.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from stepwizard.config import WizardConfig
from stepwizard.layout import NavigationButtonState, NavigationDirection, StepIndicator, StepViewState
from stepwizard.navigation.policy import NavigationPolicy
from stepwizard.outcomes import Outcome, TransitionResult
from stepwizard.state.machine import StepStateMachine
from stepwizard.state.persistence import StatePersistence, StoragePersistence
from stepwizard.state.session import FlowSession
from stepwizard.state.storage import Storage
from stepwizard.step_registry import StepDescriptor, StepRegistry
from stepwizard.telemetry import get_tracer
from stepwizard.types import FieldErrors, FieldsForStep, StepData, StepDirection, SubmitHandler
from stepwizard.validation.gateway import ValidationGateway
from stepwizard.validation.validators import SchemaValidator, ValidationReport

logger = logging.getLogger(__name__)


@dataclass
class WizardCallbacks:
    """Optional hooks fired as the flow progresses."""

    on_step_change: Callable[[int, StepDirection], None] | None = None
    on_validation_error: Callable[[int, FieldErrors], None] | None = None
    on_step_complete: Callable[[int, StepData], None] | None = None
    on_step_skip: Callable[[int], None] | None = None
    on_form_reset: Callable[[], None] | None = None


RenderStep = Callable[[StepViewState], Any]


class FormOrchestrator:
    """Drive one multi-step form flow."""

    def __init__(
        self,
        steps: StepRegistry | Sequence[StepDescriptor],
        validator: SchemaValidator,
        *,
        on_submit: SubmitHandler,
        config: WizardConfig | None = None,
        callbacks: WizardCallbacks | None = None,
        render_step: RenderStep | None = None,
        fields_for_step: FieldsForStep | None = None,
        storage: Storage | None = None,
        persistence: StatePersistence | None = None,
        defaults: Mapping[str, Any] | None = None,
        initial_step: int = 0,
        tracer: trace.Tracer | None = None,
    ) -> None:
        self._registry = steps if isinstance(steps, StepRegistry) else StepRegistry(steps)
        self._config = config or WizardConfig()
        self._callbacks = callbacks or WizardCallbacks()
        self._validator = validator
        self._on_submit = on_submit
        self._render_step = render_step
        self._defaults = dict(defaults) if defaults is not None else None
        self._tracer = tracer or get_tracer()
        self._policy = NavigationPolicy(navigation=self._config.navigation, reset=self._config.reset)
        self._gateway = ValidationGateway(
            validator,
            self._registry,
            fields_for_step=fields_for_step,
            custom_validator=self._config.validation.custom_validator,
            stop_on_first_error=self._config.validation.stop_on_first_error,
            on_validation_error=self._emit_validation_error,
        )
        machine = StepStateMachine(
            len(self._registry),
            initial_step=initial_step,
            persistence=self._resolve_persistence(storage, persistence),
        )
        self._session = FlowSession(machine=machine)
        self._pending_reset = False

    def _resolve_persistence(
        self,
        storage: Storage | None,
        persistence: StatePersistence | None,
    ) -> StatePersistence | None:
        if not self._config.persist_state:
            return None
        if persistence is not None:
            return persistence
        if storage is not None:
            return StoragePersistence(storage, self._config.resolved_storage_key)
        return None

    # -------- Accessors --------
    @property
    def registry(self) -> StepRegistry:
        return self._registry

    @property
    def config(self) -> WizardConfig:
        return self._config

    @property
    def policy(self) -> NavigationPolicy:
        return self._policy

    @property
    def gateway(self) -> ValidationGateway:
        return self._gateway

    @property
    def session(self) -> FlowSession:
        return self._session

    @property
    def machine(self) -> StepStateMachine:
        return self._session.machine

    @property
    def current_index(self) -> int:
        return self.machine.current_index

    @property
    def current_step(self) -> StepDescriptor:
        return self._registry[self.machine.current_index]

    @property
    def is_submitted(self) -> bool:
        return self._session.is_submitted

    @property
    def is_submitting(self) -> bool:
        return self._session.is_submitting

    @property
    def is_validating(self) -> bool:
        return self._session.is_validating

    @property
    def values(self) -> StepData:
        return self._validator.get_field_values()

    @property
    def pending_reset_confirmation(self) -> str | None:
        """The confirmation prompt while a reset awaits confirmation."""

        if not self._pending_reset:
            return None
        return self._config.reset.confirmation_message

    def set_field_value(self, name: str, value: Any) -> None:
        self._validator.set_value(name, value)

    # -------- Capabilities --------
    def can_go_back(self) -> bool:
        return self._policy.can_go_back(self.machine.current_index)

    def can_go_next(self) -> bool:
        return self._policy.can_go_next(self.machine.current_index, self.machine.total_steps)

    def can_skip(self) -> bool:
        return self._policy.can_skip(self.machine.current_index, self._registry)

    def can_jump_to(self, target_index: int) -> bool:
        machine = self.machine
        return self._policy.can_jump_to(
            machine.current_index,
            target_index,
            self._registry,
            completed=machine.completed_steps,
            skipped=machine.skipped_steps,
        )

    def is_reset_available(self) -> bool:
        machine = self.machine
        return self._policy.is_reset_available(
            current_index=machine.current_index,
            total_steps=machine.total_steps,
            completed_count=machine.completed_count,
            is_submitted=self._session.is_submitted,
        )

    # -------- Callbacks --------
    def _emit(self, name: str, *args: Any) -> None:
        callback = getattr(self._callbacks, name)
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as error:
            logger.warning("Wizard callback %s failed", name, exc_info=error)

    def _emit_validation_error(self, step_index: int, errors: FieldErrors) -> None:
        self._emit("on_validation_error", step_index, errors)

    # -------- Tracing --------
    @contextmanager
    def _span(self, intent: str, **attributes: int) -> Iterator[trace.Span]:
        with self._tracer.start_as_current_span(f"wizard.{intent}") as span:
            span.set_attribute("wizard.step_index", self.machine.current_index)
            for key, value in attributes.items():
                span.set_attribute(f"wizard.{key}", value)
            yield span

    @staticmethod
    def _finish(span: trace.Span, result: TransitionResult) -> TransitionResult:
        span.set_attribute("wizard.outcome", result.outcome.value)
        if not result.ok:
            logger.debug("Wizard intent ended with %s at step %s", result.outcome.value, result.index)
        return result

    def _result(self, outcome: Outcome, errors: FieldErrors | None = None) -> TransitionResult:
        return TransitionResult(outcome, self.machine.current_index, dict(errors or {}))

    # -------- Forward validation --------
    def _snapshot_for(self, step_index: int) -> StepData:
        values = self._validator.get_field_values()
        fields = self._gateway.fields_for(step_index)
        if not fields:
            return values
        return {name: values[name] for name in fields if name in values}

    async def _validate_current(self, step_index: int) -> ValidationReport:
        self._session.is_validating = True
        try:
            return await self._gateway.validate(step_index)
        finally:
            self._session.is_validating = False

    async def _leave_forward(
        self,
        step_index: int,
        generation: int,
        *,
        complete_without_validation: bool,
    ) -> TransitionResult | None:
        """Validate and complete the step being left; ``None`` means proceed."""

        if self._config.validation.validate_on_step_change:
            report = await self._validate_current(step_index)
            if not self._session.is_current(generation):
                return self._result(Outcome.STALE)
            if not report.valid:
                self.machine.mark_step_incomplete(step_index)
                return self._result(Outcome.INVALID, report.errors)
        elif not complete_without_validation:
            return None
        data = self._snapshot_for(step_index)
        self.machine.mark_step_completed(step_index, data)
        self._emit("on_step_complete", step_index, data)
        return None

    # -------- Intents --------
    async def next(self) -> TransitionResult:
        """Validate the current step and advance by one."""

        with self._span("next") as span:
            current = self.machine.current_index
            if not self.can_go_next():
                return self._finish(span, self._result(Outcome.AT_BOUNDARY))
            rejected = await self._leave_forward(current, self._session.generation, complete_without_validation=True)
            if rejected is not None:
                return self._finish(span, rejected)
            self.machine.go_next()
            self._emit("on_step_change", self.machine.current_index, StepDirection.FORWARD)
            return self._finish(span, self._result(Outcome.ACCEPTED))

    def back(self) -> TransitionResult:
        """Move to the previous step without validating the current one."""

        with self._span("back") as span:
            if not self.can_go_back():
                return self._finish(span, self._result(Outcome.DENIED))
            self.machine.go_back()
            self._emit("on_step_change", self.machine.current_index, StepDirection.BACKWARD)
            return self._finish(span, self._result(Outcome.ACCEPTED))

    def skip(self) -> TransitionResult:
        """Mark the current (optional) step skipped and advance."""

        with self._span("skip") as span:
            if not self.can_skip():
                return self._finish(span, self._result(Outcome.DENIED))
            skipped = self.machine.current_index
            self.machine.skip_step(skipped)
            self._emit("on_step_skip", skipped)
            self._emit("on_step_change", self.machine.current_index, StepDirection.FORWARD)
            return self._finish(span, self._result(Outcome.ACCEPTED))

    async def jump_to(self, target_index: int) -> TransitionResult:
        """Jump to ``target_index``; forward jumps validate the current step first."""

        with self._span("jump_to", target_index=target_index) as span:
            current = self.machine.current_index
            if self._registry.get(target_index) is None:
                return self._finish(span, self._result(Outcome.OUT_OF_RANGE))
            if not self.can_jump_to(target_index):
                return self._finish(span, self._result(Outcome.DENIED))
            if target_index > current:
                rejected = await self._leave_forward(
                    current,
                    self._session.generation,
                    complete_without_validation=False,
                )
                if rejected is not None:
                    return self._finish(span, rejected)
            self.machine.go_to_step(target_index)
            direction = StepDirection.FORWARD if target_index > current else StepDirection.BACKWARD
            self._emit("on_step_change", target_index, direction)
            return self._finish(span, self._result(Outcome.ACCEPTED))

    async def submit(self) -> TransitionResult:
        """Validate the whole form and hand the values to the submit handler."""

        with self._span("submit") as span:
            if not self.machine.is_last_step:
                return self._finish(span, self._result(Outcome.NOT_TERMINAL))
            current = self.machine.current_index
            generation = self._session.generation

            rejected = await self._leave_forward(current, generation, complete_without_validation=False)
            if rejected is not None:
                return self._finish(span, rejected)

            if self._config.validation.validate_on_submit:
                self._session.is_validating = True
                try:
                    report = await self._gateway.validate_all()
                finally:
                    self._session.is_validating = False
                if not self._session.is_current(generation):
                    return self._finish(span, self._result(Outcome.STALE))
                if not report.valid:
                    self._emit_validation_error(current, report.errors)
                    return self._finish(span, self._result(Outcome.INVALID, report.errors))

            self._session.is_submitting = True
            try:
                outcome = self._on_submit(self._validator.get_field_values())
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as error:
                if not self._session.is_current(generation):
                    logger.info("Discarding submit failure that resolved after a reset", exc_info=error)
                    return self._finish(span, self._result(Outcome.STALE))
                logger.exception("Form submission failed")
                span.record_exception(error)
                span.set_status(Status(StatusCode.ERROR, str(error)))
                self._session.is_submitting = False
                return self._finish(span, self._result(Outcome.FAILED))

            if not self._session.is_current(generation):
                logger.info("Discarding submit result that resolved after a reset")
                return self._finish(span, self._result(Outcome.STALE))
            self._session.is_submitting = False
            self._session.is_submitted = True
            return self._finish(span, self._result(Outcome.ACCEPTED))

    def reset(self) -> TransitionResult:
        """Reset the flow, or defer until confirmed when confirmation is required."""

        with self._span("reset") as span:
            if not self.is_reset_available():
                return self._finish(span, self._result(Outcome.DENIED))
            if self._config.reset.require_confirmation:
                self._pending_reset = True
                return self._finish(span, self._result(Outcome.PENDING_CONFIRMATION))
            return self._finish(span, self._perform_reset())

    def confirm_reset(self) -> TransitionResult:
        with self._span("confirm_reset") as span:
            if not self._pending_reset:
                return self._finish(span, self._result(Outcome.DENIED))
            self._pending_reset = False
            if not self.is_reset_available():
                return self._finish(span, self._result(Outcome.DENIED))
            return self._finish(span, self._perform_reset())

    def cancel_reset(self) -> bool:
        """Drop a pending reset; returns whether one was pending."""

        pending = self._pending_reset
        self._pending_reset = False
        return pending

    def _perform_reset(self) -> TransitionResult:
        self._validator.reset(self._defaults)
        self._gateway.clear()
        self.machine.reset_form()
        self._session.restart()
        self._pending_reset = False
        logger.info("Wizard flow reset to the first step")
        self._emit("on_form_reset")
        return self._result(Outcome.ACCEPTED)

    async def field_blurred(self, name: str) -> ValidationReport:
        """Validate ``name`` on blur when ``validate_on_blur`` is enabled."""

        if not self._config.validation.validate_on_blur:
            return ValidationReport(valid=True)
        generation = self._session.generation
        report = await self._gateway.validate_field(name)
        if not report.valid and self._session.is_current(generation):
            owner = self._registry.step_for_field(name)
            self._emit_validation_error(self.machine.current_index if owner is None else owner, report.errors)
        return report

    # -------- View --------
    def build_view(self) -> StepViewState:
        """Return the derived state of the active step for rendering."""

        machine = self.machine
        current = machine.current_index
        can_go_back = self.can_go_back()
        can_go_next = self.can_go_next()
        can_skip = self.can_skip()
        can_reset = self.is_reset_available()
        indicators = tuple(
            StepIndicator(
                index=index,
                id=step.id,
                title=step.title,
                is_active=index == current,
                is_completed=machine.is_step_completed(index),
                is_visited=machine.is_step_visited(index),
                is_skipped=machine.is_step_skipped(index),
                is_optional=step.is_optional,
                is_disabled=step.is_disabled,
                has_errors=self._gateway.has_errors(index),
                can_jump=self.can_jump_to(index),
            )
            for index, step in enumerate(self._registry)
        )
        if machine.is_last_step:
            forward = NavigationButtonState(
                NavigationDirection.SUBMIT,
                enabled=not self._session.is_submitting,
                primary=True,
                on_click=self.submit,
            )
        else:
            forward = NavigationButtonState(
                NavigationDirection.NEXT,
                enabled=can_go_next,
                primary=True,
                on_click=self.next,
            )
        return StepViewState(
            step=self._registry[current],
            index=current,
            total_steps=machine.total_steps,
            is_completed=machine.is_step_completed(current),
            is_visited=machine.is_step_visited(current),
            has_errors=self._gateway.has_errors(current),
            errors=self._gateway.errors_for(current),
            progress=machine.progress,
            completion_progress=machine.completion_progress,
            is_first_step=machine.is_first_step,
            is_last_step=machine.is_last_step,
            is_validating=self._session.is_validating,
            is_submitting=self._session.is_submitting,
            is_submitted=self._session.is_submitted,
            can_go_back=can_go_back,
            can_go_next=can_go_next,
            can_skip=can_skip,
            can_reset=can_reset,
            pending_reset_confirmation=self.pending_reset_confirmation,
            indicators=indicators,
            previous=NavigationButtonState(NavigationDirection.PREVIOUS, enabled=can_go_back, on_click=self.back),
            next=forward,
            skip=NavigationButtonState(NavigationDirection.SKIP, enabled=can_skip, on_click=self.skip),
            reset=NavigationButtonState(NavigationDirection.RESET, enabled=can_reset, on_click=self.reset),
            on_jump=self.jump_to,
            values=self._validator.get_field_values(),
        )

    def render(self) -> Any:
        """Pass the current view to ``render_step`` and return its result."""

        view = self.build_view()
        if self._render_step is None:
            return view
        try:
            return self._render_step(view)
        except Exception as error:
            logger.warning("Failed to render wizard step '%s'", view.step.id, exc_info=error)
            return None


__all__ = ["FormOrchestrator", "RenderStep", "WizardCallbacks"]
