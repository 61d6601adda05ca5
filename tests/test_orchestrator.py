import asyncio
import json
import logging

from pydantic import BaseModel, Field

from stepwizard.config import NavigationConfig, ResetConfig, ValidationConfig, WizardConfig
from stepwizard.orchestrator import FormOrchestrator, WizardCallbacks
from stepwizard.outcomes import Outcome
from stepwizard.state.storage import InMemoryStorage
from stepwizard.step_registry import StepDescriptor
from stepwizard.validation.validators import PydanticSchemaValidator


class Signup(BaseModel):
    email: str = Field(min_length=3)
    name: str = Field(min_length=1)
    newsletter: bool = False


STEPS = [
    StepDescriptor(id="account", title="Account", fields=("email",)),
    StepDescriptor(id="profile", title="Profile", fields=("name",), is_optional=True),
    StepDescriptor(id="confirm", title="Confirm", fields=("newsletter",)),
]


class _Recorder:
    def __init__(self) -> None:
        self.events: list[tuple] = []
        self.submitted: list[dict] = []

    def callbacks(self) -> WizardCallbacks:
        return WizardCallbacks(
            on_step_change=lambda index, direction: self.events.append(("change", index, str(direction))),
            on_validation_error=lambda index, errors: self.events.append(("invalid", index, sorted(errors))),
            on_step_complete=lambda index, data: self.events.append(("complete", index, data)),
            on_step_skip=lambda index: self.events.append(("skip", index)),
            on_form_reset=lambda: self.events.append(("reset",)),
        )

    def on_submit(self, values: dict) -> None:
        self.submitted.append(values)

    def of(self, kind: str) -> list[tuple]:
        return [event for event in self.events if event[0] == kind]


def _wizard(recorder: _Recorder | None = None, **kwargs) -> FormOrchestrator:
    recorder = recorder or _Recorder()
    kwargs.setdefault("on_submit", recorder.on_submit)
    kwargs.setdefault("callbacks", recorder.callbacks())
    validator = kwargs.pop("validator", None) or PydanticSchemaValidator(Signup, defaults={"newsletter": False})
    return FormOrchestrator(STEPS, validator, **kwargs)


def _fill(wizard: FormOrchestrator) -> None:
    wizard.set_field_value("email", "ada@example.com")
    wizard.set_field_value("name", "Ada")


def test_three_step_flow_end_to_end() -> None:
    recorder = _Recorder()
    wizard = _wizard(recorder)

    result = asyncio.run(wizard.next())
    assert result.outcome is Outcome.INVALID
    assert set(result.errors) == {"email"}
    assert wizard.current_index == 0
    assert recorder.of("invalid") == [("invalid", 0, ["email"])]
    assert not wizard.machine.is_step_completed(0)

    wizard.set_field_value("email", "ada@example.com")
    result = asyncio.run(wizard.next())
    assert result.ok
    assert result.index == 1
    assert wizard.machine.completed_steps == frozenset({0})
    assert wizard.machine.get_step_data(0) == {"email": "ada@example.com"}

    wizard.set_field_value("name", "Ada")
    assert asyncio.run(wizard.next()).ok
    assert wizard.machine.is_last_step

    result = asyncio.run(wizard.submit())
    assert result.ok
    assert wizard.is_submitted
    assert not wizard.is_submitting
    assert recorder.submitted == [{"email": "ada@example.com", "name": "Ada", "newsletter": False}]
    assert wizard.machine.completed_steps == frozenset({0, 1, 2})
    assert recorder.of("change") == [("change", 1, "forward"), ("change", 2, "forward")]
    assert [event[1] for event in recorder.of("complete")] == [0, 1, 2]


def test_next_on_last_step_hits_boundary() -> None:
    wizard = _wizard(initial_step=2)

    assert asyncio.run(wizard.next()).outcome is Outcome.AT_BOUNDARY


def test_next_without_step_validation_still_completes_step() -> None:
    recorder = _Recorder()
    config = WizardConfig(validation=ValidationConfig(validate_on_step_change=False))
    wizard = _wizard(recorder, config=config)

    assert asyncio.run(wizard.next()).ok
    assert wizard.machine.is_step_completed(0)
    assert recorder.of("invalid") == []


def test_back_is_unvalidated_and_can_be_disabled() -> None:
    recorder = _Recorder()
    wizard = _wizard(recorder, initial_step=2)

    assert wizard.back().ok
    assert wizard.current_index == 1
    assert recorder.of("change") == [("change", 1, "backward")]

    locked = _wizard(config=WizardConfig(navigation=NavigationConfig(allow_back_navigation=False)), initial_step=2)
    result = locked.back()
    assert result.outcome is Outcome.DENIED
    assert locked.current_index == 2


def test_skip_requires_configuration_and_optional_step() -> None:
    recorder = _Recorder()
    wizard = _wizard(recorder, config=WizardConfig(navigation=NavigationConfig(allow_skipping=True)))

    assert wizard.skip().outcome is Outcome.DENIED

    wizard.set_field_value("email", "ada@example.com")
    asyncio.run(wizard.next())
    recorder.events.clear()

    assert wizard.skip().ok
    assert wizard.current_index == 2
    assert wizard.machine.is_step_skipped(1)
    assert recorder.events == [("skip", 1), ("change", 2, "forward")]

    default = _wizard(initial_step=1)
    assert default.skip().outcome is Outcome.DENIED


def test_jump_forward_validates_current_step() -> None:
    recorder = _Recorder()
    wizard = _wizard(recorder)

    result = asyncio.run(wizard.jump_to(2))
    assert result.outcome is Outcome.INVALID
    assert wizard.current_index == 0

    wizard.set_field_value("email", "ada@example.com")
    assert asyncio.run(wizard.jump_to(2)).ok
    assert wizard.current_index == 2
    assert wizard.machine.is_step_completed(0)
    assert not wizard.machine.is_step_visited(1)

    assert asyncio.run(wizard.jump_to(0)).ok
    assert recorder.of("change") == [("change", 2, "forward"), ("change", 0, "backward")]


def test_jump_denials_are_explicit() -> None:
    wizard = _wizard(config=WizardConfig(navigation=NavigationConfig(allow_step_jumping=False)))
    wizard.set_field_value("email", "ada@example.com")

    result = asyncio.run(wizard.jump_to(2))
    assert result.outcome is Outcome.DENIED
    assert wizard.current_index == 0

    assert asyncio.run(wizard.jump_to(0)).outcome is Outcome.DENIED
    assert asyncio.run(wizard.jump_to(7)).outcome is Outcome.OUT_OF_RANGE


def test_submit_off_the_last_step_is_not_terminal() -> None:
    recorder = _Recorder()
    wizard = _wizard(recorder)
    _fill(wizard)

    result = asyncio.run(wizard.submit())

    assert result.outcome is Outcome.NOT_TERMINAL
    assert recorder.submitted == []
    assert not wizard.is_submitted


def test_submit_reports_full_form_errors_against_current_step() -> None:
    recorder = _Recorder()
    config = WizardConfig(validation=ValidationConfig(validate_on_step_change=False))
    wizard = _wizard(recorder, config=config, initial_step=2)

    result = asyncio.run(wizard.submit())

    assert result.outcome is Outcome.INVALID
    assert set(result.errors) == {"email", "name"}
    assert recorder.of("invalid") == [("invalid", 2, ["email", "name"])]
    assert wizard.current_index == 2
    assert not wizard.is_submitted
    assert recorder.submitted == []


def test_failed_submit_leaves_flow_unsubmitted(caplog) -> None:
    def reject(values: dict) -> None:
        raise ConnectionError("backend unavailable")

    wizard = _wizard(on_submit=reject, initial_step=2)
    _fill(wizard)

    with caplog.at_level(logging.ERROR):
        result = asyncio.run(wizard.submit())

    assert result.outcome is Outcome.FAILED
    assert not wizard.is_submitted
    assert not wizard.is_submitting
    assert wizard.current_index == 2
    assert "Form submission failed" in caplog.text


def test_async_submit_handler_is_awaited() -> None:
    seen: list[dict] = []

    async def submit(values: dict) -> None:
        await asyncio.sleep(0)
        seen.append(values)

    wizard = _wizard(on_submit=submit, initial_step=2)
    _fill(wizard)

    assert asyncio.run(wizard.submit()).ok
    assert seen and seen[0]["email"] == "ada@example.com"


def test_reset_restores_defaults_and_fires_callback() -> None:
    recorder = _Recorder()
    storage = InMemoryStorage()
    wizard = _wizard(recorder, storage=storage, config=WizardConfig(title="signup"))
    _fill(wizard)
    asyncio.run(wizard.next())
    assert "multistep-form-signup" in storage

    result = wizard.reset()

    assert result.ok
    assert wizard.current_index == 0
    assert wizard.machine.completed_steps == frozenset()
    assert wizard.values == {"newsletter": False}
    assert "multistep-form-signup" not in storage
    assert recorder.of("reset") == [("reset",)]
    assert wizard.session.generation == 1


def test_reset_with_confirmation_waits_for_confirm() -> None:
    recorder = _Recorder()
    config = WizardConfig(reset=ResetConfig(require_confirmation=True, confirmation_message="Start over?"))
    wizard = _wizard(recorder, config=config, initial_step=1)

    assert wizard.reset().outcome is Outcome.PENDING_CONFIRMATION
    assert wizard.pending_reset_confirmation == "Start over?"
    assert wizard.current_index == 1

    assert wizard.cancel_reset()
    assert wizard.pending_reset_confirmation is None
    assert wizard.confirm_reset().outcome is Outcome.DENIED

    wizard.reset()
    assert wizard.confirm_reset().ok
    assert wizard.current_index == 0
    assert recorder.of("reset") == [("reset",)]


def test_reset_is_denied_after_submission_by_default() -> None:
    wizard = _wizard(initial_step=2)
    _fill(wizard)
    asyncio.run(wizard.submit())

    result = wizard.reset()

    assert result.outcome is Outcome.DENIED
    assert wizard.is_submitted


def test_reset_during_submit_makes_result_stale() -> None:
    holder: list[FormOrchestrator] = []

    async def submit(values: dict) -> None:
        await asyncio.sleep(0)
        holder[0].reset()

    wizard = _wizard(on_submit=submit, initial_step=2)
    holder.append(wizard)
    _fill(wizard)

    result = asyncio.run(wizard.submit())

    assert result.outcome is Outcome.STALE
    assert not wizard.is_submitted
    assert not wizard.is_submitting
    assert wizard.current_index == 0


def test_reset_during_validation_cancels_transition() -> None:
    holder: list[FormOrchestrator] = []

    async def reset_midway(values, step_index):
        holder[0].reset()
        return True

    config = WizardConfig(validation=ValidationConfig(custom_validator=reset_midway))
    wizard = _wizard(config=config, initial_step=1)
    holder.append(wizard)
    _fill(wizard)

    result = asyncio.run(wizard.next())

    assert result.outcome is Outcome.STALE
    assert wizard.current_index == 0
    assert wizard.machine.completed_steps == frozenset()


def test_callback_failures_do_not_abort_transitions(caplog) -> None:
    def broken(index, direction):
        raise RuntimeError("listener failed")

    wizard = _wizard(callbacks=WizardCallbacks(on_step_change=broken))
    wizard.set_field_value("email", "ada@example.com")

    with caplog.at_level(logging.WARNING):
        result = asyncio.run(wizard.next())

    assert result.ok
    assert wizard.current_index == 1
    assert "Wizard callback on_step_change failed" in caplog.text


def test_progress_is_restored_from_storage() -> None:
    storage = InMemoryStorage()
    config = WizardConfig(title="signup")
    first = _wizard(storage=storage, config=config)
    first.set_field_value("email", "ada@example.com")
    asyncio.run(first.next())

    resumed = _wizard(storage=storage, config=config)

    assert resumed.current_index == 1
    assert resumed.machine.is_step_completed(0)
    saved = json.loads(storage.get("multistep-form-signup"))
    assert saved["stepData"] == {"0": {"email": "ada@example.com"}}


def test_persistence_can_be_disabled() -> None:
    storage = InMemoryStorage()
    wizard = _wizard(storage=storage, config=WizardConfig(persist_state=False))
    wizard.set_field_value("email", "ada@example.com")

    asyncio.run(wizard.next())

    assert storage.get("multistep-form-default") is None


def test_field_blur_validation_is_opt_in() -> None:
    recorder = _Recorder()
    wizard = _wizard(recorder)

    assert asyncio.run(wizard.field_blurred("name")).valid
    assert recorder.of("invalid") == []

    blurring = _wizard(recorder, config=WizardConfig(validation=ValidationConfig(validate_on_blur=True)))
    report = asyncio.run(blurring.field_blurred("name"))
    assert not report.valid
    assert recorder.of("invalid") == [("invalid", 1, ["name"])]


class _BrokenValidator(PydanticSchemaValidator):
    def validate_fields(self, names):  # type: ignore[override]
        raise RuntimeError("backend down")


def test_blur_with_failing_validator_reports_form_error() -> None:
    recorder = _Recorder()
    config = WizardConfig(validation=ValidationConfig(validate_on_blur=True))
    wizard = _wizard(recorder, config=config, validator=_BrokenValidator(Signup))

    report = asyncio.run(wizard.field_blurred("email"))

    assert not report.valid
    assert list(report.errors) == ["__root__"]
    assert recorder.of("invalid") == [("invalid", 0, ["__root__"])]


def test_submit_failure_after_reset_is_stale(caplog) -> None:
    holder: list[FormOrchestrator] = []

    async def submit(values: dict) -> None:
        await asyncio.sleep(0)
        holder[0].reset()
        raise ConnectionError("backend unavailable")

    wizard = _wizard(on_submit=submit, initial_step=2)
    holder.append(wizard)
    _fill(wizard)

    with caplog.at_level(logging.INFO):
        result = asyncio.run(wizard.submit())

    assert result.outcome is Outcome.STALE
    assert wizard.current_index == 0
    assert not wizard.is_submitting
    assert "Form submission failed" not in caplog.text
