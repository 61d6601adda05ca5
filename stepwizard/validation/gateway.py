"""Step-scoped validation on top of a :class:`SchemaValidator`."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Mapping
from typing import Any

from stepwizard.step_registry import StepRegistry
from stepwizard.types import CustomValidator, FieldErrors, FieldsForStep
from stepwizard.validation.validators import FORM_ERROR_KEY, SchemaValidator, ValidationReport, validate_payload

logger = logging.getLogger(__name__)

CUSTOM_ERROR_KEY = "custom"
CUSTOM_ERROR_MESSAGE = "Custom validation failed"
VALIDATOR_FAILURE_MESSAGE = "Validation could not be completed"

ValidationErrorHandler = Callable[[int, FieldErrors], None]


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def _coerce_report(value: Any) -> ValidationReport:
    if isinstance(value, ValidationReport):
        return value
    if isinstance(value, Mapping):
        errors = value.get("errors") or {}
        valid = value.get("valid")
        return ValidationReport(valid=bool(valid) if valid is not None else not errors, errors=dict(errors))
    raise TypeError(f"Validator returned unsupported result type {type(value).__name__}")


class ValidationGateway:
    """Validate one step at a time, or the whole form at submission.

    The fields checked for a step come from ``fields_for_step`` when given,
    otherwise from :attr:`StepDescriptor.fields`. A descriptor ``schema`` is
    checked in addition to the form-wide validator. The custom validator only
    runs once schema validation passed; a falsy result or an exception is
    reported under the ``"custom"`` key.
    """

    def __init__(
        self,
        validator: SchemaValidator,
        registry: StepRegistry,
        *,
        fields_for_step: FieldsForStep | None = None,
        custom_validator: CustomValidator | None = None,
        stop_on_first_error: bool = False,
        on_validation_error: ValidationErrorHandler | None = None,
    ) -> None:
        self._validator = validator
        self._registry = registry
        self._fields_for_step = fields_for_step
        self._custom_validator = custom_validator
        self._stop_on_first_error = stop_on_first_error
        self._on_validation_error = on_validation_error
        self._failed_steps: dict[int, FieldErrors] = {}

    @property
    def validator(self) -> SchemaValidator:
        return self._validator

    def fields_for(self, step_index: int) -> tuple[str, ...]:
        if self._fields_for_step is not None:
            return tuple(self._fields_for_step(step_index))
        return self._registry.fields_for_step(step_index)

    def has_errors(self, step_index: int) -> bool:
        return step_index in self._failed_steps

    def errors_for(self, step_index: int) -> FieldErrors:
        return dict(self._failed_steps.get(step_index, {}))

    def clear(self) -> None:
        self._failed_steps.clear()

    def _trim(self, errors: FieldErrors) -> FieldErrors:
        if self._stop_on_first_error and len(errors) > 1:
            first = next(iter(errors))
            return {first: errors[first]}
        return errors

    async def _schema_errors(self, step_index: int) -> FieldErrors:
        fields = self.fields_for(step_index)
        errors: FieldErrors = {}
        if fields:
            try:
                report = _coerce_report(await _resolve(self._validator.validate_fields(list(fields))))
            except Exception as error:
                logger.warning("Schema validator raised for step %s", step_index, exc_info=error)
                return {FORM_ERROR_KEY: VALIDATOR_FAILURE_MESSAGE}
            if not report.valid:
                errors.update(report.errors)
        step = self._registry.get(step_index)
        if step is not None and step.schema is not None:
            values = self._validator.get_field_values()
            scoped = {name: values[name] for name in fields if name in values} if fields else values
            for name, message in validate_payload(step.schema, scoped).items():
                errors.setdefault(name, message)
        return errors

    async def _custom_passes(self, step_index: int) -> bool:
        if self._custom_validator is None:
            return True
        try:
            verdict = await _resolve(self._custom_validator(self._validator.get_field_values(), step_index))
        except Exception as error:
            logger.warning("Custom validator raised for step %s", step_index, exc_info=error)
            return False
        return bool(verdict)

    def _report_failure(self, step_index: int, errors: FieldErrors) -> None:
        self._failed_steps[step_index] = dict(errors)
        if self._on_validation_error is None:
            return
        try:
            self._on_validation_error(step_index, dict(errors))
        except Exception as error:
            logger.warning("on_validation_error callback failed for step %s", step_index, exc_info=error)

    async def validate(self, step_index: int) -> ValidationReport:
        """Validate the fields of ``step_index`` and report failures once."""

        errors = self._trim(await self._schema_errors(step_index))
        if not errors and not await self._custom_passes(step_index):
            errors = {CUSTOM_ERROR_KEY: CUSTOM_ERROR_MESSAGE}
        if errors:
            logger.debug("Step %s failed validation: %s", step_index, sorted(errors))
            self._report_failure(step_index, errors)
            return ValidationReport(valid=False, errors=errors)
        self._failed_steps.pop(step_index, None)
        return ValidationReport(valid=True)

    async def validate_all(self) -> ValidationReport:
        """Validate every field; callers decide where to report failures."""

        try:
            report = _coerce_report(await _resolve(self._validator.validate_all()))
        except Exception as error:
            logger.warning("Schema validator raised during full validation", exc_info=error)
            return ValidationReport(valid=False, errors={FORM_ERROR_KEY: VALIDATOR_FAILURE_MESSAGE})
        if report.valid:
            return report
        return ValidationReport(valid=False, errors=self._trim(report.errors))

    async def validate_field(self, name: str) -> ValidationReport:
        """Validate a single field, e.g. when it loses focus."""

        try:
            return _coerce_report(await _resolve(self._validator.validate_fields([name])))
        except Exception as error:
            logger.warning("Schema validator raised for field %s", name, exc_info=error)
            return ValidationReport(valid=False, errors={FORM_ERROR_KEY: VALIDATOR_FAILURE_MESSAGE})


__all__ = [
    "CUSTOM_ERROR_KEY",
    "CUSTOM_ERROR_MESSAGE",
    "ValidationErrorHandler",
    "ValidationGateway",
]
