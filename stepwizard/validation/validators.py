"""Schema validators owning the wizard's field-value store.

Two adapters are provided: :class:`PydanticSchemaValidator` for forms
described by a pydantic model and :class:`JsonSchemaValidator` for forms
described by a JSON schema. Both keep the current field values, validate the
whole payload, and scope the resulting errors to the requested field names.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError as JsonSchemaError
from pydantic import BaseModel, ValidationError

from stepwizard.types import FieldErrors, StepData

# Errors that cannot be attributed to a single field.
FORM_ERROR_KEY = "__root__"


@dataclass(frozen=True)
class ValidationReport:
    """Result of validating some or all form fields."""

    valid: bool
    errors: FieldErrors = field(default_factory=dict)

    @classmethod
    def from_errors(cls, errors: Mapping[str, str]) -> "ValidationReport":
        return cls(valid=not errors, errors=dict(errors))


class SchemaValidator(Protocol):
    """Field-value store plus schema validation used by the gateway.

    ``validate_fields`` and ``validate_all`` may return a report directly or
    an awaitable resolving to one.
    """

    def validate_fields(self, names: Sequence[str]) -> Any:
        """Validate only ``names``."""

    def validate_all(self) -> Any:
        """Validate every field."""

    def get_field_values(self) -> StepData:
        """Return a snapshot of the current values."""

    def set_value(self, name: str, value: Any) -> None:
        """Update a single field value."""

    def reset(self, defaults: Mapping[str, Any] | None = None) -> None:
        """Restore ``defaults`` (or the initial defaults)."""


def _first_wins(pairs: Iterable[tuple[str, str]]) -> FieldErrors:
    errors: FieldErrors = {}
    for name, message in pairs:
        errors.setdefault(name, message)
    return errors


def pydantic_errors(model: type[BaseModel], values: Mapping[str, Any]) -> FieldErrors:
    """Validate ``values`` with ``model`` and map errors to top-level field names."""

    try:
        model.model_validate(dict(values))
    except ValidationError as error:
        return _first_wins(
            (str(detail["loc"][0]) if detail["loc"] else FORM_ERROR_KEY, detail["msg"])
            for detail in error.errors()
        )
    return {}


def _json_schema_pairs(error: JsonSchemaError) -> Iterable[tuple[str, str]]:
    if error.path:
        yield str(error.path[0]), error.message
        return
    if error.validator == "required" and isinstance(error.instance, Mapping):
        for name in error.validator_value:
            if name not in error.instance:
                yield name, f"'{name}' is a required property"
        return
    yield FORM_ERROR_KEY, error.message


def json_schema_errors(validator: Draft202012Validator, values: Mapping[str, Any]) -> FieldErrors:
    """Validate ``values`` and map JSON schema errors to top-level field names."""

    return _first_wins(pair for error in validator.iter_errors(dict(values)) for pair in _json_schema_pairs(error))


def validate_payload(schema: type[BaseModel] | Mapping[str, Any], values: Mapping[str, Any]) -> FieldErrors:
    """Validate ``values`` against a pydantic model class or a JSON schema."""

    if isinstance(schema, type) and issubclass(schema, BaseModel):
        return pydantic_errors(schema, values)
    if isinstance(schema, Mapping):
        return json_schema_errors(Draft202012Validator(dict(schema)), values)
    raise TypeError(f"Unsupported step schema type: {type(schema).__name__}")


class _FieldStore:
    """Shared value-store behaviour of the bundled validators."""

    def __init__(self, defaults: Mapping[str, Any] | None = None) -> None:
        self._defaults: StepData = copy.deepcopy(dict(defaults or {}))
        self._values: StepData = copy.deepcopy(self._defaults)

    def get_field_values(self) -> StepData:
        return copy.deepcopy(self._values)

    def set_value(self, name: str, value: Any) -> None:
        self._values[name] = value

    def reset(self, defaults: Mapping[str, Any] | None = None) -> None:
        source = self._defaults if defaults is None else defaults
        self._values = copy.deepcopy(dict(source))

    def _errors(self) -> FieldErrors:
        raise NotImplementedError

    def validate_fields(self, names: Sequence[str]) -> ValidationReport:
        wanted = set(names)
        errors = self._errors()
        return ValidationReport.from_errors({name: message for name, message in errors.items() if name in wanted})

    def validate_all(self) -> ValidationReport:
        return ValidationReport.from_errors(self._errors())


class PydanticSchemaValidator(_FieldStore):
    """Validate the field store against a pydantic model."""

    def __init__(self, model: type[BaseModel], defaults: Mapping[str, Any] | None = None) -> None:
        super().__init__(defaults)
        self._model = model

    def _errors(self) -> FieldErrors:
        return pydantic_errors(self._model, self._values)


class JsonSchemaValidator(_FieldStore):
    """Validate the field store against a JSON schema (draft 2020-12)."""

    def __init__(self, schema: Mapping[str, Any], defaults: Mapping[str, Any] | None = None) -> None:
        super().__init__(defaults)
        Draft202012Validator.check_schema(dict(schema))
        self._validator = Draft202012Validator(dict(schema))

    def _errors(self) -> FieldErrors:
        return json_schema_errors(self._validator, self._values)


__all__ = [
    "FORM_ERROR_KEY",
    "JsonSchemaValidator",
    "PydanticSchemaValidator",
    "SchemaValidator",
    "ValidationReport",
    "json_schema_errors",
    "pydantic_errors",
    "validate_payload",
]
