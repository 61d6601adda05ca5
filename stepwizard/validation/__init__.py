"""Schema validators and the step-scoped validation gateway."""

from __future__ import annotations

from stepwizard.validation.gateway import CUSTOM_ERROR_KEY, CUSTOM_ERROR_MESSAGE, ValidationGateway
from stepwizard.validation.validators import (
    FORM_ERROR_KEY,
    JsonSchemaValidator,
    PydanticSchemaValidator,
    SchemaValidator,
    ValidationReport,
    validate_payload,
)

__all__ = [
    "CUSTOM_ERROR_KEY",
    "CUSTOM_ERROR_MESSAGE",
    "FORM_ERROR_KEY",
    "JsonSchemaValidator",
    "PydanticSchemaValidator",
    "SchemaValidator",
    "ValidationGateway",
    "ValidationReport",
    "validate_payload",
]
