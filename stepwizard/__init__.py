"""Multi-step form flows: step state, validation gates, and navigation guards."""

from __future__ import annotations

from stepwizard.config import (
    NavigationConfig,
    ResetConfig,
    ValidationConfig,
    WizardConfig,
    build_config,
    load_config,
)
from stepwizard.errors import ConfigurationError, PersistenceError, WizardError
from stepwizard.layout import NavigationButtonState, NavigationDirection, StepIndicator, StepViewState
from stepwizard.navigation import NavigationPolicy
from stepwizard.orchestrator import FormOrchestrator, WizardCallbacks
from stepwizard.outcomes import Outcome, TransitionResult
from stepwizard.state import (
    FlowSession,
    InMemoryStorage,
    PersistedState,
    SessionStateStorage,
    StatePersistence,
    StepStateMachine,
    Storage,
    StoragePersistence,
)
from stepwizard.step_registry import StepDescriptor, StepRegistry
from stepwizard.telemetry import setup_tracing
from stepwizard.types import StepDirection
from stepwizard.validation import (
    JsonSchemaValidator,
    PydanticSchemaValidator,
    SchemaValidator,
    ValidationGateway,
    ValidationReport,
)

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "FlowSession",
    "FormOrchestrator",
    "InMemoryStorage",
    "JsonSchemaValidator",
    "NavigationButtonState",
    "NavigationConfig",
    "NavigationDirection",
    "NavigationPolicy",
    "Outcome",
    "PersistedState",
    "PersistenceError",
    "PydanticSchemaValidator",
    "ResetConfig",
    "SchemaValidator",
    "SessionStateStorage",
    "StatePersistence",
    "StepDescriptor",
    "StepDirection",
    "StepIndicator",
    "StepRegistry",
    "StepStateMachine",
    "StepViewState",
    "Storage",
    "StoragePersistence",
    "TransitionResult",
    "ValidationConfig",
    "ValidationGateway",
    "ValidationReport",
    "WizardCallbacks",
    "WizardConfig",
    "WizardError",
    "build_config",
    "load_config",
    "setup_tracing",
]
