"""Configuration models for wizard flows.

A :class:`WizardConfig` bundles the validation, navigation, and reset
behaviour of a single flow. Configs are usually built in code, but the
serialisable parts (everything except the callable hooks) can also be loaded
from YAML via :func:`load_config`. ``STEPWIZARD_PERSIST_STATE`` and
``STEPWIZARD_STORAGE_KEY`` override the loaded values.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Callable, Mapping

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, ValidationError

from stepwizard.errors import ConfigurationError

load_dotenv()

logger = logging.getLogger(__name__)

ENV_CONFIG_PATH = "STEPWIZARD_CONFIG"
ENV_PERSIST_STATE = "STEPWIZARD_PERSIST_STATE"
ENV_STORAGE_KEY = "STEPWIZARD_STORAGE_KEY"

DEFAULT_CONFIRMATION_MESSAGE = "Are you sure you want to reset the form? All your progress will be lost."

_TRUTHY_ENV_VALUES: tuple[str, ...] = ("1", "true", "yes", "on")
_FALSY_ENV_VALUES: tuple[str, ...] = ("0", "false", "no", "off")


class ValidationConfig(BaseModel):
    """When and how step fields are validated."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    validate_on_step_change: bool = True
    validate_on_blur: bool = False
    validate_on_submit: bool = True
    stop_on_first_error: bool = False
    custom_validator: Callable[..., Any] | None = Field(default=None, exclude=True)


class NavigationConfig(BaseModel):
    """Which navigation intents a flow permits."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    allow_back_navigation: bool = True
    allow_forward_navigation: bool = True
    allow_step_jumping: bool = True
    allow_skipping: bool = False
    require_step_completion: bool = False
    custom_navigation_rules: Callable[..., Any] | None = Field(default=None, exclude=True)


class ResetConfig(BaseModel):
    """Gates and confirmation behaviour for the reset intent."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: bool = True
    require_confirmation: bool = False
    confirmation_message: str = DEFAULT_CONFIRMATION_MESSAGE
    allow_reset_on_first_step: bool = True
    allow_reset_on_last_step: bool = True
    min_steps_completed: NonNegativeInt = 0
    max_steps_completed: NonNegativeInt | None = None
    allow_reset_after_submission: bool = False


class WizardConfig(BaseModel):
    """Top-level configuration for a wizard flow."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    title: str | None = None
    persist_state: bool = True
    storage_key: str | None = None
    validation: ValidationConfig = ValidationConfig()
    navigation: NavigationConfig = NavigationConfig()
    reset: ResetConfig = ResetConfig()

    @property
    def resolved_storage_key(self) -> str:
        """Return the key under which progress is persisted."""

        if self.storage_key:
            return self.storage_key
        return f"multistep-form-{self.title or 'default'}"


def _parse_bool_env(value: str | None, *, env_var: str) -> bool | None:
    """Return a boolean parsed from ``value`` or ``None`` when unset/invalid."""

    if value is None:
        return None
    candidate = value.strip().lower()
    if not candidate:
        return None
    if candidate in _TRUTHY_ENV_VALUES:
        return True
    if candidate in _FALSY_ENV_VALUES:
        return False
    logger.warning("Ignoring unsupported %s value '%s'", env_var, value)
    return None


def _read_yaml(path: Path) -> Mapping[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Wizard config at {path} must be a mapping, got {type(data).__name__}")
    return data


def build_config(data: Mapping[str, Any] | None = None) -> WizardConfig:
    """Validate ``data`` into a :class:`WizardConfig`."""

    try:
        return WizardConfig.model_validate(dict(data or {}))
    except ValidationError as error:
        raise ConfigurationError(f"Invalid wizard configuration: {error}") from error


def load_config(path: str | os.PathLike[str] | None = None) -> WizardConfig:
    """Load a wizard configuration from YAML and the environment.

    Args:
        path: Optional path to a YAML file. Falls back to the
            ``STEPWIZARD_CONFIG`` environment variable. Missing files yield
            the defaults.

    Raises:
        ConfigurationError: If the file content does not describe a valid
            configuration.
    """

    raw_path = path or os.getenv(ENV_CONFIG_PATH)
    data: dict[str, Any] = {}
    if raw_path:
        config_path = Path(raw_path)
        if config_path.exists():
            data = dict(_read_yaml(config_path))
        else:
            logger.info("Wizard config %s not found; using defaults", config_path)

    persist = _parse_bool_env(os.getenv(ENV_PERSIST_STATE), env_var=ENV_PERSIST_STATE)
    if persist is not None:
        data["persist_state"] = persist
    storage_key = (os.getenv(ENV_STORAGE_KEY) or "").strip()
    if storage_key:
        data["storage_key"] = storage_key
    return build_config(data)


__all__ = [
    "DEFAULT_CONFIRMATION_MESSAGE",
    "NavigationConfig",
    "ResetConfig",
    "ValidationConfig",
    "WizardConfig",
    "build_config",
    "load_config",
]
