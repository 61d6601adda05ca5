"""Navigation guards and session key helpers for the wizard."""

from __future__ import annotations

from stepwizard.navigation.keys import WizardSessionKeys
from stepwizard.navigation.policy import NavigationPolicy

__all__ = [
    "NavigationPolicy",
    "WizardSessionKeys",
]
