"""Pure predicates deciding whether a navigation intent is permitted."""

from __future__ import annotations

import logging
from collections.abc import Collection
from dataclasses import dataclass, field

from stepwizard.config import NavigationConfig, ResetConfig
from stepwizard.step_registry import StepRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NavigationPolicy:
    """Navigation and reset guards for one flow configuration.

    Every predicate is a function of its arguments and the configuration;
    the policy never mutates wizard state.
    """

    navigation: NavigationConfig = field(default_factory=NavigationConfig)
    reset: ResetConfig = field(default_factory=ResetConfig)

    def can_go_back(self, current_index: int) -> bool:
        return self.navigation.allow_back_navigation and current_index > 0

    def can_go_next(self, current_index: int, total_steps: int) -> bool:
        return current_index < total_steps - 1

    def can_skip(self, current_index: int, registry: StepRegistry) -> bool:
        """Skipping is reserved for optional steps that are not the last one."""

        if not self.navigation.allow_skipping:
            return False
        step = registry.get(current_index)
        if step is None or not step.is_optional:
            return False
        return current_index < len(registry) - 1

    def can_jump_to(
        self,
        current_index: int,
        target_index: int,
        registry: StepRegistry,
        *,
        completed: Collection[int] = (),
        skipped: Collection[int] = (),
    ) -> bool:
        target = registry.get(target_index)
        if target is None or target_index == current_index or target.is_disabled:
            return False
        moving_forward = target_index > current_index
        if moving_forward and not self.navigation.allow_step_jumping:
            return False
        if moving_forward and not self.navigation.allow_forward_navigation:
            return False
        if moving_forward and self.navigation.require_step_completion:
            for index in range(current_index + 1, target_index):
                if index not in completed and index not in skipped:
                    return False
        return self._custom_rules_permit(current_index, target_index)

    def _custom_rules_permit(self, current_index: int, target_index: int) -> bool:
        rules = self.navigation.custom_navigation_rules
        if rules is None:
            return True
        try:
            verdict = rules(current_index, target_index)
        except Exception as error:
            logger.warning(
                "Custom navigation rule failed for %s -> %s; denying", current_index, target_index, exc_info=error
            )
            return False
        return verdict is not False

    def is_reset_available(
        self,
        *,
        current_index: int,
        total_steps: int,
        completed_count: int,
        is_submitted: bool,
    ) -> bool:
        """Return ``True`` when every configured reset gate passes."""

        config = self.reset
        if not config.enabled:
            return False
        if is_submitted and not config.allow_reset_after_submission:
            return False
        if current_index == 0 and not config.allow_reset_on_first_step:
            return False
        if current_index == total_steps - 1 and not config.allow_reset_on_last_step:
            return False
        if completed_count < config.min_steps_completed:
            return False
        if config.max_steps_completed is not None and completed_count > config.max_steps_completed:
            return False
        return True


__all__ = ["NavigationPolicy"]
