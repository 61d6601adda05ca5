"""Registry for wizard steps, metadata, and canonical order."""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel


StepSchema = type[BaseModel] | Mapping[str, Any]


@dataclass(frozen=True)
class StepDescriptor:
    """Metadata for an individual wizard step.

    ``fields`` lists the form fields owned by the step and acts as the
    default fields-for-step mapping during validation. ``schema`` is an
    optional step-local schema (a pydantic model class or a JSON schema
    mapping) checked in addition to the form-wide validator.
    """

    id: str
    title: str
    description: str = ""
    fields: tuple[str, ...] = ()
    schema: StepSchema | None = None
    is_optional: bool = False
    is_disabled: bool = False
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", tuple(self.fields))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))


class StepRegistry(Sequence[StepDescriptor]):
    """Ordered, immutable collection of step descriptors for one flow."""

    def __init__(self, steps: Sequence[StepDescriptor]) -> None:
        ordered = tuple(steps)
        if not ordered:
            raise ValueError("A wizard flow needs at least one step")
        keys = [step.id for step in ordered]
        duplicates = sorted({key for key in keys if keys.count(key) > 1})
        if duplicates:
            raise ValueError(f"Duplicate step ids: {', '.join(duplicates)}")
        self._steps = ordered
        self._index_by_id = {step.id: index for index, step in enumerate(ordered)}

    def __getitem__(self, index):  # type: ignore[override]
        return self._steps[index]

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[StepDescriptor]:
        return iter(self._steps)

    def __repr__(self) -> str:
        return f"StepRegistry({list(self.step_ids())!r})"

    def step_ids(self) -> tuple[str, ...]:
        return tuple(step.id for step in self._steps)

    def get(self, index: int) -> StepDescriptor | None:
        """Return the descriptor at ``index`` or ``None`` when out of range."""

        if 0 <= index < len(self._steps):
            return self._steps[index]
        return None

    def index_of(self, step_id: str) -> int | None:
        return self._index_by_id.get(step_id)

    def fields_for_step(self, index: int) -> tuple[str, ...]:
        step = self.get(index)
        return step.fields if step is not None else ()

    def all_fields(self) -> tuple[str, ...]:
        """Return every field across all steps, in step order, without duplicates."""

        return tuple(dict.fromkeys(name for step in self._steps for name in step.fields))

    def step_for_field(self, name: str) -> int | None:
        """Return the index of the first step owning ``name``."""

        for index, step in enumerate(self._steps):
            if name in step.fields:
                return index
        return None


__all__ = ["StepDescriptor", "StepRegistry", "StepSchema"]
