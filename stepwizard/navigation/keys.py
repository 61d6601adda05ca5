"""Session-state key namespacing for persisted wizard progress."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class WizardSessionKeys:
    """Map storage keys of one wizard to ``wiz:<wizard_id>:<key>`` and back.

    Several wizards can share one Streamlit session; each only sees the
    entries under its own prefix.
    """

    wizard_id: str

    @property
    def prefix(self) -> str:
        return f"wiz:{self.wizard_id}:"

    def namespace(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def local_key(self, namespaced: object) -> str | None:
        """Return the storage key inside ``namespaced``, or ``None`` for foreign entries."""

        if isinstance(namespaced, str) and namespaced.startswith(self.prefix):
            return namespaced[len(self.prefix) :]
        return None
