"""Key-value storage backends for persisted wizard progress."""

from __future__ import annotations

import logging
from collections.abc import MutableMapping
from typing import Protocol, cast

import streamlit as st

from stepwizard.errors import PersistenceError
from stepwizard.navigation.keys import WizardSessionKeys

logger = logging.getLogger(__name__)


class Storage(Protocol):
    """Minimal string key-value store consumed by the persistence layer."""

    def get(self, key: str) -> str | None:
        """Return the stored string for ``key`` or ``None``."""

    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``."""

    def remove(self, key: str) -> None:
        """Delete ``key`` if present."""


class InMemoryStorage:
    """Dictionary-backed storage, mainly for tests and headless flows."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._data


class SessionStateStorage:
    """Store wizard progress inside ``st.session_state``.

    Keys are namespaced per wizard (``wiz:<wizard_id>:<key>``) so several
    flows can share one browser session without clobbering each other.
    Non-string entries found under a namespaced key are treated as missing.
    """

    def __init__(
        self,
        wizard_id: str = "default",
        *,
        session_state: MutableMapping[str, object] | None = None,
    ) -> None:
        self._keys = WizardSessionKeys(wizard_id=wizard_id)
        self._session_state = session_state

    @property
    def session_state(self) -> MutableMapping[str, object]:
        if self._session_state is not None:
            return self._session_state
        return cast(MutableMapping[str, object], st.session_state)

    def get(self, key: str) -> str | None:
        namespaced = self._keys.namespace(key)
        try:
            value = self.session_state.get(namespaced)
        except Exception as error:
            raise PersistenceError(namespaced) from error
        if value is None:
            return None
        if not isinstance(value, str):
            logger.debug("Ignoring non-string session entry at %s", namespaced)
            return None
        return value

    def set(self, key: str, value: str) -> None:
        namespaced = self._keys.namespace(key)
        try:
            self.session_state[namespaced] = value
        except Exception as error:
            raise PersistenceError(namespaced) from error

    def remove(self, key: str) -> None:
        namespaced = self._keys.namespace(key)
        try:
            self.session_state.pop(namespaced, None)
        except Exception as error:
            raise PersistenceError(namespaced) from error

    def keys(self) -> list[str]:
        """Return the storage keys this wizard currently holds in the session."""

        try:
            entries = list(self.session_state.keys())
        except Exception as error:
            raise PersistenceError(self._keys.prefix) from error
        return [local for local in map(self._keys.local_key, entries) if local is not None]


__all__ = ["InMemoryStorage", "SessionStateStorage", "Storage"]
