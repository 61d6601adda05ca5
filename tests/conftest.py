from pathlib import Path
import sys

import pytest
import streamlit as st


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


class _SessionDict(dict[str, object]):
    """Lightweight replacement for ``st.session_state`` during tests."""


@pytest.fixture(autouse=True)
def _stub_streamlit_session_state(monkeypatch: pytest.MonkeyPatch) -> None:
    """Replace Streamlit's runtime-bound session state with a plain dictionary."""

    session_state = _SessionDict()
    monkeypatch.setattr(st, "session_state", session_state, raising=False)
    yield


@pytest.fixture(autouse=True)
def _isolate_wizard_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("STEPWIZARD_CONFIG", "STEPWIZARD_PERSIST_STATE", "STEPWIZARD_STORAGE_KEY", "STEPWIZARD_TRACE_CONSOLE"):
        monkeypatch.delenv(name, raising=False)
    yield
