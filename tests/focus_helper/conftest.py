"""
Pytest configuration and fixtures for focus helper tests.

Provides a temporary store, a fake window manager host and a manual
scheduler so engine behavior can be driven without Sway or timers.
"""

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

# Make the package importable without installation
sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from focus_helper.errors import RuntimeCallError  # noqa: E402
from focus_helper.host import WindowHost  # noqa: E402
from focus_helper.models import ReconfigureResult, WindowState  # noqa: E402
from focus_helper.scheduler import ManualScheduler  # noqa: E402
from focus_helper.store import AllowListStore  # noqa: E402


@dataclass
class FakeWindow:
    """Window as seen in an event payload."""
    id: Optional[int]
    app_id: Optional[str] = None
    window_class: Optional[str] = None
    window_instance: Optional[str] = None


class FakeHost(WindowHost):
    """In-memory window manager recording every effect call."""

    def __init__(self):
        self.states: Dict[int, WindowState] = {}
        self.calls: List[Tuple[str, Optional[int]]] = []
        self.fail_raise = False
        self.fail_activate = False
        self.fail_state = False

    def add(self, window: FakeWindow, **state) -> FakeWindow:
        self.states[window.id] = WindowState(**state)
        return window

    def candidate_classes(self, window):
        return (window.app_id, window.window_class, window.window_instance)

    def window_identity(self, window):
        return window.id

    async def window_state(self, window):
        if self.fail_state:
            raise RuntimeCallError("get_tree", "connection lost")
        return self.states.get(window.id, WindowState(deleted=True, wants_input=False))

    async def raise_window(self, window):
        self.calls.append(("raise", window.id))
        if self.fail_raise:
            raise RuntimeCallError("raise", "boom")

    async def activate_window(self, window):
        self.calls.append(("activate", window.id))
        if self.fail_activate:
            raise RuntimeCallError("activate", "boom")
        # The focus change makes the window active for later attempts
        if window.id in self.states:
            self.states[window.id].active = True

    def effects(self) -> List[str]:
        return [name for name, _ in self.calls]


@pytest.fixture
def store(tmp_path) -> AllowListStore:
    """Store in a fresh temporary directory with a short lock timeout."""
    return AllowListStore(tmp_path / "focus-helper", lock_timeout=0.5)


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def reload_calls(monkeypatch) -> List[str]:
    """Replace the reload signal in the CLI with a recorder."""
    calls: List[str] = []

    def fake_request_reload(payload: str = "focus-helper:reload") -> ReconfigureResult:
        calls.append(payload)
        return ReconfigureResult(success=True, method="test")

    monkeypatch.setattr("focus_helper.cli.request_reload", fake_request_reload)
    return calls


@pytest.fixture
def make_window(host):
    """Create a FakeWindow registered with the fake host.

    Keyword arguments beyond the class fields become WindowState flags;
    pass ``register=False`` for a window the host does not know about.
    """

    def _make(window_id, app_id=None, window_class=None, window_instance=None,
              register=True, **state):
        window = FakeWindow(window_id, app_id, window_class, window_instance)
        if register:
            host.add(window, **state)
        return window

    return _make
