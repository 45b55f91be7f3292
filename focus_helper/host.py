"""Window manager boundary.

``WindowHost`` is everything the engine needs from the window manager:
candidate class strings, a fresh view of a window's state, and the two
effects (raise and activate). ``SwayWindowHost`` implements it over an
``i3ipc.aio`` connection and works on both Sway and i3.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Hashable, Optional, Tuple

from i3ipc.aio import Con, Connection

from .constants import SCRATCHPAD_WORKSPACE
from .errors import RuntimeCallError
from .models import WindowState

logger = logging.getLogger(__name__)

LEAF_TYPES = ("con", "floating_con")


class WindowHost(ABC):
    """Abstract window manager used by the focus engine."""

    @abstractmethod
    def candidate_classes(self, window: Any) -> Tuple[Optional[str], ...]:
        """Raw class strings in priority order.

        Order: platform-native application id, window-manager resource
        class, resource name.
        """

    @abstractmethod
    def window_identity(self, window: Any) -> Optional[Hashable]:
        """Stable per-instance identity, or None if the window exposes none."""

    @abstractmethod
    async def window_state(self, window: Any) -> WindowState:
        """Current deleted/minimized/wants-input/active flags."""

    @abstractmethod
    async def raise_window(self, window: Any) -> None:
        """Bring the window to the top of the visible stack."""

    @abstractmethod
    async def activate_window(self, window: Any) -> None:
        """Give the window input focus."""


class SwayWindowHost(WindowHost):
    """WindowHost over Sway/i3 IPC.

    Windows are ``i3ipc.Con`` containers from event payloads. State is always
    re-read from a freshly fetched tree because event containers are snapshots.
    """

    def __init__(self, conn: Connection):
        self.conn = conn

    def candidate_classes(self, window: Con) -> Tuple[Optional[str], ...]:
        # app_id: native Wayland (Sway); window_class/window_instance: X11/XWayland
        return (
            getattr(window, "app_id", None),
            getattr(window, "window_class", None),
            getattr(window, "window_instance", None),
        )

    def window_identity(self, window: Con) -> Optional[Hashable]:
        return getattr(window, "id", None)

    async def _find(self, window: Con) -> Tuple[Optional[Con], Optional[Con]]:
        """Return (fresh container or None, focused container or None)."""
        try:
            tree = await self.conn.get_tree()
        except Exception as e:
            raise RuntimeCallError("get_tree", str(e)) from e
        return tree.find_by_id(window.id), tree.find_focused()

    async def window_state(self, window: Con) -> WindowState:
        fresh, focused = await self._find(window)
        if fresh is None:
            return WindowState(deleted=True, wants_input=False)

        workspace = fresh.workspace()
        minimized = workspace is None or workspace.name == SCRATCHPAD_WORKSPACE
        has_window = bool(getattr(fresh, "app_id", None) or getattr(fresh, "window", None))

        return WindowState(
            deleted=False,
            minimized=minimized,
            wants_input=fresh.type in LEAF_TYPES and has_window,
            active=focused is not None and focused.id == fresh.id,
        )

    async def raise_window(self, window: Con) -> None:
        """Make the window's workspace visible on its output.

        Tiling window managers have no stacking order across workspaces, so
        raising means showing the workspace the window lives on. Floating
        windows are lifted by the subsequent focus.
        """
        fresh, _ = await self._find(window)
        if fresh is None:
            raise RuntimeCallError("raise", f"window {window.id} not found")

        workspace = fresh.workspace()
        if workspace is None or workspace.name == SCRATCHPAD_WORKSPACE:
            return

        try:
            workspaces = await self.conn.get_workspaces()
        except Exception as e:
            raise RuntimeCallError("get_workspaces", str(e)) from e

        if any(ws.name == workspace.name and ws.visible for ws in workspaces):
            logger.debug(f"Workspace {workspace.name} already visible for window {window.id}")
            return

        name = workspace.name.replace('"', '\\"')
        await self._command(f'workspace --no-auto-back-and-forth "{name}"', "raise")

    async def activate_window(self, window: Con) -> None:
        await self._command(f"[con_id={window.id}] focus", "activate")

    async def _command(self, command: str, operation: str) -> None:
        try:
            replies = await self.conn.command(command)
        except Exception as e:
            raise RuntimeCallError(operation, str(e)) from e

        failed = [r for r in replies if not r.success]
        if failed:
            raise RuntimeCallError(operation, failed[0].error or f"command failed: {command}")
        logger.debug(f"IPC command ok: {command}")
