"""
Unit tests for the Sway/i3 window host.

Uses an AsyncMock connection; trees and containers are plain Mocks.
"""

from unittest.mock import AsyncMock, Mock

import pytest
from i3ipc.aio import Connection

from focus_helper.errors import RuntimeCallError
from focus_helper.host import SwayWindowHost


def make_con(con_id, workspace="1", app_id="procletchrome", con_type="con", window=None):
    con = Mock()
    con.id = con_id
    con.type = con_type
    con.app_id = app_id
    con.window = window
    con.window_class = None
    con.window_instance = None
    if workspace is None:
        con.workspace.return_value = None
    else:
        ws = Mock()
        ws.name = workspace
        con.workspace.return_value = ws
    return con


def make_workspace(name, visible):
    ws = Mock()
    ws.name = name
    ws.visible = visible
    return ws


@pytest.fixture
def conn():
    conn = AsyncMock(spec=Connection)
    conn.command.return_value = [Mock(success=True, error=None)]
    conn.get_workspaces.return_value = [make_workspace("1", True), make_workspace("2", False)]
    return conn


def set_tree(conn, containers, focused=None):
    tree = Mock()
    by_id = {c.id: c for c in containers}
    tree.find_by_id.side_effect = by_id.get
    tree.find_focused.return_value = focused
    conn.get_tree.return_value = tree


class TestCandidates:

    def test_priority_order(self, conn):
        con = make_con(5, app_id="ProcletChrome")
        con.window_class = "Chrome"
        con.window_instance = "chrome"
        host = SwayWindowHost(conn)
        assert host.candidate_classes(con) == ("ProcletChrome", "Chrome", "chrome")
        assert host.window_identity(con) == 5


class TestWindowState:

    @pytest.mark.asyncio
    async def test_normal_window(self, conn):
        con = make_con(5)
        set_tree(conn, [con], focused=make_con(9))

        state = await SwayWindowHost(conn).window_state(con)

        assert state.eligible
        assert not state.active

    @pytest.mark.asyncio
    async def test_focused_window_is_active(self, conn):
        con = make_con(5)
        set_tree(conn, [con], focused=con)
        assert (await SwayWindowHost(conn).window_state(con)).active

    @pytest.mark.asyncio
    async def test_missing_window_is_deleted(self, conn):
        set_tree(conn, [])
        state = await SwayWindowHost(conn).window_state(make_con(5))
        assert state.deleted
        assert not state.eligible

    @pytest.mark.asyncio
    @pytest.mark.parametrize("workspace", ["__i3_scratch", None])
    async def test_scratchpad_is_minimized(self, conn, workspace):
        con = make_con(5, workspace=workspace)
        set_tree(conn, [con])
        assert (await SwayWindowHost(conn).window_state(con)).minimized

    @pytest.mark.asyncio
    async def test_x11_window_wants_input(self, conn):
        con = make_con(5, app_id=None, window=0x1400003)
        set_tree(conn, [con])
        assert (await SwayWindowHost(conn).window_state(con)).wants_input

    @pytest.mark.asyncio
    async def test_split_container_does_not_want_input(self, conn):
        con = make_con(5, app_id=None, window=None)
        set_tree(conn, [con])
        assert not (await SwayWindowHost(conn).window_state(con)).wants_input

    @pytest.mark.asyncio
    async def test_tree_failure_raises_runtime_call_error(self, conn):
        conn.get_tree.side_effect = ConnectionResetError("socket closed")
        with pytest.raises(RuntimeCallError):
            await SwayWindowHost(conn).window_state(make_con(5))


class TestEffects:

    @pytest.mark.asyncio
    async def test_activate_focuses_by_con_id(self, conn):
        await SwayWindowHost(conn).activate_window(make_con(42))
        conn.command.assert_awaited_once_with("[con_id=42] focus")

    @pytest.mark.asyncio
    async def test_raise_switches_to_hidden_workspace(self, conn):
        con = make_con(5, workspace="2")
        set_tree(conn, [con])

        await SwayWindowHost(conn).raise_window(con)

        conn.command.assert_awaited_once_with('workspace --no-auto-back-and-forth "2"')

    @pytest.mark.asyncio
    async def test_raise_on_visible_workspace_is_noop(self, conn):
        con = make_con(5, workspace="1")
        set_tree(conn, [con])

        await SwayWindowHost(conn).raise_window(con)

        conn.command.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_raise_missing_window(self, conn):
        set_tree(conn, [])
        with pytest.raises(RuntimeCallError):
            await SwayWindowHost(conn).raise_window(make_con(5))

    @pytest.mark.asyncio
    async def test_failed_command_reply(self, conn):
        conn.command.return_value = [Mock(success=False, error="No matching node")]
        with pytest.raises(RuntimeCallError) as exc_info:
            await SwayWindowHost(conn).activate_window(make_con(42))
        assert "No matching node" in exc_info.value.message
