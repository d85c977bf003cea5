"""Tests for sysboard application."""

import pytest
from textual.widgets import DataTable

from conftest import FakeTransport
from sysboard.actions import kill_process_action
from sysboard.app import (
    ConfirmScreen,
    PortTable,
    ProcessTable,
    SettingsScreen,
    SysboardApp,
    TextScreen,
    format_bytes,
    format_speed,
    format_uptime,
    usage_bar,
)
from sysboard.cache import SNAPSHOT_COMMAND
from sysboard.gateway import Unreachable
from sysboard.pipeline import PortCategory, SortKey
from sysboard.settings import load_settings


def test_format_bytes_units():
    """Test format_bytes picks the largest unit below 1024."""
    assert "B" in format_bytes(500)
    assert "K" in format_bytes(2048)
    assert "M" in format_bytes(5242880)
    assert "G" in format_bytes(1073741824)


def test_format_speed():
    assert format_speed(866_700_000) == "866.7 Mbps"
    assert format_speed(1_000_000_000) == "1 Gbps"
    assert format_speed(0) == "-"


def test_format_uptime():
    assert format_uptime(93784) == "1 days, 02:03:04"
    assert format_uptime(59) == "00:00:59"


def test_usage_bar():
    """Test the bar fills one cell per five percent and escapes its bracket."""
    bar = usage_bar(50.0)

    assert bar.startswith("\\[")
    assert bar.count("█") == 10
    assert bar.endswith(" 50.0%")


@pytest.fixture
def app(transport, settings_path):
    return SysboardApp(transport=transport, settings_path=settings_path)


async def settle(app, pilot) -> None:
    """Let pending messages and workers finish."""
    await pilot.pause()
    await app.workers.wait_for_complete()
    await pilot.pause()


async def wait_for_screen(pilot, screen_type, attempts: int = 40):
    for _ in range(attempts):
        if isinstance(pilot.app.screen, screen_type):
            return pilot.app.screen
        await pilot.pause(0.05)
    pytest.fail(f"{screen_type.__name__} was not shown")


@pytest.mark.asyncio
async def test_app_creation(app):
    """Test SysboardApp can be instantiated."""
    assert app.title == "sysboard"
    assert app.sub_title == "System Dashboard"
    assert app.context.gateway.commands is not None


@pytest.mark.asyncio
async def test_app_compose(app):
    """Test SysboardApp composes correctly."""
    async with app.run_test() as pilot:
        for selector in ("#header-stats", "#interface-table", "#disk-table", "#port-table", "#process-table"):
            assert pilot.app.query_one(selector) is not None
        assert app.active_view == "dashboard"
        assert app.query_one("#action-table", DataTable).row_count == len(app.context.dispatcher.catalog)


@pytest.mark.asyncio
async def test_dashboard_loads_snapshot(app, transport):
    async with app.run_test() as pilot:
        await settle(app, pilot)

        assert app.query_one("#interface-table", DataTable).row_count == 3
        assert app.query_one("#disk-table", DataTable).row_count == 2
        assert transport.count(SNAPSHOT_COMMAND) == 1


@pytest.mark.asyncio
async def test_refresh_failure_is_reported(settings_path):
    """Test an unreachable backend leaves the app running."""
    transport = FakeTransport()
    transport.responses[SNAPSHOT_COMMAND] = Unreachable(SNAPSHOT_COMMAND, "backend down")
    app = SysboardApp(transport=transport, settings_path=settings_path)
    async with app.run_test() as pilot:
        await settle(app, pilot)

        assert app.query_one("#interface-table", DataTable).row_count == 0
        assert app.is_running


@pytest.mark.asyncio
async def test_app_quit_binding(app):
    """Test that 'q' binding triggers quit and releases the context."""
    async with app.run_test() as pilot:
        await settle(app, pilot)
        await pilot.press("q")

        assert app.context.closed


class TestShortcuts:
    """Tests for the keyboard shortcuts."""

    @pytest.mark.asyncio
    async def test_view_switching(self, app):
        async with app.run_test() as pilot:
            await settle(app, pilot)

            await pilot.press("alt+2")
            await settle(app, pilot)
            assert app.active_view == "processes"
            assert app.query_one("#process-table", DataTable).row_count == 4

            await pilot.press("alt+1")
            await settle(app, pilot)
            assert app.active_view == "ports"
            assert app.query_one("#port-table", DataTable).row_count == 4

            await pilot.press("alt+4")
            await settle(app, pilot)
            assert app.active_view == "actions"

    @pytest.mark.asyncio
    async def test_refresh_bypasses_cache(self, app, transport):
        async with app.run_test() as pilot:
            await settle(app, pilot)

            await pilot.press("f5")
            await settle(app, pilot)

            assert transport.count(SNAPSHOT_COMMAND) == 2

    @pytest.mark.asyncio
    async def test_suppressed_while_typing(self, app, transport):
        """Test shortcuts do nothing while a search box has focus."""
        async with app.run_test() as pilot:
            await settle(app, pilot)
            await pilot.press("alt+2")
            await settle(app, pilot)
            fetched = transport.count("get_all_processes")

            app.query_one("#process-search").focus()
            await pilot.pause()
            await pilot.press("f5")
            await settle(app, pilot)
            assert transport.count("get_all_processes") == fetched

            await pilot.press("c", "h", "r")
            await settle(app, pilot)
            assert app.query_one("#process-table", DataTable).row_count == 1
            assert app.query_one(PortTable).port_filter.category is PortCategory.ALL

            app.set_focus(None)
            await pilot.press("f5")
            await settle(app, pilot)
            assert transport.count("get_all_processes") == fetched + 1

    @pytest.mark.asyncio
    async def test_help_opens_and_escape_closes(self, app):
        async with app.run_test() as pilot:
            await settle(app, pilot)

            await pilot.press("ctrl+h")
            await wait_for_screen(pilot, TextScreen)

            await pilot.press("escape")
            await pilot.pause()
            assert not isinstance(app.screen, TextScreen)


class TestProcesses:
    """Tests for the process view."""

    @pytest.mark.asyncio
    async def test_sort_selection(self, app):
        async with app.run_test() as pilot:
            await settle(app, pilot)
            await pilot.press("alt+2")
            await settle(app, pilot)
            table = app.query_one(ProcessTable)

            assert [p.pid for p in table.visible_processes()] == [3100, 1200, 640, 4]

            table.select_sort(SortKey.NAME)
            assert [p.pid for p in table.visible_processes()] == [4, 1200, 640, 3100]

            table.select_sort(SortKey.NAME)
            assert [p.pid for p in table.visible_processes()] == [3100, 640, 1200, 4]

    @pytest.mark.asyncio
    async def test_kill_selected_process(self, app, transport):
        """Test 'k' kills the process under the cursor, the top CPU consumer."""
        async with app.run_test() as pilot:
            await settle(app, pilot)
            await pilot.press("alt+2")
            await settle(app, pilot)
            assert app.query_one(ProcessTable).selected().pid == 3100

            await pilot.press("k")
            await settle(app, pilot)

            assert ("kill_process", {"pid": 3100}) in transport.calls

    @pytest.mark.asyncio
    async def test_kill_ignored_outside_process_view(self, app, transport):
        async with app.run_test() as pilot:
            await settle(app, pilot)
            await pilot.press("k")
            await settle(app, pilot)

            assert transport.count("kill_process") == 0

    @pytest.mark.asyncio
    async def test_dangerous_kill_declined(self, app, transport):
        async with app.run_test() as pilot:
            await settle(app, pilot)
            app.run_action_descriptor(kill_process_action(app.context.gateway, 640, "explorer.exe"))

            await wait_for_screen(pilot, ConfirmScreen)
            await pilot.press("n")
            await settle(app, pilot)

            assert not isinstance(app.screen, ConfirmScreen)
            assert transport.count("kill_process") == 0

    @pytest.mark.asyncio
    async def test_dangerous_kill_accepted(self, app, transport):
        async with app.run_test() as pilot:
            await settle(app, pilot)
            app.run_action_descriptor(kill_process_action(app.context.gateway, 640, "explorer.exe"))

            await wait_for_screen(pilot, ConfirmScreen)
            await pilot.press("y")
            await settle(app, pilot)

            assert transport.calls.count(("kill_process", {"pid": 640})) == 1

    @pytest.mark.asyncio
    async def test_hide_system_processes(self, app):
        async with app.run_test() as pilot:
            await settle(app, pilot)
            await pilot.press("alt+2")
            await settle(app, pilot)

            app.context.update_settings(show_system_processes=False)
            app.apply_settings()

            assert [p.pid for p in app.query_one(ProcessTable).visible_processes()] == [3100, 1200]


@pytest.mark.asyncio
async def test_port_category_cycles(app):
    async with app.run_test() as pilot:
        await settle(app, pilot)
        await pilot.press("alt+1")
        await settle(app, pilot)

        await pilot.press("c")
        await pilot.pause()

        assert app.query_one(PortTable).port_filter.category is PortCategory.DEVELOPMENT
        assert app.query_one("#port-table", DataTable).row_count == 1


@pytest.mark.asyncio
async def test_command_output_shown(app, transport):
    """Test an action with output opens a text panel."""
    async with app.run_test() as pilot:
        await settle(app, pilot)
        app.run_action_descriptor(app.context.dispatcher.catalog.get("ipconfig"))

        await wait_for_screen(pilot, TextScreen)
        assert transport.count("run_command") == 1


@pytest.mark.asyncio
async def test_settings_screen_toggles_theme(app, settings_path):
    async with app.run_test() as pilot:
        await settle(app, pilot)

        await pilot.press("ctrl+comma")
        await wait_for_screen(pilot, SettingsScreen)
        await pilot.press("t")
        await pilot.pause()

        assert app.theme == "textual-light"
        assert load_settings(settings_path).theme == "light"


@pytest.mark.asyncio
async def test_running_action_row_is_marked(app):
    """Test an in-flight action's row is dimmed and restored when it finishes."""
    async with app.run_test() as pilot:
        await settle(app, pilot)
        table = app.query_one("#action-table", DataTable)

        app.show_busy("ipconfig", True)
        assert "running" in str(table.get_cell("ipconfig", "label"))

        app.show_busy("ipconfig", False)
        assert table.get_cell("ipconfig", "label") == "IP configuration"

        app.show_busy("kill_process:640", True)


@pytest.mark.asyncio
async def test_ports_view_renders(app):
    """Test the ports and processes tabs render their tables."""
    async with app.run_test() as pilot:
        await settle(app, pilot)

        app.show_view("ports")
        await settle(app, pilot)
        assert app.query_one("#port-table", DataTable).row_count == 4

        app.show_view("processes")
        await settle(app, pilot)
        assert app.query_one("#process-table", DataTable).row_count == 4
