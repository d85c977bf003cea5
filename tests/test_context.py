"""Tests for the application context."""

import pytest

from conftest import FakeTransport
from sysboard.cache import SNAPSHOT_COMMAND, SYSTEM_SNAPSHOT
from sysboard.context import AppContext
from sysboard.gateway import UnknownCommand
from sysboard.settings import Settings, load_settings, save_settings


@pytest.fixture
def notifications():
    return []


@pytest.fixture
def context(transport, settings_path, notifications, clock):
    return AppContext.create(notifications.append, transport=transport, settings_path=settings_path, clock=clock)


def test_create_wires_components(context, transport):
    """Test the gateway advertises the transport's commands and the catalog is built."""
    assert context.gateway.commands == transport.commands
    assert len(context.dispatcher.catalog) > 0
    assert context.shortcuts.shortcuts
    assert context.settings == Settings()


def test_settings_loaded_from_store(transport, settings_path):
    save_settings(Settings(confirm_dangerous_actions=False), settings_path)

    context = AppContext.create(lambda n: None, transport=transport, settings_path=settings_path)

    assert context.dispatcher.confirm_dangerous is False


def test_update_settings_persists(context, settings_path):
    updated = context.update_settings(confirm_dangerous_actions=False, theme="light")

    assert updated.theme == "light"
    assert context.dispatcher.confirm_dangerous is False
    assert load_settings(settings_path) == updated


@pytest.mark.asyncio
async def test_write_action_invalidates_snapshot(context, transport):
    from sysboard.actions import kill_process_action

    await context.snapshots.get_snapshot()
    await context.dispatcher.dispatch(kill_process_action(context.gateway, 3100, "chrome.exe"))
    await context.snapshots.get_snapshot()

    assert transport.count(SNAPSHOT_COMMAND) == 2


@pytest.mark.asyncio
async def test_fetch_collections(context):
    ports = await context.fetch_ports()
    processes = await context.fetch_processes()
    containers = await context.fetch_containers()

    assert len(ports) == 4
    assert len(processes) == 4
    assert [c.name for c in containers] == ["web", "db"]


@pytest.mark.asyncio
async def test_containers_empty_without_engine(transport, settings_path):
    transport.responses["is_docker_available"] = False
    context = AppContext.create(lambda n: None, transport=transport, settings_path=settings_path)

    assert await context.fetch_containers() == ()
    assert transport.count("get_docker_containers") == 0


@pytest.mark.asyncio
async def test_unadvertised_command_refused(settings_path):
    transport = FakeTransport({SNAPSHOT_COMMAND: {}})
    context = AppContext.create(lambda n: None, transport=transport, settings_path=settings_path)

    with pytest.raises(UnknownCommand):
        await context.fetch_ports()
    assert transport.calls == []


@pytest.mark.asyncio
async def test_close_clears_cache_and_is_idempotent(context):
    await context.snapshots.get_snapshot()

    context.close()
    context.close()

    assert context.closed
    assert context.snapshots.cache.entry(SYSTEM_SNAPSHOT) is None
