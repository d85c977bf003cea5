"""Application context: everything the UI shares, built once at startup."""

import dataclasses
import logging
from collections.abc import Callable
from pathlib import Path

from sysboard.actions import (
    ActionCatalog,
    ActionDispatcher,
    Confirmer,
    Notifier,
    ResultSink,
    build_catalog,
)
from sysboard.backend import PsutilBackend
from sysboard.cache import SNAPSHOT_TTL_MS, SnapshotCache, SnapshotService, epoch_millis
from sysboard.gateway import CommandGateway, Transport
from sysboard.models import ContainerRecord, PortRecord, ProcessRecord
from sysboard.normalizer import normalize_containers, normalize_ports, normalize_processes
from sysboard.settings import Settings, load_settings, save_settings
from sysboard.shortcuts import ShortcutRegistry

logger = logging.getLogger(__name__)


class AppContext:
    """
    Owns the gateway, snapshot cache, action catalog, dispatcher, shortcut
    registry and settings for one application run.

    Create it with ``AppContext.create`` and release it with ``close``.
    """

    def __init__(
        self,
        gateway: CommandGateway,
        snapshots: SnapshotService,
        dispatcher: ActionDispatcher,
        shortcuts: ShortcutRegistry,
        settings: Settings,
        settings_path: Path | None = None,
    ) -> None:
        self.gateway = gateway
        self.snapshots = snapshots
        self.dispatcher = dispatcher
        self.shortcuts = shortcuts
        self._settings = settings
        self._settings_path = settings_path
        self._closed = False

    @classmethod
    def create(
        cls,
        notify: Notifier,
        *,
        transport: Transport | None = None,
        commands: frozenset[str] | None = None,
        confirm: Confirmer | None = None,
        show_result: ResultSink | None = None,
        on_busy: Callable[[str, bool], None] | None = None,
        settings_path: Path | None = None,
        clock: Callable[[], int] = epoch_millis,
        catalog: ActionCatalog | None = None,
    ) -> "AppContext":
        """
        Wire up a context.

        Args:
            notify: Receives dispatcher notifications.
            transport: Backend transport; the local psutil backend by default.
            commands: Command names the transport accepts. Taken from the
                transport's ``commands`` attribute when omitted.
            confirm: Confirmation prompt for dangerous actions.
            show_result: Sink for action output.
            on_busy: Told when an action starts or finishes running.
            settings_path: Settings store; the default location when omitted.
            clock: Epoch-millisecond clock for the snapshot cache.
            catalog: Action catalog; the platform defaults when omitted.
        """
        if transport is None:
            transport = PsutilBackend()
        if commands is None:
            commands = getattr(transport, "commands", None)
        gateway = CommandGateway(transport, commands)
        snapshots = SnapshotService(gateway, SnapshotCache(SNAPSHOT_TTL_MS, clock))
        settings = load_settings(settings_path)
        dispatcher = ActionDispatcher(
            catalog if catalog is not None else build_catalog(gateway),
            notify,
            confirm=confirm,
            show_result=show_result,
            on_write=snapshots.invalidate,
            on_busy=on_busy,
            confirm_dangerous=settings.confirm_dangerous_actions,
        )
        logger.debug("context created with %d actions", len(dispatcher.catalog))
        return cls(gateway, snapshots, dispatcher, ShortcutRegistry(), settings, settings_path)

    @property
    def settings(self) -> Settings:
        """Current settings."""
        return self._settings

    @property
    def closed(self) -> bool:
        return self._closed

    def update_settings(self, **changes) -> Settings:
        """Apply and persist setting changes."""
        self._settings = dataclasses.replace(self._settings, **changes)
        self.dispatcher.confirm_dangerous = self._settings.confirm_dangerous_actions
        save_settings(self._settings, self._settings_path)
        return self._settings

    async def fetch_ports(self) -> tuple[PortRecord, ...]:
        """Current port table."""
        return normalize_ports(await self.gateway.invoke("get_all_ports", expect=list))

    async def fetch_processes(self) -> tuple[ProcessRecord, ...]:
        """Current process table."""
        return normalize_processes(await self.gateway.invoke("get_all_processes", expect=list))

    async def fetch_containers(self) -> tuple[ContainerRecord, ...]:
        """Current containers; empty when no container engine is available."""
        if not await self.gateway.invoke("is_docker_available"):
            return ()
        return normalize_containers(await self.gateway.invoke("get_docker_containers", expect=list))

    def close(self) -> None:
        """Drop cached state. Safe to call twice."""
        if self._closed:
            return
        self.snapshots.cache.clear()
        self._closed = True
        logger.debug("context closed")
