"""Action catalog and dispatcher.

The catalog is a static table of operator actions, each bound to one gateway
call. The dispatcher runs them with a per-key busy flag and reports the
outcome as transient notifications.
"""

import logging
import sys
from collections.abc import Awaitable, Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sysboard.classify import is_critical_process
from sysboard.gateway import CommandGateway, Rejected
from sysboard.models import ContainerRecord

logger = logging.getLogger(__name__)

SUCCESS_DURATION_MS = 3000
INFO_DURATION_MS = 3000
ERROR_DURATION_MS = 5000


class ActionCategory(Enum):
    """Catalog sections, in display order."""

    SYSTEM_MANAGEMENT = "System management"
    SETTINGS = "Settings"
    STORAGE = "Storage"
    NETWORK_SECURITY = "Network & security"
    DEVELOPER = "Developer tools"
    COMMAND = "Command tools"
    NETWORK_DIAGNOSTICS = "Network diagnostics"


class NotificationKind(Enum):
    """Notification flavour."""

    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


@dataclass(slots=True, frozen=True)
class Notification:
    """A transient message for the operator."""

    kind: NotificationKind
    message: str
    duration_ms: int


Operation = Callable[[], Awaitable[str | None]]


@dataclass(slots=True, frozen=True)
class ActionDescriptor:
    """
    An operator action.

    ``run`` resolves to optional output text on success and raises on
    failure. ``dangerous`` actions need confirmation before they run;
    ``invalidates_snapshot`` marks actions that change host state.
    """

    key: str
    label: str
    category: ActionCategory
    run: Operation = field(compare=False)
    description: str = ""
    dangerous: bool = False
    returns_output: bool = False
    invalidates_snapshot: bool = False


@dataclass(slots=True, frozen=True)
class ActionSpec:
    """Declarative catalog row: which gateway command an action calls."""

    key: str
    label: str
    category: ActionCategory
    command: str
    args: Mapping[str, Any] = field(default_factory=dict)
    description: str = ""
    returns_output: bool = False


def _gui(key: str, label: str, category: ActionCategory, app: str, description: str) -> ActionSpec:
    return ActionSpec(key, label, category, "open_gui_app", {"appName": app}, description)


def _shell(key: str, label: str, category: ActionCategory, command: str, *args: str) -> ActionSpec:
    display = " ".join((command, *args))
    return ActionSpec(
        key,
        label,
        category,
        "run_command",
        {"command": command, "args": list(args)},
        display,
        returns_output=True,
    )


TOOL_ACTIONS: tuple[ActionSpec, ...] = (
    ActionSpec("task_manager", "Task Manager", ActionCategory.SYSTEM_MANAGEMENT, "open_task_manager",
               description="Ctrl+Shift+Esc"),
    ActionSpec("device_manager", "Device Manager", ActionCategory.SYSTEM_MANAGEMENT, "open_device_manager",
               description="Manage hardware devices"),
    _gui("services", "Services", ActionCategory.SYSTEM_MANAGEMENT, "services.msc", "Manage system services"),
    _gui("event_viewer", "Event Viewer", ActionCategory.SYSTEM_MANAGEMENT, "eventvwr.msc", "Browse system logs"),
    ActionSpec("system_info", "System Information", ActionCategory.SYSTEM_MANAGEMENT, "open_system_info",
               description="Detailed system report"),
    _gui("computer_management", "Computer Management", ActionCategory.SYSTEM_MANAGEMENT, "compmgmt.msc",
         "Management console"),
    _gui("local_users_groups", "Local Users and Groups", ActionCategory.SYSTEM_MANAGEMENT, "lusrmgr.msc",
         "Manage user accounts"),
    _gui("group_policy", "Group Policy Editor", ActionCategory.SYSTEM_MANAGEMENT, "gpedit.msc", "Local group policy"),
    ActionSpec("system_settings", "System Settings", ActionCategory.SETTINGS, "open_system_settings",
               description="Settings panel"),
    _gui("control_panel", "Control Panel", ActionCategory.SETTINGS, "control", "Classic control panel"),
    _gui("power_options", "Power Options", ActionCategory.SETTINGS, "powercfg.cpl", "Power and sleep"),
    _gui("disk_management", "Disk Management", ActionCategory.STORAGE, "diskmgmt.msc", "Manage partitions"),
    _gui("storage_settings", "Storage Settings", ActionCategory.STORAGE, "ms-settings:storagesense",
         "Storage sense"),
    _gui("disk_cleanup", "Disk Cleanup", ActionCategory.STORAGE, "cleanmgr", "Remove temporary files"),
    _gui("defrag", "Defragment", ActionCategory.STORAGE, "dfrgui", "Optimize drives"),
    ActionSpec("network_settings", "Network Settings", ActionCategory.NETWORK_SECURITY, "open_network_settings",
               description="Network and Internet"),
    _gui("network_connections", "Network Connections", ActionCategory.NETWORK_SECURITY, "ncpa.cpl",
         "Adapter settings"),
    _gui("firewall", "Firewall", ActionCategory.NETWORK_SECURITY, "firewall.cpl", "Firewall settings"),
    ActionSpec("windows_security", "Windows Security", ActionCategory.NETWORK_SECURITY, "open_windows_security",
               description="Virus and threat protection"),
    ActionSpec("powershell", "PowerShell", ActionCategory.DEVELOPER, "run_command_in_new_window",
               {"command": "powershell", "args": []}, "Open a PowerShell window"),
    ActionSpec("cmd", "Command Prompt", ActionCategory.DEVELOPER, "run_command_in_new_window",
               {"command": "cmd", "args": []}, "Open a command prompt"),
    _gui("regedit", "Registry Editor", ActionCategory.DEVELOPER, "regedit", "Edit the registry"),
    _gui("resource_monitor", "Resource Monitor", ActionCategory.DEVELOPER, "resmon", "Detailed resource usage"),
    _gui("performance_monitor", "Performance Monitor", ActionCategory.DEVELOPER, "perfmon", "Performance analysis"),
)

WINDOWS_COMMAND_ACTIONS: tuple[ActionSpec, ...] = (
    _shell("ipconfig", "IP configuration", ActionCategory.COMMAND, "ipconfig", "/all"),
    _shell("netstat", "Connections", ActionCategory.COMMAND, "netstat", "-an"),
    _shell("systeminfo", "System details", ActionCategory.COMMAND, "systeminfo"),
    _shell("wlan_info", "WLAN profiles", ActionCategory.NETWORK_DIAGNOSTICS, "netsh", "wlan", "show", "profiles"),
    _shell("route_print", "Routing table", ActionCategory.NETWORK_DIAGNOSTICS, "route", "print"),
)

POSIX_COMMAND_ACTIONS: tuple[ActionSpec, ...] = (
    _shell("ipconfig", "IP configuration", ActionCategory.COMMAND, "ip", "addr"),
    _shell("netstat", "Connections", ActionCategory.COMMAND, "ss", "-tuan"),
    _shell("systeminfo", "System details", ActionCategory.COMMAND, "uname", "-a"),
    _shell("wlan_info", "WLAN profiles", ActionCategory.NETWORK_DIAGNOSTICS, "nmcli", "connection", "show"),
    _shell("route_print", "Routing table", ActionCategory.NETWORK_DIAGNOSTICS, "ip", "route"),
)


def default_action_specs(platform: str = sys.platform) -> tuple[ActionSpec, ...]:
    """The built-in catalog rows for ``platform``."""
    commands = WINDOWS_COMMAND_ACTIONS if platform == "win32" else POSIX_COMMAND_ACTIONS
    return TOOL_ACTIONS + commands


def _output_text(result: Any) -> str:
    if result is None:
        return ""
    return result if isinstance(result, str) else str(result)


def gateway_action(gateway: CommandGateway, spec: ActionSpec) -> ActionDescriptor:
    """Bind a catalog row to the gateway."""
    args = dict(spec.args)

    async def run() -> str | None:
        result = await gateway.invoke(spec.command, args)
        return _output_text(result) if spec.returns_output else None

    return ActionDescriptor(
        key=spec.key,
        label=spec.label,
        category=spec.category,
        run=run,
        description=spec.description,
        returns_output=spec.returns_output,
    )


class ActionCatalog:
    """Ordered, immutable set of actions keyed by ``ActionDescriptor.key``."""

    def __init__(self, actions: Iterable[ActionDescriptor]) -> None:
        self._actions: dict[str, ActionDescriptor] = {}
        for action in actions:
            if action.key in self._actions:
                raise ValueError(f"duplicate action key: {action.key}")
            self._actions[action.key] = action

    def __contains__(self, key: object) -> bool:
        return key in self._actions

    def __iter__(self) -> Iterator[ActionDescriptor]:
        return iter(self._actions.values())

    def __len__(self) -> int:
        return len(self._actions)

    def get(self, key: str) -> ActionDescriptor:
        """Look up an action; raises KeyError for unknown keys."""
        return self._actions[key]

    def by_category(self) -> dict[ActionCategory, list[ActionDescriptor]]:
        """Actions grouped by category, categories in display order."""
        grouped: dict[ActionCategory, list[ActionDescriptor]] = {category: [] for category in ActionCategory}
        for action in self._actions.values():
            grouped[action.category].append(action)
        return {category: actions for category, actions in grouped.items() if actions}


def build_catalog(gateway: CommandGateway, specs: Iterable[ActionSpec] | None = None) -> ActionCatalog:
    """Build the catalog from ``specs`` (the platform defaults when omitted)."""
    rows = default_action_specs() if specs is None else specs
    return ActionCatalog(gateway_action(gateway, spec) for spec in rows)


def kill_process_action(gateway: CommandGateway, pid: int, name: str) -> ActionDescriptor:
    """Terminate a process; dangerous when the process is system-critical."""

    async def run() -> str | None:
        killed = await gateway.invoke("kill_process", {"pid": pid})
        if killed is False:
            raise Rejected("kill_process", f"process {pid} was not terminated")
        return None

    return ActionDescriptor(
        key=f"kill_process:{pid}",
        label=f"Kill {name} ({pid})",
        category=ActionCategory.SYSTEM_MANAGEMENT,
        run=run,
        dangerous=is_critical_process(name),
        invalidates_snapshot=True,
    )


def container_action(gateway: CommandGateway, container: ContainerRecord, verb: str) -> ActionDescriptor:
    """Stop or restart a container."""
    if verb not in ("stop", "restart"):
        raise ValueError(f"unsupported container action: {verb}")

    async def run() -> str | None:
        await gateway.invoke(f"{verb}_container", {"containerId": container.id})
        return None

    return ActionDescriptor(
        key=f"{verb}_container:{container.id}",
        label=f"{verb.capitalize()} {container.name}",
        category=ActionCategory.DEVELOPER,
        run=run,
        invalidates_snapshot=True,
    )


Notifier = Callable[[Notification], None]
Confirmer = Callable[[str], Awaitable[bool]]
ResultSink = Callable[[str, str], None]


class ActionDispatcher:
    """
    Runs actions with busy tracking and uniform reporting.

    While an action's key is busy, further dispatches of that key are
    suppressed rather than queued. The busy flag is released in a
    ``finally`` block on every exit path.
    """

    def __init__(
        self,
        catalog: ActionCatalog,
        notify: Notifier,
        *,
        confirm: Confirmer | None = None,
        show_result: ResultSink | None = None,
        on_write: Callable[[], None] | None = None,
        on_busy: Callable[[str, bool], None] | None = None,
        confirm_dangerous: bool = True,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            catalog: Static actions addressable by key.
            notify: Receives success/error/info notifications.
            confirm: Asked before dangerous actions; resolves True to proceed.
            show_result: Receives (label, output) from result-returning actions.
            on_write: Called after a state-changing action succeeds.
            on_busy: Called with (key, busy) when an action starts or finishes.
            confirm_dangerous: When False, dangerous actions run unprompted.
        """
        self._catalog = catalog
        self._notify = notify
        self._confirm = confirm
        self._show_result = show_result
        self._on_write = on_write
        self._on_busy = on_busy
        self.confirm_dangerous = confirm_dangerous
        self._busy: set[str] = set()

    @property
    def catalog(self) -> ActionCatalog:
        """The static catalog."""
        return self._catalog

    @property
    def busy_keys(self) -> frozenset[str]:
        """Keys of actions currently in flight."""
        return frozenset(self._busy)

    def is_busy(self, key: str) -> bool:
        """Whether ``key`` is in flight (its trigger should be disabled)."""
        return key in self._busy

    def _resolve(self, action: str | ActionDescriptor) -> ActionDescriptor | None:
        if not isinstance(action, str):
            return action
        try:
            return self._catalog.get(action)
        except KeyError:
            logger.warning("unknown action %s", action)
            self._emit(NotificationKind.ERROR, f"Unknown action: {action}", ERROR_DURATION_MS)
            return None

    async def dispatch(self, action: str | ActionDescriptor) -> bool:
        """
        Run an action for its side effect.

        An unknown key is reported as an error notification, not raised.

        Returns:
            True when the action ran and succeeded.
        """
        descriptor = self._resolve(action)
        if descriptor is None:
            return False
        succeeded, _ = await self._execute(descriptor)
        return succeeded

    async def dispatch_with_result(self, action: str | ActionDescriptor) -> str | None:
        """
        Run an action and forward its output to the result sink.

        Returns:
            The output text, or None when the action did not succeed.
        """
        descriptor = self._resolve(action)
        if descriptor is None:
            return None
        succeeded, output = await self._execute(descriptor)
        if not succeeded:
            return None
        text = output or ""
        if self._show_result is not None:
            self._show_result(descriptor.label, text)
        return text

    async def _execute(self, action: ActionDescriptor) -> tuple[bool, str | None]:
        if action.key in self._busy:
            logger.debug("suppressing %s: already running", action.key)
            return False, None

        self._set_busy(action.key, True)
        try:
            if action.dangerous and self.confirm_dangerous:
                if not await self._confirmed(action):
                    self._emit(NotificationKind.INFO, f"{action.label} cancelled", INFO_DURATION_MS)
                    return False, None
            logger.info("running action %s", action.key)
            output = await action.run()
        except Exception as exc:
            logger.warning("action %s failed: %s", action.key, exc)
            self._emit(NotificationKind.ERROR, f"{action.label} failed: {exc}", ERROR_DURATION_MS)
            return False, None
        finally:
            self._set_busy(action.key, False)

        if action.invalidates_snapshot and self._on_write is not None:
            self._on_write()
        self._emit(NotificationKind.SUCCESS, f"{action.label} completed", SUCCESS_DURATION_MS)
        return True, output

    def _set_busy(self, key: str, busy: bool) -> None:
        if busy:
            self._busy.add(key)
        else:
            self._busy.discard(key)
        if self._on_busy is not None:
            self._on_busy(key, busy)

    async def _confirmed(self, action: ActionDescriptor) -> bool:
        if self._confirm is None:
            logger.info("refusing dangerous action %s without a confirmation prompt", action.key)
            return False
        return await self._confirm(f"{action.label} may destabilize the system. Continue?")

    def _emit(self, kind: NotificationKind, message: str, duration_ms: int) -> None:
        self._notify(Notification(kind, message, duration_ms))
