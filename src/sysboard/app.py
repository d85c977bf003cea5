"""sysboard - Main Textual application."""

import asyncio
import logging
import os
from pathlib import Path

from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, DataTable, Footer, Input, Static, TabbedContent, TabPane, TextArea

from sysboard.actions import ActionDescriptor, Notification, NotificationKind, container_action, kill_process_action
from sysboard.cache import FORCED_REFRESH_SECONDS
from sysboard.classify import interface_category, is_critical_process, is_low_space, severity_for
from sysboard.context import AppContext
from sysboard.gateway import GatewayError, Transport
from sysboard.models import ContainerRecord, PortRecord, ProcessRecord, SystemSnapshot
from sysboard.pipeline import PortCategory, PortFilter, ProcessSort, SortKey, port_stats, process_totals
from sysboard.shortcuts import KeyPress, format_shortcut

logger = logging.getLogger(__name__)

PORT_STATUSES = ("all", "listening", "established")

_NOTIFY_SEVERITY = {
    NotificationKind.SUCCESS: "information",
    NotificationKind.INFO: "information",
    NotificationKind.ERROR: "error",
}


def format_bytes(size: float) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:5.1f}{unit}" if unit != "B" else f"{int(size):5d}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def format_speed(bps: int) -> str:
    """Format a link speed in bits per second."""
    if bps <= 0:
        return "-"
    for unit, scale in (("Gbps", 10**9), ("Mbps", 10**6), ("Kbps", 10**3)):
        if bps >= scale:
            return f"{bps / scale:g} {unit}"
    return f"{bps} bps"


def format_uptime(seconds: float) -> str:
    """Format an uptime as days and h:m:s."""
    days = int(seconds // 86400)
    hours = int((seconds % 86400) // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)
    if days > 0:
        return f"{days} days, {hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def usage_bar(percent: float) -> str:
    """Twenty-cell usage bar coloured by severity."""
    color = severity_for(percent).color
    bar_len = min(int(percent / 5), 20)
    bar = f"[{color}]█[/{color}]" * bar_len + "[dim]░[/dim]" * (20 - bar_len)
    # Escaped bracket keeps the bar container out of markup
    return f"\\[{bar}] {percent:5.1f}%"


class HeaderStats(Static):
    """Header widget showing host, CPU, memory and GPU summary."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 5;
        padding: 0 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize HeaderStats."""
        super().__init__(*args, **kwargs)
        self._snapshot: SystemSnapshot | None = None

    def compose(self) -> ComposeResult:
        """Compose the header stats layout."""
        yield Horizontal(
            Static(self._get_host_info(), id="host-info"),
            Static(self._get_usage_info(), id="usage-info"),
        )

    def update_stats(self, snapshot: SystemSnapshot) -> None:
        """Update the statistics from a system snapshot."""
        self._snapshot = snapshot
        self.query_one("#host-info", Static).update(self._get_host_info())
        self.query_one("#usage-info", Static).update(self._get_usage_info())

    def _get_host_info(self) -> str:
        if self._snapshot is None:
            return "Loading system info..."
        os_info = self._snapshot.os
        cpu = self._snapshot.hardware.cpu
        lines = [
            f"{os_info.hostname}  {os_info.name} {os_info.version}".rstrip(),
            f"Kernel {os_info.kernel_version} ({os_info.architecture})",
            f"{cpu.brand}, {cpu.cores} cores @ {cpu.frequency_hz / 1e9:.2f} GHz",
            f"Uptime: {format_uptime(os_info.uptime_seconds)}",
        ]
        return "\n".join(lines)

    def _get_usage_info(self) -> str:
        if self._snapshot is None:
            return ""
        hardware = self._snapshot.hardware
        memory = hardware.memory
        lines = [
            f"CPU {usage_bar(hardware.cpu.usage_percent)}",
            f"Mem {usage_bar(memory.usage_percent)} "
            f"{memory.used_bytes / 1024**3:.1f}G/{memory.total_bytes / 1024**3:.1f}G",
        ]
        if hardware.cpu.temperature_c is not None:
            lines.append(f"CPU temperature: {hardware.cpu.temperature_c:.0f}°C")
        for gpu in hardware.gpus:
            usage = f"{gpu.usage_percent:.0f}%" if gpu.usage_percent is not None else "n/a"
            lines.append(f"GPU {gpu.vendor}: {gpu.name} ({usage})")
        lines.append(f"Active connections: {self._snapshot.network.active_connections}")
        return "\n".join(lines)


def _reset_table(table: DataTable) -> int:
    """Clear rows, returning the cursor row to restore."""
    cursor = table.cursor_row
    table.clear()
    return cursor


def _restore_cursor(table: DataTable, row: int) -> None:
    if table.row_count:
        table.move_cursor(row=min(row, table.row_count - 1))


class DashboardView(Vertical):
    """Network interfaces and disks from the current snapshot."""

    DEFAULT_CSS = """
    DashboardView DataTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def compose(self) -> ComposeResult:
        yield DataTable(id="interface-table")
        yield DataTable(id="disk-table")

    def on_mount(self) -> None:
        interfaces = self.query_one("#interface-table", DataTable)
        interfaces.cursor_type = "row"
        interfaces.add_column("Interface", key="name")
        interfaces.add_column("Type", key="category", width=10)
        interfaces.add_column("Addresses", key="ips")
        interfaces.add_column("State", key="state", width=6)
        interfaces.add_column("Speed", key="speed", width=10)
        interfaces.add_column("Sent", key="sent", width=8)
        interfaces.add_column("Received", key="received", width=8)

        disks = self.query_one("#disk-table", DataTable)
        disks.cursor_type = "row"
        disks.add_column("Disk", key="name")
        disks.add_column("Mount", key="mount")
        disks.add_column("FS", key="fs", width=8)
        disks.add_column("Used", key="used", width=8)
        disks.add_column("Total", key="total", width=8)
        disks.add_column("Usage", key="usage", width=8)
        disks.add_column("", key="flag", width=10)

    def update_snapshot(self, snapshot: SystemSnapshot) -> None:
        """Replace both tables with the snapshot's contents."""
        interfaces = self.query_one("#interface-table", DataTable)
        cursor = _reset_table(interfaces)
        for iface in snapshot.network.interfaces:
            interfaces.add_row(
                iface.display_name,
                interface_category(iface).name.lower(),
                ", ".join(sorted(iface.ip_addresses)) or "-",
                "up" if iface.is_up else "down",
                format_speed(iface.speed_bps),
                format_bytes(iface.bytes_sent),
                format_bytes(iface.bytes_received),
            )
        _restore_cursor(interfaces, cursor)

        disks = self.query_one("#disk-table", DataTable)
        cursor = _reset_table(disks)
        for disk in snapshot.disks:
            color = severity_for(disk.usage_percent).color
            disks.add_row(
                disk.name,
                disk.mount_point,
                disk.file_system,
                format_bytes(disk.used_space),
                format_bytes(disk.total_space),
                Text(f"{disk.usage_percent:5.1f}%", style=color),
                Text("LOW SPACE", style="bold red") if is_low_space(disk.usage_percent) else "",
            )
        _restore_cursor(disks, cursor)


class PortTable(Container):
    """Searchable, filterable port listing."""

    DEFAULT_CSS = """
    PortTable {
        height: 1fr;
        border: solid $primary;
    }
    PortTable #port-summary {
        height: 1;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize PortTable."""
        super().__init__(*args, **kwargs)
        self._ports: tuple[PortRecord, ...] = ()
        self._filter = PortFilter()

    @property
    def port_filter(self) -> PortFilter:
        return self._filter

    def compose(self) -> ComposeResult:
        yield Input(placeholder="Search port, process or project", id="port-search")
        yield Static("", id="port-summary")
        yield DataTable(id="port-table")

    def on_mount(self) -> None:
        table = self.query_one("#port-table", DataTable)
        table.cursor_type = "row"
        table.add_column("Port", key="port", width=7)
        table.add_column("Proto", key="protocol", width=6)
        table.add_column("Status", key="status", width=12)
        table.add_column("PID", key="pid", width=8)
        table.add_column("Process", key="process")
        table.add_column("Project", key="project")

    def set_filter(self, port_filter: PortFilter) -> None:
        """Apply a new filter and re-render."""
        self._filter = port_filter
        self._refresh_rows()

    def update_ports(self, ports: tuple[PortRecord, ...]) -> None:
        """Replace the port listing."""
        self._ports = ports
        self._refresh_rows()

    def _refresh_rows(self) -> None:
        table = self.query_one("#port-table", DataTable)
        cursor = _reset_table(table)
        seen: set[tuple] = set()
        for record in self._filter.apply(self._ports):
            if record.identity in seen:
                continue
            seen.add(record.identity)
            project = record.project
            table.add_row(
                str(record.port),
                record.protocol.value,
                record.status.value,
                str(record.process.pid),
                record.process.name,
                f"{project.name} ({project.project_type})" if project else "",
                key=f"{record.protocol.value}:{record.port}",
            )
        _restore_cursor(table, cursor)
        stats = port_stats(self._ports)
        self.query_one("#port-summary", Static).update(
            f"Category: {self._filter.category.value}  Status: {self._filter.status}  "
            f"| development {stats.development}  system {stats.system}  docker {stats.docker}"
        )


class ProcessTable(Container):
    """Container for the process data table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    ProcessTable #process-totals {
        height: 1;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._processes: tuple[ProcessRecord, ...] = ()
        self._sort = ProcessSort()
        self._search = ""
        self._show_system = True

    @property
    def sort(self) -> ProcessSort:
        """Get current sort state."""
        return self._sort

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield Input(placeholder="Search process name", id="process-search")
        yield Static("", id="process-totals")
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"
        table.add_column("PID", key="pid", width=8)
        table.add_column("Name", key="name", width=24)
        table.add_column("CPU%", key="cpu", width=8)
        table.add_column("Memory", key="memory", width=8)
        table.add_column("Status", key="status", width=10)
        table.add_column("Command", key="command")

    def select_sort(self, key: SortKey) -> None:
        """Select a sort key (toggling direction on repeat) and re-render."""
        self._sort.select(key)
        self._refresh_rows()

    def set_search(self, text: str) -> None:
        self._search = text
        self._refresh_rows()

    def set_show_system(self, show: bool) -> None:
        """Hide or show system-critical processes."""
        if show != self._show_system:
            self._show_system = show
            self._refresh_rows()

    def update_processes(self, processes: tuple[ProcessRecord, ...]) -> None:
        """Replace the process listing."""
        self._processes = processes
        self._refresh_rows()

    def visible_processes(self) -> list[ProcessRecord]:
        """Processes after search, system filter and sort."""
        processes = self._processes
        if not self._show_system:
            processes = tuple(p for p in processes if not is_critical_process(p.name))
        return self._sort.apply(processes, self._search)

    def selected(self) -> ProcessRecord | None:
        """Process under the cursor."""
        table = self.query_one("#process-table", DataTable)
        if not table.row_count:
            return None
        row_key = table.coordinate_to_cell_key(table.cursor_coordinate).row_key
        for process in self._processes:
            if str(process.pid) == row_key.value:
                return process
        return None

    def _refresh_rows(self) -> None:
        table = self.query_one("#process-table", DataTable)
        cursor = _reset_table(table)
        visible = self.visible_processes()
        seen: set[int] = set()
        for proc in visible:
            if proc.pid in seen:
                continue
            seen.add(proc.pid)
            table.add_row(
                str(proc.pid),
                proc.name[:24],
                f"{proc.cpu_usage_percent:5.1f}",
                format_bytes(proc.memory_usage_bytes),
                proc.status,
                " ".join(proc.cmd)[:60],
                key=str(proc.pid),
            )
        _restore_cursor(table, cursor)
        totals = process_totals(visible)
        arrow = "↓" if self._sort.descending else "↑"
        self.query_one("#process-totals", Static).update(
            f"{totals.count} processes  CPU {totals.cpu_percent:.1f}%  "
            f"Memory {format_bytes(totals.memory_bytes).strip()}  "
            f"Sort: {self._sort.key.value} {arrow}"
        )


class ContainerTable(Container):
    """Container engine status."""

    DEFAULT_CSS = """
    ContainerTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._containers: tuple[ContainerRecord, ...] = ()

    def compose(self) -> ComposeResult:
        yield DataTable(id="container-table")

    def on_mount(self) -> None:
        table = self.query_one("#container-table", DataTable)
        table.cursor_type = "row"
        table.add_column("Name", key="name")
        table.add_column("Image", key="image")
        table.add_column("State", key="state", width=10)
        table.add_column("Status", key="status")
        table.add_column("Ports", key="ports")
        table.add_column("Project", key="project")

    def update_containers(self, containers: tuple[ContainerRecord, ...]) -> None:
        """Replace the container listing."""
        self._containers = containers
        table = self.query_one("#container-table", DataTable)
        cursor = _reset_table(table)
        for container in containers:
            ports = ", ".join(
                f"{p.host_port}->{p.container_port}/{p.protocol}" for p in container.ports
            )
            table.add_row(
                container.name,
                container.image,
                Text(container.state, style="green" if container.is_running else "dim"),
                container.status,
                ports,
                container.project or "",
                key=container.id,
            )
        _restore_cursor(table, cursor)

    def selected(self) -> ContainerRecord | None:
        """Container under the cursor."""
        table = self.query_one("#container-table", DataTable)
        if not table.row_count:
            return None
        row_key = table.coordinate_to_cell_key(table.cursor_coordinate).row_key
        return next((c for c in self._containers if c.id == row_key.value), None)


class ActionList(Container):
    """The action catalog by category; selecting a row runs the action."""

    DEFAULT_CSS = """
    ActionList {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self) -> None:
        super().__init__()
        self._labels: dict[str, str] = {}

    def compose(self) -> ComposeResult:
        yield DataTable(id="action-table")

    def show_catalog(self, grouped: dict) -> None:
        table = self.query_one("#action-table", DataTable)
        table.cursor_type = "row"
        table.add_column("Category", key="category", width=20)
        table.add_column("Action", key="label", width=24)
        table.add_column("Details", key="description")
        for category, actions in grouped.items():
            for action in actions:
                self._labels[action.key] = action.label
                table.add_row(category.value, action.label, action.description, key=action.key)

    def set_busy(self, key: str, busy: bool) -> None:
        """Dim a running action's row; parametric actions have no row and are skipped."""
        label = self._labels.get(key)
        if label is None:
            return
        cell = Text(f"{label} (running...)", style="dim") if busy else label
        self.query_one("#action-table", DataTable).update_cell(key, "label", cell)


class ConfirmScreen(ModalScreen[bool]):
    """Yes/no prompt for dangerous actions."""

    DEFAULT_CSS = """
    ConfirmScreen {
        align: center middle;
    }
    ConfirmScreen > Vertical {
        width: 60;
        height: auto;
        border: thick $error;
        background: $surface;
        padding: 1 2;
    }
    ConfirmScreen Horizontal {
        height: auto;
        align: center middle;
    }
    """

    BINDINGS = [("y", "answer(True)", "Yes"), ("n", "answer(False)", "No")]

    def __init__(self, message: str) -> None:
        super().__init__()
        self._message = message

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Static(self._message, markup=False, id="confirm-message")
            with Horizontal():
                yield Button("Continue", variant="error", id="confirm-yes")
                yield Button("Cancel", variant="primary", id="confirm-no")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "confirm-yes")

    def action_answer(self, answer: bool) -> None:
        self.dismiss(answer)


class TextScreen(ModalScreen[None]):
    """Read-only text panel: command output, help, settings."""

    DEFAULT_CSS = """
    TextScreen {
        align: center middle;
    }
    TextScreen > Vertical {
        width: 90%;
        height: 80%;
        border: thick $primary;
        background: $surface;
        padding: 0 1;
    }
    TextScreen #text-title {
        text-style: bold;
        height: 1;
    }
    """

    def __init__(self, title: str, body: str) -> None:
        super().__init__()
        self._title = title
        self._body = body

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Static(self._title, markup=False, id="text-title")
            with VerticalScroll():
                yield Static(self._body, markup=False, id="text-body")

    def update_body(self, body: str) -> None:
        self._body = body
        self.query_one("#text-body", Static).update(body)


class SettingsScreen(TextScreen):
    """Settings panel; single keys toggle each preference."""

    BINDINGS = [
        ("a", "toggle('auto_refresh')", "Auto refresh"),
        ("c", "toggle('confirm_dangerous_actions')", "Confirm"),
        ("p", "toggle('show_system_processes')", "System procs"),
        ("t", "toggle_theme", "Theme"),
    ]

    def __init__(self, context: AppContext) -> None:
        self._app_context = context
        super().__init__("Settings", self._describe())

    def _describe(self) -> str:
        settings = self._app_context.settings
        return "\n".join(
            [
                f"[a] Auto refresh:              {settings.auto_refresh}",
                f"    Refresh interval:          {settings.refresh_interval}s",
                f"[t] Theme:                     {settings.theme}",
                f"[c] Confirm dangerous actions: {settings.confirm_dangerous_actions}",
                f"[p] Show system processes:     {settings.show_system_processes}",
            ]
        )

    def action_toggle(self, name: str) -> None:
        current = getattr(self._app_context.settings, name)
        self._app_context.update_settings(**{name: not current})
        self.update_body(self._describe())
        self.app.apply_settings()

    def action_toggle_theme(self) -> None:
        theme = "light" if self._app_context.settings.theme == "dark" else "dark"
        self._app_context.update_settings(theme=theme)
        self.update_body(self._describe())
        self.app.apply_settings()


class SysboardApp(App):
    """Main sysboard application."""

    TITLE = "sysboard"
    SUB_TITLE = "System Dashboard"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        dock: top;
        height: auto;
        min-height: 5;
    }

    Horizontal {
        height: auto;
    }

    #host-info {
        width: 1fr;
        padding-right: 2;
    }

    #usage-info {
        width: 1fr;
        padding-left: 2;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("k", "kill", "Kill"),
        ("x", "stop_container", "Stop"),
        ("r", "restart_container", "Restart"),
        ("c", "cycle_category", "Category"),
        ("s", "cycle_status", "Status"),
    ]

    def __init__(
        self,
        transport: Transport | None = None,
        settings_path: Path | None = None,
        **context_options,
    ) -> None:
        """
        Initialize the SysboardApp.

        Args:
            transport: Backend transport; the local psutil backend by default.
            settings_path: Settings store location.
            context_options: Passed through to AppContext.create.
        """
        super().__init__()
        self.context = AppContext.create(
            self.show_notification,
            transport=transport,
            confirm=self.confirm,
            show_result=self.show_result,
            on_busy=self.show_busy,
            settings_path=settings_path,
            **context_options,
        )
        self._live_timer = None

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HeaderStats(id="header-stats")
        with TabbedContent(initial="dashboard"):
            with TabPane("Dashboard", id="dashboard"):
                yield DashboardView()
            with TabPane("Ports", id="ports"):
                yield PortTable()
            with TabPane("Processes", id="processes"):
                yield ProcessTable()
            with TabPane("Containers", id="containers"):
                yield ContainerTable()
            with TabPane("Actions", id="actions"):
                yield ActionList()
        yield Footer()

    def on_mount(self) -> None:
        """Load the first snapshot and start the refresh timers."""
        self.query_one(ActionList).show_catalog(self.context.dispatcher.catalog.by_category())
        self.apply_settings()
        self.run_worker(self.refresh_snapshot(), group="refresh")
        self.set_interval(FORCED_REFRESH_SECONDS, self._forced_refresh)

    def apply_settings(self) -> None:
        """Push the current settings into the running UI."""
        settings = self.context.settings
        self.theme = "textual-light" if settings.theme == "light" else "textual-dark"
        self.query_one(ProcessTable).set_show_system(settings.show_system_processes)
        if self._live_timer is not None:
            self._live_timer.stop()
            self._live_timer = None
        if settings.auto_refresh:
            self._live_timer = self.set_interval(settings.refresh_interval, self._live_refresh)

    @property
    def active_view(self) -> str:
        return self.query_one(TabbedContent).active

    def show_view(self, view: str) -> None:
        """Switch tabs; activation loads the view's data."""
        self.query_one(TabbedContent).active = view

    def show_notification(self, notification: Notification) -> None:
        """Surface a dispatcher notification as a toast."""
        self.notify(
            notification.message,
            severity=_NOTIFY_SEVERITY[notification.kind],
            timeout=notification.duration_ms / 1000,
            markup=False,
        )

    async def confirm(self, message: str) -> bool:
        """Ask the operator a yes/no question."""
        answer: asyncio.Future = asyncio.get_running_loop().create_future()

        def resolve(result: bool | None) -> None:
            if not answer.done():
                answer.set_result(bool(result))

        self.push_screen(ConfirmScreen(message), resolve)
        return await answer

    def show_result(self, label: str, text: str) -> None:
        """Show action output in a modal panel."""
        self.push_screen(TextScreen(label, text or "(no output)"))

    def show_busy(self, key: str, busy: bool) -> None:
        """Mark an action row as running while its action is in flight."""
        if self.is_running:
            self.query_one(ActionList).set_busy(key, busy)

    async def refresh_snapshot(self, force: bool = False) -> None:
        """Fetch (or reuse) the system snapshot and render it."""
        try:
            snapshot = await self.context.snapshots.get_snapshot(force=force)
        except GatewayError as exc:
            self.notify(f"Refresh failed: {exc}", severity="error", timeout=5, markup=False)
            return
        self.query_one(HeaderStats).update_stats(snapshot)
        self.query_one(DashboardView).update_snapshot(snapshot)

    async def refresh_view(self, view: str, force: bool = False) -> None:
        """Reload the data behind one view."""
        try:
            if view == "dashboard":
                await self.refresh_snapshot(force=force)
            elif view == "ports":
                self.query_one(PortTable).update_ports(await self.context.fetch_ports())
            elif view == "processes":
                self.query_one(ProcessTable).update_processes(await self.context.fetch_processes())
            elif view == "containers":
                self.query_one(ContainerTable).update_containers(await self.context.fetch_containers())
        except GatewayError as exc:
            self.notify(f"Refresh failed: {exc}", severity="error", timeout=5, markup=False)

    def _forced_refresh(self) -> None:
        self.run_worker(self.refresh_snapshot(force=True), group="refresh")

    def _live_refresh(self) -> None:
        view = self.active_view
        if view in ("ports", "processes", "containers"):
            self.run_worker(self.refresh_view(view), group="refresh")

    async def on_key(self, event: events.Key) -> None:
        """Resolve key presses through the shortcut registry."""
        typing = isinstance(self.focused, (Input, TextArea))
        shortcut = self.context.shortcuts.resolve(KeyPress.from_textual(event.key), typing=typing)
        if shortcut is None:
            return
        event.stop()
        event.prevent_default()
        logger.debug("shortcut %s -> %s", event.key, shortcut.action)
        await self.run_action(shortcut.action)

    def on_tabbed_content_tab_activated(self, event: TabbedContent.TabActivated) -> None:
        view = event.pane.id
        if view in ("ports", "processes", "containers"):
            self.run_worker(self.refresh_view(view), group="refresh")

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "port-search":
            table = self.query_one(PortTable)
            current = table.port_filter
            table.set_filter(PortFilter(event.value, current.category, current.status))
        elif event.input.id == "process-search":
            self.query_one(ProcessTable).set_search(event.value)

    def on_data_table_header_selected(self, event: DataTable.HeaderSelected) -> None:
        if event.data_table.id != "process-table":
            return
        try:
            key = SortKey(event.column_key.value)
        except ValueError:
            return
        self.query_one(ProcessTable).select_sort(key)

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        if event.data_table.id != "action-table" or self.context.dispatcher.is_busy(event.row_key.value):
            return
        self.run_action_descriptor(self.context.dispatcher.catalog.get(event.row_key.value))

    def run_action_descriptor(self, action: ActionDescriptor) -> None:
        """Dispatch an action in a worker."""
        self.run_worker(self._dispatch(action), group="actions")

    async def _dispatch(self, action: ActionDescriptor) -> None:
        dispatcher = self.context.dispatcher
        if action.returns_output:
            await dispatcher.dispatch_with_result(action)
        else:
            succeeded = await dispatcher.dispatch(action)
            if succeeded and action.invalidates_snapshot:
                await self.refresh_view(self.active_view)

    def action_refresh(self) -> None:
        """Refresh the current view, bypassing the snapshot cache."""
        self.run_worker(self.refresh_view(self.active_view, force=True), group="refresh")

    def action_close(self) -> None:
        if isinstance(self.screen, ModalScreen):
            self.screen.dismiss(None)

    def action_show_ports(self) -> None:
        self.show_view("ports")

    def action_show_processes(self) -> None:
        self.show_view("processes")

    def action_show_containers(self) -> None:
        self.show_view("containers")

    def action_show_actions(self) -> None:
        self.show_view("actions")

    def action_help(self) -> None:
        lines = [
            f"{format_shortcut(s):<16} {s.description}" for s in self.context.shortcuts.shortcuts
        ]
        lines += ["", "k kill process, x stop container, r restart container", "c/s cycle port filters"]
        self.push_screen(TextScreen("Keyboard shortcuts", "\n".join(lines)))

    def action_settings(self) -> None:
        self.push_screen(SettingsScreen(self.context))

    def action_kill(self) -> None:
        if self.active_view != "processes":
            return
        process = self.query_one(ProcessTable).selected()
        if process is not None:
            self.run_action_descriptor(kill_process_action(self.context.gateway, process.pid, process.name))

    def _container_verb(self, verb: str) -> None:
        if self.active_view != "containers":
            return
        container = self.query_one(ContainerTable).selected()
        if container is not None:
            self.run_action_descriptor(container_action(self.context.gateway, container, verb))

    def action_stop_container(self) -> None:
        self._container_verb("stop")

    def action_restart_container(self) -> None:
        self._container_verb("restart")

    def action_cycle_category(self) -> None:
        table = self.query_one(PortTable)
        current = table.port_filter
        categories = list(PortCategory)
        category = categories[(categories.index(current.category) + 1) % len(categories)]
        table.set_filter(PortFilter(current.search, category, current.status))

    def action_cycle_status(self) -> None:
        table = self.query_one(PortTable)
        current = table.port_filter
        status = PORT_STATUSES[(PORT_STATUSES.index(current.status) + 1) % len(PORT_STATUSES)]
        table.set_filter(PortFilter(current.search, current.category, status))

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self.context.close()
        self.exit()


def configure_logging() -> None:
    """Send logs to the file named by SYSBOARD_LOG; nothing is written to the terminal."""
    path = os.environ.get("SYSBOARD_LOG")
    if not path:
        logging.getLogger("sysboard").addHandler(logging.NullHandler())
        return
    level = os.environ.get("SYSBOARD_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        filename=path,
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main() -> None:
    """Entry point for sysboard application."""
    configure_logging()
    app = SysboardApp()
    app.run()


if __name__ == "__main__":
    main()
