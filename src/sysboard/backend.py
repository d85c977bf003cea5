"""Reference backend for sysboard: answers gateway commands from the local host.

Collection uses psutil. Blocking calls run in a worker thread via
``asyncio.to_thread`` so the UI loop never stalls; external tools (the
container engine CLI, diagnostic commands) run as asyncio subprocesses.
Payloads deliberately use the backend's own loose field names; turning
them into the canonical model is the normalizer's job.
"""

import asyncio
import json
import logging
import platform
import re
import shutil
import socket
import sys
import time
from collections.abc import Awaitable, Callable
from pathlib import Path, PurePath
from typing import Any

import psutil

from sysboard.gateway import Rejected, UnknownCommand

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any]], Awaitable[Any]]

ALLOWED_COMMANDS = frozenset(
    {
        "ipconfig",
        "netstat",
        "systeminfo",
        "netsh",
        "route",
        "ping",
        "tracert",
        "nslookup",
        "ip",
        "ss",
        "uname",
        "nmcli",
        "traceroute",
    }
)

WINDOWS_TOOLS = {
    "open_task_manager": "taskmgr",
    "open_device_manager": "devmgmt.msc",
    "open_system_info": "msinfo32",
    "open_system_settings": "ms-settings:",
    "open_network_settings": "ms-settings:network",
    "open_windows_security": "windowsdefender:",
}

_CONTAINER_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")
_CONTAINER_PORT_RE = re.compile(r"(?:\S*:)?(\d+)->(\d+)/(\w+)")

_PORT_STATUS = {
    psutil.CONN_LISTEN: "LISTENING",
    psutil.CONN_ESTABLISHED: "ESTABLISHED",
}

# (process name token, command-line token, project name, project type, description)
PROJECT_SIGNATURES: tuple[tuple[str, str, str, str, str], ...] = (
    ("node", "react-scripts", "React dev server", "React", "React development project with hot reload"),
    ("node", "vue-cli-service", "Vue dev server", "Vue", "Vue development project"),
    ("node", "", "Node.js service", "Node.js", "JavaScript runtime service"),
    ("docker-proxy", "", "Docker port proxy", "Docker", "Port published by a container"),
    ("com.docker", "", "Docker Desktop", "Docker", "Port published by a container"),
)


def _project_path(cmd: list[str]) -> str | None:
    for arg in cmd[1:]:
        if "/" in arg or "\\" in arg:
            return str(PurePath(arg).parent)
    return None


def detect_project(name: str, cmd: list[str]) -> dict[str, Any] | None:
    """Guess the development project behind a process, if any."""
    lowered = name.lower()
    joined = " ".join(cmd).lower()
    for process_token, cmd_token, project, project_type, description in PROJECT_SIGNATURES:
        if process_token in lowered and cmd_token in joined:
            return {
                "name": project,
                "project_type": project_type,
                "path": _project_path(cmd),
                "description": description,
            }
    return None


def _cpu_brand() -> str:
    cpuinfo = Path("/proc/cpuinfo")
    if cpuinfo.exists():
        for line in cpuinfo.read_text(encoding="utf-8", errors="replace").splitlines():
            if line.startswith("model name"):
                return line.split(":", 1)[1].strip()
    return platform.processor()


def _cpu_temperature() -> float | None:
    sensors = getattr(psutil, "sensors_temperatures", None)
    if sensors is None:
        return None
    try:
        readings = sensors()
    except OSError:
        return None
    for entries in readings.values():
        for entry in entries:
            if entry.current:
                return entry.current
    return None


class PsutilBackend:
    """
    Gateway transport backed by the local machine.

    Call the instance with (command, args). Unknown commands raise
    UnknownCommand; domain failures (access denied, vanished process, tool
    exit status) raise Rejected.
    """

    def __init__(self) -> None:
        """Initialize the backend and prime psutil's CPU counters."""
        self._handlers: dict[str, Handler] = {
            "get_system_info_detailed": self._system_info,
            "get_all_ports": self._ports,
            "get_all_processes": self._processes,
            "kill_process": self._kill_process,
            "run_command": self._run_command,
            "run_command_in_new_window": self._run_in_new_window,
            "open_gui_app": self._open_gui_app,
            "is_docker_available": self._docker_available,
            "get_docker_containers": self._containers,
            "stop_container": self._stop_container,
            "restart_container": self._restart_container,
        }
        for command in WINDOWS_TOOLS:
            self._handlers[command] = self._open_tool(command)
        # First call returns 0.0; later calls measure since this one
        psutil.cpu_percent(interval=None)

    @property
    def commands(self) -> frozenset[str]:
        """Names this backend answers."""
        return frozenset(self._handlers)

    async def __call__(self, command: str, args: dict[str, Any]) -> Any:
        handler = self._handlers.get(command)
        if handler is None:
            raise UnknownCommand(command)
        try:
            return await handler(args)
        except psutil.AccessDenied as exc:
            raise Rejected(command, "access denied") from exc
        except psutil.NoSuchProcess as exc:
            raise Rejected(command, f"no such process: {exc.pid}") from exc

    async def _system_info(self, args: dict[str, Any]) -> dict[str, Any]:
        return await asyncio.to_thread(self._collect_system_info)

    def _collect_system_info(self) -> dict[str, Any]:
        """Collect the detailed system payload."""
        mem = psutil.virtual_memory()
        freq = psutil.cpu_freq()
        return {
            "hostname": socket.gethostname(),
            "uptime": time.time() - psutil.boot_time(),
            "active_connections": self._count_connections(),
            "os_info": {
                "Caption": f"{platform.system()} {platform.release()}".strip(),
                "Version": platform.version(),
                "BuildNumber": platform.release(),
                "OSArchitecture": platform.machine(),
            },
            "cpu_info": {
                "Name": _cpu_brand(),
                "NumberOfCores": psutil.cpu_count(logical=False) or psutil.cpu_count() or 0,
                "MaxClockSpeed": (freq.max or freq.current) if freq else 0,
                "LoadPercentage": psutil.cpu_percent(interval=None),
                "Temperature": _cpu_temperature(),
            },
            "memory_info": {
                "TotalVisibleMemorySize": mem.total // 1024,
                "FreePhysicalMemory": mem.available // 1024,
            },
            "gpu_info": [],
            "network_info": self._collect_interfaces(),
            "disk_info": self._collect_disks(),
        }

    def _count_connections(self) -> int:
        try:
            return len(psutil.net_connections(kind="inet"))
        except psutil.AccessDenied:
            return 0

    def _collect_interfaces(self) -> list[dict[str, Any]]:
        stats = psutil.net_if_stats()
        counters = psutil.net_io_counters(pernic=True)
        interfaces = []
        for name, addresses in psutil.net_if_addrs().items():
            ips = [
                addr.address.split("%", 1)[0]
                for addr in addresses
                if addr.family in (socket.AF_INET, socket.AF_INET6)
            ]
            mac = next((addr.address for addr in addresses if addr.family == psutil.AF_LINK), "")
            stat = stats.get(name)
            io = counters.get(name)
            interfaces.append(
                {
                    "Name": name,
                    "InterfaceDescription": name,
                    "MacAddress": mac,
                    "IPAddresses": ips,
                    "Status": "Up" if stat is not None and stat.isup else "Down",
                    "IsLoopback": any(ip.startswith("127.") or ip == "::1" for ip in ips),
                    "LinkSpeed": stat.speed if stat is not None else 0,
                    "BytesSent": io.bytes_sent if io is not None else 0,
                    "BytesReceived": io.bytes_recv if io is not None else 0,
                }
            )
        return interfaces

    def _collect_disks(self) -> list[dict[str, Any]]:
        disks = []
        for part in psutil.disk_partitions(all=False):
            try:
                usage = psutil.disk_usage(part.mountpoint)
            except OSError:
                # Unmounted media, permission-restricted mounts
                continue
            disks.append(
                {
                    "Name": part.device,
                    "MountPoint": part.mountpoint,
                    "FileSystem": part.fstype,
                    "Size": usage.total,
                    "SizeRemaining": usage.free,
                    "IsRemovable": "removable" in part.opts,
                }
            )
        return disks

    async def _ports(self, args: dict[str, Any]) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._collect_ports)

    def _collect_ports(self) -> list[dict[str, Any]]:
        """Listening and established sockets, one record per (protocol, port)."""
        records = []
        seen: set[tuple[str, int]] = set()
        owners: dict[int | None, dict[str, Any]] = {}
        for conn in psutil.net_connections(kind="inet"):
            if not conn.laddr:
                continue
            protocol = "TCP" if conn.type == socket.SOCK_STREAM else "UDP"
            if protocol == "UDP":
                status = "LISTENING" if not conn.raddr else "ESTABLISHED"
            else:
                status = _PORT_STATUS.get(conn.status)
                if status is None:
                    continue
            key = (protocol, conn.laddr.port)
            if key in seen:
                continue
            seen.add(key)
            if conn.pid not in owners:
                owners[conn.pid] = self._port_owner(conn.pid)
            owner = owners[conn.pid]
            records.append(
                {
                    "port": conn.laddr.port,
                    "protocol": protocol,
                    "status": status,
                    "process": owner,
                    "project": detect_project(owner["name"], owner["cmd"]),
                }
            )
        return records

    def _port_owner(self, pid: int | None) -> dict[str, Any]:
        if not pid:
            return {"pid": 0, "name": "System", "exe_path": None, "cmd": []}
        try:
            proc = psutil.Process(pid)
            with proc.oneshot():
                return {
                    "pid": pid,
                    "name": proc.name(),
                    "exe_path": proc.exe() or None,
                    "cmd": proc.cmdline(),
                }
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            return {"pid": pid, "name": "unknown", "exe_path": None, "cmd": []}

    async def _processes(self, args: dict[str, Any]) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._collect_processes)

    def _collect_processes(self) -> list[dict[str, Any]]:
        """
        Collect all running processes.

        Processes that exit mid-scan, deny access or are zombies are
        skipped.
        """
        processes = []
        attrs = ["pid", "name", "exe", "cmdline", "cpu_percent", "memory_info", "status", "create_time"]
        for proc in psutil.process_iter(attrs=attrs):
            try:
                with proc.oneshot():
                    info = proc.info
                    mem_info = info.get("memory_info")
                    create_time = info.get("create_time") or 0.0
                    processes.append(
                        {
                            "pid": info.get("pid", 0),
                            "name": info.get("name") or "",
                            "exe_path": info.get("exe") or None,
                            "cmd": info.get("cmdline") or [],
                            "cpu_usage": info.get("cpu_percent") or 0.0,
                            "memory_usage": mem_info.rss if mem_info else 0,
                            "status": info.get("status") or "",
                            "start_time": int(create_time * 1000),
                        }
                    )
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue
        return processes

    async def _kill_process(self, args: dict[str, Any]) -> bool:
        pid = args.get("pid")
        if not isinstance(pid, int) or isinstance(pid, bool) or pid <= 0:
            raise Rejected("kill_process", f"invalid pid: {pid!r}")
        await asyncio.to_thread(lambda: psutil.Process(pid).kill())
        logger.info("killed process %d", pid)
        return True

    async def _exec(self, command: str, argv: list[str]) -> str:
        """Run a program to completion and return its stdout."""
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise Rejected(command, f"{argv[0]} not found") from exc
        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            detail = stderr.decode(errors="replace").strip() or f"exit status {proc.returncode}"
            raise Rejected(command, detail)
        return stdout.decode(errors="replace")

    async def _spawn(self, command: str, argv: list[str]) -> None:
        """Start a program without waiting for it."""
        try:
            await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except FileNotFoundError as exc:
            raise Rejected(command, f"{argv[0]} not found") from exc

    async def _run_command(self, args: dict[str, Any]) -> str:
        command = args.get("command")
        extra = args.get("args") or []
        if command not in ALLOWED_COMMANDS:
            raise Rejected("run_command", f"command not allowed: {command!r}")
        if not isinstance(extra, list) or not all(isinstance(a, str) for a in extra):
            raise Rejected("run_command", "args must be a list of strings")
        return await self._exec("run_command", [command, *extra])

    def _require_windows(self, command: str) -> None:
        if sys.platform != "win32":
            raise Rejected(command, "only supported on Windows")

    async def _run_in_new_window(self, args: dict[str, Any]) -> None:
        self._require_windows("run_command_in_new_window")
        command = args.get("command")
        if command not in ("cmd", "powershell"):
            raise Rejected("run_command_in_new_window", f"command not allowed: {command!r}")
        await self._spawn("run_command_in_new_window", ["cmd", "/c", "start", "", command])

    async def _open_gui_app(self, args: dict[str, Any]) -> None:
        self._require_windows("open_gui_app")
        app = args.get("appName")
        if not isinstance(app, str) or not app:
            raise Rejected("open_gui_app", "appName is required")
        await self._spawn("open_gui_app", ["cmd", "/c", "start", "", app])

    def _open_tool(self, command: str) -> Handler:
        async def handler(args: dict[str, Any]) -> None:
            await self._open_gui_app({"appName": WINDOWS_TOOLS[command]})

        return handler

    async def _docker_available(self, args: dict[str, Any]) -> bool:
        if shutil.which("docker") is None:
            return False
        try:
            await self._exec("is_docker_available", ["docker", "version", "--format", "{{.Server.Version}}"])
        except Rejected:
            return False
        return True

    async def _containers(self, args: dict[str, Any]) -> list[dict[str, Any]]:
        output = await self._exec("get_docker_containers", ["docker", "ps", "-a", "--format", "{{json .}}"])
        containers = []
        for line in output.splitlines():
            if not line.strip():
                continue
            try:
                row = json.loads(line)
            except ValueError:
                logger.debug("skipping undecodable container row %r", line)
                continue
            labels = dict(
                item.split("=", 1) for item in (row.get("Labels") or "").split(",") if "=" in item
            )
            ports = {
                (int(container), int(host), proto)
                for host, container, proto in _CONTAINER_PORT_RE.findall(row.get("Ports") or "")
            }
            containers.append(
                {
                    "id": row.get("ID", ""),
                    "name": row.get("Names", ""),
                    "image": row.get("Image", ""),
                    "status": row.get("Status", ""),
                    "state": row.get("State", ""),
                    "ports": [
                        {"container_port": c, "host_port": h, "protocol": p} for c, h, p in sorted(ports)
                    ],
                    "created": row.get("CreatedAt", ""),
                    "project": labels.get("com.docker.compose.project"),
                }
            )
        return containers

    def _container_id(self, command: str, args: dict[str, Any]) -> str:
        container_id = args.get("containerId")
        if not isinstance(container_id, str) or not _CONTAINER_ID_RE.match(container_id):
            raise Rejected(command, f"invalid container id: {container_id!r}")
        return container_id

    async def _stop_container(self, args: dict[str, Any]) -> None:
        container_id = self._container_id("stop_container", args)
        await self._exec("stop_container", ["docker", "stop", container_id])

    async def _restart_container(self, args: dict[str, Any]) -> None:
        container_id = self._container_id("restart_container", args)
        await self._exec("restart_container", ["docker", "restart", container_id])
