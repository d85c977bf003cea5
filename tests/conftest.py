"""Shared fixtures: an in-memory backend standing in for the real one."""

import pytest

from sysboard.backend import WINDOWS_TOOLS
from sysboard.gateway import UnknownCommand

SYSTEM_INFO = {
    "hostname": "devbox",
    "uptime": 93784,
    "active_connections": 42,
    "os_info": {
        "Caption": "Microsoft Windows 11 Pro",
        "Version": "10.0.22631",
        "BuildNumber": "22631",
        "OSArchitecture": "64-bit",
    },
    "cpu_info": {
        "Name": "AMD Ryzen 7 5800X",
        "NumberOfCores": 8,
        "MaxClockSpeed": 3800,
        "LoadPercentage": 37,
    },
    "memory_info": {
        "TotalVisibleMemorySize": 16 * 1024 * 1024,
        "FreePhysicalMemory": 4 * 1024 * 1024,
    },
    "gpu_info": [
        {
            "Name": "NVIDIA GeForce RTX 3070",
            "TotalMemoryMB": 8192,
            "UsedMemoryMB": 2048,
            "Utilization": 12,
            "Temperature": 55,
        },
        {"Name": "Microsoft Remote Display Adapter"},
    ],
    "network_info": [
        {
            "Name": "Wi-Fi",
            "InterfaceDescription": "Intel(R) Wi-Fi 6 AX201 160MHz",
            "MacAddress": "AA-BB-CC-DD-EE-FF",
            "IPAddresses": ["192.168.1.20"],
            "Status": "Up",
            "LinkSpeed": "866.7 Mbps",
            "BytesSent": 1000,
            "BytesReceived": 5000,
        },
        {
            "Name": "Loopback Pseudo-Interface 1",
            "InterfaceDescription": "Loopback Pseudo-Interface 1",
            "IPAddresses": ["127.0.0.1"],
            "IsLoopback": True,
        },
        {
            "Name": "Ethernet",
            "InterfaceDescription": "Realtek PCIe GbE Family Controller",
            "IPAddresses": [],
            "Status": "Disconnected",
            "LinkSpeed": "1 Gbps",
        },
    ],
    "disk_info": [
        {"DriveLetter": "C", "Size": 500_000_000_000, "SizeRemaining": 45_000_000_000, "FileSystem": "NTFS"},
        {"DriveLetter": "D", "Size": 1000, "SizeRemaining": 100, "FileSystem": "NTFS"},
    ],
}

PORTS = [
    {"port": 80, "protocol": "TCP", "status": "LISTENING", "process": {"pid": 4, "name": "System", "cmd": []}},
    {
        "port": 8080,
        "protocol": "TCP",
        "status": "LISTENING",
        "process": {"pid": 1200, "name": "node.exe", "cmd": ["node", "react-scripts", "start"]},
        "project": {
            "name": "my-app",
            "project_type": "React",
            "path": "C:\\dev\\my-app",
            "description": "React development project",
        },
    },
    {
        "port": 5432,
        "protocol": "TCP",
        "status": "ESTABLISHED",
        "process": {"pid": 2300, "name": "com.docker.backend.exe"},
        "project": {"name": "db", "project_type": "Docker"},
    },
    {"port": 53, "protocol": "UDP", "status": "LISTENING", "process": {"pid": 900, "name": "dns.exe"}},
]

PROCESSES = [
    {"pid": 4, "name": "System", "cpu_usage": 0.5, "memory_usage": 1024, "status": "running",
     "start_time": 1_700_000_000_000},
    {"pid": 1200, "name": "node.exe", "exe_path": "C:\\node\\node.exe", "cmd": ["node", "start"],
     "cpu_usage": 12.5, "memory_usage": 300_000_000, "status": "running", "start_time": 1_700_000_100_000},
    {"pid": 3100, "name": "chrome.exe", "cpu_usage": 25.0, "memory_usage": 800_000_000, "status": "running",
     "start_time": 1_700_000_200_000},
    {"pid": 640, "name": "explorer.exe", "cpu_usage": 1.0, "memory_usage": 120_000_000, "status": "running",
     "start_time": 1_700_000_000_500},
]

CONTAINERS = [
    {
        "id": "abc123def456",
        "name": "web",
        "image": "nginx:latest",
        "status": "Up 2 hours",
        "state": "running",
        "ports": [{"container_port": 80, "host_port": 8081, "protocol": "tcp"}],
        "created": "2024-01-01 10:00:00",
        "project": "shop",
    },
    {"id": "0123456789ab", "name": "db", "image": "postgres:16", "status": "Exited (0)", "state": "exited"},
]


def default_responses() -> dict:
    responses = {
        "get_system_info_detailed": SYSTEM_INFO,
        "get_all_ports": PORTS,
        "get_all_processes": PROCESSES,
        "kill_process": True,
        "run_command": "Windows IP Configuration\n",
        "run_command_in_new_window": None,
        "open_gui_app": None,
        "is_docker_available": True,
        "get_docker_containers": CONTAINERS,
        "stop_container": None,
        "restart_container": None,
    }
    responses.update({command: None for command in WINDOWS_TOOLS})
    return responses


class FakeTransport:
    """
    In-memory backend recording every call.

    A response may be a plain value, an exception instance (raised) or a
    callable taking the args dict.
    """

    def __init__(self, responses: dict | None = None) -> None:
        self.responses = default_responses() if responses is None else dict(responses)
        self.calls: list[tuple[str, dict]] = []

    @property
    def commands(self) -> frozenset[str]:
        return frozenset(self.responses)

    async def __call__(self, command: str, args: dict) -> object:
        self.calls.append((command, args))
        if command not in self.responses:
            raise UnknownCommand(command)
        response = self.responses[command]
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(args)
        return response

    def count(self, command: str) -> int:
        """Number of calls made for ``command``."""
        return sum(1 for name, _ in self.calls if name == command)


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, now: int = 1_700_000_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, minutes: float = 0, seconds: float = 0) -> None:
        self.now += int((minutes * 60 + seconds) * 1000)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings_path(tmp_path):
    return tmp_path / "storage.json"
