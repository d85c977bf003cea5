"""Data models for sysboard.

Every entity is an immutable snapshot. A refresh builds new objects and
replaces the old ones wholesale; nothing here is mutated in place.
"""

from dataclasses import dataclass
from enum import Enum


UNKNOWN_OS = "Unknown OS"
UNKNOWN_CPU = "Unknown processor"


class Protocol(Enum):
    """Transport protocol of a port record."""

    TCP = "TCP"
    UDP = "UDP"


class PortStatus(Enum):
    """Socket state of a port record."""

    LISTENING = "LISTENING"
    ESTABLISHED = "ESTABLISHED"


@dataclass(slots=True, frozen=True)
class OsInfo:
    """Operating system identity."""

    name: str = UNKNOWN_OS
    version: str = ""
    kernel_version: str = ""
    architecture: str = ""
    hostname: str = ""
    uptime_seconds: float = 0.0


@dataclass(slots=True, frozen=True)
class CpuInfo:
    """Processor summary."""

    brand: str = UNKNOWN_CPU
    cores: int = 0
    frequency_hz: int = 0
    usage_percent: float = 0.0  # 0.0 - 100.0
    temperature_c: float | None = None


@dataclass(slots=True, frozen=True)
class MemoryInfo:
    """Physical memory usage. Invariant: used_bytes <= total_bytes."""

    total_bytes: int = 0
    used_bytes: int = 0
    available_bytes: int = 0
    usage_percent: float = 0.0


@dataclass(slots=True, frozen=True)
class GpuInfo:
    """Graphics adapter. Live counters are only known for some vendors."""

    name: str
    vendor: str = "Unknown"
    memory_bytes: int | None = None
    memory_used_bytes: int | None = None
    usage_percent: float | None = None
    temperature_c: float | None = None


@dataclass(slots=True, frozen=True)
class HardwareInfo:
    """CPU, memory and GPUs."""

    cpu: CpuInfo = CpuInfo()
    memory: MemoryInfo = MemoryInfo()
    gpus: tuple[GpuInfo, ...] = ()


@dataclass(slots=True, frozen=True)
class NetworkInterface:
    """A network adapter as reported by the backend."""

    name: str
    display_name: str
    mac_address: str = ""
    ip_addresses: frozenset[str] = frozenset()
    is_up: bool = True
    is_loopback: bool = False
    speed_bps: int = 0
    bytes_sent: int = 0
    bytes_received: int = 0

    @property
    def identity(self) -> tuple[str, tuple[str, ...]]:
        """Deduplication key: display name plus the sorted address set."""
        return self.display_name, tuple(sorted(self.ip_addresses))


@dataclass(slots=True, frozen=True)
class NetworkInfo:
    """Interfaces and connection count."""

    interfaces: tuple[NetworkInterface, ...] = ()
    active_connections: int = 0


@dataclass(slots=True, frozen=True)
class DiskInfo:
    """A mounted volume. Invariant: used_space == total_space - available_space."""

    name: str
    mount_point: str
    file_system: str = ""
    total_space: int = 0
    used_space: int = 0
    available_space: int = 0
    usage_percent: float = 0.0
    is_removable: bool = False


@dataclass(slots=True, frozen=True)
class SystemSnapshot:
    """Fully populated point-in-time read of the host."""

    os: OsInfo = OsInfo()
    hardware: HardwareInfo = HardwareInfo()
    network: NetworkInfo = NetworkInfo()
    disks: tuple[DiskInfo, ...] = ()


@dataclass(slots=True, frozen=True)
class PortProcess:
    """Process owning a socket."""

    pid: int
    name: str
    exe_path: str | None = None
    cmd: tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class ProjectInfo:
    """Development project detected behind a port."""

    name: str
    project_type: str
    path: str | None = None
    description: str = ""


@dataclass(slots=True, frozen=True)
class ActionSuggestion:
    """Backend hint for what an operator might do with a port."""

    action: str
    description: str = ""
    risk_level: str = "low"


@dataclass(slots=True, frozen=True)
class PortRecord:
    """An open port. Identity key is (protocol, port)."""

    port: int  # 0 - 65535
    protocol: Protocol
    status: PortStatus
    process: PortProcess
    project: ProjectInfo | None = None
    suggestions: tuple[ActionSuggestion, ...] = ()

    @property
    def identity(self) -> tuple[Protocol, int]:
        """Key that identifies this port within one listing."""
        return self.protocol, self.port


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """A running process. Identity (pid) only holds within one refresh."""

    pid: int
    name: str
    exe_path: str | None = None
    cmd: tuple[str, ...] = ()
    cpu_usage_percent: float = 0.0
    memory_usage_bytes: int = 0
    status: str = ""
    start_time_epoch_millis: int = 0


@dataclass(slots=True, frozen=True)
class ContainerPort:
    """Published container port."""

    container_port: int
    host_port: int
    protocol: str = "tcp"


@dataclass(slots=True, frozen=True)
class ContainerRecord:
    """A container known to the container engine."""

    id: str
    name: str
    image: str = ""
    status: str = ""
    state: str = ""
    ports: tuple[ContainerPort, ...] = ()
    created: str = ""
    project: str | None = None

    @property
    def is_running(self) -> bool:
        """Whether the engine reports the container as running."""
        return self.state.lower() == "running"
