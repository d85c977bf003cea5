"""Data normalizer: loosely typed backend payloads to the canonical model.

Every function here is total. Missing or unparseable fields are replaced by
the defaults declared on the model classes and logged at DEBUG; nothing is
raised. Units are converted at this boundary so the rest of the package
works in bytes, hertz, bits per second and percent.
"""

import logging
import math
import re
from collections.abc import Mapping
from typing import Any

from sysboard.models import (
    UNKNOWN_CPU,
    UNKNOWN_OS,
    ActionSuggestion,
    ContainerPort,
    ContainerRecord,
    CpuInfo,
    DiskInfo,
    GpuInfo,
    HardwareInfo,
    MemoryInfo,
    NetworkInfo,
    NetworkInterface,
    OsInfo,
    PortProcess,
    PortRecord,
    PortStatus,
    ProcessRecord,
    ProjectInfo,
    Protocol,
    SystemSnapshot,
)

logger = logging.getLogger(__name__)

KIB = 1024
MIB = 1024 * 1024
MHZ = 1_000_000

_NUMBER_RE = re.compile(r"[-+]?\d+(?:\.\d+)?")
_SPEED_RE = re.compile(r"(\d+(?:\.\d+)?)\s*([kmgt]?)(bps|b/s|bit)?", re.IGNORECASE)
_SPEED_UNITS = {"": MHZ, "k": 1_000, "m": MHZ, "g": 1_000_000_000, "t": 1_000_000_000_000}


def parse_number(value: Any) -> float:
    """
    Parse a number leniently.

    Accepts ints, floats and strings that contain a number ("42", " 3.5 ",
    "1 Gbps"). Returns 0.0 for anything else, including NaN and infinity.
    """
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return 0.0
    elif isinstance(value, str):
        match = _NUMBER_RE.search(value)
        if match is None:
            return 0.0
        number = float(match.group())
    else:
        return 0.0
    return number if math.isfinite(number) else 0.0


def _whole(number: float) -> int:
    """Round to an int; 0 when the value is not finite."""
    return round(number) if math.isfinite(number) else 0


def parse_optional(value: Any) -> float | None:
    """Like parse_number, but None when the field is absent or unparseable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and _NUMBER_RE.search(value) is None:
        return None
    if not isinstance(value, (int, float, str)):
        return None
    number = parse_number(value)
    return max(number, 0.0)


def parse_link_speed(value: Any) -> int:
    """
    Convert a link speed to bits per second.

    Bare numbers are megabits per second; strings may carry a unit
    ("100 Mbps", "1 Gbps", "54 kbps").
    """
    if isinstance(value, str):
        match = _SPEED_RE.search(value)
        if match is None:
            return 0
        number, unit, suffix = match.groups()
        if not unit and suffix:
            return _whole(float(number))
        return _whole(float(number) * _SPEED_UNITS[unit.lower()])
    return _whole(max(parse_number(value), 0.0) * MHZ)


def _count(value: Any) -> int:
    """Non-negative integer, 0 on failure."""
    if isinstance(value, int) and not isinstance(value, bool):
        return max(value, 0)
    return int(max(parse_number(value), 0.0))


def _percent(value: Any) -> float:
    return min(max(parse_number(value), 0.0), 100.0)


def _ratio_percent(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return min(max(part / whole * 100.0, 0.0), 100.0)


def _text(value: Any, default: str = "") -> str:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped if stripped else default
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return default


def _optional_text(value: Any) -> str | None:
    return _text(value) or None


def _mapping(value: Any, field: str) -> Mapping[str, Any]:
    if isinstance(value, Mapping):
        return value
    if value is not None:
        logger.debug("normalization default for %s: expected object, got %s", field, type(value).__name__)
    return {}


def _sequence(value: Any, field: str) -> list[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    if value is not None:
        logger.debug("normalization default for %s: expected list, got %s", field, type(value).__name__)
    return []


def _strings(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,) if value else ()
    return tuple(item for item in (_text(v) for v in _sequence(value, "strings")) if item)


def normalize(raw: Any) -> SystemSnapshot:
    """
    Build a SystemSnapshot from a ``get_system_info_detailed`` payload.

    Never raises: a payload that is not even a mapping yields the
    all-defaults snapshot.
    """
    payload = _mapping(raw, "system info")
    return SystemSnapshot(
        os=_normalize_os(payload),
        hardware=HardwareInfo(
            cpu=_normalize_cpu(_mapping(payload.get("cpu_info"), "cpu_info")),
            memory=_normalize_memory(_mapping(payload.get("memory_info"), "memory_info")),
            gpus=tuple(
                gpu
                for gpu in (_normalize_gpu(item) for item in _sequence(payload.get("gpu_info"), "gpu_info"))
                if gpu is not None
            ),
        ),
        network=NetworkInfo(
            interfaces=tuple(
                iface
                for iface in (
                    _normalize_interface(item) for item in _sequence(payload.get("network_info"), "network_info")
                )
                if iface is not None
            ),
            active_connections=_count(payload.get("active_connections")),
        ),
        disks=tuple(
            disk
            for disk in (_normalize_disk(item) for item in _sequence(payload.get("disk_info"), "disk_info"))
            if disk is not None
        ),
    )


def _normalize_os(payload: Mapping[str, Any]) -> OsInfo:
    data = _mapping(payload.get("os_info"), "os_info")
    return OsInfo(
        name=_text(data.get("Caption"), UNKNOWN_OS),
        version=_text(data.get("Version")),
        kernel_version=_text(data.get("BuildNumber")),
        architecture=_text(data.get("OSArchitecture")),
        hostname=_text(payload.get("hostname")),
        uptime_seconds=max(parse_number(payload.get("uptime")), 0.0),
    )


def _normalize_cpu(data: Mapping[str, Any]) -> CpuInfo:
    return CpuInfo(
        brand=_text(data.get("Name"), UNKNOWN_CPU),
        cores=_count(data.get("NumberOfCores")),
        frequency_hz=_count(data.get("MaxClockSpeed")) * MHZ,
        usage_percent=_percent(data.get("LoadPercentage")),
        temperature_c=parse_optional(data.get("Temperature")),
    )


def _normalize_memory(data: Mapping[str, Any]) -> MemoryInfo:
    total = _count(data.get("TotalVisibleMemorySize")) * KIB
    free = min(_count(data.get("FreePhysicalMemory")) * KIB, total)
    used = total - free
    return MemoryInfo(
        total_bytes=total,
        used_bytes=used,
        available_bytes=free,
        usage_percent=_ratio_percent(used, total),
    )


def _normalize_gpu(item: Any) -> GpuInfo | None:
    data = _mapping(item, "gpu")
    name = _text(data.get("Name"))
    if not name:
        logger.debug("dropping unnamed gpu entry")
        return None

    memory = memory_used = None
    usage = temperature = None
    if data.get("TotalMemoryMB") is not None and data.get("UsedMemoryMB") is not None:
        memory = _whole(max(parse_number(data.get("TotalMemoryMB")), 0.0) * MIB)
        memory_used = min(_whole(max(parse_number(data.get("UsedMemoryMB")), 0.0) * MIB), memory)
        usage = parse_optional(data.get("Utilization"))
        usage = min(usage, 100.0) if usage is not None else None
        temperature = parse_optional(data.get("Temperature"))
    elif _count(data.get("AdapterRAM")) > 0:
        memory = _count(data.get("AdapterRAM"))

    return GpuInfo(
        name=name,
        memory_bytes=memory,
        memory_used_bytes=memory_used,
        usage_percent=usage,
        temperature_c=temperature,
    )


def _normalize_interface(item: Any) -> NetworkInterface | None:
    data = _mapping(item, "network interface")
    name = _text(data.get("Name"))
    if not name:
        logger.debug("dropping unnamed network interface")
        return None

    status = data.get("Status")
    is_up = _text(status).lower() == "up" if status is not None else True
    is_loopback = data.get("IsLoopback")
    return NetworkInterface(
        name=name,
        display_name=_text(data.get("InterfaceDescription"), name),
        mac_address=_text(data.get("MacAddress")),
        ip_addresses=frozenset(_strings(data.get("IPAddresses"))),
        is_up=is_up,
        is_loopback=is_loopback if isinstance(is_loopback, bool) else "loopback" in name.lower(),
        speed_bps=parse_link_speed(data.get("LinkSpeed")),
        bytes_sent=_count(data.get("BytesSent")),
        bytes_received=_count(data.get("BytesReceived")),
    )


def _normalize_disk(item: Any) -> DiskInfo | None:
    data = _mapping(item, "disk")
    letter = _text(data.get("DriveLetter"))
    if letter:
        name = f"{letter}:"
        mount_point = f"{letter}:\\"
    else:
        mount_point = _text(data.get("MountPoint"))
        name = _text(data.get("Name"), mount_point)
    if not mount_point:
        logger.debug("dropping disk without drive letter or mount point")
        return None

    total = _count(data.get("Size"))
    available = min(_count(data.get("SizeRemaining")), total)
    used = total - available
    return DiskInfo(
        name=name,
        mount_point=mount_point,
        file_system=_text(data.get("FileSystem")),
        total_space=total,
        used_space=used,
        available_space=available,
        usage_percent=_ratio_percent(used, total),
        is_removable=data.get("IsRemovable") is True,
    )


def _identifier(value: Any, upper: int | None = None) -> int | None:
    """Strict non-negative integer id, or None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        number = value
    elif isinstance(value, str) and value.strip().isdecimal():
        try:
            number = int(value.strip())
        except ValueError:
            return None
    elif isinstance(value, float) and value.is_integer():
        number = int(value)
    else:
        return None
    if number < 0 or (upper is not None and number > upper):
        return None
    return number


def _enum_value(enum_cls, value: Any, default, aliases: Mapping[str, str] | None = None):
    text = _text(value).upper()
    text = (aliases or {}).get(text, text)
    try:
        return enum_cls(text)
    except ValueError:
        logger.debug("normalization default for %s: %r", enum_cls.__name__, value)
        return default


def normalize_ports(raw: Any) -> tuple[PortRecord, ...]:
    """Normalize a ``get_all_ports`` payload; records without a valid port are dropped."""
    records = []
    for item in _sequence(raw, "ports"):
        data = _mapping(item, "port")
        port = _identifier(data.get("port"), upper=65535)
        if port is None:
            logger.debug("dropping port record with port %r", data.get("port"))
            continue
        process = _mapping(data.get("process"), "port process")
        project = _mapping(data.get("project"), "port project")
        records.append(
            PortRecord(
                port=port,
                protocol=_enum_value(Protocol, data.get("protocol"), Protocol.TCP),
                status=_enum_value(
                    PortStatus,
                    data.get("status"),
                    PortStatus.LISTENING,
                    aliases={"LISTEN": "LISTENING"},
                ),
                process=PortProcess(
                    pid=_identifier(process.get("pid")) or 0,
                    name=_text(process.get("name"), "unknown"),
                    exe_path=_optional_text(process.get("exe_path")),
                    cmd=_strings(process.get("cmd")),
                ),
                project=(
                    ProjectInfo(
                        name=_text(project.get("name")),
                        project_type=_text(project.get("project_type"), "Unknown"),
                        path=_optional_text(project.get("path")),
                        description=_text(project.get("description")),
                    )
                    if _text(project.get("name"))
                    else None
                ),
                suggestions=tuple(
                    ActionSuggestion(
                        action=_text(s.get("action")),
                        description=_text(s.get("description")),
                        risk_level=_text(s.get("risk_level"), "low"),
                    )
                    for s in (_mapping(entry, "suggestion") for entry in _sequence(data.get("suggestions"), "suggestions"))
                    if _text(s.get("action"))
                ),
            )
        )
    return tuple(records)


def normalize_processes(raw: Any) -> tuple[ProcessRecord, ...]:
    """Normalize a ``get_all_processes`` payload; records without a pid are dropped."""
    records = []
    for item in _sequence(raw, "processes"):
        data = _mapping(item, "process")
        pid = _identifier(data.get("pid"))
        if pid is None:
            logger.debug("dropping process record with pid %r", data.get("pid"))
            continue
        records.append(
            ProcessRecord(
                pid=pid,
                name=_text(data.get("name")),
                exe_path=_optional_text(data.get("exe_path")),
                cmd=_strings(data.get("cmd")),
                cpu_usage_percent=max(parse_number(data.get("cpu_usage")), 0.0),
                memory_usage_bytes=_count(data.get("memory_usage")),
                status=_text(data.get("status")),
                start_time_epoch_millis=_count(data.get("start_time")),
            )
        )
    return tuple(records)


def normalize_containers(raw: Any) -> tuple[ContainerRecord, ...]:
    """Normalize a ``get_docker_containers`` payload; records without an id are dropped."""
    records = []
    for item in _sequence(raw, "containers"):
        data = _mapping(item, "container")
        container_id = _text(data.get("id"))
        if not container_id:
            logger.debug("dropping container record without id")
            continue
        ports = []
        for entry in _sequence(data.get("ports"), "container ports"):
            port = _mapping(entry, "container port")
            ports.append(
                ContainerPort(
                    container_port=_count(port.get("container_port")),
                    host_port=_count(port.get("host_port")),
                    protocol=_text(port.get("protocol"), "tcp"),
                )
            )
        records.append(
            ContainerRecord(
                id=container_id,
                name=_text(data.get("name"), container_id[:12]),
                image=_text(data.get("image")),
                status=_text(data.get("status")),
                state=_text(data.get("state")),
                ports=tuple(ports),
                created=_text(data.get("created")),
                project=_optional_text(data.get("project")),
            )
        )
    return tuple(records)
