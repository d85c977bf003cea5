"""Classification engine: name heuristics for interfaces, GPUs and processes.

The interface rule table is plain data. Rules are tried in order and the
first hit wins, so more specific rules must come before broader ones.
"""

import dataclasses
import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum

from sysboard.models import GpuInfo, NetworkInterface, SystemSnapshot

logger = logging.getLogger(__name__)


class InterfaceCategory(Enum):
    """Presentation group of a network interface; value is its sort rank."""

    WIFI = 1
    ETHERNET = 2
    DOCKER = 3
    WSL = 4
    VIRTUAL = 5
    OTHER = 10
    LOOPBACK = 99


@dataclass(slots=True, frozen=True)
class InterfaceRule:
    """
    One labelling rule.

    A rule matches when any of ``name_tokens`` occurs in the lowercased raw
    name or any of ``display_tokens`` in the lowercased display name, every
    token in ``requires`` occurs in one of them, and no ``excludes`` token
    does. ``exact_names`` match the whole raw name.
    """

    category: InterfaceCategory
    label: str
    name_tokens: tuple[str, ...] = ()
    display_tokens: tuple[str, ...] = ()
    requires: tuple[str, ...] = ()
    excludes: tuple[str, ...] = ()
    exact_names: tuple[str, ...] = ()

    def matches(self, name: str, display: str) -> bool:
        """Check the rule against lowercased name and display name."""
        both = f"{name} {display}"
        if any(token in both for token in self.excludes):
            return False
        if not all(token in both for token in self.requires):
            return False
        return (
            name in self.exact_names
            or any(token in name for token in self.name_tokens)
            or any(token in display for token in self.display_tokens)
        )


INTERFACE_RULES: tuple[InterfaceRule, ...] = (
    InterfaceRule(
        InterfaceCategory.WIFI,
        "Wi-Fi",
        name_tokens=("wi-fi", "wifi", "wlan", "wlp"),
        display_tokens=("wi-fi", "wireless"),
    ),
    InterfaceRule(
        InterfaceCategory.ETHERNET,
        "Ethernet",
        name_tokens=("ethernet", "eth", "enp", "eno"),
        display_tokens=("ethernet", "以太网"),
        excludes=("veth",),
    ),
    InterfaceRule(InterfaceCategory.DOCKER, "Docker network", name_tokens=("docker",), display_tokens=("docker",)),
    InterfaceRule(InterfaceCategory.WSL, "WSL network", name_tokens=("wsl",), display_tokens=("wsl",)),
    InterfaceRule(
        InterfaceCategory.VIRTUAL,
        "Virtual Ethernet (Default Switch)",
        name_tokens=("vethernet",),
        display_tokens=("vethernet",),
        requires=("default",),
    ),
    InterfaceRule(
        InterfaceCategory.VIRTUAL,
        "Virtual network",
        name_tokens=("vethernet", "veth", "virbr"),
        display_tokens=("vethernet", "virtual"),
    ),
    InterfaceRule(
        InterfaceCategory.LOOPBACK,
        "Loopback",
        name_tokens=("loopback",),
        display_tokens=("loopback",),
        exact_names=("lo", "lo0"),
    ),
    InterfaceRule(InterfaceCategory.OTHER, "VPN network", name_tokens=("vpn", "tun", "wg"), display_tokens=("vpn",)),
)

FALLBACK_LABEL = "interface {name}"

CHINESE_LABELS: Mapping[str, str] = {
    "Wi-Fi": "Wi-Fi",
    "Ethernet": "以太网",
    "Docker network": "Docker 网络",
    "WSL network": "WSL 网络",
    "Virtual Ethernet (Default Switch)": "虚拟以太网 (Default Switch)",
    "Virtual network": "虚拟网络",
    "Loopback": "回环接口",
    "VPN network": "VPN 网络",
    FALLBACK_LABEL: "网络接口 {name}",
}

MOJIBAKE_MARKERS = ("□", "�", "?", "锟")


def localize_rules(
    rules: Sequence[InterfaceRule], labels: Mapping[str, str]
) -> tuple[InterfaceRule, ...]:
    """Return a copy of ``rules`` with labels translated through ``labels``."""
    return tuple(dataclasses.replace(rule, label=labels.get(rule.label, rule.label)) for rule in rules)


def needs_repair(iface: NetworkInterface) -> bool:
    """Whether the display name is garbled, empty or just the raw name."""
    display = iface.display_name
    return not display or display == iface.name or any(marker in display for marker in MOJIBAKE_MARKERS)


def match_rule(
    iface: NetworkInterface, rules: Sequence[InterfaceRule] = INTERFACE_RULES
) -> InterfaceRule | None:
    """First rule matching the interface, or None."""
    name = iface.name.lower()
    display = iface.display_name.lower()
    for rule in rules:
        if rule.matches(name, display):
            return rule
    return None


def interface_category(
    iface: NetworkInterface, rules: Sequence[InterfaceRule] = INTERFACE_RULES
) -> InterfaceCategory:
    """Category used for ordering; loopback flags win over name matching."""
    if iface.is_loopback:
        return InterfaceCategory.LOOPBACK
    rule = match_rule(iface, rules)
    return rule.category if rule is not None else InterfaceCategory.OTHER


def repair_interface(
    iface: NetworkInterface,
    rules: Sequence[InterfaceRule] = INTERFACE_RULES,
    fallback: str = FALLBACK_LABEL,
) -> NetworkInterface:
    """Return the interface with a readable display name."""
    if not needs_repair(iface):
        return iface
    rule = match_rule(iface, rules)
    if rule is None:
        logger.debug("no interface rule matched %r, using generic label", iface.name)
        label = fallback.format(name=iface.name)
    else:
        label = rule.label
    return dataclasses.replace(iface, display_name=label)


def dedupe_interfaces(interfaces: Iterable[NetworkInterface]) -> list[NetworkInterface]:
    """Drop interfaces whose (display name, address set) was already seen."""
    seen: set[tuple[str, tuple[str, ...]]] = set()
    unique = []
    for iface in interfaces:
        if iface.identity in seen:
            continue
        seen.add(iface.identity)
        unique.append(iface)
    return unique


def sort_interfaces(
    interfaces: Iterable[NetworkInterface], rules: Sequence[InterfaceRule] = INTERFACE_RULES
) -> list[NetworkInterface]:
    """Order by category rank, then addressed before unaddressed, then name."""
    return sorted(
        interfaces,
        key=lambda iface: (
            interface_category(iface, rules).value,
            0 if iface.ip_addresses else 1,
            iface.display_name.casefold(),
        ),
    )


def classify_interfaces(
    interfaces: Iterable[NetworkInterface],
    rules: Sequence[InterfaceRule] = INTERFACE_RULES,
    fallback: str = FALLBACK_LABEL,
) -> tuple[NetworkInterface, ...]:
    """Repair, deduplicate and order interfaces for presentation."""
    repaired = (repair_interface(iface, rules, fallback) for iface in interfaces)
    return tuple(sort_interfaces(dedupe_interfaces(repaired), rules))


class Severity(Enum):
    """Usage tier driving colour and warnings."""

    NOMINAL = "nominal"
    ELEVATED = "elevated"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def color(self) -> str:
        """Rich colour name for this tier."""
        return _SEVERITY_COLORS[self]


_SEVERITY_COLORS = {
    Severity.NOMINAL: "green",
    Severity.ELEVATED: "blue",
    Severity.HIGH: "yellow",
    Severity.CRITICAL: "red",
}

LOW_SPACE_PERCENT = 90.0


def severity_for(percent: float) -> Severity:
    """Bucket a usage percent. Each boundary belongs to the lower tier."""
    if percent > 90:
        return Severity.CRITICAL
    if percent > 80:
        return Severity.HIGH
    if percent > 60:
        return Severity.ELEVATED
    return Severity.NOMINAL


def is_low_space(usage_percent: float) -> bool:
    """Disk warning flag; set only in the critical tier."""
    return usage_percent > LOW_SPACE_PERCENT


GPU_VENDORS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("NVIDIA", ("nvidia", "geforce", "quadro")),
    ("AMD", ("amd", "radeon")),
    ("Intel", ("intel",)),
)

VIRTUAL_GPU_TOKENS = ("remote", "basic display")


def gpu_vendor(name: str) -> str:
    """Vendor guessed from the adapter name."""
    lowered = name.lower()
    for vendor, tokens in GPU_VENDORS:
        if any(token in lowered for token in tokens):
            return vendor
    return "Unknown"


def classify_gpus(gpus: Iterable[GpuInfo]) -> tuple[GpuInfo, ...]:
    """Drop remote/basic display adapters and fill in vendors."""
    result = []
    for gpu in gpus:
        if any(token in gpu.name.lower() for token in VIRTUAL_GPU_TOKENS):
            continue
        result.append(dataclasses.replace(gpu, vendor=gpu_vendor(gpu.name)))
    return tuple(result)


CRITICAL_PROCESSES = frozenset(
    {
        "svchost.exe",
        "explorer.exe",
        "lsass.exe",
        "winlogon.exe",
        "csrss.exe",
        "services.exe",
        "smss.exe",
        "wininit.exe",
        "system",
        "systemd",
        "init",
        "kthreadd",
        "launchd",
    }
)


def is_critical_process(name: str) -> bool:
    """Whether terminating a process of this name endangers the session."""
    return name.strip().lower() in CRITICAL_PROCESSES


def classify_snapshot(
    snapshot: SystemSnapshot,
    rules: Sequence[InterfaceRule] = INTERFACE_RULES,
    fallback: str = FALLBACK_LABEL,
) -> SystemSnapshot:
    """Apply interface and GPU classification to a normalized snapshot."""
    return dataclasses.replace(
        snapshot,
        hardware=dataclasses.replace(snapshot.hardware, gpus=classify_gpus(snapshot.hardware.gpus)),
        network=dataclasses.replace(
            snapshot.network,
            interfaces=classify_interfaces(snapshot.network.interfaces, rules, fallback),
        ),
    )
