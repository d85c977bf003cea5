"""Filter/sort pipeline over live collections (ports and processes)."""

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

from sysboard.models import PortRecord, ProcessRecord

T = TypeVar("T")

Predicate = Callable[[T], bool]

DEVELOPMENT_PROJECT_TYPES = frozenset({"React", "Vue", "Node.js"})
DOCKER_PROJECT_TYPE = "Docker"


def apply(
    items: Iterable[T],
    predicates: Sequence[Predicate] = (),
    key: Callable[[T], Any] | None = None,
    reverse: bool = False,
) -> list[T]:
    """
    Filter ``items`` by every predicate, then sort.

    The sort is stable in both directions: items with equal keys keep their
    input order, so re-sorting an unchanged collection never moves ties.
    """
    selected = [item for item in items if all(predicate(item) for predicate in predicates)]
    if key is None:
        return selected
    return sorted(selected, key=key, reverse=reverse)


class PortCategory(Enum):
    """Port category filter."""

    ALL = "all"
    DEVELOPMENT = "development"
    DOCKER = "docker"
    SYSTEM = "system"


def port_text_matches(needle: str) -> Predicate[PortRecord]:
    """Case-insensitive substring over port number, process name and project name."""
    lowered = needle.strip().lower()

    def predicate(record: PortRecord) -> bool:
        if not lowered:
            return True
        if lowered in str(record.port):
            return True
        if lowered in record.process.name.lower():
            return True
        return record.project is not None and lowered in record.project.name.lower()

    return predicate


def port_category_matches(category: PortCategory) -> Predicate[PortRecord]:
    """Match development, docker or system ports."""

    def predicate(record: PortRecord) -> bool:
        project = record.project
        if category is PortCategory.DEVELOPMENT:
            return project is not None and project.project_type in DEVELOPMENT_PROJECT_TYPES
        if category is PortCategory.DOCKER:
            return project is not None and project.project_type == DOCKER_PROJECT_TYPE
        if category is PortCategory.SYSTEM:
            return project is None
        return True

    return predicate


def port_status_matches(status: str) -> Predicate[PortRecord]:
    """Exact status match; "all" matches everything."""
    wanted = status.strip().lower()

    def predicate(record: PortRecord) -> bool:
        return wanted == "all" or record.status.value.lower() == wanted

    return predicate


@dataclass(slots=True, frozen=True)
class PortFilter:
    """The three port filters combined."""

    search: str = ""
    category: PortCategory = PortCategory.ALL
    status: str = "all"

    def predicates(self) -> list[Predicate[PortRecord]]:
        """Active predicates for this filter."""
        return [
            port_text_matches(self.search),
            port_category_matches(self.category),
            port_status_matches(self.status),
        ]

    def apply(self, ports: Iterable[PortRecord]) -> list[PortRecord]:
        """Filter ports, keeping backend order."""
        return apply(ports, self.predicates())


@dataclass(slots=True, frozen=True)
class PortStats:
    """Per-category port counts."""

    development: int
    system: int
    docker: int


def port_stats(ports: Sequence[PortRecord]) -> PortStats:
    """Count ports in each category."""
    return PortStats(
        development=len(apply(ports, [port_category_matches(PortCategory.DEVELOPMENT)])),
        system=len(apply(ports, [port_category_matches(PortCategory.SYSTEM)])),
        docker=len(apply(ports, [port_category_matches(PortCategory.DOCKER)])),
    )


class SortKey(Enum):
    """Sort keys for the process table."""

    CPU = "cpu"
    MEMORY = "memory"
    NAME = "name"


_PROCESS_SORT_KEYS: dict[SortKey, Callable[[ProcessRecord], Any]] = {
    SortKey.CPU: lambda p: p.cpu_usage_percent,
    SortKey.MEMORY: lambda p: p.memory_usage_bytes,
    SortKey.NAME: lambda p: p.name.casefold(),
}


def process_name_matches(needle: str) -> Predicate[ProcessRecord]:
    """Case-insensitive substring over the process name."""
    lowered = needle.strip().lower()
    return lambda record: lowered in record.name.lower()


class ProcessSort:
    """
    Sort state for the process table.

    Selecting the current key flips direction; selecting a different key
    switches to it in descending order.
    """

    def __init__(self, key: SortKey = SortKey.CPU, descending: bool = True) -> None:
        self._key = key
        self._descending = descending

    @property
    def key(self) -> SortKey:
        """Get current sort key."""
        return self._key

    @property
    def descending(self) -> bool:
        """Whether the current direction is descending."""
        return self._descending

    def select(self, key: SortKey) -> None:
        """Select a sort key, toggling direction when it is already active."""
        if key is self._key:
            self._descending = not self._descending
        else:
            self._key = key
            self._descending = True

    def apply(self, processes: Iterable[ProcessRecord], search: str = "") -> list[ProcessRecord]:
        """Filter by name and sort by the current key and direction."""
        return apply(
            processes,
            [process_name_matches(search)],
            key=_PROCESS_SORT_KEYS[self._key],
            reverse=self._descending,
        )


@dataclass(slots=True, frozen=True)
class ProcessTotals:
    """Aggregate resource use across a process listing."""

    count: int
    cpu_percent: float
    memory_bytes: int


def process_totals(processes: Sequence[ProcessRecord]) -> ProcessTotals:
    """Sum CPU and memory across processes."""
    return ProcessTotals(
        count=len(processes),
        cpu_percent=sum(p.cpu_usage_percent for p in processes),
        memory_bytes=sum(p.memory_usage_bytes for p in processes),
    )
