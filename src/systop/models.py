"""Data models for systop."""

from dataclasses import dataclass
from enum import Enum


class SortOrder(Enum):
    """Sort orders for the process view."""

    CPU = "cpu"
    MEMORY = "memory"
    PID = "pid"
    NAME = "name"


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Raw process entry as reported by a sampler."""

    pid: int
    name: str
    cpu_usage: float  # 0.0 - 100.0 * core_count
    memory_bytes: int


@dataclass(slots=True, frozen=True)
class ProcessSample:
    """Immutable snapshot of a process state within one refresh cycle."""

    pid: int
    name: str
    cpu_usage: float
    memory_bytes: int
    memory_percent: float


@dataclass(slots=True, frozen=True)
class HostInfo:
    """Host metadata, refreshed alongside samples."""

    hostname: str
    kernel_version: str
    os_version: str
    uptime_seconds: int


@dataclass(slots=True)
class RawSystemSample:
    """Everything a single sampler call returns."""

    cpu_usage: list[float]
    total_memory: int
    used_memory: int
    host: HostInfo
    processes: list[ProcessRecord]


@dataclass(slots=True, frozen=True)
class CpuSeries:
    """Read-only view of one logical core."""

    label: str
    current_usage: float
    history: list[float]


@dataclass(slots=True, frozen=True)
class MemorySeries:
    """Read-only view of memory usage history (percent used)."""

    history: list[float]
