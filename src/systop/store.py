"""Authoritative system state shared between the refresher and the UI."""

import logging
import time
from dataclasses import dataclass
from functools import cmp_to_key

from systop.history import HISTORY_CAPACITY, HistoryRingBuffer
from systop.models import (
    CpuSeries,
    HostInfo,
    MemorySeries,
    ProcessSample,
    RawSystemSample,
    SortOrder,
)
from systop.rwlock import ReadWriteLock

logger = logging.getLogger(__name__)


def _compare_cpu(a: ProcessSample, b: ProcessSample) -> int:
    # Descending; NaN compares equal to everything.
    if a.cpu_usage > b.cpu_usage:
        return -1
    if a.cpu_usage < b.cpu_usage:
        return 1
    return 0


def sort_processes(processes: list[ProcessSample], order: SortOrder) -> list[ProcessSample]:
    """Return a new list of processes sorted for the given order."""
    if order is SortOrder.CPU:
        return sorted(processes, key=cmp_to_key(_compare_cpu))
    if order is SortOrder.MEMORY:
        return sorted(processes, key=lambda p: p.memory_bytes, reverse=True)
    if order is SortOrder.PID:
        return sorted(processes, key=lambda p: p.pid)
    return sorted(processes, key=lambda p: p.name.lower())


def _percent(part: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return part / total * 100.0


@dataclass(slots=True, frozen=True)
class StoreSnapshot:
    """Every field of the store as read under one read lock."""

    generation: int
    host: HostInfo | None
    total_memory: int
    used_memory: int
    memory_percent: float
    cpu_series: list[CpuSeries]
    memory_series: MemorySeries
    processes: list[ProcessSample]


class SnapshotStore:
    """
    System of record for sampled state plus its bounded history.

    The refresher is the only writer; everything else reads. All reads and
    the single write path go through a reader-writer lock so a reader never
    sees half of one refresh cycle.
    """

    def __init__(self, history_capacity: int = HISTORY_CAPACITY) -> None:
        """
        Initialize an empty store.

        Args:
            history_capacity: Samples kept per CPU core and for memory.
        """
        self._lock = ReadWriteLock()
        self._history_capacity = history_capacity
        self._host: HostInfo | None = None
        self._total_memory = 0
        self._used_memory = 0
        self._processes: dict[int, ProcessSample] = {}
        self._cpu_labels: list[str] = []
        self._cpu_usage: list[float] = []
        self._cpu_history: list[HistoryRingBuffer] = []
        self._memory_history = HistoryRingBuffer(history_capacity)
        self._cores_initialized = False
        self._reported_core_count: int | None = None
        self._generation = 0
        self._last_refreshed: float | None = None

    def refresh(self, sample: RawSystemSample) -> None:
        """Apply one sampler result as a single atomic update."""
        processes = {
            record.pid: ProcessSample(
                pid=record.pid,
                name=record.name,
                cpu_usage=record.cpu_usage,
                memory_bytes=record.memory_bytes,
                memory_percent=_percent(record.memory_bytes, sample.total_memory),
            )
            for record in sample.processes
        }

        with self._lock.write():
            if not self._cores_initialized:
                self._init_cores(len(sample.cpu_usage))
            elif len(sample.cpu_usage) != len(self._cpu_history):
                self._warn_core_count(len(sample.cpu_usage))

            # Core count is frozen at the first refresh; extra cores are ignored.
            for i, usage in enumerate(sample.cpu_usage[: len(self._cpu_history)]):
                self._cpu_usage[i] = usage
                self._cpu_history[i].push(usage)

            self._host = sample.host
            self._total_memory = sample.total_memory
            self._used_memory = sample.used_memory
            self._memory_history.push(_percent(sample.used_memory, sample.total_memory))
            self._processes = processes
            self._generation += 1
            self._last_refreshed = time.monotonic()

    def _init_cores(self, count: int) -> None:
        self._cpu_labels = [f"cpu{i}" for i in range(count)]
        self._cpu_usage = [0.0] * count
        self._cpu_history = [HistoryRingBuffer(self._history_capacity) for _ in range(count)]
        self._cores_initialized = True
        logger.debug("Tracking %d CPU cores", count)

    def _warn_core_count(self, count: int) -> None:
        if count == self._reported_core_count:
            return
        self._reported_core_count = count
        logger.warning(
            "Sampler reported %d CPU cores, tracking stays at the initial %d",
            count,
            len(self._cpu_history),
        )

    @property
    def generation(self) -> int:
        """Number of refreshes applied so far."""
        with self._lock.read():
            return self._generation

    @property
    def last_refreshed(self) -> float | None:
        """Monotonic time of the last applied refresh, or None."""
        with self._lock.read():
            return self._last_refreshed

    def processes(self, sort_order: SortOrder) -> list[ProcessSample]:
        """Return a freshly sorted copy of the current process table."""
        with self._lock.read():
            current = list(self._processes.values())
        return sort_processes(current, sort_order)

    def cpu_series(self) -> list[CpuSeries]:
        with self._lock.read():
            return self._cpu_series_unlocked()

    def memory_series(self) -> MemorySeries:
        with self._lock.read():
            return MemorySeries(history=self._memory_history.values())

    def host_info(self) -> HostInfo | None:
        with self._lock.read():
            return self._host

    def total_memory(self) -> int:
        with self._lock.read():
            return self._total_memory

    def used_memory(self) -> int:
        with self._lock.read():
            return self._used_memory

    def memory_percent(self) -> float:
        with self._lock.read():
            return _percent(self._used_memory, self._total_memory)

    def snapshot(self, sort_order: SortOrder = SortOrder.CPU) -> StoreSnapshot:
        """Read the whole store consistently, for rendering one frame."""
        with self._lock.read():
            generation = self._generation
            host = self._host
            total = self._total_memory
            used = self._used_memory
            cpu_series = self._cpu_series_unlocked()
            memory_history = self._memory_history.values()
            current = list(self._processes.values())
        return StoreSnapshot(
            generation=generation,
            host=host,
            total_memory=total,
            used_memory=used,
            memory_percent=_percent(used, total),
            cpu_series=cpu_series,
            memory_series=MemorySeries(history=memory_history),
            processes=sort_processes(current, sort_order),
        )

    def _cpu_series_unlocked(self) -> list[CpuSeries]:
        return [
            CpuSeries(label=label, current_usage=usage, history=history.values())
            for label, usage, history in zip(
                self._cpu_labels, self._cpu_usage, self._cpu_history
            )
        ]
