"""Shared fakes for systop tests."""

import threading

import pytest

from systop.models import HostInfo, ProcessRecord, RawSystemSample

HOST = HostInfo(
    hostname="testhost",
    kernel_version="6.1.0",
    os_version="Linux #1 SMP",
    uptime_seconds=7260,
)


def make_sample(
    cpu_usage: list[float] | None = None,
    processes: list[ProcessRecord] | None = None,
    total_memory: int = 1000,
    used_memory: int = 250,
) -> RawSystemSample:
    """Build a RawSystemSample with sensible defaults."""
    return RawSystemSample(
        cpu_usage=list(cpu_usage) if cpu_usage is not None else [10.0, 20.0],
        total_memory=total_memory,
        used_memory=used_memory,
        host=HOST,
        processes=list(processes) if processes is not None else [],
    )


class FakeSampler:
    """Sampler that replays queued samples, then repeats the last one."""

    def __init__(self, *samples: RawSystemSample) -> None:
        self._samples = list(samples) or [make_sample()]
        self._lock = threading.Lock()
        self.calls = 0
        self.fail_from: int | None = None  # call index from which sample() raises
        self.fail_first = False

    def sample(self) -> RawSystemSample:
        with self._lock:
            index = self.calls
            self.calls += 1
        if self.fail_first and index == 0:
            raise OSError("counters unavailable")
        if self.fail_from is not None and index >= self.fail_from:
            raise OSError("sampler broke")
        return self._samples[min(index, len(self._samples) - 1)]


class RecordingTerminator:
    """Terminator that records pids instead of killing anything."""

    def __init__(self, result: bool = True) -> None:
        self.result = result
        self.killed: list[int] = []

    def terminate(self, pid: int) -> bool:
        self.killed.append(pid)
        return self.result


@pytest.fixture
def two_processes() -> list[ProcessRecord]:
    return [
        ProcessRecord(pid=1, name="init", cpu_usage=5.0, memory_bytes=100),
        ProcessRecord(pid=2, name="worker", cpu_usage=50.0, memory_bytes=50),
    ]


@pytest.fixture
def terminator() -> RecordingTerminator:
    return RecordingTerminator()
