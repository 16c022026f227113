"""Sampler and terminator boundaries, with psutil implementations."""

import logging
import platform
import time
from typing import Protocol

import psutil

from systop.models import HostInfo, ProcessRecord, RawSystemSample

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"


class SamplingError(RuntimeError):
    """Raised when a full system sample cannot be taken."""


class Sampler(Protocol):
    """Anything that can take a one-shot snapshot of the host."""

    def sample(self) -> RawSystemSample: ...


class Terminator(Protocol):
    """Anything that can kill a process by pid."""

    def terminate(self, pid: int) -> bool: ...


class PsutilSampler:
    """
    Sampler backed by psutil.

    Processes that vanish or deny access while being read are skipped;
    failures of the system-wide counters raise SamplingError.
    """

    def __init__(self) -> None:
        """Prime psutil's CPU counters (the first call always returns 0.0)."""
        try:
            psutil.cpu_percent(percpu=True)
        except psutil.Error as exc:
            raise SamplingError(f"failed to read CPU counters: {exc}") from exc

    def sample(self) -> RawSystemSample:
        """Collect a snapshot of the current system state."""
        try:
            # Non-blocking, uses the previous call's counters
            cpu_usage = psutil.cpu_percent(percpu=True)
            mem = psutil.virtual_memory()
            uptime = int(time.time() - psutil.boot_time())
        except psutil.Error as exc:
            raise SamplingError(f"failed to read system counters: {exc}") from exc

        return RawSystemSample(
            cpu_usage=[float(usage) for usage in cpu_usage],
            total_memory=mem.total,
            used_memory=mem.used,
            host=self._host_info(uptime),
            processes=self._collect_processes(),
        )

    def _host_info(self, uptime: int) -> HostInfo:
        uname = platform.uname()
        os_version = " ".join(part for part in (uname.system, uname.version) if part)
        return HostInfo(
            hostname=uname.node or UNKNOWN,
            kernel_version=uname.release or UNKNOWN,
            os_version=os_version or UNKNOWN,
            uptime_seconds=max(0, uptime),
        )

    def _collect_processes(self) -> list[ProcessRecord]:
        """
        Collect records for all running processes.

        Uses psutil.process_iter() with a fixed attribute list so each process
        is read in one pass.
        """
        processes: list[ProcessRecord] = []

        for proc in psutil.process_iter(attrs=["pid", "name", "cpu_percent", "memory_info"]):
            try:
                info = proc.info
                mem_info = info.get("memory_info")
                processes.append(
                    ProcessRecord(
                        pid=info.get("pid", proc.pid),
                        name=info.get("name") or "",
                        cpu_usage=info.get("cpu_percent") or 0.0,
                        memory_bytes=mem_info.rss if mem_info else 0,
                    )
                )
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                # Process died mid-poll or is off limits
                continue

        return processes


class PsutilTerminator:
    """Hard-kills processes (SIGKILL on POSIX, TerminateProcess on Windows)."""

    def terminate(self, pid: int) -> bool:
        """
        Kill the process with the given pid.

        Returns:
            True if the signal was delivered, False if the process is gone or
            the caller lacks permission.
        """
        try:
            psutil.Process(pid).kill()
        except (psutil.NoSuchProcess, psutil.AccessDenied) as exc:
            logger.debug("Could not kill pid %d: %s", pid, exc)
            return False
        logger.info("Killed pid %d", pid)
        return True
