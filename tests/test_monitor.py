"""Tests for the Refresher and the psutil sampler."""

import logging
import time

import psutil
import pytest

from systop.models import HostInfo, ProcessRecord, RawSystemSample
from systop.monitor import Refresher
from systop.sampler import PsutilSampler, PsutilTerminator, SamplingError
from systop.store import SnapshotStore

from conftest import FakeSampler, make_sample


def wait_for(predicate, timeout: float = 2.0) -> bool:
    """Poll predicate until it holds or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class TestRefresher:
    """Tests for Refresher class."""

    def test_refresher_creation(self):
        """Test Refresher can be instantiated."""
        refresher = Refresher(SnapshotStore(), FakeSampler())

        assert refresher.interval == 1.0
        assert not refresher.is_running

    def test_custom_interval(self):
        refresher = Refresher(SnapshotStore(), FakeSampler(), interval=0.5)
        assert refresher.interval == 0.5

    def test_interval_minimum(self):
        """Test interval has a minimum value."""
        refresher = Refresher(SnapshotStore(), FakeSampler(), interval=0.001)
        assert refresher.interval >= 0.1

        refresher.interval = 0.01  # Very small value
        assert refresher.interval >= 0.1  # Should be clamped to minimum

    def test_start_takes_first_sample_synchronously(self):
        store = SnapshotStore()
        refresher = Refresher(store, FakeSampler(), interval=10.0)

        refresher.start()
        try:
            # Available immediately, long before the first interval elapses
            assert store.generation == 1
            assert store.cpu_series()[0].history == [10.0]
        finally:
            refresher.stop()

    def test_refresher_start_stop(self):
        """Test Refresher can be started and stopped."""
        refresher = Refresher(SnapshotStore(), FakeSampler(), interval=0.1)

        assert not refresher.is_running

        refresher.start()
        assert refresher.is_running

        refresher.stop()
        assert not refresher.is_running

    def test_refresher_start_idempotent(self):
        """Test starting an already running refresher is safe."""
        sampler = FakeSampler()
        refresher = Refresher(SnapshotStore(), sampler, interval=10.0)

        refresher.start()
        thread1 = refresher._thread

        refresher.start()  # Should not create a new thread or sample again
        thread2 = refresher._thread

        assert thread1 is thread2
        assert sampler.calls == 1
        refresher.stop()

    def test_refreshes_periodically(self):
        store = SnapshotStore()
        refresher = Refresher(store, FakeSampler(), interval=0.1)

        refresher.start()
        try:
            assert wait_for(lambda: store.generation >= 3)
        finally:
            refresher.stop()

    def test_first_sample_failure_is_fatal(self):
        sampler = FakeSampler()
        sampler.fail_first = True
        refresher = Refresher(SnapshotStore(), sampler, interval=0.1)

        with pytest.raises(SamplingError):
            refresher.start()
        assert not refresher.is_running

    def test_sampling_error_propagates_unwrapped(self):
        class BrokenSampler:
            def sample(self):
                raise SamplingError("no counters")

        refresher = Refresher(SnapshotStore(), BrokenSampler())
        with pytest.raises(SamplingError, match="no counters"):
            refresher.start()

    def test_later_failures_skip_cycle(self, caplog):
        """A failing cycle after startup leaves the previous data in place."""
        store = SnapshotStore()
        sampler = FakeSampler(make_sample(cpu_usage=[42.0]))
        sampler.fail_from = 1
        refresher = Refresher(store, sampler, interval=0.1)

        with caplog.at_level(logging.WARNING, logger="systop.monitor"):
            refresher.start()
            try:
                assert wait_for(lambda: refresher.consecutive_failures >= 2)
                assert refresher.is_running
            finally:
                refresher.stop()

        assert store.generation == 1
        assert store.cpu_series()[0].history == [42.0]
        assert "keeping previous data" in caplog.text

    def test_failure_counter_resets_on_success(self):
        store = SnapshotStore()
        sampler = FakeSampler()
        sampler.fail_from = 1
        refresher = Refresher(store, sampler, interval=0.1)

        refresher.start()
        try:
            assert wait_for(lambda: refresher.consecutive_failures >= 1)
            sampler.fail_from = None
            assert wait_for(lambda: refresher.consecutive_failures == 0 and store.generation >= 2)
        finally:
            refresher.stop()

    def test_daemon_thread(self):
        """Test refresher thread is a daemon thread."""
        refresher = Refresher(SnapshotStore(), FakeSampler(), interval=0.1)

        refresher.start()

        try:
            assert refresher._thread is not None
            assert refresher._thread.daemon is True
            assert refresher._thread.name == "Refresher"
        finally:
            refresher.stop()


class TestPsutilSampler:
    """Tests against the real system through psutil."""

    def test_sample_returns_raw_system_sample(self):
        sample = PsutilSampler().sample()

        assert isinstance(sample, RawSystemSample)
        assert isinstance(sample.cpu_usage, list)
        assert len(sample.cpu_usage) > 0
        assert all(isinstance(usage, float) for usage in sample.cpu_usage)
        assert sample.total_memory > 0
        assert 0 <= sample.used_memory <= sample.total_memory
        assert isinstance(sample.host, HostInfo)
        assert sample.host.uptime_seconds >= 0

    def test_collect_processes(self):
        """Test collected records have all required fields."""
        processes = PsutilSampler()._collect_processes()

        assert len(processes) > 0
        for proc in processes[:5]:
            assert isinstance(proc, ProcessRecord)
            assert proc.pid >= 0
            assert isinstance(proc.name, str)
            assert isinstance(proc.cpu_usage, float)
            assert isinstance(proc.memory_bytes, int)

    def test_unreadable_counters_at_start_raise_sampling_error(self, monkeypatch):
        def broken_cpu_percent(*args, **kwargs):
            raise psutil.AccessDenied()

        monkeypatch.setattr(psutil, "cpu_percent", broken_cpu_percent)

        with pytest.raises(SamplingError):
            PsutilSampler()

    def test_core_count_stable(self):
        sampler = PsutilSampler()
        assert len(sampler.sample().cpu_usage) == len(sampler.sample().cpu_usage)

    def test_refresher_with_real_sampler(self):
        store = SnapshotStore()
        refresher = Refresher(store, PsutilSampler(), interval=0.1)

        refresher.start()
        try:
            assert wait_for(lambda: store.generation >= 2, timeout=5.0)
            assert store.host_info() is not None
            assert store.total_memory() > 0
        finally:
            refresher.stop()


class TestPsutilTerminator:
    """Tests for the psutil-backed terminator."""

    def test_missing_pid_returns_false(self, monkeypatch):
        def no_such_process(pid):
            raise psutil.NoSuchProcess(pid)

        monkeypatch.setattr(psutil, "Process", no_such_process)
        assert PsutilTerminator().terminate(999999) is False

    def test_access_denied_returns_false(self, monkeypatch):
        def denied(pid):
            raise psutil.AccessDenied(pid)

        monkeypatch.setattr(psutil, "Process", denied)
        assert PsutilTerminator().terminate(1) is False

    def test_kill_delivered(self, monkeypatch):
        killed = []

        class FakeProcess:
            def __init__(self, pid):
                self.pid = pid

            def kill(self):
                killed.append(self.pid)

        monkeypatch.setattr(psutil, "Process", FakeProcess)
        assert PsutilTerminator().terminate(1234) is True
        assert killed == [1234]
