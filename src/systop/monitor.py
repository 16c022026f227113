"""Background refresh loop for systop."""

import logging
import threading

from systop.sampler import Sampler, SamplingError
from systop.store import SnapshotStore

logger = logging.getLogger(__name__)

MIN_INTERVAL = 0.1


class Refresher:
    """
    Periodically samples the system and writes the result into a store.

    The first sample is taken synchronously by start() so a broken sampler
    fails loudly before any UI is shown. After that the loop runs in a
    daemon thread; a failing cycle is logged and skipped, leaving the
    previous data in place until the next successful one.
    """

    def __init__(
        self,
        store: SnapshotStore,
        sampler: Sampler,
        interval: float = 1.0,
    ) -> None:
        """
        Initialize the Refresher.

        Args:
            store: Store that receives every successful sample.
            sampler: Source of system samples.
            interval: Seconds to wait between refreshes. Default 1.0s.
        """
        self._store = store
        self._sampler = sampler
        self._interval = max(MIN_INTERVAL, interval)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._consecutive_failures = 0

    @property
    def interval(self) -> float:
        """Get the current refresh interval."""
        return self._interval

    @interval.setter
    def interval(self, value: float) -> None:
        """Set the refresh interval."""
        self._interval = max(MIN_INTERVAL, value)

    @property
    def is_running(self) -> bool:
        """Check if the refresh thread is running."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def consecutive_failures(self) -> int:
        """Number of cycles skipped since the last successful refresh."""
        return self._consecutive_failures

    def start(self) -> None:
        """
        Take the initial sample and start the refresh thread.

        Raises:
            SamplingError: If the initial sample fails.
        """
        if self.is_running:
            return

        try:
            self._refresh_once()
        except SamplingError:
            raise
        except Exception as exc:
            raise SamplingError(f"initial sample failed: {exc}") from exc

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._refresh_loop,
            daemon=True,
            name="Refresher",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the refresh thread between cycles.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _refresh_once(self) -> None:
        # Sampling can be slow, so only the apply step holds the write lock.
        sample = self._sampler.sample()
        self._store.refresh(sample)

    def _refresh_loop(self) -> None:
        """Main loop running in the background thread."""
        # Wait for the interval or until stop is requested
        while not self._stop_event.wait(timeout=self._interval):
            try:
                self._refresh_once()
            except Exception:
                self._consecutive_failures += 1
                logger.warning(
                    "Refresh failed (%d in a row), keeping previous data",
                    self._consecutive_failures,
                    exc_info=True,
                )
                continue
            self._consecutive_failures = 0
