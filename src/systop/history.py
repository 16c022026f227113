"""Fixed-capacity sample history for sparkline rendering."""

HISTORY_CAPACITY = 60


class HistoryRingBuffer:
    """
    Circular buffer of numeric samples.

    Backed by a preallocated list with a head index, so the capacity bound
    holds structurally: once full, each push overwrites the oldest slot.
    """

    __slots__ = ("_slots", "_head", "_length")

    def __init__(self, capacity: int = HISTORY_CAPACITY) -> None:
        """
        Initialize the buffer.

        Args:
            capacity: Maximum number of samples retained. Must be at least 1.
        """
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self._slots: list[float] = [0.0] * capacity
        self._head = 0  # index of the oldest sample
        self._length = 0

    def __len__(self) -> int:
        return self._length

    def __repr__(self) -> str:
        return f"HistoryRingBuffer(capacity={self.capacity}, values={self.values()!r})"

    @property
    def capacity(self) -> int:
        """Maximum number of samples the buffer can hold."""
        return len(self._slots)

    @property
    def latest(self) -> float | None:
        """Most recently pushed sample, or None when empty."""
        if not self._length:
            return None
        return self._slots[(self._head + self._length - 1) % self.capacity]

    def push(self, value: float) -> None:
        """Append a sample, evicting the oldest one when full."""
        capacity = self.capacity
        if self._length == capacity:
            self._slots[self._head] = value
            self._head = (self._head + 1) % capacity
        else:
            self._slots[(self._head + self._length) % capacity] = value
            self._length += 1

    def values(self) -> list[float]:
        """Return the samples oldest-to-newest as a new list."""
        end = self._head + self._length
        if end <= self.capacity:
            return self._slots[self._head : end]
        return self._slots[self._head :] + self._slots[: end - self.capacity]

    def clear(self) -> None:
        self._head = 0
        self._length = 0
