"""Cursor into the current process view."""


class SelectionTracker:
    """
    Row cursor kept within the bounds of a view whose length changes.

    Holds only an index; the view itself is recomputed on demand, so the
    cursor must be clamped whenever the view may have shrunk.
    """

    def __init__(self) -> None:
        self._cursor = 0

    @property
    def cursor(self) -> int:
        return self._cursor

    def move_up(self) -> None:
        if self._cursor > 0:
            self._cursor -= 1

    def move_down(self, length: int) -> None:
        self._cursor = min(self._cursor + 1, max(0, length - 1))

    def clamp(self, length: int) -> None:
        """Pull the cursor back onto the last row if the view shrank."""
        self._cursor = min(self._cursor, max(0, length - 1))

    def select(self, index: int, length: int) -> None:
        """Jump to a row, clamped to the view."""
        self._cursor = min(max(index, 0), max(0, length - 1))

    def reset(self) -> None:
        self._cursor = 0
