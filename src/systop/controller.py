"""Maps user commands onto the snapshot store and selection."""

import logging
from collections.abc import Callable

from systop.models import ProcessSample, SortOrder
from systop.sampler import Terminator
from systop.selection import SelectionTracker
from systop.store import SnapshotStore

logger = logging.getLogger(__name__)


class InteractionController:
    """
    Orchestrates navigation, sorting and killing for the UI loop.

    Owned by the single UI thread, so the selection and sort order need no
    locking; only the store is shared with the refresher.
    """

    def __init__(
        self,
        store: SnapshotStore,
        terminator: Terminator,
        sort_order: SortOrder = SortOrder.CPU,
    ) -> None:
        """
        Initialize the controller.

        Args:
            store: Store to read process views from.
            terminator: Capability used to kill the selected process.
            sort_order: Initial sort order. Default CPU.
        """
        self._store = store
        self._terminator = terminator
        self._sort_order = sort_order
        self._selection = SelectionTracker()
        self.should_quit = False
        self._keymap: dict[str, Callable[[], object]] = {
            "q": self.quit,
            "ctrl+c": self.quit,
            "up": self.move_up,
            "k": self.move_up,
            "down": self.move_down,
            "j": self.move_down,
            "K": self.kill_selected,
            "c": lambda: self.set_sort(SortOrder.CPU),
            "m": lambda: self.set_sort(SortOrder.MEMORY),
            "p": lambda: self.set_sort(SortOrder.PID),
            "n": lambda: self.set_sort(SortOrder.NAME),
        }

    @property
    def sort_order(self) -> SortOrder:
        """Get current sort order."""
        return self._sort_order

    @property
    def cursor(self) -> int:
        return self._selection.cursor

    def quit(self) -> None:
        self.should_quit = True

    def move_up(self) -> None:
        self._selection.move_up()

    def move_down(self) -> None:
        self._selection.move_down(len(self._store.processes(self._sort_order)))

    def set_sort(self, order: SortOrder) -> None:
        """Switch the sort order; the cursor goes back to the top row."""
        self._sort_order = order
        self._selection.reset()

    def visible_processes(self) -> list[ProcessSample]:
        """Return the current sorted view and clamp the cursor to it."""
        processes = self._store.processes(self._sort_order)
        self._selection.clamp(len(processes))
        return processes

    def clamp(self, length: int) -> None:
        self._selection.clamp(length)

    def select(self, index: int) -> None:
        """Put the cursor on a row picked outside the key map, e.g. with the mouse."""
        self._selection.select(index, len(self._store.processes(self._sort_order)))

    def selected_process(self) -> ProcessSample | None:
        processes = self._store.processes(self._sort_order)
        if 0 <= self._selection.cursor < len(processes):
            return processes[self._selection.cursor]
        return None

    def kill_selected(self) -> int | None:
        """
        Kill the process under the cursor.

        The terminator's outcome is not reported back to the user.

        Returns:
            The targeted pid, or None if nothing is selected.
        """
        process = self.selected_process()
        if process is None:
            return None
        logger.debug("Killing pid %d (%s)", process.pid, process.name)
        self._terminator.terminate(process.pid)
        return process.pid

    def handle_key(self, key: str) -> bool:
        """Run the command bound to a key name. Returns False for unbound keys."""
        command = self._keymap.get(key)
        if command is None:
            return False
        command()
        return True
