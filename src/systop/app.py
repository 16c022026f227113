"""systop - Main Textual application."""

import sys

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical
from textual.css.query import NoMatches
from textual.widgets import DataTable, Sparkline, Static

from systop.config import Settings, configure_logging, parse_args
from systop.controller import InteractionController
from systop.models import CpuSeries, HostInfo, ProcessSample, SortOrder
from systop.monitor import Refresher
from systop.sampler import PsutilSampler, PsutilTerminator, Sampler, SamplingError, Terminator
from systop.store import SnapshotStore, StoreSnapshot

MAX_CPU_ROWS = 4  # cores shown in the CPU panel
SPARK_CHARS = "▁▂▃▄▅▆▇█"

CONTROLS = (
    "Controls: ↑/↓ or j/k (navigate) | K (kill process) | c (sort by CPU) | "
    "m (sort by memory) | p (sort by PID) | n (sort by name) | q (quit)"
)

# Column key for each sort order, highlighted in the table header
SORT_COLUMNS = {
    SortOrder.PID: "pid",
    SortOrder.NAME: "name",
    SortOrder.CPU: "cpu",
    SortOrder.MEMORY: "mem_pct",
}


def format_memory(size: int) -> str:
    """Format bytes as MB, or GB from 1024 MB up."""
    megabytes = size / 1024 / 1024
    if megabytes >= 1024:
        return f"{megabytes / 1024:.1f}GB"
    return f"{megabytes:.0f}MB"


def format_uptime(seconds: int) -> str:
    """Format uptime as hours and minutes."""
    return f"{seconds // 3600}h {(seconds % 3600) // 60}m"


def load_color(percent: float, warn: float, critical: float) -> str:
    """Pick a colour for a usage percentage."""
    if percent <= warn:
        return "green"
    if percent <= critical:
        return "yellow"
    return "red"


def usage_bar(percent: float, color: str, width: int = 20) -> str:
    bar_len = min(max(int(percent / 100 * width), 0), width)
    return f"[{color}]" + "█" * bar_len + f"[/{color}]" + "[dim]░[/dim]" * (width - bar_len)


def sparkline_text(values: list[float], width: int = 20, ceiling: float = 100.0) -> str:
    """Render the newest `width` values as block characters scaled to ceiling."""
    levels = len(SPARK_CHARS) - 1
    chars = []
    for value in values[-width:]:
        ratio = min(max(value / ceiling, 0.0), 1.0) if ceiling > 0 else 0.0
        chars.append(SPARK_CHARS[round(ratio * levels)])
    return "".join(chars)


class HostHeader(Static):
    """Title line with host name and uptime."""

    DEFAULT_CSS = """
    HostHeader {
        height: auto;
        border: solid $primary;
        padding: 0 1;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize HostHeader."""
        super().__init__(self._format(None), *args, **kwargs)
        self._host: HostInfo | None = None

    @property
    def host(self) -> HostInfo | None:
        return self._host

    def update_host(self, host: HostInfo | None) -> None:
        self._host = host
        self.update(self._format(host))

    @staticmethod
    def _format(host: HostInfo | None) -> str:
        title = "[bold cyan]SysTop[/bold cyan] - System Monitor"
        if host is None:
            return f"{title}\nLoading host info..."
        return (
            f"{title}\n"
            f"Host: [green]{host.hostname}[/green] | "
            f"Uptime: [yellow]{format_uptime(host.uptime_seconds)}[/yellow] | "
            f"Kernel: {host.kernel_version} | {host.os_version}"
        )


class CpuPanel(Static):
    """Per-core usage bars with a short history trail."""

    DEFAULT_CSS = """
    CpuPanel {
        width: 1fr;
        height: auto;
        min-height: 6;
        border: solid $primary;
        padding: 0 1;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize CpuPanel."""
        super().__init__("Loading CPU info...", *args, **kwargs)
        self.border_title = "CPU"
        self._series: list[CpuSeries] = []

    def update_series(self, series: list[CpuSeries]) -> None:
        self._series = series
        self.update(self._format())

    def _format(self) -> str:
        if not self._series:
            return "Loading CPU info..."
        lines = []
        for i, cpu in enumerate(self._series[:MAX_CPU_ROWS]):
            color = load_color(cpu.current_usage, 50, 80)
            # Escaped bracket so the bar container is not read as markup
            lines.append(
                f"CPU {i + 1:<2} \\[{usage_bar(cpu.current_usage, color)}] "
                f"{cpu.current_usage:5.1f}% [{color}]{sparkline_text(cpu.history)}[/{color}]"
            )
        if len(self._series) > MAX_CPU_ROWS:
            lines.append(f"[dim]+{len(self._series) - MAX_CPU_ROWS} more cores[/dim]")
        return "\n".join(lines)


class MemoryPanel(Vertical):
    """Memory gauge with a sparkline of usage history."""

    DEFAULT_CSS = """
    MemoryPanel {
        width: 1fr;
        height: auto;
        min-height: 6;
        border: solid $primary;
        padding: 0 1;
    }

    MemoryPanel Sparkline {
        height: 3;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize MemoryPanel."""
        super().__init__(*args, **kwargs)
        self.border_title = "Memory"
        self._percent = 0.0

    @property
    def percent(self) -> float:
        return self._percent

    def compose(self) -> ComposeResult:
        """Compose the gauge and history sparkline."""
        yield Static("Loading memory info...", id="mem-gauge")
        yield Sparkline([], summary_function=max, id="mem-history")

    def update_memory(self, snapshot: StoreSnapshot) -> None:
        self._percent = snapshot.memory_percent
        if snapshot.total_memory == 0:
            return
        color = load_color(snapshot.memory_percent, 60, 85)
        used_gb = snapshot.used_memory / 1024**3
        total_gb = snapshot.total_memory / 1024**3
        self.query_one("#mem-gauge", Static).update(
            f"\\[{usage_bar(snapshot.memory_percent, color)}] "
            f"{snapshot.memory_percent:.1f}% ({used_gb:.1f}GB / {total_gb:.1f}GB)"
        )
        self.query_one("#mem-history", Sparkline).data = snapshot.memory_series.history


class ProcessTable(Container):
    """Container for the process data table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._pids: list[int] = []
        self._header_order: SortOrder | None = None

    @property
    def pids(self) -> list[int]:
        """Pids in the order the table shows them."""
        table = self.query_one("#process-table", DataTable)
        return [int(table.get_row_at(index)[0]) for index in range(table.row_count)]

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table", cursor_type="row", zebra_stripes=True)

    def _set_columns(self, table: DataTable, sort_order: SortOrder) -> None:
        table.clear(columns=True)
        highlighted = SORT_COLUMNS[sort_order]
        for label, key, width in (
            ("PID", "pid", 8),
            ("Name", "name", None),
            ("CPU%", "cpu", 8),
            ("Memory", "memory", 10),
            ("Mem%", "mem_pct", 8),
        ):
            style = "bold yellow" if key == highlighted else ""
            table.add_column(Text(label, style=style), key=key, width=width)
        self._header_order = sort_order
        self._pids = []
        self.border_title = f"Processes (sorted by {sort_order.name.capitalize()})"

    def update_processes(
        self, processes: list[ProcessSample], sort_order: SortOrder, cursor: int
    ) -> None:
        """
        Bring the table in line with an already sorted process list.

        Uses update_cell for rows that survive, removes and adds only the pids
        that changed, then reorders rows in place so scrolling is kept.
        Columns are only rebuilt when the sort order changes.
        """
        table = self.query_one("#process-table", DataTable)
        if sort_order is not self._header_order:
            self._set_columns(table, sort_order)

        current = set(self._pids)
        new_pids = [proc.pid for proc in processes]

        for pid in current.difference(new_pids):
            table.remove_row(str(pid))

        for proc in processes:
            row_key = str(proc.pid)
            if proc.pid in current:
                self._update_row(table, row_key, proc)
            else:
                self._add_row(table, row_key, proc)

        if new_pids != self._pids:
            position = {str(pid): index for index, pid in enumerate(new_pids)}
            table.sort("pid", key=lambda pid: position[pid])
        self._pids = new_pids

        if processes:
            table.move_cursor(row=cursor, animate=False)

    def _update_row(self, table: DataTable, row_key: str, proc: ProcessSample) -> None:
        table.update_cell(row_key, "name", Text(proc.name))
        table.update_cell(row_key, "cpu", f"{proc.cpu_usage:.1f}")
        table.update_cell(row_key, "memory", format_memory(proc.memory_bytes))
        table.update_cell(row_key, "mem_pct", f"{proc.memory_percent:.2f}")

    def _add_row(self, table: DataTable, row_key: str, proc: ProcessSample) -> None:
        table.add_row(
            str(proc.pid),
            Text(proc.name),
            f"{proc.cpu_usage:.1f}",
            format_memory(proc.memory_bytes),
            f"{proc.memory_percent:.2f}",
            key=row_key,
        )


class ControlsBar(Static):
    """Key help, plus a marker when debug mode is on."""

    DEFAULT_CSS = """
    ControlsBar {
        height: auto;
        border: solid $primary;
        padding: 0 1;
    }
    """

    def __init__(self, debug: bool = False, *args, **kwargs) -> None:
        """Initialize ControlsBar."""
        text = CONTROLS
        if debug:
            text += "\n[bold red]DEBUG MODE ACTIVE[/bold red]"
        super().__init__(text, *args, **kwargs)
        self._text = text

    @property
    def text(self) -> str:
        return self._text


class SystopApp(App):
    """Main systop application."""

    TITLE = "systop"
    SUB_TITLE = "System Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #stats {
        height: auto;
    }
    """

    # Every key is routed through the controller's key map
    BINDINGS = [
        Binding("q", "command('q')", "Quit", priority=True),
        Binding("ctrl+c", "command('ctrl+c')", "Quit", show=False, priority=True),
        Binding("up", "command('up')", "Up", show=False, priority=True),
        Binding("k", "command('k')", "Up", show=False, priority=True),
        Binding("down", "command('down')", "Down", show=False, priority=True),
        Binding("j", "command('j')", "Down", show=False, priority=True),
        Binding("K", "command('K')", "Kill", priority=True),
        Binding("c", "command('c')", "Sort CPU", priority=True),
        Binding("m", "command('m')", "Sort Mem", priority=True),
        Binding("p", "command('p')", "Sort PID", priority=True),
        Binding("n", "command('n')", "Sort Name", priority=True),
    ]

    def __init__(
        self,
        settings: Settings | None = None,
        sampler: Sampler | None = None,
        terminator: Terminator | None = None,
        store: SnapshotStore | None = None,
        refresher: Refresher | None = None,
    ) -> None:
        """
        Initialize the SystopApp.

        Args:
            settings: Runtime settings. Defaults to Settings().
            sampler: System sampler. Defaults to PsutilSampler.
            terminator: Process killer. Defaults to PsutilTerminator.
            store: Pre-built store, when the caller already started a refresher on it.
            refresher: Refresher writing into `store`.
        """
        super().__init__()
        self._settings = settings or Settings()
        self._store = store or SnapshotStore(self._settings.history_capacity)
        self._refresher = refresher or Refresher(
            self._store,
            sampler or PsutilSampler(),
            interval=self._settings.refresh_interval,
        )
        self._controller = InteractionController(self._store, terminator or PsutilTerminator())
        self._rendered: tuple[int, SortOrder, int] | None = None
        self._snapshot: StoreSnapshot | None = None
        self._snapshot_order: SortOrder | None = None

    @property
    def controller(self) -> InteractionController:
        return self._controller

    @property
    def store(self) -> SnapshotStore:
        return self._store

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HostHeader(id="host-header")
        yield Horizontal(CpuPanel(id="cpu-panel"), MemoryPanel(id="memory-panel"), id="stats")
        yield ProcessTable(id="processes")
        yield ControlsBar(self._settings.debug, id="controls")

    def on_mount(self) -> None:
        """Start the refresher when the app is mounted."""
        self._refresher.start()
        # Poll the store on a short timer, independent of the refresh interval
        self.set_interval(self._settings.frame_interval, self._render_frame)
        self._render_frame()

    def on_unmount(self) -> None:
        self._refresher.stop()

    def _render_frame(self) -> None:
        """Pull a consistent snapshot from the store and redraw what changed."""
        snapshot = self._current_snapshot()
        self._controller.clamp(len(snapshot.processes))

        state = (snapshot.generation, self._controller.sort_order, self._controller.cursor)
        if state == self._rendered:
            return

        try:
            if self._rendered is None or snapshot.generation != self._rendered[0]:
                self.query_one(HostHeader).update_host(snapshot.host)
                self.query_one(CpuPanel).update_series(snapshot.cpu_series)
                self.query_one(MemoryPanel).update_memory(snapshot)
            self.query_one(ProcessTable).update_processes(
                snapshot.processes, self._controller.sort_order, self._controller.cursor
            )
        except NoMatches:
            return  # Widgets not mounted yet
        self._rendered = state

    def _current_snapshot(self) -> StoreSnapshot:
        """Sorted store snapshot, re-read only when a refresh landed or the order changed."""
        sort_order = self._controller.sort_order
        cached = self._snapshot
        if (
            cached is None
            or sort_order is not self._snapshot_order
            or cached.generation != self._store.generation
        ):
            self._snapshot = self._store.snapshot(sort_order)
            self._snapshot_order = sort_order
        return self._snapshot

    def on_data_table_row_highlighted(self, event: DataTable.RowHighlighted) -> None:
        """Follow cursor moves the table makes on its own (paging, mouse clicks)."""
        row = event.data_table.cursor_row
        if row != self._controller.cursor:
            self._controller.select(row)
            self._render_frame()

    def action_command(self, key: str) -> None:
        """Dispatch a key to the controller, then redraw."""
        self._controller.handle_key(key)
        if self._controller.should_quit:
            self.action_quit()
            return
        self._render_frame()

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._refresher.stop()
        self.exit()


def main(argv: list[str] | None = None) -> None:
    """Entry point for systop application."""
    settings = parse_args(argv)
    configure_logging(settings.debug)

    store = SnapshotStore(settings.history_capacity)
    try:
        refresher = Refresher(store, PsutilSampler(), interval=settings.refresh_interval)
        # Take the first sample before the terminal is taken over
        refresher.start()
    except SamplingError as exc:
        print(f"systop: cannot sample system: {exc}", file=sys.stderr)
        sys.exit(1)

    app = SystopApp(settings=settings, store=store, refresher=refresher)
    app.run()


if __name__ == "__main__":
    main()
