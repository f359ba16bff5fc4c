"""sysmeter - Main Textual application."""

import logging
from collections.abc import Sequence

from rich.text import Text
from textual.app import App, ComposeResult
from textual.timer import Timer
from textual.widget import Widget
from textual.widgets import Footer

from sysmeter.config import MonitorSettings, parse_args
from sysmeter.log import setup_logging
from sysmeter.meters import MeterKind
from sysmeter.models import ProcessEntry, Snapshot
from sysmeter.monitor import ResourceMonitor

logger = logging.getLogger(__name__)

BAR_WIDTH = 20

TITLES = {
    MeterKind.CPU: "CPU",
    MeterKind.MEMORY: "Memory",
    MeterKind.STORAGE: "Storage",
    MeterKind.NETWORK: "Network",
    MeterKind.SWAP: "Swap",
    MeterKind.SYSTEM_LOAD: "Load",
}


def format_bytes(size: float) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:5.1f}{unit}" if unit != "B" else f"{int(size):5d}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def format_metric(kind: MeterKind, metric: float) -> str:
    """Format a process metric in the unit the meter of ``kind`` ranks by."""
    if kind is MeterKind.CPU:
        return f"{metric:8.1f}s"
    if kind is MeterKind.SWAP:
        return format_bytes(metric * 1024)  # VmSwap is in kB
    return format_bytes(metric)


def format_bar(percent: float) -> str:
    """Draw a fixed width usage bar."""
    bar_len = min(int(percent / (100 / BAR_WIDTH)), BAR_WIDTH)
    return "█" * bar_len + "░" * (BAR_WIDTH - bar_len)


def format_snapshot(kind: MeterKind, snapshot: Snapshot) -> str:
    """Render the text shown by a meter panel."""
    activity = " ▲" if snapshot.has_activity else ""
    lines = [f"{TITLES[kind]:<8} {format_bar(snapshot.percent)} {snapshot.percent:5.1f}%{activity}"]

    for process in snapshot.processes:
        lines.append(_format_process(kind, process))

    for directory in snapshot.directories:
        lines.append(f"  {_printable(directory.name):<30} {format_bytes(directory.free_size)} free")

    if kind is MeterKind.SYSTEM_LOAD:
        load = snapshot.system_load
        lines.append(
            f"  Tasks: {load.running_tasks_count} running, {load.tasks_count} total"
        )
        lines.append(
            f"  Load average: {load.load_average_1:.2f} {load.load_average_5:.2f} "
            f"{load.load_average_15:.2f}"
        )
    return "\n".join(lines)


def _format_process(kind: MeterKind, process: ProcessEntry) -> str:
    return f"  {str(process.identity):<10} {format_metric(kind, process.metric)}"


def _printable(name: str) -> str:
    # undecodable bytes read from the kernel are kept as surrogates
    return name.encode(errors="surrogateescape").decode(errors="replace")


class MeterPanel(Widget):
    """Panel showing the latest snapshot of one meter. Registered as its observer."""

    DEFAULT_CSS = """
    MeterPanel {
        height: auto;
        min-height: 3;
        padding: 0 1;
        border: solid $primary;
    }
    """

    def __init__(self, kind: MeterKind, *args, **kwargs) -> None:
        """Initialize MeterPanel."""
        super().__init__(*args, **kwargs)
        self._meter_kind = kind
        self._latest: Snapshot | None = None

    @property
    def kind(self) -> MeterKind:
        """Get the resource this panel shows."""
        return self._meter_kind

    @property
    def snapshot(self) -> Snapshot | None:
        """Get the last snapshot received."""
        return self._latest

    def update(self, snapshot: Snapshot) -> None:
        """Receive the snapshot of a finished cycle."""
        self._latest = snapshot
        self.refresh(layout=True)

    def render(self) -> Text:
        """Render the panel."""
        if self._latest is None:
            return Text(f"Loading {TITLES[self._meter_kind]} info...")
        return Text(format_snapshot(self._meter_kind, self._latest))


class SysmeterApp(App):
    """Main sysmeter application."""

    TITLE = "sysmeter"
    SUB_TITLE = "Resource Meters"

    CSS = """
    Screen {
        layout: vertical;
        overflow-y: auto;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "refresh", "Refresh"),
    ]

    def __init__(self, settings: MonitorSettings | None = None) -> None:
        """Initialize the SysmeterApp."""
        super().__init__()
        self._settings = settings or MonitorSettings()
        self._monitor = ResourceMonitor(self._settings)
        self._timer: Timer | None = None

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        for kind in self._monitor.kinds:
            yield MeterPanel(kind, id=f"meter-{kind.value}")
        yield Footer()

    def on_mount(self) -> None:
        """Register the panels and start refreshing them."""
        for panel in self.query(MeterPanel):
            self._monitor.add_observer(panel.kind, panel)
        self.call_later(self._run_cycle)
        self._timer = self.set_interval(self._settings.refresh_interval, self._run_cycle)

    def on_unmount(self) -> None:
        """Stop sampling and release the meters, however the app is exited."""
        if self._timer is not None:
            self._timer.stop()
        self._monitor.close()

    async def _run_cycle(self) -> None:
        """Sample every meter once; the panels are updated as observers."""
        try:
            await self._monitor.run_cycle()
        except Exception:
            # the app must keep running when sampling breaks
            logger.error("Sampling cycle failed", exc_info=True)

    async def action_refresh(self) -> None:
        """Handle refresh action - sample immediately."""
        await self._run_cycle()


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for the sysmeter application."""
    settings = parse_args(argv)
    setup_logging(settings.log_level, settings.log_file)
    app = SysmeterApp(settings)
    app.run()


if __name__ == "__main__":
    main()
