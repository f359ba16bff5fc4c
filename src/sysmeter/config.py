"""Settings for the sysmeter application."""

import argparse
from collections.abc import Sequence
from dataclasses import dataclass, field

from sysmeter.errors import ConfigurationError
from sysmeter.meters import MeterKind
from sysmeter.processes import MemoryCalculation

MIN_REFRESH_INTERVAL = 0.1
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(slots=True, frozen=True)
class MonitorSettings:
    """
    Which resources to watch and how.

    Invalid values raise ConfigurationError when the settings are built, so
    a bad option is reported before any meter exists.
    """

    refresh_interval: float = 2.0  # Seconds between cycles
    meters: tuple[MeterKind, ...] = field(default_factory=lambda: tuple(MeterKind))
    memory_calculation: MemoryCalculation = MemoryCalculation.RAM_ONLY
    root: str = "/"  # Where /proc and /sys are read from
    log_level: str = "INFO"
    log_file: str | None = None

    def __post_init__(self) -> None:
        if self.refresh_interval < MIN_REFRESH_INTERVAL:
            raise ConfigurationError(
                f"Refresh interval must be at least {MIN_REFRESH_INTERVAL}s, got {self.refresh_interval}"
            )
        if not self.meters:
            raise ConfigurationError("At least one meter must be enabled")
        if len(set(self.meters)) != len(self.meters):
            raise ConfigurationError(f"Meters listed more than once: {[m.value for m in self.meters]}")
        if not isinstance(self.memory_calculation, MemoryCalculation):
            try:
                # frozen dataclass, so bypass __setattr__ to normalize the value
                object.__setattr__(self, "memory_calculation", MemoryCalculation(self.memory_calculation))
            except ValueError as e:
                raise ConfigurationError(
                    f"Unknown memory calculation method given: {self.memory_calculation}"
                ) from e
        if self.log_level.upper() not in LOG_LEVELS:
            raise ConfigurationError(f"Unknown log level: {self.log_level}")


def _meter_list(value: str) -> tuple[MeterKind, ...]:
    try:
        return tuple(MeterKind(name.strip()) for name in value.split(",") if name.strip())
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_parser() -> argparse.ArgumentParser:
    """Create the command line parser."""
    parser = argparse.ArgumentParser(
        prog="sysmeter",
        description="Show CPU, memory, storage, network, swap and load usage.",
    )
    parser.add_argument(
        "-i",
        "--interval",
        type=float,
        default=2.0,
        help="seconds between refreshes (default: 2.0)",
    )
    parser.add_argument(
        "-m",
        "--meters",
        type=_meter_list,
        default=tuple(MeterKind),
        help="comma separated meters to show: " + ", ".join(kind.value for kind in MeterKind),
    )
    parser.add_argument(
        "--memory-calculation",
        choices=[method.value for method in MemoryCalculation],
        default=MemoryCalculation.RAM_ONLY.value,
        help="rank processes by resident memory only, or by all mapped memory",
    )
    parser.add_argument("--root", default="/", help=argparse.SUPPRESS)
    parser.add_argument("--log-level", default="INFO", choices=LOG_LEVELS)
    parser.add_argument("--log-file", default=None, help="also write logs to this file")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> MonitorSettings:
    """Build MonitorSettings from command line arguments."""
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return MonitorSettings(
            refresh_interval=args.interval,
            meters=args.meters,
            memory_calculation=args.memory_calculation,
            root=args.root,
            log_level=args.log_level,
            log_file=args.log_file,
        )
    except ConfigurationError as e:
        parser.error(str(e))
