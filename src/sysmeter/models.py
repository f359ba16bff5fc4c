"""Data models for sysmeter."""

from dataclasses import dataclass, field


@dataclass(slots=True, frozen=True)
class ProcessEntry:
    """A process ranked by the resource a meter measures."""

    identity: int | str  # pid or command path
    metric: float  # CPU seconds, bytes or kB depending on the meter


@dataclass(slots=True, frozen=True)
class DirectoryEntry:
    """A mounted filesystem and the space still available on it."""

    name: str
    free_size: int  # Bytes


@dataclass(slots=True, frozen=True)
class SystemLoadRecord:
    """Task counts and load averages as reported by the kernel."""

    running_tasks_count: int = 0
    tasks_count: int = 0
    load_average_1: float = 0.0
    load_average_5: float = 0.0
    load_average_15: float = 0.0


@dataclass(slots=True, frozen=True)
class Snapshot:
    """Immutable result of one sampling cycle, delivered to every observer."""

    percent: float  # 0.0 - 100.0
    processes: tuple[ProcessEntry, ...] = ()
    system_load: SystemLoadRecord = field(default_factory=SystemLoadRecord)
    directories: tuple[DirectoryEntry, ...] = ()
    has_activity: bool = False
