"""Parsers for the kernel counter files read by the meters.

Every function here takes the raw text of one counter file and returns a
typed record. They raise CounterParseError when the text does not contain
what the kernel normally exposes, so a changed or missing interface fails the
cycle instead of producing a zeroed snapshot.
"""

import re
from dataclasses import dataclass, fields

from sysmeter.errors import CounterParseError

_CPU_LINE = re.compile(r"^cpu\s+(.*)$", re.MULTILINE)
_MOUNT_LINE = re.compile(r"^(\S+)\s+(\S+)\s+(\S+)")
_PROCESSOR_LINE = re.compile(r"^processor\b", re.MULTILINE)
_TASKS = re.compile(r"^(\d+)/(\d+)$")
_OCTAL_ESCAPE = re.compile(r"\\([0-7]{3})")


@dataclass(slots=True, frozen=True)
class CpuBreakdown:
    """Aggregated CPU time groups derived from the raw jiffy columns."""

    user: int = 0
    nice: int = 0
    virtall: int = 0
    systemall: int = 0
    idleall: int = 0
    guest: int = 0
    steal: int = 0
    total: int = 0

    def __sub__(self, other: "CpuBreakdown") -> "CpuBreakdown":
        return CpuBreakdown(
            *(getattr(self, f.name) - getattr(other, f.name) for f in fields(self))
        )

    @property
    def busy(self) -> int:
        return self.user + self.nice + self.systemall + self.steal + self.guest


@dataclass(slots=True, frozen=True)
class CpuTimes:
    """The aggregate ``cpu`` line of ``/proc/stat``, in jiffies."""

    user: int = 0
    nice: int = 0
    system: int = 0
    idle: int = 0
    iowait: int = 0
    irq: int = 0
    softirq: int = 0
    steal: int = 0
    guest: int = 0
    guest_nice: int = 0

    def breakdown(self) -> CpuBreakdown:
        """Group the raw columns the way top and htop account CPU time."""
        # guest time is already included in user time
        user = self.user - self.guest
        nice = self.nice - self.guest_nice
        virtall = self.guest + self.guest_nice
        systemall = self.system + self.irq + self.softirq
        idleall = self.idle + self.iowait
        return CpuBreakdown(
            user=user,
            nice=nice,
            virtall=virtall,
            systemall=systemall,
            idleall=idleall,
            guest=self.guest,
            steal=self.steal,
            total=user + nice + systemall + idleall + self.steal + virtall,
        )


@dataclass(slots=True, frozen=True)
class MountEntry:
    """One line of the kernel mount table."""

    device: str
    mount_point: str
    fs_type: str


@dataclass(slots=True, frozen=True)
class LoadAverage:
    """Content of ``/proc/loadavg``."""

    one_minute: float
    five_minutes: float
    fifteen_minutes: float
    running_tasks: int
    total_tasks: int


def parse_cpu_stat(text: str) -> CpuTimes:
    """
    Parse the aggregate CPU line of ``/proc/stat``.

    Kernels older than 2.6.33 expose fewer than ten columns; the missing
    trailing columns read as zero.
    """
    match = _CPU_LINE.search(text)
    if match is None:
        raise CounterParseError("/proc/stat", "no aggregate cpu line")

    try:
        values = [int(value) for value in match.group(1).split()]
    except ValueError as e:
        raise CounterParseError("/proc/stat", f"non-integer cpu column: {e}") from e

    columns = [f.name for f in fields(CpuTimes)]
    return CpuTimes(**dict(zip(columns, values)))


def parse_meminfo(text: str, labels: tuple[str, ...]) -> dict[str, int]:
    """Return the values (in kB) of the requested ``/proc/meminfo`` labels, lowercased."""
    values: dict[str, int] = {}
    for label in labels:
        match = re.search(rf"^{re.escape(label)}:?\s*(\d+)", text, re.IGNORECASE | re.MULTILINE)
        if match is None:
            raise CounterParseError("/proc/meminfo", f"missing {label} field")
        values[label.lower()] = int(match.group(1))
    return values


def parse_mounts(text: str) -> list[MountEntry]:
    """Parse the mount table, skipping blank or malformed lines."""
    entries = []
    for line in text.splitlines():
        match = _MOUNT_LINE.match(line)
        if match is None:
            continue
        device, mount_point, fs_type = match.groups()
        entries.append(MountEntry(device, _unescape(mount_point), fs_type))
    return entries


def parse_loadavg(text: str) -> LoadAverage:
    """Parse ``/proc/loadavg``, e.g. ``0.52 0.58 0.59 3/1234 5678``."""
    parts = text.split()
    if len(parts) < 4:
        raise CounterParseError("/proc/loadavg", f"unexpected content {text!r}")

    tasks = _TASKS.match(parts[3])
    if tasks is None:
        raise CounterParseError("/proc/loadavg", f"unexpected task counts {parts[3]!r}")

    try:
        one, five, fifteen = (float(value) for value in parts[:3])
    except ValueError as e:
        raise CounterParseError("/proc/loadavg", str(e)) from e

    return LoadAverage(
        one_minute=one,
        five_minutes=five,
        fifteen_minutes=fifteen,
        running_tasks=int(tasks.group(1)),
        total_tasks=int(tasks.group(2)),
    )


def count_processors(text: str) -> int:
    """Count the logical processors listed in ``/proc/cpuinfo``."""
    return len(_PROCESSOR_LINE.findall(text))


def parse_counter(text: str, counter: str = "counter") -> int:
    """Parse a file holding a single integer, like ``statistics/rx_bytes``."""
    try:
        return int(text.strip())
    except ValueError as e:
        raise CounterParseError(counter, f"not an integer: {text!r}") from e


def parse_swap_status(text: str) -> int | None:
    """Return the ``VmSwap`` value (kB) of a ``/proc/<pid>/status`` file, if any."""
    match = re.search(r"^VmSwap:\s*(\d+)", text, re.MULTILINE)
    return int(match.group(1)) if match else None


def _unescape(mount_point: str) -> str:
    # the mount table escapes spaces, tabs and backslashes as octal
    return _OCTAL_ESCAPE.sub(lambda m: chr(int(m.group(1), 8)), mount_point)
