"""Shared fixtures: a fake /proc and /sys tree plus spy collaborators."""

from pathlib import Path

import pytest

from sysmeter.models import ProcessEntry, Snapshot
from sysmeter.processes import MemoryCalculation
from sysmeter.readers import CounterReader

MEMINFO = """\
MemTotal:       16000000 kB
MemFree:         4000000 kB
MemAvailable:    9000000 kB
Buffers:         1000000 kB
Cached:          3000000 kB
SwapCached:            0 kB
Active:          5000000 kB
SwapTotal:       2000000 kB
SwapFree:        1500000 kB
"""

CPUINFO = "".join(
    f"processor\t: {index}\nmodel name\t: Fake CPU\ncpu MHz\t\t: 2400.000\n\n" for index in range(4)
)


class FakeProc:
    """Writes kernel counter files under a temporary root directory."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def write(self, path: str, content: str) -> None:
        target = self.root / path.lstrip("/")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)

    def write_bytes(self, path: str, content: bytes) -> None:
        target = self.root / path.lstrip("/")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)

    def remove(self, path: str) -> None:
        (self.root / path.lstrip("/")).unlink()

    def set_cpu_stat(self, *columns: int) -> None:
        self.write("/proc/stat", "cpu  " + " ".join(map(str, columns)) + "\ncpu0 1 2 3 4\nintr 12345\n")

    def add_interface(self, name: str, operstate: str = "up", rx: int = 0, tx: int = 0) -> None:
        self.write(f"/sys/class/net/{name}/operstate", operstate + "\n")
        self.set_interface_bytes(name, rx, tx)

    def set_interface_bytes(self, name: str, rx: int, tx: int) -> None:
        self.write(f"/sys/class/net/{name}/statistics/rx_bytes", f"{rx}\n")
        self.write(f"/sys/class/net/{name}/statistics/tx_bytes", f"{tx}\n")

    def add_process_status(self, pid: int, vm_swap: int | None) -> None:
        lines = [f"Name:\tproc{pid}", f"Pid:\t{pid}", "VmRSS:\t    1024 kB"]
        if vm_swap is not None:
            lines.append(f"VmSwap:\t{vm_swap:8d} kB")
        self.write(f"/proc/{pid}/status", "\n".join(lines) + "\n")

    def reader(self) -> CounterReader:
        return CounterReader(self.root)


@pytest.fixture
def fake_proc(tmp_path: Path) -> FakeProc:
    """A fake counter tree with meminfo, cpuinfo and loadavg already present."""
    proc = FakeProc(tmp_path)
    proc.write("/proc/meminfo", MEMINFO)
    proc.write("/proc/cpuinfo", CPUINFO)
    proc.write("/proc/loadavg", "2.00 1.00 0.50 3/345 1234\n")
    proc.write("/proc/mounts", "")
    (tmp_path / "sys/class/net").mkdir(parents=True)
    return proc


class SpyObserver:
    """Observer that records every snapshot it receives."""

    def __init__(self, log: list | None = None) -> None:
        self.received: list[Snapshot] = []
        self._log = log

    def update(self, snapshot: Snapshot) -> None:
        self.received.append(snapshot)
        if self._log is not None:
            self._log.append(self)


class FakeProcessStatistics:
    """Stands in for the psutil-backed process scanner."""

    def __init__(self, entries: list[ProcessEntry]) -> None:
        self.entries = entries
        self.memory_methods: list[MemoryCalculation] = []
        self.calls = 0

    async def real_times(self) -> list[ProcessEntry]:
        self.calls += 1
        return list(self.entries)

    async def memory(self, method: MemoryCalculation) -> list[ProcessEntry]:
        self.calls += 1
        self.memory_methods.append(method)
        return list(self.entries)
