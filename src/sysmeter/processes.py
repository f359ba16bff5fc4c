"""Per-process statistics and top-N ranking used by the meters."""

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from operator import attrgetter
from typing import Any, TypeVar

import psutil

from sysmeter.models import ProcessEntry
from sysmeter.parsers import parse_swap_status
from sysmeter.readers import CounterReader

logger = logging.getLogger(__name__)

TOP_COUNT = 3

T = TypeVar("T")


class MemoryCalculation(Enum):
    """How the memory meter sizes a process."""

    RAM_ONLY = "ram_only"
    ALL = "all"


@dataclass(slots=True, frozen=True)
class ProcessSwap:
    """Swap usage of a single process."""

    vm_swap: int  # kB


def rank(entries: Iterable[T], metric: str = "metric", count: int = TOP_COUNT) -> list[T]:
    """
    Return the ``count`` entries with the greatest ``metric``, descending.

    Entries with equal metrics keep their original order.
    """
    return sorted(entries, key=attrgetter(metric), reverse=True)[:count]


def _real_time(info: dict[str, Any]) -> float:
    times = info.get("cpu_times")
    return times.user + times.system if times else 0.0


def _resident_size(info: dict[str, Any]) -> float:
    mem_info = info.get("memory_info")
    return mem_info.rss if mem_info else 0


def _total_size(info: dict[str, Any]) -> float:
    mem_info = info.get("memory_info")
    if not mem_info:
        return 0
    return mem_info.vms + mem_info.rss + getattr(mem_info, "shared", 0)


class ProcessStatistics:
    """
    Collects one metric per running process using psutil.

    Handles NoSuchProcess, AccessDenied and ZombieProcess errors by skipping
    the affected process, since processes can exit at any time during a scan.
    """

    async def real_times(self) -> list[ProcessEntry]:
        """Return the CPU time (user + system seconds) consumed by each process."""
        return await asyncio.to_thread(self._collect, ["pid", "cpu_times"], _real_time)

    async def memory(self, method: MemoryCalculation) -> list[ProcessEntry]:
        """Return the memory footprint (bytes) of each process."""
        metric = _resident_size if method is MemoryCalculation.RAM_ONLY else _total_size
        return await asyncio.to_thread(self._collect, ["pid", "memory_info"], metric)

    def _collect(
        self, attrs: list[str], metric: Callable[[dict[str, Any]], float]
    ) -> list[ProcessEntry]:
        entries: list[ProcessEntry] = []
        for proc in psutil.process_iter(attrs=attrs):
            try:
                info = proc.info
                entries.append(ProcessEntry(identity=info["pid"], metric=metric(info)))
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue
        return entries


class SwapStatistics:
    """Reads the swap usage of every process from ``/proc/<pid>/status``."""

    def __init__(self, reader: CounterReader) -> None:
        self._reader = reader

    async def per_process(self) -> dict[int, ProcessSwap]:
        """Map each pid reporting a ``VmSwap`` line to its swap usage."""
        pids = [int(name) for name in await self._reader.list("/proc") if name.isdigit()]
        results = await asyncio.gather(*(self._read_swap(pid) for pid in pids))
        return {pid: ProcessSwap(vm_swap) for pid, vm_swap in zip(pids, results) if vm_swap is not None}

    async def _read_swap(self, pid: int) -> int | None:
        try:
            status = await self._reader.read(f"/proc/{pid}/status")
        except (FileNotFoundError, ProcessLookupError, PermissionError):
            # process exited between listing and reading
            return None
        return parse_swap_status(status)
