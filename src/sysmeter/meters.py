"""The six resource meters: CPU, memory, storage, network, swap and system load."""

import asyncio
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import psutil

from sysmeter.errors import ConfigurationError
from sysmeter.models import DirectoryEntry, ProcessEntry, SystemLoadRecord
from sysmeter.parsers import (
    CpuTimes,
    count_processors,
    parse_counter,
    parse_cpu_stat,
    parse_loadavg,
    parse_meminfo,
    parse_mounts,
)
from sysmeter.processes import (
    MemoryCalculation,
    ProcessStatistics,
    SwapStatistics,
    rank,
)
from sysmeter.readers import CounterReader
from sysmeter.subject import MeterSubject

logger = logging.getLogger(__name__)


class MeterKind(Enum):
    """Resources a meter can be created for."""

    CPU = "cpu"
    MEMORY = "memory"
    STORAGE = "storage"
    NETWORK = "network"
    SWAP = "swap"
    SYSTEM_LOAD = "system_load"


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


class CpuMeter(MeterSubject):
    """CPU usage from the jiffy counters of ``/proc/stat``, ranked by process CPU time."""

    def __init__(
        self,
        reader: CounterReader | None = None,
        processes: ProcessStatistics | None = None,
    ) -> None:
        super().__init__(reader or CounterReader())
        self._processes = processes or ProcessStatistics()
        # the first cycle compares against zero and reports usage since boot
        self._statistics = CpuTimes()

    async def load_data(self) -> CpuTimes:
        return parse_cpu_stat(await self._reader.read("/proc/stat"))

    async def calculate_usage(self) -> float:
        stat = await self.load_data()
        periods = stat.breakdown() - self._statistics.breakdown()
        self._statistics = stat

        if periods.total <= 0:
            return self._record_usage(0.0)
        return self._record_usage(periods.busy / periods.total * 100)

    async def get_processes(self) -> list[ProcessEntry]:
        return rank(await self._processes.real_times())


class MemoryMeter(MeterSubject):
    """
    RAM usage from ``/proc/meminfo``.

    Buffers and page cache count as free memory. Processes are ranked by
    resident size, or by virtual + resident + shared size when constructed
    with the ``all`` calculation method.
    """

    def __init__(
        self,
        calculation_method: str | MemoryCalculation,
        reader: CounterReader | None = None,
        processes: ProcessStatistics | None = None,
    ) -> None:
        try:
            self._calculation_method = MemoryCalculation(calculation_method)
        except ValueError as e:
            raise ConfigurationError(
                f"Unknown memory calculation method given: {calculation_method}"
            ) from e
        super().__init__(reader or CounterReader())
        self._processes = processes or ProcessStatistics()

    @property
    def calculation_method(self) -> MemoryCalculation:
        return self._calculation_method

    async def load_data(self) -> dict[str, int]:
        contents = await self._reader.read("/proc/meminfo")
        return parse_meminfo(contents, ("MemTotal", "MemFree", "Buffers", "Cached"))

    async def calculate_usage(self) -> float:
        stat = await self.load_data()
        if stat["memtotal"] == 0:
            return self._record_usage(0.0)
        used = stat["memtotal"] - stat["memfree"] - stat["buffers"] - stat["cached"]
        return self._record_usage(used / stat["memtotal"] * 100)

    async def get_processes(self) -> list[ProcessEntry]:
        return rank(await self._processes.memory(self._calculation_method))


# Real disk filesystems; everything else in the mount table is virtual
FS_TYPES_TO_MEASURE = frozenset(
    {
        "btrfs",
        "exfat",
        "ext2",
        "ext3",
        "ext4",
        "f2fs",
        "hfs",
        "jfs",
        "nilfs2",
        "ntfs",
        "reiser4",
        "reiserfs",
        "vfat",
        "xfs",
        "zfs",
    }
)


class StorageMeter(MeterSubject):
    """
    Root filesystem usage, with the mounted disks that have the most free space.

    Filesystem paths are resolved under the reader's root like every other
    counter path.
    """

    def __init__(
        self,
        reader: CounterReader | None = None,
        disk_usage: Callable[[str], Any] = psutil.disk_usage,
    ) -> None:
        """
        Initialize the StorageMeter.

        Args:
            reader: Counter reader used for the mount table.
            disk_usage: Filesystem statistics provider, psutil.disk_usage by
                default. Its ``free`` field must count the blocks available to
                unprivileged users.
        """
        super().__init__(reader or CounterReader())
        self._disk_usage = disk_usage

    async def _query(self, mount_point: str) -> Any:
        # statvfs blocks on slow or hung disks
        return await asyncio.to_thread(self._disk_usage, str(self._reader.resolve(mount_point)))

    async def load_data(self) -> float:
        usage = await self._query("/")
        if usage.total == 0:
            return 0.0
        # psutil reports free as available blocks, so this is (blocks - bavail) / blocks
        return (usage.total - usage.free) / usage.total * 100

    async def calculate_usage(self) -> float:
        return self._record_usage(await self.load_data())

    async def get_directories(self) -> list[DirectoryEntry]:
        mounts = [
            mount
            for mount in parse_mounts(await self._reader.read("/proc/mounts"))
            if mount.fs_type in FS_TYPES_TO_MEASURE
        ]
        usages = await asyncio.gather(*(self._query(mount.mount_point) for mount in mounts))
        directory_stats = [
            DirectoryEntry(name=mount.mount_point, free_size=usage.free)
            for mount, usage in zip(mounts, usages)
        ]
        return rank(directory_stats, "free_size")


@dataclass(slots=True, frozen=True)
class InterfaceCounters:
    """Cumulative byte counters of one network interface."""

    rx_bytes: int
    tx_bytes: int


@dataclass(slots=True, frozen=True)
class Bandwidth:
    """Highest per-cycle transfer seen on an interface, in bytes."""

    upload: int = 1
    download: int = 1


class NetworkMeter(MeterSubject):
    """
    Average utilization of the network interfaces that are up.

    Link capacity is not queried. Instead every interface gets a bandwidth
    ceiling equal to the highest transfer observed per cycle so far, and its
    usage is the current transfer relative to that ceiling. Ceilings never
    shrink during the lifetime of the meter.
    """

    NET_CLASS = "/sys/class/net"

    def __init__(self, reader: CounterReader | None = None) -> None:
        super().__init__(reader or CounterReader())
        self._statistics: dict[str, InterfaceCounters] = {}
        self._bandwidths: dict[str, Bandwidth] = {}

    @property
    def bandwidths(self) -> dict[str, Bandwidth]:
        """Get the learned bandwidth ceiling of each interface."""
        return dict(self._bandwidths)

    async def load_data(self) -> dict[str, InterfaceCounters]:
        devices = await self._reader.list(self.NET_CLASS)
        counters = await asyncio.gather(*(self._read_interface(device) for device in devices))
        return {device: counter for device, counter in zip(devices, counters) if counter is not None}

    async def _read_interface(self, device: str) -> InterfaceCounters | None:
        try:
            operstate = await self._reader.read(f"{self.NET_CLASS}/{device}/operstate")
        except NotADirectoryError:
            # plain files such as bonding_masters live next to the interfaces
            return None
        if operstate.strip() != "up":
            return None

        rx_bytes, tx_bytes = await asyncio.gather(
            self._read_counter(device, "rx_bytes"),
            self._read_counter(device, "tx_bytes"),
        )
        return InterfaceCounters(rx_bytes=rx_bytes, tx_bytes=tx_bytes)

    async def _read_counter(self, device: str, name: str) -> int:
        path = f"{self.NET_CLASS}/{device}/statistics/{name}"
        return parse_counter(await self._reader.read(path), path)

    async def calculate_usage(self) -> float:
        statistics = await self.load_data()

        usages = []
        for device, counters in statistics.items():
            previous = self._statistics.get(device, counters)
            # a counter that went backwards was reset, count it as idle
            upload = max(counters.tx_bytes - previous.tx_bytes, 0)
            download = max(counters.rx_bytes - previous.rx_bytes, 0)

            ceiling = self._bandwidths.get(device, Bandwidth())
            ceiling = Bandwidth(
                upload=max(upload, ceiling.upload),
                download=max(download, ceiling.download),
            )
            self._bandwidths[device] = ceiling

            rate = max(upload / ceiling.upload, download / ceiling.download)
            usages.append(_round_half_up(rate * 100))

        self._statistics = statistics

        total = len(usages) * 100 or 1
        usage = _round_half_up(sum(usages) / total * 100)
        logger.debug(f"Network usage {usage}% over {len(usages)} interfaces")
        return self._record_usage(usage)


class SwapMeter(MeterSubject):
    """Swap usage from ``/proc/meminfo``, ranked by per-process swap."""

    def __init__(
        self,
        reader: CounterReader | None = None,
        swap_statistics: SwapStatistics | None = None,
    ) -> None:
        super().__init__(reader or CounterReader())
        self._swap_statistics = swap_statistics or SwapStatistics(self._reader)

    async def load_data(self) -> dict[str, int]:
        contents = await self._reader.read("/proc/meminfo")
        return parse_meminfo(contents, ("SwapTotal", "SwapFree"))

    async def calculate_usage(self) -> float:
        stat = await self.load_data()
        if stat["swaptotal"] == 0:
            return self._record_usage(0.0)
        used = stat["swaptotal"] - stat["swapfree"]
        return self._record_usage(used / stat["swaptotal"] * 100)

    async def get_processes(self) -> list[ProcessEntry]:
        raw_statistics = await self._swap_statistics.per_process()
        process_stats = [
            ProcessEntry(identity=pid, metric=swap.vm_swap)
            for pid, swap in raw_statistics.items()
            if swap.vm_swap > 0
        ]
        return rank(process_stats)


class SystemLoadMeter(MeterSubject):
    """One-minute load average relative to the number of logical CPUs."""

    def __init__(self, reader: CounterReader | None = None) -> None:
        super().__init__(reader or CounterReader())
        self._number_of_cpu_cores: int | None = None

    async def cpu_core_count(self) -> int:
        """Count the logical CPUs once and reuse the result afterwards."""
        if self._number_of_cpu_cores is None:
            count = count_processors(await self._reader.read("/proc/cpuinfo"))
            if count == 0:
                logger.warning("No processor entries in /proc/cpuinfo, asking psutil instead")
            self._number_of_cpu_cores = count or psutil.cpu_count() or 1
        return self._number_of_cpu_cores

    async def calculate_usage(self) -> float:
        load = parse_loadavg(await self._reader.read("/proc/loadavg"))
        count = await self.cpu_core_count()
        return self._record_usage(min(load.one_minute / count * 100, 100.0))

    async def get_system_load(self) -> SystemLoadRecord:
        load = parse_loadavg(await self._reader.read("/proc/loadavg"))
        return SystemLoadRecord(
            running_tasks_count=load.running_tasks,
            tasks_count=load.total_tasks,
            load_average_1=load.one_minute,
            load_average_5=load.five_minutes,
            load_average_15=load.fifteen_minutes,
        )


def create_meter(
    kind: MeterKind,
    reader: CounterReader | None = None,
    memory_calculation: str | MemoryCalculation = MemoryCalculation.RAM_ONLY,
) -> MeterSubject:
    """Create the meter for ``kind``, owning ``reader``."""
    if kind is MeterKind.CPU:
        return CpuMeter(reader)
    if kind is MeterKind.MEMORY:
        return MemoryMeter(memory_calculation, reader)
    if kind is MeterKind.STORAGE:
        return StorageMeter(reader)
    if kind is MeterKind.NETWORK:
        return NetworkMeter(reader)
    if kind is MeterKind.SWAP:
        return SwapMeter(reader)
    return SystemLoadMeter(reader)
