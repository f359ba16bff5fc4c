"""Tests for the reader, the ranking helper and the process statistics providers."""

import os

import pytest

from sysmeter.models import DirectoryEntry, ProcessEntry
from sysmeter.processes import (
    MemoryCalculation,
    ProcessStatistics,
    ProcessSwap,
    SwapStatistics,
    rank,
)
from sysmeter.readers import CounterReader


class TestCounterReader:
    """Tests for CounterReader."""

    @pytest.mark.asyncio
    async def test_read_resolves_under_root(self, fake_proc):
        """Test absolute kernel paths are read from the reader's root."""
        reader = fake_proc.reader()

        contents = await reader.read("/proc/loadavg")

        assert contents.startswith("2.00 1.00 0.50")

    @pytest.mark.asyncio
    async def test_list_returns_sorted_names(self, fake_proc):
        """Test directory listings are sorted."""
        fake_proc.add_interface("wlan0")
        fake_proc.add_interface("eth0")
        fake_proc.add_interface("lo", operstate="unknown")

        names = await fake_proc.reader().list("/sys/class/net")

        assert names == ["eth0", "lo", "wlan0"]

    @pytest.mark.asyncio
    async def test_missing_counter_raises_os_error(self, fake_proc):
        """Test an unreadable counter surfaces as FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            await fake_proc.reader().read("/proc/does-not-exist")

    @pytest.mark.asyncio
    async def test_closed_reader_refuses_reads(self, fake_proc):
        """Test a closed reader cannot be used anymore."""
        reader = fake_proc.reader()
        reader.close()

        assert reader.closed
        with pytest.raises(RuntimeError, match="closed"):
            await reader.read("/proc/loadavg")

    def test_default_root(self):
        """Test the reader reads the real filesystem by default."""
        reader = CounterReader()

        assert reader.resolve("/proc/stat") == reader.root / "proc/stat"
        assert str(reader.resolve("/proc/stat")) == "/proc/stat"


class TestRank:
    """Tests for the top-N ranking helper."""

    def test_sorts_descending_and_truncates(self):
        """Test the three greatest entries are kept, largest first."""
        entries = [ProcessEntry(pid, metric) for pid, metric in [(1, 5), (2, 50), (3, 1), (4, 20), (5, 30)]]

        ranked = rank(entries)

        assert [entry.identity for entry in ranked] == [2, 5, 4]

    def test_ties_keep_enumeration_order(self):
        """Test equal metrics keep their original order."""
        entries = [ProcessEntry(pid, 7) for pid in (10, 11, 12, 13)]

        assert [entry.identity for entry in rank(entries)] == [10, 11, 12]

    def test_custom_metric_and_count(self):
        """Test ranking by another field and a different count."""
        entries = [DirectoryEntry("/", 10), DirectoryEntry("/home", 30)]

        assert rank(entries, "free_size", 1) == [DirectoryEntry("/home", 30)]

    def test_short_input(self):
        """Test fewer entries than the count are all returned."""
        assert rank([]) == []
        assert rank([ProcessEntry(1, 1)]) == [ProcessEntry(1, 1)]


class TestSwapStatistics:
    """Tests for SwapStatistics."""

    @pytest.mark.asyncio
    async def test_reads_every_process_status(self, fake_proc):
        """Test swap usage is collected for every pid directory."""
        fake_proc.add_process_status(1, 0)
        fake_proc.add_process_status(42, 512)
        fake_proc.add_process_status(77, None)  # kernel thread

        statistics = await SwapStatistics(fake_proc.reader()).per_process()

        assert statistics == {1: ProcessSwap(0), 42: ProcessSwap(512)}

    @pytest.mark.asyncio
    async def test_skips_processes_that_exited(self, fake_proc):
        """Test a pid directory without status file is skipped."""
        fake_proc.add_process_status(5, 64)
        (fake_proc.root / "proc" / "6").mkdir()

        statistics = await SwapStatistics(fake_proc.reader()).per_process()

        assert statistics == {5: ProcessSwap(64)}


class TestProcessStatistics:
    """Tests for the psutil-backed ProcessStatistics (real system)."""

    @pytest.mark.asyncio
    async def test_real_times_include_current_process(self):
        """Test every running process gets a CPU time entry."""
        entries = await ProcessStatistics().real_times()

        assert len(entries) > 0
        own = [entry for entry in entries if entry.identity == os.getpid()]
        assert len(own) == 1
        assert own[0].metric >= 0.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", list(MemoryCalculation))
    async def test_memory_entries(self, method):
        """Test memory entries are produced for both calculation methods."""
        entries = await ProcessStatistics().memory(method)

        own = [entry for entry in entries if entry.identity == os.getpid()]
        assert len(own) == 1
        assert own[0].metric > 0
