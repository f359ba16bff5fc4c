"""Periodic driver that runs the sampling cycle of every configured meter."""

import asyncio
import logging
from collections.abc import Callable

from sysmeter.config import MonitorSettings
from sysmeter.errors import CycleError
from sysmeter.meters import MeterKind, create_meter
from sysmeter.readers import CounterReader
from sysmeter.subject import MeterSubject, Observer

logger = logging.getLogger(__name__)


class ResourceMonitor:
    """
    Owns one meter per configured resource and runs their cycles.

    The monitor does not keep time itself; the host calls run_cycle() on its
    own schedule. A call made while the previous cycle is still in flight is
    skipped, so a meter never runs two cycles at once. A failed cycle of one
    meter is logged and does not affect the others.
    """

    def __init__(
        self,
        settings: MonitorSettings,
        reader_factory: Callable[[str], CounterReader] = CounterReader,
    ) -> None:
        """
        Initialize the ResourceMonitor.

        Args:
            settings: Which meters to create and how.
            reader_factory: Builds the counter reader each meter owns, given
                the settings' root directory.
        """
        self._settings = settings
        self._meters: dict[MeterKind, MeterSubject] = {}
        self._in_flight = False
        self._closed = False
        self._cycles = 0
        self._failures = 0
        for kind in settings.meters:
            self._meters[kind] = create_meter(
                kind,
                reader_factory(settings.root),
                memory_calculation=settings.memory_calculation,
            )
        logger.debug(f"Monitor created with meters {[kind.value for kind in self._meters]}")

    @property
    def settings(self) -> MonitorSettings:
        """Get the settings the monitor was built from."""
        return self._settings

    @property
    def kinds(self) -> tuple[MeterKind, ...]:
        """Get the monitored resources in display order."""
        return tuple(self._meters)

    @property
    def is_running_cycle(self) -> bool:
        """Check if a cycle is in flight."""
        return self._in_flight

    @property
    def closed(self) -> bool:
        """Check if the monitor has been closed."""
        return self._closed

    @property
    def cycle_count(self) -> int:
        """Get the number of cycles run so far."""
        return self._cycles

    @property
    def failure_count(self) -> int:
        """Get the number of failed meter cycles so far."""
        return self._failures

    def meter(self, kind: MeterKind) -> MeterSubject:
        """Get the meter for ``kind``."""
        return self._meters[kind]

    def add_observer(self, kind: MeterKind, observer: Observer) -> None:
        """Register ``observer`` with the meter for ``kind``."""
        self._meters[kind].add_observer(observer)

    def remove_observer(self, kind: MeterKind, observer: Observer) -> None:
        """Unregister ``observer`` from the meter for ``kind``."""
        self._meters[kind].remove_observer(observer)

    async def run_cycle(self) -> bool:
        """
        Run one cycle on every meter concurrently.

        Returns:
            False if the call was skipped because a cycle was still running
            or the monitor was closed.
        """
        if self._closed:
            logger.debug("Monitor is closed, skipping cycle")
            return False
        if self._in_flight:
            logger.debug("Previous cycle still running, skipping this one")
            return False

        self._in_flight = True
        try:
            results = await asyncio.gather(
                *(meter.notify_all() for meter in self._meters.values()),
                return_exceptions=True,
            )
        finally:
            self._in_flight = False

        if self._closed:
            # readers were closed under the running cycle
            logger.debug("Monitor closed during the cycle, ignoring its failures")
            return True

        self._cycles += 1
        for kind, result in zip(self._meters, results):
            if isinstance(result, CycleError):
                self._failures += 1
                logger.warning(f"No {kind.value} snapshot this cycle: {result.__cause__!r}")
            elif isinstance(result, BaseException):
                self._failures += 1
                logger.error(f"Unexpected error in {kind.value} cycle", exc_info=result)
        return True

    def close(self) -> None:
        """Destroy every meter, releasing their counter readers. Later cycles are skipped."""
        self._closed = True
        for meter in self._meters.values():
            meter.destroy()
        logger.debug("Monitor closed")
