"""Observer contract and the base class every meter derives from."""

import asyncio
import logging
from typing import Protocol

from sysmeter.errors import CycleError
from sysmeter.models import DirectoryEntry, ProcessEntry, Snapshot, SystemLoadRecord
from sysmeter.readers import CounterReader

logger = logging.getLogger(__name__)


class Observer(Protocol):
    """Anything that wants the snapshot of each successful cycle."""

    def update(self, snapshot: Snapshot) -> None: ...


class MeterSubject:
    """
    Base meter: observer registry plus the five sampling operations.

    Subclasses override the operations their resource supports; the defaults
    report zero usage, no processes, an all-zero system load and no
    directories. ``notify_all`` runs one sampling cycle and broadcasts the
    result. The external driver must not start a cycle before the previous
    one has finished, since a meter keeps one slot of previous-sample state.
    """

    def __init__(self, reader: CounterReader | None = None) -> None:
        """
        Initialize the MeterSubject.

        Args:
            reader: Counter reader owned by this meter, closed by destroy().
        """
        self.previous_usage: float = 0.0
        self.usage: float = 0.0
        self._reader = reader
        self._observers: list[Observer] = []
        self._usage_measured = asyncio.Event()
        self._usage_measured.set()

    @property
    def observers(self) -> tuple[Observer, ...]:
        """Get the registered observers in notification order."""
        return tuple(self._observers)

    def add_observer(self, observer: Observer) -> None:
        """Register an observer. Registering the same object twice has no effect."""
        if not any(registered is observer for registered in self._observers):
            self._observers.append(observer)

    def remove_observer(self, observer: Observer) -> None:
        """Unregister an observer. Unknown observers are ignored."""
        for index, registered in enumerate(self._observers):
            if registered is observer:
                del self._observers[index]
                return

    async def notify_all(self) -> Snapshot | None:
        """
        Run one sampling cycle and deliver its snapshot to every observer.

        Does nothing when no observer is registered. The five operations run
        concurrently; if any of them fails the others are cancelled, no
        observer is called and CycleError is raised.

        Returns:
            The delivered snapshot, or None when there was nobody to notify.
        """
        if not self._observers:
            return None

        self.previous_usage = self.usage
        self._usage_measured.clear()
        try:
            async with asyncio.TaskGroup() as group:
                percent = group.create_task(self._measure_usage())
                processes = group.create_task(self.get_processes())
                system_load = group.create_task(self.get_system_load())
                directories = group.create_task(self.get_directories())
                has_activity = group.create_task(self.has_activity())
        except ExceptionGroup as e:
            cause = e.exceptions[0]
            logger.warning(f"{type(self).__name__} cycle failed: {cause!r}")
            raise CycleError(f"{type(self).__name__} cycle failed: {cause}") from cause
        finally:
            self._usage_measured.set()

        snapshot = Snapshot(
            percent=percent.result(),
            processes=tuple(processes.result()),
            system_load=system_load.result(),
            directories=tuple(directories.result()),
            has_activity=has_activity.result(),
        )
        self._notify(snapshot)
        return snapshot

    def _notify(self, snapshot: Snapshot) -> None:
        # iterate over a copy so observers may unregister while being notified
        for observer in tuple(self._observers):
            observer.update(snapshot)

    async def _measure_usage(self) -> float:
        try:
            return await self.calculate_usage()
        finally:
            self._usage_measured.set()

    def _record_usage(self, value: float) -> float:
        """Clamp a usage percentage to [0, 100] and store it as the current usage."""
        self.usage = float(min(max(value, 0.0), 100.0))
        return self.usage

    async def calculate_usage(self) -> float:
        """Calculate the resource usage as a percentage."""
        return self._record_usage(0.0)

    async def get_processes(self) -> list[ProcessEntry]:
        """Return the top processes using the resource, in descending order."""
        return []

    async def get_system_load(self) -> SystemLoadRecord:
        """Return information about system load."""
        return SystemLoadRecord()

    async def get_directories(self) -> list[DirectoryEntry]:
        """Return the examined directories, most free space first."""
        return []

    async def has_activity(self) -> bool:
        """Tell whether usage grew since the previous cycle."""
        await self._usage_measured.wait()
        return self.previous_usage < self.usage

    def destroy(self) -> None:
        """Release the counter reader owned by this meter."""
        if self._reader is not None:
            self._reader.close()
