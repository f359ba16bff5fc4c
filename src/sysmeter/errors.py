"""Exceptions raised by sysmeter meters."""


class MeterError(Exception):
    """Base class for every error raised by a meter."""


class ConfigurationError(MeterError, ValueError):
    """An option passed at construction time is not one of the accepted values."""


class CounterParseError(MeterError):
    """Counter text does not have the layout the kernel normally exposes."""

    def __init__(self, counter: str, detail: str) -> None:
        super().__init__(f"{counter}: {detail}")
        self.counter = counter


class CycleError(MeterError):
    """A sampling cycle failed and no snapshot was delivered."""
