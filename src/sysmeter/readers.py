"""Asynchronous access to kernel-exposed counter files."""

import asyncio
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


class CounterReader:
    """
    Reads counter files such as ``/proc/stat`` or ``/sys/class/net``.

    Absolute paths are resolved under ``root``, so a reader built with a
    temporary directory serves a fake ``/proc`` and ``/sys`` tree. Blocking
    file access runs in worker threads, which lets independent reads started
    from the same event loop proceed concurrently.
    """

    def __init__(self, root: str | Path = "/") -> None:
        """
        Initialize the CounterReader.

        Args:
            root: Directory that absolute counter paths are resolved against.
        """
        self._root = Path(root)
        self._closed = False

    @property
    def root(self) -> Path:
        """Get the directory counter paths are resolved against."""
        return self._root

    @property
    def closed(self) -> bool:
        """Check if the reader has been closed."""
        return self._closed

    def resolve(self, path: str | Path) -> Path:
        """Map a kernel path onto the reader's root directory."""
        path = Path(path)
        if path.is_absolute():
            path = path.relative_to(path.anchor)
        return self._root / path

    async def read(self, path: str | Path) -> str:
        """
        Return the text content of the counter at ``path``.

        Process names and mount points are arbitrary bytes, so undecodable
        bytes are kept as surrogates instead of raising UnicodeDecodeError.
        """
        target = self._check_open(path)
        return await asyncio.to_thread(target.read_text, errors="surrogateescape")

    async def list(self, path: str | Path) -> list[str]:
        """Return the sorted entry names found under ``path``."""
        target = self._check_open(path)
        return sorted(await asyncio.to_thread(os.listdir, target))

    def close(self) -> None:
        """Release the reader. Later reads raise RuntimeError."""
        if not self._closed:
            logger.debug(f"Closing counter reader rooted at {self._root}")
        self._closed = True

    def _check_open(self, path: str | Path) -> Path:
        if self._closed:
            raise RuntimeError(f"Counter reader is closed, cannot access {path}")
        return self.resolve(path)
