"""Filesystem-backed staging for received messages.

A staged message lives at ``<tmpdir>/<id>`` from the moment the listener
accepts it. It leaves that state in one of two ways: it is unlinked once it
has been handled, or an error marker ``<tmpdir>/<id>.error`` is written next
to it and the body stays on disk for manual recovery.
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from collections.abc import AsyncIterator, Mapping
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

from ..core.errors import StagingError

LOGGER = logging.getLogger(__name__)

ERROR_SUFFIX = ".error"
PARTIAL_SUFFIX = ".tmp"
DEFAULT_CHUNK_SIZE = 64 * 1024

_STAGED_NAME = re.compile(r"^[0-9a-f]{32}$")


class StagingStore:
    """Write-once message bodies plus rename-free error markers."""

    def __init__(self, tmpdir: Path, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._tmpdir = Path(tmpdir)
        self._chunk_size = chunk_size

    @property
    def tmpdir(self) -> Path:
        """Directory holding staged messages."""
        return self._tmpdir

    def ensure_directory(self) -> None:
        """Create the staging directory if it does not exist."""
        try:
            self._tmpdir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StagingError(self._tmpdir, f"cannot create directory: {exc}") from exc

    def new_path(self) -> Path:
        """Return a fresh path for a message that has not been staged yet."""
        return self._tmpdir / uuid.uuid4().hex

    @staticmethod
    def error_path(path: Path) -> Path:
        """Location of the error marker belonging to ``path``."""
        return path.with_name(path.name + ERROR_SUFFIX)

    def is_quarantined(self, path: Path) -> bool:
        """Whether an error marker exists for ``path``."""
        return self.error_path(path).exists()

    async def write(self, path: Path, data: bytes) -> Path:
        """Create or overwrite the staged body at ``path``."""
        partial = path.with_name(path.name + PARTIAL_SUFFIX)
        try:
            async with aiofiles.open(partial, "wb") as handle:
                await handle.write(data)
            await aiofiles.os.replace(partial, path)
        except OSError as exc:
            await self._discard(partial)
            raise StagingError(path, f"write failed: {exc}") from exc
        LOGGER.debug("Staged %d bytes at %s", len(data), path)
        return path

    async def read_stream(self, path: Path) -> AsyncIterator[bytes]:
        """Yield the staged body in chunks without buffering it whole."""
        try:
            async with aiofiles.open(path, "rb") as handle:
                while True:
                    chunk = await handle.read(self._chunk_size)
                    if not chunk:
                        break
                    yield chunk
        except OSError as exc:
            raise StagingError(path, f"read failed: {exc}") from exc

    async def mark_error(self, path: Path, metadata: Mapping[str, Any]) -> Path:
        """Write ``metadata`` as JSON to the error marker, leaving ``path`` alone."""
        marker = self.error_path(path)
        payload = json.dumps(dict(metadata), indent=2)
        try:
            async with aiofiles.open(marker, "w", encoding="utf-8") as handle:
                await handle.write(payload)
        except OSError as exc:
            raise StagingError(marker, f"cannot write error marker: {exc}") from exc
        return marker

    async def read_marker(self, path: Path) -> dict[str, Any]:
        """Load the error marker written for ``path``."""
        marker = self.error_path(path)
        try:
            async with aiofiles.open(marker, "r", encoding="utf-8") as handle:
                content = await handle.read()
        except OSError as exc:
            raise StagingError(marker, f"cannot read error marker: {exc}") from exc
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            raise StagingError(marker, f"error marker is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise StagingError(marker, "error marker does not hold an object")
        return data

    async def remove(self, path: Path) -> None:
        """Delete the staged body; a missing file is not an error."""
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            LOGGER.debug("Staged message %s already removed", path)
        except OSError as exc:
            raise StagingError(path, f"remove failed: {exc}") from exc

    async def clear_error(self, path: Path) -> None:
        """Delete the error marker for ``path`` if there is one."""
        await self.remove(self.error_path(path))

    def pending(self) -> list[Path]:
        """Staged messages without an error marker."""
        return [path for path in self._staged() if not self.is_quarantined(path)]

    def quarantined(self) -> list[Path]:
        """Staged messages that carry an error marker."""
        return [path for path in self._staged() if self.is_quarantined(path)]

    def _staged(self) -> list[Path]:
        if not self._tmpdir.is_dir():
            return []
        try:
            entries = sorted(self._tmpdir.iterdir())
        except OSError as exc:
            raise StagingError(self._tmpdir, f"cannot list directory: {exc}") from exc
        return [
            entry
            for entry in entries
            if _STAGED_NAME.match(entry.name) and entry.is_file()
        ]

    async def _discard(self, path: Path) -> None:
        try:
            await aiofiles.os.remove(path)
        except OSError as exc:
            LOGGER.debug("Could not discard %s: %s", path, exc)


__all__ = ["ERROR_SUFFIX", "StagingStore"]
