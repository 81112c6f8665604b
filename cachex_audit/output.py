"""Console or size-rotated file output for audit reports."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Self

from cachex_audit.exceptions import OutputError

if TYPE_CHECKING:
    from types import TracebackType

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 2 * 1024 * 1024
ENCODING = "utf-8"
NEWLINE = "\n"


def partition_path(base: Path, index: int) -> Path:
    """Path of the ``index``-th partition: ``name.ext``, ``name.part2.ext``, ..."""
    if index == 0:
        return base
    return base.with_name(f"{base.stem}.part{index + 1}{base.suffix}")


def encoded_size(text: str) -> int:
    """Bytes ``text`` occupies on disk, line terminator included."""
    return len((text + NEWLINE).encode(ENCODING))


@dataclass
class OutputPartition:
    path: Path
    stream: Any
    bytes_written: int = 0

    def write(self, text: str) -> None:
        self.stream.write(text + NEWLINE)
        self.bytes_written += encoded_size(text)

    def close(self) -> None:
        self.stream.flush()
        self.stream.close()


class OutputSink:
    """Write report lines to the console or to rotating files.

    Without a path, everything goes to ``console``. With a path, key lines
    go only to the active file partition, summary lines go to both, and
    notices (totals, progress) go only to the console.

    A partition is rotated *before* a write that would push a non-empty
    partition past ``max_bytes``; a single oversized line is still written
    whole. Use as a context manager so the active partition is always
    flushed and closed, even when the scan fails.
    """

    def __init__(self, path: str | Path | None = None, *, console: Any = None, max_bytes: int = DEFAULT_MAX_BYTES):
        self.path = Path(path) if path else None
        self.console = console if console is not None else sys.stdout
        self.max_bytes = max_bytes
        self.paths: list[Path] = []
        self._partition: OutputPartition | None = None

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def partition(self) -> OutputPartition | None:
        return self._partition

    def _open_partition(self) -> OutputPartition:
        assert self.path is not None  # noqa: S101
        path = partition_path(self.path, len(self.paths))
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            stream = path.open("w", encoding=ENCODING, newline=NEWLINE)
        except OSError as e:
            raise OutputError(f"{path}: {e.strerror or e}", path=str(path)) from e
        logger.debug("Opened output partition %s", path)
        self.paths.append(path)
        self._partition = OutputPartition(path, stream)
        return self._partition

    def _close_partition(self) -> None:
        if self._partition is None:
            return
        partition, self._partition = self._partition, None
        try:
            partition.close()
        except OSError as e:
            raise OutputError(f"{partition.path}: {e.strerror or e}", path=str(partition.path)) from e

    def _write_file(self, text: str) -> None:
        partition = self._partition
        if partition is None:
            partition = self._open_partition()
        elif partition.bytes_written > 0 and partition.bytes_written + encoded_size(text) > self.max_bytes:
            self._close_partition()
            partition = self._open_partition()
            logger.info("Rotated output to %s", partition.path)

        try:
            partition.write(text)
        except OSError as e:
            raise OutputError(f"{partition.path}: {e.strerror or e}", path=str(partition.path)) from e

    def _write_console(self, text: str) -> None:
        self.console.write(text + NEWLINE)

    def write_line(self, text: str) -> None:
        """Write a key line to the file, or the console when no path is set."""
        if self.path is None:
            self._write_console(text)
        else:
            self._write_file(text)

    def write_summary(self, text: str) -> None:
        """Write a summary line to the console and, when set, the file."""
        self._write_console(text)
        if self.path is not None:
            self._write_file(text)

    def write_notice(self, text: str) -> None:
        """Write an informational line to the console only."""
        self._write_console(text)

    def flush(self) -> None:
        if self._partition is not None:
            try:
                self._partition.stream.flush()
            except OSError as e:
                raise OutputError(str(e), path=str(self._partition.path)) from e
        flush = getattr(self.console, "flush", None)
        if flush is not None:
            flush()

    def close(self) -> None:
        """Flush and release the active partition; rotated ones are already closed."""
        self._close_partition()
