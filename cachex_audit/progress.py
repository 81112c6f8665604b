"""Percentage progress against an approximate total key count."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable


class ProgressTracker:
    """Turn a running processed count into increasing percentage notices.

    Each percentage is emitted at most once and in increasing order. When
    the total undercounts the keyspace (keys written during the scan),
    percentages beyond 100 are reported as well.
    """

    def __init__(self, total: int | None, notify: Callable[[str], object] | None = None) -> None:
        self.total = total
        self.processed = 0
        self.last_percent = -1
        self._notify = notify

    @property
    def enabled(self) -> bool:
        return self.total is not None and self.total > 0

    def update(self, batch_size: int) -> int | None:
        """Account for ``batch_size`` more keys; return the percentage if one was emitted."""
        if not self.enabled:
            return None

        self.processed += batch_size
        percent = self.processed * 100 // self.total  # type: ignore[operator]
        if percent <= self.last_percent:
            return None

        self.last_percent = percent
        if self._notify is not None:
            self._notify(f"Progress: {self.processed:,}/{self.total:,} ({percent}%) keys scanned.")
        return percent
