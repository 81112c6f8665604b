"""Drive cursor-based enumeration over every node of a deployment."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from cachex_audit.conf import DEFAULT_PAGE_SIZE, DEFAULT_PATTERN
from cachex_audit.exceptions import NotSupportedError, ServerFailure
from cachex_audit.progress import ProgressTracker
from cachex_audit.types import ScanState

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from cachex_audit.batch import BatchProcessor
    from cachex_audit.output import OutputSink
    from cachex_audit.types import KeyT, NodeProtocol

logger = logging.getLogger(__name__)

SUMMARY_HEADER = "Keys without expiration:"
SUMMARY_NONE = "(none)"


class ScanOrchestrator:
    """Scan nodes one after another, batching keys for the :class:`BatchProcessor`.

    Only one batch is in flight at a time, so memory is bounded by one
    buffer of keys regardless of keyspace size.
    """

    def __init__(self, processor: BatchProcessor, sink: OutputSink) -> None:
        self.processor = processor
        self.sink = sink

    def discover_total(self, nodes: Iterable[NodeProtocol]) -> int | None:
        """Sum DBSIZE over ``nodes``.

        Returns None when any node cannot report a size: a partial total
        would make every percentage wrong, so the whole total is dropped.
        Connection failures still propagate.
        """
        total = 0
        for node in nodes:
            try:
                total += node.dbsize()
            except (ServerFailure, NotSupportedError) as e:
                logger.info("Key count unavailable on %s: %s", node.name, e)
                return None
        return total

    def run(
        self,
        nodes: Sequence[NodeProtocol],
        pattern: str = DEFAULT_PATTERN,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> int:
        """Report every key without expiration; return how many were found."""
        state = ScanState()
        capacity = max(1, page_size)

        scannable = []
        for node in nodes:
            if node.scannable:
                scannable.append(node)
            else:
                logger.info("Skipping node %s (not connected or no keyspace)", node.name)

        self.sink.write_summary(SUMMARY_HEADER)

        total = self.discover_total(scannable)
        if total is None:
            self.sink.write_notice("Total key count unavailable; percentage progress disabled.")
        else:
            self.sink.write_notice(f"Total keys reported: {total:,}")
        tracker = ProgressTracker(total, notify=self.sink.write_notice)

        for node in scannable:
            logger.debug("Scanning %s with pattern %r, page size %d", node.name, pattern, capacity)
            state.keys_per_node[node.name] = 0
            buffer: list[KeyT] = []
            for key in node.scan_iter(match=pattern, count=capacity):
                buffer.append(key)
                if len(buffer) == capacity:
                    self._process(node, buffer, state, tracker)
                    buffer = []
            if buffer:
                self._process(node, buffer, state, tracker)

        if state.missing_count == 0:
            self.sink.write_summary(SUMMARY_NONE)
        else:
            self.sink.write_summary(f"Total keys without expiration: {state.missing_count}")
        self.sink.flush()

        logger.info(
            "Scanned %d keys on %d node(s), %d without expiration",
            state.processed_count,
            len(scannable),
            state.missing_count,
        )
        return state.missing_count

    def _process(self, node: NodeProtocol, keys: list[KeyT], state: ScanState, tracker: ProgressTracker) -> None:
        result = self.processor.process_batch(node, keys)
        for line in result.lines:
            self.sink.write_line(str(line))

        state.missing_count += result.missing_count
        state.processed_count += len(keys)
        state.keys_per_node[node.name] += len(keys)

        tracker.update(len(keys))
        state.last_reported_percent = tracker.last_percent
