"""Pipelined metadata lookup for one batch of keys."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from itertools import batched
from typing import TYPE_CHECKING, Any

from cachex_audit.exceptions import is_response_error, translate_errors, wrap_error
from cachex_audit.formatting import ValueFormatter, display_key, format_idle_hours, to_text
from cachex_audit.types import KeyMetadata, KeyType, ReportLine

if TYPE_CHECKING:
    from collections.abc import Sequence

    from cachex_audit.types import KeyT, NodeProtocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BatchResult:
    missing_count: int = 0
    lines: list[ReportLine] = field(default_factory=list)


class BatchProcessor:
    """Resolve TTL, idle time and (optionally) type for a batch in one round trip.

    Keys whose TTL reply is exactly -1 become report lines. Keys that
    vanished (-2) or carry a real TTL are ignored. A server error on any
    TTL or TYPE lookup fails the whole batch; an unavailable idle time
    (for example under an LFU eviction policy) is reported as ``unknown``.
    """

    def __init__(self, *, include_values: bool = False, formatter: ValueFormatter | None = None) -> None:
        self.include_values = include_values
        self.formatter = formatter or ValueFormatter()

    @property
    def commands_per_key(self) -> int:
        return 3 if self.include_values else 2

    def fetch_metadata(self, node: NodeProtocol, keys: Sequence[KeyT]) -> list[KeyMetadata]:
        """Dispatch TTL / OBJECT IDLETIME / TYPE for every key and await them together."""
        if not keys:
            return []

        with translate_errors(node.name):
            pipe = node.pipeline()
            for key in keys:
                pipe.ttl(key)
                pipe.object("idletime", key)
                if self.include_values:
                    pipe.type(key)
            replies = pipe.execute(raise_on_error=False)

        chunks = batched(replies, self.commands_per_key)
        return [self._parse_replies(node, key, chunk) for key, chunk in zip(keys, chunks, strict=True)]

    def _parse_replies(self, node: NodeProtocol, key: KeyT, chunk: tuple[Any, ...]) -> KeyMetadata:
        ttl_reply, idle_reply, *rest = chunk
        if isinstance(ttl_reply, Exception):
            raise wrap_error(ttl_reply, node.name) from ttl_reply

        idle_time = self._parse_idle(node, key, idle_reply)

        key_type = type_name = None
        if rest:
            (type_reply,) = rest
            if isinstance(type_reply, Exception):
                raise wrap_error(type_reply, node.name) from type_reply
            type_name = to_text(type_reply) or None
            key_type = KeyType.from_reply(type_reply)

        return KeyMetadata(ttl=int(ttl_reply), idle_time=idle_time, key_type=key_type, type_name=type_name)

    def _parse_idle(self, node: NodeProtocol, key: KeyT, reply: Any) -> int | None:
        if isinstance(reply, Exception):
            if not is_response_error(reply):
                raise wrap_error(reply, node.name) from reply
            logger.debug("Idle time unavailable for %r on %s: %s", key, node.name, reply)
            return None
        if reply is None:
            return None
        return int(reply)

    def process_batch(self, node: NodeProtocol, keys: Sequence[KeyT]) -> BatchResult:
        """Return the keys of ``keys`` that have no expiration, as report lines."""
        metadata = self.fetch_metadata(node, keys)

        lines = []
        for key, meta in zip(keys, metadata, strict=True):
            if not meta.has_no_expiry:
                continue
            value_preview = None
            if self.include_values:
                value_preview = self.formatter.format_value(node, key, meta.key_type, meta.type_name)
            lines.append(ReportLine(display_key(key), format_idle_hours(meta.idle_time), value_preview))

        logger.debug("Batch of %d keys on %s: %d without expiration", len(keys), node.name, len(lines))
        return BatchResult(missing_count=len(lines), lines=lines)
