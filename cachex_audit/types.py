"""Types shared across the audit pipeline.

Compatible with redis-py and valkey-py reply shapes, defined locally
to avoid a runtime dependency on either library for type annotations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol, runtime_checkable

# Key types - matches redis.typing.KeyT and valkey.typing.KeyT
type KeyT = bytes | str | memoryview

# TTL reply for a key that exists but has no expiry
NO_EXPIRY = -1
# TTL reply for a key that does not exist (anymore)
KEY_MISSING = -2


class KeyType(StrEnum):
    """Redis key data types, as reported by ``TYPE``."""

    NONE = "none"
    STRING = "string"
    LIST = "list"
    HASH = "hash"
    SET = "set"
    ZSET = "zset"
    STREAM = "stream"
    OTHER = "other"

    @classmethod
    def from_reply(cls, reply: bytes | str | None) -> KeyType:
        """Map a raw ``TYPE`` reply to a member, unknown names become OTHER."""
        if reply is None:
            return cls.NONE
        name = reply.decode("utf-8", errors="replace") if isinstance(reply, bytes) else str(reply)
        try:
            member = cls(name.lower())
        except ValueError:
            return cls.OTHER
        return member


@dataclass(frozen=True, slots=True)
class KeyMetadata:
    """Per-key metadata gathered in one pipelined round trip."""

    ttl: int | None
    idle_time: int | None = None
    key_type: KeyType | None = None
    # Raw TYPE reply, kept for module types such as ReJSON-RL
    type_name: str | None = None

    @property
    def has_no_expiry(self) -> bool:
        return self.ttl == NO_EXPIRY


@dataclass(frozen=True, slots=True)
class ReportLine:
    """One key without expiration, rendered as a pipe-delimited line."""

    key: str
    idle_hours: str
    value_preview: str | None = None

    def __str__(self) -> str:
        parts = [self.key, f"TTL: {NO_EXPIRY}", f"IdleHours: {self.idle_hours}"]
        if self.value_preview is not None:
            parts.append(f"Value: {self.value_preview}")
        return " | ".join(parts)


@dataclass(slots=True)
class ScanState:
    """Run-scoped counters owned by a single scan.

    Counts only ever increase during a run. ``last_reported_percent``
    starts at -1 and never decreases.
    """

    keys_per_node: dict[str, int] = field(default_factory=dict)
    processed_count: int = 0
    missing_count: int = 0
    last_reported_percent: int = -1


@runtime_checkable
class PipelineProtocol(Protocol):
    """Subset of a redis-py/valkey-py pipeline used by the batch stage."""

    def ttl(self, name: KeyT) -> Any: ...

    def object(self, infotype: str, key: KeyT) -> Any: ...

    def type(self, name: KeyT) -> Any: ...

    def execute(self, raise_on_error: bool = True) -> list[Any]: ...


@runtime_checkable
class NodeProtocol(Protocol):
    """A single server that can be enumerated independently."""

    name: str

    @property
    def scannable(self) -> bool: ...

    @property
    def client(self) -> Any: ...

    def dbsize(self) -> int: ...

    def scan_iter(self, match: str = "*", count: int | None = None) -> Any: ...

    def pipeline(self) -> PipelineProtocol: ...
