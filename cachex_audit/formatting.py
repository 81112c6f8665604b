"""Bounded, single-line previews of cache values.

Every rendering escapes CR/LF before truncating so that no report line
can span multiple physical lines. Two independent truncation markers
exist: ``…`` when a string exceeds its length limit, and ``, ...`` when
a collection holds more elements than were previewed.
"""

from __future__ import annotations

from itertools import islice
from typing import TYPE_CHECKING, Any

from cachex_audit.exceptions import translate_errors
from cachex_audit.types import KeyType

if TYPE_CHECKING:
    from collections.abc import Iterable

    from cachex_audit.types import KeyT

STRING_PREVIEW_LIMIT = 2048
ELEMENT_PREVIEW_LIMIT = 256
COLLECTION_PREVIEW_COUNT = 16
ELLIPSIS = "\u2026"
MORE_MARKER = "..."

NULL_VALUE = "(null)"
MISSING_KEY = "(key missing)"
UNKNOWN_IDLE = "unknown"


def to_text(value: Any) -> str:
    """Decode a reply to text, replacing undecodable bytes."""
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def escape(text: str) -> str:
    r"""Replace CR and LF with the literal two-character sequences ``\r`` and ``\n``."""
    return text.replace("\r", "\\r").replace("\n", "\\n")


def truncate(text: str, limit: int) -> str:
    """Cut ``text`` to ``limit`` characters, appending an ellipsis when cut."""
    if len(text) <= limit:
        return text
    return text[:limit] + ELLIPSIS


def preview(value: Any, limit: int = ELEMENT_PREVIEW_LIMIT) -> str:
    return truncate(escape(to_text(value)), limit)


def display_key(key: KeyT) -> str:
    """Render a key for a report line (escaped, never truncated)."""
    return escape(to_text(key))


def format_score(score: float) -> str:
    """General numeric format: ``2`` rather than ``2.0``, exponent for huge values."""
    return f"{float(score):.15g}"


def format_idle_hours(idle_seconds: int | None) -> str:
    if idle_seconds is None:
        return UNKNOWN_IDLE
    return f"{idle_seconds / 3600:.2f}"


def join_preview(items: list[str], total: int, brackets: str = "[]") -> str:
    """Join previewed elements, marking that more exist when ``total`` exceeds them."""
    body = ", ".join(items)
    if total > len(items):
        body = f"{body}, {MORE_MARKER}" if items else MORE_MARKER
    return f"{brackets[0]}{body}{brackets[1]}"


class ValueFormatter:
    """Type-dispatched value preview.

    Each data type is fetched with the cheapest bounded command pair
    (a range or scan for the first elements, plus a length command),
    so previewing a huge collection never transfers it whole.
    """

    def __init__(
        self,
        *,
        string_limit: int = STRING_PREVIEW_LIMIT,
        element_limit: int = ELEMENT_PREVIEW_LIMIT,
        preview_count: int = COLLECTION_PREVIEW_COUNT,
    ) -> None:
        self.string_limit = string_limit
        self.element_limit = element_limit
        self.preview_count = preview_count

    def format(self, client: Any, key: KeyT, key_type: KeyType | None, type_name: str | None = None) -> str:
        """Fetch and render the value stored at ``key``.

        Args:
            client: redis-py / valkey-py compatible client for the node owning the key
            key: The raw key
            key_type: Type learned from the batch's ``TYPE`` reply
            type_name: Raw type name, used for types without a preview
        """
        match key_type:
            case KeyType.NONE:
                return MISSING_KEY
            case KeyType.STRING:
                return self.format_string(client.get(key))
            case KeyType.LIST:
                return self.format_list(client.lrange(key, 0, self.preview_count - 1), client.llen(key))
            case KeyType.HASH:
                return self.format_hash(self._first(client.hscan_iter(key, count=self.preview_count)), client.hlen(key))
            case KeyType.SET:
                return self.format_set(self._first(client.sscan_iter(key, count=self.preview_count)), client.scard(key))
            case KeyType.ZSET:
                return self.format_zset(self._first(client.zscan_iter(key, count=self.preview_count)), client.zcard(key))
            case KeyType.STREAM:
                return self.format_stream(client.xrange(key, "-", "+", count=self.preview_count), client.xlen(key))
            case _:
                return f"<{type_name or key_type or 'unknown'} value not retrieved>"

    def format_value(self, node: Any, key: KeyT, key_type: KeyType | None, type_name: str | None = None) -> str:
        """Like :meth:`format`, against a node, with library errors translated."""
        with translate_errors(node.name):
            return self.format(node.client, key, key_type, type_name)

    def _first(self, items: Iterable[Any]) -> list[Any]:
        return list(islice(items, self.preview_count))

    def _element(self, value: Any) -> str:
        return preview(value, self.element_limit)

    def format_string(self, value: Any) -> str:
        if value is None:
            return NULL_VALUE
        return preview(value, self.string_limit)

    def format_list(self, elements: list[Any], total: int) -> str:
        items = [self._element(element) for element in elements[: self.preview_count]]
        return f"List[{total}] {join_preview(items, total)}"

    def format_hash(self, pairs: list[tuple[Any, Any]], total: int) -> str:
        items = [f"{self._element(field)}={self._element(value)}" for field, value in pairs]
        return f"Hash[{total}] {join_preview(items, total, '{}')}"

    def format_set(self, members: list[Any], total: int) -> str:
        items = [self._element(member) for member in members]
        return f"Set[{total}] {join_preview(items, total)}"

    def format_zset(self, members: list[tuple[Any, float]], total: int) -> str:
        items = [f"{self._element(member)}@{format_score(score)}" for member, score in members]
        return f"SortedSet[{total}] {join_preview(items, total)}"

    def format_stream(self, entries: list[tuple[Any, dict[Any, Any]]], total: int) -> str:
        items = []
        for entry_id, fields in entries[: self.preview_count]:
            pairs = [
                f"{self._element(field)}={self._element(value)}"
                for field, value in islice(fields.items(), self.preview_count)
            ]
            items.append(f"{to_text(entry_id)} {join_preview(pairs, len(fields), '{}')}")
        return f"Stream[{total}] {join_preview(items, total)}"
