"""Tests for pipelined batch processing."""

from __future__ import annotations

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from cachex_audit.batch import BatchProcessor
from cachex_audit.client import CacheNode
from cachex_audit.exceptions import ConnectionFailure, ServerFailure
from cachex_audit.types import KeyType
from tests.fixtures.memory import InMemoryClient


class TestFetchMetadata:
    def test_one_round_trip_per_batch(self, node: CacheNode, memory_client: InMemoryClient):
        for i in range(50):
            memory_client.add_string(f"k{i}", "v")
        BatchProcessor(include_values=True).fetch_metadata(node, [f"k{i}".encode() for i in range(50)])
        assert memory_client.pipeline_executions == 1

    def test_type_only_requested_with_values(self, node: CacheNode, memory_client: InMemoryClient):
        memory_client.add_list("l", ["a"])
        (meta,) = BatchProcessor().fetch_metadata(node, [b"l"])
        assert meta.key_type is None
        (meta,) = BatchProcessor(include_values=True).fetch_metadata(node, [b"l"])
        assert meta.key_type is KeyType.LIST
        assert meta.type_name == "list"

    def test_empty_batch(self, node: CacheNode, memory_client: InMemoryClient):
        assert BatchProcessor().fetch_metadata(node, []) == []
        assert memory_client.pipeline_executions == 0

    def test_unknown_type(self, node: CacheNode, memory_client: InMemoryClient):
        memory_client.add_other("doc", "ReJSON-RL")
        (meta,) = BatchProcessor(include_values=True).fetch_metadata(node, [b"doc"])
        assert meta.key_type is KeyType.OTHER
        assert meta.type_name == "ReJSON-RL"


class TestProcessBatch:
    def test_counts_only_no_expiry_sentinel(self, node: CacheNode, memory_client: InMemoryClient):
        memory_client.add_string("forever1", "v")
        memory_client.add_string("forever2", "v")
        memory_client.add_string("expiring", "v", ttl=60)
        # "vanished" is enumerated but no longer exists (TTL -2)
        result = BatchProcessor().process_batch(node, [b"forever1", b"expiring", b"vanished", b"forever2"])
        assert result.missing_count == 2
        assert [line.key for line in result.lines] == ["forever1", "forever2"]

    def test_line_shape(self, node: CacheNode, memory_client: InMemoryClient):
        memory_client.add_string("a", "v", idle=5400)
        result = BatchProcessor().process_batch(node, [b"a"])
        assert [str(line) for line in result.lines] == ["a | TTL: -1 | IdleHours: 1.50"]

    def test_line_shape_with_values(self, node: CacheNode, memory_client: InMemoryClient):
        memory_client.add_string("a", "hello\nworld", idle=0)
        result = BatchProcessor(include_values=True).process_batch(node, [b"a"])
        assert [str(line) for line in result.lines] == ["a | TTL: -1 | IdleHours: 0.00 | Value: hello\\nworld"]

    def test_idle_unavailable(self, node: CacheNode, memory_client: InMemoryClient):
        memory_client.add_string("a", "v", idle=None)
        result = BatchProcessor().process_batch(node, [b"a"])
        assert result.lines[0].idle_hours == "unknown"

    def test_idle_error_reports_unknown(self, node: CacheNode, memory_client: InMemoryClient):
        memory_client.add_string("a", "v")
        memory_client.idle_error = ResponseError("An LFU maxmemory policy is selected, idle time not tracked.")
        result = BatchProcessor().process_batch(node, [b"a"])
        assert result.missing_count == 1
        assert result.lines[0].idle_hours == "unknown"

    def test_ttl_error_fails_batch(self, node: CacheNode, memory_client: InMemoryClient):
        memory_client.add_string("a", "v")
        memory_client.ttl_error = ResponseError("NOPERM this user has no permissions to run the 'ttl' command")
        with pytest.raises(ServerFailure, match="NOPERM"):
            BatchProcessor().process_batch(node, [b"a"])

    def test_connection_error_fails_batch(self, node: CacheNode, mocker):
        mocker.patch.object(node, "pipeline", side_effect=RedisConnectionError("Connection reset by peer"))
        with pytest.raises(ConnectionFailure, match="memory:6379: Connection reset by peer"):
            BatchProcessor().process_batch(node, [b"a"])

    def test_key_with_newline_is_escaped(self, node: CacheNode, memory_client: InMemoryClient):
        memory_client.add_string("bad\nkey", "v")
        result = BatchProcessor().process_batch(node, [b"bad\nkey"])
        assert str(result.lines[0]).startswith("bad\\nkey | ")

    def test_vanished_between_stages_previews_missing(self, node: CacheNode, memory_client: InMemoryClient, mocker):
        memory_client.add_string("a", "v")
        processor = BatchProcessor(include_values=True)
        real_fetch = processor.fetch_metadata

        def fetch_then_delete(node, keys):
            metadata = real_fetch(node, keys)
            del memory_client.values[b"a"]
            return metadata

        mocker.patch.object(processor, "fetch_metadata", side_effect=fetch_then_delete)
        result = processor.process_batch(node, [b"a"])
        assert result.lines[0].value_preview == "(null)"

    def test_type_none_previews_key_missing(self, node: CacheNode):
        processor = BatchProcessor(include_values=True)
        assert processor.formatter.format_value(node, b"gone", KeyType.NONE) == "(key missing)"

    @pytest.mark.parametrize(
        ("seed", "expected"),
        [
            (lambda c: c.add_list("k", ["a", "b"]), "List[2] [a, b]"),
            (lambda c: c.add_hash("k", {"f": "v"}), "Hash[1] {f=v}"),
            (lambda c: c.add_set("k", ["m"]), "Set[1] [m]"),
            (lambda c: c.add_zset("k", {"m": 3}), "SortedSet[1] [m@3]"),
            (lambda c: c.add_stream("k", [("1-0", {"f": "v"})]), "Stream[1] [1-0 {f=v}]"),
            (lambda c: c.add_other("k", "MBbloom--"), "<MBbloom-- value not retrieved>"),
        ],
        ids=["list", "hash", "set", "zset", "stream", "other"],
    )
    def test_value_preview_by_type(self, node: CacheNode, memory_client: InMemoryClient, seed, expected):
        seed(memory_client)
        result = BatchProcessor(include_values=True).process_batch(node, [b"k"])
        assert result.lines[0].value_preview == expected
