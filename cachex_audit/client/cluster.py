"""Cluster audit clients for Redis-compatible backends.

In cluster mode every primary owns a disjoint slot range, so scanning
each primary once covers the whole keyspace. Replicas are never scanned.
"""

from __future__ import annotations

from typing import Any, override

from cachex_audit.client.default import KeyValueAuditClient, node_name
from cachex_audit.client.node import ROLE_MASTER, CacheNode
from cachex_audit.exceptions import ConnectionFailure, translate_errors


class KeyValueClusterAuditClient(KeyValueAuditClient):
    """Cluster audit client base class.

    Subclasses must set ``_cluster_class``.
    """

    _cluster_class: type[Any] | None = None

    @override
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._cluster_instance: Any | None = None

    @property
    def _cluster(self) -> type[Any]:
        """Get the cluster class, asserting it's configured."""
        assert self._cluster_class is not None, "Subclasses must set _cluster_class"  # noqa: S101
        return self._cluster_class

    def get_cluster(self) -> Any:
        """Get the cluster client, connecting on first use."""
        if self._cluster_instance is None:
            with translate_errors(node_name(self._servers[0])):
                self._cluster_instance = self._cluster.from_url(self._servers[0], **self._pool_options)
        return self._cluster_instance

    @override
    def get_nodes(self) -> list[CacheNode]:
        """One probed node per cluster primary."""
        cluster = self.get_cluster()
        nodes = [
            CacheNode(primary.name, cluster.get_redis_connection(primary), role=ROLE_MASTER).probe()
            for primary in cluster.get_primaries()
        ]
        if not any(node.connected for node in nodes):
            msg = "No reachable primaries in the cluster"
            raise ConnectionFailure(msg)
        return nodes

    @override
    def close(self) -> None:
        if self._cluster_instance is not None:
            self._cluster_instance.close()
            self._cluster_instance = None


# Try to import Redis Cluster
try:
    import redis
    from redis.cluster import RedisCluster

    class RedisClusterAuditClient(KeyValueClusterAuditClient):
        """Redis Cluster audit client using redis-py."""

        _lib = redis
        _client_class = redis.Redis  # Not used for cluster but required by base
        _pool_class = redis.ConnectionPool  # Not used for cluster but required by base
        _cluster_class = RedisCluster

except ImportError:

    class RedisClusterAuditClient(KeyValueAuditClient):  # type: ignore[no-redef]
        """Redis Cluster audit client (requires redis-py to be installed)."""

        def __init__(self, *args: Any, **kwargs: Any) -> None:
            raise ImportError(
                "RedisClusterAuditClient requires redis-py to be installed. Install it with: pip install redis",
            )


# Try to import Valkey Cluster
try:
    import valkey
    from valkey.cluster import ValkeyCluster

    class ValkeyClusterAuditClient(KeyValueClusterAuditClient):
        """Valkey Cluster audit client using valkey-py."""

        _lib = valkey
        _client_class = valkey.Valkey  # Not used for cluster but required by base
        _pool_class = valkey.ConnectionPool  # Not used for cluster but required by base
        _cluster_class = ValkeyCluster

except ImportError:

    class ValkeyClusterAuditClient(KeyValueAuditClient):  # type: ignore[no-redef]
        """Valkey Cluster audit client (requires valkey-py to be installed)."""

        def __init__(self, *args: Any, **kwargs: Any) -> None:
            raise ImportError(
                "ValkeyClusterAuditClient requires valkey-py to be installed. "
                "Install it with: pip install cachex-audit[valkey]",
            )
