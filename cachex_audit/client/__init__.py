# Cluster implementations
from cachex_audit.client.cluster import (
    KeyValueClusterAuditClient,
    RedisClusterAuditClient,
    ValkeyClusterAuditClient,
)

# Standalone / multi-server implementations
from cachex_audit.client.default import (
    KeyValueAuditClient,
    RedisAuditClient,
    ValkeyAuditClient,
)
from cachex_audit.client.node import CacheNode

__all__ = [
    "CacheNode",
    # Standalone audit clients
    "KeyValueAuditClient",
    "RedisAuditClient",
    "ValkeyAuditClient",
    # Cluster audit clients
    "KeyValueClusterAuditClient",
    "RedisClusterAuditClient",
    "ValkeyClusterAuditClient",
]
