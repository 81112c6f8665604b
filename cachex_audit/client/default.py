"""Audit client classes for Redis-compatible servers.

Architecture:
- KeyValueAuditClient: Base class with all logic, library-agnostic
- RedisAuditClient: Sets class attributes for redis-py
- ValkeyAuditClient: Sets class attributes for valkey-py

The class attributes pattern allows subclasses to swap the underlying
library while inheriting node discovery and pool handling.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlparse

from cachex_audit.client.node import CacheNode
from cachex_audit.exceptions import ConnectionFailure, translate_errors

# Try to import redis-py and/or valkey-py
_REDIS_AVAILABLE = False
_VALKEY_AVAILABLE = False

try:
    import redis

    _REDIS_AVAILABLE = True
except ImportError:
    redis = None  # type: ignore[assignment]

try:
    import valkey

    _VALKEY_AVAILABLE = True
except ImportError:
    valkey = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)


def node_name(url: str) -> str:
    """Printable ``host:port`` for a server URL, credentials stripped."""
    parsed = urlparse(url)
    if parsed.scheme == "unix":
        return parsed.path
    host = parsed.hostname or "localhost"
    port = parsed.port or 6379
    return f"{host}:{port}"


# =============================================================================
# KeyValueAuditClient - base class (library-agnostic)
# =============================================================================


class KeyValueAuditClient:
    """Base audit client class with configurable library.

    Subclasses must set:
    - _lib: The library module (e.g., valkey or redis)
    - _client_class: The client class (e.g., valkey.Valkey)
    - _pool_class: The connection pool class

    Each server URL becomes one :class:`CacheNode`.
    """

    # Class attributes - subclasses override these
    _lib: Any = None  # The library module
    _client_class: type | None = None  # e.g., valkey.Valkey
    _pool_class: type | None = None  # e.g., valkey.ConnectionPool

    # Options that shouldn't be passed to the connection pool
    _CLIENT_ONLY_OPTIONS = frozenset({"cluster"})

    def __init__(self, servers: list[str], **options: Any) -> None:
        """Initialize the audit client.

        Args:
            servers: List of server URLs
            **options: Additional options passed to connection pool
        """
        if not servers:
            msg = "No endpoints configured for the cache."
            raise ConnectionFailure(msg)
        self._servers = servers
        self._pools: dict[int, Any] = {}
        self._options = options
        self._pool_options = {key: value for key, value in options.items() if key not in self._CLIENT_ONLY_OPTIONS}

    def _get_connection_pool(self, index: int) -> Any:
        """Get (or create) the connection pool for one server."""
        if index not in self._pools:
            assert self._pool_class is not None, "Subclasses must set _pool_class"  # noqa: S101
            self._pools[index] = self._pool_class.from_url(  # type: ignore[attr-defined]
                self._servers[index],
                **self._pool_options,
            )
        return self._pools[index]

    def get_client(self, index: int = 0) -> Any:
        """Get a client connection for the server at ``index``."""
        pool = self._get_connection_pool(index)
        assert self._client_class is not None, "Subclasses must set _client_class"  # noqa: S101
        return self._client_class(connection_pool=pool)

    def get_nodes(self) -> list[CacheNode]:
        """Build and probe one node per configured server.

        Raises:
            ConnectionFailure: If none of the servers can be reached.
        """
        nodes = []
        for index, url in enumerate(self._servers):
            with translate_errors(node_name(url)):
                client = self.get_client(index)
            nodes.append(CacheNode(node_name(url), client).probe())

        if not any(node.connected for node in nodes):
            names = ", ".join(node.name for node in nodes)
            msg = f"None of the configured nodes are reachable ({names})"
            raise ConnectionFailure(msg)
        return nodes

    def close(self) -> None:
        """Disconnect all connection pools."""
        for pool in self._pools.values():
            pool.disconnect()
        self._pools.clear()


# =============================================================================
# RedisAuditClient - concrete implementation for redis-py
# =============================================================================

if _REDIS_AVAILABLE:

    class RedisAuditClient(KeyValueAuditClient):
        """Redis audit client using redis-py."""

        _lib = redis
        _client_class = redis.Redis
        _pool_class = redis.ConnectionPool

else:

    class RedisAuditClient(KeyValueAuditClient):  # type: ignore[no-redef]
        """Redis audit client (requires redis-py)."""

        def __init__(self, *args: Any, **kwargs: Any) -> None:
            msg = "RedisAuditClient requires redis-py. Install with: pip install redis"
            raise ImportError(msg)


# =============================================================================
# ValkeyAuditClient - concrete implementation for valkey-py
# =============================================================================

if _VALKEY_AVAILABLE:

    class ValkeyAuditClient(KeyValueAuditClient):
        """Valkey audit client using valkey-py."""

        _lib = valkey
        _client_class = valkey.Valkey
        _pool_class = valkey.ConnectionPool

else:

    class ValkeyAuditClient(KeyValueAuditClient):  # type: ignore[no-redef]
        """Valkey audit client (requires valkey-py)."""

        def __init__(self, *args: Any, **kwargs: Any) -> None:
            msg = "ValkeyAuditClient requires valkey-py. Install with: pip install cachex-audit[valkey]"
            raise ImportError(msg)
