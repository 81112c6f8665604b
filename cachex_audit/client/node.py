"""A single scannable server behind an audit client."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from cachex_audit.exceptions import NotSupportedError, ServerFailure, _main_exceptions, translate_errors

if TYPE_CHECKING:
    from collections.abc import Iterator

    from cachex_audit.types import KeyT, PipelineProtocol

logger = logging.getLogger(__name__)

ROLE_MASTER = "master"
ROLE_REPLICA = "slave"
ROLE_SENTINEL = "sentinel"


class CacheNode:
    """One Redis/Valkey server, wrapping a plain (non-cluster) client.

    ``connected`` and ``role`` are filled by :meth:`probe`. Nodes that are
    not connected, or that are Sentinel instances, hold no keyspace and are
    skipped by the scanner.
    """

    def __init__(
        self,
        name: str,
        client: Any,
        *,
        role: str | None = None,
        connected: bool | None = None,
    ) -> None:
        self.name = name
        self._client = client
        self.role = role
        self.connected = connected

    def __repr__(self) -> str:
        return f"<CacheNode {self.name} role={self.role} connected={self.connected}>"

    @property
    def client(self) -> Any:
        return self._client

    @property
    def scannable(self) -> bool:
        return bool(self.connected) and self.role != ROLE_SENTINEL

    def probe(self) -> CacheNode:
        """Ping the node and read its role from INFO."""
        try:
            self._client.ping()
        except _main_exceptions as e:
            logger.warning("Node %s is not reachable: %s", self.name, e)
            self.connected = False
            return self
        self.connected = True

        try:
            with translate_errors(self.name):
                server_info = self._client.info("server")
                if server_info.get("redis_mode") == ROLE_SENTINEL:
                    self.role = ROLE_SENTINEL
                else:
                    self.role = self._client.info("replication").get("role", ROLE_MASTER)
        except ServerFailure as e:
            # INFO can be renamed or disabled on managed services
            logger.debug("INFO unavailable on %s, assuming master: %s", self.name, e)
            self.role = self.role or ROLE_MASTER

        logger.debug("Discovered %r", self)
        return self

    def dbsize(self) -> int:
        """Approximate number of keys held by this node."""
        try:
            with translate_errors(self.name):
                return int(self._client.dbsize())
        except ServerFailure as e:
            # DBSIZE renamed or disabled, as on some managed services
            if "unknown command" in str(e).lower():
                raise NotSupportedError("dbsize", self.name) from e
            raise

    def scan_iter(self, match: str = "*", count: int | None = None) -> Iterator[KeyT]:
        """Lazily enumerate keys with SCAN; ``count`` is only a hint."""
        with translate_errors(self.name):
            yield from self._client.scan_iter(match=match, count=count)

    def pipeline(self) -> PipelineProtocol:
        """Non-transactional pipeline, one round trip per execute()."""
        return self._client.pipeline(transaction=False)
