"""Test fixtures for cachex-audit."""

from tests.fixtures.containers import (
    RedisContainerInfo,
    redis_container,
    redis_container_factory,
    redis_images,
)
from tests.fixtures.memory import InMemoryClient, make_node
from tests.fixtures.nodes import Console, console, memory_client, node, sink

__all__ = [
    "Console",
    "InMemoryClient",
    "RedisContainerInfo",
    "console",
    "make_node",
    "memory_client",
    "node",
    "redis_container",
    "redis_container_factory",
    "redis_images",
    "sink",
]
