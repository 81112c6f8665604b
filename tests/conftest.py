"""Pytest configuration for cachex-audit tests."""

from tests.fixtures import (
    console,
    memory_client,
    node,
    redis_container,
    redis_container_factory,
    redis_images,
    sink,
)

# Re-export fixtures so pytest can discover them
__all__ = [
    "console",
    "memory_client",
    "node",
    "redis_container",
    "redis_container_factory",
    "redis_images",
    "sink",
]
