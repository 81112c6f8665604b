"""Exceptions for cachex-audit.

Library errors from redis-py / valkey-py are translated into the small
taxonomy below so callers never need to know which client library is
installed. Nothing here retries: an audit either completes or stops.
"""

from __future__ import annotations

import socket
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

# Build exception tuples from available libraries (redis-py / valkey-py).
_exception_list: list[type[Exception]] = [socket.timeout]
_response_errors: list[type[Exception]] = []

try:
    from redis.exceptions import ConnectionError as RedisConnectionError
    from redis.exceptions import RedisClusterException
    from redis.exceptions import ResponseError as RedisResponseError
    from redis.exceptions import TimeoutError as RedisTimeoutError

    _response_errors.append(RedisResponseError)
    _exception_list.extend([RedisConnectionError, RedisTimeoutError, RedisResponseError, RedisClusterException])
except ImportError:
    pass

try:
    from valkey.exceptions import ConnectionError as ValkeyConnectionError
    from valkey.exceptions import ResponseError as ValkeyResponseError
    from valkey.exceptions import TimeoutError as ValkeyTimeoutError

    _response_errors.append(ValkeyResponseError)
    _exception_list.extend([ValkeyConnectionError, ValkeyTimeoutError, ValkeyResponseError])
except ImportError:
    pass

_main_exceptions = tuple(_exception_list)
_ResponseError = tuple(_response_errors)


class AuditError(Exception):
    """Base class for every error raised by cachex-audit."""


class ArgumentError(AuditError, ValueError):
    """Raised when the command line or environment is malformed.

    Reported before any connection attempt is made.
    """


class CacheFailure(AuditError):
    """Base class for failures reported by or about a cache node.

    Attributes:
        node: Name of the node (``host:port``) if known.
    """

    def __init__(self, message: str, node: str | None = None) -> None:
        self.node = node
        super().__init__(message)

    def __str__(self) -> str:
        message = super().__str__()
        if self.node:
            return f"{self.node}: {message}"
        return message


class ConnectionFailure(CacheFailure):
    """Raised when a cache node cannot be reached or the connection drops."""


class ServerFailure(CacheFailure):
    """Raised when a cache node rejects a command (``ResponseError``).

    During total key count discovery this degrades the total to unknown;
    anywhere else it is fatal for the run.
    """


class NotSupportedError(AuditError):
    """Raised when a node cannot answer an operation at all.

    Attributes:
        operation: The operation that is not supported.
        backend: Optional name of the backend that doesn't support it.
    """

    def __init__(self, operation: str, backend: str | None = None) -> None:
        self.operation = operation
        self.backend = backend
        super().__init__(operation)

    def __str__(self) -> str:
        msg = f"Operation '{self.operation}' is not supported"
        if self.backend:
            msg += f" by {self.backend}"
        return msg


class OutputError(AuditError):
    """Raised when a report partition cannot be created or written."""

    def __init__(self, message: str, path: str | None = None) -> None:
        self.path = path
        super().__init__(message)


def is_response_error(exc: BaseException) -> bool:
    """Return True for per-command errors replied by the server."""
    return isinstance(exc, _ResponseError)


def wrap_error(exc: BaseException, node: str | None = None) -> AuditError:
    """Translate a client library exception into the audit taxonomy."""
    if isinstance(exc, AuditError):
        return exc
    if is_response_error(exc):
        return ServerFailure(str(exc), node=node)
    return ConnectionFailure(str(exc) or exc.__class__.__name__, node=node)


@contextmanager
def translate_errors(node: str | None = None) -> Iterator[None]:
    """Re-raise redis-py/valkey-py errors as ConnectionFailure or ServerFailure."""
    try:
        yield
    except _main_exceptions as e:
        raise wrap_error(e, node) from e
