"""Resolve audit settings from arguments, environment and Django settings.

Connection targets may be given as URLs (``redis://``, ``rediss://``,
``unix://``, ``valkey://``, ``valkeys://``, optionally with ``+cluster``)
or as StackExchange-style connection strings such as::

    myhost.example.com:6380,password=secret,ssl=True,abortConnect=False
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import quote, urlparse, urlunparse

from cachex_audit.exceptions import ArgumentError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 2048
DEFAULT_PATTERN = "*"
DEFAULT_PORT = 6379
DEFAULT_SSL_PORT = 6380

# Checked in order, first non-blank value wins
CONNECTION_ENV_VARS = ("CACHEX_AUDIT_CONNECTION", "AZURE_REDIS_CONNECTION_STRING")
PAGE_SIZE_ENV_VARS = ("CACHEX_AUDIT_SCAN_PAGE_SIZE", "AZURE_REDIS_SCAN_PAGE_SIZE")
PATTERN_ENV_VARS = ("CACHEX_AUDIT_KEY_PATTERN", "AZURE_REDIS_KEY_PATTERN")

REDIS = "redis"
VALKEY = "valkey"

CLIENT_CLASSES = {
    (REDIS, False): "cachex_audit.client.RedisAuditClient",
    (REDIS, True): "cachex_audit.client.RedisClusterAuditClient",
    (VALKEY, False): "cachex_audit.client.ValkeyAuditClient",
    (VALKEY, True): "cachex_audit.client.ValkeyClusterAuditClient",
}

_URL_SCHEMES = frozenset({"redis", "rediss", "unix", "valkey", "valkeys"})

# Django CACHES OPTIONS that are meaningful for a raw connection
_CACHE_OPTIONS = frozenset({"socket_timeout", "socket_connect_timeout", "username", "password", "db", "ssl_cert_reqs"})


@dataclass(frozen=True)
class ConnectionTarget:
    """Servers to audit plus the options used to connect to them."""

    servers: tuple[str, ...]
    options: dict[str, Any] = field(default_factory=dict)
    cluster: bool = False
    library: str = REDIS

    @property
    def client_class(self) -> str:
        return CLIENT_CLASSES[self.library, self.cluster]


@dataclass(frozen=True)
class AuditConfig:
    target: ConnectionTarget
    output_path: Path | None = None
    include_values: bool = False
    page_size: int = DEFAULT_PAGE_SIZE
    pattern: str = DEFAULT_PATTERN


def first_env(names: Sequence[str], environ: Mapping[str, str] | None = None) -> str | None:
    """First non-blank environment value among ``names``."""
    environ = os.environ if environ is None else environ
    for name in names:
        value = environ.get(name)
        if value and value.strip():
            return value
    return None


def parse_page_size(value: str | int | None, default: int = DEFAULT_PAGE_SIZE) -> int:
    """Positive integer from ``value``, falling back to ``default`` (at least 1)."""
    try:
        parsed = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        parsed = 0
    if parsed > 0:
        return parsed
    return max(1, default)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _split_scheme(scheme: str) -> tuple[str, bool]:
    base, _, suffix = scheme.partition("+")
    return base, suffix == "cluster"


def parse_url_target(target: str, *, cluster: bool = False) -> ConnectionTarget:
    """Parse one or more comma separated server URLs."""
    servers = []
    library = REDIS
    for raw in (part.strip() for part in target.split(",")):
        if not raw:
            continue
        parsed = urlparse(raw)
        scheme, is_cluster = _split_scheme(parsed.scheme.lower())
        if scheme not in _URL_SCHEMES:
            msg = f"Unsupported connection scheme: {parsed.scheme}://"
            raise ArgumentError(msg)
        cluster = cluster or is_cluster
        if scheme.startswith(VALKEY):
            library = VALKEY
        servers.append(urlunparse(parsed._replace(scheme=scheme)))

    if not servers:
        msg = "Connection string does not name any server."
        raise ArgumentError(msg)
    return ConnectionTarget(servers=tuple(servers), cluster=cluster, library=library)


def _split_endpoint(token: str) -> tuple[str, int | None]:
    """Split ``host[:port]``; IPv6 hosts need brackets to carry a port."""
    if token.startswith("["):
        host, sep, rest = token[1:].partition("]")
        if not sep or (rest and not rest.startswith(":")):
            msg = f"Invalid endpoint: {token}"
            raise ArgumentError(msg)
        port = rest[1:]
    elif token.count(":") > 1:
        # bare IPv6 address, no port
        host, port = token, ""
    else:
        host, sep, port = token.partition(":")
        if sep and not port.isdigit():
            msg = f"Invalid port in endpoint: {token}"
            raise ArgumentError(msg)
    if not host or (port and not port.isdigit()):
        msg = f"Invalid endpoint: {token}"
        raise ArgumentError(msg)
    return host, int(port) if port else None


def parse_stackexchange_target(target: str, *, cluster: bool = False) -> ConnectionTarget:
    """Convert a ``host:port,key=value,...`` connection string to server URLs."""
    endpoints: list[tuple[str, int | None]] = []
    settings: dict[str, str] = {}

    for token in (part.strip() for part in target.split(",")):
        if not token:
            continue
        if "=" in token:
            name, _, value = token.partition("=")
            settings[name.strip().lower()] = value.strip()
            continue
        endpoints.append(_split_endpoint(token))

    if not endpoints:
        msg = "Connection string does not name any server."
        raise ArgumentError(msg)

    use_ssl = _parse_bool(settings.pop("ssl", "false"))
    user = settings.pop("user", "")
    password = settings.pop("password", "")
    database = settings.pop("defaultdatabase", "")
    if database and not database.isdigit():
        msg = f"Invalid defaultDatabase: {database}"
        raise ArgumentError(msg)

    options: dict[str, Any] = {}
    for name, option in (("connecttimeout", "socket_connect_timeout"), ("synctimeout", "socket_timeout")):
        if name in settings:
            try:
                options[option] = int(settings.pop(name)) / 1000
            except ValueError:
                msg = f"Invalid {name} value, expected milliseconds"
                raise ArgumentError(msg) from None
    if settings:
        logger.debug("Ignoring connection string options: %s", ", ".join(sorted(settings)))

    scheme = "rediss" if use_ssl else "redis"
    auth = ""
    if password:
        auth = f"{quote(user, safe='')}:{quote(password, safe='')}@"
    elif user:
        auth = f"{quote(user, safe='')}@"
    path = f"/{database}" if database and not cluster else ""

    servers = []
    for host, port in endpoints:
        port = port or (DEFAULT_SSL_PORT if use_ssl else DEFAULT_PORT)
        netloc_host = f"[{host}]" if ":" in host else host
        servers.append(f"{scheme}://{auth}{netloc_host}:{port}{path}")

    return ConnectionTarget(servers=tuple(servers), options=options, cluster=cluster)


def parse_connection_target(target: str, *, cluster: bool = False) -> ConnectionTarget:
    """Parse a URL list or a StackExchange-style connection string."""
    target = target.strip()
    if not target:
        msg = "Connection string is empty."
        raise ArgumentError(msg)
    if "://" in target:
        return parse_url_target(target, cluster=cluster)
    return parse_stackexchange_target(target, cluster=cluster)


def target_from_cache_alias(alias: str, *, cluster: bool = False) -> ConnectionTarget:
    """Build a target from ``settings.CACHES[alias]`` of the running Django project."""
    from django.conf import settings

    cache_config = getattr(settings, "CACHES", {}).get(alias)
    if not cache_config:
        msg = f"Cache '{alias}' is not configured in CACHES setting."
        raise ArgumentError(msg)

    location = cache_config.get("LOCATION", "")
    if isinstance(location, (list, tuple)):
        servers = [str(server) for server in location]
    else:
        servers = [server for server in re.split("[;,]", str(location)) if server.strip()]
    if not servers:
        msg = f"Cache '{alias}' has no LOCATION."
        raise ArgumentError(msg)

    backend = str(cache_config.get("BACKEND", ""))
    target = parse_url_target(",".join(servers), cluster=cluster or "Cluster" in backend)

    options = {key: value for key, value in cache_config.get("OPTIONS", {}).items() if key in _CACHE_OPTIONS}
    library = VALKEY if "Valkey" in backend else target.library
    return ConnectionTarget(servers=target.servers, options=options, cluster=target.cluster, library=library)


def resolve_config(
    *,
    connection: str | None = None,
    cache_alias: str | None = None,
    output: str | Path | None = None,
    include_values: bool = False,
    page_size: str | int | None = None,
    pattern: str | None = None,
    cluster: bool = False,
    environ: Mapping[str, str] | None = None,
) -> AuditConfig:
    """Combine command line values with environment fallbacks.

    Raises:
        ArgumentError: If no connection target can be found or it is malformed.
    """
    if connection and cache_alias:
        msg = "Give either a connection string or --cache, not both."
        raise ArgumentError(msg)

    if cache_alias:
        target = target_from_cache_alias(cache_alias, cluster=cluster)
    else:
        connection = connection or first_env(CONNECTION_ENV_VARS, environ)
        if not connection or not connection.strip():
            msg = f"Provide the connection string as an argument or set {CONNECTION_ENV_VARS[0]}."
            raise ArgumentError(msg)
        target = parse_connection_target(connection, cluster=cluster)

    if page_size is None:
        page_size = first_env(PAGE_SIZE_ENV_VARS, environ)
    if pattern is None:
        pattern = first_env(PATTERN_ENV_VARS, environ) or DEFAULT_PATTERN

    return AuditConfig(
        target=target,
        output_path=Path(output) if output else None,
        include_values=include_values,
        page_size=parse_page_size(page_size),
        pattern=pattern,
    )
