"""
config.py
Connection settings for the Redis brain, derived from environment variables.
"""

import logging
import os
import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple
from urllib.parse import SplitResult, unquote, urlsplit

logger = logging.getLogger("RedisBrainConfig")

# Highest priority first
REDIS_URL_ENV_VARS = ("REDISTOGO_URL", "REDISCLOUD_URL", "BOXEN_REDIS_URL", "REDIS_URL")
NO_READY_CHECK_ENV_VAR = "REDIS_NO_CHECK"
REJECT_UNAUTHORIZED_ENV_VAR = "REDIS_REJECT_UNAUTHORIZED"

DEFAULT_REDIS_URL = "redis://localhost:6379"
DEFAULT_HOST = "localhost"
DEFAULT_PORT = 6379
DEFAULT_PREFIX = "hubot"

_FALSE_VALUES = {"", "0", "false", "no", "off"}


class ConnectionScheme(str, Enum):
    PLAIN = "redis"
    SECURE = "rediss"
    UNIX = "unix"


@dataclass(frozen=True)
class ConnectionDescriptor:
    """Everything needed to open a connection to the brain's Redis."""
    scheme: ConnectionScheme = ConnectionScheme.PLAIN
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    socket_path: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    database: Optional[int] = None  # None means "not selected"; 0 is a valid index
    prefix: str = DEFAULT_PREFIX
    ready_check: bool = True
    verify_certificates: bool = True
    url: str = DEFAULT_REDIS_URL
    source_env: Optional[str] = None

    @property
    def tls(self) -> bool:
        return self.scheme == ConnectionScheme.SECURE

    @property
    def sanitized_url(self) -> str:
        """The source URL with any password masked, safe for logs."""
        if not self.password:
            return self.url
        return re.sub(r"(//[^:/@]*:)[^@]*@", r"\1*****@", self.url, count=1)

    def redis_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for redis.asyncio.Redis."""
        kwargs: Dict[str, Any] = {
            "encoding": "utf-8",
            "decode_responses": True,
        }
        if self.scheme == ConnectionScheme.UNIX:
            kwargs["unix_socket_path"] = self.socket_path
        else:
            kwargs["host"] = self.host
            kwargs["port"] = self.port
        if self.database is not None:
            kwargs["db"] = self.database
        if self.username:
            kwargs["username"] = self.username
        if self.password:
            kwargs["password"] = self.password
        if self.tls:
            kwargs["ssl"] = True
            if not self.verify_certificates:
                kwargs["ssl_cert_reqs"] = "none"
        return kwargs


def _env_flag(value: Optional[str]) -> bool:
    return value is not None and value.strip().lower() not in _FALSE_VALUES


def _select_url(environ: Mapping[str, str]) -> Tuple[str, Optional[str]]:
    for name in REDIS_URL_ENV_VARS:
        value = environ.get(name)
        if value:
            return value, name
    return DEFAULT_REDIS_URL, None


def _split(url: str) -> SplitResult:
    if "://" not in url:
        url = f"redis://{url}"
    return urlsplit(url)


def _parse_scheme(parts: SplitResult) -> ConnectionScheme:
    try:
        return ConnectionScheme(parts.scheme.lower())
    except ValueError:
        logger.info(f"Unknown Redis URL scheme '{parts.scheme}', assuming redis://")
        return ConnectionScheme.PLAIN


def _parse_port(parts: SplitResult) -> int:
    try:
        port = parts.port
    except ValueError:
        logger.info(f"Invalid port in Redis URL, using {DEFAULT_PORT}")
        return DEFAULT_PORT
    return port if port is not None else DEFAULT_PORT


def _parse_target(descriptor: ConnectionDescriptor, parts: SplitResult) -> ConnectionDescriptor:
    """Work out host/socket and database index from the URL authority and path."""
    host = parts.hostname or ""
    path = unquote(parts.path or "")

    if descriptor.scheme == ConnectionScheme.UNIX and path in ("", "/"):
        logger.info("unix:// Redis URL without a socket path, using TCP defaults")
        return replace(descriptor, scheme=ConnectionScheme.PLAIN)

    if descriptor.scheme == ConnectionScheme.UNIX or (not host and path not in ("", "/")):
        return replace(
            descriptor,
            scheme=ConnectionScheme.UNIX,
            host=DEFAULT_HOST,
            socket_path=path,
        )

    database = None
    segment = path.strip("/")
    if segment.isdigit():
        database = int(segment)
    elif segment:
        logger.info(f"Ignoring non-numeric database path '/{segment}' in Redis URL")

    return replace(
        descriptor,
        host=host or DEFAULT_HOST,
        port=_parse_port(parts),
        database=database,
    )


def parse_redis_url(url: str, environ: Optional[Mapping[str, str]] = None) -> ConnectionDescriptor:
    """Parse a Redis URL into a ConnectionDescriptor.

    Supported shapes:
        scheme://[user:pass@]host[:port][/dbIndex][?prefix]
        scheme://[user:pass@]/unix/socket/path[?prefix]

    Never raises. Anything that cannot be understood falls back to the
    defaults (localhost:6379, prefix "hubot").
    """
    environ = os.environ if environ is None else environ
    descriptor = ConnectionDescriptor(url=url)

    try:
        parts = _split(url)
        descriptor = replace(descriptor, scheme=_parse_scheme(parts))
        descriptor = _parse_target(descriptor, parts)
        descriptor = replace(
            descriptor,
            username=unquote(parts.username) if parts.username else None,
            password=unquote(parts.password) if parts.password else None,
            prefix=parts.query or DEFAULT_PREFIX,
        )
    except ValueError as e:
        logger.info(f"Could not parse Redis URL, using defaults: {e}")
        descriptor = ConnectionDescriptor(url=url)

    no_check = _env_flag(environ.get(NO_READY_CHECK_ENV_VAR))
    if no_check:
        logger.info("Turning off redis ready checks")

    verify = True
    reject_unauthorized = environ.get(REJECT_UNAUTHORIZED_ENV_VAR)
    if reject_unauthorized is not None:
        verify = reject_unauthorized.strip().lower() == "true"
        if not verify:
            logger.info("TLS certificate validation disabled for Redis")

    return replace(
        descriptor,
        ready_check=not (no_check or descriptor.password or descriptor.username),
        verify_certificates=verify,
    )


def resolve(environ: Optional[Mapping[str, str]] = None) -> ConnectionDescriptor:
    """Resolve the brain's connection descriptor from the environment.

    The first non-empty of REDISTOGO_URL, REDISCLOUD_URL, BOXEN_REDIS_URL and
    REDIS_URL wins; with none set the default redis://localhost:6379 is used.
    """
    environ = os.environ if environ is None else environ
    url, source = _select_url(environ)
    descriptor = replace(parse_redis_url(url, environ), source_env=source)

    if source:
        logger.info(f"Discovered redis from {source} environment variable: {descriptor.sanitized_url}")
    else:
        logger.info(f"Using default redis on {DEFAULT_HOST}:{DEFAULT_PORT}")

    return descriptor
