"""Resolution of cluster connection strings into management (HTTP) addresses."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable

__all__ = ["ConnectionStringError", "resolve_hosts_as_http"]

_log = logging.getLogger(__name__)

DEFAULT_HTTP_PORT = 8091
DEFAULT_SSL_HTTP_PORT = 18091
DEFAULT_HOST = "127.0.0.1"

_CONNECTION_STRING = re.compile(
    r"^((.*)://)?(([^/?:]*)(:([^/?:@]*))?@)?([^/?]*)(/([^?]*))?(\?(.*))?$"
)
_HOST = re.compile(r"((\[[^\]]+\]+)|([^;,:]+))(:([0-9]*))?(;|,)?")

_SCHEMES = frozenset({"", "couchbase", "couchbases", "http"})


class ConnectionStringError(ValueError):
    """Raised when a connection string cannot be parsed or resolved."""


@dataclass(frozen=True)
class _Address:
    host: str
    port: int | None


@dataclass(frozen=True)
class _ConnectionSpec:
    scheme: str
    addresses: tuple[_Address, ...]

    def __str__(self) -> str:
        hosts = ",".join(
            address.host if address.port is None else f"{address.host}:{address.port}"
            for address in self.addresses
        )
        return f"{self.scheme}://{hosts}" if self.scheme else hosts


def _parse(text: str) -> _ConnectionSpec:
    match = _CONNECTION_STRING.match(text)
    if match is None:
        raise ConnectionStringError("invalid connection string")

    scheme = match.group(2) or ""
    addresses = []
    for host_match in _HOST.finditer(match.group(7) or ""):
        port_text = host_match.group(5)
        port = int(port_text) if port_text else None
        addresses.append(_Address(host_match.group(1), port))
    return _ConnectionSpec(scheme, tuple(addresses))


def _resolve_http(spec: _ConnectionSpec) -> list[str]:
    if spec.scheme not in _SCHEMES:
        raise ConnectionStringError("bad scheme")

    is_default_scheme = spec.scheme == ""
    is_http_scheme = spec.scheme == "http"
    default_port = DEFAULT_SSL_HTTP_PORT if spec.scheme == "couchbases" else DEFAULT_HTTP_PORT

    addresses = spec.addresses or (_Address(DEFAULT_HOST, None),)
    http_hosts = []
    for address in addresses:
        has_explicit_port = address.port is not None
        if is_default_scheme and has_explicit_port and address.port != DEFAULT_HTTP_PORT:
            raise ConnectionStringError("ambiguous port without scheme")
        if not is_default_scheme and not is_http_scheme and address.port == DEFAULT_HTTP_PORT:
            raise ConnectionStringError("couchbase://host:8091 not supported for couchbase:// scheme")

        if not has_explicit_port:
            http_hosts.append(f"{address.host}:{default_port}")
        elif is_default_scheme or is_http_scheme:
            http_hosts.append(f"{address.host}:{address.port}")
        # An explicit port with a couchbase scheme names a data port only.
    return http_hosts


def resolve_hosts_as_http(hosts: Iterable[str]) -> list[str]:
    """Turn connection strings into ``host:port`` management addresses, in order."""
    http_hosts: list[str] = []
    for host in hosts:
        try:
            spec = _parse(host)
        except (ConnectionStringError, ValueError) as error:
            wrapped = ConnectionStringError(f"{host} {error}")
            _log.error("error while parsing connection string, err: %s", wrapped)
            raise wrapped from error

        try:
            http_hosts.extend(_resolve_http(spec))
        except ConnectionStringError as error:
            wrapped = ConnectionStringError(f"{spec} {error}")
            _log.error("error while resolving connection string, err: %s", wrapped)
            raise wrapped from error
    return http_hosts