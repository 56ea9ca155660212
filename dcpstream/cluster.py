"""Cluster-side bookkeeping: ping evaluation, connection sizing and vBucket sequence numbers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Iterable, Mapping, MutableMapping, Sequence

from dcpstream.config import DcpConfig
from dcpstream.units import resolve_size

__all__ = [
    "ServiceType",
    "PingState",
    "ServiceResult",
    "PingResult",
    "UnhealthyServicesError",
    "FailoverEntry",
    "AgentQueue",
    "service_endpoint",
    "evaluate_ping",
    "same_hosts",
    "connection_settings",
    "rollback_vb_uuid",
    "merge_seq_nos",
]

_log = logging.getLogger(__name__)


class ServiceType(str, Enum):
    """Cluster services that are pinged."""

    MEMD = "memd"
    MGMT = "mgmt"


class PingState(str, Enum):
    OK = "ok"
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass(frozen=True)
class ServiceResult:
    """The outcome of pinging one endpoint of a service."""

    endpoint: str
    state: PingState = PingState.OK
    latency: timedelta = timedelta(0)
    error: Exception | None = None


@dataclass(frozen=True)
class PingResult:
    """Healthy endpoints found by a ping."""

    memd_endpoint: str = ""
    mgmt_endpoint: str = ""


class UnhealthyServicesError(RuntimeError):
    """Raised when a ping finds no healthy endpoint for a required service."""


@dataclass(frozen=True)
class FailoverEntry:
    """One entry of a vBucket's failover log."""

    vb_uuid: int
    seq_no: int


@dataclass(frozen=True)
class AgentQueue:
    """Fill level of one connection pipeline's queue."""

    address: str
    is_dcp: bool
    current: int
    max: int


def service_endpoint(
    services: Mapping[ServiceType, Sequence[ServiceResult]], service_type: ServiceType
) -> str:
    """The first endpoint of ``service_type`` that answered OK without error, or ``""``."""
    for result in services.get(service_type, ()):
        if result.error is None and result.state == PingState.OK:
            return result.endpoint
    return ""


def _log_latencies(services: Mapping[ServiceType, Sequence[ServiceResult]]) -> None:
    for service_type, results in services.items():
        for result in results:
            latency_ms = int(result.latency.total_seconds() * 1000)
            if result.error is None:
                _log.debug(
                    "ping result for service type: %s, endpoint: %s, latency: %sms, state: %s",
                    service_type.value, result.endpoint, latency_ms, result.state.value,
                )
            else:
                _log.warning(
                    "ping result error for service type: %s, endpoint: %s, latency: %sms, state: %s, err: %s",
                    service_type.value, result.endpoint, latency_ms, result.state.value, result.error,
                )


def evaluate_ping(services: Mapping[ServiceType, Sequence[ServiceResult]]) -> PingResult:
    """Pick healthy data and management endpoints; raise if either is missing."""
    _log_latencies(services)
    result = PingResult(
        memd_endpoint=service_endpoint(services, ServiceType.MEMD),
        mgmt_endpoint=service_endpoint(services, ServiceType.MGMT),
    )
    if not result.memd_endpoint or not result.mgmt_endpoint:
        raise UnhealthyServicesError("some services are not healthy")
    return result


def same_hosts(first: Iterable[str], second: Iterable[str]) -> bool:
    """Whether two host lists name the same hosts, ignoring order."""
    return sorted(first) == sorted(second)


def connection_settings(config: DcpConfig) -> tuple[int, timedelta]:
    """Connection buffer size and timeout for the source bucket connection.

    When the metadata lives in the same bucket on the same hosts, the larger of the
    two configured values is used, since one connection then serves both.
    """
    buffer_size = resolve_size(config.connection_buffer_size)
    timeout = config.connection_timeout

    if config.is_couchbase_metadata():
        metadata = config.couchbase_metadata()
        if metadata.bucket == config.bucket_name and same_hosts(config.hosts, metadata.hosts):
            buffer_size = max(buffer_size, metadata.connection_buffer_size)
            timeout = max(timeout, metadata.connection_timeout)

    return buffer_size, timeout


def rollback_vb_uuid(failover_log: Sequence[FailoverEntry], rollback_seq_no: int) -> int:
    """The vBucket UUID to resume from after a rollback to ``rollback_seq_no``.

    This is the UUID of the earliest failover entry at or below the rollback point, or 0.
    """
    return next(
        (entry.vb_uuid for entry in failover_log if rollback_seq_no >= entry.seq_no),
        0,
    )


def merge_seq_nos(
    seq_nos: MutableMapping[int, int], entries: Iterable[tuple[int, int]]
) -> MutableMapping[int, int]:
    """Record ``(vb_id, seq_no)`` pairs, keeping the highest sequence number per vBucket."""
    for vb_id, seq_no in entries:
        current = seq_nos.get(vb_id)
        if current is None or seq_no > current:
            seq_nos[vb_id] = seq_no
    return seq_nos