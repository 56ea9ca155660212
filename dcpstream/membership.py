"""Group membership: instance records, liveness and member numbering."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Mapping, Sequence

from dcpstream.checkpoint import PREFIX

__all__ = [
    "MembershipError",
    "MembershipInfo",
    "Instance",
    "instance_id",
    "index_id",
    "order_by_join_time",
    "is_alive",
    "is_cluster_changed",
    "member_info",
    "INSTANCE_TYPE",
]

_log = logging.getLogger(__name__)

INSTANCE_TYPE = "instance"


class MembershipError(RuntimeError):
    """Raised when membership records are malformed or inconsistent."""


@dataclass(frozen=True)
class MembershipInfo:
    """This member's position in the group."""

    member_number: int
    total_members: int

    def is_changed(self, other: MembershipInfo | None) -> bool:
        """Whether this differs from ``other`` (or there is no ``other``)."""
        if other is None:
            return True
        return (self.member_number, self.total_members) != (other.member_number, other.total_members)


@dataclass(frozen=True)
class Instance:
    """A registered group member and its last heartbeat, in nanoseconds since the epoch."""

    id: str | None = None
    type: str = INSTANCE_TYPE
    heartbeat_time: int = 0
    cluster_join_time: int = 0

    def to_json(self) -> str:
        """The JSON document stored for this instance; ``id`` is left out when unset."""
        document: dict[str, Any] = {}
        if self.id is not None:
            document["id"] = self.id
        document["type"] = self.type
        document["heartbeatTime"] = self.heartbeat_time
        document["clusterJoinTime"] = self.cluster_join_time
        return json.dumps(document, separators=(",", ":"))

    @classmethod
    def from_json(cls, instance_id: str, text: str | bytes) -> Instance:
        """Read an instance document stored under ``instance_id``."""
        try:
            document = json.loads(text)
        except ValueError as error:
            raise MembershipError(f"invalid instance document: {error}") from error
        if not isinstance(document, dict):
            raise MembershipError("instance document must be a JSON object")
        try:
            return cls(
                id=str(document.get("id", instance_id)),
                type=str(document.get("type", "")),
                heartbeat_time=int(document.get("heartbeatTime", 0)),
                cluster_join_time=int(document.get("clusterJoinTime", 0)),
            )
        except (TypeError, ValueError) as error:
            raise MembershipError(f"invalid instance document: {error}") from error


def instance_id(group_name: str, unique: str) -> str:
    """The document key of one member of ``group_name``."""
    return f"{PREFIX}{group_name}:{INSTANCE_TYPE}:{unique}"


def index_id(group_name: str) -> str:
    """The document key of the index of all members of ``group_name``."""
    return f"{PREFIX}{group_name}:{INSTANCE_TYPE}:all"


def order_by_join_time(index: Mapping[str, int]) -> list[str]:
    """Instance ids ordered by the time they joined the cluster."""
    return sorted(index, key=lambda key: index[key])


def _nanoseconds(duration: timedelta) -> int:
    return (duration // timedelta(microseconds=1)) * 1000


def is_alive(
    heartbeat_time: int,
    heartbeat_interval: timedelta,
    tolerance: timedelta,
    now: int | None = None,
) -> bool:
    """Whether a heartbeat at ``heartbeat_time`` is recent enough at ``now`` (nanoseconds)."""
    if now is None:
        now = time.time_ns()
    upper_limit = _nanoseconds(heartbeat_interval) + _nanoseconds(tolerance)
    passed = now - heartbeat_time
    _log.debug(
        "passed seconds since last heartbeat: %s, upper wait limit second: %s",
        passed // 1_000_000_000, upper_limit // 1_000_000_000,
    )
    return passed < upper_limit


def is_cluster_changed(previous: Sequence[Instance], current: Sequence[Instance]) -> bool:
    """Whether the ordered set of live instances differs."""
    if len(previous) != len(current):
        return True
    return any(before.id != after.id for before, after in zip(previous, current))


def member_info(instances: Sequence[Instance], self_id: str) -> MembershipInfo:
    """This member's 1-based number among ``instances``; raise if it is not there."""
    for number, instance in enumerate(instances, start=1):
        if instance.id == self_id:
            return MembershipInfo(member_number=number, total_members=len(instances))
    error = MembershipError("cant find self in cluster")
    _log.error("error while rebalance, self = %s, err: %s", self_id, error)
    raise error