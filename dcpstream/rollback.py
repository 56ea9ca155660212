"""Rollback mitigation bookkeeping: persisted sequence numbers across replicas."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

__all__ = ["ReplicaState", "ConfigRevision", "min_seq_no"]

_log = logging.getLogger(__name__)


@dataclass
class ReplicaState:
    """The last known vBucket UUID and persisted sequence number of one copy of a vBucket.

    An absent replica is one the cluster configuration has no server for; it is
    never observed and never counts towards the persisted sequence number.
    """

    vb_uuid: int = 0
    seq_no: int = 0
    absent: bool = False

    def is_outdated(self, vb_uuid: int, persist_seq_no: int) -> bool:
        """Whether a freshly observed state differs from the one recorded here."""
        if self.absent:
            return False
        return self.vb_uuid != vb_uuid or self.seq_no != persist_seq_no

    def update(self, vb_uuid: int, seq_no: int) -> None:
        """Record a freshly observed state."""
        self.vb_uuid = vb_uuid
        self.seq_no = seq_no


@dataclass(frozen=True)
class ConfigRevision:
    """The revision of a cluster configuration: its epoch and its id within the epoch."""

    rev_epoch: int = 0
    rev_id: int = 0

    def is_newer_than(self, other: ConfigRevision) -> bool:
        """Whether this revision supersedes ``other``."""
        return (self.rev_epoch, self.rev_id) > (other.rev_epoch, other.rev_id)


def min_seq_no(replicas: Sequence[ReplicaState]) -> int:
    """The sequence number persisted on every present replica of a vBucket.

    Returns 0 when every replica is absent or when the present replicas disagree
    on the vBucket UUID, since nothing can then be considered safely persisted.
    """
    present = [replica for replica in replicas if not replica.absent]
    if not present:
        _log.error("all replicas absent")
        return 0

    vb_uuid = present[0].vb_uuid
    for index, replica in enumerate(present[1:], start=1):
        if replica.vb_uuid != vb_uuid:
            _log.debug(
                "vbUUID mismatch %s != %s for %s index of %s",
                vb_uuid, replica.vb_uuid, index, len(replicas),
            )
            return 0

    return min(replica.seq_no for replica in present)