"""Identifiers of per-vBucket checkpoint documents."""

from __future__ import annotations

import logging

__all__ = ["InvalidGroupNameError", "checkpoint_id", "PREFIX"]

_log = logging.getLogger(__name__)

PREFIX = "_connector:cbgo:"


class InvalidGroupNameError(ValueError):
    """Raised when a group name cannot be used in a checkpoint key."""


def checkpoint_id(vb_id: int, group_name: str) -> str:
    """The document key holding the checkpoint of ``vb_id`` for ``group_name``."""
    if "." in group_name:
        error = InvalidGroupNameError("unsupported group name includes dot")
        _log.error("error while get checkpoint id, err: %s", error)
        raise error
    return f"{PREFIX}{group_name}:checkpoint:{vb_id}"