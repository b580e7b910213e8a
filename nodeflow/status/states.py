"""Lifecycle states and their priority table."""

from __future__ import annotations

from enum import Enum
from typing import FrozenSet, Iterable, Optional


class NodeStatus(str, Enum):
    ERROR = "error"
    INVALID = "invalid"
    PROCESSING = "processing"
    CANCELLED = "cancelled"
    DISABLED = "disabled"
    SUCCESS = "success"
    CONFIGURED = "configured"
    PENDING = "pending"
    SKIPPED = "skipped"
    WAITING = "waiting"
    UNKNOWN = "unknown"


STATUS_PRIORITY = {
    NodeStatus.ERROR: 10,
    NodeStatus.INVALID: 9,
    NodeStatus.PROCESSING: 8,
    NodeStatus.CANCELLED: 7,
    NodeStatus.DISABLED: 6,
    NodeStatus.SUCCESS: 5,
    NodeStatus.CONFIGURED: 4,
    NodeStatus.PENDING: 3,
    NodeStatus.SKIPPED: 2,
    NodeStatus.WAITING: 1,
    NodeStatus.UNKNOWN: 0,
}

TERMINAL_STATUSES: FrozenSet[NodeStatus] = frozenset(
    {NodeStatus.SUCCESS, NodeStatus.ERROR, NodeStatus.CANCELLED, NodeStatus.INVALID}
)
EXECUTABLE_STATUSES: FrozenSet[NodeStatus] = frozenset(
    {NodeStatus.WAITING, NodeStatus.CONFIGURED, NodeStatus.SUCCESS}
)


def parse_status(value: NodeStatus | str) -> NodeStatus:
    try:
        return NodeStatus(value)
    except ValueError:
        return NodeStatus.UNKNOWN


def get_priority(status: NodeStatus | str) -> int:
    return STATUS_PRIORITY[parse_status(status)]


def is_terminal(status: NodeStatus | str) -> bool:
    return parse_status(status) in TERMINAL_STATUSES


def can_execute(status: NodeStatus | str) -> bool:
    return parse_status(status) in EXECUTABLE_STATUSES


def compare_priority(left: NodeStatus | str, right: NodeStatus | str) -> int:
    """Positive when ``left`` outranks ``right``."""

    return get_priority(left) - get_priority(right)


def highest_priority(statuses: Iterable[NodeStatus | str]) -> Optional[NodeStatus]:
    parsed = [parse_status(status) for status in statuses]
    if not parsed:
        return None
    return max(parsed, key=get_priority)
