"""Node lifecycle state calculation."""

from .calculator import StatusCalculator
from .states import (
    EXECUTABLE_STATUSES,
    STATUS_PRIORITY,
    TERMINAL_STATUSES,
    NodeStatus,
    can_execute,
    compare_priority,
    get_priority,
    highest_priority,
    is_terminal,
    parse_status,
)

__all__ = [
    "EXECUTABLE_STATUSES",
    "NodeStatus",
    "STATUS_PRIORITY",
    "StatusCalculator",
    "TERMINAL_STATUSES",
    "can_execute",
    "compare_priority",
    "get_priority",
    "highest_priority",
    "is_terminal",
    "parse_status",
]
