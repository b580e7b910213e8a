"""Node execution for the legacy and dynamic families."""

from .dynamic import DEFAULT_HANDLER, DynamicExecutor, build_executor_config
from .legacy import LegacyExecutor
from .manager import ExecutionManager
from .outcome import ExecutionOutcome, unwrap_adapter_result

__all__ = [
    "DEFAULT_HANDLER",
    "DynamicExecutor",
    "ExecutionManager",
    "ExecutionOutcome",
    "LegacyExecutor",
    "build_executor_config",
    "unwrap_adapter_result",
]
