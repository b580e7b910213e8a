"""Linear node pipeline core: data model, configuration, status, routing and execution."""

from .adapters import AdapterRegistry, register_builtin_handlers
from .cache import LRUCache
from .config import NodeflowSettings, configure_logging, get_settings
from .dispatcher import RouteDecision, UnifiedDispatcher
from .errors import (
    ConfigurationError,
    DescriptorError,
    EmptyPipelineError,
    ExecutionError,
    NodeflowError,
    NormalizationError,
    RegistrationError,
    RoutingError,
    StatusError,
)
from .execution import ExecutionOutcome
from .models import DataFormat, NodeTemplate, ResolvedConfiguration, StatusResult, WorkflowData
from .pipeline import PipelineExecutor, PipelineState, WorkflowValidator
from .registry import DynamicNodeRegistry, LegacyNodeRegistry
from .resolver import ConfigurationResolver
from .status import NodeStatus, StatusCalculator

__all__ = [
    "AdapterRegistry",
    "ConfigurationError",
    "ConfigurationResolver",
    "DataFormat",
    "DescriptorError",
    "DynamicNodeRegistry",
    "EmptyPipelineError",
    "ExecutionError",
    "ExecutionOutcome",
    "LRUCache",
    "LegacyNodeRegistry",
    "NodeStatus",
    "NodeTemplate",
    "NodeflowError",
    "NodeflowSettings",
    "NormalizationError",
    "PipelineExecutor",
    "PipelineState",
    "RegistrationError",
    "ResolvedConfiguration",
    "RouteDecision",
    "RoutingError",
    "StatusCalculator",
    "StatusError",
    "StatusResult",
    "UnifiedDispatcher",
    "WorkflowData",
    "WorkflowValidator",
    "configure_logging",
    "get_settings",
    "register_builtin_handlers",
]
