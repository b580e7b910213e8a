"""Data models shared across the nodeflow core."""

from .descriptor import DescriptorData, DescriptorMeta, DescriptorNode, NodeDescriptor
from .node_types import (
    CONTINUE_ON_FAILURE_TYPES,
    EXTERNAL_CONFIG_KEYS,
    KNOWN_DYNAMIC_TYPES,
    LEGACY_EXCLUDED_KEYS,
    LEGACY_FIELD_MAP,
    LEGACY_NODE_TYPES,
    DataFormat,
)
from .results import ResolvedConfiguration, StatusResult
from .template import ExecutionDescriptor, FieldSpec, NodeTemplate
from .workflow_data import WORKFLOW_DATA_TYPES, WorkflowData

__all__ = [
    "CONTINUE_ON_FAILURE_TYPES",
    "DataFormat",
    "DescriptorData",
    "DescriptorMeta",
    "DescriptorNode",
    "EXTERNAL_CONFIG_KEYS",
    "ExecutionDescriptor",
    "FieldSpec",
    "KNOWN_DYNAMIC_TYPES",
    "LEGACY_EXCLUDED_KEYS",
    "LEGACY_FIELD_MAP",
    "LEGACY_NODE_TYPES",
    "NodeDescriptor",
    "NodeTemplate",
    "ResolvedConfiguration",
    "StatusResult",
    "WORKFLOW_DATA_TYPES",
    "WorkflowData",
]
