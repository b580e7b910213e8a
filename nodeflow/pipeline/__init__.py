"""Linear pipeline execution and pre-flight validation."""

from .executor import PipelineExecutor, PipelineState, new_workflow_id, text_statistics
from .report import NodeRunRecord, build_execution_report, format_summary
from .validator import DATA_FLOW_COMPATIBILITY, ValidationRule, WorkflowValidator

__all__ = [
    "DATA_FLOW_COMPATIBILITY",
    "NodeRunRecord",
    "PipelineExecutor",
    "PipelineState",
    "ValidationRule",
    "WorkflowValidator",
    "build_execution_report",
    "format_summary",
    "new_workflow_id",
    "text_statistics",
]
