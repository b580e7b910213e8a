"""Per-node run records and the run report built from them."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence


@dataclass
class NodeRunRecord:
    node_id: Any
    node_type: Optional[str]
    success: bool
    execution_time: int
    step: int
    executed_by: str = "unknown"
    error: Optional[str] = None
    output_summary: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "nodeId": self.node_id,
            "nodeType": self.node_type,
            "success": self.success,
            "executionTime": self.execution_time,
            "step": self.step,
            "executedBy": self.executed_by,
        }
        if self.error is not None:
            payload["error"] = self.error
        if self.output_summary:
            payload["outputSummary"] = self.output_summary
        return payload


def format_summary(success_count: int, node_count: int, average_ms: int) -> str:
    return f"{success_count}/{node_count} nodes succeeded, avg {average_ms}ms"


def build_execution_report(
    workflow_id: str,
    records: Sequence[NodeRunRecord],
    total_execution_time: int,
    *,
    node_count: Optional[int] = None,
    aborted_at_step: Optional[int] = None,
) -> Dict[str, Any]:
    """Aggregate step records into the run report.

    ``node_count`` is the length of the submitted pipeline; when the run aborts
    it is larger than the number of records.
    """

    node_count = len(records) if node_count is None else node_count
    success_count = sum(1 for record in records if record.success)
    failure_count = len(records) - success_count
    average = round(sum(record.execution_time for record in records) / len(records)) if records else 0
    node_results: List[Dict[str, Any]] = [record.to_dict() for record in records]
    return {
        "workflowId": workflow_id,
        "totalExecutionTime": total_execution_time,
        "nodeCount": node_count,
        "executedCount": len(records),
        "successCount": success_count,
        "failureCount": failure_count,
        "averageNodeTime": average,
        "summary": format_summary(success_count, node_count, average),
        "nodeResults": node_results,
        "aborted": aborted_at_step is not None,
        "abortedAtStep": aborted_at_step,
    }
