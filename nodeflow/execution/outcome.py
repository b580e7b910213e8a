"""Execution outcome record."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..errors import ExecutionError


@dataclass
class ExecutionOutcome:
    success: bool
    data: Any = None
    error: Optional[str] = None
    execution_time: int = 0
    source: str = "unknown"
    node_id: Any = None
    node_type: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "success": self.success,
            "data": self.data,
            "execution_time": self.execution_time,
            "source": self.source,
            "nodeId": self.node_id,
            "nodeType": self.node_type,
        }
        if self.error is not None:
            payload["error"] = self.error
        if self.metadata:
            payload["metadata"] = self.metadata
        return payload


def unwrap_adapter_result(result: Any, *, node_id: Any = None, node_type: Optional[str] = None) -> Any:
    """Return ``data`` from an adapter reply shaped ``{success, data, error?}``.

    Values that are not adapter replies are returned unchanged.
    """

    if not isinstance(result, dict) or not isinstance(result.get("success"), bool):
        return result
    if "data" not in result and "error" not in result:
        return result
    if not result["success"]:
        raise ExecutionError(str(result.get("error") or "Adapter reported failure"), node_id=node_id, node_type=node_type)
    return result.get("data")
