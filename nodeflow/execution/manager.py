"""Family-aware execution entry point."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from ..errors import ExecutionError
from .dynamic import DynamicExecutor
from .legacy import LegacyExecutor
from .outcome import ExecutionOutcome

LOGGER = logging.getLogger(__name__)


@dataclass
class ExecutionManager:
    legacy_executor: LegacyExecutor
    dynamic_executor: DynamicExecutor
    stats: Dict[str, Any] = field(
        default_factory=lambda: {"total": 0, "succeeded": 0, "failed": 0, "totalTime": 0}
    )

    async def execute(
        self,
        node: Mapping[str, Any],
        input_data: Any,
        *,
        family: str,
        user_config: Optional[Mapping[str, Any]] = None,
    ) -> ExecutionOutcome:
        """Run ``node`` on its family executor; failures come back as unsuccessful outcomes."""

        node_id = node.get("id")
        node_type = node.get("type")
        executor = self.dynamic_executor if family == "dynamic" else self.legacy_executor
        loop = asyncio.get_running_loop()
        start = loop.time()
        self.stats["total"] += 1
        try:
            data = await executor.execute(node, input_data, user_config=user_config)
        except asyncio.CancelledError:
            raise
        except ExecutionError as exc:
            LOGGER.warning("Node %s (%s) failed: %s", node_id, node_type, exc)
            return self._failure(node, family, str(exc), start)
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Node %s (%s) raised: %s", node_id, node_type, exc)
            return self._failure(node, family, str(exc) or type(exc).__name__, start)
        duration_ms = int((loop.time() - start) * 1000)
        self.stats["succeeded"] += 1
        self.stats["totalTime"] += duration_ms
        return ExecutionOutcome(
            success=True,
            data=data,
            execution_time=duration_ms,
            source=family,
            node_id=node_id,
            node_type=node_type,
        )

    def _failure(self, node: Mapping[str, Any], family: str, message: str, start: float) -> ExecutionOutcome:
        duration_ms = int((asyncio.get_running_loop().time() - start) * 1000)
        self.stats["failed"] += 1
        self.stats["totalTime"] += duration_ms
        return ExecutionOutcome(
            success=False,
            error=message,
            execution_time=duration_ms,
            source=family,
            node_id=node.get("id"),
            node_type=node.get("type"),
        )

    def get_stats(self) -> Dict[str, Any]:
        total = self.stats["total"]
        return {
            **self.stats,
            "averageTime": round(self.stats["totalTime"] / total) if total else 0,
            "successRate": round(self.stats["succeeded"] / total, 3) if total else 0.0,
        }
