"""Sequential pipeline runner on top of the unified dispatcher."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
import uuid
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from ..config import NodeflowSettings
from ..datamodel import as_workflow_data, create_error, find_node_config, get_preview, normalize_output
from ..datamodel.formats import node_data
from ..dispatcher import UnifiedDispatcher
from ..errors import EmptyPipelineError
from ..models.workflow_data import WorkflowData
from .report import NodeRunRecord, build_execution_report
from .validator import WorkflowValidator

LOGGER = logging.getLogger(__name__)

LogCallback = Callable[[str, str], Union[None, Awaitable[None]]]
NodeUpdate = Callable[[List[Dict[str, Any]]], List[Dict[str, Any]]]
ResultSink = Callable[[NodeUpdate], Union[None, Awaitable[None]]]

SEVERITY_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

# Rough per-type step cost in milliseconds.
STEP_TIME_ESTIMATES = {
    "text-input": 10,
    "download": 200,
    "output": 100,
    "asr-node": 3000,
    "media-input": 500,
}
DEFAULT_STEP_ESTIMATE = 500
TTS_MIN_ESTIMATE = 1000
TTS_MS_PER_CHAR = 50


class PipelineState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


def new_workflow_id() -> str:
    return f"workflow_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"


def text_statistics(text: str) -> Dict[str, int]:
    return {
        "length": len(text),
        "words": len(text.split()),
        "lines": text.count("\n") + 1,
    }


def truncate_text(text: str, limit: int = 40) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def _serialize(value: Any) -> Any:
    return value.to_dict() if isinstance(value, WorkflowData) else value


def _result_update(node_id: Any, result: Dict[str, Any]) -> NodeUpdate:
    def apply(nodes: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [
            {**node, "data": {**node_data(node), "result": result}} if node.get("id") == node_id else node
            for node in nodes
        ]

    return apply


async def _maybe_await(value: Any) -> None:
    if inspect.isawaitable(value):
        await value


class PipelineExecutor:
    """Run a linear list of nodes, feeding each step the previous step's output.

    Steps never overlap: step ``i + 1`` starts only after step ``i``'s result,
    success or handled failure, has been recorded.
    """

    def __init__(
        self,
        dispatcher: UnifiedDispatcher,
        *,
        settings: Optional[NodeflowSettings] = None,
        inter_step_delay: Optional[float] = None,
        continue_on_failure_types: Optional[Iterable[str]] = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.settings = settings or dispatcher.settings
        self.inter_step_delay = (
            self.settings.inter_step_delay_seconds if inter_step_delay is None else inter_step_delay
        )
        self.continue_on_failure_types = frozenset(
            self.settings.continue_on_failure_types if continue_on_failure_types is None else continue_on_failure_types
        )
        self._legacy_types = frozenset(self.settings.legacy_types)
        self._state = PipelineState.IDLE
        self._cancel_requested = False
        self._stats = {
            "totalExecutions": 0,
            "successfulExecutions": 0,
            "failedExecutions": 0,
            "averageExecutionTime": 0,
            "lastExecutionTime": None,
        }

    @property
    def state(self) -> PipelineState:
        return self._state

    def cancel(self) -> None:
        """Stop scheduling further steps; an in-flight step runs to completion."""

        if self._state is PipelineState.RUNNING:
            self._cancel_requested = True

    async def run(
        self,
        nodes: Sequence[Mapping[str, Any]],
        log_callback: Optional[LogCallback] = None,
        result_sink: Optional[ResultSink] = None,
    ) -> Dict[str, Any]:
        """Execute ``nodes`` in order and return ``{success, finalResult, executionReport, dataFlow}``.

        Raises ``EmptyPipelineError`` before any dispatch when ``nodes`` is empty.
        """

        nodes = list(nodes or [])
        if not nodes:
            await self._emit(log_callback, "Pipeline is empty; add at least one node", "error")
            raise EmptyPipelineError("Pipeline is empty; add at least one node")

        loop = asyncio.get_running_loop()
        run_start = loop.time()
        workflow_id = new_workflow_id()
        total = len(nodes)
        self._state = PipelineState.RUNNING
        self._cancel_requested = False
        await self._emit(log_callback, f"Starting pipeline {workflow_id} with {total} nodes", "info")

        previous: Any = None
        records: List[NodeRunRecord] = []
        data_flow: List[Dict[str, Any]] = []
        aborted_at: Optional[int] = None
        cancelled = False

        for index, node in enumerate(nodes):
            step = index + 1
            node_id = node.get("id")
            node_type = node.get("type")
            label = node_data(node).get("label") or node_type
            if self._cancel_requested:
                cancelled = True
                aborted_at = step
                await self._emit(log_callback, f"Pipeline cancelled before step {step}/{total}", "warning")
                break

            await self._emit(log_callback, f"[step {step}/{total}] Running {label}", "info")
            step_start = loop.time()
            outcome = await self.dispatcher.execute(node, previous, user_config=node_data(node).get("config") or {})
            step_ms = int((loop.time() - step_start) * 1000)
            execution_info = {"executionTime": step_ms, "stepNumber": step, "workflowId": workflow_id}

            if outcome.success:
                output = await self._post_process(node, outcome.data, log_callback)
                data_flow.append(
                    {
                        "stepNum": step,
                        "nodeId": node_id,
                        "nodeType": node_type,
                        "inputData": previous,
                        "outputData": output,
                        "executedBy": outcome.source,
                    }
                )
                previous = output
                records.append(
                    NodeRunRecord(
                        node_id=node_id,
                        node_type=node_type,
                        success=True,
                        execution_time=step_ms,
                        step=step,
                        executed_by=outcome.source,
                        output_summary=self._summarize(outcome.data),
                    )
                )
                await self._write_result(
                    result_sink,
                    node_id,
                    {
                        "success": True,
                        "data": _serialize(outcome.data),
                        "timestamp": int(time.time() * 1000),
                        "executionInfo": execution_info,
                    },
                )
                if index < total - 1 and self.inter_step_delay > 0:
                    await asyncio.sleep(self.inter_step_delay)
                continue

            message = outcome.error or "Node execution failed"
            records.append(
                NodeRunRecord(
                    node_id=node_id,
                    node_type=node_type,
                    success=False,
                    execution_time=step_ms,
                    step=step,
                    executed_by=outcome.source,
                    error=message,
                )
            )
            error_payload = {
                "type": "error",
                "error": message,
                "step": step,
                "nodeId": node_id,
                "executionTime": step_ms,
            }
            await self._write_result(
                result_sink,
                node_id,
                {
                    "success": False,
                    "data": error_payload,
                    "timestamp": int(time.time() * 1000),
                    "executionInfo": execution_info,
                    "error": message,
                },
            )
            previous = create_error(message, node_id, {"step": step})
            await self._emit(log_callback, f"[step {step}] Failed: {message}", "error")
            if node_type in self.continue_on_failure_types:
                await self._emit(log_callback, f"[step {step}] {node_type} node failed; continuing", "warning")
                continue
            aborted_at = step
            await self._emit(log_callback, f"Pipeline aborted by failure at step {step}", "error")
            break

        total_ms = int((loop.time() - run_start) * 1000)
        report = build_execution_report(
            workflow_id,
            records,
            total_ms,
            node_count=total,
            aborted_at_step=aborted_at,
        )
        report["cancelled"] = cancelled
        success = aborted_at is None
        self._state = PipelineState.COMPLETED if success else PipelineState.ABORTED
        self._record_run(success, total_ms)
        if success:
            await self._emit(log_callback, f"Report: {report['summary']}", "info")
            await self._emit(log_callback, f"Pipeline completed in {total_ms}ms", "success")
        else:
            await self._emit(log_callback, f"Pipeline stopped after {total_ms}ms: {report['summary']}", "error")
        return {
            "success": success,
            "workflowId": workflow_id,
            "finalResult": previous,
            "executionReport": report,
            "dataFlow": data_flow,
        }

    async def _post_process(self, node: Mapping[str, Any], raw: Any, log_callback: Optional[LogCallback]) -> Any:
        node_type = node.get("type")
        label = node_data(node).get("label") or node_type
        envelope = as_workflow_data(raw)
        if node_type == "text-input" and envelope is not None and envelope.type == "text":
            text = str(envelope.text or "")
            stats = text_statistics(text)
            await self._emit(
                log_callback,
                f"[{label}] Text output ({stats['length']} chars, {stats['words']} words, "
                f"{stats['lines']} lines): \"{truncate_text(text)}\"",
                "success",
            )
        elif envelope is not None and envelope.type == "audio":
            audio = envelope.content.get("audio") or {}
            await self._emit(
                log_callback,
                f"[{label}] Audio ready - id: {audio.get('id')}, format: {audio.get('format') or 'unknown'}",
                "success",
            )
        elif node_type in ("download", "output"):
            summary = self._summarize(raw)
            await self._emit(
                log_callback,
                f"[{label}] Received {summary.get('type', 'unknown')} result: {summary.get('details', 'unknown size')}",
                "success",
            )
        else:
            await self._emit(log_callback, f"[{label}] Step succeeded", "success")

        node_config = find_node_config(node) or {}
        return normalize_output(
            node_type,
            raw,
            node.get("id"),
            node_config.get("outputSchema"),
            legacy_types=self._legacy_types,
        )

    @staticmethod
    def _summarize(value: Any) -> Dict[str, Any]:
        envelope = as_workflow_data(value)
        if envelope is not None:
            return get_preview(envelope)
        if value is None:
            return {}
        return {"type": type(value).__name__, "details": truncate_text(str(value))}

    @staticmethod
    async def _write_result(result_sink: Optional[ResultSink], node_id: Any, result: Dict[str, Any]) -> None:
        if result_sink is None:
            return
        try:
            await _maybe_await(result_sink(_result_update(node_id, result)))
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Result sink failed for node %s: %s", node_id, exc)

    @staticmethod
    async def _emit(log_callback: Optional[LogCallback], message: str, severity: str) -> None:
        LOGGER.log(SEVERITY_LEVELS.get(severity, logging.INFO), message)
        if log_callback is None:
            return
        try:
            await _maybe_await(log_callback(message, severity))
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Log callback failed: %s", exc)

    def _record_run(self, success: bool, duration_ms: int) -> None:
        stats = self._stats
        stats["totalExecutions"] += 1
        stats["successfulExecutions" if success else "failedExecutions"] += 1
        runs = stats["totalExecutions"]
        stats["averageExecutionTime"] = round((stats["averageExecutionTime"] * (runs - 1) + duration_ms) / runs)
        stats["lastExecutionTime"] = duration_ms

    def validate_workflow(self, nodes: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
        validator = WorkflowValidator(
            get_template=self.dispatcher.get_node_type_config,
            validate_node=self.dispatcher.validate,
        )
        return validator.validate(nodes)

    def estimate_execution_time(self, nodes: Sequence[Mapping[str, Any]]) -> int:
        """Rough duration of a run in milliseconds, excluding inter-step pauses."""

        estimate = 0
        for index, node in enumerate(nodes):
            node_type = node.get("type")
            if node_type == "tts":
                estimate += max(TTS_MIN_ESTIMATE, _preceding_text_length(nodes, index) * TTS_MS_PER_CHAR)
            else:
                estimate += STEP_TIME_ESTIMATES.get(node_type, DEFAULT_STEP_ESTIMATE)
        return estimate

    def get_stats(self) -> Dict[str, Any]:
        return {**self._stats, "state": self._state.value, "dispatcher": self.dispatcher.get_stats()}


def _preceding_text_length(nodes: Sequence[Mapping[str, Any]], index: int) -> int:
    for node in reversed(nodes[:index]):
        if node.get("type") == "text-input":
            data = node_data(node)
            text = data.get("text") or (data.get("config") or {}).get("text") or ""
            return len(str(text))
    return 0
