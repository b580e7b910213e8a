"""Execution of schema-driven dynamic nodes through named handlers."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Mapping, Optional

from ..adapters import AdapterRegistry
from ..datamodel import normalize_output, prepare_input
from ..datamodel.formats import as_node_config, find_node_config
from ..errors import ExecutionError
from ..resolver import ConfigurationResolver
from .outcome import unwrap_adapter_result

LOGGER = logging.getLogger(__name__)

DEFAULT_HANDLER = "executeGenericProcessor"

TemplateLookup = Callable[[str], Optional[Any]]


def build_executor_config(
    node_config: Mapping[str, Any],
    *,
    default_timeout: float = 30,
    default_retry: int = 0,
) -> Dict[str, Any]:
    execution = node_config.get("execution") or {"type": "local", "handler": DEFAULT_HANDLER}
    return {
        "type": execution.get("type") or "local",
        "handler": execution.get("handler") or DEFAULT_HANDLER,
        "timeout": execution.get("timeout") or default_timeout,
        "retry": execution.get("retry") or default_retry,
        "endpoint": execution.get("endpoint"),
        "method": execution.get("method"),
        "headers": execution.get("headers"),
    }


class DynamicExecutor:
    def __init__(
        self,
        resolver: ConfigurationResolver,
        handlers: AdapterRegistry,
        *,
        template_lookup: Optional[TemplateLookup] = None,
        default_timeout: float = 30,
        default_retry: int = 0,
    ) -> None:
        self._resolver = resolver
        self._handlers = handlers
        self._template_lookup = template_lookup
        self._default_timeout = default_timeout
        self._default_retry = default_retry

    async def execute(
        self,
        node: Mapping[str, Any],
        input_data: Any,
        *,
        user_config: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        node_id = node.get("id")
        node_type = node.get("type")
        node_config = find_node_config(node)
        if not node_config and self._template_lookup is not None:
            node_config = as_node_config(self._template_lookup(node_type))
        if not node_config:
            raise ExecutionError(f"No dynamic template for node type '{node_type}'", node_id=node_id, node_type=node_type)

        resolved = self._resolver.resolve(node, user_config=user_config)
        executor_config = build_executor_config(
            node_config,
            default_timeout=self._default_timeout,
            default_retry=self._default_retry,
        )
        handler = executor_config["handler"]
        if not self._handlers.has(handler):
            raise ExecutionError(f"Handler '{handler}' is not registered", node_id=node_id, node_type=node_type)

        payload = {
            "workflowData": prepare_input(input_data, node_type, node_config.get("inputSchema")),
            "nodeConfig": node_config,
            "userConfig": resolved.config,
            "nodeType": node_type,
            "execution": executor_config,
        }
        raw = await self._invoke_with_retry(handler, payload, executor_config, node_id, node_type)
        raw = unwrap_adapter_result(raw, node_id=node_id, node_type=node_type)
        return normalize_output(node_type, raw, node_id, node_config.get("outputSchema"))

    async def _invoke_with_retry(
        self,
        handler: str,
        payload: Dict[str, Any],
        executor_config: Mapping[str, Any],
        node_id: Any,
        node_type: str,
    ) -> Any:
        attempts = int(executor_config["retry"]) + 1
        timeout = float(executor_config["timeout"])
        last_error: Optional[BaseException] = None
        for attempt in range(1, attempts + 1):
            try:
                return await asyncio.wait_for(self._handlers.invoke(handler, payload), timeout=timeout)
            except asyncio.CancelledError:
                raise
            except asyncio.TimeoutError as exc:
                last_error = ExecutionError(f"Handler '{handler}' timed out after {timeout:g}s")
                last_error.__cause__ = exc
            except Exception as exc:  # noqa: BLE001
                last_error = exc
            if attempt < attempts:
                LOGGER.warning("Handler %s failed for node %s (attempt %d/%d): %s", handler, node_id, attempt, attempts, last_error)
        raise ExecutionError(str(last_error), node_id=node_id, node_type=node_type) from last_error
