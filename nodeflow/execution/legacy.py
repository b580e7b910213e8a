"""Execution of fixed-shape legacy nodes."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from ..adapters import AdapterRegistry
from ..datamodel import create_text, prepare_input
from ..errors import ExecutionError
from ..resolver import ConfigurationResolver
from ..validation import is_blank
from .outcome import unwrap_adapter_result

LOGGER = logging.getLogger(__name__)

SUPPORTED_TYPES = ("text-input", "tts", "output", "download")

DOWNLOAD_ADAPTER_DEFAULTS = {
    "autoDownload": False,
    "customFileName": "",
    "downloadFormat": "auto",
    "showProgress": True,
    "allowRetry": True,
}


class LegacyExecutor:
    """Runs text-input and output nodes locally and delegates the rest to adapters."""

    def __init__(self, resolver: ConfigurationResolver, adapters: AdapterRegistry) -> None:
        self._resolver = resolver
        self._adapters = adapters

    def supports(self, node_type: str) -> bool:
        return node_type in SUPPORTED_TYPES or self._adapters.has(node_type)

    async def execute(
        self,
        node: Mapping[str, Any],
        input_data: Any,
        *,
        user_config: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        node_id = node.get("id")
        node_type = node.get("type")
        resolved = self._resolver.resolve(node, user_config=user_config)
        if resolved.is_fallback:
            raise ExecutionError(
                f"Configuration of node {node_id} could not be resolved: {resolved.metadata.get('fallbackReason')}",
                node_id=node_id,
                node_type=node_type,
            )
        config = resolved.config

        if node_type == "text-input":
            text = config.get("text")
            if is_blank(text):
                raise ExecutionError("Text content is empty", node_id=node_id, node_type=node_type)
            return create_text(str(text), node_id, {"source": node_type, "length": len(str(text))})
        if node_type == "output":
            if input_data is None:
                return create_text("No input data", node_id, {"source": node_type, "empty": True})
            return input_data

        if not self._adapters.has(node_type):
            raise ExecutionError(f"No adapter registered for node type '{node_type}'", node_id=node_id, node_type=node_type)
        payload = {
            "input": prepare_input(input_data, node_type),
            "config": self.prepare_adapter_config(node_type, config),
            "nodeId": node_id,
            "nodeType": node_type,
        }
        LOGGER.debug("Invoking legacy adapter %s for node %s", node_type, node_id)
        result = await self._adapters.invoke(node_type, payload)
        return unwrap_adapter_result(result, node_id=node_id, node_type=node_type)

    @staticmethod
    def prepare_adapter_config(node_type: str, config: Mapping[str, Any]) -> Dict[str, Any]:
        if node_type == "tts":
            return {
                **config,
                "ttsApiUrl": config.get("ttsApiUrl"),
                "mode": config.get("mode", "character"),
                "character": config.get("selectedCharacter") or config.get("character"),
                "username": config.get("username"),
                "voice_id": config.get("voice_id"),
            }
        if node_type == "download":
            return {**DOWNLOAD_ADAPTER_DEFAULTS, **config}
        return dict(config)
