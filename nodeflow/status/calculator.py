"""Derive a node's lifecycle state from its configuration and execution artifacts."""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from ..cache import LRUCache, fingerprint
from ..datamodel.envelope import now_iso
from ..datamodel.formats import node_data
from ..errors import StatusError
from ..models.node_types import ILLEGAL_FILENAME_PATTERN
from ..models.results import ResolvedConfiguration, StatusResult
from ..resolver import ConfigurationResolver
from ..validation import is_blank
from .states import NodeStatus, can_execute, get_priority, is_terminal

LOGGER = logging.getLogger(__name__)

CALCULATOR_NAME = "StatusCalculator"

StatusListener = Callable[[StatusResult, Optional[str]], Any]
Candidate = Tuple[NodeStatus, Dict[str, Any]]

# Boolean data flags that pin a node to a state of their own.
FLAG_STATUSES = (
    ("cancelled", NodeStatus.CANCELLED),
    ("disabled", NodeStatus.DISABLED),
    ("skipped", NodeStatus.SKIPPED),
)


def _missing(value: Any) -> bool:
    """Falsy values other than ``0`` and ``False``."""

    if value is False or (isinstance(value, (int, float)) and not isinstance(value, bool) and value == 0):
        return False
    if isinstance(value, str):
        return not value.strip()
    return not value


class StatusCalculator:
    """Pure status derivation with an owned result cache.

    A busy node is always ``processing``. Otherwise every state whose condition
    holds (execution result, state flags, configuration completeness) is a
    candidate and the one with the highest priority wins.
    """

    def __init__(
        self,
        resolver: Optional[ConfigurationResolver] = None,
        *,
        cache: Optional[LRUCache[StatusResult]] = None,
    ) -> None:
        self._resolver = resolver or ConfigurationResolver()
        self._cache: LRUCache[StatusResult] = cache if cache is not None else LRUCache()
        self._listeners: Dict[Any, List[StatusListener]] = {}
        self._last_status: Dict[Any, str] = {}
        self._stats = {"calculations": 0, "cacheHits": 0, "errors": 0}

    @property
    def cache(self) -> LRUCache[StatusResult]:
        return self._cache

    def calculate_status(
        self,
        node: Mapping[str, Any],
        *,
        config_result: Optional[ResolvedConfiguration] = None,
        force_type: Optional[str] = None,
        use_cache: bool = True,
    ) -> StatusResult:
        self._stats["calculations"] += 1
        use_cache = use_cache and config_result is None
        try:
            cache_key = self._cache_key(node, force_type)
            if use_cache:
                cached = self._cache.get(cache_key)
                if cached is not None:
                    self._stats["cacheHits"] += 1
                    return cached
            family = force_type or self.detect_calculation_type(node)
            if config_result is None:
                config_result = self._resolver.resolve(node, validate=True, strict_validation=False)
            status, details = self._derive(node, family, config_result)
            result = self._post_process(self.create_status_result(status, details), node, config_result)
        except Exception as exc:  # noqa: BLE001
            self._stats["errors"] += 1
            error = exc if isinstance(exc, StatusError) else StatusError(str(exc))
            LOGGER.warning("Status calculation failed for node %s: %s", _node_id(node), error)
            return self.create_error_status(node, error)
        if use_cache:
            self._cache.set(cache_key, result)
        self._notify(node, result)
        return result

    def calculate_batch_status(self, nodes: Iterable[Mapping[str, Any]]) -> Dict[Any, StatusResult]:
        return {_node_id(node): self.calculate_status(node) for node in nodes}

    @staticmethod
    def detect_calculation_type(node: Any) -> str:
        if not isinstance(node, Mapping) or not isinstance(node.get("data"), Mapping):
            return "unknown"
        if node["data"].get("nodeConfig") or node.get("nodeConfig"):
            return "dynamic"
        return "legacy"

    # Derivation

    def _derive(self, node: Mapping[str, Any], family: str, config_result: ResolvedConfiguration) -> Candidate:
        data = node_data(node)
        if data.get("isProcessing"):
            return NodeStatus.PROCESSING, {"reason": "Node is currently processing", "progress": data.get("progress")}

        candidates: List[Candidate] = []
        candidates.extend(self._result_candidates(data, family))
        for flag, status in FLAG_STATUSES:
            if data.get(flag):
                candidates.append((status, {"reason": f"Node is {status.value}"}))
        if family == "legacy":
            candidates.append(self._legacy_config_status(node.get("type"), config_result))
        elif family == "dynamic":
            candidates.append(self._dynamic_config_status(node, config_result))
        else:
            candidates.append(self._fallback_config_status(data))
        return max(candidates, key=lambda candidate: get_priority(candidate[0]))

    @staticmethod
    def _result_candidates(data: Mapping[str, Any], family: str) -> List[Candidate]:
        result = data.get("result")
        if not isinstance(result, Mapping):
            return []
        if result.get("error"):
            return [(NodeStatus.ERROR, {"reason": "Execution failed", "error": result["error"]})]
        if result.get("success") or (family != "dynamic" and result.get("data")):
            return [(NodeStatus.SUCCESS, {"reason": "Execution completed successfully"})]
        return []

    def _legacy_config_status(self, node_type: Optional[str], config_result: ResolvedConfiguration) -> Candidate:
        config = config_result.config
        if node_type == "text-input":
            if _missing(config.get("text")):
                return NodeStatus.WAITING, {"reason": "Text content is required", "missingFields": ["text"]}
            return NodeStatus.CONFIGURED, {"reason": "Text input configured", "textLength": len(str(config["text"]))}
        if node_type == "tts":
            mode = config.get("mode")
            if _missing(mode):
                return NodeStatus.WAITING, {"reason": "TTS mode is required", "missingFields": ["mode"]}
            missing: List[str] = []
            if mode == "character" and _missing(config.get("selectedCharacter")):
                missing.append("selectedCharacter")
            if mode == "custom":
                missing.extend(field for field in ("username", "voice_id") if _missing(config.get(field)))
            if missing:
                return NodeStatus.WAITING, {
                    "reason": f"TTS configuration incomplete for {mode} mode",
                    "missingFields": missing,
                }
            return NodeStatus.CONFIGURED, {"reason": "TTS configured", "mode": mode}
        if node_type == "output":
            return NodeStatus.CONFIGURED, {"reason": "Output node ready", "displayMode": config.get("displayMode", "auto")}
        if node_type == "download":
            file_name = config.get("customFileName")
            if isinstance(file_name, str) and re.search(ILLEGAL_FILENAME_PATTERN, file_name):
                return NodeStatus.INVALID, {"reason": "Invalid filename characters", "invalidField": "customFileName"}
            return NodeStatus.CONFIGURED, {"reason": "Download node configured", "format": config.get("downloadFormat", "auto")}
        return self._generic_config_status(config, config_result.validation)

    @staticmethod
    def _generic_config_status(config: Mapping[str, Any], validation: Mapping[str, Any]) -> Candidate:
        missing = [field for field in validation.get("required") or [] if _missing(config.get(field))]
        if missing:
            return NodeStatus.WAITING, {"reason": "Required fields missing", "missingFields": missing}
        return NodeStatus.CONFIGURED, {"reason": "Configuration valid"}

    def _dynamic_config_status(self, node: Mapping[str, Any], config_result: ResolvedConfiguration) -> Candidate:
        node_config = config_result.node_config or node_data(node).get("nodeConfig") or {}
        fields = node_config.get("fields") if isinstance(node_config, Mapping) else None
        if fields is None:
            return NodeStatus.INVALID, {"reason": "Missing node configuration or fields definition"}
        if not fields:
            return NodeStatus.CONFIGURED, {"reason": "No parameters required", "fieldsCount": 0}

        config = config_result.config
        if config.get("_userSaved") is not True and config.get("_configSaved") is not True:
            # Declared parameters need an explicit save even when every field has a default.
            return NodeStatus.WAITING, {"reason": "Parameters require user save action"}
        missing = [field for field in config_result.validation.get("required") or [] if _missing(config.get(field))]
        if missing:
            return NodeStatus.WAITING, {"reason": "Required fields missing", "missingFields": missing}
        api = node_config.get("api")
        if isinstance(api, Mapping) and is_blank(api.get("endpoint")):
            return NodeStatus.WAITING, {"reason": "API configuration incomplete", "missingFields": ["endpoint"]}
        return NodeStatus.CONFIGURED, {"reason": "Dynamic node configured", "fieldsCount": len(fields)}

    @staticmethod
    def _fallback_config_status(data: Mapping[str, Any]) -> Candidate:
        if data.get("text") or data.get("mode") or len(data) > 3:
            return NodeStatus.CONFIGURED, {"reason": "Fallback: basic configuration detected"}
        return NodeStatus.WAITING, {"reason": "Fallback: insufficient configuration"}

    # Result construction

    @staticmethod
    def create_status_result(status: NodeStatus | str, details: Optional[Dict[str, Any]] = None) -> StatusResult:
        status = NodeStatus(status)
        return StatusResult(
            status=status.value,
            details={**(details or {}), "calculatedAt": now_iso(), "calculator": CALCULATOR_NAME},
            priority=get_priority(status),
            is_terminal=is_terminal(status),
            can_execute=can_execute(status),
        )

    def create_error_status(self, node: Any, error: BaseException | str) -> StatusResult:
        result = self.create_status_result(
            NodeStatus.ERROR,
            {"reason": "Status calculation failed", "error": str(error)},
        )
        result.details["nodeId"] = _node_id(node)
        result.details["nodeType"] = node.get("type") if isinstance(node, Mapping) else None
        return result

    @staticmethod
    def _post_process(result: StatusResult, node: Mapping[str, Any], config_result: ResolvedConfiguration) -> StatusResult:
        result.details["nodeType"] = node.get("type")
        result.details["nodeId"] = node.get("id")
        result.details["configSummary"] = {
            "sourceType": config_result.source_type,
            "fieldsCount": len(config_result.config),
            "hasWarnings": bool(config_result.warnings),
            "isFallback": config_result.is_fallback,
        }
        return result

    # Listeners and bookkeeping

    def add_listener(self, node_id: Any, listener: StatusListener) -> None:
        self._listeners.setdefault(node_id, []).append(listener)

    def remove_listener(self, node_id: Any, listener: StatusListener) -> None:
        listeners = self._listeners.get(node_id)
        if listeners and listener in listeners:
            listeners.remove(listener)
            if not listeners:
                self._listeners.pop(node_id, None)

    def _notify(self, node: Mapping[str, Any], result: StatusResult) -> None:
        node_id = _node_id(node)
        previous = self._last_status.get(node_id)
        self._last_status[node_id] = result.status
        if previous == result.status:
            return
        for listener in list(self._listeners.get(node_id, ())):
            try:
                listener(result, previous)
            except Exception as exc:  # noqa: BLE001
                LOGGER.warning("Status listener for node %s failed: %s", node_id, exc)

    def clear_cache(self) -> None:
        self._cache.clear()

    def get_stats(self) -> Dict[str, Any]:
        return {**self._stats, "cacheSize": len(self._cache), "listeners": sum(map(len, self._listeners.values()))}

    @staticmethod
    def _cache_key(node: Mapping[str, Any], force_type: Optional[str]) -> Tuple[Any, ...]:
        data = {key: value for key, value in node_data(node).items() if key != "_status"}
        return (node.get("id"), node.get("type"), fingerprint(data), force_type)


def _node_id(node: Any) -> Any:
    return node.get("id") if isinstance(node, Mapping) else None
