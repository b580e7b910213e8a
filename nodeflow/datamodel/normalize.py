"""Output normalisation and per-target input preparation."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterable, Mapping, Optional

from ..models.node_types import LEGACY_NODE_TYPES
from ..models.workflow_data import WorkflowData
from .envelope import (
    as_workflow_data,
    create_audio,
    create_data,
    create_error,
    create_text,
    is_workflow_data,
)

LOGGER = logging.getLogger(__name__)

# Target types that consume a bare string rather than an envelope.
TEXT_CONSUMING_TYPES = frozenset({"text-input", "tts"})


def normalize_output(
    node_type: str,
    raw_output: Any,
    node_id: Any = None,
    output_schema: Optional[Mapping[str, Mapping[str, Any]]] = None,
    *,
    legacy_types: Iterable[str] = LEGACY_NODE_TYPES,
) -> Any:
    """Wrap a node's raw result into a WorkflowData envelope.

    Envelopes are returned unchanged. Failures are logged and the raw output is
    handed back so the pipeline keeps moving.
    """

    if is_workflow_data(raw_output):
        return raw_output
    try:
        if node_type in set(legacy_types):
            return _normalize_legacy_output(node_type, raw_output, node_id)
        return _normalize_dynamic_output(node_type, raw_output, node_id, output_schema)
    except Exception as exc:  # noqa: BLE001
        LOGGER.warning("Output normalization failed for %s (%s): %s", node_id, node_type, exc)
        return raw_output


def _is_audio(raw: Mapping[str, Any]) -> bool:
    content = raw.get("content")
    return bool(
        (isinstance(content, Mapping) and content.get("audio"))
        or raw.get("audio_id")
        or raw.get("audio_url")
        or raw.get("type") == "audio"
    )


def _audio_info(raw: Mapping[str, Any]) -> Dict[str, Any]:
    content = raw.get("content")
    if isinstance(content, Mapping) and isinstance(content.get("audio"), Mapping):
        return dict(content["audio"])
    return {
        "id": raw.get("audio_id"),
        "url": raw.get("audio_url") or raw.get("url"),
        "name": raw.get("name") or f"audio_{int(time.time() * 1000)}.wav",
        "size": raw.get("file_size") or raw.get("size"),
        "format": raw.get("format") or "wav",
        "type": "audio/wav" if raw.get("type") in (None, "audio") else raw.get("type"),
    }


def _normalize_legacy_output(node_type: str, raw: Any, node_id: Any) -> WorkflowData:
    base = {"source": node_type}
    if isinstance(raw, str):
        return create_text(raw, node_id, {**base, "originalFormat": "string"})
    if isinstance(raw, BaseException):
        return create_error(str(raw), node_id, {**base, "errorType": type(raw).__name__})
    if not isinstance(raw, Mapping):
        return create_data(raw, node_id, {**base, "originalFormat": type(raw).__name__})

    if _is_audio(raw):
        original_text = raw.get("text") or raw.get("originalText")
        metadata = {**base, "originalFormat": "audio"}
        if original_text:
            metadata["originalText"] = original_text
        return create_audio(_audio_info(raw), node_id, metadata)
    if raw.get("error"):
        return create_error(str(raw["error"]), node_id, {**base, "originalFormat": "error"})
    content = raw.get("content")
    if isinstance(raw.get("text"), str):
        return create_text(raw["text"], node_id, {**base, "originalFormat": "object"})
    if isinstance(content, Mapping) and isinstance(content.get("text"), str):
        return create_text(content["text"], node_id, {**base, "originalFormat": "content"})
    return create_data(dict(raw), node_id, {**base, "originalFormat": "object"})


def _normalize_dynamic_output(
    node_type: str,
    raw: Any,
    node_id: Any,
    output_schema: Optional[Mapping[str, Mapping[str, Any]]],
) -> Any:
    base = {"source": node_type, "sourceFormat": "dynamic"}
    if output_schema:
        key, declared = next(iter(output_schema.items()))
        expected = (declared or {}).get("type")
        if expected == "string":
            if isinstance(raw, str):
                return create_text(raw, node_id, {**base, "schemaField": key})
            if isinstance(raw, Mapping) and isinstance(raw.get(key), str):
                return create_text(raw[key], node_id, {**base, "schemaField": key})
        elif expected == "object":
            if isinstance(raw, Mapping):
                return create_data(dict(raw), node_id, {**base, "schemaField": key})
        elif expected == "File":
            return raw
        else:
            return create_data(raw, node_id, {**base, "schemaField": key, "preserveOriginal": True})
        LOGGER.warning(
            "Output of %s does not match declared schema %s:%s; passing it through",
            node_type,
            key,
            expected,
        )
        return raw

    if isinstance(raw, str):
        return create_text(raw, node_id, {**base, "originalFormat": "string"})
    return create_data(raw, node_id, {**base, "preserveOriginal": True})


def prepare_input(
    envelope: Any,
    target_node_type: str,
    input_schema: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> Any:
    """Unwrap an envelope into the shape the target node type consumes."""

    if envelope is None:
        return None
    try:
        data = as_workflow_data(envelope)
        if data is None:
            return envelope
        if target_node_type == "text-input":
            if data.type == "text" and data.text is not None:
                return data.text
            return str(data.to_dict()["content"])
        if target_node_type == "tts":
            if data.type == "text" and data.text is not None:
                return data.text
            if data.metadata.get("originalText"):
                return data.metadata["originalText"]
            return str(data.to_dict()["content"])
        if input_schema and target_node_type not in TEXT_CONSUMING_TYPES:
            _, declared = next(iter(input_schema.items()))
            if (declared or {}).get("type") == "string" and data.type == "text":
                return data.text
        return envelope
    except Exception as exc:  # noqa: BLE001
        LOGGER.warning("Input preparation for %s failed: %s", target_node_type, exc)
        return envelope
