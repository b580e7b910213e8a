"""WorkflowData factories and inspection helpers."""

from __future__ import annotations

import copy
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from ..models.workflow_data import WORKFLOW_DATA_TYPES, WorkflowData

PREVIEW_TEXT_LIMIT = 50


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _build_metadata(node_id: Any, extra: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {"timestamp": now_iso(), "nodeId": node_id, "source": node_id}
    if extra:
        metadata.update(extra)
    return metadata


def create_workflow_data(
    data_type: str,
    content: Mapping[str, Any],
    node_id: Any = None,
    metadata: Optional[Mapping[str, Any]] = None,
) -> WorkflowData:
    return WorkflowData(type=data_type, content=content, metadata=_build_metadata(node_id, metadata))


def create_text(text: str, node_id: Any = None, metadata: Optional[Mapping[str, Any]] = None) -> WorkflowData:
    return create_workflow_data("text", {"text": text}, node_id, metadata)


def create_audio(
    audio: Mapping[str, Any], node_id: Any = None, metadata: Optional[Mapping[str, Any]] = None
) -> WorkflowData:
    return create_workflow_data("audio", {"audio": dict(audio)}, node_id, metadata)


def create_error(message: str, node_id: Any = None, metadata: Optional[Mapping[str, Any]] = None) -> WorkflowData:
    return create_workflow_data("error", {"error": message}, node_id, metadata)


def create_download(
    download: Mapping[str, Any], node_id: Any = None, metadata: Optional[Mapping[str, Any]] = None
) -> WorkflowData:
    return create_workflow_data("download", {"download": dict(download)}, node_id, metadata)


def create_data(payload: Any, node_id: Any = None, metadata: Optional[Mapping[str, Any]] = None) -> WorkflowData:
    return create_workflow_data("data", {"data": payload}, node_id, metadata)


def is_workflow_data(value: Any) -> bool:
    """True for envelopes, including their plain-mapping form."""

    if isinstance(value, WorkflowData):
        return True
    if not isinstance(value, Mapping):
        return False
    metadata = value.get("metadata")
    return (
        value.get("type") in WORKFLOW_DATA_TYPES
        and isinstance(value.get("content"), Mapping)
        and isinstance(metadata, Mapping)
        and "timestamp" in metadata
    )


def as_workflow_data(value: Any) -> Optional[WorkflowData]:
    if isinstance(value, WorkflowData):
        return value
    if is_workflow_data(value):
        return WorkflowData.from_dict(value)
    return None


def validate_workflow_data(value: Any) -> Dict[str, Any]:
    errors: List[str] = []
    if isinstance(value, WorkflowData):
        payload: Mapping[str, Any] = value.to_dict()
    elif isinstance(value, Mapping):
        payload = value
    else:
        return {"valid": False, "errors": ["workflow data must be a mapping"]}

    if payload.get("type") not in WORKFLOW_DATA_TYPES:
        errors.append(f"invalid type: {payload.get('type')!r}")
    if not isinstance(payload.get("content"), Mapping):
        errors.append("content must be a mapping")
    metadata = payload.get("metadata")
    if not isinstance(metadata, Mapping):
        errors.append("metadata must be a mapping")
    elif "timestamp" not in metadata:
        errors.append("metadata.timestamp is required")
    return {"valid": not errors, "errors": errors}


def clone(envelope: WorkflowData, **metadata_overrides: Any) -> WorkflowData:
    """Copy an envelope with a fresh timestamp."""

    metadata = copy.deepcopy(envelope.metadata)
    metadata["timestamp"] = now_iso()
    metadata.update(metadata_overrides)
    return WorkflowData(type=envelope.type, content=envelope.content, metadata=metadata)


def format_size(size: Any) -> str:
    if isinstance(size, bool) or not isinstance(size, (int, float)) or size < 0:
        return "unknown"
    if size == 0:
        return "0 B"
    units = ("B", "KB", "MB", "GB")
    index = min(int(math.floor(math.log(size, 1024))), len(units) - 1) if size >= 1 else 0
    value = round(size / (1024 ** index), 1)
    if value == int(value):
        value = int(value)
    return f"{value} {units[index]}"


def get_preview(envelope: WorkflowData) -> Dict[str, Any]:
    content = envelope.content
    if envelope.type == "text":
        text = content.get("text") or ""
        summary = text if len(text) <= PREVIEW_TEXT_LIMIT else text[:PREVIEW_TEXT_LIMIT] + "..."
        return {"type": "text", "summary": summary, "details": f"{len(text)} characters"}
    if envelope.type == "audio":
        audio = content.get("audio") or {}
        return {
            "type": "audio",
            "summary": audio.get("name") or "audio.wav",
            "details": f"format: {audio.get('format') or 'wav'}, size: {format_size(audio.get('size'))}",
        }
    if envelope.type == "error":
        return {
            "type": "error",
            "summary": content.get("error") or "Unknown error",
            "details": f"source: {envelope.metadata.get('source') or 'unknown'}",
        }
    if envelope.type == "download":
        download = content.get("download") or {}
        return {
            "type": "download",
            "summary": download.get("fileName") or "download",
            "details": f"type: {download.get('type') or 'unknown'}, size: {format_size(download.get('size'))}",
        }
    return {"type": "data", "summary": "Data object", "details": f"{len(content)} keys"}
