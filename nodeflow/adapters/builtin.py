"""Local handlers shipped with the runtime."""

from __future__ import annotations

import mimetypes
import re
from pathlib import PurePath
from typing import Any, Dict, Mapping
from urllib.parse import urlparse

from ..datamodel.envelope import as_workflow_data
from .registry import AdapterRegistry


def _input_text(workflow_data: Any) -> str:
    if isinstance(workflow_data, str):
        return workflow_data
    envelope = as_workflow_data(workflow_data)
    if envelope is not None:
        text = envelope.content.get("text")
        return text if isinstance(text, str) else ""
    if isinstance(workflow_data, Mapping) and isinstance(workflow_data.get("text"), str):
        return workflow_data["text"]
    return ""


async def text_process_handler(payload: Mapping[str, Any]) -> str:
    text = _input_text(payload.get("workflowData"))
    config = payload.get("userConfig") or {}
    if config.get("removeEmptyLines"):
        text = re.sub(r"^\s*\n", "", text, flags=re.MULTILINE)
    if config.get("trimWhitespace"):
        text = text.strip()
    max_length = config.get("maxLength")
    if max_length and len(text) > int(max_length):
        text = text[: int(max_length)]
    return text


def _media_from_path(path: str) -> Dict[str, Any]:
    mime_type, _ = mimetypes.guess_type(path)
    return {"name": PurePath(path).name, "path": path, "type": mime_type or "application/octet-stream", "isLocalFile": True}


def _media_from_url(url: str) -> Dict[str, Any]:
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(f"Invalid media URL: {url!r}")
    mime_type, _ = mimetypes.guess_type(parsed.path)
    name = PurePath(parsed.path).name or "media"
    return {"name": name, "url": url, "type": mime_type or "application/octet-stream", "isLocalFile": False}


async def media_input_handler(payload: Mapping[str, Any]) -> Dict[str, Any]:
    config = payload.get("userConfig") or {}
    input_type = config.get("inputType", "file")
    if input_type == "file":
        media_file = config.get("mediaFile")
        if not media_file or not isinstance(media_file, str):
            raise ValueError("No media file selected")
        media = _media_from_path(media_file)
    elif input_type == "url":
        media = _media_from_url(config.get("urlInput") or "")
    else:
        raise ValueError(f"Unsupported media input type: {input_type}")
    return {
        "type": "media",
        "files": [media],
        "config": {"inputType": input_type, "outputFormat": config.get("outputFormat", "standard")},
        "metadata": {"nodeType": payload.get("nodeType")},
    }


def generic_processor_handler(payload: Mapping[str, Any]) -> Any:
    """Pass the incoming data through unchanged."""

    return payload.get("workflowData")


BUILTIN_HANDLERS = {
    "text_process_handler": text_process_handler,
    "media_input_handler": media_input_handler,
    "executeGenericProcessor": generic_processor_handler,
}


def register_builtin_handlers(registry: AdapterRegistry) -> AdapterRegistry:
    for name, handler in BUILTIN_HANDLERS.items():
        if not registry.has(name):
            registry.register_callable(name, handler, {"builtin": True})
    return registry
