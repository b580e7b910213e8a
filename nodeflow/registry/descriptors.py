"""Conversion of dynamic node descriptor documents into registry templates.

Reading descriptor files from disk or the network is left to the caller; this
module only validates and converts already-parsed documents.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping

from pydantic import ValidationError

from ..errors import DescriptorError, RegistrationError
from ..models.descriptor import NodeDescriptor
from ..models.template import NodeTemplate
from .dynamic import DynamicNodeRegistry

LOGGER = logging.getLogger(__name__)

REQUIRED_SECTIONS = ("meta", "node", "components", "data")
REQUIRED_META_KEYS = ("configVersion", "nodeId", "displayName")
REQUIRED_NODE_KEYS = ("type", "label", "icon", "description", "category", "theme")

DEFAULT_LOCAL_HANDLER = "executeGenericProcessor"
DEFAULT_API_HANDLER = "apiRequest"


def validate_descriptor(raw: Mapping[str, Any]) -> List[str]:
    """Every missing or malformed required key of a descriptor document."""

    problems: List[str] = []
    for section in REQUIRED_SECTIONS:
        if not raw.get(section):
            problems.append(f"missing required section: {section}")
    meta = raw.get("meta")
    if isinstance(meta, Mapping):
        problems.extend(f"meta.{key} is required" for key in REQUIRED_META_KEYS if not meta.get(key))
    node = raw.get("node")
    if isinstance(node, Mapping):
        problems.extend(f"node.{key} is required" for key in REQUIRED_NODE_KEYS if not node.get(key))
    if raw.get("fields") is not None and not isinstance(raw.get("fields"), list):
        problems.append("fields must be a list")
    execution = raw.get("execution")
    if execution is not None:
        if not isinstance(execution, Mapping):
            problems.append("execution must be a mapping")
        elif not execution.get("type"):
            problems.append("execution.type is required")
        elif execution["type"] == "api" and not execution.get("endpoint"):
            problems.append("execution.endpoint is required for api execution")
        elif execution["type"] == "local" and not execution.get("handler"):
            problems.append("execution.handler is required for local execution")
    return problems


def parse_descriptor(raw: Mapping[str, Any]) -> NodeDescriptor:
    problems = validate_descriptor(raw)
    if problems:
        raise DescriptorError(f"Invalid node descriptor: {'; '.join(problems)}", problems=problems)
    try:
        return NodeDescriptor.model_validate(raw)
    except ValidationError as exc:
        raise DescriptorError(f"Invalid node descriptor: {exc}", problems=[str(exc)]) from exc


def humanize_field_name(name: str) -> str:
    """``customFileName`` / ``custom_file_name`` -> ``Custom File Name``."""

    spaced = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", " ", name).replace("_", " ").replace("-", " ")
    return " ".join(word[:1].upper() + word[1:] for word in spaced.split())


def infer_field_type(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, str) and len(value) > 100:
        return "textarea"
    return "text"


def generate_fields(default_data: Mapping[str, Any], validation: Mapping[str, Any]) -> List[Dict[str, Any]]:
    required = set(validation.get("required") or [])
    rules = validation.get("rules") or {}
    fields = []
    for name, default in default_data.items():
        rule = rules.get(name) or {}
        fields.append(
            {
                "name": name,
                "type": rule.get("fieldType") or infer_field_type(default),
                "label": humanize_field_name(name),
                "defaultValue": default,
                "required": name in required,
                "validation": dict(rule),
            }
        )
    return fields


def _execution_block(descriptor: NodeDescriptor) -> Dict[str, Any]:
    execution = dict(descriptor.execution or {})
    execution.setdefault("type", "local")
    if not execution.get("handler"):
        execution["handler"] = DEFAULT_API_HANDLER if execution["type"] == "api" else DEFAULT_LOCAL_HANDLER
    return execution


def descriptor_to_template(descriptor: NodeDescriptor | Mapping[str, Any]) -> NodeTemplate:
    if not isinstance(descriptor, NodeDescriptor):
        descriptor = parse_descriptor(descriptor)
    default_data = dict(descriptor.data.default_data)
    validation = dict(descriptor.data.validation)
    fields = descriptor.fields if descriptor.fields is not None else generate_fields(default_data, validation)
    payload: Dict[str, Any] = {
        **descriptor.node.model_dump(),
        "fields": fields,
        "validation": validation,
        "defaultData": default_data,
        "execution": _execution_block(descriptor),
        "inputSchema": descriptor.input_schema,
        "outputSchema": descriptor.output_schema,
        "api": descriptor.api,
        "sourceType": "json",
        "meta": {
            **descriptor.meta.model_dump(by_alias=True),
            "sourceType": "json",
            "convertedAt": datetime.now(timezone.utc).isoformat(),
        },
    }
    return NodeTemplate.model_validate(payload)


def register_descriptors(registry: DynamicNodeRegistry, documents: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
    """Register every valid document, collecting failures instead of stopping."""

    summary: Dict[str, Any] = {"success": 0, "failed": 0, "errors": []}
    for document in documents:
        node_type = (document.get("node") or {}).get("type") if isinstance(document, Mapping) else None
        try:
            template = descriptor_to_template(document)
            registry.register_full_node_config(template.type, template)
        except (DescriptorError, RegistrationError, ValidationError) as exc:
            LOGGER.warning("Skipping node descriptor %s: %s", node_type or "<unknown>", exc)
            summary["failed"] += 1
            summary["errors"].append(f"{node_type or '<unknown>'}: {exc}")
            continue
        summary["success"] += 1
    LOGGER.info("Registered %d node descriptors (%d failed)", summary["success"], summary["failed"])
    return summary
