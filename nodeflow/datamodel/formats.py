"""Node-shape detection and conversion between legacy, dynamic and standard records."""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Iterable, Mapping, Optional

from pydantic import BaseModel

from ..errors import NormalizationError
from ..models.node_types import (
    EXTERNAL_CONFIG_KEYS,
    KNOWN_DYNAMIC_TYPES,
    LEGACY_EXCLUDED_KEYS,
    LEGACY_FIELD_MAP,
    LEGACY_NODE_TYPES,
    DataFormat,
)
from .envelope import now_iso

LOGGER = logging.getLogger(__name__)

STANDARD_VERSION = "1.0"

NodeRecord = Dict[str, Any]


def node_data(node: Mapping[str, Any]) -> Dict[str, Any]:
    data = node.get("data") if isinstance(node, Mapping) else None
    return data if isinstance(data, dict) else {}


def as_node_config(node_config: Any) -> Optional[Dict[str, Any]]:
    """Accept either a registry template or its plain mapping form."""

    if node_config is None:
        return None
    if isinstance(node_config, BaseModel):
        return node_config.model_dump(by_alias=True, exclude_none=True)
    if isinstance(node_config, Mapping):
        return dict(node_config)
    raise TypeError(f"Unsupported node config type {type(node_config).__name__}")


def find_node_config(node: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    data = node_data(node)
    return as_node_config(data.get("nodeConfig") or node.get("nodeConfig"))


def detect_format(
    node: Any,
    *,
    legacy_types: Iterable[str] = LEGACY_NODE_TYPES,
    dynamic_types: Iterable[str] = KNOWN_DYNAMIC_TYPES,
) -> DataFormat:
    if not isinstance(node, Mapping):
        return DataFormat.UNKNOWN
    data = node_data(node)
    node_type = node.get("type")

    metadata = data.get("_metadata")
    if isinstance(metadata, Mapping) and metadata.get("sourceType"):
        return DataFormat.STANDARD
    if data.get("nodeConfig") or node.get("nodeConfig"):
        return DataFormat.DYNAMIC
    if node_type in set(dynamic_types):
        return DataFormat.DYNAMIC
    if node_type and data.get("nodeType"):
        return DataFormat.LEGACY
    if node_type in set(legacy_types):
        return DataFormat.LEGACY
    return DataFormat.UNKNOWN


def source_family(node: Mapping[str, Any]) -> Optional[str]:
    """Family a standard record was converted from."""

    metadata = node_data(node).get("_metadata")
    if isinstance(metadata, Mapping):
        return metadata.get("sourceType")
    return None


def extract_legacy_config_fields(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Flat configuration fields of a legacy data bag."""

    return {
        key: value
        for key, value in data.items()
        if key not in LEGACY_EXCLUDED_KEYS and not key.startswith("_") and not callable(value)
    }


def from_legacy_node(node: NodeRecord) -> NodeRecord:
    """Convert a legacy record into the standard shape.

    Flat legacy fields are copied into ``data.config`` and also kept at their
    original location so existing readers of the flat fields keep working.
    """

    try:
        data = copy.deepcopy(node_data(node))
        existing = data.get("config") if isinstance(data.get("config"), dict) else {}
        legacy_fields = extract_legacy_config_fields(data)
        data["config"] = {**existing, **legacy_fields}
        data["_metadata"] = {
            "sourceType": DataFormat.LEGACY.value,
            "version": STANDARD_VERSION,
            "migratedAt": now_iso(),
            "originalStructure": {
                "preservedFields": sorted(legacy_fields),
                "originalConfigKeys": sorted(existing),
            },
        }
        return {**node, "data": data}
    except Exception as exc:  # noqa: BLE001
        LOGGER.warning("Legacy conversion failed for node %s: %s", _node_id(node), exc)
        return node


def from_dynamic_node(node: NodeRecord, node_config: Any = None) -> NodeRecord:
    """Convert a dynamic record into the standard shape.

    The config bag is built from template defaults, then field values found on
    the record, then the record's existing config.
    """

    try:
        data = copy.deepcopy(node_data(node))
        resolved = as_node_config(node_config) or find_node_config(node)
        if not resolved:
            raise NormalizationError(f"dynamic node {_node_id(node)} has no node config")
        defaults = dict(resolved.get("defaultData") or {})
        for spec in resolved.get("fields") or []:
            if isinstance(spec, Mapping) and spec.get("name") and spec.get("defaultValue") is not None:
                defaults[spec["name"]] = spec["defaultValue"]
        field_values = {
            spec["name"]: data[spec["name"]]
            for spec in resolved.get("fields") or []
            if isinstance(spec, Mapping) and spec.get("name") in data
        }
        existing = data.get("config") if isinstance(data.get("config"), dict) else {}
        data["config"] = {**defaults, **field_values, **existing}
        data["nodeConfig"] = resolved
        data["_metadata"] = {
            "sourceType": DataFormat.DYNAMIC.value,
            "version": STANDARD_VERSION,
            "migratedAt": now_iso(),
            "configType": resolved.get("sourceType", "json"),
        }
        return {**node, "data": data}
    except Exception as exc:  # noqa: BLE001
        LOGGER.warning("Dynamic conversion failed for node %s: %s", _node_id(node), exc)
        return node


def to_legacy_node(node: NodeRecord) -> NodeRecord:
    """Rebuild the flat legacy record from a standard record of legacy origin."""

    try:
        if source_family(node) != DataFormat.LEGACY.value:
            raise NormalizationError(f"node {_node_id(node)} is not a standard record of legacy origin")
        data = copy.deepcopy(node_data(node))
        metadata = data.pop("_metadata", {}) or {}
        structure = metadata.get("originalStructure") or {}
        config = data.get("config") if isinstance(data.get("config"), dict) else {}

        restored = set(LEGACY_FIELD_MAP.get(node.get("type"), ())) | set(structure.get("preservedFields") or ())
        for name in restored:
            if name in config:
                data[name] = config[name]

        kept = set(EXTERNAL_CONFIG_KEYS) | set(structure.get("originalConfigKeys") or ())
        data["config"] = {key: value for key, value in config.items() if key in kept}
        return {**node, "data": data}
    except Exception as exc:  # noqa: BLE001
        LOGGER.warning("Legacy restore failed for node %s: %s", _node_id(node), exc)
        return node


def to_dynamic_node(node: NodeRecord) -> NodeRecord:
    try:
        data = copy.deepcopy(node_data(node))
        node_config = as_node_config(data.get("nodeConfig"))
        if not node_config:
            raise NormalizationError(f"node {_node_id(node)} has no node config")
        data.pop("_metadata", None)
        data["nodeConfig"] = node_config
        return {**node, "data": data}
    except Exception as exc:  # noqa: BLE001
        LOGGER.warning("Dynamic restore failed for node %s: %s", _node_id(node), exc)
        return node


def to_standard(
    node: NodeRecord,
    node_config: Any = None,
    *,
    legacy_types: Iterable[str] = LEGACY_NODE_TYPES,
    dynamic_types: Iterable[str] = KNOWN_DYNAMIC_TYPES,
) -> NodeRecord:
    current = detect_format(node, legacy_types=legacy_types, dynamic_types=dynamic_types)
    if current is DataFormat.STANDARD:
        return node
    if current is DataFormat.DYNAMIC or node_config is not None:
        return from_dynamic_node(node, node_config)
    if current is DataFormat.LEGACY:
        return from_legacy_node(node)
    LOGGER.warning("Cannot standardize node %s of unknown format", _node_id(node))
    return node


def from_standard(node: NodeRecord, target_format: DataFormat | str) -> NodeRecord:
    target = DataFormat(target_format)
    if detect_format(node) is not DataFormat.STANDARD or target is DataFormat.STANDARD:
        return node
    if target is DataFormat.LEGACY:
        return to_legacy_node(node)
    if target is DataFormat.DYNAMIC:
        return to_dynamic_node(node)
    LOGGER.warning("Cannot convert node %s to %s", _node_id(node), target.value)
    return node


def auto_convert(
    node: NodeRecord,
    target_format: DataFormat | str,
    node_config: Any = None,
    *,
    legacy_types: Iterable[str] = LEGACY_NODE_TYPES,
    dynamic_types: Iterable[str] = KNOWN_DYNAMIC_TYPES,
) -> NodeRecord:
    target = DataFormat(target_format)
    current = detect_format(node, legacy_types=legacy_types, dynamic_types=dynamic_types)
    if current is target:
        return node
    standard = to_standard(node, node_config, legacy_types=legacy_types, dynamic_types=dynamic_types)
    if target is DataFormat.STANDARD:
        return standard
    return from_standard(standard, target)


def _node_id(node: Any) -> Any:
    return node.get("id") if isinstance(node, Mapping) else None
