"""Layered configuration resolution for legacy and dynamic nodes."""

from __future__ import annotations

import copy
import json
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from ..cache import LRUCache, fingerprint
from ..datamodel.envelope import now_iso
from ..datamodel.formats import (
    as_node_config,
    detect_format,
    extract_legacy_config_fields,
    find_node_config,
    node_data,
    source_family,
)
from ..errors import ConfigurationError
from ..models.node_types import (
    EXTERNAL_CONFIG_KEYS,
    KNOWN_DYNAMIC_TYPES,
    LEGACY_EXCLUDED_KEYS,
    LEGACY_NODE_TYPES,
    DataFormat,
)
from ..models.results import ResolvedConfiguration
from ..registry.descriptors import infer_field_type
from ..registry.legacy_templates import LEGACY_TEMPLATES
from ..validation import validate_config

LOGGER = logging.getLogger(__name__)

TemplateLookup = Callable[[str], Optional[Any]]

# Data keys that change on every execution but never affect configuration.
VOLATILE_DATA_KEYS = frozenset({"result", "isProcessing", "_status", "_lastUpdated", "_updatedBy"})

SAFE_FALLBACK_FIELDS = ("label", "nodeType", "text", "mode")


def coerce_field_value(value: Any, field_type: Optional[str]) -> Any:
    """Convert a saved form value into the type its field declares."""

    if not isinstance(value, str):
        return value
    if field_type == "number":
        try:
            number = float(value)
        except ValueError:
            return value
        return int(number) if number.is_integer() and "." not in value else number
    if field_type in {"boolean", "checkbox"}:
        return value.strip().lower() in {"true", "1"}
    if field_type in {"array", "json", "object"}:
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    return value


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in {"", "false", "0"}
    return bool(value)


def _external_layer(config: Any) -> Dict[str, Any]:
    if not isinstance(config, Mapping):
        return {}
    return {key: config[key] for key in EXTERNAL_CONFIG_KEYS if key in config}


class ConfigurationResolver:
    """Merge and validate a node's effective configuration.

    Layers, lowest to highest priority: external/system config, template
    defaults, the node's current field values, caller overrides.
    """

    def __init__(
        self,
        *,
        cache: Optional[LRUCache[ResolvedConfiguration]] = None,
        external_config: Optional[Mapping[str, Any]] = None,
        legacy_lookup: Optional[TemplateLookup] = None,
        dynamic_lookup: Optional[TemplateLookup] = None,
        strict_validation: bool = False,
        legacy_types: Iterable[str] = LEGACY_NODE_TYPES,
        dynamic_types: Iterable[str] = KNOWN_DYNAMIC_TYPES,
    ) -> None:
        self._cache: LRUCache[ResolvedConfiguration] = cache if cache is not None else LRUCache()
        self._external_config = dict(external_config or {})
        self._legacy_lookup: TemplateLookup = legacy_lookup or LEGACY_TEMPLATES.get
        self._dynamic_lookup = dynamic_lookup
        self._strict_validation = strict_validation
        self._legacy_types = frozenset(legacy_types)
        self._dynamic_types = frozenset(dynamic_types)
        self._stats = {"parseCount": 0, "cacheHits": 0, "validationErrors": 0, "resolverErrors": 0}

    @property
    def cache(self) -> LRUCache[ResolvedConfiguration]:
        return self._cache

    def resolve(
        self,
        node: Mapping[str, Any],
        *,
        user_config: Optional[Mapping[str, Any]] = None,
        validate: bool = True,
        strict_validation: Optional[bool] = None,
        use_cache: bool = True,
    ) -> ResolvedConfiguration:
        """Resolve ``node``'s configuration, degrading to a fallback on failure.

        In strict mode a validation failure raises ``ConfigurationError``
        instead of being reported through ``metadata.validationWarnings``.
        """

        self._stats["parseCount"] += 1
        strict = self._strict_validation if strict_validation is None else strict_validation
        user_config = dict(user_config or {})
        cache_key = self._cache_key(node, user_config, validate, strict)
        if use_cache:
            cached = self._cache.get(cache_key)
            if cached is not None:
                self._stats["cacheHits"] += 1
                return copy.deepcopy(cached)

        try:
            resolved = self._resolve_layers(node, user_config)
        except Exception as exc:  # noqa: BLE001
            self._stats["resolverErrors"] += 1
            LOGGER.warning("Configuration resolution failed for node %s: %s", _node_id(node), exc)
            return self.create_fallback_configuration(node, exc)

        if validate:
            errors = self._validate(resolved)
            if errors:
                self._stats["validationErrors"] += 1
                if strict:
                    raise ConfigurationError(
                        f"Configuration of node {_node_id(node)} is invalid: {'; '.join(errors)}",
                        errors=errors,
                    )
                LOGGER.warning("Configuration warnings for node %s: %s", _node_id(node), errors)
                resolved.metadata["validationWarnings"] = errors

        resolved.config = self.normalize_config_types(resolved.config, resolved.schema)
        resolved.config = self._ensure_completeness(resolved.config, resolved.metadata)
        resolved.metadata["parseStats"] = {
            "sourceFieldCount": len(node_data(node)),
            "configFieldCount": len(resolved.config),
            "parsedAt": now_iso(),
        }
        if use_cache:
            self._cache.set(cache_key, copy.deepcopy(resolved))
        return resolved

    def clear_cache(self) -> None:
        self._cache.clear()

    def get_stats(self) -> Dict[str, Any]:
        return {**self._stats, "cacheSize": len(self._cache)}

    # Layer extraction

    def _resolve_layers(self, node: Mapping[str, Any], user_config: Dict[str, Any]) -> ResolvedConfiguration:
        if not isinstance(node, Mapping):
            raise ConfigurationError(f"Node must be a mapping, got {type(node).__name__}")
        data_format = detect_format(node, legacy_types=self._legacy_types, dynamic_types=self._dynamic_types)
        if data_format is DataFormat.STANDARD:
            family = source_family(node)
            if family == DataFormat.LEGACY.value:
                return self._resolve_legacy(node, user_config)
            if family == DataFormat.DYNAMIC.value:
                return self._resolve_dynamic(node, user_config)
            return self._resolve_standard(node, user_config)
        if data_format is DataFormat.LEGACY:
            return self._resolve_legacy(node, user_config)
        if data_format is DataFormat.DYNAMIC:
            return self._resolve_dynamic(node, user_config)
        if isinstance(node.get("data"), Mapping) and node.get("type"):
            LOGGER.warning("Node %s has an unknown format; resolving it as legacy", _node_id(node))
            return self._resolve_legacy(node, user_config)
        raise ConfigurationError(f"Cannot resolve configuration for node {_node_id(node)} of unknown format")

    def _resolve_legacy(self, node: Mapping[str, Any], user_config: Dict[str, Any]) -> ResolvedConfiguration:
        node_type = node.get("type")
        data = node_data(node)
        template = self._legacy_lookup(node_type)
        defaults = {
            key: copy.deepcopy(value)
            for key, value in (template.default_data if template else {}).items()
            if key not in LEGACY_EXCLUDED_KEYS
        }
        current = extract_legacy_config_fields(data)
        external = {**self._external_config, **_external_layer(data.get("config"))}
        config = {**external, **defaults, **current, **user_config}
        validation = copy.deepcopy(template.validation) if template else {"required": [], "rules": {}}
        fields = [{"name": name, "type": infer_field_type(value)} for name, value in defaults.items()]
        metadata = {
            "sourceType": DataFormat.LEGACY.value,
            "nodeType": node_type,
            "hasDefaults": bool(defaults),
            "hasUserOverrides": bool(user_config),
            "configFieldsCount": len(current),
            "externalConfigCount": len(external),
            "resolvedAt": now_iso(),
        }
        return ResolvedConfiguration(
            config=config,
            metadata=metadata,
            validation=validation,
            schema={"type": "legacy", "fields": fields},
        )

    def _resolve_dynamic(self, node: Mapping[str, Any], user_config: Dict[str, Any]) -> ResolvedConfiguration:
        node_type = node.get("type")
        data = node_data(node)
        node_config = find_node_config(node)
        if not node_config and self._dynamic_lookup is not None:
            node_config = as_node_config(self._dynamic_lookup(node_type))
        if not node_config:
            raise ConfigurationError(f"Dynamic node {_node_id(node)} has no node config")

        fields: List[Dict[str, Any]] = [dict(field) for field in node_config.get("fields") or []]
        defaults = dict(node_config.get("defaultData") or {})
        for field in fields:
            if "defaultValue" in field and field.get("name"):
                defaults[field["name"]] = field["defaultValue"]

        saved = data.get("config") if isinstance(data.get("config"), Mapping) else {}
        current: Dict[str, Any] = dict(saved)
        for field in fields:
            name = field.get("name")
            if name in saved:
                current[name] = coerce_field_value(saved[name], field.get("type"))
            elif name in data:
                current[name] = coerce_field_value(data[name], field.get("type"))

        external = {**self._external_config, **_external_layer(saved)}
        config = {**external, **defaults, **current, **user_config}

        declared = node_config.get("validation") or {}
        required = list(declared.get("required") or [])
        rules = dict(declared.get("rules") or {})
        for field in fields:
            name = field.get("name")
            if field.get("required") and name not in required:
                required.append(name)
            if field.get("validation"):
                rules[name] = {**rules.get(name, {}), **field["validation"]}
        execution = node_config.get("execution") or {}
        metadata = {
            "sourceType": DataFormat.DYNAMIC.value,
            "nodeType": node_type,
            "fieldsCount": len(fields),
            "hasValidation": bool(required or rules),
            "hasApi": bool(node_config.get("api") or execution.get("type") == "api"),
            "hasUserOverrides": bool(user_config),
            "configVersion": (node_config.get("meta") or {}).get("configVersion", "1.0"),
            "resolvedAt": now_iso(),
        }
        return ResolvedConfiguration(
            config=config,
            metadata=metadata,
            validation={**declared, "required": required, "rules": rules},
            schema={"type": "dynamic", "fields": fields},
            node_config=node_config,
        )

    def _resolve_standard(self, node: Mapping[str, Any], user_config: Dict[str, Any]) -> ResolvedConfiguration:
        data = node_data(node)
        saved = data.get("config") if isinstance(data.get("config"), Mapping) else {}
        config = {**self._external_config, **saved, **user_config}
        metadata = {
            "sourceType": DataFormat.STANDARD.value,
            "nodeType": node.get("type"),
            "hasUserOverrides": bool(user_config),
            "resolvedAt": now_iso(),
        }
        return ResolvedConfiguration(
            config=config,
            metadata=metadata,
            validation={"required": [], "rules": {}},
            schema={"type": "standard", "fields": []},
        )

    # Post-processing

    def _validate(self, resolved: ResolvedConfiguration) -> List[str]:
        errors = validate_config(
            resolved.config,
            resolved.validation,
            has_default=lambda field: self._has_default(field, resolved),
        )
        resolved.validation["valid"] = not errors
        resolved.validation["errors"] = errors
        return errors

    def _has_default(self, field: str, resolved: ResolvedConfiguration) -> bool:
        node_config = resolved.node_config or {}
        for spec in node_config.get("fields") or []:
            if spec.get("name") == field and "defaultValue" in spec:
                return True
        if field in (node_config.get("defaultData") or {}):
            return True
        if resolved.source_type == DataFormat.LEGACY.value:
            template = self._legacy_lookup(resolved.metadata.get("nodeType"))
            return template is not None and field in template.default_data
        return False

    @staticmethod
    def normalize_config_types(config: Dict[str, Any], schema: Mapping[str, Any]) -> Dict[str, Any]:
        normalized = dict(config)
        for field in schema.get("fields") or []:
            name = field.get("name")
            if name not in config:
                continue
            value = config[name]
            if field.get("type") == "number" and isinstance(value, str):
                normalized[name] = coerce_field_value(value, "number")
            elif field.get("type") in {"boolean", "checkbox"}:
                normalized[name] = _truthy(value)
        return normalized

    @staticmethod
    def _ensure_completeness(config: Dict[str, Any], metadata: Mapping[str, Any]) -> Dict[str, Any]:
        complete = dict(config)
        if metadata.get("sourceType") == DataFormat.LEGACY.value:
            complete.setdefault("hideTestButton", True)
        elif metadata.get("sourceType") == DataFormat.DYNAMIC.value:
            complete.setdefault("_isDynamic", True)
        return complete

    def create_fallback_configuration(self, node: Any, error: BaseException | str) -> ResolvedConfiguration:
        data = node_data(node) if isinstance(node, Mapping) else {}
        node_type = node.get("type") if isinstance(node, Mapping) else None
        safe = {key: data[key] for key in SAFE_FALLBACK_FIELDS if key in data}
        return ResolvedConfiguration(
            config={"_fallback": True, "_originalError": str(error), "_nodeType": node_type, **safe},
            metadata={
                "sourceType": "fallback",
                "nodeType": node_type,
                "fallbackReason": str(error),
                "isSafe": True,
                "resolvedAt": now_iso(),
            },
            validation={"required": [], "rules": {}, "valid": True, "errors": []},
            schema={"type": "fallback", "fields": []},
        )

    @staticmethod
    def _cache_key(node: Any, user_config: Mapping[str, Any], validate: bool, strict: bool) -> Tuple[Any, ...]:
        if not isinstance(node, Mapping):
            return (None, None, fingerprint(user_config), repr(node), validate, strict)
        data = {key: value for key, value in node_data(node).items() if key not in VOLATILE_DATA_KEYS}
        return (node.get("id"), node.get("type"), fingerprint(user_config), fingerprint(data), validate, strict)


def _node_id(node: Any) -> Any:
    return node.get("id") if isinstance(node, Mapping) else None
