"""Registry of schema-driven dynamic node types."""

from __future__ import annotations

import copy
import itertools
import logging
import re
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from ..errors import RegistrationError
from ..models.template import FieldSpec, NodeTemplate
from ..validation import is_blank

LOGGER = logging.getLogger(__name__)


class DynamicNodeRegistry:
    """Catalog of node types declared by external descriptors.

    Templates are immutable once registered; adding a type is a data operation.
    """

    def __init__(self) -> None:
        self._templates: Dict[str, NodeTemplate] = {}
        self._registered_at: Dict[str, str] = {}
        self._sequence = itertools.count(1)

    def register_full_node_config(self, node_type: str, config: NodeTemplate | Mapping[str, Any]) -> NodeTemplate:
        if not node_type:
            raise RegistrationError("Dynamic node type name must not be empty")
        if node_type in self._templates:
            raise RegistrationError(f"Dynamic node type '{node_type}' is already registered")
        if isinstance(config, NodeTemplate):
            template = config if config.type == node_type else config.model_copy(update={"type": node_type})
        else:
            payload = dict(config)
            payload["type"] = node_type
            try:
                template = NodeTemplate.model_validate(payload)
            except ValidationError as exc:
                LOGGER.warning("Rejected dynamic template %s: %s", node_type, exc)
                raise RegistrationError(f"Invalid dynamic template '{node_type}': {exc}") from exc
        if template.execution is None or not template.execution.handler.strip():
            raise RegistrationError(f"Dynamic template '{node_type}' must declare an execution handler")
        self._templates[node_type] = template
        self._registered_at[node_type] = datetime.now(timezone.utc).isoformat()
        LOGGER.debug("Registered dynamic node type %s (handler=%s)", node_type, template.execution.handler)
        return template

    def unregister(self, node_type: str) -> bool:
        self._registered_at.pop(node_type, None)
        return self._templates.pop(node_type, None) is not None

    def has_node_type(self, node_type: str) -> bool:
        return node_type in self._templates

    def get_full_node_config(self, node_type: str) -> Optional[NodeTemplate]:
        return self._templates.get(node_type)

    def get_all_registered_types(self) -> List[str]:
        return list(self._templates)

    def get_all_node_types(self) -> Dict[str, NodeTemplate]:
        return dict(self._templates)

    def reset(self) -> None:
        self._templates.clear()
        self._registered_at.clear()
        LOGGER.debug("Dynamic registry reset")

    def get_registry_status(self) -> Dict[str, Any]:
        return {
            "registeredTypes": len(self._templates),
            "types": list(self._templates),
            "registeredAt": dict(self._registered_at),
        }

    def create_dynamic_node(
        self,
        node_type: str,
        *,
        node_id: Optional[str] = None,
        position: Optional[Mapping[str, Any]] = None,
        node_index: int = 0,
        total_nodes: int = 1,
        config: Optional[Mapping[str, Any]] = None,
        custom_data: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        template = self._templates.get(node_type)
        if template is None:
            raise RegistrationError(f"Unknown dynamic node type '{node_type}'")
        data: Dict[str, Any] = {
            "label": template.label,
            "nodeType": node_type,
            "nodeIndex": node_index,
            "totalNodes": total_nodes,
            "nodeConfig": template.to_node_config(),
            "config": {**self._field_defaults(template), **dict(config or {})},
            "result": None,
            "isProcessing": False,
            "hideTestButton": True,
            **dict(custom_data or {}),
        }
        return {
            "id": node_id or f"{node_type}-{int(time.time() * 1000)}-{next(self._sequence)}",
            "type": node_type,
            "position": dict(position) if position else {"x": 0, "y": 0},
            "data": data,
        }

    @staticmethod
    def _field_defaults(template: NodeTemplate) -> Dict[str, Any]:
        defaults = copy.deepcopy(template.default_data)
        for field in template.fields or []:
            if field.default_value is not None:
                defaults[field.name] = copy.deepcopy(field.default_value)
        return defaults

    def validate_node_standard(self, node: Mapping[str, Any]) -> Dict[str, Any]:
        node_type = node.get("type")
        template = self._templates.get(node_type)
        if template is None:
            return {"valid": False, "errors": [f"Dynamic node config missing for '{node_type}'"]}
        data = node.get("data") or {}
        config = data.get("config") or {}
        errors: List[str] = []
        for field in template.fields or []:
            value = config.get(field.name, data.get(field.name))
            if is_blank(value):
                if field.required:
                    errors.append(f"{field.label or field.name} is required")
                continue
            errors.extend(self.validate_field_value(value, field))
        return {"valid": not errors, "errors": errors}

    @staticmethod
    def validate_field_value(value: Any, field: FieldSpec) -> List[str]:
        rules = field.validation or {}
        label = field.label or field.name
        errors: List[str] = []
        if rules.get("minLength") is not None and hasattr(value, "__len__") and len(value) < rules["minLength"]:
            errors.append(f"{label} must be at least {rules['minLength']} characters")
        if rules.get("maxLength") is not None and hasattr(value, "__len__") and len(value) > rules["maxLength"]:
            errors.append(f"{label} must be at most {rules['maxLength']} characters")
        if rules.get("pattern") and not re.search(rules["pattern"], str(value)):
            errors.append(rules.get("message") or f"{label} has an invalid format")
        if field.type == "number":
            try:
                number = float(value)
            except (TypeError, ValueError):
                errors.append(f"{label} must be a number")
            else:
                if rules.get("min") is not None and number < rules["min"]:
                    errors.append(f"{label} must be >= {rules['min']}")
                if rules.get("max") is not None and number > rules["max"]:
                    errors.append(f"{label} must be <= {rules['max']}")
        return errors
