"""Registry of the fixed-shape legacy node types."""

from __future__ import annotations

import copy
import itertools
import logging
import time
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from pydantic import ValidationError

from ..errors import RegistrationError
from ..models.template import NodeTemplate
from ..validation import is_blank, validate_config
from .legacy_templates import build_legacy_templates

LOGGER = logging.getLogger(__name__)

LAYOUT_X = 400
LAYOUT_Y_START = 100
LAYOUT_Y_STEP = 180


def layout_position(index: int) -> Dict[str, int]:
    return {"x": LAYOUT_X, "y": LAYOUT_Y_START + index * LAYOUT_Y_STEP}


class LegacyNodeRegistry:
    """Catalog of hand-written node types with flat configuration fields."""

    def __init__(self, templates: Optional[Iterable[NodeTemplate]] = None) -> None:
        self._templates: Dict[str, NodeTemplate] = {}
        self._sequence = itertools.count(1)
        for template in build_legacy_templates() if templates is None else templates:
            self.register_node_type(template)

    def register_node_type(self, template: NodeTemplate | Mapping[str, Any]) -> NodeTemplate:
        if not isinstance(template, NodeTemplate):
            try:
                template = NodeTemplate.model_validate({"sourceType": "legacy", **template})
            except ValidationError as exc:
                raise RegistrationError(f"Invalid legacy template: {exc}") from exc
        if template.type in self._templates:
            raise RegistrationError(f"Legacy node type '{template.type}' is already registered")
        self._templates[template.type] = template
        LOGGER.debug("Registered legacy node type %s", template.type)
        return template

    def has_node_type(self, node_type: str) -> bool:
        return node_type in self._templates

    def get_node_type(self, node_type: str) -> Optional[NodeTemplate]:
        return self._templates.get(node_type)

    def get_all_node_types(self) -> Dict[str, NodeTemplate]:
        return dict(self._templates)

    def get_node_types_by_category(self, category: str) -> List[NodeTemplate]:
        return [template for template in self._templates.values() if template.category == category]

    def create_node(
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
            raise RegistrationError(f"Unknown legacy node type '{node_type}'")
        data: Dict[str, Any] = {
            "label": template.label,
            "nodeType": node_type,
            "nodeIndex": node_index,
            "totalNodes": total_nodes,
            "config": dict(config or {}),
            **copy.deepcopy(template.default_data),
            **dict(custom_data or {}),
            "hideTestButton": True,
        }
        return {
            "id": node_id or f"{node_type}-{int(time.time() * 1000)}-{next(self._sequence)}",
            "type": node_type,
            "position": dict(position) if position else layout_position(node_index),
            "data": data,
        }

    def validate_node(
        self,
        node: Mapping[str, Any],
        *,
        external_config: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        node_type = node.get("type")
        template = self._templates.get(node_type)
        if template is None:
            return {"valid": False, "errors": [f"Unknown legacy node type '{node_type}'"]}
        data = node.get("data") or {}
        errors = validate_config(data, template.validation)

        min_length = template.validation.get("textMinLength")
        text = data.get("text")
        if min_length and not is_blank(text) and len(str(text).strip()) < min_length:
            errors.append(f"Text must be at least {min_length} characters")
        api_url = (data.get("config") or {}).get("ttsApiUrl") or (external_config or {}).get("ttsApiUrl")
        if node_type == "tts" and is_blank(api_url):
            errors.append("TTS API URL is not configured")
        return {"valid": not errors, "errors": errors}

    # Node list helpers

    def relayout_nodes(self, nodes: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        total = len(nodes)
        laid_out = []
        for index, node in enumerate(nodes):
            data = dict(node.get("data") or {})
            data["nodeIndex"] = index
            data["totalNodes"] = total
            laid_out.append({**node, "position": layout_position(index), "data": data})
        return laid_out

    def insert_node_at_position(
        self,
        nodes: Sequence[Mapping[str, Any]],
        node_type: str,
        index: int,
        **options: Any,
    ) -> List[Dict[str, Any]]:
        index = max(0, min(index, len(nodes)))
        new_node = self.create_node(node_type, node_index=index, total_nodes=len(nodes) + 1, **options)
        updated = [dict(node) for node in nodes]
        updated.insert(index, new_node)
        return self.relayout_nodes(updated)

    def delete_nodes(self, nodes: Sequence[Mapping[str, Any]], node_ids: Iterable[str]) -> List[Dict[str, Any]]:
        doomed = set(node_ids)
        return self.relayout_nodes([node for node in nodes if node.get("id") not in doomed])
