"""Result records produced by the resolver and the status calculator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ResolvedConfiguration:
    config: Dict[str, Any]
    metadata: Dict[str, Any]
    validation: Dict[str, Any] = field(default_factory=dict)
    schema: Dict[str, Any] = field(default_factory=dict)
    node_config: Optional[Dict[str, Any]] = None

    @property
    def source_type(self) -> Optional[str]:
        return self.metadata.get("sourceType")

    @property
    def is_fallback(self) -> bool:
        return self.source_type == "fallback"

    @property
    def warnings(self) -> List[str]:
        return list(self.metadata.get("validationWarnings") or [])

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "config": self.config,
            "metadata": self.metadata,
            "validation": self.validation,
            "schema": self.schema,
        }
        if self.node_config is not None:
            payload["nodeConfig"] = self.node_config
        return payload


@dataclass
class StatusResult:
    status: str
    details: Dict[str, Any]
    priority: int
    is_terminal: bool
    can_execute: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "details": self.details,
            "priority": self.priority,
            "isTerminal": self.is_terminal,
            "canExecute": self.can_execute,
        }
