"""Routing decisions and rules for the two node families."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from ..errors import RoutingError
from ..models.template import NodeTemplate

FAMILIES = ("legacy", "dynamic")

CONFIDENCE_EXPLICIT = 1.0
CONFIDENCE_RULE = 0.8
CONFIDENCE_FALLBACK = 0.3

RoutePredicate = Callable[[str], bool]


@dataclass(frozen=True)
class RouteDecision:
    node_type: str
    family: str
    confidence: float
    source: str
    template: Optional[NodeTemplate] = None
    rule: Optional[str] = None
    warning: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.source == "fallback"

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "nodeType": self.node_type,
            "manager": self.family,
            "confidence": self.confidence,
            "source": self.source,
        }
        if self.rule:
            payload["rule"] = self.rule
        if self.warning:
            payload["warning"] = self.warning
        return payload


@dataclass
class RoutingRule:
    name: str
    predicate: RoutePredicate
    family: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.family not in FAMILIES:
            raise RoutingError(f"Routing rule '{self.name}' targets unknown family '{self.family}'")

    def matches(self, node_type: str) -> bool:
        return bool(self.predicate(node_type))
