"""Unified routing over the node families."""

from .dispatcher import DISPATCHER_NAME, FamilyStrategy, UnifiedDispatcher
from .routing import (
    CONFIDENCE_EXPLICIT,
    CONFIDENCE_FALLBACK,
    CONFIDENCE_RULE,
    RouteDecision,
    RoutingRule,
)

__all__ = [
    "CONFIDENCE_EXPLICIT",
    "CONFIDENCE_FALLBACK",
    "CONFIDENCE_RULE",
    "DISPATCHER_NAME",
    "FamilyStrategy",
    "RouteDecision",
    "RoutingRule",
    "UnifiedDispatcher",
]
