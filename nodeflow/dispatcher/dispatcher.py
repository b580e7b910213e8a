"""Single call surface over the legacy and dynamic node families."""

from __future__ import annotations

import asyncio
import copy
import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from ..adapters import AdapterRegistry, register_builtin_handlers
from ..cache import LRUCache
from ..config import NodeflowSettings, get_settings
from ..datamodel import detect_format, extract_legacy_config_fields, source_family, to_standard
from ..datamodel.envelope import now_iso
from ..datamodel.formats import node_data
from ..errors import RegistrationError
from ..execution import DynamicExecutor, ExecutionManager, ExecutionOutcome, LegacyExecutor
from ..models.node_types import DataFormat
from ..models.results import ResolvedConfiguration, StatusResult
from ..models.template import NodeTemplate
from ..registry import DynamicNodeRegistry, LegacyNodeRegistry, register_descriptors
from ..resolver import ConfigurationResolver
from ..status import NodeStatus, StatusCalculator
from .routing import (
    CONFIDENCE_EXPLICIT,
    CONFIDENCE_FALLBACK,
    CONFIDENCE_RULE,
    RouteDecision,
    RoutePredicate,
    RoutingRule,
)

LOGGER = logging.getLogger(__name__)

DISPATCHER_NAME = "UnifiedDispatcher"


@dataclass(frozen=True)
class FamilyStrategy:
    """Per-family operations the dispatcher delegates to."""

    name: str
    get_template: Callable[[str], Optional[NodeTemplate]]
    create: Callable[..., Dict[str, Any]]
    validate: Callable[[Mapping[str, Any]], Dict[str, Any]]


class UnifiedDispatcher:
    """Route create/update/validate/status/config/execute calls to the right family.

    Routing decisions are cached per ``(type, operation)``; ``refresh_routing``
    drops the cache and re-syncs the explicit route table from both registries.
    """

    def __init__(
        self,
        *,
        settings: Optional[NodeflowSettings] = None,
        legacy_registry: Optional[LegacyNodeRegistry] = None,
        dynamic_registry: Optional[DynamicNodeRegistry] = None,
        resolver: Optional[ConfigurationResolver] = None,
        status_calculator: Optional[StatusCalculator] = None,
        adapters: Optional[AdapterRegistry] = None,
        execution_manager: Optional[ExecutionManager] = None,
        routing_cache: Optional[LRUCache[RouteDecision]] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.legacy_registry = legacy_registry or LegacyNodeRegistry()
        self.dynamic_registry = dynamic_registry or DynamicNodeRegistry()
        cache_enabled = self.settings.cache_enabled
        self.resolver = resolver or ConfigurationResolver(
            cache=LRUCache(enabled=cache_enabled),
            external_config=self.settings.external_config,
            legacy_lookup=self.legacy_registry.get_node_type,
            dynamic_lookup=self.dynamic_registry.get_full_node_config,
            strict_validation=self.settings.strict_validation,
            legacy_types=self.settings.legacy_types,
            dynamic_types=self.settings.known_dynamic_types,
        )
        self.status_calculator = status_calculator or StatusCalculator(
            self.resolver, cache=LRUCache(enabled=cache_enabled)
        )
        self.adapters = adapters if adapters is not None else register_builtin_handlers(AdapterRegistry())
        self.execution_manager = execution_manager or ExecutionManager(
            legacy_executor=LegacyExecutor(self.resolver, self.adapters),
            dynamic_executor=DynamicExecutor(
                self.resolver,
                self.adapters,
                template_lookup=self.dynamic_registry.get_full_node_config,
                default_timeout=self.settings.default_handler_timeout_seconds,
                default_retry=self.settings.default_handler_retry,
            ),
        )
        self._routing_cache: LRUCache[RouteDecision] = (
            routing_cache if routing_cache is not None else LRUCache(enabled=cache_enabled)
        )
        self._legacy_types = frozenset(self.settings.legacy_types)
        self._dynamic_types = frozenset(self.settings.known_dynamic_types)
        self._families: Dict[str, FamilyStrategy] = {
            "legacy": FamilyStrategy(
                name="legacy",
                get_template=self.legacy_registry.get_node_type,
                create=self.legacy_registry.create_node,
                validate=lambda node: self.legacy_registry.validate_node(
                    node, external_config=self.settings.external_config
                ),
            ),
            "dynamic": FamilyStrategy(
                name="dynamic",
                get_template=self.dynamic_registry.get_full_node_config,
                create=self.dynamic_registry.create_dynamic_node,
                validate=self.dynamic_registry.validate_node_standard,
            ),
        }
        self._rules: Dict[str, RoutingRule] = {}
        self._rule_priority: List[str] = []
        self._explicit_routes: Dict[str, RouteDecision] = {}
        self._stats = {
            "totalOperations": 0,
            "legacyOperations": 0,
            "dynamicOperations": 0,
            "routingCacheHits": 0,
            "fallbackRoutes": 0,
            "operationErrors": 0,
        }
        self._install_default_rules()
        self.sync_node_type_registry()

    # Routing

    def _install_default_rules(self) -> None:
        self.register_routing_rule("legacy", lambda node_type: node_type in self._legacy_types, family="legacy")
        self.register_routing_rule("dynamic", self._dynamic_template_exists, family="dynamic")
        self.register_routing_rule("custom", lambda _node_type: False, family="legacy")

    def _dynamic_template_exists(self, node_type: str) -> bool:
        template = self.dynamic_registry.get_full_node_config(node_type)
        return template is not None and (template.source_type == "json" or template.fields is not None)

    def register_routing_rule(
        self,
        name: str,
        predicate: RoutePredicate,
        *,
        family: str,
        priority: Optional[int] = None,
    ) -> RoutingRule:
        rule = RoutingRule(name=name, predicate=predicate, family=family)
        self._rules[name] = rule
        if name in self._rule_priority:
            self._rule_priority.remove(name)
        if priority is None:
            self._rule_priority.append(name)
        else:
            self._rule_priority.insert(max(0, priority), name)
        self._routing_cache.clear()
        return rule

    def unregister_routing_rule(self, name: str) -> bool:
        removed = self._rules.pop(name, None) is not None
        if name in self._rule_priority:
            self._rule_priority.remove(name)
        if removed:
            self._routing_cache.clear()
        return removed

    def sync_node_type_registry(self) -> None:
        routes: Dict[str, RouteDecision] = {}
        for node_type, template in self.legacy_registry.get_all_node_types().items():
            routes[node_type] = RouteDecision(node_type, "legacy", CONFIDENCE_EXPLICIT, "explicit", template=template)
        for node_type, template in self.dynamic_registry.get_all_node_types().items():
            if node_type in self._legacy_types:
                continue
            routes[node_type] = RouteDecision(node_type, "dynamic", CONFIDENCE_EXPLICIT, "explicit", template=template)
        self._explicit_routes = routes
        LOGGER.debug("Synced routing table with %d node types", len(routes))

    def refresh_routing(self) -> None:
        self._routing_cache.clear()
        self.sync_node_type_registry()

    def route(self, node_type: str, operation: str = "default") -> RouteDecision:
        """Pick the family serving ``node_type``; unmatched types fall back to legacy."""

        cache_key = (node_type, operation)
        cached = self._routing_cache.get(cache_key)
        if cached is not None:
            self._stats["routingCacheHits"] += 1
            return cached
        decision = self._explicit_routes.get(node_type)
        if decision is None:
            decision = self._route_by_rules(node_type)
        self._routing_cache.set(cache_key, decision)
        return decision

    def _route_by_rules(self, node_type: str) -> RouteDecision:
        for name in self._rule_priority:
            rule = self._rules[name]
            try:
                matched = rule.matches(node_type)
            except Exception as exc:  # noqa: BLE001
                LOGGER.warning("Routing rule %s failed for %s: %s", name, node_type, exc)
                continue
            if matched:
                template = self._families[rule.family].get_template(node_type)
                return RouteDecision(node_type, rule.family, CONFIDENCE_RULE, "rule-based", template=template, rule=name)
        self._stats["fallbackRoutes"] += 1
        LOGGER.warning("No routing rule matched node type %s; falling back to legacy", node_type)
        return RouteDecision(
            node_type,
            "legacy",
            CONFIDENCE_FALLBACK,
            "fallback",
            warning="No matching routing rule found",
        )

    def _track(self, decision: RouteDecision) -> None:
        self._stats["totalOperations"] += 1
        self._stats[f"{decision.family}Operations"] += 1

    # Node type catalog

    def register_dynamic_template(self, node_type: str, template: NodeTemplate | Mapping[str, Any]) -> NodeTemplate:
        registered = self.dynamic_registry.register_full_node_config(node_type, template)
        self.refresh_routing()
        return registered

    def register_descriptors(self, documents: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
        summary = register_descriptors(self.dynamic_registry, documents)
        self.refresh_routing()
        return summary

    def detect_format(self, node: Mapping[str, Any]) -> DataFormat:
        return detect_format(node, legacy_types=self._legacy_types, dynamic_types=self._dynamic_types)

    def get_node_type_config(self, node_type: str) -> Optional[NodeTemplate]:
        decision = self.route(node_type, "getConfig")
        return decision.template or self._families[decision.family].get_template(node_type)

    def get_all_node_types(self) -> Dict[str, NodeTemplate]:
        """Every known template; a dynamic template wins over a legacy one of the same type."""

        return {**self.legacy_registry.get_all_node_types(), **self.dynamic_registry.get_all_node_types()}

    # Node operations

    def create(self, node_type: str, **options: Any) -> Dict[str, Any]:
        if not node_type:
            raise RegistrationError("Node type must not be empty")
        decision = self.route(node_type, "create")
        self._track(decision)
        if decision.family == "dynamic":
            options["config"] = {"_userSaved": False, **dict(options.get("config") or {})}
        node = self._families[decision.family].create(node_type, **options)
        standard = self._standardize(node, decision)
        standard["data"]["_status"] = self.status_calculator.calculate_status(standard).to_dict()
        LOGGER.debug("Created %s node %s via %s route", node_type, standard.get("id"), decision.source)
        return standard

    def update(
        self,
        node: Mapping[str, Any],
        data_updates: Optional[Mapping[str, Any]] = None,
        *,
        config_updates: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Return an updated copy of ``node`` in the standard shape."""

        decision = self.route(node.get("type"), "update")
        self._track(decision)
        data = copy.deepcopy(node_data(node))
        data.update(dict(data_updates or {}))
        config = dict(data.get("config") or {})
        config.update(dict(config_updates or {}))
        if decision.family == "legacy":
            config.update(extract_legacy_config_fields(dict(data_updates or {})))
            if source_family(node) == "legacy":
                data.update(extract_legacy_config_fields(dict(config_updates or {})))
        data["config"] = config
        updated = self._standardize({**node, "data": data}, decision)
        updated["data"]["_lastUpdated"] = now_iso()
        updated["data"]["_updatedBy"] = DISPATCHER_NAME
        updated["data"]["_status"] = self.status_calculator.calculate_status(updated).to_dict()
        return updated

    def validate(self, node: Mapping[str, Any]) -> Dict[str, Any]:
        decision = self.route(node.get("type"), "validate")
        self._track(decision)
        errors: List[str] = []
        resolved = self.resolver.resolve(node, strict_validation=False)
        warnings = list(resolved.warnings)
        if resolved.is_fallback:
            errors.append(f"Configuration could not be resolved: {resolved.metadata.get('fallbackReason')}")
        status = self.status_calculator.calculate_status(node)
        if status.status in (NodeStatus.ERROR.value, NodeStatus.INVALID.value):
            errors.append(f"Node status is {status.status}: {status.details.get('reason', '')}".rstrip(": "))
        manager_validation = self._families[decision.family].validate(node)
        errors.extend(manager_validation.get("errors") or [])
        return {
            "valid": not errors,
            "errors": errors,
            "warnings": warnings,
            "canExecute": not errors and status.can_execute,
            "status": status.status,
            "source": decision.family,
            "routingInfo": decision.to_dict(),
            "timestamp": now_iso(),
        }

    def get_status(self, node: Mapping[str, Any]) -> StatusResult:
        decision = self.route(node.get("type"), "getStatus")
        self._track(decision)
        status = self.status_calculator.calculate_status(node)
        details = {**status.details, "managedBy": decision.family, "routingInfo": decision.to_dict()}
        return dataclasses.replace(status, details=details)

    def resolve_config(
        self,
        node: Mapping[str, Any],
        *,
        user_config: Optional[Mapping[str, Any]] = None,
    ) -> ResolvedConfiguration:
        decision = self.route(node.get("type"), "resolveConfig")
        self._track(decision)
        resolved = self.resolver.resolve(node, user_config=user_config)
        resolved.metadata["managedBy"] = decision.family
        resolved.metadata["routingInfo"] = decision.to_dict()
        return resolved

    async def execute(
        self,
        node: Mapping[str, Any],
        input_data: Any = None,
        *,
        user_config: Optional[Mapping[str, Any]] = None,
    ) -> ExecutionOutcome:
        """Execute ``node``; never raises for node or adapter failures."""

        node_id = node.get("id") if isinstance(node, Mapping) else None
        node_type = node.get("type") if isinstance(node, Mapping) else None
        try:
            decision = self.route(node_type, "execute")
            self._track(decision)
            gate = self._execution_gate(node)
            if not gate.can_execute:
                LOGGER.warning("Rejecting execution of node %s in status %s", node_id, gate.status)
                return ExecutionOutcome(
                    success=False,
                    error=f"Node {node_id} cannot execute in status '{gate.status}': {gate.details.get('reason', '')}",
                    source=DISPATCHER_NAME,
                    node_id=node_id,
                    node_type=node_type,
                    metadata={"status": gate.to_dict(), "routingInfo": decision.to_dict()},
                )
            outcome = await self.execution_manager.execute(
                node, input_data, family=decision.family, user_config=user_config
            )
            outcome.metadata["routingInfo"] = decision.to_dict()
            return outcome
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            self._stats["operationErrors"] += 1
            LOGGER.exception("Dispatch of node %s failed: %s", node_id, exc)
            return ExecutionOutcome(
                success=False,
                error=str(exc),
                source=DISPATCHER_NAME,
                node_id=node_id,
                node_type=node_type,
            )

    def _execution_gate(self, node: Mapping[str, Any]) -> StatusResult:
        """Status of the node's configuration, ignoring artifacts of earlier runs."""

        data = {**node_data(node), "result": None, "isProcessing": False}
        return self.status_calculator.calculate_status({**node, "data": data})

    def _standardize(self, node: Mapping[str, Any], decision: RouteDecision) -> Dict[str, Any]:
        template = decision.template if decision.family == "dynamic" else None
        standard = to_standard(
            dict(node),
            template,
            legacy_types=self._legacy_types,
            dynamic_types=self._dynamic_types,
        )
        return standard if standard is not node else dict(node)

    # Bookkeeping

    def clear_cache(self) -> None:
        self._routing_cache.clear()
        self.resolver.clear_cache()
        self.status_calculator.clear_cache()

    def get_stats(self) -> Dict[str, Any]:
        total = self._stats["totalOperations"]
        return {
            **self._stats,
            "routingTableSize": len(self._explicit_routes),
            "routingCacheSize": len(self._routing_cache),
            "routingRules": list(self._rule_priority),
            "legacyRatio": round(self._stats["legacyOperations"] / total, 3) if total else 0.0,
            "dynamicRatio": round(self._stats["dynamicOperations"] / total, 3) if total else 0.0,
            "execution": self.execution_manager.get_stats(),
        }

    def health_status(self) -> Dict[str, Any]:
        issues: List[str] = []
        warnings: List[str] = []
        if not self._explicit_routes:
            issues.append("No node types registered")
        if not self._rules:
            issues.append("No routing rules registered")
        if self._stats["fallbackRoutes"]:
            warnings.append(f"{self._stats['fallbackRoutes']} node types were routed by fallback")
        if self._stats["operationErrors"]:
            warnings.append(f"{self._stats['operationErrors']} dispatch operations failed")
        overall = "unhealthy" if issues else ("degraded" if warnings else "healthy")
        return {"overall": overall, "issues": issues, "warnings": warnings, "checkedAt": now_iso()}
