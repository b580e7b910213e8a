"""Pre-flight checks for a linear node pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from ..datamodel.formats import node_data
from ..models.template import NodeTemplate
from ..registry import LegacyNodeRegistry

LOGGER = logging.getLogger(__name__)

Nodes = Sequence[Mapping[str, Any]]
RuleCheck = Callable[[Nodes], Dict[str, Any]]

# Which legacy node types can feed which.
DATA_FLOW_COMPATIBILITY: Dict[str, frozenset] = {
    "text-input": frozenset({"tts", "output", "download"}),
    "tts": frozenset({"output", "download"}),
    "output": frozenset({"download"}),
    "download": frozenset(),
}

QUICK_RULES = ("workflow-structure", "node-configuration")


@dataclass(frozen=True)
class ValidationRule:
    rule_id: str
    name: str
    check: RuleCheck


def _result(errors: List[str], warnings: Optional[List[str]] = None) -> Dict[str, Any]:
    return {"valid": not errors, "errors": errors, "warnings": warnings or []}


class WorkflowValidator:
    """Named rule set run over a node list.

    ``get_template`` supplies node categories and ``validate_node`` the
    per-node verdict (a mapping with ``valid`` and ``errors``).
    """

    def __init__(
        self,
        *,
        get_template: Optional[Callable[[str], Optional[NodeTemplate]]] = None,
        validate_node: Optional[Callable[[Mapping[str, Any]], Mapping[str, Any]]] = None,
    ) -> None:
        if get_template is None or validate_node is None:
            registry = LegacyNodeRegistry()
            get_template = get_template or registry.get_node_type
            validate_node = validate_node or registry.validate_node
        self._get_template = get_template
        self._validate_node = validate_node
        self._rules: Dict[str, ValidationRule] = {}
        self._install_default_rules()

    def _install_default_rules(self) -> None:
        self.add_rule("workflow-structure", "Workflow structure", self._check_structure)
        self.add_rule("node-sequence", "Node sequence", self._check_sequence)
        self.add_rule("node-configuration", "Node configuration", self._check_configuration)
        self.add_rule("data-flow", "Data flow", self._check_data_flow)
        self.add_rule("duplicate-detection", "Duplicate nodes", self._check_duplicates)

    def add_rule(self, rule_id: str, name: str, check: RuleCheck) -> None:
        self._rules[rule_id] = ValidationRule(rule_id=rule_id, name=name, check=check)

    def remove_rule(self, rule_id: str) -> bool:
        return self._rules.pop(rule_id, None) is not None

    def rule_ids(self) -> List[str]:
        return list(self._rules)

    def validate(self, nodes: Optional[Nodes], enabled_rules: Optional[Sequence[str]] = None) -> Dict[str, Any]:
        nodes = list(nodes or [])
        rule_ids = [rule_id for rule_id in enabled_rules if rule_id in self._rules] if enabled_rules else list(self._rules)
        report: Dict[str, Any] = {
            "valid": True,
            "errors": [],
            "warnings": [],
            "ruleResults": {},
            "summary": {"totalRules": len(rule_ids), "passedRules": 0, "failedRules": 0},
        }
        for rule_id in rule_ids:
            rule = self._rules[rule_id]
            try:
                outcome = rule.check(nodes)
            except Exception as exc:  # noqa: BLE001
                LOGGER.warning("Validation rule %s failed: %s", rule_id, exc)
                outcome = _result([f"rule execution failed: {exc}"])
            report["ruleResults"][rule_id] = {**outcome, "ruleName": rule.name}
            if outcome["valid"]:
                report["summary"]["passedRules"] += 1
            else:
                report["summary"]["failedRules"] += 1
                report["valid"] = False
                report["errors"].extend(f"[{rule.name}] {error}" for error in outcome["errors"])
            report["warnings"].extend(f"[{rule.name}] {warning}" for warning in outcome.get("warnings") or [])
        return report

    def quick_validate(self, nodes: Optional[Nodes]) -> Dict[str, Any]:
        result = self.validate(nodes, QUICK_RULES)
        return {
            "valid": result["valid"],
            "canExecute": result["valid"],
            "criticalErrors": result["errors"],
            "nodeCount": len(nodes or []),
        }

    def category_of(self, node_type: Optional[str]) -> str:
        template = self._get_template(node_type) if node_type else None
        return template.category if template is not None and template.category else "unknown"

    @staticmethod
    def can_provide_data_to(from_type: Optional[str], to_type: Optional[str]) -> bool:
        """Whether ``from_type`` output suits ``to_type``; pairs outside the legacy table are allowed."""

        if from_type not in DATA_FLOW_COMPATIBILITY or to_type not in DATA_FLOW_COMPATIBILITY:
            return True
        return to_type in DATA_FLOW_COMPATIBILITY[from_type]

    # Rules

    def _check_structure(self, nodes: Nodes) -> Dict[str, Any]:
        errors = [] if nodes else ["Workflow must contain at least one node"]
        for index, node in enumerate(nodes):
            if not isinstance(node, Mapping) or not node.get("type"):
                errors.append(f"Node {index + 1} has no type")
            elif not isinstance(node.get("data"), Mapping):
                errors.append(f"Node {index + 1} ({node.get('type')}) has no data")
        return _result(errors)

    def _check_sequence(self, nodes: Nodes) -> Dict[str, Any]:
        if not nodes:
            return _result([])
        errors: List[str] = []
        warnings: List[str] = []
        categories = [self.category_of(node.get("type")) for node in nodes]
        if "input" not in categories:
            errors.append("Workflow should contain at least one input node")
        if "output" not in categories:
            errors.append("Workflow should contain at least one output node")
        elif categories[-1] != "output":
            warnings.append("Output nodes are best placed at the end of the workflow")
        return _result(errors, warnings)

    def _check_configuration(self, nodes: Nodes) -> Dict[str, Any]:
        errors: List[str] = []
        for index, node in enumerate(nodes):
            verdict = self._validate_node(node)
            if not verdict.get("valid"):
                label = node_data(node).get("label") or node.get("type")
                errors.append(f"Node {index + 1} ({label}): {', '.join(verdict.get('errors') or [])}")
        return _result(errors)

    def _check_data_flow(self, nodes: Nodes) -> Dict[str, Any]:
        errors: List[str] = []
        for index in range(1, len(nodes)):
            previous, current = nodes[index - 1], nodes[index]
            if not self.can_provide_data_to(previous.get("type"), current.get("type")):
                errors.append(
                    f"Node {index} ({node_data(previous).get('label') or previous.get('type')}) cannot feed "
                    f"node {index + 1} ({node_data(current).get('label') or current.get('type')})"
                )
        return _result(errors)

    def _check_duplicates(self, nodes: Nodes) -> Dict[str, Any]:
        errors: List[str] = []
        categories = [self.category_of(node.get("type")) for node in nodes]
        for category in ("input", "output"):
            count = categories.count(category)
            if count > 1:
                errors.append(f"Workflow contains {count} {category} nodes; keep only one")
        ids = [node.get("id") for node in nodes if node.get("id") is not None]
        duplicated = sorted({str(node_id) for node_id in ids if ids.count(node_id) > 1})
        if duplicated:
            errors.append(f"Duplicate node ids: {', '.join(duplicated)}")
        return _result(errors)
