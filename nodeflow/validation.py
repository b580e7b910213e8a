"""Field-level validation shared by the resolver and the registries."""

from __future__ import annotations

import re
from typing import Any, Callable, Iterable, List, Mapping, Optional


def is_blank(value: Any) -> bool:
    """None or a whitespace-only string; ``0`` and ``False`` are real values."""

    return value is None or (isinstance(value, str) and not value.strip())


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def check_rule(field: str, value: Any, rule: Mapping[str, Any]) -> Optional[str]:
    """First violated rule for a present value, or None."""

    expected = rule.get("type")
    if expected == "string" and not isinstance(value, str):
        return f'Field "{field}" must be a string'
    if expected == "number" and not _is_number(value):
        return f'Field "{field}" must be a number'
    if expected == "boolean" and not isinstance(value, bool):
        return f'Field "{field}" must be a boolean'
    allowed = rule.get("enum")
    if allowed is not None and value not in allowed:
        return f'Field "{field}" must be one of: {", ".join(str(item) for item in allowed)}'
    if rule.get("minLength") is not None and hasattr(value, "__len__") and len(value) < rule["minLength"]:
        return f'Field "{field}" must be at least {rule["minLength"]} characters'
    if rule.get("maxLength") is not None and hasattr(value, "__len__") and len(value) > rule["maxLength"]:
        return f'Field "{field}" must be at most {rule["maxLength"]} characters'
    pattern = rule.get("pattern")
    if pattern and isinstance(value, str) and not re.search(pattern, value):
        return f'Field "{field}" has an invalid format'
    if _is_number(value):
        if rule.get("min") is not None and value < rule["min"]:
            return f'Field "{field}" must be >= {rule["min"]}'
        if rule.get("max") is not None and value > rule["max"]:
            return f'Field "{field}" must be <= {rule["max"]}'
    return None


def validate_config(
    config: Mapping[str, Any],
    rules: Mapping[str, Any],
    *,
    has_default: Callable[[str], bool] = lambda _field: False,
) -> List[str]:
    """Collect every violation of ``rules`` found in ``config``.

    ``rules`` may carry ``required`` (list), ``conditionalRequired`` (mode ->
    list) and ``rules`` (field -> rule mapping).
    """

    errors: List[str] = []
    for field in _as_list(rules.get("required")):
        if is_blank(config.get(field)) and not has_default(field):
            errors.append(f'Required field "{field}" must not be empty')

    conditional = rules.get("conditionalRequired") or {}
    mode = config.get("mode")
    if isinstance(conditional, Mapping) and isinstance(mode, str):
        for field in _as_list(conditional.get(mode)):
            if is_blank(config.get(field)):
                errors.append(f'Field "{field}" is required in "{mode}" mode')

    for field, rule in (rules.get("rules") or {}).items():
        value = config.get(field)
        if value is None or not isinstance(rule, Mapping):
            continue
        message = check_rule(field, value, rule)
        if message:
            errors.append(message)
    return errors


def _as_list(value: Any) -> Iterable[str]:
    if isinstance(value, str):
        return [value]
    return list(value or [])
