"""Inter-node data envelope."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping

WORKFLOW_DATA_TYPES = ("text", "audio", "error", "data", "download")


def freeze(value: Any) -> Any:
    """Read-only copy of a JSON-like value: mappings become proxies, lists tuples."""

    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    return copy.deepcopy(value)


def thaw(value: Any) -> Any:
    """Mutable copy of a value produced by ``freeze``."""

    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [thaw(item) for item in value]
    return copy.deepcopy(value)


@dataclass(frozen=True)
class WorkflowData:
    """Typed payload handed from one pipeline step to the next.

    ``type`` and ``content`` never change after construction; ``content`` is a
    read-only view and ``to_dict`` hands out mutable copies.
    """

    type: str
    content: Mapping[str, Any]
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.type not in WORKFLOW_DATA_TYPES:
            raise ValueError(f"Unsupported workflow data type '{self.type}'")
        if not isinstance(self.content, Mapping):
            raise TypeError("WorkflowData content must be a mapping")
        object.__setattr__(self, "content", freeze(self.content))

    def __deepcopy__(self, memo: Dict[int, Any]) -> "WorkflowData":
        return WorkflowData(type=self.type, content=self.content, metadata=copy.deepcopy(self.metadata, memo))

    @property
    def node_id(self) -> Any:
        return self.metadata.get("nodeId")

    @property
    def text(self) -> Any:
        return self.content.get("text")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "content": thaw(self.content),
            "metadata": copy.deepcopy(self.metadata),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "WorkflowData":
        return cls(
            type=payload["type"],
            content=payload.get("content") or {},
            metadata=dict(payload.get("metadata") or {}),
        )
