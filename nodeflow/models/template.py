"""Node type template models."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FieldSpec(BaseModel):
    """Single configurable field declared by a dynamic node type."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    name: str
    type: str = "text"
    label: Optional[str] = None
    default_value: Any = Field(default=None, alias="defaultValue")
    required: bool = False
    placeholder: Optional[str] = None
    options: Optional[List[Any]] = None
    validation: Dict[str, Any] = Field(default_factory=dict)


class ExecutionDescriptor(BaseModel):
    """How a dynamic node type is executed."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    type: str = "local"
    handler: str
    timeout: Optional[float] = None
    retry: Optional[int] = None
    endpoint: Optional[str] = None
    method: Optional[str] = None
    headers: Optional[Dict[str, str]] = None

    @field_validator("handler")
    @classmethod
    def _require_handler(cls, value: str) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("execution handler must be a non-empty identifier")
        return value


class NodeTemplate(BaseModel):
    """Registry-owned, immutable description of a node type."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    type: str
    label: str
    icon: Optional[str] = None
    description: Optional[str] = None
    category: str = "general"
    theme: Optional[str] = None
    default_data: Dict[str, Any] = Field(default_factory=dict, alias="defaultData")
    validation: Dict[str, Any] = Field(default_factory=dict)
    fields: Optional[List[FieldSpec]] = None
    execution: Optional[ExecutionDescriptor] = None
    input_schema: Optional[Dict[str, Dict[str, Any]]] = Field(default=None, alias="inputSchema")
    output_schema: Optional[Dict[str, Dict[str, Any]]] = Field(default=None, alias="outputSchema")
    api: Optional[Dict[str, Any]] = None
    meta: Dict[str, Any] = Field(default_factory=dict)
    source_type: str = Field(default="json", alias="sourceType")
    requires_api: Optional[str] = Field(default=None, alias="requiresApi")
    output_type: Optional[str] = Field(default=None, alias="outputType")
    is_terminal: bool = Field(default=False, alias="isTerminal")

    def to_node_config(self) -> Dict[str, Any]:
        """Plain mapping stored on node records as ``data.nodeConfig``."""

        return self.model_dump(by_alias=True, exclude_none=True)
