"""External dynamic node descriptor documents."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DescriptorMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    node_id: str = Field(alias="nodeId")
    display_name: str = Field(alias="displayName")
    config_version: str = Field(alias="configVersion")


class DescriptorNode(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    label: str
    icon: str
    description: str
    category: str
    theme: str


class DescriptorData(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    default_data: Dict[str, Any] = Field(default_factory=dict, alias="defaultData")
    validation: Dict[str, Any] = Field(default_factory=dict)


class NodeDescriptor(BaseModel):
    """One JSON document declaring a dynamic node type."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    meta: DescriptorMeta
    node: DescriptorNode
    components: Dict[str, Any]
    data: DescriptorData
    fields: Optional[List[Dict[str, Any]]] = None
    input_schema: Optional[Dict[str, Dict[str, Any]]] = Field(default=None, alias="inputSchema")
    output_schema: Optional[Dict[str, Dict[str, Any]]] = Field(default=None, alias="outputSchema")
    execution: Optional[Dict[str, Any]] = None
    api: Optional[Dict[str, Any]] = None
