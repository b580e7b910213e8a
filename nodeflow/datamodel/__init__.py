"""Canonical node-data representation and inter-node data envelopes."""

from .envelope import (
    as_workflow_data,
    clone,
    create_audio,
    create_data,
    create_download,
    create_error,
    create_text,
    create_workflow_data,
    format_size,
    get_preview,
    is_workflow_data,
    validate_workflow_data,
)
from .formats import (
    auto_convert,
    detect_format,
    extract_legacy_config_fields,
    find_node_config,
    from_dynamic_node,
    from_legacy_node,
    from_standard,
    source_family,
    to_dynamic_node,
    to_legacy_node,
    to_standard,
)
from .normalize import TEXT_CONSUMING_TYPES, normalize_output, prepare_input

__all__ = [
    "TEXT_CONSUMING_TYPES",
    "as_workflow_data",
    "auto_convert",
    "clone",
    "create_audio",
    "create_data",
    "create_download",
    "create_error",
    "create_text",
    "create_workflow_data",
    "detect_format",
    "extract_legacy_config_fields",
    "find_node_config",
    "format_size",
    "from_dynamic_node",
    "from_legacy_node",
    "from_standard",
    "get_preview",
    "is_workflow_data",
    "normalize_output",
    "prepare_input",
    "source_family",
    "to_dynamic_node",
    "to_legacy_node",
    "to_standard",
    "validate_workflow_data",
]
