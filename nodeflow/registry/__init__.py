"""Node type catalogs for the legacy and dynamic families."""

from .descriptors import (
    descriptor_to_template,
    generate_fields,
    humanize_field_name,
    parse_descriptor,
    register_descriptors,
    validate_descriptor,
)
from .dynamic import DynamicNodeRegistry
from .legacy import LegacyNodeRegistry
from .legacy_templates import LEGACY_TEMPLATES, build_legacy_templates

__all__ = [
    "DynamicNodeRegistry",
    "LEGACY_TEMPLATES",
    "LegacyNodeRegistry",
    "build_legacy_templates",
    "descriptor_to_template",
    "generate_fields",
    "humanize_field_name",
    "parse_descriptor",
    "register_descriptors",
    "validate_descriptor",
]
