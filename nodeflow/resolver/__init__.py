"""Configuration resolution."""

from .resolver import ConfigurationResolver, coerce_field_value

__all__ = ["ConfigurationResolver", "coerce_field_value"]
