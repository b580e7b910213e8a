"""Node adapters and dynamic execution handlers."""

from .builtin import (
    BUILTIN_HANDLERS,
    generic_processor_handler,
    media_input_handler,
    register_builtin_handlers,
    text_process_handler,
)
from .registry import AdapterRegistry, HandlerDescriptor

__all__ = [
    "AdapterRegistry",
    "BUILTIN_HANDLERS",
    "HandlerDescriptor",
    "generic_processor_handler",
    "media_input_handler",
    "register_builtin_handlers",
    "text_process_handler",
]
