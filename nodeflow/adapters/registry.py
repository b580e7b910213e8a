"""Registry of node adapters and dynamic execution handlers."""

from __future__ import annotations

import asyncio
import importlib
import inspect
import logging
from dataclasses import dataclass, field
from types import ModuleType
from typing import Any, Callable, Dict, Optional, Tuple

LOGGER = logging.getLogger(__name__)

HandlerCallable = Callable[..., Any]


@dataclass
class HandlerDescriptor:
    name: str
    callable: HandlerCallable
    metadata: Dict[str, Any] = field(default_factory=dict)


class AdapterRegistry:
    """In-memory registry mapping adapter/handler names to callables.

    Legacy node types register an adapter under their type name; dynamic
    templates reference handlers by their ``execution.handler`` name. Objects
    exposing ``process`` are called through it.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, HandlerDescriptor] = {}

    def register(self, name: str, entrypoint: str, metadata: Optional[Dict[str, Any]] = None) -> HandlerDescriptor:
        """Import and register a ``module:attr`` entrypoint."""

        module_name, attr = self._split_entrypoint(entrypoint)
        module: ModuleType = importlib.import_module(module_name)
        descriptor = HandlerDescriptor(name=name, callable=getattr(module, attr), metadata=metadata or {})
        self._handlers[name] = descriptor
        LOGGER.debug("Registered handler %s -> %s", name, entrypoint)
        return descriptor

    def register_callable(
        self,
        name: str,
        handler_callable: HandlerCallable,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> HandlerDescriptor:
        """Register an already-loaded handler callable or adapter object."""

        descriptor = HandlerDescriptor(name=name, callable=handler_callable, metadata=metadata or {})
        self._handlers[name] = descriptor
        LOGGER.debug("Registered handler %s (callable)", name)
        return descriptor

    def unregister(self, name: str) -> None:
        if self._handlers.pop(name, None) is not None:
            LOGGER.debug("Unregistered handler %s", name)

    def has(self, name: str) -> bool:
        return name in self._handlers

    def resolve(self, name: str) -> HandlerDescriptor:
        """Retrieve a registered handler; raise if missing."""

        try:
            return self._handlers[name]
        except KeyError as exc:
            available = ", ".join(self._handlers) or "none"
            LOGGER.error("Handler not registered: %s (available: %s)", name, available)
            raise KeyError(f"Handler not registered: {name}") from exc

    def list_handlers(self) -> Dict[str, HandlerDescriptor]:
        return dict(self._handlers)

    async def invoke(self, name: str, payload: Any) -> Any:
        """Call a handler, awaiting coroutines inline and running plain callables in a thread."""

        target = self._select_callable(self.resolve(name).callable)
        if inspect.iscoroutinefunction(target):
            return await target(payload)
        result = await asyncio.to_thread(target, payload)
        if inspect.isawaitable(result):
            return await result
        return result

    @staticmethod
    def _select_callable(handler_callable: Any) -> HandlerCallable:
        if callable(getattr(handler_callable, "process", None)):
            return handler_callable.process
        return handler_callable

    @staticmethod
    def _split_entrypoint(entrypoint: str) -> Tuple[str, str]:
        if ":" not in entrypoint:
            raise ValueError(f"Invalid entrypoint '{entrypoint}', expected format 'module:attr'")
        module_name, attr = entrypoint.split(":", 1)
        return module_name, attr
