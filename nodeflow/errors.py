"""Exception hierarchy shared by the nodeflow core."""

from __future__ import annotations

from typing import Iterable, List, Optional


class NodeflowError(RuntimeError):
    """Base class for all nodeflow failures."""


class ConfigurationError(NodeflowError):
    """Raised when a node configuration cannot be resolved or fails strict validation."""

    def __init__(self, message: str, *, errors: Optional[Iterable[str]] = None) -> None:
        super().__init__(message)
        self.errors: List[str] = list(errors or [])


class StatusError(NodeflowError):
    """Raised when a node status cannot be calculated."""


class RoutingError(NodeflowError):
    """Raised when a node type cannot be routed to a node family."""


class ExecutionError(NodeflowError):
    """Raised when a node adapter or handler fails to execute."""

    def __init__(
        self,
        message: str,
        *,
        node_id: Optional[str] = None,
        node_type: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.node_id = node_id
        self.node_type = node_type


class NormalizationError(NodeflowError):
    """Raised when a payload cannot be converted between data shapes."""


class EmptyPipelineError(NodeflowError):
    """Raised when a pipeline run is requested without any nodes."""


class RegistrationError(NodeflowError):
    """Raised when a node type template cannot be registered."""


class DescriptorError(NodeflowError):
    """Raised when a dynamic node descriptor is missing required keys."""

    def __init__(self, message: str, *, problems: Optional[Iterable[str]] = None) -> None:
        super().__init__(message)
        self.problems: List[str] = list(problems or [])
