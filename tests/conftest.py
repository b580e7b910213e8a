import pytest

from nodeflow.config import NodeflowSettings
from nodeflow.dispatcher import UnifiedDispatcher


@pytest.fixture
def settings() -> NodeflowSettings:
    return NodeflowSettings(inter_step_delay_seconds=0, default_handler_timeout_seconds=5)


@pytest.fixture
def dispatcher(settings: NodeflowSettings) -> UnifiedDispatcher:
    return UnifiedDispatcher(settings=settings)
