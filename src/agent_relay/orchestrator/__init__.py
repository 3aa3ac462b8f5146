"""Task envelope, backend registry and dispatcher."""

from agent_relay.orchestrator.dispatcher import Dispatcher
from agent_relay.orchestrator.models import (
    BackendConfig,
    BackendDefinition,
    HealthStatus,
    Result,
    ResultMetadata,
    Task,
    TaskContext,
)
from agent_relay.orchestrator.registry import BackendHandle, BackendRegistry
from agent_relay.orchestrator.specs import Agent, SpecAgent, TaskFailure, TaskSpec

__all__ = [
    "Agent",
    "BackendConfig",
    "BackendDefinition",
    "BackendHandle",
    "BackendRegistry",
    "Dispatcher",
    "HealthStatus",
    "Result",
    "ResultMetadata",
    "SpecAgent",
    "Task",
    "TaskContext",
    "TaskFailure",
    "TaskSpec",
]
