"""Models and schemas for Deploy Gate MCP Server."""

from .schemas import (
    Environment,
    EnvironmentSelection,
    NotificationPayload,
    PipelineRun,
    RunStatus,
    StepResult,
    StepStatus,
    Trigger,
    TriggerEvent,
)

__all__ = [
    "Environment",
    "EnvironmentSelection",
    "NotificationPayload",
    "PipelineRun",
    "RunStatus",
    "StepResult",
    "StepStatus",
    "Trigger",
    "TriggerEvent",
]
