"""Pydantic models for the MCP server."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class Environment(str, Enum):
    """Deployment environments a branch can resolve to."""

    DEVELOPMENT = "development"
    TEST = "test"
    PRODUCTION = "production"

    @property
    def key(self) -> str:
        """Short key used in hostname overrides and runner labels."""
        return _ENVIRONMENT_KEYS[self]


_ENVIRONMENT_KEYS = {
    Environment.DEVELOPMENT: "dev",
    Environment.TEST: "test",
    Environment.PRODUCTION: "prod",
}


class TriggerEvent(str, Enum):
    PUSH = "push"
    PULL_REQUEST = "pull_request"


class EnvironmentSelection(BaseModel, frozen=True):
    """Deployment target resolved from a branch."""
    environment: Environment
    hostname: str
    runner_label: str
    approval_required: bool

    @property
    def key(self) -> str:
        return self.environment.key


class Trigger(BaseModel):
    """What started a pipeline run."""
    branch: str
    event: TriggerEvent = TriggerEvent.PUSH
    repository: str = ""
    commit: str = ""
    actor: str = ""


class StepStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"


class StepResult(BaseModel):
    """Result of a single pipeline step."""
    name: str
    status: StepStatus
    output: str = ""
    exit_code: int | None = None
    duration: float = 0.0


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    AWAITING_APPROVAL = "awaiting_approval"
    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"

    @property
    def finished(self) -> bool:
        return self in (RunStatus.SUCCESS, RunStatus.FAILURE, RunStatus.CANCELLED)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PipelineRun(BaseModel):
    """State of one pipeline run."""
    run_id: str
    trigger: Trigger
    status: RunStatus = RunStatus.PENDING
    selection: EnvironmentSelection | None = None
    steps: list[StepResult] = Field(default_factory=list)
    error: str | None = None
    started_at: datetime = Field(default_factory=_utcnow)
    finished_at: datetime | None = None

    def step(self, name: str) -> StepResult | None:
        """Get the result of a step by name."""
        for result in self.steps:
            if result.name == name:
                return result
        return None


class NotificationPayload(BaseModel):
    """Status summary posted to the messaging webhook."""
    status: str
    repository: str
    branch: str
    commit: str
    actor: str
    environment: str | None = None
    run_id: str | None = None

    def to_slack_message(self) -> dict:
        """Render the payload as a Slack incoming-webhook message."""
        target = self.environment or "no deployment"
        text = (
            f"Pipeline {self.status} for {self.repository}@{self.branch} "
            f"({self.commit[:7] or 'unknown'}) by {self.actor or 'unknown'} -> {target}"
        )
        return {"text": text, **self.model_dump()}
