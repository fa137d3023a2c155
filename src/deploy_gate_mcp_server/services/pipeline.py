"""Pipeline orchestration: lint, test, resolve, approve, deploy, health-check, notify."""

import asyncio
import logging
import time
import uuid
from datetime import datetime, timezone

from ..config import Settings
from ..models.schemas import (
    NotificationPayload,
    PipelineRun,
    RunStatus,
    StepResult,
    StepStatus,
    Trigger,
)
from .approval import ApprovalError, ApprovalGate, ApprovalStore
from .commands import CommandError, CommandRunner
from .environment_resolver import HostnameOverrideError, resolve_environment
from .health import HealthChecker
from .locks import BranchLocks
from .notifier import NotificationError, SlackNotifier

logger = logging.getLogger(__name__)

DEPLOY_STEPS = ("deploy", "health_service", "health_logs", "health_http")


class Pipeline:
    """
    Sequential deployment pipeline for one application.

    A run succeeds iff lint and tests pass and, when the branch resolves to an
    environment, the deployment and both health checks succeed. The first
    failing step halts the run; there is no retry and no rollback.
    """

    def __init__(
        self,
        settings: Settings,
        runner: CommandRunner | None = None,
        approval_gate: ApprovalGate | None = None,
        locks: BranchLocks | None = None,
        health: HealthChecker | None = None,
        notifier: SlackNotifier | None = None,
    ):
        self.settings = settings
        self.runner = runner or CommandRunner(settings.working_dir, timeout=settings.step_timeout)
        self.approval_gate = approval_gate or ApprovalGate(
            ApprovalStore(settings.get_approval_file_path()),
            poll_interval=settings.approval_poll_interval,
        )
        self.locks = locks or BranchLocks()
        self.health = health or HealthChecker(
            self.runner,
            settings.get_inventory_path(),
            timeout=settings.health_check_timeout,
        )
        if notifier is None and settings.slack_webhook_url:
            notifier = SlackNotifier(settings.slack_webhook_url)
        self.notifier = notifier

    async def _command_step(self, run: PipelineRun, name: str, command: str | list[str]) -> bool:
        try:
            result = await self.runner.run(command)
        except CommandError as e:
            run.steps.append(StepResult(name=name, status=StepStatus.FAILURE, output=str(e)))
            return False

        status = StepStatus.SUCCESS if result.success else StepStatus.FAILURE
        run.steps.append(StepResult(
            name=name,
            status=status,
            output=result.output,
            exit_code=result.exit_code,
            duration=result.duration,
        ))
        return result.success

    def deploy_command(self, hostname: str, env_key: str) -> list[str]:
        """Build the ansible-playbook invocation for a target host."""
        s = self.settings
        return [
            "ansible-playbook", str(s.get_playbook_path()),
            "-i", str(s.get_inventory_path()),
            "--limit", hostname,
            "-e", f"app_name={s.app_name}",
            "-e", f"app_port={s.app_port}",
            "-e", f"python_version={s.python_version}",
            "-e", f"deploy_env={env_key}",
        ]

    async def _approve(self, run: PipelineRun) -> bool:
        selection = run.selection
        run.status = RunStatus.AWAITING_APPROVAL
        self.approval_gate.request(
            run.run_id,
            branch=run.trigger.branch,
            environment=selection.environment.value,
            hostname=selection.hostname,
        )

        started = time.monotonic()
        try:
            decision = await self.approval_gate.wait(run.run_id, self.settings.approval_timeout)
        except ApprovalError as e:
            run.steps.append(StepResult(
                name="approval",
                status=StepStatus.FAILURE,
                output=str(e),
                duration=time.monotonic() - started,
            ))
            return False

        run.status = RunStatus.RUNNING
        run.steps.append(StepResult(
            name="approval",
            status=StepStatus.SUCCESS,
            output=f"Approved by {decision.get('decided_by')}",
            duration=time.monotonic() - started,
        ))
        return True

    async def _deploy_and_check(self, run: PipelineRun) -> bool:
        s = self.settings
        selection = run.selection

        if not await self._command_step(run, "deploy", self.deploy_command(selection.hostname, selection.key)):
            return False

        try:
            status = await self.health.service_status(selection.hostname, s.app_name)
        except CommandError as e:
            run.steps.append(StepResult(name="health_service", status=StepStatus.FAILURE, output=str(e)))
            return False
        run.steps.append(StepResult(
            name="health_service",
            status=StepStatus.SUCCESS if status.success else StepStatus.FAILURE,
            output=status.output,
            exit_code=status.exit_code,
            duration=status.duration,
        ))
        if not status.success:
            return False

        # Log output is informational and never fails the run
        try:
            logs = await self.health.recent_logs(selection.hostname, s.app_name, s.journal_lines)
            run.steps.append(StepResult(
                name="health_logs",
                status=StepStatus.SUCCESS,
                output=logs.output,
                exit_code=logs.exit_code,
                duration=logs.duration,
            ))
        except CommandError as e:
            logger.warning("Could not fetch logs for %s: %s", s.app_name, e)
            run.steps.append(StepResult(name="health_logs", status=StepStatus.SKIPPED, output=str(e)))

        started = time.monotonic()
        url = self.health.health_url(selection.hostname, s.app_port, s.health_check_path)
        healthy, detail = await self.health.http_check(url)
        run.steps.append(StepResult(
            name="health_http",
            status=StepStatus.SUCCESS if healthy else StepStatus.FAILURE,
            output=detail,
            duration=time.monotonic() - started,
        ))
        return healthy

    async def _execute(self, run: PipelineRun) -> bool:
        trigger = run.trigger

        if not await self._command_step(run, "lint", self.settings.lint_command):
            return False
        if not await self._command_step(run, "test", self.settings.test_command):
            return False

        try:
            run.selection = resolve_environment(
                trigger.branch,
                self.settings.environment_hostnames,
                event=trigger.event,
                runner_labels=self.settings.runner_labels,
            )
        except HostnameOverrideError as e:
            run.steps.append(StepResult(name="resolve", status=StepStatus.FAILURE, output=str(e)))
            return False

        if run.selection is None:
            run.steps.append(StepResult(
                name="resolve",
                status=StepStatus.SUCCESS,
                output=f"No environment for {trigger.event.value} on '{trigger.branch}'",
            ))
            for name in DEPLOY_STEPS:
                run.steps.append(StepResult(name=name, status=StepStatus.SKIPPED))
            return True

        selection = run.selection
        run.steps.append(StepResult(
            name="resolve",
            status=StepStatus.SUCCESS,
            output=f"{selection.environment.value} on {selection.hostname} (runner {selection.runner_label})",
        ))

        if selection.approval_required and not await self._approve(run):
            return False

        async with self.locks.hold(trigger.branch):
            return await self._deploy_and_check(run)

    async def run(self, run: PipelineRun) -> PipelineRun:
        """Execute a run to completion, updating it in place."""
        logger.info("Starting run %s for %s", run.run_id, run.trigger.branch)
        run.status = RunStatus.RUNNING

        try:
            succeeded = await self._execute(run)
        except asyncio.CancelledError:
            self.approval_gate.cancel(run.run_id)
            self._finish(run, RunStatus.CANCELLED, "Superseded by a newer run")
            raise

        if succeeded:
            self._finish(run, RunStatus.SUCCESS)
        else:
            failed = next((s for s in run.steps if s.status is StepStatus.FAILURE), None)
            self._finish(run, RunStatus.FAILURE, f"Step '{failed.name}' failed" if failed else None)

        await self.notify(run)
        return run

    def _finish(self, run: PipelineRun, status: RunStatus, error: str | None = None) -> None:
        run.status = status
        run.error = error
        run.finished_at = datetime.now(timezone.utc)
        logger.info("Run %s finished: %s%s", run.run_id, status.value, f" ({error})" if error else "")

    async def notify(self, run: PipelineRun) -> None:
        """Post the run outcome; failures are logged and never change the outcome."""
        if self.notifier is None:
            return

        trigger = run.trigger
        payload = NotificationPayload(
            status=run.status.value,
            repository=trigger.repository or self.settings.repository,
            branch=trigger.branch,
            commit=trigger.commit,
            actor=trigger.actor,
            environment=run.selection.environment.value if run.selection else None,
            run_id=run.run_id,
        )
        try:
            await self.notifier.send(payload)
        except NotificationError as e:
            logger.error("Notification for run %s failed: %s", run.run_id, e)


class RunRegistry:
    """
    Tracks pipeline runs and keeps one run in flight per branch.

    Starting a run for a branch cancels any unfinished run for the same
    branch (cancel-in-progress). Only the newest max_runs finished runs are
    kept.
    """

    def __init__(self, pipeline: Pipeline, max_runs: int = 100):
        self.pipeline = pipeline
        self.max_runs = max_runs
        self._runs: dict[str, PipelineRun] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._latest_by_branch: dict[str, str] = {}

    def start(self, trigger: Trigger) -> PipelineRun:
        """Start a run in the background and return its initial state."""
        previous_id = self._latest_by_branch.get(trigger.branch)
        if previous_id is not None:
            previous = self._tasks.get(previous_id)
            if previous is not None and not previous.done():
                logger.info("Cancelling run %s for %s", previous_id, trigger.branch)
                previous.cancel()

        run = PipelineRun(run_id=uuid.uuid4().hex[:12], trigger=trigger)
        self._runs[run.run_id] = run
        self._latest_by_branch[trigger.branch] = run.run_id
        task = asyncio.create_task(self.pipeline.run(run))
        task.add_done_callback(lambda t: self._on_done(run, t))
        self._tasks[run.run_id] = task
        self._prune()
        return run

    def _on_done(self, run: PipelineRun, task: asyncio.Task) -> None:
        self._tasks.pop(run.run_id, None)
        # Cancelled before the pipeline got to run
        if task.cancelled() and not run.status.finished:
            run.status = RunStatus.CANCELLED
            run.error = "Superseded by a newer run"
            run.finished_at = datetime.now(timezone.utc)
        elif not task.cancelled() and task.exception() is not None:
            logger.error("Run %s crashed", run.run_id, exc_info=task.exception())
            run.status = RunStatus.FAILURE
            run.error = str(task.exception())
            run.finished_at = datetime.now(timezone.utc)
        self._prune()

    def _prune(self) -> None:
        finished = [run_id for run_id in self._runs if run_id not in self._tasks]
        for run_id in finished[:max(0, len(finished) - self.max_runs)]:
            run = self._runs.pop(run_id)
            if self._latest_by_branch.get(run.trigger.branch) == run_id:
                del self._latest_by_branch[run.trigger.branch]

    async def wait(self, run_id: str) -> PipelineRun:
        """Wait for a run to finish, whether it succeeded, failed or was cancelled."""
        run = self.get(run_id)
        task = self._tasks.get(run_id)
        if task is not None:
            await asyncio.wait({task})
        return run

    def get(self, run_id: str) -> PipelineRun:
        run = self._runs.get(run_id)
        if run is None:
            raise KeyError(f"Unknown run '{run_id}'")
        return run

    def list_runs(self, branch: str | None = None) -> list[PipelineRun]:
        runs = list(self._runs.values())
        if branch is not None:
            runs = [r for r in runs if r.trigger.branch == branch]
        return sorted(runs, key=lambda r: r.started_at, reverse=True)
