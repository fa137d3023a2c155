"""Pipeline and approval tools for Deploy Gate MCP Server."""

from fastmcp import FastMCP

from ..config import Settings
from ..models.schemas import PipelineRun, Trigger, TriggerEvent
from ..services.approval import ApprovalError
from ..services.git import GitError, GitService
from ..services.pipeline import Pipeline, RunRegistry


def _run_summary(run: PipelineRun) -> dict:
    return {
        "run_id": run.run_id,
        "status": run.status.value,
        "branch": run.trigger.branch,
        "event": run.trigger.event.value,
        "commit": run.trigger.commit,
        "environment": run.selection.environment.value if run.selection else None,
        "hostname": run.selection.hostname if run.selection else None,
        "error": run.error,
        "steps": [
            {"name": s.name, "status": s.status.value, "exit_code": s.exit_code}
            for s in run.steps
        ],
    }


def register_tools(mcp: FastMCP, settings: Settings) -> RunRegistry:
    """Register pipeline tools with the MCP server."""

    git_service = GitService(settings.working_dir)
    pipeline = Pipeline(settings)
    registry = RunRegistry(pipeline)
    gate = pipeline.approval_gate

    @mcp.tool()
    async def run_pipeline(
        branch: str | None = None,
        event: str = "push",
        commit: str | None = None,
        actor: str | None = None,
        wait: bool = False
    ) -> dict:
        """
        Runs lint, tests and (if the branch maps to an environment) deployment.

        Steps: lint -> test -> resolve environment -> approval (production only)
        -> deploy -> service/log/HTTP health checks -> notify.

        A newer run for the same branch cancels any run still in progress.
        Production runs pause in 'awaiting_approval' until 'approve_deployment'
        or 'reject_deployment' is called.

        Args:
            branch: Branch to run for (defaults to the checked-out git branch)
            event: 'push' or 'pull_request' (pull requests never deploy)
            commit: Commit identifier (defaults to HEAD)
            actor: Who triggered the run (defaults to git user.name)
            wait: Wait for the run to finish before returning

        Returns:
            Dictionary with run_id, status, branch, environment and steps
        """
        try:
            trigger_event = TriggerEvent(event)
        except ValueError:
            return {
                "error": "INVALID_EVENT",
                "message": f"Unknown event '{event}'. Use 'push' or 'pull_request'."
            }

        if (branch is None or commit is None) and not git_service.is_git_repository():
            return {
                "error": "GIT_ERROR",
                "message": f"{settings.working_dir} is not a git repository; pass branch and commit explicitly"
            }

        try:
            branch = branch or git_service.get_current_branch()
            if commit is None:
                commit = git_service.get_head_commit()
        except GitError as e:
            return {"error": "GIT_ERROR", "message": str(e)}

        trigger = Trigger(
            branch=branch,
            event=trigger_event,
            repository=settings.repository,
            commit=commit,
            actor=actor or git_service.get_author(),
        )
        run = registry.start(trigger)
        if wait:
            run = await registry.wait(run.run_id)
        return _run_summary(run)

    @mcp.tool()
    async def get_run(run_id: str, include_output: bool = False) -> dict:
        """
        Gets the state of a pipeline run.

        Args:
            run_id: Run ID returned by 'run_pipeline'
            include_output: Include captured step output

        Returns:
            Dictionary with run status and steps
        """
        try:
            run = registry.get(run_id)
        except KeyError as e:
            return {"error": "UNKNOWN_RUN", "message": str(e)}

        summary = _run_summary(run)
        if include_output:
            summary["steps"] = [s.model_dump() for s in run.steps]
        return summary

    @mcp.tool()
    async def list_runs(branch: str | None = None) -> dict:
        """
        Lists pipeline runs, newest first.

        Returns:
            Dictionary with runs list
        """
        return {"runs": [_run_summary(r) for r in registry.list_runs(branch)]}

    @mcp.tool()
    async def approve_deployment(run_id: str, approver: str) -> dict:
        """
        Approves a deployment waiting for manual approval.

        Returns:
            Dictionary with the resolved approval request
        """
        try:
            return gate.approve(run_id, approver)
        except ApprovalError as e:
            return {"error": "APPROVAL_ERROR", "message": str(e)}

    @mcp.tool()
    async def reject_deployment(run_id: str, approver: str, reason: str | None = None) -> dict:
        """
        Rejects a deployment waiting for manual approval. The run fails without deploying.

        Returns:
            Dictionary with the resolved approval request
        """
        try:
            return gate.reject(run_id, approver, reason)
        except ApprovalError as e:
            return {"error": "APPROVAL_ERROR", "message": str(e)}

    @mcp.tool()
    async def list_pending_approvals() -> dict:
        """
        Lists deployments waiting for manual approval.

        Returns:
            Dictionary with pending approval requests
        """
        return {"pending": gate.pending()}

    return registry
