"""Environment resolution tools for Deploy Gate MCP Server."""

from fastmcp import FastMCP

from ..config import Settings
from ..models.schemas import TriggerEvent
from ..services.environment_resolver import (
    HostnameOverrideError,
    parse_hostname_overrides,
    resolve_environment as resolve,
    resolve_hostnames,
)
from ..services.workflow import render_workflow as render


def register_tools(mcp: FastMCP, settings: Settings) -> None:
    """Register environment resolution tools with the MCP server."""

    @mcp.tool()
    async def resolve_environment(
        branch: str,
        event: str = "push",
        environment_hostnames: str | None = None
    ) -> dict:
        """
        Resolves which deployment environment a branch deploys to.

        Rules (first match wins):
            main                               -> production (manual approval required)
            test                               -> test
            dev, feature/*, bug/*, refactor/*  -> development
            anything else                      -> no deployment

        Pull request events never deploy.

        Args:
            branch: Branch name (e.g. 'feature/login')
            event: 'push' or 'pull_request'
            environment_hostnames: Optional overrides like 'dev=custom-dev01,prod=custom-prod01'.
                                   Defaults to the server's configured overrides.

        Returns:
            Dictionary with branch, deploy flag, environment, hostname, runner_label, approval_required
        """
        overrides = settings.environment_hostnames if environment_hostnames is None else environment_hostnames

        try:
            selection = resolve(
                branch,
                overrides,
                event=TriggerEvent(event),
                runner_labels=settings.runner_labels,
            )
        except HostnameOverrideError as e:
            return {"error": "INVALID_HOSTNAMES", "message": str(e)}
        except ValueError:
            return {
                "error": "INVALID_EVENT",
                "message": f"Unknown event '{event}'. Use 'push' or 'pull_request'."
            }

        if selection is None:
            return {
                "branch": branch,
                "deploy": False,
                "environment": None,
                "hostname": None,
                "runner_label": None,
                "approval_required": False,
            }

        return {
            "branch": branch,
            "deploy": True,
            "environment": selection.environment.value,
            "hostname": selection.hostname,
            "runner_label": selection.runner_label,
            "approval_required": selection.approval_required,
        }

    @mcp.tool()
    async def parse_hostnames(environment_hostnames: str) -> dict:
        """
        Parses an 'env=hostname,...' override string and shows the effective hostnames.

        Valid environments are dev, test and prod. Unspecified environments keep
        their defaults (dev01, test01, prod01).

        Returns:
            Dictionary with overrides and effective hostnames
        """
        try:
            overrides = parse_hostname_overrides(environment_hostnames)
        except HostnameOverrideError as e:
            return {"error": "INVALID_HOSTNAMES", "message": str(e)}

        return {
            "overrides": overrides,
            "hostnames": resolve_hostnames(overrides),
        }

    @mcp.tool()
    async def render_workflow() -> dict:
        """
        Renders the equivalent GitHub Actions workflow for the configured application.

        Returns:
            Dictionary with the workflow YAML
        """
        try:
            return {"workflow": render(settings)}
        except HostnameOverrideError as e:
            return {"error": "INVALID_HOSTNAMES", "message": str(e)}
