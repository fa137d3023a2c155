"""FastMCP server setup for Deploy Gate MCP Server."""

from fastmcp import FastMCP

from .config import Settings
from .tools import environment, pipeline


def create_server(settings: Settings | None = None) -> FastMCP:
    """
    Create and configure the MCP server.

    Args:
        settings: Optional settings to use. If not provided, settings are loaded from environment.

    Returns:
        Configured FastMCP server instance
    """
    if settings is None:
        settings = Settings()
    settings.validate_required()

    mcp = FastMCP(
        name="deploy-gate",
        instructions="""
Deploy Gate MCP Server - Branch-gated lint, test and deployment pipeline.

Branches map to deployment environments:
- main -> production (requires manual approval)
- test -> test
- dev, feature/*, bug/*, refactor/* -> development
- anything else -> lint and test only, no deployment

Workflow:
1. Use 'resolve_environment' to see where a branch would deploy
2. Use 'run_pipeline' to lint, test and deploy a branch
3. For production, use 'list_pending_approvals' and 'approve_deployment'
   (or 'reject_deployment') to release the paused run
4. Use 'get_run' to follow the run's steps and health checks
"""
    )

    # Register tools
    environment.register_tools(mcp, settings)
    pipeline.register_tools(mcp, settings)

    return mcp
