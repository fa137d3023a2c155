"""Deploy Gate MCP Server."""
