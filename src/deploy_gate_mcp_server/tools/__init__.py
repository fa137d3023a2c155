"""MCP tools for Deploy Gate MCP Server."""
