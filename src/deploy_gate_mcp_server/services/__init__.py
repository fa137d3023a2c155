"""Services for Deploy Gate MCP Server."""

from .git import GitService, GitError
from .commands import CommandRunner, CommandResult, CommandError
from .environment_resolver import (
    HostnameOverrideError,
    parse_hostname_overrides,
    resolve_environment,
)
from .approval import ApprovalGate, ApprovalStore, ApprovalError
from .locks import BranchLocks
from .pipeline import Pipeline, RunRegistry

__all__ = [
    "GitService",
    "GitError",
    "CommandRunner",
    "CommandResult",
    "CommandError",
    "HostnameOverrideError",
    "parse_hostname_overrides",
    "resolve_environment",
    "ApprovalGate",
    "ApprovalStore",
    "ApprovalError",
    "BranchLocks",
    "Pipeline",
    "RunRegistry",
]
