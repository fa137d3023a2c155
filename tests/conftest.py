"""Shared fixtures for Deploy Gate MCP Server tests."""

import asyncio
import subprocess

import httpx
import pytest

from deploy_gate_mcp_server.config import Settings
from deploy_gate_mcp_server.services.commands import CommandResult, CommandRunner


@pytest.fixture
def temp_git_repo(tmp_path):
    """Create a temporary git repository for testing."""
    subprocess.run(["git", "init"], cwd=tmp_path, check=True, capture_output=True)
    subprocess.run(
        ["git", "config", "user.email", "test@test.com"],
        cwd=tmp_path,
        check=True,
        capture_output=True,
    )
    subprocess.run(
        ["git", "config", "user.name", "Test User"],
        cwd=tmp_path,
        check=True,
        capture_output=True,
    )
    (tmp_path / "README.md").write_text("# Test")
    subprocess.run(["git", "add", "."], cwd=tmp_path, check=True, capture_output=True)
    subprocess.run(
        ["git", "commit", "-m", "Initial commit"],
        cwd=tmp_path,
        check=True,
        capture_output=True,
    )
    subprocess.run(
        ["git", "branch", "-M", "main"],
        cwd=tmp_path,
        check=True,
        capture_output=True,
    )
    return tmp_path


@pytest.fixture
def settings(tmp_path):
    """Create test settings."""
    return Settings(
        app_name="webapp",
        app_port="7868",
        python_version="3.12",
        environment_hostnames="",
        health_check_path="/health",
        slack_webhook_url=None,
        working_dir=tmp_path,
        repository="acme/webapp",
        approval_file=tmp_path / "approvals.json",
        approval_timeout=None,
        approval_poll_interval=0.01,
    )


class FakeRunner(CommandRunner):
    """Command runner that records commands and returns scripted exit codes."""

    def __init__(self, working_dir, exit_codes=None):
        super().__init__(working_dir)
        # Keyed by executable name, e.g. {"pytest": 1}
        self.exit_codes = exit_codes or {}
        self.commands: list[list[str]] = []

    async def run(self, command, env=None):
        parts = command.split() if isinstance(command, str) else list(command)
        self.commands.append(parts)
        exit_code = self.exit_codes.get(parts[0], 0)
        return CommandResult(
            command=" ".join(parts),
            exit_code=exit_code,
            stdout=f"{parts[0]} output\n",
            stderr="",
            duration=0.0,
        )

    def executables(self) -> list[str]:
        return [c[0] for c in self.commands]


@pytest.fixture
def fake_runner(tmp_path):
    return FakeRunner(tmp_path)


def mock_transport(status_code=200, requests=None):
    """httpx transport answering every request with a fixed status."""

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return httpx.Response(status_code, json={"ok": status_code < 400})

    return httpx.MockTransport(handler)


@pytest.fixture
def make_transport():
    return mock_transport


@pytest.fixture
def make_runner(tmp_path):
    def factory(exit_codes=None):
        return FakeRunner(tmp_path, exit_codes)

    return factory


class SlowDeployRunner(FakeRunner):
    """Fake runner whose ansible-playbook takes a while and tracks overlapping deploys."""

    def __init__(self, working_dir, deploy_seconds=0.3, stop_seconds=0.1):
        super().__init__(working_dir)
        self.deploy_seconds = deploy_seconds
        self.stop_seconds = stop_seconds
        self.active_deploys = 0
        self.max_active_deploys = 0

    async def run(self, command, env=None):
        result = await super().run(command, env)
        if result.command.split()[0] != "ansible-playbook":
            return result

        self.active_deploys += 1
        self.max_active_deploys = max(self.max_active_deploys, self.active_deploys)
        try:
            await asyncio.sleep(self.deploy_seconds)
        except asyncio.CancelledError:
            # Stopping the process takes time too
            await asyncio.sleep(self.stop_seconds)
            raise
        finally:
            self.active_deploys -= 1
        return result


@pytest.fixture
def slow_deploy_runner(tmp_path):
    return SlowDeployRunner(tmp_path)
