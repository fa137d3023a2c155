"""Configuration management for Deploy Gate MCP Server."""

import os
from pathlib import Path

from pydantic import BaseModel, Field


def _optional_float(name: str, default: str | None = None) -> float | None:
    value = os.environ.get(name, default)
    if value is None or value.strip() == "":
        return None
    return float(value)


class Settings(BaseModel):
    """Pipeline settings loaded from environment variables."""

    app_name: str = Field(default_factory=lambda: os.environ.get("APP_NAME", ""))
    app_port: str = Field(default_factory=lambda: os.environ.get("APP_PORT", "7868"))
    python_version: str = Field(default_factory=lambda: os.environ.get("PYTHON_VERSION", "3.12"))
    environment_hostnames: str = Field(default_factory=lambda: os.environ.get("ENVIRONMENT_HOSTNAMES", ""))
    health_check_path: str = Field(default_factory=lambda: os.environ.get("HEALTH_CHECK_PATH", "/health"))
    slack_webhook_url: str | None = Field(default_factory=lambda: os.environ.get("SLACK_WEBHOOK_URL") or None)

    working_dir: Path = Field(default_factory=lambda: Path(os.environ.get("DEPLOY_WORKING_DIR", os.getcwd())))
    repository: str = Field(default_factory=lambda: os.environ.get("DEPLOY_REPOSITORY", ""))

    lint_command: str = Field(default_factory=lambda: os.environ.get("LINT_COMMAND", "flake8 ."))
    test_command: str = Field(default_factory=lambda: os.environ.get("TEST_COMMAND", "pytest"))
    ansible_playbook: Path = Field(default_factory=lambda: Path(os.environ.get("ANSIBLE_PLAYBOOK", "deploy.yml")))
    ansible_inventory: Path = Field(default_factory=lambda: Path(os.environ.get("ANSIBLE_INVENTORY", "inventory.ini")))

    # Runner labels per environment key (dev/test/prod)
    runner_labels: dict[str, str] = Field(default_factory=lambda: {"dev": "dev", "test": "test", "prod": "prod"})

    approval_file: Path = Field(default_factory=lambda: Path(os.environ.get("APPROVAL_FILE", ".deploy-approvals.json")))
    # None waits for approval indefinitely
    approval_timeout: float | None = Field(default_factory=lambda: _optional_float("APPROVAL_TIMEOUT"))
    approval_poll_interval: float = 1.0

    health_check_timeout: float = Field(default_factory=lambda: float(os.environ.get("HEALTH_CHECK_TIMEOUT", "10")))
    step_timeout: float = Field(default_factory=lambda: float(os.environ.get("STEP_TIMEOUT", "1800")))
    journal_lines: int = Field(default_factory=lambda: int(os.environ.get("JOURNAL_LINES", "50")))

    def get_approval_file_path(self) -> Path:
        """Get the absolute path to the approval state file."""
        if self.approval_file.is_absolute():
            return self.approval_file
        return self.working_dir / self.approval_file

    def get_playbook_path(self) -> Path:
        """Get the absolute path to the Ansible playbook."""
        if self.ansible_playbook.is_absolute():
            return self.ansible_playbook
        return self.working_dir / self.ansible_playbook

    def get_inventory_path(self) -> Path:
        """Get the absolute path to the Ansible inventory."""
        if self.ansible_inventory.is_absolute():
            return self.ansible_inventory
        return self.working_dir / self.ansible_inventory

    def validate_required(self) -> None:
        """Validate that required settings are present."""
        if not self.app_name:
            raise ValueError("APP_NAME environment variable is required")
        if not self.app_port.isdigit():
            raise ValueError(f"APP_PORT must be numeric, got {self.app_port!r}")
        if not self.health_check_path.startswith("/"):
            raise ValueError(f"HEALTH_CHECK_PATH must start with '/', got {self.health_check_path!r}")

        # HostnameOverrideError is a ValueError
        from .services.environment_resolver import parse_hostname_overrides
        parse_hostname_overrides(self.environment_hostnames)
