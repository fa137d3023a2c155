"""Render the equivalent GitHub Actions workflow for a pipeline."""

import yaml

from ..config import Settings
from ..models.schemas import Environment
from .environment_resolver import BRANCH_RULES, resolve_hostnames


def _environment_expression() -> str:
    """GitHub expression that maps github.ref_name onto an environment name."""
    parts = []
    for rule in BRANCH_RULES:
        checks = [f"github.ref_name == '{name}'" for name in rule.exact]
        checks += [f"startsWith(github.ref_name, '{prefix}')" for prefix in rule.prefixes]
        parts.append(f"({' || '.join(checks)}) && '{rule.environment.value}'")
    return "${{ " + " || ".join(parts) + " || '' }}"


def build_workflow(settings: Settings) -> dict:
    """Build the workflow definition as a plain dict."""
    hostnames = resolve_hostnames(settings.environment_hostnames)
    hostname_expr = " || ".join(
        f"(needs.resolve.outputs.environment == '{env.value}' && '{hostnames[env.key]}')"
        for env in Environment
    )
    env_key_expr = " || ".join(
        f"(needs.resolve.outputs.environment == '{env.value}' && '{env.key}')"
        for env in Environment
    )
    runner_expr = " || ".join(
        f"(needs.resolve.outputs.environment == '{env.value}' && '{settings.runner_labels.get(env.key, env.key)}')"
        for env in Environment
    )
    python_setup = [
        {"uses": "actions/checkout@v4"},
        {"uses": "actions/setup-python@v5", "with": {"python-version": settings.python_version}},
        {"run": "pip install -r requirements.txt"},
    ]

    deploy_steps = [
        {"uses": "actions/checkout@v4"},
        {
            "name": "Deploy",
            "run": (
                f"ansible-playbook {settings.ansible_playbook} -i {settings.ansible_inventory} "
                "--limit ${{ env.TARGET_HOST }} "
                f"-e app_name={settings.app_name} -e app_port={settings.app_port} "
                f"-e python_version={settings.python_version} "
                "-e deploy_env=${{ env.DEPLOY_ENV }}"
            ),
        },
        {
            "name": "Check service",
            "run": (
                f"ansible ${{{{ env.TARGET_HOST }}}} -i {settings.ansible_inventory} "
                f"-m command -a 'systemctl is-active {settings.app_name}'"
            ),
        },
        {
            "name": "Recent logs",
            "run": (
                f"ansible ${{{{ env.TARGET_HOST }}}} -i {settings.ansible_inventory} "
                f"-m command -a 'journalctl -u {settings.app_name} -n {settings.journal_lines} --no-pager'"
            ),
        },
        {
            "name": "Check health endpoint",
            "run": (
                "curl --fail --max-time "
                f"{int(settings.health_check_timeout)} "
                f"http://${{{{ env.TARGET_HOST }}}}:{settings.app_port}{settings.health_check_path}"
            ),
        },
    ]

    workflow = {
        "name": f"Deploy {settings.app_name}",
        "on": {
            "push": {},
            "pull_request": {},
        },
        "concurrency": {
            "group": "${{ github.workflow }}-${{ github.ref }}",
            "cancel-in-progress": True,
        },
        "jobs": {
            "lint": {
                "runs-on": "ubuntu-latest",
                "steps": python_setup + [{"name": "Lint", "run": settings.lint_command}],
            },
            "test": {
                "needs": "lint",
                "runs-on": "ubuntu-latest",
                "steps": python_setup + [{"name": "Test", "run": settings.test_command}],
            },
            "resolve": {
                "needs": "test",
                "if": "github.event_name == 'push'",
                "runs-on": "ubuntu-latest",
                "outputs": {"environment": "${{ steps.env.outputs.environment }}"},
                "steps": [{
                    "id": "env",
                    "run": f'echo "environment={_environment_expression()}" >> "$GITHUB_OUTPUT"',
                }],
            },
            "deploy": {
                "needs": "resolve",
                "if": "needs.resolve.outputs.environment != ''",
                "runs-on": "${{ " + runner_expr + " }}",
                "environment": "${{ needs.resolve.outputs.environment }}",
                "env": {
                    "TARGET_HOST": "${{ " + hostname_expr + " }}",
                    "DEPLOY_ENV": "${{ " + env_key_expr + " }}",
                },
                "steps": deploy_steps,
            },
        },
    }

    if settings.slack_webhook_url:
        workflow["jobs"]["notify"] = {
            "needs": ["lint", "test", "resolve", "deploy"],
            "if": "always()",
            "runs-on": "ubuntu-latest",
            "steps": [{
                "name": "Notify Slack",
                "env": {"SLACK_WEBHOOK_URL": "${{ secrets.SLACK_WEBHOOK_URL }}"},
                "run": (
                    "curl -X POST -H 'Content-Type: application/json' -d "
                    "'{\"status\": \"${{ job.status }}\", \"repository\": \"${{ github.repository }}\", "
                    "\"branch\": \"${{ github.ref_name }}\", \"commit\": \"${{ github.sha }}\", "
                    "\"actor\": \"${{ github.actor }}\"}' \"$SLACK_WEBHOOK_URL\""
                ),
            }],
        }

    return workflow


def render_workflow(settings: Settings) -> str:
    """Render the workflow as YAML text."""
    return yaml.safe_dump(build_workflow(settings), sort_keys=False, width=1000)
