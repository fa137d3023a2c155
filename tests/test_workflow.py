"""Tests for GitHub Actions workflow rendering."""

import yaml

from deploy_gate_mcp_server.services.workflow import build_workflow, render_workflow


def test_push_runs_on_every_branch(settings):
    """Test every push runs lint and test; the resolve job decides about deploying."""
    workflow = build_workflow(settings)
    assert workflow["on"]["push"] == {}

    resolve = workflow["jobs"]["resolve"]["steps"][0]["run"]
    assert "github.ref_name == 'main'" in resolve
    assert "startsWith(github.ref_name, 'feature/')" in resolve
    assert "startsWith(github.ref_name, 'refactor/')" in resolve


def test_deploy_passes_environment_key(settings):
    """Test the playbook receives deploy_env like a local run does."""
    deploy = build_workflow(settings)["jobs"]["deploy"]
    step = next(s for s in deploy["steps"] if s.get("name") == "Deploy")

    assert step["run"].endswith("-e deploy_env=${{ env.DEPLOY_ENV }}")
    assert "(needs.resolve.outputs.environment == 'production' && 'prod')" in deploy["env"]["DEPLOY_ENV"]


def test_concurrency_cancels_superseded_runs(settings):
    """Test one run per branch via the concurrency group."""
    concurrency = build_workflow(settings)["concurrency"]
    assert concurrency["group"] == "${{ github.workflow }}-${{ github.ref }}"
    assert concurrency["cancel-in-progress"] is True


def test_job_order(settings):
    """Test lint, test, resolve and deploy run in sequence."""
    jobs = build_workflow(settings)["jobs"]
    assert jobs["test"]["needs"] == "lint"
    assert jobs["resolve"]["needs"] == "test"
    assert jobs["deploy"]["needs"] == "resolve"
    assert "notify" not in jobs


def test_hostname_overrides_in_deploy_job(settings):
    """Test hostname overrides reach the deploy target expression."""
    settings = settings.model_copy(update={"environment_hostnames": "prod=custom-prod01"})
    target = build_workflow(settings)["jobs"]["deploy"]["env"]["TARGET_HOST"]
    assert "'custom-prod01'" in target
    assert "'dev01'" in target


def test_notify_job_with_webhook(settings):
    """Test a notify job is added when a webhook is configured."""
    settings = settings.model_copy(update={"slack_webhook_url": "https://hooks.slack.test/x"})
    notify = build_workflow(settings)["jobs"]["notify"]
    assert notify["if"] == "always()"
    assert "${{ github.actor }}" in notify["steps"][0]["run"]


def test_render_is_valid_yaml(settings):
    """Test the rendered text parses back to the same structure."""
    text = render_workflow(settings)
    assert yaml.safe_load(text) == build_workflow(settings)
