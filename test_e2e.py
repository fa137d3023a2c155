#!/usr/bin/env python3
"""End-to-end test: run the pipeline for a real project checkout and deploy target.

Reads settings from the environment (or .env): APP_NAME, DEPLOY_WORKING_DIR,
ANSIBLE_PLAYBOOK, ANSIBLE_INVENTORY, ENVIRONMENT_HOSTNAMES, SLACK_WEBHOOK_URL.
Production runs are approved from this script as E2E_APPROVER.
"""

import asyncio
import logging
import os

from dotenv import load_dotenv

load_dotenv()

from deploy_gate_mcp_server.config import Settings
from deploy_gate_mcp_server.models.schemas import RunStatus, Trigger
from deploy_gate_mcp_server.services.environment_resolver import resolve_environment
from deploy_gate_mcp_server.services.git import GitService
from deploy_gate_mcp_server.services.pipeline import Pipeline, RunRegistry


async def main():
    print("=" * 60)
    print("End-to-End Deploy Gate Test")
    print("=" * 60)

    settings = Settings()
    settings.validate_required()
    git = GitService(settings.working_dir)

    # Step 1: Resolve the checked-out branch
    print("\n[Step 1] Resolve environment for current branch")
    branch = git.get_current_branch()
    selection = resolve_environment(branch, settings.environment_hostnames)
    if selection:
        print(f"  ✓ {branch} -> {selection.environment.value} on {selection.hostname}"
              f" (approval: {selection.approval_required})")
    else:
        print(f"  ✓ {branch} -> no deployment")

    # Step 2: Run the pipeline
    print("\n[Step 2] Run pipeline")
    registry = RunRegistry(Pipeline(settings))
    run = registry.start(Trigger(
        branch=branch,
        repository=settings.repository,
        commit=git.get_head_commit(),
        actor=git.get_author(),
    ))
    print(f"  Run ID: {run.run_id}")

    # Step 3: Approve production if needed
    if selection and selection.approval_required:
        print("\n[Step 3] Approve production deployment")
        while run.status != RunStatus.AWAITING_APPROVAL and not run.status.finished:
            await asyncio.sleep(0.5)
        if run.status == RunStatus.AWAITING_APPROVAL:
            registry.pipeline.approval_gate.approve(run.run_id, os.environ.get("E2E_APPROVER", "e2e"))
            print("  ✓ Approved")

    await registry.wait(run.run_id)

    print("\n[Result]")
    for step in run.steps:
        print(f"  {step.name:<16} {step.status.value:<8} exit={step.exit_code}")
    print(f"  Status: {run.status.value}")

    # Cleanup
    approval_file = settings.get_approval_file_path()
    if approval_file.exists():
        approval_file.unlink()

    print("\n" + "=" * 60)
    print("END-TO-END TEST PASSED!" if run.status == RunStatus.SUCCESS else "END-TO-END TEST FAILED")
    print("=" * 60)
    return run.status == RunStatus.SUCCESS


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    success = asyncio.run(main())
    exit(0 if success else 1)
