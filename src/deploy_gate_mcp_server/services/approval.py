"""Manual approval gate for protected deployments."""

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
EXPIRED = "expired"
CANCELLED = "cancelled"


class ApprovalError(Exception):
    """Raised when an approval request cannot be resolved."""
    pass


class ApprovalRejectedError(ApprovalError):
    """Raised when a deployment was rejected."""
    pass


class ApprovalTimeoutError(ApprovalError):
    """Raised when no decision arrived in time."""
    pass


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ApprovalStore:
    """Approval requests persisted to a JSON file, keyed by run ID."""

    def __init__(self, approval_file: Path):
        self.approval_file = approval_file

    def load(self) -> dict[str, dict]:
        """Load approval requests from file."""
        if not self.approval_file.exists():
            return {}
        try:
            return json.loads(self.approval_file.read_text())
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable approval file %s", self.approval_file)
            return {}

    def save(self, requests: dict[str, dict]) -> None:
        """Save approval requests to file atomically."""
        self.approval_file.parent.mkdir(parents=True, exist_ok=True)

        temp_file = self.approval_file.with_suffix('.tmp')
        temp_file.write_text(json.dumps(requests, indent=2))
        temp_file.rename(self.approval_file)

    def get(self, run_id: str) -> dict | None:
        return self.load().get(run_id)

    def put(self, run_id: str, request: dict) -> None:
        requests = self.load()
        requests[run_id] = request
        self.save(requests)


class ApprovalGate:
    """
    Blocks a pipeline run until an authorized party approves it.

    Decisions can come from this process (approve/reject) or from another
    process writing the same approval file; waiters poll the file and are
    woken early by in-process decisions.
    """

    def __init__(self, store: ApprovalStore, poll_interval: float = 1.0, max_history: int = 100):
        self.store = store
        self.poll_interval = poll_interval
        self.max_history = max_history
        self._events: dict[str, asyncio.Event] = {}

    def request(self, run_id: str, branch: str, environment: str, hostname: str) -> dict:
        """Open an approval request for a run."""
        request = {
            "run_id": run_id,
            "status": PENDING,
            "branch": branch,
            "environment": environment,
            "hostname": hostname,
            "requested_at": _now(),
            "decided_at": None,
            "decided_by": None,
            "reason": None,
        }
        requests = self.store.load()
        requests[run_id] = request
        self.store.save(self._trim(requests))
        logger.info("Deployment of %s to %s awaiting approval (run %s)", branch, environment, run_id)
        return request

    def _trim(self, requests: dict[str, dict]) -> dict[str, dict]:
        """Keep every pending request and only the newest max_history decided ones."""
        decided = [run_id for run_id, r in requests.items() if r["status"] != PENDING]
        for run_id in decided[:max(0, len(decided) - self.max_history)]:
            del requests[run_id]
        return requests

    def _decide(self, run_id: str, status: str, decided_by: str | None, reason: str | None = None) -> dict:
        request = self.store.get(run_id)
        if request is None:
            raise ApprovalError(f"No approval request for run '{run_id}'")
        if request["status"] != PENDING:
            raise ApprovalError(f"Approval request for run '{run_id}' is already {request['status']}")

        request.update(status=status, decided_at=_now(), decided_by=decided_by, reason=reason)
        self.store.put(run_id, request)

        event = self._events.get(run_id)
        if event is not None:
            event.set()
        return request

    def approve(self, run_id: str, approver: str) -> dict:
        """Approve a pending deployment."""
        request = self._decide(run_id, APPROVED, approver)
        logger.info("Run %s approved by %s", run_id, approver)
        return request

    def reject(self, run_id: str, approver: str, reason: str | None = None) -> dict:
        """Reject a pending deployment."""
        request = self._decide(run_id, REJECTED, approver, reason)
        logger.info("Run %s rejected by %s", run_id, approver)
        return request

    def cancel(self, run_id: str) -> None:
        """Withdraw a pending request, e.g. when its run was superseded."""
        request = self.store.get(run_id)
        if request is not None and request["status"] == PENDING:
            self._decide(run_id, CANCELLED, None, "run cancelled")

    def pending(self) -> list[dict]:
        """List requests still waiting for a decision."""
        return [r for r in self.store.load().values() if r["status"] == PENDING]

    async def wait(self, run_id: str, timeout: float | None = None) -> dict:
        """
        Wait for a decision on a run.

        Args:
            run_id: Run whose request to wait on
            timeout: Seconds to wait, or None to wait indefinitely

        Returns:
            The approved request

        Raises:
            ApprovalRejectedError if the deployment was rejected
            ApprovalTimeoutError if no decision arrived within timeout
            ApprovalError if the request is unknown or was withdrawn
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        event = self._events.setdefault(run_id, asyncio.Event())

        try:
            while True:
                request = self.store.get(run_id)
                if request is None:
                    raise ApprovalError(f"No approval request for run '{run_id}'")

                status = request["status"]
                if status == APPROVED:
                    return request
                if status == REJECTED:
                    reason = f": {request['reason']}" if request.get("reason") else ""
                    raise ApprovalRejectedError(
                        f"Deployment rejected by {request.get('decided_by') or 'unknown'}{reason}"
                    )
                if status != PENDING:
                    raise ApprovalError(f"Approval request for run '{run_id}' is {status}")

                wait_for = self.poll_interval
                if deadline is not None:
                    remaining = deadline - loop.time()
                    if remaining <= 0:
                        try:
                            self._decide(run_id, EXPIRED, None, "approval timed out")
                        except ApprovalError:
                            # Decided right before the deadline; re-read it
                            continue
                        raise ApprovalTimeoutError(f"No approval for run '{run_id}' within {timeout} seconds")
                    wait_for = min(wait_for, remaining)

                try:
                    await asyncio.wait_for(event.wait(), wait_for)
                except asyncio.TimeoutError:
                    pass
                event.clear()
        finally:
            self._events.pop(run_id, None)
