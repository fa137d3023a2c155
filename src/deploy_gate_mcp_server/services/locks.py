"""Per-branch deployment exclusivity."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

logger = logging.getLogger(__name__)


class BranchLocks:
    """One deployment in flight per branch."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, branch: str) -> asyncio.Lock:
        lock = self._locks.get(branch)
        if lock is None:
            lock = self._locks[branch] = asyncio.Lock()
        return lock

    def is_locked(self, branch: str) -> bool:
        lock = self._locks.get(branch)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, branch: str) -> AsyncIterator[None]:
        """
        Hold the deployment lock for a branch.

        Usage:
            async with locks.hold("main"):
                await deploy()
        """
        lock = self._lock(branch)
        if lock.locked():
            logger.info("Waiting for in-flight deployment of %s", branch)
        async with lock:
            yield
