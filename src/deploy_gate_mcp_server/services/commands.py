"""External command execution."""

import asyncio
import logging
import shlex
import time
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


class CommandError(Exception):
    """Raised when a command cannot be started or times out."""
    pass


@dataclass
class CommandResult:
    """Captured result of an external command."""
    command: str
    exit_code: int
    stdout: str
    stderr: str
    duration: float

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        if self.stderr:
            return f"{self.stdout}{self.stderr}"
        return self.stdout


class CommandRunner:
    """Runs external tools (flake8, pytest, ansible) in a working directory."""

    def __init__(self, working_dir: Path, timeout: float | None = None, kill_timeout: float = 10.0):
        self.working_dir = working_dir
        self.timeout = timeout
        self.kill_timeout = kill_timeout

    async def run(self, command: str | list[str], env: dict | None = None) -> CommandResult:
        """
        Run a command and capture its output.

        A non-zero exit code is reported in the result, not raised. If the
        calling task is cancelled, the process is stopped and reaped before
        the cancellation propagates.

        Raises:
            CommandError if the executable is missing or the command times out
        """
        cmd_parts = shlex.split(command) if isinstance(command, str) else list(command)
        full_command = shlex.join(cmd_parts)
        logger.info("Running: %s", full_command)

        started = time.monotonic()
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd_parts,
                cwd=self.working_dir,
                env=env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise CommandError(f"Command not found: {cmd_parts[0]}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), self.timeout)
        except asyncio.TimeoutError as e:
            await self._stop(process)
            raise CommandError(f"Command '{full_command}' timed out after {self.timeout} seconds") from e
        except asyncio.CancelledError:
            logger.warning("Stopping cancelled command: %s", full_command)
            await self._stop(process)
            raise

        duration = time.monotonic() - started
        if process.returncode != 0:
            logger.warning("Command exited with %s: %s", process.returncode, full_command)

        return CommandResult(
            command=full_command,
            exit_code=process.returncode,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
            duration=duration,
        )

    async def _stop(self, process: asyncio.subprocess.Process) -> None:
        """Terminate a process, killing it if it ignores SIGTERM, and wait for it to exit."""
        if process.returncode is not None:
            return
        try:
            process.terminate()
        except ProcessLookupError:
            pass
        try:
            await asyncio.wait_for(process.wait(), self.kill_timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
