from __future__ import annotations

import asyncio
import logging
import os
import shlex
import signal
import time
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence, Union

from domain import ConfigurationError
from models import CommandExecutionResult


logger = logging.getLogger("site-engine.commands")

CommandInput = Union[str, Sequence[str]]
MISSING_COMMAND_EXIT_CODE = 127
READ_GRACE_SECONDS = 5.0


def parse_command(command: CommandInput) -> list[str]:
    if isinstance(command, str):
        command = command.strip()
        if not command:
            return []
        return shlex.split(command)
    return [str(part) for part in command]


def classify_validation(return_code: int) -> str:
    """Map a validate command exit code onto success/error/warning."""
    if return_code == 0:
        return "success"
    if return_code == 1:
        return "error"
    return "warning"


class CommandRunner:
    """Spawns build/validate/git processes with an argument vector and a time bound."""

    def __init__(self, default_timeout: float = 1800.0) -> None:
        self.default_timeout = default_timeout

    async def run(
        self,
        command: CommandInput,
        working_directory: Union[str, Path],
        timeout: Optional[float] = None,
        *,
        env: Optional[Mapping[str, str]] = None,
    ) -> CommandExecutionResult:
        started = time.monotonic()
        try:
            argv = parse_command(command)
        except ValueError as exc:
            logger.warning("Unable to parse command %r: %s", command, exc)
            return self._result(
                [str(command)],
                started,
                return_code=MISSING_COMMAND_EXIT_CODE,
                stderr=f"could not parse command: {exc}",
            )
        if not argv:
            raise ConfigurationError("no command to run")
        cwd = Path(working_directory)
        limit = timeout if timeout is not None else self.default_timeout

        if not cwd.is_dir():
            return self._result(
                argv,
                started,
                return_code=MISSING_COMMAND_EXIT_CODE,
                stderr=f"command working directory missing: {cwd}",
            )

        child_env: Optional[Dict[str, str]] = None
        if env:
            child_env = {**os.environ, **env}

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(cwd),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=child_env,
                start_new_session=True,
            )
        except OSError as exc:
            logger.warning("Unable to start %s in %s: %s", argv[0], cwd, exc.strerror or exc)
            return self._result(
                argv,
                started,
                return_code=MISSING_COMMAND_EXIT_CODE,
                stderr=f"failed to start {argv[0]}: {exc.strerror or exc}",
            )

        assert process.stdout is not None and process.stderr is not None
        readers = asyncio.gather(process.stdout.read(), process.stderr.read())
        timed_out = False
        try:
            await asyncio.wait_for(process.wait(), timeout=limit)
        except asyncio.TimeoutError:
            timed_out = True
            logger.warning("Command %s exceeded %.0fs in %s; killing it", argv[0], limit, cwd)
            self._kill(process)
            await process.wait()
        except asyncio.CancelledError:
            self._kill(process)
            await process.wait()
            readers.cancel()
            raise

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(readers, timeout=READ_GRACE_SECONDS)
        except asyncio.TimeoutError:
            # A detached grandchild still holds the pipes open.
            stdout_bytes, stderr_bytes = b"", b""

        stderr = stderr_bytes.decode(errors="replace").strip()
        if timed_out:
            note = f"command timed out after {limit:.0f}s"
            stderr = f"{stderr}\n{note}" if stderr else note

        return self._result(
            argv,
            started,
            return_code=process.returncode if process.returncode is not None else -1,
            stdout=stdout_bytes.decode(errors="replace").strip(),
            stderr=stderr,
            timed_out=timed_out,
        )

    @staticmethod
    def _kill(process: asyncio.subprocess.Process) -> None:
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except (ProcessLookupError, PermissionError, AttributeError):
            try:
                process.kill()
            except ProcessLookupError:
                pass

    @staticmethod
    def _result(
        argv: list[str],
        started: float,
        *,
        return_code: int,
        stdout: str = "",
        stderr: str = "",
        timed_out: bool = False,
    ) -> CommandExecutionResult:
        return CommandExecutionResult(
            command=argv,
            stdout=stdout,
            stderr=stderr,
            return_code=return_code,
            execution_time_ms=int((time.monotonic() - started) * 1000),
            timed_out=timed_out,
        )
