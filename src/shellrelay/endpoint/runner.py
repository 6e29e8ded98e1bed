"""Run a spooled script with a service's interpreter.

The interpreter is started as ``<executable> -l <script>`` in its own
session, with stdin attached to the null device and an environment made
of the service's exports only; nothing is inherited from this process. Output is
collected in memory and returned once the process has exited.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from collections.abc import Mapping
from pathlib import Path

from shellrelay.domain.models import ExecutionResult

logger = logging.getLogger(__name__)

# Flag telling the interpreter to run the script file as a login shell
SCRIPT_FLAG = "-l"


class SpawnError(Exception):
    """Raised when the interpreter process cannot be started."""


class ScriptExecutionError(Exception):
    """Raised when a script exits with a failure status.

    The captured output is kept on ``result`` so callers can still relay it.
    """

    def __init__(self, result: ExecutionResult) -> None:
        self.result = result
        super().__init__(describe_exit(result.returncode))

    @property
    def stdout(self) -> bytes:
        return self.result.stdout

    @property
    def stderr(self) -> bytes:
        return self.result.stderr


def describe_exit(returncode: int) -> str:
    """Describe a process exit status, e.g. ``exit status 2``."""
    if returncode < 0:
        try:
            name = signal.Signals(-returncode).name
        except ValueError:
            name = str(-returncode)
        return f"signal: {name}"
    return f"exit status {returncode}"


async def run_script(
    executable: str,
    script_path: str | Path,
    exports: Mapping[str, str],
    shutdown: asyncio.Event | None = None,
) -> ExecutionResult:
    """Execute ``script_path`` with ``executable`` and capture its output.

    If ``shutdown`` is set while the process is running, the process is
    asked to terminate. If the awaiting task is cancelled, the process
    is killed before the cancellation propagates.

    Raises:
        SpawnError: If the process could not be launched, including when
            ``shutdown`` is already set or the exports are not a valid
            environment.
        ScriptExecutionError: If the process exited non-zero or was
            terminated by a signal.
    """
    if shutdown is not None and shutdown.is_set():
        raise SpawnError("service is shutting down")

    try:
        proc = await asyncio.create_subprocess_exec(
            executable,
            SCRIPT_FLAG,
            str(script_path),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=dict(exports),
            start_new_session=True,
        )
    except (OSError, ValueError) as e:
        raise SpawnError(str(e)) from e

    logger.debug("Started %s (pid=%d) for %s", executable, proc.pid, script_path)

    communicate = asyncio.ensure_future(proc.communicate())
    watcher = asyncio.ensure_future(shutdown.wait()) if shutdown is not None else None
    try:
        if watcher is not None:
            await asyncio.wait({communicate, watcher}, return_when=asyncio.FIRST_COMPLETED)
            if not communicate.done():
                logger.info("Terminating pid=%d on shutdown", proc.pid)
                _signal(proc, signal.SIGTERM)
        stdout, stderr = await communicate
    except asyncio.CancelledError:
        _signal(proc, signal.SIGKILL)
        communicate.cancel()
        raise
    finally:
        if watcher is not None:
            watcher.cancel()

    result = ExecutionResult(
        stdout=stdout or b"",
        stderr=stderr or b"",
        returncode=proc.returncode if proc.returncode is not None else 0,
    )
    if not result.ok:
        raise ScriptExecutionError(result)
    return result


def _signal(proc: asyncio.subprocess.Process, sig: signal.Signals) -> None:
    """Signal the script's whole process group."""
    try:
        os.killpg(proc.pid, sig)
    except ProcessLookupError:
        pass
    except PermissionError:
        proc.send_signal(sig)
