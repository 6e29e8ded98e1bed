"""Per-connection script-transfer protocol.

A connection cycles through::

    AwaitMarker -> ReceivingScript -> Executing -> (AwaitMarker | close)

The client sends a marker line, the script lines, then the marker line
again. The script is spooled, run with the service's interpreter, and
its stdout followed by its stderr is written back. A failing script
leaves the connection open for another cycle; a successful one closes
it. Any I/O problem before the script runs closes the connection after
at most one ``error: ...`` line.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from shellrelay.domain.models import ExecutionResult
from shellrelay.endpoint.runner import ScriptExecutionError, SpawnError, run_script
from shellrelay.endpoint.spool import ScriptSpool, SpoolError
from shellrelay.utils.logging import ServiceLogAdapter

if TYPE_CHECKING:
    from shellrelay.endpoint.service import Service

logger = logging.getLogger(__name__)

NEWLINE = b"\n"


class _Closed(Exception):
    """Ends the session; the connection is closed by the caller."""


class ConnectionHandler:
    """Drives the protocol for one accepted connection.

    The handler owns the reader, the writer and at most one spool file
    at a time. Cycles on one connection run strictly one after another.
    """

    def __init__(
        self,
        service: Service,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        shutdown: asyncio.Event | None = None,
        log: ServiceLogAdapter | None = None,
    ) -> None:
        self._service = service
        self._reader = reader
        self._writer = writer
        self._shutdown = shutdown
        self._log = log or service.log
        self._cycles = 0

    @property
    def cycles(self) -> int:
        """Number of scripts executed on this connection so far."""
        return self._cycles

    async def run(self) -> None:
        """Serve script-transfer cycles until the session ends."""
        try:
            while True:
                marker = await self._await_marker()
                if not await self._cycle(marker):
                    return
        except _Closed:
            return

    async def _readline(self, what: str) -> bytes:
        """Read one ``\\n``-terminated line.

        Raises ``_Closed`` on end-of-stream (silently) or on a read error
        (after reporting it).
        """
        try:
            line = await self._reader.readline()
        except (OSError, ValueError) as e:
            await self._report(f"failed to read {what}", e)
            raise _Closed from e
        if not line.endswith(NEWLINE):
            # EOF, possibly after an unterminated partial line
            raise _Closed
        return line

    async def _await_marker(self) -> bytes:
        while True:
            line = await self._readline("EOF marker")
            marker = line[:-1]
            if marker:
                return marker

    async def _cycle(self, marker: bytes) -> bool:
        """Run one cycle. Returns True if another cycle may follow."""
        with ScriptSpool(self._service.spool_dir) as spool:
            try:
                spool.open()
            except SpoolError as e:
                await self._report("failed to create temp file", e, level=logging.ERROR)
                return False

            while True:
                line = await self._readline("script")
                if line[:-1] == marker:
                    break
                try:
                    spool.append(line)
                except SpoolError as e:
                    await self._report("failed to write script", e)
                    return False

            try:
                path = spool.finalize()
            except SpoolError as e:
                await self._report("failed to write script", e)
                return False

            self._cycles += 1
            try:
                result = await run_script(
                    self._service.executable,
                    path,
                    self._service.exports,
                    shutdown=self._shutdown,
                )
            except SpawnError as e:
                spool.release()
                await self._report("failed to start shell", e)
                return False
            except ScriptExecutionError as e:
                spool.release()
                await self._relay(e.result)
                await self._report("script execution failed", e)
                return True

            spool.release()
            await self._relay(result)
            self._log.info("script executed successfully")
            return False

    async def _relay(self, result: ExecutionResult) -> None:
        """Write stdout then stderr to the client."""
        try:
            if result.stdout:
                self._writer.write(result.stdout)
            if result.stderr:
                self._writer.write(result.stderr)
            await self._writer.drain()
        except OSError as e:
            self._log.warning("failed to relay output", extra={"error": str(e)})
            raise _Closed from e

    async def _report(self, what: str, error: BaseException, level: int = logging.WARNING) -> None:
        """Log ``what`` and send a best-effort ``error:`` line to the client."""
        detail = str(error) or type(error).__name__
        self._log.log(level, what, extra={"error": detail})
        try:
            self._writer.write(f"error: {what}: {detail}\n".encode())
            await self._writer.drain()
        except OSError as e:
            self._log.debug("failed to send error line", extra={"error": str(e)})
