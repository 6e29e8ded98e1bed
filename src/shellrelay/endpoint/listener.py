"""Listener loop: accept connections for one Service.

Binds with ``asyncio.start_server``, which runs every accepted
connection as its own task and keeps accepting after transient accept
errors. Setting the shutdown event closes the listening socket; already
accepted connections are not closed and finish on their own.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from shellrelay.endpoint.handler import ConnectionHandler

if TYPE_CHECKING:
    from shellrelay.endpoint.service import Service

logger = logging.getLogger(__name__)

# Longest accepted protocol line, terminator included
MAX_LINE_LENGTH = 1024 * 1024


class Listener:
    """Owns the bound socket of one Service."""

    def __init__(self, service: Service) -> None:
        self._service = service
        self._log = service.log
        self._server: asyncio.AbstractServer | None = None
        self._started = asyncio.Event()
        self._port: int | None = None
        self._limit = (
            asyncio.Semaphore(service.max_connections) if service.max_connections else None
        )

    @property
    def port(self) -> int | None:
        """The port actually bound, once listening."""
        return self._port

    @property
    def is_serving(self) -> bool:
        return self._server is not None and self._server.is_serving()

    async def wait_started(self) -> None:
        await self._started.wait()

    async def serve(self, shutdown: asyncio.Event) -> None:
        """Accept connections until ``shutdown`` is set.

        Raises:
            OSError: If the socket cannot be bound. Only this service is
                affected; sibling services keep running.
        """
        service = self._service
        try:
            self._server = await asyncio.start_server(
                lambda r, w: self._on_connection(r, w, shutdown),
                host=service.address,
                port=service.port,
                limit=MAX_LINE_LENGTH,
            )
        except OSError as e:
            self._log.error("failed to listen", extra={"error": str(e)})
            raise

        try:
            sockets = self._server.sockets or ()
            if sockets:
                self._port = sockets[0].getsockname()[1]
            self._started.set()
            self._log.info("state changed", extra={"state": "listening"})

            await shutdown.wait()
        finally:
            # Closes the listening sockets only; accepted connections stay up.
            self._server.close()
            self._server = None
        self._log.info("state changed", extra={"state": "shutdown"})

    async def _on_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        shutdown: asyncio.Event,
    ) -> None:
        peer = writer.get_extra_info("peername")
        source = f"{peer[0]}:{peer[1]}" if isinstance(peer, tuple) else str(peer)
        log = self._log.bind(source=source)
        log.info("accepted connection")

        handler = ConnectionHandler(self._service, reader, writer, shutdown=shutdown, log=log)
        try:
            if self._limit is None:
                await handler.run()
            else:
                async with self._limit:
                    await handler.run()
        except Exception:
            log.exception("connection handler failed")
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass
            log.debug("connection closed")
