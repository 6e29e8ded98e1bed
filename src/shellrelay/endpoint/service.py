"""Service: one interpreter bound to one network endpoint.

A ``Service`` is built once at startup and never mutated afterwards, so
its listener and every connection handler read it concurrently without
locking.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType

from shellrelay.endpoint.listener import Listener
from shellrelay.endpoint.resolver import resolve_shell
from shellrelay.utils.logging import ServiceLogAdapter, get_service_logger

logger = logging.getLogger(__name__)

PROTOCOL = "tcp"


class Service:
    """Immutable configuration bundle for one relayed shell.

    Use :meth:`make` to construct one from user input; it resolves the
    shell and binds the logger with the service identity.
    """

    __slots__ = ("_shell", "_executable", "_address", "_port", "_exports", "_log", "_spool_dir", "_max_connections")

    def __init__(
        self,
        shell: str,
        executable: str,
        address: str,
        port: int,
        exports: Mapping[str, str] | None = None,
        log: ServiceLogAdapter | None = None,
        spool_dir: str | Path | None = None,
        max_connections: int | None = None,
    ) -> None:
        self._shell = shell
        self._executable = executable
        self._address = address
        self._port = port
        self._exports: Mapping[str, str] = MappingProxyType(dict(exports or {}))
        self._log = log or get_service_logger(
            __name__, shell=shell, addr=address, port=port, proto=PROTOCOL
        )
        self._spool_dir = spool_dir
        self._max_connections = max_connections

    @classmethod
    def make(
        cls,
        shell: str,
        address: str,
        port: int,
        exports: Mapping[str, str] | None = None,
        log: ServiceLogAdapter | None = None,
        spool_dir: str | Path | None = None,
        max_connections: int | None = None,
    ) -> Service:
        """Resolve ``shell`` and build a Service bound to ``address:port``.

        Raises:
            ConfigurationError: If the shell cannot be resolved.
        """
        base = log or get_service_logger(__name__)
        bound = base.bind(shell=shell, addr=address, port=port, proto=PROTOCOL)
        for key, value in (exports or {}).items():
            bound = bound.bind(**{f"exports.{key}": value})

        path = resolve_shell(shell)
        bound.info("shell registered", extra={"path": path})

        return cls(
            shell=shell,
            executable=path,
            address=address,
            port=port,
            exports=exports,
            log=bound,
            spool_dir=spool_dir,
            max_connections=max_connections,
        )

    @property
    def shell(self) -> str:
        return self._shell

    @property
    def executable(self) -> str:
        return self._executable

    @property
    def address(self) -> str:
        return self._address

    @property
    def port(self) -> int:
        return self._port

    @property
    def protocol(self) -> str:
        return PROTOCOL

    @property
    def exports(self) -> Mapping[str, str]:
        return self._exports

    @property
    def log(self) -> ServiceLogAdapter:
        return self._log

    @property
    def spool_dir(self) -> str | Path | None:
        return self._spool_dir

    @property
    def max_connections(self) -> int | None:
        return self._max_connections

    async def serve(self, shutdown: asyncio.Event) -> None:
        """Run this service's listener until ``shutdown`` is set.

        Raises:
            OSError: If the listening socket cannot be bound.
        """
        await Listener(self).serve(shutdown)

    def __repr__(self) -> str:
        return (
            f"Service(shell={self._shell!r}, executable={self._executable!r}, "
            f"address={self._address!r}, port={self._port})"
        )
