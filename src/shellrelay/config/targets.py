"""Parsing of service arguments and listen defaults.

Each service is requested as ``shell[:addr][:port]``. Omitted parts fall
back to the default listen address and port; every service that ends up
on the current default port moves the default up by one for the next
service, so ``bash zsh`` listens on two consecutive ports.
"""

from __future__ import annotations

from collections.abc import Iterable

from shellrelay.domain.models import ServiceTarget


class TargetError(ValueError):
    """Raised when a service, listen or export argument is malformed."""


def _parse_port(text: str, what: str = "port") -> int:
    try:
        return int(text)
    except ValueError as e:
        raise TargetError(f"invalid {what} {text!r}: {e}") from e


def parse_listen(listen: str, default_addr: str, default_port: int) -> tuple[str, int]:
    """Parse a ``[ADDR]:PORT`` or ``PORT`` default listen specification."""
    addr, port = default_addr, default_port
    if not listen:
        return addr, port

    parts = listen.split(":")
    if len(parts) == 1:
        port = _parse_port(parts[0], "default listen port")
    elif len(parts) == 2:
        if parts[0]:
            addr = parts[0]
        if parts[1]:
            port = _parse_port(parts[1], "default listen port")
    else:
        raise TargetError(f"invalid default listen format {listen!r}")
    return addr, port


def parse_export(text: str) -> tuple[str, str]:
    """Parse an ``IDENT=VALUE`` export argument."""
    ident, sep, value = text.partition("=")
    if not sep:
        raise TargetError(f"invalid export format: {text!r} (expected IDENT=VALUE)")
    if not ident:
        raise TargetError(f"invalid export format: {text!r} (empty IDENT)")
    return ident, value


def parse_service_arg(arg: str, default_addr: str, default_port: int) -> ServiceTarget:
    """Parse ``shell[:addr][:port]`` into a ``ServiceTarget``.

    Examples::

        bash                   default addr and port
        bash:192.168.0.1       default port
        bash::8080             default addr
        bash:192.168.0.1:8080
    """
    parts = arg.split(":")
    if not parts[0]:
        raise TargetError("shell name is required")

    shell = parts[0]
    addr = ""
    port = 0

    if len(parts) == 2:
        addr = parts[1]
    elif len(parts) == 3:
        addr = parts[1]
        if parts[2]:
            port = _parse_port(parts[2])
    elif len(parts) > 3:
        raise TargetError(f"invalid format {arg!r}: too many colons")

    addr = addr or default_addr
    port = port or default_port

    if not 1 <= port <= 65535:
        raise TargetError(f"port {port} out of range (1-65535)")

    return ServiceTarget(shell=shell, address=addr, port=port)


def build_targets(args: Iterable[str], default_addr: str, default_port: int) -> list[ServiceTarget]:
    """Parse every service argument, auto-incrementing the default port."""
    targets: list[ServiceTarget] = []
    offset = 0
    for arg in args:
        current = default_port + offset
        target = parse_service_arg(arg, default_addr, current)
        if target.port == current:
            offset += 1
        targets.append(target)
    return targets
