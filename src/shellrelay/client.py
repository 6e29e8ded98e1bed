"""Client helper for submitting scripts to a shellrelay service.

Frames a script between two marker lines, sends it, and collects
whatever the service writes back until it closes the connection or goes
quiet after a failed execution.
"""

from __future__ import annotations

import asyncio
import logging

logger = logging.getLogger(__name__)

DEFAULT_MARKER = "___"
ERROR_PREFIX = b"error: "


class ClientError(Exception):
    """Raised when the service cannot be reached or the script is malformed."""


def frame_script(script: str, marker: str = DEFAULT_MARKER) -> bytes:
    """Wrap ``script`` between two ``marker`` lines.

    Raises:
        ClientError: If the marker is empty or appears as a script line.
    """
    if not marker or "\n" in marker:
        raise ClientError("marker must be a non-empty single line")
    lines = script.split("\n")
    if lines[-1] == "":
        lines.pop()
    if marker in lines:
        raise ClientError(f"marker {marker!r} appears inside the script")
    body = "".join(f"{line}\n" for line in lines)
    return f"{marker}\n{body}{marker}\n".encode()


def ends_with_error(response: bytes) -> bool:
    """True if the last complete line of ``response`` is an ``error:`` line."""
    if not response.endswith(b"\n"):
        return False
    last = response[:-1].rsplit(b"\n", 1)[-1]
    return last.startswith(ERROR_PREFIX)


async def submit_script(
    host: str,
    port: int,
    script: str,
    marker: str = DEFAULT_MARKER,
    idle_timeout: float | None = None,
) -> bytes:
    """Send one script and return the service's response.

    Reads until the service closes the connection, which it does after a
    successful run. After a failed run it sends an ``error:`` line and
    keeps the connection open, so once the response ends in such a line
    ``idle_timeout`` bounds how long to wait for anything further.
    """
    payload = frame_script(script, marker)
    try:
        reader, writer = await asyncio.open_connection(host, port)
    except OSError as e:
        raise ClientError(f"cannot connect to {host}:{port}: {e}") from e

    chunks: list[bytes] = []
    try:
        writer.write(payload)
        await writer.drain()
        while True:
            response = b"".join(chunks)
            timeout = idle_timeout if ends_with_error(response) else None
            try:
                chunk = await asyncio.wait_for(reader.read(65536), timeout=timeout)
            except asyncio.TimeoutError:
                logger.debug("No output from %s:%d for %.1fs after error", host, port, timeout)
                break
            if not chunk:
                break
            chunks.append(chunk)
    except OSError as e:
        raise ClientError(f"connection to {host}:{port} failed: {e}") from e
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
    return b"".join(chunks)
