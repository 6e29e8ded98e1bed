"""Resolve shell names and paths to absolute executable paths."""

from __future__ import annotations

import os
import shutil


class ConfigurationError(Exception):
    """Raised when a service cannot be configured as requested."""


class ShellNotFoundError(ConfigurationError):
    """Raised when a shell name or path does not resolve to an executable."""


def resolve_shell(shell: str) -> str:
    """Resolve a shell name or path to an absolute path.

    Absolute paths are returned unchanged. Relative paths that exist on
    disk are made absolute. Anything else is looked up on ``PATH``.

    Raises:
        ShellNotFoundError: If the shell is blank or cannot be found.
        ConfigurationError: If an existing path cannot be inspected.
    """
    shell = shell.strip()
    if not shell:
        raise ShellNotFoundError("shell name is empty")

    if os.path.isabs(shell):
        return shell

    try:
        os.stat(shell)
    except FileNotFoundError:
        path = shutil.which(shell)
        if path is None:
            raise ShellNotFoundError(f"shell {shell!r} not found") from None
        return os.path.abspath(path)
    except OSError as e:
        raise ConfigurationError(f"failed to stat {shell!r}: {e}") from e

    return os.path.abspath(shell)
