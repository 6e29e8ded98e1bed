"""Temporary on-disk storage for one received script.

Every script-transfer cycle gets its own spool file. Names come from
``tempfile.mkstemp`` so concurrent cycles, on the same connection or on
different ones, never collide.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import BinaryIO

logger = logging.getLogger(__name__)

SPOOL_PREFIX = "relay-script-"


class SpoolError(Exception):
    """Raised when a spool file cannot be created or written."""


class ScriptSpool:
    """An exclusively owned temporary file holding one script body.

    Usage::

        with ScriptSpool() as spool:
            spool.open()
            spool.append(b"echo hello\\n")
            path = spool.finalize()
            ...  # run the script at ``path``
        # the file is gone here
    """

    def __init__(self, directory: str | Path | None = None) -> None:
        self._directory = str(directory) if directory is not None else None
        self._file: BinaryIO | None = None
        self._path: Path | None = None

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def open(self) -> Path:
        """Create a fresh, uniquely named spool file for writing."""
        if self._path is not None:
            raise SpoolError(f"spool already open at {self._path}")
        try:
            fd, name = tempfile.mkstemp(prefix=SPOOL_PREFIX, dir=self._directory)
        except OSError as e:
            raise SpoolError(str(e)) from e
        self._file = os.fdopen(fd, "wb")
        self._path = Path(name)
        logger.debug("Opened spool file %s", self._path)
        return self._path

    def append(self, line: bytes) -> None:
        """Write one received line verbatim, terminator included."""
        if self._file is None:
            raise SpoolError("spool file is not open")
        try:
            self._file.write(line)
        except OSError as e:
            raise SpoolError(str(e)) from e

    def finalize(self) -> Path:
        """Close the file for writing and return its path."""
        if self._path is None:
            raise SpoolError("spool file was never opened")
        if self._file is not None:
            try:
                self._file.close()
            except OSError as e:
                raise SpoolError(str(e)) from e
            finally:
                self._file = None
        return self._path

    def release(self) -> None:
        """Close and remove the spool file. Safe to call repeatedly."""
        if self._file is not None:
            try:
                self._file.close()
            except OSError:
                logger.debug("Ignoring close error on %s", self._path)
            self._file = None
        if self._path is not None:
            try:
                self._path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("Failed to remove spool file %s: %s", self._path, e)
            logger.debug("Released spool file %s", self._path)

    def __enter__(self) -> ScriptSpool:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self.release()
