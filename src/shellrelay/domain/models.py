"""Core domain models for the shellrelay system.

A ``ServiceTarget`` is one parsed ``shell[:addr][:port]`` request before
the shell has been resolved. An ``ExecutionResult`` is what one script
run produced.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ServiceTarget(BaseModel):
    """One requested shell/address/port triple."""

    model_config = ConfigDict(frozen=True)

    shell: str = Field(min_length=1, description="Shell name or path")
    address: str = Field(description="Address to bind the listener on")
    port: int = Field(ge=1, le=65535, description="TCP port to bind")

    def __str__(self) -> str:
        return f"{self.shell}:{self.address}:{self.port}"


class ExecutionResult(BaseModel):
    """Captured output and exit status of one script execution.

    ``returncode`` follows the subprocess convention: negative values
    mean the process was terminated by that signal number.
    """

    model_config = ConfigDict(frozen=True)

    stdout: bytes = Field(default=b"")
    stderr: bytes = Field(default=b"")
    returncode: int = Field(default=0)

    @property
    def ok(self) -> bool:
        return self.returncode == 0
