"""
Exception taxonomy for container exec.
A non-zero exit of the executed command is NOT an error: it is a normal ExecResult.
"""
from __future__ import annotations

from typing import Any

SHELL_SYNTAX_MESSAGE = "Container exec command contains unsupported shell syntax"


class SandboxError(Exception):
    """Base for every failure raised by the engine."""

    def __init__(
        self,
        message: str,
        container_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.container_id = container_id
        self.details = details or {}

    def __str__(self) -> str:
        msg = self.message
        if self.container_id:
            msg = f"[{self.container_id}] {msg}"
        if self.details:
            msg += " (" + ", ".join(f"{k}={v!r}" for k, v in self.details.items()) + ")"
        return msg


class ShellSyntaxError(SandboxError, ValueError):
    """Command uses syntax only a real shell could evaluate. Raised before any spawn."""

    def __init__(self, command: str, character: str = "", position: int = -1,
                 reason: str = "") -> None:
        details: dict[str, Any] = {}
        if character:
            details["character"] = character
        if position >= 0:
            details["position"] = position
        if reason:
            details["reason"] = reason
        super().__init__(SHELL_SYNTAX_MESSAGE, details=details)
        self.command = command
        self.character = character
        self.position = position


class InvalidRequestError(SandboxError, ValueError):
    pass


class ContainerUnavailableError(SandboxError):
    """The runtime CLI/daemon could not reach the container (or is not installed)."""

    def __init__(self, message: str, container_id: str | None = None,
                 stderr: bytes = b"", **kwargs: Any) -> None:
        super().__init__(message, container_id=container_id, **kwargs)
        self.stderr = stderr


class ExecTimeoutError(SandboxError, TimeoutError):
    """Deadline hit. The child process has already been killed and reaped."""

    def __init__(self, message: str, timeout_seconds: float | None = None,
                 **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.timeout_seconds = timeout_seconds
