"""
Value types passed across the engine boundary: ExecRequest in, ExecResult out.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from clawbox.sandbox.errors import InvalidRequestError


class EngineIdentity(str, Enum):
    DOCKER = "docker"
    APPLE_CONTAINER = "apple-container"


@dataclass(frozen=True)
class ExecRequest:
    container_id: str
    command: str
    workdir: str | None = None
    timeout_ms: int | None = None
    stdin: bytes | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.container_id, str) or not self.container_id.strip():
            raise InvalidRequestError("container_id must be a non-empty string")
        # The runtime CLI would parse these as its own options / choke on them.
        if self.container_id.startswith("-") or "\x00" in self.container_id:
            raise InvalidRequestError(
                "container_id must not start with '-' or contain NUL",
                details={"container_id": self.container_id},
            )
        if self.workdir is not None and "\x00" in self.workdir:
            raise InvalidRequestError("workdir must not contain NUL",
                                      container_id=self.container_id)
        if not isinstance(self.command, str):
            raise InvalidRequestError("command must be a string",
                                      container_id=self.container_id)
        if self.workdir is not None and not self.workdir.startswith("/"):
            raise InvalidRequestError(
                "workdir must be an absolute path inside the container",
                container_id=self.container_id,
                details={"workdir": self.workdir},
            )
        if self.timeout_ms is not None and (
            isinstance(self.timeout_ms, bool)
            or not isinstance(self.timeout_ms, int)
            or self.timeout_ms <= 0
        ):
            raise InvalidRequestError(
                "timeout_ms must be a positive integer",
                container_id=self.container_id,
                details={"timeout_ms": self.timeout_ms},
            )

    @property
    def timeout_seconds(self) -> float | None:
        if self.timeout_ms is None:
            return None
        return self.timeout_ms / 1000


@dataclass(frozen=True)
class ExecResult:
    stdout: bytes
    stderr: bytes
    exit_code: int
    truncated: bool = False  # output exceeded max_output_bytes

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def stdout_text(self) -> str:
        return self.stdout.decode("utf-8", errors="replace")

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")

    def to_dict(self) -> dict[str, Any]:
        return {
            "returncode": self.exit_code,
            "stdout": self.stdout_text,
            "stderr": self.stderr_text,
            "truncated": self.truncated,
        }
