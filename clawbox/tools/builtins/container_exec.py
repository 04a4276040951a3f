"""Run an agent command inside a container via the configured engine. No shell."""
from __future__ import annotations

from typing import Any

from clawbox.config import ClawboxConfig, get_config
from clawbox.sandbox.engine import ContainerEngine, engine_from_config
from clawbox.sandbox.errors import (
    ContainerUnavailableError,
    ExecTimeoutError,
    InvalidRequestError,
    ShellSyntaxError,
)
from clawbox.sandbox.models import ExecRequest
from clawbox.tools.registry import Tool

REJECTED_MESSAGE = "Command rejected: contains unsupported shell syntax"


class ContainerExecTool(Tool):
    name = "container_exec"
    description = (
        "Run a single command inside a running container. "
        "Quotes ('...' and \"...\") are supported; pipes, redirects, ';', '&', "
        "'$' and backticks are rejected. Returns stdout, stderr and returncode."
    )
    parameters = {
        "type": "object",
        "properties": {
            "container_id": {"type": "string", "description": "ID of a running container"},
            "command": {"type": "string", "description": "Command line, e.g. python -c \"print(42)\""},
            "workdir": {"type": "string", "description": "Absolute working directory inside the container"},
            "timeout": {"type": "integer", "description": "Timeout in seconds"},
        },
        "required": ["container_id", "command"],
    }

    def __init__(self, engine: ContainerEngine | None = None,
                 config: ClawboxConfig | None = None) -> None:
        self._engine = engine
        self._config = config

    @property
    def config(self) -> ClawboxConfig:
        return self._config or get_config()

    @property
    def engine(self) -> ContainerEngine:
        if self._engine is None:
            self._engine = engine_from_config(self.config)
        return self._engine

    def _timeout_ms(self, timeout: int | float | None) -> int | None:
        if timeout is None:
            return None
        ms = int(float(timeout) * 1000)
        return max(1, min(ms, self.config.max_timeout_ms))

    async def execute(self, container_id: str, command: str,
                      workdir: str | None = None, timeout: int | None = None,
                      **_: Any) -> dict:
        try:
            request = ExecRequest(
                container_id=container_id,
                command=command,
                workdir=workdir or None,
                timeout_ms=self._timeout_ms(timeout),
            )
            result = await self.engine.exec_in_container(request)
        except ShellSyntaxError as exc:
            return {"error": REJECTED_MESSAGE, "rejected": True, "details": exc.details}
        except InvalidRequestError as exc:
            return {"error": f"Invalid request: {exc.message}"}
        except ContainerUnavailableError as exc:
            return {"error": f"Container unavailable: {exc}"}
        except ExecTimeoutError as exc:
            return {"error": f"Timeout after {exc.timeout_seconds}s", "timed_out": True}

        payload = result.to_dict()
        payload["timed_out"] = False
        return payload
