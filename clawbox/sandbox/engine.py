"""
Container runtime engines. One capability: run a command inside an already
running container, argv-only, never through ``sh -c``.

Backends are subclasses of ContainerEngine registered in ENGINES. Add a runtime
by adding a class, not by branching on runtime names at call sites.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from clawbox.sandbox.errors import (
    ContainerUnavailableError,
    ExecTimeoutError,
    InvalidRequestError,
)
from clawbox.sandbox.models import EngineIdentity, ExecRequest, ExecResult
from clawbox.sandbox.runner import run_process
from clawbox.sandbox.tokenizer import tokenize_command
from clawbox.utils.logger import get_logger

if TYPE_CHECKING:
    from clawbox.config import ClawboxConfig

log = get_logger("sandbox.engine")


class ContainerEngine(ABC):
    """Abstract backend. Implement build_args() only."""

    identity: EngineIdentity
    binary: str = ""
    # stderr prefixes the runtime CLI itself emits when it cannot reach the container
    unavailable_markers: tuple[str, ...] = ()

    def __init__(
        self,
        max_output_bytes: int | None = None,
        default_timeout_ms: int | None = None,
    ) -> None:
        self.max_output_bytes = max_output_bytes
        self.default_timeout_ms = default_timeout_ms

    @abstractmethod
    def build_args(self, request: ExecRequest, tokens: list[str]) -> list[str]:
        """Arguments passed to ``self.binary`` (binary name excluded)."""

    async def exec_in_container(self, request: ExecRequest) -> ExecResult:
        """
        Tokenize, build argv, spawn, collect.

        Raises ShellSyntaxError before anything is spawned, InvalidRequestError
        for a blank command, ContainerUnavailableError when the runtime cannot
        reach the container and ExecTimeoutError when the deadline passes.
        A non-zero exit of the command itself is returned, not raised.
        """
        tokens = tokenize_command(request.command)
        if not tokens:
            raise InvalidRequestError("Container exec command is empty",
                                      container_id=request.container_id)

        args = self.build_args(request, tokens)
        timeout = request.timeout_seconds
        if timeout is None and self.default_timeout_ms:
            timeout = self.default_timeout_ms / 1000
        log.debug("%s exec container=%s argv0=%s timeout=%s",
                  self.identity.value, request.container_id, tokens[0], timeout)

        try:
            result = await run_process(
                self.binary,
                args,
                timeout=timeout,
                stdin=request.stdin,
                max_output_bytes=self.max_output_bytes,
            )
        except ExecTimeoutError:
            # TimeoutError subclasses OSError
            raise
        except OSError as exc:
            raise ContainerUnavailableError(
                f"Cannot run '{self.binary}': {exc.strerror or exc}",
                container_id=request.container_id,
                details={"engine": self.identity.value},
            ) from exc

        if result.exit_code != 0 and self.is_unavailable(result.stderr):
            raise ContainerUnavailableError(
                result.stderr_text.strip().splitlines()[0],
                container_id=request.container_id,
                stderr=result.stderr,
                details={"engine": self.identity.value, "exit_code": result.exit_code},
            )
        return result

    def is_unavailable(self, stderr: bytes) -> bool:
        head = stderr.decode("utf-8", errors="replace").lstrip()
        return any(head.startswith(marker) for marker in self.unavailable_markers)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(identity={self.identity.value!r})"


class DockerEngine(ContainerEngine):
    identity = EngineIdentity.DOCKER
    binary = "docker"
    unavailable_markers = (
        "Error response from daemon",
        "Error: No such container",
        "Cannot connect to the Docker daemon",
    )

    def build_args(self, request: ExecRequest, tokens: list[str]) -> list[str]:
        args = ["exec"]
        if request.workdir:
            args += ["-w", request.workdir]
        args.append(request.container_id)
        args.extend(tokens)
        return args


class AppleContainerEngine(ContainerEngine):
    """Apple's ``container`` CLI. It has no working-directory flag."""

    identity = EngineIdentity.APPLE_CONTAINER
    binary = "container"
    unavailable_markers = (
        "Error: notFound",
        "Error: invalidState",
        "Error: internalError",
        "Error: XPC connection error",
    )

    def build_args(self, request: ExecRequest, tokens: list[str]) -> list[str]:
        if request.workdir:
            log.warning(
                "apple-container: workdir %r not honored for container %s; "
                "command runs in the container's default directory",
                request.workdir, request.container_id,
            )
        return ["exec", request.container_id, *tokens]


ENGINES: dict[EngineIdentity, type[ContainerEngine]] = {
    EngineIdentity.DOCKER: DockerEngine,
    EngineIdentity.APPLE_CONTAINER: AppleContainerEngine,
}


def create_engine(identity: EngineIdentity | str, **kwargs: Any) -> ContainerEngine:
    try:
        key = EngineIdentity(identity)
    except ValueError:
        known = ", ".join(e.value for e in ENGINES)
        raise ValueError(f"Unknown container engine '{identity}' (known: {known})") from None
    return ENGINES[key](**kwargs)


def engine_from_config(config: "ClawboxConfig") -> ContainerEngine:
    return create_engine(
        config.engine,
        max_output_bytes=config.max_output_bytes,
        default_timeout_ms=config.default_timeout_ms,
    )
