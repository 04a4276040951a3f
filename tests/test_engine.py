"""Tests for clawbox.sandbox.engine: argv construction and error mapping.

The process runner is replaced by a test double so no container runtime is needed.
"""
import sys
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from clawbox.config import ClawboxConfig
from clawbox.sandbox.engine import (
    ENGINES,
    AppleContainerEngine,
    ContainerEngine,
    DockerEngine,
    create_engine,
    engine_from_config,
)
from clawbox.sandbox.errors import (
    ContainerUnavailableError,
    ExecTimeoutError,
    InvalidRequestError,
    ShellSyntaxError,
)
from clawbox.sandbox.models import EngineIdentity, ExecRequest, ExecResult


@pytest.fixture
def spawn():
    """Stand-in for run_process; records every spawn."""
    fake = AsyncMock(return_value=ExecResult(stdout=b"", stderr=b"", exit_code=0))
    with patch("clawbox.sandbox.engine.run_process", fake):
        yield fake


def _argv(spawn):
    binary, args = spawn.call_args.args
    return binary, list(args)


# ── Docker ────────────────────────────────────────────────────────────────────

class TestDockerEngine:
    @pytest.mark.asyncio
    async def test_executes_without_shell_wrapper(self, spawn):
        await DockerEngine().exec_in_container(ExecRequest(
            container_id="cid-1", workdir="/workspace", command="echo 'hello world'",
        ))
        binary, args = _argv(spawn)
        assert binary == "docker"
        assert args == ["exec", "-w", "/workspace", "cid-1", "echo", "hello world"]
        assert "sh" not in args
        assert "-c" not in args

    @pytest.mark.asyncio
    async def test_omits_workdir_flag(self, spawn):
        await DockerEngine().exec_in_container(ExecRequest("cid-1", "ls -la"))
        _, args = _argv(spawn)
        assert args == ["exec", "cid-1", "ls", "-la"]

    @pytest.mark.asyncio
    async def test_returns_runner_result(self, spawn):
        spawn.return_value = ExecResult(b"42\n", b"", 0)
        result = await DockerEngine().exec_in_container(ExecRequest("cid", "python -c 'print(42)'"))
        assert result.stdout == b"42\n"
        assert result.exit_code == 0

    @pytest.mark.asyncio
    async def test_nonzero_exit_is_a_result(self, spawn):
        spawn.return_value = ExecResult(b"", b"ls: cannot access 'nope'\n", 2)
        result = await DockerEngine().exec_in_container(ExecRequest("cid", "ls nope"))
        assert result.exit_code == 2
        assert not result.ok

    @pytest.mark.asyncio
    @pytest.mark.parametrize("stderr", [
        b"Error response from daemon: No such container: cid-x\n",
        b"Error response from daemon: container abc is not running\n",
        b"Cannot connect to the Docker daemon at unix:///var/run/docker.sock.\n",
    ])
    async def test_daemon_errors_mean_unavailable(self, spawn, stderr):
        spawn.return_value = ExecResult(b"", stderr, 1)
        with pytest.raises(ContainerUnavailableError) as exc_info:
            await DockerEngine().exec_in_container(ExecRequest("cid-x", "ls"))
        assert exc_info.value.container_id == "cid-x"
        assert exc_info.value.stderr == stderr

    @pytest.mark.asyncio
    async def test_missing_binary_means_unavailable(self, spawn):
        spawn.side_effect = FileNotFoundError(2, "No such file or directory", "docker")
        with pytest.raises(ContainerUnavailableError, match="Cannot run 'docker'"):
            await DockerEngine().exec_in_container(ExecRequest("cid", "ls"))


# ── Apple container ───────────────────────────────────────────────────────────

class TestAppleContainerEngine:
    @pytest.mark.asyncio
    async def test_executes_without_shell_wrapper(self, spawn):
        await AppleContainerEngine().exec_in_container(ExecRequest(
            container_id="cid-2", command='python -c "print(42)"',
        ))
        binary, args = _argv(spawn)
        assert binary == "container"
        assert args == ["exec", "cid-2", "python", "-c", "print(42)"]
        assert "sh" not in args

    @pytest.mark.asyncio
    async def test_workdir_ignored_with_warning(self, spawn):
        with patch("clawbox.sandbox.engine.log") as log:
            result = await AppleContainerEngine().exec_in_container(ExecRequest(
                container_id="cid-2", workdir="/workspace", command="pwd",
            ))
        _, args = _argv(spawn)
        assert args == ["exec", "cid-2", "pwd"]
        assert "/workspace" not in args
        assert result.exit_code == 0
        log.warning.assert_called_once()

    @pytest.mark.asyncio
    async def test_not_found_means_unavailable(self, spawn):
        spawn.return_value = ExecResult(b"", b'Error: notFound: "container cid-2 not found"\n', 1)
        with pytest.raises(ContainerUnavailableError):
            await AppleContainerEngine().exec_in_container(ExecRequest("cid-2", "ls"))

    @pytest.mark.asyncio
    async def test_command_error_output_is_a_result(self, spawn):
        spawn.return_value = ExecResult(b"", b"Error: config file missing\n", 1)
        result = await AppleContainerEngine().exec_in_container(ExecRequest("cid-2", "mytool"))
        assert result.exit_code == 1


# ── Shared contract ───────────────────────────────────────────────────────────

class TestEngineContract:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("engine_cls", [DockerEngine, AppleContainerEngine])
    async def test_rejects_shell_metacharacters_before_spawn(self, spawn, engine_cls):
        with pytest.raises(ShellSyntaxError,
                           match="Container exec command contains unsupported shell syntax"):
            await engine_cls().exec_in_container(ExecRequest("cid-3", "echo ok; whoami"))
        spawn.assert_not_called()

    @pytest.mark.asyncio
    async def test_unterminated_quote_never_spawns(self, spawn):
        with pytest.raises(ShellSyntaxError):
            await DockerEngine().exec_in_container(ExecRequest("cid", "echo 'oops"))
        assert spawn.call_count == 0

    @pytest.mark.asyncio
    async def test_blank_command_is_invalid(self, spawn):
        with pytest.raises(InvalidRequestError, match="empty"):
            await DockerEngine().exec_in_container(ExecRequest("cid", "   "))
        spawn.assert_not_called()

    @pytest.mark.asyncio
    async def test_request_timeout_passed_in_seconds(self, spawn):
        await DockerEngine().exec_in_container(ExecRequest("cid", "sleep 1", timeout_ms=1500))
        assert spawn.call_args.kwargs["timeout"] == 1.5

    @pytest.mark.asyncio
    async def test_engine_default_timeout(self, spawn):
        await DockerEngine(default_timeout_ms=2000).exec_in_container(ExecRequest("cid", "ls"))
        assert spawn.call_args.kwargs["timeout"] == 2.0

    @pytest.mark.asyncio
    async def test_no_timeout_by_default(self, spawn):
        await DockerEngine().exec_in_container(ExecRequest("cid", "ls"))
        assert spawn.call_args.kwargs["timeout"] is None

    @pytest.mark.asyncio
    async def test_stdin_and_output_limit_forwarded(self, spawn):
        await DockerEngine(max_output_bytes=128).exec_in_container(
            ExecRequest("cid", "cat", stdin=b"payload"))
        assert spawn.call_args.kwargs["stdin"] == b"payload"
        assert spawn.call_args.kwargs["max_output_bytes"] == 128

    @pytest.mark.asyncio
    async def test_timeout_propagates(self, spawn):
        spawn.side_effect = ExecTimeoutError("Process did not finish within 0.1s",
                                             timeout_seconds=0.1)
        with pytest.raises(ExecTimeoutError):
            await DockerEngine().exec_in_container(ExecRequest("cid", "sleep 60", timeout_ms=100))

    @pytest.mark.asyncio
    async def test_tokens_are_separate_arguments(self, spawn):
        await DockerEngine().exec_in_container(ExecRequest("cid", "touch 'a b' c"))
        _, args = _argv(spawn)
        assert args[-2:] == ["a b", "c"]

    def test_identity_fixed(self):
        assert DockerEngine().identity is EngineIdentity.DOCKER
        assert AppleContainerEngine().identity is EngineIdentity.APPLE_CONTAINER

    def test_abstract_base(self):
        with pytest.raises(TypeError):
            ContainerEngine()


# ── Registry ──────────────────────────────────────────────────────────────────

class TestCreateEngine:
    def test_by_name(self):
        assert isinstance(create_engine("docker"), DockerEngine)
        assert isinstance(create_engine("apple-container"), AppleContainerEngine)

    def test_by_identity(self):
        assert isinstance(create_engine(EngineIdentity.APPLE_CONTAINER), AppleContainerEngine)

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown container engine"):
            create_engine("podman")

    def test_registry_covers_every_identity(self):
        assert set(ENGINES) == set(EngineIdentity)

    def test_from_config(self):
        cfg = ClawboxConfig(engine="apple-container", max_output_bytes=64, default_timeout_ms=500)
        engine = engine_from_config(cfg)
        assert isinstance(engine, AppleContainerEngine)
        assert engine.max_output_bytes == 64
        assert engine.default_timeout_ms == 500


# ── Real process runner ───────────────────────────────────────────────────────

class _SleepyEngine(DockerEngine):
    """Runs a local python that outlives any reasonable deadline."""
    binary = sys.executable

    def build_args(self, request, tokens):
        return ["-c", "import time; time.sleep(30)"]


class TestEngineWithRunner:
    @pytest.mark.asyncio
    async def test_timeout_surfaces_as_timeout_error(self):
        with pytest.raises(ExecTimeoutError) as exc_info:
            await _SleepyEngine().exec_in_container(
                ExecRequest("cid-4", "sleep 30", timeout_ms=300))
        assert not isinstance(exc_info.value, ContainerUnavailableError)
        assert exc_info.value.timeout_seconds == 0.3

    @pytest.mark.asyncio
    async def test_default_timeout_surfaces_as_timeout_error(self):
        with pytest.raises(ExecTimeoutError):
            await _SleepyEngine(default_timeout_ms=300).exec_in_container(
                ExecRequest("cid-4", "sleep 30"))

    @pytest.mark.asyncio
    async def test_missing_binary_is_unavailable(self):
        engine = DockerEngine()
        engine.binary = "clawbox-no-such-runtime"
        with pytest.raises(ContainerUnavailableError, match="clawbox-no-such-runtime"):
            await engine.exec_in_container(ExecRequest("cid", "ls"))
