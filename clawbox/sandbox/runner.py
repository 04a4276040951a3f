"""
Process runner: one OS process per call, argv only (exec, never a shell).
stdout/stderr drained concurrently; deadline -> kill tree, reap, raise.
"""
from __future__ import annotations

import asyncio
from typing import Mapping, Sequence

import psutil

from clawbox.sandbox.errors import ExecTimeoutError
from clawbox.sandbox.models import ExecResult
from clawbox.utils.logger import get_logger

log = get_logger("sandbox.runner")

READ_CHUNK = 64 * 1024
REAP_GRACE_SECONDS = 3


class _Capture:
    """Byte buffer that keeps at most ``limit`` bytes and remembers overflow."""

    def __init__(self, limit: int | None) -> None:
        self.limit = limit
        self.data = bytearray()
        self.truncated = False

    def feed(self, chunk: bytes) -> None:
        if self.limit is None:
            self.data.extend(chunk)
            return
        room = self.limit - len(self.data)
        if room > 0:
            self.data.extend(chunk[:room])
        if len(chunk) > room:
            self.truncated = True


async def _drain(stream: asyncio.StreamReader, capture: _Capture) -> None:
    # Keep reading past the limit so the child never blocks on a full pipe.
    while True:
        chunk = await stream.read(READ_CHUNK)
        if not chunk:
            return
        capture.feed(chunk)


async def _feed_stdin(proc: asyncio.subprocess.Process, data: bytes) -> None:
    assert proc.stdin is not None
    try:
        proc.stdin.write(data)
        await proc.stdin.drain()
    except (BrokenPipeError, ConnectionResetError):
        # Child exited without reading its input; exit status tells the story.
        pass
    finally:
        proc.stdin.close()


async def _kill_tree(proc: asyncio.subprocess.Process) -> None:
    """SIGKILL the child and everything it spawned."""
    try:
        children = psutil.Process(proc.pid).children(recursive=True)
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        children = []
    for child in children:
        try:
            child.kill()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            pass
    try:
        proc.kill()
    except ProcessLookupError:
        pass
    if children:
        await asyncio.to_thread(psutil.wait_procs, children, timeout=REAP_GRACE_SECONDS)


async def _abort(proc: asyncio.subprocess.Process, tasks: list[asyncio.Task]) -> None:
    await _kill_tree(proc)
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
    # Drain whatever is left in the pipes and reap the child.
    await proc.communicate()
    log.debug("Killed and reaped PID=%s rc=%s", proc.pid, proc.returncode)


async def run_process(
    binary: str,
    args: Sequence[str],
    *,
    timeout: float | None = None,
    stdin: bytes | None = None,
    max_output_bytes: int | None = None,
    env: Mapping[str, str] | None = None,
) -> ExecResult:
    """
    Spawn ``binary`` with ``args`` and collect its output.

    - No shell: arguments reach execve() exactly as given.
    - ``max_output_bytes`` bounds each of stdout/stderr; overflow sets ``truncated``.
    - On ``timeout`` (seconds) the process tree is killed and reaped, then
      ExecTimeoutError is raised. No partial result is returned.
    - OSError from spawning (binary missing, not executable) propagates.
    """
    proc = await asyncio.create_subprocess_exec(
        binary,
        *args,
        stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env=dict(env) if env is not None else None,
    )
    log.debug("Spawned %s PID=%s argc=%d", binary, proc.pid, len(args))

    out = _Capture(max_output_bytes)
    err = _Capture(max_output_bytes)
    assert proc.stdout is not None and proc.stderr is not None
    tasks = [
        asyncio.create_task(_drain(proc.stdout, out)),
        asyncio.create_task(_drain(proc.stderr, err)),
    ]
    if stdin is not None:
        tasks.append(asyncio.create_task(_feed_stdin(proc, stdin)))
    tasks.append(asyncio.create_task(proc.wait()))

    try:
        done, pending = await asyncio.wait(tasks, timeout=timeout)
    except asyncio.CancelledError:
        await _abort(proc, tasks)
        raise

    if pending:
        await _abort(proc, tasks)
        raise ExecTimeoutError(
            f"Process did not finish within {timeout}s",
            timeout_seconds=timeout,
            details={"binary": binary, "pid": proc.pid},
        )

    for task in done:
        task.result()  # surface reader errors

    assert proc.returncode is not None
    return ExecResult(
        stdout=bytes(out.data),
        stderr=bytes(err.data),
        exit_code=proc.returncode,
        truncated=out.truncated or err.truncated,
    )
