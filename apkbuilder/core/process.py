"""Process invocation primitive.

Every external toolchain (gradle, dotnet, npm, keytool, apksigner, the
engine editor) is driven through run_command(). Output is forwarded line
by line to the caller's listener as it arrives and also captured for the
returned CommandResult.

The child environment is a copy of os.environ plus an explicit overlay;
the builder process's own environment is never modified.

Timeouts are opt-in. Cancelling the awaiting task kills the child and
re-raises CancelledError.
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Optional, Protocol

logger = logging.getLogger(__name__)

OutputListener = Callable[[str], None]

EXIT_TIMEOUT = -1
EXIT_LAUNCH_FAILED = -2
EXIT_CAPTURE_FAILED = -3

READ_CHUNK_SIZE = 65536


@dataclass
class CommandResult:
    """Result of a single external command.

    A command is successful if exit_code == 0.
    """

    name: str
    command: str
    exit_code: int
    duration_seconds: float
    stdout: str = ""
    stderr: str = ""

    @property
    def is_success(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        return self.stdout + self.stderr

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "command": self.command,
            "exit_code": self.exit_code,
            "duration_seconds": round(self.duration_seconds, 3),
            "stdout_lines": self.stdout.count("\n") + 1 if self.stdout else 0,
            "stderr_lines": self.stderr.count("\n") + 1 if self.stderr else 0,
            "is_success": self.is_success,
        }


class CommandRunner(Protocol):
    def __call__(
        self,
        command: str,
        args: list[str],
        cwd: Path,
        env_overlay: Optional[dict[str, str]] = None,
        on_output: Optional[OutputListener] = None,
        timeout: Optional[float] = None,
    ) -> Awaitable[CommandResult]:
        ...


async def run_command(
    command: str,
    args: list[str],
    cwd: Path,
    env_overlay: Optional[dict[str, str]] = None,
    on_output: Optional[OutputListener] = None,
    timeout: Optional[float] = None,
) -> CommandResult:
    """Run an external command and wait for it to exit.

    Raises no exceptions for tool failures: launch errors, timeouts and
    output capture errors are reported through the exit code. Only task
    cancellation propagates.
    """
    name = Path(command).name
    command_line = " ".join([command, *args])
    logger.info("Running %s (cwd=%s)", command_line, cwd)

    env = dict(os.environ)
    if env_overlay:
        env.update(env_overlay)

    start = time.monotonic()
    try:
        proc = await asyncio.create_subprocess_exec(
            command,
            *args,
            cwd=str(cwd),
            env=env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        duration = time.monotonic() - start
        logger.warning("Failed to launch %s: %s", command, exc)
        return CommandResult(
            name=name,
            command=command_line,
            exit_code=EXIT_LAUNCH_FAILED,
            duration_seconds=duration,
            stderr=str(exc),
        )

    stdout_chunks: list[str] = []
    stderr_chunks: list[str] = []

    def _emit(raw: bytes, sink: list[str]) -> None:
        text = raw.decode("utf-8", errors="replace")
        sink.append(text)
        _forward(on_output, text)

    async def _pump(stream: Optional[asyncio.StreamReader], sink: list[str]) -> None:
        # Lines can exceed the StreamReader readline() limit.
        if stream is None:
            return
        pending = b""
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            pending += chunk
            *lines, pending = pending.split(b"\n")
            for line in lines:
                _emit(line + b"\n", sink)
        if pending:
            _emit(pending, sink)

    async def _communicate() -> int:
        pumps = [
            asyncio.ensure_future(_pump(proc.stdout, stdout_chunks)),
            asyncio.ensure_future(_pump(proc.stderr, stderr_chunks)),
        ]
        try:
            await asyncio.gather(*pumps)
        except BaseException:
            for pump in pumps:
                pump.cancel()
            await asyncio.gather(*pumps, return_exceptions=True)
            raise
        return await proc.wait()

    try:
        exit_code = await asyncio.wait_for(_communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        _kill(proc)
        await proc.wait()
        duration = time.monotonic() - start
        stderr_chunks.append(f"Timed out after {timeout} seconds")
        result = CommandResult(
            name=name,
            command=command_line,
            exit_code=EXIT_TIMEOUT,
            duration_seconds=duration,
            stdout="".join(stdout_chunks),
            stderr="".join(stderr_chunks),
        )
        logger.warning("%s timed out after %ss", name, timeout)
        return result
    except asyncio.CancelledError:
        _kill(proc)
        raise
    except Exception as exc:
        logger.exception("Reading output of %s failed", name)
        _kill(proc)
        await proc.wait()
        stderr_chunks.append(f"Output capture failed: {exc}")
        return CommandResult(
            name=name,
            command=command_line,
            exit_code=EXIT_CAPTURE_FAILED,
            duration_seconds=time.monotonic() - start,
            stdout="".join(stdout_chunks),
            stderr="".join(stderr_chunks),
        )

    duration = time.monotonic() - start
    result = CommandResult(
        name=name,
        command=command_line,
        exit_code=exit_code,
        duration_seconds=duration,
        stdout="".join(stdout_chunks),
        stderr="".join(stderr_chunks),
    )

    status = "OK" if result.is_success else "FAILED"
    logger.info("%s %s (exit=%d, %.1fs)", name, status, result.exit_code, duration)
    if not result.is_success and result.stderr:
        logger.warning("%s stderr (tail):\n%s", name, truncate_output(result.stderr))
    return result


def truncate_output(text: str, max_lines: int = 60, max_chars: int = 4000) -> str:
    """Return a concise tail of command output for logs and error messages."""
    if not text:
        return ""
    lines = text.splitlines()
    tail = lines[-max_lines:]
    joined = "\n".join(tail)
    if len(joined) > max_chars:
        joined = joined[-max_chars:]
    return joined


def _forward(listener: Optional[OutputListener], text: str) -> None:
    if listener is None:
        return
    try:
        listener(text)
    except Exception:
        logger.exception("Output listener raised; continuing")


def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
