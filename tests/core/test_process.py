"""Tests for the process invocation primitive.

Uses the running interpreter as the child so no toolchain is required.
"""

import asyncio
import os
import sys
from pathlib import Path

import pytest

from apkbuilder.core.process import (
    EXIT_CAPTURE_FAILED,
    EXIT_LAUNCH_FAILED,
    EXIT_TIMEOUT,
    CommandResult,
    run_command,
    truncate_output,
)


class TestRunCommand:
    @pytest.mark.asyncio
    async def test_captures_stdout_and_exit_code(self, tmp_path: Path) -> None:
        result = await run_command(sys.executable, ["-c", "print('hello')"], tmp_path)

        assert result.is_success
        assert result.exit_code == 0
        assert result.stdout.strip() == "hello"

    @pytest.mark.asyncio
    async def test_non_zero_exit_is_reported_not_raised(self, tmp_path: Path) -> None:
        result = await run_command(
            sys.executable,
            ["-c", "import sys; sys.stderr.write('boom\\n'); sys.exit(3)"],
            tmp_path,
        )

        assert not result.is_success
        assert result.exit_code == 3
        assert "boom" in result.stderr
        assert "boom" in result.output

    @pytest.mark.asyncio
    async def test_streams_lines_to_listener(self, tmp_path: Path) -> None:
        chunks: list[str] = []

        await run_command(
            sys.executable,
            ["-c", "print('one'); print('two')"],
            tmp_path,
            on_output=chunks.append,
        )

        assert [c.strip() for c in chunks] == ["one", "two"]

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_the_run(self, tmp_path: Path) -> None:
        def listener(_text: str) -> None:
            raise RuntimeError("listener bug")

        result = await run_command(
            sys.executable, ["-c", "print('x')"], tmp_path, on_output=listener
        )

        assert result.is_success
        assert result.stdout.strip() == "x"

    @pytest.mark.asyncio
    async def test_env_overlay_reaches_child_only(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.delenv("APKBUILDER_TEST_VAR", raising=False)

        result = await run_command(
            sys.executable,
            ["-c", "import os; print(os.environ['APKBUILDER_TEST_VAR'])"],
            tmp_path,
            env_overlay={"APKBUILDER_TEST_VAR": "overlaid"},
        )

        assert result.stdout.strip() == "overlaid"
        assert "APKBUILDER_TEST_VAR" not in os.environ

    @pytest.mark.asyncio
    async def test_launch_failure(self, tmp_path: Path) -> None:
        result = await run_command(str(tmp_path / "no-such-tool"), [], tmp_path)

        assert result.exit_code == EXIT_LAUNCH_FAILED
        assert not result.is_success
        assert result.stderr

    @pytest.mark.asyncio
    async def test_timeout_kills_child(self, tmp_path: Path) -> None:
        result = await run_command(
            sys.executable,
            ["-c", "import time; time.sleep(30)"],
            tmp_path,
            timeout=0.5,
        )

        assert result.exit_code == EXIT_TIMEOUT
        assert "Timed out" in result.stderr
        assert result.duration_seconds < 30

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, tmp_path: Path) -> None:
        task = asyncio.create_task(
            run_command(sys.executable, ["-c", "import time; time.sleep(30)"], tmp_path)
        )
        await asyncio.sleep(0.5)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

    @pytest.mark.asyncio
    async def test_line_longer_than_stream_limit(self, tmp_path: Path) -> None:
        result = await run_command(sys.executable, ["-c", "print('x' * 200000)"], tmp_path)

        assert result.is_success
        assert result.stdout == "x" * 200000 + "\n"

    @pytest.mark.asyncio
    async def test_output_without_trailing_newline(self, tmp_path: Path) -> None:
        chunks: list[str] = []

        result = await run_command(
            sys.executable,
            ["-c", "import sys; sys.stdout.write('a\\nb' * 3)"],
            tmp_path,
            on_output=chunks.append,
        )

        assert result.stdout == "a\nba\nba\nb"
        assert chunks == ["a\n", "ba\n", "ba\n", "b"]

    @pytest.mark.asyncio
    async def test_capture_error_kills_child_and_reports(self, tmp_path: Path, monkeypatch) -> None:
        async def broken_read(self, n=-1):
            raise ValueError("stream broke")

        monkeypatch.setattr(asyncio.StreamReader, "read", broken_read)

        result = await run_command(
            sys.executable, ["-c", "import time; time.sleep(30)"], tmp_path
        )

        assert result.exit_code == EXIT_CAPTURE_FAILED
        assert "stream broke" in result.stderr
        assert result.duration_seconds < 30


class TestCommandResult:
    def test_to_dict(self) -> None:
        result = CommandResult(
            name="gradle",
            command="gradle assembleDebug",
            exit_code=0,
            duration_seconds=1.23456,
            stdout="a\nb",
        )
        data = result.to_dict()
        assert data["is_success"] is True
        assert data["duration_seconds"] == 1.235
        assert data["stdout_lines"] == 2
        assert data["stderr_lines"] == 0


class TestTruncateOutput:
    def test_keeps_tail_lines(self) -> None:
        text = "\n".join(f"line {i}" for i in range(100))
        out = truncate_output(text, max_lines=3)
        assert out == "line 97\nline 98\nline 99"

    def test_caps_characters(self) -> None:
        out = truncate_output("x" * 10_000, max_chars=50)
        assert len(out) == 50

    def test_empty(self) -> None:
        assert truncate_output("") == ""
