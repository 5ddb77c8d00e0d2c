"""Tests for issue_pilot.utils.async_subprocess module."""

import subprocess
import sys

import pytest

from issue_pilot.utils.async_subprocess import command_output, run_command


class TestRunCommand:
    @pytest.mark.asyncio
    async def test_captures_stdout(self):
        stdout, stderr, returncode = await run_command("echo", "hello")

        assert stdout.strip() == "hello"
        assert stderr == ""
        assert returncode == 0

    @pytest.mark.asyncio
    async def test_runs_in_cwd(self, tmp_path):
        stdout, _, _ = await run_command("pwd", cwd=tmp_path)

        assert stdout.strip() == str(tmp_path.resolve())

    @pytest.mark.asyncio
    async def test_nonzero_without_check(self):
        _, _, returncode = await run_command("false", check=False)

        assert returncode != 0

    @pytest.mark.asyncio
    async def test_nonzero_with_check_raises(self):
        with pytest.raises(subprocess.CalledProcessError) as exc_info:
            await run_command("bash", "-c", "echo out; echo err >&2; exit 3")

        assert exc_info.value.returncode == 3
        assert exc_info.value.stdout.strip() == "out"
        assert exc_info.value.stderr.strip() == "err"

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self):
        with pytest.raises(TimeoutError):
            await run_command(sys.executable, "-c", "import time; time.sleep(10)", timeout=0.2)

    @pytest.mark.asyncio
    async def test_missing_executable(self):
        with pytest.raises(FileNotFoundError):
            await run_command("definitely-not-a-real-command-xyz")

    @pytest.mark.asyncio
    async def test_invalid_utf8_replaced(self):
        stdout, _, _ = await run_command(sys.executable, "-c", "import sys; sys.stdout.buffer.write(b'a\\xffb')")

        assert stdout == "a�b"


class TestCommandOutput:
    def test_joins_trimmed_streams(self):
        error = subprocess.CalledProcessError(1, ["git"], output="  out \n", stderr="err\n")

        assert command_output(error) == "out\nerr"

    def test_empty_streams(self):
        error = subprocess.CalledProcessError(1, ["git"], output="", stderr=None)

        assert command_output(error) == ""
