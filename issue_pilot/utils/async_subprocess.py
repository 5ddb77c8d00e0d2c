"""Async subprocess utilities.

Provides non-blocking subprocess execution for git and gh commands run from
session tasks, so one session waiting on git never stalls the event loop
that every other session shares.

Example:
    >>> from issue_pilot.utils.async_subprocess import run_command
    >>> stdout, stderr, code = await run_command("git", "status", cwd="/repo")
    >>> if code == 0:
    ...     print(stdout)

Thread Safety:
    Safe to call concurrently from multiple async tasks. Each call creates an
    independent subprocess with no shared state.
"""

import asyncio
import subprocess
from pathlib import Path


async def run_command(
    *args: str,
    cwd: Path | str | None = None,
    check: bool = True,
    timeout: float | None = None,
) -> tuple[str, str, int]:
    """Run a command asynchronously without shell interpolation.

    Args:
        *args: Command and arguments as separate strings.
        cwd: Working directory for command execution. None means the current
            working directory of the parent process.
        check: If True (default), raise CalledProcessError when the command
            returns a non-zero exit code.
        timeout: Maximum seconds to wait. The process is killed and
            TimeoutError raised if exceeded. None means wait indefinitely.

    Returns:
        Tuple of (stdout, stderr, return_code), decoded as UTF-8 with
        replacement for invalid bytes.

    Raises:
        subprocess.CalledProcessError: If check=True and the command returns
            non-zero. The exception carries stdout and stderr.
        TimeoutError: If timeout is exceeded.
        FileNotFoundError: If the executable is not found.
    """
    process = await asyncio.create_subprocess_exec(
        *args,
        cwd=cwd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except TimeoutError:
        process.kill()
        await process.wait()
        raise

    stdout = (stdout_bytes or b"").decode("utf-8", errors="replace")
    stderr = (stderr_bytes or b"").decode("utf-8", errors="replace")

    if check and process.returncode != 0:
        raise subprocess.CalledProcessError(process.returncode, args, stdout, stderr)

    return stdout, stderr, process.returncode or 0


def command_output(error: subprocess.CalledProcessError) -> str:
    """Combined, trimmed stdout and stderr of a failed command."""
    parts = [error.stdout or "", error.stderr or ""]
    return "\n".join(part.strip() for part in parts if part and part.strip())
