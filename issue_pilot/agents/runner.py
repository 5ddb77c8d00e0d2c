"""Agent invocation driver.

Runs the agent CLI once per phase inside a session's workspace, streams its
decoded output to the caller as it arrives, and reports how the phase ended.
A phase fails in one of three distinguishable ways:

- the binary could not be started (``AgentStartError``)
- the agent reported an explicit error result (``AgentResultError``)
- the process exited non-zero without an error result (``AgentExitError``)

In every case the transcript captured up to that point is still returned.
Nothing here retries.
"""

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

import structlog

from issue_pilot.agents.stream import StreamDecoder
from issue_pilot.config.settings import AgentConfig
from issue_pilot.exceptions import AgentError, AgentExitError, AgentResultError, AgentStartError

log = structlog.get_logger(__name__)

OutputSink = Callable[[str], Awaitable[None]]

# stream-json lines embed whole tool results; asyncio's 64 KiB default is too small
STREAM_LINE_LIMIT = 16 * 1024 * 1024
STDERR_TAIL_LINES = 20


@dataclass
class PhaseResult:
    """Outcome of one agent phase.

    Attributes:
        transcript: Assistant and result text, concatenated in arrival order
        error: Why the phase failed, or None on success
    """

    transcript: str
    error: AgentError | None = None

    @property
    def success(self) -> bool:
        return self.error is None


class AgentRunner:
    """Launch the agent CLI for a single phase and stream its output.

    Attributes:
        config: Agent command line configuration.
    """

    def __init__(self, config: AgentConfig | None = None) -> None:
        self.config = config or AgentConfig()

    def build_command(self, prompt: str, allowed_tools: Sequence[str] | None = None) -> list[str]:
        """Full argv for one invocation."""
        cmd = [*self.config.command, "-p", prompt, "--output-format", "stream-json", "--verbose"]
        if allowed_tools:
            cmd.extend(["--allowedTools", ",".join(allowed_tools)])
        cmd.extend(self.config.extra_args)
        return cmd

    async def check_available(self) -> None:
        """Check that the agent CLI can be launched.

        Raises:
            AgentStartError: If the executable is missing or not runnable
        """
        try:
            process = await asyncio.create_subprocess_exec(
                *self.config.command,
                "--version",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            await process.communicate()
        except OSError as e:
            log.error("agent_cli_not_found", command=self.config.command[0])
            raise AgentStartError(f"{self.config.command[0]} CLI not found in PATH") from e

        if process.returncode == 0:
            log.info("agent_cli_available", command=self.config.command[0])
        else:
            log.warning("agent_cli_check_failed", command=self.config.command[0], code=process.returncode)

    async def run_phase(
        self,
        workspace: Path,
        prompt: str,
        emit: OutputSink,
        allowed_tools: Sequence[str] | None = None,
        phase: str = "agent",
    ) -> PhaseResult:
        """Run the agent to completion in ``workspace``.

        Every forwarded piece of output is awaited through ``emit`` before the
        next line is read, so the operator sees progress as it happens.

        Args:
            workspace: Existing directory used as the agent's working directory
            prompt: Non-empty instruction for the agent
            emit: Coroutine receiving each piece of output text
            allowed_tools: Optional tool allow-list passed as ``--allowedTools``
            phase: Phase name used in logs and attached to errors

        Returns:
            PhaseResult with the transcript and the failure, if any
        """
        if not prompt:
            raise ValueError("prompt must not be empty")

        cmd = self.build_command(prompt, allowed_tools)
        log.info("agent_phase_started", phase=phase, cwd=str(workspace), allowed_tools=list(allowed_tools or []))

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=workspace,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=STREAM_LINE_LIMIT,
            )
        except OSError as e:
            log.error("agent_start_failed", phase=phase, error=str(e))
            return PhaseResult("", AgentStartError(f"start agent: {e}", phase=phase))

        assert process.stdout is not None
        assert process.stderr is not None

        stderr_tail: deque[str] = deque(maxlen=STDERR_TAIL_LINES)
        stderr_task = asyncio.create_task(_collect_tail(process.stderr, stderr_tail))
        decoder = StreamDecoder()

        try:
            while True:
                raw = await process.stdout.readline()
                if not raw:
                    break
                for chunk in decoder.feed(raw.decode("utf-8", errors="replace")):
                    if chunk.forwarded:
                        await emit(chunk.text)
                if decoder.failed:
                    break

            if decoder.failed:
                # keep the pipe flowing so the agent can exit
                while await process.stdout.read(65536):
                    pass

            returncode = await process.wait()
            await stderr_task
        finally:
            if process.returncode is None:
                process.kill()
                await process.wait()
            if not stderr_task.done():
                stderr_task.cancel()

        transcript = decoder.transcript

        if decoder.error is not None:
            log.warning("agent_reported_error", phase=phase, error=decoder.error)
            return PhaseResult(transcript, AgentResultError(decoder.error, phase=phase))

        if returncode != 0:
            stderr = "\n".join(stderr_tail).strip() or None
            log.warning("agent_exited_nonzero", phase=phase, code=returncode)
            return PhaseResult(transcript, AgentExitError(returncode, stderr=stderr, phase=phase))

        log.info("agent_phase_finished", phase=phase, transcript_length=len(transcript))
        return PhaseResult(transcript)


async def _collect_tail(stream: asyncio.StreamReader, tail: deque[str]) -> None:
    """Drain ``stream`` line by line, keeping only the last lines."""
    while True:
        line = await stream.readline()
        if not line:
            return
        text = line.decode("utf-8", errors="replace").rstrip()
        if text:
            tail.append(text)
