"""Decoder for the agent's line-oriented ``stream-json`` output.

The agent CLI writes one JSON object per line on standard output. Three
shapes matter:

    {"type": "assistant", "message": {"content": [{"type": "text", "text": "..."}]}}
    {"type": "result", "result": "...", "error": "..."}
    {"type": "system", "subtype": "init"}

Every other line, including valid JSON of any other shape and lines that
are not JSON at all, is passed through verbatim as raw output. Decoding is
strictly one line at a time and never raises.

Example:
    >>> decoder = StreamDecoder()
    >>> chunks = decoder.feed('{"type":"result","result":"done"}')
    >>> [c.kind for c in chunks]
    [<ChunkKind.RESULT: 'result'>]
    >>> decoder.transcript
    'done'
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

SESSION_STARTED_MARKER = "[session started]\n"


class ContentBlock(BaseModel):
    """One block of an assistant message. Only ``text`` blocks carry prose."""

    model_config = ConfigDict(extra="ignore")

    type: str = ""
    text: str | None = None


class AssistantBody(BaseModel):
    """Blocks stay unvalidated here so one malformed block cannot hide the rest."""

    model_config = ConfigDict(extra="ignore")

    content: list[Any] | None = None


class StreamMessage(BaseModel):
    """The subset of a stream-json message the decoder looks at.

    JSON null is accepted wherever a string or flag is expected and reads
    as empty.
    """

    model_config = ConfigDict(extra="ignore")

    type: str
    subtype: str | None = None
    message: AssistantBody | None = None
    result: str | None = None
    error: str | None = None
    is_error: bool | None = None


class ChunkKind(str, Enum):
    """What a decoded piece of output represents."""

    TEXT = "text"
    RESULT = "result"
    INIT = "init"
    RAW = "raw"
    ERROR = "error"


@dataclass(frozen=True)
class StreamChunk:
    """A decoded piece of agent output.

    ``text`` is what the operator should see for every kind except ERROR,
    where it is the agent's error message.
    """

    kind: ChunkKind
    text: str

    @property
    def in_transcript(self) -> bool:
        return self.kind in (ChunkKind.TEXT, ChunkKind.RESULT)

    @property
    def forwarded(self) -> bool:
        return self.kind is not ChunkKind.ERROR


class StreamDecoder:
    """Incrementally decode agent output lines and accumulate the transcript.

    One decoder is used per phase. ``transcript`` holds the assistant text
    and final result text seen so far, in arrival order. ``error`` holds the
    first explicit error result, if any.
    """

    def __init__(self) -> None:
        self._transcript: list[str] = []
        self.error: str | None = None

    @property
    def transcript(self) -> str:
        return "".join(self._transcript)

    @property
    def failed(self) -> bool:
        return self.error is not None

    def feed(self, line: str) -> list[StreamChunk]:
        """Decode one line of output.

        Args:
            line: A single line, with or without its trailing newline.

        Returns:
            The chunks to forward, in order. Empty for blank lines and for
            messages that carry nothing to show.
        """
        line = line.rstrip("\r\n")
        if not line.strip():
            return []

        message = self._parse(line)
        if message is None:
            return [StreamChunk(ChunkKind.RAW, line + "\n")]

        if message.type == "assistant":
            return self._decode_assistant(message)
        if message.type == "result":
            return self._decode_result(message)
        if message.type == "system" and message.subtype == "init":
            return [StreamChunk(ChunkKind.INIT, SESSION_STARTED_MARKER)]

        return [StreamChunk(ChunkKind.RAW, line + "\n")]

    @staticmethod
    def _parse(line: str) -> StreamMessage | None:
        try:
            payload = json.loads(line)
        except ValueError:
            return None
        if not isinstance(payload, dict):
            return None
        try:
            return StreamMessage.model_validate(payload)
        except ValidationError:
            return None

    def _decode_assistant(self, message: StreamMessage) -> list[StreamChunk]:
        if message.message is None:
            return []
        chunks = []
        for raw_block in message.message.content or []:
            try:
                block = ContentBlock.model_validate(raw_block)
            except ValidationError:
                continue
            if block.type == "text" and block.text:
                self._transcript.append(block.text)
                chunks.append(StreamChunk(ChunkKind.TEXT, block.text))
        return chunks

    def _decode_result(self, message: StreamMessage) -> list[StreamChunk]:
        error = message.error or ""
        if not error and message.is_error:
            error = message.result or message.subtype or "agent reported an error"
        if error:
            if self.error is None:
                self.error = error
            return [StreamChunk(ChunkKind.ERROR, error)]
        if message.result:
            self._transcript.append(message.result)
            return [StreamChunk(ChunkKind.RESULT, message.result)]
        return []
