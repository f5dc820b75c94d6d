"""
Server-sent events decoding and incremental JSON accumulation.

The decoder follows the WHATWG event-stream rules closely enough for LLM
providers: ``event``/``data``/``id``/``retry`` fields, ``:`` comments,
multi-line data joined by newlines and dispatch on a blank line.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Iterable, Iterator

DONE_SENTINEL = "[DONE]"

# Event-stream lines end on CRLF, LF or CR only
_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")


@dataclass
class ServerSentEvent:
    """One dispatched event."""

    event: str = "message"
    data: str = ""
    id: str | None = None
    retry: int | None = None

    @property
    def is_done(self) -> bool:
        return self.data.strip() == DONE_SENTINEL

    def json(self) -> Any:
        return json.loads(self.data)


class SSEDecoder:
    """Line-oriented event-stream decoder."""

    def __init__(self):
        self._event: str | None = None
        self._data: list[str] = []
        self._last_event_id: str | None = None
        self._retry: int | None = None

    def decode(self, line: str) -> ServerSentEvent | None:
        """Feed one line (without its terminator); returns an event on dispatch."""
        line = line.rstrip("\r")

        if not line:
            return self._dispatch()

        if line.startswith(":"):
            return None

        field, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if field == "event":
            self._event = value
        elif field == "data":
            self._data.append(value)
        elif field == "id":
            if "\0" not in value:
                self._last_event_id = value
        elif field == "retry":
            if value.isdigit():
                self._retry = int(value)

        return None

    def flush(self) -> ServerSentEvent | None:
        """Dispatch whatever is buffered when the stream ends without a blank line."""
        return self._dispatch()

    def _dispatch(self) -> ServerSentEvent | None:
        if not self._data:
            self._event = None
            return None

        sse = ServerSentEvent(
            event=self._event or "message",
            data="\n".join(self._data),
            id=self._last_event_id,
            retry=self._retry,
        )
        self._event = None
        self._data = []
        return sse


def iter_sse(lines: Iterable[str | bytes]) -> Iterator[ServerSentEvent]:
    """Decode an iterable of lines into events; bytes are decoded as UTF-8."""
    decoder = SSEDecoder()
    for raw in lines:
        line = raw.decode("utf-8") if isinstance(raw, bytes) else raw
        # A single chunk may carry several lines; an empty one is a dispatch
        parts = _LINE_BREAK_RE.split(line)
        if len(parts) > 1 and parts[-1] == "":
            parts.pop()
        for part in parts:
            event = decoder.decode(part)
            if event is not None:
                yield event

    event = decoder.flush()
    if event is not None:
        yield event


class PartialJSONAccumulator:
    """
    Accumulates streamed text that should form a single JSON document.

    Tracks string/escape state and the bracket stack, so callers can tell
    whether a complete top-level value has arrived and peek at a best-effort
    parse of an incomplete one.
    """

    def __init__(self):
        self._parts: list[str] = []
        self._stack: list[str] = []
        self._in_string = False
        self._escape = False
        self._started = False
        self._complete = False
        self._length = 0
        self._end: int | None = None

    def feed(self, chunk: str) -> None:
        if not chunk:
            return
        self._parts.append(chunk)
        offset = self._length
        self._length += len(chunk)

        for i, ch in enumerate(chunk):
            if self._complete:
                break
            if self._in_string:
                if self._escape:
                    self._escape = False
                elif ch == "\\":
                    self._escape = True
                elif ch == '"':
                    self._in_string = False
                continue

            if ch == '"' and self._started:
                self._in_string = True
            elif ch in "{[":
                self._started = True
                self._stack.append("}" if ch == "{" else "]")
            elif ch in "}]" and self._stack:
                if self._stack[-1] == ch:
                    self._stack.pop()
                if not self._stack:
                    self._complete = True
                    self._end = offset + i + 1

    @property
    def text(self) -> str:
        return "".join(self._parts)

    @property
    def started(self) -> bool:
        return self._started

    @property
    def complete(self) -> bool:
        return self._complete

    @property
    def depth(self) -> int:
        return len(self._stack)

    def snapshot(self) -> Any:
        """Best-effort parse of the text so far; None when nothing usable arrived."""
        text = self.text if self._end is None else self.text[: self._end]
        start = _first_opener(text)
        if start < 0:
            return None
        body = text[start:]

        if self._complete:
            try:
                return json.loads(body)
            except json.JSONDecodeError:
                return None

        candidate = body
        if self._in_string:
            candidate += '"'
        closers = "".join(reversed(self._stack))

        for attempt in (candidate, candidate.rstrip().rstrip(","), _drop_dangling_key(candidate)):
            if attempt is None:
                continue
            try:
                return json.loads(attempt + closers)
            except json.JSONDecodeError:
                continue
        return None


def _first_opener(text: str) -> int:
    positions = [p for p in (text.find("{"), text.find("[")) if p >= 0]
    return min(positions) if positions else -1


def _drop_dangling_key(text: str) -> str | None:
    # '{"a": 1, "b":' or '{"a": 1, "b"' cannot be closed; cut back to the last comma
    stripped = text.rstrip()
    if not stripped.endswith((":", '"')):
        return None
    cut = stripped.rfind(",")
    if cut < 0:
        return None
    return stripped[:cut]
