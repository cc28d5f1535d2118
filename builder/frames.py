"""
Server-sent-event frames for a generation stream.

Every frame is a single `data: <json>` line followed by a blank line; the
stream ends with `data: [DONE]`. Readers tolerate lines split across network
chunks by buffering until a newline arrives.
"""

import json
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional

DONE_SENTINEL = "[DONE]"
_PREFIX = "data: "


def encode(payload: dict) -> str:
    return _PREFIX + json.dumps(payload) + "\n\n"


def encode_done() -> str:
    return _PREFIX + DONE_SENTINEL + "\n\n"


@dataclass
class Frame:
    payload: Optional[dict]
    done: bool = False


def decode_line(line: str) -> Optional[Frame]:
    """Frame carried by one SSE line, or None for comments, blanks and junk."""
    line = line.rstrip("\r")
    if not line.startswith("data:"):
        return None
    data = line[5:].strip()
    if data == DONE_SENTINEL:
        return Frame(payload=None, done=True)
    try:
        payload = json.loads(data)
    except (json.JSONDecodeError, ValueError):
        return None
    if not isinstance(payload, dict):
        return None
    return Frame(payload=payload)


class FrameReader:
    """Turns arbitrarily chunked SSE text into frames."""

    def __init__(self):
        self._pending = ""
        self.done = False

    def feed(self, chunk: str) -> List[Frame]:
        self._pending += chunk
        *lines, self._pending = self._pending.split("\n")
        frames = []
        for line in lines:
            frame = decode_line(line)
            if frame is None:
                continue
            if frame.done:
                self.done = True
            frames.append(frame)
        return frames

    def close(self) -> List[Frame]:
        rest, self._pending = self._pending, ""
        frame = decode_line(rest) if rest else None
        if frame is not None and frame.done:
            self.done = True
        return [frame] if frame is not None else []


def iter_frames(chunks: Iterable[str]) -> Iterator[Frame]:
    reader = FrameReader()
    for chunk in chunks:
        yield from reader.feed(chunk)
    yield from reader.close()
