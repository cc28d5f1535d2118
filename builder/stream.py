"""
Incremental tag extraction over a streamed model response.

The model answers in a small marker grammar:

    response   := prose? reasoning? (prose | file)*
    reasoning  := "<thinking>" TEXT "</thinking>"
    file       := "<file path=" QUOTE PATH QUOTE ">" TEXT "</file>"

There is no escaping: the first closing marker ends a segment. Deltas arrive
with no alignment to marker boundaries, so the extractor is a state machine
with a scan cursor into a growing buffer. `feed` is a pure function of
(state, delta) and can be replayed from recorded deltas.
"""

import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional, Tuple, Union

from builder.phase import BuildPhase, PhaseMarker, advance


REASONING_OPEN = "<thinking>"
REASONING_CLOSE = "</thinking>"
FILE_CLOSE = "</file>"

_FILE_OPEN_RE = re.compile(r"""<file\s+path\s*=\s*(["'])([^"'<>\n]*)\1\s*>""")
_FENCE_RE = re.compile(r"\s*```[\w.+-]*[ \t]*\r?\n(.*?)\r?\n?```\s*", re.DOTALL)

# An unterminated "<file ..." longer than this is not treated as a marker.
_MAX_OPEN_TAG = 512


class ScanMode(str, Enum):
    PROSE = "prose"
    REASONING = "reasoning"
    FILE = "file"


@dataclass(frozen=True)
class ReasoningPartial:
    text: str


@dataclass(frozen=True)
class ReasoningComplete:
    text: str


@dataclass(frozen=True)
class FileEdit:
    index: int
    path: str
    content: str


@dataclass(frozen=True)
class PhaseAdvance:
    phase: BuildPhase


StreamEvent = Union[ReasoningPartial, ReasoningComplete, FileEdit, PhaseAdvance]


@dataclass(frozen=True)
class ExtractorState:
    """Everything the extractor knows about one turn's response so far."""
    buffer: str = ""
    cursor: int = 0
    mode: ScanMode = ScanMode.PROSE
    reasoning_start: Optional[int] = None
    reasoning: Optional[str] = None
    file_path: Optional[str] = None
    file_start: int = 0
    files_emitted: int = 0
    last_partial: Optional[str] = None
    phase: BuildPhase = BuildPhase.THINKING


def initial_state(phase: BuildPhase = BuildPhase.THINKING) -> ExtractorState:
    return ExtractorState(phase=phase)


def _is_marker_prefix(tail: str) -> bool:
    """True if `tail` could still grow into an opening marker."""
    if REASONING_OPEN.startswith(tail):
        return True
    if "<file".startswith(tail):
        return True
    return tail.startswith("<file") and ">" not in tail and len(tail) < _MAX_OPEN_TAG


def _trim_partial_close(text: str, marker: str) -> str:
    """Drop a trailing fragment that is the beginning of `marker`."""
    for size in range(min(len(marker) - 1, len(text)), 0, -1):
        if marker.startswith(text[-size:]):
            return text[:-size]
    return text


def clean_file_content(raw: str) -> str:
    """Body of a file record as it should be stored."""
    body = raw
    if body.startswith("\r\n"):
        body = body[2:]
    elif body.startswith("\n"):
        body = body[1:]
    fenced = _FENCE_RE.fullmatch(body)
    if fenced:
        body = fenced.group(1) + "\n"
    return body


def feed(state: ExtractorState, delta: str) -> Tuple[ExtractorState, List[StreamEvent]]:
    """Append `delta` to the buffer and return the new state plus any events."""
    events: List[StreamEvent] = []
    buf = state.buffer + delta
    cursor = state.cursor
    mode = state.mode
    reasoning_start = state.reasoning_start
    reasoning = state.reasoning
    file_path = state.file_path
    file_start = state.file_start
    files_emitted = state.files_emitted
    last_partial = state.last_partial
    phase = state.phase

    def move(current: BuildPhase, marker: PhaseMarker) -> BuildPhase:
        nxt = advance(current, marker)
        if nxt != current:
            events.append(PhaseAdvance(nxt))
        return nxt

    while True:
        if mode == ScanMode.REASONING:
            close = buf.find(REASONING_CLOSE, max(cursor, reasoning_start))
            if close == -1:
                cursor = max(reasoning_start, len(buf) - len(REASONING_CLOSE) + 1)
                snapshot = _trim_partial_close(buf[reasoning_start:], REASONING_CLOSE).strip()
                if snapshot and snapshot != last_partial:
                    events.append(ReasoningPartial(snapshot))
                    last_partial = snapshot
                break
            reasoning = buf[reasoning_start:close].strip()
            events.append(ReasoningComplete(reasoning))
            phase = move(phase, PhaseMarker.REASONING_COMPLETE)
            mode = ScanMode.PROSE
            cursor = close + len(REASONING_CLOSE)
            continue

        if mode == ScanMode.FILE:
            close = buf.find(FILE_CLOSE, max(cursor, file_start))
            if close == -1:
                cursor = max(file_start, len(buf) - len(FILE_CLOSE) + 1)
                break
            events.append(FileEdit(files_emitted, file_path, clean_file_content(buf[file_start:close])))
            files_emitted += 1
            phase = move(phase, PhaseMarker.FILE_EDIT)
            mode = ScanMode.PROSE
            file_path = None
            cursor = close + len(FILE_CLOSE)
            continue

        # PROSE: look for the next opening marker.
        lt = buf.find("<", cursor)
        if lt == -1:
            cursor = len(buf)
            break
        if buf.startswith(REASONING_OPEN, lt):
            cursor = lt + len(REASONING_OPEN)
            if reasoning is None:
                mode = ScanMode.REASONING
                reasoning_start = cursor
            continue
        opened = _FILE_OPEN_RE.match(buf, lt)
        if opened:
            mode = ScanMode.FILE
            file_path = opened.group(2).strip()
            file_start = opened.end()
            cursor = file_start
            continue
        if _is_marker_prefix(buf[lt:]):
            cursor = lt
            break
        cursor = lt + 1

    # Models that open with plain prose: show it until a marker opens or may be
    # opening at the end of the buffer.
    if mode == ScanMode.PROSE and reasoning_start is None and files_emitted == 0 and cursor == len(buf):
        snapshot = buf.strip()
        if snapshot and snapshot != last_partial:
            events.append(ReasoningPartial(snapshot))
            last_partial = snapshot

    new_state = ExtractorState(
        buffer=buf,
        cursor=cursor,
        mode=mode,
        reasoning_start=reasoning_start,
        reasoning=reasoning,
        file_path=file_path,
        file_start=file_start,
        files_emitted=files_emitted,
        last_partial=last_partial,
        phase=phase,
    )
    return new_state, events


def finish(state: ExtractorState) -> ExtractorState:
    """Close the turn. Unterminated reasoning or file records are dropped."""
    if state.mode == ScanMode.PROSE:
        return state
    return replace(state, mode=ScanMode.PROSE, file_path=None, cursor=len(state.buffer))


def settled(events: List[StreamEvent]) -> List[StreamEvent]:
    """Events that do not depend on how the response was chunked."""
    return [e for e in events if not isinstance(e, ReasoningPartial)]


class StreamTagExtractor:
    """Stateful convenience wrapper around `feed`/`finish`."""

    def __init__(self, phase: BuildPhase = BuildPhase.THINKING):
        self.state = initial_state(phase)

    def feed(self, delta: str) -> List[StreamEvent]:
        self.state, events = feed(self.state, delta)
        return events

    def finish(self) -> None:
        self.state = finish(self.state)

    @property
    def phase(self) -> BuildPhase:
        return self.state.phase

    @property
    def reasoning(self) -> Optional[str]:
        return self.state.reasoning
