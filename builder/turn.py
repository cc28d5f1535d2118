"""
One prompt/response cycle of the generation pipeline.

A turn wraps the pure extractor state with the things the caller cares
about: the latest reasoning text, the file-edit records in emission order,
the build phase (including the timed fallbacks) and the credit cost. Only
the summary line outlives the turn.
"""

from dataclasses import dataclass, field, replace
from typing import List, Optional

from builder.files import COMPONENTS_DIR, canonical_path
from builder.phase import BuildPhase, PhaseMarker, advance, fallback_markers, initial_phase
from builder.stream import (
    ExtractorState,
    FileEdit,
    PhaseAdvance,
    ReasoningComplete,
    ReasoningPartial,
    StreamEvent,
    feed,
    finish,
    initial_state,
)

FAILURE_MESSAGE = "Generation failed: no file changes were produced. Please try again."
INTERRUPTED_MESSAGE = (
    "Your previous request was interrupted before it finished. "
    "Please send it again to continue."
)


def _display_name(path: str) -> str:
    name = path.rsplit("/", 1)[-1]
    return name.rsplit(".", 1)[0] if "." in name else name


@dataclass
class GenerationTurn:
    prompt: str
    follow_up: bool = False
    state: Optional[ExtractorState] = None
    reasoning: str = ""
    edits: List[FileEdit] = field(default_factory=list)
    credits_used: float = 0.0
    finished: bool = False

    def __post_init__(self):
        if self.state is None:
            self.state = initial_state(initial_phase(self.follow_up))

    @property
    def phase(self) -> BuildPhase:
        return self.state.phase

    @property
    def succeeded(self) -> bool:
        return bool(self.edits)

    def feed(self, delta: str) -> List[StreamEvent]:
        self.state, events = feed(self.state, delta)
        for event in events:
            if isinstance(event, (ReasoningPartial, ReasoningComplete)):
                self.reasoning = event.text
            elif isinstance(event, FileEdit):
                self.edits.append(event)
        return events

    def tick(self, elapsed: float) -> List[PhaseAdvance]:
        """Apply the timed fallback transitions due after `elapsed` seconds."""
        if self.finished:
            return []
        events = []
        phase = self.state.phase
        for marker in fallback_markers(elapsed):
            nxt = advance(phase, marker)
            if nxt != phase:
                events.append(PhaseAdvance(nxt))
                phase = nxt
        self.state = replace(self.state, phase=phase)
        return events

    def finish(self, credits_used: float = 0.0) -> List[PhaseAdvance]:
        """End the turn; partial segments still in the buffer are discarded."""
        self.state = finish(self.state)
        self.credits_used = credits_used
        self.finished = True
        phase = advance(self.state.phase, PhaseMarker.STREAM_END)
        if phase == self.state.phase:
            return []
        self.state = replace(self.state, phase=phase)
        return [PhaseAdvance(phase)]

    def summary(self) -> str:
        """Chat transcript line describing what the turn did."""
        if not self.edits:
            return FAILURE_MESSAGE

        paths = []
        for edit in self.edits:
            path = canonical_path(edit.path)
            if path not in paths:
                paths.append(path)
        components = [p for p in paths if p.startswith(COMPONENTS_DIR)]
        others = [p for p in paths if not p.startswith(COMPONENTS_DIR)]

        parts = []
        if components:
            names = ", ".join(_display_name(p) for p in components[:3])
            more = "..." if len(components) > 3 else ""
            plural = "s" if len(components) != 1 else ""
            parts.append(f"{len(components)} component{plural} ({names}{more})")
        if others:
            plural = "s" if len(others) != 1 else ""
            parts.append(f"{len(others)} file{plural}")

        text = "Updated " + " and ".join(parts)
        if self.credits_used > 0:
            text += f" • {self.credits_used:.2f} credits"
        return text
