"""
Build phase progress indicator.

A turn moves through thinking → planning → coding → done. The phase is a
plain value advanced by a pure transition function; it never moves backwards
within a turn.
"""

from enum import Enum
from typing import Tuple


class BuildPhase(str, Enum):
    THINKING = "thinking"
    PLANNING = "planning"
    CODING = "coding"
    DONE = "done"


class PhaseMarker(str, Enum):
    """Things that can push a turn forward."""
    REASONING_COMPLETE = "reasoning_complete"
    FILE_EDIT = "file_edit"
    FALLBACK_PLANNING = "fallback_planning"
    FALLBACK_CODING = "fallback_coding"
    STREAM_END = "stream_end"


_ORDER = [BuildPhase.THINKING, BuildPhase.PLANNING, BuildPhase.CODING, BuildPhase.DONE]

_TARGETS = {
    PhaseMarker.REASONING_COMPLETE: BuildPhase.CODING,
    PhaseMarker.FILE_EDIT: BuildPhase.DONE,
    PhaseMarker.FALLBACK_PLANNING: BuildPhase.PLANNING,
    PhaseMarker.FALLBACK_CODING: BuildPhase.CODING,
    PhaseMarker.STREAM_END: BuildPhase.DONE,
}

# Seconds after the request starts at which the UI is nudged forward even if
# the model has not produced the corresponding marker yet.
FALLBACK_DELAYS: Tuple[Tuple[float, PhaseMarker], ...] = (
    (1.0, PhaseMarker.FALLBACK_PLANNING),
    (3.0, PhaseMarker.FALLBACK_CODING),
)


def rank(phase: BuildPhase) -> int:
    return _ORDER.index(phase)


def advance(phase: BuildPhase, marker: PhaseMarker) -> BuildPhase:
    """Return the phase after observing `marker`; never lower than `phase`."""
    target = _TARGETS[marker]
    return target if rank(target) > rank(phase) else phase


def initial_phase(follow_up: bool) -> BuildPhase:
    """Follow-up turns already have a preview, so they skip the cold-start phases."""
    return BuildPhase.CODING if follow_up else BuildPhase.THINKING


def fallback_markers(elapsed: float) -> list:
    """Markers whose fallback delay has passed after `elapsed` seconds."""
    return [marker for delay, marker in FALLBACK_DELAYS if elapsed >= delay]


def progress(phase: BuildPhase) -> Tuple[int, int]:
    """(step, total) pair for a progress bar, e.g. (2, 4) while planning."""
    return rank(phase) + 1, len(_ORDER)
