"""Pure polling policy for the job reconciler.

The loop in `reconciler.py` only asks two questions of this module: which
phase is the tracked job in, and how long to wait before the next fetch.
Keeping them free of timers and I/O makes the cadence testable on its own.
"""

from enum import StrEnum
from typing import Optional

from leadsync.core.models.job import JobState, UiStatus


class PollPhase(StrEnum):
    idle = "idle"  # nothing to track
    inflight = "inflight"  # waiting/active/delayed, or not observed yet
    terminal = "terminal"  # completed/failed


def phase_of(identifier: Optional[str], state: Optional[JobState]) -> PollPhase:
    if not identifier:
        return PollPhase.idle
    if state is not None and state.is_terminal:
        return PollPhase.terminal
    return PollPhase.inflight


def next_delay(phase: PollPhase, interval: float) -> Optional[float]:
    """Seconds until the next fetch, or None when polling must stop."""
    if phase == PollPhase.inflight:
        return interval
    return None


def ui_status_for(state: JobState, inflight_status: UiStatus = UiStatus.running) -> UiStatus:
    if state == JobState.completed:
        return UiStatus.completed
    if state == JobState.failed:
        return UiStatus.failed
    return inflight_status
