"""Reading-session playback: the session state machine and its clock.

WHY: Playback is the one stateful part of FlowRead. The state machine
owns progress and persistence; the clock owns timing. Keeping them apart
lets tests drive either without the other.
"""

from flowread.playback.clock import (
    AsyncioScheduler,
    ManualScheduler,
    PlaybackClock,
    Scheduler,
)
from flowread.playback.session import ReadingSessionMachine, SessionState

__all__ = [
    "AsyncioScheduler",
    "ManualScheduler",
    "PlaybackClock",
    "ReadingSessionMachine",
    "Scheduler",
    "SessionState",
]
