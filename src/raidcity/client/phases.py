"""Raid phase machine: pure transitions, no timers or audio.

idle -> preview -> intro -> flight -> attack -> outro_win | outro_lose -> share -> done

``transition`` is a pure function of (state, event). Timer and completion
events carry the phase they belong to and are ignored once the sequence
has moved on, so a late event can never advance a phase twice.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum


class RaidPhase(str, Enum):
    IDLE = "idle"
    PREVIEW = "preview"
    INTRO = "intro"
    FLIGHT = "flight"
    ATTACK = "attack"
    OUTRO_WIN = "outro_win"
    OUTRO_LOSE = "outro_lose"
    SHARE = "share"
    DONE = "done"


# Auto-advance delays. Phases not listed only advance on an explicit signal.
PHASE_DURATIONS_MS: dict[RaidPhase, int] = {
    RaidPhase.INTRO: 4500,
    RaidPhase.OUTRO_WIN: 3500,
    RaidPhase.OUTRO_LOSE: 3000,
}

# Phases during which a hidden tab cancels the pending timer
TIMER_SENSITIVE_PHASES = frozenset(
    p for p in RaidPhase if p not in (RaidPhase.IDLE, RaidPhase.PREVIEW, RaidPhase.SHARE)
)


@dataclass(frozen=True)
class SequenceState:
    phase: RaidPhase = RaidPhase.IDLE
    # Raid outcome, known once execute succeeds
    success: bool | None = None


# --- Events ---


@dataclass(frozen=True)
class PreviewLoaded:
    pass


@dataclass(frozen=True)
class RaidExecuted:
    success: bool


@dataclass(frozen=True)
class PhaseCompleted:
    """The animation layer finished ``phase`` (or the user skipped it)."""

    phase: RaidPhase


@dataclass(frozen=True)
class TimerElapsed:
    phase: RaidPhase


@dataclass(frozen=True)
class SkipToShare:
    pass


@dataclass(frozen=True)
class ExitRaid:
    pass


RaidEvent = PreviewLoaded | RaidExecuted | PhaseCompleted | TimerElapsed | SkipToShare | ExitRaid

IDLE = SequenceState()


def _advance(state: SequenceState) -> SequenceState:
    """Next phase after ``state.phase`` completes."""
    match state.phase:
        case RaidPhase.INTRO:
            return replace(state, phase=RaidPhase.FLIGHT)
        case RaidPhase.FLIGHT:
            return replace(state, phase=RaidPhase.ATTACK)
        case RaidPhase.ATTACK:
            return replace(state, phase=RaidPhase.OUTRO_WIN if state.success else RaidPhase.OUTRO_LOSE)
        case RaidPhase.OUTRO_WIN | RaidPhase.OUTRO_LOSE:
            return replace(state, phase=RaidPhase.SHARE)
        case RaidPhase.SHARE:
            return replace(state, phase=RaidPhase.DONE)
        case _:
            return state


def transition(state: SequenceState, event: RaidEvent) -> SequenceState:
    """Return the state after ``event``. Unknown or stale events leave it unchanged."""
    match event:
        case ExitRaid():
            return IDLE
        case SkipToShare():
            return replace(state, phase=RaidPhase.SHARE)
        case PreviewLoaded():
            if state.phase in (RaidPhase.IDLE, RaidPhase.PREVIEW):
                return SequenceState(phase=RaidPhase.PREVIEW)
            return state
        case RaidExecuted(success=success):
            if state.phase == RaidPhase.PREVIEW:
                return SequenceState(phase=RaidPhase.INTRO, success=success)
            return state
        case TimerElapsed(phase=phase):
            if phase == state.phase and phase in PHASE_DURATIONS_MS:
                return _advance(state)
            return state
        case PhaseCompleted(phase=phase):
            if phase == state.phase:
                return _advance(state)
            return state
    return state
