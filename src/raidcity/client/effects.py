"""Side effects of raid phase changes: audio cues and auto-advance timers.

``PhaseEffects`` subscribes to state changes and is the only place that
touches the scheduler or the audio player. Both are injected so tests can
drive time by hand.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import Enum
from typing import Protocol

import structlog

from raidcity.client.phases import (
    PHASE_DURATIONS_MS,
    TIMER_SENSITIVE_PHASES,
    RaidEvent,
    RaidPhase,
    SequenceState,
    TimerElapsed,
)

logger = structlog.get_logger()

DEFEAT_CUE_DELAY_MS = 500


class AudioCue(str, Enum):
    TAKEOFF = "takeoff"
    FLIGHT = "flight"
    VICTORY = "victory"
    CRASH = "crash"
    DEFEAT = "defeat"


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle: ...


class AudioPlayer(Protocol):
    def preload(self) -> None: ...

    def play(self, cue: AudioCue) -> None: ...

    def stop(self, cue: AudioCue) -> None: ...

    def stop_all(self) -> None: ...


class AsyncioScheduler:
    """Scheduler backed by the running event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay_ms / 1000, callback)


class SilentAudioPlayer:
    """Audio player for headless clients; logs cues instead of playing them."""

    def preload(self) -> None:
        logger.debug("raid_audio_preload")

    def play(self, cue: AudioCue) -> None:
        logger.debug("raid_audio_play", cue=cue.value)

    def stop(self, cue: AudioCue) -> None:
        logger.debug("raid_audio_stop", cue=cue.value)

    def stop_all(self) -> None:
        logger.debug("raid_audio_stop_all")


class PhaseEffects:
    """Interpreter for phase changes.

    On every phase entry the pending auto-advance timer (and any delayed
    cue) is cancelled before the new phase's audio plays and its timer, if
    any, is scheduled.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        audio: AudioPlayer,
        dispatch: Callable[[RaidEvent], None],
    ) -> None:
        self.scheduler = scheduler
        self.audio = audio
        self.dispatch = dispatch
        self._timer: TimerHandle | None = None
        self._cue_timers: list[TimerHandle] = []

    @property
    def timer_pending(self) -> bool:
        return self._timer is not None

    def cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _cancel_cues(self) -> None:
        for handle in self._cue_timers:
            handle.cancel()
        self._cue_timers.clear()

    def on_transition(self, old: SequenceState, new: SequenceState) -> None:
        if old.phase == new.phase:
            return
        self.cancel_timer()
        self._cancel_cues()
        self._play_entry_audio(new.phase)

        duration = PHASE_DURATIONS_MS.get(new.phase)
        if duration is not None:
            phase = new.phase

            def _fire() -> None:
                self._timer = None
                self.dispatch(TimerElapsed(phase))

            self._timer = self.scheduler.call_later(duration, _fire)

    def _play_entry_audio(self, phase: RaidPhase) -> None:
        match phase:
            case RaidPhase.INTRO:
                self.audio.preload()
                self.audio.play(AudioCue.TAKEOFF)
            case RaidPhase.FLIGHT:
                self.audio.play(AudioCue.FLIGHT)
            case RaidPhase.ATTACK:
                self.audio.stop(AudioCue.FLIGHT)
            case RaidPhase.OUTRO_WIN:
                self.audio.play(AudioCue.VICTORY)
            case RaidPhase.OUTRO_LOSE:
                self.audio.play(AudioCue.CRASH)
                self._cue_timers.append(
                    self.scheduler.call_later(DEFEAT_CUE_DELAY_MS, lambda: self.audio.play(AudioCue.DEFEAT))
                )
            case RaidPhase.SHARE | RaidPhase.DONE | RaidPhase.IDLE:
                self.audio.stop_all()
            case RaidPhase.PREVIEW:
                pass

    def on_hidden(self, state: SequenceState) -> None:
        """Tab hidden: drop the pending timer. It is not rescheduled on refocus."""
        if state.phase in TIMER_SENSITIVE_PHASES and self._timer is not None:
            logger.debug("raid_timer_cancelled_hidden", phase=state.phase.value)
            self.cancel_timer()

    def shutdown(self) -> None:
        """Clear every timer and silence all audio."""
        self.cancel_timer()
        self._cancel_cues()
        self.audio.stop_all()
