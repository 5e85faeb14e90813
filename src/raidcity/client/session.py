"""One client's raid session: API calls, loading/error state, and the phase machine."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

import httpx
import structlog

from raidcity.client.api import RaidApiClient, RaidApiError
from raidcity.client.effects import AudioPlayer, PhaseEffects, Scheduler
from raidcity.client.phases import (
    IDLE,
    ExitRaid,
    PhaseCompleted,
    PreviewLoaded,
    RaidEvent,
    RaidExecuted,
    RaidPhase,
    SequenceState,
    SkipToShare,
    transition,
)
from raidcity.raids.schemas import RaidExecuteResponse, RaidPreviewResponse

logger = structlog.get_logger()

Listener = Callable[[SequenceState, SequenceState], None]

_PREVIEWABLE = frozenset({RaidPhase.IDLE, RaidPhase.PREVIEW})


@dataclass(frozen=True)
class Building:
    """Geometry of one building, from the city layout."""

    login: str
    position: tuple[float, float, float]
    height: float


class RaidSession:
    """Drives a single raid sequence at a time.

    A second preview/execute while one is in flight is ignored (``loading``);
    the in-flight request is never cancelled.
    """

    def __init__(self, api: RaidApiClient, scheduler: Scheduler, audio: AudioPlayer) -> None:
        self.api = api
        self.state: SequenceState = IDLE
        self.preview_data: RaidPreviewResponse | None = None
        self.raid_data: RaidExecuteResponse | None = None
        self.attacker_building: Building | None = None
        self.defender_building: Building | None = None
        self.error: str | None = None
        self.loading = False
        self._target_login = ""
        self._listeners: list[Listener] = []
        self.effects = PhaseEffects(scheduler, audio, self.dispatch)
        self.subscribe(self.effects.on_transition)

    @property
    def phase(self) -> RaidPhase:
        return self.state.phase

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(old, new)`` after every state change. Returns an unsubscribe function."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def dispatch(self, event: RaidEvent) -> None:
        old = self.state
        new = transition(old, event)
        if new == old:
            return
        self.state = new
        if new.phase != old.phase:
            self.error = None
        for listener in list(self._listeners):
            listener(old, new)

    # --- Network-backed actions ---

    async def start_preview(self, target_login: str, buildings: Sequence[Building], my_login: str) -> None:
        if self.loading or self.phase not in _PREVIEWABLE:
            return
        self._target_login = target_login
        self.loading = True
        self.error = None

        by_login = {b.login: b for b in buildings}
        try:
            preview = await self.api.preview(target_login)
        except RaidApiError as e:
            self.loading = False
            self.error = e.message
            return
        except httpx.TransportError:
            self.loading = False
            self.error = "Network error"
            return

        self.loading = False
        if self.phase not in _PREVIEWABLE or self._target_login != target_login:
            # exited while the request was in flight
            return
        self.preview_data = preview
        self.raid_data = None
        self.attacker_building = by_login.get(my_login)
        self.defender_building = by_login.get(target_login)
        self.dispatch(PreviewLoaded())

    async def execute_raid(self, boost_purchase_id: int | None = None, vehicle_id: str | None = None) -> None:
        if self.loading or self.phase != RaidPhase.PREVIEW or not self._target_login:
            return
        self.loading = True
        try:
            raid = await self.api.execute(self._target_login, boost_purchase_id, vehicle_id)
        except RaidApiError as e:
            self.loading = False
            self.error = e.message
            return
        except httpx.TransportError:
            self.loading = False
            self.error = "Network error"
            return

        self.loading = False
        if self.phase != RaidPhase.PREVIEW:
            # exited while the request was in flight
            logger.info("raid_result_dropped", raid_id=raid.raid_id)
            return
        self.raid_data = self._with_client_geometry(raid)
        logger.info("raid_started", raid_id=raid.raid_id, success=raid.success)
        self.dispatch(RaidExecuted(success=raid.success))

    def _with_client_geometry(self, raid: RaidExecuteResponse) -> RaidExecuteResponse:
        """Positions and heights come from the local city layout, not the server."""
        updates = {}
        if self.attacker_building is not None:
            updates["attacker"] = raid.attacker.model_copy(
                update={"position": self.attacker_building.position, "height": self.attacker_building.height}
            )
        if self.defender_building is not None:
            updates["defender"] = raid.defender.model_copy(
                update={"position": self.defender_building.position, "height": self.defender_building.height}
            )
        return raid.model_copy(update=updates) if updates else raid

    # --- Local actions ---

    def on_phase_complete(self, phase: RaidPhase) -> None:
        """Completion signal from the animation layer."""
        self.dispatch(PhaseCompleted(phase))

    def skip_to_share(self) -> None:
        self.dispatch(SkipToShare())

    def exit_raid(self) -> None:
        self.dispatch(ExitRaid())
        self.effects.shutdown()
        self.preview_data = None
        self.raid_data = None
        self.attacker_building = None
        self.defender_building = None
        self.error = None
        self.loading = False
        self._target_login = ""

    def set_document_hidden(self, hidden: bool) -> None:
        if hidden:
            self.effects.on_hidden(self.state)
