"""Client session tests: effects timing, audio cues, loading guard and API errors.

Time is driven by ``FakeScheduler.advance``; the raid API is served by an
``httpx.MockTransport``.
"""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from raidcity.client.api import RaidApiClient, RaidApiError
from raidcity.client.effects import AsyncioScheduler, AudioCue
from raidcity.client.phases import RaidPhase
from raidcity.client.session import Building, RaidSession
from raidcity.raids.schemas import RaidExecuteResponse, RaidPreviewResponse

PREVIEW = {
    "can_raid": True,
    "raids_today": 1,
    "raids_max": 3,
    "target_raided_this_week": False,
    "attack_estimate": "medium",
    "defense_estimate": "medium",
    "attack_score": 39,
    "defense_score": 27,
    "attack_breakdown": {"commits": 30, "streak": 3, "kudos": 6},
    "defense_breakdown": {"commits": 24, "streak": 1, "kudos": 2},
    "attacker_slug": "alice",
    "attacker_avatar": None,
    "defender_slug": "bob",
    "defender_avatar": None,
    "defender_building_height": 42.0,
    "available_boosts": [],
    "available_vehicles": [{"item_id": "airplane", "name": "Airplane", "emoji": "*"}],
    "vehicle": "airplane",
}


def _execute_body(success: bool) -> dict:
    return {
        "raid_id": "9f1c7d7e-0000-4000-8000-000000000001",
        "success": success,
        "attack_score": 39 if success else 20,
        "defense_score": 27,
        "attack_breakdown": {"commits": 30, "streak": 3, "kudos": 6},
        "defense_breakdown": {"commits": 24, "streak": 1, "kudos": 2},
        "attacker": {"slug": "alice", "avatar": None},
        "defender": {"slug": "bob", "avatar": None},
        "xp_earned": 50 if success else 0,
        "new_raid_xp": 50 if success else 0,
        "new_title": None,
        "new_achievements": [],
        "vehicle": "airplane",
        "tag_style": "default",
    }


class FakeHandle:
    def __init__(self, due: int, callback) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Manual clock in milliseconds."""

    def __init__(self) -> None:
        self.now = 0
        self.handles: list[FakeHandle] = []

    def call_later(self, delay_ms: int, callback) -> FakeHandle:
        handle = FakeHandle(self.now + delay_ms, callback)
        self.handles.append(handle)
        return handle

    def advance(self, ms: int) -> None:
        target = self.now + ms
        while True:
            due = [h for h in self.handles if not h.cancelled and h.callback is not None and h.due <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.due)
            self.now = handle.due
            callback, handle.callback = handle.callback, None
            callback()
        self.now = target


class RecordingAudio:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str | None]] = []

    def preload(self) -> None:
        self.calls.append(("preload", None))

    def play(self, cue: AudioCue) -> None:
        self.calls.append(("play", cue.value))

    def stop(self, cue: AudioCue) -> None:
        self.calls.append(("stop", cue.value))

    def stop_all(self) -> None:
        self.calls.append(("stop_all", None))

    @property
    def played(self) -> list[str]:
        return [cue for action, cue in self.calls if action == "play"]


def _transport(success: bool = True, preview_status: int = 200, execute_status: int = 200):
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        seen.append({"path": request.url.path, "body": body, "auth": request.headers.get("authorization")})
        if request.url.path.endswith("/preview"):
            if preview_status != 200:
                return httpx.Response(preview_status, json={"detail": "Already raided this target this week",
                                                            "code": "weekly_cooldown_active"})
            return httpx.Response(200, json=PREVIEW)
        if execute_status != 200:
            return httpx.Response(execute_status, json={"detail": "Daily raid limit reached",
                                                        "code": "daily_limit_exceeded"})
        return httpx.Response(200, json=_execute_body(success))

    return httpx.MockTransport(handler), seen


BUILDINGS = [
    Building("alice", (0.0, 0.0, 0.0), 80.0),
    Building("bob", (120.0, 0.0, -40.0), 42.0),
]


def _session(transport: httpx.MockTransport):
    http = httpx.AsyncClient(transport=transport, base_url="http://test")
    scheduler = FakeScheduler()
    audio = RecordingAudio()
    session = RaidSession(RaidApiClient(http, token="tok"), scheduler, audio)
    return session, scheduler, audio, http


async def _to_intro(session: RaidSession) -> None:
    await session.start_preview("bob", BUILDINGS, "alice")
    await session.execute_raid()


class TestRaidApiClient:
    @pytest.mark.asyncio
    async def test_optional_fields_omitted(self):
        transport, seen = _transport()
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
            api = RaidApiClient(http, token="tok")
            await api.execute("bob")
            await api.execute("bob", boost_purchase_id=7, vehicle_id="raid_drone")

        assert seen[0]["body"] == {"target_login": "bob"}
        assert seen[1]["body"] == {"target_login": "bob", "boost_purchase_id": 7, "vehicle_id": "raid_drone"}
        assert seen[0]["auth"] == "Bearer tok"
        assert seen[0]["path"] == "/api/v1/raid/execute"

    @pytest.mark.asyncio
    async def test_error_carries_server_detail(self):
        transport, _ = _transport(preview_status=429)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
            with pytest.raises(RaidApiError) as exc_info:
                await RaidApiClient(http).preview("bob")
        assert exc_info.value.status_code == 429
        assert exc_info.value.message == "Already raided this target this week"
        assert exc_info.value.code == "weekly_cooldown_active"


class TestSessionFlow:
    @pytest.mark.asyncio
    async def test_preview_then_execute(self):
        transport, _ = _transport(success=True)
        session, _, audio, http = _session(transport)

        await session.start_preview("bob", BUILDINGS, "alice")
        assert session.phase == RaidPhase.PREVIEW
        assert session.preview_data.attack_score == 39
        assert session.defender_building.height == 42.0

        await session.execute_raid()
        assert session.phase == RaidPhase.INTRO
        assert session.raid_data.defender.position == (120.0, 0.0, -40.0)
        assert session.raid_data.attacker.height == 80.0
        assert audio.calls[:2] == [("preload", None), ("play", "takeoff")]
        await http.aclose()

    @pytest.mark.asyncio
    async def test_preview_error_stays_idle(self):
        transport, _ = _transport(preview_status=429)
        session, _, _, http = _session(transport)

        await session.start_preview("bob", BUILDINGS, "alice")

        assert session.phase == RaidPhase.IDLE
        assert session.error == "Already raided this target this week"
        assert session.loading is False
        await http.aclose()

    @pytest.mark.asyncio
    async def test_execute_error_stays_in_preview(self):
        transport, _ = _transport(execute_status=429)
        session, _, _, http = _session(transport)

        await _to_intro(session)

        assert session.phase == RaidPhase.PREVIEW
        assert session.error == "Daily raid limit reached"
        await http.aclose()

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        session, _, _, http = _session(httpx.MockTransport(handler))
        await session.start_preview("bob", BUILDINGS, "alice")

        assert session.error == "Network error"
        assert session.phase == RaidPhase.IDLE
        await http.aclose()

    @pytest.mark.asyncio
    async def test_second_execute_ignored_while_loading(self):
        release = asyncio.Event()
        calls = []

        class SlowApi:
            async def preview(self, target_login):
                return RaidPreviewResponse.model_validate(PREVIEW)

            async def execute(self, target_login, boost_purchase_id=None, vehicle_id=None):
                calls.append(target_login)
                await release.wait()
                return RaidExecuteResponse.model_validate(_execute_body(True))

        session = RaidSession(SlowApi(), FakeScheduler(), RecordingAudio())
        await session.start_preview("bob", BUILDINGS, "alice")

        first = asyncio.create_task(session.execute_raid())
        await asyncio.sleep(0)
        assert session.loading is True
        await session.execute_raid()
        release.set()
        await first

        assert calls == ["bob"]
        assert session.phase == RaidPhase.INTRO

    @pytest.mark.asyncio
    async def test_execute_from_idle_sends_nothing(self):
        transport, seen = _transport()
        session, _, _, http = _session(transport)

        await session.execute_raid()

        assert seen == []
        assert session.phase == RaidPhase.IDLE
        await http.aclose()

    @pytest.mark.asyncio
    async def test_execute_after_exit_sends_nothing(self):
        transport, seen = _transport()
        session, _, _, http = _session(transport)
        await session.start_preview("bob", BUILDINGS, "alice")

        session.exit_raid()
        await session.execute_raid()

        assert [call["path"] for call in seen] == ["/api/v1/raid/preview"]
        assert session.phase == RaidPhase.IDLE
        assert session.raid_data is None
        await http.aclose()

    @pytest.mark.asyncio
    async def test_exit_while_execute_in_flight_drops_result(self):
        release = asyncio.Event()

        class SlowApi:
            async def preview(self, target_login):
                return RaidPreviewResponse.model_validate(PREVIEW)

            async def execute(self, target_login, boost_purchase_id=None, vehicle_id=None):
                await release.wait()
                return RaidExecuteResponse.model_validate(_execute_body(True))

        session = RaidSession(SlowApi(), FakeScheduler(), RecordingAudio())
        await session.start_preview("bob", BUILDINGS, "alice")

        pending = asyncio.create_task(session.execute_raid())
        await asyncio.sleep(0)
        session.exit_raid()
        release.set()
        await pending

        assert session.phase == RaidPhase.IDLE
        assert session.raid_data is None
        assert session.loading is False

    @pytest.mark.asyncio
    async def test_preview_ignored_mid_sequence(self):
        transport, seen = _transport(success=True)
        session, scheduler, _, http = _session(transport)
        await _to_intro(session)
        scheduler.advance(4500)
        assert session.phase == RaidPhase.FLIGHT
        raid_data = session.raid_data
        preview_data = session.preview_data

        await session.start_preview("carol", BUILDINGS, "alice")

        assert session.phase == RaidPhase.FLIGHT
        assert session.raid_data is raid_data
        assert session.preview_data is preview_data
        assert session.defender_building.login == "bob"
        assert [call["path"] for call in seen] == ["/api/v1/raid/preview", "/api/v1/raid/execute"]
        await http.aclose()

    @pytest.mark.asyncio
    async def test_preview_can_switch_target_before_execute(self):
        transport, seen = _transport()
        session, _, _, http = _session(transport)
        await session.start_preview("bob", BUILDINGS, "alice")

        await session.start_preview("alice", BUILDINGS, "alice")
        await session.execute_raid()

        assert session.phase == RaidPhase.INTRO
        assert seen[-1]["body"] == {"target_login": "alice"}
        await http.aclose()


class TestEffects:
    @pytest.mark.asyncio
    async def test_intro_auto_advances_once(self):
        transport, _ = _transport(success=True)
        session, scheduler, audio, http = _session(transport)
        await _to_intro(session)

        scheduler.advance(4499)
        assert session.phase == RaidPhase.INTRO
        scheduler.advance(1)
        assert session.phase == RaidPhase.FLIGHT
        assert audio.played[-1] == "flight"

        # The animation's own completion signal arrives late
        session.on_phase_complete(RaidPhase.INTRO)
        assert session.phase == RaidPhase.FLIGHT
        await http.aclose()

    @pytest.mark.asyncio
    async def test_completion_before_timer_cancels_it(self):
        transport, _ = _transport(success=True)
        session, scheduler, _, http = _session(transport)
        await _to_intro(session)

        session.on_phase_complete(RaidPhase.INTRO)
        assert session.phase == RaidPhase.FLIGHT
        assert not session.effects.timer_pending

        scheduler.advance(10_000)
        assert session.phase == RaidPhase.FLIGHT
        await http.aclose()

    @pytest.mark.asyncio
    async def test_win_audio_and_outro_timer(self):
        transport, _ = _transport(success=True)
        session, scheduler, audio, http = _session(transport)
        await _to_intro(session)

        scheduler.advance(4500)
        session.on_phase_complete(RaidPhase.FLIGHT)
        assert ("stop", "flight") in audio.calls
        session.on_phase_complete(RaidPhase.ATTACK)
        assert session.phase == RaidPhase.OUTRO_WIN
        assert audio.played[-1] == "victory"

        scheduler.advance(3500)
        assert session.phase == RaidPhase.SHARE
        assert audio.calls[-1] == ("stop_all", None)
        await http.aclose()

    @pytest.mark.asyncio
    async def test_lose_audio_defeat_after_crash(self):
        transport, _ = _transport(success=False)
        session, scheduler, audio, http = _session(transport)
        await _to_intro(session)

        scheduler.advance(4500)
        session.on_phase_complete(RaidPhase.FLIGHT)
        session.on_phase_complete(RaidPhase.ATTACK)
        assert session.phase == RaidPhase.OUTRO_LOSE
        assert audio.played[-1] == "crash"

        scheduler.advance(500)
        assert audio.played[-1] == "defeat"

        scheduler.advance(2500)
        assert session.phase == RaidPhase.SHARE
        await http.aclose()

    @pytest.mark.asyncio
    async def test_hidden_tab_cancels_timer_without_reschedule(self):
        transport, _ = _transport(success=True)
        session, scheduler, _, http = _session(transport)
        await _to_intro(session)

        scheduler.advance(1000)
        session.set_document_hidden(True)
        assert not session.effects.timer_pending

        session.set_document_hidden(False)
        scheduler.advance(10_000)
        assert session.phase == RaidPhase.INTRO

        # Only an explicit completion moves it on
        session.on_phase_complete(RaidPhase.INTRO)
        assert session.phase == RaidPhase.FLIGHT
        await http.aclose()

    @pytest.mark.asyncio
    async def test_exit_clears_timers_and_audio(self):
        transport, _ = _transport(success=False)
        session, scheduler, audio, http = _session(transport)
        await _to_intro(session)

        session.exit_raid()

        assert session.phase == RaidPhase.IDLE
        assert session.preview_data is None
        assert session.raid_data is None
        assert not session.effects.timer_pending
        assert audio.calls[-1] == ("stop_all", None)

        scheduler.advance(10_000)
        assert session.phase == RaidPhase.IDLE
        await http.aclose()

    @pytest.mark.asyncio
    async def test_exit_during_outro_drops_delayed_defeat_cue(self):
        transport, _ = _transport(success=False)
        session, scheduler, audio, http = _session(transport)
        await _to_intro(session)
        scheduler.advance(4500)
        session.on_phase_complete(RaidPhase.FLIGHT)
        session.on_phase_complete(RaidPhase.ATTACK)

        session.exit_raid()
        scheduler.advance(1000)

        assert "defeat" not in audio.played
        await http.aclose()

    @pytest.mark.asyncio
    async def test_skip_to_share(self):
        transport, _ = _transport(success=True)
        session, scheduler, audio, http = _session(transport)
        await _to_intro(session)

        session.skip_to_share()

        assert session.phase == RaidPhase.SHARE
        assert not session.effects.timer_pending
        assert audio.calls[-1] == ("stop_all", None)
        scheduler.advance(10_000)
        assert session.phase == RaidPhase.SHARE
        await http.aclose()

    @pytest.mark.asyncio
    async def test_subscribers_see_every_change(self):
        transport, _ = _transport(success=True)
        session, scheduler, _, http = _session(transport)
        seen: list[tuple[str, str]] = []
        unsubscribe = session.subscribe(lambda old, new: seen.append((old.phase.value, new.phase.value)))

        await _to_intro(session)
        scheduler.advance(4500)
        unsubscribe()
        session.on_phase_complete(RaidPhase.FLIGHT)

        assert seen == [("idle", "preview"), ("preview", "intro"), ("intro", "flight")]
        await http.aclose()


class TestAsyncioScheduler:
    @pytest.mark.asyncio
    async def test_fires_on_running_loop(self):
        fired = asyncio.Event()
        AsyncioScheduler().call_later(10, fired.set)
        await asyncio.wait_for(fired.wait(), timeout=1)
        assert fired.is_set()

    @pytest.mark.asyncio
    async def test_cancel(self):
        fired = []
        handle = AsyncioScheduler().call_later(10, lambda: fired.append(True))
        handle.cancel()
        await asyncio.sleep(0.05)
        assert fired == []
