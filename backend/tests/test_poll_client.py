"""Tests for the coach panel poll client."""
import asyncio

import httpx
import pytest

from fieldops.client.poll_client import CoachPanel, PanelPhase
from fieldops.domain.calls.models import (
    CallSession,
    CallStatus,
    ChecklistCoverageStatus,
    CoachingPrompt,
    PromptType,
    Speaker,
    TranscriptSegment,
)
from fieldops.domain.checklist.models import ChecklistCategory, ChecklistItem
from fieldops.domain.coach.state import build_call_state


class FakeCoachApi:
    """Serves canned snapshots for one call; every request is recorded."""

    def __init__(self, call_status=CallStatus.IN_PROGRESS):
        self.call = CallSession.create(status=call_status)
        self.items = [
            ChecklistItem.create(
                question="How tall?", keywords=["how tall"], is_required=True,
                suggested_response="Usually 1.8m", display_order=0,
            ),
            ChecklistItem.create(
                question="Budget?", keywords=["budget"], category=ChecklistCategory.BUDGET, display_order=1,
            ),
        ]
        self.segments: list[TranscriptSegment] = []
        self.statuses: list[ChecklistCoverageStatus] = []
        self.prompts: list[CoachingPrompt] = []
        self.requests: list[httpx.Request] = []
        self.fail_snapshots = 0
        self.crash_snapshots = 0
        self.stale_snapshots = 0
        self.gate: asyncio.Event | None = None

    def say(self, speaker, text):
        segment = TranscriptSegment.create(self.call.id, speaker, text, len(self.segments) + 1)
        self.segments.append(segment)
        return segment

    def snapshot(self) -> dict:
        state = build_call_state(self.call, self.segments, self.statuses, self.prompts, self.items)
        return state.model_dump(mode="json")

    def snapshot_requests(self) -> int:
        return sum(1 for r in self.requests if r.url.path == f"/v1/calls/{self.call.id}")

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/v1/checklist-items/active":
            return httpx.Response(200, json=[i.model_dump(mode="json") for i in self.items])
        if path == f"/v1/calls/{self.call.id}":
            if self.gate is not None:
                await self.gate.wait()
            if self.crash_snapshots:
                self.crash_snapshots -= 1
                raise RuntimeError("handler blew up")
            if self.fail_snapshots:
                self.fail_snapshots -= 1
                raise httpx.ConnectError("connection refused", request=request)
            body = self.snapshot()
            if self.stale_snapshots:
                self.stale_snapshots -= 1
                body["checklist_status"].append(
                    ChecklistCoverageStatus(call_id=self.call.id, checklist_item_id=self.items[1].id)
                    .mark_covered(len(self.segments) + 5)
                    .model_dump(mode="json")
                )
            return httpx.Response(200, json=body)
        if path.startswith("/v1/coaching-prompts/") and path.endswith("/acknowledge"):
            prompt_id = path.split("/")[3]
            self.prompts = [
                p.model_copy(update={"was_acknowledged": True}) if p.id == prompt_id else p
                for p in self.prompts
            ]
            return httpx.Response(200, json={"id": prompt_id})
        return httpx.Response(404, json={"detail": "not found"})


@pytest.fixture
def api():
    return FakeCoachApi()


@pytest.fixture
async def http_client(api):
    async with httpx.AsyncClient(transport=httpx.MockTransport(api.handler), base_url="http://test") as client:
        yield client


def _panel(api, http_client, **kwargs):
    kwargs.setdefault("poll_interval", 60)
    kwargs.setdefault("failure_threshold", 3)
    return CoachPanel(api.call.id, client=http_client, **kwargs)


async def test_mount_loads_checklist_and_snapshot(api, http_client):
    api.say(Speaker.STAFF, "So how tall would you like it?")
    api.statuses.append(
        ChecklistCoverageStatus(call_id=api.call.id, checklist_item_id=api.items[0].id).mark_covered(1, "how tall")
    )
    api.prompts.append(
        CoachingPrompt.create(api.call.id, PromptType.SUGGESTION, "If there's time, ask: Budget?", 1,
                              related_checklist_item_id=api.items[1].id)
    )
    panel = _panel(api, http_client)
    assert panel.phase == PanelPhase.LOADING
    assert panel.view() is None

    async with panel:
        assert panel.phase == PanelPhase.SYNCED
        view = panel.view()

    assert panel.phase == PanelPhase.UNMOUNTED
    assert view.title == "Live Call Coach"
    assert view.progress_label == "1/2 topics covered"
    assert view.required_label == "1/1 required"
    assert view.progress_percent == 50
    assert view.transcript == [("You", "So how tall would you like it?")]
    assert view.primary_prompt == "If there's time, ask: Budget?"
    assert view.primary_prompt_tip is None
    assert view.more_prompts_label is None
    assert [(r.category_label, r.is_covered, r.tip) for r in view.checklist] == [
        ("Requirements", True, None),
        ("Budget", False, None),
    ]


async def test_new_segments_trigger_scroll_callback_once(api, http_client):
    seen = []
    panel = _panel(api, http_client, on_new_segments=lambda segments: seen.append([s.sequence for s in segments]))
    api.say(Speaker.CUSTOMER, "Hi, I need a fence")
    await panel.mount()

    await panel.refresh()
    api.say(Speaker.STAFF, "Sure, what kind?")
    api.say(Speaker.CUSTOMER, "Colorbond")
    await panel.refresh()
    await panel.unmount()

    assert seen == [[1], [2, 3]]
    assert panel.last_seen_sequence == 3


async def test_failed_ticks_keep_state_and_degrade(api, http_client):
    panel = _panel(api, http_client)
    api.say(Speaker.CUSTOMER, "Hello")
    await panel.mount()
    synced_state = panel.state

    api.fail_snapshots = 3
    assert await panel.refresh() is False
    assert await panel.refresh() is False
    assert not panel.degraded
    assert await panel.refresh() is False

    assert panel.degraded
    assert panel.view().degraded
    assert panel.state is synced_state
    assert panel.phase == PanelPhase.SYNCED

    assert await panel.refresh() is True
    assert panel.consecutive_failures == 0
    assert not panel.degraded
    await panel.unmount()


async def test_stale_snapshot_is_refetched_immediately(api, http_client):
    api.say(Speaker.CUSTOMER, "Hello")
    panel = _panel(api, http_client)
    api.stale_snapshots = 1

    await panel.mount()

    assert api.snapshot_requests() == 2
    assert panel.phase == PanelPhase.SYNCED
    assert panel.view().progress_label == "0/2 topics covered"
    await panel.unmount()


async def test_in_flight_result_is_discarded_after_unmount(api, http_client):
    panel = _panel(api, http_client)
    api.gate = asyncio.Event()

    pending = asyncio.ensure_future(panel.refresh())
    await asyncio.sleep(0)
    await panel.unmount()
    api.gate.set()

    assert await pending is False
    assert panel.state is None
    assert panel.phase == PanelPhase.UNMOUNTED


async def test_timer_polls_until_unmounted(api, http_client):
    panel = _panel(api, http_client, poll_interval=0.01)
    await panel.mount()
    await asyncio.sleep(0.1)
    assert api.snapshot_requests() > 2

    await panel.unmount()
    if panel._tick_task is not None:
        await panel._tick_task
    count = api.snapshot_requests()
    await asyncio.sleep(0.05)
    assert api.snapshot_requests() == count


async def test_acknowledge_refetches(api, http_client):
    api.say(Speaker.CUSTOMER, "Hello")
    prompt = CoachingPrompt.create(api.call.id, PromptType.REMINDER, "Don't forget to ask: How tall?", 1,
                                   related_checklist_item_id=api.items[0].id)
    api.prompts.append(prompt)
    panel = _panel(api, http_client)
    await panel.mount()
    assert panel.view().primary_prompt_tip == "Usually 1.8m"

    await panel.acknowledge(prompt.id)

    assert panel.state.active_prompt_count == 0
    assert panel.view().primary_prompt is None
    await panel.unmount()


async def test_section_toggles_are_per_panel(api, http_client):
    first = _panel(api, http_client)
    second = _panel(api, http_client)

    assert first.toggle_section("transcript") is False
    assert first.expanded_sections == {"transcript": False, "checklist": True, "prompts": True}
    assert second.expanded_sections["transcript"] is True
    with pytest.raises(KeyError):
        first.toggle_section("notes")


async def test_ended_call_view():
    api = FakeCoachApi(call_status=CallStatus.COMPLETED)
    async with httpx.AsyncClient(transport=httpx.MockTransport(api.handler), base_url="http://test") as client:
        async with _panel(api, client) as panel:
            view = panel.view()

    assert view.title == "Call Review"
    assert not view.is_live
    assert view.empty_transcript_message == "No transcript available"


async def test_unmount_waits_for_pending_tick_before_closing_own_client(api):
    api.say(Speaker.CUSTOMER, "Hello")
    panel = CoachPanel(
        api.call.id, base_url="http://test", transport=httpx.MockTransport(api.handler),
        poll_interval=0.01, failure_threshold=3,
    )
    await panel.mount()
    synced_state = panel.state
    api.gate = asyncio.Event()
    while panel._tick_task is None or panel._tick_task.done():
        await asyncio.sleep(0.005)

    unmounting = asyncio.ensure_future(panel.unmount())
    await asyncio.sleep(0.01)
    assert not unmounting.done()
    api.say(Speaker.STAFF, "Arrives too late")
    api.gate.set()
    await unmounting

    assert panel._tick_task.done()
    assert panel._tick_task.exception() is None
    assert panel.client.is_closed
    assert panel.state is synced_state
    assert panel.phase == PanelPhase.UNMOUNTED


async def test_unexpected_tick_error_keeps_polling(api, http_client):
    panel = _panel(api, http_client, poll_interval=0.01)
    await panel.mount()
    api.crash_snapshots = 1
    count = api.snapshot_requests()

    await asyncio.sleep(0.1)

    assert api.snapshot_requests() > count + 2
    assert panel.phase == PanelPhase.SYNCED
    await panel.unmount()
