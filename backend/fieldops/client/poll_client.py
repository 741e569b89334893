"""Polling client for the live call coach panel."""
import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

import httpx

from fieldops.domain.calls.models import TranscriptSegment, Speaker
from fieldops.domain.checklist.models import ChecklistItem, category_label
from fieldops.domain.coach.state import CallSessionState, check_consistency
from fieldops.domain.common.errors import StaleSnapshotError, TransientFetchError
from fieldops.settings import settings

logger = logging.getLogger(__name__)

SECTIONS = ("transcript", "checklist", "prompts")


class PanelPhase(str, enum.Enum):
    LOADING = "loading"
    SYNCED = "synced"
    UNMOUNTED = "unmounted"


@dataclass
class ChecklistRow:
    """One checklist line as the panel shows it."""
    item_id: str
    question: str
    category_label: str
    is_required: bool
    is_covered: bool
    tip: Optional[str] = None

    @property
    def needs_attention(self) -> bool:
        return self.is_required and not self.is_covered


@dataclass
class PanelView:
    """Everything needed to render the panel from the last synced snapshot."""
    title: str
    duration: str
    is_live: bool
    degraded: bool
    progress_percent: float
    progress_label: str
    required_label: str
    transcript: list[tuple[str, str]] = field(default_factory=list)
    empty_transcript_message: Optional[str] = None
    checklist: list[ChecklistRow] = field(default_factory=list)
    primary_prompt: Optional[str] = None
    primary_prompt_tip: Optional[str] = None
    more_prompts_label: Optional[str] = None
    expanded_sections: dict[str, bool] = field(default_factory=dict)


class CoachPanel:
    """
    Observes one call by polling its snapshot on a repeating timer.

    LOADING until the first snapshot arrives, then SYNCED; unmount() stops the timer
    and any request still in flight has its result discarded. A failed tick keeps
    the last known state; after enough consecutive failures the panel is degraded
    until a fetch succeeds again.
    """

    def __init__(
        self,
        call_id: str,
        base_url: str = "http://localhost:8000",
        client: Optional[httpx.AsyncClient] = None,
        poll_interval: Optional[float] = None,
        failure_threshold: Optional[int] = None,
        on_new_segments: Optional[Callable[[list[TranscriptSegment]], None]] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.call_id = call_id
        self.poll_interval = poll_interval if poll_interval is not None else settings.coach_poll_interval_seconds
        self.failure_threshold = failure_threshold or settings.coach_sustained_failure_ticks
        self.on_new_segments = on_new_segments
        self._api = settings.api_v1_prefix
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

        self.phase = PanelPhase.LOADING
        self.state: Optional[CallSessionState] = None
        self.checklist_items: list[ChecklistItem] = []
        self.expanded_sections: dict[str, bool] = {name: True for name in SECTIONS}
        self.consecutive_failures = 0
        self.last_seen_sequence = 0
        self._timer: Optional[asyncio.TimerHandle] = None
        self._tick_task: Optional[asyncio.Task] = None

    @property
    def degraded(self) -> bool:
        return self.consecutive_failures >= self.failure_threshold

    @property
    def unmounted(self) -> bool:
        return self.phase == PanelPhase.UNMOUNTED

    async def __aenter__(self) -> "CoachPanel":
        await self.mount()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.unmount()

    async def mount(self) -> None:
        """Load the checklist, fetch the first snapshot and start polling."""
        await self.refresh_checklist()
        await self.refresh()
        self._schedule()

    async def unmount(self) -> None:
        """Stop polling. A tick already running finishes first, and its result is dropped."""
        self.phase = PanelPhase.UNMOUNTED
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        tick = self._tick_task
        if tick is not None and not tick.done() and tick is not asyncio.current_task():
            await tick
        if self._owns_client:
            await self.client.aclose()

    def toggle_section(self, section: str) -> bool:
        if section not in self.expanded_sections:
            raise KeyError(section)
        self.expanded_sections[section] = not self.expanded_sections[section]
        return self.expanded_sections[section]

    async def refresh_checklist(self) -> list[ChecklistItem]:
        """Re-fetch the active checklist items; on failure the cached list is kept."""
        try:
            response = await self.client.get(f"{self._api}/checklist-items/active")
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Could not load checklist items: %s", e)
            return self.checklist_items
        if not self.unmounted:
            self.checklist_items = [ChecklistItem.model_validate(row) for row in response.json()]
        return self.checklist_items

    async def refresh(self) -> bool:
        """
        One poll tick. Returns True when a new snapshot was applied.
        Never raises for fetch problems; they count towards degradation instead.
        """
        if self.unmounted:
            return False
        try:
            state = await self._fetch_state()
            try:
                check_consistency(state.call, state.transcripts, state.checklist_status, state.coaching_prompts)
            except StaleSnapshotError as e:
                logger.info("Stale snapshot, fetching again: %s", e.message)
                state = await self._fetch_state()
                check_consistency(state.call, state.transcripts, state.checklist_status, state.coaching_prompts)
        except (httpx.HTTPError, ValueError, StaleSnapshotError) as e:
            if self.unmounted:
                return False
            self.consecutive_failures += 1
            logger.warning(
                "%s (%s consecutive failure(s)%s)",
                TransientFetchError(self.call_id, e),
                self.consecutive_failures,
                ", degraded" if self.degraded else "",
            )
            return False

        if self.unmounted:
            return False
        self._apply(state)
        return True

    async def acknowledge(self, prompt_id: str) -> None:
        """Acknowledge a prompt, then re-fetch so the panel reflects it at once."""
        response = await self.client.post(f"{self._api}/coaching-prompts/{prompt_id}/acknowledge")
        response.raise_for_status()
        await self.refresh()

    def view(self) -> Optional[PanelView]:
        """Render model for the last synced snapshot; None while loading."""
        state = self.state
        if state is None:
            return None

        items = self.checklist_items or state.checklist_items
        covered_ids = {s.checklist_item_id for s in state.checklist_status if s.is_covered}
        rows = [
            ChecklistRow(
                item_id=item.id,
                question=item.question,
                category_label=category_label(item.category),
                is_required=item.is_required,
                is_covered=item.id in covered_ids,
                tip=item.suggested_response if item.id not in covered_ids else None,
            )
            for item in items
        ]

        primary = state.primary_prompt
        tip = None
        if primary is not None and primary.related_checklist_item_id:
            related = next((i for i in items if i.id == primary.related_checklist_item_id), None)
            tip = related.suggested_response if related else None
        extra = state.active_prompt_count - 1

        transcript = [
            ("You" if s.speaker == Speaker.STAFF else "Customer", s.text) for s in state.transcripts
        ]
        empty_message = None
        if not transcript:
            empty_message = "Waiting for conversation..." if state.is_live else "No transcript available"

        return PanelView(
            title="Live Call Coach" if state.is_live else "Call Review",
            duration=state.duration,
            is_live=state.is_live,
            degraded=self.degraded,
            progress_percent=state.progress_percent,
            progress_label=f"{state.covered_count}/{state.total_items} topics covered",
            required_label=f"{state.required_covered_count}/{state.required_total} required",
            transcript=transcript,
            empty_transcript_message=empty_message,
            checklist=rows,
            primary_prompt=primary.message if primary else None,
            primary_prompt_tip=tip,
            more_prompts_label=f"+{extra} more suggestions" if extra > 0 else None,
            expanded_sections=dict(self.expanded_sections),
        )

    async def _fetch_state(self) -> CallSessionState:
        response = await self.client.get(f"{self._api}/calls/{self.call_id}")
        response.raise_for_status()
        return CallSessionState.model_validate(response.json())

    def _apply(self, state: CallSessionState) -> None:
        self.state = state
        self.phase = PanelPhase.SYNCED
        if self.consecutive_failures:
            logger.info("Call %s polling recovered after %s failure(s)", self.call_id, self.consecutive_failures)
        self.consecutive_failures = 0

        new_segments = [s for s in state.transcripts if s.sequence > self.last_seen_sequence]
        if new_segments:
            self.last_seen_sequence = new_segments[-1].sequence
            if self.on_new_segments is not None:
                try:
                    self.on_new_segments(new_segments)
                except Exception:
                    logger.exception("on_new_segments callback failed for call %s", self.call_id)

    def _schedule(self) -> None:
        if self.unmounted:
            return
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.poll_interval, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        if self.unmounted:
            return
        self._tick_task = asyncio.ensure_future(self._tick())

    async def _tick(self) -> None:
        try:
            await self.refresh()
        except Exception:
            logger.exception("Poll tick failed for call %s", self.call_id)
        finally:
            self._schedule()
