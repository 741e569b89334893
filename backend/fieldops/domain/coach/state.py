"""Call session state snapshot and derived coaching metrics."""
import math
from datetime import datetime
from typing import Optional, Sequence

from pydantic import BaseModel

from fieldops.domain.calls.models import (
    CallSession,
    ChecklistCoverageStatus,
    CoachingPrompt,
    PromptType,
    TranscriptSegment,
)
from fieldops.domain.checklist.models import ChecklistItem
from fieldops.domain.common.errors import StaleSnapshotError
from fieldops.domain.common.types import utcnow

_PROMPT_RANK = {PromptType.ALERT: 0, PromptType.REMINDER: 1, PromptType.SUGGESTION: 2}


class CallSessionState(BaseModel):
    """Consistent read of one call: transcript, coverage, prompts and metrics."""

    call: CallSession
    transcripts: list[TranscriptSegment]
    checklist_items: list[ChecklistItem]
    checklist_status: list[ChecklistCoverageStatus]
    coaching_prompts: list[CoachingPrompt]
    covered_count: int
    total_items: int
    progress_percent: float
    required_covered_count: int
    required_total: int
    active_prompts: list[CoachingPrompt]
    active_prompt_count: int
    primary_prompt: Optional[CoachingPrompt] = None
    duration: str
    is_live: bool
    last_sequence: int


def format_duration(
    started_at: Optional[datetime],
    ended_at: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> str:
    """Elapsed call time as m:ss. No start time means 0:00."""
    if started_at is None:
        return "0:00"
    end = ended_at or now or utcnow()
    seconds = max(0, math.floor((end - started_at).total_seconds()))
    return f"{seconds // 60}:{seconds % 60:02d}"


def progress_percent(covered: int, total: int) -> float:
    """Share of covered items in percent, 0 when there is nothing to cover."""
    if total <= 0:
        return 0.0
    return max(0.0, min(100.0, covered / total * 100))


def select_primary_prompt(prompts: Sequence[CoachingPrompt]) -> Optional[CoachingPrompt]:
    """The single unacknowledged prompt to surface: oldest of the highest-priority type."""
    active = [p for p in prompts if not p.was_acknowledged]
    if not active:
        return None
    return min(active, key=lambda p: (_PROMPT_RANK.get(p.prompt_type, 99), p.created_at_sequence, p.created_at))


def check_consistency(
    call: CallSession,
    segments: Sequence[TranscriptSegment],
    statuses: Sequence[ChecklistCoverageStatus],
    prompts: Sequence[CoachingPrompt],
) -> int:
    """
    Verify coverage and prompts describe a prefix of the given transcript.
    Returns the last transcript sequence; raises StaleSnapshotError otherwise.
    """
    last_sequence = 0
    for segment in segments:
        if segment.sequence <= last_sequence:
            raise StaleSnapshotError(call.id, f"transcript out of order at sequence {segment.sequence}")
        last_sequence = segment.sequence

    if call.last_evaluated_sequence > last_sequence:
        raise StaleSnapshotError(
            call.id, f"evaluated through {call.last_evaluated_sequence} but transcript ends at {last_sequence}"
        )
    for status in statuses:
        if status.is_covered and (status.covered_at_sequence or 0) > last_sequence:
            raise StaleSnapshotError(
                call.id, f"item {status.checklist_item_id} covered at {status.covered_at_sequence} beyond transcript"
            )
    for prompt in prompts:
        if prompt.created_at_sequence > last_sequence:
            raise StaleSnapshotError(call.id, f"prompt {prompt.id} created beyond transcript")
    return last_sequence


def build_call_state(
    call: CallSession,
    segments: Sequence[TranscriptSegment],
    statuses: Sequence[ChecklistCoverageStatus],
    prompts: Sequence[CoachingPrompt],
    items: Sequence[ChecklistItem],
    now: Optional[datetime] = None,
) -> CallSessionState:
    """Assemble a snapshot. Metrics only count active checklist items."""
    ordered_segments = sorted(segments, key=lambda s: s.sequence)
    last_sequence = check_consistency(call, ordered_segments, statuses, prompts)

    active_items = sorted((i for i in items if i.is_active), key=lambda i: i.display_order)
    covered_ids = {s.checklist_item_id for s in statuses if s.is_covered}
    required_items = [i for i in active_items if i.is_required]

    covered_count = sum(1 for i in active_items if i.id in covered_ids)
    required_covered = sum(1 for i in required_items if i.id in covered_ids)
    active_prompts = [p for p in prompts if not p.was_acknowledged]

    return CallSessionState(
        call=call,
        transcripts=ordered_segments,
        checklist_items=active_items,
        checklist_status=list(statuses),
        coaching_prompts=list(prompts),
        covered_count=covered_count,
        total_items=len(active_items),
        progress_percent=progress_percent(covered_count, len(active_items)),
        required_covered_count=required_covered,
        required_total=len(required_items),
        active_prompts=active_prompts,
        active_prompt_count=len(active_prompts),
        primary_prompt=select_primary_prompt(prompts),
        duration=format_duration(call.started_at, call.ended_at, now),
        is_live=call.is_live,
        last_sequence=last_sequence,
    )
