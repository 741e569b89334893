"""Tests for call snapshots and derived metrics."""
from datetime import datetime, timedelta

import pytest

from fieldops.domain.calls.models import (
    CallSession,
    CallStatus,
    ChecklistCoverageStatus,
    CoachingPrompt,
    PromptType,
    Speaker,
    TranscriptSegment,
)
from fieldops.domain.checklist.models import ChecklistItem
from fieldops.domain.coach.state import (
    build_call_state,
    check_consistency,
    format_duration,
    progress_percent,
    select_primary_prompt,
)
from fieldops.domain.common.errors import StaleSnapshotError


def _item(item_id, order, is_required=True, is_active=True):
    item = ChecklistItem.create(
        question=f"{item_id}?", keywords=[item_id], is_required=is_required, is_active=is_active, display_order=order
    )
    return item.model_copy(update={"id": item_id})


def _prompt(call, prompt_type, sequence, acknowledged=False):
    prompt = CoachingPrompt.create(call.id, prompt_type, f"{prompt_type.value} {sequence}", sequence)
    return prompt.model_copy(update={"was_acknowledged": acknowledged})


def test_format_duration():
    start = datetime(2026, 1, 1, 9, 0, 0)
    assert format_duration(None) == "0:00"
    assert format_duration(start, start + timedelta(seconds=5)) == "0:05"
    assert format_duration(start, start + timedelta(minutes=12, seconds=34, milliseconds=900)) == "12:34"
    assert format_duration(start, now=start + timedelta(seconds=61)) == "1:01"
    # Clock skew never shows a negative duration.
    assert format_duration(start, start - timedelta(seconds=3)) == "0:00"


def test_progress_percent_bounds():
    assert progress_percent(0, 0) == 0
    assert progress_percent(1, 4) == 25
    assert progress_percent(4, 4) == 100
    assert progress_percent(5, 4) == 100


def test_primary_prompt_is_oldest_of_highest_priority():
    call = CallSession.create(status=CallStatus.IN_PROGRESS)
    reminder_old = _prompt(call, PromptType.REMINDER, 1)
    alert_new = _prompt(call, PromptType.ALERT, 5)
    alert_old = _prompt(call, PromptType.ALERT, 3)
    acknowledged_alert = _prompt(call, PromptType.ALERT, 2, acknowledged=True)

    primary = select_primary_prompt([reminder_old, alert_new, alert_old, acknowledged_alert])

    assert primary.id == alert_old.id
    assert select_primary_prompt([acknowledged_alert]) is None


def test_how_tall_scenario_counts_required_coverage():
    # Scenario: two required items, only "how tall" has been asked about.
    call = CallSession.create(status=CallStatus.IN_PROGRESS)
    items = [_item("height", 0), _item("fence_type", 1), _item("colour", 2, is_required=False)]
    segments = [
        TranscriptSegment.create(call.id, Speaker.STAFF, "Hi, thanks for calling", 1),
        TranscriptSegment.create(call.id, Speaker.STAFF, "So how tall would you like it?", 2),
    ]
    statuses = [ChecklistCoverageStatus(call_id=call.id, checklist_item_id="height").mark_covered(2, "how tall")]

    state = build_call_state(call, segments, statuses, [], items, now=call.started_at + timedelta(seconds=75))

    assert state.required_covered_count == 1
    assert state.required_total == 2
    assert state.covered_count == 1
    assert state.total_items == 3
    assert state.progress_percent == pytest.approx(100 / 3)
    assert state.duration == "1:15"
    assert state.is_live
    assert state.last_sequence == 2


def test_empty_checklist_has_zero_progress():
    call = CallSession.create(status=CallStatus.IN_PROGRESS)
    state = build_call_state(call, [], [], [], [])
    assert state.progress_percent == 0
    assert state.total_items == 0
    assert state.primary_prompt is None


def test_inactive_items_are_not_counted():
    call = CallSession.create(status=CallStatus.COMPLETED)
    items = [_item("height", 0), _item("old", 1, is_active=False)]
    statuses = [ChecklistCoverageStatus(call_id=call.id, checklist_item_id="old").mark_covered(0)]

    state = build_call_state(call, [], statuses, [], items)

    assert state.total_items == 1
    assert state.covered_count == 0
    assert not state.is_live


def test_active_prompts_exclude_acknowledged():
    call = CallSession.create(status=CallStatus.IN_PROGRESS)
    segments = [TranscriptSegment.create(call.id, Speaker.CUSTOMER, "hi", 1)]
    prompts = [_prompt(call, PromptType.REMINDER, 1), _prompt(call, PromptType.ALERT, 1, acknowledged=True)]

    state = build_call_state(call, segments, [], prompts, [])

    assert state.active_prompt_count == 1
    assert state.primary_prompt.prompt_type == PromptType.REMINDER
    assert len(state.coaching_prompts) == 2


def test_coverage_beyond_transcript_is_stale():
    call = CallSession.create(status=CallStatus.IN_PROGRESS)
    segments = [TranscriptSegment.create(call.id, Speaker.CUSTOMER, "hi", 1)]
    statuses = [ChecklistCoverageStatus(call_id=call.id, checklist_item_id="height").mark_covered(2)]

    with pytest.raises(StaleSnapshotError):
        check_consistency(call, segments, statuses, [])


def test_prompt_or_watermark_beyond_transcript_is_stale():
    call = CallSession.create(status=CallStatus.IN_PROGRESS)
    segments = [TranscriptSegment.create(call.id, Speaker.CUSTOMER, "hi", 1)]

    with pytest.raises(StaleSnapshotError):
        check_consistency(call, segments, [], [_prompt(call, PromptType.REMINDER, 2)])

    ahead = call.model_copy(update={"last_evaluated_sequence": 3})
    with pytest.raises(StaleSnapshotError):
        check_consistency(ahead, segments, [], [])


def test_manual_coverage_before_any_transcript_is_consistent():
    call = CallSession.create(status=CallStatus.IN_PROGRESS)
    statuses = [ChecklistCoverageStatus(call_id=call.id, checklist_item_id="height").mark_covered(0, manual=True)]
    assert check_consistency(call, [], statuses, []) == 0
