"""Tests for rule-based coaching prompt generation."""
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
from fieldops.domain.coach.analyzers.prompt_generator import PromptGenerator, outstanding_item_ids

OBJECTIONS = {"budget": ["expensive", "too much"], "site_conditions": ["slope"]}


def _call(status=CallStatus.IN_PROGRESS):
    return CallSession.create(status=status)


def _item(item_id, order, is_required=True, category=ChecklistCategory.REQUIREMENTS):
    item = ChecklistItem.create(
        question=f"Ask about {item_id}?",
        keywords=[item_id],
        category=category,
        is_required=is_required,
        display_order=order,
    )
    return item.model_copy(update={"id": item_id})


def _segment(call, text, sequence, speaker=Speaker.CUSTOMER):
    return TranscriptSegment.create(call_id=call.id, speaker=speaker, text=text, sequence=sequence)


def _covered(call, *item_ids):
    return {
        i: ChecklistCoverageStatus(call_id=call.id, checklist_item_id=i).mark_covered(1)
        for i in item_ids
    }


def test_reminder_for_first_required_uncovered_item():
    call = _call()
    items = [_item("fence_type", 0), _item("height", 1), _item("colour", 2, is_required=False)]

    prompt = PromptGenerator(OBJECTIONS).generate(call, items, {}, [_segment(call, "hello", 1)], [])

    assert prompt.prompt_type == PromptType.REMINDER
    assert prompt.related_checklist_item_id == "fence_type"
    assert prompt.created_at_sequence == 1
    assert "Ask about fence_type?" in prompt.message


def test_alert_when_customer_raises_concern_in_matching_category():
    call = _call()
    items = [_item("fence_type", 0), _item("budget", 1, category=ChecklistCategory.BUDGET)]
    segments = [_segment(call, "Honestly that sounds expensive", 3)]

    prompt = PromptGenerator(OBJECTIONS).generate(call, items, {}, segments, [])

    assert prompt.prompt_type == PromptType.ALERT
    assert prompt.related_checklist_item_id == "budget"
    assert prompt.trigger_text == "Honestly that sounds expensive"
    assert prompt.message.startswith("Customer raised a budget concern")


def test_staff_speech_does_not_raise_alert():
    call = _call()
    items = [_item("fence_type", 0), _item("budget", 1, category=ChecklistCategory.BUDGET)]
    segments = [_segment(call, "It won't be too expensive", 1, speaker=Speaker.STAFF)]

    prompt = PromptGenerator(OBJECTIONS).generate(call, items, {}, segments, [])

    assert prompt.prompt_type == PromptType.REMINDER
    assert prompt.related_checklist_item_id == "fence_type"


def test_no_second_prompt_for_item_with_unacknowledged_prompt():
    # Scenario: an item with an open prompt is skipped; the next required item is reminded instead.
    call = _call()
    items = [_item("fence_type", 0), _item("height", 1)]
    generator = PromptGenerator(OBJECTIONS)
    first = generator.generate(call, items, {}, [_segment(call, "hi", 1)], [])

    second = generator.generate(call, items, {}, [_segment(call, "so", 2)], [first])
    assert second.related_checklist_item_id == "height"

    third = generator.generate(call, items, {}, [_segment(call, "ok", 3)], [first, second])
    assert third is None


def test_acknowledged_prompt_allows_new_prompt_for_item():
    call = _call()
    items = [_item("fence_type", 0)]
    generator = PromptGenerator(OBJECTIONS)
    first = generator.generate(call, items, {}, [_segment(call, "hi", 1)], [])
    acknowledged = first.model_copy(update={"was_acknowledged": True})

    again = generator.generate(call, items, {}, [_segment(call, "hmm", 2)], [acknowledged])

    assert again is not None
    assert again.related_checklist_item_id == "fence_type"


def test_suggestions_only_after_required_items_are_covered():
    call = _call()
    items = [_item("fence_type", 0), _item("colour", 1, is_required=False)]
    generator = PromptGenerator(OBJECTIONS)
    open_reminder = CoachingPrompt.create(
        call_id=call.id,
        prompt_type=PromptType.REMINDER,
        message="Don't forget to ask: Ask about fence_type?",
        created_at_sequence=1,
        related_checklist_item_id="fence_type",
    )

    # Required item uncovered but already prompted: no suggestion yet.
    assert generator.generate(call, items, {}, [_segment(call, "hi", 2)], [open_reminder]) is None

    prompt = generator.generate(
        call, items, _covered(call, "fence_type"), [_segment(call, "ok", 3)], [open_reminder]
    )
    assert prompt.prompt_type == PromptType.SUGGESTION
    assert prompt.related_checklist_item_id == "colour"


def test_no_prompts_once_call_has_ended():
    for status in (CallStatus.COMPLETED, CallStatus.MISSED, CallStatus.FAILED):
        call = _call(status)
        segments = [_segment(call, "too expensive", 1)]
        assert PromptGenerator(OBJECTIONS).generate(call, [_item("fence_type", 0)], {}, segments, []) is None


def test_nothing_to_prompt_when_everything_is_covered():
    call = _call()
    items = [_item("fence_type", 0), _item("colour", 1, is_required=False)]
    coverage = _covered(call, "fence_type", "colour")
    assert PromptGenerator(OBJECTIONS).generate(call, items, coverage, [_segment(call, "bye", 4)], []) is None


def test_unknown_objection_category_is_ignored():
    generator = PromptGenerator({"weather": ["rain"], "budget": ["expensive"]})
    assert set(generator.objection_keywords) == {ChecklistCategory.BUDGET}


def test_outstanding_item_ids():
    call = _call()
    open_prompt = CoachingPrompt.create(call.id, PromptType.REMINDER, "a", 1, related_checklist_item_id="x")
    done = CoachingPrompt.create(call.id, PromptType.REMINDER, "b", 1, related_checklist_item_id="y")
    done = done.model_copy(update={"was_acknowledged": True})
    unrelated = CoachingPrompt.create(call.id, PromptType.SUGGESTION, "c", 1)

    assert outstanding_item_ids([open_prompt, done, unrelated]) == {"x"}


def test_prompt_spacing_holds_back_reminders_but_not_alerts():
    call = _call()
    items = [
        _item("fence_type", 0),
        _item("height", 1),
        _item("budget", 2, category=ChecklistCategory.BUDGET),
    ]
    generator = PromptGenerator(OBJECTIONS, prompt_spacing=3)
    first = generator.generate(call, items, {}, [_segment(call, "hello", 1)], [])
    assert first.related_checklist_item_id == "fence_type"

    assert generator.generate(call, items, {}, [_segment(call, "right", 2)], [first]) is None
    assert generator.generate(call, items, {}, [_segment(call, "sure", 3)], [first]) is None

    alert = generator.generate(call, items, {}, [_segment(call, "that's too much", 3)], [first])
    assert alert.prompt_type == PromptType.ALERT
    assert alert.related_checklist_item_id == "budget"

    reminder = generator.generate(call, items, {}, [_segment(call, "okay", 4)], [first])
    assert reminder.prompt_type == PromptType.REMINDER
    assert reminder.related_checklist_item_id == "height"


def test_no_objection_keywords_means_no_alerts():
    call = _call()
    items = [_item("budget", 0, category=ChecklistCategory.BUDGET)]
    generator = PromptGenerator()

    prompt = generator.generate(call, items, {}, [_segment(call, "that's too expensive", 1)], [])

    assert generator.objection_keywords == {}
    assert prompt.prompt_type == PromptType.REMINDER
