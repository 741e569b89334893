"""Rule-based coaching prompt generation."""
import logging
from typing import Mapping, Optional, Sequence

from fieldops.domain.calls.models import (
    CallSession,
    ChecklistCoverageStatus,
    CoachingPrompt,
    PromptType,
    Speaker,
    TranscriptSegment,
)
from fieldops.domain.checklist.models import ChecklistCategory, ChecklistItem, category_label
from fieldops.domain.coach.analyzers.coverage_matcher import KeywordMatcher

logger = logging.getLogger(__name__)


def outstanding_item_ids(prompts: Sequence[CoachingPrompt]) -> set[str]:
    """Checklist items that already have an unacknowledged prompt."""
    return {
        p.related_checklist_item_id
        for p in prompts
        if not p.was_acknowledged and p.related_checklist_item_id
    }


class PromptGenerator:
    """
    Produces at most one new coaching prompt per evaluation.

    Priority:
    - ALERT: a required, uncovered item in a category the customer just raised a concern about
    - REMINDER: the first required, uncovered item by display order
    - SUGGESTION: the first optional, uncovered item, only once every required item is covered

    An item with an unacknowledged prompt is never prompted again until that prompt is
    acknowledged. Reminders and suggestions also wait until prompt_spacing sequences
    have passed since the latest prompt; alerts never wait. Calls that are no longer
    ringing or in progress get no prompts.
    """

    def __init__(
        self,
        objection_keywords: Optional[Mapping[str, Sequence[str]]] = None,
        keyword_matcher: Optional[KeywordMatcher] = None,
        prompt_spacing: int = 1,
    ):
        self.keyword_matcher = keyword_matcher or KeywordMatcher()
        self.objection_keywords: dict[ChecklistCategory, list[str]] = {}
        self.prompt_spacing = max(1, prompt_spacing)
        for category, keywords in (objection_keywords or {}).items():
            try:
                self.objection_keywords[ChecklistCategory(category)] = [k.lower() for k in keywords if k.strip()]
            except ValueError:
                logger.warning("Ignoring objection keywords for unknown category %r", category)

    def generate(
        self,
        call: CallSession,
        items: Sequence[ChecklistItem],
        coverage: Mapping[str, ChecklistCoverageStatus],
        new_segments: Sequence[TranscriptSegment],
        existing_prompts: Sequence[CoachingPrompt],
    ) -> Optional[CoachingPrompt]:
        if not call.is_live or not new_segments:
            return None

        sequence = max(s.sequence for s in new_segments)
        outstanding = outstanding_item_ids(existing_prompts)
        uncovered = [
            item for item in sorted(items, key=lambda i: i.display_order)
            if item.is_active and not _is_covered(coverage, item.id)
        ]
        required_gaps = [item for item in uncovered if item.is_required]
        required_candidates = [item for item in required_gaps if item.id not in outstanding]

        concern = self.detect_concern(new_segments)
        if concern is not None:
            category, segment = concern
            for item in required_candidates:
                if item.category == category:
                    return CoachingPrompt.create(
                        call_id=call.id,
                        prompt_type=PromptType.ALERT,
                        message=(
                            f"Customer raised a {category_label(category).lower()} concern. "
                            f"Address it now: {item.question}"
                        ),
                        created_at_sequence=sequence,
                        related_checklist_item_id=item.id,
                        trigger_text=segment.text,
                    )

        last_prompted = max((p.created_at_sequence for p in existing_prompts), default=0)
        if sequence - last_prompted < self.prompt_spacing:
            return None

        if required_candidates:
            item = required_candidates[0]
            return CoachingPrompt.create(
                call_id=call.id,
                prompt_type=PromptType.REMINDER,
                message=f"Don't forget to ask: {item.question}",
                created_at_sequence=sequence,
                related_checklist_item_id=item.id,
            )

        if required_gaps:
            return None

        for item in uncovered:
            if item.id not in outstanding:
                return CoachingPrompt.create(
                    call_id=call.id,
                    prompt_type=PromptType.SUGGESTION,
                    message=f"If there's time, ask: {item.question}",
                    created_at_sequence=sequence,
                    related_checklist_item_id=item.id,
                )
        return None

    def detect_concern(
        self, segments: Sequence[TranscriptSegment]
    ) -> Optional[tuple[ChecklistCategory, TranscriptSegment]]:
        """Newest customer segment carrying an objection signal, with its category."""
        for segment in sorted(segments, key=lambda s: s.sequence, reverse=True):
            if segment.speaker != Speaker.CUSTOMER:
                continue
            for category, keywords in self.objection_keywords.items():
                if keywords and self.keyword_matcher.matches(segment.text, keywords):
                    return category, segment
        return None


def _is_covered(coverage: Mapping[str, ChecklistCoverageStatus], item_id: str) -> bool:
    status = coverage.get(item_id)
    return bool(status and status.is_covered)
