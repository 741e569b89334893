"""Checklist coverage matching over a call transcript."""
import enum
import logging
import re
from typing import Collection, Iterable, Mapping, Optional, Sequence

from fieldops.domain.calls.models import ChecklistCoverageStatus, TranscriptSegment
from fieldops.domain.checklist.models import ChecklistItem
from fieldops.domain.common.errors import MatchEvaluationError

logger = logging.getLogger(__name__)


class MatchMode(str, enum.Enum):
    """Keyword matching policy."""
    TOKEN = "token"  # whole word / phrase, bounded by non-word characters
    SUBSTRING = "substring"


def compile_keyword(keyword: str, mode: MatchMode = MatchMode.TOKEN) -> re.Pattern:
    """
    Compile a keyword into a case-insensitive pattern.
    Words of a phrase are joined by \\s+ so "too  much" and "too much" both match "too much".
    """
    words = keyword.lower().split()
    if not words:
        raise ValueError("empty keyword")
    body = r"\s+".join(re.escape(word) for word in words)
    if mode == MatchMode.TOKEN:
        body = rf"(?<!\w){body}(?!\w)"
    return re.compile(body, re.IGNORECASE)


class KeywordMatcher:
    """Matches keyword sets against text with one consistent policy. Patterns are cached."""

    def __init__(self, mode: MatchMode = MatchMode.TOKEN):
        self.mode = MatchMode(mode)
        self._patterns: dict[str, re.Pattern] = {}

    def _pattern(self, keyword: str) -> re.Pattern:
        pattern = self._patterns.get(keyword)
        if pattern is None:
            pattern = compile_keyword(keyword, self.mode)
            self._patterns[keyword] = pattern
        return pattern

    def find(self, text: str, keywords: Iterable[str]) -> Optional[str]:
        """Return the first keyword found in text, or None."""
        if not text:
            return None
        for keyword in keywords:
            if self._pattern(keyword).search(text):
                return keyword
        return None

    def matches(self, text: str, keywords: Iterable[str]) -> bool:
        return self.find(text, keywords) is not None


class CoverageMatcher:
    """
    Decides which checklist items a call has covered.

    evaluate() only looks at segments above after_sequence and never touches items
    that are already covered, so feeding it the new tail of the transcript gives the
    same result as re-scanning the whole transcript. Items listed in rescan_item_ids
    (new or edited since the last evaluation) are checked against every segment
    given instead. Coverage never reverts.
    """

    def __init__(self, keyword_matcher: Optional[KeywordMatcher] = None):
        self.keyword_matcher = keyword_matcher or KeywordMatcher()

    def evaluate(
        self,
        segments: Sequence[TranscriptSegment],
        items: Iterable[ChecklistItem],
        prior: Mapping[str, ChecklistCoverageStatus],
        after_sequence: int = 0,
        rescan_item_ids: Collection[str] = frozenset(),
    ) -> dict[str, ChecklistCoverageStatus]:
        """Return the updated item id -> status mapping. prior is not modified."""
        updated = dict(prior)
        ordered = sorted(segments, key=lambda s: s.sequence)
        pending = [s for s in ordered if s.sequence > after_sequence]
        if not pending and not rescan_item_ids:
            return updated

        for item in items:
            if not item.is_active or not item.keywords:
                continue
            status = updated.get(item.id)
            if status is not None and status.is_covered:
                continue
            candidates = ordered if item.id in rescan_item_ids else pending
            if not candidates:
                continue
            try:
                hit = self._first_match(item, candidates)
            except Exception as e:
                logger.warning("%s", MatchEvaluationError(item.id, e))
                continue
            if hit is None:
                continue

            base = status or ChecklistCoverageStatus(call_id=hit.call_id, checklist_item_id=item.id)
            updated[item.id] = base.mark_covered(
                hit.sequence, detected_text=hit.text, covered_at=hit.timestamp
            )
            logger.debug("Checklist item %s covered at sequence %s", item.id, hit.sequence)
        return updated

    def _first_match(
        self, item: ChecklistItem, segments: Sequence[TranscriptSegment]
    ) -> Optional[TranscriptSegment]:
        for segment in segments:
            if self.keyword_matcher.matches(segment.text, item.keywords):
                return segment
        return None


def newly_covered(
    prior: Mapping[str, ChecklistCoverageStatus],
    updated: Mapping[str, ChecklistCoverageStatus],
) -> list[ChecklistCoverageStatus]:
    """Statuses covered in updated but not in prior."""
    result = []
    for item_id, status in updated.items():
        before = prior.get(item_id)
        if status.is_covered and not (before and before.is_covered):
            result.append(status)
    return result


def detect_keywords_in_text(
    text: str,
    items: Iterable[ChecklistItem],
    keyword_matcher: Optional[KeywordMatcher] = None,
) -> list[ChecklistItem]:
    """Active items whose keywords appear in text."""
    matcher = keyword_matcher or KeywordMatcher()
    return [
        item for item in items
        if item.is_active and item.keywords and matcher.matches(text, item.keywords)
    ]
