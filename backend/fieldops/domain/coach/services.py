"""Live call coaching services."""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from fieldops.domain.calls.models import (
    CallSession,
    ChecklistCoverageStatus,
    CoachingPrompt,
    Speaker,
    TranscriptSegment,
)
from fieldops.domain.calls.services import (
    CallRepository,
    CoverageRepository,
    PromptRepository,
    TranscriptRepository,
)
from fieldops.domain.checklist.models import ChecklistItem
from fieldops.domain.checklist.services import ChecklistRepository
from fieldops.domain.coach.analyzers.coverage_matcher import (
    CoverageMatcher,
    detect_keywords_in_text,
    newly_covered,
)
from fieldops.domain.coach.analyzers.prompt_generator import PromptGenerator
from fieldops.domain.coach.locks import CallLockRegistry, call_locks
from fieldops.domain.coach.state import CallSessionState, build_call_state
from fieldops.domain.common.errors import (
    ConflictError,
    NotFoundError,
    StaleSnapshotError,
    ValidationError,
)
from fieldops.domain.common.types import utcnow

logger = logging.getLogger(__name__)

Publisher = Callable[[dict[str, Any]], Awaitable[None]]


@dataclass
class EvaluationResult:
    """Outcome of one evaluation cycle for a call."""
    call_id: str
    evaluated_through: int
    newly_covered_item_ids: list[str] = field(default_factory=list)
    prompt: Optional[CoachingPrompt] = None

    @property
    def changed(self) -> bool:
        return bool(self.newly_covered_item_ids) or self.prompt is not None


class CoachingEngine:
    """
    Incremental coverage evaluation and prompting for live calls.

    Appends and evaluations for one call run under that call's lock, so each
    transcript segment is scanned exactly once, in sequence order.
    """

    def __init__(
        self,
        call_repo: CallRepository,
        transcript_repo: TranscriptRepository,
        coverage_repo: CoverageRepository,
        prompt_repo: PromptRepository,
        checklist_repo: ChecklistRepository,
        matcher: Optional[CoverageMatcher] = None,
        generator: Optional[PromptGenerator] = None,
        locks: Optional[CallLockRegistry] = None,
        publisher: Optional[Publisher] = None,
        snapshot_retries: int = 3,
    ):
        self.call_repo = call_repo
        self.transcript_repo = transcript_repo
        self.coverage_repo = coverage_repo
        self.prompt_repo = prompt_repo
        self.checklist_repo = checklist_repo
        self.matcher = matcher or CoverageMatcher()
        self.generator = generator or PromptGenerator(
            keyword_matcher=self.matcher.keyword_matcher
        )
        self.locks = locks if locks is not None else call_locks
        self.publisher = publisher
        self.snapshot_retries = max(1, snapshot_retries)

    async def _get_call(self, call_id: str) -> CallSession:
        call = await self.call_repo.get_by_id(call_id)
        if not call:
            raise NotFoundError("CallSession", call_id)
        return call

    async def append_segment(
        self,
        call_id: str,
        speaker: Speaker,
        text: str,
        sequence: Optional[int] = None,
        confidence: Optional[float] = None,
    ) -> TranscriptSegment:
        """
        Append a transcript segment. Without an explicit sequence the next one is
        allocated; an explicit sequence must be greater than the last stored one.
        """
        text = (text or "").strip()
        if not text:
            raise ValidationError("Transcript text must not be empty")

        async with self.locks.hold(call_id):
            call = await self._get_call(call_id)
            if call.is_terminal:
                raise ConflictError(f"Call {call_id} is {call.status.value}; transcript is closed")
            last = await self.transcript_repo.last_sequence(call_id)
            if sequence is None:
                sequence = last + 1
            elif sequence <= last:
                raise ConflictError(f"Sequence {sequence} must be greater than {last}")
            segment = TranscriptSegment.create(
                call_id=call_id,
                speaker=speaker,
                text=text,
                sequence=sequence,
                confidence=confidence,
            )
            return await self.transcript_repo.append(segment)

    async def ingest_segment(
        self,
        call_id: str,
        speaker: Speaker,
        text: str,
        sequence: Optional[int] = None,
        confidence: Optional[float] = None,
    ) -> tuple[TranscriptSegment, Optional[EvaluationResult]]:
        """Append a segment and run the evaluation it triggers."""
        segment = await self.append_segment(call_id, speaker, text, sequence, confidence)
        try:
            result = await self.evaluate(call_id)
        except Exception:
            # The watermark did not move, so the next evaluation picks these segments up.
            logger.exception("Evaluation failed for call %s after sequence %s", call_id, segment.sequence)
            result = None
        return segment, result

    async def evaluate(self, call_id: str) -> EvaluationResult:
        """
        Evaluate every segment above the call's watermark, then advance it.

        Checklist items created or edited since the previous evaluation have never been
        checked against the earlier transcript, so they are scanned from the start.
        """
        async with self.locks.hold(call_id):
            call = await self._get_call(call_id)
            started_at = utcnow()
            watermark = call.last_evaluated_sequence
            items = await self.checklist_repo.list_active()
            rescan = _changed_since(items, call.last_evaluated_at)
            new_segments = await self.transcript_repo.list_after(call_id, watermark)
            if not new_segments and not rescan:
                return EvaluationResult(call_id=call_id, evaluated_through=watermark)

            segments = await self.transcript_repo.list_by_call(call_id) if rescan else new_segments
            prior = {s.checklist_item_id: s for s in await self.coverage_repo.list_by_call(call_id)}
            updated = self.matcher.evaluate(
                segments, items, prior, after_sequence=watermark, rescan_item_ids=rescan
            )

            covered = newly_covered(prior, updated)
            for status in covered:
                await self.coverage_repo.save_covered(status)

            prompt = None
            if new_segments:
                prompts = await self.prompt_repo.list_by_call(call_id)
                prompt = self.generator.generate(call, items, updated, new_segments, prompts)
            if prompt is not None:
                prompt = await self.prompt_repo.create(prompt)
                logger.info(
                    "Coaching prompt for call %s: %s (%s)",
                    call_id, prompt.prompt_type.value, prompt.related_checklist_item_id,
                )

            evaluated_through = new_segments[-1].sequence if new_segments else watermark
            await self.call_repo.set_last_evaluated(call_id, evaluated_through, started_at)

        result = EvaluationResult(
            call_id=call_id,
            evaluated_through=evaluated_through,
            newly_covered_item_ids=[s.checklist_item_id for s in covered],
            prompt=prompt,
        )
        if result.changed:
            await self._publish({
                "type": "call_state_changed",
                "call_id": call_id,
                "sequence": evaluated_through,
                "covered": result.newly_covered_item_ids,
                "prompt_id": prompt.id if prompt else None,
            })
        return result

    async def finalize_call(self, call_id: str) -> EvaluationResult:
        """Final coverage pass once a call has ended. Prompts are not generated for ended calls."""
        return await self.evaluate(call_id)

    async def mark_item_covered(self, call_id: str, item_id: str) -> ChecklistCoverageStatus:
        """Manual override: cover an item at the current end of the transcript."""
        item = await self.checklist_repo.get_by_id(item_id)
        if not item:
            raise NotFoundError("ChecklistItem", item_id)
        if not item.is_active:
            raise ValidationError(f"Checklist item {item_id} is inactive and cannot be covered")

        async with self.locks.hold(call_id):
            call = await self._get_call(call_id)
            if call.is_terminal:
                raise ConflictError(f"Call {call_id} is {call.status.value}; coverage is closed")
            existing = {s.checklist_item_id: s for s in await self.coverage_repo.list_by_call(call_id)}
            status = existing.get(item_id)
            if status is not None and status.is_covered:
                return status
            last = await self.transcript_repo.last_sequence(call_id)
            base = status or ChecklistCoverageStatus(call_id=call_id, checklist_item_id=item_id)
            saved = await self.coverage_repo.save_covered(base.mark_covered(last, manual=True))

        logger.info("Checklist item %s manually covered on call %s", item_id, call_id)
        await self._publish({"type": "call_state_changed", "call_id": call_id, "covered": [item_id]})
        return saved

    async def acknowledge_prompt(self, prompt_id: str) -> CoachingPrompt:
        """Acknowledge a prompt. Acknowledgment is permanent and idempotent."""
        prompt = await self.prompt_repo.get_by_id(prompt_id)
        if not prompt:
            raise NotFoundError("CoachingPrompt", prompt_id)
        if prompt.was_acknowledged:
            return prompt
        acknowledged = await self.prompt_repo.acknowledge(prompt_id)
        await self._publish({
            "type": "prompt_acknowledged",
            "call_id": acknowledged.call_id,
            "prompt_id": prompt_id,
        })
        return acknowledged

    async def get_call_state(self, call_id: str, now: Optional[datetime] = None) -> CallSessionState:
        """
        Read a consistent snapshot. Coverage and prompts are read before the transcript,
        which only grows, so they always describe a prefix of it; a snapshot that fails
        the check anyway is discarded and read again.
        """
        last_error: Optional[StaleSnapshotError] = None
        for attempt in range(1, self.snapshot_retries + 1):
            call = await self._get_call(call_id)
            statuses = await self.coverage_repo.list_by_call(call_id)
            prompts = await self.prompt_repo.list_by_call(call_id)
            segments = await self.transcript_repo.list_by_call(call_id)
            items = await self.checklist_repo.list_active()
            try:
                return build_call_state(call, segments, statuses, prompts, items, now=now)
            except StaleSnapshotError as e:
                logger.warning("Discarding stale snapshot (attempt %s/%s): %s", attempt, self.snapshot_retries, e)
                last_error = e
        raise last_error

    async def suggest_response(self, call_id: str, question: str) -> Optional[ChecklistItem]:
        """The first active item relevant to the customer's question that has a suggested response."""
        await self._get_call(call_id)
        items = await self.checklist_repo.list_active()
        relevant = detect_keywords_in_text(question, items, self.matcher.keyword_matcher)
        for item in relevant:
            if item.suggested_response:
                return item
        return None

    async def _publish(self, message: dict[str, Any]) -> None:
        if self.publisher is None:
            return
        try:
            await self.publisher(message)
        except Exception as e:
            logger.warning("Could not publish coaching update for call %s: %s", message.get("call_id"), e)


def _changed_since(items: list[ChecklistItem], evaluated_at: Optional[datetime]) -> set[str]:
    """Items created or edited at or after the previous evaluation started."""
    if evaluated_at is None:
        # Nothing evaluated yet, so the watermark is still at the start of the transcript.
        return set()
    return {item.id for item in items if item.updated_at >= evaluated_at}
