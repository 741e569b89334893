"""Call session, transcript, coverage and prompt repository implementations."""
from datetime import datetime
from typing import Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fieldops.domain.calls.models import (
    LIVE_STATUSES,
    CallSession,
    CallStatus,
    ChecklistCoverageStatus,
    CoachingPrompt,
    TranscriptSegment,
)
from fieldops.domain.calls.services import (
    CallRepository,
    CoverageRepository,
    PromptRepository,
    TranscriptRepository,
)
from fieldops.domain.common.errors import NotFoundError
from fieldops.domain.common.types import utcnow
from fieldops.infra.db.models.call import (
    CallSessionModel,
    ChecklistCoverageModel,
    CoachingPromptModel,
    TranscriptSegmentModel,
)


class CallRepositoryImpl(CallRepository):
    """Call session repository implementation."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, call: CallSession) -> CallSession:
        model = CallSessionModel.from_entity(call)
        self.session.add(model)
        await self.session.commit()
        await self.session.refresh(model)
        return model.to_entity()

    async def get_by_id(self, call_id: str) -> Optional[CallSession]:
        result = await self.session.execute(
            select(CallSessionModel)
            .where(CallSessionModel.id == call_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return model.to_entity() if model else None

    async def list_live(self, limit: int = 50) -> list[CallSession]:
        result = await self.session.execute(
            select(CallSessionModel)
            .where(CallSessionModel.status.in_(list(LIVE_STATUSES)))
            .order_by(CallSessionModel.created_at.desc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return [m.to_entity() for m in result.scalars().all()]

    async def update_status(self, call_id: str, status: CallStatus, ended_at=None) -> CallSession:
        values = {"status": status, "updated_at": utcnow()}
        if ended_at is not None:
            values["ended_at"] = ended_at
        await self.session.execute(
            update(CallSessionModel)
            .where(CallSessionModel.id == call_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        call = await self.get_by_id(call_id)
        if call is None:
            raise NotFoundError("CallSession", call_id)
        return call

    async def set_last_evaluated(self, call_id: str, sequence: int, evaluated_at: datetime) -> None:
        watermark = CallSessionModel.last_evaluated_sequence
        await self.session.execute(
            update(CallSessionModel)
            .where(CallSessionModel.id == call_id)
            .values(
                last_evaluated_sequence=case((watermark < sequence, sequence), else_=watermark),
                last_evaluated_at=evaluated_at,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()


class TranscriptRepositoryImpl(TranscriptRepository):
    """Append-only transcript repository implementation."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(self, segment: TranscriptSegment) -> TranscriptSegment:
        model = TranscriptSegmentModel.from_entity(segment)
        self.session.add(model)
        await self.session.commit()
        await self.session.refresh(model)
        return model.to_entity()

    async def list_by_call(self, call_id: str) -> list[TranscriptSegment]:
        result = await self.session.execute(
            select(TranscriptSegmentModel)
            .where(TranscriptSegmentModel.call_id == call_id)
            .order_by(TranscriptSegmentModel.sequence)
        )
        return [m.to_entity() for m in result.scalars().all()]

    async def list_after(self, call_id: str, sequence: int) -> list[TranscriptSegment]:
        result = await self.session.execute(
            select(TranscriptSegmentModel)
            .where(
                TranscriptSegmentModel.call_id == call_id,
                TranscriptSegmentModel.sequence > sequence,
            )
            .order_by(TranscriptSegmentModel.sequence)
        )
        return [m.to_entity() for m in result.scalars().all()]

    async def last_sequence(self, call_id: str) -> int:
        result = await self.session.execute(
            select(func.max(TranscriptSegmentModel.sequence)).where(
                TranscriptSegmentModel.call_id == call_id
            )
        )
        return result.scalar() or 0


class CoverageRepositoryImpl(CoverageRepository):
    """Coverage status repository implementation."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_by_call(self, call_id: str) -> list[ChecklistCoverageStatus]:
        result = await self.session.execute(
            select(ChecklistCoverageModel)
            .where(ChecklistCoverageModel.call_id == call_id)
            .execution_options(populate_existing=True)
        )
        return [m.to_entity() for m in result.scalars().all()]

    async def save_covered(self, status: ChecklistCoverageStatus) -> ChecklistCoverageStatus:
        """Insert the row on first coverage; an already covered row keeps its original values."""
        model = await self.session.get(
            ChecklistCoverageModel, (status.call_id, status.checklist_item_id)
        )
        if model is None:
            model = ChecklistCoverageModel(
                call_id=status.call_id,
                checklist_item_id=status.checklist_item_id,
            )
            self.session.add(model)
        if not model.is_covered and status.is_covered:
            model.is_covered = True
            model.covered_at_sequence = status.covered_at_sequence
            model.detected_text = status.detected_text
            model.covered_at = status.covered_at
            model.manually_covered = status.manually_covered
        await self.session.commit()
        await self.session.refresh(model)
        return model.to_entity()


class PromptRepositoryImpl(PromptRepository):
    """Coaching prompt repository implementation."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, prompt: CoachingPrompt) -> CoachingPrompt:
        model = CoachingPromptModel.from_entity(prompt)
        self.session.add(model)
        await self.session.commit()
        await self.session.refresh(model)
        return model.to_entity()

    async def get_by_id(self, prompt_id: str) -> Optional[CoachingPrompt]:
        model = await self.session.get(CoachingPromptModel, prompt_id, populate_existing=True)
        return model.to_entity() if model else None

    async def list_by_call(self, call_id: str) -> list[CoachingPrompt]:
        result = await self.session.execute(
            select(CoachingPromptModel)
            .where(CoachingPromptModel.call_id == call_id)
            .order_by(CoachingPromptModel.created_at_sequence, CoachingPromptModel.created_at)
            .execution_options(populate_existing=True)
        )
        return [m.to_entity() for m in result.scalars().all()]

    async def acknowledge(self, prompt_id: str) -> CoachingPrompt:
        await self.session.execute(
            update(CoachingPromptModel)
            .where(CoachingPromptModel.id == prompt_id, CoachingPromptModel.was_acknowledged.is_(False))
            .values(was_acknowledged=True, acknowledged_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        prompt = await self.get_by_id(prompt_id)
        if prompt is None:
            raise NotFoundError("CoachingPrompt", prompt_id)
        return prompt
