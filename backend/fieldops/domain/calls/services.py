"""Call session domain services."""
import logging
from datetime import datetime
from typing import Optional, Protocol

from fieldops.domain.calls.models import (
    CALL_TRANSITIONS,
    CallDirection,
    CallSession,
    CallStatus,
    ChecklistCoverageStatus,
    CoachingPrompt,
    TranscriptSegment,
)
from fieldops.domain.coach.locks import CallLockRegistry, call_locks
from fieldops.domain.common.errors import ConflictError, NotFoundError, ValidationError
from fieldops.domain.common.types import utcnow

logger = logging.getLogger(__name__)


class CallRepository(Protocol):
    """Call session repository protocol."""

    async def create(self, call: CallSession) -> CallSession:
        ...

    async def get_by_id(self, call_id: str) -> Optional[CallSession]:
        ...

    async def list_live(self, limit: int = 50) -> list[CallSession]:
        """Ringing or in-progress calls, newest first."""
        ...

    async def update_status(self, call_id: str, status: CallStatus, ended_at=None) -> CallSession:
        ...

    async def set_last_evaluated(self, call_id: str, sequence: int, evaluated_at: datetime) -> None:
        """Record an evaluation; the sequence watermark never moves backwards."""
        ...


class TranscriptRepository(Protocol):
    """Transcript segment repository protocol (append-only)."""

    async def append(self, segment: TranscriptSegment) -> TranscriptSegment:
        ...

    async def list_by_call(self, call_id: str) -> list[TranscriptSegment]:
        ...

    async def list_after(self, call_id: str, sequence: int) -> list[TranscriptSegment]:
        """Segments with sequence > given sequence, ascending."""
        ...

    async def last_sequence(self, call_id: str) -> int:
        """Highest sequence for the call, 0 when empty."""
        ...


class CoverageRepository(Protocol):
    """Checklist coverage status repository protocol."""

    async def list_by_call(self, call_id: str) -> list[ChecklistCoverageStatus]:
        ...

    async def save_covered(self, status: ChecklistCoverageStatus) -> ChecklistCoverageStatus:
        """Insert or latch a status to covered. Never clears coverage."""
        ...


class PromptRepository(Protocol):
    """Coaching prompt repository protocol."""

    async def create(self, prompt: CoachingPrompt) -> CoachingPrompt:
        ...

    async def get_by_id(self, prompt_id: str) -> Optional[CoachingPrompt]:
        ...

    async def list_by_call(self, call_id: str) -> list[CoachingPrompt]:
        """Prompts in creation order."""
        ...

    async def acknowledge(self, prompt_id: str) -> CoachingPrompt:
        ...


class CallService:
    """Call lifecycle service."""

    def __init__(self, call_repo: CallRepository, locks: Optional[CallLockRegistry] = None):
        self.call_repo = call_repo
        self.locks = locks if locks is not None else call_locks

    async def start_call(
        self,
        direction: CallDirection = CallDirection.INBOUND,
        phone_number: Optional[str] = None,
        status: CallStatus = CallStatus.RINGING,
    ) -> CallSession:
        """Create a new call session (ringing unless told otherwise)."""
        if status not in (CallStatus.RINGING, CallStatus.IN_PROGRESS):
            raise ValidationError(f"A call cannot start as {status.value}")
        call = CallSession.create(direction=direction, phone_number=phone_number, status=status)
        created = await self.call_repo.create(call)
        logger.info("Call started: %s (%s, %s)", created.id, created.direction.value, created.status.value)
        return created

    async def get_call(self, call_id: str) -> CallSession:
        call = await self.call_repo.get_by_id(call_id)
        if not call:
            raise NotFoundError("CallSession", call_id)
        return call

    async def list_active_calls(self) -> list[CallSession]:
        return await self.call_repo.list_live()

    async def update_status(self, call_id: str, status: CallStatus) -> CallSession:
        """
        Move a call through its lifecycle. Terminal states set ended_at and accept no
        further transitions; repeating the current status is a no-op.
        """
        async with self.locks.hold(call_id):
            call = await self.get_call(call_id)
            if call.status == status:
                return call
            if status not in CALL_TRANSITIONS[call.status]:
                raise ConflictError(f"Call {call_id} cannot move from {call.status.value} to {status.value}")
            ended_at = utcnow() if status not in (CallStatus.RINGING, CallStatus.IN_PROGRESS) else None
            updated = await self.call_repo.update_status(call_id, status, ended_at=ended_at)
        logger.info("Call %s: %s -> %s", call_id, call.status.value, status.value)
        return updated
