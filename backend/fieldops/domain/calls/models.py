"""Call session domain models."""
import enum
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from fieldops.domain.common.types import generate_id, utcnow


class CallStatus(str, enum.Enum):
    """Call status enum."""
    RINGING = "ringing"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    MISSED = "missed"
    FAILED = "failed"


LIVE_STATUSES = frozenset({CallStatus.RINGING, CallStatus.IN_PROGRESS})
TERMINAL_STATUSES = frozenset({CallStatus.COMPLETED, CallStatus.MISSED, CallStatus.FAILED})

# Allowed lifecycle transitions; terminal states have none.
CALL_TRANSITIONS: dict[CallStatus, frozenset[CallStatus]] = {
    CallStatus.RINGING: frozenset({CallStatus.IN_PROGRESS, CallStatus.MISSED, CallStatus.FAILED}),
    CallStatus.IN_PROGRESS: frozenset({CallStatus.COMPLETED, CallStatus.FAILED}),
    CallStatus.COMPLETED: frozenset(),
    CallStatus.MISSED: frozenset(),
    CallStatus.FAILED: frozenset(),
}


class CallDirection(str, enum.Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class Speaker(str, enum.Enum):
    STAFF = "staff"
    CUSTOMER = "customer"


class PromptType(str, enum.Enum):
    """Coaching prompt type, highest priority first."""
    ALERT = "alert"
    REMINDER = "reminder"
    SUGGESTION = "suggestion"


class CallSession(BaseModel):
    """Call session domain model."""

    id: str
    status: CallStatus
    direction: CallDirection = CallDirection.INBOUND
    phone_number: Optional[str] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    # Highest transcript sequence already processed by the coverage matcher.
    last_evaluated_sequence: int = 0
    # When that evaluation started; checklist items changed since then are rescanned from the start.
    last_evaluated_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def create(
        cls,
        direction: CallDirection = CallDirection.INBOUND,
        phone_number: Optional[str] = None,
        status: CallStatus = CallStatus.RINGING,
    ) -> "CallSession":
        """Create a new call session."""
        now = utcnow()
        return cls(
            id=generate_id(),
            status=status,
            direction=direction,
            phone_number=phone_number,
            started_at=now,
            ended_at=None,
            last_evaluated_sequence=0,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_live(self) -> bool:
        return self.status in LIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class TranscriptSegment(BaseModel):
    """Transcript segment domain model (append-only)."""

    id: str
    call_id: str
    speaker: Speaker
    text: str
    sequence: int
    confidence: Optional[float] = None
    timestamp: datetime

    @classmethod
    def create(
        cls,
        call_id: str,
        speaker: Speaker,
        text: str,
        sequence: int,
        confidence: Optional[float] = None,
    ) -> "TranscriptSegment":
        return cls(
            id=generate_id(),
            call_id=call_id,
            speaker=speaker,
            text=text,
            sequence=sequence,
            confidence=confidence,
            timestamp=utcnow(),
        )


class ChecklistCoverageStatus(BaseModel):
    """Coverage of one checklist item during one call. is_covered only ever goes false -> true."""

    call_id: str
    checklist_item_id: str
    is_covered: bool = False
    covered_at_sequence: Optional[int] = None
    detected_text: Optional[str] = None
    covered_at: Optional[datetime] = None
    manually_covered: bool = False

    def mark_covered(
        self,
        sequence: int,
        detected_text: Optional[str] = None,
        covered_at: Optional[datetime] = None,
        manual: bool = False,
    ) -> "ChecklistCoverageStatus":
        """Return a covered copy; an already covered status is returned unchanged."""
        if self.is_covered:
            return self
        return self.model_copy(
            update={
                "is_covered": True,
                "covered_at_sequence": sequence,
                "detected_text": detected_text,
                "covered_at": covered_at or utcnow(),
                "manually_covered": manual,
            }
        )


class CoachingPrompt(BaseModel):
    """Coaching prompt domain model."""

    id: str
    call_id: str
    prompt_type: PromptType
    message: str
    related_checklist_item_id: Optional[str] = None
    trigger_text: Optional[str] = None
    created_at_sequence: int
    was_acknowledged: bool = False
    created_at: datetime
    acknowledged_at: Optional[datetime] = None

    @classmethod
    def create(
        cls,
        call_id: str,
        prompt_type: PromptType,
        message: str,
        created_at_sequence: int,
        related_checklist_item_id: Optional[str] = None,
        trigger_text: Optional[str] = None,
    ) -> "CoachingPrompt":
        """Create a new, unacknowledged prompt."""
        return cls(
            id=generate_id(),
            call_id=call_id,
            prompt_type=prompt_type,
            message=message,
            related_checklist_item_id=related_checklist_item_id,
            trigger_text=trigger_text,
            created_at_sequence=created_at_sequence,
            was_acknowledged=False,
            created_at=utcnow(),
            acknowledged_at=None,
        )
