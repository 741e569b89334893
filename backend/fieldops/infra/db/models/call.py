"""Call session database models."""
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Enum as SQLEnum,
)

from fieldops.domain.calls.models import (
    CallDirection,
    CallSession as CallSessionEntity,
    CallStatus,
    ChecklistCoverageStatus as CoverageEntity,
    CoachingPrompt as CoachingPromptEntity,
    PromptType,
    Speaker,
    TranscriptSegment as TranscriptSegmentEntity,
)
from fieldops.domain.common.types import utcnow
from fieldops.infra.db.base import Base


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class CallSessionModel(Base):
    """Call session database model."""

    __tablename__ = "call_sessions"

    id = Column(String, primary_key=True)
    status = Column(
        SQLEnum(CallStatus, name="callstatus", values_callable=_enum_values),
        nullable=False,
        default=CallStatus.RINGING,
        index=True,
    )
    direction = Column(
        SQLEnum(CallDirection, name="calldirection", values_callable=_enum_values),
        nullable=False,
        default=CallDirection.INBOUND,
    )
    phone_number = Column(String, nullable=True)
    started_at = Column(DateTime, nullable=True)
    ended_at = Column(DateTime, nullable=True)
    last_evaluated_sequence = Column(Integer, nullable=False, default=0)
    last_evaluated_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def to_entity(self) -> CallSessionEntity:
        """Convert to domain entity."""
        return CallSessionEntity(
            id=self.id,
            status=self.status,
            direction=self.direction,
            phone_number=self.phone_number,
            started_at=self.started_at,
            ended_at=self.ended_at,
            last_evaluated_sequence=self.last_evaluated_sequence or 0,
            last_evaluated_at=self.last_evaluated_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_entity(cls, entity: CallSessionEntity) -> "CallSessionModel":
        """Create from domain entity."""
        return cls(
            id=entity.id,
            status=entity.status,
            direction=entity.direction,
            phone_number=entity.phone_number,
            started_at=entity.started_at,
            ended_at=entity.ended_at,
            last_evaluated_sequence=entity.last_evaluated_sequence,
            last_evaluated_at=entity.last_evaluated_at,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )


class TranscriptSegmentModel(Base):
    """Transcript segment database model. Rows are never updated."""

    __tablename__ = "call_transcript_segments"
    __table_args__ = (UniqueConstraint("call_id", "sequence", name="uq_transcript_call_sequence"),)

    id = Column(String, primary_key=True)
    call_id = Column(String, ForeignKey("call_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    speaker = Column(SQLEnum(Speaker, name="speaker", values_callable=_enum_values), nullable=False)
    text = Column(Text, nullable=False)
    sequence = Column(Integer, nullable=False)
    confidence = Column(Float, nullable=True)
    timestamp = Column(DateTime, default=utcnow, nullable=False)

    def to_entity(self) -> TranscriptSegmentEntity:
        return TranscriptSegmentEntity(
            id=self.id,
            call_id=self.call_id,
            speaker=self.speaker,
            text=self.text,
            sequence=self.sequence,
            confidence=self.confidence,
            timestamp=self.timestamp,
        )

    @classmethod
    def from_entity(cls, entity: TranscriptSegmentEntity) -> "TranscriptSegmentModel":
        return cls(
            id=entity.id,
            call_id=entity.call_id,
            speaker=entity.speaker,
            text=entity.text,
            sequence=entity.sequence,
            confidence=entity.confidence,
            timestamp=entity.timestamp,
        )


class ChecklistCoverageModel(Base):
    """Per-call checklist coverage, created the first time an item is covered."""

    __tablename__ = "call_checklist_status"

    call_id = Column(String, ForeignKey("call_sessions.id", ondelete="CASCADE"), primary_key=True)
    checklist_item_id = Column(String, primary_key=True)
    is_covered = Column(Boolean, nullable=False, default=False)
    covered_at_sequence = Column(Integer, nullable=True)
    detected_text = Column(Text, nullable=True)
    covered_at = Column(DateTime, nullable=True)
    manually_covered = Column(Boolean, nullable=False, default=False)

    def to_entity(self) -> CoverageEntity:
        return CoverageEntity(
            call_id=self.call_id,
            checklist_item_id=self.checklist_item_id,
            is_covered=self.is_covered,
            covered_at_sequence=self.covered_at_sequence,
            detected_text=self.detected_text,
            covered_at=self.covered_at,
            manually_covered=self.manually_covered,
        )


class CoachingPromptModel(Base):
    """Coaching prompt database model."""

    __tablename__ = "call_coaching_prompts"

    id = Column(String, primary_key=True)
    call_id = Column(String, ForeignKey("call_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    prompt_type = Column(SQLEnum(PromptType, name="prompttype", values_callable=_enum_values), nullable=False)
    message = Column(Text, nullable=False)
    related_checklist_item_id = Column(String, nullable=True)
    trigger_text = Column(Text, nullable=True)
    created_at_sequence = Column(Integer, nullable=False)
    was_acknowledged = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    acknowledged_at = Column(DateTime, nullable=True)

    def to_entity(self) -> CoachingPromptEntity:
        return CoachingPromptEntity(
            id=self.id,
            call_id=self.call_id,
            prompt_type=self.prompt_type,
            message=self.message,
            related_checklist_item_id=self.related_checklist_item_id,
            trigger_text=self.trigger_text,
            created_at_sequence=self.created_at_sequence,
            was_acknowledged=self.was_acknowledged,
            created_at=self.created_at,
            acknowledged_at=self.acknowledged_at,
        )

    @classmethod
    def from_entity(cls, entity: CoachingPromptEntity) -> "CoachingPromptModel":
        return cls(
            id=entity.id,
            call_id=entity.call_id,
            prompt_type=entity.prompt_type,
            message=entity.message,
            related_checklist_item_id=entity.related_checklist_item_id,
            trigger_text=entity.trigger_text,
            created_at_sequence=entity.created_at_sequence,
            was_acknowledged=entity.was_acknowledged,
            created_at=entity.created_at,
            acknowledged_at=entity.acknowledged_at,
        )
