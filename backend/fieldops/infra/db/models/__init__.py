"""Database models."""
from fieldops.infra.db.models.checklist import ChecklistItemModel
from fieldops.infra.db.models.call import (
    CallSessionModel,
    TranscriptSegmentModel,
    ChecklistCoverageModel,
    CoachingPromptModel,
)

__all__ = [
    "ChecklistItemModel",
    "CallSessionModel",
    "TranscriptSegmentModel",
    "ChecklistCoverageModel",
    "CoachingPromptModel",
]
