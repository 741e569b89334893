"""Sales checklist domain models."""
import enum
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from fieldops.domain.common.types import generate_id, utcnow


class ChecklistCategory(str, enum.Enum):
    """Checklist category enum."""
    REQUIREMENTS = "requirements"
    SITE_CONDITIONS = "site_conditions"
    TIMELINE = "timeline"
    BUDGET = "budget"
    OTHER = "other"


CATEGORY_LABELS: dict[ChecklistCategory, str] = {
    ChecklistCategory.REQUIREMENTS: "Requirements",
    ChecklistCategory.SITE_CONDITIONS: "Site Conditions",
    ChecklistCategory.TIMELINE: "Timeline",
    ChecklistCategory.BUDGET: "Budget",
    ChecklistCategory.OTHER: "Other",
}


def category_label(value: Optional[str]) -> str:
    """Display label for a category key; unknown keys fall back to "Other"."""
    try:
        return CATEGORY_LABELS[ChecklistCategory(value)]
    except ValueError:
        return CATEGORY_LABELS[ChecklistCategory.OTHER]


class ChecklistItem(BaseModel):
    """Checklist item domain model."""

    id: str
    question: str
    description: Optional[str] = None
    category: ChecklistCategory = ChecklistCategory.REQUIREMENTS
    keywords: list[str] = []
    suggested_response: Optional[str] = None
    is_required: bool = False
    is_active: bool = True
    display_order: int = 0
    created_at: datetime
    updated_at: datetime

    @classmethod
    def create(
        cls,
        question: str,
        keywords: list[str],
        category: ChecklistCategory = ChecklistCategory.REQUIREMENTS,
        description: Optional[str] = None,
        suggested_response: Optional[str] = None,
        is_required: bool = False,
        is_active: bool = True,
        display_order: int = 0,
    ) -> "ChecklistItem":
        """Create a new checklist item."""
        now = utcnow()
        return cls(
            id=generate_id(),
            question=question,
            description=description,
            category=category,
            keywords=keywords,
            suggested_response=suggested_response,
            is_required=is_required,
            is_active=is_active,
            display_order=display_order,
            created_at=now,
            updated_at=now,
        )

    @property
    def category_label(self) -> str:
        return category_label(self.category)
