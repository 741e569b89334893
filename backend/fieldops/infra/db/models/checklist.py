"""Sales checklist database models."""
from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String, Text, Enum as SQLEnum

from fieldops.domain.checklist.models import ChecklistCategory, ChecklistItem as ChecklistItemEntity
from fieldops.domain.common.types import utcnow
from fieldops.infra.db.base import Base


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class ChecklistItemModel(Base):
    """Sales checklist item database model."""

    __tablename__ = "sales_checklist_items"

    id = Column(String, primary_key=True)
    question = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(
        SQLEnum(ChecklistCategory, name="checklistcategory", values_callable=_enum_values),
        nullable=False,
        default=ChecklistCategory.REQUIREMENTS,
    )
    keywords = Column(JSON, nullable=False, default=list)
    suggested_response = Column(Text, nullable=True)
    is_required = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def to_entity(self) -> ChecklistItemEntity:
        """Convert to domain entity."""
        return ChecklistItemEntity(
            id=self.id,
            question=self.question,
            description=self.description,
            category=self.category,
            keywords=list(self.keywords or []),
            suggested_response=self.suggested_response,
            is_required=self.is_required,
            is_active=self.is_active,
            display_order=self.display_order,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_entity(cls, entity: ChecklistItemEntity) -> "ChecklistItemModel":
        """Create from domain entity."""
        return cls(
            id=entity.id,
            question=entity.question,
            description=entity.description,
            category=ChecklistCategory(entity.category),
            keywords=list(entity.keywords),
            suggested_response=entity.suggested_response,
            is_required=entity.is_required,
            is_active=entity.is_active,
            display_order=entity.display_order,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )
