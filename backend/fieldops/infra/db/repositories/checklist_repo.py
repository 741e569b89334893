"""Checklist repository implementation."""
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fieldops.domain.checklist.models import ChecklistItem
from fieldops.domain.checklist.services import ChecklistRepository
from fieldops.domain.common.errors import NotFoundError
from fieldops.domain.common.types import utcnow
from fieldops.infra.db.models.checklist import ChecklistItemModel


class ChecklistRepositoryImpl(ChecklistRepository):
    """Checklist repository implementation."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_all(self) -> list[ChecklistItem]:
        result = await self.session.execute(
            select(ChecklistItemModel).order_by(
                ChecklistItemModel.is_active.desc(),
                ChecklistItemModel.display_order,
                ChecklistItemModel.created_at,
            )
            .execution_options(populate_existing=True)
        )
        return [m.to_entity() for m in result.scalars().all()]

    async def list_active(self) -> list[ChecklistItem]:
        result = await self.session.execute(
            select(ChecklistItemModel)
            .where(ChecklistItemModel.is_active.is_(True))
            .order_by(ChecklistItemModel.display_order, ChecklistItemModel.created_at)
            .execution_options(populate_existing=True)
        )
        return [m.to_entity() for m in result.scalars().all()]

    async def get_by_id(self, item_id: str) -> Optional[ChecklistItem]:
        model = await self.session.get(ChecklistItemModel, item_id, populate_existing=True)
        return model.to_entity() if model else None

    async def create(self, item: ChecklistItem) -> ChecklistItem:
        model = ChecklistItemModel.from_entity(item)
        self.session.add(model)
        await self.session.commit()
        await self.session.refresh(model)
        return model.to_entity()

    async def update(self, item: ChecklistItem) -> ChecklistItem:
        model = await self.session.get(ChecklistItemModel, item.id)
        if model is None:
            raise NotFoundError("ChecklistItem", item.id)
        model.question = item.question
        model.description = item.description
        model.category = item.category
        model.keywords = list(item.keywords)
        model.suggested_response = item.suggested_response
        model.is_required = item.is_required
        model.is_active = item.is_active
        model.display_order = item.display_order
        model.updated_at = item.updated_at
        await self.session.commit()
        await self.session.refresh(model)
        return model.to_entity()

    async def delete(self, item_id: str) -> None:
        await self.session.execute(delete(ChecklistItemModel).where(ChecklistItemModel.id == item_id))
        await self.session.commit()

    async def apply_order(self, ordered_ids: list[str]) -> None:
        """All positions are written in a single commit; a failure rolls the whole order back."""
        now = utcnow()
        try:
            for position, item_id in enumerate(ordered_ids):
                await self.session.execute(
                    update(ChecklistItemModel)
                    .where(ChecklistItemModel.id == item_id)
                    .values(display_order=position, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        self.session.expire_all()
