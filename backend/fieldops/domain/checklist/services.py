"""Sales checklist domain services."""
import logging
from typing import Any, Optional, Protocol, Union

from fieldops.domain.checklist.models import ChecklistCategory, ChecklistItem
from fieldops.domain.common.errors import InvalidReorderError, NotFoundError, ValidationError
from fieldops.domain.common.types import utcnow

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {
    "question",
    "description",
    "category",
    "keywords",
    "suggested_response",
    "is_required",
    "is_active",
}


class ChecklistRepository(Protocol):
    """Checklist item repository protocol."""

    async def list_all(self) -> list[ChecklistItem]:
        """All items, active first, each group by display order."""
        ...

    async def list_active(self) -> list[ChecklistItem]:
        """Active items by display order."""
        ...

    async def get_by_id(self, item_id: str) -> Optional[ChecklistItem]:
        ...

    async def create(self, item: ChecklistItem) -> ChecklistItem:
        ...

    async def update(self, item: ChecklistItem) -> ChecklistItem:
        ...

    async def delete(self, item_id: str) -> None:
        ...

    async def apply_order(self, ordered_ids: list[str]) -> None:
        """Set display_order = position for every id in one transaction."""
        ...


def normalize_keywords(raw: Union[str, list[str], None]) -> list[str]:
    """
    Lowercase and trim keywords. A string is treated as a comma-separated list
    (empty pieces ignored). Blank list entries and duplicates after normalization
    are configuration errors.
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        parts = [p for p in raw.split(",") if p.strip()]
    else:
        parts = list(raw)

    keywords: list[str] = []
    for part in parts:
        keyword = " ".join(str(part).split()).lower()
        if not keyword:
            raise ValidationError("Keywords must not be blank")
        if keyword in keywords:
            raise ValidationError(f"Duplicate keyword: {keyword!r}")
        keywords.append(keyword)
    return keywords


def _normalize_question(question: Optional[str]) -> str:
    text = (question or "").strip()
    if not text:
        raise ValidationError("Question must not be empty")
    return text


def _normalize_category(category: Union[str, ChecklistCategory, None]) -> ChecklistCategory:
    if category is None:
        return ChecklistCategory.REQUIREMENTS
    try:
        return ChecklistCategory(category)
    except ValueError:
        raise ValidationError(f"Unknown category: {category!r}")


def _optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class ChecklistService:
    """Checklist configuration service. Keeps active display orders dense (0..n-1)."""

    def __init__(self, checklist_repo: ChecklistRepository):
        self.checklist_repo = checklist_repo

    async def list_items(self) -> list[ChecklistItem]:
        return await self.checklist_repo.list_all()

    async def list_active_items(self) -> list[ChecklistItem]:
        return await self.checklist_repo.list_active()

    async def get_item(self, item_id: str) -> ChecklistItem:
        item = await self.checklist_repo.get_by_id(item_id)
        if not item:
            raise NotFoundError("ChecklistItem", item_id)
        return item

    async def create_item(
        self,
        question: str,
        keywords: Union[str, list[str], None] = None,
        category: Union[str, ChecklistCategory, None] = None,
        description: Optional[str] = None,
        suggested_response: Optional[str] = None,
        is_required: bool = False,
        is_active: bool = True,
    ) -> ChecklistItem:
        """Validate and create an item; active items are appended to the end of the order."""
        item = ChecklistItem.create(
            question=_normalize_question(question),
            keywords=normalize_keywords(keywords),
            category=_normalize_category(category),
            description=_optional_text(description),
            suggested_response=_optional_text(suggested_response),
            is_required=is_required,
            is_active=is_active,
        )
        if item.is_active:
            item.display_order = len(await self.checklist_repo.list_active())
        created = await self.checklist_repo.create(item)
        logger.info("Checklist item created: %s (required=%s)", created.id, created.is_required)
        return created

    async def update_item(self, item_id: str, changes: dict[str, Any]) -> ChecklistItem:
        """Apply a partial update. Toggling is_active re-densifies the active order."""
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown checklist fields: {', '.join(sorted(unknown))}")

        item = await self.get_item(item_id)
        was_active = item.is_active
        updated = item.model_copy()

        if "question" in changes:
            updated.question = _normalize_question(changes["question"])
        if "keywords" in changes:
            updated.keywords = normalize_keywords(changes["keywords"])
        if "category" in changes:
            updated.category = _normalize_category(changes["category"])
        if "description" in changes:
            updated.description = _optional_text(changes["description"])
        if "suggested_response" in changes:
            updated.suggested_response = _optional_text(changes["suggested_response"])
        if "is_required" in changes:
            updated.is_required = bool(changes["is_required"])
        if "is_active" in changes:
            updated.is_active = bool(changes["is_active"])

        if updated.is_active and not was_active:
            updated.display_order = len(await self.checklist_repo.list_active())
        updated.updated_at = utcnow()
        saved = await self.checklist_repo.update(updated)

        if was_active and not saved.is_active:
            await self._compact_active_order()
            saved = await self.get_item(item_id)
        return saved

    async def set_active(self, item_id: str, is_active: bool) -> ChecklistItem:
        return await self.update_item(item_id, {"is_active": is_active})

    async def set_required(self, item_id: str, is_required: bool) -> ChecklistItem:
        return await self.update_item(item_id, {"is_required": is_required})

    async def delete_item(self, item_id: str) -> None:
        item = await self.get_item(item_id)
        await self.checklist_repo.delete(item_id)
        if item.is_active:
            await self._compact_active_order()
        logger.info("Checklist item deleted: %s", item_id)

    async def reorder(self, item_ids: list[str]) -> list[ChecklistItem]:
        """
        Reassign display order for the whole active set.

        item_ids must contain every active item exactly once; anything else is rejected
        before any write, so a failed reorder leaves the previous order untouched.
        """
        active = await self.checklist_repo.list_active()
        active_ids = {item.id for item in active}

        duplicates = sorted({i for i in item_ids if item_ids.count(i) > 1})
        if duplicates:
            raise InvalidReorderError(f"Duplicate ids in reorder request: {', '.join(duplicates)}")

        requested = set(item_ids)
        missing = sorted(active_ids - requested)
        unexpected = sorted(requested - active_ids)
        if missing or unexpected:
            raise InvalidReorderError(
                "Reorder ids must match the active checklist items exactly",
                missing=missing,
                unexpected=unexpected,
            )

        await self.checklist_repo.apply_order(list(item_ids))
        return await self.checklist_repo.list_active()

    async def _compact_active_order(self) -> None:
        active = await self.checklist_repo.list_active()
        await self.checklist_repo.apply_order([item.id for item in active])
