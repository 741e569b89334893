"""Sales checklist configuration routes."""
from datetime import datetime
from typing import Optional, Union

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from fieldops.api.deps import get_checklist_service
from fieldops.domain.checklist.models import ChecklistItem
from fieldops.domain.checklist.services import ChecklistService

router = APIRouter()


class CreateChecklistItemRequest(BaseModel):
    """Create checklist item request model. Keywords may be a list or a comma separated string."""
    question: str
    keywords: Union[list[str], str] = []
    category: Optional[str] = None
    description: Optional[str] = None
    suggested_response: Optional[str] = None
    is_required: bool = False
    is_active: bool = True


class UpdateChecklistItemRequest(BaseModel):
    """Partial update; only fields that are sent are changed."""
    question: Optional[str] = None
    keywords: Optional[Union[list[str], str]] = None
    category: Optional[str] = None
    description: Optional[str] = None
    suggested_response: Optional[str] = None
    is_required: Optional[bool] = None
    is_active: Optional[bool] = None


class ReorderRequest(BaseModel):
    item_ids: list[str]


class ChecklistItemResponse(BaseModel):
    """Checklist item response model."""
    id: str
    question: str
    description: Optional[str] = None
    category: str
    category_label: str
    keywords: list[str]
    suggested_response: Optional[str] = None
    is_required: bool
    is_active: bool
    display_order: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, item: ChecklistItem) -> "ChecklistItemResponse":
        return cls(
            id=item.id,
            question=item.question,
            description=item.description,
            category=item.category.value,
            category_label=item.category_label,
            keywords=item.keywords,
            suggested_response=item.suggested_response,
            is_required=item.is_required,
            is_active=item.is_active,
            display_order=item.display_order,
            created_at=item.created_at,
            updated_at=item.updated_at,
        )


@router.get("", response_model=list[ChecklistItemResponse])
async def list_checklist_items(service: ChecklistService = Depends(get_checklist_service)):
    """All checklist items, active ones first in display order."""
    items = await service.list_items()
    return [ChecklistItemResponse.from_entity(i) for i in items]


@router.get("/active", response_model=list[ChecklistItemResponse])
async def list_active_checklist_items(service: ChecklistService = Depends(get_checklist_service)):
    """Active checklist items in display order."""
    items = await service.list_active_items()
    return [ChecklistItemResponse.from_entity(i) for i in items]


@router.post("", response_model=ChecklistItemResponse, status_code=status.HTTP_201_CREATED)
async def create_checklist_item(
    request: CreateChecklistItemRequest,
    service: ChecklistService = Depends(get_checklist_service),
):
    item = await service.create_item(
        question=request.question,
        keywords=request.keywords,
        category=request.category,
        description=request.description,
        suggested_response=request.suggested_response,
        is_required=request.is_required,
        is_active=request.is_active,
    )
    return ChecklistItemResponse.from_entity(item)


# Registered before /{item_id} routes so "reorder" is never taken for an id.
@router.post("/reorder", response_model=list[ChecklistItemResponse])
async def reorder_checklist_items(
    request: ReorderRequest,
    service: ChecklistService = Depends(get_checklist_service),
):
    """Replace the order of the whole active set. Rejected requests change nothing."""
    items = await service.reorder(request.item_ids)
    return [ChecklistItemResponse.from_entity(i) for i in items]


@router.get("/{item_id}", response_model=ChecklistItemResponse)
async def get_checklist_item(item_id: str, service: ChecklistService = Depends(get_checklist_service)):
    item = await service.get_item(item_id)
    return ChecklistItemResponse.from_entity(item)


@router.patch("/{item_id}", response_model=ChecklistItemResponse)
async def update_checklist_item(
    item_id: str,
    request: UpdateChecklistItemRequest,
    service: ChecklistService = Depends(get_checklist_service),
):
    """Update an item; toggling is_active moves it into or out of the active order."""
    item = await service.update_item(item_id, request.model_dump(exclude_unset=True))
    return ChecklistItemResponse.from_entity(item)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_checklist_item(item_id: str, service: ChecklistService = Depends(get_checklist_service)):
    await service.delete_item(item_id)
