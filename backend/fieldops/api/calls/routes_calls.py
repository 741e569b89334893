"""Call session routes: lifecycle, transcript ingestion, coverage and snapshots."""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from fieldops.api.deps import get_call_service, get_coaching_engine
from fieldops.domain.calls.models import (
    CallDirection,
    CallSession,
    CallStatus,
    ChecklistCoverageStatus,
    Speaker,
    TranscriptSegment,
)
from fieldops.domain.calls.services import CallService
from fieldops.domain.coach.services import CoachingEngine
from fieldops.domain.coach.state import CallSessionState

router = APIRouter()


class StartCallRequest(BaseModel):
    """Start call request model."""
    direction: CallDirection = CallDirection.INBOUND
    phone_number: Optional[str] = None
    status: CallStatus = CallStatus.RINGING


class UpdateStatusRequest(BaseModel):
    status: CallStatus


class AppendTranscriptRequest(BaseModel):
    """Append transcript request model. sequence is allocated when omitted."""
    speaker: Speaker
    text: str
    sequence: Optional[int] = None
    confidence: Optional[float] = None


class EvaluationResponse(BaseModel):
    evaluated_through: int
    newly_covered_item_ids: list[str]
    prompt_id: Optional[str] = None


class AppendTranscriptResponse(BaseModel):
    """Appended segment plus what the evaluation it triggered produced (None if it failed)."""
    segment: TranscriptSegment
    evaluation: Optional[EvaluationResponse] = None


class SuggestedResponse(BaseModel):
    question: str
    checklist_item_id: Optional[str] = None
    checklist_question: Optional[str] = None
    suggested_response: Optional[str] = None


@router.post("", response_model=CallSession, status_code=status.HTTP_201_CREATED)
async def start_call(
    request: StartCallRequest,
    call_service: CallService = Depends(get_call_service),
):
    """Create a call session."""
    return await call_service.start_call(
        direction=request.direction,
        phone_number=request.phone_number,
        status=request.status,
    )


@router.get("/active", response_model=list[CallSession])
async def list_active_calls(call_service: CallService = Depends(get_call_service)):
    """Ringing and in-progress calls, newest first."""
    return await call_service.list_active_calls()


@router.get("/{call_id}", response_model=CallSessionState)
async def get_call_state(
    call_id: str,
    engine: CoachingEngine = Depends(get_coaching_engine),
):
    """Consistent snapshot of a call: transcript, coverage, prompts and progress."""
    return await engine.get_call_state(call_id)


@router.patch("/{call_id}/status", response_model=CallSession)
async def update_call_status(
    call_id: str,
    request: UpdateStatusRequest,
    call_service: CallService = Depends(get_call_service),
    engine: CoachingEngine = Depends(get_coaching_engine),
):
    """Move a call through its lifecycle. Ending a call runs a final coverage pass."""
    call = await call_service.update_status(call_id, request.status)
    if call.is_terminal:
        await engine.finalize_call(call_id)
        call = await call_service.get_call(call_id)
    return call


@router.post("/{call_id}/transcript", response_model=AppendTranscriptResponse, status_code=status.HTTP_201_CREATED)
async def append_transcript(
    call_id: str,
    request: AppendTranscriptRequest,
    engine: CoachingEngine = Depends(get_coaching_engine),
):
    """Append a transcript segment and evaluate coverage and prompts."""
    segment, result = await engine.ingest_segment(
        call_id,
        speaker=request.speaker,
        text=request.text,
        sequence=request.sequence,
        confidence=request.confidence,
    )
    evaluation = None
    if result is not None:
        evaluation = EvaluationResponse(
            evaluated_through=result.evaluated_through,
            newly_covered_item_ids=result.newly_covered_item_ids,
            prompt_id=result.prompt.id if result.prompt else None,
        )
    return AppendTranscriptResponse(segment=segment, evaluation=evaluation)


@router.post("/{call_id}/checklist/{item_id}/cover", response_model=ChecklistCoverageStatus)
async def cover_checklist_item(
    call_id: str,
    item_id: str,
    engine: CoachingEngine = Depends(get_coaching_engine),
):
    """Mark a checklist item covered by hand."""
    return await engine.mark_item_covered(call_id, item_id)


@router.get("/{call_id}/suggested-response", response_model=SuggestedResponse)
async def get_suggested_response(
    call_id: str,
    question: str = Query(..., min_length=1),
    engine: CoachingEngine = Depends(get_coaching_engine),
):
    """Suggested answer from the first active checklist item whose keywords appear in the question."""
    item = await engine.suggest_response(call_id, question)
    if item is None:
        return SuggestedResponse(question=question)
    return SuggestedResponse(
        question=question,
        checklist_item_id=item.id,
        checklist_question=item.question,
        suggested_response=item.suggested_response,
    )
