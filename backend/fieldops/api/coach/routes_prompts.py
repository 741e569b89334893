"""Coaching prompt routes."""
from fastapi import APIRouter, Depends

from fieldops.api.deps import get_coaching_engine
from fieldops.domain.calls.models import CoachingPrompt
from fieldops.domain.coach.services import CoachingEngine

router = APIRouter()


@router.post("/{prompt_id}/acknowledge", response_model=CoachingPrompt)
async def acknowledge_prompt(
    prompt_id: str,
    engine: CoachingEngine = Depends(get_coaching_engine),
):
    """Acknowledge a coaching prompt. Repeating the call is harmless."""
    return await engine.acknowledge_prompt(prompt_id)
