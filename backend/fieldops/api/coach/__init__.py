"""Coach API routes."""
from fastapi import APIRouter

from fieldops.api.coach import routes_prompts

router = APIRouter()

router.include_router(routes_prompts.router, prefix="/coaching-prompts", tags=["coaching-prompts"])
