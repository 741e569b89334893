"""Call API routes."""
from fastapi import APIRouter

from fieldops.api.calls import routes_calls

router = APIRouter()

router.include_router(routes_calls.router, prefix="/calls", tags=["calls"])
