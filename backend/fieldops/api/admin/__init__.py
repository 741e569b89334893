"""Admin API routes."""
from fastapi import APIRouter

from fieldops.api.admin import routes_config

router = APIRouter()

router.include_router(routes_config.router, prefix="/admin", tags=["admin"])
