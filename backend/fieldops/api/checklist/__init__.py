"""Checklist API routes."""
from fastapi import APIRouter

from fieldops.api.checklist import routes_checklist

router = APIRouter()

router.include_router(routes_checklist.router, prefix="/checklist-items", tags=["checklist"])
