"""Runtime config push and reload (config file master over env; pushed overrides on top)."""
from fastapi import APIRouter, Body, HTTPException, status

from fieldops.settings import get_config_store, get_settings

router = APIRouter()


def _ensure_enabled() -> None:
    # No auth layer in front of this service, so pushing config is opt-in.
    if not get_settings().admin_config_push_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")


@router.get("/config/coach")
async def get_coach_config():
    """Current coaching constants."""
    _ensure_enabled()
    s = get_settings()
    return {name: getattr(s, name) for name in type(s).model_fields if name.startswith("coach_")}


@router.post("/config", status_code=status.HTTP_200_OK)
async def update_config(body: dict = Body(..., embed=False)):
    """
    Push config overrides at runtime (e.g. coach_poll_interval_seconds). Invalid values
    keep the previous config, and the response says so.
    """
    _ensure_enabled()
    if not get_config_store().update(body):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Config update rejected")
    return {"ok": True, "message": "Config updated"}


@router.post("/config/reload", status_code=status.HTTP_200_OK)
async def reload_config():
    """Re-read the config file and reapply saved overrides."""
    _ensure_enabled()
    get_config_store().reload_from_file()
    return {"ok": True, "message": "Config reloaded from file"}


@router.post("/config/clear-overrides", status_code=status.HTTP_200_OK)
async def clear_config_overrides():
    """Drop pushed overrides and reset to config file + env."""
    _ensure_enabled()
    get_config_store().clear_overrides()
    return {"ok": True, "message": "Overrides cleared"}
