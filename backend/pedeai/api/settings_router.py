"""Restaurant settings endpoints."""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from pedeai.db.dependencies import get_app_state, get_current_restaurant
from pedeai.session import Settings
from pedeai.state import AppState


router = APIRouter(
    prefix="/api/settings",
    tags=["settings"],
    dependencies=[Depends(get_current_restaurant)],
)


class SettingsResponse(BaseModel):
    settings: Settings
    pending: List[str]
    saving: bool


def _response(state: AppState) -> SettingsResponse:
    return SettingsResponse(
        settings=state.session.settings,
        pending=sorted(state.session.pending),
        saving=state.session.saving,
    )


@router.get("", response_model=SettingsResponse)
async def get_settings(state: AppState = Depends(get_app_state)):
    return _response(state)


@router.patch("", response_model=SettingsResponse, summary="Change settings")
async def update_settings(changes: Dict[str, Any], state: AppState = Depends(get_app_state)):
    """
    Applies the change immediately and persists it to the restaurant record.
    On a failed write the changed fields are rolled back and 502 is returned.
    """
    await state.update_settings(changes)
    return _response(state)
