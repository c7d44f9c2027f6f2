"""Undo toast endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from pedeai.db.dependencies import get_app_state, get_current_restaurant
from pedeai.state import AppState
from pedeai.undo import UndoAction


router = APIRouter(
    prefix="/api/undo",
    tags=["undo"],
    dependencies=[Depends(get_current_restaurant)],
)


class UndoState(BaseModel):
    action: Optional[UndoAction]
    remaining: int


@router.get("", response_model=UndoState)
async def get_undo(state: AppState = Depends(get_app_state)):
    return UndoState(action=state.undo.action, remaining=state.undo.remaining)


@router.post("", response_model=UndoState, summary="Undo the last action")
async def perform_undo(state: AppState = Depends(get_app_state)):
    """Replays the armed action; returns action=None when nothing was left to undo."""
    action = await state.perform_undo()
    return UndoState(action=action, remaining=0)


@router.delete("", status_code=204)
async def dismiss_undo(state: AppState = Depends(get_app_state)):
    state.clear_undo()
