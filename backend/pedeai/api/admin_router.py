"""Admin console: restaurant accounts and the system log."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from pedeai.db.dependencies import get_app_state, require_admin
from pedeai.session import MIN_PASSWORD_LENGTH, validate_login_input
from pedeai.state import AppState
from pedeai.system_log import LogCategory, LogLevel, LogStats, SystemLogEntry, log_stats


router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)


class CreateRestaurantRequest(BaseModel):
    name: str = Field(min_length=1)
    email: str
    password: str = Field(min_length=MIN_PASSWORD_LENGTH, max_length=128)
    tables: int = Field(12, ge=1, le=500)


class SystemLogsResponse(BaseModel):
    logs: List[SystemLogEntry]
    stats: LogStats


@router.get("/restaurants", response_model=List[Dict[str, Any]])
async def list_restaurants(state: AppState = Depends(get_app_state)):
    return await state.list_restaurants()


@router.post("/restaurants", status_code=201)
async def create_restaurant(request: CreateRestaurantRequest, state: AppState = Depends(get_app_state)):
    creds = validate_login_input(request.email, request.password)
    return await state.create_restaurant(request.name, creds.email, creds.password, request.tables)


@router.get("/logs", response_model=SystemLogsResponse, summary="System log")
async def list_logs(
    level: Optional[LogLevel] = None,
    category: Optional[LogCategory] = None,
    restaurant_id: Optional[str] = None,
    limit: int = Query(500, ge=1, le=1000),
    state: AppState = Depends(get_app_state),
):
    """Newest entries first, with per-level counts of the returned page."""
    logs = await state.list_logs(
        level.value if level else None,
        category.value if category else None,
        restaurant_id,
        limit,
    )
    return SystemLogsResponse(logs=logs, stats=log_stats(logs))
