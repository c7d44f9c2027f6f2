"""Auth endpoints for restaurant and admin login, plus dev signup."""

import os
from datetime import timedelta
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from pedeai.db.dependencies import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    create_access_token,
    get_app_state,
    get_current_principal,
    get_optional_principal,
)
from pedeai.session import MIN_PASSWORD_LENGTH, Settings, validate_login_input
from pedeai.state import AppState


router = APIRouter(prefix="/api/auth", tags=["auth"])


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str
    restaurant: Optional[Dict[str, Any]] = None
    admin: Optional[Dict[str, Any]] = None


class SignupRequest(BaseModel):
    name: str = Field(min_length=1)
    email: str
    password: str = Field(min_length=MIN_PASSWORD_LENGTH, max_length=128)
    tables: int = Field(12, ge=1, le=500)


class SessionResponse(BaseModel):
    authenticated: bool
    restaurant: Optional[Dict[str, Any]] = None
    admin: Optional[Dict[str, Any]] = None
    settings: Optional[Settings] = None
    saving: bool = False


@router.post("/login", response_model=TokenResponse, summary="Restaurant login")
async def login(request: LoginRequest, state: AppState = Depends(get_app_state)):
    """Authenticate the restaurant account and start syncing its data."""
    restaurant = await state.login(request.email, request.password)
    access_token = create_access_token(
        data={"sub": restaurant["id"], "kind": "restaurant"},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    return TokenResponse(access_token=access_token, token_type="bearer", restaurant=restaurant)


@router.post("/admin/login", response_model=TokenResponse, summary="Admin console login")
async def admin_login(request: LoginRequest, state: AppState = Depends(get_app_state)):
    admin = await state.admin_login(request.email, request.password)
    access_token = create_access_token(
        data={"sub": str(admin["id"]), "kind": "admin", "roles": admin["roles"]},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    return TokenResponse(access_token=access_token, token_type="bearer", admin=admin)


@router.post("/logout", summary="End the current session")
async def logout(
    principal: str = Depends(get_current_principal),
    state: AppState = Depends(get_app_state),
):
    await state.logout()
    return {"status": "logged_out"}


@router.get("/session", response_model=SessionResponse)
async def get_session(
    principal: Optional[str] = Depends(get_optional_principal),
    state: AppState = Depends(get_app_state),
):
    """Current session. Callers without a live token only learn that they are signed out."""
    if principal is None:
        return SessionResponse(authenticated=False)
    session = state.session
    return SessionResponse(
        authenticated=session.authenticated,
        restaurant=session.restaurant,
        admin=session.admin,
        settings=session.settings,
        saving=session.saving,
    )


@router.post("/signup", summary="Create a restaurant (dev/bootstrap)")
async def signup(request: SignupRequest, state: AppState = Depends(get_app_state)):
    """
    Register a restaurant account for dev/bootstrap.

    Only allowed when ENVIRONMENT=dev; production accounts are created from
    the admin console.
    """
    if os.getenv("ENVIRONMENT", "dev").lower() != "dev":
        raise HTTPException(status_code=403, detail="Signup disabled")
    creds = validate_login_input(request.email, request.password)
    return await state.create_restaurant(request.name, creds.email, creds.password, request.tables)
