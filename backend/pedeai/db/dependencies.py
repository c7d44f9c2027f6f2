"""FastAPI dependencies for application state injection and auth."""

import os
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Dict, Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

if TYPE_CHECKING:
    from pedeai.state import AppState


# ---------- Auth helpers ----------

SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "480"))

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def hash_password(password: str) -> str:
    """Hash a plain text password."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a password against its hash. Missing or unrecognised hashes never match."""
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        return False


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    credentials_exception = HTTPException(
        status_code=401,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"}
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise credentials_exception
    if payload.get("sub") is None:
        raise credentials_exception
    return payload


# ---------- State injection ----------

def get_app_state(request: Request) -> "AppState":
    """The AppState owned by the running FastAPI app."""
    return request.app.state.app_state


def get_current_restaurant(
    token: str = Depends(oauth2_scheme),
    state: "AppState" = Depends(get_app_state),
) -> str:
    """Restaurant id of the authenticated dashboard session."""
    payload = decode_access_token(token)
    if payload.get("kind") != "restaurant":
        raise HTTPException(status_code=403, detail="Restaurant session required")
    restaurant_id = payload["sub"]
    if state.session.restaurant_id != restaurant_id:
        raise HTTPException(status_code=401, detail="Session expired, login required")
    return restaurant_id


def require_admin(
    token: str = Depends(oauth2_scheme),
    state: "AppState" = Depends(get_app_state),
) -> Dict[str, Any]:
    """Require a logged-in console admin."""
    payload = decode_access_token(token)
    if payload.get("kind") != "admin" or "admin" not in (payload.get("roles") or []):
        raise HTTPException(status_code=403, detail="Admin privileges required")
    if state.session.admin is None or str(state.session.admin["id"]) != payload["sub"]:
        raise HTTPException(status_code=401, detail="Session expired, login required")
    return state.session.admin


def _session_principal(payload: Dict[str, Any], state: "AppState") -> Optional[str]:
    """Which live session the token belongs to, if any."""
    session = state.session
    if payload.get("kind") == "restaurant" and session.restaurant_id == payload["sub"]:
        return "restaurant"
    if payload.get("kind") == "admin" and session.admin is not None and str(session.admin["id"]) == payload["sub"]:
        return "admin"
    return None


def get_current_principal(
    token: str = Depends(oauth2_scheme),
    state: "AppState" = Depends(get_app_state),
) -> str:
    """Restaurant or admin token of the current session."""
    principal = _session_principal(decode_access_token(token), state)
    if principal is None:
        raise HTTPException(status_code=401, detail="Session expired, login required")
    return principal


def get_optional_principal(
    token: Optional[str] = Depends(optional_oauth2_scheme),
    state: "AppState" = Depends(get_app_state),
) -> Optional[str]:
    if not token:
        return None
    try:
        payload = decode_access_token(token)
    except HTTPException:
        return None
    return _session_principal(payload, state)
