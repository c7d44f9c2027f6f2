"""
Settings and session store.

Holds the authenticated restaurant, the console admin session and the
restaurant settings. Settings changes are applied locally first and then
written to the remote restaurant record; while a write is in flight the
poller is told not to overwrite the local copy.
"""

import asyncio
import logging
import os
from typing import Any, Callable, Dict, Literal, Optional, Set

from pydantic import BaseModel, EmailStr, Field, ValidationError

from pedeai.db.dependencies import verify_password
from pedeai.errors import InvalidCredentials, NotAuthenticated, RemoteCallFailed, ValidationFailed
from pedeai.pedidos import parse_quantity
from pedeai.storage import LocalStore, Storage

logger = logging.getLogger(__name__)

SETTINGS_HOLD_SECONDS = float(os.getenv("PEDEAI_SETTINGS_HOLD_SECONDS", "3"))
MIN_PASSWORD_LENGTH = 6

TOKEN_KEY = "pedeai_restaurant_id"
ADMIN_KEY = "pedeai_admin_session"
ADMIN_EMAIL_KEY = "pedeai_admin_email"


class Settings(BaseModel):
    total_tables: int = Field(12, ge=0, le=500)
    flashing_enabled: bool = True
    restaurant_name: str = "Meu Restaurante"
    opening_time: str = "11:00"
    closing_time: str = "23:00"
    kitchen_closing_time: Optional[str] = None
    auto_close_table: bool = True
    sound_enabled: bool = True
    low_stock_alert: int = 15
    critical_stock_alert: int = 5
    accept_pix: bool = True
    accept_card: bool = True
    accept_cash: bool = True
    service_fee: float = Field(10.0, ge=0, le=100)
    whatsapp_number: str = ""
    auto_print: bool = False
    print_channel: Literal["network", "intent"] = "network"


# Settings that live in dedicated restaurant columns; the rest go in configuracoes.
_COLUMN_FIELDS = {
    "restaurant_name": "nome",
    "total_tables": "quantidade_mesas",
    "kitchen_closing_time": "horario_fecha_cozinha",
}


def settings_from_record(record: Dict[str, Any]) -> Settings:
    """Build Settings from a remote restaurant record, ignoring bad values."""
    values: Dict[str, Any] = {}
    extra = record.get("configuracoes") or {}
    if isinstance(extra, dict):
        values.update({k: v for k, v in extra.items() if k in Settings.model_fields})
    if record.get("nome"):
        values["restaurant_name"] = record["nome"]
    if record.get("quantidade_mesas") not in (None, ""):
        values["total_tables"] = parse_quantity(record["quantidade_mesas"], default=12)
    if record.get("horario_fecha_cozinha"):
        values["kitchen_closing_time"] = record["horario_fecha_cozinha"]

    defaults = Settings()
    clean: Dict[str, Any] = {}
    for key, value in values.items():
        try:
            Settings.model_validate({**defaults.model_dump(), key: value})
        except ValidationError:
            logger.warning("Ignoring invalid remote setting %s=%r", key, value)
            continue
        clean[key] = value
    return Settings.model_validate({**defaults.model_dump(), **clean})


def settings_to_record(settings: Settings, fields: Set[str]) -> Dict[str, Any]:
    """Remote restaurant column updates for the given settings fields."""
    record: Dict[str, Any] = {}
    extra: Dict[str, Any] = {}
    for field in fields:
        value = getattr(settings, field)
        column = _COLUMN_FIELDS.get(field)
        if column == "quantidade_mesas":
            record[column] = str(value)
        elif column:
            record[column] = value
        else:
            extra[field] = value
    if extra:
        record["configuracoes"] = extra
    return record


class LoginInput(BaseModel):
    email: EmailStr
    password: str = Field(min_length=MIN_PASSWORD_LENGTH, max_length=128)


def _field_errors(exc: ValidationError) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    for err in exc.errors():
        field = str(err["loc"][0]) if err.get("loc") else "input"
        errors.setdefault(field, err["msg"])
    return errors


def validate_login_input(email: str, password: str) -> LoginInput:
    """Validate the shape of a login before touching the network."""
    try:
        return LoginInput(email=(email or "").strip(), password=password or "")
    except ValidationError as e:
        raise ValidationFailed(_field_errors(e))


SettingsListener = Callable[[Settings, Settings], None]


class SessionStore:
    """Authentication state plus the optimistic settings mirror."""

    def __init__(
        self,
        storage: Storage,
        local_store: LocalStore,
        hold_seconds: float = SETTINGS_HOLD_SECONDS,
    ):
        self.storage = storage
        self.local_store = local_store
        self.hold_seconds = hold_seconds

        self.restaurant_id: Optional[str] = None
        self.restaurant: Optional[Dict[str, Any]] = None
        self.admin: Optional[Dict[str, Any]] = None

        self.settings = Settings()
        self._committed = Settings()
        self.pending: Set[str] = set()
        self.saving = False
        self._hold_handle: Optional[asyncio.TimerHandle] = None

        self.on_settings_changed: Optional[SettingsListener] = None

    @property
    def authenticated(self) -> bool:
        return self.restaurant_id is not None

    @property
    def is_admin(self) -> bool:
        return self.admin is not None

    def require_restaurant(self) -> str:
        if self.restaurant_id is None:
            raise NotAuthenticated()
        return self.restaurant_id

    # ---------- session ----------

    async def restore(self) -> bool:
        """Pick up a persisted session. Returns True if a restaurant session was restored."""
        token = self.local_store.get(TOKEN_KEY)
        admin_email = self.local_store.get(ADMIN_EMAIL_KEY) if self.local_store.get(ADMIN_KEY) else None

        if admin_email:
            try:
                admin = await asyncio.to_thread(self.storage.find_admin, admin_email)
            except Exception:
                logger.exception("Could not restore admin session")
                admin = None
            if admin and "admin" in (admin.get("roles") or []):
                self.admin = _public_admin(admin)
            else:
                self.local_store.remove(ADMIN_KEY)
                self.local_store.remove(ADMIN_EMAIL_KEY)

        if not token:
            return False
        try:
            record = await asyncio.to_thread(self.storage.get_restaurant, token)
        except Exception:
            logger.exception("Could not restore session for restaurant %s", token)
            return False
        if record is None:
            logger.info("Stored session %s no longer exists, login required", token)
            self.local_store.remove(TOKEN_KEY)
            return False
        self._start_session(record)
        return True

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        creds = validate_login_input(email, password)
        try:
            record = await asyncio.to_thread(self.storage.find_restaurant_by_email, creds.email)
        except Exception as e:
            logger.error("Login lookup failed: %s", e)
            raise RemoteCallFailed("check credentials", e)

        if record is None or not verify_password(creds.password, record.get("senha")):
            raise InvalidCredentials()

        self._start_session(record)
        self.local_store.set(TOKEN_KEY, record["id"])
        logger.info("Restaurant %s logged in", record["id"])
        return self.restaurant

    async def admin_login(self, email: str, password: str) -> Dict[str, Any]:
        creds = validate_login_input(email, password)
        try:
            admin = await asyncio.to_thread(self.storage.find_admin, creds.email)
        except Exception as e:
            logger.error("Admin login lookup failed: %s", e)
            raise RemoteCallFailed("check credentials", e)

        if (
            admin is None
            or "admin" not in (admin.get("roles") or [])
            or not verify_password(creds.password, admin.get("password_hash"))
        ):
            raise InvalidCredentials()

        self.admin = _public_admin(admin)
        self.local_store.set(ADMIN_KEY, True)
        self.local_store.set(ADMIN_EMAIL_KEY, admin["email"])
        logger.info("Admin %s logged in", admin["email"])
        return self.admin

    def logout(self) -> None:
        self._cancel_hold()
        self.saving = False
        self.restaurant_id = None
        self.restaurant = None
        self.admin = None
        self.pending.clear()
        old = self.settings
        self.settings = Settings()
        self._committed = Settings()
        for key in (TOKEN_KEY, ADMIN_KEY, ADMIN_EMAIL_KEY):
            self.local_store.remove(key)
        self._emit(old, self.settings)

    def _start_session(self, record: Dict[str, Any]) -> None:
        self.restaurant_id = record["id"]
        self.restaurant = {k: v for k, v in record.items() if k != "senha"}
        self.apply_remote_settings(record, force=True)

    # ---------- settings ----------

    def apply_remote_settings(self, record: Dict[str, Any], force: bool = False) -> bool:
        """
        Poll sink for the restaurant record.

        Skipped while a local save holds the settings; returns whether the
        record was applied.
        """
        if self.saving and not force:
            return False
        remote = settings_from_record(record)
        old = self.settings
        self.settings = remote
        self._committed = remote
        self.pending.clear()
        self.restaurant = {k: v for k, v in record.items() if k != "senha"}
        self._emit(old, remote)
        return True

    def update_settings_optimistic(self, partial: Dict[str, Any]) -> Settings:
        """Apply a partial settings change locally, marking the fields pending."""
        unknown = [k for k in partial if k not in Settings.model_fields]
        if unknown:
            raise ValidationFailed({k: "unknown setting" for k in unknown})
        try:
            updated = Settings.model_validate({**self.settings.model_dump(), **partial})
        except ValidationError as e:
            raise ValidationFailed(_field_errors(e))
        old = self.settings
        self.settings = updated
        self.pending.update(partial)
        self._emit(old, updated)
        return updated

    async def commit_settings(self, partial: Dict[str, Any]) -> Settings:
        """
        Optimistically apply, then persist to the restaurant record.

        Polls are held off from the moment the local change is made until a
        fixed delay after the write completes. A failed write rolls the
        changed fields back to their last committed values.
        """
        restaurant_id = self.require_restaurant()
        updated = self.update_settings_optimistic(partial)
        fields = set(partial)

        self.saving = True
        self._cancel_hold()
        try:
            echo = await asyncio.to_thread(
                self.storage.update_restaurant,
                restaurant_id,
                settings_to_record(updated, fields),
            )
        except Exception as e:
            logger.error("Saving settings for %s failed: %s", restaurant_id, e)
            self._rollback(fields)
            self._schedule_hold_release()
            raise RemoteCallFailed("save settings", e)

        self._confirm(fields, settings_from_record(echo))
        self.restaurant = {k: v for k, v in echo.items() if k != "senha"}
        self._schedule_hold_release()
        return self.settings

    def _confirm(self, fields: Set[str], echoed: Settings) -> None:
        self.pending.difference_update(fields)
        # Fields still pending from another in-flight save keep their local value
        overlay = {f: getattr(self.settings, f) for f in self.pending}
        old = self.settings
        self._committed = echoed
        self.settings = echoed.model_copy(update=overlay)
        self._emit(old, self.settings)

    def _rollback(self, fields: Set[str]) -> None:
        old = self.settings
        self.settings = self.settings.model_copy(
            update={f: getattr(self._committed, f) for f in fields}
        )
        self.pending.difference_update(fields)
        self._emit(old, self.settings)

    def _schedule_hold_release(self) -> None:
        self._cancel_hold()
        loop = asyncio.get_running_loop()
        self._hold_handle = loop.call_later(self.hold_seconds, self._release_hold)

    def _release_hold(self) -> None:
        self._hold_handle = None
        self.saving = False

    def _cancel_hold(self) -> None:
        if self._hold_handle is not None:
            self._hold_handle.cancel()
            self._hold_handle = None

    def _emit(self, old: Settings, new: Settings) -> None:
        if self.on_settings_changed is not None and old != new:
            self.on_settings_changed(old, new)


def _public_admin(admin: Dict[str, Any]) -> Dict[str, Any]:
    return {"id": admin["id"], "email": admin["email"], "roles": list(admin.get("roles") or [])}
