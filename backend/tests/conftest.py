import os
import sys
from typing import Any, Dict, List

import pytest
import pytest_asyncio

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import httpx
from httpx import ASGITransport

from pedeai.db.dependencies import hash_password
from pedeai.main import create_app
from pedeai.printing import Printer
from pedeai.state import AppState
from pedeai.storage import InMemoryStorage, LocalStore


RESTAURANT_EMAIL = "dono@restaurante.com.br"
RESTAURANT_PASSWORD = "segredo123"
ADMIN_EMAIL = "admin@pedeai.com.br"
ADMIN_PASSWORD = "admin12345"


@pytest.fixture
def storage():
    """Fresh in-memory remote store for each test."""
    storage = InMemoryStorage()
    yield storage
    storage.clear()


@pytest.fixture
def restaurant(storage) -> Dict[str, Any]:
    return storage.create_restaurant({
        "nome": "Bar do Zé",
        "email": RESTAURANT_EMAIL,
        "senha": hash_password(RESTAURANT_PASSWORD),
        "quantidade_mesas": "12",
        "configuracoes": {},
    })


@pytest.fixture
def admin(storage) -> Dict[str, Any]:
    return storage.create_admin(ADMIN_EMAIL, hash_password(ADMIN_PASSWORD), ["admin"])


@pytest.fixture
def local_store(tmp_path):
    return LocalStore(str(tmp_path / "session.json"))


@pytest.fixture
def printed() -> List[httpx.Request]:
    """Requests that reached the (mocked) printer bridge."""
    return []


@pytest.fixture
def printer(printed):
    def handler(request: httpx.Request) -> httpx.Response:
        printed.append(request)
        return httpx.Response(200, json={"ok": True})

    return Printer(url="http://printer.test/print", transport=httpx.MockTransport(handler))


@pytest_asyncio.fixture
async def app_state(storage, local_store, printer):
    """
    AppState with timers stretched out so tests drive polling and the undo
    countdown explicitly.
    """
    state = AppState(
        storage,
        local_store,
        poll_interval=3600,
        hold_seconds=0.05,
        undo_ticks=5,
        undo_tick_seconds=3600,
        printer=printer,
    )
    yield state
    await state.shutdown()


@pytest_asyncio.fixture
async def logged_in(app_state, restaurant):
    await app_state.login(RESTAURANT_EMAIL, RESTAURANT_PASSWORD)
    return app_state


@pytest_asyncio.fixture
async def async_client(app_state):
    """Create async HTTP client for testing."""
    app = create_app(app_state)
    async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def auth_headers(async_client, restaurant) -> Dict[str, str]:
    response = await async_client.post(
        "/api/auth/login",
        json={"email": RESTAURANT_EMAIL, "password": RESTAURANT_PASSWORD},
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def add_pedido(storage, restaurant_id: str, mesa: str, itens: str, quantidade: str, subtotal: str,
               status: str = "pendente", **extra) -> Dict[str, Any]:
    """Insert a raw order the way the ordering channel writes it."""
    record = {
        "mesa": mesa,
        "itens": itens,
        "quantidade": quantidade,
        "Subtotal": subtotal,
        "status": status,
    }
    record.update(extra)
    return storage.insert_order(restaurant_id, record)
