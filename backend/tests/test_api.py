"""HTTP API tests: auth, order queue, table grid, settings, undo and admin."""

import pytest

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, RESTAURANT_EMAIL, RESTAURANT_PASSWORD, add_pedido


# ---------- auth ----------

@pytest.mark.asyncio
async def test_login_returns_bearer_token(async_client, restaurant):
    response = await async_client.post(
        "/api/auth/login",
        json={"email": RESTAURANT_EMAIL, "password": RESTAURANT_PASSWORD},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["restaurant"]["id"] == restaurant["id"]
    assert "senha" not in data["restaurant"]


@pytest.mark.asyncio
async def test_login_with_bad_password(async_client, restaurant):
    response = await async_client.post(
        "/api/auth/login",
        json={"email": RESTAURANT_EMAIL, "password": "errada123"},
    )

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email or password"


@pytest.mark.asyncio
async def test_login_with_malformed_email(async_client):
    response = await async_client.post("/api/auth/login", json={"email": "dono", "password": "segredo123"})

    assert response.status_code == 400
    assert "email" in response.json()["errors"]


@pytest.mark.asyncio
async def test_protected_routes_require_token(async_client):
    response = await async_client.get("/api/orders")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_token_is_useless_after_logout(async_client, auth_headers):
    response = await async_client.post("/api/auth/logout", headers=auth_headers)
    assert response.status_code == 200

    response = await async_client.get("/api/orders", headers=auth_headers)
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_session_endpoint(async_client, auth_headers, restaurant):
    response = await async_client.get("/api/auth/session", headers=auth_headers)

    data = response.json()
    assert data["authenticated"] is True
    assert data["restaurant"]["nome"] == "Bar do Zé"
    assert data["settings"]["total_tables"] == 12


@pytest.mark.asyncio
async def test_anonymous_logout_is_rejected(async_client, auth_headers, app_state):
    response = await async_client.post("/api/auth/logout")
    assert response.status_code == 401

    response = await async_client.post("/api/auth/logout", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401

    assert app_state.session.authenticated
    response = await async_client.get("/api/tables", headers=auth_headers)
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_anonymous_session_reveals_nothing(async_client, auth_headers):
    response = await async_client.get("/api/auth/session")

    assert response.status_code == 200
    data = response.json()
    assert data["authenticated"] is False
    assert data["restaurant"] is None
    assert data["admin"] is None
    assert data["settings"] is None


@pytest.mark.asyncio
async def test_admin_token_can_log_out(async_client, admin):
    response = await async_client.post(
        "/api/auth/admin/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}
    )
    headers = {"Authorization": f"Bearer {response.json()['access_token']}"}

    session = (await async_client.get("/api/auth/session", headers=headers)).json()
    assert session["admin"]["email"] == ADMIN_EMAIL

    response = await async_client.post("/api/auth/logout", headers=headers)
    assert response.status_code == 200

    response = await async_client.get("/api/admin/restaurants", headers=headers)
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_signup_then_login(async_client, monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "dev")
    response = await async_client.post(
        "/api/auth/signup",
        json={"name": "Lanchonete", "email": "lanche@restaurante.com.br", "password": "lanche123", "tables": 6},
    )
    assert response.status_code == 200
    assert "senha" not in response.json()

    response = await async_client.post(
        "/api/auth/login",
        json={"email": "lanche@restaurante.com.br", "password": "lanche123"},
    )
    assert response.status_code == 200

    tables = await async_client.get(
        "/api/tables",
        headers={"Authorization": f"Bearer {response.json()['access_token']}"},
    )
    assert len(tables.json()) == 6


@pytest.mark.asyncio
async def test_signup_disabled_outside_dev(async_client, monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "production")
    response = await async_client.post(
        "/api/auth/signup",
        json={"name": "X", "email": "x@restaurante.com.br", "password": "segredo123"},
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_duplicate_signup_is_rejected(async_client, restaurant):
    response = await async_client.post(
        "/api/auth/signup",
        json={"name": "Outro", "email": RESTAURANT_EMAIL, "password": "segredo123"},
    )
    assert response.status_code == 400


# ---------- orders and tables ----------

@pytest.mark.asyncio
async def test_list_orders_and_tables(async_client, auth_headers, storage, restaurant, app_state):
    add_pedido(storage, restaurant["id"], "Mesa 7", "Suco, Suco, Bolo", "3", "R$ 27,00")
    await app_state.poller.tick()

    orders = (await async_client.get("/api/orders", headers=auth_headers)).json()
    assert orders[0]["table"] == 7
    assert orders[0]["total"] == 27.0

    table = (await async_client.get("/api/tables/7", headers=auth_headers)).json()
    assert table["status"] == "occupied"
    assert {i["name"]: i["quantity"] for i in table["consumption"]} == {"Suco": 2, "Bolo": 1}


@pytest.mark.asyncio
async def test_filter_orders_by_status_synonym(async_client, auth_headers, storage, restaurant, app_state):
    add_pedido(storage, restaurant["id"], "Mesa 1", "Suco", "1", "R$ 8,00", status="pendente")
    add_pedido(storage, restaurant["id"], "Mesa 2", "Bolo", "1", "R$ 9,00", status="pronto")
    await app_state.poller.tick()

    response = await async_client.get("/api/orders", params={"status": "Pronto"}, headers=auth_headers)

    assert [o["table"] for o in response.json()] == [2]


@pytest.mark.asyncio
async def test_add_order_decrements_stock_and_auto_prints(async_client, auth_headers, storage, restaurant, app_state, printed):
    product = storage.insert_product(restaurant["id"], {"nome": "Suco", "preco": "R$ 8,00", "estoque": 10, "ativo": True})
    await app_state.poller.tick()
    await app_state.session.commit_settings({"auto_print": True})

    response = await async_client.post(
        "/api/orders",
        json={"table": 3, "items": [{"product_id": product["id"], "quantity": 2}], "note": "sem gelo"},
        headers=auth_headers,
    )

    assert response.status_code == 201
    order = response.json()
    assert order["table"] == 3
    assert order["total"] == 16.0
    assert order["note"] == "sem gelo"

    stored = storage.list_orders(restaurant["id"])[0]
    assert stored["mesa"] == "Mesa 3"
    assert stored["itens"] == "Suco, Suco"
    assert storage.list_products(restaurant["id"])[0]["estoque"] == 8
    assert app_state.find_product(product["id"]).stock == 8

    # Auto-print runs in the background
    for task in list(app_state._background):
        await task
    assert len(printed) == 1


@pytest.mark.asyncio
async def test_stock_failure_does_not_hide_placed_order(
    async_client, auth_headers, storage, restaurant, app_state, printed, monkeypatch
):
    suco = storage.insert_product(restaurant["id"], {"nome": "Suco", "preco": "R$ 8,00", "estoque": 10})
    bolo = storage.insert_product(restaurant["id"], {"nome": "Bolo", "preco": "R$ 9,00", "estoque": 5})
    await app_state.poller.tick()
    await app_state.session.commit_settings({"auto_print": True})

    adjust_stock = storage.adjust_stock

    def flaky(product_id, delta):
        if product_id == suco["id"]:
            raise ConnectionError("offline")
        return adjust_stock(product_id, delta)

    monkeypatch.setattr(storage, "adjust_stock", flaky)

    response = await async_client.post(
        "/api/orders",
        json={"table": 2, "items": [{"product_id": suco["id"], "quantity": 1}, {"product_id": bolo["id"], "quantity": 2}]},
        headers=auth_headers,
    )

    assert response.status_code == 201
    assert len(storage.list_orders(restaurant["id"])) == 1
    stock = {p["nome"]: p["estoque"] for p in storage.list_products(restaurant["id"])}
    assert stock == {"Suco": 10, "Bolo": 3}
    assert app_state.find_product(bolo["id"]).stock == 3

    for task in list(app_state._background):
        await task
    assert len(printed) == 1


@pytest.mark.asyncio
async def test_add_order_for_unknown_table(async_client, auth_headers, storage, restaurant, app_state):
    product = storage.insert_product(restaurant["id"], {"nome": "Suco", "preco": "R$ 8,00"})
    await app_state.poller.tick()

    response = await async_client.post(
        "/api/orders",
        json={"table": 99, "items": [{"product_id": product["id"], "quantity": 1}]},
        headers=auth_headers,
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_status_and_delete(async_client, auth_headers, storage, restaurant, app_state):
    record = add_pedido(storage, restaurant["id"], "Mesa 1", "Suco", "1", "R$ 8,00")
    await app_state.poller.tick()

    response = await async_client.patch(
        f"/api/orders/{record['id']}/status", json={"status": "em preparo"}, headers=auth_headers
    )
    assert response.json()["status"] == "preparing"
    assert storage.list_orders(restaurant["id"])[0]["status"] == "preparando"

    response = await async_client.delete(f"/api/orders/{record['id']}", headers=auth_headers)
    assert response.status_code == 204
    assert storage.list_orders(restaurant["id"]) == []

    response = await async_client.delete(f"/api/orders/{record['id']}", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_remote_failure_maps_to_502(async_client, auth_headers, storage, restaurant, app_state, monkeypatch):
    record = add_pedido(storage, restaurant["id"], "Mesa 1", "Suco", "1", "R$ 8,00")
    await app_state.poller.tick()

    def boom(order_id, status):
        raise ConnectionError("offline")

    monkeypatch.setattr(storage, "update_order_status", boom)

    response = await async_client.post(f"/api/orders/{record['id']}/deliver", headers=auth_headers)

    assert response.status_code == 502
    assert response.json()["detail"] == "Could not update order: offline"
    assert app_state.find_order(record["id"]).status == "pending"
    assert not app_state.undo.armed


@pytest.mark.asyncio
async def test_close_table_and_undo(async_client, auth_headers, storage, restaurant, app_state):
    add_pedido(storage, restaurant["id"], "Mesa 5", "Suco", "1", "R$ 8,00", status="pedindo conta")
    await app_state.poller.tick()
    assert (await async_client.get("/api/tables/5", headers=auth_headers)).json()["alert"] == "bill"

    response = await async_client.post("/api/tables/5/close", headers=auth_headers)
    assert response.json()["status"] == "free"

    undo = (await async_client.get("/api/undo", headers=auth_headers)).json()
    assert undo["action"]["kind"] == "close_table"
    assert undo["remaining"] == 5

    response = await async_client.post("/api/undo", headers=auth_headers)
    assert response.json()["action"]["kind"] == "close_table"

    table = (await async_client.get("/api/tables/5", headers=auth_headers)).json()
    assert table["status"] == "occupied"
    assert table["alert"] == "bill"

    response = await async_client.post("/api/undo", headers=auth_headers)
    assert response.json()["action"] is None


@pytest.mark.asyncio
async def test_resolve_alert_and_dismiss_undo(async_client, auth_headers, storage, restaurant, app_state):
    add_pedido(storage, restaurant["id"], "Mesa 2", "Suco", "1", "R$ 8,00", status="chamando garçom")
    await app_state.poller.tick()

    response = await async_client.post("/api/tables/2/resolve-alert", headers=auth_headers)
    assert response.json()["alert"] is None

    response = await async_client.delete("/api/undo", headers=auth_headers)
    assert response.status_code == 204
    assert (await async_client.get("/api/undo", headers=auth_headers)).json()["action"] is None


@pytest.mark.asyncio
async def test_bill_endpoint(async_client, auth_headers, storage, restaurant, app_state):
    add_pedido(storage, restaurant["id"], "Mesa 4", "Pastel", "7", "R$ 70,00")
    await app_state.poller.tick()

    bill = (await async_client.get("/api/tables/4/bill", headers=auth_headers)).json()

    assert bill["subtotal"] == 70.0
    assert bill["service_fee_percentage"] == 10.0
    assert bill["total_with_fee"] == 77.0


@pytest.mark.asyncio
async def test_print_bill_endpoint(async_client, auth_headers, storage, restaurant, app_state, printed):
    add_pedido(storage, restaurant["id"], "Mesa 4", "Pastel", "7", "R$ 70,00")
    await app_state.poller.tick()

    response = await async_client.post("/api/tables/4/print-bill", headers=auth_headers)

    assert response.json()["success"] is True
    assert len(printed) == 1


# ---------- settings, products, customers, analytics ----------

@pytest.mark.asyncio
async def test_settings_patch(async_client, auth_headers, storage, restaurant):
    response = await async_client.patch("/api/settings", json={"total_tables": 8, "service_fee": 12}, headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["settings"]["total_tables"] == 8
    assert data["pending"] == []
    assert data["saving"] is True
    assert storage.get_restaurant(restaurant["id"])["quantidade_mesas"] == "8"

    tables = (await async_client.get("/api/tables", headers=auth_headers)).json()
    assert len(tables) == 8


@pytest.mark.asyncio
async def test_settings_patch_rejects_unknown_field(async_client, auth_headers):
    response = await async_client.patch("/api/settings", json={"tema": "escuro"}, headers=auth_headers)

    assert response.status_code == 400
    assert "tema" in response.json()["errors"]


@pytest.mark.asyncio
async def test_product_crud(async_client, auth_headers, storage, restaurant):
    response = await async_client.post(
        "/api/products",
        json={"name": "Coxinha", "price": 7.5, "category": "Salgados", "station": "kitchen", "stock": 30},
        headers=auth_headers,
    )
    assert response.status_code == 201
    product = response.json()
    assert product["price"] == 7.5
    assert storage.list_products(restaurant["id"])[0]["preco"] == "R$ 7,50"

    response = await async_client.patch(f"/api/products/{product['id']}", json={"price": 8}, headers=auth_headers)
    assert response.json()["price"] == 8.0
    assert response.json()["name"] == "Coxinha"

    response = await async_client.delete(f"/api/products/{product['id']}", headers=auth_headers)
    assert response.status_code == 204
    assert (await async_client.get("/api/products", headers=auth_headers)).json() == []


@pytest.mark.asyncio
async def test_product_patch_rejects_null_price_and_name(async_client, auth_headers, storage, restaurant, app_state):
    product = storage.insert_product(restaurant["id"], {"nome": "Coxinha", "preco": "R$ 7,50"})
    await app_state.poller.tick()

    for body in ({"price": None}, {"name": None}):
        response = await async_client.patch(f"/api/products/{product['id']}", json=body, headers=auth_headers)
        assert response.status_code == 422, body

    stored = storage.list_products(restaurant["id"])[0]
    assert stored["preco"] == "R$ 7,50"
    assert stored["nome"] == "Coxinha"

    # Nullable fields can still be cleared
    response = await async_client.patch(
        f"/api/products/{product['id']}", json={"description": None, "stock": 4}, headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json()["price"] == 7.5


@pytest.mark.asyncio
async def test_customers(async_client, auth_headers, storage, restaurant, app_state):
    storage.insert_user(restaurant["id"], {"nome": "Ana", "telefone": "11999990000", "quantas_vezes_foi": "2"})
    await app_state.poller.tick()

    customers = (await async_client.get("/api/customers", headers=auth_headers)).json()
    assert customers[0]["name"] == "Ana"
    assert customers[0]["visits"] == 2


@pytest.mark.asyncio
async def test_analytics_endpoints(async_client, auth_headers, storage, restaurant, app_state):
    add_pedido(storage, restaurant["id"], "Mesa 1", "Suco, Suco", "2", "R$ 16,00")
    await app_state.poller.tick()

    daily = (await async_client.get("/api/analytics/daily", headers=auth_headers)).json()
    assert daily["total_orders"] == 1
    assert daily["top_products"][0]["name"] == "Suco"

    for path in ("weekly", "monthly", "sales-chart", "peak-hours", "occupancy", "low-stock"):
        response = await async_client.get(f"/api/analytics/{path}", headers=auth_headers)
        assert response.status_code == 200, path

    occupancy = (await async_client.get("/api/analytics/occupancy", headers=auth_headers)).json()
    assert occupancy["occupied"] == 1


# ---------- admin ----------

@pytest.mark.asyncio
async def test_admin_lists_and_creates_restaurants(async_client, admin, restaurant):
    response = await async_client.post(
        "/api/auth/admin/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}
    )
    assert response.status_code == 200
    headers = {"Authorization": f"Bearer {response.json()['access_token']}"}

    response = await async_client.post(
        "/api/admin/restaurants",
        json={"name": "Pizzaria", "email": "pizza@restaurante.com.br", "password": "pizza123", "tables": 20},
        headers=headers,
    )
    assert response.status_code == 201
    assert response.json()["quantidade_mesas"] == "20"

    listing = (await async_client.get("/api/admin/restaurants", headers=headers)).json()
    assert {r["email"] for r in listing} == {RESTAURANT_EMAIL, "pizza@restaurante.com.br"}
    assert all("senha" not in r for r in listing)


@pytest.mark.asyncio
async def test_restaurant_token_cannot_reach_admin(async_client, auth_headers):
    response = await async_client.get("/api/admin/restaurants", headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_health(async_client):
    response = await async_client.get("/health")
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_add_order_with_inactive_product(async_client, auth_headers, storage, restaurant, app_state):
    product = storage.insert_product(restaurant["id"], {"nome": "Caipirinha", "preco": "R$ 18,00", "ativo": False})
    await app_state.poller.tick()

    response = await async_client.post(
        "/api/orders",
        json={"table": 1, "items": [{"product_id": product["id"], "quantity": 1}]},
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert storage.list_orders(restaurant["id"]) == []


@pytest.mark.asyncio
async def test_admin_reads_filtered_system_log(async_client, auth_headers, admin, storage, restaurant, app_state):
    product = storage.insert_product(restaurant["id"], {"nome": "Suco", "preco": "R$ 8,00", "estoque": 10})
    await app_state.poller.tick()
    await async_client.post("/api/auth/login", json={"email": RESTAURANT_EMAIL, "password": "errada123"})
    await async_client.post(
        "/api/orders", json={"table": 1, "items": [{"product_id": product["id"]}]}, headers=auth_headers
    )

    response = await async_client.post(
        "/api/auth/admin/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}
    )
    headers = {"Authorization": f"Bearer {response.json()['access_token']}"}

    data = (await async_client.get("/api/admin/logs", headers=headers)).json()
    assert data["stats"]["total"] == len(data["logs"]) == 4
    assert data["stats"]["warnings"] == 1
    assert data["stats"]["success"] == 3
    assert data["logs"][0]["message"] == "Admin logged in"

    auth = (await async_client.get("/api/admin/logs", params={"category": "auth"}, headers=headers)).json()
    assert [e["message"] for e in auth["logs"]] == ["Admin logged in", "Failed restaurant login", "Restaurant logged in"]

    warnings = (await async_client.get("/api/admin/logs", params={"level": "warning"}, headers=headers)).json()
    assert warnings["logs"][0]["details"] == {"email": RESTAURANT_EMAIL}

    orders = (
        await async_client.get(
            "/api/admin/logs", params={"category": "order", "restaurant_id": restaurant["id"]}, headers=headers
        )
    ).json()
    assert len(orders["logs"]) == 1
    assert orders["logs"][0]["details"]["table"] == 1

    other = (await async_client.get("/api/admin/logs", params={"restaurant_id": "outro"}, headers=headers)).json()
    assert other["logs"] == []


@pytest.mark.asyncio
async def test_system_log_rejects_unknown_level_and_restaurant_tokens(async_client, auth_headers, admin):
    response = await async_client.get("/api/admin/logs", headers=auth_headers)
    assert response.status_code == 403

    response = await async_client.post(
        "/api/auth/admin/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}
    )
    headers = {"Authorization": f"Bearer {response.json()['access_token']}"}
    response = await async_client.get("/api/admin/logs", params={"level": "debug"}, headers=headers)
    assert response.status_code == 422
