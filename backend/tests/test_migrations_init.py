"""
Test suite for database initialization and migrations.

Verifies that init_db creates the remote schema both through Alembic and
through the create_all fallback, and that the two agree on the tables.
"""

import os
import tempfile

import pytest
from sqlalchemy import create_engine, inspect, select
from sqlalchemy.orm import sessionmaker

from pedeai.db import init_db, Base
from pedeai.db.models import Pedido, Restaurante


EXPECTED_TABLES = {"restaurantes", "pedidos", "produtos", "usuarios", "admin_users", "system_logs"}


@pytest.fixture
def engine():
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as tmp:
        tmp_db_path = tmp.name
    engine = create_engine(f"sqlite:///{tmp_db_path}")
    yield engine
    engine.dispose()
    if os.path.exists(tmp_db_path):
        os.remove(tmp_db_path)


class TestInitDBFallback:
    """init_db with use_alembic=False."""

    def test_creates_all_tables(self, engine):
        init_db(engine, use_alembic=False)

        tables = set(inspect(engine).get_table_names())
        assert EXPECTED_TABLES.issubset(tables)

    def test_pedidos_keeps_remote_column_names(self, engine):
        init_db(engine, use_alembic=False, base=Base)

        columns = {col["name"] for col in inspect(engine).get_columns("pedidos")}
        assert {"id", "restaurante_id", "mesa", "itens", "quantidade", "Subtotal", "status", "created_at"} <= columns

    def test_enables_data_insertion(self, engine):
        init_db(engine, use_alembic=False)

        SessionLocal = sessionmaker(bind=engine)
        with SessionLocal() as session:
            restaurant = Restaurante(nome="Bar do Zé", email="dono@restaurante.com.br")
            session.add(restaurant)
            session.flush()
            session.add(Pedido(restaurante_id=restaurant.id, mesa="Mesa 7", itens="Suco", subtotal="R$ 8,00"))
            session.commit()

            pedido = session.execute(select(Pedido)).scalar_one()
            assert pedido.mesa == "Mesa 7"
            assert pedido.subtotal == "R$ 8,00"

    def test_is_safe_to_run_twice(self, engine):
        init_db(engine, use_alembic=False)
        init_db(engine, use_alembic=False)

        assert EXPECTED_TABLES.issubset(set(inspect(engine).get_table_names()))


class TestAlembicInitialization:
    """init_db with use_alembic=True runs the migration scripts."""

    def test_upgrade_to_head_creates_schema(self, engine):
        init_db(engine, use_alembic=True)

        tables = set(inspect(engine).get_table_names())
        assert EXPECTED_TABLES.issubset(tables)
        assert "alembic_version" in tables

    def test_migrated_schema_matches_models(self, engine):
        init_db(engine, use_alembic=True)

        inspector = inspect(engine)
        for table in Base.metadata.sorted_tables:
            migrated = {col["name"] for col in inspector.get_columns(table.name)}
            assert {col.name for col in table.columns} == migrated, table.name
