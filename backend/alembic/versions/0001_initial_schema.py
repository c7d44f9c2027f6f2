"""initial schema: restaurantes, pedidos, produtos, usuarios, admin_users

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 10:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "restaurantes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("nome", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("senha", sa.String(255), nullable=True),
        sa.Column("telefone", sa.String(50), nullable=True),
        sa.Column("quantidade_mesas", sa.String(10), nullable=True),
        sa.Column("quantidade_max_mesas", sa.String(10), nullable=True),
        sa.Column("horario_fecha_cozinha", sa.String(10), nullable=True),
        sa.Column("configuracoes", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_restaurantes_email", "restaurantes", ["email"], unique=True)

    op.create_table(
        "pedidos",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("restaurante_id", sa.String(36), sa.ForeignKey("restaurantes.id"), nullable=True),
        sa.Column("mesa", sa.String(50), nullable=True),
        sa.Column("itens", sa.Text(), nullable=True),
        sa.Column("quantidade", sa.String(20), nullable=True),
        sa.Column("Subtotal", sa.String(50), nullable=True),
        sa.Column("status", sa.String(50), nullable=True),
        sa.Column("descricao", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_pedidos_restaurante_id", "pedidos", ["restaurante_id"])
    op.create_index("idx_pedidos_restaurante_mesa", "pedidos", ["restaurante_id", "mesa"])
    op.create_index("idx_pedidos_created", "pedidos", ["created_at"])

    op.create_table(
        "produtos",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("restaurante_id", sa.String(36), sa.ForeignKey("restaurantes.id"), nullable=True),
        sa.Column("nome", sa.String(255), nullable=True),
        sa.Column("preco", sa.String(50), nullable=True),
        sa.Column("categoria", sa.String(100), nullable=True),
        sa.Column("estacao", sa.String(20), nullable=True),
        sa.Column("estoque", sa.Integer(), nullable=True),
        sa.Column("estoque_minimo", sa.Integer(), nullable=True),
        sa.Column("descricao", sa.Text(), nullable=True),
        sa.Column("ativo", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_produtos_restaurante_id", "produtos", ["restaurante_id"])

    op.create_table(
        "usuarios",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("id_restaurante", sa.String(36), sa.ForeignKey("restaurantes.id"), nullable=True),
        sa.Column("nome", sa.String(255), nullable=True),
        sa.Column("telefone", sa.String(50), nullable=True),
        sa.Column("mesa_atual", sa.String(50), nullable=True),
        sa.Column("quantas_vezes_foi", sa.String(20), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_usuarios_id_restaurante", "usuarios", ["id_restaurante"])

    op.create_table(
        "admin_users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("roles", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_admin_users_id", "admin_users", ["id"])
    op.create_index("ix_admin_users_email", "admin_users", ["email"], unique=True)


def downgrade() -> None:
    op.drop_table("admin_users")
    op.drop_table("usuarios")
    op.drop_table("produtos")
    op.drop_table("pedidos")
    op.drop_table("restaurantes")
