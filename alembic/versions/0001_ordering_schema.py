"""ordering portal schema

Revision ID: 0001_ordering
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_ordering"
down_revision = None
branch_labels = None
depends_on = None

ORDER_STATUSES = [
    (1, "Abierto", "#3b82f6"),
    (2, "En Producción", "#f59e0b"),
    (3, "Enviado", "#8b5cf6"),
    (4, "Entregado", "#10b981"),
    (5, "Cancelado", "#ef4444"),
    (6, "Facturado", "#14b8a6"),
    (7, "Cerrado", "#6b7280"),
]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.Enum("ADMIN", "CLIENT", name="user_role"), nullable=False, server_default="CLIENT"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "products",
        sa.Column("product_id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(length=64), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )

    status_table = op.create_table(
        "order_status",
        sa.Column("status_id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("status_name", sa.String(length=64), nullable=False, unique=True),
        sa.Column("status_color", sa.String(length=16), nullable=True),
    )
    op.bulk_insert(
        status_table,
        [{"status_id": sid, "status_name": name, "status_color": color} for sid, name, color in ORDER_STATUSES],
    )

    op.create_table(
        "orders",
        sa.Column("order_id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("branch_id", sa.Integer(), nullable=True),
        sa.Column("total_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("subtotal", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("tax_amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("invoice_total", sa.Numeric(14, 2), nullable=True),
        sa.Column("delivery_date", sa.Date(), nullable=True),
        sa.Column("status_id", sa.Integer(), sa.ForeignKey("order_status.status_id"), nullable=False, server_default="1"),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("last_status_update", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_orders_status_delivery_date", "orders", ["status_id", "delivery_date"])
    op.create_index("ix_orders_user_id", "orders", ["user_id"])

    op.create_table(
        "order_details",
        sa.Column("order_detail_id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.order_id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.product_id"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(14, 2), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_order_details_quantity_positive"),
        sa.CheckConstraint("unit_price >= 0", name="ck_order_details_unit_price_non_negative"),
    )
    op.create_index("ix_order_details_order_id", "order_details", ["order_id"])

    op.create_table(
        "admin_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_time_limit", sa.String(length=5), nullable=False, server_default="18:00"),
        sa.Column("home_banner_image_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("id = 1", name="ck_admin_settings_singleton"),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("actor_identifier", sa.String(length=255), nullable=False),
        sa.Column("action_type", sa.String(length=64), nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=True),
        sa.Column("before_snapshot", sa.JSON(), nullable=True),
        sa.Column("after_snapshot", sa.JSON(), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("admin_settings")
    op.drop_index("ix_order_details_order_id", table_name="order_details")
    op.drop_table("order_details")
    op.drop_index("ix_orders_user_id", table_name="orders")
    op.drop_index("ix_orders_status_delivery_date", table_name="orders")
    op.drop_table("orders")
    op.drop_table("order_status")
    op.drop_table("products")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
    sa.Enum(name="user_role").drop(op.get_bind(), checkfirst=True)
