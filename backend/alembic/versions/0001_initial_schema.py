"""Initial schema: users, catalogue, deliveries and the activity log.

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("name", sa.String(255)),
        sa.Column("phone", sa.String(20)),
        sa.Column("role", sa.String(20), nullable=False, server_default="user"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "categories",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("category_name", sa.String(255), nullable=False, unique=True),
        sa.Column("category_description", sa.Text()),
        sa.Column("image", sa.String(500)),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_categories_active", "categories", ["active"])

    op.create_table(
        "products",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("description", sa.Text(), server_default=""),
        sa.Column("stock", sa.Integer(), server_default="0"),
        sa.Column("sold", sa.Integer(), server_default="0"),
        sa.Column("min_stock", sa.Integer(), server_default="0"),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("weight_kg", sa.Float()),
        sa.Column("category_id", sa.String(36), sa.ForeignKey("categories.id")),
        sa.Column("images", sa.JSON()),
        sa.Column("catalog", sa.Boolean(), server_default=sa.true()),
        sa.Column("active", sa.Boolean(), server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_products_category_id", "products", ["category_id"])
    op.create_index("ix_products_active_created", "products", ["active", "created_at"])

    op.create_table(
        "deliveries",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("order_id", sa.String(36), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), server_default="pending"),
        sa.Column("delivery_address", sa.Text()),
        sa.Column("pickup_location", sa.Text()),
        sa.Column("scheduled_date", sa.DateTime()),
        sa.Column("third_party_provider", sa.String(100)),
        sa.Column("assigned_vehicle", sa.String(50)),
        sa.Column("assigned_driver", sa.String(36)),
        sa.Column("delivery_fee", sa.Float()),
        sa.Column("estimated_delivery_time", sa.String(100)),
        sa.Column("notes", sa.Text()),
        sa.Column("delivered_at", sa.DateTime()),
        *_timestamps(),
    )
    op.create_index("ix_deliveries_order_id", "deliveries", ["order_id"])
    op.create_index("ix_deliveries_status", "deliveries", ["status"])

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("admin_id", sa.String(36), nullable=False),
        sa.Column("admin_name", sa.String(255), nullable=False),
        sa.Column("admin_email", sa.String(255), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("entity", sa.String(20), nullable=False),
        sa.Column("entity_id", sa.String(36)),
        sa.Column("entity_name", sa.String(255)),
        sa.Column("changes", sa.JSON()),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("requires_approval", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("reviewed_by", sa.String(36)),
        sa.Column("reviewed_by_name", sa.String(255)),
        sa.Column("reviewed_at", sa.DateTime()),
        sa.Column("review_notes", sa.Text()),
        sa.Column("ip_address", sa.String(64)),
        sa.Column("user_agent", sa.String(500)),
        sa.Column("metadata", sa.JSON()),
        *_timestamps(),
    )
    op.create_index("ix_activity_logs_admin_created", "activity_logs", ["admin_id", "created_at"])
    op.create_index("ix_activity_logs_status_created", "activity_logs", ["status", "created_at"])
    op.create_index("ix_activity_logs_entity_entity_id", "activity_logs", ["entity", "entity_id"])
    op.create_index("ix_activity_logs_action_created", "activity_logs", ["action", "created_at"])


def downgrade() -> None:
    op.drop_table("activity_logs")
    op.drop_table("deliveries")
    op.drop_table("products")
    op.drop_table("categories")
    op.drop_table("users")
