"""order core: catalog, orders, serials, orphan payments, receipt outbox

Revision ID: 20251001_order_core
Revises:
Create Date: 2025-10-01
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20251001_order_core"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(150), nullable=False, unique=True),
        sa.Column("email", sa.String(255), nullable=True, unique=True),
        sa.Column("password_hash", sa.String(200), nullable=False),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_user_email", "user", ["email"])

    op.create_table(
        "customer",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("first_name", sa.String(120), nullable=False),
        sa.Column("last_name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("phone", sa.String(40), nullable=True),
        sa.Column("delivery_address", sa.Text(), nullable=True),
        sa.Column("billing_address", sa.Text(), nullable=True),
        sa.Column("country", sa.String(80), nullable=True),
        sa.Column("state", sa.String(80), nullable=True),
        sa.Column("registered_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_customer_email", "customer", ["email"])

    op.create_table(
        "product",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category_slug", sa.String(120), nullable=False),
        sa.Column("images", sa.JSON(), nullable=False),
        sa.Column("price_ngn", sa.Numeric(12, 2), nullable=True),
        sa.Column("price_usd", sa.Numeric(12, 2), nullable=True),
        sa.Column("price_eur", sa.Numeric(12, 2), nullable=True),
        sa.Column("price_gbp", sa.Numeric(12, 2), nullable=True),
        sa.Column("size_mods", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_product_category_slug", "product", ["category_slug"])

    op.create_table(
        "variant",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_id", sa.String(64), sa.ForeignKey("product.id", ondelete="CASCADE"), nullable=False),
        sa.Column("color", sa.String(60), nullable=False),
        sa.Column("size", sa.String(60), nullable=False),
        sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("weight", sa.Float(), nullable=True),
        sa.UniqueConstraint("product_id", "color", "size", name="uq_variant_product_color_size"),
        sa.CheckConstraint("stock >= 0", name="ck_variant_stock_non_negative"),
    )
    op.create_index("ix_variant_product_id", "variant", ["product_id"])

    op.create_table(
        "order_serial",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
    )

    op.create_table(
        "order",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="Processing"),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_ngn", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("payment_method", sa.String(40), nullable=False),
        sa.Column("payment_reference", sa.String(120), nullable=True),
        sa.Column("payment_provider_id", sa.String(64), nullable=True),
        sa.Column("payment_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("channel", sa.String(16), nullable=False, server_default="ONLINE"),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customer.id", ondelete="SET NULL"), nullable=True),
        sa.Column("guest_info", sa.JSON(), nullable=True),
        sa.Column("staff_id", sa.Integer(), sa.ForeignKey("user.id", ondelete="SET NULL"), nullable=True),
        sa.Column("delivery_fee", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("delivery_details", sa.JSON(), nullable=True),
        sa.Column("refunded_at", sa.DateTime(), nullable=True),
        sa.Column("refund_reason", sa.Text(), nullable=True),
        sa.Column("refund_transaction_id", sa.String(64), nullable=True),
        sa.Column("refund_status", sa.String(16), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    # idempotency boundary of the checkout
    op.create_index("ix_order_payment_reference", "order", ["payment_reference"], unique=True)
    op.create_index("ix_order_customer_id", "order", ["customer_id"])
    op.create_index("ix_order_created_at", "order", ["created_at"])
    op.create_index("ix_order_status_created_at", "order", ["status", "created_at"])
    op.create_index("ix_order_channel_created_at", "order", ["channel", "created_at"])

    op.create_table(
        "order_item",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.String(32), sa.ForeignKey("order.id", ondelete="CASCADE"), nullable=False),
        sa.Column("variant_id", sa.Integer(), sa.ForeignKey("variant.id"), nullable=False),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("image", sa.String(255), nullable=True),
        sa.Column("category", sa.String(120), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("line_total", sa.Numeric(12, 2), nullable=False),
        sa.Column("color", sa.String(60), nullable=False),
        sa.Column("size", sa.String(60), nullable=False),
        sa.Column("has_size_mod", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("size_mod_fee", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("custom_size", sa.JSON(), nullable=True),
    )
    op.create_index("ix_order_item_order_id", "order_item", ["order_id"])

    op.create_table(
        "offline_sale",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.String(32), sa.ForeignKey("order.id"), nullable=False, unique=True),
        sa.Column("staff_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "orphan_payment",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("reference", sa.String(120), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("first_seen_at", sa.DateTime(), nullable=False),
        sa.Column("reconciled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("reconciled_at", sa.DateTime(), nullable=True),
        sa.Column("resolution_note", sa.Text(), nullable=True),
    )
    op.create_index("ix_orphan_payment_reference", "orphan_payment", ["reference"], unique=True)
    op.create_index("ix_orphan_payment_reconciled", "orphan_payment", ["reconciled"])

    op.create_table(
        "receipt_email_status",
        sa.Column("order_id", sa.String(32), sa.ForeignKey("order.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("next_retry_at", sa.DateTime(), nullable=True),
        sa.Column("sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("delivery_fee", sa.Numeric(12, 2), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_receipt_email_status_next_retry_at", "receipt_email_status", ["next_retry_at"])

    op.create_table(
        "webhook_event",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("provider", sa.String(32), nullable=False),
        sa.Column("event_id", sa.String(191), nullable=False, unique=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_webhook_event_provider_created_at", "webhook_event", ["provider", "created_at"])


def downgrade() -> None:
    for table in (
        "webhook_event",
        "receipt_email_status",
        "orphan_payment",
        "offline_sale",
        "order_item",
        "order",
        "order_serial",
        "variant",
        "product",
        "customer",
        "user",
    ):
        op.drop_table(table)
