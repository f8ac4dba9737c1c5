"""create orders, order_items and order_returns

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

Id = sa.BigInteger().with_variant(sa.Integer, "sqlite")
Money = sa.Numeric(12, 2)

order_status = sa.Enum(
    "PENDING_PAYMENT", "CONFIRMED", "SHIPPED", "DELIVERED", "CANCELLED", name="order_status"
)
return_status = sa.Enum("REQUESTED", "APPROVED", "REJECTED", "COMPLETED", name="return_status")


def upgrade() -> None:
    op.create_table(
        "orders",
        sa.Column("id", Id, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger, nullable=False, index=True),
        sa.Column("shipping_address_id", sa.BigInteger, nullable=False),
        sa.Column("payment_transaction_id", sa.BigInteger, nullable=True),
        sa.Column("payment_in_progress", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("status", order_status, nullable=False),
        sa.Column("subtotal", Money, nullable=False),
        sa.Column("shipping_cost", Money, nullable=False),
        sa.Column("total_amount", Money, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, index=True),
    )
    op.create_table(
        "order_items",
        sa.Column("id", Id, primary_key=True, autoincrement=True),
        sa.Column("order_id", Id, sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("product_id", sa.BigInteger, nullable=False),
        sa.Column("product_name", sa.String, nullable=True),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("unit_price", Money, nullable=False),
    )
    op.create_table(
        "order_returns",
        sa.Column("id", Id, primary_key=True, autoincrement=True),
        sa.Column("order_id", Id, sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("order_item_id", Id, sa.ForeignKey("order_items.id", ondelete="CASCADE"), nullable=True),
        sa.Column("reason", sa.String, nullable=False),
        sa.Column("status", return_status, nullable=False),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("refund_amount", Money, nullable=True),
        sa.Column("refund_date", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("order_returns")
    op.drop_table("order_items")
    op.drop_table("orders")
    return_status.drop(op.get_bind(), checkfirst=True)
    order_status.drop(op.get_bind(), checkfirst=True)
