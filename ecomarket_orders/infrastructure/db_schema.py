from sqlalchemy import (
    Table, Column, String, Integer, BigInteger, Boolean, Numeric, Enum, DateTime, ForeignKey, MetaData,
)

from ecomarket_orders.domain.models import OrderStatus, ReturnStatus

metadata = MetaData()

# BigInteger с autoincrement в SQLite не работает, поэтому вариант Integer
Id = BigInteger().with_variant(Integer, "sqlite")
Money = Numeric(12, 2)


orders_tbl = Table(
    "orders",
    metadata,
    Column("id", Id, primary_key=True, autoincrement=True),
    Column("user_id", BigInteger, nullable=False, index=True),
    Column("shipping_address_id", BigInteger, nullable=False),
    Column("payment_transaction_id", BigInteger, nullable=True),
    Column("payment_in_progress", Boolean, nullable=False, default=False),
    Column("status", Enum(OrderStatus, name="order_status"), nullable=False,
           default=OrderStatus.PENDING_PAYMENT),
    Column("subtotal", Money, nullable=False),
    Column("shipping_cost", Money, nullable=False),
    Column("total_amount", Money, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, index=True),
)


order_items_tbl = Table(
    "order_items",
    metadata,
    Column("id", Id, primary_key=True, autoincrement=True),
    Column("order_id", Id, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("product_id", BigInteger, nullable=False),
    Column("product_name", String, nullable=True),
    Column("quantity", Integer, nullable=False),
    Column("unit_price", Money, nullable=False),
)


order_returns_tbl = Table(
    "order_returns",
    metadata,
    Column("id", Id, primary_key=True, autoincrement=True),
    Column("order_id", Id, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("order_item_id", Id, ForeignKey("order_items.id", ondelete="CASCADE"), nullable=True),
    Column("reason", String, nullable=False),
    Column("status", Enum(ReturnStatus, name="return_status"), nullable=False,
           default=ReturnStatus.REQUESTED),
    Column("requested_at", DateTime(timezone=True), nullable=False),
    Column("refund_amount", Money, nullable=True),
    Column("refund_date", DateTime(timezone=True), nullable=True),
)
