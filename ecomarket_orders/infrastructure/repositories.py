from collections import defaultdict
from datetime import datetime
from typing import Optional, List
from sqlalchemy import select, insert, update
from sqlalchemy.ext.asyncio import AsyncSession

from ecomarket_orders.domain.models import Order, OrderItem, OrderStatus, OrderReturn, ReturnStatus
from ecomarket_orders.domain.exceptions import ConcurrentModificationError
from ecomarket_orders.infrastructure.db_schema import orders_tbl, order_items_tbl, order_returns_tbl
from ecomarket_orders.application.interfaces import OrderRepository, ReturnRepository


class SQLAlchemyOrderRepository(OrderRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, order_id: int) -> Optional[Order]:
        result = await self._session.execute(
            select(orders_tbl).where(orders_tbl.c.id == order_id)
        )
        row = result.fetchone()
        if not row:
            return None
        orders = await self._with_items([row])
        return orders[0]

    async def list_all(self) -> List[Order]:
        result = await self._session.execute(
            select(orders_tbl).order_by(orders_tbl.c.id.asc())
        )
        return await self._with_items(result.fetchall())

    async def list_created_between(self, start: datetime, end: datetime) -> List[Order]:
        result = await self._session.execute(
            select(orders_tbl)
            .where(orders_tbl.c.created_at >= start, orders_tbl.c.created_at <= end)
            .order_by(orders_tbl.c.created_at.asc())
        )
        return await self._with_items(result.fetchall())

    async def create(self, order: Order) -> Order:
        result = await self._session.execute(
            insert(orders_tbl).values(
                user_id=order.user_id,
                shipping_address_id=order.shipping_address_id,
                payment_transaction_id=order.payment_transaction_id,
                payment_in_progress=order.payment_in_progress,
                status=order.status,
                subtotal=order.subtotal,
                shipping_cost=order.shipping_cost,
                total_amount=order.total_amount,
                created_at=order.created_at,
            )
        )
        order_id = result.inserted_primary_key[0]

        items = []
        for item in order.items:
            item_result = await self._session.execute(
                insert(order_items_tbl).values(
                    order_id=order_id,
                    product_id=item.product_id,
                    product_name=item.product_name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                )
            )
            items.append(item.model_copy(update={"id": item_result.inserted_primary_key[0]}))

        return order.model_copy(update={"id": order_id, "items": items})

    async def update_status(self, order_id: int, expected: OrderStatus, status: OrderStatus) -> None:
        result = await self._session.execute(
            update(orders_tbl)
            .where(orders_tbl.c.id == order_id, orders_tbl.c.status == expected)
            .values(status=status)
        )
        if result.rowcount == 0:
            raise ConcurrentModificationError(
                order_id, f"Order {order_id} is no longer {expected.value}"
            )

    def _awaiting_payment(self, order_id: int):
        return (
            orders_tbl.c.id == order_id,
            orders_tbl.c.status == OrderStatus.PENDING_PAYMENT,
            orders_tbl.c.payment_transaction_id.is_(None),
        )

    async def claim_payment(self, order_id: int) -> None:
        result = await self._session.execute(
            update(orders_tbl)
            .where(*self._awaiting_payment(order_id), orders_tbl.c.payment_in_progress.is_(False))
            .values(payment_in_progress=True)
        )
        if result.rowcount == 0:
            raise ConcurrentModificationError(
                order_id, f"Order {order_id} is already being paid or is no longer awaiting payment"
            )

    async def release_payment_claim(self, order_id: int) -> None:
        await self._session.execute(
            update(orders_tbl)
            .where(orders_tbl.c.id == order_id)
            .values(payment_in_progress=False)
        )

    async def update_payment_transaction_id(self, order_id: int, transaction_id: int) -> None:
        result = await self._session.execute(
            update(orders_tbl)
            .where(*self._awaiting_payment(order_id))
            .values(payment_transaction_id=transaction_id, payment_in_progress=False)
        )
        if result.rowcount == 0:
            raise ConcurrentModificationError(
                order_id, f"Order {order_id} is no longer awaiting payment"
            )

    async def _with_items(self, rows) -> List[Order]:
        if not rows:
            return []
        result = await self._session.execute(
            select(order_items_tbl)
            .where(order_items_tbl.c.order_id.in_([row.id for row in rows]))
            .order_by(order_items_tbl.c.id.asc())
        )
        items = defaultdict(list)
        for item_row in result.fetchall():
            items[item_row.order_id].append(OrderItem(
                id=item_row.id,
                product_id=item_row.product_id,
                product_name=item_row.product_name,
                quantity=item_row.quantity,
                unit_price=item_row.unit_price,
            ))
        return [self._to_domain(row, items[row.id]) for row in rows]

    def _to_domain(self, row, items: List[OrderItem]) -> Order:
        """Трансформация DB → Domain"""
        return Order(
            id=row.id,
            user_id=row.user_id,
            shipping_address_id=row.shipping_address_id,
            payment_transaction_id=row.payment_transaction_id,
            payment_in_progress=row.payment_in_progress,
            created_at=row.created_at,
            status=OrderStatus(row.status),
            subtotal=row.subtotal,
            shipping_cost=row.shipping_cost,
            total_amount=row.total_amount,
            items=items,
        )


class SQLAlchemyReturnRepository(ReturnRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, return_id: int) -> Optional[OrderReturn]:
        result = await self._session.execute(
            select(order_returns_tbl).where(order_returns_tbl.c.id == return_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def create(self, order_return: OrderReturn) -> OrderReturn:
        result = await self._session.execute(
            insert(order_returns_tbl).values(
                order_id=order_return.order_id,
                order_item_id=order_return.order_item_id,
                reason=order_return.reason,
                status=order_return.status,
                requested_at=order_return.requested_at,
                refund_amount=order_return.refund_amount,
                refund_date=order_return.refund_date,
            )
        )
        return order_return.model_copy(update={"id": result.inserted_primary_key[0]})

    async def update(self, order_return: OrderReturn) -> None:
        await self._session.execute(
            update(order_returns_tbl)
            .where(order_returns_tbl.c.id == order_return.id)
            .values(
                reason=order_return.reason,
                status=order_return.status,
                refund_amount=order_return.refund_amount,
                refund_date=order_return.refund_date,
            )
        )

    def _to_domain(self, row) -> OrderReturn:
        return OrderReturn(
            id=row.id,
            order_id=row.order_id,
            order_item_id=row.order_item_id,
            reason=row.reason,
            requested_at=row.requested_at,
            status=ReturnStatus(row.status),
            refund_amount=row.refund_amount,
            refund_date=row.refund_date,
        )
