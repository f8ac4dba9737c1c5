from datetime import datetime, timezone
from decimal import Decimal

import pytest

from ecomarket_orders.application.returns import (
    ApproveReturnUseCase, CompleteReturnUseCase, GetReturnUseCase, RejectReturnUseCase,
    RequestReturnDTO, RequestReturnUseCase,
)
from ecomarket_orders.domain.exceptions import (
    InvalidReturnOperationError, OrderNotFoundError, ReturnNotFoundError,
)
from ecomarket_orders.domain.models import Order, OrderItem, OrderStatus, ReturnStatus


async def delivered_order(uow, status=OrderStatus.DELIVERED):
    order = Order.place(
        user_id=1, shipping_address_id=100,
        items=[
            OrderItem(product_id=1, quantity=2, unit_price=Decimal("10000")),
            OrderItem(product_id=2, quantity=1, unit_price=Decimal("500")),
        ],
        shipping_cost=Decimal("3990"), created_at=datetime.now(timezone.utc),
    )
    order = await uow.orders.create(order)
    uow.orders_by_id[order.id] = order.model_copy(update={"status": status})
    return uow.orders_by_id[order.id]


async def requested_return(uow, order_item_id=None):
    order = await delivered_order(uow)
    return await RequestReturnUseCase(uow)(
        RequestReturnDTO(order_id=order.id, order_item_id=order_item_id, reason="damaged")
    )


class TestRequestReturn:
    async def test_request_for_delivered_order(self, uow):
        order_return = await requested_return(uow)

        assert order_return.id is not None
        assert order_return.status == ReturnStatus.REQUESTED
        assert await GetReturnUseCase(uow)(order_return.id) == order_return

    @pytest.mark.parametrize("status", [OrderStatus.PENDING_PAYMENT, OrderStatus.SHIPPED, OrderStatus.CANCELLED])
    async def test_only_delivered_orders(self, uow, status):
        order = await delivered_order(uow, status)

        with pytest.raises(InvalidReturnOperationError):
            await RequestReturnUseCase(uow)(RequestReturnDTO(order_id=order.id, reason="late"))

    async def test_item_must_belong_to_order(self, uow):
        order = await delivered_order(uow)

        with pytest.raises(InvalidReturnOperationError):
            await RequestReturnUseCase(uow)(RequestReturnDTO(order_id=order.id, order_item_id=999, reason="x"))

    async def test_unknown_order(self, uow):
        with pytest.raises(OrderNotFoundError):
            await RequestReturnUseCase(uow)(RequestReturnDTO(order_id=77, reason="x"))


class TestReturnLifecycle:
    async def test_approve_then_complete(self, uow):
        order_return = await requested_return(uow)

        approved = await ApproveReturnUseCase(uow)(order_return.id, Decimal("20000"))
        completed = await CompleteReturnUseCase(uow)(order_return.id)

        assert approved.status == ReturnStatus.APPROVED
        assert approved.refund_amount == Decimal("20000")
        assert approved.refund_date is not None
        assert completed.status == ReturnStatus.COMPLETED
        assert uow.returns_by_id[order_return.id].status == ReturnStatus.COMPLETED

    async def test_refund_capped_by_order_total(self, uow):
        order_return = await requested_return(uow)

        with pytest.raises(InvalidReturnOperationError):
            await ApproveReturnUseCase(uow)(order_return.id, Decimal("24490.01"))
        with pytest.raises(InvalidReturnOperationError):
            await ApproveReturnUseCase(uow)(order_return.id, Decimal("0"))

    async def test_item_refund_capped_by_item_subtotal(self, uow):
        order = await delivered_order(uow)
        item = order.items[1]
        order_return = await RequestReturnUseCase(uow)(
            RequestReturnDTO(order_id=order.id, order_item_id=item.id, reason="wrong size")
        )

        with pytest.raises(InvalidReturnOperationError):
            await ApproveReturnUseCase(uow)(order_return.id, Decimal("501"))
        approved = await ApproveReturnUseCase(uow)(order_return.id, Decimal("500"))
        assert approved.refund_amount == Decimal("500")

    async def test_reject_keeps_new_reason(self, uow):
        order_return = await requested_return(uow)

        rejected = await RejectReturnUseCase(uow)(order_return.id, "outside return window")

        assert rejected.status == ReturnStatus.REJECTED
        assert rejected.reason == "outside return window"

    async def test_cannot_complete_unapproved(self, uow):
        order_return = await requested_return(uow)

        with pytest.raises(InvalidReturnOperationError):
            await CompleteReturnUseCase(uow)(order_return.id)

    async def test_cannot_approve_twice(self, uow):
        order_return = await requested_return(uow)
        await ApproveReturnUseCase(uow)(order_return.id, Decimal("100"))

        with pytest.raises(InvalidReturnOperationError):
            await ApproveReturnUseCase(uow)(order_return.id, Decimal("100"))
        with pytest.raises(InvalidReturnOperationError):
            await RejectReturnUseCase(uow)(order_return.id)

    async def test_unknown_return(self, uow):
        with pytest.raises(ReturnNotFoundError):
            await GetReturnUseCase(uow)(5)
