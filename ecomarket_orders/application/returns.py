import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel

from ecomarket_orders.domain.models import OrderReturn, OrderStatus, ReturnStatus
from ecomarket_orders.domain.exceptions import (
    InvalidReturnOperationError, OrderNotFoundError, ReturnNotFoundError,
)
from ecomarket_orders.application.interfaces import UnitOfWork


logger = logging.getLogger(__name__)


class RequestReturnDTO(BaseModel):
    order_id: int
    order_item_id: Optional[int] = None
    reason: str


class RequestReturnUseCase:
    def __init__(self, unit_of_work: UnitOfWork):
        self._uow = unit_of_work

    async def __call__(self, dto: RequestReturnDTO) -> OrderReturn:
        async with self._uow() as uow:
            order = await uow.orders.get_by_id(dto.order_id)
            if not order:
                raise OrderNotFoundError(dto.order_id)
            if order.status != OrderStatus.DELIVERED:
                raise InvalidReturnOperationError(
                    f"Only DELIVERED orders can be returned, order {order.id} is {order.status.value}",
                    order_id=order.id,
                )
            if dto.order_item_id is not None and dto.order_item_id not in {i.id for i in order.items}:
                raise InvalidReturnOperationError(
                    f"Item {dto.order_item_id} does not belong to order {order.id}",
                    order_id=order.id, order_item_id=dto.order_item_id,
                )

            order_return = await uow.returns.create(OrderReturn(
                order_id=order.id,
                order_item_id=dto.order_item_id,
                reason=dto.reason,
                requested_at=datetime.now(timezone.utc),
            ))
            await uow.commit()

        logger.info(f"Return {order_return.id} requested for order {order.id}")
        return order_return


class _ReturnUseCase:
    def __init__(self, unit_of_work: UnitOfWork):
        self._uow = unit_of_work

    @staticmethod
    def _require(order_return: OrderReturn, status: ReturnStatus, action: str) -> None:
        if order_return.status != status:
            raise InvalidReturnOperationError(
                f"Only {status.value} returns can be {action}, return {order_return.id} is "
                f"{order_return.status.value}",
                return_id=order_return.id,
            )

    async def _load(self, uow, return_id: int) -> OrderReturn:
        order_return = await uow.returns.get_by_id(return_id)
        if not order_return:
            raise ReturnNotFoundError(return_id)
        return order_return


class GetReturnUseCase(_ReturnUseCase):
    async def __call__(self, return_id: int) -> OrderReturn:
        async with self._uow() as uow:
            return await self._load(uow, return_id)


class ApproveReturnUseCase(_ReturnUseCase):
    async def __call__(self, return_id: int, refund_amount: Decimal) -> OrderReturn:
        async with self._uow() as uow:
            order_return = await self._load(uow, return_id)
            self._require(order_return, ReturnStatus.REQUESTED, "approved")

            order = await uow.orders.get_by_id(order_return.order_id)
            if not order:
                raise OrderNotFoundError(order_return.order_id)
            limit = order.total_amount
            if order_return.order_item_id is not None:
                limit = next(i.subtotal for i in order.items if i.id == order_return.order_item_id)
            if refund_amount <= 0 or refund_amount > limit:
                raise InvalidReturnOperationError(
                    f"Refund amount must be between 0 and {limit}",
                    return_id=return_id, refund_amount=str(refund_amount),
                )

            order_return = order_return.model_copy(update={
                "status": ReturnStatus.APPROVED,
                "refund_amount": refund_amount,
                "refund_date": datetime.now(timezone.utc),
            })
            await uow.returns.update(order_return)
            await uow.commit()

        logger.info(f"Return {return_id} approved, refund {refund_amount}")
        return order_return


class RejectReturnUseCase(_ReturnUseCase):
    async def __call__(self, return_id: int, reason: Optional[str] = None) -> OrderReturn:
        async with self._uow() as uow:
            order_return = await self._load(uow, return_id)
            self._require(order_return, ReturnStatus.REQUESTED, "rejected")
            order_return = order_return.model_copy(update={
                "status": ReturnStatus.REJECTED,
                "reason": reason or order_return.reason,
            })
            await uow.returns.update(order_return)
            await uow.commit()

        logger.info(f"Return {return_id} rejected")
        return order_return


class CompleteReturnUseCase(_ReturnUseCase):
    async def __call__(self, return_id: int) -> OrderReturn:
        async with self._uow() as uow:
            order_return = await self._load(uow, return_id)
            self._require(order_return, ReturnStatus.APPROVED, "completed")
            order_return = order_return.model_copy(update={
                "status": ReturnStatus.COMPLETED,
                "refund_date": datetime.now(timezone.utc),
            })
            await uow.returns.update(order_return)
            await uow.commit()

        logger.info(f"Return {return_id} completed")
        return order_return
