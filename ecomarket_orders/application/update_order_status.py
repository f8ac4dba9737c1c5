import logging
from dataclasses import dataclass
from typing import Optional

from ecomarket_orders.domain.models import Order, OrderStatus
from ecomarket_orders.domain.exceptions import (
    CompensationPartialFailure, InvalidStatusError, OrderNotFoundError,
)
from ecomarket_orders.application.interfaces import UnitOfWork, CatalogService
from ecomarket_orders.application.reservations import release_lines


logger = logging.getLogger(__name__)


@dataclass
class StatusUpdateResult:
    order: Order
    warning: Optional[CompensationPartialFailure] = None


def parse_status(value: str) -> OrderStatus:
    try:
        return OrderStatus(str(value).strip().upper())
    except ValueError:
        valid = ", ".join(s.value for s in OrderStatus)
        raise InvalidStatusError(
            f"Invalid order status: {value}. Valid statuses are: {valid}", status=value
        ) from None


class UpdateOrderStatusUseCase:
    def __init__(self, unit_of_work: UnitOfWork, catalog_service: CatalogService):
        self._uow = unit_of_work
        self._catalog = catalog_service

    async def __call__(self, order_id: int, new_status: str) -> StatusUpdateResult:
        status = parse_status(new_status)

        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
            if not order:
                raise OrderNotFoundError(order_id)

            if not order.can_transition_to(status):
                raise InvalidStatusError(
                    f"Order {order_id} cannot move from {order.status.value} to {status.value}",
                    order_id=order_id, current=order.status.value, requested=status.value,
                )

            # compare-and-set по прежнему статусу
            await uow.orders.update_status(order_id, expected=order.status, status=status)
            await uow.commit()

        logger.info(f"Order {order_id}: {order.status.value} -> {status.value}")
        updated = order.model_copy(update={"status": status})

        warning = None
        if status == OrderStatus.CANCELLED and order.holds_stock():
            warning = await self._release_stock(order)
        return StatusUpdateResult(order=updated, warning=warning)

    async def _release_stock(self, order: Order) -> Optional[CompensationPartialFailure]:
        failures = await release_lines(
            self._catalog, [(item.product_id, item.quantity) for item in order.items]
        )
        if not failures:
            return None
        warning = CompensationPartialFailure(order.id, failures)
        logger.warning(f"Order {order.id} cancelled, inventory needs reconciliation: {warning}")
        return warning
