from datetime import date, datetime, time, timezone
from typing import List, Optional

from ecomarket_orders.domain.models import Order


class GetOrderUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, order_id: int) -> Optional[Order]:
        async with self._uow() as uow:
            return await uow.orders.get_by_id(order_id)


class ListOrdersUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, on_date: Optional[date] = None) -> List[Order]:
        async with self._uow() as uow:
            if on_date is None:
                return await uow.orders.list_all()
            start = datetime.combine(on_date, time.min, tzinfo=timezone.utc)
            end = datetime.combine(on_date, time.max, tzinfo=timezone.utc)
            return await uow.orders.list_created_between(start, end)
