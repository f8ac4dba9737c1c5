import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Sequence, Tuple

from ecomarket_orders.domain.models import InventoryOperationType
from ecomarket_orders.domain.exceptions import (
    CompensationFailure, InsufficientStockError, ProductNotFoundError,
)
from ecomarket_orders.application.interfaces import CatalogService


logger = logging.getLogger(__name__)

# (product_id, количество)
StockLine = Tuple[int, int]


async def ensure_available(catalog: CatalogService, lines: Sequence[StockLine]) -> None:
    """Проверка остатков без изменений, количества повторяющихся товаров суммируются"""
    requested: Dict[int, int] = defaultdict(int)
    for product_id, quantity in lines:
        inventory = await catalog.get_inventory(product_id)
        if inventory is None:
            raise ProductNotFoundError(product_id)
        requested[product_id] += quantity
        if inventory.available_quantity < requested[product_id]:
            raise InsufficientStockError(product_id, requested[product_id], inventory.available_quantity)


async def release_lines(catalog: CatalogService, lines: Iterable[StockLine]) -> List[CompensationFailure]:
    """RELEASE по каждой строке, ошибки не прерывают цикл. Возвращает то, что вернуть не удалось"""
    failures = []
    for product_id, quantity in lines:
        try:
            await catalog.apply_inventory_operation(product_id, InventoryOperationType.RELEASE, quantity)
            logger.info(f"Released {quantity} of product {product_id}")
        except Exception as e:
            logger.error(f"Failed to release {quantity} of product {product_id}: {e}")
            failures.append(CompensationFailure(product_id, quantity, e))
    return failures


class ReservationLedger:
    """Резервы одной попытки оформления, живут в памяти только в рамках одного вызова"""

    def __init__(self, catalog: CatalogService):
        self._catalog = catalog
        self._reserved: List[StockLine] = []

    @property
    def reserved(self) -> List[StockLine]:
        return list(self._reserved)

    async def reserve_all(self, lines: Sequence[StockLine]) -> None:
        """RESERVE по каждой строке; при первой ошибке снимает уже сделанные резервы и пробрасывает ошибку"""
        for product_id, quantity in lines:
            try:
                await self._catalog.apply_inventory_operation(
                    product_id, InventoryOperationType.RESERVE, quantity
                )
            except Exception as e:
                logger.warning(f"Reservation of product {product_id} failed, compensating: {e}")
                await self.release_all()
                raise
            self._reserved.append((product_id, quantity))

    async def release_all(self) -> List[CompensationFailure]:
        if not self._reserved:
            return []
        failures = await release_lines(self._catalog, reversed(self._reserved))
        self._reserved.clear()
        if failures:
            logger.error(f"{len(failures)} reservation(s) could not be released: {failures}")
        return failures
