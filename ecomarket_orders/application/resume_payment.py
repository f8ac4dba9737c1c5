import logging
from typing import Optional

from ecomarket_orders.domain.models import Order
from ecomarket_orders.domain.exceptions import InvalidRequestError, OrderNotFoundError
from ecomarket_orders.application.interfaces import UnitOfWork, CatalogService, PaymentsService
from ecomarket_orders.application.reservations import ReservationLedger, ensure_available
from ecomarket_orders.application.create_order import (
    attach_payment, charge_order, release_payment_claim,
)


logger = logging.getLogger(__name__)


class ResumePaymentUseCase:
    """Повторная оплата заказа, у которого первая попытка платежа не прошла.

    Заказ сначала захватывается под оплату, второй параллельный вызов получает
    ConcurrentModificationError до резерва и платежа. Неудачная попытка уже вернула
    резерв, поэтому товары проверяются и резервируются заново.
    """

    def __init__(
        self,
        unit_of_work: UnitOfWork,
        catalog_service: CatalogService,
        payments_service: PaymentsService,
        currency: str,
        default_payment_method: str,
    ):
        self._uow = unit_of_work
        self._catalog = catalog_service
        self._payments = payments_service
        self._currency = currency
        self._default_payment_method = default_payment_method

    async def __call__(self, order_id: int, payment_method: Optional[str] = None) -> Order:
        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
            if not order:
                raise OrderNotFoundError(order_id)
            if not order.can_resume_payment():
                raise InvalidRequestError(
                    f"Order {order_id} is not awaiting payment (status {order.status.value})",
                    order_id=order_id,
                )
            await uow.orders.claim_payment(order_id)
            await uow.commit()

        lines = [(item.product_id, item.quantity) for item in order.items]
        ledger = ReservationLedger(self._catalog)
        try:
            await ensure_available(self._catalog, lines)
            await ledger.reserve_all(lines)
            transaction = await charge_order(
                self._payments,
                order,
                currency=self._currency,
                method=payment_method or self._default_payment_method,
            )
        except Exception:
            await ledger.release_all()
            await release_payment_claim(self._uow, order_id)
            raise

        order = await attach_payment(self._uow, ledger, order, transaction)
        logger.info(f"Order {order.id} paid on retry with transaction {transaction.transaction_id}")
        return order
