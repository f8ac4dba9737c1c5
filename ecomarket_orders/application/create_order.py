import logging
from decimal import Decimal
from datetime import datetime, timezone
from typing import List, Optional
from pydantic import BaseModel

from ecomarket_orders.domain.models import Order, OrderItem, PaymentTransaction
from ecomarket_orders.domain.exceptions import (
    InvalidRequestError, MissingShippingAddressError, PaymentFailedError, PaymentNotAttachedError,
    PaymentRejectedError, PaymentUnavailableError, ProductNotFoundError,
    UpstreamUnavailableError, UserNotFoundError, UserResolutionFailedError,
)
from ecomarket_orders.application.interfaces import (
    UnitOfWork, IdentityService, CatalogService, PaymentsService,
)
from ecomarket_orders.application.reservations import ReservationLedger, ensure_available


logger = logging.getLogger(__name__)


class OrderLineDTO(BaseModel):
    product_id: Optional[int] = None
    quantity: Optional[int] = None


class CreateOrderDTO(BaseModel):
    user_id: Optional[int] = None
    items: Optional[List[OrderLineDTO]] = None
    payment_method: Optional[str] = None


def validate_checkout(order_data: CreateOrderDTO) -> None:
    if order_data.user_id is None:
        raise InvalidRequestError("User ID is required to create an order")
    if not order_data.items:
        raise InvalidRequestError("Order must contain at least one item", user_id=order_data.user_id)
    for line in order_data.items:
        if line.product_id is None:
            raise InvalidRequestError("Product ID is required for every item")
        if line.quantity is None or line.quantity < 1:
            raise InvalidRequestError(
                f"Quantity for product {line.product_id} must be greater than zero",
                product_id=line.product_id,
            )


async def charge_order(
    payments: PaymentsService,
    order: Order,
    currency: str,
    method: str,
):
    """Создание платежа. Ошибки платежного сервиса превращаются в PaymentFailedError."""
    try:
        return await payments.create_transaction(
            order_id=order.id,
            user_id=order.user_id,
            amount=order.total_amount,
            currency=currency,
            method=method,
        )
    except (PaymentRejectedError, PaymentUnavailableError) as e:
        logger.error(f"Payment for order {order.id} failed: {e}")
        raise PaymentFailedError(order.id, str(e)) from e


async def release_payment_claim(unit_of_work: UnitOfWork, order_id: int) -> None:
    """Снимает захват оплаты после неудачной попытки; ошибка логируется и не перекрывает исходную"""
    try:
        async with unit_of_work() as uow:
            await uow.orders.release_payment_claim(order_id)
            await uow.commit()
    except Exception:
        logger.exception(f"Failed to release payment claim on order {order_id}")


async def attach_payment(
    unit_of_work: UnitOfWork,
    ledger: ReservationLedger,
    order: Order,
    transaction: PaymentTransaction,
) -> Order:
    try:
        async with unit_of_work() as uow:
            await uow.orders.update_payment_transaction_id(order.id, transaction.transaction_id)
            await uow.commit()
    except Exception as e:
        # платеж прошел, но заказ его не принял: резерв возвращаем, транзакцию отдаем на возврат
        logger.error(
            f"Transaction {transaction.transaction_id} not attached to order {order.id}, "
            f"releasing reservations: {e}"
        )
        await ledger.release_all()
        raise PaymentNotAttachedError(order.id, transaction.transaction_id, str(e)) from e
    return order.model_copy(update={
        "payment_transaction_id": transaction.transaction_id,
        "payment_in_progress": False,
    })


class CreateOrderUseCase:
    def __init__(
        self,
        unit_of_work: UnitOfWork,
        identity_service: IdentityService,
        catalog_service: CatalogService,
        payments_service: PaymentsService,
        shipping_cost: Decimal,
        currency: str,
        default_payment_method: str,
    ):
        self._uow = unit_of_work
        self._identity = identity_service
        self._catalog = catalog_service
        self._payments = payments_service
        self._shipping_cost = shipping_cost
        self._currency = currency
        self._default_payment_method = default_payment_method

    async def __call__(self, order_data: CreateOrderDTO) -> Order:
        # 1. Валидация, до любых внешних вызовов
        validate_checkout(order_data)
        logger.info(f"Creating order for user {order_data.user_id}, {len(order_data.items)} item(s)")

        # 2. Пользователь и адрес доставки
        try:
            user = await self._identity.get_user(order_data.user_id)
        except UpstreamUnavailableError as e:
            raise UserResolutionFailedError(order_data.user_id, str(e)) from e
        if user is None:
            raise UserNotFoundError(order_data.user_id)
        if user.default_address_id is None:
            raise MissingShippingAddressError(user.id)

        # 3. Товары и остатки
        items = []
        for line in order_data.items:
            product = await self._catalog.get_product(line.product_id)
            if product is None:
                raise ProductNotFoundError(line.product_id)
            if product.price is None:
                raise InvalidRequestError(
                    f"Product price is not available for product {product.id}", product_id=product.id
                )
            items.append(OrderItem(
                product_id=product.id,
                product_name=product.name,
                quantity=line.quantity,
                unit_price=product.price,
            ))
        lines = [(item.product_id, item.quantity) for item in items]
        await ensure_available(self._catalog, lines)

        # 4. Резервирование
        ledger = ReservationLedger(self._catalog)
        await ledger.reserve_all(lines)

        # 5-6. Расчет суммы и сохранение заказа, уже захваченного под оплату
        order = Order.place(
            user_id=user.id,
            shipping_address_id=user.default_address_id,
            items=items,
            shipping_cost=self._shipping_cost,
            created_at=datetime.now(timezone.utc),
        )
        try:
            async with self._uow() as uow:
                order = await uow.orders.create(order)
                await uow.commit()
        except Exception:
            logger.error("Failed to persist order, releasing reservations")
            await ledger.release_all()
            raise
        logger.info(f"Order {order.id} created: subtotal {order.subtotal}, total {order.total_amount}")

        # 7. Платеж
        try:
            transaction = await charge_order(
                self._payments,
                order,
                currency=self._currency,
                method=order_data.payment_method or self._default_payment_method,
            )
        except Exception:
            # заказ остается в PENDING_PAYMENT, оплату можно повторить
            await ledger.release_all()
            await release_payment_claim(self._uow, order.id)
            raise

        # 8. Привязываем транзакцию к заказу
        order = await attach_payment(self._uow, ledger, order, transaction)
        logger.info(f"Order {order.id} paid with transaction {transaction.transaction_id}")
        return order
