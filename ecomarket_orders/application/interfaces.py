from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import AsyncContextManager, Optional, List
from ecomarket_orders.domain.models import (
    Order, OrderStatus, OrderReturn, UserProfile, ProductInfo, InventorySnapshot,
    InventoryOperationType, PaymentTransaction,
)


class OrderRepository(ABC):
    @abstractmethod
    async def get_by_id(self, order_id: int) -> Optional[Order]:
        pass

    @abstractmethod
    async def list_all(self) -> List[Order]:
        pass

    @abstractmethod
    async def list_created_between(self, start: datetime, end: datetime) -> List[Order]:
        pass

    @abstractmethod
    async def create(self, order: Order) -> Order:
        """Сохраняет заказ вместе со строками, возвращает копию с присвоенными id"""
        pass

    @abstractmethod
    async def update_status(self, order_id: int, expected: OrderStatus, status: OrderStatus) -> None:
        """Compare-and-set по статусу; ConcurrentModificationError, если статус уже не `expected`"""
        pass

    @abstractmethod
    async def claim_payment(self, order_id: int) -> None:
        """Захват заказа под оплату; ConcurrentModificationError, если оплата уже идет или заказ не ждет оплаты"""
        pass

    @abstractmethod
    async def release_payment_claim(self, order_id: int) -> None:
        pass

    @abstractmethod
    async def update_payment_transaction_id(self, order_id: int, transaction_id: int) -> None:
        """Только для PENDING_PAYMENT без транзакции, иначе ConcurrentModificationError"""
        pass


class ReturnRepository(ABC):
    @abstractmethod
    async def get_by_id(self, return_id: int) -> Optional[OrderReturn]:
        pass

    @abstractmethod
    async def create(self, order_return: OrderReturn) -> OrderReturn:
        pass

    @abstractmethod
    async def update(self, order_return: OrderReturn) -> None:
        pass


class UnitOfWorkSession(ABC):
    """То, что отдает `async with uow() as session`"""
    orders: OrderRepository
    returns: ReturnRepository

    @abstractmethod
    async def commit(self):
        pass

    @abstractmethod
    async def rollback(self):
        pass


class UnitOfWork(ABC):
    @abstractmethod
    def __call__(self) -> AsyncContextManager[UnitOfWorkSession]:
        """Новая сессия на блок; без commit изменения откатываются"""
        pass


class IdentityService(ABC):
    @abstractmethod
    async def get_user(self, user_id: int) -> Optional[UserProfile]:
        pass


class CatalogService(ABC):
    @abstractmethod
    async def get_product(self, product_id: int) -> Optional[ProductInfo]:
        pass

    @abstractmethod
    async def get_inventory(self, product_id: int) -> Optional[InventorySnapshot]:
        pass

    @abstractmethod
    async def apply_inventory_operation(
        self, product_id: int, operation: InventoryOperationType, quantity: int
    ) -> InventorySnapshot:
        pass


class PaymentsService(ABC):
    @abstractmethod
    async def create_transaction(
        self, order_id: int, user_id: int, amount: Decimal, currency: str, method: str
    ) -> PaymentTransaction:
        pass
