"""
Shared fixtures.

- In-memory doubles of the identity, catalog and payment services that record every call
- An in-memory unit of work for orchestrator tests
- An in-memory SQLite session factory for repository and router tests
"""

import asyncio
import itertools
from contextlib import asynccontextmanager
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from ecomarket_orders.application.interfaces import (
    CatalogService, IdentityService, OrderRepository, PaymentsService, ReturnRepository,
    UnitOfWork, UnitOfWorkSession,
)
from ecomarket_orders.domain.exceptions import (
    ConcurrentModificationError, InsufficientStockError, PaymentRejectedError,
    PaymentUnavailableError, ProductNotFoundError, UpstreamUnavailableError,
)
from ecomarket_orders.domain.models import (
    InventoryOperationType, InventorySnapshot, OrderStatus, PaymentTransaction, ProductInfo, UserProfile,
)
from ecomarket_orders.infrastructure.db_schema import metadata

SHIPPING_COST = Decimal("5990")


# ---------------------------------------------------------------------------
# Collaborator doubles
# ---------------------------------------------------------------------------

class FakeIdentity(IdentityService):
    def __init__(self):
        self.users = {}
        self.calls = []
        self.unavailable = False

    def add_user(self, user_id, default_address_id=100):
        self.users[user_id] = UserProfile(
            id=user_id, firstName="Ana", lastName="Rojas",
            email=f"user{user_id}@example.com", status="ACTIVE",
            defaultAddressId=default_address_id,
        )

    async def get_user(self, user_id):
        self.calls.append(user_id)
        if self.unavailable:
            raise UpstreamUnavailableError("identity", "connection refused")
        return self.users.get(user_id)


class FakeCatalog(CatalogService):
    """Catalog + inventory with the same RESERVE/RELEASE/INCREMENT/DECREMENT rules as the real one."""

    def __init__(self):
        self.products = {}
        self.stock = {}
        self.calls = []
        self.operations = []
        self.fail_operations = set()   # {(product_id, operation)}
        self.drain_before_reserve = {}  # product_id -> units taken by a concurrent buyer

    def add_product(self, product_id, price, available, name=None):
        self.products[product_id] = ProductInfo(
            id=product_id, name=name or f"Product {product_id}", price=Decimal(price)
        )
        self.stock[product_id] = available

    def count(self, product_id, operation):
        return sum(1 for p, op, _ in self.operations if p == product_id and op == operation)

    def quantities(self, operation):
        return [(p, q) for p, op, q in self.operations if op == operation]

    async def get_product(self, product_id):
        self.calls.append(("get_product", product_id))
        return self.products.get(product_id)

    async def get_inventory(self, product_id):
        self.calls.append(("get_inventory", product_id))
        if product_id not in self.stock:
            return None
        return InventorySnapshot(productId=product_id, availableQuantity=self.stock[product_id])

    async def apply_inventory_operation(self, product_id, operation, quantity):
        self.calls.append(("operation", product_id))
        if (product_id, operation) in self.fail_operations:
            raise UpstreamUnavailableError("catalog", "timeout")
        if product_id not in self.stock:
            raise ProductNotFoundError(product_id)
        if operation == InventoryOperationType.RESERVE:
            self.stock[product_id] -= self.drain_before_reserve.pop(product_id, 0)
            if self.stock[product_id] < quantity:
                raise InsufficientStockError(product_id, quantity)
            self.stock[product_id] -= quantity
        elif operation in (InventoryOperationType.RELEASE, InventoryOperationType.INCREMENT):
            self.stock[product_id] += quantity
        else:
            self.stock[product_id] -= quantity
        self.operations.append((product_id, operation, quantity))
        return InventorySnapshot(productId=product_id, availableQuantity=self.stock[product_id])


class FakePayments(PaymentsService):
    def __init__(self):
        self.calls = []
        self.mode = "ok"
        self.delay = 0  # seconds the charge yields to the event loop
        self._ids = itertools.count(500)

    async def create_transaction(self, order_id, user_id, amount, currency, method):
        self.calls.append({
            "order_id": order_id, "user_id": user_id, "amount": amount,
            "currency": currency, "method": method,
        })
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.mode == "rejected":
            raise PaymentRejectedError("invalid payment method")
        if self.mode == "unavailable":
            raise PaymentUnavailableError("read timeout")
        return PaymentTransaction(transactionId=next(self._ids), transactionStatus="PENDING", amount=amount)


# ---------------------------------------------------------------------------
# In-memory unit of work
# ---------------------------------------------------------------------------

class InMemoryOrderRepository(OrderRepository):
    def __init__(self, uow):
        self._uow = uow

    async def get_by_id(self, order_id):
        return self._uow.orders_by_id.get(order_id)

    async def list_all(self):
        return list(self._uow.orders_by_id.values())

    async def list_created_between(self, start, end):
        return [o for o in self._uow.orders_by_id.values() if start <= o.created_at <= end]

    async def create(self, order):
        if self._uow.fail_on_create:
            raise RuntimeError("database is down")
        order_id = next(self._uow.order_ids)
        items = [item.model_copy(update={"id": next(self._uow.item_ids)}) for item in order.items]
        stored = order.model_copy(update={"id": order_id, "items": items})
        self._uow.orders_by_id[order_id] = stored
        return stored

    async def update_status(self, order_id, expected, status):
        order = self._uow.orders_by_id[order_id]
        if order.status != expected:
            raise ConcurrentModificationError(order_id)
        self._uow.orders_by_id[order_id] = order.model_copy(update={"status": status})

    def _awaiting_payment(self, order):
        return order.status == OrderStatus.PENDING_PAYMENT and order.payment_transaction_id is None

    async def claim_payment(self, order_id):
        order = self._uow.orders_by_id[order_id]
        if not self._awaiting_payment(order) or order.payment_in_progress:
            raise ConcurrentModificationError(order_id)
        self._uow.orders_by_id[order_id] = order.model_copy(update={"payment_in_progress": True})

    async def release_payment_claim(self, order_id):
        order = self._uow.orders_by_id[order_id]
        self._uow.orders_by_id[order_id] = order.model_copy(update={"payment_in_progress": False})

    async def update_payment_transaction_id(self, order_id, transaction_id):
        if self._uow.fail_on_attach:
            raise RuntimeError("database is down")
        order = self._uow.orders_by_id[order_id]
        if not self._awaiting_payment(order):
            raise ConcurrentModificationError(order_id)
        self._uow.orders_by_id[order_id] = order.model_copy(update={
            "payment_transaction_id": transaction_id, "payment_in_progress": False,
        })


class InMemoryReturnRepository(ReturnRepository):
    def __init__(self, uow):
        self._uow = uow

    async def get_by_id(self, return_id):
        return self._uow.returns_by_id.get(return_id)

    async def create(self, order_return):
        stored = order_return.model_copy(update={"id": next(self._uow.return_ids)})
        self._uow.returns_by_id[stored.id] = stored
        return stored

    async def update(self, order_return):
        self._uow.returns_by_id[order_return.id] = order_return


class InMemoryUnitOfWork(UnitOfWork, UnitOfWorkSession):
    """Acts as both the factory and the session it yields."""

    def __init__(self):
        self.orders_by_id = {}
        self.returns_by_id = {}
        self.order_ids = itertools.count(1)
        self.item_ids = itertools.count(1)
        self.return_ids = itertools.count(1)
        self.fail_on_create = False
        self.fail_on_attach = False
        self.commits = 0
        self.orders = InMemoryOrderRepository(self)
        self.returns = InMemoryReturnRepository(self)

    @asynccontextmanager
    async def __call__(self):
        yield self

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        pass


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def identity():
    fake = FakeIdentity()
    fake.add_user(1)
    return fake


@pytest.fixture
def catalog():
    return FakeCatalog()


@pytest.fixture
def payments():
    return FakePayments()


@pytest.fixture
def uow():
    return InMemoryUnitOfWork()


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()
