from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, FrozenSet, List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator


class OrderStatus(str, Enum):
    PENDING_PAYMENT = "PENDING_PAYMENT"
    CONFIRMED = "CONFIRMED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING_PAYMENT: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


class InventoryOperationType(str, Enum):
    RESERVE = "RESERVE"
    RELEASE = "RELEASE"
    INCREMENT = "INCREMENT"
    DECREMENT = "DECREMENT"


class OrderItem(BaseModel):
    """Строка заказа, цена зафиксирована в момент оформления"""
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    product_id: int
    product_name: Optional[str] = None
    quantity: int = Field(gt=0)
    unit_price: Decimal

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


class Order(BaseModel):
    """Domain Entity: заказ"""
    id: Optional[int] = None
    user_id: int
    shipping_address_id: int
    payment_transaction_id: Optional[int] = None
    # флаг захвата оплаты, пока платеж в процессе
    payment_in_progress: bool = False
    created_at: datetime
    status: OrderStatus = OrderStatus.PENDING_PAYMENT
    subtotal: Decimal
    shipping_cost: Decimal
    total_amount: Decimal
    items: List[OrderItem]

    @model_validator(mode="after")
    def _check_totals(self):
        expected_subtotal = sum((item.subtotal for item in self.items), Decimal("0"))
        if self.subtotal != expected_subtotal:
            raise ValueError(f"subtotal {self.subtotal} != sum of items {expected_subtotal}")
        if self.total_amount != self.subtotal + self.shipping_cost:
            raise ValueError(f"total {self.total_amount} != subtotal + shipping cost")
        return self

    @classmethod
    def place(
        cls,
        user_id: int,
        shipping_address_id: int,
        items: List[OrderItem],
        shipping_cost: Decimal,
        created_at: datetime,
    ) -> "Order":
        subtotal = sum((item.subtotal for item in items), Decimal("0"))
        return cls(
            user_id=user_id,
            shipping_address_id=shipping_address_id,
            created_at=created_at,
            status=OrderStatus.PENDING_PAYMENT,
            payment_in_progress=True,
            subtotal=subtotal,
            shipping_cost=shipping_cost,
            total_amount=subtotal + shipping_cost,
            items=items,
        )

    def can_transition_to(self, status: OrderStatus) -> bool:
        return status in ALLOWED_TRANSITIONS[self.status]

    def can_resume_payment(self) -> bool:
        """Бизнес-правило: повторить оплату можно только для неоплаченного PENDING_PAYMENT"""
        return self.status == OrderStatus.PENDING_PAYMENT and self.payment_transaction_id is None

    def holds_stock(self) -> bool:
        """Резерв держится после создания платежа, пока заказ не доставлен или не отменен"""
        if self.status in (OrderStatus.CONFIRMED, OrderStatus.SHIPPED):
            return True
        return self.status == OrderStatus.PENDING_PAYMENT and self.payment_transaction_id is not None


class UserProfile(BaseModel):
    """Value Object: пользователь из сервиса identity"""
    model_config = ConfigDict(populate_by_name=True)

    id: int
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    email: Optional[str] = None
    status: Optional[str] = None
    default_address_id: Optional[int] = Field(default=None, alias="defaultAddressId")


class ProductInfo(BaseModel):
    """Value Object: товар из каталога"""
    id: int
    name: str
    price: Optional[Decimal] = None
    sku: Optional[str] = None
    status: Optional[str] = None


class InventorySnapshot(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(alias="productId")
    available_quantity: int = Field(alias="availableQuantity")
    last_update: Optional[datetime] = Field(default=None, alias="lastUpdate")


class PaymentTransaction(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    transaction_id: int = Field(alias="transactionId")
    status: Optional[str] = Field(default=None, alias="transactionStatus")
    amount: Optional[Decimal] = None
    currency: Optional[str] = None


class ReturnStatus(str, Enum):
    REQUESTED = "REQUESTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"


class OrderReturn(BaseModel):
    """Заявка на возврат по доставленному заказу"""
    id: Optional[int] = None
    order_id: int
    order_item_id: Optional[int] = None
    reason: str
    requested_at: datetime
    status: ReturnStatus = ReturnStatus.REQUESTED
    refund_amount: Optional[Decimal] = None
    refund_date: Optional[datetime] = None
