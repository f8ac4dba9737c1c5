from pydantic import BaseModel
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from ecomarket_orders.domain.models import OrderStatus, ReturnStatus


class OrderLineRequest(BaseModel):
    product_id: Optional[int] = None
    quantity: Optional[int] = None


class CreateOrderRequest(BaseModel):
    user_id: Optional[int] = None
    items: List[OrderLineRequest] = []
    payment_method: Optional[str] = None


class OrderStatusUpdateRequest(BaseModel):
    new_status: str


class ResumePaymentRequest(BaseModel):
    payment_method: Optional[str] = None


class OrderItemResponse(BaseModel):
    id: Optional[int] = None
    product_id: int
    product_name: Optional[str] = None
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


class OrderResponse(BaseModel):
    id: int
    user_id: int
    shipping_address_id: int
    payment_transaction_id: Optional[int] = None
    created_at: datetime
    status: OrderStatus
    subtotal: Decimal
    shipping_cost: Decimal
    total_amount: Decimal
    items: List[OrderItemResponse]

    @classmethod
    def from_domain(cls, order):
        return cls(
            id=order.id,
            user_id=order.user_id,
            shipping_address_id=order.shipping_address_id,
            payment_transaction_id=order.payment_transaction_id,
            created_at=order.created_at,
            status=order.status,
            subtotal=order.subtotal,
            shipping_cost=order.shipping_cost,
            total_amount=order.total_amount,
            items=[
                OrderItemResponse(
                    id=item.id,
                    product_id=item.product_id,
                    product_name=item.product_name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    subtotal=item.subtotal,
                )
                for item in order.items
            ],
        )


class StatusUpdateResponse(BaseModel):
    order: OrderResponse
    warnings: List[dict] = []


class RequestReturnRequest(BaseModel):
    order_item_id: Optional[int] = None
    reason: str


class ApproveReturnRequest(BaseModel):
    refund_amount: Decimal


class RejectReturnRequest(BaseModel):
    reason: Optional[str] = None


class ReturnResponse(BaseModel):
    id: int
    order_id: int
    order_item_id: Optional[int] = None
    reason: str
    requested_at: datetime
    status: ReturnStatus
    refund_amount: Optional[Decimal] = None
    refund_date: Optional[datetime] = None

    @classmethod
    def from_domain(cls, order_return):
        return cls(**order_return.model_dump())


class ErrorResponse(BaseModel):
    detail: dict
