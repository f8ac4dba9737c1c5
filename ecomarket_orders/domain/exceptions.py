from typing import List, Optional


class DomainException(Exception):
    code = "domain_error"

    def __init__(self, message: str = "", **details):
        self.details = details
        super().__init__(message)


class InvalidRequestError(DomainException):
    code = "invalid_request"


class InvalidStatusError(DomainException):
    code = "invalid_status"


class NotFoundError(DomainException):
    code = "not_found"


class UserNotFoundError(NotFoundError):
    code = "user_not_found"

    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found", user_id=user_id)


class ProductNotFoundError(NotFoundError):
    code = "product_not_found"

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found", product_id=product_id)


class OrderNotFoundError(NotFoundError):
    code = "order_not_found"

    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found", order_id=order_id)


class ReturnNotFoundError(NotFoundError):
    code = "return_not_found"

    def __init__(self, return_id: int):
        self.return_id = return_id
        super().__init__(f"Return {return_id} not found", return_id=return_id)


class MissingShippingAddressError(DomainException):
    code = "missing_shipping_address"

    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(
            f"User {user_id} does not have a default shipping address assigned",
            user_id=user_id,
        )


class InsufficientStockError(DomainException):
    code = "insufficient_stock"

    def __init__(self, product_id: int, requested: int, available: Optional[int] = None):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        if available is None:
            message = f"Not enough stock for product {product_id}: requested {requested}"
        else:
            message = (
                f"Not enough stock for product {product_id}: "
                f"requested {requested}, available {available}"
            )
        super().__init__(message, product_id=product_id, requested=requested, available=available)


class InvalidInventoryOperationError(DomainException):
    code = "invalid_inventory_operation"


class ConcurrentModificationError(DomainException):
    code = "concurrent_modification"

    def __init__(self, order_id: int, message: str = ""):
        self.order_id = order_id
        super().__init__(message or f"Order {order_id} was modified concurrently", order_id=order_id)


class PaymentNotAttachedError(ConcurrentModificationError):
    """Платеж создан, но заказ изменился до привязки транзакции; нужен возврат средств"""
    code = "payment_not_attached"

    def __init__(self, order_id: int, transaction_id: int, reason: str = ""):
        self.transaction_id = transaction_id
        super().__init__(
            order_id,
            f"Payment transaction {transaction_id} could not be attached to order {order_id}"
            + (f": {reason}" if reason else ""),
        )
        self.details["transaction_id"] = transaction_id


class InvalidReturnOperationError(DomainException):
    code = "invalid_return_operation"


class UpstreamUnavailableError(DomainException):
    """Сбой транспорта, таймаут или неожиданный ответ удаленного сервиса"""
    code = "upstream_unavailable"

    def __init__(self, service: str, message: str = ""):
        self.service = service
        super().__init__(message or f"{service} service unavailable", service=service)


class UserResolutionFailedError(UpstreamUnavailableError):
    code = "user_resolution_failed"

    def __init__(self, user_id: int, message: str = ""):
        self.user_id = user_id
        super().__init__("identity", message or f"Failed to retrieve user {user_id}")
        self.details["user_id"] = user_id


class PaymentRejectedError(DomainException):
    code = "payment_rejected"


class PaymentUnavailableError(UpstreamUnavailableError):
    code = "payment_unavailable"

    def __init__(self, message: str = ""):
        super().__init__("payment", message)


class PaymentFailedError(DomainException):
    """Платеж не создан; заказ остается в PENDING_PAYMENT, оплату можно повторить"""
    code = "payment_failed"

    def __init__(self, order_id: int, reason: str):
        self.order_id = order_id
        self.reason = reason
        super().__init__(f"Payment for order {order_id} failed: {reason}", order_id=order_id, reason=reason)


class CompensationFailure:
    def __init__(self, product_id: int, quantity: int, error: Exception):
        self.product_id = product_id
        self.quantity = quantity
        self.error = error

    def __repr__(self):
        return f"CompensationFailure(product_id={self.product_id}, quantity={self.quantity}, error={self.error!r})"


class CompensationPartialFailure(DomainException):
    """Один или несколько RELEASE не прошли; возвращается как предупреждение, смену статуса не отменяет"""
    code = "compensation_partial_failure"

    def __init__(self, order_id: Optional[int], failures: List[CompensationFailure]):
        self.order_id = order_id
        self.failures = failures
        products = ", ".join(str(f.product_id) for f in failures)
        super().__init__(
            f"Inventory release failed for products [{products}]",
            order_id=order_id,
            products=[
                {"product_id": f.product_id, "quantity": f.quantity, "error": str(f.error)}
                for f in failures
            ],
        )
