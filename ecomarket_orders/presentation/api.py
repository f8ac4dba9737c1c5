import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from ecomarket_orders.config import settings
from ecomarket_orders.database import AsyncSessionLocal
from ecomarket_orders.presentation.schemas import (
    CreateOrderRequest, OrderResponse, OrderStatusUpdateRequest, StatusUpdateResponse,
    ResumePaymentRequest, RequestReturnRequest, ApproveReturnRequest, RejectReturnRequest,
    ReturnResponse, ErrorResponse,
)
from ecomarket_orders.application.create_order import CreateOrderUseCase, CreateOrderDTO, OrderLineDTO
from ecomarket_orders.application.get_order import GetOrderUseCase, ListOrdersUseCase
from ecomarket_orders.application.update_order_status import UpdateOrderStatusUseCase
from ecomarket_orders.application.resume_payment import ResumePaymentUseCase
from ecomarket_orders.application.returns import (
    RequestReturnUseCase, RequestReturnDTO, GetReturnUseCase, ApproveReturnUseCase,
    RejectReturnUseCase, CompleteReturnUseCase,
)
from ecomarket_orders.domain.exceptions import (
    DomainException, InvalidRequestError, InvalidStatusError, MissingShippingAddressError,
    InsufficientStockError, NotFoundError, OrderNotFoundError, ReturnNotFoundError,
    InvalidReturnOperationError, InvalidInventoryOperationError, PaymentFailedError,
    PaymentRejectedError, ConcurrentModificationError, UpstreamUnavailableError,
)
from ecomarket_orders.infrastructure.unit_of_work import UnitOfWork
from ecomarket_orders.infrastructure.http_clients import (
    HTTPIdentityClient, HTTPCatalogClient, HTTPPaymentsClient,
)

router = APIRouter()

_STATUS_CODES = [
    ((OrderNotFoundError, ReturnNotFoundError), status.HTTP_404_NOT_FOUND),
    ((PaymentFailedError, PaymentRejectedError), status.HTTP_402_PAYMENT_REQUIRED),
    (ConcurrentModificationError, status.HTTP_409_CONFLICT),
    (UpstreamUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    ((InvalidRequestError, InvalidStatusError, MissingShippingAddressError, InsufficientStockError,
      NotFoundError, InvalidReturnOperationError, InvalidInventoryOperationError),
     status.HTTP_400_BAD_REQUEST),
]


def _http_error(exc: DomainException) -> HTTPException:
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for types, code in _STATUS_CODES:
        if isinstance(exc, types):
            status_code = code
            break
    return HTTPException(
        status_code=status_code,
        detail={"code": exc.code, "message": str(exc), **exc.details},
    )


# Фабрики для создания use cases
def get_unit_of_work():
    return UnitOfWork(AsyncSessionLocal)


def get_identity_service():
    return HTTPIdentityClient(settings.IDENTITY_BASE_URL, settings.API_TOKEN, settings.HTTP_TIMEOUT)


def get_catalog_service():
    return HTTPCatalogClient(settings.CATALOG_BASE_URL, settings.API_TOKEN, settings.HTTP_TIMEOUT)


def get_payments_service():
    return HTTPPaymentsClient(settings.PAYMENT_BASE_URL, settings.API_TOKEN, settings.PAYMENT_TIMEOUT)


def get_create_order_use_case(
    uow=Depends(get_unit_of_work),
    identity=Depends(get_identity_service),
    catalog=Depends(get_catalog_service),
    payments=Depends(get_payments_service),
):
    return CreateOrderUseCase(
        uow, identity, catalog, payments,
        shipping_cost=settings.SHIPPING_COST,
        currency=settings.DEFAULT_CURRENCY,
        default_payment_method=settings.DEFAULT_PAYMENT_METHOD,
    )


def get_resume_payment_use_case(
    uow=Depends(get_unit_of_work),
    catalog=Depends(get_catalog_service),
    payments=Depends(get_payments_service),
):
    return ResumePaymentUseCase(
        uow, catalog, payments,
        currency=settings.DEFAULT_CURRENCY,
        default_payment_method=settings.DEFAULT_PAYMENT_METHOD,
    )


def get_update_status_use_case(uow=Depends(get_unit_of_work), catalog=Depends(get_catalog_service)):
    return UpdateOrderStatusUseCase(uow, catalog)


def get_get_order_use_case(uow=Depends(get_unit_of_work)):
    return GetOrderUseCase(uow)


def get_list_orders_use_case(uow=Depends(get_unit_of_work)):
    return ListOrdersUseCase(uow)


@router.post(
    "/orders",
    response_model=OrderResponse,
    responses={400: {"model": ErrorResponse}, 402: {"model": ErrorResponse}, 409: {"model": ErrorResponse},
               503: {"model": ErrorResponse}},
    status_code=status.HTTP_201_CREATED
)
async def create_order(
    request: CreateOrderRequest,
    use_case: CreateOrderUseCase = Depends(get_create_order_use_case)
):
    """Оформление заказа: резерв товара, сохранение заказа и создание платежа"""
    try:
        dto = CreateOrderDTO(
            user_id=request.user_id,
            items=[OrderLineDTO(product_id=i.product_id, quantity=i.quantity) for i in request.items],
            payment_method=request.payment_method,
        )
        order = await use_case(dto)
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise _http_error(e)


@router.get("/orders", response_model=List[OrderResponse])
async def list_orders(
    order_date: Optional[datetime.date] = Query(None, alias="date"),
    use_case: ListOrdersUseCase = Depends(get_list_orders_use_case)
):
    orders = await use_case(order_date)
    return [OrderResponse.from_domain(order) for order in orders]


@router.get(
    "/orders/{order_id}",
    response_model=OrderResponse,
    responses={404: {"model": ErrorResponse}}
)
async def get_order(
    order_id: int,
    use_case: GetOrderUseCase = Depends(get_get_order_use_case)
):
    order = await use_case(order_id)
    if order is None:
        raise _http_error(OrderNotFoundError(order_id))
    return OrderResponse.from_domain(order)


@router.put(
    "/orders/{order_id}/status",
    response_model=StatusUpdateResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}}
)
async def update_order_status(
    order_id: int,
    request: OrderStatusUpdateRequest,
    use_case: UpdateOrderStatusUseCase = Depends(get_update_status_use_case)
):
    try:
        result = await use_case(order_id, request.new_status)
    except DomainException as e:
        raise _http_error(e)
    warnings = []
    if result.warning is not None:
        warnings.append({"code": result.warning.code, "message": str(result.warning), **result.warning.details})
    return StatusUpdateResponse(order=OrderResponse.from_domain(result.order), warnings=warnings)


@router.post(
    "/orders/{order_id}/payment",
    response_model=OrderResponse,
    responses={400: {"model": ErrorResponse}, 402: {"model": ErrorResponse}, 404: {"model": ErrorResponse},
               409: {"model": ErrorResponse}}
)
async def resume_payment(
    order_id: int,
    request: ResumePaymentRequest,
    use_case: ResumePaymentUseCase = Depends(get_resume_payment_use_case)
):
    """Повторная оплата заказа в PENDING_PAYMENT"""
    try:
        order = await use_case(order_id, request.payment_method)
        return OrderResponse.from_domain(order)
    except DomainException as e:
        raise _http_error(e)


@router.post(
    "/orders/{order_id}/returns",
    response_model=ReturnResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}
)
async def request_return(
    order_id: int,
    request: RequestReturnRequest,
    uow=Depends(get_unit_of_work)
):
    try:
        order_return = await RequestReturnUseCase(uow)(RequestReturnDTO(
            order_id=order_id, order_item_id=request.order_item_id, reason=request.reason
        ))
        return ReturnResponse.from_domain(order_return)
    except DomainException as e:
        raise _http_error(e)


@router.get("/returns/{return_id}", response_model=ReturnResponse, responses={404: {"model": ErrorResponse}})
async def get_return(return_id: int, uow=Depends(get_unit_of_work)):
    try:
        return ReturnResponse.from_domain(await GetReturnUseCase(uow)(return_id))
    except DomainException as e:
        raise _http_error(e)


@router.post("/returns/{return_id}/approve", response_model=ReturnResponse)
async def approve_return(return_id: int, request: ApproveReturnRequest, uow=Depends(get_unit_of_work)):
    try:
        return ReturnResponse.from_domain(await ApproveReturnUseCase(uow)(return_id, request.refund_amount))
    except DomainException as e:
        raise _http_error(e)


@router.post("/returns/{return_id}/reject", response_model=ReturnResponse)
async def reject_return(return_id: int, request: RejectReturnRequest, uow=Depends(get_unit_of_work)):
    try:
        return ReturnResponse.from_domain(await RejectReturnUseCase(uow)(return_id, request.reason))
    except DomainException as e:
        raise _http_error(e)


@router.post("/returns/{return_id}/complete", response_model=ReturnResponse)
async def complete_return(return_id: int, uow=Depends(get_unit_of_work)):
    try:
        return ReturnResponse.from_domain(await CompleteReturnUseCase(uow)(return_id))
    except DomainException as e:
        raise _http_error(e)
