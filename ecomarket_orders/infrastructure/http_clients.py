import httpx
import logging
from decimal import Decimal
from typing import Optional

from ecomarket_orders.domain.models import (
    UserProfile, ProductInfo, InventorySnapshot, InventoryOperationType, PaymentTransaction,
)
from ecomarket_orders.domain.exceptions import (
    InsufficientStockError, InvalidInventoryOperationError, PaymentRejectedError,
    PaymentUnavailableError, ProductNotFoundError, UpstreamUnavailableError,
)
from ecomarket_orders.application.interfaces import IdentityService, CatalogService, PaymentsService

logger = logging.getLogger(__name__)


class _HTTPClient:
    def __init__(
        self,
        base_url: str,
        api_token: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_token = api_token
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers={"X-API-Key": self._api_token},
            timeout=self._timeout,
            transport=self._transport,
        )


class HTTPIdentityClient(_HTTPClient, IdentityService):
    async def get_user(self, user_id: int) -> Optional[UserProfile]:
        try:
            async with self._client() as client:
                response = await client.get(f"/api/v1/users/{user_id}")
        except httpx.RequestError as e:
            logger.error(f"Identity service connection error: {e}")
            raise UpstreamUnavailableError("identity", f"Identity service unavailable: {e}")

        if response.status_code == 200:
            return UserProfile(**response.json())
        elif response.status_code == 404:
            return None
        raise UpstreamUnavailableError("identity", f"Identity service error: {response.status_code}")


class HTTPCatalogClient(_HTTPClient, CatalogService):
    async def get_product(self, product_id: int) -> Optional[ProductInfo]:
        response = await self._get(f"/api/v1/products/{product_id}")
        if response.status_code == 200:
            return ProductInfo(**response.json())
        elif response.status_code == 404:
            return None
        raise UpstreamUnavailableError("catalog", f"Catalog service error: {response.status_code}")

    async def get_inventory(self, product_id: int) -> Optional[InventorySnapshot]:
        response = await self._get(f"/api/v1/inventory/{product_id}")
        if response.status_code == 200:
            return InventorySnapshot(**response.json())
        elif response.status_code == 404:
            return None
        raise UpstreamUnavailableError("catalog", f"Catalog service error: {response.status_code}")

    async def apply_inventory_operation(
        self, product_id: int, operation: InventoryOperationType, quantity: int
    ) -> InventorySnapshot:
        try:
            async with self._client() as client:
                response = await client.post(
                    f"/api/v1/inventory/{product_id}/operation",
                    json={"operationType": operation.value, "quantity": quantity},
                )
        except httpx.RequestError as e:
            logger.error(f"Catalog service connection error on {operation.value} {product_id}: {e}")
            raise UpstreamUnavailableError("catalog", f"Catalog service unavailable: {e}")

        if response.status_code == 200:
            return InventorySnapshot(**response.json())
        elif response.status_code == 404:
            raise ProductNotFoundError(product_id)
        elif response.status_code == 400:
            if operation == InventoryOperationType.RESERVE:
                raise InsufficientStockError(product_id, quantity)
            raise InvalidInventoryOperationError(
                f"Inventory rejected {operation.value} of {quantity} for product {product_id}",
                product_id=product_id, operation=operation.value,
            )
        raise UpstreamUnavailableError("catalog", f"Catalog service error: {response.status_code}")

    async def _get(self, path: str) -> httpx.Response:
        try:
            async with self._client() as client:
                return await client.get(path)
        except httpx.RequestError as e:
            logger.error(f"Catalog service connection error: {e}")
            raise UpstreamUnavailableError("catalog", f"Catalog service unavailable: {e}")


class HTTPPaymentsClient(_HTTPClient, PaymentsService):
    async def create_transaction(
        self, order_id: int, user_id: int, amount: Decimal, currency: str, method: str
    ) -> PaymentTransaction:
        try:
            async with self._client() as client:
                response = await client.post(
                    "/api/v1/transactions",
                    json={
                        "orderId": order_id,
                        "userId": user_id,
                        "amount": str(amount),
                        "currency": currency,
                        "paymentMethod": method,
                    },
                )
        except httpx.RequestError as e:
            # таймаут тоже сюда: повторять нельзя, возможен двойной платеж
            logger.error(f"Payment service connection error: {e}")
            raise PaymentUnavailableError(f"Payment service unavailable: {e}")

        if response.status_code in (200, 201):
            return PaymentTransaction(**response.json())
        elif 400 <= response.status_code < 500:
            raise PaymentRejectedError(
                f"Payment rejected ({response.status_code}): {response.text}",
                order_id=order_id, status_code=response.status_code,
            )
        raise PaymentUnavailableError(f"Payment service error: {response.status_code}")
