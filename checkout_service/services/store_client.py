"""
Storefront API Client

HTTP client for the storefront's order and payment endpoints.
Attaches the user's bearer token to every request.
"""

import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ValidationError

from ..core.errors import AuthenticationError, OrderNotFoundError, StoreClientError
from ..models.order import Order
from ..models.payment import PaymentEnvelope, PaymentRequest

logger = logging.getLogger(__name__)


class StoreClient:
    """
    Client for the storefront REST API.

    Raises StoreClientError (or a subclass) for network failures and
    non-2xx responses; callers decide how to surface them.
    """

    def __init__(
        self,
        store_base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize store client.

        Args:
            store_base_url: Base URL of the storefront API
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = store_base_url.rstrip("/")
        self._http_client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self) -> None:
        """Close HTTP client"""
        await self._http_client.aclose()

    def _generate_headers(self, token: Optional[str], json_body: bool = True) -> dict[str, str]:
        """Generate headers including the bearer token if available"""
        headers = {"Accept": "application/json"}
        if json_body:
            headers["Content-Type"] = "application/json"
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        token: Optional[str],
        body: Optional[dict] = None,
        files: Optional[dict] = None,
    ) -> dict[str, Any]:
        """Make an authenticated HTTP request and decode the JSON body"""
        url = f"{self.base_url}{path}"
        headers = self._generate_headers(token, json_body=files is None)

        try:
            response = await self._http_client.request(
                method=method,
                url=url,
                headers=headers,
                json=body,
                files=files,
            )
        except httpx.HTTPError as e:
            logger.error(f"Request to {method} {path} failed: {e}")
            raise StoreClientError(f"Could not reach the store: {e}") from e

        if response.status_code >= 400:
            logger.error(f"Request failed: {response.status_code} - {response.text}")
            payload = self._safe_json(response)
            server_message = payload.get("message")
            error_cls = AuthenticationError if response.status_code == 401 else StoreClientError
            raise error_cls(
                server_message or f"Store responded with HTTP {response.status_code}",
                status_code=response.status_code,
                server_message=server_message,
                payload=payload,
            )

        return self._safe_json(response)

    @staticmethod
    def _parse(model: type[BaseModel], data: Any) -> Any:
        """Validate a response body, treating malformed data as a store failure"""
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.error(f"Unexpected {model.__name__} payload: {e}")
            raise StoreClientError(f"Store returned an invalid {model.__name__}") from e

    @staticmethod
    def _safe_json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    # ==================== Order APIs ====================

    async def get_order(self, order_id: int, token: str) -> Order:
        """
        Get one of the user's orders, including its payments.

        The storefront only lists orders per user, so the order is picked
        out of that list.
        """
        data = await self._request("GET", "/api/user/orders", token)
        for raw in data.get("orders", []):
            if str(raw.get("id")) == str(order_id):
                return self._parse(Order, raw)

        raise OrderNotFoundError(
            f"Order {order_id} not found",
            status_code=404,
        )

    # ==================== Payment APIs ====================

    async def create_payment(self, request: PaymentRequest, token: str) -> PaymentEnvelope:
        """Create a payment for an order"""
        data = await self._request("POST", "/api/payment", token, body=request.to_payload())
        return self._parse(PaymentEnvelope, data)

    async def upload_slip(
        self,
        payment_id: int,
        filename: str,
        content: bytes,
        content_type: str,
        token: str,
    ) -> PaymentEnvelope:
        """Upload a transfer slip image for a QR payment"""
        data = await self._request(
            "POST",
            f"/api/payment/{payment_id}/upload-slip",
            token,
            files={"slip": (filename, content, content_type)},
        )
        return self._parse(PaymentEnvelope, data)

    async def get_payment(self, payment_id: int, token: str) -> PaymentEnvelope:
        """Get the current server copy of a payment (possibly partial)"""
        data = await self._request("GET", f"/api/payment/{payment_id}", token)
        return self._parse(PaymentEnvelope, data)
