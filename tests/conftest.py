"""Pytest bootstrap configuration.

Provides an in-memory storefront served through httpx.MockTransport so
the checkout flow can be exercised without a real store.
"""
import os

# Keep test runs independent of a developer's config/.env
os.environ.setdefault("STORE_API_URL", "http://store.test")
os.environ.setdefault("DEBUG", "false")

import json
import re
from typing import Callable, Optional

import httpx
import pytest

from checkout_service.core.session import SessionManager
from checkout_service.services.checkout_flow import CheckoutFlow
from checkout_service.services.proof_manager import ProofSubmissionManager
from checkout_service.services.store_client import StoreClient

STORE_URL = "http://store.test"
TOKEN = "token-123"

PENDING_QR_PAYMENT = {
    "id": 7,
    "amount": 450,
    "currency": "THB",
    "method": "qr_code",
    "status": "pending",
    "qrCodeData": "00020101021129370016A000000677010111",
    "createdAt": "2024-12-01T10:00:00",
}


def make_order(order_id: int = 1, payments: Optional[list] = None) -> dict:
    return {
        "id": order_id,
        "products": [
            {
                "productId": 10,
                "price": 250,
                "count": 2,
                "selectedVariants": {"size": "M"},
                "product": {"title": "Linen shirt"},
            }
        ],
        "discountAmount": 50,
        "discountCode": "SAVE50",
        "cartTotal": 450,
        "payments": payments or [],
    }


class FakeStore:
    """Storefront API double: orders, payment creation, slip upload, status"""

    def __init__(self):
        self.orders: list[dict] = [make_order()]
        self.payments: dict[int, dict] = {}
        self.next_payment_id = 100
        self.requests: list[httpx.Request] = []
        self.payment_requests: list[dict] = []
        self.uploads: list[bytes] = []
        self.status_checks = 0

        self.auth_fails = False
        self.create_error: Optional[tuple[int, dict]] = None
        self.create_status: Optional[str] = None
        self.upload_status = "pending"
        self.refresh_status: Optional[str] = None
        self.refresh_message: Optional[str] = None
        self.before_response: Optional[Callable[[httpx.Request], None]] = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.before_response:
            self.before_response(request)

        if self.auth_fails:
            return httpx.Response(401, json={"message": "Please log in again"})

        path = request.url.path
        if request.method == "GET" and path == "/api/user/orders":
            return httpx.Response(200, json={"orders": self.orders})

        if request.method == "POST" and path == "/api/payment":
            return self._create_payment(json.loads(request.content))

        match = re.fullmatch(r"/api/payment/(\d+)/upload-slip", path)
        if request.method == "POST" and match:
            return self._upload_slip(int(match.group(1)), request)

        match = re.fullmatch(r"/api/payment/(\d+)", path)
        if request.method == "GET" and match:
            return self._get_payment(int(match.group(1)))

        return httpx.Response(404, json={"message": "Not found"})

    def _create_payment(self, body: dict) -> httpx.Response:
        self.payment_requests.append(body)
        if self.create_error:
            status_code, payload = self.create_error
            return httpx.Response(status_code, json=payload)

        method = body["method"]
        status = self.create_status or ("pending" if method == "qr_code" else "completed")
        payment = {
            "id": self.next_payment_id,
            "amount": 450 + body.get("shippingFee", 0),
            "currency": "THB",
            "method": method,
            "status": status,
            "transactionId": f"TXN-{self.next_payment_id}",
            "createdAt": "2024-12-01T10:00:00",
        }
        if method == "qr_code":
            payment["qrCodeData"] = "00020101021129370016A000000677010111"
        self.payments[payment["id"]] = payment
        self.next_payment_id += 1
        return httpx.Response(201, json={"message": "Payment created", "payment": payment})

    def _upload_slip(self, payment_id: int, request: httpx.Request) -> httpx.Response:
        self.uploads.append(request.content)
        payment = self.payments.setdefault(payment_id, dict(PENDING_QR_PAYMENT, id=payment_id))
        payment["paymentSlipUrl"] = f"/uploads/slip-{payment_id}-{len(self.uploads)}.png"
        payment["status"] = self.upload_status
        return httpx.Response(200, json={"message": "Slip uploaded", "payment": payment})

    def _get_payment(self, payment_id: int) -> httpx.Response:
        self.status_checks += 1
        payment = self.payments.get(payment_id)
        if payment is None:
            return httpx.Response(404, json={"message": "Payment not found"})
        if self.refresh_status:
            payment["status"] = self.refresh_status
        # Status endpoint answers with a partial record
        body = {"payment": {"id": payment_id, "status": payment["status"]}}
        if self.refresh_message:
            body["message"] = self.refresh_message
        return httpx.Response(200, json=body)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def store_client(store):
    return StoreClient(STORE_URL, transport=httpx.MockTransport(store.handler))


@pytest.fixture
def proof_manager(store_client):
    return ProofSubmissionManager(
        store=store_client,
        window_seconds=900,
        tick_interval=0.01,
        result_delay=0,
    )


@pytest.fixture
def flow(store_client, proof_manager):
    return CheckoutFlow(store=store_client, proof=proof_manager)


@pytest.fixture
def manager():
    return SessionManager()


@pytest.fixture
def session(manager):
    session = manager.create_session(order_id=1, auth_token=TOKEN)
    yield session
    session.close()
