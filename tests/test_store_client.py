import json

import httpx
import pytest

from checkout_service.core.errors import (
    AuthenticationError,
    OrderNotFoundError,
    StoreClientError,
)
from checkout_service.models import PaymentMethod, PaymentRequest, PaymentStatus
from checkout_service.services.store_client import StoreClient

from .conftest import STORE_URL, TOKEN


def _client(handler):
    return StoreClient(STORE_URL, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_get_order_sends_bearer_token(store, store_client):
    order = await store_client.get_order(1, token=TOKEN)
    assert order.id == 1
    assert order.cart_total == 450
    request = store.requests[0]
    assert request.headers["Authorization"] == f"Bearer {TOKEN}"
    assert request.url == f"{STORE_URL}/api/user/orders"


@pytest.mark.asyncio
async def test_get_order_not_in_user_orders(store_client):
    with pytest.raises(OrderNotFoundError) as exc_info:
        await store_client.get_order(99, token=TOKEN)
    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_unauthorized_raises_authentication_error(store, store_client):
    store.auth_fails = True
    with pytest.raises(AuthenticationError) as exc_info:
        await store_client.get_order(1, token=TOKEN)
    assert exc_info.value.status_code == 401
    assert exc_info.value.server_message == "Please log in again"


@pytest.mark.asyncio
async def test_error_response_keeps_server_message_and_payload(store, store_client):
    store.create_error = (409, {"message": "Payment already exists", "payment": {"id": 7}})
    request = PaymentRequest(order_id=1, method=PaymentMethod.CASH)
    with pytest.raises(StoreClientError) as exc_info:
        await store_client.create_payment(request, token=TOKEN)
    error = exc_info.value
    assert not isinstance(error, AuthenticationError)
    assert error.status_code == 409
    assert error.server_message == "Payment already exists"
    assert error.payload["payment"] == {"id": 7}


@pytest.mark.asyncio
async def test_error_without_json_body():
    client = _client(lambda request: httpx.Response(502, text="Bad gateway"))
    with pytest.raises(StoreClientError) as exc_info:
        await client.get_payment(1, token=TOKEN)
    assert exc_info.value.server_message is None
    assert exc_info.value.message == "Store responded with HTTP 502"


@pytest.mark.asyncio
async def test_network_failure_becomes_store_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(StoreClientError):
        await _client(handler).get_order(1, token=TOKEN)


@pytest.mark.asyncio
async def test_malformed_payment_response():
    client = _client(lambda request: httpx.Response(200, json={"message": "ok"}))
    with pytest.raises(StoreClientError):
        await client.get_payment(1, token=TOKEN)


@pytest.mark.asyncio
async def test_create_payment_posts_json(store, store_client):
    request = PaymentRequest(order_id=1, method=PaymentMethod.QR_CODE, shipping_fee=50)
    envelope = await store_client.create_payment(request, token=TOKEN)

    assert envelope.message == "Payment created"
    assert envelope.payment.status == PaymentStatus.PENDING
    sent = store.requests[0]
    assert sent.headers["Content-Type"] == "application/json"
    assert json.loads(sent.content) == {
        "orderId": 1,
        "method": "qr_code",
        "shippingFee": 50.0,
        "customerInfo": {"name": "", "email": "", "phone": "", "address": ""},
    }


@pytest.mark.asyncio
async def test_upload_slip_sends_multipart(store, store_client):
    envelope = await store_client.upload_slip(
        payment_id=7,
        filename="slip.png",
        content=b"\x89PNG fake",
        content_type="image/png",
        token=TOKEN,
    )
    assert envelope.payment.payment_slip_url
    sent = store.requests[0]
    assert sent.url.path == "/api/payment/7/upload-slip"
    assert sent.headers["Content-Type"].startswith("multipart/form-data")
    assert b'name="slip"' in sent.content
    assert b"\x89PNG fake" in sent.content
