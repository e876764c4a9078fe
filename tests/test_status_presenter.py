import pytest

from checkout_service.models import Payment, PaymentMethod, PaymentStatus
from checkout_service.services.status_presenter import (
    StatusAction,
    Tone,
    method_label,
    present_status,
)


def _payment(status, method="qr_code"):
    return Payment.model_validate({
        "id": 1,
        "amount": 550,
        "method": method,
        "status": status,
        "transactionId": "TXN-1",
    })


@pytest.mark.parametrize(
    "status,tone,actions",
    [
        ("completed", Tone.SUCCESS, (StatusAction.VIEW_ORDERS, StatusAction.CONTINUE_SHOPPING)),
        ("pending", Tone.WARNING, (StatusAction.BACK,)),
        ("failed", Tone.DANGER, (StatusAction.RETRY, StatusAction.BACK)),
    ],
)
def test_status_content(status, tone, actions):
    view = present_status(_payment(status))
    assert view.status == PaymentStatus(status)
    assert view.tone == tone
    assert view.actions == actions


def test_view_carries_payment_details():
    view = present_status(_payment("completed", method="credit_card"))
    assert view.headline == "Payment successful"
    assert view.amount == 550
    assert view.currency == "THB"
    assert view.transaction_id == "TXN-1"
    assert view.method.label == "Credit / debit card"


def test_allows_only_offered_actions():
    view = present_status(_payment("failed"))
    assert view.allows(StatusAction.RETRY)
    assert view.allows("back")
    assert not view.allows(StatusAction.VIEW_ORDERS)


def test_method_labels():
    assert method_label(PaymentMethod.QR_CODE).icon == "fa-qrcode"
    assert method_label(PaymentMethod.CASH).label == "Cash on delivery"
    assert method_label(None).label == "Other"


def test_navigation_targets():
    completed = present_status(_payment("completed"), orders_path="/me/orders", products_path="/shop")
    assert completed.target_for(StatusAction.VIEW_ORDERS) == "/me/orders"
    assert completed.target_for(StatusAction.CONTINUE_SHOPPING) == "/shop"

    assert present_status(_payment("failed")).target_for(StatusAction.BACK) == "/orders"
    assert present_status(_payment("failed")).target_for(StatusAction.RETRY) is None
    # Back from a pending payment returns to method selection instead
    assert present_status(_payment("pending")).targets == {}
