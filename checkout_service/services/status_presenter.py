"""
Payment Status Presenter

Maps a payment's status to what the result screen shows and which
actions it offers. Pure functions, no session mutation.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from ..models.payment import Payment, PaymentMethod, PaymentStatus


class StatusAction(str, Enum):
    VIEW_ORDERS = "view_orders"
    CONTINUE_SHOPPING = "continue_shopping"
    BACK = "back"
    RETRY = "retry"


class Tone(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    DANGER = "danger"


@dataclass(frozen=True)
class MethodLabel:
    label: str
    icon: str


@dataclass(frozen=True)
class StatusView:
    """Everything the result screen needs for one payment"""
    status: PaymentStatus
    headline: str
    description: str
    badge: str
    icon: str
    tone: Tone
    actions: tuple[StatusAction, ...]
    method: MethodLabel
    amount: float
    currency: str
    transaction_id: Optional[str] = None
    created_at: Optional[datetime] = None
    targets: dict[StatusAction, str] = field(default_factory=dict)

    def allows(self, action: StatusAction) -> bool:
        return StatusAction(action) in self.actions

    def target_for(self, action: StatusAction) -> Optional[str]:
        """Path the UI navigates to for a navigational action"""
        return self.targets.get(StatusAction(action))


METHOD_LABELS: dict[Optional[PaymentMethod], MethodLabel] = {
    PaymentMethod.CASH: MethodLabel("Cash on delivery", "fa-money-bill-wave"),
    PaymentMethod.CREDIT_CARD: MethodLabel("Credit / debit card", "fa-credit-card"),
    PaymentMethod.QR_CODE: MethodLabel("QR Code", "fa-qrcode"),
}
UNKNOWN_METHOD = MethodLabel("Other", "fa-wallet")

_STATUS_CONTENT = {
    PaymentStatus.COMPLETED: (
        "Payment successful",
        "Your order is now being processed.",
        "Successful",
        "fa-check-circle",
        Tone.SUCCESS,
        (StatusAction.VIEW_ORDERS, StatusAction.CONTINUE_SHOPPING),
    ),
    PaymentStatus.PENDING: (
        "Waiting for payment",
        "We will update your order once the payment is confirmed.",
        "Pending",
        "fa-clock",
        Tone.WARNING,
        (StatusAction.BACK,),
    ),
    PaymentStatus.FAILED: (
        "Payment failed",
        "The payment could not be completed. You can try again.",
        "Failed",
        "fa-times-circle",
        Tone.DANGER,
        (StatusAction.RETRY, StatusAction.BACK),
    ),
}


def method_label(method: Optional[PaymentMethod]) -> MethodLabel:
    return METHOD_LABELS.get(method, UNKNOWN_METHOD)


def _action_targets(
    status: PaymentStatus,
    actions: tuple[StatusAction, ...],
    orders_path: str,
    products_path: str,
) -> dict[StatusAction, str]:
    targets = {
        StatusAction.VIEW_ORDERS: orders_path,
        StatusAction.CONTINUE_SHOPPING: products_path,
    }
    # Back from a failed payment leaves checkout; from a pending one it stays
    if status == PaymentStatus.FAILED:
        targets[StatusAction.BACK] = orders_path
    return {action: path for action, path in targets.items() if action in actions}


def present_status(
    payment: Payment,
    orders_path: str = "/orders",
    products_path: str = "/products",
) -> StatusView:
    """Build the result screen view for a payment"""
    headline, description, badge, icon, tone, actions = _STATUS_CONTENT[payment.status]
    return StatusView(
        status=payment.status,
        headline=headline,
        description=description,
        badge=badge,
        icon=icon,
        tone=tone,
        actions=actions,
        method=method_label(payment.method),
        amount=payment.amount,
        currency=payment.currency,
        transaction_id=payment.transaction_id,
        created_at=payment.created_at,
        targets=_action_targets(payment.status, actions, orders_path, products_path),
    )
