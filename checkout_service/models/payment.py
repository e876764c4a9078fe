"""Payment models for the storefront API"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


class PaymentMethod(str, Enum):
    CASH = "cash"
    CREDIT_CARD = "credit_card"
    QR_CODE = "qr_code"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not PaymentStatus.PENDING


class Payment(BaseModel):
    """Local cache of a server-side payment record"""
    id: int
    amount: float = 0.0
    currency: str = "THB"
    method: Optional[PaymentMethod] = None
    status: PaymentStatus = PaymentStatus.PENDING
    transaction_id: Optional[str] = Field(default=None, alias="transactionId")
    qr_code_data: Optional[str] = Field(default=None, alias="qrCodeData")
    payment_slip_url: Optional[str] = Field(default=None, alias="paymentSlipUrl")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    class Config:
        populate_by_name = True

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> Any:
        # Review states such as "waiting_approval" are still unresolved
        if isinstance(value, str) and value not in PaymentStatus._value2member_map_:
            return PaymentStatus.PENDING
        return value

    @property
    def is_pending_qr(self) -> bool:
        return self.status == PaymentStatus.PENDING and self.method == PaymentMethod.QR_CODE

    def merge(self, update: "Payment") -> "Payment":
        """
        Merge a server copy into this cached payment.

        Only fields the server actually sent are taken over, since some
        endpoints answer with a partial record. A terminal status never
        moves back.
        """
        changes = update.model_dump(exclude_unset=True)
        if self.status.is_terminal and changes.get("status") not in (None, self.status):
            logger.warning(
                f"Ignoring status change {self.status.value} -> {changes['status'].value} "
                f"for payment {self.id}"
            )
            changes.pop("status")
        return self.model_copy(update=changes)


class CustomerInfo(BaseModel):
    """Customer contact details forwarded with a payment"""
    name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""


class CardInfo(BaseModel):
    """Masked card summary; the full number and CVC are never sent"""
    last4: str
    brand: str
    exp: str


class PaymentRequest(BaseModel):
    """Request to create a payment for an order"""
    order_id: int = Field(alias="orderId")
    method: PaymentMethod
    shipping_fee: float = Field(default=0.0, alias="shippingFee")
    customer_info: CustomerInfo = Field(default_factory=CustomerInfo, alias="customerInfo")
    card_info: Optional[CardInfo] = Field(default=None, alias="cardInfo")
    note: Optional[str] = None

    class Config:
        populate_by_name = True

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class PaymentEnvelope(BaseModel):
    """Storefront response carrying a payment"""
    message: Optional[str] = None
    payment: Payment
