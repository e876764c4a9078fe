# Storefront API models

from .order import Order, OrderLineItem
from .payment import (
    CardInfo,
    CustomerInfo,
    Payment,
    PaymentEnvelope,
    PaymentMethod,
    PaymentRequest,
    PaymentStatus,
)
from .shipping import DEFAULT_SHIPPING_ID, SHIPPING_OPTIONS, ShippingOption

__all__ = [
    "Order",
    "OrderLineItem",
    "CardInfo",
    "CustomerInfo",
    "Payment",
    "PaymentEnvelope",
    "PaymentMethod",
    "PaymentRequest",
    "PaymentStatus",
    "DEFAULT_SHIPPING_ID",
    "SHIPPING_OPTIONS",
    "ShippingOption",
]
