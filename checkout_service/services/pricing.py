"""Checkout totals"""

from dataclasses import dataclass
from typing import Optional

from ..models.order import Order
from ..models.shipping import ShippingOption


@dataclass(frozen=True)
class CheckoutTotals:
    """Amounts shown in the order summary"""
    subtotal: float
    discount: float
    discount_code: Optional[str]
    shipping_fee: float
    total: float


def compute_totals(order: Optional[Order], shipping: ShippingOption) -> CheckoutTotals:
    """
    Compute the order summary for the selected shipping option.

    The storefront has already applied the discount to cart_total, so the
    grand total is cart_total plus shipping. Subtotal and discount are
    informational only. Without line items the subtotal is reconstructed
    as cart_total + discount_amount.
    """
    if order is None:
        return CheckoutTotals(
            subtotal=0.0,
            discount=0.0,
            discount_code=None,
            shipping_fee=shipping.fee,
            total=shipping.fee,
        )

    items_subtotal = sum(item.line_total for item in order.products)
    subtotal = items_subtotal if items_subtotal > 0 else order.cart_total + order.discount_amount

    return CheckoutTotals(
        subtotal=subtotal,
        discount=order.discount_amount,
        discount_code=order.discount_code,
        shipping_fee=shipping.fee,
        total=order.cart_total + shipping.fee,
    )
