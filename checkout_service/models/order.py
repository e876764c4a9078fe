"""Order models for the storefront API"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from .payment import Payment


class OrderLineItem(BaseModel):
    """Product line in an order"""
    product_id: Optional[int] = Field(default=None, alias="productId")
    price: float = 0.0
    count: int = 1
    selected_variants: Optional[Any] = Field(default=None, alias="selectedVariants")
    product: Optional[dict[str, Any]] = None

    class Config:
        populate_by_name = True

    @property
    def line_total(self) -> float:
        return self.price * self.count

    @property
    def title(self) -> str:
        if self.product:
            return self.product.get("title", "")
        return ""


class Order(BaseModel):
    """Order as returned by the storefront, with its payments"""
    id: int
    products: list[OrderLineItem] = []
    discount_amount: float = Field(default=0.0, alias="discountAmount")
    discount_code: Optional[str] = Field(default=None, alias="discountCode")
    cart_total: float = Field(default=0.0, alias="cartTotal")
    payments: list[Payment] = []

    class Config:
        populate_by_name = True

    def find_pending_qr_payment(self) -> Optional[Payment]:
        """First outstanding QR payment, if any"""
        return next((p for p in self.payments if p.is_pending_qr), None)
