"""Shipping options offered at checkout"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ShippingOption:
    id: str
    name: str
    fee: float
    delivery_window: str


STANDARD = ShippingOption(id="standard", name="Standard delivery", fee=0, delivery_window="3-5 days")
EXPRESS = ShippingOption(id="express", name="Express delivery", fee=50, delivery_window="1-2 days")

SHIPPING_OPTIONS: dict[str, ShippingOption] = {
    option.id: option for option in (STANDARD, EXPRESS)
}

DEFAULT_SHIPPING_ID = STANDARD.id
