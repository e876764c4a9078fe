# Checkout Service Routes

from .checkout import router as checkout_router

__all__ = ["checkout_router"]
