# Core modules

from .config import settings
from .session import CheckoutSession, CheckoutStep, SessionManager

__all__ = ["settings", "CheckoutSession", "CheckoutStep", "SessionManager"]
