"""Responses returned by checkout actions"""

from dataclasses import dataclass
from typing import Optional

from ..core.session import CheckoutSession, NoticeLevel


@dataclass
class FlowResponse:
    """Outcome of a checkout action, shown to the user as a notice"""
    message: str
    level: NoticeLevel = NoticeLevel.INFO
    redirect_to: Optional[str] = None  # Set when the UI should leave checkout
    changed: bool = True  # False for no-ops such as a duplicate submit

    @property
    def ok(self) -> bool:
        return self.level in (NoticeLevel.SUCCESS, NoticeLevel.INFO)


def respond(
    session: CheckoutSession,
    level: NoticeLevel,
    message: str,
    redirect_to: Optional[str] = None,
    changed: bool = True,
) -> FlowResponse:
    """Record a notice on the session and wrap it in a FlowResponse"""
    session.add_notice(level, message)
    return FlowResponse(message=message, level=level, redirect_to=redirect_to, changed=changed)
