"""Checkout session state and session management"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from cardform import CardField, CardInput, CardValidity, apply_change

from ..models.order import Order
from ..models.payment import CustomerInfo, Payment, PaymentMethod
from ..models.shipping import DEFAULT_SHIPPING_ID, SHIPPING_OPTIONS, ShippingOption
from ..services.pricing import CheckoutTotals, compute_totals
from .errors import CheckoutValidationError, InvalidStepError, InvalidTransitionError

if TYPE_CHECKING:
    from ..services.proof_manager import Countdown, SlipFile

logger = logging.getLogger(__name__)

MAX_NOTICES = 20


class CheckoutStep(str, Enum):
    """Current step of the checkout flow"""
    SELECT = "select"
    PROOF = "proof"
    RESULT = "result"


VALID_TRANSITIONS: dict[CheckoutStep, set[CheckoutStep]] = {
    CheckoutStep.SELECT: {CheckoutStep.PROOF, CheckoutStep.RESULT},
    CheckoutStep.PROOF: {CheckoutStep.RESULT, CheckoutStep.SELECT},
    CheckoutStep.RESULT: {CheckoutStep.SELECT},
}


class NoticeLevel(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    """Transient user-facing message"""
    level: NoticeLevel
    message: str
    created_at: datetime


@dataclass(frozen=True)
class RequestTicket:
    """Session state captured when a network call was issued"""
    step: CheckoutStep
    epoch: int


@dataclass
class CardState:
    """Card form values and their latest validity"""
    input: CardInput = field(default_factory=CardInput)
    validity: CardValidity = field(default_factory=lambda: CardValidity(valid=False))


@dataclass
class CheckoutSession:
    """Checkout session for one order in one browser tab"""
    session_id: str
    order_id: int
    auth_token: str
    created_at: datetime
    updated_at: datetime
    customer: CustomerInfo = field(default_factory=CustomerInfo)
    step: CheckoutStep = CheckoutStep.SELECT
    order: Optional[Order] = None
    method: Optional[PaymentMethod] = None
    shipping_id: str = DEFAULT_SHIPPING_ID
    card: CardState = field(default_factory=CardState)
    note: str = ""
    payment: Optional[Payment] = None
    slip: Optional["SlipFile"] = None
    slip_preview: Optional[str] = None
    uploaded_digest: Optional[str] = None
    countdown: Optional["Countdown"] = None
    ready: bool = False
    closed: bool = False
    submitting: bool = False
    uploading: bool = False
    epoch: int = 0
    notices: list[Notice] = field(default_factory=list)
    _pending_transition: Optional[asyncio.TimerHandle] = field(default=None, repr=False)

    # ==================== Derived state ====================

    @property
    def shipping_option(self) -> ShippingOption:
        return SHIPPING_OPTIONS[self.shipping_id]

    @property
    def totals(self) -> CheckoutTotals:
        return compute_totals(self.order, self.shipping_option)

    @property
    def can_submit(self) -> bool:
        """Whether the payment submit control is enabled"""
        if not self.ready or self.closed or self.step != CheckoutStep.SELECT:
            return False
        if self.method is None or self.submitting:
            return False
        if self.method == PaymentMethod.CREDIT_CARD and not self.card.validity.valid:
            return False
        return True

    # ==================== Transitions ====================

    def transition(self, target: CheckoutStep) -> None:
        """Move to another step, rejecting moves outside the transition table"""
        target = CheckoutStep(target)
        if target not in VALID_TRANSITIONS[self.step]:
            raise InvalidTransitionError(self.step.value, target.value)

        logger.debug(f"Session {self.session_id}: {self.step.value} -> {target.value}")
        self.step = target
        self._bump()

    def go_back(self) -> None:
        """Return to method selection, dropping the local payment and slip"""
        self.transition(CheckoutStep.SELECT)
        self._stop_timers()
        self.submitting = False
        self.uploading = False
        self.payment = None
        self.slip = None
        self.slip_preview = None
        self.uploaded_digest = None

    def reset(self) -> None:
        """Return to a fresh method selection"""
        if self.step != CheckoutStep.SELECT:
            self.go_back()
        else:
            # A payment request still in flight must not land on the fresh form
            self.submitting = False
            self._bump()
        self.method = None
        self.shipping_id = DEFAULT_SHIPPING_ID
        self.card = CardState()
        self.note = ""

    def close(self) -> None:
        """Tear down: stop timers and ignore any outstanding responses"""
        self._stop_timers()
        self.closed = True
        self._bump()

    def schedule_transition(self, delay: float, target: CheckoutStep) -> None:
        """Transition after a delay, unless the session moves on first"""
        ticket = self.begin_request()
        loop = asyncio.get_running_loop()

        def _fire() -> None:
            self._pending_transition = None
            if self.is_current(ticket):
                self.transition(target)

        if self._pending_transition:
            self._pending_transition.cancel()
        self._pending_transition = loop.call_later(delay, _fire)

    # ==================== Stale response guard ====================

    def begin_request(self) -> RequestTicket:
        return RequestTicket(step=self.step, epoch=self.epoch)

    def is_current(self, ticket: RequestTicket) -> bool:
        """True while the session is still in the state that issued the request"""
        return not self.closed and ticket.step == self.step and ticket.epoch == self.epoch

    # ==================== Selection setters ====================

    def select_method(self, method: Optional[PaymentMethod]) -> None:
        self._require_step(CheckoutStep.SELECT)
        self.method = PaymentMethod(method) if method is not None else None
        self._touch()

    def select_shipping(self, shipping_id: str) -> ShippingOption:
        self._require_step(CheckoutStep.SELECT)
        if shipping_id not in SHIPPING_OPTIONS:
            raise CheckoutValidationError(
                f"Unknown shipping option: {shipping_id}", field="shipping"
            )
        self.shipping_id = shipping_id
        self._touch()
        return self.shipping_option

    def update_card_field(
        self,
        card_field: CardField,
        value: str,
        now: Optional[datetime] = None,
    ) -> CardValidity:
        """Apply one keystroke-level change to the card form"""
        self._require_step(CheckoutStep.SELECT)
        card_input, validity = apply_change(self.card.input, card_field, value, now=now)
        self.card = CardState(input=card_input, validity=validity)
        self._touch()
        return validity

    def set_note(self, note: str) -> None:
        self._require_step(CheckoutStep.SELECT)
        self.note = note
        self._touch()

    # ==================== Notices ====================

    def add_notice(self, level: NoticeLevel, message: str) -> Notice:
        notice = Notice(level=NoticeLevel(level), message=message, created_at=datetime.utcnow())
        self.notices.append(notice)
        del self.notices[:-MAX_NOTICES]
        self._touch()
        return notice

    def recent_notices(self, limit: int = 5) -> list[Notice]:
        return self.notices[-limit:]

    # ==================== Internals ====================

    def _require_step(self, step: CheckoutStep) -> None:
        if self.closed:
            raise InvalidStepError("Checkout session is closed")
        if self.step != step:
            raise InvalidStepError(
                f"Not allowed during the '{self.step.value}' step"
            )

    def _stop_timers(self) -> None:
        if self.countdown:
            self.countdown.cancel()
        if self._pending_transition:
            self._pending_transition.cancel()
            self._pending_transition = None

    def _bump(self) -> None:
        self.epoch += 1
        self._touch()

    def _touch(self) -> None:
        self.updated_at = datetime.utcnow()


class SessionManager:
    """Manages checkout sessions"""

    def __init__(self):
        self.sessions: dict[str, CheckoutSession] = {}

    def create_session(
        self,
        order_id: int,
        auth_token: str,
        customer: Optional[CustomerInfo] = None,
    ) -> CheckoutSession:
        """Create a new session"""
        now = datetime.utcnow()
        session = CheckoutSession(
            session_id=str(uuid.uuid4()),
            order_id=order_id,
            auth_token=auth_token,
            created_at=now,
            updated_at=now,
            customer=customer or CustomerInfo(),
        )
        self.sessions[session.session_id] = session
        return session

    def get_session(self, session_id: str) -> Optional[CheckoutSession]:
        """Get session by ID"""
        return self.sessions.get(session_id)

    def delete_session(self, session_id: str) -> bool:
        """Close and delete a session"""
        session = self.sessions.pop(session_id, None)
        if session is None:
            return False
        session.close()
        return True

    def close_all(self) -> None:
        for session in self.sessions.values():
            session.close()
        self.sessions.clear()

    def cleanup_old_sessions(self, max_age_hours: int = 24) -> int:
        """Remove sessions older than max_age_hours"""
        now = datetime.utcnow()
        old_sessions = [
            sid for sid, session in self.sessions.items()
            if (now - session.updated_at).total_seconds() > max_age_hours * 3600
        ]
        for sid in old_sessions:
            self.delete_session(sid)
        return len(old_sessions)


# Singleton instance
session_manager = SessionManager()
