"""
Checkout Flow

Orchestrates a checkout session against the storefront:
1. Loads the order and resumes an outstanding QR payment if there is one
2. Submits the chosen payment method
3. Hands QR payments to the proof step
4. Handles back / retry and result screen actions
"""

import logging
from typing import Optional

from cardform import summarize

from ..core.errors import AuthenticationError, StoreClientError
from ..core.session import CheckoutSession, CheckoutStep, NoticeLevel
from ..models.payment import CardInfo, Payment, PaymentMethod, PaymentRequest
from .proof_manager import ProofSubmissionManager
from .responses import FlowResponse, respond
from .status_presenter import StatusAction, StatusView, present_status
from .store_client import StoreClient

logger = logging.getLogger(__name__)

GENERIC_SUBMIT_ERROR = "Could not create the payment, please try again"
GENERIC_FETCH_ERROR = "Could not load the order"

NAVIGATION_MESSAGES = {
    StatusAction.VIEW_ORDERS: "Opening your orders",
    StatusAction.CONTINUE_SHOPPING: "Back to the shop",
    StatusAction.BACK: "Leaving checkout",
}


class CheckoutFlow:
    """
    Checkout orchestration.

    Session setters (method, shipping, card, note) are local and live on
    CheckoutSession; everything that talks to the store lives here.
    """

    def __init__(
        self,
        store: StoreClient,
        proof: ProofSubmissionManager,
        orders_path: str = "/orders",
        products_path: str = "/products",
        login_path: str = "/login",
    ):
        self.store = store
        self.proof = proof
        self.orders_path = orders_path
        self.products_path = products_path
        self.login_path = login_path

    # ==================== Mount / recovery ====================

    async def mount(self, session: CheckoutSession) -> FlowResponse:
        """
        Load the order and decide the starting step.

        Must finish before the session accepts a submission, so an
        outstanding QR payment is resumed instead of creating a new one.
        """
        try:
            order = await self.store.get_order(session.order_id, token=session.auth_token)
        except StoreClientError as e:
            logger.error(f"Failed to load order {session.order_id}: {e}")
            session.close()
            redirect_to = self.login_path if isinstance(e, AuthenticationError) else self.orders_path
            return respond(
                session,
                NoticeLevel.ERROR,
                e.server_message or GENERIC_FETCH_ERROR,
                redirect_to=redirect_to,
            )

        if session.closed:
            return FlowResponse(message="Checkout was closed", changed=False)

        session.order = order
        pending = order.find_pending_qr_payment()

        if pending:
            logger.info(f"Resuming pending QR payment {pending.id} for order {order.id}")
            self.proof.enter(session, pending)
            session.ready = True
            return respond(session, NoticeLevel.INFO, "Found an unfinished payment for this order")

        session.ready = True
        return FlowResponse(message="Order loaded", changed=True)

    # ==================== Submission ====================

    def build_request(self, session: CheckoutSession) -> PaymentRequest:
        """Payment creation request; only a masked card summary is included"""
        card_info = None
        if session.method == PaymentMethod.CREDIT_CARD:
            summary = summarize(session.card.input)
            card_info = CardInfo(**summary.to_payload())

        return PaymentRequest(
            order_id=session.order_id,
            method=session.method,
            shipping_fee=session.shipping_option.fee,
            customer_info=session.customer,
            card_info=card_info,
            note=session.note.strip() or None,
        )

    async def submit(self, session: CheckoutSession) -> FlowResponse:
        """Create a payment for the selected method"""
        problem = self._submit_blocker(session)
        if problem:
            return problem

        request = self.build_request(session)
        ticket = session.begin_request()
        session.submitting = True
        error = None
        try:
            envelope = await self.store.create_payment(request, token=session.auth_token)
        except StoreClientError as e:
            error = e
        finally:
            # Cleared before the outcome is applied; resuming a payment moves the step
            if session.is_current(ticket):
                session.submitting = False

        if error is not None:
            return self._handle_submit_error(session, ticket, error)

        if not session.is_current(ticket):
            logger.debug(f"Session {session.session_id}: discarding stale payment response")
            return FlowResponse(message="Response no longer applies", changed=False)

        payment = envelope.payment
        logger.info(
            f"Payment {payment.id} created for order {session.order_id}: "
            f"{request.method.value} {payment.amount} ({payment.status.value})"
        )

        if request.method == PaymentMethod.QR_CODE:
            self.proof.enter(session, payment)
            message = envelope.message or "QR payment created, scan the code and upload your slip"
        else:
            session.transition(CheckoutStep.RESULT)
            session.payment = payment
            message = envelope.message or "Payment successful"

        return respond(session, NoticeLevel.SUCCESS, message)

    def _submit_blocker(self, session: CheckoutSession) -> Optional[FlowResponse]:
        """Local reasons not to contact the store at all"""
        if session.closed:
            return FlowResponse(message="Checkout was closed", level=NoticeLevel.WARNING, changed=False)

        if session.submitting:
            return FlowResponse(message="Already submitting", changed=False)

        if not session.ready:
            return respond(session, NoticeLevel.WARNING, "The order is still loading", changed=False)

        if session.step != CheckoutStep.SELECT:
            return respond(
                session,
                NoticeLevel.WARNING,
                "A payment is already in progress",
                changed=False,
            )

        if session.method is None:
            return respond(
                session,
                NoticeLevel.WARNING,
                "Please choose a payment method",
                changed=False,
            )

        if session.method == PaymentMethod.CREDIT_CARD and not session.card.validity.valid:
            return respond(
                session,
                NoticeLevel.WARNING,
                "Please check your card details",
                changed=False,
            )

        return None

    def _handle_submit_error(self, session: CheckoutSession, ticket, error: StoreClientError) -> FlowResponse:
        if not session.is_current(ticket):
            return FlowResponse(message="Response no longer applies", changed=False)

        existing = self._existing_pending_qr(error)
        if existing:
            logger.info(f"Store reported pending QR payment {existing.id}, resuming it")
            self.proof.enter(session, existing)
            return respond(session, NoticeLevel.INFO, "Found an unfinished payment for this order")

        redirect_to = self.login_path if isinstance(error, AuthenticationError) else None
        return respond(
            session,
            NoticeLevel.ERROR,
            error.server_message or GENERIC_SUBMIT_ERROR,
            redirect_to=redirect_to,
            changed=False,
        )

    @staticmethod
    def _existing_pending_qr(error: StoreClientError) -> Optional[Payment]:
        """Pending QR payment echoed back by a 'payment already exists' rejection"""
        raw = error.payload.get("payment")
        if not isinstance(raw, dict):
            return None
        try:
            payment = Payment.model_validate(raw)
        except ValueError:
            return None
        return payment if payment.is_pending_qr else None

    # ==================== Navigation ====================

    def back(self, session: CheckoutSession) -> FlowResponse:
        """Return to method selection, or leave checkout from the first step"""
        if session.step == CheckoutStep.SELECT:
            return FlowResponse(message="Leaving checkout", redirect_to=self.orders_path, changed=False)

        session.go_back()
        return FlowResponse(message="Choose a payment method")

    def retry(self, session: CheckoutSession) -> FlowResponse:
        """Start over with a clean method selection"""
        session.reset()
        return FlowResponse(message="Choose a payment method")

    def apply_action(self, session: CheckoutSession, action: StatusAction) -> FlowResponse:
        """Run one of the actions offered on the result screen"""
        action = StatusAction(action)
        if session.payment is None:
            return FlowResponse(message="No payment to act on", level=NoticeLevel.WARNING, changed=False)

        view = self.status_view(session)
        if not view.allows(action):
            return FlowResponse(
                message=f"'{action.value}' is not available for a {view.status.value} payment",
                level=NoticeLevel.WARNING,
                changed=False,
            )

        target = view.target_for(action)
        if target:
            return FlowResponse(
                message=NAVIGATION_MESSAGES[action],
                redirect_to=target,
                changed=False,
            )

        if action == StatusAction.RETRY:
            return self.retry(session)
        return self.back(session)

    def status_view(self, session: CheckoutSession) -> Optional[StatusView]:
        """Result screen view for the session's payment, with this flow's paths"""
        if session.payment is None:
            return None
        return present_status(session.payment, self.orders_path, self.products_path)
