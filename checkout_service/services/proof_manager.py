"""
Proof of Payment

Handles the QR payment step: a cosmetic expiry countdown, choosing a
transfer slip image, uploading it, and re-checking the payment status
the storefront reports.
"""

import asyncio
import base64
import hashlib
import logging
from dataclasses import dataclass
from typing import Optional

from ..core.errors import AuthenticationError, InvalidStepError, StoreClientError
from ..core.session import CheckoutSession, CheckoutStep, NoticeLevel
from ..models.payment import Payment, PaymentMethod, PaymentStatus
from .responses import FlowResponse, respond
from .store_client import StoreClient

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 15 * 60
MAX_SLIP_BYTES = 5 * 1024 * 1024
WAITING_MESSAGE = "Still waiting for the payment to be confirmed"


class Countdown:
    """
    Expiry countdown shown next to the QR code.

    Ticks once per interval by rescheduling itself on the running event
    loop. Reaching zero only changes the displayed time; the storefront
    decides when a payment actually expires.
    """

    def __init__(self, seconds: int = DEFAULT_WINDOW_SECONDS, interval: float = 1.0):
        self.remaining = seconds
        self.interval = interval
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def running(self) -> bool:
        return self._handle is not None

    @property
    def expired(self) -> bool:
        return self.remaining <= 0

    @property
    def formatted(self) -> str:
        minutes, seconds = divmod(max(self.remaining, 0), 60)
        return f"{minutes:02d}:{seconds:02d}"

    def start(self) -> None:
        if self.running or self.expired:
            return
        self._loop = asyncio.get_running_loop()
        self._schedule()

    def cancel(self) -> None:
        if self._handle:
            self._handle.cancel()
            self._handle = None

    def _schedule(self) -> None:
        self._handle = self._loop.call_later(self.interval, self._tick)

    def _tick(self) -> None:
        self._handle = None
        self.remaining -= 1
        if not self.expired:
            self._schedule()


@dataclass(frozen=True)
class SlipFile:
    """Transfer slip image chosen by the user"""
    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def digest(self) -> str:
        return hashlib.sha256(self.content).hexdigest()

    def to_data_uri(self) -> str:
        """Inline preview that needs no round trip to the store"""
        encoded = base64.b64encode(self.content).decode("ascii")
        return f"data:{self.content_type};base64,{encoded}"


class ProofSubmissionManager:
    """Drives the proof step of a QR payment"""

    def __init__(
        self,
        store: StoreClient,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        tick_interval: float = 1.0,
        result_delay: float = 1.5,
        max_slip_bytes: int = MAX_SLIP_BYTES,
        login_path: str = "/login",
    ):
        self.store = store
        self.window_seconds = window_seconds
        self.tick_interval = tick_interval
        self.result_delay = result_delay
        self.max_slip_bytes = max_slip_bytes
        self.login_path = login_path

    # ==================== Entering the step ====================

    def enter(self, session: CheckoutSession, payment: Payment) -> None:
        """Move a session into the proof step for a pending QR payment"""
        if not payment.qr_code_data:
            logger.warning(f"Payment {payment.id} has no QR payload")

        session.transition(CheckoutStep.PROOF)
        session.payment = payment
        session.method = PaymentMethod.QR_CODE
        session.slip = None
        session.slip_preview = payment.payment_slip_url
        session.uploaded_digest = None
        self._start_countdown(session)

    def _start_countdown(self, session: CheckoutSession) -> None:
        if session.countdown:
            session.countdown.cancel()
        session.countdown = Countdown(self.window_seconds, self.tick_interval)
        if session.payment and session.payment.status == PaymentStatus.PENDING:
            session.countdown.start()

    # ==================== Slip selection ====================

    def choose_slip(self, session: CheckoutSession, slip: SlipFile) -> FlowResponse:
        """
        Accept a slip image locally.

        Non-image files and files over the size limit are rejected without
        contacting the store.
        """
        self._require_proof_step(session)

        if not (slip.content_type or "").startswith("image/"):
            return respond(session, NoticeLevel.ERROR, "Please choose an image file", changed=False)

        if slip.size > self.max_slip_bytes:
            limit_mb = self.max_slip_bytes // (1024 * 1024)
            return respond(
                session,
                NoticeLevel.ERROR,
                f"The image is too large (limit {limit_mb}MB)",
                changed=False,
            )

        session.slip = slip
        session.slip_preview = slip.to_data_uri()
        return respond(session, NoticeLevel.INFO, f"Selected {slip.filename}")

    def clear_slip(self, session: CheckoutSession) -> None:
        self._require_proof_step(session)
        session.slip = None
        session.slip_preview = session.payment.payment_slip_url if session.payment else None

    # ==================== Submission ====================

    def can_submit(self, session: CheckoutSession) -> bool:
        """Whether the upload / check-status control is enabled"""
        payment = session.payment
        if session.closed or session.step != CheckoutStep.PROOF or payment is None:
            return False
        if session.uploading or payment.status != PaymentStatus.PENDING:
            return False
        return session.slip is not None or bool(payment.payment_slip_url)

    async def submit(self, session: CheckoutSession) -> FlowResponse:
        """
        Upload the chosen slip, or re-check the payment status.

        A new file is uploaded against the payment. Without a new file
        (or with the same bytes that were already uploaded) the payment is
        fetched again to pick up a status change made by the store.
        """
        self._require_proof_step(session)
        payment = session.payment

        if session.uploading:
            return FlowResponse(message="Already submitting", changed=False)

        if payment.status == PaymentStatus.COMPLETED:
            return FlowResponse(message="Payment is already completed", changed=False)

        if payment.status == PaymentStatus.FAILED:
            return respond(
                session,
                NoticeLevel.WARNING,
                "This payment was rejected, please start a new payment",
                changed=False,
            )

        slip = session.slip
        if slip is not None and slip.digest != session.uploaded_digest:
            return await self._upload(session, slip)

        if slip is not None or payment.payment_slip_url:
            return await self._refresh(session)

        return respond(
            session,
            NoticeLevel.WARNING,
            "Please choose a transfer slip image",
            changed=False,
        )

    async def _upload(self, session: CheckoutSession, slip: SlipFile) -> FlowResponse:
        ticket = session.begin_request()
        session.uploading = True
        try:
            envelope = await self.store.upload_slip(
                payment_id=session.payment.id,
                filename=slip.filename,
                content=slip.content,
                content_type=slip.content_type,
                token=session.auth_token,
            )
        except StoreClientError as e:
            return self._handle_error(session, ticket, e, "Could not upload the slip")
        finally:
            if session.is_current(ticket):
                session.uploading = False

        if not session.is_current(ticket):
            logger.debug(f"Session {session.session_id}: discarding stale upload response")
            return FlowResponse(message="Response no longer applies", changed=False)

        logger.info(f"Uploaded slip for payment {session.payment.id}")
        session.uploaded_digest = slip.digest
        session.payment = session.payment.merge(envelope.payment)
        return self._observe(session, envelope.message, "Slip uploaded")

    async def _refresh(self, session: CheckoutSession) -> FlowResponse:
        ticket = session.begin_request()
        session.uploading = True
        try:
            envelope = await self.store.get_payment(session.payment.id, token=session.auth_token)
        except StoreClientError as e:
            return self._handle_error(session, ticket, e, "Could not check the payment status")
        finally:
            if session.is_current(ticket):
                session.uploading = False

        if not session.is_current(ticket):
            logger.debug(f"Session {session.session_id}: discarding stale status response")
            return FlowResponse(message="Response no longer applies", changed=False)

        session.payment = session.payment.merge(envelope.payment)
        return self._observe(session, envelope.message, "Payment completed")

    def _observe(
        self,
        session: CheckoutSession,
        server_message: Optional[str],
        completed_default: str,
    ) -> FlowResponse:
        """React to the status of a freshly merged payment, preferring the store's message"""
        status = session.payment.status

        if status != PaymentStatus.PENDING and session.countdown:
            session.countdown.cancel()

        if status == PaymentStatus.COMPLETED:
            if self.result_delay > 0:
                session.schedule_transition(self.result_delay, CheckoutStep.RESULT)
            else:
                session.transition(CheckoutStep.RESULT)
            return respond(session, NoticeLevel.SUCCESS, server_message or completed_default)

        if status == PaymentStatus.FAILED:
            return respond(session, NoticeLevel.ERROR, "The payment was rejected")

        return respond(session, NoticeLevel.INFO, server_message or WAITING_MESSAGE)

    def _handle_error(
        self,
        session: CheckoutSession,
        ticket,
        error: StoreClientError,
        fallback: str,
    ) -> FlowResponse:
        if not session.is_current(ticket):
            logger.debug(f"Session {session.session_id}: ignoring failure of a stale request")
            return FlowResponse(message="Response no longer applies", changed=False)

        redirect_to = self.login_path if isinstance(error, AuthenticationError) else None
        return respond(
            session,
            NoticeLevel.ERROR,
            error.server_message or fallback,
            redirect_to=redirect_to,
            changed=False,
        )

    def _require_proof_step(self, session: CheckoutSession) -> None:
        if session.closed or session.step != CheckoutStep.PROOF or session.payment is None:
            raise InvalidStepError("No QR payment is waiting for proof")
