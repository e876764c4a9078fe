"""Checkout API routes"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Header, HTTPException, UploadFile
from pydantic import BaseModel

from cardform import CardField

from ..core.config import settings
from ..core.errors import CheckoutValidationError, InvalidStepError, InvalidTransitionError
from ..core.session import CheckoutSession, CheckoutStep, SessionManager, session_manager
from ..models.payment import CustomerInfo, PaymentMethod
from ..models.shipping import SHIPPING_OPTIONS
from ..services.checkout_flow import CheckoutFlow
from ..services.proof_manager import ProofSubmissionManager, SlipFile
from ..services.responses import FlowResponse
from ..services.status_presenter import StatusAction
from ..services.store_client import StoreClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/checkout", tags=["Checkout"])

# Initialize services (created lazily, closed on shutdown)
store_client: Optional[StoreClient] = None
checkout_flow: Optional[CheckoutFlow] = None


def get_store_client() -> StoreClient:
    """Get or create store client"""
    global store_client
    if store_client is None:
        store_client = StoreClient(
            store_base_url=settings.store_api_url,
            timeout=settings.store_timeout,
        )
    return store_client


def get_checkout_flow() -> CheckoutFlow:
    """Get or create checkout flow"""
    global checkout_flow
    if checkout_flow is None:
        store = get_store_client()
        proof = ProofSubmissionManager(
            store=store,
            window_seconds=settings.proof_window_seconds,
            tick_interval=settings.countdown_interval,
            result_delay=settings.result_transition_delay,
            max_slip_bytes=settings.max_slip_bytes,
            login_path=settings.login_path,
        )
        checkout_flow = CheckoutFlow(
            store=store,
            proof=proof,
            orders_path=settings.orders_path,
            products_path=settings.products_path,
            login_path=settings.login_path,
        )
    return checkout_flow


def get_session_manager() -> SessionManager:
    return session_manager


def get_auth_token(authorization: Optional[str] = Header(default=None)) -> str:
    """Bearer token issued by the storefront's auth service"""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Missing bearer token")
    return authorization[7:].strip()


def get_checkout_session(
    session_id: str,
    token: str = Depends(get_auth_token),
    manager: SessionManager = Depends(get_session_manager),
) -> CheckoutSession:
    session = manager.get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    if session.auth_token != token:
        raise HTTPException(status_code=403, detail="Session belongs to another user")
    return session


@contextmanager
def local_errors():
    """Translate local checkout errors into HTTP errors"""
    try:
        yield
    except CheckoutValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except (InvalidStepError, InvalidTransitionError) as e:
        raise HTTPException(status_code=409, detail=e.message)


# ==================== Request / response models ====================

class CreateSessionRequest(BaseModel):
    """Request to open checkout for an order"""
    order_id: int
    customer: CustomerInfo = CustomerInfo()


class MethodRequest(BaseModel):
    method: Optional[PaymentMethod] = None


class ShippingRequest(BaseModel):
    shipping_option: str


class CardFieldRequest(BaseModel):
    field: CardField
    value: str = ""


class NoteRequest(BaseModel):
    note: str = ""


class NoticeResponse(BaseModel):
    message: str
    level: str
    redirect_to: Optional[str] = None


class CardResponse(BaseModel):
    card_number: str
    card_name: str
    expiry: str
    cvc_entered: bool
    valid: bool
    errors: dict[str, str]


class TotalsResponse(BaseModel):
    subtotal: float
    discount: float
    discount_code: Optional[str] = None
    shipping_fee: float
    total: float


class PaymentResponse(BaseModel):
    id: int
    amount: float
    currency: str
    method: Optional[str] = None
    status: str
    transaction_id: Optional[str] = None
    qr_code_data: Optional[str] = None
    payment_slip_url: Optional[str] = None
    created_at: Optional[datetime] = None


class ProofResponse(BaseModel):
    countdown_seconds: int
    countdown: str
    slip_name: Optional[str] = None
    slip_preview: Optional[str] = None
    uploading: bool
    can_submit: bool


class StatusResponse(BaseModel):
    headline: str
    description: str
    badge: str
    icon: str
    tone: str
    method_label: str
    method_icon: str
    actions: list[str]
    targets: dict[str, str] = {}


class SessionResponse(BaseModel):
    """Full view of a checkout session"""
    session_id: str
    order_id: int
    step: str
    ready: bool
    method: Optional[str] = None
    shipping_option: str
    note: str
    card: CardResponse
    totals: TotalsResponse
    can_submit: bool
    submitting: bool
    payment: Optional[PaymentResponse] = None
    proof: Optional[ProofResponse] = None
    status: Optional[StatusResponse] = None
    notice: Optional[NoticeResponse] = None


def build_session_response(
    session: CheckoutSession,
    flow: CheckoutFlow,
    result: Optional[FlowResponse] = None,
) -> SessionResponse:
    """Render a session into its API view"""
    card = session.card
    totals = session.totals

    payment_response = None
    status_response = None
    if session.payment:
        payment = session.payment
        payment_response = PaymentResponse(
            id=payment.id,
            amount=payment.amount,
            currency=payment.currency,
            method=payment.method.value if payment.method else None,
            status=payment.status.value,
            transaction_id=payment.transaction_id,
            qr_code_data=payment.qr_code_data,
            payment_slip_url=payment.payment_slip_url,
            created_at=payment.created_at,
        )
        view = flow.status_view(session)
        status_response = StatusResponse(
            headline=view.headline,
            description=view.description,
            badge=view.badge,
            icon=view.icon,
            tone=view.tone.value,
            method_label=view.method.label,
            method_icon=view.method.icon,
            actions=[action.value for action in view.actions],
            targets={action.value: path for action, path in view.targets.items()},
        )

    proof_response = None
    if session.countdown is not None and session.step == CheckoutStep.PROOF:
        proof_response = ProofResponse(
            countdown_seconds=max(session.countdown.remaining, 0),
            countdown=session.countdown.formatted,
            slip_name=session.slip.filename if session.slip else None,
            slip_preview=session.slip_preview,
            uploading=session.uploading,
            can_submit=flow.proof.can_submit(session),
        )

    notice = None
    if result is not None:
        notice = NoticeResponse(
            message=result.message,
            level=result.level.value,
            redirect_to=result.redirect_to,
        )

    return SessionResponse(
        session_id=session.session_id,
        order_id=session.order_id,
        step=session.step.value,
        ready=session.ready,
        method=session.method.value if session.method else None,
        shipping_option=session.shipping_id,
        note=session.note,
        card=CardResponse(
            card_number=card.input.card_number,
            card_name=card.input.card_name,
            expiry=card.input.expiry,
            cvc_entered=bool(card.input.cvc),
            valid=card.validity.valid,
            errors=dict(card.validity.errors),
        ),
        totals=TotalsResponse(
            subtotal=totals.subtotal,
            discount=totals.discount,
            discount_code=totals.discount_code,
            shipping_fee=totals.shipping_fee,
            total=totals.total,
        ),
        can_submit=session.can_submit,
        submitting=session.submitting,
        payment=payment_response,
        proof=proof_response,
        status=status_response,
        notice=notice,
    )


# ==================== Routes ====================

@router.get("/shipping-options")
async def list_shipping_options():
    """Shipping options offered at checkout"""
    return [
        {
            "id": option.id,
            "name": option.name,
            "fee": option.fee,
            "delivery_window": option.delivery_window,
        }
        for option in SHIPPING_OPTIONS.values()
    ]


@router.post("/sessions", response_model=SessionResponse)
async def create_session(
    request: CreateSessionRequest,
    token: str = Depends(get_auth_token),
    flow: CheckoutFlow = Depends(get_checkout_flow),
    manager: SessionManager = Depends(get_session_manager),
):
    """
    Open checkout for an order.

    Resumes an unfinished QR payment when the order has one.
    """
    removed = manager.cleanup_old_sessions(settings.session_max_age_hours)
    if removed:
        logger.info(f"Removed {removed} expired checkout sessions")

    session = manager.create_session(
        order_id=request.order_id,
        auth_token=token,
        customer=request.customer,
    )
    result = await flow.mount(session)

    if session.closed:
        manager.delete_session(session.session_id)
        status_code = 401 if result.redirect_to == settings.login_path else 404
        raise HTTPException(
            status_code=status_code,
            detail={"message": result.message, "redirect_to": result.redirect_to},
        )

    return build_session_response(session, flow, result)


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(
    session: CheckoutSession = Depends(get_checkout_session),
    flow: CheckoutFlow = Depends(get_checkout_flow),
):
    """Current session view (the UI polls this for the countdown)"""
    return build_session_response(session, flow)


@router.put("/sessions/{session_id}/method", response_model=SessionResponse)
async def select_method(
    request: MethodRequest,
    session: CheckoutSession = Depends(get_checkout_session),
    flow: CheckoutFlow = Depends(get_checkout_flow),
):
    with local_errors():
        session.select_method(request.method)
    return build_session_response(session, flow)


@router.put("/sessions/{session_id}/shipping", response_model=SessionResponse)
async def select_shipping(
    request: ShippingRequest,
    session: CheckoutSession = Depends(get_checkout_session),
    flow: CheckoutFlow = Depends(get_checkout_flow),
):
    with local_errors():
        session.select_shipping(request.shipping_option)
    return build_session_response(session, flow)


@router.put("/sessions/{session_id}/card", response_model=SessionResponse)
async def update_card(
    request: CardFieldRequest,
    session: CheckoutSession = Depends(get_checkout_session),
    flow: CheckoutFlow = Depends(get_checkout_flow),
):
    """Apply one card form change; the response carries formatting and errors"""
    with local_errors():
        session.update_card_field(request.field, request.value)
    return build_session_response(session, flow)


@router.put("/sessions/{session_id}/note", response_model=SessionResponse)
async def set_note(
    request: NoteRequest,
    session: CheckoutSession = Depends(get_checkout_session),
    flow: CheckoutFlow = Depends(get_checkout_flow),
):
    with local_errors():
        session.set_note(request.note)
    return build_session_response(session, flow)


@router.post("/sessions/{session_id}/submit", response_model=SessionResponse)
async def submit_payment(
    session: CheckoutSession = Depends(get_checkout_session),
    flow: CheckoutFlow = Depends(get_checkout_flow),
):
    result = await flow.submit(session)
    return build_session_response(session, flow, result)


@router.post("/sessions/{session_id}/slip", response_model=SessionResponse)
async def choose_slip(
    file: UploadFile = File(...),
    session: CheckoutSession = Depends(get_checkout_session),
    flow: CheckoutFlow = Depends(get_checkout_flow),
):
    """Attach a transfer slip image; nothing is sent to the store yet"""
    # Read one byte past the limit so oversized files are still detected
    content = await file.read(flow.proof.max_slip_bytes + 1)
    slip = SlipFile(
        filename=file.filename or "slip",
        content_type=file.content_type or "",
        content=content,
    )
    with local_errors():
        result = flow.proof.choose_slip(session, slip)
    return build_session_response(session, flow, result)


@router.delete("/sessions/{session_id}/slip", response_model=SessionResponse)
async def clear_slip(
    session: CheckoutSession = Depends(get_checkout_session),
    flow: CheckoutFlow = Depends(get_checkout_flow),
):
    with local_errors():
        flow.proof.clear_slip(session)
    return build_session_response(session, flow)


@router.post("/sessions/{session_id}/proof", response_model=SessionResponse)
async def submit_proof(
    session: CheckoutSession = Depends(get_checkout_session),
    flow: CheckoutFlow = Depends(get_checkout_flow),
):
    """Upload the chosen slip, or re-check the payment status"""
    with local_errors():
        result = await flow.proof.submit(session)
    return build_session_response(session, flow, result)


@router.post("/sessions/{session_id}/back", response_model=SessionResponse)
async def go_back(
    session: CheckoutSession = Depends(get_checkout_session),
    flow: CheckoutFlow = Depends(get_checkout_flow),
):
    with local_errors():
        result = flow.back(session)
    return build_session_response(session, flow, result)


@router.post("/sessions/{session_id}/retry", response_model=SessionResponse)
async def retry(
    session: CheckoutSession = Depends(get_checkout_session),
    flow: CheckoutFlow = Depends(get_checkout_flow),
):
    with local_errors():
        result = flow.retry(session)
    return build_session_response(session, flow, result)


@router.post("/sessions/{session_id}/actions/{action}", response_model=SessionResponse)
async def apply_action(
    action: StatusAction,
    session: CheckoutSession = Depends(get_checkout_session),
    flow: CheckoutFlow = Depends(get_checkout_flow),
):
    """Run a result screen action (view orders, continue shopping, back, retry)"""
    with local_errors():
        result = flow.apply_action(session, action)
    return build_session_response(session, flow, result)


@router.delete("/sessions/{session_id}")
async def delete_session(
    session: CheckoutSession = Depends(get_checkout_session),
    manager: SessionManager = Depends(get_session_manager),
):
    """Close a session (the user navigated away)"""
    manager.delete_session(session.session_id)
    return {"message": "Session closed"}
