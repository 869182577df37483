import typing as t
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

import stripe
import structlog
from django.conf import settings
from django.db import transaction
from django.utils import timezone
from pydantic import BaseModel
from stripe.checkout import Session

from accounts.models import ConveneUser
from events.exceptions import EventFull, EventNotFound, GatewayError, NotPayable, PaymentNotFound, RegistrationNotFound
from events.models import Event, Payment, Registration
from events.service import registration_service

logger = structlog.get_logger(__name__)

stripe.api_key = settings.STRIPE_SECRET_KEY

PAID_STATUSES = frozenset({"paid", "no_payment_required"})


class CheckoutHandle(BaseModel):
    checkout_url: str
    session_id: str


def _create_stripe_checkout_session(
    event: Event,
    registration: Registration,
    user_email: str | None,
    expires_at: datetime,
) -> Session:
    """Create a Stripe Checkout Session.

    Args:
        event: The event being paid for.
        registration: The pending registration the session settles.
        user_email: The payer's email from their account, if any. Never invented.
        expires_at: Session expiration timestamp.

    Returns:
        The created Stripe Checkout Session.

    Raises:
        GatewayError: If the Stripe API call fails.
    """
    frontend_base_url = settings.FRONTEND_BASE_URL
    session_data: dict[str, t.Any] = dict(  # noqa: C408
        line_items=[
            {
                "price_data": {
                    "currency": event.currency.lower(),
                    "product_data": {
                        "name": f"Event Registration: {event.title}",
                    },
                    "unit_amount": int((t.cast(Decimal, event.price) * 100).to_integral_value()),  # Amount in cents
                },
                "quantity": 1,
            }
        ],
        mode="payment",
        success_url=f"{frontend_base_url}/payment-success?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{frontend_base_url}/events/{event.id}?cancelled=true",
        metadata={
            "event_id": str(event.id),
            "registration_id": str(registration.id),
            "user_id": str(registration.user_id),
        },
        expires_at=int(expires_at.timestamp()),
    )
    if user_email:
        session_data["customer_email"] = user_email

    try:
        return Session.create(**session_data)
    except stripe.StripeError as e:
        logger.warning("stripe_checkout_session_failed", event_id=str(event.id), error=str(e))
        raise GatewayError() from e


@transaction.atomic
def create_session(event_id: UUID, registration_id: UUID, user_email: str | None) -> CheckoutHandle:
    """Open a hosted checkout for a pending registration and record the pending payment.

    Amount and currency are copied from the event now; later price edits do not affect this session.

    Raises:
        EventNotFound: No such event.
        NotPayable: The event is free or has no positive price.
        RegistrationNotFound: The registration does not belong to the event.
        GatewayError: Stripe is unreachable or rejected the request.
    """
    event = Event.objects.filter(pk=event_id).first()
    if event is None:
        raise EventNotFound()
    if event.is_free or event.price is None or event.price <= 0:
        raise NotPayable()
    registration = Registration.objects.filter(pk=registration_id, event=event).first()
    if registration is None:
        raise RegistrationNotFound()

    expires_at = timezone.now() + timedelta(minutes=settings.PAYMENT_DEFAULT_EXPIRY_MINUTES)
    session = _create_stripe_checkout_session(event, registration, user_email, expires_at)

    payment = Payment.objects.create(
        event=event,
        registration=registration,
        user_id=registration.user_id,
        stripe_session_id=session.id,
        amount=event.price,
        currency=event.currency,
        status=Payment.PaymentStatus.PENDING,
        raw_response={},
        expires_at=expires_at,
    )
    logger.info(
        "stripe_checkout_session_created",
        session_id=session.id,
        payment_id=str(payment.id),
        registration_id=str(registration.id),
        amount=float(payment.amount),
        currency=payment.currency,
    )
    return CheckoutHandle(checkout_url=t.cast(str, session.url), session_id=session.id)


@transaction.atomic
def confirm_payment(
    session_id: str,
    *,
    payment_intent_id: str | None = None,
    raw_response: dict[str, t.Any] | None = None,
) -> Payment:
    """Mark a checkout session as paid and finalize its registration.

    Re-delivery is a no-op: a confirmed or refunded payment is returned untouched. The charge is refunded
    when it cannot be honoured: the event filled up while the attendee was paying, or the checkout had
    already been released (Stripe expiry or the expiry sweep) before the money arrived.

    Refunds are sent to Stripe after the transaction commits, so the payment row is not locked across
    the network call.

    Raises:
        PaymentNotFound: No payment for this session.
    """
    payment = Payment.objects.select_for_update().filter(stripe_session_id=session_id).first()
    if payment is None:
        raise PaymentNotFound()
    payment.stripe_payment_intent_id = payment_intent_id or payment.stripe_payment_intent_id
    if raw_response is not None:
        payment.raw_response = raw_response

    if payment.status == Payment.PaymentStatus.FAILED:
        logger.warning("stripe_payment_after_release", session_id=session_id, payment_id=str(payment.id))
        _schedule_refund(payment)
        return payment
    if payment.status != Payment.PaymentStatus.PENDING:
        logger.warning("stripe_webhook_duplicate_payment_success", session_id=session_id, status=payment.status)
        return payment

    payment.status = Payment.PaymentStatus.CONFIRMED
    payment.save(update_fields=["status", "stripe_payment_intent_id", "raw_response", "updated_at"])

    try:
        with transaction.atomic():
            if payment.registration_id is None:
                raise RegistrationNotFound()
            registration_service.finalize_registration(payment.registration_id)
    except (EventFull, RegistrationNotFound) as e:
        logger.warning("stripe_payment_unfulfillable", session_id=session_id, reason=str(e.code))
        if payment.registration is not None:
            registration_service.discard_registration(payment.registration)
        _schedule_refund(payment)
        return payment

    logger.info(
        "stripe_payment_success",
        session_id=session_id,
        registration_id=str(payment.registration_id),
        amount=float(payment.amount),
        currency=payment.currency,
    )
    return payment


def _schedule_refund(payment: Payment) -> None:
    """Mark the payment as owed back and refund it once the current transaction commits."""
    payment.status = Payment.PaymentStatus.REFUND_PENDING
    payment.save(update_fields=["status", "stripe_payment_intent_id", "raw_response", "updated_at"])
    payment_id = payment.pk
    transaction.on_commit(lambda: refund_payment(payment_id))


def refund_payment(payment_id: UUID) -> Payment | None:
    """Send the refund for a REFUND_PENDING payment to Stripe.

    The refund carries an idempotency key derived from the payment, so a retried call never refunds twice.
    A failed refund leaves the payment FAILED for manual follow-up in the Stripe dashboard.
    """
    payment = Payment.objects.filter(pk=payment_id, status=Payment.PaymentStatus.REFUND_PENDING).first()
    if payment is None:
        return None
    try:
        if not payment.stripe_payment_intent_id:
            raise stripe.InvalidRequestError("Payment has no payment intent to refund.", param="payment_intent")
        stripe.Refund.create(payment_intent=payment.stripe_payment_intent_id, idempotency_key=f"refund-{payment.pk}")
    except stripe.StripeError as e:
        new_status = Payment.PaymentStatus.FAILED
        logger.error(
            "stripe_refund_failed",
            payment_id=str(payment.id),
            dashboard_url=payment.stripe_dashboard_url(),
            error=str(e),
        )
    else:
        new_status = Payment.PaymentStatus.REFUNDED
        logger.info("stripe_refund_issued", payment_id=str(payment.id))
    Payment.objects.filter(pk=payment.pk, status=Payment.PaymentStatus.REFUND_PENDING).update(
        status=new_status, updated_at=timezone.now()
    )
    payment.status = new_status
    return payment


def refund_unknown_session(session: t.Mapping[str, t.Any]) -> bool:
    """Refund a paid checkout of ours that has no payment row.

    Only sessions carrying our ``registration_id`` metadata are refunded; anything else on the Stripe
    account is left alone. Returns whether a refund was issued.
    """
    session_id = session["id"]
    metadata = session.get("metadata") or {}
    payment_intent_id = session.get("payment_intent")
    if not metadata.get("registration_id"):
        logger.warning("stripe_session_no_payments", session_id=session_id)
        return False
    if not payment_intent_id:
        logger.error("stripe_orphan_session_not_refundable", session_id=session_id)
        return False
    try:
        stripe.Refund.create(payment_intent=payment_intent_id, idempotency_key=f"refund-{session_id}")
    except stripe.StripeError as e:
        logger.error(
            "stripe_orphan_refund_failed", session_id=session_id, payment_intent=payment_intent_id, error=str(e)
        )
        return False
    logger.warning("stripe_orphan_session_refunded", session_id=session_id, payment_intent=payment_intent_id)
    return True


def hold_for_async_settlement(session_id: str) -> int:
    """Keep a completed but unpaid checkout pending until a delayed payment method can settle."""
    held_until = timezone.now() + timedelta(days=settings.PAYMENT_ASYNC_SETTLEMENT_DAYS)
    return Payment.objects.filter(stripe_session_id=session_id, status=Payment.PaymentStatus.PENDING).update(
        expires_at=held_until, updated_at=timezone.now()
    )


@transaction.atomic
def expire_session(session_id: str, raw_response: dict[str, t.Any] | None = None) -> Payment | None:
    """Release a checkout that will never complete. Idempotent."""
    payment = (
        Payment.objects.select_for_update().select_related("registration").filter(stripe_session_id=session_id).first()
    )
    if payment is None or payment.status != Payment.PaymentStatus.PENDING:
        return payment

    payment.status = Payment.PaymentStatus.FAILED
    if raw_response is not None:
        payment.raw_response = raw_response
    payment.save(update_fields=["status", "raw_response", "updated_at"])

    registration = payment.registration
    if registration is not None and not registration.is_confirmed:
        registration_service.discard_registration(registration)
    logger.info("stripe_session_expired", session_id=session_id, payment_id=str(payment.id))
    return payment


def verify_session(session_id: str, user: ConveneUser) -> Payment:
    """Confirm a session from the payment-success page, in case the webhook is late.

    Raises:
        PaymentNotFound: No payment for this session belongs to the user.
        GatewayError: Stripe could not be reached.
    """
    payment = Payment.objects.filter(stripe_session_id=session_id, user=user).first()
    if payment is None:
        raise PaymentNotFound()
    if payment.status != Payment.PaymentStatus.PENDING:
        return payment

    try:
        session = Session.retrieve(session_id)
    except stripe.StripeError as e:
        raise GatewayError() from e

    if session.payment_status not in PAID_STATUSES:
        return payment
    return confirm_payment(session_id, payment_intent_id=t.cast(str | None, session.get("payment_intent")))


class StripeEventHandler:
    """Handles the business logic for different types of Stripe webhook events."""

    def __init__(self, event: stripe.Event):
        """Initialize the Stripe event handler."""
        self.event = event

    def handle(self) -> None:
        """Routes the event to the appropriate handler based on its type."""
        event_type = self.event.type
        handler_method = getattr(self, f"handle_{event_type.replace('.', '_')}", self.handle_unknown_event)
        handler_method(self.event)

    def handle_unknown_event(self, event: stripe.Event) -> None:
        """Log unhandled event types for future development."""
        logger.info("stripe_webhook_unhandled_event", event_type=event.type, event_id=event.id)

    def handle_checkout_session_completed(self, event: stripe.Event) -> None:
        """Confirm the payment once the session reports it as paid."""
        session = event.data.object
        session_id = session["id"]

        if session["payment_status"] not in PAID_STATUSES:
            # Delayed methods (bank transfers) complete later via async_payment_succeeded.
            held = hold_for_async_settlement(session_id)
            logger.warning(
                "stripe_session_unresolved_payment",
                session_id=session_id,
                payment_status=session["payment_status"],
                held=held,
            )
            return
        self._confirm(session, event)

    def handle_checkout_session_async_payment_succeeded(self, event: stripe.Event) -> None:
        """A delayed payment method settled."""
        session = event.data.object
        self._confirm(session, event)

    def handle_checkout_session_expired(self, event: stripe.Event) -> None:
        """Release the pending registration of an abandoned checkout."""
        expire_session(event.data.object["id"], raw_response=dict(event))

    def handle_checkout_session_async_payment_failed(self, event: stripe.Event) -> None:
        """A delayed payment method failed."""
        expire_session(event.data.object["id"], raw_response=dict(event))

    def _confirm(self, session: t.Mapping[str, t.Any], event: stripe.Event) -> None:
        try:
            confirm_payment(session["id"], payment_intent_id=session.get("payment_intent"), raw_response=dict(event))
        except PaymentNotFound:
            # Paid, but the row is gone or was never written. The money goes back.
            refund_unknown_session(session)
