"""Celery tasks for event management.

This module contains asynchronous tasks for:
- Releasing expired checkouts
- Registration confirmation emails
"""

from datetime import timedelta

import structlog
from celery import shared_task
from django.conf import settings
from django.core.mail import EmailMessage
from django.db import transaction
from django.template.loader import render_to_string
from django.utils import timezone
from django.utils.translation import gettext as _

from events.service import credentials, registration_service

from .models import Event, Payment, Registration

logger = structlog.get_logger(__name__)


@shared_task(name="events.cleanup_expired_payments")
def cleanup_expired_payments() -> int:
    """Releases expired checkouts that are still in a 'pending' state.

    The payment rows are marked failed and kept, so a payment that settles late can still be matched
    and refunded. Their registrations are discarded while still pending; one that was confirmed in the
    meantime keeps its spot. Pending registrations that never got a payment row (the checkout setup
    died halfway) are discarded once they are older than a checkout could be.
    This task is idempotent and safe to run periodically.
    """
    expired_payments_qs = Payment.objects.expired_pending()
    orphan_cutoff = timezone.now() - timedelta(minutes=settings.PAYMENT_DEFAULT_EXPIRY_MINUTES)
    orphans_qs = Registration.objects.filter(
        status=Registration.Status.PENDING_PAYMENT, payments__isnull=True, created_at__lt=orphan_cutoff
    )

    if not expired_payments_qs.exists() and not orphans_qs.exists():
        return 0

    # Collect IDs before the transaction to avoid holding locks for too long
    payment_ids = list(expired_payments_qs.values_list("id", flat=True))
    registration_ids = [
        pk for pk in expired_payments_qs.values_list("registration_id", flat=True).distinct() if pk is not None
    ]
    registration_ids += list(orphans_qs.values_list("id", flat=True))

    logger.info("expired_payments_found", payments=len(payment_ids), registrations=len(registration_ids))

    with transaction.atomic():
        # Only still-pending rows: a webhook may have confirmed some of them since.
        released = Payment.objects.filter(pk__in=payment_ids, status=Payment.PaymentStatus.PENDING).update(
            status=Payment.PaymentStatus.FAILED, updated_at=timezone.now()
        )
        pending_registrations = Registration.objects.select_for_update().filter(
            pk__in=registration_ids, status=Registration.Status.PENDING_PAYMENT
        )
        discarded_registrations = 0
        for registration in pending_registrations:
            registration_service.discard_registration(registration)
            discarded_registrations += 1

    logger.info(
        "expired_payments_cleaned_up",
        payments=released,
        registrations=discarded_registrations,
    )
    return released


@shared_task(name="events.send_registration_confirmation")
def send_registration_confirmation(registration_id: str) -> bool:
    """Email the attendee their confirmation with the QR code attached.

    The address comes from the user's account; users without one are skipped.
    """
    registration = (
        Registration.objects.select_related("event", "user", "credential").filter(pk=registration_id).first()
    )
    if registration is None or not registration.is_confirmed:
        logger.info("registration_confirmation_skipped", registration_id=registration_id, reason="not_confirmed")
        return False
    user = registration.user
    if not user.email:
        logger.info("registration_confirmation_skipped", registration_id=registration_id, reason="no_email")
        return False

    event: Event = registration.event
    payload = registration.credential.payload
    context = {
        "user": user,
        "event": event,
        "payload": payload,
        "event_url": f"{settings.FRONTEND_BASE_URL}/events/{event.pk}",
    }
    message = EmailMessage(
        subject=_("You're registered: %(title)s") % {"title": event.title},
        body=render_to_string("events/emails/registration_confirmed.txt", context),
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=[user.email],
    )
    message.attach(f"ticket-{event.pk}.png", credentials.render(payload), "image/png")
    message.send(fail_silently=False)
    logger.info("registration_confirmation_sent", registration_id=registration_id)
    return True

