"""Registration lifecycle.

    register ──> PENDING_PAYMENT ──(free: finalize)──────────────> CONFIRMED + Credential
                      │
                      └──(paid: checkout session)──> webhook ──> finalize

Finalization is the only place the attendee counter grows. It runs a single conditional UPDATE
(``attendee_count + 1 WHERE capacity IS NULL OR attendee_count < capacity``), so two requests racing for the
last spot cannot both win no matter how the advisory checks before it interleave.
"""

import typing as t
from enum import StrEnum
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import F, Q
from django.utils.translation import gettext_lazy as _
from pydantic import BaseModel

from accounts.models import ConveneUser
from common.exceptions import InvalidInput, NotAuthorized
from common.utils import is_unique_violation
from events.exceptions import (
    DuplicateRegistration,
    EventFull,
    EventNotFound,
    GatewayError,
    NotPayable,
    PaymentSetupFailed,
    RegistrationClosed,
    RegistrationNotFound,
)
from events.models import Credential, Event, Payment, Registration
from events.service import credentials, stripe_service
from events.service.capacity import can_register
from events.service.notifier import ChangeKind, RegistrationChange, registration_notifier
from moderation.models import Block

logger = structlog.get_logger(__name__)


class RegistrationOutcome(StrEnum):
    CONFIRMED = "confirmed"
    PENDING_PAYMENT = "pending_payment"


class RegistrationResult(BaseModel):
    """Successful outcome of ``register``. Failures are raised as domain errors."""

    outcome: RegistrationOutcome
    registration_id: UUID
    event_id: UUID
    credential_payload: str | None = None
    checkout_url: str | None = None
    session_id: str | None = None


def register(event_id: UUID, user: ConveneUser) -> RegistrationResult:
    """Register ``user`` for an event.

    Raises:
        NotAuthorized: The user is blocked.
        DuplicateRegistration: The user already holds a registration for the event.
        EventNotFound: No such event.
        RegistrationClosed: Registration is disabled or the event has started.
        EventFull: No spot left.
        PaymentSetupFailed: The checkout session could not be created; nothing is left behind.
    """
    if Block.objects.is_blocked(user):
        raise NotAuthorized(_("Your account is blocked."))

    if Registration.objects.filter(event_id=event_id, user=user).exists():
        raise DuplicateRegistration()

    event = Event.objects.filter(pk=event_id).first()
    if event is None:
        raise EventNotFound()
    if not event.is_registration_open():
        raise RegistrationClosed()
    if not can_register(event.attendee_count, event.capacity):
        raise EventFull()

    registration = _create_pending_registration(event, user)
    log = logger.bind(registration_id=str(registration.pk), event_id=str(event.pk), user_id=str(user.pk))

    if event.is_free:
        try:
            credential = finalize_registration(registration.pk)
        except EventFull:
            registration.delete()
            log.info("registration_compensated", reason="event_full")
            raise
        log.info("registration_confirmed", paid=False)
        return RegistrationResult(
            outcome=RegistrationOutcome.CONFIRMED,
            registration_id=registration.pk,
            event_id=event.pk,
            credential_payload=credential.payload,
        )

    try:
        handle = stripe_service.create_session(event.pk, registration.pk, user.email)
    except (GatewayError, NotPayable, RegistrationNotFound) as e:
        registration.delete()
        log.warning("registration_compensated", reason=str(e.code))
        raise PaymentSetupFailed() from e
    except Exception:
        registration.delete()
        log.exception("registration_compensated", reason="unexpected_error")
        raise

    log.info("registration_pending_payment", session_id=handle.session_id)
    return RegistrationResult(
        outcome=RegistrationOutcome.PENDING_PAYMENT,
        registration_id=registration.pk,
        event_id=event.pk,
        checkout_url=handle.checkout_url,
        session_id=handle.session_id,
    )


def _create_pending_registration(event: Event, user: ConveneUser) -> Registration:
    try:
        with transaction.atomic():
            return Registration.objects.create(event=event, user=user)
    except (IntegrityError, DjangoValidationError) as e:
        if is_unique_violation(e):
            raise DuplicateRegistration() from e
        raise


@transaction.atomic
def finalize_registration(registration_id: UUID) -> Credential:
    """Confirm a registration: take a spot and issue its credential.

    Idempotent: finalizing an already confirmed registration returns its existing credential and leaves the
    counter alone.

    Raises:
        RegistrationNotFound: The registration no longer exists (expired or compensated).
        EventFull: The conditional increment found no spot left.
    """
    registration = Registration.objects.select_for_update().filter(pk=registration_id).first()
    if registration is None:
        raise RegistrationNotFound()

    if registration.is_confirmed:
        existing = Credential.objects.filter(registration=registration).first()
        logger.info("registration_finalize_replayed", registration_id=str(registration_id))
        return existing or _issue_credential(registration)

    spots_taken = (
        Event.objects.filter(pk=registration.event_id)
        .filter(Q(capacity__isnull=True) | Q(attendee_count__lt=F("capacity")))
        .update(attendee_count=F("attendee_count") + 1)
    )
    if spots_taken == 0:
        logger.info("registration_finalize_event_full", registration_id=str(registration_id))
        raise EventFull()

    registration.mark_confirmed()
    credential = _issue_credential(registration)
    registration_notifier.notify(_change(ChangeKind.CONFIRMED, registration))
    return credential


def _issue_credential(registration: Registration) -> Credential:
    return Credential.objects.create(registration=registration, payload=credentials.issue(registration.pk))


@transaction.atomic
def cancel_registration(event_id: UUID, user: ConveneUser) -> None:
    """Withdraw from a free event before it starts, releasing the spot.

    Raises:
        RegistrationNotFound: The user holds no registration for the event.
        RegistrationClosed: The event has already started.
        InvalidInput: The registration is paid or already checked in.
    """
    registration = (
        Registration.objects.select_for_update().select_related("event").filter(event_id=event_id, user=user).first()
    )
    if registration is None:
        raise RegistrationNotFound()
    event = registration.event
    if event.has_started():
        raise RegistrationClosed(_("The event has already started."))
    if hasattr(registration, "attendance"):
        raise InvalidInput(_("You have already been checked in."))
    if Payment.objects.filter(registration=registration).exists():
        raise InvalidInput(_("Paid registrations cannot be cancelled online. Please contact the organizer."))

    if registration.is_confirmed:
        Event.objects.filter(pk=event.pk, attendee_count__gt=0).update(attendee_count=F("attendee_count") - 1)
    change = _change(ChangeKind.CANCELLED, registration)
    registration.delete()
    registration_notifier.notify(change)
    logger.info("registration_cancelled", registration_id=str(change.registration_id), event_id=str(event_id))


@transaction.atomic
def discard_registration(registration: Registration) -> None:
    """Remove a registration on behalf of the system (failed payment, expiry, refund).

    Releases the spot when the registration had been confirmed.
    """
    if registration.is_confirmed:
        Event.objects.filter(pk=registration.event_id, attendee_count__gt=0).update(
            attendee_count=F("attendee_count") - 1
        )
    change = _change(ChangeKind.DELETED, registration)
    registration.delete()
    registration_notifier.notify(change)


def get_registration(event_id: UUID, user: ConveneUser) -> Registration:
    """The caller's registration for an event, with its credential."""
    registration = (
        Registration.objects.select_related("event", "credential").filter(event_id=event_id, user=user).first()
    )
    if registration is None:
        raise RegistrationNotFound()
    return registration


def get_credential(event_id: UUID, user: ConveneUser) -> Credential:
    """The caller's credential for an event. Pending registrations have none yet."""
    registration = get_registration(event_id, user)
    credential = t.cast(Credential | None, getattr(registration, "credential", None))
    if credential is None:
        raise RegistrationNotFound(_("Your registration is not confirmed yet."))
    return credential


def _change(kind: ChangeKind, registration: Registration) -> RegistrationChange:
    return RegistrationChange(
        kind=kind,
        registration_id=registration.pk,
        event_id=registration.event_id,
        user_id=registration.user_id,
    )
