from datetime import datetime, timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone

from common.models import TimeStampedModel

from .event import Event
from .registration import Registration


def _get_payment_default_expiry() -> datetime:
    return timezone.now() + timedelta(minutes=settings.PAYMENT_DEFAULT_EXPIRY_MINUTES)


class PaymentQuerySet(models.QuerySet["Payment"]):
    def expired_pending(self) -> "PaymentQuerySet":
        """Pending payments whose checkout session can no longer complete."""
        return self.filter(status=Payment.PaymentStatus.PENDING, expires_at__lt=timezone.now())


class Payment(TimeStampedModel):
    class PaymentStatus(models.TextChoices):
        PENDING = "pending"
        CONFIRMED = "confirmed"
        FAILED = "failed"
        REFUND_PENDING = "refund_pending"
        REFUNDED = "refunded"

    event = models.ForeignKey(Event, on_delete=models.PROTECT, related_name="payments")
    # SET_NULL: the payment row outlives a registration removed by compensation or expiry.
    registration = models.ForeignKey(
        Registration, on_delete=models.SET_NULL, null=True, blank=True, related_name="payments"
    )
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="payments")
    stripe_session_id = models.CharField(max_length=255, unique=True)
    stripe_payment_intent_id = models.CharField(
        max_length=255, null=True, blank=True, db_index=True, help_text="Stripe PaymentIntent ID for refund processing"
    )
    status = models.CharField(
        max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING, db_index=True
    )
    # Snapshot of the event price when the session was created.
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=3, default=settings.DEFAULT_CURRENCY)
    raw_response = models.JSONField(blank=True, default=dict)
    expires_at = models.DateTimeField(default=_get_payment_default_expiry, db_index=True, editable=False)

    objects = PaymentQuerySet.as_manager()

    def __str__(self) -> str:
        return f"Payment {self.id} ({self.status})"

    def has_expired(self) -> bool:
        """Return whether a payment has expired."""
        return self.expires_at < timezone.now()

    @property
    def amount_in_minor_units(self) -> int:
        """Amount in cents, as Stripe expects it."""
        return int((self.amount * 100).to_integral_value())

    @staticmethod
    def stripe_mode() -> str:
        """Stripe mode."""
        key: str = settings.STRIPE_SECRET_KEY
        return "test" if key.startswith("sk_test_") else "live"

    def stripe_dashboard_url(self) -> str:
        """Return the stripe dashboard URL."""
        mode: str = self.stripe_mode()
        if self.stripe_payment_intent_id:
            return f"https://dashboard.stripe.com/{mode}/payments/{self.stripe_payment_intent_id}"
        return f"https://dashboard.stripe.com/{mode}/checkout/sessions/{self.stripe_session_id}"
