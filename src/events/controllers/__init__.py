from .attendance import AttendanceController
from .events import EventController
from .stripe_webhook import StripeWebhookController

__all__ = ["AttendanceController", "EventController", "StripeWebhookController"]
