from uuid import UUID

from django.db.models import QuerySet
from django.http import HttpResponse
from ninja import Query
from ninja_extra import api_controller, route, status
from ninja_extra.pagination import PageNumberPaginationExtra, PaginatedResponseSchema, paginate
from ninja_extra.searching import Searching, searching

from common.authentication import ConveneJWTAuth, OptionalAuth
from common.controllers import UserAwareController
from common.schema import ResponseOk
from common.throttling import RegistrationThrottle, WriteThrottle
from events import filters, models, schema
from events.service import credentials, event_service, registration_service, stripe_service


@api_controller("/events", auth=OptionalAuth(), tags=["Events"])
class EventController(UserAwareController):
    """Catalogue, registration and the attendee's own credential."""

    # --- Catalogue ---

    @route.get("/", url_name="list_events", response=PaginatedResponseSchema[schema.EventInListSchema])
    @paginate(PageNumberPaginationExtra, page_size=20)
    @searching(Searching, search_fields=["title", "description", "tags__tag__name"])
    def list_events(
        self,
        params: filters.EventFilterSchema = Query(...),  # type: ignore[type-arg]
    ) -> QuerySet[models.Event]:
        """Browse and search events.

        Filter by category, tags, price (is_free) and date window (today, tomorrow, this-week,
        this-month, upcoming). The 'search' query parameter matches title, description and tag names.
        Results are ordered by start time.
        """
        return params.filter(models.Event.objects.full()).distinct().order_by("start")

    @route.post(
        "/",
        url_name="create_event",
        response={status.HTTP_201_CREATED: schema.EventDetailSchema},
        auth=ConveneJWTAuth(),
        throttle=WriteThrottle(),
    )
    def create_event(self, payload: schema.EventCreateSchema) -> tuple[int, models.Event]:
        """Create an event organized by the caller."""
        event = event_service.create_event(self.user(), payload)
        return status.HTTP_201_CREATED, event_service.get_event(event.pk)

    @route.get(
        "/my-registrations",
        url_name="my_registrations",
        response=PaginatedResponseSchema[schema.RegistrationSchema],
        auth=ConveneJWTAuth(),
    )
    @paginate(PageNumberPaginationExtra, page_size=20)
    def my_registrations(
        self,
        params: filters.RegistrationFilterSchema = Query(...),  # type: ignore[type-arg]
    ) -> QuerySet[models.Registration]:
        """List the caller's registrations, soonest event first. Past events are hidden unless include_past."""
        return params.filter(event_service.list_my_registrations(self.user()))

    @route.post(
        "/payments/verify",
        url_name="verify_payment",
        response=schema.PaymentStatusSchema,
        auth=ConveneJWTAuth(),
    )
    def verify_payment(self, payload: schema.PaymentVerifySchema) -> models.Payment:
        """Confirm a checkout from the payment-success page.

        Normally the Stripe webhook confirms the payment first and this just reports its status.
        """
        return stripe_service.verify_session(payload.session_id, self.user())

    @route.get("/{uuid:event_id}", url_name="get_event", response=schema.EventDetailSchema)
    def get_event(self, event_id: UUID) -> models.Event:
        """Event details."""
        return event_service.get_event(event_id)

    @route.patch(
        "/{uuid:event_id}",
        url_name="update_event",
        response=schema.EventDetailSchema,
        auth=ConveneJWTAuth(),
        throttle=WriteThrottle(),
    )
    def update_event(self, event_id: UUID, payload: schema.EventEditSchema) -> models.Event:
        """Update an event. Only its organizer or an admin may do so."""
        event_service.update_event(self.user(), event_id, payload)
        return event_service.get_event(event_id)

    # --- Registration ---

    @route.post(
        "/{uuid:event_id}/register",
        url_name="register_for_event",
        response={status.HTTP_201_CREATED: schema.RegistrationResultSchema},
        auth=ConveneJWTAuth(),
        throttle=RegistrationThrottle(),
    )
    def register(self, event_id: UUID) -> tuple[int, registration_service.RegistrationResult]:
        """Register for an event.

        Free events are confirmed immediately and the response carries the credential payload. Paid
        events return a Stripe checkout_url; the registration is confirmed once the payment succeeds.
        """
        return status.HTTP_201_CREATED, registration_service.register(event_id, self.user())

    @route.delete(
        "/{uuid:event_id}/registration",
        url_name="cancel_registration",
        response=ResponseOk,
        auth=ConveneJWTAuth(),
        throttle=WriteThrottle(),
    )
    def cancel_registration(self, event_id: UUID) -> ResponseOk:
        """Withdraw from a free event before it starts."""
        registration_service.cancel_registration(event_id, self.user())
        return ResponseOk()

    @route.get(
        "/{uuid:event_id}/my-registration",
        url_name="my_registration",
        response=schema.RegistrationSchema,
        auth=ConveneJWTAuth(),
    )
    def my_registration(self, event_id: UUID) -> models.Registration:
        """The caller's registration for this event."""
        return registration_service.get_registration(event_id, self.user())

    @route.get(
        "/{uuid:event_id}/my-credential",
        url_name="my_credential",
        response=schema.CredentialSchema,
        auth=ConveneJWTAuth(),
    )
    def my_credential(self, event_id: UUID) -> models.Credential:
        """The payload behind the caller's QR code."""
        return registration_service.get_credential(event_id, self.user())

    @route.get("/{uuid:event_id}/my-credential/qr", url_name="my_credential_qr", auth=ConveneJWTAuth())
    def my_credential_qr(self, event_id: UUID):  # type: ignore[no-untyped-def]
        """The caller's QR code as a PNG image."""
        credential = registration_service.get_credential(event_id, self.user())
        response = HttpResponse(credentials.render(credential.payload), content_type="image/png")
        response["Cache-Control"] = "private, max-age=3600"
        return response
