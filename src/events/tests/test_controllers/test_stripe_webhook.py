"""Tests for the Stripe webhook controller."""

from unittest.mock import Mock, patch

import pytest
import stripe
from django.conf import settings
from django.shortcuts import reverse  # type: ignore[attr-defined]
from django.test.client import Client
from ninja.errors import HttpError

from events.controllers.stripe_webhook import StripeWebhookController
from events.models import Payment, Registration

pytestmark = pytest.mark.django_db


class TestStripeWebhookController:
    """Test StripeWebhookController."""

    @pytest.fixture
    def controller(self) -> StripeWebhookController:
        return StripeWebhookController()

    @pytest.fixture
    def mock_request(self) -> Mock:
        request = Mock()
        request.body = b'{"test": "data"}'
        request.META = {"HTTP_STRIPE_SIGNATURE": "t=123,v1=signature"}
        return request

    @pytest.fixture
    def mock_stripe_event(self) -> Mock:
        event = Mock(spec=stripe.Event)
        event.type = "checkout.session.completed"
        return event

    @patch("stripe.Webhook.construct_event")
    @patch("events.service.stripe_service.StripeEventHandler")
    def test_handle_webhook_success(
        self,
        mock_handler_class: Mock,
        mock_construct_event: Mock,
        controller: StripeWebhookController,
        mock_request: Mock,
        mock_stripe_event: Mock,
    ) -> None:
        # Arrange
        mock_construct_event.return_value = mock_stripe_event

        # Act
        status, response = controller.handle_webhook(mock_request)

        # Assert
        mock_construct_event.assert_called_once_with(
            mock_request.body, "t=123,v1=signature", settings.STRIPE_WEBHOOK_SECRET
        )
        mock_handler_class.assert_called_once_with(mock_stripe_event)
        mock_handler_class.return_value.handle.assert_called_once()
        assert status == 200
        assert response is None

    def test_handle_webhook_missing_signature(self, controller: StripeWebhookController, mock_request: Mock) -> None:
        mock_request.META = {}

        with pytest.raises(HttpError) as exc_info:
            controller.handle_webhook(mock_request)

        assert exc_info.value.status_code == 400
        assert "Invalid Stripe signature" in str(exc_info.value.message)

    @patch("stripe.Webhook.construct_event")
    @patch("events.service.stripe_service.StripeEventHandler")
    def test_handle_webhook_invalid_signature(
        self,
        mock_handler_class: Mock,
        mock_construct_event: Mock,
        controller: StripeWebhookController,
        mock_request: Mock,
    ) -> None:
        mock_construct_event.side_effect = stripe.SignatureVerificationError("Invalid signature", "sig_header")

        with pytest.raises(HttpError) as exc_info:
            controller.handle_webhook(mock_request)

        assert exc_info.value.status_code == 400
        mock_handler_class.assert_not_called()

    @patch("stripe.Webhook.construct_event")
    def test_handle_webhook_malformed_payload(
        self, mock_construct_event: Mock, controller: StripeWebhookController, mock_request: Mock
    ) -> None:
        mock_construct_event.side_effect = ValueError("Invalid payload")

        with pytest.raises(HttpError) as exc_info:
            controller.handle_webhook(mock_request)

        assert exc_info.value.status_code == 400


class TestStripeWebhookEndpoint:
    @patch("stripe.Webhook.construct_event")
    def test_completed_checkout_confirms_registration(
        self, mock_construct_event: Mock, client: Client, pending_payment: Payment
    ) -> None:
        # Arrange
        event = stripe.Event.construct_from(
            {
                "id": "evt_test_1",
                "object": "event",
                "type": "checkout.session.completed",
                "data": {
                    "object": {
                        "id": "cs_test_pending",
                        "object": "checkout.session",
                        "payment_status": "paid",
                        "payment_intent": "pi_test_1",
                    }
                },
            },
            "sk_test_convene",
        )
        mock_construct_event.return_value = event

        # Act
        response = client.post(
            reverse("api:stripe_webhook"),
            data=b"{}",
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE="t=1,v1=sig",
        )

        # Assert
        assert response.status_code == 200
        pending_payment.refresh_from_db()
        assert pending_payment.status == Payment.PaymentStatus.CONFIRMED
        assert pending_payment.raw_response["id"] == "evt_test_1"
        assert Registration.objects.get(pk=pending_payment.registration_id).is_confirmed

    def test_unsigned_request_is_rejected(self, client: Client, pending_payment: Payment) -> None:
        response = client.post(reverse("api:stripe_webhook"), data=b"{}", content_type="application/json")

        assert response.status_code == 400
        pending_payment.refresh_from_db()
        assert pending_payment.status == Payment.PaymentStatus.PENDING
