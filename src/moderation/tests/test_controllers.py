"""Tests for the moderation endpoints."""

import typing as t
import uuid

import orjson
import pytest
from django.shortcuts import reverse  # type: ignore[attr-defined]
from django.test.client import Client

from accounts.models import ConveneUser
from events.models import Event, Registration
from moderation.models import AdminAction, Block

pytestmark = pytest.mark.django_db


def _reason(reason: str) -> dict[str, t.Any]:
    return {"data": orjson.dumps({"reason": reason}), "content_type": "application/json"}


class TestPermissions:
    @pytest.mark.parametrize("url_name", ["moderation_stats", "moderation_users", "moderation_actions"])
    def test_non_admin_is_forbidden(self, attendee_client: Client, url_name: str) -> None:
        response = attendee_client.get(reverse(f"api:{url_name}"))

        assert response.status_code == 403
        assert response.json()["code"] == "not_authorized"

    def test_anonymous_is_unauthorized(self, client: Client) -> None:
        assert client.get(reverse("api:moderation_stats")).status_code == 401


class TestBlockEndpoints:
    def test_block_and_unblock(self, admin_client_jwt: Client, attendee: ConveneUser) -> None:
        # Block
        response = admin_client_jwt.post(
            reverse("api:block_user", kwargs={"user_id": attendee.pk}), **_reason("Harassment")
        )
        assert response.status_code == 200
        assert response.json() == {"warnings": [], "deleted": {}}
        assert Block.objects.is_blocked(attendee)

        # Listed
        response = admin_client_jwt.get(reverse("api:moderation_blocked_users"))
        assert [b["user"]["id"] for b in response.json()["results"]] == [str(attendee.pk)]

        # Unblock
        response = admin_client_jwt.post(reverse("api:unblock_user", kwargs={"user_id": attendee.pk}))
        assert response.status_code == 200
        assert not Block.objects.is_blocked(attendee)

    def test_blank_reason(self, admin_client_jwt: Client, attendee: ConveneUser) -> None:
        response = admin_client_jwt.post(reverse("api:block_user", kwargs={"user_id": attendee.pk}), **_reason("  "))

        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"

    def test_unknown_user(self, admin_client_jwt: Client) -> None:
        response = admin_client_jwt.post(reverse("api:block_user", kwargs={"user_id": uuid.uuid4()}), **_reason("x"))

        assert response.status_code == 404

    def test_blocked_user_gets_forbidden_on_register(
        self, admin_client_jwt: Client, attendee_client: Client, attendee: ConveneUser, free_event: Event
    ) -> None:
        admin_client_jwt.post(reverse("api:block_user", kwargs={"user_id": attendee.pk}), **_reason("spam"))

        response = attendee_client.post(reverse("api:register_for_event", kwargs={"event_id": free_event.pk}))

        assert response.status_code == 403


class TestEventEndpoints:
    def test_event_details(self, admin_client_jwt: Client, confirmed_registration: Registration) -> None:
        response = admin_client_jwt.get(
            reverse("api:moderation_event_details", kwargs={"event_id": confirmed_registration.event_id})
        )

        assert response.status_code == 200
        data = response.json()
        assert data["event"]["id"] == str(confirmed_registration.event_id)
        assert data["registrations"][0]["checked_in"] is False
        assert data["registrations"][0]["status"] == "confirmed"

    def test_delete_event(self, admin_client_jwt: Client, confirmed_registration: Registration) -> None:
        event_id = confirmed_registration.event_id

        response = admin_client_jwt.delete(
            reverse("api:moderation_delete_event", kwargs={"event_id": event_id}), **_reason("Scam")
        )

        assert response.status_code == 200
        assert response.json()["deleted"]["registrations"] == 1
        assert not Event.objects.filter(pk=event_id).exists()
        assert AdminAction.objects.filter(target_event_id=event_id).exists()

    def test_delete_requires_reason(self, admin_client_jwt: Client, free_event: Event) -> None:
        response = admin_client_jwt.delete(
            reverse("api:moderation_delete_event", kwargs={"event_id": free_event.pk}),
            data=orjson.dumps({}),
            content_type="application/json",
        )

        assert response.status_code == 422
        assert Event.objects.filter(pk=free_event.pk).exists()


class TestListings:
    def test_stats(self, admin_client_jwt: Client, confirmed_registration: Registration) -> None:
        response = admin_client_jwt.get(reverse("api:moderation_stats"))

        assert response.status_code == 200
        assert response.json()["confirmed_registrations"] == 1

    def test_users_search(self, admin_client_jwt: Client, attendee: ConveneUser, organizer: ConveneUser) -> None:
        response = admin_client_jwt.get(reverse("api:moderation_users"), {"search": "organizer"})

        assert response.status_code == 200
        results = response.json()["results"]
        assert [u["id"] for u in results] == [str(organizer.pk)]
        assert results[0]["is_blocked"] is False

    def test_actions(self, admin_client_jwt: Client, attendee: ConveneUser) -> None:
        admin_client_jwt.post(reverse("api:block_user", kwargs={"user_id": attendee.pk}), **_reason("spam"))

        response = admin_client_jwt.get(reverse("api:moderation_actions"))

        assert response.status_code == 200
        result = response.json()["results"][0]
        assert result["action_type"] == "block_user"
        assert result["target_user"]["id"] == str(attendee.pk)
