import orjson
import pytest
from django.test.client import Client
from django.urls import reverse
from ninja_jwt.tokens import RefreshToken

from accounts import schema
from accounts.models import ConveneUser

pytestmark = pytest.mark.django_db


def test_register_creates_user_and_returns_tokens(
    client: Client, valid_register_payload: schema.RegisterUserSchema
) -> None:
    url = reverse("api:register")

    response = client.post(url, data=valid_register_payload.model_dump_json(), content_type="application/json")

    assert response.status_code == 201, response.content
    data = response.json()
    assert data["access"]
    assert data["refresh"]
    user = ConveneUser.objects.get(username="newuser@example.com")
    assert user.email == "newuser@example.com"
    assert user.check_password("a-Strong-password-123!")


def test_register_duplicate_email_is_rejected(
    client: Client, user: ConveneUser, valid_register_payload: schema.RegisterUserSchema
) -> None:
    payload = valid_register_payload.model_dump()
    payload["email"] = user.email

    response = client.post(reverse("api:register"), data=orjson.dumps(payload), content_type="application/json")

    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"
    assert ConveneUser.objects.filter(email=user.email).count() == 1


def test_me_requires_authentication(client: Client) -> None:
    response = client.get(reverse("api:me"))
    assert response.status_code == 401


def test_me_returns_profile(user: ConveneUser) -> None:
    refresh = RefreshToken.for_user(user)
    auth_client = Client(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")  # type: ignore[attr-defined]

    response = auth_client.get(reverse("api:me"))

    assert response.status_code == 200
    data = response.json()
    assert data["email"] == "testuser@example.com"
    assert data["display_name"] == "Test User"
    assert data["role"] == "user"


def test_update_me_changes_preferred_name(user: ConveneUser) -> None:
    refresh = RefreshToken.for_user(user)
    auth_client = Client(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")  # type: ignore[attr-defined]

    response = auth_client.put(
        reverse("api:update_me"), data=orjson.dumps({"preferred_name": "Testy"}), content_type="application/json"
    )

    assert response.status_code == 200
    user.refresh_from_db()
    assert user.preferred_name == "Testy"


def test_obtain_token_pair_with_credentials(client: Client, user: ConveneUser) -> None:
    response = client.post(
        reverse("api:token_obtain_pair"),
        data=orjson.dumps({"username": user.username, "password": "strong-password-123!"}),
        content_type="application/json",
    )

    assert response.status_code == 200
    assert response.json()["access"]
    assert response.json()["refresh"]


def test_refresh_returns_new_access_token(client: Client, user: ConveneUser) -> None:
    refresh = RefreshToken.for_user(user)

    response = client.post(
        reverse("api:token_refresh"), data=orjson.dumps({"refresh": str(refresh)}), content_type="application/json"
    )

    assert response.status_code == 200
    assert response.json()["access"]


def test_verify_accepts_valid_and_rejects_garbage(client: Client, user: ConveneUser) -> None:
    access = str(RefreshToken.for_user(user).access_token)  # type: ignore[attr-defined]
    url = reverse("api:token_verify")

    ok = client.post(url, data=orjson.dumps({"token": access}), content_type="application/json")
    bad = client.post(url, data=orjson.dumps({"token": "not-a-token"}), content_type="application/json")

    assert ok.status_code == 200
    assert bad.status_code == 401


def test_obtain_token_pair_with_wrong_password(client: Client, user: ConveneUser) -> None:
    response = client.post(
        reverse("api:token_obtain_pair"),
        data=orjson.dumps({"username": user.username, "password": "nope"}),
        content_type="application/json",
    )

    assert response.status_code == 401
