"""HTTP contract tests: status codes and response bodies."""
from datetime import datetime, timedelta

import pytest

from marketplace.domain.admin.models import UserRole

pytestmark = pytest.mark.integration


def _booking_body(provider, token_amount=100, hours_ahead=24):
    return {
        "providerId": provider.id,
        "serviceType": "companionship",
        "scheduledAt": (datetime.utcnow() + timedelta(hours=hours_ahead)).isoformat(),
        "duration": 60,
        "tokenAmount": token_amount,
    }


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


async def test_signup_returns_tokens_and_wallet(client):
    response = await client.post(
        "/v1/auth/signup",
        json={"email": "new.seeker@example.com", "password": "correct-horse", "displayName": "New"},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["access_token"] and body["refresh_token"]

    headers = {"Authorization": f"Bearer {body['access_token']}"}
    wallet = await client.get("/v1/tokens/balance", headers=headers)
    assert wallet.status_code == 200
    assert wallet.json() == {"success": True, "balance": 0, "escrowBalance": 0}


async def test_signup_rejects_staff_role(client):
    response = await client.post(
        "/v1/auth/signup",
        json={"email": "sneaky@example.com", "password": "correct-horse", "role": "ADMIN"},
    )
    assert response.status_code == 422
    assert response.json()["success"] is False


async def test_missing_token_is_unauthorized(client):
    response = await client.get("/v1/bookings")
    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHORIZED"


async def test_create_booking_holds_tokens(client, make_user, auth_headers):
    seeker = await make_user(balance=1000)
    provider = await make_user(role=UserRole.PROVIDER)

    response = await client.post("/v1/bookings", json=_booking_body(provider, 500), headers=auth_headers(seeker))

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["booking"]["status"] == "PENDING"
    assert body["booking"]["tokenAmount"] == 500
    assert body["booking"]["seekerId"] == seeker.id

    balance = (await client.get("/v1/tokens/balance", headers=auth_headers(seeker))).json()
    assert (balance["balance"], balance["escrowBalance"]) == (500, 500)


async def test_insufficient_tokens(client, make_user, auth_headers):
    seeker = await make_user(balance=50)
    provider = await make_user(role=UserRole.PROVIDER)

    response = await client.post("/v1/bookings", json=_booking_body(provider, 100), headers=auth_headers(seeker))

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Insufficient tokens"
    listed = (await client.get("/v1/bookings", headers=auth_headers(seeker))).json()
    assert listed["bookings"] == []


async def test_unverified_seeker_is_forbidden(client, make_user, auth_headers):
    seeker = await make_user(balance=500, is_age_verified=False)
    provider = await make_user(role=UserRole.PROVIDER)

    response = await client.post("/v1/bookings", json=_booking_body(provider), headers=auth_headers(seeker))

    assert response.status_code == 403
    assert response.json()["code"] == "AGE_NOT_VERIFIED"


async def test_invalid_status_change(client, make_user, make_booking, auth_headers):
    seeker = await make_user(balance=500)
    provider = await make_user(role=UserRole.PROVIDER)
    booking = await make_booking(seeker, provider)

    response = await client.put(
        f"/v1/bookings/{booking.id}/status", json={"status": "COMPLETED"}, headers=auth_headers(provider)
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_TRANSITION"


async def test_lifecycle_over_http(client, make_user, make_booking, auth_headers):
    seeker = await make_user(balance=500)
    provider = await make_user(role=UserRole.PROVIDER)
    booking = await make_booking(seeker, provider, token_amount=200)

    for status in ("CONFIRMED", "IN_PROGRESS", "COMPLETED"):
        response = await client.put(
            f"/v1/bookings/{booking.id}/status", json={"status": status}, headers=auth_headers(provider)
        )
        assert response.status_code == 200
        assert response.json()["booking"]["status"] == status

    earned = (await client.get("/v1/tokens/wallet", headers=auth_headers(provider))).json()["wallet"]
    assert (earned["balance"], earned["totalEarned"]) == (200, 200)


async def test_unknown_booking_is_404(client, make_user, auth_headers):
    user = await make_user()
    response = await client.get("/v1/bookings/does-not-exist", headers=auth_headers(user))
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


async def test_chat_send_reports_flag(client, make_user, make_booking, auth_headers):
    seeker = await make_user(balance=500)
    provider = await make_user(role=UserRole.PROVIDER)
    booking = await make_booking(seeker, provider)

    response = await client.post(
        f"/v1/chat/{booking.id}/messages", json={"content": "ping me on telegram"}, headers=auth_headers(seeker)
    )

    assert response.status_code == 201
    message = response.json()["message"]
    assert message["isFlagged"] is True
    assert message["senderId"] == seeker.id

    history = (await client.get(f"/v1/chat/{booking.id}/messages", headers=auth_headers(provider))).json()
    assert [m["id"] for m in history["messages"]] == [message["id"]]
    assert history["pagination"]["total"] == 1


async def test_chat_outsider_forbidden(client, make_user, make_booking, auth_headers):
    seeker = await make_user(balance=500)
    provider = await make_user(role=UserRole.PROVIDER)
    outsider = await make_user()
    booking = await make_booking(seeker, provider)

    response = await client.post(
        f"/v1/chat/{booking.id}/messages", json={"content": "hello there"}, headers=auth_headers(outsider)
    )
    assert response.status_code == 403


async def test_chat_on_cancelled_booking(client, make_user, make_booking, booking_service, auth_headers):
    seeker = await make_user(balance=500)
    provider = await make_user(role=UserRole.PROVIDER)
    booking = await make_booking(seeker, provider)
    await booking_service.update_status(booking.id, "CANCELLED", seeker)

    response = await client.post(
        f"/v1/chat/{booking.id}/messages", json={"content": "hello there"}, headers=auth_headers(seeker)
    )
    assert response.status_code == 400
    assert response.json()["code"] == "MESSAGING_NOT_ALLOWED"


async def test_template_send_missing_variables(client, make_user, make_booking, auth_headers):
    seeker = await make_user(balance=500)
    provider = await make_user(role=UserRole.PROVIDER)
    admin = await make_user(role=UserRole.ADMIN)
    booking = await make_booking(seeker, provider)

    created = await client.post(
        "/v1/templates",
        json={
            "category": "BOOKING_COORDINATION",
            "templateText": "Can we confirm the appointment for {{time}} on {{date}}?",
        },
        headers=auth_headers(admin),
    )
    assert created.status_code == 201
    template = created.json()["template"]
    assert template["variables"] == ["time", "date"]

    response = await client.post(
        "/v1/templates/send",
        json={"bookingId": booking.id, "templateId": template["id"], "variables": {"time": "3pm"}},
        headers=auth_headers(seeker),
    )
    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "MISSING_VARIABLES"
    assert body["missing"] == ["date"]

    sent = await client.post(
        "/v1/templates/send",
        json={"bookingId": booking.id, "templateId": template["id"], "variables": {"time": "3pm", "date": "Friday"}},
        headers=auth_headers(seeker),
    )
    assert sent.status_code == 201
    assert sent.json()["message"]["content"] == "Can we confirm the appointment for 3pm on Friday?"


async def test_template_admin_routes_require_staff(client, make_user, auth_headers):
    seeker = await make_user()
    response = await client.get("/v1/templates/admin/stats", headers=auth_headers(seeker))
    assert response.status_code == 403


async def test_provider_inbox(client, make_user, make_booking, auth_headers):
    seeker = await make_user(balance=500)
    provider = await make_user(role=UserRole.PROVIDER)
    booking = await make_booking(seeker, provider)
    headers = auth_headers(provider)

    inbox = (await client.get("/v1/notifications", headers=headers)).json()
    assert inbox["pagination"]["total"] == 1
    entry = inbox["notifications"][0]
    assert entry["type"] == "booking_request"
    assert entry["bookingId"] == booking.id
    assert (await client.get("/v1/notifications/unread-count", headers=headers)).json()["unread"] == 1

    foreign = await client.put(f"/v1/notifications/{entry['id']}/read", headers=auth_headers(seeker))
    assert foreign.status_code == 404
    assert (await client.put(f"/v1/notifications/{entry['id']}/read", headers=headers)).status_code == 200
    assert (await client.get("/v1/notifications/unread-count", headers=headers)).json()["unread"] == 0
