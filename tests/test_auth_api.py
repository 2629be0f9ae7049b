from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from barber_core.application.ports.booking_platform import Booking
from barber_core.core.config import Settings
from barber_core.database import build_engine
from barber_core.main import create_app

from conftest import ACCESS_SECRET, OTP_CODE, REFRESH_SECRET, FakeBookingPlatform

PHONE = "+61412345678"
ADMIN_SECRET = "admin-secret-for-tests"


@pytest.fixture
def booking_platform():
    return FakeBookingPlatform()


@pytest.fixture
def client(booking_platform):
    settings = Settings(
        DATABASE_URL="sqlite://",
        JWT_SECRET_KEY=ACCESS_SECRET,
        JWT_REFRESH_SECRET_KEY=REFRESH_SECRET,
        MOCK_OTP=OTP_CODE,
        ADMIN_SECRET_KEY=ADMIN_SECRET,
        BCRYPT_ROUNDS=4,
        REDIS_URL=None,
        SQUARE_LOCATION_ID="LOC-1",
    )
    app = create_app(settings=settings, engine=build_engine("sqlite://"), booking_platform=booking_platform)
    with TestClient(app) as c:
        yield c


def _register(client, phone=PHONE, email=None):
    body = {"phone_number": phone, "first_name": "Alice", "last_name": "Smith", "password": "password123"}
    if email:
        body["email"] = email
    return client.post("/api/v1/auth/register", json=body)


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


def _register_admin(client):
    return client.post(
        "/api/v1/auth/register-admin",
        json={
            "phone_number": "+61412345600",
            "first_name": "Bob",
            "last_name": "Admin",
            "password": "password123",
            "email": "admin@example.com",
        },
        headers={"x-secret-key": ADMIN_SECRET},
    )


def test_register_verify_me_end_to_end(client):
    res = _register(client)
    assert res.status_code == 201
    body = res.json()
    assert body["success"] is True
    assert body["data"]["user"]["is_verified"] is False
    assert body["data"]["user"]["phone_number"] == PHONE

    res = client.post("/api/v1/auth/verify-otp", json={"phone_number": "0412 345 678", "code": OTP_CODE})
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["user"]["is_verified"] is True
    assert data["tokens"]["access_token"]
    assert data["tokens"]["refresh_token"]

    res = client.get("/api/v1/auth/me", headers=_bearer(data["tokens"]["access_token"]))
    assert res.status_code == 200
    me = res.json()["data"]
    assert me["phone_number"] == PHONE
    assert me["is_verified"] is True


def test_invalid_phone_returns_error_envelope(client):
    res = _register(client, phone="12ab")
    assert res.status_code == 400
    body = res.json()
    assert body["success"] is False
    assert body["data"] == {"error": "INVALID_PHONE_NUMBER"}
    assert body["error"]


def test_missing_field_is_invalid_input(client):
    res = client.post("/api/v1/auth/login", json={"password": "password123"})
    assert res.status_code == 400
    assert res.json()["data"] == {"error": "INVALID_INPUT"}


def test_duplicate_registration_conflicts(client):
    assert _register(client).status_code == 201
    res = _register(client, phone="0412 345 678")
    assert res.status_code == 409
    assert res.json()["data"] == {"error": "PHONE_TAKEN"}


def test_me_requires_token(client):
    assert client.get("/api/v1/auth/me").status_code == 401
    assert client.get("/api/v1/auth/me", headers=_bearer("garbage")).status_code == 401


def test_bad_bearer_on_optional_routes_is_not_anonymous(client):
    _register(client)
    res = client.post("/api/v1/auth/request-otp", json={"phone_number": PHONE}, headers=_bearer("garbage"))
    assert res.status_code == 401


def test_login_and_refresh(client):
    _register(client, email="alice@example.com")

    wrong = client.post("/api/v1/auth/login", json={"email_or_phone": "alice@example.com", "password": "nope-nope"})
    unknown = client.post("/api/v1/auth/login", json={"email_or_phone": "bob@example.com", "password": "password123"})
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json() == unknown.json()

    res = client.post("/api/v1/auth/login", json={"email_or_phone": "Alice@Example.com", "password": "password123"})
    assert res.status_code == 200
    tokens = res.json()["data"]["tokens"]

    res = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert res.status_code == 200
    assert res.json()["data"]["access_token"]

    res = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert res.status_code == 401


def test_phone_change_with_bearer(client):
    access = _register(client).json()["data"]["tokens"]["access_token"]
    _register(client, phone="+61412345679")

    taken = client.post("/api/v1/auth/request-otp", json={"phone_number": "+61412345679"}, headers=_bearer(access))
    assert taken.status_code == 409

    res = client.post("/api/v1/auth/request-otp", json={"phone_number": "+61412345670"}, headers=_bearer(access))
    assert res.status_code == 200

    res = client.post(
        "/api/v1/auth/verify-otp",
        json={"phone_number": "+61412345670", "code": OTP_CODE},
        headers=_bearer(access),
    )
    assert res.status_code == 200
    assert res.json()["data"]["user"]["phone_number"] == "+61412345670"


def test_request_otp_rate_limited(client):
    _register(client)
    statuses = [
        client.post("/api/v1/auth/request-otp", json={"phone_number": PHONE}).status_code
        for _ in range(3)
    ]
    # Registration already used one of the three sends
    assert statuses == [200, 200, 429]


def test_change_password(client):
    access = _register(client).json()["data"]["tokens"]["access_token"]
    res = client.put("/api/v1/auth/password", json={"new_password": "another-password"}, headers=_bearer(access))
    assert res.status_code == 200
    res = client.post("/api/v1/auth/login", json={"email_or_phone": PHONE, "password": "another-password"})
    assert res.status_code == 200


def test_admin_registration_requires_secret(client):
    res = client.post(
        "/api/v1/auth/register-admin",
        json={
            "phone_number": "+61412345600",
            "first_name": "Bob",
            "last_name": "Admin",
            "password": "password123",
            "email": "admin@example.com",
        },
        headers={"x-secret-key": "wrong"},
    )
    assert res.status_code == 401
    assert _register_admin(client).status_code == 201


def test_role_gates(client, booking_platform):
    customer = _register(client).json()["data"]
    customer_token = customer["tokens"]["access_token"]
    _register_admin(client)
    admin_token = client.post(
        "/api/v1/auth/login", json={"email_or_phone": "admin@example.com", "password": "password123"}
    ).json()["data"]["tokens"]["access_token"]

    res = client.get(f"/api/v1/auth/users/{customer['user']['id']}", headers=_bearer(admin_token))
    assert res.status_code == 200
    assert res.json()["data"]["phone_number"] == PHONE

    assert client.get(f"/api/v1/auth/users/{customer['user']['id']}", headers=_bearer(customer_token)).status_code == 403
    assert client.get("/api/v1/customers/me", headers=_bearer(admin_token)).status_code == 403
    assert client.get("/api/v1/customers/me", headers=_bearer(customer_token)).status_code == 200


def test_customer_bookings_and_statistics(client, booking_platform):
    token = _register(client).json()["data"]["tokens"]["access_token"]
    now = datetime.now(timezone.utc)
    booking_platform.bookings = [
        Booking(id="b1", status="ACCEPTED", start_at=now + timedelta(days=2)),
        Booking(id="b2", status="CANCELLED_BY_CUSTOMER", start_at=now - timedelta(days=2)),
    ]

    res = client.get("/api/v1/customers/me/bookings", params={"status": "ACCEPTED"}, headers=_bearer(token))
    assert res.status_code == 200
    assert [b["id"] for b in res.json()["data"]] == ["b1"]
    assert booking_platform.list_calls[-1] == ("SQ-1", "LOC-1")

    stats = client.get("/api/v1/customers/me/statistics", headers=_bearer(token)).json()["data"]
    assert stats["total"] == 2
    assert stats["upcoming"] == 1
    assert stats["cancelled"] == 1


def test_bookings_unavailable_when_platform_down(client, booking_platform):
    booking_platform.fail = True
    token = _register(client).json()["data"]["tokens"]["access_token"]
    res = client.get("/api/v1/customers/me/bookings", headers=_bearer(token))
    assert res.status_code == 503
    assert res.json()["data"] == {"error": "BOOKING_PLATFORM_UNAVAILABLE"}


def test_update_profile(client, booking_platform):
    token = _register(client).json()["data"]["tokens"]["access_token"]
    res = client.put("/api/v1/customers/me", json={"first_name": "Alicia"}, headers=_bearer(token))
    assert res.status_code == 200
    assert res.json()["data"]["first_name"] == "Alicia"
    assert booking_platform.updated[-1][1] == "Alicia"


def test_health_and_request_id(client):
    res = client.get("/api/v1/health")
    assert res.status_code == 200
    assert res.json()["status"] == "healthy"
    assert res.headers["X-Request-ID"]
