"""Tests for the /api/auth endpoints."""
from __future__ import annotations

from bizbook.extensions import db
from bizbook.models import AuthAccount, User

from conftest import OWNER_PAYLOAD


def test_register_success_201(client, app):
    response = client.post("/api/auth/register", json=OWNER_PAYLOAD)
    data = response.get_json()

    assert response.status_code == 201
    assert data["token"]
    assert data["user"]["email"] == "owner@example.com"
    assert data["user"]["role"] == "business_owner"
    assert "password" not in data["user"]
    assert "password_hash" not in data["user"]

    with app.app_context():
        account = db.session.query(AuthAccount).one()
        assert account.password_hash != OWNER_PAYLOAD["password"]


def test_register_duplicate_email_409(client):
    client.post("/api/auth/register", json=OWNER_PAYLOAD)

    response = client.post("/api/auth/register", json=dict(OWNER_PAYLOAD, email="OWNER@example.com"))

    assert response.status_code == 409
    assert response.get_json()["error"] == "duplicate_account"


def test_register_invalid_fields_400(client):
    payload = dict(OWNER_PAYLOAD, email="not-an-email", password="short", phone="abc")

    response = client.post("/api/auth/register", json=payload)
    data = response.get_json()

    assert response.status_code == 400
    assert data["error"] == "invalid_payload"
    fields = {detail["field"] for detail in data["details"]}
    assert fields == {"email", "password", "phone"}


def test_register_unknown_field_400(client):
    response = client.post("/api/auth/register", json=dict(OWNER_PAYLOAD, role="admin"))

    assert response.status_code == 400
    assert response.get_json()["details"][0]["field"] == "role"


def test_login_success_200(client, register_owner):
    register_owner()

    response = client.post(
        "/api/auth/login",
        json={"email": "Owner@Example.com", "password": OWNER_PAYLOAD["password"]},
    )

    assert response.status_code == 200
    assert response.get_json()["token"]


def test_login_wrong_password_401(client, register_owner):
    register_owner()

    response = client.post("/api/auth/login", json={"email": "owner@example.com", "password": "wrong-password"})

    assert response.status_code == 401
    assert response.get_json() == {"error": "unauthorized", "message": "Invalid email or password"}


def test_login_missing_fields_400(client):
    response = client.post("/api/auth/login", json={"email": "owner@example.com"})

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_payload"


def test_profile_requires_token_401(client):
    response = client.get("/api/auth/profile")

    assert response.status_code == 401
    assert response.get_json()["error"] == "unauthorized"


def test_profile_rejects_malformed_header_401(client, register_owner):
    headers, _ = register_owner()
    token = headers["Authorization"].split(" ", 1)[1]

    response = client.get("/api/auth/profile", headers={"Authorization": f"Token {token}"})

    assert response.status_code == 401


def test_profile_rejects_tampered_token_401(client, register_owner):
    headers, _ = register_owner()

    response = client.get("/api/auth/profile", headers={"Authorization": headers["Authorization"] + "x"})

    assert response.status_code == 401


def test_get_profile_200(client, register_owner):
    headers, user = register_owner()

    response = client.get("/api/auth/profile", headers=headers)

    assert response.status_code == 200
    assert response.get_json()["user"]["id"] == user["id"]


def test_update_profile_200(client, register_owner):
    headers, _ = register_owner()

    response = client.put(
        "/api/auth/profile",
        json={"business_name": "Fade Factory Downtown", "address": "12 Main St"},
        headers=headers,
    )
    data = response.get_json()

    assert response.status_code == 200
    assert data["user"]["business_name"] == "Fade Factory Downtown"
    assert data["user"]["address"] == "12 Main St"
    assert data["user"]["owner_name"] == "Sam Rivera"


def test_update_profile_rejects_email_change_400(client, register_owner):
    headers, _ = register_owner()

    response = client.put("/api/auth/profile", json={"email": "new@example.com"}, headers=headers)

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_payload"


def test_change_password_wrong_current_400(client, register_owner):
    headers, _ = register_owner()

    response = client.put(
        "/api/auth/change-password",
        json={"current_password": "not-it-at-all", "new_password": "another-pass-2"},
        headers=headers,
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "incorrect_password"


def test_change_password_then_login_with_new_password(client, register_owner):
    headers, _ = register_owner()

    response = client.put(
        "/api/auth/change-password",
        json={"current_password": OWNER_PAYLOAD["password"], "new_password": "another-pass-2"},
        headers=headers,
    )
    assert response.status_code == 200

    old = client.post("/api/auth/login", json={"email": "owner@example.com", "password": OWNER_PAYLOAD["password"]})
    new = client.post("/api/auth/login", json={"email": "owner@example.com", "password": "another-pass-2"})
    assert old.status_code == 401
    assert new.status_code == 200


def test_delete_account_deactivates_and_revokes_token(client, register_owner, app):
    headers, user = register_owner()

    response = client.delete("/api/auth/account", headers=headers)
    assert response.status_code == 200

    with app.app_context():
        assert db.session.get(User, user["id"]).is_active is False

    assert client.get("/api/auth/profile", headers=headers).status_code == 401
    login = client.post("/api/auth/login", json={"email": "owner@example.com", "password": OWNER_PAYLOAD["password"]})
    assert login.status_code == 401


def test_logout_200(client, register_owner):
    headers, _ = register_owner()

    response = client.post("/api/auth/logout", headers=headers)

    assert response.status_code == 200


def test_login_non_string_fields_400(client, register_owner):
    register_owner()

    wrong_email = client.post("/api/auth/login", json={"email": 123, "password": "secret-pass-1"})
    wrong_password = client.post("/api/auth/login", json={"email": "owner@example.com", "password": 12345678})

    assert wrong_email.status_code == 400
    assert wrong_email.get_json()["details"][0]["field"] == "email"
    assert wrong_password.status_code == 400
    assert wrong_password.get_json()["details"][0]["field"] == "password"


def test_change_password_non_string_400(client, register_owner):
    headers, _ = register_owner()

    response = client.put(
        "/api/auth/change-password",
        json={"current_password": "secret-pass-1", "new_password": 123456789},
        headers=headers,
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_payload"
