# Copyright (C) 2024 MiniYelp Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""User endpoint tests: signup, login, password flows, self-service and admin routes."""

import pytest
from httpx import AsyncClient

from conftest import PASSWORD, bearer, create_user
from miniyelp_server.models import User
from miniyelp_server.routers import users as users_router


def _signup(name="Sam User", email="sam@example.com", password="pass1234", confirm=None) -> dict:
    return {"name": name, "email": email, "password": password, "password_confirm": confirm or password}


async def test_signup_returns_token_and_cookie(client: AsyncClient):
    r = await client.post("/api/v1/users/signup", json=_signup(email="Sam@Example.com"))
    assert r.status_code == 201
    body = r.json()
    assert body["status"] == "success"
    assert body["token"]
    user = body["data"]["user"]
    assert user["email"] == "sam@example.com"
    assert user["role"] == "user"
    assert "password_hash" not in user
    cookie = r.headers["set-cookie"]
    assert cookie.startswith("jwt=")
    assert "HttpOnly" in cookie
    assert "Secure" not in cookie


async def test_signup_cookie_secure_behind_tls_proxy(client: AsyncClient):
    r = await client.post(
        "/api/v1/users/signup", json=_signup(), headers={"X-Forwarded-Proto": "https"}
    )
    assert r.status_code == 201
    assert "Secure" in r.headers["set-cookie"]


async def test_signup_validation_reports_every_error(client: AsyncClient):
    r = await client.post(
        "/api/v1/users/signup",
        json={"name": "", "email": "not-an-email", "password": "short", "password_confirm": "other"},
    )
    assert r.status_code == 400
    message = r.json()["message"]
    assert message.startswith("Invalid input data.")
    assert "Please provide your name!" in message
    assert "Please provide a valid email" in message
    assert "Password must have at least 8 characters" in message
    assert "Passwords are not the same!" in message


async def test_signup_duplicate_email(client: AsyncClient):
    await client.post("/api/v1/users/signup", json=_signup())
    r = await client.post("/api/v1/users/signup", json=_signup(name="Other"))
    assert r.status_code == 400
    assert r.json()["status"] == "fail"
    assert r.json()["message"].startswith("Duplicate field value")


async def test_login(client: AsyncClient, member: User):
    r = await client.post("/api/v1/users/login", json={"email": member.email, "password": PASSWORD})
    assert r.status_code == 200
    assert r.json()["token"]

    r = await client.post("/api/v1/users/login", json={"email": member.email, "password": "wrong-pass"})
    assert r.status_code == 401
    assert r.json()["message"] == "Incorrect email or password"

    r = await client.post("/api/v1/users/login", json={"email": member.email})
    assert r.status_code == 400
    assert r.json()["message"] == "Please provide email and password!"


async def test_logout_overwrites_cookie(client: AsyncClient):
    r = await client.get("/api/v1/users/logout")
    assert r.status_code == 200
    assert r.headers["set-cookie"].startswith("jwt=loggedout")


async def test_forgot_and_reset_password(client: AsyncClient, member: User, monkeypatch):
    sent = {}

    async def fake_send(to, name, reset_url):
        sent["to"] = to
        sent["url"] = reset_url

    monkeypatch.setattr(users_router, "send_password_reset", fake_send)
    r = await client.post("/api/v1/users/forgot-password", json={"email": member.email})
    assert r.status_code == 200
    assert r.json() == {"status": "success", "message": "Token sent to email!"}
    assert sent["to"] == member.email
    token = sent["url"].rsplit("/", 1)[-1]

    r = await client.patch(
        f"/api/v1/users/reset-password/{token}",
        json={"password": "newpass123", "password_confirm": "newpass123"},
    )
    assert r.status_code == 200
    new_token = r.json()["token"]

    # single use
    r = await client.patch(
        f"/api/v1/users/reset-password/{token}",
        json={"password": "another123", "password_confirm": "another123"},
    )
    assert r.status_code == 400
    assert r.json()["message"] == "Token is invalid or has expired"

    r = await client.post("/api/v1/users/login", json={"email": member.email, "password": "newpass123"})
    assert r.status_code == 200
    r = await client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {new_token}"})
    assert r.status_code == 200


async def test_forgot_password_unknown_email(client: AsyncClient):
    r = await client.post("/api/v1/users/forgot-password", json={"email": "nobody@example.com"})
    assert r.status_code == 404
    assert r.json()["message"] == "There is no user with email address."


async def test_forgot_password_delivery_failure(client: AsyncClient, member: User, monkeypatch):
    async def failing_send(to, name, reset_url):
        raise users_router.EmailDeliveryError("smtp down")

    monkeypatch.setattr(users_router, "send_password_reset", failing_send)
    r = await client.post("/api/v1/users/forgot-password", json={"email": member.email})
    assert r.status_code == 500
    assert r.json() == {"status": "error", "message": "There was an error sending the email. Try again later!"}


async def test_update_my_password(client: AsyncClient, member: User):
    r = await client.patch(
        "/api/v1/users/update-my-password",
        json={"password_current": "wrong-pass", "password": "newpass123", "password_confirm": "newpass123"},
        headers=bearer(member),
    )
    assert r.status_code == 401
    assert r.json()["message"] == "Your current password is wrong."

    r = await client.patch(
        "/api/v1/users/update-my-password",
        json={"password_current": PASSWORD, "password": "newpass123", "password_confirm": "newpass123"},
        headers=bearer(member),
    )
    assert r.status_code == 200
    r = await client.post("/api/v1/users/login", json={"email": member.email, "password": "newpass123"})
    assert r.status_code == 200


async def test_update_me(client: AsyncClient, member: User):
    r = await client.patch("/api/v1/users/update-me", json={"password": "newpass123"}, headers=bearer(member))
    assert r.status_code == 400

    r = await client.patch(
        "/api/v1/users/update-me",
        json={"name": "Renamed", "role": "admin"},
        headers=bearer(member),
    )
    assert r.status_code == 200
    user = r.json()["data"]["user"]
    assert user["name"] == "Renamed"
    assert user["role"] == "user"


async def test_delete_me_deactivates(client: AsyncClient, member: User, admin: User):
    r = await client.delete("/api/v1/users/delete-me", headers=bearer(member))
    assert r.status_code == 204

    r = await client.post("/api/v1/users/login", json={"email": member.email, "password": PASSWORD})
    assert r.status_code == 401
    r = await client.get("/api/v1/users/me", headers=bearer(member))
    assert r.status_code == 401
    r = await client.get(f"/api/v1/users/{member.id}", headers=bearer(admin))
    assert r.status_code == 404


async def test_admin_user_management(client: AsyncClient, admin: User):
    r = await client.post(
        "/api/v1/users",
        json={**_signup(email="lead@example.com"), "role": "leader"},
        headers=bearer(admin),
    )
    assert r.status_code == 201
    created = r.json()["data"]["data"]
    assert created["role"] == "leader"

    r = await client.get("/api/v1/users?role=leader", headers=bearer(admin))
    assert r.json()["results"] == 1

    r = await client.patch(f"/api/v1/users/{created['id']}", json={"name": "Lead"}, headers=bearer(admin))
    assert r.status_code == 200
    assert r.json()["data"]["data"]["name"] == "Lead"

    r = await client.delete(f"/api/v1/users/{created['id']}", headers=bearer(admin))
    assert r.status_code == 204
    r = await client.get(f"/api/v1/users/{created['id']}", headers=bearer(admin))
    assert r.status_code == 404


@pytest.mark.parametrize("field", ["password_hash", "active"])
async def test_admin_cannot_query_hidden_fields(client: AsyncClient, admin: User, field: str):
    r = await client.get(f"/api/v1/users?{field}=x", headers=bearer(admin))
    assert r.status_code == 400


async def test_admin_rejects_invalid_role(client: AsyncClient, admin: User):
    target = await create_user()
    r = await client.patch(f"/api/v1/users/{target.id}", json={"role": "owner"}, headers=bearer(admin))
    assert r.status_code == 400
    assert "Role is either" in r.json()["message"]
