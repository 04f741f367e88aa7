# Copyright (C) 2024 MiniYelp Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Booking endpoint tests."""

from httpx import AsyncClient

from conftest import bearer, create_restaurant, create_user
from miniyelp_server.models import User


async def test_book_for_self_defaults_price(client: AsyncClient, admin: User, member: User):
    restaurant = await create_restaurant(client, admin, price=42)
    other = await create_user()
    r = await client.post(
        "/api/v1/bookings",
        json={"restaurant_id": restaurant["id"], "user_id": other.id},
        headers=bearer(member),
    )
    assert r.status_code == 201
    booking = r.json()["data"]["data"]
    assert booking["user_id"] == member.id
    assert booking["price"] == 42
    assert booking["paid"] is True


async def test_booking_unknown_restaurant(client: AsyncClient, member: User):
    r = await client.post("/api/v1/bookings", json={"restaurant_id": 404}, headers=bearer(member))
    assert r.status_code == 404


async def test_my_bookings_only_lists_own(client: AsyncClient, admin: User, member: User):
    restaurant = await create_restaurant(client, admin)
    other = await create_user()
    await client.post("/api/v1/bookings", json={"restaurant_id": restaurant["id"]}, headers=bearer(member))
    await client.post("/api/v1/bookings", json={"restaurant_id": restaurant["id"]}, headers=bearer(other))

    r = await client.get("/api/v1/bookings/mine", headers=bearer(member))
    docs = r.json()["data"]["data"]
    assert [d["user_id"] for d in docs] == [member.id]


async def test_manager_crud(client: AsyncClient, admin: User, leader: User, member: User):
    restaurant = await create_restaurant(client, admin)
    r = await client.post(
        "/api/v1/bookings",
        json={"restaurant_id": restaurant["id"], "user_id": member.id, "price": 10, "paid": False},
        headers=bearer(leader),
    )
    assert r.status_code == 201
    booking = r.json()["data"]["data"]
    assert booking["user_id"] == member.id
    assert booking["paid"] is False

    r = await client.get("/api/v1/bookings", headers=bearer(member))
    assert r.status_code == 403
    r = await client.get("/api/v1/bookings?paid=false", headers=bearer(leader))
    assert r.json()["results"] == 1

    r = await client.patch(f"/api/v1/bookings/{booking['id']}", json={"paid": True}, headers=bearer(admin))
    assert r.json()["data"]["data"]["paid"] is True
    r = await client.patch(f"/api/v1/bookings/{booking['id']}", json={"price": -1}, headers=bearer(admin))
    assert r.status_code == 400

    r = await client.delete(f"/api/v1/bookings/{booking['id']}", headers=bearer(admin))
    assert r.status_code == 204
    r = await client.get(f"/api/v1/bookings/{booking['id']}", headers=bearer(admin))
    assert r.status_code == 404
