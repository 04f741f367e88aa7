# Copyright (C) 2024 MiniYelp Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Page data endpoints."""

from httpx import AsyncClient

from conftest import bearer, create_restaurant
from miniyelp_server.models import User


async def _seed(client: AsyncClient, admin: User) -> list[dict]:
    return [
        await create_restaurant(client, admin, name="Golden Dragon", price=25, tag="Chinese food"),
        await create_restaurant(client, admin, name="Green Bowl", price=15, tag="Vegan", ratings_average=4.9),
        await create_restaurant(client, admin, name="Sunday Table", price=30, tag="Brunch"),
    ]


async def test_overview_anonymous_and_logged_in(client: AsyncClient, admin: User, member: User):
    await _seed(client, admin)
    r = await client.get("/")
    assert r.status_code == 200
    page = r.json()
    assert page["title"] == "All Restaurants"
    assert page["user"] is None
    assert len(page["restaurants"]) == 3
    assert "alert" not in page

    r = await client.get("/?alert=booking", headers=bearer(member))
    page = r.json()
    assert page["user"]["id"] == member.id
    assert page["alert"] == "Your booking is successful! A confirmation letter is sent to your email."


async def test_overview_ignores_bad_token(client: AsyncClient):
    r = await client.get("/", headers={"Authorization": "Bearer garbage"})
    assert r.status_code == 200
    assert r.json()["user"] is None


async def test_restaurant_page(client: AsyncClient, admin: User):
    await _seed(client, admin)
    r = await client.get("/restaurant/green-bowl")
    assert r.status_code == 200
    page = r.json()
    assert page["title"] == "Green Bowl Restaurant"
    assert page["restaurant"]["reviews"] == []

    r = await client.get("/restaurant/nowhere")
    assert r.status_code == 404
    assert r.json()["message"] == "There is no restaurant with that name."


async def test_tag_and_preset_pages(client: AsyncClient, admin: User):
    await _seed(client, admin)
    for path, names in [
        ("/get-chinese-food", ["Golden Dragon"]),
        ("/get-vegan", ["Green Bowl"]),
        ("/get-brunch", ["Sunday Table"]),
        ("/get-top-5-cheap", ["Green Bowl", "Golden Dragon", "Sunday Table"]),
        ("/get-recommendation", ["Green Bowl"]),
    ]:
        r = await client.get(path)
        assert r.status_code == 200, path
        assert [d["name"] for d in r.json()["restaurants"]] == names, path


async def test_account_pages_require_login(client: AsyncClient, member: User):
    assert (await client.get("/me")).status_code == 401
    assert (await client.get("/my-booked-restaurants")).status_code == 401

    r = await client.get("/me", headers=bearer(member))
    assert r.json()["user"]["email"] == member.email


async def test_my_booked_restaurants(client: AsyncClient, admin: User, member: User):
    restaurants = await _seed(client, admin)
    await client.post("/api/v1/bookings", json={"restaurant_id": restaurants[2]["id"]}, headers=bearer(member))
    r = await client.get("/my-booked-restaurants", headers=bearer(member))
    assert [d["name"] for d in r.json()["restaurants"]] == ["Sunday Table"]


async def test_submit_user_data(client: AsyncClient, member: User):
    r = await client.post(
        "/submit-user-data",
        json={"name": "New Name", "email": "NEW@example.com", "password": "ignored1"},
        headers=bearer(member),
    )
    assert r.status_code == 200
    user = r.json()["user"]
    assert user["name"] == "New Name"
    assert user["email"] == "new@example.com"

    r = await client.post("/submit-user-data", json={"email": "broken"}, headers=bearer(member))
    assert r.status_code == 400
