# Copyright (C) 2024 MiniYelp Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pytest fixtures. Each test runs against a freshly created SQLite database."""

import os
import tempfile
import uuid

_TMP_DIR = tempfile.mkdtemp(prefix="miniyelp-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR}/test.db"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ENVIRONMENT"] = "development"
os.environ["JWT_SECRET"] = "test-secret"

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from miniyelp_server.auth import hash_password, issue_token  # noqa: E402
from miniyelp_server.database import async_session_maker, drop_db, engine, init_db  # noqa: E402
from miniyelp_server.main import app  # noqa: E402
from miniyelp_server.models import User  # noqa: E402

PASSWORD = "test1234"


@pytest.fixture(autouse=True)
async def database():
    await drop_db()
    await init_db()
    yield
    await engine.dispose()


@pytest.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def create_user(role: str = "user", name: str = "Test User", email: str | None = None, password: str = PASSWORD):
    async with async_session_maker() as db:
        user = User(
            name=name,
            email=email or f"{role}-{uuid.uuid4().hex[:8]}@example.com",
            password_hash=hash_password(password),
            role=role,
        )
        db.add(user)
        await db.commit()
        return user


def bearer(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_token(user.id)}"}


@pytest.fixture
async def admin():
    return await create_user("admin", name="Admin")


@pytest.fixture
async def leader():
    return await create_user("leader", name="Leader")


@pytest.fixture
async def member():
    return await create_user("user", name="Member")


def restaurant_payload(**overrides) -> dict:
    payload = {
        "name": "Golden Dragon",
        "opentime": 11,
        "endtime": 22,
        "average_eating_time": 1.5,
        "price": 25,
        "max_group_size": 12,
        "popularity": "top 10 popular",
        "summary": "Cantonese classics and dim sum",
        "tag": "Chinese food",
    }
    payload.update(overrides)
    return payload


async def create_restaurant(client: AsyncClient, admin: User, **overrides) -> dict:
    r = await client.post("/api/v1/restaurants", json=restaurant_payload(**overrides), headers=bearer(admin))
    assert r.status_code == 201, r.text
    return r.json()["data"]["data"]
