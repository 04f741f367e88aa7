#!/usr/bin/env python3
# Copyright (C) 2024 MiniYelp Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Load or wipe development fixtures.

Run:
    python -m miniyelp_server.scripts.import_dev_data --import dev-data
    python -m miniyelp_server.scripts.import_dev_data --delete

The directory holds restaurants.json, users.json, reviews.json and bookings.json,
each a list of objects keyed by column name. Users may carry a plaintext
``password`` (hashed on load) or a ready ``password_hash``.
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

from sqlalchemy import delete

from miniyelp_server.auth import hash_password
from miniyelp_server.database import async_session_maker, engine, init_db
from miniyelp_server.models import Booking, Restaurant, RestaurantStartDate, Review, User
from miniyelp_server.models.timestamp import as_utc
from miniyelp_server.routers.restaurants import slugify
from miniyelp_server.services.ratings import recalculate_ratings

logger = logging.getLogger(__name__)

DEFAULT_DIR = Path("dev-data")


def _load(directory: Path, name: str) -> list[dict]:
    path = directory / f"{name}.json"
    if not path.exists():
        logger.warning("%s not found, skipping", path)
        return []
    return json.loads(path.read_text(encoding="utf-8"))


def _restaurant(doc: dict) -> Restaurant:
    values = dict(doc)
    start_dates = values.pop("start_dates", [])
    values.setdefault("slug", slugify(values["name"]))
    restaurant = Restaurant(**values)
    restaurant.start_dates = [RestaurantStartDate(starts_at=as_utc(datetime.fromisoformat(d))) for d in start_dates]
    return restaurant


def _user(doc: dict) -> User:
    values = {k: v for k, v in doc.items() if k not in ("password", "password_confirm")}
    values["email"] = values["email"].strip().lower()
    if "password" in doc:
        values["password_hash"] = hash_password(doc["password"])
    return User(**values)


async def import_data(directory: Path) -> None:
    await init_db()
    async with async_session_maker() as session:
        session.add_all(_restaurant(doc) for doc in _load(directory, "restaurants"))
        session.add_all(_user(doc) for doc in _load(directory, "users"))
        await session.flush()
        reviews = [Review(**doc) for doc in _load(directory, "reviews")]
        session.add_all(reviews)
        session.add_all(Booking(**doc) for doc in _load(directory, "bookings"))
        await session.commit()
        for restaurant_id in sorted({r.restaurant_id for r in reviews}):
            await recalculate_ratings(session, restaurant_id)
    print("Data successfully loaded!")


async def delete_data() -> None:
    async with async_session_maker() as session:
        for model in (Booking, Review, RestaurantStartDate, Restaurant, User):
            await session.execute(delete(model))
        await session.commit()
    print("Data successfully deleted!")


async def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Load or wipe development fixtures")
    action = parser.add_mutually_exclusive_group(required=True)
    action.add_argument("--import", dest="import_dir", nargs="?", const=DEFAULT_DIR, type=Path, metavar="DIR")
    action.add_argument("--delete", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    try:
        if args.delete:
            await delete_data()
        else:
            await import_data(args.import_dir)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (OSError, ValueError) as e:
        print(f"Import failed: {e}")
        sys.exit(1)
