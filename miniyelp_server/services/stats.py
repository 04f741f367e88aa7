# Copyright (C) 2024 MiniYelp Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Read-only aggregate reports over restaurants."""

import math
from collections import defaultdict
from datetime import datetime, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from miniyelp_server.errors import AppError
from miniyelp_server.models import Restaurant, RestaurantStartDate
from miniyelp_server.models.timestamp import as_utc

RECOMMENDATION_MIN_RATING = 4.5
EXCLUDED_POPULARITY = "RISING STAR"
EARTH_RADIUS = {"mi": 3963.2, "km": 6378.1}


async def recommendation(db: AsyncSession) -> list[dict]:
    """Highly rated restaurants grouped by tag, lowest average first."""
    avg_rating = func.avg(Restaurant.ratings_average).label("avg_rating")
    stmt = (
        select(
            func.upper(Restaurant.tag).label("tag"),
            func.count(Restaurant.id).label("num_restaurants"),
            func.sum(Restaurant.ratings_quantity).label("num_ratings"),
            avg_rating,
        )
        .where(Restaurant.ratings_average >= RECOMMENDATION_MIN_RATING)
        .group_by(func.upper(Restaurant.tag))
        .order_by(avg_rating)
    )
    rows = (await db.execute(stmt)).all()
    return [
        {
            "tag": row.tag,
            "num_restaurants": row.num_restaurants,
            "num_ratings": row.num_ratings or 0,
            "avg_rating": float(row.avg_rating),
        }
        for row in rows
    ]


async def statistics(db: AsyncSession) -> list[dict]:
    """Per popularity tier: counts, rating and price figures, cheapest tier first."""
    avg_price = func.avg(Restaurant.price).label("avg_price")
    stmt = (
        select(
            func.upper(Restaurant.popularity).label("popularity"),
            func.count(Restaurant.id).label("num_restaurants"),
            func.sum(Restaurant.ratings_quantity).label("num_ratings"),
            func.avg(Restaurant.ratings_average).label("avg_rating"),
            avg_price,
            func.min(Restaurant.price).label("min_price"),
            func.max(Restaurant.price).label("max_price"),
        )
        .where(
            or_(
                Restaurant.popularity.is_(None),
                func.upper(Restaurant.popularity) != EXCLUDED_POPULARITY,
            )
        )
        .group_by(func.upper(Restaurant.popularity))
        .order_by(avg_price)
    )
    rows = (await db.execute(stmt)).all()
    return [
        {
            "popularity": row.popularity,
            "num_restaurants": row.num_restaurants,
            "num_ratings": row.num_ratings or 0,
            "avg_rating": float(row.avg_rating),
            "avg_price": float(row.avg_price),
            "min_price": row.min_price,
            "max_price": row.max_price,
        }
        for row in rows
    ]


async def monthly_plan(db: AsyncSession, year: int) -> list[dict]:
    """Restaurant start dates in ``year`` grouped by month, busiest month first (max 12)."""
    start = datetime(year, 1, 1, tzinfo=timezone.utc)
    end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    stmt = (
        select(RestaurantStartDate.starts_at, Restaurant.name)
        .join(Restaurant, Restaurant.id == RestaurantStartDate.restaurant_id)
        .where(RestaurantStartDate.starts_at >= start, RestaurantStartDate.starts_at < end)
        .order_by(RestaurantStartDate.starts_at, Restaurant.name)
    )
    months: dict[int, list[str]] = defaultdict(list)
    for starts_at, name in (await db.execute(stmt)).all():
        months[as_utc(starts_at).month].append(name)
    plan = [
        {"month": month, "num_restaurant_starts": len(names), "restaurants": names}
        for month, names in months.items()
    ]
    plan.sort(key=lambda row: (-row["num_restaurant_starts"], row["month"]))
    return plan[:12]


def parse_latlng(latlng: str) -> tuple[float, float]:
    parts = [p.strip() for p in latlng.split(",")]
    try:
        lat, lng = (float(p) for p in parts)
    except ValueError as exc:
        raise AppError("Please provide latitude and longitude in the format lat,lng.", 400) from exc
    return lat, lng


def central_angle(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle angle between two points, in radians (haversine)."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = phi2 - phi1
    dlmb = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * math.asin(min(1.0, math.sqrt(a)))


async def restaurants_within(db: AsyncSession, distance: float, latlng: str, unit: str) -> list[Restaurant]:
    """Restaurants whose start location lies within ``distance`` (``mi`` or ``km``) of ``latlng``."""
    lat, lng = parse_latlng(latlng)
    radius = distance / EARTH_RADIUS["mi" if unit == "mi" else "km"]
    stmt = (
        select(Restaurant)
        .where(Restaurant.location_lat.is_not(None), Restaurant.location_lng.is_not(None))
        .order_by(Restaurant.id)
    )
    restaurants = (await db.execute(stmt)).scalars().all()
    return [
        r for r in restaurants
        if central_angle(lat, lng, r.location_lat, r.location_lng) <= radius
    ]
