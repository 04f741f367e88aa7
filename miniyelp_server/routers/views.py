# Copyright (C) 2024 MiniYelp Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Page data for the website: the same documents the templates would render, as JSON."""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from miniyelp_server.api.schemas import RestaurantDetailResponse, UpdateMeRequest, UserResponse
from miniyelp_server.auth import get_current_user, get_optional_user
from miniyelp_server.database import get_db
from miniyelp_server.errors import AppError, ValidationError, duplicate_key_error
from miniyelp_server.models import Booking, Restaurant, User
from miniyelp_server.routers.restaurants import restaurants
from miniyelp_server.services.query_features import VERSION_FIELD, Projection, project
from miniyelp_server.services.validation import normalize_email, validate_user

router = APIRouter(tags=["views"])

BOOKING_ALERT = "Your booking is successful! A confirmation letter is sent to your email."
RECOMMENDED_MIN_RATING = 4.8
CHEAP_PAGE_SIZE = 5

_hide_version = Projection(exclude=(VERSION_FIELD,))


def page_alert(alert: str | None = None) -> str | None:
    return BOOKING_ALERT if alert == "booking" else None


def _page(title: str, user: User | None, alert: str | None, **data: Any) -> dict[str, Any]:
    page = {"title": title, "user": UserResponse.model_validate(user).model_dump(mode="json") if user else None}
    if alert:
        page["alert"] = alert
    page.update(data)
    return page


async def _restaurant_list(db: AsyncSession, stmt) -> list[dict[str, Any]]:
    result = await db.execute(stmt)
    return [project(restaurants.serialize(r), _hide_version) for r in result.scalars().all()]


def _by_tag(tag: str):
    return select(Restaurant).where(Restaurant.tag == tag).order_by(Restaurant.id)


@router.get("/")
async def overview(
    user: User | None = Depends(get_optional_user),
    alert: str | None = Depends(page_alert),
    db: AsyncSession = Depends(get_db),
) -> dict:
    docs = await _restaurant_list(db, select(Restaurant).order_by(Restaurant.id))
    return _page("All Restaurants", user, alert, restaurants=docs)


@router.get("/restaurant/{slug}")
async def restaurant_page(
    slug: str,
    user: User | None = Depends(get_optional_user),
    alert: str | None = Depends(page_alert),
    db: AsyncSession = Depends(get_db),
) -> dict:
    result = await db.execute(
        select(Restaurant).where(Restaurant.slug == slug).options(selectinload(Restaurant.reviews))
    )
    restaurant = result.scalars().first()
    if restaurant is None:
        raise AppError("There is no restaurant with that name.", 404)
    doc = project(restaurants.serialize(restaurant, RestaurantDetailResponse), _hide_version)
    return _page(f"{restaurant.name} Restaurant", user, alert, restaurant=doc)


@router.get("/login")
async def login_page(user: User | None = Depends(get_optional_user)) -> dict:
    return _page("Log into your account", user, None)


@router.get("/signup")
async def signup_page(user: User | None = Depends(get_optional_user)) -> dict:
    return _page("Become a new user", user, None)


@router.get("/get-chinese-food")
async def chinese_food(
    user: User | None = Depends(get_optional_user),
    alert: str | None = Depends(page_alert),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return _page("Chinese Food", user, alert, restaurants=await _restaurant_list(db, _by_tag("Chinese food")))


@router.get("/get-vegan")
async def vegan(
    user: User | None = Depends(get_optional_user),
    alert: str | None = Depends(page_alert),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return _page("Vegan", user, alert, restaurants=await _restaurant_list(db, _by_tag("Vegan")))


@router.get("/get-brunch")
async def brunch(
    user: User | None = Depends(get_optional_user),
    alert: str | None = Depends(page_alert),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return _page("Brunch", user, alert, restaurants=await _restaurant_list(db, _by_tag("Brunch")))


@router.get("/get-top-5-cheap")
async def top_five_cheap(
    user: User | None = Depends(get_optional_user),
    alert: str | None = Depends(page_alert),
    db: AsyncSession = Depends(get_db),
) -> dict:
    stmt = select(Restaurant).order_by(Restaurant.price, Restaurant.id).limit(CHEAP_PAGE_SIZE)
    return _page("Top 5 cheap", user, alert, restaurants=await _restaurant_list(db, stmt))


@router.get("/get-recommendation")
async def recommended(
    user: User | None = Depends(get_optional_user),
    alert: str | None = Depends(page_alert),
    db: AsyncSession = Depends(get_db),
) -> dict:
    stmt = (
        select(Restaurant)
        .where(Restaurant.ratings_average >= RECOMMENDED_MIN_RATING)
        .order_by(Restaurant.ratings_average, Restaurant.id)
    )
    return _page("Recommendation", user, alert, restaurants=await _restaurant_list(db, stmt))


@router.get("/me")
async def account(user: User = Depends(get_current_user), alert: str | None = Depends(page_alert)) -> dict:
    return _page("Your account", user, alert)


@router.get("/my-booked-restaurants")
async def my_booked_restaurants(
    user: User = Depends(get_current_user),
    alert: str | None = Depends(page_alert),
    db: AsyncSession = Depends(get_db),
) -> dict:
    booked = select(Booking.restaurant_id).where(Booking.user_id == user.id)
    stmt = select(Restaurant).where(Restaurant.id.in_(booked)).order_by(Restaurant.id)
    return _page("My Booked Restaurants", user, alert, restaurants=await _restaurant_list(db, stmt))


@router.post("/submit-user-data")
async def submit_user_data(
    data: UpdateMeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Account form: only name and email are taken from the body."""
    changes = data.model_dump(include={"name", "email"}, exclude_none=True)
    errors = validate_user({"name": user.name, "email": user.email, **changes}, require_password=False)
    if errors:
        raise ValidationError(errors)
    if "email" in changes:
        changes["email"] = normalize_email(changes["email"])
    for key, value in changes.items():
        setattr(user, key, value)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise duplicate_key_error(exc) from exc
    return _page("Your account", user, None)
