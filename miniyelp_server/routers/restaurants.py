# Copyright (C) 2024 MiniYelp Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Restaurant API routes, including the canned reports."""

import re

from fastapi import APIRouter, Depends, Path, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from miniyelp_server.api.responses import document_envelope, list_envelope, query_params
from miniyelp_server.api.schemas import RestaurantDetailResponse, RestaurantIn, RestaurantResponse
from miniyelp_server.auth import restrict_to
from miniyelp_server.database import get_db
from miniyelp_server.models import Restaurant, RestaurantStartDate, Role
from miniyelp_server.models.timestamp import as_utc
from miniyelp_server.services import stats
from miniyelp_server.services.handler_factory import ResourceHandlers
from miniyelp_server.services.ratings import round_rating
from miniyelp_server.services.validation import validate_restaurant

router = APIRouter(prefix="/restaurants", tags=["restaurants"])

TOP_FIVE_CHEAP = {
    "limit": "5",
    "sort": "-ratings_average,price",
    "fields": "name,price,ratings_average,summary,tag",
}


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def _prepare_restaurant(values: dict, _instance: Restaurant | None) -> dict:
    columns = dict(values)
    if columns.get("name"):
        columns["name"] = columns["name"].strip()
        columns["slug"] = slugify(columns["name"])
    for key in ("summary", "description"):
        if isinstance(columns.get(key), str):
            columns[key] = columns[key].strip()
    if columns.get("ratings_average") is not None:
        columns["ratings_average"] = round_rating(columns["ratings_average"])
    if "start_dates" in columns:
        columns["start_dates"] = [RestaurantStartDate(starts_at=as_utc(d)) for d in columns["start_dates"] or []]
    return columns


restaurants = ResourceHandlers(
    Restaurant,
    RestaurantResponse,
    validate=validate_restaurant,
    prepare=_prepare_restaurant,
)

_managers = Depends(restrict_to(Role.ADMIN, Role.LEADER))


@router.get("")
async def list_restaurants(request: Request, db: AsyncSession = Depends(get_db)) -> dict:
    """List restaurants. Supports field[op]=value filters, sort, fields, page and limit."""
    return list_envelope(await restaurants.list(db, query_params(request)))


@router.get("/top-5-cheap")
async def top_five_cheap(request: Request, db: AsyncSession = Depends(get_db)) -> dict:
    params = query_params(request)
    params.update(TOP_FIVE_CHEAP)
    return list_envelope(await restaurants.list(db, params))


@router.get("/recommendation")
async def get_recommendation(db: AsyncSession = Depends(get_db)) -> dict:
    return {"status": "success", "data": {"stats": await stats.recommendation(db)}}


@router.get("/statics")
async def get_statistics(db: AsyncSession = Depends(get_db)) -> dict:
    return {"status": "success", "data": {"stats": await stats.statistics(db)}}


@router.get("/monthly-plan/{year}")
async def get_monthly_plan(year: int = Path(ge=1, le=9998), db: AsyncSession = Depends(get_db)) -> dict:
    return {"status": "success", "data": {"plan": await stats.monthly_plan(db, year)}}


@router.get("/restaurants-within/{distance}/center/{latlng}/unit/{unit}")
async def get_restaurants_within(
    distance: float,
    latlng: str,
    unit: str,
    db: AsyncSession = Depends(get_db),
) -> dict:
    found = await stats.restaurants_within(db, distance, latlng, unit)
    return list_envelope([restaurants.serialize(r) for r in found])


@router.post("", dependencies=[_managers], status_code=status.HTTP_201_CREATED)
async def create_restaurant(data: RestaurantIn, db: AsyncSession = Depends(get_db)) -> dict:
    return document_envelope(await restaurants.create_one(db, data.model_dump(exclude_unset=True)))


@router.get("/{restaurant_id}")
async def get_restaurant(restaurant_id: str, db: AsyncSession = Depends(get_db)) -> dict:
    """Get a restaurant with its reviews."""
    document = await restaurants.get_one(
        db,
        restaurant_id,
        options=(selectinload(Restaurant.reviews),),
        schema=RestaurantDetailResponse,
    )
    return document_envelope(document)


@router.patch("/{restaurant_id}", dependencies=[_managers])
async def update_restaurant(restaurant_id: str, data: RestaurantIn, db: AsyncSession = Depends(get_db)) -> dict:
    return document_envelope(await restaurants.update_one(db, restaurant_id, data.model_dump(exclude_unset=True)))


@router.delete("/{restaurant_id}", dependencies=[_managers], status_code=status.HTTP_204_NO_CONTENT)
async def delete_restaurant(restaurant_id: str, db: AsyncSession = Depends(get_db)) -> Response:
    await restaurants.delete_one(db, restaurant_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
