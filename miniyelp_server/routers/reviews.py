# Copyright (C) 2024 MiniYelp Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Review API routes, top level and nested under a restaurant."""

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from miniyelp_server.api.responses import document_envelope, list_envelope, query_params
from miniyelp_server.api.schemas import ReviewIn, ReviewResponse
from miniyelp_server.auth import get_current_user, restrict_to
from miniyelp_server.database import get_db
from miniyelp_server.errors import NotFoundError
from miniyelp_server.models import Restaurant, Review, Role, User
from miniyelp_server.services.handler_factory import ResourceHandlers, parse_id
from miniyelp_server.services.query_features import FieldFilter
from miniyelp_server.services.ratings import recalculate_after_review_write
from miniyelp_server.services.validation import validate_review

router = APIRouter(prefix="/reviews", tags=["reviews"], dependencies=[Depends(get_current_user)])
nested_router = APIRouter(
    prefix="/restaurants/{restaurant_id}/reviews",
    tags=["reviews"],
    dependencies=[Depends(get_current_user)],
)

reviews = ResourceHandlers(
    Review,
    ReviewResponse,
    validate=validate_review,
    after_write=recalculate_after_review_write,
)

_reviewers = Depends(restrict_to(Role.USER, Role.ADMIN))


async def _ensure_restaurant(db: AsyncSession, restaurant_id: int | None) -> None:
    if restaurant_id is not None and await db.get(Restaurant, restaurant_id) is None:
        raise NotFoundError("No restaurant found with that ID")


async def _create(db: AsyncSession, data: ReviewIn, user: User, restaurant_id: int | None = None) -> dict:
    values = data.model_dump(exclude_unset=True)
    if restaurant_id is not None:
        values.setdefault("restaurant_id", restaurant_id)
    values.setdefault("user_id", user.id)
    await _ensure_restaurant(db, values.get("restaurant_id"))
    return document_envelope(await reviews.create_one(db, values))


@router.get("")
async def list_reviews(request: Request, db: AsyncSession = Depends(get_db)) -> dict:
    return list_envelope(await reviews.list(db, query_params(request)))


@nested_router.get("")
async def list_restaurant_reviews(restaurant_id: str, request: Request, db: AsyncSession = Depends(get_db)) -> dict:
    """Reviews of one restaurant; the path id is applied as an extra equality filter."""
    scope = FieldFilter("restaurant_id", "eq", str(parse_id(restaurant_id, "restaurant_id")))
    return list_envelope(await reviews.list(db, query_params(request), extra_filters=(scope,)))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_review(
    data: ReviewIn,
    user: User = Depends(restrict_to(Role.USER)),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return await _create(db, data, user)


@nested_router.post("", status_code=status.HTTP_201_CREATED)
async def create_restaurant_review(
    restaurant_id: str,
    data: ReviewIn,
    user: User = Depends(restrict_to(Role.USER)),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return await _create(db, data, user, parse_id(restaurant_id, "restaurant_id"))


@router.get("/{review_id}")
async def get_review(review_id: str, db: AsyncSession = Depends(get_db)) -> dict:
    return document_envelope(await reviews.get_one(db, review_id))


@router.patch("/{review_id}", dependencies=[_reviewers])
async def update_review(review_id: str, data: ReviewIn, db: AsyncSession = Depends(get_db)) -> dict:
    values = data.model_dump(exclude_unset=True)
    await _ensure_restaurant(db, values.get("restaurant_id"))
    return document_envelope(await reviews.update_one(db, review_id, values))


@router.delete("/{review_id}", dependencies=[_reviewers], status_code=status.HTTP_204_NO_CONTENT)
async def delete_review(review_id: str, db: AsyncSession = Depends(get_db)) -> Response:
    await reviews.delete_one(db, review_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
