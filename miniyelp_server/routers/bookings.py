# Copyright (C) 2024 MiniYelp Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Booking API routes."""

import logging

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from miniyelp_server.api.responses import document_envelope, list_envelope, query_params
from miniyelp_server.api.schemas import BookingIn, BookingResponse
from miniyelp_server.auth import get_current_user, restrict_to
from miniyelp_server.database import get_db
from miniyelp_server.errors import NotFoundError
from miniyelp_server.models import Booking, Restaurant, Role, User
from miniyelp_server.services.handler_factory import ResourceHandlers
from miniyelp_server.services.query_features import FieldFilter
from miniyelp_server.services.validation import validate_booking

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"], dependencies=[Depends(get_current_user)])

MANAGER_ROLES = (Role.ADMIN, Role.LEADER)

bookings = ResourceHandlers(Booking, BookingResponse, validate=validate_booking)

_managers = Depends(restrict_to(*MANAGER_ROLES))


@router.get("/mine")
async def list_my_bookings(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    mine = FieldFilter("user_id", "eq", str(user.id))
    return list_envelope(await bookings.list(db, query_params(request), extra_filters=(mine,)))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_booking(
    data: BookingIn,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Book a restaurant. Only admins and leaders may book on behalf of another user.

    The price defaults to the restaurant's current price.
    """
    values = data.model_dump(exclude_unset=True)
    if user.role not in {r.value for r in MANAGER_ROLES} or values.get("user_id") is None:
        values["user_id"] = user.id
    restaurant_id = values.get("restaurant_id")
    if restaurant_id is not None:
        restaurant = await db.get(Restaurant, restaurant_id)
        if restaurant is None:
            raise NotFoundError("No restaurant found with that ID")
        if values.get("price") is None:
            values["price"] = restaurant.price
    document = await bookings.create_one(db, values)
    logger.info("User %s booked restaurant %s", values["user_id"], restaurant_id)
    return document_envelope(document)


@router.get("", dependencies=[_managers])
async def list_bookings(request: Request, db: AsyncSession = Depends(get_db)) -> dict:
    return list_envelope(await bookings.list(db, query_params(request)))


@router.get("/{booking_id}", dependencies=[_managers])
async def get_booking(booking_id: str, db: AsyncSession = Depends(get_db)) -> dict:
    return document_envelope(await bookings.get_one(db, booking_id))


@router.patch("/{booking_id}", dependencies=[_managers])
async def update_booking(booking_id: str, data: BookingIn, db: AsyncSession = Depends(get_db)) -> dict:
    return document_envelope(await bookings.update_one(db, booking_id, data.model_dump(exclude_unset=True)))


@router.delete("/{booking_id}", dependencies=[_managers], status_code=status.HTTP_204_NO_CONTENT)
async def delete_booking(booking_id: str, db: AsyncSession = Depends(get_db)) -> Response:
    await bookings.delete_one(db, booking_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
