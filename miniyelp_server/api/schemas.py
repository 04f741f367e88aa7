# Copyright (C) 2024 MiniYelp Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pydantic schemas for API request/response.

Request bodies only enforce types; business rules live in
``services.validation`` so all violations are reported together.
"""

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

from miniyelp_server.services.query_features import MAX_INTEGER

# ids and counts stored in Integer columns
RowId = Annotated[int, Field(gt=0, le=MAX_INTEGER)]
Count = Annotated[int, Field(ge=0, le=MAX_INTEGER)]


# Users
class UserBrief(BaseModel):
    id: int
    name: str
    photo: str

    model_config = ConfigDict(from_attributes=True)


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    photo: str
    role: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SignupRequest(BaseModel):
    name: str | None = None
    email: str | None = None
    password: str | None = None
    password_confirm: str | None = None


class LoginRequest(BaseModel):
    email: str | None = None
    password: str | None = None


class ForgotPasswordRequest(BaseModel):
    email: str | None = None


class ResetPasswordRequest(BaseModel):
    password: str | None = None
    password_confirm: str | None = None


class UpdatePasswordRequest(BaseModel):
    password_current: str | None = None
    password: str | None = None
    password_confirm: str | None = None


class UpdateMeRequest(BaseModel):
    name: str | None = None
    email: str | None = None
    photo: str | None = None
    password: str | None = None
    password_confirm: str | None = None


class UserAdminCreate(SignupRequest):
    role: str | None = None
    photo: str | None = None


class UserAdminUpdate(BaseModel):
    name: str | None = None
    email: str | None = None
    role: str | None = None
    photo: str | None = None


# Restaurants
class RestaurantIn(BaseModel):
    name: str | None = None
    opentime: float | None = None
    endtime: float | None = None
    average_eating_time: float | None = None
    price: float | None = None
    price_after_discount: float | None = None
    max_group_size: Count | None = None
    popularity: str | None = None
    ratings_average: float | None = None
    ratings_quantity: Count | None = None
    summary: str | None = None
    description: str | None = None
    image_cover: str | None = None
    favourite_restaurant: bool | None = None
    tag: str | None = None
    location_lng: float | None = None
    location_lat: float | None = None
    location_address: str | None = None
    location_description: str | None = None
    start_dates: list[datetime] | None = None


class RestaurantResponse(BaseModel):
    id: int
    name: str
    slug: str
    opentime: float
    endtime: float
    average_eating_time: float
    price: float
    price_after_discount: float | None = None
    max_group_size: int
    popularity: str | None = None
    ratings_average: float
    ratings_quantity: int
    summary: str
    description: str | None = None
    image_cover: str | None = None
    favourite_restaurant: bool
    tag: str
    location_lng: float | None = None
    location_lat: float | None = None
    location_address: str | None = None
    location_description: str | None = None
    start_dates: list[datetime] = []
    created_at: datetime
    version_id: int

    model_config = ConfigDict(from_attributes=True)

    @field_validator("start_dates", mode="before")
    @classmethod
    def _start_dates(cls, value):
        return [getattr(v, "starts_at", v) for v in value or []]


# Reviews
class ReviewIn(BaseModel):
    review: str | None = None
    rating: float | None = None
    restaurant_id: RowId | None = None
    user_id: RowId | None = None


class ReviewResponse(BaseModel):
    id: int
    review: str
    rating: float
    restaurant_id: int
    user_id: int
    created_at: datetime
    user: UserBrief | None = None

    model_config = ConfigDict(from_attributes=True)


class RestaurantDetailResponse(RestaurantResponse):
    reviews: list[ReviewResponse] = []


# Bookings
class BookingIn(BaseModel):
    restaurant_id: RowId | None = None
    user_id: RowId | None = None
    price: float | None = None
    paid: bool | None = None


class BookingResponse(BaseModel):
    id: int
    restaurant_id: int
    user_id: int
    price: float
    paid: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
