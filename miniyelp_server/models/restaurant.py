# Copyright (C) 2024 MiniYelp Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Restaurant models."""

from datetime import datetime
from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from miniyelp_server.models.base import Base
from miniyelp_server.models.timestamp import TimestampMixin

DEFAULT_RATINGS_AVERAGE = 4.5

TAGS = (
    "Chinese food",
    "Korean food",
    "Japanese food",
    "Thai food",
    "Vietnamese food",
    "American food",
    "Mexican food",
    "Italian food",
    "Brunch",
    "Barbeque",
    "Beer bar",
    "Coffee and tea",
    "Salad",
    "Vegan",
)

POPULARITY_TIERS = ("rising star", "high customer retention rate", "top 10 popular")


class Restaurant(Base, TimestampMixin):
    """Restaurant listing with aggregate rating fields maintained from its reviews."""

    __tablename__ = "restaurants"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(40), unique=True, nullable=False, index=True)
    slug: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    opentime: Mapped[float] = mapped_column(Float, nullable=False)
    endtime: Mapped[float] = mapped_column(Float, nullable=False)
    average_eating_time: Mapped[float] = mapped_column(Float, nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False, index=True)
    price_after_discount: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_group_size: Mapped[int] = mapped_column(Integer, nullable=False)
    popularity: Mapped[str | None] = mapped_column(String(64), nullable=True)
    ratings_average: Mapped[float] = mapped_column(Float, default=DEFAULT_RATINGS_AVERAGE, nullable=False)
    ratings_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_cover: Mapped[str | None] = mapped_column(String(255), nullable=True)
    favourite_restaurant: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    tag: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    # start location as a GeoJSON-style point: longitude first
    location_lng: Mapped[float | None] = mapped_column(Float, nullable=True)
    location_lat: Mapped[float | None] = mapped_column(Float, nullable=True)
    location_address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    location_description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    start_dates: Mapped[list["RestaurantStartDate"]] = relationship(
        "RestaurantStartDate",
        back_populates="restaurant",
        cascade="all, delete-orphan",
        order_by="RestaurantStartDate.starts_at",
        lazy="selectin",
    )
    reviews: Mapped[list["Review"]] = relationship(
        "Review",
        back_populates="restaurant",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )
    bookings: Mapped[list["Booking"]] = relationship(
        "Booking",
        back_populates="restaurant",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )


class RestaurantStartDate(Base):
    """A scheduled opening date for a restaurant."""

    __tablename__ = "restaurant_start_dates"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    restaurant_id: Mapped[int] = mapped_column(
        ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    restaurant: Mapped["Restaurant"] = relationship("Restaurant", back_populates="start_dates")
