# Copyright (C) 2024 MiniYelp Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Review model."""

from sqlalchemy import Float, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from miniyelp_server.models.base import Base
from miniyelp_server.models.timestamp import TimestampMixin


class Review(Base, TimestampMixin):
    """A user's review of a restaurant. One per (restaurant, user)."""

    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("restaurant_id", "user_id", name="uq_reviews_restaurant_user"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    review: Mapped[str] = mapped_column(Text, nullable=False)
    rating: Mapped[float] = mapped_column(Float, nullable=False)
    restaurant_id: Mapped[int] = mapped_column(
        ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    restaurant: Mapped["Restaurant"] = relationship("Restaurant", back_populates="reviews", lazy="raise")
    user: Mapped["User"] = relationship("User", lazy="selectin")
