# Copyright (C) 2024 MiniYelp Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Database models."""

from miniyelp_server.models.base import Base
from miniyelp_server.models.user import Role, User
from miniyelp_server.models.restaurant import Restaurant, RestaurantStartDate
from miniyelp_server.models.review import Review
from miniyelp_server.models.booking import Booking

__all__ = [
    "Base",
    "Role",
    "User",
    "Restaurant",
    "RestaurantStartDate",
    "Review",
    "Booking",
]
