# Copyright (C) 2024 MiniYelp Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Keep a restaurant's ratings_quantity / ratings_average in step with its reviews."""

import logging
import math
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from miniyelp_server.models import Restaurant, Review
from miniyelp_server.models.restaurant import DEFAULT_RATINGS_AVERAGE

logger = logging.getLogger(__name__)


def round_rating(value: float) -> float:
    """Round half up to one decimal: 4.666 -> 4.7, 4.25 -> 4.3."""
    return math.floor(value * 10 + 0.5) / 10


async def recalculate_ratings(db: AsyncSession, restaurant_id: int) -> None:
    """Recompute count and mean rating; with no reviews left reset to the defaults."""
    count, average = (
        await db.execute(
            select(func.count(Review.id), func.avg(Review.rating)).where(Review.restaurant_id == restaurant_id)
        )
    ).one()
    restaurant = await db.get(Restaurant, restaurant_id, populate_existing=True)
    if restaurant is None:
        return
    if count:
        restaurant.ratings_quantity = count
        restaurant.ratings_average = round_rating(float(average))
    else:
        restaurant.ratings_quantity = 0
        restaurant.ratings_average = DEFAULT_RATINGS_AVERAGE
    await db.commit()
    logger.debug(
        "Restaurant %s ratings: %s reviews, average %s",
        restaurant_id,
        restaurant.ratings_quantity,
        restaurant.ratings_average,
    )


async def recalculate_after_review_write(db: AsyncSession, before: dict[str, Any] | None, after: Review | None) -> None:
    """after_write hook for reviews. Both restaurants are refreshed if a review moved."""
    restaurant_ids = set()
    if before is not None:
        restaurant_ids.add(before["restaurant_id"])
    if after is not None:
        restaurant_ids.add(after.restaurant_id)
    for restaurant_id in sorted(restaurant_ids):
        await recalculate_ratings(db, restaurant_id)
