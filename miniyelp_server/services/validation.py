# Copyright (C) 2024 MiniYelp Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Per-entity validation. Each function returns every violated rule, not just the first."""

from typing import Any

from email_validator import EmailNotValidError, validate_email

from miniyelp_server.models import Role
from miniyelp_server.models.restaurant import POPULARITY_TIERS, TAGS

MIN_PASSWORD_LENGTH = 8


def _missing(data: dict[str, Any], key: str) -> bool:
    value = data.get(key)
    return value is None or (isinstance(value, str) and not value.strip())


def _hour_errors(data: dict[str, Any], key: str, label: str) -> list[str]:
    if _missing(data, key):
        return [f"A restaurant must have a {label}"]
    errors = []
    if data[key] > 24:
        errors.append(f"An {label} must be smaller than 24")
    if data[key] < 0:
        errors.append(f"An {label} must be larger than 0")
    return errors


def validate_restaurant(data: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    name = (data.get("name") or "").strip()
    if not name:
        errors.append("A restaurant must have a name")
    elif len(name) > 40:
        errors.append("A restaurant name must have less or equal then 40 characters")
    elif len(name) < 4:
        errors.append("A restaurant name must have more or equal then 4 characters")

    errors += _hour_errors(data, "opentime", "opentime")
    errors += _hour_errors(data, "endtime", "endtime")

    for key, label in (
        ("average_eating_time", "averageEatingTime"),
        ("price", "price"),
        ("max_group_size", "group size"),
    ):
        if _missing(data, key):
            errors.append(f"A restaurant must have a {label}")

    discount = data.get("price_after_discount")
    price = data.get("price")
    if discount is not None and price is not None and not discount < price:
        errors.append(f"Discount price ({discount:g}) should be below regular price")

    popularity = data.get("popularity")
    if popularity is not None and popularity not in POPULARITY_TIERS:
        errors.append("Popularity is either: " + ", ".join(POPULARITY_TIERS))

    rating = data.get("ratings_average")
    if rating is not None:
        if rating < 1:
            errors.append("Rating must be above 1.0")
        if rating > 5:
            errors.append("Rating must be below 5.0")

    if _missing(data, "summary"):
        errors.append("A restaurant must have a description")

    tag = data.get("tag")
    if _missing(data, "tag"):
        errors.append("A restaurant must have a tag")
    elif tag not in TAGS:
        errors.append("Tag should be selected from the tag pool")
    return errors


def validate_review(data: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    if _missing(data, "review"):
        errors.append("Review can not be empty!")
    rating = data.get("rating")
    if rating is None or not 1 <= rating <= 5:
        errors.append("A rating must between 1.0 and 5.0!")
    if data.get("restaurant_id") is None:
        errors.append("Review must belong to a restaurant.")
    if data.get("user_id") is None:
        errors.append("Review must belong to a user")
    return errors


def validate_booking(data: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    if data.get("restaurant_id") is None:
        errors.append("Booking must belong to a restaurant!")
    if data.get("user_id") is None:
        errors.append("Booking must belong to a user!")
    price = data.get("price")
    if price is None:
        errors.append("Booking must have a price.")
    elif price < 0:
        errors.append("Booking price can not be negative.")
    return errors


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _email_errors(email: str | None) -> list[str]:
    if not email or not email.strip():
        return ["Please provide your email"]
    try:
        validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError:
        return ["Please provide a valid email"]
    return []


def validate_password(password: str | None, password_confirm: str | None) -> list[str]:
    errors: list[str] = []
    if not password:
        errors.append("Please provide a password")
    elif len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must have at least {MIN_PASSWORD_LENGTH} characters")
    if not password_confirm:
        errors.append("Please confirm your password")
    elif password != password_confirm:
        errors.append("Passwords are not the same!")
    return errors


def validate_user(data: dict[str, Any], require_password: bool = True) -> list[str]:
    """Validate user fields. ``password``/``password_confirm`` are plaintext and only checked, never stored."""
    errors: list[str] = []
    if _missing(data, "name"):
        errors.append("Please provide your name!")
    errors += _email_errors(data.get("email"))
    role = data.get("role")
    if role is not None and role not in {r.value for r in Role}:
        errors.append("Role is either: " + ", ".join(r.value for r in Role))
    if require_password:
        errors += validate_password(data.get("password"), data.get("password_confirm"))
    return errors
