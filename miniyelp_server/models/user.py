# Copyright (C) 2024 MiniYelp Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""User model."""

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from miniyelp_server.models.base import Base
from miniyelp_server.models.timestamp import TimestampMixin


class Role(str, enum.Enum):
    """Account roles, lowest privilege first."""

    USER = "user"
    REFEREE = "referee"
    LEADER = "leader"
    ADMIN = "admin"


class User(Base, TimestampMixin):
    """Registered account. Soft-deleted through ``active``; never returned once inactive."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    password_changed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    password_reset_token: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    password_reset_expires: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    photo: Mapped[str] = mapped_column(String(255), default="default.jpg", nullable=False)
    role: Mapped[str] = mapped_column(String(16), default=Role.USER.value, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
