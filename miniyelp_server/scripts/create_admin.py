#!/usr/bin/env python3
# Copyright (C) 2024 MiniYelp Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Create admin user. Run: python -m miniyelp_server.scripts.create_admin"""

import asyncio
import getpass
import sys

from sqlalchemy import select

from miniyelp_server.auth import hash_password
from miniyelp_server.database import async_session_maker, engine, init_db
from miniyelp_server.models import Role, User
from miniyelp_server.services.validation import normalize_email, validate_password, validate_user


async def main():
    await init_db()
    name = input("Admin name: ").strip()
    email = input("Admin email: ").strip()
    password = getpass.getpass("Password: ")
    password_confirm = getpass.getpass("Confirm password: ")
    errors = validate_user({"name": name, "email": email}, require_password=False)
    errors += validate_password(password, password_confirm)
    if errors:
        for message in errors:
            print(message)
        sys.exit(1)

    async with async_session_maker() as session:
        result = await session.execute(select(User).where(User.email == normalize_email(email)))
        if result.scalar_one_or_none():
            print("User already exists")
            sys.exit(1)
        user = User(
            name=name,
            email=normalize_email(email),
            password_hash=hash_password(password),
            role=Role.ADMIN.value,
        )
        session.add(user)
        await session.commit()
        print("Admin user created.")
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
