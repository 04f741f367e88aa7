# Copyright (C) 2024 MiniYelp Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""User API routes: authentication, password flows, self-service and admin management."""

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from miniyelp_server.api.responses import document_envelope, is_secure, list_envelope, query_params
from miniyelp_server.api.schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    ResetPasswordRequest,
    SignupRequest,
    UpdateMeRequest,
    UpdatePasswordRequest,
    UserAdminCreate,
    UserAdminUpdate,
    UserResponse,
)
from miniyelp_server.auth import (
    TOKEN_COOKIE_NAME,
    consume_reset_credential,
    get_current_user,
    hash_password,
    hash_reset_token,
    issue_reset_credential,
    issue_token,
    restrict_to,
    verify_password,
)
from miniyelp_server.config import settings
from miniyelp_server.database import get_db
from miniyelp_server.errors import AppError, AuthenticationError, ValidationError, duplicate_key_error
from miniyelp_server.models import Review, Role, User
from miniyelp_server.models.timestamp import utcnow
from miniyelp_server.services.email import EmailDeliveryError, send_password_reset, send_welcome
from miniyelp_server.services.handler_factory import ResourceHandlers, parse_id
from miniyelp_server.services.ratings import recalculate_ratings
from miniyelp_server.services.validation import normalize_email, validate_password, validate_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])

HIDDEN_USER_FIELDS = ("password_hash", "password_reset_token", "password_reset_expires", "active")


def _validate_user_document(data: dict) -> list[str]:
    """New documents carry a plaintext password to check; stored ones already hold a hash."""
    return validate_user(data, require_password="password_hash" not in data)


def _prepare_user(values: dict, _instance: User | None) -> dict:
    columns = {k: v for k, v in values.items() if k not in ("password", "password_confirm")}
    if "email" in columns and columns["email"]:
        columns["email"] = normalize_email(columns["email"])
    if values.get("password"):
        columns["password_hash"] = hash_password(values["password"])
    return columns


users = ResourceHandlers(
    User,
    UserResponse,
    validate=_validate_user_document,
    prepare=_prepare_user,
    hidden_fields=HIDDEN_USER_FIELDS,
    base_where=(User.active == True,),  # noqa: E712
)


def _user_data(user: User) -> dict:
    return UserResponse.model_validate(user).model_dump(mode="json")


def _token_response(user: User, request: Request, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    """Issue a token, return it in the body and as an http-only cookie."""
    token = issue_token(user.id)
    response = JSONResponse(
        status_code=status_code,
        content={"status": "success", "token": token, "data": {"user": _user_data(user)}},
    )
    response.set_cookie(
        TOKEN_COOKIE_NAME,
        token,
        max_age=settings.jwt_cookie_expire_days * 24 * 60 * 60,
        httponly=True,
        secure=is_secure(request),
        samesite="lax",
    )
    return response


async def _commit(db: AsyncSession) -> None:
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise duplicate_key_error(exc) from exc


def _set_password(user: User, password: str) -> None:
    user.password_hash = hash_password(password)
    # one second back so a token issued right after this change stays valid
    user.password_changed_at = utcnow() - timedelta(seconds=1)


async def _active_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(
        select(User).where(User.email == normalize_email(email), User.active == True)  # noqa: E712
    )
    return result.scalar_one_or_none()


# Authentication
@router.post("/signup")
async def signup(data: SignupRequest, request: Request, db: AsyncSession = Depends(get_db)) -> JSONResponse:
    """Create a standard user account and log it in."""
    errors = validate_user(data.model_dump())
    if errors:
        raise ValidationError(errors)
    user = User(
        name=data.name.strip(),
        email=normalize_email(data.email),
        password_hash=hash_password(data.password),
        role=Role.USER.value,
    )
    db.add(user)
    await _commit(db)
    logger.info("New user signed up: %s", user.id)
    try:
        await send_welcome(user.email, user.name, f"{str(request.base_url).rstrip('/')}/me")
    except EmailDeliveryError:
        logger.warning("Welcome email to user %s not delivered", user.id)
    return _token_response(user, request, status.HTTP_201_CREATED)


@router.post("/login")
async def login(data: LoginRequest, request: Request, db: AsyncSession = Depends(get_db)) -> JSONResponse:
    if not data.email or not data.password:
        raise AppError("Please provide email and password!", 400)
    user = await _active_user_by_email(db, data.email)
    if not user or not verify_password(data.password, user.password_hash):
        raise AuthenticationError("Incorrect email or password")
    return _token_response(user, request)


@router.get("/logout")
async def logout() -> JSONResponse:
    """Overwrite the token cookie with a short-lived dummy value."""
    response = JSONResponse(content={"status": "success"})
    response.set_cookie(TOKEN_COOKIE_NAME, "loggedout", max_age=10, httponly=True)
    return response


@router.post("/forgot-password")
async def forgot_password(
    data: ForgotPasswordRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Store a hashed reset credential and mail the plaintext token."""
    user = await _active_user_by_email(db, data.email or "")
    if not user:
        raise AppError("There is no user with email address.", 404)
    credential = issue_reset_credential()
    user.password_reset_token = credential.token_hash
    user.password_reset_expires = credential.expires_at
    await db.commit()

    reset_url = f"{str(request.base_url).rstrip('/')}/api/v1/users/reset-password/{credential.token}"
    try:
        await send_password_reset(user.email, user.name, reset_url)
    except EmailDeliveryError as exc:
        user.password_reset_token = None
        user.password_reset_expires = None
        await db.commit()
        raise AppError("There was an error sending the email. Try again later!", 500) from exc
    return {"status": "success", "message": "Token sent to email!"}


@router.patch("/reset-password/{token}")
async def reset_password(
    token: str,
    data: ResetPasswordRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    result = await db.execute(
        select(User).where(User.password_reset_token == hash_reset_token(token), User.active == True)  # noqa: E712
    )
    user = result.scalar_one_or_none()
    if not user or not consume_reset_credential(token, user.password_reset_token, user.password_reset_expires):
        raise AppError("Token is invalid or has expired", 400)
    errors = validate_password(data.password, data.password_confirm)
    if errors:
        raise ValidationError(errors)
    _set_password(user, data.password)
    user.password_reset_token = None
    user.password_reset_expires = None
    await db.commit()
    logger.info("Password reset for user %s", user.id)
    return _token_response(user, request)


@router.patch("/update-my-password")
async def update_my_password(
    data: UpdatePasswordRequest,
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> JSONResponse:
    if not data.password_current or not verify_password(data.password_current, user.password_hash):
        raise AuthenticationError("Your current password is wrong.")
    errors = validate_password(data.password, data.password_confirm)
    if errors:
        raise ValidationError(errors)
    _set_password(user, data.password)
    await db.commit()
    return _token_response(user, request)


# Current user
@router.get("/me")
async def get_me(user: User = Depends(get_current_user)) -> dict:
    """Get current user profile."""
    return document_envelope(_user_data(user))


@router.patch("/update-me")
async def update_me(
    data: UpdateMeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    if data.password or data.password_confirm:
        raise AppError("This route is not for password updates. Please use /update-my-password.", 400)
    changes = data.model_dump(include={"name", "email", "photo"}, exclude_none=True)
    errors = validate_user({"name": user.name, "email": user.email, **changes}, require_password=False)
    if errors:
        raise ValidationError(errors)
    if "email" in changes:
        changes["email"] = normalize_email(changes["email"])
    for key, value in changes.items():
        setattr(user, key, value)
    await _commit(db)
    return {"status": "success", "data": {"user": _user_data(user)}}


@router.delete("/delete-me", status_code=status.HTTP_204_NO_CONTENT)
async def delete_me(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> Response:
    """Deactivate the account. The row stays but is invisible to every query."""
    user.active = False
    await db.commit()
    logger.info("User %s deactivated", user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Administration
_admin = Depends(restrict_to(Role.ADMIN))


@router.get("", dependencies=[_admin])
async def list_users(request: Request, db: AsyncSession = Depends(get_db)) -> dict:
    return list_envelope(await users.list(db, query_params(request)))


@router.post("", dependencies=[_admin], status_code=status.HTTP_201_CREATED)
async def create_user(data: UserAdminCreate, db: AsyncSession = Depends(get_db)) -> dict:
    return document_envelope(await users.create_one(db, data.model_dump(exclude_none=True)))


@router.get("/{user_id}", dependencies=[_admin])
async def get_user(user_id: str, db: AsyncSession = Depends(get_db)) -> dict:
    return document_envelope(await users.get_one(db, user_id))


@router.patch("/{user_id}", dependencies=[_admin])
async def update_user(user_id: str, data: UserAdminUpdate, db: AsyncSession = Depends(get_db)) -> dict:
    return document_envelope(await users.update_one(db, user_id, data.model_dump(exclude_none=True)))


@router.delete("/{user_id}", dependencies=[_admin], status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(user_id: str, db: AsyncSession = Depends(get_db)) -> Response:
    """Hard delete. The user's reviews go with it, so their restaurants are re-rated."""
    reviewed = await db.execute(
        select(Review.restaurant_id).where(Review.user_id == parse_id(user_id)).distinct()
    )
    restaurant_ids = sorted(reviewed.scalars().all())
    await users.delete_one(db, user_id)
    for restaurant_id in restaurant_ids:
        await recalculate_ratings(db, restaurant_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
