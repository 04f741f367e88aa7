# Copyright (C) 2024 MiniYelp Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Operational errors and the global exception handlers.

Every ``AppError`` is operational: an expected condition with a status code and
a message that is safe to show to the client. Anything else reaching the
handlers is a programming error; it is logged and, outside development, the
client only sees a generic message.
"""

import logging
import re
import traceback
from collections.abc import Iterable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from miniyelp_server.config import settings

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Something went very wrong!"


class AppError(Exception):
    """Base class for expected, user-facing errors."""

    status_code = 500
    is_operational = True

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    @property
    def status(self) -> str:
        return "fail" if 400 <= self.status_code < 500 else "error"


class ValidationError(AppError):
    status_code = 400

    def __init__(self, messages: Iterable[str]):
        self.messages = list(messages)
        super().__init__(f"Invalid input data. {'. '.join(self.messages)}")


class CastError(AppError):
    status_code = 400

    def __init__(self, field: str, value: object):
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field}: {value}.")


class DuplicateKeyError(AppError):
    status_code = 400

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Duplicate field value: {value}. Please use another value!")


class AuthenticationError(AppError):
    status_code = 401


class TokenError(AuthenticationError):
    """A signed token could not be trusted."""


class InvalidTokenError(TokenError):
    def __init__(self, message: str = "Invalid token. Please log in again!"):
        super().__init__(message)


class TokenExpiredError(TokenError):
    def __init__(self, message: str = "Your token has expired! Please log in again."):
        super().__init__(message)


class AuthorizationError(AppError):
    status_code = 403

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(message)


class NotFoundError(AppError):
    status_code = 404


_PG_DUPLICATE = re.compile(r"Key \((?P<field>.+?)\)=\((?P<value>.*?)\)")
_SQLITE_DUPLICATE = re.compile(r"UNIQUE constraint failed: (?P<fields>.+)")


def duplicate_key_error(exc: IntegrityError) -> DuplicateKeyError:
    """Translate a unique-constraint violation into a readable message."""
    text = str(exc.orig) if exc.orig is not None else str(exc)
    match = _PG_DUPLICATE.search(text)
    if match:
        return DuplicateKeyError(f'"{match.group("value")}"')
    match = _SQLITE_DUPLICATE.search(text)
    if match:
        fields = [f.strip().rsplit(".", 1)[-1] for f in match.group("fields").split(",")]
        return DuplicateKeyError(", ".join(fields))
    return DuplicateKeyError("unknown")


def _error_response(status_code: int, status: str, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": status, "message": message, **extra})


async def _app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Operational error: %s", exc.message)
    return _error_response(exc.status_code, exc.status, exc.message)


async def _request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        messages.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    error = ValidationError(messages)
    return _error_response(error.status_code, error.status, error.message)


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return _error_response(404, "fail", f"Can't find {request.url.path} on this server!")
    status = "fail" if exc.status_code < 500 else "error"
    return _error_response(exc.status_code, status, str(exc.detail))


async def _integrity_error_handler(_request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("Integrity error: %s", exc.orig)
    error = duplicate_key_error(exc)
    return _error_response(error.status_code, error.status, error.message)


async def _unexpected_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("ERROR: unhandled %s", type(exc).__name__)
    if settings.is_development:
        return _error_response(
            500,
            "error",
            str(exc),
            error=type(exc).__name__,
            stack="".join(traceback.format_exception(exc)),
        )
    return _error_response(500, "error", GENERIC_ERROR_MESSAGE)


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""
    app.add_exception_handler(AppError, _app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _request_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, _integrity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unexpected_error_handler)
