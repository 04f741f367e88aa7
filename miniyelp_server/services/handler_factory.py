# Copyright (C) 2024 MiniYelp Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Generic CRUD handlers parametrized by model, response schema and validator."""

import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from pydantic import BaseModel
from sqlalchemy import inspect, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from miniyelp_server.errors import CastError, NotFoundError, ValidationError, duplicate_key_error
from miniyelp_server.services.query_features import (
    MAX_INTEGER,
    FieldFilter,
    QueryParams,
    QuerySpec,
    apply_filters,
    apply_query_spec,
    build_query_spec,
    project,
)

logger = logging.getLogger(__name__)

Snapshot = dict[str, Any]
AfterWrite = Callable[[AsyncSession, Snapshot | None, Any | None], Awaitable[None]]
Prepare = Callable[[dict[str, Any], Any | None], dict[str, Any]]


def parse_id(raw: str | int, field: str = "id") -> int:
    """Path ids must be positive integers; anything else is a CastError."""
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise CastError(field, raw) from exc
    if not 0 < value <= MAX_INTEGER:
        raise CastError(field, raw)
    return value


def snapshot(instance) -> Snapshot:
    """Column values of ``instance`` as a plain dict."""
    return {attr.key: getattr(instance, attr.key) for attr in inspect(instance).mapper.column_attrs}


class ResourceHandlers:
    """list / get_one / create_one / update_one / delete_one for one model.

    ``after_write(db, before, after)`` runs once a write is committed; ``before``
    is the snapshot taken prior to the write (None on create), ``after`` the
    reloaded instance (None on delete).
    """

    def __init__(
        self,
        model,
        response_schema: type[BaseModel],
        *,
        validate: Callable[[dict[str, Any]], list[str]] | None = None,
        prepare: Prepare | None = None,
        after_write: AfterWrite | None = None,
        hidden_fields: Sequence[str] = (),
        base_where: Sequence[Any] = (),
        options: Sequence[Any] = (),
    ):
        self.model = model
        self.response_schema = response_schema
        self.validate = validate
        self.prepare = prepare
        self.after_write = after_write
        self.hidden_fields = tuple(hidden_fields)
        self.base_where = tuple(base_where)
        self.options = tuple(options)
        self._pk = inspect(model).primary_key[0]

    # helpers
    def serialize(self, instance, schema: type[BaseModel] | None = None) -> dict[str, Any]:
        return (schema or self.response_schema).model_validate(instance).model_dump(mode="json")

    async def fetch(self, db: AsyncSession, id: str | int, options: Sequence[Any] = ()):
        pk = parse_id(id)
        stmt = (
            select(self.model)
            .where(self._pk == pk, *self.base_where)
            .options(*self.options, *options)
            .execution_options(populate_existing=True)
        )
        instance = (await db.execute(stmt)).scalar_one_or_none()
        if instance is None:
            raise NotFoundError("No document found with that ID")
        return instance

    def _check(self, values: dict[str, Any]) -> None:
        if self.validate is None:
            return
        errors = self.validate(values)
        if errors:
            raise ValidationError(errors)

    def _columns(self, values: dict[str, Any], instance=None) -> dict[str, Any]:
        return self.prepare(values, instance) if self.prepare else dict(values)

    async def _commit(self, db: AsyncSession) -> None:
        try:
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            raise duplicate_key_error(exc) from exc

    # operations
    def build_list_query(self, spec: QuerySpec, extra_filters: Sequence[FieldFilter] = ()):
        stmt = select(self.model).where(*self.base_where).options(*self.options)
        stmt = apply_filters(stmt, self.model, extra_filters, self.hidden_fields)
        return apply_query_spec(stmt, self.model, spec, self.hidden_fields)

    async def list(
        self,
        db: AsyncSession,
        params: QueryParams,
        extra_filters: Sequence[FieldFilter] = (),
    ) -> list[dict[str, Any]]:
        spec = build_query_spec(params)
        result = await db.execute(self.build_list_query(spec, extra_filters))
        return [project(self.serialize(obj), spec.projection) for obj in result.scalars().all()]

    async def get_one(
        self,
        db: AsyncSession,
        id: str | int,
        options: Sequence[Any] = (),
        schema: type[BaseModel] | None = None,
    ) -> dict[str, Any]:
        return self.serialize(await self.fetch(db, id, options), schema)

    async def create_one(self, db: AsyncSession, values: dict[str, Any]) -> dict[str, Any]:
        self._check(values)
        instance = self.model(**self._columns(values))
        db.add(instance)
        await self._commit(db)
        created = await self.fetch(db, instance.id)
        logger.info("Created %s %s", self.model.__name__, created.id)
        if self.after_write:
            await self.after_write(db, None, created)
        return self.serialize(created)

    async def update_one(self, db: AsyncSession, id: str | int, values: dict[str, Any]) -> dict[str, Any]:
        instance = await self.fetch(db, id)
        before = snapshot(instance)
        self._check({**before, **values})
        for key, value in self._columns(values, instance).items():
            setattr(instance, key, value)
        await self._commit(db)
        updated = await self.fetch(db, instance.id)
        if self.after_write:
            await self.after_write(db, before, updated)
        return self.serialize(updated)

    async def delete_one(self, db: AsyncSession, id: str | int) -> None:
        instance = await self.fetch(db, id)
        before = snapshot(instance)
        await db.delete(instance)
        await self._commit(db)
        logger.info("Deleted %s %s", self.model.__name__, before[self._pk.key])
        if self.after_write:
            await self.after_write(db, before, None)
