# Copyright (C) 2024 MiniYelp Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Filter / sort / field selection / pagination from query-string parameters.

``build_query_spec`` is pure: it only reshapes the raw parameters. Column
lookups and value coercion happen in ``apply_query_spec`` against a model.

    ?price[gte]=20&tag=Vegan&sort=-price,ratings_average&fields=name,price&page=2&limit=5
"""

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import Select, asc, desc, inspect

from miniyelp_server.errors import CastError, ValidationError

RESERVED_PARAMS = ("page", "sort", "limit", "fields")
RANGE_OPERATORS = ("gte", "gt", "lte", "lt")
DEFAULT_SORT = (("created_at", "desc"),)
VERSION_FIELD = "version_id"
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 100
# Integer columns are int4 on PostgreSQL
MAX_INTEGER = 2**31 - 1

_RANGE_KEY = re.compile(r"^(?P<field>[^\[\]]+)\[(?P<op>gte|gt|lte|lt)\]$")

QueryParams = Mapping[str, str | Sequence[str]]


@dataclass(frozen=True)
class FieldFilter:
    field: str
    op: str  # eq, in, gte, gt, lte, lt
    value: str | tuple[str, ...]


@dataclass(frozen=True)
class Projection:
    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()


@dataclass(frozen=True)
class QuerySpec:
    filters: tuple[FieldFilter, ...] = ()
    sort: tuple[tuple[str, str], ...] = DEFAULT_SORT
    projection: Projection = field(default_factory=lambda: Projection(exclude=(VERSION_FIELD,)))
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


def _last(value: str | Sequence[str]) -> str:
    if isinstance(value, str):
        return value
    return value[-1] if value else ""


def _split(value: str | Sequence[str]) -> list[str]:
    return [part.strip() for part in _last(value).split(",") if part.strip()]


def parse_positive_int(value: str | Sequence[str] | None, default: int) -> int:
    """Parse-or-default: anything that is not a positive integer yields ``default``."""
    if value is None:
        return default
    try:
        parsed = int(_last(value))
    except (TypeError, ValueError):
        return default
    return parsed if 0 < parsed <= MAX_INTEGER else default


def parse_filters(params: QueryParams) -> tuple[FieldFilter, ...]:
    filters = []
    for key, value in params.items():
        if key in RESERVED_PARAMS:
            continue
        match = _RANGE_KEY.match(key)
        if match:
            filters.append(FieldFilter(match.group("field"), match.group("op"), _last(value)))
        elif isinstance(value, str):
            filters.append(FieldFilter(key, "eq", value))
        elif len(value) == 1:
            filters.append(FieldFilter(key, "eq", value[0]))
        else:
            filters.append(FieldFilter(key, "in", tuple(value)))
    return tuple(filters)


def parse_sort(value: str | Sequence[str] | None) -> tuple[tuple[str, str], ...]:
    names = _split(value) if value is not None else []
    if not names:
        return DEFAULT_SORT
    return tuple((name[1:], "desc") if name.startswith("-") else (name, "asc") for name in names)


def parse_projection(value: str | Sequence[str] | None) -> Projection:
    names = _split(value) if value is not None else []
    if not names:
        return Projection(exclude=(VERSION_FIELD,))
    include = tuple(n for n in names if not n.startswith("-"))
    exclude = tuple(n[1:] for n in names if n.startswith("-"))
    return Projection(include=include, exclude=exclude)


def build_query_spec(params: QueryParams) -> QuerySpec:
    """Translate raw query parameters. Never raises on malformed paging values."""
    return QuerySpec(
        filters=parse_filters(params),
        sort=parse_sort(params.get("sort")),
        projection=parse_projection(params.get("fields")),
        page=parse_positive_int(params.get("page"), DEFAULT_PAGE),
        limit=parse_positive_int(params.get("limit"), DEFAULT_LIMIT),
    )


def query_params_from_items(items: Iterable[tuple[str, str]]) -> dict[str, str | list[str]]:
    """Collapse a multi-dict's items: repeated keys become lists."""
    out: dict[str, str | list[str]] = {}
    for key, value in items:
        if key in out:
            existing = out[key]
            out[key] = [*existing, value] if isinstance(existing, list) else [existing, value]
        else:
            out[key] = value
    return out


# SQLAlchemy
def _coerce(column, field_name: str, raw: str) -> Any:
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return raw
    try:
        if python_type is bool:
            lowered = raw.strip().lower()
            if lowered in ("true", "1", "yes"):
                return True
            if lowered in ("false", "0", "no"):
                return False
            raise ValueError(raw)
        if python_type is datetime:
            return datetime.fromisoformat(raw)
        if python_type is int:
            value = int(raw)
            if abs(value) > MAX_INTEGER:
                raise ValueError(raw)
            return value
        if python_type is float:
            return float(raw)
    except ValueError as exc:
        raise CastError(field_name, raw) from exc
    return raw


def _column(model, name: str, hidden: Iterable[str]):
    columns = inspect(model).columns
    if name in hidden or name not in columns:
        raise ValidationError([f"Invalid query field: {name}"])
    return columns[name]


def apply_filters(stmt: Select, model, filters: Iterable[FieldFilter], hidden: Iterable[str] = ()) -> Select:
    hidden = tuple(hidden)
    for f in filters:
        column = _column(model, f.field, hidden)
        if f.op == "in":
            stmt = stmt.where(column.in_([_coerce(column, f.field, v) for v in f.value]))
            continue
        value = _coerce(column, f.field, f.value)
        if f.op == "eq":
            stmt = stmt.where(column == value)
        elif f.op == "gte":
            stmt = stmt.where(column >= value)
        elif f.op == "gt":
            stmt = stmt.where(column > value)
        elif f.op == "lte":
            stmt = stmt.where(column <= value)
        elif f.op == "lt":
            stmt = stmt.where(column < value)
    return stmt


def apply_query_spec(stmt: Select, model, spec: QuerySpec, hidden: Iterable[str] = (), paginate: bool = True) -> Select:
    """Compose WHERE / ORDER BY / OFFSET / LIMIT onto ``stmt``. Nothing is executed."""
    hidden = tuple(hidden)
    stmt = apply_filters(stmt, model, spec.filters, hidden)
    order = [
        desc(_column(model, name, hidden)) if direction == "desc" else asc(_column(model, name, hidden))
        for name, direction in spec.sort
    ]
    # primary key last so equal sort keys page deterministically
    order.append(asc(inspect(model).primary_key[0]))
    stmt = stmt.order_by(*order)
    if paginate:
        stmt = stmt.offset(spec.skip).limit(spec.limit)
    return stmt


def project(data: dict[str, Any], projection: Projection) -> dict[str, Any]:
    """Apply field selection to one serialized document. ``id`` stays unless excluded."""
    if projection.include:
        keep = set(projection.include) | {"id"}
        data = {k: v for k, v in data.items() if k in keep}
    if projection.exclude:
        data = {k: v for k, v in data.items() if k not in projection.exclude}
    return data
