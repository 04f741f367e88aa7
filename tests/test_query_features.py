# Copyright (C) 2024 MiniYelp Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Query-string translation: filters, sort, field selection and paging."""

import pytest
from sqlalchemy import select
from sqlalchemy.dialects import sqlite

from miniyelp_server.errors import CastError, ValidationError
from miniyelp_server.models import Restaurant, User
from miniyelp_server.services.query_features import (
    DEFAULT_SORT,
    FieldFilter,
    Projection,
    apply_query_spec,
    build_query_spec,
    project,
    query_params_from_items,
)


def _sql(stmt) -> str:
    return str(stmt.compile(dialect=sqlite.dialect(), compile_kwargs={"literal_binds": True}))


def test_range_and_equality_filters():
    spec = build_query_spec({"price[gte]": "20", "price[lt]": "50", "tag": "Vegan", "page": "2"})
    assert set(spec.filters) == {
        FieldFilter("price", "gte", "20"),
        FieldFilter("price", "lt", "50"),
        FieldFilter("tag", "eq", "Vegan"),
    }


def test_reserved_params_are_not_filters():
    spec = build_query_spec({"page": "1", "sort": "price", "limit": "3", "fields": "name"})
    assert spec.filters == ()


def test_repeated_key_becomes_in_filter():
    params = query_params_from_items([("tag", "Vegan"), ("tag", "Brunch"), ("price", "10")])
    spec = build_query_spec(params)
    assert FieldFilter("tag", "in", ("Vegan", "Brunch")) in spec.filters
    assert FieldFilter("price", "eq", "10") in spec.filters


def test_defaults():
    spec = build_query_spec({})
    assert spec.sort == DEFAULT_SORT
    assert spec.projection == Projection(exclude=("version_id",))
    assert (spec.page, spec.limit, spec.skip) == (1, 100, 0)


def test_sort_directions():
    spec = build_query_spec({"sort": "-ratings_average,price"})
    assert spec.sort == (("ratings_average", "desc"), ("price", "asc"))


def test_projection_include_and_exclude():
    assert build_query_spec({"fields": "name,price"}).projection == Projection(include=("name", "price"))
    assert build_query_spec({"fields": "-summary"}).projection == Projection(exclude=("summary",))


@pytest.mark.parametrize("page,limit", [("abc", "x"), ("0", "-5"), ("", "1.5")])
def test_malformed_paging_falls_back_to_defaults(page, limit):
    spec = build_query_spec({"page": page, "limit": limit})
    assert (spec.page, spec.limit) == (1, 100)


def test_skip_from_page_and_limit():
    spec = build_query_spec({"page": "3", "limit": "10"})
    assert spec.skip == 20


def test_project_keeps_id():
    doc = {"id": 1, "name": "Green Bowl", "price": 15.0, "version_id": 2}
    assert project(doc, Projection(include=("name",))) == {"id": 1, "name": "Green Bowl"}
    assert project(doc, Projection(exclude=("version_id",))) == {"id": 1, "name": "Green Bowl", "price": 15.0}


def test_apply_query_spec_builds_select():
    spec = build_query_spec({"price[gte]": "20", "sort": "-price", "page": "2", "limit": "5"})
    sql = _sql(apply_query_spec(select(Restaurant), Restaurant, spec))
    assert "restaurants.price >= 20" in sql
    assert "ORDER BY restaurants.price DESC, restaurants.id ASC" in sql
    assert "LIMIT 5 OFFSET 5" in sql


def test_apply_query_spec_rejects_unknown_and_hidden_fields():
    with pytest.raises(ValidationError):
        apply_query_spec(select(Restaurant), Restaurant, build_query_spec({"nope": "1"}))
    with pytest.raises(ValidationError):
        apply_query_spec(select(Restaurant), Restaurant, build_query_spec({"sort": "nope"}))
    with pytest.raises(ValidationError):
        apply_query_spec(
            select(User), User, build_query_spec({"password_hash": "x"}), hidden=("password_hash",)
        )


def test_apply_query_spec_casts_values():
    with pytest.raises(CastError) as excinfo:
        apply_query_spec(select(Restaurant), Restaurant, build_query_spec({"price[gte]": "cheap"}))
    assert excinfo.value.message == "Invalid price: cheap."


def test_out_of_range_integers():
    assert build_query_spec({"limit": str(2**40)}).limit == 100
    with pytest.raises(CastError):
        apply_query_spec(select(Restaurant), Restaurant, build_query_spec({"max_group_size": str(2**40)}))
