# Copyright (C) 2024 MiniYelp Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Response envelopes and request helpers shared by the routers."""

from typing import Any

from fastapi import Request

from miniyelp_server.services.query_features import query_params_from_items


def query_params(request: Request) -> dict[str, str | list[str]]:
    """Raw query string as a dict; repeated keys become lists."""
    return query_params_from_items(request.query_params.multi_items())


def list_envelope(documents: list[dict[str, Any]]) -> dict[str, Any]:
    return {"status": "success", "results": len(documents), "data": {"data": documents}}


def document_envelope(document: Any) -> dict[str, Any]:
    return {"status": "success", "data": {"data": document}}


def is_secure(request: Request) -> bool:
    """TLS at this hop or terminated at a proxy in front of us."""
    return request.url.scheme == "https" or request.headers.get("x-forwarded-proto") == "https"
