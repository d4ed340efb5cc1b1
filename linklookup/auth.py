"""Shared-secret check on the x-api-key header.

When no secret is configured the guard is disabled and every request
passes. Only write-ish routes (POST /lookup, POST /reload) are guarded.
"""

from __future__ import annotations

import functools
import hmac
from collections.abc import Awaitable, Callable, Mapping

from aiohttp import web

from linklookup.errors import AuthError

API_KEY_HEADER = "x-api-key"

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def extract_key(headers: Mapping[str, str]) -> str | None:
    """Return the x-api-key header value, or None when absent."""
    key = headers.get(API_KEY_HEADER)
    if key is None:
        # plain dicts are case-sensitive
        key = headers.get("X-Api-Key") or headers.get("X-API-Key")
    return key


def is_authorized(expected: str, headers: Mapping[str, str]) -> bool:
    if not expected:
        return True
    key = extract_key(headers)
    if key is None:
        return False
    return hmac.compare_digest(key.encode(), expected.encode())


def require_api_key(handler: Handler) -> Handler:
    """Reject the request with 401 before the handler runs on a key mismatch."""

    @functools.wraps(handler)
    async def wrapper(request: web.Request) -> web.StreamResponse:
        expected = request.app["config"]["auth"]["api_key"]
        if not is_authorized(str(expected or ""), request.headers):
            raise AuthError()
        return await handler(request)

    return wrapper
