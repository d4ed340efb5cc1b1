"""CORS middleware.

Answers ``OPTIONS`` preflights with 204 and adds the allow-origin header to
every other response, including error responses.
"""

from __future__ import annotations

from collections.abc import Iterable

from aiohttp import web

ALLOW_METHODS = ("GET", "POST", "OPTIONS")
ALLOW_HEADERS = ("Content-Type", "x-api-key")
MAX_AGE = 600


def _allowed_origin(allow_origins: tuple[str, ...], origin: str | None) -> str | None:
    if "*" in allow_origins:
        return "*"
    if origin is not None and origin in allow_origins:
        return origin
    return None


def _apply_headers(response: web.StreamResponse, allowed: str) -> None:
    response.headers["Access-Control-Allow-Origin"] = allowed
    if allowed != "*":
        response.headers["Vary"] = "Origin"


def cors_middleware(allow_origins: Iterable[str] | str = ("*",)):
    if isinstance(allow_origins, str):
        # comma separated, as set from an env var
        allow_origins = [o.strip() for o in allow_origins.split(",") if o.strip()]
    origins = tuple(allow_origins)

    @web.middleware
    async def middleware(request: web.Request, handler) -> web.StreamResponse:
        allowed = _allowed_origin(origins, request.headers.get("Origin"))
        if allowed is None:
            return await handler(request)

        if request.method == "OPTIONS":
            response = web.Response(status=204)
            _apply_headers(response, allowed)
            response.headers["Access-Control-Allow-Methods"] = ", ".join(ALLOW_METHODS)
            response.headers["Access-Control-Allow-Headers"] = ", ".join(ALLOW_HEADERS)
            response.headers["Access-Control-Max-Age"] = str(MAX_AGE)
            return response

        try:
            response = await handler(request)
        except web.HTTPException as exc:
            _apply_headers(exc, allowed)
            raise
        _apply_headers(response, allowed)
        return response

    return middleware
