"""Request-level errors and the middleware that renders them as JSON."""

from __future__ import annotations

import logging

from aiohttp import web

log = logging.getLogger(__name__)


class RequestError(Exception):
    """An error that maps directly to an HTTP status and an ``{error}`` body."""

    status = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(RequestError):
    status = 400


class AuthError(RequestError):
    status = 401

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class NotFoundError(RequestError):
    status = 404

    def __init__(self, message: str = "Not found") -> None:
        super().__init__(message)


class ReloadError(RequestError):
    status = 500


def error_response(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status)


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    try:
        return await handler(request)
    except RequestError as exc:
        return error_response(exc.status, exc.message)
    except web.HTTPException:
        raise
    except Exception:
        log.exception("Unhandled error on %s %s", request.method, request.path)
        return error_response(500, "Internal Server Error")
