"""aiohttp application: /health, /lookup, /reload endpoints."""

from __future__ import annotations

import asyncio
import functools
import json
import logging
from typing import Any

from aiohttp import web

from linklookup.auth import require_api_key
from linklookup.config import ConfigError, resolve_path
from linklookup.cors import cors_middleware
from linklookup.errors import NotFoundError, ReloadError, ValidationError, error_middleware
from linklookup.store import TableStore
from linklookup.table import DuplicatePolicy, LoadError, load_table

log = logging.getLogger(__name__)


def load_options(config: dict[str, Any]) -> dict[str, Any]:
    """Keyword arguments for load_table taken from the ``table`` section.

    Raises ConfigError for an unknown ``table.duplicates`` value.
    """
    table = config["table"]
    raw = str(table["duplicates"]).lower()
    try:
        duplicates = DuplicatePolicy(raw)
    except ValueError:
        choices = ", ".join(p.value for p in DuplicatePolicy)
        raise ConfigError(
            f"Invalid table.duplicates {table['duplicates']!r}, expected one of: {choices}"
        ) from None
    return {
        "key_column": table["key_column"],
        "value_column": table["value_column"],
        "duplicates": duplicates,
    }


async def _json_body(request: web.Request) -> dict[str, Any]:
    """Parse an optional JSON object body. An empty body reads as ``{}``."""
    if not request.body_exists:
        return {}
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Request body must be JSON")
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def _lookup_response(store: TableStore, raw_email: Any) -> web.Response:
    email = "" if raw_email is None else str(raw_email).strip()
    link = store.lookup(email)
    if link is None:
        raise NotFoundError()
    return web.json_response({"email": email, "loginLink": link})


async def health(request: web.Request) -> web.Response:
    store: TableStore = request.app["store"]
    snap = store.snapshot()
    path = snap.path
    if path is None:
        path = str(resolve_path(request.app["config"]))
    return web.json_response({"ok": True, "loaded": snap.count, "csvPath": path})


async def lookup_get(request: web.Request) -> web.Response:
    raw = request.query.get("email")
    if raw is None or not raw.strip():
        raise ValidationError("Missing email query param")
    return _lookup_response(request.app["store"], raw)


@require_api_key
async def lookup_post(request: web.Request) -> web.Response:
    payload = await _json_body(request)
    raw = payload.get("email")
    if raw is None or not str(raw).strip():
        raise ValidationError('Missing "email" in JSON body')
    return _lookup_response(request.app["store"], raw)


@require_api_key
async def reload(request: web.Request) -> web.Response:
    config = request.app["config"]
    store: TableStore = request.app["store"]
    payload = await _json_body(request)
    path = resolve_path(config, payload.get("path") or None)

    # file I/O runs in the executor; lookups keep using the active table
    loop = asyncio.get_running_loop()
    try:
        table, info = await loop.run_in_executor(
            None, functools.partial(load_table, path, **request.app["load_options"])
        )
    except LoadError as exc:
        log.warning("Reload from %s failed: %s", path, exc)
        raise ReloadError(str(exc)) from exc
    store.install(table, info)
    return web.json_response(
        {"reloaded": True, "count": info.record_count, "path": info.source_path}
    )


async def _poll_table(store: TableStore, interval: float, options: dict[str, Any]) -> None:
    """Periodically check the active CSV file for changes and reload."""
    loop = asyncio.get_running_loop()
    while True:
        await asyncio.sleep(interval)
        try:
            await loop.run_in_executor(
                None, functools.partial(store.reload_if_changed, **options)
            )
        except Exception:
            log.warning("CSV reload failed", exc_info=True)


def create_app(config: dict[str, Any], store: TableStore | None = None) -> web.Application:
    """Build the application. Without a store, the default CSV is loaded first.

    Raises ConfigError on unusable settings and LoadError when the default
    CSV cannot be loaded.
    """
    options = load_options(config)
    if store is None:
        store = TableStore()
        store.reload(resolve_path(config), **options)

    app = web.Application(
        middlewares=[
            cors_middleware(config["cors"]["allow_origins"]),
            error_middleware,
        ]
    )
    app["config"] = config
    app["store"] = store
    app["load_options"] = options

    interval = config["table"]["poll_interval_seconds"]
    if interval and interval > 0:
        async def on_startup(app: web.Application) -> None:
            app["_table_poll_task"] = asyncio.create_task(
                _poll_table(app["store"], interval, options)
            )

        async def on_cleanup(app: web.Application) -> None:
            app["_table_poll_task"].cancel()
            try:
                await app["_table_poll_task"]
            except asyncio.CancelledError:
                pass

        app.on_startup.append(on_startup)
        app.on_cleanup.append(on_cleanup)

    app.router.add_get("/health", health)
    app.router.add_get("/lookup", lookup_get)
    app.router.add_post("/lookup", lookup_post)
    app.router.add_post("/reload", reload)
    return app
