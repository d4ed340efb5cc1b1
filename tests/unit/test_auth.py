"""Tests for linklookup.auth — x-api-key extraction and the route guard."""

from pathlib import Path

import pytest
from aiohttp import web

from linklookup.auth import extract_key, is_authorized
from linklookup.config import load_config
from linklookup.server import create_app


class TestExtractKey:
    def test_x_api_key(self) -> None:
        assert extract_key({"x-api-key": "secret"}) == "secret"

    def test_mixed_case_header(self) -> None:
        assert extract_key({"X-Api-Key": "secret"}) == "secret"

    def test_missing(self) -> None:
        assert extract_key({}) is None

    def test_authorization_header_ignored(self) -> None:
        assert extract_key({"Authorization": "Bearer secret"}) is None


class TestIsAuthorized:
    def test_disabled_when_secret_empty(self) -> None:
        assert is_authorized("", {})
        assert is_authorized("", {"x-api-key": "anything"})

    def test_matching_key(self) -> None:
        assert is_authorized("s3cret", {"x-api-key": "s3cret"})

    def test_wrong_key(self) -> None:
        assert not is_authorized("s3cret", {"x-api-key": "nope"})

    def test_missing_key(self) -> None:
        assert not is_authorized("s3cret", {})


class TestGuardedRoutes:
    @pytest.fixture
    def csv_path(self, tmp_path: Path) -> Path:
        path = tmp_path / "links.csv"
        path.write_text("Email,Login Link\nuser@example.com,https://x/user\n")
        return path

    @pytest.fixture
    def app(self, csv_path: Path, tmp_path: Path) -> web.Application:
        config = load_config(tmp_path / "nonexistent.yaml")
        config["table"]["default_path"] = str(csv_path)
        config["auth"]["api_key"] = "s3cret"
        return create_app(config)

    async def test_post_lookup_rejected_without_key(self, aiohttp_client, app) -> None:
        client = await aiohttp_client(app)
        resp = await client.post("/lookup", json={"email": "user@example.com"})
        assert resp.status == 401
        assert await resp.json() == {"error": "Unauthorized"}

    async def test_post_lookup_rejected_with_wrong_key(self, aiohttp_client, app) -> None:
        client = await aiohttp_client(app)
        resp = await client.post(
            "/lookup", json={"email": "user@example.com"}, headers={"x-api-key": "nope"}
        )
        assert resp.status == 401

    async def test_auth_checked_before_body(self, aiohttp_client, app) -> None:
        client = await aiohttp_client(app)
        resp = await client.post("/lookup", data="not json")
        assert resp.status == 401

    async def test_post_lookup_with_key(self, aiohttp_client, app) -> None:
        client = await aiohttp_client(app)
        resp = await client.post(
            "/lookup", json={"email": "user@example.com"}, headers={"x-api-key": "s3cret"}
        )
        assert resp.status == 200
        assert (await resp.json())["loginLink"] == "https://x/user"

    async def test_reload_rejected_without_key(self, aiohttp_client, app) -> None:
        client = await aiohttp_client(app)
        resp = await client.post("/reload")
        assert resp.status == 401

    async def test_reload_with_key(self, aiohttp_client, app) -> None:
        client = await aiohttp_client(app)
        resp = await client.post("/reload", headers={"x-api-key": "s3cret"})
        assert resp.status == 200

    async def test_get_routes_unguarded(self, aiohttp_client, app) -> None:
        client = await aiohttp_client(app)
        resp = await client.get("/lookup", params={"email": "user@example.com"})
        assert resp.status == 200
        resp = await client.get("/health")
        assert resp.status == 200
