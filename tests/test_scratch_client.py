"""
Tests for app/scratch_client.py – Scratch endpoint wrapper (mocked).

Upstream endpoints are replaced with ``httpx.MockTransport`` handlers so the
real request objects (URL, query, headers) can be inspected.  Coroutines are
driven with ``asyncio.run``.
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from app.errors import AssetUnavailable, NotFoundOrUnshared, PayloadFetchFailed
from app.scratch_client import (
    ASSET_HEADERS,
    ASSET_MIRRORS,
    fetch_asset,
    fetch_project_payload,
    resolve_project_token,
)


def _run(handler, coro_factory):
    """Run ``coro_factory(client)`` against a client backed by ``handler``."""

    async def runner():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await coro_factory(client)

    return asyncio.run(runner())


# ── resolve_project_token ────────────────────────────────────────────────────


class TestResolveProjectToken:
    def test_returns_token(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": 104, "project_token": "tok-104"})

        token = _run(handler, lambda c: resolve_project_token(c, 104))

        assert token == "tok-104"
        assert seen[0].url.path == "/projects/104"
        assert seen[0].url.host == "api.scratch.mit.edu"

    @pytest.mark.parametrize("status", [403, 404, 500])
    def test_non_success_is_not_found(self, status: int) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, json={"code": "NotFound"})

        with pytest.raises(NotFoundOrUnshared, match="not found or unshared"):
            _run(handler, lambda c: resolve_project_token(c, 1))

    def test_missing_token_is_not_found(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"id": 1})

        with pytest.raises(NotFoundOrUnshared):
            _run(handler, lambda c: resolve_project_token(c, 1))

    def test_transport_error_is_not_found(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("boom", request=request)

        with pytest.raises(NotFoundOrUnshared):
            _run(handler, lambda c: resolve_project_token(c, 1))

    def test_non_json_body_is_not_found(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>maintenance</html>")

        with pytest.raises(NotFoundOrUnshared):
            _run(handler, lambda c: resolve_project_token(c, 1))


# ── fetch_project_payload ────────────────────────────────────────────────────


class TestFetchProjectPayload:
    def test_returns_raw_bytes_and_sends_token(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=b'{"targets": []}')

        payload = _run(handler, lambda c: fetch_project_payload(c, 104, "tok"))

        assert payload == b'{"targets": []}'
        assert seen[0].url.host == "projects.scratch.mit.edu"
        assert seen[0].url.path == "/104"
        assert seen[0].url.params["token"] == "tok"

    def test_non_success_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404)

        with pytest.raises(PayloadFetchFailed, match="Failed to fetch project data"):
            _run(handler, lambda c: fetch_project_payload(c, 1, "tok"))

    def test_transport_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(PayloadFetchFailed):
            _run(handler, lambda c: fetch_project_payload(c, 1, "tok"))


# ── fetch_asset ──────────────────────────────────────────────────────────────


class TestFetchAsset:
    def test_primary_mirror_success(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=b"<svg/>")

        data = _run(handler, lambda c: fetch_asset(c, "abc123.svg"))

        assert data == b"<svg/>"
        assert len(seen) == 1
        assert str(seen[0].url) == ASSET_MIRRORS[0].format(filename="abc123.svg")

    def test_sends_browser_and_referer_headers(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=b"x")

        _run(handler, lambda c: fetch_asset(c, "a.png"))

        assert seen[0].headers["User-Agent"] == ASSET_HEADERS["User-Agent"]
        assert seen[0].headers["Referer"] == "https://scratch.mit.edu/"

    def test_falls_back_to_secondary_on_status(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "assets.scratch.mit.edu":
                return httpx.Response(503)
            return httpx.Response(200, content=b"from-cdn")

        assert _run(handler, lambda c: fetch_asset(c, "a.png")) == b"from-cdn"

    def test_falls_back_to_secondary_on_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "assets.scratch.mit.edu":
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, content=b"from-cdn")

        assert _run(handler, lambda c: fetch_asset(c, "a.png")) == b"from-cdn"

    def test_all_mirrors_fail(self) -> None:
        hosts: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            hosts.append(request.url.host)
            return httpx.Response(404)

        with pytest.raises(AssetUnavailable) as exc_info:
            _run(handler, lambda c: fetch_asset(c, "gone.wav"))

        assert exc_info.value.filename == "gone.wav"
        assert hosts == ["assets.scratch.mit.edu", "cdn.assets.scratch.mit.edu"]
