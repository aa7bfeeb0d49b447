"""Tests for ``repo_gateway.external.github_client`` and the rate limiter.

HTTP traffic goes through ``httpx.MockTransport``; nothing leaves the process.
"""

from __future__ import annotations

import time
from typing import Callable
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from repo_gateway.core.exceptions import ExternalAPIError, GitHubRateLimitError
from repo_gateway.core.rate_limiter import GitHubRateLimiter
from repo_gateway.external.github_client import GitHubClient, build_authorize_url


def _client(
    handler: Callable[[httpx.Request], httpx.Response],
    rate_limiter: GitHubRateLimiter | None = None,
) -> GitHubClient:
    client = GitHubClient(token="ghp_test", rate_limiter=rate_limiter)
    client._client = httpx.AsyncClient(
        base_url=GitHubClient.BASE_URL,
        headers={"Authorization": "Bearer ghp_test"},
        transport=httpx.MockTransport(handler),
    )
    return client


class TestPagination:
    """Link header pagination."""

    @pytest.mark.asyncio
    async def test_follows_next_links(self) -> None:
        pages = {
            "1": (
                [{"id": 1, "name": "a"}],
                '<https://api.github.com/user/repos?page=2>; rel="next", '
                '<https://api.github.com/user/repos?page=2>; rel="last"',
            ),
            "2": ([{"id": 2, "name": "b"}], ""),
        }

        def handler(request: httpx.Request) -> httpx.Response:
            page = request.url.params.get("page", "1")
            data, link = pages[page]
            return httpx.Response(200, json=data, headers={"Link": link} if link else {})

        async with _client(handler) as github:
            repos = await github.get_repositories()

        assert [r["id"] for r in repos] == [1, 2]

    def test_extract_next_url(self) -> None:
        header = '<https://api.github.com/x?page=3>; rel="next", <https://api.github.com/x?page=9>; rel="last"'
        assert GitHubClient._extract_next_url(header) == "https://api.github.com/x?page=3"
        assert GitHubClient._extract_next_url('<https://a>; rel="last"') is None
        assert GitHubClient._extract_next_url("") is None


class TestStats:
    """Aggregated dashboard stats."""

    @pytest.mark.asyncio
    async def test_user_stats(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json=[
                    {"id": 1, "name": "a", "stargazers_count": 2, "language": "Python"},
                    {"id": 2, "name": "b", "stargazers_count": 3, "language": "Python"},
                    {"id": 3, "name": "c", "stargazers_count": 0, "language": None},
                ],
            )

        async with _client(handler) as github:
            stats = await github.get_user_stats()

        assert stats["total_repos"] == 3
        assert stats["total_stars"] == 5
        assert stats["languages"] == {"Python": 2}


class TestErrorMapping:
    """HTTP status -> exception."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403, 404, 422, 500])
    async def test_error_status(self, status: int) -> None:
        async with _client(lambda request: httpx.Response(status, json={})) as github:
            with pytest.raises(ExternalAPIError) as exc_info:
                await github.get_user()
        assert not isinstance(exc_info.value, GitHubRateLimitError)
        assert "ghp_test" not in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_rate_limit_exhausted(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                403,
                json={"message": "API rate limit exceeded"},
                headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1700000000"},
            )

        async with _client(handler) as github:
            with pytest.raises(GitHubRateLimitError):
                await github.get_user()

    @pytest.mark.asyncio
    async def test_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as github:
            with pytest.raises(ExternalAPIError):
                await github.get_user()

    @pytest.mark.asyncio
    async def test_delete_returns_none(self) -> None:
        async with _client(lambda request: httpx.Response(204)) as github:
            assert await github.delete_repository("octocat", "hello") is None


class TestRateLimiter:
    """Header-driven throttling."""

    @pytest.mark.asyncio
    async def test_passes_without_headers(self) -> None:
        limiter = GitHubRateLimiter()
        with patch("repo_gateway.core.rate_limiter.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await limiter.acquire()
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_waits_until_reset_when_exhausted(self) -> None:
        limiter = GitHubRateLimiter(max_wait_seconds=5)
        limiter.update(
            {"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": str(time.time() + 100)}
        )
        with patch("repo_gateway.core.rate_limiter.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await limiter.acquire()
        sleep.assert_awaited_once()
        assert sleep.await_args.args[0] == pytest.approx(5)
        assert limiter.remaining is None

    def test_malformed_headers_ignored(self) -> None:
        limiter = GitHubRateLimiter()
        limiter.update({"X-RateLimit-Remaining": "lots"})
        assert limiter.remaining is None

    @pytest.mark.asyncio
    async def test_client_feeds_limiter(self) -> None:
        limiter = GitHubRateLimiter()

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={"id": 1, "login": "octocat"},
                headers={"X-RateLimit-Remaining": "4999", "X-RateLimit-Reset": "1700000000"},
            )

        async with _client(handler, rate_limiter=limiter) as github:
            await github.get_user()

        assert limiter.remaining == 4999


def test_build_authorize_url() -> None:
    url = build_authorize_url("abc123", "repo read:user")
    assert url.startswith("https://github.com/login/oauth/authorize?")
    assert "client_id=abc123" in url
    assert "scope=repo+read%3Auser" in url or "scope=repo%20read%3Auser" in url
