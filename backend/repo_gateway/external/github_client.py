"""GitHub REST API 非同期クライアント。

httpx.AsyncClient を使用し、レート制限管理と自動ページネーションを提供する。
トークンはクライアントの生存期間中のみ保持し、ログには出さない。
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from typing import Any

import httpx

from repo_gateway.core.exceptions import ExternalAPIError, GitHubRateLimitError
from repo_gateway.core.rate_limiter import GitHubRateLimiter

logger = logging.getLogger(__name__)

OAUTH_AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
OAUTH_TOKEN_URL = "https://github.com/login/oauth/access_token"


class GitHubClient:
    """GitHub REST API v3 非同期クライアント。

    Attributes:
        BASE_URL: GitHub API のベースURL。
    """

    BASE_URL = "https://api.github.com"

    def __init__(
        self,
        token: str,
        rate_limiter: GitHubRateLimiter | None = None,
    ) -> None:
        """GitHubClientを初期化する。

        Args:
            token: GitHubアクセストークン（OAuthまたはPAT）。
            rate_limiter: 共有レート制限。Noneの場合は制限しない。
        """
        self._rate_limiter = rate_limiter
        self._client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "repo-gateway",
            },
            timeout=httpx.Timeout(30.0, connect=10.0),
        )

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user(self) -> dict[str, Any]:
        """認証済みユーザー情報を取得する。トークン検証にも使用。

        Returns:
            ユーザー情報辞書。

        Raises:
            ExternalAPIError: API呼び出しに失敗した場合。
        """
        response = await self._request("GET", "/user")
        return response.json()

    async def get_user_stats(self) -> dict[str, Any]:
        """リポジトリ数、スター合計、言語別リポジトリ数を集計する。"""
        repos = await self.get_repositories()
        languages = Counter(r["language"] for r in repos if r.get("language"))
        return {
            "total_repos": len(repos),
            "total_stars": sum(r.get("stargazers_count", 0) for r in repos),
            "languages": dict(languages),
            "repos": repos,
        }

    # ------------------------------------------------------------------
    # Repositories
    # ------------------------------------------------------------------

    async def get_repositories(
        self,
        type: str = "all",
        sort: str = "updated",
    ) -> list[dict[str, Any]]:
        """認証ユーザーのリポジトリ一覧を取得する。

        Args:
            type: "all", "owner", "public", "private", "member"。
            sort: "created", "updated", "pushed", "full_name"。

        Returns:
            リポジトリ情報のリスト。
        """
        params = {"type": type, "sort": sort, "per_page": "100"}
        return await self._paginate("/user/repos", params=params)

    async def get_repository(self, owner: str, repo: str) -> dict[str, Any]:
        response = await self._request("GET", f"/repos/{owner}/{repo}")
        return response.json()

    async def create_repository(self, data: dict[str, Any]) -> dict[str, Any]:
        response = await self._request("POST", "/user/repos", json=data)
        return response.json()

    async def update_repository(
        self,
        owner: str,
        repo: str,
        data: dict[str, Any],
    ) -> dict[str, Any]:
        response = await self._request("PATCH", f"/repos/{owner}/{repo}", json=data)
        return response.json()

    async def delete_repository(self, owner: str, repo: str) -> None:
        await self._request("DELETE", f"/repos/{owner}/{repo}")

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    async def get_collaborators(self, owner: str, repo: str) -> list[dict[str, Any]]:
        return await self._paginate(
            f"/repos/{owner}/{repo}/collaborators",
            params={"per_page": "100"},
        )

    async def add_collaborator(
        self,
        owner: str,
        repo: str,
        username: str,
        permission: str = "push",
    ) -> None:
        """コラボレーターを招待する（既存メンバーの場合は権限更新）。"""
        await self._request(
            "PUT",
            f"/repos/{owner}/{repo}/collaborators/{username}",
            json={"permission": permission},
        )

    async def remove_collaborator(self, owner: str, repo: str, username: str) -> None:
        await self._request(
            "DELETE",
            f"/repos/{owner}/{repo}/collaborators/{username}",
        )

    # ------------------------------------------------------------------
    # Internal Helpers
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """共通HTTPリクエストメソッド。

        レート制限の待機、レスポンスヘッダーからのレート制限情報更新、
        エラーハンドリングを行う。

        Args:
            method: HTTPメソッド。
            url: リクエストURL（相対パスまたは絶対URL）。
            **kwargs: httpx.AsyncClient.request に渡す追加引数。

        Returns:
            HTTPレスポンス。

        Raises:
            GitHubRateLimitError: レート制限超過時。
            ExternalAPIError: その他のAPIエラー時。
        """
        if self._rate_limiter is not None:
            await self._rate_limiter.acquire()

        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error("GitHub API request failed: %s %s - %s", method, url, type(e).__name__)
            raise ExternalAPIError(detail="GitHub API request failed")

        if self._rate_limiter is not None:
            self._rate_limiter.update(response.headers)

        if response.status_code == 401:
            raise ExternalAPIError(detail="GitHub rejected the access token")

        if response.status_code == 403:
            remaining = response.headers.get("X-RateLimit-Remaining")
            if remaining is not None and remaining == "0":
                reset_at = response.headers.get("X-RateLimit-Reset", "unknown")
                raise GitHubRateLimitError(
                    detail=f"GitHub API rate limit exceeded. Resets at: {reset_at}"
                )
            raise ExternalAPIError(detail="GitHub API forbidden")

        if response.status_code == 404:
            raise ExternalAPIError(detail=f"GitHub resource not found: {url}")

        if response.status_code >= 400:
            logger.warning(
                "GitHub API error %d on %s %s: %s",
                response.status_code,
                method,
                url,
                response.text[:200],
            )
            raise ExternalAPIError(
                detail=f"GitHub API error {response.status_code}"
            )

        return response

    async def _paginate(
        self,
        url: str,
        params: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        """Linkヘッダーベースの自動ページネーション。

        Args:
            url: 初回リクエストURL。
            params: クエリパラメータ。

        Returns:
            全ページ分のデータを結合したリスト。
        """
        all_items: list[dict[str, Any]] = []
        next_url: str | None = url

        while next_url is not None:
            if next_url == url:
                response = await self._request("GET", next_url, params=params)
            else:
                # 後続ページのURLにはパラメータが含まれている
                response = await self._request("GET", next_url)

            data = response.json()
            if not isinstance(data, list):
                logger.warning(
                    "Unexpected non-list response during pagination: %s",
                    type(data),
                )
                break
            all_items.extend(data)

            next_url = self._extract_next_url(response.headers.get("Link", ""))

        return all_items

    @staticmethod
    def _extract_next_url(link_header: str) -> str | None:
        """Linkヘッダーから rel="next" のURLを抽出する。"""
        if not link_header:
            return None

        # Link: <https://api.github.com/...?page=2>; rel="next", <...>; rel="last"
        match = re.search(r'<([^>]+)>;\s*rel="next"', link_header)
        return match.group(1) if match else None

    async def close(self) -> None:
        """HTTPクライアントセッションを閉じる。"""
        await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


# ---------------------------------------------------------------------------
# OAuth
# ---------------------------------------------------------------------------

def build_authorize_url(client_id: str, scopes: str) -> str:
    """GitHub OAuth認可画面のURLを組み立てる。"""
    query = httpx.QueryParams({"client_id": client_id, "scope": scopes})
    return f"{OAUTH_AUTHORIZE_URL}?{query}"


async def exchange_oauth_code(
    code: str,
    client_id: str,
    client_secret: str,
) -> str:
    """OAuth認可コードをアクセストークンに交換する。

    Args:
        code: コールバックで受け取った認可コード。
        client_id: OAuth AppのクライアントID。
        client_secret: OAuth Appのクライアントシークレット。

    Returns:
        GitHubアクセストークン。

    Raises:
        ExternalAPIError: 交換に失敗した場合。
    """
    try:
        async with httpx.AsyncClient(timeout=httpx.Timeout(30.0, connect=10.0)) as client:
            response = await client.post(
                OAUTH_TOKEN_URL,
                json={
                    "client_id": client_id,
                    "client_secret": client_secret,
                    "code": code,
                },
                headers={"Accept": "application/json"},
            )
    except httpx.HTTPError as e:
        logger.error("GitHub OAuth token exchange failed: %s", type(e).__name__)
        raise ExternalAPIError(detail="GitHub OAuth token exchange failed")

    if response.status_code >= 400:
        raise ExternalAPIError(detail="GitHub OAuth token exchange failed")

    access_token = response.json().get("access_token")
    if not access_token:
        # GitHubは不正なコードでも200で {"error": ...} を返す
        logger.warning(
            "GitHub OAuth exchange returned no token: %s",
            response.json().get("error"),
        )
        raise ExternalAPIError(detail="Failed to get access token")

    return access_token
