"""認証情報ゲートウェイ。

保存済みGitHubトークンを外部呼び出しの直前にだけ復号し、
新しく取得したトークンは保存前に暗号化する。復号済みトークンは
キャッシュせず、ログにも出さない。
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from repo_gateway.core.exceptions import DecryptionError, InvalidAccessToken
from repo_gateway.core.rate_limiter import GitHubRateLimiter
from repo_gateway.core.security import TokenCipher
from repo_gateway.external.github_client import GitHubClient
from repo_gateway.models import User

logger = logging.getLogger(__name__)


class CredentialGateway:
    """ユーザーのGitHubトークンの封印・開封。"""

    def __init__(
        self,
        cipher: TokenCipher,
        rate_limiter: GitHubRateLimiter | None = None,
    ) -> None:
        """CredentialGatewayを初期化する。

        Args:
            cipher: トークン暗号化コンポーネント。
            rate_limiter: GitHubClientに渡す共有レート制限。
        """
        self._cipher = cipher
        self._rate_limiter = rate_limiter

    def seal(self, token: str) -> str:
        """新しく取得したトークンを保存形式に暗号化する。

        Raises:
            ConfigurationError: SECRET_KEYが未設定の場合。
        """
        return self._cipher.encrypt(token).serialize()

    def prepare(self, user: User) -> str:
        """保存済みトークンを復号して返す。

        Args:
            user: Userモデルインスタンス。

        Returns:
            平文のGitHubトークン。

        Raises:
            InvalidAccessToken: トークン未設定、または復号に失敗した場合。
        """
        if not user.access_token:
            logger.warning("No stored GitHub token for user %s", user.user_id)
            raise InvalidAccessToken()
        try:
            return self._cipher.decrypt(user.access_token)
        except DecryptionError:
            logger.error("Failed to decrypt GitHub token for user %s", user.user_id)
            raise InvalidAccessToken() from None

    @asynccontextmanager
    async def open_client(self, user: User) -> AsyncIterator[GitHubClient]:
        """ユーザーのトークンで認証したGitHubClientを1回の呼び出し分だけ貸し出す。

        Usage::

            async with gateway.open_client(user) as github:
                repos = await github.get_repositories()
        """
        client = GitHubClient(token=self.prepare(user), rate_limiter=self._rate_limiter)
        try:
            yield client
        finally:
            await client.close()
