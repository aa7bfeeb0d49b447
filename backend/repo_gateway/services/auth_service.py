"""認証サービスモジュール。

GitHub OAuthコード交換、またはアクセストークンによるログインを処理し、
トークンを暗号化して保存したうえでセッショントークンを発行する。
"""

from __future__ import annotations

import logging

from repo_gateway.core.exceptions import AuthenticationError, BadRequestError, ExternalAPIError
from repo_gateway.core.security import SessionTokenService
from repo_gateway.external.github_client import GitHubClient
from repo_gateway.models import User
from repo_gateway.services.credential_gateway import CredentialGateway
from repo_gateway.services.mirror_store import MirrorStore

logger = logging.getLogger(__name__)


class AuthService:
    """ログインとセッション発行。"""

    def __init__(
        self,
        store: MirrorStore,
        gateway: CredentialGateway,
        sessions: SessionTokenService,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.sessions = sessions

    async def login_with_token(
        self,
        access_token: str,
        expected_username: str | None = None,
    ) -> tuple[User, str]:
        """GitHubトークンを検証し、ユーザーを登録・更新してセッションを発行する。

        Args:
            access_token: GitHubから取得した平文トークン。
            expected_username: 指定された場合、トークン所有者と一致する必要がある。

        Returns:
            (Userオブジェクト, セッショントークン)。

        Raises:
            AuthenticationError: トークンがGitHubに拒否された場合。
            BadRequestError: ユーザー名がトークン所有者と一致しない場合。
        """
        try:
            async with GitHubClient(token=access_token) as github:
                github_user = await github.get_user()
        except ExternalAPIError as e:
            logger.info("GitHub token validation failed: %s", e.detail)
            raise AuthenticationError("Invalid token or username") from None

        login = github_user["login"]
        if expected_username is not None and login != expected_username:
            raise BadRequestError("Username does not match token owner")

        user = await self.store.upsert_user(
            github_user_id=str(github_user["id"]),
            username=login,
            email=github_user.get("email"),
            access_token=self.gateway.seal(access_token),
        )
        await self.store.commit()

        token = self.sessions.issue_for(user.user_id, user.username)
        logger.info("User %s logged in", user.user_id)
        return user, token
