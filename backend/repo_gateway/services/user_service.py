"""ユーザーサービス。

ダッシュボード統計、アクティビティ履歴、プロフィールの取得・更新を提供する。
"""

from __future__ import annotations

from typing import Any

from repo_gateway.models import Activity, ActivityAction, Repository, User
from repo_gateway.services.credential_gateway import CredentialGateway
from repo_gateway.services.mirror_store import MirrorStore

RECENT_ACTIVITY_LIMIT = 5


class UserService:
    """ログイン中ユーザー自身に関する操作。"""

    def __init__(self, store: MirrorStore, gateway: CredentialGateway) -> None:
        self.store = store
        self.gateway = gateway

    async def get_dashboard_stats(self, user: User) -> dict[str, Any]:
        """GitHub上のリポジトリ数・スター合計・言語構成を取得する。"""
        async with self.gateway.open_client(user) as github:
            return await github.get_user_stats()

    async def get_activities(
        self,
        user: User,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Activity], int]:
        return await self.store.list_activities(user.user_id, page=page, limit=limit)

    async def get_profile(
        self,
        user: User,
    ) -> tuple[list[Repository], list[Activity]]:
        """ミラー済みリポジトリと直近のアクティビティを取得する。

        Returns:
            (リポジトリのリスト, 直近のアクティビティのリスト)。
        """
        repositories = await self.store.list_repositories(user.user_id)
        activities, _ = await self.store.list_activities(
            user.user_id,
            page=1,
            limit=RECENT_ACTIVITY_LIMIT,
        )
        return repositories, activities

    async def update_profile(self, user: User, email: str | None) -> dict[str, Any]:
        """メールアドレスを更新し、アクティビティを記録する。

        Returns:
            更新後のユーザー情報（コミット直後の値）。
        """
        user.email = email
        await self.store.commit()
        snapshot = {
            "user_id": user.user_id,
            "username": user.username,
            "email": user.email,
            "github_user_id": user.github_user_id,
        }
        await self.store.record_activity(
            snapshot["user_id"],
            ActivityAction.UPDATE_PROFILE,
            "Updated profile information",
        )
        return snapshot
