"""リポジトリ管理サービス。

GitHub APIへの薄いラッパー。変更系の操作はローカルミラーを更新し、
アクティビティを1件記録する。
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from repo_gateway.models import ActivityAction, User
from repo_gateway.services.credential_gateway import CredentialGateway
from repo_gateway.services.mirror_store import MirrorStore, repository_fields

logger = logging.getLogger(__name__)


class RepositoryService:
    """ユーザーのGitHubリポジトリ操作。"""

    def __init__(self, store: MirrorStore, gateway: CredentialGateway) -> None:
        """RepositoryServiceを初期化する。

        Args:
            store: ミラーストア。
            gateway: 認証情報ゲートウェイ。
        """
        self.store = store
        self.gateway = gateway

    async def list_repositories(
        self,
        user: User,
        type: str = "all",
        sort: str = "updated",
        search: str = "",
    ) -> list[dict[str, Any]]:
        """GitHubからリポジトリ一覧を取得し、検索で絞り込み、ミラーに反映する。

        Args:
            user: 認証済みユーザー。
            type: GitHubのリポジトリ種別フィルタ。
            sort: ソートキー。
            search: 名前・説明に対する部分一致（大文字小文字を区別しない）。

        Returns:
            GitHubのリポジトリ情報のリスト。
        """
        async with self.gateway.open_client(user) as github:
            repos = await github.get_repositories(type=type, sort=sort)

        if search:
            needle = search.lower()
            repos = [
                r
                for r in repos
                if needle in (r.get("name") or "").lower()
                or needle in (r.get("description") or "").lower()
            ]

        await self.mirror_repositories(user, repos)
        return repos

    async def mirror_repositories(
        self,
        user: User,
        repos: list[dict[str, Any]],
    ) -> int:
        """リポジトリ情報をミラーに反映する。

        1件の失敗で残りを止めない。

        Returns:
            反映できた件数。
        """
        user_id = user.user_id
        mirrored = 0
        for repo in repos:
            try:
                await self.store.upsert_repository(
                    str(repo["id"]),
                    owner_id=user_id,
                    fields=repository_fields(repo),
                )
                await self.store.commit()
            except (KeyError, ValueError) as e:
                logger.warning("Skipping malformed repository entry: %s", e)
                continue
            except SQLAlchemyError:
                await self.store.session.rollback()
                logger.exception("Failed to mirror repository %s", repo.get("id"))
                continue
            mirrored += 1

        logger.info("Mirrored %d/%d repositories for user %s", mirrored, len(repos), user_id)
        return mirrored

    async def get_repository(self, user: User, owner: str, repo: str) -> dict[str, Any]:
        async with self.gateway.open_client(user) as github:
            return await github.get_repository(owner, repo)

    async def create_repository(
        self,
        user: User,
        name: str,
        description: str | None = None,
        private: bool = False,
    ) -> dict[str, Any]:
        """GitHubにリポジトリを作成し、ミラーに登録する。"""
        async with self.gateway.open_client(user) as github:
            created = await github.create_repository(
                {"name": name, "description": description, "private": private}
            )

        await self._mirror_and_record(
            user,
            created,
            ActivityAction.CREATE_REPOSITORY,
            f"Created repository: {name}",
        )
        return created

    async def update_repository(
        self,
        user: User,
        owner: str,
        repo: str,
        data: dict[str, Any],
    ) -> dict[str, Any]:
        async with self.gateway.open_client(user) as github:
            updated = await github.update_repository(owner, repo, data)

        await self._mirror_and_record(
            user,
            updated,
            ActivityAction.UPDATE_REPOSITORY,
            f"Updated repository: {repo}",
        )
        return updated

    async def delete_repository(self, user: User, owner: str, repo: str) -> None:
        """GitHub上のリポジトリを削除し、ミラーからはGitHubのIDで削除する。"""
        user_id = user.user_id
        async with self.gateway.open_client(user) as github:
            upstream = await github.get_repository(owner, repo)
            await github.delete_repository(owner, repo)

        await self.store.delete_repository(str(upstream["id"]))
        await self.store.commit()
        await self.store.record_activity(
            user_id,
            ActivityAction.DELETE_REPOSITORY,
            f"Deleted repository: {repo}",
        )

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    async def get_collaborators(
        self,
        user: User,
        owner: str,
        repo: str,
    ) -> list[dict[str, Any]]:
        async with self.gateway.open_client(user) as github:
            return await github.get_collaborators(owner, repo)

    async def add_collaborator(
        self,
        user: User,
        owner: str,
        repo: str,
        username: str,
        permission: str = "push",
    ) -> None:
        user_id = user.user_id
        async with self.gateway.open_client(user) as github:
            await github.add_collaborator(owner, repo, username, permission)

        await self.store.record_activity(
            user_id,
            ActivityAction.ADD_COLLABORATOR,
            f"Added collaborator {username} to repository: {repo}",
        )

    async def remove_collaborator(
        self,
        user: User,
        owner: str,
        repo: str,
        username: str,
    ) -> None:
        user_id = user.user_id
        async with self.gateway.open_client(user) as github:
            await github.remove_collaborator(owner, repo, username)

        await self.store.record_activity(
            user_id,
            ActivityAction.REMOVE_COLLABORATOR,
            f"Removed collaborator {username} from repository: {repo}",
        )

    # ------------------------------------------------------------------
    # Internal Helpers
    # ------------------------------------------------------------------

    async def _mirror_and_record(
        self,
        user: User,
        repo: dict[str, Any],
        action: ActivityAction,
        details: str,
    ) -> None:
        user_id = user.user_id
        await self.store.upsert_repository(
            str(repo["id"]),
            owner_id=user_id,
            fields=repository_fields(repo),
        )
        await self.store.commit()
        await self.store.record_activity(user_id, action, details)
