"""ミラーストア。

ユーザー、リポジトリのミラー、アクティビティログに対する永続化操作を
AsyncSession の上にまとめる。リポジトリはGitHubのIDをキーにupsertし、
名前（変更され得る）では識別しない。
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from repo_gateway.models import Activity, ActivityAction, Repository, User

logger = logging.getLogger(__name__)

# GitHubのリポジトリJSONのキー -> Repositoryのカラム
REPOSITORY_FIELD_MAP: dict[str, str] = {
    "name": "name",
    "description": "description",
    "language": "language",
    "stargazers_count": "star_count",
    "forks_count": "fork_count",
}


def repository_fields(payload: dict[str, Any]) -> dict[str, Any]:
    """GitHubのリポジトリJSONから、存在するキーだけをカラム値に変換する。

    キーが存在しない項目は結果に含めない（部分更新）。値がnullの項目は含める。
    """
    return {
        column: payload[key]
        for key, column in REPOSITORY_FIELD_MAP.items()
        if key in payload
    }


class MirrorStore:
    """ミラーデータの永続化。

    データ変更とアクティビティ記録は別々にコミットする。
    アクティビティの記録に失敗しても、コミット済みのデータ変更は取り消さない。
    """

    def __init__(self, session: AsyncSession) -> None:
        """MirrorStoreを初期化する。

        Args:
            session: 非同期データベースセッション。
        """
        self.session = session

    async def commit(self) -> None:
        await self.session.commit()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user(self, user_id: int) -> User | None:
        stmt = select(User).where(User.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_user_by_external_id(self, github_user_id: str) -> User | None:
        stmt = select(User).where(User.github_user_id == github_user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_user_by_username(self, username: str) -> User | None:
        stmt = select(User).where(User.username == username)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert_user(
        self,
        github_user_id: str,
        username: str,
        email: str | None,
        access_token: str,
    ) -> User:
        """ログイン成功時にユーザーを作成または更新する。

        GitHubのIDで検索し、見つからなければユーザー名で検索する。
        ``access_token`` は暗号化済みの文字列を渡すこと。

        Args:
            github_user_id: GitHubアカウントID。
            username: GitHubログイン名。
            email: メールアドレス。
            access_token: 暗号化済みトークン。

        Returns:
            作成または更新されたUserオブジェクト。
        """
        user = await self.get_user_by_external_id(github_user_id)
        if user is None:
            user = await self.get_user_by_username(username)

        if user is None:
            user = User(
                github_user_id=github_user_id,
                username=username,
                email=email,
                access_token=access_token,
            )
            self.session.add(user)
            logger.info("Registered new user %s", username)
        else:
            user.github_user_id = github_user_id
            user.username = username
            user.email = email
            user.access_token = access_token

        await self.session.flush()
        return user

    # ------------------------------------------------------------------
    # Repositories
    # ------------------------------------------------------------------

    async def get_repository(self, github_repo_id: str) -> Repository | None:
        stmt = select(Repository).where(Repository.github_repo_id == github_repo_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_repositories(self, owner_id: int) -> list[Repository]:
        stmt = (
            select(Repository)
            .where(Repository.owner_id == owner_id)
            .order_by(Repository.name)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def upsert_repository(
        self,
        github_repo_id: str,
        owner_id: int,
        fields: dict[str, Any],
    ) -> Repository:
        """GitHubのIDをキーにリポジトリをupsertする。

        既存行には ``fields`` に含まれる項目だけを上書きし、所有者は変更しない。
        同じIDの挿入が競合した場合は、更新としてやり直す（後勝ち）。

        Args:
            github_repo_id: GitHubリポジトリID。
            owner_id: 新規作成時の所有ユーザーID。
            fields: カラム名と値（``repository_fields()`` の戻り値）。

        Returns:
            作成または更新されたRepositoryオブジェクト。

        Raises:
            ValueError: 新規作成なのに ``name`` が含まれない場合。
        """
        repo = await self.get_repository(github_repo_id)
        if repo is not None:
            self._apply(repo, fields)
            await self.session.flush()
            return repo

        if not fields.get("name"):
            raise ValueError("name is required to create a repository mirror")

        repo = Repository(github_repo_id=github_repo_id, owner_id=owner_id, **fields)
        try:
            # 衝突時はSAVEPOINTまで、この挿入だけを取り消す
            async with self.session.begin_nested():
                self.session.add(repo)
                await self.session.flush()
        except IntegrityError:
            # 並行して同じIDが挿入された
            logger.info(
                "Concurrent insert for repository %s, retrying as update",
                github_repo_id,
            )
            repo = await self.get_repository(github_repo_id)
            if repo is None:
                raise
            self._apply(repo, fields)
            await self.session.flush()

        return repo

    async def delete_repository(self, github_repo_id: str) -> bool:
        """GitHubのIDでリポジトリを削除する。

        Returns:
            行が削除された場合True。
        """
        stmt = delete(Repository).where(Repository.github_repo_id == github_repo_id)
        result = await self.session.execute(stmt)
        return (result.rowcount or 0) > 0

    @staticmethod
    def _apply(repo: Repository, fields: dict[str, Any]) -> None:
        for column, value in fields.items():
            setattr(repo, column, value)

    # ------------------------------------------------------------------
    # Activities
    # ------------------------------------------------------------------

    async def record_activity(
        self,
        user_id: int,
        action: ActivityAction,
        details: str,
    ) -> bool:
        """アクティビティを1件追記してコミットする。

        失敗してもログに残すだけで例外は送出しない。

        Returns:
            記録できた場合True。
        """
        activity = Activity(
            user_id=user_id,
            action=action.value,
            details=details,
            timestamp=datetime.now(timezone.utc),
        )
        try:
            self.session.add(activity)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception(
                "Failed to record activity %s for user %s",
                action.value,
                user_id,
            )
            return False
        return True

    async def list_activities(
        self,
        user_id: int,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Activity], int]:
        """ユーザーのアクティビティを新しい順にページ単位で取得する。

        Returns:
            (アクティビティのリスト, 総件数)。
        """
        count_stmt = (
            select(func.count())
            .select_from(Activity)
            .where(Activity.user_id == user_id)
        )
        total = (await self.session.execute(count_stmt)).scalar_one()

        stmt = (
            select(Activity)
            .where(Activity.user_id == user_id)
            .order_by(Activity.timestamp.desc(), Activity.activity_id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total
