"""Webhookイベント同期サービス。

署名検証済みのGitHub Webhookイベントを受け取り、ローカルのリポジトリミラーと
アクティビティログに冪等に反映する。

- イベント種別は境界で一度だけ ``EventKind`` に変換する。未知の種別は無視する。
- 対応するローカルユーザーがいない場合は何もしない（アカウントは作らない）。
- リポジトリはGitHubのIDでupsert/削除するため、再配信で行は重複しない。
  アクティビティは追記のみで、再配信時の重複は許容する。
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from repo_gateway.core.exceptions import SyncNoop
from repo_gateway.models import ActivityAction
from repo_gateway.services.mirror_store import MirrorStore, repository_fields

logger = logging.getLogger(__name__)


class EventKind(str, enum.Enum):
    """``X-GitHub-Event`` ヘッダーの値。"""

    REPOSITORY = "repository"
    PUSH = "push"
    STAR = "star"
    FORK = "fork"
    MEMBER = "member"
    PING = "ping"
    UNKNOWN = "unknown"

    @classmethod
    def from_header(cls, value: str | None) -> EventKind:
        """ヘッダー値を変換する。対応外の値は ``UNKNOWN`` になる。"""
        if not value:
            return cls.UNKNOWN
        try:
            kind = cls(value.strip().lower())
        except ValueError:
            return cls.UNKNOWN
        return kind


@dataclass(frozen=True)
class SyncResult:
    """1イベントの処理結果。

    Attributes:
        kind: イベント種別。
        applied: ローカル状態に反映したか。
        action: 記録しようとしたアクティビティ。
        activity_recorded: アクティビティの記録に成功したか。
        reason: 反映しなかった理由。
    """

    kind: EventKind
    applied: bool
    action: ActivityAction | None = None
    activity_recorded: bool = False
    reason: str | None = None


Handler = Callable[[dict[str, Any]], Awaitable[SyncResult]]


class EventSynchronizer:
    """GitHub Webhookイベントをミラーストアに反映する。"""

    def __init__(self, store: MirrorStore) -> None:
        """EventSynchronizerを初期化する。

        Args:
            store: ミラーストア。
        """
        self.store = store
        self._handlers: dict[EventKind, Handler] = {
            EventKind.REPOSITORY: self._handle_repository,
            EventKind.PUSH: self._handle_push,
            EventKind.STAR: self._handle_star,
            EventKind.FORK: self._handle_fork,
            EventKind.MEMBER: self._handle_member,
            EventKind.PING: self._handle_ping,
        }

    async def handle(self, kind: EventKind, payload: dict[str, Any]) -> SyncResult:
        """イベントを1件処理する。

        Args:
            kind: イベント種別。
            payload: パース済みのWebhookペイロード。

        Returns:
            SyncResultインスタンス。

        Raises:
            SQLAlchemyError: データ変更の永続化に失敗した場合。
        """
        handler = self._handlers.get(kind)
        if handler is None:
            logger.info("Ignoring unhandled webhook event kind")
            return SyncResult(kind=kind, applied=False, reason="unhandled event kind")

        try:
            result = await handler(payload)
        except SyncNoop as e:
            logger.debug("Webhook %s event skipped: %s", kind.value, e.reason)
            return SyncResult(kind=kind, applied=False, reason=e.reason)

        if result.applied:
            logger.info(
                "Applied webhook %s event (%s, activity_recorded=%s)",
                kind.value,
                result.action.value if result.action else "-",
                result.activity_recorded,
            )
        return result

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _handle_repository(self, payload: dict[str, Any]) -> SyncResult:
        action = payload.get("action")
        repository = _require_mapping(payload, "repository")
        user_id = await self._actor_id(_require_mapping(payload, "sender"))
        name = repository.get("name", "")

        if action == "created":
            await self._upsert(repository, user_id)
            return await self._commit_and_record(
                EventKind.REPOSITORY,
                user_id,
                ActivityAction.CREATE_REPOSITORY,
                f"Created repository: {name}",
            )
        if action == "edited":
            await self._upsert(repository, user_id)
            return await self._commit_and_record(
                EventKind.REPOSITORY,
                user_id,
                ActivityAction.UPDATE_REPOSITORY,
                f"Updated repository: {name}",
            )
        if action == "deleted":
            removed = await self.store.delete_repository(_external_id(repository))
            if not removed:
                logger.debug("Repository %s was not mirrored locally", _external_id(repository))
            return await self._commit_and_record(
                EventKind.REPOSITORY,
                user_id,
                ActivityAction.DELETE_REPOSITORY,
                f"Deleted repository: {name}",
            )

        raise SyncNoop(f"repository action {action!r} is not handled")

    async def _handle_push(self, payload: dict[str, Any]) -> SyncResult:
        repository = _require_mapping(payload, "repository")
        pusher = _require_mapping(payload, "pusher")
        username = pusher.get("name")
        if not username:
            raise SyncNoop("push event without pusher name")

        user = await self.store.get_user_by_username(username)
        if user is None:
            raise SyncNoop("no local user for pusher")
        user_id = user.user_id

        await self._upsert(repository, user_id)
        return await self._commit_and_record(
            EventKind.PUSH,
            user_id,
            ActivityAction.PUSH_REPOSITORY,
            f"Pushed to repository: {repository.get('name', '')}",
        )

    async def _handle_star(self, payload: dict[str, Any]) -> SyncResult:
        action = payload.get("action")
        if action == "created":
            verb = "Starred"
        elif action in ("deleted", "removed"):
            verb = "Unstarred"
        else:
            raise SyncNoop(f"star action {action!r} is not handled")

        repository = _require_mapping(payload, "repository")
        user_id = await self._actor_id(_require_mapping(payload, "sender"))

        await self._upsert(repository, user_id)
        return await self._commit_and_record(
            EventKind.STAR,
            user_id,
            ActivityAction.STAR_REPOSITORY,
            f"{verb} repository: {repository.get('name', '')}",
        )

    async def _handle_fork(self, payload: dict[str, Any]) -> SyncResult:
        forkee = _require_mapping(payload, "forkee")
        repository = _require_mapping(payload, "repository")
        user_id = await self._actor_id(_require_mapping(forkee, "owner"))

        await self._upsert(forkee, user_id)
        return await self._commit_and_record(
            EventKind.FORK,
            user_id,
            ActivityAction.FORK_REPOSITORY,
            f"Forked repository: {repository.get('name', '')}",
        )

    async def _handle_member(self, payload: dict[str, Any]) -> SyncResult:
        action = payload.get("action")
        if action == "added":
            activity, text = ActivityAction.ADD_COLLABORATOR, "Added collaborator {} to"
        elif action == "removed":
            activity, text = ActivityAction.REMOVE_COLLABORATOR, "Removed collaborator {} from"
        else:
            raise SyncNoop(f"member action {action!r} is not handled")

        repository = _require_mapping(payload, "repository")
        member = _require_mapping(payload, "member")
        user_id = await self._actor_id(_require_mapping(payload, "sender"))

        details = f"{text.format(member.get('login', ''))} repository: {repository.get('name', '')}"
        recorded = await self.store.record_activity(user_id, activity, details)
        return SyncResult(
            kind=EventKind.MEMBER,
            applied=True,
            action=activity,
            activity_recorded=recorded,
        )

    async def _handle_ping(self, payload: dict[str, Any]) -> SyncResult:
        logger.info("Webhook ping received (hook_id=%s)", payload.get("hook_id"))
        return SyncResult(kind=EventKind.PING, applied=False, reason="ping")

    # ------------------------------------------------------------------
    # Internal Helpers
    # ------------------------------------------------------------------

    async def _actor_id(self, account: dict[str, Any]) -> int:
        account_id = account.get("id")
        if account_id is None:
            raise SyncNoop("account without id")
        user = await self.store.get_user_by_external_id(str(account_id))
        if user is None:
            raise SyncNoop("no local user for account")
        return user.user_id

    async def _upsert(self, repository: dict[str, Any], owner_id: int) -> None:
        try:
            await self.store.upsert_repository(
                _external_id(repository),
                owner_id=owner_id,
                fields=repository_fields(repository),
            )
        except ValueError as e:
            raise SyncNoop(str(e)) from None

    async def _commit_and_record(
        self,
        kind: EventKind,
        user_id: int,
        action: ActivityAction,
        details: str,
    ) -> SyncResult:
        """データ変更をコミットしてから、アクティビティを別途記録する。"""
        await self.store.commit()
        recorded = await self.store.record_activity(user_id, action, details)
        return SyncResult(
            kind=kind,
            applied=True,
            action=action,
            activity_recorded=recorded,
        )


def _require_mapping(payload: dict[str, Any], key: str) -> dict[str, Any]:
    value = payload.get(key)
    if not isinstance(value, dict):
        raise SyncNoop(f"payload has no {key!r} object")
    return value


def _external_id(repository: dict[str, Any]) -> str:
    repo_id = repository.get("id")
    if repo_id is None:
        raise SyncNoop("repository without id")
    return str(repo_id)
