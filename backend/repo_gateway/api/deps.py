"""FastAPI依存性注入モジュール。

起動時に ``app.state`` へ登録した共有コンポーネント（暗号化、セッション、
Webhook検証、認証情報ゲートウェイ）と、現在のユーザー取得を提供する。
データベースセッションは ``repo_gateway.database.get_session`` を再利用する。
"""

from __future__ import annotations

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from repo_gateway.core.exceptions import InvalidSessionToken
from repo_gateway.core.security import SessionTokenService
from repo_gateway.core.webhook_security import WebhookVerifier
from repo_gateway.database import get_session
from repo_gateway.models import User
from repo_gateway.services.credential_gateway import CredentialGateway
from repo_gateway.services.mirror_store import MirrorStore

# ---------------------------------------------------------------------------
# Bearer スキーム（欠落時も無効時と同じ401にするため auto_error=False）
# ---------------------------------------------------------------------------
bearer_scheme = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# 共有コンポーネント
# ---------------------------------------------------------------------------

def get_session_tokens(request: Request) -> SessionTokenService:
    return request.app.state.session_tokens


def get_credential_gateway(request: Request) -> CredentialGateway:
    return request.app.state.credential_gateway


def get_webhook_verifier(request: Request) -> WebhookVerifier:
    return request.app.state.webhook_verifier


def get_mirror_store(
    session: AsyncSession = Depends(get_session),
) -> MirrorStore:
    return MirrorStore(session)


# ---------------------------------------------------------------------------
# 現在のユーザー取得
# ---------------------------------------------------------------------------

async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    sessions: SessionTokenService = Depends(get_session_tokens),
    store: MirrorStore = Depends(get_mirror_store),
) -> User:
    """Bearerセッショントークンから現在のユーザーを取得する。

    Args:
        credentials: Authorizationヘッダーの内容。
        sessions: セッショントークンサービス。
        store: ミラーストア。

    Returns:
        認証済みUserオブジェクト。

    Raises:
        InvalidSessionToken: トークンが欠落・無効、またはユーザーが存在しない場合。
    """
    if credentials is None:
        raise InvalidSessionToken()

    claim = sessions.verify(credentials.credentials)

    user = await store.get_user(claim.subject_id)
    if user is None:
        raise InvalidSessionToken()

    return user
