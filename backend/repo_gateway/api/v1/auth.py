"""認証エンドポイント。

GitHub OAuth、アクセストークンによるログイン、ログアウト、現在のユーザー取得の
APIを提供する。
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from httpx import QueryParams

from repo_gateway.api.deps import (
    get_credential_gateway,
    get_current_user,
    get_mirror_store,
    get_session_tokens,
)
from repo_gateway.config import settings
from repo_gateway.core.exceptions import AuthenticationError, ConfigurationError, ExternalAPIError
from repo_gateway.core.security import SessionTokenService
from repo_gateway.external.github_client import build_authorize_url, exchange_oauth_code
from repo_gateway.models import User
from repo_gateway.schemas.auth import (
    MessageResponse,
    SessionResponse,
    TokenLoginRequest,
    UserResponse,
)
from repo_gateway.services.auth_service import AuthService
from repo_gateway.services.credential_gateway import CredentialGateway
from repo_gateway.services.mirror_store import MirrorStore

logger = logging.getLogger(__name__)

router = APIRouter()


def get_auth_service(
    store: MirrorStore = Depends(get_mirror_store),
    gateway: CredentialGateway = Depends(get_credential_gateway),
    sessions: SessionTokenService = Depends(get_session_tokens),
) -> AuthService:
    return AuthService(store=store, gateway=gateway, sessions=sessions)


def _oauth_credentials() -> tuple[str, str]:
    if not settings.GITHUB_CLIENT_ID or not settings.GITHUB_CLIENT_SECRET:
        raise ConfigurationError("GITHUB_CLIENT_ID / GITHUB_CLIENT_SECRET are not set")
    return settings.GITHUB_CLIENT_ID, settings.GITHUB_CLIENT_SECRET


@router.get(
    "/github",
    summary="GitHub OAuth開始",
)
async def github_login() -> RedirectResponse:
    """GitHubの認可画面へリダイレクトする。"""
    client_id, _ = _oauth_credentials()
    return RedirectResponse(
        build_authorize_url(client_id, settings.GITHUB_OAUTH_SCOPES),
        status_code=302,
    )


@router.get(
    "/github/callback",
    summary="GitHub OAuthコールバック",
)
async def github_callback(
    code: str = Query(..., min_length=1, description="認可コード"),
    service: AuthService = Depends(get_auth_service),
) -> RedirectResponse:
    """認可コードをトークンに交換し、セッショントークン付きでフロントエンドへ戻す。

    Args:
        code: GitHubから渡された認可コード。
        service: 認証サービス。

    Returns:
        フロントエンドのコールバック画面へのリダイレクト。
    """
    client_id, client_secret = _oauth_credentials()
    try:
        access_token = await exchange_oauth_code(code, client_id, client_secret)
    except ExternalAPIError:
        raise AuthenticationError("Authentication failed") from None

    _, session_token = await service.login_with_token(access_token)

    query = QueryParams({"token": session_token})
    return RedirectResponse(
        f"{settings.FRONTEND_URL}/auth/callback?{query}",
        status_code=302,
    )


@router.post(
    "/token",
    response_model=SessionResponse,
    summary="アクセストークンでログイン",
)
async def token_login(
    request: TokenLoginRequest,
    service: AuthService = Depends(get_auth_service),
) -> SessionResponse:
    """GitHubアクセストークンを検証し、セッショントークンを発行する。

    Args:
        request: ユーザー名とトークン。
        service: 認証サービス。

    Returns:
        セッショントークンとユーザー情報。
    """
    user, session_token = await service.login_with_token(
        request.token,
        expected_username=request.username,
    )
    return SessionResponse(
        token=session_token,
        user=UserResponse.model_validate(user),
    )


@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="ログアウト",
)
async def logout() -> MessageResponse:
    """サーバー側の状態は持たないため、クライアントがトークンを破棄する。"""
    return MessageResponse(message="Logged out successfully")


@router.get(
    "/me",
    response_model=UserResponse,
    summary="現在のユーザー",
)
async def me(
    current_user: User = Depends(get_current_user),
) -> UserResponse:
    return UserResponse.model_validate(current_user)
