"""FastAPIアプリケーションのエントリポイント。

共有コンポーネント（トークン暗号化、セッショントークン、Webhook検証、
GitHubレート制限、認証情報ゲートウェイ）の生成、ライフサイクル管理、
ミドルウェア設定、ルーティング、例外ハンドラ登録を行う。
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from repo_gateway.api.v1.router import router as api_v1_router
from repo_gateway.config import Settings, settings
from repo_gateway.core.exceptions import ConfigurationError, register_exception_handlers
from repo_gateway.core.rate_limiter import GitHubRateLimiter
from repo_gateway.core.security import SessionTokenService, TokenCipher
from repo_gateway.core.webhook_security import WebhookVerifier
from repo_gateway.database import engine
from repo_gateway.services.credential_gateway import CredentialGateway

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def build_components(app: FastAPI, config: Settings) -> None:
    """共有コンポーネントを生成して ``app.state`` に登録する。

    Args:
        app: FastAPIアプリケーションインスタンス。
        config: アプリケーション設定。
    """
    cipher = TokenCipher(config.SECRET_KEY)
    app.state.token_cipher = cipher
    app.state.session_tokens = SessionTokenService(
        config.SECRET_KEY,
        default_lifetime=timedelta(days=config.SESSION_TOKEN_EXPIRE_DAYS),
    )
    app.state.webhook_verifier = WebhookVerifier(
        config.GITHUB_WEBHOOK_SECRET,
        allow_unsigned=config.WEBHOOK_ALLOW_UNSIGNED,
    )
    app.state.credential_gateway = CredentialGateway(
        cipher,
        rate_limiter=GitHubRateLimiter(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """アプリケーションのライフサイクルを管理する。

    起動時にSECRET_KEYの有無を確認し、鍵導出を済ませておく。

    Args:
        app: FastAPIアプリケーションインスタンス。

    Raises:
        ConfigurationError: SECRET_KEYが未設定の場合。
    """
    # --- 起動処理 ---
    logger.info("Application startup")

    cipher: TokenCipher = app.state.token_cipher
    if not cipher.configured:
        logger.critical("SECRET_KEY is not set; refusing to start")
        raise ConfigurationError("SECRET_KEY is required")
    # 鍵導出（scrypt）を最初のリクエスト前に実行しておく
    cipher.encrypt("")

    yield

    # --- シャットダウン処理 ---
    logger.info("Application shutdown")
    await engine.dispose()


app = FastAPI(
    title="Repo Gateway API",
    description="GitHubリポジトリ管理ダッシュボードのAPI（トークン暗号化・Webhook同期）",
    version="1.0.0",
    lifespan=lifespan,
)

build_components(app, settings)

# ---------------------------------------------------------------------------
# ミドルウェア
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# 例外ハンドラ
# ---------------------------------------------------------------------------
register_exception_handlers(app)

# ---------------------------------------------------------------------------
# ルーティング
# ---------------------------------------------------------------------------
app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """ヘルスチェックエンドポイント。"""
    return {"status": "ok"}
