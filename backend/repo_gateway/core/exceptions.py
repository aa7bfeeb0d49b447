"""カスタム例外クラスおよびFastAPI例外ハンドラ登録。

アプリケーション全体で使用するドメイン固有の例外階層と、
FastAPIアプリケーションへのハンドラ登録関数を提供する。

暗号・署名まわりの失敗は発生箇所で捕捉し、呼び出し元には
どの検査で失敗したかを区別できない粗い例外として再送出する。
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# 基底例外
# ---------------------------------------------------------------------------

class AppException(Exception):
    """アプリケーション基底例外。

    Attributes:
        status_code: HTTPステータスコード。
        detail: エラー詳細メッセージ（レスポンスにそのまま載る）。
    """

    def __init__(
        self,
        status_code: int = 500,
        detail: str = "Internal server error",
    ) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(detail)


# ---------------------------------------------------------------------------
# 設定
# ---------------------------------------------------------------------------

class ConfigurationError(AppException):
    """サーバー設定の欠落 (500)。リクエスト単位では回復しない。

    Attributes:
        reason: ログ用の詳細。レスポンスには含めない。
    """

    def __init__(self, reason: str) -> None:
        super().__init__(status_code=500, detail="Internal server error")
        self.reason = reason

    def __str__(self) -> str:
        return self.reason


# ---------------------------------------------------------------------------
# 暗号・同期（内部用、HTTPには直接出さない）
# ---------------------------------------------------------------------------

class DecryptionError(Exception):
    """暗号文の復号失敗。

    形式不正・認証タグ不一致・鍵未設定のいずれも同じ例外で表す。
    """

    def __init__(self) -> None:
        super().__init__("Unable to decrypt data")


class SyncNoop(Exception):
    """Webhookイベントを適用しないことを示す（エラーではない）。"""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


# ---------------------------------------------------------------------------
# 認証・認可
# ---------------------------------------------------------------------------

class AuthenticationError(AppException):
    """認証エラー (401 Unauthorized)。"""

    def __init__(self, detail: str = "Authentication failed") -> None:
        super().__init__(status_code=401, detail=detail)


class InvalidSessionToken(AuthenticationError):
    """セッショントークンの欠落・期限切れ・改ざん・形式不正。"""

    def __init__(self) -> None:
        super().__init__(detail="Could not validate credentials")


class InvalidAccessToken(AuthenticationError):
    """保存済みGitHubトークンが復号できない。"""

    def __init__(self) -> None:
        super().__init__(detail="Invalid access token")


class WebhookSignatureMismatch(AuthenticationError):
    """Webhook署名の検証失敗。"""

    def __init__(self) -> None:
        super().__init__(detail="Invalid signature")


# ---------------------------------------------------------------------------
# リクエスト・リソース
# ---------------------------------------------------------------------------

class BadRequestError(AppException):
    """不正なリクエスト (400 Bad Request)。"""

    def __init__(self, detail: str = "Bad request") -> None:
        super().__init__(status_code=400, detail=detail)


class NotFoundError(AppException):
    """リソース未検出エラー (404 Not Found)。"""

    def __init__(self, detail: str = "Resource not found") -> None:
        super().__init__(status_code=404, detail=detail)


# ---------------------------------------------------------------------------
# 外部API
# ---------------------------------------------------------------------------

class ExternalAPIError(AppException):
    """外部APIエラー (502 Bad Gateway)。"""

    def __init__(self, detail: str = "External API error") -> None:
        super().__init__(status_code=502, detail=detail)


class GitHubRateLimitError(ExternalAPIError):
    """GitHub APIレート制限エラー。"""

    def __init__(self, detail: str = "GitHub API rate limit exceeded") -> None:
        super().__init__(detail=detail)


# ---------------------------------------------------------------------------
# FastAPI例外ハンドラ登録
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """FastAPIアプリケーションにカスタム例外ハンドラを登録する。

    Args:
        app: FastAPIアプリケーションインスタンス。
    """

    @app.exception_handler(AppException)
    async def app_exception_handler(
        request: Request,
        exc: AppException,
    ) -> JSONResponse:
        """AppException系例外をJSON形式でレスポンスする。"""
        if isinstance(exc, ConfigurationError):
            logger.critical("Configuration error on %s: %s", request.url.path, exc.reason)
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """未処理例外をキャッチし500レスポンスを返す。"""
        logger.error(
            "Unhandled error on %s %s",
            request.method,
            request.url.path,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )
