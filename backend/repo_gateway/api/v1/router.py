"""API v1 ルーター集約モジュール。

各ドメインのルーターを統合し、プレフィックスとタグを設定する。
"""

from __future__ import annotations

from fastapi import APIRouter

from repo_gateway.api.v1.auth import router as auth_router
from repo_gateway.api.v1.repositories import router as repositories_router
from repo_gateway.api.v1.users import router as users_router
from repo_gateway.api.v1.webhooks import router as webhooks_router

router = APIRouter()

router.include_router(
    auth_router,
    prefix="/auth",
    tags=["auth"],
)

router.include_router(
    repositories_router,
    prefix="/repositories",
    tags=["repositories"],
)

router.include_router(
    users_router,
    prefix="/users",
    tags=["users"],
)

router.include_router(
    webhooks_router,
    prefix="/webhooks",
    tags=["webhooks"],
)
