"""ユーザー関連のPydanticスキーマ。

ダッシュボード統計、アクティビティ履歴、プロフィールのスキーマを定義する。
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from repo_gateway.schemas.auth import UserResponse
from repo_gateway.schemas.common import PaginationMeta
from repo_gateway.schemas.repository import MirroredRepositoryResponse


class DashboardStatsResponse(BaseModel):
    """ダッシュボード統計レスポンス。"""

    total_repos: int
    total_stars: int
    languages: dict[str, int] = Field(default_factory=dict)
    repos: list[dict[str, Any]] = Field(default_factory=list)


class ActivityResponse(BaseModel):
    """アクティビティ1件。"""

    model_config = ConfigDict(from_attributes=True)

    action: str
    details: str
    timestamp: datetime


class ActivityListResponse(BaseModel):
    """アクティビティ一覧レスポンス。"""

    activities: list[ActivityResponse]
    pagination: PaginationMeta


class ProfileResponse(UserResponse):
    """プロフィールレスポンス。"""

    repositories: list[MirroredRepositoryResponse] = Field(default_factory=list)
    activities: list[ActivityResponse] = Field(default_factory=list)


class ProfileUpdateRequest(BaseModel):
    """プロフィール更新リクエスト。"""

    email: str | None = Field(
        default=None,
        max_length=255,
        description="メールアドレス",
    )
