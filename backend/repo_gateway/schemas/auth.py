"""認証関連のPydanticスキーマ。

トークンログイン、セッションレスポンス、ユーザー情報のスキーマを定義する。
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class TokenLoginRequest(BaseModel):
    """アクセストークンによるログインリクエスト。"""

    username: str = Field(
        ...,
        min_length=1,
        max_length=39,
        description="GitHubログイン名",
    )
    token: str = Field(
        ...,
        min_length=1,
        description="GitHubアクセストークン（PAT）",
    )


class UserResponse(BaseModel):
    """ユーザー情報レスポンス。"""

    model_config = ConfigDict(from_attributes=True)

    user_id: int
    username: str
    email: str | None = None
    github_user_id: str


class SessionResponse(BaseModel):
    """セッショントークンレスポンス。"""

    token: str
    token_type: str = "bearer"
    user: UserResponse


class MessageResponse(BaseModel):
    """メッセージのみのレスポンス。"""

    message: str
