"""リポジトリ関連のPydanticスキーマ。

リポジトリ作成・更新、コラボレーター追加、ミラー情報のスキーマを定義する。
GitHubから返るリポジトリJSONはそのまま中継する。
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class RepositoryCreateRequest(BaseModel):
    """リポジトリ作成リクエスト。"""

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="リポジトリ名",
    )
    description: str | None = Field(
        default=None,
        description="説明（任意）",
    )
    private: bool = Field(
        default=False,
        description="プライベートリポジトリとして作成するか",
    )


class RepositoryUpdateRequest(BaseModel):
    """リポジトリ更新リクエスト。指定した項目だけをGitHubに送る。"""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    homepage: str | None = None
    private: bool | None = None
    has_issues: bool | None = None
    has_projects: bool | None = None
    has_wiki: bool | None = None
    default_branch: str | None = None
    archived: bool | None = None

    def to_github(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class CollaboratorAddRequest(BaseModel):
    """コラボレーター追加リクエスト。"""

    username: str = Field(
        ...,
        min_length=1,
        max_length=39,
        description="追加するGitHubユーザー名",
    )
    permission: Literal["pull", "triage", "push", "maintain", "admin"] = Field(
        default="push",
        description="付与する権限",
    )


class MirroredRepositoryResponse(BaseModel):
    """ローカルミラーのリポジトリ情報。"""

    model_config = ConfigDict(from_attributes=True)

    github_repo_id: str
    name: str
    description: str | None = None
    language: str | None = None
    star_count: int = 0
    fork_count: int = 0
