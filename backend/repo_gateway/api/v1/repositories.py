"""リポジトリ管理エンドポイント。

GitHubリポジトリの一覧・詳細・作成・更新・削除と、
コラボレーターの一覧・追加・削除のAPIを提供する。
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from fastapi import APIRouter, Depends, Query

from repo_gateway.api.deps import get_credential_gateway, get_current_user, get_mirror_store
from repo_gateway.models import User
from repo_gateway.schemas.auth import MessageResponse
from repo_gateway.schemas.repository import (
    CollaboratorAddRequest,
    RepositoryCreateRequest,
    RepositoryUpdateRequest,
)
from repo_gateway.services.credential_gateway import CredentialGateway
from repo_gateway.services.mirror_store import MirrorStore
from repo_gateway.services.repository_service import RepositoryService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_repository_service(
    store: MirrorStore = Depends(get_mirror_store),
    gateway: CredentialGateway = Depends(get_credential_gateway),
) -> RepositoryService:
    return RepositoryService(store=store, gateway=gateway)


@router.get(
    "",
    summary="リポジトリ一覧",
)
async def list_repositories(
    type: Literal["all", "owner", "public", "private", "member"] = Query(
        default="all",
        description="リポジトリ種別",
    ),
    sort: Literal["created", "updated", "pushed", "full_name"] = Query(
        default="updated",
        description="ソートキー",
    ),
    search: str = Query(default="", max_length=100, description="名前・説明の部分一致"),
    current_user: User = Depends(get_current_user),
    service: RepositoryService = Depends(get_repository_service),
) -> list[dict[str, Any]]:
    """GitHubからリポジトリ一覧を取得し、ローカルミラーを更新して返す。"""
    return await service.list_repositories(
        current_user,
        type=type,
        sort=sort,
        search=search,
    )


@router.post(
    "",
    status_code=201,
    summary="リポジトリ作成",
)
async def create_repository(
    request: RepositoryCreateRequest,
    current_user: User = Depends(get_current_user),
    service: RepositoryService = Depends(get_repository_service),
) -> dict[str, Any]:
    return await service.create_repository(
        current_user,
        name=request.name,
        description=request.description,
        private=request.private,
    )


@router.get(
    "/{owner}/{repo}",
    summary="リポジトリ詳細",
)
async def get_repository(
    owner: str,
    repo: str,
    current_user: User = Depends(get_current_user),
    service: RepositoryService = Depends(get_repository_service),
) -> dict[str, Any]:
    return await service.get_repository(current_user, owner, repo)


@router.patch(
    "/{owner}/{repo}",
    summary="リポジトリ更新",
)
async def update_repository(
    owner: str,
    repo: str,
    request: RepositoryUpdateRequest,
    current_user: User = Depends(get_current_user),
    service: RepositoryService = Depends(get_repository_service),
) -> dict[str, Any]:
    return await service.update_repository(current_user, owner, repo, request.to_github())


@router.delete(
    "/{owner}/{repo}",
    response_model=MessageResponse,
    summary="リポジトリ削除",
)
async def delete_repository(
    owner: str,
    repo: str,
    current_user: User = Depends(get_current_user),
    service: RepositoryService = Depends(get_repository_service),
) -> MessageResponse:
    await service.delete_repository(current_user, owner, repo)
    return MessageResponse(message="Repository deleted successfully")


# ---------------------------------------------------------------------------
# コラボレーター
# ---------------------------------------------------------------------------

@router.get(
    "/{owner}/{repo}/collaborators",
    summary="コラボレーター一覧",
)
async def list_collaborators(
    owner: str,
    repo: str,
    current_user: User = Depends(get_current_user),
    service: RepositoryService = Depends(get_repository_service),
) -> list[dict[str, Any]]:
    return await service.get_collaborators(current_user, owner, repo)


@router.post(
    "/{owner}/{repo}/collaborators",
    response_model=MessageResponse,
    summary="コラボレーター追加",
)
async def add_collaborator(
    owner: str,
    repo: str,
    request: CollaboratorAddRequest,
    current_user: User = Depends(get_current_user),
    service: RepositoryService = Depends(get_repository_service),
) -> MessageResponse:
    await service.add_collaborator(
        current_user,
        owner,
        repo,
        username=request.username,
        permission=request.permission,
    )
    return MessageResponse(message="Collaborator added successfully")


@router.delete(
    "/{owner}/{repo}/collaborators/{username}",
    response_model=MessageResponse,
    summary="コラボレーター削除",
)
async def remove_collaborator(
    owner: str,
    repo: str,
    username: str,
    current_user: User = Depends(get_current_user),
    service: RepositoryService = Depends(get_repository_service),
) -> MessageResponse:
    await service.remove_collaborator(current_user, owner, repo, username)
    return MessageResponse(message="Collaborator removed successfully")
