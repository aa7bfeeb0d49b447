"""ユーザーエンドポイント。

ダッシュボード統計、アクティビティ履歴、プロフィールの取得・更新のAPIを提供する。
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from repo_gateway.api.deps import get_credential_gateway, get_current_user, get_mirror_store
from repo_gateway.models import User
from repo_gateway.schemas.auth import UserResponse
from repo_gateway.schemas.common import PaginationMeta
from repo_gateway.schemas.repository import MirroredRepositoryResponse
from repo_gateway.schemas.user import (
    ActivityListResponse,
    ActivityResponse,
    DashboardStatsResponse,
    ProfileResponse,
    ProfileUpdateRequest,
)
from repo_gateway.services.credential_gateway import CredentialGateway
from repo_gateway.services.mirror_store import MirrorStore
from repo_gateway.services.user_service import UserService

router = APIRouter()


def get_user_service(
    store: MirrorStore = Depends(get_mirror_store),
    gateway: CredentialGateway = Depends(get_credential_gateway),
) -> UserService:
    return UserService(store=store, gateway=gateway)


@router.get(
    "/dashboard",
    response_model=DashboardStatsResponse,
    summary="ダッシュボード統計",
)
async def get_dashboard(
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> DashboardStatsResponse:
    stats = await service.get_dashboard_stats(current_user)
    return DashboardStatsResponse(**stats)


@router.get(
    "/activities",
    response_model=ActivityListResponse,
    summary="アクティビティ履歴",
)
async def get_activities(
    page: int = Query(default=1, ge=1, description="ページ番号"),
    limit: int = Query(default=20, ge=1, le=100, description="1ページあたりの件数"),
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> ActivityListResponse:
    """アクティビティを新しい順に取得する。

    Args:
        page: ページ番号。
        limit: 1ページあたりの件数。
        current_user: 認証済みユーザー。
        service: ユーザーサービス。

    Returns:
        アクティビティ一覧とページネーション情報。
    """
    activities, total = await service.get_activities(current_user, page=page, limit=limit)
    return ActivityListResponse(
        activities=[ActivityResponse.model_validate(a) for a in activities],
        pagination=PaginationMeta(page=page, limit=limit, total=total),
    )


@router.get(
    "/profile",
    response_model=ProfileResponse,
    summary="プロフィール取得",
)
async def get_profile(
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> ProfileResponse:
    repositories, activities = await service.get_profile(current_user)
    return ProfileResponse(
        **UserResponse.model_validate(current_user).model_dump(),
        repositories=[MirroredRepositoryResponse.model_validate(r) for r in repositories],
        activities=[ActivityResponse.model_validate(a) for a in activities],
    )


@router.patch(
    "/profile",
    response_model=UserResponse,
    summary="プロフィール更新",
)
async def update_profile(
    request: ProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> UserResponse:
    updated = await service.update_profile(current_user, email=request.email)
    return UserResponse(**updated)
