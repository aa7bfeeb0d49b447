"""共通Pydanticスキーマ。"""

from __future__ import annotations

import math

from pydantic import BaseModel, Field, computed_field


class PaginationMeta(BaseModel):
    """ページネーションメタ情報。"""

    page: int = Field(..., ge=1, description="現在のページ番号")
    limit: int = Field(..., ge=1, le=100, description="1ページあたりの件数")
    total: int = Field(..., ge=0, description="総件数")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def pages(self) -> int:
        """総ページ数。"""
        return math.ceil(self.total / self.limit) if self.total else 0
