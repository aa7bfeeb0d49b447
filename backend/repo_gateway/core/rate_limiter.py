"""GitHub APIレート制限管理モジュール。

レスポンスヘッダー (X-RateLimit-Remaining / X-RateLimit-Reset) に基づき、
残数が尽きた場合はリセット時刻まで後続リクエストを待機させる。
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Mapping, Optional

logger = logging.getLogger(__name__)


class GitHubRateLimiter:
    """GitHub APIのヘッダーベースレート制限。

    アプリケーション起動時に一つ生成し、全GitHubClientで共有する。

    Attributes:
        max_wait_seconds: 1回の待機の上限（秒）。
    """

    def __init__(self, max_wait_seconds: float = 60.0) -> None:
        self.max_wait_seconds = max_wait_seconds
        self._remaining: Optional[int] = None
        self._reset: Optional[float] = None
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """GitHub APIリクエスト前に呼び出し、レート制限を遵守する。

        X-RateLimit-Remaining が0の場合、リセット時刻まで非同期で待機する。
        ヘッダー情報が未設定の場合は即座に通過する。
        """
        async with self._lock:
            if self._remaining is not None and self._remaining <= 0:
                if self._reset is not None:
                    wait_time = min(self._reset - time.time(), self.max_wait_seconds)
                    if wait_time > 0:
                        logger.warning(
                            "GitHub rate limit exhausted, waiting %.1fs",
                            wait_time,
                        )
                        await asyncio.sleep(wait_time)
                # リセット後に制限状態をクリア
                self._remaining = None
                self._reset = None

    def update(self, headers: Mapping[str, str]) -> None:
        """GitHub APIレスポンスヘッダーからレート制限情報を更新する。

        Args:
            headers: HTTPレスポンスヘッダー。
        """
        remaining = headers.get("X-RateLimit-Remaining")
        reset = headers.get("X-RateLimit-Reset")

        try:
            if remaining is not None:
                self._remaining = int(remaining)
            if reset is not None:
                self._reset = float(reset)
        except ValueError:
            logger.debug("Ignoring malformed rate limit headers: %r / %r", remaining, reset)

    @property
    def remaining(self) -> Optional[int]:
        """直近のレスポンスで通知された残りリクエスト数。"""
        return self._remaining
