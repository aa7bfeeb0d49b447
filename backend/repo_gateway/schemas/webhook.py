"""Webhook関連のPydanticスキーマ。"""

from __future__ import annotations

from pydantic import BaseModel


class WebhookAck(BaseModel):
    """Webhook受信応答。処理内容の詳細は返さない。"""

    message: str = "Webhook processed successfully"
