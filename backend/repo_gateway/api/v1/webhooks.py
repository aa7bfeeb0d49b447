"""GitHub Webhook受信エンドポイント。

生のボディで署名を検証してからJSONをパースし、イベント同期サービスに渡す。
失敗時のレスポンスには検証や処理の内部情報を含めない。
"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Request

from repo_gateway.api.deps import get_mirror_store, get_webhook_verifier
from repo_gateway.core.exceptions import BadRequestError, WebhookSignatureMismatch
from repo_gateway.core.webhook_security import WebhookVerifier
from repo_gateway.schemas.webhook import WebhookAck
from repo_gateway.services.event_synchronizer import EventKind, EventSynchronizer
from repo_gateway.services.mirror_store import MirrorStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/github",
    response_model=WebhookAck,
    summary="GitHub Webhook受信",
)
async def github_webhook(
    request: Request,
    verifier: WebhookVerifier = Depends(get_webhook_verifier),
    store: MirrorStore = Depends(get_mirror_store),
) -> WebhookAck:
    """GitHubからのWebhook配信を検証して処理する。

    Args:
        request: 生のHTTPリクエスト。
        verifier: Webhook署名検証コンポーネント。
        store: ミラーストア。

    Returns:
        受信応答。

    Raises:
        WebhookSignatureMismatch: 署名検証に失敗した場合。
        BadRequestError: 検証後のボディがJSONオブジェクトでない場合。
    """
    raw_body = await request.body()
    delivery_id = request.headers.get("X-GitHub-Delivery", "-")
    event_header = request.headers.get("X-GitHub-Event")

    if not verifier.verify(raw_body, request.headers.get("X-Hub-Signature-256")):
        logger.warning(
            "Rejected webhook delivery %s (event=%s, client=%s, user_agent=%s)",
            delivery_id,
            event_header,
            request.client.host if request.client else "-",
            request.headers.get("User-Agent", "-"),
        )
        raise WebhookSignatureMismatch()

    try:
        payload = json.loads(raw_body)
    except ValueError:
        raise BadRequestError("Invalid payload") from None
    if not isinstance(payload, dict):
        raise BadRequestError("Invalid payload")

    kind = EventKind.from_header(event_header)
    if kind is EventKind.UNKNOWN:
        logger.info("Webhook delivery %s has unhandled event %r", delivery_id, event_header)

    result = await EventSynchronizer(store).handle(kind, payload)
    logger.debug(
        "Webhook delivery %s processed: applied=%s reason=%s",
        delivery_id,
        result.applied,
        result.reason,
    )
    return WebhookAck()
