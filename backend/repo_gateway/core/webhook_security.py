"""GitHub Webhook署名検証モジュール。

生のリクエストボディに対するHMAC-SHA256を計算し、
``X-Hub-Signature-256`` ヘッダーの値と定数時間で比較する。
ボディは検証が済むまでパースしない。
"""

from __future__ import annotations

import hashlib
import hmac
import logging

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="


def compute_signature(raw_body: bytes, secret: str) -> str:
    """ボディのHMAC-SHA256を16進文字列で返す（プレフィックスなし）。"""
    return hmac.new(
        key=secret.encode("utf-8"),
        msg=raw_body,
        digestmod=hashlib.sha256,
    ).hexdigest()


def verify_signature(
    raw_body: bytes,
    provided_signature: str | None,
    secret: str,
) -> bool:
    """署名ヘッダーがボディと共有シークレットに一致するか検証する。

    Args:
        raw_body: パース前のリクエストボディ。
        provided_signature: ``sha256=<hex>`` 形式のヘッダー値。
        secret: GitHubと共有するWebhookシークレット。

    Returns:
        一致する場合True。
    """
    if not provided_signature or not provided_signature.startswith(SIGNATURE_PREFIX):
        return False

    received = provided_signature[len(SIGNATURE_PREFIX):].strip().lower()
    expected = compute_signature(raw_body, secret)

    return hmac.compare_digest(
        expected.encode("ascii"),
        received.encode("ascii", errors="replace"),
    )


class WebhookVerifier:
    """Webhook配信の真正性を判定する。

    シークレット未設定時のポリシー:
        - 既定: すべての配信を拒否する。
        - ``allow_unsigned=True``（開発用）: すべて受理し、毎回WARNINGを出す。
    """

    def __init__(self, secret: str | None, allow_unsigned: bool = False) -> None:
        """WebhookVerifierを初期化する。

        Args:
            secret: Webhookシークレット。未設定ならNone。
            allow_unsigned: シークレット未設定時に全配信を受理するか。
        """
        self._secret = secret or None
        self.allow_unsigned = allow_unsigned

        if self._secret is None:
            if allow_unsigned:
                logger.error(
                    "INSECURE: GITHUB_WEBHOOK_SECRET is not set and "
                    "WEBHOOK_ALLOW_UNSIGNED is enabled; all webhook deliveries "
                    "will be accepted without verification"
                )
            else:
                logger.warning(
                    "GITHUB_WEBHOOK_SECRET is not set; all webhook deliveries "
                    "will be rejected"
                )

    @property
    def configured(self) -> bool:
        """シークレットが設定済みか。"""
        return self._secret is not None

    def verify(self, raw_body: bytes, provided_signature: str | None) -> bool:
        """配信を受理してよいか判定する。

        Args:
            raw_body: パース前のリクエストボディ。
            provided_signature: ``X-Hub-Signature-256`` ヘッダー値。

        Returns:
            受理してよい場合True。
        """
        if self._secret is None:
            if self.allow_unsigned:
                logger.warning("INSECURE: accepting unsigned webhook delivery")
                return True
            logger.warning("Rejecting webhook delivery: no webhook secret configured")
            return False

        return verify_signature(raw_body, provided_signature, self._secret)
