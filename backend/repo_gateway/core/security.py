"""トークン暗号化とセッショントークンのモジュール。

cryptographyによるAES-256-GCMトークン暗号化（鍵はscryptでサーバー秘密鍵から導出）、
python-joseによるセッションJWT (HS256) の発行・検証を提供する。

どちらのコンポーネントも起動時に一度だけ生成し、依存性注入で各処理に渡す。
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt
from jose import ExpiredSignatureError, JWTError, jwt

from repo_gateway.core.exceptions import (
    ConfigurationError,
    DecryptionError,
    InvalidSessionToken,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# トークン暗号化 (AES-256-GCM)
# ---------------------------------------------------------------------------

KEY_LENGTH = 32
IV_LENGTH = 12
TAG_LENGTH = 16

KDF_SALT = b"repo-gateway/token-cipher/v1"
KDF_N = 2**14
KDF_R = 8
KDF_P = 1

# 認証対象の追加データ。他用途の暗号文の流用を防ぐ。
TOKEN_CONTEXT = b"repo-gateway:github-access-token"


@dataclass(frozen=True)
class EncryptedBlob:
    """暗号化済みトークン。

    永続化形式は ``iv:tag:ciphertext``（各セグメント16進数）。
    """

    iv: bytes
    auth_tag: bytes
    ciphertext: bytes

    def serialize(self) -> str:
        """保存用の文字列に変換する。"""
        return ":".join(
            (self.iv.hex(), self.auth_tag.hex(), self.ciphertext.hex())
        )

    @classmethod
    def parse(cls, value: str) -> EncryptedBlob:
        """保存形式の文字列を分解し、形を検証する。

        Args:
            value: ``serialize()`` で生成された文字列。

        Returns:
            EncryptedBlobインスタンス。

        Raises:
            DecryptionError: セグメント数・16進表記・長さのいずれかが不正な場合。
        """
        if not isinstance(value, str):
            raise DecryptionError()

        parts = value.split(":")
        if len(parts) != 3:
            raise DecryptionError()

        try:
            iv, tag, ciphertext = (bytes.fromhex(p) for p in parts)
        except ValueError:
            raise DecryptionError() from None

        if len(iv) != IV_LENGTH or len(tag) != TAG_LENGTH:
            raise DecryptionError()

        return cls(iv=iv, auth_tag=tag, ciphertext=ciphertext)


class TokenCipher:
    """サーバー秘密鍵から導出した鍵でトークンを暗号化・復号する。

    導出鍵はインスタンス内にのみ保持し、永続化しない。
    """

    def __init__(self, server_secret: str | None) -> None:
        """TokenCipherを初期化する。

        Args:
            server_secret: 鍵導出の入力となるサーバー秘密鍵。
        """
        self._server_secret = server_secret
        self._key: bytes | None = None

    @property
    def configured(self) -> bool:
        """サーバー秘密鍵が設定済みか。"""
        return bool(self._server_secret)

    def _derive_key(self) -> bytes:
        """scryptで32バイト鍵を導出する（初回のみ計算）。

        Raises:
            ConfigurationError: サーバー秘密鍵が未設定の場合。
        """
        if self._key is None:
            if not self._server_secret:
                raise ConfigurationError("SECRET_KEY is required for token encryption")
            kdf = Scrypt(salt=KDF_SALT, length=KEY_LENGTH, n=KDF_N, r=KDF_R, p=KDF_P)
            self._key = kdf.derive(self._server_secret.encode("utf-8"))
        return self._key

    def encrypt(self, plaintext: str) -> EncryptedBlob:
        """平文をAES-256-GCMで暗号化する。

        呼び出し毎に新しいIVを生成する。

        Args:
            plaintext: 暗号化する平文文字列。

        Returns:
            EncryptedBlobインスタンス。

        Raises:
            ConfigurationError: サーバー秘密鍵が未設定の場合。
        """
        aesgcm = AESGCM(self._derive_key())
        iv = os.urandom(IV_LENGTH)
        # cryptographyは ciphertext + tag(16) を連結して返す
        sealed = aesgcm.encrypt(iv, plaintext.encode("utf-8"), TOKEN_CONTEXT)
        return EncryptedBlob(
            iv=iv,
            auth_tag=sealed[-TAG_LENGTH:],
            ciphertext=sealed[:-TAG_LENGTH],
        )

    def decrypt(self, blob: EncryptedBlob | str) -> str:
        """暗号文を復号する。

        失敗理由（形式不正・認証失敗・鍵未設定）は呼び出し元に区別させない。

        Args:
            blob: EncryptedBlob、または保存形式の文字列。

        Returns:
            復号された平文文字列。

        Raises:
            DecryptionError: 復号に失敗した場合。
        """
        if isinstance(blob, str):
            blob = EncryptedBlob.parse(blob)

        try:
            key = self._derive_key()
        except ConfigurationError:
            logger.error("Token decryption attempted without SECRET_KEY")
            raise DecryptionError() from None

        try:
            plaintext = AESGCM(key).decrypt(
                blob.iv,
                blob.ciphertext + blob.auth_tag,
                TOKEN_CONTEXT,
            )
            return plaintext.decode("utf-8")
        except (InvalidTag, ValueError, UnicodeDecodeError):
            raise DecryptionError() from None


# ---------------------------------------------------------------------------
# セッショントークン (JWT, HS256)
# ---------------------------------------------------------------------------

SESSION_ALGORITHM = "HS256"
SESSION_TOKEN_TYPE = "session"
DEFAULT_SESSION_LIFETIME = timedelta(days=7)


@dataclass(frozen=True)
class SessionClaim:
    """セッショントークンに含まれるクレーム。"""

    subject_id: int
    username: str
    issued_at: datetime
    expires_at: datetime

    @classmethod
    def new(
        cls,
        subject_id: int,
        username: str,
        lifetime: timedelta = DEFAULT_SESSION_LIFETIME,
    ) -> SessionClaim:
        """現在時刻を起点にクレームを生成する。

        JWTの時刻は秒精度のため、マイクロ秒は切り捨てる。
        """
        now = datetime.now(timezone.utc).replace(microsecond=0)
        return cls(
            subject_id=subject_id,
            username=username,
            issued_at=now,
            expires_at=now + lifetime,
        )


class SessionTokenService:
    """セッショントークンの発行・検証。

    失効リストは持たない。SECRET_KEYのローテーションで全トークンが無効になる。
    """

    def __init__(
        self,
        secret: str | None,
        default_lifetime: timedelta = DEFAULT_SESSION_LIFETIME,
    ) -> None:
        self._secret = secret
        self.default_lifetime = default_lifetime

    def _require_secret(self) -> str:
        if not self._secret:
            raise ConfigurationError("SECRET_KEY is required for session tokens")
        return self._secret

    def issue(self, claim: SessionClaim) -> str:
        """クレームに署名してトークンを生成する。

        Args:
            claim: SessionClaimインスタンス。

        Returns:
            JWT文字列（HS256署名）。

        Raises:
            ConfigurationError: SECRET_KEYが未設定の場合。
        """
        payload: dict = {
            "sub": str(claim.subject_id),
            "username": claim.username,
            "type": SESSION_TOKEN_TYPE,
            "iat": claim.issued_at,
            "exp": claim.expires_at,
        }
        return jwt.encode(payload, self._require_secret(), algorithm=SESSION_ALGORITHM)

    def issue_for(self, subject_id: int, username: str) -> str:
        """既定の有効期間でトークンを発行する。"""
        claim = SessionClaim.new(subject_id, username, lifetime=self.default_lifetime)
        return self.issue(claim)

    def verify(self, token: str) -> SessionClaim:
        """トークンを検証しクレームを返す。

        Args:
            token: JWT文字列。

        Returns:
            SessionClaimインスタンス。

        Raises:
            InvalidSessionToken: 署名不正・期限切れ・形式不正の場合。
            ConfigurationError: SECRET_KEYが未設定の場合。
        """
        secret = self._require_secret()
        try:
            payload: dict = jwt.decode(token, secret, algorithms=[SESSION_ALGORITHM])
        except ExpiredSignatureError:
            logger.info("Session token rejected: expired")
            raise InvalidSessionToken() from None
        except JWTError as e:
            logger.info("Session token rejected: %s", type(e).__name__)
            raise InvalidSessionToken() from None

        try:
            if payload["type"] != SESSION_TOKEN_TYPE:
                raise ValueError("unexpected token type")
            username = payload["username"]
            if not isinstance(username, str):
                raise TypeError("username must be a string")
            return SessionClaim(
                subject_id=int(payload["sub"]),
                username=username,
                issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc),
                expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.info("Session token rejected: malformed payload (%s)", e)
            raise InvalidSessionToken() from None
