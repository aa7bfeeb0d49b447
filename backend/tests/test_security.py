"""Tests for ``repo_gateway.core.security``: token encryption, session JWT."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from repo_gateway.core.exceptions import (
    ConfigurationError,
    DecryptionError,
    InvalidSessionToken,
)
from repo_gateway.core.security import (
    IV_LENGTH,
    SESSION_ALGORITHM,
    TAG_LENGTH,
    EncryptedBlob,
    SessionClaim,
    SessionTokenService,
    TokenCipher,
)

SECRET = "unit-test-server-secret"


@pytest.fixture(scope="module")
def cipher() -> TokenCipher:
    # scrypt is slow; derive once per module
    return TokenCipher(SECRET)


def _flip_first_byte(segment: str) -> str:
    raw = bytearray(bytes.fromhex(segment))
    raw[0] ^= 0x01
    return raw.hex()


# ---------------------------------------------------------------------------
# Token encryption
# ---------------------------------------------------------------------------


class TestTokenCipher:
    """AES-256-GCM encrypt / decrypt."""

    def test_round_trip(self, cipher: TokenCipher) -> None:
        original = "ghp_abc123XYZsecretToken"
        blob = cipher.encrypt(original)
        assert cipher.decrypt(blob) == original

    def test_round_trip_via_serialized_form(self, cipher: TokenCipher) -> None:
        stored = cipher.encrypt("ghp_serialized").serialize()
        assert cipher.decrypt(stored) == "ghp_serialized"

    def test_round_trip_unicode(self, cipher: TokenCipher) -> None:
        assert cipher.decrypt(cipher.encrypt("トークン-🔑")) == "トークン-🔑"

    def test_serialized_layout(self, cipher: TokenCipher) -> None:
        """Stored form is ``iv:tag:ciphertext`` in hex."""
        stored = cipher.encrypt("abc").serialize()
        iv, tag, ct = stored.split(":")
        assert len(bytes.fromhex(iv)) == IV_LENGTH
        assert len(bytes.fromhex(tag)) == TAG_LENGTH
        assert len(bytes.fromhex(ct)) == 3

    def test_same_plaintext_different_ciphertext(self, cipher: TokenCipher) -> None:
        """A fresh IV is drawn for every call."""
        a = cipher.encrypt("same-token")
        b = cipher.encrypt("same-token")
        assert a.iv != b.iv
        assert a.serialize() != b.serialize()

    def test_tampered_ciphertext_rejected(self, cipher: TokenCipher) -> None:
        iv, tag, ct = cipher.encrypt("ghp_tamper").serialize().split(":")
        with pytest.raises(DecryptionError):
            cipher.decrypt(f"{iv}:{tag}:{_flip_first_byte(ct)}")

    def test_tampered_tag_rejected(self, cipher: TokenCipher) -> None:
        iv, tag, ct = cipher.encrypt("ghp_tamper").serialize().split(":")
        with pytest.raises(DecryptionError):
            cipher.decrypt(f"{iv}:{_flip_first_byte(tag)}:{ct}")

    def test_tampered_iv_rejected(self, cipher: TokenCipher) -> None:
        iv, tag, ct = cipher.encrypt("ghp_tamper").serialize().split(":")
        with pytest.raises(DecryptionError):
            cipher.decrypt(f"{_flip_first_byte(iv)}:{tag}:{ct}")

    def test_wrong_key_rejected(self, cipher: TokenCipher) -> None:
        stored = cipher.encrypt("ghp_other_key").serialize()
        other = TokenCipher("a-different-server-secret")
        with pytest.raises(DecryptionError):
            other.decrypt(stored)

    @pytest.mark.parametrize(
        "value",
        [
            "",
            "not-a-blob",
            "aa:bb",
            "aa:bb:cc:dd",
            "zz:zz:zz",
            # IV too short
            f"{'00' * 4}:{'00' * TAG_LENGTH}:00",
            # tag too short
            f"{'00' * IV_LENGTH}:{'00' * 4}:00",
        ],
    )
    def test_malformed_blob_rejected(self, cipher: TokenCipher, value: str) -> None:
        with pytest.raises(DecryptionError):
            cipher.decrypt(value)

    def test_non_string_rejected(self) -> None:
        with pytest.raises(DecryptionError):
            EncryptedBlob.parse(None)  # type: ignore[arg-type]

    def test_encrypt_without_secret_raises(self) -> None:
        unconfigured = TokenCipher(None)
        assert unconfigured.configured is False
        with pytest.raises(ConfigurationError):
            unconfigured.encrypt("ghp_x")

    def test_decrypt_without_secret_is_decryption_error(self, cipher: TokenCipher) -> None:
        stored = cipher.encrypt("ghp_x").serialize()
        with pytest.raises(DecryptionError):
            TokenCipher("").decrypt(stored)


# ---------------------------------------------------------------------------
# Session tokens
# ---------------------------------------------------------------------------


class TestSessionTokens:
    """JWT issue and verification."""

    def test_round_trip(self) -> None:
        sessions = SessionTokenService(SECRET)
        token = sessions.issue_for(7, "octocat")
        claim = sessions.verify(token)
        assert claim.subject_id == 7
        assert claim.username == "octocat"
        assert claim.expires_at - claim.issued_at == timedelta(days=7)

    def test_default_lifetime_is_configurable(self) -> None:
        sessions = SessionTokenService(SECRET, default_lifetime=timedelta(hours=1))
        claim = sessions.verify(sessions.issue_for(1, "a"))
        assert claim.expires_at - claim.issued_at == timedelta(hours=1)

    def test_expired_token_rejected(self) -> None:
        sessions = SessionTokenService(SECRET)
        past = datetime.now(timezone.utc).replace(microsecond=0) - timedelta(days=8)
        claim = SessionClaim(
            subject_id=1,
            username="octocat",
            issued_at=past,
            expires_at=past + timedelta(days=7),
        )
        with pytest.raises(InvalidSessionToken):
            sessions.verify(sessions.issue(claim))

    def test_wrong_key_rejected(self) -> None:
        token = SessionTokenService("other-secret").issue_for(1, "octocat")
        with pytest.raises(InvalidSessionToken):
            SessionTokenService(SECRET).verify(token)

    def test_garbage_rejected(self) -> None:
        with pytest.raises(InvalidSessionToken):
            SessionTokenService(SECRET).verify("not.a.jwt")

    def test_wrong_token_type_rejected(self) -> None:
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {
                "sub": "1",
                "username": "octocat",
                "type": "refresh",
                "iat": now,
                "exp": now + timedelta(minutes=5),
            },
            SECRET,
            algorithm=SESSION_ALGORITHM,
        )
        with pytest.raises(InvalidSessionToken):
            SessionTokenService(SECRET).verify(token)

    def test_missing_claims_rejected(self) -> None:
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": "1", "type": "session", "exp": now + timedelta(minutes=5)},
            SECRET,
            algorithm=SESSION_ALGORITHM,
        )
        with pytest.raises(InvalidSessionToken):
            SessionTokenService(SECRET).verify(token)

    def test_non_numeric_subject_rejected(self) -> None:
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {
                "sub": "abc",
                "username": "octocat",
                "type": "session",
                "iat": now,
                "exp": now + timedelta(minutes=5),
            },
            SECRET,
            algorithm=SESSION_ALGORITHM,
        )
        with pytest.raises(InvalidSessionToken):
            SessionTokenService(SECRET).verify(token)

    def test_missing_secret_is_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError):
            SessionTokenService(None).issue_for(1, "octocat")
        with pytest.raises(ConfigurationError):
            SessionTokenService("").verify("anything")
