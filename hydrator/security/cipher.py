"""hydrator.security.cipher

Symmetric encryption for persisted state.

Fernet (AES-128-CBC + HMAC-SHA256). Every token carries its own random IV and
timestamp, so two records with equal plaintext never share ciphertext. The key
is 32 bytes of base64; standard and url-safe alphabets are both accepted.
"""

from __future__ import annotations

import base64
import binascii

from cryptography.fernet import Fernet, InvalidToken

from hydrator.core.exceptions import CodecError, ConfigurationError

_KEY_BYTES = 32


def generate_key() -> str:
    """Return a fresh base64 encryption key."""

    return Fernet.generate_key().decode("ascii")


def _decode_key(key: str) -> bytes:
    raw = key.strip().encode("ascii", errors="strict")
    for decoder in (base64.urlsafe_b64decode, base64.b64decode):
        try:
            decoded = decoder(raw)
        except (binascii.Error, ValueError):
            continue
        if len(decoded) == _KEY_BYTES:
            return decoded
    raise ConfigurationError(f"Encryption key must be {_KEY_BYTES} bytes of base64")


class StateCipher:
    """Encrypts and decrypts text payloads with an optional key.

    Without a key both directions raise `ConfigurationError`; nothing passes
    through unencrypted.
    """

    def __init__(self, key: str | None = None):
        self._fernet: Fernet | None = None
        if key:
            self.set_key(key)

    @property
    def has_key(self) -> bool:
        return self._fernet is not None

    def set_key(self, key: str | None) -> None:
        if not key:
            self._fernet = None
            return
        try:
            raw = _decode_key(key)
        except UnicodeEncodeError as e:
            raise ConfigurationError("Encryption key must be ASCII base64") from e
        self._fernet = Fernet(base64.urlsafe_b64encode(raw))

    def _require(self) -> Fernet:
        if self._fernet is None:
            raise ConfigurationError(
                "Encryption key not set. Configure encryption_key before encrypting or decrypting."
            )
        return self._fernet

    def encrypt(self, text: str) -> str:
        return self._require().encrypt(text.encode("utf-8")).decode("ascii")

    def decrypt(self, token: str) -> str:
        fernet = self._require()
        try:
            return fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError) as e:
            raise CodecError("Invalid key or corrupted ciphertext") from e
