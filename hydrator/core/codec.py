"""hydrator.core.codec

Reversible byte-level transforms for serialized payloads.

Write: text -> [compress] -> [encrypt]
Read:  [decrypt] -> [decompress] -> text

Compressed output is base64 so every stage stays string-safe.
"""

from __future__ import annotations

import base64
import binascii
import gzip
import zlib

from hydrator.core.exceptions import CodecError
from hydrator.security.cipher import StateCipher


def compress_text(text: str) -> str:
    """gzip the UTF-8 bytes of ``text`` and return base64."""

    return base64.b64encode(gzip.compress(text.encode("utf-8"))).decode("ascii")


def decompress_text(blob: str) -> str:
    """Exact inverse of `compress_text`.

    Raises:
        CodecError: if ``blob`` is not valid base64 gzip of UTF-8 text.
    """

    try:
        raw = base64.b64decode(blob.encode("ascii"), validate=True)
        return gzip.decompress(raw).decode("utf-8")
    except (binascii.Error, ValueError, OSError, EOFError, zlib.error) as e:
        raise CodecError(f"Malformed compressed payload: {e}") from e


class Codec:
    """Compression + encryption pipeline used by the store."""

    def __init__(self, cipher: StateCipher | None = None):
        self.cipher = cipher or StateCipher()

    def encode(self, text: str, *, compress: bool, encrypt: bool) -> str:
        out = text
        if compress:
            out = compress_text(out)
        if encrypt:
            out = self.cipher.encrypt(out)
        return out

    def decode(self, payload: str, *, decompress: bool, decrypt: bool) -> str:
        out = payload
        if decrypt:
            out = self.cipher.decrypt(out)
        if decompress:
            out = decompress_text(out)
        return out
