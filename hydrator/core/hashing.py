"""hydrator.core.hashing

Canonical encoding and digests.

Equal documents hash equal. Insertion order is not part of the document.
"""

from __future__ import annotations

import hashlib
import json
from datetime import datetime
from typing import Any


def _hash_default(obj: Any) -> Any:
    # Only reached for values the tagged serializer would have converted first.
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset)):
        return sorted(str(v) for v in obj)
    return str(obj)


def canonical_json(data: Any) -> str:
    """Canonical JSON serialization used for hashing and storage."""

    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=_hash_default)


def digest_text(text: str) -> str:
    """SHA-256 hex digest of UTF-8 text."""

    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def generate_hash(document: Any) -> str:
    """SHA-256 hash of the canonical JSON encoding of ``document``."""

    return digest_text(canonical_json(document))


def derive_state_key(type_name: str, discriminator: str | None = None) -> str:
    """Stable storage key for one logical state.

    Format: ``{type_name}_{sha256("{type_name}-{discriminator}")}``.
    """

    base = f"{type_name}-{discriminator or ''}"
    return f"{type_name}_{digest_text(base)}"
