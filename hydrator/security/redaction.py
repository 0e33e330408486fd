"""hydrator.security.redaction

Redaction helpers.

Snapshots are listed without their contents; config is logged without its key.
"""

from __future__ import annotations

import copy
import re
from typing import Any

_REDACTED = "[REDACTED]"

_REDACTION_PATTERNS: list[tuple[str, str]] = [
    (r"(?i)encryption[_-]?key\s*[:=]\s*[^\s\"']+", _REDACTED),
    # Fernet tokens (encrypted payloads)
    (r"gAAAAA[a-zA-Z0-9_=-]{40,}", _REDACTED),
]

_SENSITIVE_FIELD_NAMES = {"encryption_key", "encryptionkey"}


def redact_secrets(text: str) -> str:
    out = text
    for pattern, repl in _REDACTION_PATTERNS:
        out = re.sub(pattern, repl, out)
    return out


def sanitize_for_log(data: dict[str, Any]) -> dict[str, Any]:
    """Deep-copy and redact sensitive fields + embedded secrets."""

    def _walk(obj: Any) -> Any:
        if isinstance(obj, dict):
            new: dict[str, Any] = {}
            for k, v in obj.items():
                if str(k).lower() in _SENSITIVE_FIELD_NAMES:
                    new[k] = None if v is None else _REDACTED
                else:
                    new[k] = _walk(v)
            return new
        if isinstance(obj, (list, tuple)):
            return [_walk(v) for v in obj]
        if isinstance(obj, str):
            return redact_secrets(obj)
        return obj

    return _walk(copy.deepcopy(data))


def summarize_document(document: dict[str, Any]) -> dict[str, str]:
    """Shallow summary: containers collapse to placeholders, scalars become strings."""

    summary: dict[str, str] = {}
    for key, value in document.items():
        if isinstance(value, dict):
            summary[str(key)] = "{...}"
        elif isinstance(value, (list, tuple)):
            summary[str(key)] = "[...]"
        else:
            summary[str(key)] = str(value)
    return summary
