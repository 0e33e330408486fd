"""hydrator.security

Confidentiality primitives.

- Fernet cipher for records at rest
- redaction for logs and snapshot listings
"""

from hydrator.security.cipher import StateCipher, generate_key
from hydrator.security.redaction import redact_secrets, sanitize_for_log, summarize_document

__all__ = [
    "StateCipher",
    "generate_key",
    "redact_secrets",
    "sanitize_for_log",
    "summarize_document",
]
