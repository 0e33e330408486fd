"""hydrator.core

Core primitives: config, errors, hashing, time.

Codec, serializer, store and scheduler live beside these and are imported from
their modules directly (the codec depends on `hydrator.security`).
"""

from .config import HydrationConfig
from .exceptions import HydratorError
from .hashing import canonical_json, derive_state_key, generate_hash
from .time import parse_dt, utc_now

__all__ = [
    "HydrationConfig",
    "HydratorError",
    "canonical_json",
    "derive_state_key",
    "generate_hash",
    "parse_dt",
    "utc_now",
]
