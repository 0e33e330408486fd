"""hydrator.core.serializer

Tagged, type-preserving serialization.

Every node is ``{"type": <tag>, "value": ...}``. The tag set is closed; anything
outside it becomes an ``error`` leaf so one bad field cannot sink the document.

Envelope (what the store receives):
- ``{"data": <tagged>, "version": <int>}``
- ``{"compressed": true, "data": <base64>}`` when compression is requested here
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any, Protocol, runtime_checkable

from hydrator.core.codec import compress_text, decompress_text
from hydrator.core.exceptions import CodecError
from hydrator.core.hashing import generate_hash

logger = logging.getLogger(__name__)


class Tag(StrEnum):
    NULL = "null"
    INT = "int"
    FLOAT = "float"
    STRING = "string"
    BOOL = "bool"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    TIMESTAMP = "timestamp"
    ERROR = "error"
    CUSTOM = "custom"


@runtime_checkable
class CustomSerializer(Protocol):
    """Whole-document strategy. Replaces the tagged walk when installed."""

    def serialize(self, value: Any) -> Any: ...

    def deserialize(self, data: Any) -> Any: ...


@dataclass(frozen=True, slots=True)
class Converter:
    """Per-type converter producing a ``custom`` node."""

    cls: type
    name: str
    encode: Callable[[Any], Any]
    decode: Callable[[Any], Any]


def _node(tag: Tag, value: Any) -> dict[str, Any]:
    return {"type": str(tag), "value": value}


class Serializer:
    """Tagged-value serializer with pluggable converters."""

    def __init__(self, custom: CustomSerializer | None = None) -> None:
        self._custom = custom
        self._converters_by_type: dict[type, Converter] = {}
        self._converters_by_name: dict[str, Converter] = {}

    # --- configuration ---

    def set_custom_serializer(self, custom: CustomSerializer | None) -> None:
        self._custom = custom

    @property
    def custom_serializer(self) -> CustomSerializer | None:
        return self._custom

    def register_converter(
        self,
        cls: type,
        name: str,
        encode: Callable[[Any], Any],
        decode: Callable[[Any], Any],
    ) -> None:
        conv = Converter(cls=cls, name=name, encode=encode, decode=decode)
        self._converters_by_type[cls] = conv
        self._converters_by_name[name] = conv

    # --- envelope ---

    def serialize(self, value: Any, version: int = 1, compress: bool = False) -> dict[str, Any]:
        data = self._custom.serialize(value) if self._custom is not None else self.to_tagged(value)
        envelope: dict[str, Any] = {"data": data, "version": int(version)}
        if compress:
            return {"compressed": True, "data": compress_text(json.dumps(envelope, separators=(",", ":")))}
        return envelope

    def deserialize(self, envelope: Any) -> Any:
        envelope = self._unwrap(envelope)
        if envelope is None:
            return None
        if self._custom is not None:
            return self._custom.deserialize(envelope["data"])
        return self.from_tagged(envelope["data"])

    def envelope_version(self, envelope: Any) -> int:
        """Format version of an envelope (1 when absent)."""

        envelope = self._unwrap(envelope)
        if envelope is None:
            return 1
        try:
            return int(envelope.get("version", 1))
        except (TypeError, ValueError):
            return 1

    def _unwrap(self, envelope: Any) -> dict[str, Any] | None:
        if not isinstance(envelope, dict):
            logger.warning("envelope_not_mapping", extra={"got": type(envelope).__name__})
            return None
        if envelope.get("compressed") is True:
            blob = envelope.get("data")
            if not isinstance(blob, str):
                raise CodecError("Compressed envelope data must be a string")
            try:
                envelope = json.loads(decompress_text(blob))
            except json.JSONDecodeError as e:
                raise CodecError(f"Compressed envelope is not JSON: {e}") from e
            if not isinstance(envelope, dict):
                raise CodecError("Compressed envelope does not contain a mapping")
        if "data" not in envelope:
            logger.warning("envelope_missing_data", extra={"keys": sorted(map(str, envelope))})
            return None
        return envelope

    # --- tagged walk ---

    def to_tagged(self, value: Any) -> dict[str, Any]:
        """Walk ``value`` into a tagged tree. Never raises."""

        try:
            return self._to_tagged(value)
        except Exception as e:  # noqa: BLE001 - failure isolated to this subtree
            return _node(Tag.ERROR, f"Serialization failed: {type(e).__name__}: {e}")

    def _to_tagged(self, value: Any) -> dict[str, Any]:
        if value is None:
            return _node(Tag.NULL, None)
        if isinstance(value, bool):
            return _node(Tag.BOOL, value)
        if isinstance(value, int):
            return _node(Tag.INT, value)
        if isinstance(value, float):
            return _node(Tag.FLOAT, value)
        if isinstance(value, str):
            return _node(Tag.STRING, value)

        conv = self._converter_for(value)
        if conv is not None:
            node = _node(Tag.CUSTOM, self.to_tagged(conv.encode(value)))
            node["name"] = conv.name
            return node

        if isinstance(value, datetime):
            return _node(Tag.TIMESTAMP, value.isoformat())
        if isinstance(value, (list, tuple)):
            return _node(Tag.SEQUENCE, [self.to_tagged(v) for v in value])
        if isinstance(value, dict):
            return _node(Tag.MAPPING, {str(k): self.to_tagged(v) for k, v in value.items()})

        return _node(Tag.ERROR, f"Unsupported type: {type(value).__name__}")

    def _converter_for(self, value: Any) -> Converter | None:
        conv = self._converters_by_type.get(type(value))
        if conv is not None:
            return conv
        for cls, c in self._converters_by_type.items():
            if isinstance(value, cls):
                return c
        return None

    def from_tagged(self, node: Any) -> Any:
        """Inverse of `to_tagged`. Unknown and error tags become None."""

        if not isinstance(node, dict) or "type" not in node:
            logger.warning("tagged_node_malformed", extra={"got": type(node).__name__})
            return None

        raw_tag = node.get("type")
        value = node.get("value")
        try:
            tag = Tag(raw_tag)
        except ValueError:
            logger.warning("tagged_node_unknown_tag", extra={"tag": raw_tag})
            return None

        try:
            match tag:
                case Tag.NULL:
                    return None
                case Tag.BOOL:
                    return bool(value)
                case Tag.INT:
                    return int(value)
                case Tag.FLOAT:
                    return float(value)
                case Tag.STRING:
                    return str(value)
                case Tag.SEQUENCE:
                    return [self.from_tagged(v) for v in value]
                case Tag.MAPPING:
                    return {str(k): self.from_tagged(v) for k, v in value.items()}
                case Tag.TIMESTAMP:
                    return datetime.fromisoformat(str(value))
                case Tag.CUSTOM:
                    return self._from_custom(node)
                case Tag.ERROR:
                    logger.warning("tagged_node_error", extra={"detail": value})
                    return None
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning("tagged_node_invalid", extra={"tag": str(tag), "error": str(e)})
            return None

    def _from_custom(self, node: dict[str, Any]) -> Any:
        name = node.get("name")
        conv = self._converters_by_name.get(str(name))
        if conv is None:
            logger.warning("tagged_node_unknown_converter", extra={"converter": name})
            return None
        try:
            return conv.decode(self.from_tagged(node.get("value")))
        except Exception as e:  # noqa: BLE001 - failure isolated to this subtree
            logger.warning(
                "tagged_node_invalid",
                extra={"tag": str(Tag.CUSTOM), "converter": name, "error": f"{type(e).__name__}: {e}"},
            )
            return None

    # --- hashing ---

    def generate_hash(self, document: Any) -> str:
        return generate_hash(document)
