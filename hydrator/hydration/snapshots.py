"""hydrator.hydration.snapshots

Named snapshots of one state.

Stored under ``{state_key}_snapshot_{name}``; ordinary persist and hydrate
cycles never touch them. Snapshots are written uncompressed and unencrypted
regardless of the orchestrator's transform settings.
"""

from __future__ import annotations

import logging
from typing import Any

from hydrator.core.exceptions import NotFoundError
from hydrator.core.serializer import Serializer
from hydrator.core.store import StateStore
from hydrator.core.time import utc_now
from hydrator.security.redaction import summarize_document

logger = logging.getLogger(__name__)


class SnapshotManager:
    def __init__(self, store: StateStore, serializer: Serializer, state_key: str):
        self.store = store
        self.serializer = serializer
        self.prefix = f"{state_key}_snapshot_"

    def key_for(self, name: str) -> str:
        return f"{self.prefix}{name}"

    def create(self, name: str, document: dict[str, Any]) -> str:
        created = utc_now().isoformat()
        self.store.put(
            self.key_for(name),
            {"creationTime": created, "stateData": self.serializer.to_tagged(document)},
        )
        logger.info("snapshot_created", extra={"snapshot": name})
        return created

    def _load(self, name: str) -> dict[str, Any]:
        raw = self.store.get(self.key_for(name))
        if not isinstance(raw, dict) or raw.get("stateData") is None:
            raise NotFoundError(f"Snapshot {name} not found")
        return raw

    def load(self, name: str) -> dict[str, Any]:
        """Return the stored document. Raises `NotFoundError` when absent."""

        document = self.serializer.from_tagged(self._load(name)["stateData"])
        if not isinstance(document, dict):
            raise NotFoundError(f"Snapshot {name} is not a document")
        return document

    def names(self) -> list[str]:
        return sorted(k[len(self.prefix) :] for k in self.store.keys() if k.startswith(self.prefix))

    def delete(self, name: str) -> None:
        self.store.delete(self.key_for(name))
        logger.info("snapshot_deleted", extra={"snapshot": name})

    def details(self, name: str) -> dict[str, Any]:
        raw = self._load(name)
        document = self.serializer.from_tagged(raw["stateData"])
        return {
            "name": name,
            "creationTime": raw.get("creationTime") or "Unknown",
            "summary": summarize_document(document if isinstance(document, dict) else {}),
        }
