"""hydrator.hydration.orchestrator

One logical state, from first load to final save.

Lifecycle: UNINITIALIZED -> INITIALIZED -> HYDRATED -> DISPOSED

Load path:  store -> codec -> serializer -> migrate -> component
Save path:  component -> digest gate -> serializer -> codec -> store

Hydration never raises: whatever goes wrong ends in default state. Persistence
retries with exponential backoff, then gives up for this cycle; the next
mutation tries again.
"""

from __future__ import annotations

import copy
import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Any, TypeVar

from hydrator.core.config import HydrationConfig
from hydrator.core.exceptions import CodecError, NotInitializedError
from hydrator.core.hashing import derive_state_key
from hydrator.core.metrics import MetricsRegistry
from hydrator.core.scheduler import Scheduler
from hydrator.core.serializer import CustomSerializer, Serializer
from hydrator.core.store import StateStore, open_store
from hydrator.core.time import as_utc, parse_dt, utc_now
from hydrator.hydration.component import Hydratable
from hydrator.hydration.history import UndoHistory
from hydrator.hydration.snapshots import SnapshotManager
from hydrator.security.redaction import sanitize_for_log

logger = logging.getLogger(__name__)

T = TypeVar("T")

Document = dict[str, Any]
MigrationHook = Callable[[Document, int], Document]
StateObserver = Callable[[Document], None]

_AUTO_SAVE_JOB = "auto_save"
_DEBOUNCE_JOB = "debounce"


class HydrationState(StrEnum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    HYDRATED = "hydrated"
    DISPOSED = "disposed"


class HydrationOrchestrator:
    """Owns persistence, hydration, history and snapshots for one component.

    The store, serializer and scheduler are injectable. When no store is given,
    `initialize()` opens the SQLite store under ``config.data_dir`` and closes it
    again on `dispose()`.
    """

    def __init__(
        self,
        component: Hydratable,
        *,
        store: StateStore | None = None,
        serializer: Serializer | None = None,
        scheduler: Scheduler | None = None,
        migrate: MigrationHook | None = None,
        type_name: str | None = None,
        discriminator: str | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.component = component
        self.serializer = serializer or Serializer()
        self.scheduler = scheduler or Scheduler()
        self.metrics = MetricsRegistry()
        self.history = UndoHistory()

        self._store = store
        self._owns_store = False
        self._migrate_hook = migrate
        self._type_name = type_name or type(component).__name__
        self._discriminator = discriminator
        self._clock = clock

        self._lock = threading.RLock()
        self._state = HydrationState.UNINITIALIZED
        self._config: HydrationConfig | None = None
        self._state_key: str | None = None
        self._snapshots: SnapshotManager | None = None
        self._last_persisted_hash: str | None = None
        self._cache: Document | None = None
        self._observers: list[StateObserver] = []

    # --- introspection ---

    @property
    def state(self) -> HydrationState:
        return self._state

    @property
    def is_initialized(self) -> bool:
        return self._state in (HydrationState.INITIALIZED, HydrationState.HYDRATED)

    @property
    def is_hydrated(self) -> bool:
        return self._state == HydrationState.HYDRATED

    @property
    def state_key(self) -> str:
        """Derived once by `initialize()` and fixed afterwards, disposal included."""

        if self._state_key is None:
            raise NotInitializedError(
                f"{self._type_name} hydration has no state key; call initialize() first"
            )
        return self._state_key

    @property
    def config(self) -> HydrationConfig:
        self._require_initialized()
        assert self._config is not None
        return self._config

    @property
    def store(self) -> StateStore:
        self._require_initialized()
        assert self._store is not None
        return self._store

    @property
    def cached_state(self) -> Document | None:
        """Mirror of the last document written or loaded."""

        return copy.deepcopy(self._cache)

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    def _require_initialized(self) -> None:
        if not self.is_initialized:
            raise NotInitializedError(
                f"{self._type_name} hydration is {self._state}; call initialize() first"
            )

    # --- lifecycle ---

    def initialize(self, config: HydrationConfig | None = None, *, hydrate: bool = True) -> None:
        """Bind config and store, derive the state key, start auto-save, then hydrate."""

        with self._lock:
            if self._state == HydrationState.DISPOSED:
                raise NotInitializedError(f"{self._type_name} hydration was disposed")
            if self.is_initialized:
                logger.warning("orchestrator_already_initialized", extra={"state_key": self._state_key})
                return

            cfg = config or HydrationConfig()
            if self._store is None:
                self._store = open_store(cfg)
                self._owns_store = True
            elif cfg.encryption_key:
                self._store.set_encryption_key(cfg.encryption_key)

            discriminator = self._discriminator
            if discriminator is None:
                discriminator = getattr(self.component, "hydration_discriminator", None)

            self._config = cfg
            self._state_key = derive_state_key(self._type_name, discriminator)
            self._snapshots = SnapshotManager(self._store, self.serializer, self._state_key)
            self._state = HydrationState.INITIALIZED

            logger.info(
                "orchestrator_initialized",
                extra={"state_key": self._state_key, "config": sanitize_for_log(cfg.to_json())},
            )

            if cfg.auto_save_interval is not None:
                self.set_auto_save_interval(cfg.auto_save_interval)

        if hydrate:
            self.ensure_hydrated()

    def ensure_hydrated(self) -> None:
        """Hydrate once. A no-op while already hydrated."""

        self._require_initialized()
        if not self.is_hydrated:
            self._hydrate()

    def force_hydrate(self) -> None:
        """Reload from the store even when already hydrated."""

        self._require_initialized()
        with self._lock:
            self._state = HydrationState.INITIALIZED
            self._hydrate()

    def dispose(self) -> None:
        """Persist synchronously, then cancel timers and release the store."""

        with self._lock:
            if not self.is_initialized:
                return
            if self.is_hydrated:
                self._persist_cycle()

            self.scheduler.shutdown()
            if self._owns_store and self._store is not None:
                self._store.close()
            self._state = HydrationState.DISPOSED
            logger.info("orchestrator_disposed", extra={"state_key": self._state_key})

    def __enter__(self) -> HydrationOrchestrator:
        return self

    def __exit__(self, *exc: object) -> None:
        self.dispose()

    # --- hydrate ---

    def _hydrate(self) -> None:
        assert self._config is not None and self._store is not None
        cfg = self._config

        with self._lock, self.metrics.timed("hydrate"):
            if self.is_hydrated:
                return
            try:
                # Records are self-describing: undo whatever transforms they carry.
                envelope = self._store.get(self.state_key, decompress=True, decrypt=True)
                if envelope is None:
                    logger.info("no_stored_state", extra={"state_key": self._state_key})
                    self._apply_defaults()
                    return

                document = self.serializer.deserialize(envelope)
                if not isinstance(document, dict):
                    raise CodecError("Stored state did not deserialize to a document")

                if self._is_expired(document):
                    logger.info("stored_state_expired", extra={"state_key": self._state_key})
                    self._apply_defaults()
                    return

                version = self.serializer.envelope_version(envelope)
                migrated = self._migrate(document, version)
                if version != cfg.current_version:
                    logger.info(
                        "state_migrated",
                        extra={"state_key": self._state_key, "from": version, "to": cfg.current_version},
                    )

                self.component.hydrate_from_json(migrated)
                # A migrated record is rewritten at the current version on the next persist.
                self._last_persisted_hash = (
                    self.serializer.generate_hash(migrated) if version == cfg.current_version else None
                )
                self._cache = copy.deepcopy(migrated)
                self._state = HydrationState.HYDRATED
                self.metrics.counter("hydrations").inc()
                logger.info("state_hydrated", extra={"state_key": self._state_key})
            except Exception as e:  # noqa: BLE001 - hydration always ends in a usable state
                logger.exception(
                    "hydrate_failed", extra={"state_key": self._state_key, "error": f"{type(e).__name__}: {e}"}
                )
                self._recover_from_hydration_error()

    def _apply_defaults(self) -> None:
        self.component.initialize_default_state()
        self._last_persisted_hash = None
        self._cache = None
        self._state = HydrationState.HYDRATED

    def _recover_from_hydration_error(self) -> None:
        self.metrics.counter("hydration_failures").inc()
        self._apply_defaults()
        try:
            assert self._store is not None
            self._store.delete(self.state_key)
        except Exception:  # noqa: BLE001
            logger.exception("corrupted_state_delete_failed", extra={"state_key": self._state_key})

    def _is_expired(self, document: Document) -> bool:
        assert self._config is not None
        expiration = self._config.state_expiration
        if expiration is None or "timestamp" not in document:
            return False

        raw = document["timestamp"]
        if isinstance(raw, datetime):
            stamped = as_utc(raw)
        elif isinstance(raw, str):
            try:
                stamped = parse_dt(raw)
            except ValueError:
                logger.warning("state_timestamp_unparseable", extra={"state_key": self._state_key})
                return False
        else:
            return False
        return self._clock() - stamped > expiration

    def _migrate(self, document: Document, from_version: int) -> Document:
        hook = self._migrate_hook or getattr(self.component, "migrate_state", None)
        if hook is None:
            return document
        migrated = hook(document, from_version)
        if not isinstance(migrated, dict):
            raise TypeError(f"migration returned {type(migrated).__name__}, expected a mapping")
        return migrated

    # --- persist ---

    def persist(self) -> bool:
        """Write the current state if it changed. Returns True when a write happened."""

        self._require_initialized()
        return self._persist_cycle()

    def force_persist(self) -> bool:
        """Persist now, bypassing debounce and auto-save timing."""

        self.scheduler.cancel(_DEBOUNCE_JOB)
        return self.persist()

    def save_state(self, on_complete: Callable[[], None] | None = None) -> bool:
        written = self.force_persist()
        if on_complete is not None:
            on_complete()
        return written

    def _persist_from_timer(self) -> None:
        with self._lock:
            if self._state != HydrationState.HYDRATED:
                return
            self._persist_cycle()

    def _persist_cycle(self) -> bool:
        with self._lock, self.metrics.timed("persist"):
            try:
                return self._persist_once()
            except Exception as e:  # noqa: BLE001 - retried below
                logger.warning(
                    "persist_failed", extra={"state_key": self._state_key, "error": f"{type(e).__name__}: {e}"}
                )
                return self._retry_persist()

    def _persist_once(self) -> bool:
        assert self._config is not None and self._store is not None
        cfg = self._config

        document = self.component.persist_to_json()
        digest = self.serializer.generate_hash(document)
        if digest == self._last_persisted_hash:
            self.metrics.counter("persist_skipped").inc()
            logger.debug("state_unchanged", extra={"state_key": self._state_key})
            return False

        envelope = self.serializer.serialize(document, version=cfg.current_version)
        self._store.put(
            self.state_key,
            envelope,
            compress=cfg.use_compression,
            encrypt=cfg.enable_encryption,
        )

        self._last_persisted_hash = digest
        self._cache = copy.deepcopy(document)
        self.metrics.counter("persist_writes").inc()
        logger.debug("state_persisted", extra={"state_key": self._state_key})
        self._notify_observers(document)
        return True

    def _retry_persist(self) -> bool:
        assert self._config is not None
        cfg = self._config

        for attempt in range(cfg.max_retries):
            delay = cfg.retry_base_delay * (2**attempt)
            if not self.scheduler.sleep(delay):
                logger.warning("persist_retry_cancelled", extra={"state_key": self._state_key})
                break
            try:
                written = self._persist_once()
            except Exception as e:  # noqa: BLE001
                logger.warning(
                    "persist_retry_failed",
                    extra={"state_key": self._state_key, "attempt": attempt + 1, "error": str(e)},
                )
                continue
            logger.info("persist_retry_succeeded", extra={"state_key": self._state_key, "attempt": attempt + 1})
            return written

        self.metrics.counter("persist_failures").inc()
        logger.error("persist_retries_exhausted", extra={"state_key": self._state_key, "retries": cfg.max_retries})
        return False

    def _notify_observers(self, document: Document) -> None:
        for observer in list(self._observers):
            try:
                observer(copy.deepcopy(document))
            except Exception:  # noqa: BLE001 - one observer cannot block the others
                logger.exception("state_observer_failed", extra={"state_key": self._state_key})

    # --- mutation / history ---

    def commit_mutation(self, fn: Callable[[], T]) -> T:
        """Single entry point for state changes.

        Records the pre-mutation document for undo, clears redo, runs ``fn`` and
        re-arms the debounce timer.
        """

        self._require_initialized()
        with self._lock:
            before = copy.deepcopy(self.component.persist_to_json())
            result = fn()
            self.history.push(before)
        self._state_changed()
        return result

    def undo(self) -> bool:
        self._require_initialized()
        with self._lock:
            previous = self.history.undo(self.component.persist_to_json())
            if previous is None:
                return False
            self.component.hydrate_from_json(previous)
        self._state_changed()
        return True

    def redo(self) -> bool:
        self._require_initialized()
        with self._lock:
            following = self.history.redo(self.component.persist_to_json())
            if following is None:
                return False
            self.component.hydrate_from_json(following)
        self._state_changed()
        return True

    def clear_history(self) -> None:
        self.history.clear()

    def _state_changed(self) -> None:
        assert self._config is not None
        self.scheduler.call_later(
            _DEBOUNCE_JOB, self._config.debounce_delay.total_seconds(), self._persist_from_timer
        )

    # --- snapshots ---

    def _snapshot_manager(self) -> SnapshotManager:
        self._require_initialized()
        assert self._snapshots is not None
        return self._snapshots

    def create_snapshot(self, name: str) -> str:
        """Store the current document under ``name``. Returns the creation time."""

        manager = self._snapshot_manager()
        with self._lock:
            return manager.create(name, self.component.persist_to_json())

    def restore_snapshot(self, name: str) -> None:
        """Apply a snapshot as an ordinary (undoable) mutation. Raises `NotFoundError`."""

        document = self._snapshot_manager().load(name)
        self.commit_mutation(lambda: self.component.hydrate_from_json(document))

    def list_snapshots(self) -> list[str]:
        return self._snapshot_manager().names()

    def delete_snapshot(self, name: str) -> None:
        self._snapshot_manager().delete(name)

    def get_snapshot_details(self, name: str) -> dict[str, Any]:
        return self._snapshot_manager().details(name)

    # --- observers ---

    def add_state_observer(self, observer: StateObserver) -> None:
        self._observers.append(observer)

    def remove_state_observer(self, observer: StateObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    # --- runtime configuration ---

    def set_auto_save_interval(self, interval: timedelta) -> None:
        cfg = self.config
        seconds = interval.total_seconds()
        if seconds <= 0:
            raise ValueError("auto-save interval must be positive")
        cfg.auto_save_interval = interval
        self.scheduler.call_every(_AUTO_SAVE_JOB, seconds, self._persist_from_timer)

    def disable_auto_save(self) -> None:
        self.config.auto_save_interval = None
        self.scheduler.cancel(_AUTO_SAVE_JOB)

    def enable_compression(self, enable: bool) -> None:
        with self._lock:
            self.config.use_compression = enable
            self._last_persisted_hash = None

    def enable_encryption(self, enable: bool) -> None:
        with self._lock:
            self.config.enable_encryption = enable
            self._last_persisted_hash = None

    def set_encryption_key(self, key: str | None) -> None:
        with self._lock:
            self.store.set_encryption_key(key)
            self.config.encryption_key = key

    def set_version(self, version: int) -> None:
        with self._lock:
            self.config.current_version = version
            self._last_persisted_hash = None

    def set_state_expiration(self, duration: timedelta | None) -> None:
        self.config.state_expiration = duration

    def set_custom_serializer(self, custom: CustomSerializer | None) -> None:
        self.serializer.set_custom_serializer(custom)

    def clear_persisted_state(self) -> None:
        """Delete the primary record. Snapshots are left alone."""

        with self._lock:
            self.store.delete(self.state_key)
            self._cache = None
            self._last_persisted_hash = None
            logger.info("persisted_state_cleared", extra={"state_key": self._state_key})

    def get_performance_metrics(self) -> dict[str, int]:
        snap = self.metrics.snapshot()
        return {
            "hydration_duration_ms": int(snap.get("gauge.hydrate_ms", 0.0)),
            "persist_duration_ms": int(snap.get("gauge.persist_ms", 0.0)),
            "persist_writes": int(snap.get("counter.persist_writes", 0.0)),
            "persist_skipped": int(snap.get("counter.persist_skipped", 0.0)),
            "persist_failures": int(snap.get("counter.persist_failures", 0.0)),
            "hydration_failures": int(snap.get("counter.hydration_failures", 0.0)),
        }
