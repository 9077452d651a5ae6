# ============================================================
# safepass/store.py  —  keyed per-day partition stores
# ============================================================
#
# Paths are "/"-separated partition names:
#   students/students      registered students (read-only here)
#   campus_logs/YYYY-MM-DD gate entry/exit logs, one child per student
#   attendance/YYYY-MM-DD  classroom TIME_IN/TIME_OUT, one child per student
#   admins                 dashboard accounts
#
# A partition snapshot is a plain dict {child_key: raw_value}, or None when
# the partition does not exist. listen() delivers the full snapshot once on
# subscribe and again after every change, until the Subscription is closed.
#
# SUPABASE SETUP
# ──────────────
#   create table safepass_nodes (
#     path  text  not null,
#     key   text  not null,
#     value jsonb,
#     primary key (path, key)
#   );
# ============================================================

from __future__ import annotations

import copy
import json
import logging
import os
import threading
from typing import Any, Callable, Dict, List, Optional

import firebase_admin
from firebase_admin import credentials, db
from supabase import Client, create_client

from safepass.config import Settings

logger = logging.getLogger(__name__)

Snapshot = Optional[Dict[str, Any]]
SnapshotCallback = Callable[[Snapshot], None]

STUDENTS_PATH = "students/students"
ADMINS_PATH = "admins"


def campus_logs_path(date: str) -> str:
    return f"campus_logs/{date}"


def attendance_path(date: str) -> str:
    return f"attendance/{date}"


class Subscription:
    """Handle returned by ``listen``; ``close()`` is idempotent."""

    def __init__(self, path: str, closer: Callable[[], None]):
        self.path = path
        self._closer: Optional[Callable[[], None]] = closer
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closer is None

    def close(self) -> None:
        with self._lock:
            closer, self._closer = self._closer, None
        if closer is not None:
            closer()
            logger.debug("Unsubscribed from %s", self.path)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def _deliver(path: str, callback: SnapshotCallback, snapshot: Snapshot) -> None:
    try:
        callback(snapshot)
    except Exception:
        logger.exception("Listener on %s failed", path)


class BaseStore:
    def get(self, path: str) -> Snapshot:
        raise NotImplementedError

    def put(self, path: str, key: str, value: Any) -> None:
        raise NotImplementedError

    def listen(self, path: str, callback: SnapshotCallback) -> Subscription:
        raise NotImplementedError


# ================================================================
# IN-MEMORY STORE  (single process: local runs and tests)
# ================================================================

class MemoryStore(BaseStore):
    def __init__(self, data: Optional[Dict[str, Dict[str, Any]]] = None):
        self._data: Dict[str, Dict[str, Any]] = copy.deepcopy(data) if data else {}
        self._listeners: Dict[str, List[SnapshotCallback]] = {}
        self._lock = threading.RLock()

    def get(self, path: str) -> Snapshot:
        with self._lock:
            node = self._data.get(path)
            return copy.deepcopy(node) if node else None

    def put(self, path: str, key: str, value: Any) -> None:
        with self._lock:
            self._data.setdefault(path, {})[key] = copy.deepcopy(value)
        self._notify(path)

    def set_partition(self, path: str, snapshot: Snapshot) -> None:
        """Replace a whole partition (None removes it)."""
        with self._lock:
            if snapshot:
                self._data[path] = copy.deepcopy(snapshot)
            else:
                self._data.pop(path, None)
        self._notify(path)

    def listen(self, path: str, callback: SnapshotCallback) -> Subscription:
        with self._lock:
            self._listeners.setdefault(path, []).append(callback)

        def closer():
            with self._lock:
                callbacks = self._listeners.get(path, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        _deliver(path, callback, self.get(path))
        return Subscription(path, closer)

    def _notify(self, path: str) -> None:
        with self._lock:
            callbacks = list(self._listeners.get(path, []))
        for callback in callbacks:
            _deliver(path, callback, self.get(path))


# ================================================================
# SUPABASE STORE  (one node table; changes picked up by polling)
# ================================================================

_UNSET = object()


class SupabaseStore(BaseStore):
    def __init__(self, client: Client, table: str = "safepass_nodes", poll_seconds: float = 2.0):
        self.client = client
        self.table = table
        self.poll_seconds = poll_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseStore":
        client = create_client(settings.supabase_url, settings.supabase_key)
        logger.info("Supabase client initialised → %s", settings.supabase_url)
        return cls(client, settings.supabase_table, settings.poll_seconds)

    def get(self, path: str) -> Snapshot:
        result = (
            self.client.table(self.table)
            .select("key,value")
            .eq("path", path)
            .execute()
        )
        rows = result.data or []
        if not rows:
            return None
        return {row["key"]: row["value"] for row in rows}

    def put(self, path: str, key: str, value: Any) -> None:
        self.client.table(self.table).upsert(
            {"path": path, "key": key, "value": value},
            on_conflict="path,key",
        ).execute()

    def listen(self, path: str, callback: SnapshotCallback) -> Subscription:
        stop = threading.Event()

        def poll():
            last: Any = _UNSET
            while not stop.is_set():
                try:
                    snapshot = self.get(path)
                except Exception:
                    logger.exception("Polling %s failed", path)
                else:
                    if snapshot != last and not stop.is_set():
                        last = snapshot
                        _deliver(path, callback, snapshot)
                stop.wait(self.poll_seconds)

        thread = threading.Thread(target=poll, name=f"poll:{path}", daemon=True)
        thread.start()
        logger.debug("Polling %s every %.1fs", path, self.poll_seconds)
        return Subscription(path, stop.set)


# ================================================================
# FIREBASE REALTIME DATABASE STORE
# ================================================================

def _firebase_credentials(raw: str):
    if raw.strip().startswith("{"):
        return credentials.Certificate(json.loads(raw))
    if raw and os.path.exists(raw):
        return credentials.Certificate(raw)
    return credentials.ApplicationDefault()


class FirebaseStore(BaseStore):
    def __init__(self, app):
        self.app = app

    @classmethod
    def from_settings(cls, settings: Settings) -> "FirebaseStore":
        try:
            app = firebase_admin.get_app("safepass")
        except ValueError:
            app = firebase_admin.initialize_app(
                _firebase_credentials(settings.firebase_credentials),
                {"databaseURL": settings.firebase_database_url},
                name="safepass",
            )
        logger.info("Firebase app initialised → %s", settings.firebase_database_url)
        return cls(app)

    def _ref(self, path: str):
        return db.reference(path, app=self.app)

    def get(self, path: str) -> Snapshot:
        return self._ref(path).get()

    def put(self, path: str, key: str, value: Any) -> None:
        self._ref(path).child(key).set(value)

    def listen(self, path: str, callback: SnapshotCallback) -> Subscription:
        ref = self._ref(path)

        # events may carry partial patches; always hand out the whole partition
        def on_event(event):
            _deliver(path, callback, ref.get())

        registration = ref.listen(on_event)
        return Subscription(path, registration.close)


def create_store(settings: Settings) -> BaseStore:
    if settings.store_backend == "memory":
        logger.warning("Using in-memory store — data is lost on restart.")
        return MemoryStore()
    if settings.store_backend == "firebase":
        return FirebaseStore.from_settings(settings)
    return SupabaseStore.from_settings(settings)
