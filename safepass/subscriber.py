"""
Live views over the per-day partitions.

``DashboardStatsSubscription`` watches the campus and attendance partitions
of one date and republishes ``DashboardStats`` after each change. Nothing is
published until both partitions have delivered a first snapshot, in either
order. Store backends may call back from their own listener threads, so
every recompute runs under one lock against the latest cached snapshots.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, List, Optional

from safepass.aggregator import compute_dashboard_stats
from safepass.models import DashboardStats, Student
from safepass.normalizer import attendance_from_partition, campus_events_from_partition
from safepass.store import BaseStore, Subscription, attendance_path, campus_logs_path

logger = logging.getLogger(__name__)

AWAITING = "awaiting"
LIVE = "live"

_PENDING = object()


class PartitionSubscription:
    """Hands each snapshot of one partition on in normalized form."""

    def __init__(
        self,
        store: BaseStore,
        path: str,
        normalize: Callable[[Any], list],
        callback: Callable[[list], None],
    ):
        self.path = path
        self._normalize = normalize
        self._callback = callback
        self._closed = False
        self._subscription: Subscription = store.listen(path, self._on_snapshot)

    @property
    def closed(self) -> bool:
        return self._closed

    def _on_snapshot(self, snapshot) -> None:
        if self._closed:
            return
        self._callback(self._normalize(snapshot))

    def close(self) -> None:
        self._closed = True
        self._subscription.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class DashboardStatsSubscription:
    def __init__(
        self,
        store: BaseStore,
        date: str,
        read_students: Callable[[], Optional[List[Student]]],
        callback: Callable[[DashboardStats], None],
    ):
        self.date = date
        self.latest: Optional[DashboardStats] = None
        self._read_students = read_students
        self._callback = callback
        self._campus: Any = _PENDING
        self._attendance: Any = _PENDING
        self._closed = False
        self._lock = threading.RLock()
        self._subscriptions: List[Subscription] = []

        self._subscriptions.append(store.listen(campus_logs_path(date), self._on_campus))
        try:
            self._subscriptions.append(store.listen(attendance_path(date), self._on_attendance))
        except Exception:
            self.close()
            raise
        logger.info("Watching dashboard stats for %s", date)

    @property
    def state(self) -> str:
        with self._lock:
            if self._campus is _PENDING or self._attendance is _PENDING:
                return AWAITING
            return LIVE

    @property
    def closed(self) -> bool:
        return self._closed

    def _on_campus(self, snapshot) -> None:
        with self._lock:
            self._campus = campus_events_from_partition(snapshot)
            self._recompute()

    def _on_attendance(self, snapshot) -> None:
        with self._lock:
            self._attendance = attendance_from_partition(snapshot)
            self._recompute()

    def _recompute(self) -> None:
        if self._closed or self.state != LIVE:
            return
        stats = compute_dashboard_stats(self._read_students(), self._campus, self._attendance)
        self.latest = stats
        self._callback(stats)

    def close(self) -> None:
        with self._lock:
            self._closed = True
            subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            subscription.close()
        logger.info("Stopped watching dashboard stats for %s", self.date)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
