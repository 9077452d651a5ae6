"""
Read side of the dashboard: per-date reads, live listeners and views.

Every public read degrades to an empty result when the store fails; the
failure is logged and, when ``on_read_error`` is set, handed to it. No
retries are attempted.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Callable, Dict, List, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel

from safepass.aggregator import compute_campus_view, compute_classroom_view, compute_dashboard_stats
from safepass.config import Settings
from safepass.models import (
    AttendanceRecord,
    CampusEvent,
    CampusView,
    ClassroomView,
    DashboardStats,
    Student,
)
from safepass.normalizer import (
    attendance_from_partition,
    campus_events_from_partition,
    students_from_partition,
)
from safepass.store import STUDENTS_PATH, BaseStore, Snapshot, attendance_path, campus_logs_path
from safepass.subscriber import DashboardStatsSubscription, PartitionSubscription

logger = logging.getLogger(__name__)

ReadErrorHook = Callable[[str, Exception], None]

DATE_FORMAT = "%Y-%m-%d"
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class AttendanceService:
    def __init__(
        self,
        store: BaseStore,
        settings: Optional[Settings] = None,
        on_read_error: Optional[ReadErrorHook] = None,
    ):
        self.store = store
        self.settings = settings or Settings(store_backend="memory")
        self.on_read_error = on_read_error
        self.tz = ZoneInfo(self.settings.timezone)

    # ── dates ────────────────────────────────────────────────

    def today(self) -> str:
        return datetime.now(self.tz).strftime(DATE_FORMAT)

    def partition_date(self, date: Optional[str] = None) -> str:
        """Validated ``YYYY-MM-DD`` partition key; today when omitted."""
        if not date:
            return self.today()
        if not DATE_RE.match(date):
            raise ValueError(f"date must be YYYY-MM-DD, got {date!r}")
        datetime.strptime(date, DATE_FORMAT)  # rejects 2026-02-30
        return date

    # ── raw reads ────────────────────────────────────────────

    def _read(self, path: str) -> Snapshot:
        try:
            return self.store.get(path)
        except Exception as e:
            logger.exception("Reading %s failed", path)
            if self.on_read_error is not None:
                self.on_read_error(path, e)
            return None

    def read_registry(self) -> Optional[List[Student]]:
        """Registered students, or None if the registry is unreadable or absent."""
        snapshot = self._read(STUDENTS_PATH)
        if not snapshot:
            return None
        return students_from_partition(snapshot)

    # ================================================================
    # STUDENTS
    # ================================================================

    def get_students(self) -> List[Student]:
        return self.read_registry() or []

    # ================================================================
    # CAMPUS LOGS
    # ================================================================

    def get_campus_logs(self, date: Optional[str] = None) -> List[CampusEvent]:
        date = self.partition_date(date)
        return campus_events_from_partition(self._read(campus_logs_path(date)))

    def listen_campus_logs(
        self,
        date: Optional[str],
        callback: Callable[[List[CampusEvent]], None],
    ) -> PartitionSubscription:
        date = self.partition_date(date)
        return PartitionSubscription(
            self.store, campus_logs_path(date), campus_events_from_partition, callback,
        )

    # ================================================================
    # ATTENDANCE
    # ================================================================

    def get_attendance(self, date: Optional[str] = None) -> List[AttendanceRecord]:
        date = self.partition_date(date)
        return attendance_from_partition(self._read(attendance_path(date)))

    def listen_attendance(
        self,
        date: Optional[str],
        callback: Callable[[List[AttendanceRecord]], None],
    ) -> PartitionSubscription:
        date = self.partition_date(date)
        return PartitionSubscription(
            self.store, attendance_path(date), attendance_from_partition, callback,
        )

    # ================================================================
    # DASHBOARD VIEWS
    # ================================================================

    def get_dashboard_stats(self, date: Optional[str] = None) -> DashboardStats:
        date = self.partition_date(date)
        return compute_dashboard_stats(
            self.read_registry(),
            self.get_campus_logs(date),
            self.get_attendance(date),
        )

    def listen_dashboard_stats(
        self,
        date: Optional[str],
        callback: Callable[[DashboardStats], None],
    ) -> DashboardStatsSubscription:
        date = self.partition_date(date)
        return DashboardStatsSubscription(self.store, date, self.read_registry, callback)

    def get_campus_data(self, date: Optional[str] = None) -> CampusView:
        date = self.partition_date(date)
        return compute_campus_view(self.get_campus_logs(date), self.get_students())

    def listen_campus_data(
        self,
        date: Optional[str],
        callback: Callable[[CampusView], None],
    ) -> PartitionSubscription:
        """Recompute the campus tab after every change to the day's gate logs."""
        date = self.partition_date(date)
        return self.listen_campus_logs(
            date, lambda events: callback(compute_campus_view(events, self.get_students())),
        )

    def get_classroom_data(self, date: Optional[str] = None) -> ClassroomView:
        date = self.partition_date(date)
        return compute_classroom_view(self.get_attendance(date), self.get_students())

    def listen_classroom_data(
        self,
        date: Optional[str],
        callback: Callable[[ClassroomView], None],
    ) -> PartitionSubscription:
        date = self.partition_date(date)
        return self.listen_attendance(
            date, lambda records: callback(compute_classroom_view(records, self.get_students())),
        )

    # ── dashboard tabs ───────────────────────────────────────

    def load_tab(self, tab: str, date: Optional[str] = None) -> BaseModel:
        """Data behind one dashboard tab; KeyError for an unknown tab."""
        command = TAB_COMMANDS[tab]
        return command(self, date)

    def listen_tab(self, tab: str, date: Optional[str], callback: Callable[[BaseModel], None]):
        """Live version of ``load_tab``; the handle has ``close()``."""
        command = LIVE_TAB_COMMANDS[tab]
        return command(self, date, callback)


TAB_COMMANDS: Dict[str, Callable[[AttendanceService, Optional[str]], BaseModel]] = {
    "home":      AttendanceService.get_dashboard_stats,
    "campus":    AttendanceService.get_campus_data,
    "classroom": AttendanceService.get_classroom_data,
}

LIVE_TAB_COMMANDS: Dict[str, Callable] = {
    "home":      AttendanceService.listen_dashboard_stats,
    "campus":    AttendanceService.listen_campus_data,
    "classroom": AttendanceService.listen_classroom_data,
}
