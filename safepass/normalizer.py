"""
Flatten raw per-day partition entries into canonical records.

Devices write two co-existing schemas into the same partitions:

* wrapped — ``{"CAMPUS_ENTRY": {...}, "CAMPUS_EXIT": {...}}`` for gate logs,
  ``{"TIME_IN": {...}, "TIME_OUT": {...}}`` for classroom attendance;
* flat (legacy) — the fields sit directly under the per-student key.

Both are resolved here, once. Nothing downstream branches on the schema.
None of these functions raise on malformed input.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from safepass.models import (
    CAMPUS_ENTRY,
    CAMPUS_EXIT,
    AttendanceRecord,
    CampusEvent,
    Student,
)

logger = logging.getLogger(__name__)

_CAMPUS_FIELDS = {
    "studentID":   "student_id",
    "type":        "type",
    "time":        "time",
    "monitor":     "monitor",
    "studentName": "student_name",
    "entryTime":   "entry_time",
    "exitTime":    "exit_time",
}

_ATTENDANCE_FIELDS = {
    "studentID":      "student_id",
    "studentName":    "student_name",
    "timeIn":         "time_in",
    "timeOut":        "time_out",
    "date":           "date",
    "alarm":          "alarm",
    "authorizedExit": "authorized_exit",
}

_STUDENT_FIELDS = {
    "name":          "name",
    "course":        "course",
    "yearLevel":     "year_level",
    "parentNumber":  "parent_number",
    "alarmID":       "alarm_id",
    "studentNumber": "student_number",
    "LRN":           "lrn",
}


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    return None


def _mapping(value: Any) -> Optional[Dict[str, Any]]:
    return dict(value) if isinstance(value, Mapping) else None


def _campus_event(fields: Dict[str, Any], **overrides: Any) -> CampusEvent:
    data: Dict[str, Any] = {}
    extra: Dict[str, Any] = {}
    for raw_name, value in fields.items():
        name = _CAMPUS_FIELDS.get(raw_name)
        if name is None:
            extra[raw_name] = value
        else:
            data[name] = _text(value)
    data.update(overrides)
    return CampusEvent(extra=extra, **data)


# ================================================================
# CAMPUS LOGS
# ================================================================

def normalize_campus_entry(key: Any, raw: Any) -> List[CampusEvent]:
    """One partition entry → zero, one or two campus events."""
    value = _mapping(raw) or {}
    entry = _mapping(value.get("CAMPUS_ENTRY"))
    exit_ = _mapping(value.get("CAMPUS_EXIT"))
    outer_key = _text(key)

    if entry is None and exit_ is None:
        if not value:
            logger.debug("Campus entry %r has no readable fields", key)
        student_id = _text(value.get("studentID")) or outer_key
        return [_campus_event(value, student_id=student_id, key=outer_key)]

    events = []
    if entry is not None:
        events.append(_campus_event(entry, type=CAMPUS_ENTRY, key=outer_key))
    if exit_ is not None:
        events.append(_campus_event(exit_, type=CAMPUS_EXIT, key=outer_key))
    return events


# ================================================================
# ATTENDANCE
# ================================================================

def normalize_attendance_entry(key: Any, raw: Any) -> AttendanceRecord:
    """Merge a ``TIME_IN``/``TIME_OUT`` pair, or read a flat legacy row."""
    value = _mapping(raw) or {}
    time_in = _mapping(value.get("TIME_IN"))
    time_out = _mapping(value.get("TIME_OUT"))
    outer_key = _text(key)

    if time_in is not None or time_out is not None:
        base = time_in if time_in is not None else time_out
        alarm = _mapping(time_in.get("alarm")) if time_in else None
        authorized = time_in.get("authorizedExit") if time_in else None
        return AttendanceRecord(
            student_id=_text(base.get("studentID")),
            student_name=_text(base.get("studentName")),
            time_in=_text((time_in or {}).get("timeIn")) or "",
            time_out=_text((time_out or {}).get("timeOut")) or "",
            date=_text(base.get("date")),
            alarm=alarm,
            authorized_exit=authorized if isinstance(authorized, bool) else True,
            key=outer_key,
            time_in_entry=time_in,
            time_out_entry=time_out,
        )

    data: Dict[str, Any] = {}
    extra: Dict[str, Any] = {}
    for raw_name, field_value in value.items():
        name = _ATTENDANCE_FIELDS.get(raw_name)
        if name is None:
            extra[raw_name] = field_value
        elif name == "alarm":
            data[name] = _mapping(field_value)
        elif name == "authorized_exit":
            if isinstance(field_value, bool):
                data[name] = field_value
        elif name in ("time_in", "time_out"):
            data[name] = _text(field_value) or ""
        else:
            data[name] = _text(field_value)
    data["student_id"] = data.get("student_id") or outer_key
    return AttendanceRecord(key=outer_key, extra=extra, **data)


# ================================================================
# STUDENT REGISTRY
# ================================================================

def normalize_student(key: Any, raw: Any) -> Student:
    value = _mapping(raw) or {}
    data = {name: _text(value.get(raw_name)) for raw_name, name in _STUDENT_FIELDS.items()}
    return Student(student_id=_text(key), **data)


# ================================================================
# WHOLE PARTITIONS
# ================================================================

def _items(snapshot: Any):
    # firebase hands back a list when every key is a small integer
    if isinstance(snapshot, list):
        return [(str(i), raw) for i, raw in enumerate(snapshot) if raw is not None]
    if not isinstance(snapshot, Mapping):
        if snapshot is not None:
            logger.warning("Ignoring non-mapping partition snapshot (%s)", type(snapshot).__name__)
        return []
    return list(snapshot.items())


def campus_events_from_partition(snapshot: Any) -> List[CampusEvent]:
    events: List[CampusEvent] = []
    for key, raw in _items(snapshot):
        events.extend(normalize_campus_entry(key, raw))
    return events


def attendance_from_partition(snapshot: Any) -> List[AttendanceRecord]:
    return [normalize_attendance_entry(key, raw) for key, raw in _items(snapshot)]


def students_from_partition(snapshot: Any) -> List[Student]:
    return [normalize_student(key, raw) for key, raw in _items(snapshot)]
