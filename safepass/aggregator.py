"""
Dashboard statistics and per-tab views over normalized records.

Everything here is a pure function of its arguments: no store access, no
clock, no module state. Student identity is the upper-cased id string.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

from safepass.models import (
    CAMPUS_ENTRY,
    CAMPUS_EXIT,
    AttendanceRecord,
    CampusEvent,
    CampusView,
    CampusViewRow,
    ClassroomView,
    ClassroomViewRow,
    DashboardStats,
    Student,
)

UNKNOWN = "Unknown"
NO_VALUE = "—"


def identity_key(value: Any) -> Optional[str]:
    """Case-insensitive identity for a student id; None if unattributable."""
    if value is None:
        return None
    text = str(value)
    return text.upper() or None


def _registry(students: Optional[Iterable[Student]]) -> Dict[str, Student]:
    lookup: Dict[str, Student] = {}
    for student in students or ():
        ident = identity_key(student.student_id)
        if ident is not None:
            lookup[ident] = student
    return lookup


# ================================================================
# HOME TAB
# ================================================================

def compute_dashboard_stats(
    students: Optional[Sequence[Student]],
    campus_events: Sequence[CampusEvent],
    attendance_records: Sequence[AttendanceRecord],
) -> DashboardStats:
    """
    ``students=None`` means the registry could not be read; the total then
    falls back to the number of distinct students seen on campus today.
    """
    on_campus = {identity_key(e.student_id) for e in campus_events}
    on_campus.discard(None)

    total = len(students) if students else len(on_campus)
    return DashboardStats(
        total_students=total,
        on_campus=len(on_campus),
        in_class=sum(1 for r in attendance_records if r.in_class),
        violations=sum(1 for r in attendance_records if r.unauthorized_exit),
    )


# ================================================================
# CAMPUS TAB
# ================================================================

def _supersedes(event: CampusEvent, current: CampusEvent) -> bool:
    # lexicographic time order; ties go to the exit, untimed events lose
    new_time, old_time = event.time or "", current.time or ""
    if new_time != old_time:
        return new_time > old_time
    return _event_type(event) == CAMPUS_EXIT and _event_type(current) != CAMPUS_EXIT


def _event_type(event: CampusEvent) -> str:
    return (event.type or "").lower()


def _campus_status(event: CampusEvent) -> str:
    status = "outside"
    if _event_type(event) == CAMPUS_ENTRY or event.entry_time:
        status = "inside"
    if _event_type(event) == CAMPUS_EXIT or event.exit_time:
        status = "outside"
    return status


def latest_events(campus_events: Sequence[CampusEvent]) -> Dict[str, CampusEvent]:
    latest: Dict[str, CampusEvent] = {}
    for event in campus_events:
        ident = identity_key(event.student_id)
        if ident is None:
            continue
        if ident not in latest or _supersedes(event, latest[ident]):
            latest[ident] = event
    return latest


def compute_campus_view(
    campus_events: Sequence[CampusEvent],
    students: Optional[Sequence[Student]],
) -> CampusView:
    registry = _registry(students)

    rows: List[CampusViewRow] = []
    for ident, event in latest_events(campus_events).items():
        info = registry.get(ident)
        rows.append(CampusViewRow(
            id=event.student_id,
            name=event.student_name or (info.name if info else None) or UNKNOWN,
            entry_time=event.time or event.entry_time or NO_VALUE,
            location="Monitored Zone" if event.monitor == "ON" else "Campus",
            status=_campus_status(event),
        ))

    return CampusView(
        entered=len(campus_events),
        current=sum(1 for r in rows if r.status == "inside"),
        exited=sum(1 for r in rows if r.status == "outside"),
        students=rows,
    )


# ================================================================
# CLASSROOM TAB
# ================================================================

def _classroom_row(record: AttendanceRecord, info: Optional[Student]) -> ClassroomViewRow:
    status = "outside"
    check_in = NO_VALUE
    name = (info.name if info else None) or UNKNOWN

    if record.time_in_entry is not None:
        status = "inside"
        check_in = record.time_in_entry.get("timeIn") or NO_VALUE
        name = record.time_in_entry.get("studentName") or name
    if record.time_out_entry is not None:
        status = "outside"
        check_in = record.time_out_entry.get("timeOut") or check_in
        name = record.time_out_entry.get("studentName") or name

    if record.time_in and not record.time_out:
        status = "inside"
        check_in = record.time_in
    if record.time_out:
        status = "outside"
        check_in = record.time_out

    return ClassroomViewRow(
        id=record.student_id,
        name=str(name),
        class_name=(info.course if info else None) or NO_VALUE,
        check_in_time=str(check_in),
        status=status,
        violation=record.unauthorized_exit,
    )


def compute_classroom_view(
    attendance_records: Sequence[AttendanceRecord],
    students: Optional[Sequence[Student]],
) -> ClassroomView:
    registry = _registry(students)
    rows = [
        _classroom_row(record, registry.get(identity_key(record.student_id) or ""))
        for record in attendance_records
    ]
    return ClassroomView(
        present=sum(1 for r in rows if r.status == "inside"),
        outside=sum(1 for r in rows if r.status == "outside"),
        violations=sum(1 for r in rows if r.violation),
        students=rows,
    )
