from safepass.aggregator import (
    compute_campus_view,
    compute_classroom_view,
    compute_dashboard_stats,
    identity_key,
)
from safepass.models import AttendanceRecord, CampusEvent, Student
from safepass.normalizer import (
    attendance_from_partition,
    campus_events_from_partition,
    normalize_attendance_entry,
    students_from_partition,
)

from tests.conftest import ATTENDANCE, CAMPUS_LOGS, STUDENTS


def entry(sid, time, **kw):
    return CampusEvent(student_id=sid, type="campus_entry", time=time, **kw)


def exit_(sid, time, **kw):
    return CampusEvent(student_id=sid, type="campus_exit", time=time, **kw)


def test_identity_key():
    assert identity_key("abc123") == identity_key("ABC123") == "ABC123"
    assert identity_key(None) is None
    assert identity_key("") is None
    # ids are compared as stored, only case is folded
    assert identity_key(" S1") != identity_key("S1")


# ================================================================
# DASHBOARD STATS
# ================================================================

def test_dashboard_stats_for_sample_day():
    stats = compute_dashboard_stats(
        students_from_partition(STUDENTS),
        campus_events_from_partition(CAMPUS_LOGS),
        attendance_from_partition(ATTENDANCE),
    )
    assert stats.total_students == 3
    assert stats.on_campus == 3
    assert stats.in_class == 2
    assert stats.violations == 1


def test_hundred_registered_ten_on_campus():
    students = [Student(student_id=f"S{i}") for i in range(100)]
    events = []
    for i in range(10):
        events.append(entry(f"s{i}", "07:00"))
        events.append(exit_(f"S{i}", "15:00"))
    stats = compute_dashboard_stats(students, events, [])
    assert stats.on_campus == 10
    assert stats.total_students == 100


def test_time_in_only_is_in_class_without_violation():
    record = normalize_attendance_entry("S1", {"TIME_IN": {"studentID": "S1", "timeIn": "08:00"}})
    stats = compute_dashboard_stats([], [], [record])
    assert stats.in_class == 1
    assert stats.violations == 0


def test_unauthorized_exit_alarm_is_a_violation():
    record = normalize_attendance_entry("S2", {
        "TIME_IN": {"studentID": "S2", "alarm": {"type": "unauthorized_exit"}},
    })
    assert compute_dashboard_stats([], [], [record]).violations == 1


def test_other_alarm_types_are_not_violations():
    record = normalize_attendance_entry("S2", {
        "TIME_IN": {"studentID": "S2", "alarm": {"type": "late"}},
    })
    assert compute_dashboard_stats([], [], [record]).violations == 0


def test_total_falls_back_to_distinct_campus_ids_without_registry():
    events = [entry("a1", "07:00"), entry("A1", "07:05"), entry("b2", "07:10")]
    assert compute_dashboard_stats(None, events, []).total_students == 2
    assert compute_dashboard_stats([], events, []).total_students == 2


def test_events_without_id_are_not_on_campus():
    events = [entry(None, "07:00"), entry("", "07:01"), entry("S1", "07:02")]
    assert compute_dashboard_stats(None, events, []).on_campus == 1


# ================================================================
# CAMPUS VIEW
# ================================================================

def test_campus_view_for_sample_day():
    view = compute_campus_view(
        campus_events_from_partition(CAMPUS_LOGS),
        students_from_partition(STUDENTS),
    )
    assert view.entered == 4
    assert view.current == 2
    assert view.exited == 1

    rows = {r.id.upper(): r for r in view.students}
    assert rows["S1"].status == "outside"
    assert rows["S1"].name == "Ana Cruz"
    assert rows["S1"].location == "Campus"
    assert rows["S2"].status == "inside"
    assert rows["S2"].name == "Ben R."
    assert rows["S3"].status == "inside"
    assert rows["S3"].name == "Cara Lim"
    assert rows["S3"].entry_time == "07:50"


def test_entered_counts_raw_events():
    events = [entry("S1", "07:00"), exit_("S1", "12:00"), entry("s1", "13:00"), entry(None, "07:00")]
    view = compute_campus_view(events, [])
    assert view.entered == 4
    assert len(view.students) == 1


def test_latest_event_by_time_decides_status():
    view = compute_campus_view([exit_("S1", "12:00"), entry("S1", "13:00")], [])
    assert view.students[0].status == "inside"
    view = compute_campus_view([entry("S1", "07:00"), exit_("S1", "12:00")], [])
    assert view.students[0].status == "outside"


def test_exit_at_same_time_as_entry_is_outside():
    for events in ([entry("S1", "08:00"), exit_("S1", "08:00")],
                   [exit_("S1", "08:00"), entry("S1", "08:00")]):
        assert compute_campus_view(events, []).students[0].status == "outside"


def test_untimed_event_never_displaces_timed_one():
    view = compute_campus_view([entry("S1", "08:00"), exit_("S1", None)], [])
    assert view.students[0].status == "inside"


def test_case_insensitive_grouping_and_lookup():
    students = [Student(student_id="abc123", name="Dana")]
    view = compute_campus_view([entry("ABC123", "07:00"), exit_("abc123", "09:00")], students)
    assert len(view.students) == 1
    row = view.students[0]
    assert row.status == "outside"
    assert row.name == "Dana"


def test_legacy_status_signals():
    view = compute_campus_view([CampusEvent(student_id="S1", exit_time="15:00")], [])
    assert view.students[0].status == "outside"
    # exit signal beats entry signal on the same event
    view = compute_campus_view([CampusEvent(student_id="S1", entry_time="07:00", exit_time="15:00")], [])
    assert view.students[0].status == "outside"
    view = compute_campus_view([CampusEvent(student_id="S1", type="CAMPUS_ENTRY")], [])
    assert view.students[0].status == "inside"
    assert view.students[0].entry_time == "—"


def test_unknown_name_and_monitored_location():
    view = compute_campus_view([entry("X9", "07:00", monitor="ON")], [])
    row = view.students[0]
    assert row.name == "Unknown"
    assert row.location == "Monitored Zone"


# ================================================================
# CLASSROOM VIEW
# ================================================================

def test_classroom_view_for_sample_day():
    view = compute_classroom_view(
        attendance_from_partition(ATTENDANCE),
        students_from_partition(STUDENTS),
    )
    assert view.present == 2
    assert view.outside == 1
    assert view.violations == 1

    rows = {r.id: r for r in view.students}
    assert rows["S1"].status == "outside"
    assert rows["S1"].check_in_time == "10:00"
    assert rows["S1"].name == "Ana Cruz"
    assert rows["S1"].class_name == "BSIT"
    assert rows["S2"].status == "inside"
    assert rows["S2"].check_in_time == "08:05"
    assert rows["S2"].class_name == "BSBA"
    assert rows["S2"].violation is True
    assert rows["S3"].status == "inside"
    assert rows["S3"].check_in_time == "08:10"


def test_empty_time_out_keeps_earlier_check_in():
    record = AttendanceRecord(
        student_id="S1",
        time_in_entry={"timeIn": "08:00"},
        time_out_entry={"timeOut": ""},
    )
    row = compute_classroom_view([record], []).students[0]
    assert row.status == "outside"
    assert row.check_in_time == "08:00"


def test_flat_time_out_always_wins():
    record = AttendanceRecord(student_id="S1", time_in="08:00", time_out="09:30",
                              time_in_entry={"timeIn": "08:00"})
    row = compute_classroom_view([record], []).students[0]
    assert row.status == "outside"
    assert row.check_in_time == "09:30"


def test_default_row_is_outside_with_placeholders():
    row = compute_classroom_view([AttendanceRecord(student_id="S7")], []).students[0]
    assert row.status == "outside"
    assert row.check_in_time == "—"
    assert row.name == "Unknown"
    assert row.class_name == "—"


def test_alarm_in_both_places_counts_once():
    alarm = {"type": "unauthorized_exit"}
    record = AttendanceRecord(student_id="S2", alarm=alarm, time_in_entry={"timeIn": "08:00", "alarm": alarm})
    assert compute_classroom_view([record], []).violations == 1
    assert compute_dashboard_stats([], [], [record]).violations == 1


def test_aggregation_is_idempotent_and_pure():
    events = campus_events_from_partition(CAMPUS_LOGS)
    records = attendance_from_partition(ATTENDANCE)
    students = students_from_partition(STUDENTS)
    before = [e.model_dump() for e in events]

    assert compute_campus_view(events, students) == compute_campus_view(events, students)
    assert compute_classroom_view(records, students) == compute_classroom_view(records, students)
    assert compute_dashboard_stats(students, events, records) == compute_dashboard_stats(students, events, records)
    assert [e.model_dump() for e in events] == before
