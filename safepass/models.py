"""
Canonical records and derived dashboard views.

Python attributes are snake_case; aliases carry the camelCase names the
store and the dashboard use (``studentID``, ``timeIn``, ...).
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

Status = Literal["inside", "outside"]

UNAUTHORIZED_EXIT = "unauthorized_exit"
CAMPUS_ENTRY = "campus_entry"
CAMPUS_EXIT = "campus_exit"


class SafePassModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


# ================================================================
# REFERENCE DATA
# ================================================================

class Student(SafePassModel):
    student_id:     Optional[str] = Field(None, alias="studentID")
    name:           Optional[str] = None
    course:         Optional[str] = None
    year_level:     Optional[str] = Field(None, alias="yearLevel")
    parent_number:  Optional[str] = Field(None, alias="parentNumber")
    alarm_id:       Optional[str] = Field(None, alias="alarmID")
    student_number: Optional[str] = Field(None, alias="studentNumber")
    lrn:            Optional[str] = Field(None, alias="LRN")


# ================================================================
# NORMALIZED PER-DAY RECORDS
# ================================================================

class CampusEvent(SafePassModel):
    student_id:   Optional[str] = Field(None, alias="studentID")
    type:         Optional[str] = None
    time:         Optional[str] = None
    monitor:      Optional[str] = None
    student_name: Optional[str] = Field(None, alias="studentName")
    key:          Optional[str] = None
    # legacy flat rows only
    entry_time:   Optional[str] = Field(None, alias="entryTime")
    exit_time:    Optional[str] = Field(None, alias="exitTime")
    extra:        Dict[str, Any] = Field(default_factory=dict)


class AttendanceRecord(SafePassModel):
    student_id:      Optional[str] = Field(None, alias="studentID")
    student_name:    Optional[str] = Field(None, alias="studentName")
    time_in:         str = Field("", alias="timeIn")
    time_out:        str = Field("", alias="timeOut")
    date:            Optional[str] = None
    alarm:           Optional[Dict[str, Any]] = None
    authorized_exit: bool = Field(True, alias="authorizedExit")
    key:             Optional[str] = None
    # raw sub-objects, set only when the record used the wrapped schema
    time_in_entry:   Optional[Dict[str, Any]] = Field(None, alias="TIME_IN")
    time_out_entry:  Optional[Dict[str, Any]] = Field(None, alias="TIME_OUT")
    extra:           Dict[str, Any] = Field(default_factory=dict)

    @property
    def in_class(self) -> bool:
        return bool(self.time_in) and not self.time_out

    @property
    def unauthorized_exit(self) -> bool:
        for alarm in (self.alarm, (self.time_in_entry or {}).get("alarm")):
            if isinstance(alarm, dict) and alarm.get("type") == UNAUTHORIZED_EXIT:
                return True
        return False


# ================================================================
# DERIVED VIEWS
# ================================================================

class DashboardStats(SafePassModel):
    total_students: int = Field(alias="totalStudents")
    on_campus:      int = Field(alias="onCampus")
    in_class:       int = Field(alias="inClass")
    violations:     int


class CampusViewRow(SafePassModel):
    id:         Optional[str] = None
    name:       str
    entry_time: str = Field(alias="entryTime")
    location:   str
    status:     Status


class CampusView(SafePassModel):
    entered:  int
    current:  int
    exited:   int
    students: List[CampusViewRow]


class ClassroomViewRow(SafePassModel):
    id:            Optional[str] = None
    name:          str
    class_name:    str = Field(alias="class")
    check_in_time: str = Field(alias="checkInTime")
    status:        Status
    violation:     bool = False


class ClassroomView(SafePassModel):
    present:    int
    outside:    int
    violations: int
    students:   List[ClassroomViewRow]


# ================================================================
# ADMIN ACCOUNTS
# ================================================================

class AdminUser(SafePassModel):
    uid:        str
    name:       str = ""
    email:      str
    created_at: str = Field("", alias="createdAt")
    role:       str = "admin"

    @computed_field(alias="displayName")
    @property
    def display_name(self) -> str:
        raw = self.name or self.email
        return raw.split("@")[0] if "@" in raw else raw

    @computed_field
    @property
    def initials(self) -> str:
        parts = [p for p in re.split(r"[.\s]", self.display_name) if p]
        return "".join(p[0] for p in parts).upper()[:2]
