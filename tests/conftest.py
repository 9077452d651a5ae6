import pytest
from fastapi.testclient import TestClient

from safepass.app import create_app
from safepass.cache import KeyCache
from safepass.config import Settings
from safepass.service import AttendanceService
from safepass.store import MemoryStore

DAY = "2026-10-19"

STUDENTS = {
    "S1": {"name": "Ana Cruz", "course": "BSIT", "yearLevel": 2, "LRN": "100000000001"},
    "s2": {"name": "Ben Reyes", "course": "BSBA", "yearLevel": 1},
    "S3": {"name": "Cara Lim", "course": "BSCS", "yearLevel": 3},
}

CAMPUS_LOGS = {
    "S1": {
        "CAMPUS_ENTRY": {"studentID": "S1", "time": f"{DAY}T07:30:00", "monitor": "ON"},
        "CAMPUS_EXIT":  {"studentID": "S1", "time": f"{DAY}T16:00:00"},
    },
    "S2": {
        "CAMPUS_ENTRY": {"studentID": "S2", "time": f"{DAY}T07:45:00", "studentName": "Ben R."},
    },
    # legacy flat row
    "legacy-1": {"studentID": "s3", "entryTime": "07:50", "gate": "north"},
}

ATTENDANCE = {
    "S1": {
        "TIME_IN":  {"studentID": "S1", "studentName": "Ana Cruz", "timeIn": "08:00", "date": DAY},
        "TIME_OUT": {"studentID": "S1", "timeOut": "10:00", "date": DAY},
    },
    "S2": {
        "TIME_IN": {"studentID": "S2", "timeIn": "08:05", "alarm": {"type": "unauthorized_exit"}},
    },
    # legacy flat row
    "S3": {"timeIn": "08:10"},
}

PASSWORD = "Sup3rSecret"


@pytest.fixture
def settings():
    return Settings(store_backend="memory", use_redis=False, jwt_secret="test-secret")


@pytest.fixture
def store():
    return MemoryStore({
        "students/students": STUDENTS,
        f"campus_logs/{DAY}": CAMPUS_LOGS,
        f"attendance/{DAY}": ATTENDANCE,
    })


@pytest.fixture
def cache():
    return KeyCache(enabled=False)


@pytest.fixture
def service(store, settings):
    return AttendanceService(store, settings)


@pytest.fixture
def client(settings, store, cache):
    app = create_app(settings, store=store, cache=cache)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def token(client):
    client.post("/auth/signup", data={
        "full_name": "Maria Santos",
        "email": "maria@school.edu",
        "password": PASSWORD,
    })
    res = client.post("/auth/login", data={"username": "maria@school.edu", "password": PASSWORD})
    return res.json()["access_token"]


@pytest.fixture
def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}
