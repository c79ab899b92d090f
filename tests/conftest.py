import json
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict
import pytest
from unittest.mock import MagicMock
from fastapi.testclient import TestClient
import requests

from main import create_app
from healthdash.utils.identity import UserDirectory
from healthdash.utils.memory import ReadingStore
from healthdash.utils.models import ReadingInput
from healthdash.utils.watch_sync import WatchSampleStore, WatchSyncIngestor

ALICE = "alice@example.com"
BOB = "bob@example.com"

# ----------------------------- Time control ---------------------------------
class FakeClock:
    """Callable clock that only moves when told to."""
    def __init__(self, start: datetime):
        self.current = start
    def __call__(self) -> datetime:
        return self.current
    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc))

# ----------------------------- Core objects ----------------------------------
@pytest.fixture
def store(clock) -> ReadingStore:
    """Fresh reading store per test."""
    return ReadingStore(clock)

@pytest.fixture
def ingestor(clock) -> WatchSyncIngestor:
    return WatchSyncIngestor(WatchSampleStore(), clock)

@pytest.fixture
def directory() -> UserDirectory:
    return UserDirectory([ALICE, BOB])

@pytest.fixture
def alice_id(directory) -> str:
    return directory.find_by_email(ALICE).id

@pytest.fixture
def bob_id(directory) -> str:
    return directory.find_by_email(BOB).id

@pytest.fixture
def app(clock, directory):
    return create_app(clock=clock, user_directory=directory)

@pytest.fixture
def client(app) -> TestClient:
    """FastAPI TestClient over a fresh app."""
    return TestClient(app)

# ----------------------------- Session patch --------------------------------
class _SessionMockFactory:
    @staticmethod
    def build(backing: Dict[str, Any]) -> MagicMock:
        m = MagicMock()
        def _get(k, default=None):
            return backing.get(k, default)
        def _setitem(k, v):
            backing[k] = v
        def _getitem(k):
            return backing[k]
        m.get.side_effect = _get
        m.__setitem__.side_effect = _setitem
        m.__getitem__.side_effect = _getitem
        m.pop.side_effect = backing.pop
        m.update.side_effect = backing.update
        return m

@pytest.fixture
def session_state() -> Dict[str, Any]:
    """Per-test mutable dict that represents the user's session store."""
    return {}

@pytest.fixture(autouse=True)
def patch_request_session(monkeypatch, session_state):
    """Auto-patch fastapi.Request.session for all tests."""
    mock_session = _SessionMockFactory.build(session_state)
    monkeypatch.setattr("fastapi.Request.session", mock_session, raising=False)
    return mock_session

@pytest.fixture
def login(session_state) -> Callable[[str], None]:
    def _login(user_id: str) -> None:
        session_state["user_id"] = user_id
    return _login

@pytest.fixture
def alice_session(login, alice_id) -> str:
    login(alice_id)
    return alice_id

# ----------------------------- Reading payloads ------------------------------
@pytest.fixture
def make_reading() -> Callable[..., ReadingInput]:
    def _make(device_type: str = "HeartRateMonitor", value: float = 72.0, device_id: str = "hr-01",
              unit: str = "bpm", notes: str = None) -> ReadingInput:
        return ReadingInput(device_id=device_id, device_type=device_type, value=value, unit=unit, notes=notes)
    return _make

@pytest.fixture
def heart_rate_json() -> Dict[str, Any]:
    return {"deviceId": "hr-01", "deviceType": "HeartRateMonitor", "value": 72, "unit": "bpm"}

@pytest.fixture
def temperature_json() -> Dict[str, Any]:
    return {"deviceId": "therm-01", "deviceType": "Thermometer", "value": 36.6, "unit": "C", "notes": "after walk"}

# ----------------------------- Import files -----------------------------------
@pytest.fixture
def readings_csv() -> str:
    """Two good rows, one without a value and one with a non-numeric value."""
    return (
        "Device ID,Device Type,Value,Unit,Notes\n"
        "hr-01,HeartRateMonitor,72,bpm,\n"
        "therm-01,Thermometer,36.6,C,morning\n"
        "hr-01,HeartRateMonitor,,bpm,\n"
        "hr-01,HeartRateMonitor,fast,bpm,\n"
    )

@pytest.fixture
def readings_json_file() -> str:
    return json.dumps({"readings": [
        {"deviceId": "scale-01", "deviceType": "Scale", "value": 70.2, "unit": "kg"},
        {"deviceId": "scale-01", "deviceType": "Scale", "unit": "kg"},
    ]})

# ----------------------------- HTTP response shim ----------------------------
class _Resp:
    def __init__(self, status_code: int, json_obj: Dict[str, Any]):
        self.status_code = status_code
        self._json = json_obj
        self.text = json.dumps(json_obj)
    def json(self) -> Dict[str, Any]: return self._json
    def raise_for_status(self):
        if not (200 <= self.status_code < 300):
            raise requests.exceptions.HTTPError(f"HTTP {self.status_code}", response=self)
@pytest.fixture
def make_response() -> Callable[[int, Dict[str, Any]], _Resp]:
    def _make(status: int, body: Dict[str, Any]) -> _Resp: return _Resp(status, body)
    return _make
