import threading
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from healthdash.config import settings
from healthdash.utils.models import DashboardView, Reading, ReadingInput
from healthdash.logger import get_logger

logger = get_logger(__name__)

Clock = Callable[[], datetime]

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

def _newest_first(readings: List[Reading]) -> List[Reading]:
    # Equal timestamps fall back to insertion order via the id
    return sorted(readings, key=lambda r: (r.timestamp, r.id), reverse=True)

def group_by_device(readings: List[Reading]) -> Dict[str, List[Reading]]:
    groups: Dict[str, List[Reading]] = {}
    for reading in _newest_first(readings):
        groups.setdefault(reading.device_id, []).append(reading)
    return groups

def average_by_type(readings: List[Reading]) -> Dict[str, float]:
    """Mean value per device type, matched case-insensitively and keyed by the first spelling seen."""
    labels: Dict[str, str] = {}
    values: Dict[str, List[float]] = {}
    for reading in sorted(readings, key=lambda r: r.id):
        key = reading.device_type.casefold()
        labels.setdefault(key, reading.device_type)
        values.setdefault(key, []).append(reading.value)
    return {labels[key]: sum(vals) / len(vals) for key, vals in values.items() if vals}

class ReadingStore:
    """
    Process-lifetime, in-memory collection of readings for every user.

    All mutations and snapshots happen under a single lock, so a reader sees
    the collection either before or after a write. Every query is scoped to
    one user and returns new containers of frozen readings.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or utc_now
        self._lock = threading.Lock()
        self._readings: List[Reading] = []
        self._next_id = 1

    def now(self) -> datetime:
        return self._clock()

    def add_reading(self, reading: ReadingInput, user_id: str) -> Reading:
        with self._lock:
            stored = Reading(
                id=self._next_id,
                user_id=user_id,
                device_id=reading.device_id,
                device_type=reading.device_type,
                value=reading.value,
                unit=reading.unit,
                timestamp=self._clock(),
                notes=reading.notes,
            )
            self._next_id += 1
            self._readings.append(stored)
        return stored

    def _snapshot(self, user_id: str) -> List[Reading]:
        with self._lock:
            return [r for r in self._readings if r.user_id == user_id]

    def get_all_readings(self, user_id: str) -> List[Reading]:
        return _newest_first(self._snapshot(user_id))

    def get_recent_readings(self, user_id: str, count: int = None) -> List[Reading]:
        if count is None:
            count = settings.RECENT_READINGS_COUNT
        return self.get_all_readings(user_id)[:max(count, 0)]

    def get_readings_by_device_type(self, user_id: str, device_type: str) -> List[Reading]:
        wanted = device_type.casefold()
        return [r for r in self.get_all_readings(user_id) if r.device_type.casefold() == wanted]

    def get_readings_grouped_by_device(self, user_id: str) -> Dict[str, List[Reading]]:
        return group_by_device(self._snapshot(user_id))

    def get_averages_by_type(self, user_id: str) -> Dict[str, float]:
        return average_by_type(self._snapshot(user_id))

    def get_dashboard_data(self, user_id: str) -> DashboardView:
        # One snapshot so every section describes the same state
        readings = _newest_first(self._snapshot(user_id))
        return DashboardView(
            recent_readings=readings[:settings.DASHBOARD_RECENT_COUNT],
            readings_by_device=group_by_device(readings),
            averages_by_type=average_by_type(readings),
            total_readings=len(readings),
            last_reading_time=max((r.timestamp for r in readings), default=None),
        )

    def clear_all_readings(self, user_id: str) -> int:
        with self._lock:
            kept = [r for r in self._readings if r.user_id != user_id]
            removed = len(self._readings) - len(kept)
            self._readings = kept
        logger.info(f"Cleared {removed} readings for user {user_id}")
        return removed
