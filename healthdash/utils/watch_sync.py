import threading
from typing import Callable, Dict, Optional

from healthdash.config import settings
from healthdash.utils.errors import (
    InternalFailure, InvalidPayload, MissingApiKey, Unauthenticated, UnknownApiKey,
)
from healthdash.utils.memory import Clock, utc_now
from healthdash.utils.models import (
    ActionResponse, LatestWatchSample, LatestWatchView, WatchSyncPayload,
)
from healthdash.logger import get_logger

logger = get_logger(__name__)

KeyResolver = Callable[[str], Optional[str]]

class WatchSampleStore:
    """Holds the single most recent Apple Watch sample for each user."""

    def __init__(self):
        self._lock = threading.Lock()
        self._samples: Dict[str, LatestWatchSample] = {}

    def upsert(self, sample: LatestWatchSample) -> None:
        # Replaces the previous record in full, fields are never merged
        with self._lock:
            self._samples[sample.user_id] = sample

    def get(self, user_id: str) -> Optional[LatestWatchSample]:
        with self._lock:
            return self._samples.get(user_id)

class WatchSyncIngestor:
    """
    Accepts watch pushes and keeps the latest sample per user.

    A push moves through validation, user resolution and storage. Any failed
    gate raises a WatchSyncError subclass and leaves the stored samples
    untouched.
    """

    def __init__(self, samples: WatchSampleStore, clock: Optional[Clock] = None):
        self.samples = samples
        self._clock = clock or utc_now

    def ingest_authenticated(self, payload: Optional[WatchSyncPayload], session_user_id: Optional[str]) -> ActionResponse:
        if not session_user_id:
            raise Unauthenticated()
        if payload is None:
            raise InvalidPayload("Invalid payload")
        self._require_measurement(payload)
        self._store(session_user_id, payload)
        logger.info(
            f"Apple Watch sync for user {session_user_id}: "
            f"HR={payload.heart_rate_bpm}, Temp={payload.temperature_c}, MeasuredAt={payload.timestamp_utc}"
        )
        return ActionResponse(success=True, message="Data synced successfully")

    def ingest_by_key(self, payload: Optional[WatchSyncPayload], resolve_user_by_key: KeyResolver) -> ActionResponse:
        if payload is None or not payload.api_key:
            raise MissingApiKey()
        user_id = resolve_user_by_key(payload.api_key)
        if not user_id:
            raise UnknownApiKey()
        self._require_measurement(payload)
        self._store(user_id, payload)
        logger.info(
            f"Apple Watch sync via API key for user {user_id}: "
            f"HR={payload.heart_rate_bpm}, Temp={payload.temperature_c}, MeasuredAt={payload.timestamp_utc}"
        )
        return ActionResponse(success=True, message="Data synced successfully")

    def get_latest(self, user_id: str) -> LatestWatchView:
        sample = self.samples.get(user_id)
        if sample is None:
            # No sync yet is a normal state, not an error
            return LatestWatchView()
        return LatestWatchView(
            heart_rate_bpm=sample.heart_rate_bpm,
            temperature_c=sample.temperature_c,
            has_temperature=sample.temperature_c is not None,
            source=sample.source,
            last_sync_utc=sample.last_sync_utc,
        )

    @staticmethod
    def _require_measurement(payload: WatchSyncPayload) -> None:
        if not payload.has_measurement():
            raise InvalidPayload()

    def _store(self, user_id: str, payload: WatchSyncPayload) -> None:
        try:
            sample = LatestWatchSample(
                user_id=user_id,
                heart_rate_bpm=payload.heart_rate_bpm,
                temperature_c=payload.temperature_c,
                source=payload.source if payload.source is not None else settings.WATCH_DEFAULT_SOURCE,
                last_sync_utc=self._clock(),
            )
            self.samples.upsert(sample)
        except Exception as e:
            logger.exception(f"Error syncing Apple Watch data for user {user_id}. Payload: {payload.model_dump(exclude={'api_key'})}")
            raise InternalFailure() from e
