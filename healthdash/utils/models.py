import math
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Dict, List, Optional

class CamelModel(BaseModel):
    """Base model that reads and writes camelCase keys on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

# --- Readings ---
class ReadingInput(CamelModel):
    device_id: str = Field(..., min_length=1, description="Free-text identifier of the originating device")
    device_type: str = Field(..., min_length=1, description="Device category, e.g. Thermometer or HeartRateMonitor")
    value: float
    unit: str = Field(..., min_length=1)
    notes: Optional[str] = None

    @field_validator("value")
    @classmethod
    def value_must_be_finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("value must be a finite number")
        return value

class Reading(CamelModel):
    model_config = ConfigDict(frozen=True)

    id: int
    user_id: str
    device_id: str
    device_type: str
    value: float
    unit: str
    timestamp: datetime
    notes: Optional[str] = None

class DashboardView(CamelModel):
    recent_readings: List[Reading]
    readings_by_device: Dict[str, List[Reading]]
    averages_by_type: Dict[str, float]
    total_readings: int
    last_reading_time: Optional[datetime] = None

class HourlyCount(CamelModel):
    hour: int
    count: int

class DeviceCount(CamelModel):
    device: str
    count: int

class TypeTrend(CamelModel):
    type: str
    average: float
    count: int
    latest: float

class AnalyticsView(CamelModel):
    readings_by_hour: List[HourlyCount]
    readings_by_device: List[DeviceCount]
    recent_trends: List[TypeTrend]

class StatisticsView(CamelModel):
    total_readings: int
    device_types: List[str]
    averages_by_type: Dict[str, float]
    readings_last_24_hours: int = Field(..., alias="readingsLast24Hours")
    max_value: float
    min_value: float

# --- Watch sync ---
class WatchSyncPayload(CamelModel):
    api_key: Optional[str] = None
    heart_rate_bpm: Optional[float] = None
    temperature_c: Optional[float] = None
    source: Optional[str] = None
    timestamp_utc: Optional[datetime] = None

    def has_measurement(self) -> bool:
        return self.heart_rate_bpm is not None or self.temperature_c is not None

class LatestWatchSample(CamelModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    heart_rate_bpm: Optional[float] = None
    temperature_c: Optional[float] = None
    source: str = ""
    last_sync_utc: datetime

class LatestWatchView(CamelModel):
    heart_rate_bpm: Optional[float] = None
    temperature_c: Optional[float] = None
    has_temperature: bool = False
    source: str = ""
    last_sync_utc: Optional[datetime] = None

# --- Responses ---
class ActionResponse(BaseModel):
    success: bool
    message: str

class ImportSummary(CamelModel):
    status: str
    rows_imported: int
    rows_dropped: int

# --- Accounts ---
class UserAccount(CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str

class AccountRequest(BaseModel):
    email: str = Field(..., min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
