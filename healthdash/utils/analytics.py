from datetime import datetime, timedelta
from typing import List

import pandas as pd
from dateutil import tz

from healthdash.config import settings
from healthdash.utils.memory import average_by_type
from healthdash.utils.models import (
    AnalyticsView, DeviceCount, HourlyCount, Reading, StatisticsView, TypeTrend,
)

COLUMNS = ["id", "device_id", "device_type", "value", "timestamp"]

def resolve_timezone(name: str):
    tzinfo = tz.gettz(name)
    if tzinfo is None:
        raise ValueError(f"Unknown timezone: {name}")
    return tzinfo

def readings_frame(readings: List[Reading]) -> pd.DataFrame:
    """Flattens readings into a frame with a UTC timestamp column."""
    df = pd.DataFrame(
        [{column: getattr(r, column) for column in COLUMNS} for r in readings],
        columns=COLUMNS,
    )
    if not df.empty:
        df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    return df

def _window_start(now: datetime, window_hours: int) -> pd.Timestamp:
    return pd.Timestamp(now - timedelta(hours=window_hours))

def readings_by_hour(readings: List[Reading], tz_name: str = None) -> List[HourlyCount]:
    """Number of readings per hour of day in the display zone, ascending by hour."""
    df = readings_frame(readings)
    if df.empty:
        return []
    tzinfo = resolve_timezone(tz_name or settings.DISPLAY_TIMEZONE)
    hours = df["timestamp"].dt.tz_convert(tzinfo).dt.hour
    counts = hours.value_counts().sort_index()
    return [HourlyCount(hour=int(hour), count=int(count)) for hour, count in counts.items()]

def readings_by_device(readings: List[Reading]) -> List[DeviceCount]:
    df = readings_frame(readings)
    if df.empty:
        return []
    counts = df.groupby("device_id", sort=False).size().sort_values(ascending=False, kind="stable")
    return [DeviceCount(device=str(device), count=int(count)) for device, count in counts.items()]

def recent_trends(readings: List[Reading], now: datetime, window_hours: int = None) -> List[TypeTrend]:
    """
    Per device type summary of the readings inside the trailing window:
    how many there were, their mean value and the most recent value.
    """
    if window_hours is None:
        window_hours = settings.TREND_WINDOW_HOURS
    df = readings_frame(readings)
    if df.empty:
        return []
    recent = df[df["timestamp"] >= _window_start(now, window_hours)]
    if recent.empty:
        return []

    recent = recent.sort_values(["timestamp", "id"], ascending=False)
    recent = recent.assign(type_key=recent["device_type"].str.casefold())
    trends = []
    for _, group in recent.groupby("type_key", sort=False):
        trends.append(TypeTrend(
            type=group.loc[group["id"].idxmin(), "device_type"],
            average=float(group["value"].mean()),
            count=int(len(group)),
            latest=float(group["value"].iloc[0]),
        ))
    return trends

def build_analytics(readings: List[Reading], now: datetime, tz_name: str = None) -> AnalyticsView:
    return AnalyticsView(
        readings_by_hour=readings_by_hour(readings, tz_name),
        readings_by_device=readings_by_device(readings),
        recent_trends=recent_trends(readings, now),
    )

def build_statistics(readings: List[Reading], now: datetime, window_hours: int = None) -> StatisticsView:
    # Max and min default to 0 for a user without readings
    if window_hours is None:
        window_hours = settings.TREND_WINDOW_HOURS
    df = readings_frame(readings)
    if df.empty:
        return StatisticsView(
            total_readings=0,
            device_types=[],
            averages_by_type={},
            readings_last_24_hours=0,
            max_value=0,
            min_value=0,
        )

    types = df.sort_values("id")["device_type"]
    distinct_types = types[~types.str.casefold().duplicated()]
    return StatisticsView(
        total_readings=len(df),
        device_types=distinct_types.tolist(),
        averages_by_type=average_by_type(readings),
        readings_last_24_hours=int((df["timestamp"] >= _window_start(now, window_hours)).sum()),
        max_value=float(df["value"].max()),
        min_value=float(df["value"].min()),
    )
