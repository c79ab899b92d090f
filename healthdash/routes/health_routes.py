import json
import xml.etree.ElementTree as ET
from io import StringIO
from typing import Dict, List, Optional

import pandas as pd
from fastapi import APIRouter, Body, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import Response
from pydantic import ValidationError

from healthdash.routes.deps import get_reading_store, require_user_id
from healthdash.utils.analytics import build_analytics, build_statistics
from healthdash.utils.memory import ReadingStore
from healthdash.utils.models import (
    ActionResponse, AnalyticsView, DashboardView, ImportSummary, Reading, ReadingInput, StatisticsView,
)
from healthdash.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/health", tags=["Health Readings"])

# Maps the column spellings seen in exported spreadsheets to the reading fields
COLUMN_MAP = {
    'DeviceId': 'deviceId',
    'Device ID': 'deviceId',
    'device_id': 'deviceId',
    'DeviceType': 'deviceType',
    'Device Type': 'deviceType',
    'device_type': 'deviceType',
    'Value': 'value',
    'Unit': 'unit',
    'Notes': 'notes',
}
REQUIRED_COLUMNS = ['deviceId', 'deviceType', 'value', 'unit']
TEXT_COLUMNS = ['deviceId', 'deviceType', 'unit']

#-------- Helper functions--------
def _readings_as_dicts(readings: List[Reading]) -> List[dict]:
    return [r.model_dump(mode="json", by_alias=True) for r in readings]

def _format_value(value: float) -> str:
    # Whole numbers are written without a trailing .0
    return str(int(value)) if value.is_integer() else repr(value)

def _frame_from_json(json_data) -> pd.DataFrame:
    """Accepts a list of records, or an object holding one under any key."""
    if isinstance(json_data, list):
        return pd.DataFrame(json_data, dtype=object)
    if isinstance(json_data, dict):
        records_list = next((v for v in json_data.values() if isinstance(v, list)), None)
        if records_list:
            return pd.DataFrame(records_list, dtype=object)
        raise ValueError("JSON object does not contain a list of readings.")
    raise ValueError("Unsupported JSON structure.")

def _clean_import_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Standardizes column names and drops the rows that cannot become readings."""
    df = df.rename(columns=COLUMN_MAP)
    missing = [column for column in REQUIRED_COLUMNS if column not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {', '.join(missing)}")
    if 'notes' not in df.columns:
        df['notes'] = None

    df = df.dropna(subset=REQUIRED_COLUMNS).copy()
    df['value'] = pd.to_numeric(df['value'], errors='coerce')
    df = df[df['value'].notna() & (df['value'].abs() != float('inf'))].copy()
    for column in TEXT_COLUMNS:
        df[column] = df[column].astype(str).str.strip()
        df = df[df[column] != ''].copy()
    df['notes'] = df['notes'].map(lambda v: None if pd.isna(v) else str(v))
    return df[REQUIRED_COLUMNS + ['notes']]

#-------- Routes--------
@router.post("/readings", response_model=Reading, status_code=201)
def add_reading(
    reading: ReadingInput,
    user_id: str = Depends(require_user_id),
    store: ReadingStore = Depends(get_reading_store),
):
    stored = store.add_reading(reading, user_id)
    logger.info(f"Stored reading {stored.id} ({stored.device_type}={stored.value}{stored.unit}) for user {user_id}")
    return stored

@router.get("/readings", response_model=List[Reading])
def get_readings(user_id: str = Depends(require_user_id), store: ReadingStore = Depends(get_reading_store)):
    return store.get_all_readings(user_id)

@router.get("/readings/recent", response_model=List[Reading])
def get_recent_readings(
    count: Optional[int] = Query(None, ge=0),
    user_id: str = Depends(require_user_id),
    store: ReadingStore = Depends(get_reading_store),
):
    return store.get_recent_readings(user_id, count)

@router.get("/readings/by-type", response_model=List[Reading])
def get_readings_by_type(
    device_type: str = Query(..., alias="type"),
    user_id: str = Depends(require_user_id),
    store: ReadingStore = Depends(get_reading_store),
):
    return store.get_readings_by_device_type(user_id, device_type)

@router.get("/readings/by-device", response_model=Dict[str, List[Reading]])
def get_readings_by_device(user_id: str = Depends(require_user_id), store: ReadingStore = Depends(get_reading_store)):
    return store.get_readings_grouped_by_device(user_id)

@router.get("/averages", response_model=Dict[str, float])
def get_averages(user_id: str = Depends(require_user_id), store: ReadingStore = Depends(get_reading_store)):
    return store.get_averages_by_type(user_id)

@router.get("/dashboard", response_model=DashboardView)
def get_dashboard(user_id: str = Depends(require_user_id), store: ReadingStore = Depends(get_reading_store)):
    return store.get_dashboard_data(user_id)

@router.get("/analytics", response_model=AnalyticsView)
def get_analytics(user_id: str = Depends(require_user_id), store: ReadingStore = Depends(get_reading_store)):
    """Hourly histogram, per-device counts and 24 hour trends for the current user."""
    return build_analytics(store.get_all_readings(user_id), store.now())

@router.get("/statistics", response_model=StatisticsView)
def get_statistics(user_id: str = Depends(require_user_id), store: ReadingStore = Depends(get_reading_store)):
    return build_statistics(store.get_all_readings(user_id), store.now())

@router.delete("/readings", response_model=ActionResponse)
def clear_all_readings(user_id: str = Depends(require_user_id), store: ReadingStore = Depends(get_reading_store)):
    store.clear_all_readings(user_id)
    return ActionResponse(success=True, message="All readings cleared")

#-------- Export --------
@router.get("/export/json")
def export_json(user_id: str = Depends(require_user_id), store: ReadingStore = Depends(get_reading_store)):
    readings = store.get_all_readings(user_id)
    return Response(content=json.dumps(_readings_as_dicts(readings), indent=2), media_type="application/json")

@router.get("/export/xml")
def export_xml(user_id: str = Depends(require_user_id), store: ReadingStore = Depends(get_reading_store)):
    root = ET.Element("HealthReadings")
    for r in store.get_all_readings(user_id):
        node = ET.SubElement(root, "Reading")
        ET.SubElement(node, "Id").text = str(r.id)
        ET.SubElement(node, "DeviceId").text = r.device_id
        ET.SubElement(node, "DeviceType").text = r.device_type
        ET.SubElement(node, "Value").text = _format_value(r.value)
        ET.SubElement(node, "Unit").text = r.unit
        ET.SubElement(node, "Timestamp").text = r.timestamp.isoformat()
        ET.SubElement(node, "Notes").text = r.notes or ""
    return Response(content=ET.tostring(root, encoding="unicode"), media_type="application/xml")

@router.get("/export/csv")
def export_csv(user_id: str = Depends(require_user_id), store: ReadingStore = Depends(get_reading_store)):
    df = pd.DataFrame(
        _readings_as_dicts(store.get_all_readings(user_id)),
        columns=["id", "userId", "deviceId", "deviceType", "value", "unit", "timestamp", "notes"],
    )
    return Response(
        content=df.drop(columns=["userId"]).to_csv(index=False),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="health-readings.csv"'},
    )

#-------- Import --------
@router.post("/import", response_model=ActionResponse)
def import_json(
    readings: List[ReadingInput] = Body(...),
    user_id: str = Depends(require_user_id),
    store: ReadingStore = Depends(get_reading_store),
):
    if not readings:
        return ActionResponse(success=False, message="No valid readings provided")
    for reading in readings:
        store.add_reading(reading, user_id)
    logger.info(f"Imported {len(readings)} readings for user {user_id}")
    return ActionResponse(success=True, message=f"Imported {len(readings)} readings")

@router.post("/import/file", response_model=ImportSummary)
async def import_file(
    file: UploadFile = File(...),
    user_id: str = Depends(require_user_id),
    store: ReadingStore = Depends(get_reading_store),
):
    """
    Accepts a CSV or JSON export, normalizes the column names and stores
    every row that forms a valid reading. Rows with missing or non-numeric
    values are dropped and counted.
    """
    filename = file.filename or ""
    logger.info(f"Received import file {filename} for user {user_id}")
    if not filename.endswith(('.csv', '.json')):
        logger.warning(f"Unsupported file format for {filename}")
        raise HTTPException(status_code=400, detail="Unsupported file format. Please upload CSV or JSON.")

    contents = await file.read()
    try:
        if filename.endswith('.csv'):
            df = pd.read_csv(StringIO(contents.decode('utf-8')), dtype=str)
        else:
            df = _frame_from_json(json.loads(contents))
        initial_rows = len(df)
        df = _clean_import_frame(df)
    except Exception as e:
        logger.error(f"Failed to parse file {filename}. Error: {e}")
        raise HTTPException(status_code=400, detail=f"Could not parse file: {e}")

    imported = 0
    records = df.astype(object).where(pd.notna(df), None).to_dict(orient='records')
    for record in records:
        try:
            reading = ReadingInput.model_validate(record)
        except ValidationError as e:
            logger.warning(f"Discarding invalid row {record}: {e}")
            continue
        store.add_reading(reading, user_id)
        imported += 1

    dropped = initial_rows - imported
    logger.info(f"Import complete. Imported: {imported}, Dropped: {dropped}")
    return ImportSummary(status="success", rows_imported=imported, rows_dropped=dropped)
