from typing import Optional
from fastapi import APIRouter, Body, Depends, Response

from healthdash.routes.deps import (
    get_session_user_id, get_user_directory, get_watch_ingestor, require_user_id,
)
from healthdash.utils.identity import UserDirectory
from healthdash.utils.models import ActionResponse, LatestWatchView, WatchSyncPayload
from healthdash.utils.watch_sync import WatchSyncIngestor

router = APIRouter(prefix="/api/health", tags=["Apple Watch Sync"])

@router.post("/watch-sync", response_model=ActionResponse)
def watch_sync(
    payload: Optional[WatchSyncPayload] = Body(None),
    user_id: Optional[str] = Depends(get_session_user_id),
    ingestor: WatchSyncIngestor = Depends(get_watch_ingestor),
):
    """
    Receives heart rate and/or temperature from the iOS app for the user
    logged in through the browser session.
    """
    return ingestor.ingest_authenticated(payload, user_id)

@router.post("/watch-sync-key", response_model=ActionResponse)
def watch_sync_with_key(
    payload: Optional[WatchSyncPayload] = Body(None),
    ingestor: WatchSyncIngestor = Depends(get_watch_ingestor),
    directory: UserDirectory = Depends(get_user_directory),
):
    """
    Same as /watch-sync for clients without a session. The user is looked up
    from the apiKey field, which is the user's registered email.
    """
    return ingestor.ingest_by_key(payload, directory.resolve_user_id_by_key)

@router.get("/latest", response_model=LatestWatchView)
def get_latest_watch_data(
    response: Response,
    user_id: str = Depends(require_user_id),
    ingestor: WatchSyncIngestor = Depends(get_watch_ingestor),
):
    # The dashboard polls this endpoint, so responses must never be cached
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
    return ingestor.get_latest(user_id)
