from typing import Optional
from fastapi import HTTPException, Request

from healthdash.utils.identity import UserDirectory
from healthdash.utils.memory import ReadingStore
from healthdash.utils.watch_sync import WatchSyncIngestor
from healthdash.logger import get_logger

logger = get_logger(__name__)

SESSION_USER_KEY = "user_id"

#-------- Store dependencies --------
# The stores are owned by the app instance and live as long as the process.
def get_reading_store(request: Request) -> ReadingStore:
    return request.app.state.reading_store

def get_watch_ingestor(request: Request) -> WatchSyncIngestor:
    return request.app.state.watch_ingestor

def get_user_directory(request: Request) -> UserDirectory:
    return request.app.state.user_directory

#-------- Identity dependencies --------
def get_session_user_id(request: Request) -> Optional[str]:
    """Returns the user id stored in the session, or None when nobody is logged in."""
    return request.session.get(SESSION_USER_KEY) or None

def require_user_id(request: Request) -> str:
    """Dependency for session-gated routes."""
    user_id = get_session_user_id(request)
    if not user_id:
        logger.warning(f"Rejected unauthenticated request to {request.url.path}")
        raise HTTPException(status_code=401, detail="User not authenticated.")
    return user_id
