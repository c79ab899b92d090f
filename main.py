from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware
from starlette.middleware.cors import CORSMiddleware

from healthdash.config import settings
from healthdash.routes import account_routes, health_routes, watch_routes
from healthdash.utils.errors import WatchSyncError
from healthdash.utils.identity import UserDirectory
from healthdash.utils.memory import Clock, ReadingStore
from healthdash.utils.models import ActionResponse
from healthdash.utils.watch_sync import WatchSampleStore, WatchSyncIngestor
from healthdash.logger import get_logger

logger = get_logger(__name__)

async def watch_sync_exception_handler(request: Request, exc: WatchSyncError):
    if exc.status_code >= 500:
        logger.error(f"Watch sync failed on {request.url.path}: {exc.message}")
    else:
        logger.warning(f"Watch sync rejected on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=ActionResponse(success=False, message=exc.message).model_dump(),
    )

def create_app(clock: Clock = None, user_directory: UserDirectory = None) -> FastAPI:
    app = FastAPI(title="healthdash")

    # The stores live as long as the app and are handed to the routes through Depends
    app.state.reading_store = ReadingStore(clock)
    app.state.watch_ingestor = WatchSyncIngestor(WatchSampleStore(), clock)
    app.state.user_directory = user_directory or UserDirectory(settings.SEED_USERS)

    # Session middleware carries the logged in user id
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.APP_SECRET_KEY,
        max_age=settings.SESSION_MAX_AGE,
        https_only=settings.HTTPS_ONLY_COOKIES,
        same_site="lax",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(WatchSyncError, watch_sync_exception_handler)

    app.include_router(account_routes.router)
    app.include_router(health_routes.router)
    app.include_router(watch_routes.router)
    return app

app = create_app()
