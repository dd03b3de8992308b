import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from liveclass.api.v1.auth.router import router as auth_router
from liveclass.api.v1.live_classes.admin_router import router as admin_classes_router
from liveclass.api.v1.live_classes.refresher import ClassRefresher
from liveclass.api.v1.live_classes.router import router as classes_router
from liveclass.core.config import settings
from liveclass.core.logging_config import configure_logging
from liveclass.db.session import AsyncSessionLocal

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    refresher = ClassRefresher(AsyncSessionLocal, settings.refresh_interval_seconds)
    app.state.refresher = refresher
    if settings.auto_refresh_enabled:
        refresher.start()
    try:
        yield
    finally:
        await refresher.stop()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Live Classes Backend", lifespan=lifespan)

    # CORS: the student dashboard and admin panel are served from another origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(auth_router)
    app.include_router(classes_router)
    app.include_router(admin_classes_router)

    logger.debug("Application created")
    return app


app = create_app()
