"""LeaveDesk — FastAPI Application Factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from leavedesk.common.exceptions import register_exception_handlers
from leavedesk.common.log import configure_logging
from leavedesk.common.rate_limit import limiter
from leavedesk.config import settings
from leavedesk.database import engine
from leavedesk.files.router import router as files_router
from leavedesk.files.service import storage_dir
from leavedesk.leave.router import router as leave_router
from leavedesk.notifications.router import router as notifications_router
from leavedesk.users.router import router as users_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    storage_dir().mkdir(parents=True, exist_ok=True)
    logger.info("LeaveDesk starting (%s)", settings.ENVIRONMENT)
    yield
    await engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title="LeaveDesk",
        description="Leave requests, approvals, balances and supporting documents",
        version="1.0.0",
        docs_url="/api/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/api/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )

    # Exception handlers (RFC 7807)
    register_exception_handlers(app)

    # Rate limiting (slowapi)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check (no auth)
    @app.get("/api/v1/health", tags=["system"])
    async def health_check():
        return {
            "status": "healthy",
            "version": "1.0.0",
            "environment": settings.ENVIRONMENT,
        }

    # Register routers
    app.include_router(leave_router, prefix="/api/v1/leaves", tags=["leave"])
    app.include_router(files_router, prefix="/api/v1/files", tags=["files"])
    app.include_router(notifications_router, prefix="/api/v1/notifications", tags=["notifications"])
    app.include_router(users_router, prefix="/api/v1/users", tags=["users"])

    # Stored attachments
    app.mount(
        settings.UPLOAD_URL_PREFIX,
        StaticFiles(directory=storage_dir(), check_dir=False),
        name="leave_attachments",
    )

    return app


app = create_app()
