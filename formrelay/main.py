import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .abuse_guard import AbuseGuard
from .config import APP_ENV, LOG_LEVEL, NOTIFICATION_EMAIL
from .email_service import build_email_service
from .pipeline import SubmissionPipeline
from .rate_limiter import build_rate_limiter
from .routes import forms_router

# Configure logging
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "https://carlora.com,https://www.carlora.com,http://localhost:3000",
).split(",")


def build_pipeline() -> SubmissionPipeline:
    """Wire the process-wide pipeline from environment configuration"""
    return SubmissionPipeline(
        rate_limiter=build_rate_limiter(),
        abuse_guard=AbuseGuard(),
        email_service=build_email_service(),
        notification_to=NOTIFICATION_EMAIL,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    email_service = app.state.pipeline.email_service
    logger.info(
        f"Application starting up (env={APP_ENV}, email delivery "
        f"{'enabled' if email_service.delivers else 'log-only'})"
    )
    yield
    logger.info("Application shutting down...")


def create_app(pipeline: Optional[SubmissionPipeline] = None) -> FastAPI:
    """
    Build the ASGI app.

    Args:
        pipeline: Pre-wired pipeline (tests pass one built from fakes);
            built from environment configuration when omitted
    """
    app = FastAPI(title="Formrelay API", version="1.0.0", lifespan=lifespan)
    app.state.pipeline = pipeline or build_pipeline()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(forms_router)

    @app.get("/health")
    def health(request: Request):
        email_service = request.app.state.pipeline.email_service
        return {
            "status": "healthy",
            "environment": APP_ENV,
            "email": {"configured": email_service.is_configured, "delivers": email_service.delivers},
        }

    @app.get("/health/email")
    async def email_health_check(request: Request):
        """Check SMTP connectivity for monitoring"""
        email_service = request.app.state.pipeline.email_service
        if not email_service.is_configured:
            return {"status": "unconfigured", "email": {"connected": False}}

        connected = await email_service.verify_connection()
        return {"status": "healthy" if connected else "unhealthy", "email": {"connected": connected}}

    return app


app = create_app()
